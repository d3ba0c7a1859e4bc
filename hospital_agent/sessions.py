from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from hospital_agent.config import MAX_TRANSCRIPT_MESSAGES
from hospital_agent.constants import MessageRole
from hospital_agent.models import AsyncHospitalRecord, get_async_hospital_db
from hospital_agent.utils import mask_id, mask_phone

Message = Dict[str, Any]

SYSTEM_PROMPT = """
You are a helpful and friendly hospital booking voice assistant. This conversation is happening over a phone call, so your responses will be spoken aloud.

Information:
Today date is {today}

Your role is to:
1. Help customers find nearby hospitals based on their location
2. Provide information about hospital specialties and availability
3. Book appointments for patients
4. Answer questions about hospital services

Please adhere to these rules:
1. Provide clear, concise, and direct answers
2. Spell out all numbers
3. Do not use any special characters
4. Keep the conversation natural and engaging
5. Ask for location (city, state, or coordinates) when helping find hospitals
6. Confirm important details before booking appointments
"""


def build_system_prompt(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return SYSTEM_PROMPT.format(today=f"{now.strftime('%m/%d/%Y')} {now.strftime('%A')}")


def format_hospital_snapshot(hospitals: List[dict]) -> str:
    lines = [
        f"{h.get('hospital_name')} - {(h.get('location') or {}).get('city', '')}, "
        f"Phone: {h.get('phone')}, Rating: {h.get('rating') or 'N/A'}"
        for h in hospitals
    ]
    return (
        f"Here are the available hospitals: {'; '.join(lines)}\n\n"
        "I'm ready to help you book an appointment. Which hospital would you like to visit?\n"
    )


@dataclass
class SessionTranscript:
    """Ordered chat history for one phone call; lives only in process memory."""
    call_sid: str
    caller_number: Optional[str] = None
    messages: List[Message] = field(default_factory=list)
    seed_count: int = 0
    max_messages: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def append(self, message: Message) -> None:
        self.messages.append(message)
        self._trim()

    def extend(self, messages: List[Message]) -> None:
        self.messages.extend(messages)
        self._trim()

    def snapshot(self) -> List[Message]:
        return list(self.messages)

    def __len__(self) -> int:
        return len(self.messages)

    def _trim(self) -> None:
        if not self.max_messages or len(self.messages) <= self.max_messages:
            return

        seed = self.messages[:self.seed_count]
        history = self.messages[self.seed_count:]
        start = max(len(history) - (self.max_messages - len(seed)), 0)
        # The utterance being answered stays, so a small cap can be exceeded within a turn
        user_turns = [i for i, m in enumerate(history) if m.get("role") == MessageRole.USER.value]
        if user_turns:
            start = min(start, user_turns[-1])
        history = history[start:]

        # A tool result is only valid after the assistant message that requested it
        while history and history[0].get("role") == MessageRole.TOOL.value:
            history.pop(0)

        dropped = len(self.messages) - len(seed) - len(history)
        self.messages = seed + history
        logger.debug(f"Trimmed {dropped} messages from transcript {mask_id(self.call_sid)}")


class SessionRegistry:
    """Owns call id -> transcript for every live call handled by this process."""

    def __init__(
        self,
        hospital_db: Optional[AsyncHospitalRecord] = None,
        max_messages: int = MAX_TRANSCRIPT_MESSAGES
    ):
        self.hospital_db = hospital_db
        self.max_messages = max_messages
        self._sessions: Dict[str, SessionTranscript] = {}

    def _hospitals(self) -> AsyncHospitalRecord:
        if self.hospital_db is None:
            self.hospital_db = get_async_hospital_db()
        return self.hospital_db

    async def open(self, call_sid: str, caller_number: Optional[str] = None) -> SessionTranscript:
        if call_sid in self._sessions:
            logger.warning(f"Session {mask_id(call_sid)} already open, replacing transcript")

        transcript = SessionTranscript(
            call_sid=call_sid,
            caller_number=caller_number,
            max_messages=self.max_messages,
        )
        transcript.messages.extend([
            {"role": MessageRole.SYSTEM.value, "content": build_system_prompt()},
            {"role": MessageRole.SYSTEM.value, "content": f"Caller Number: {caller_number}"},
        ])

        try:
            hospitals = await self._hospitals().list_active(50)
            transcript.messages.append({
                "role": MessageRole.ASSISTANT.value,
                "content": format_hospital_snapshot(hospitals),
            })
            logger.info(f"Fetched and set hospital context for call {mask_id(call_sid)}")
        except Exception as e:
            logger.error(f"Error fetching hospitals on setup: {e}")

        transcript.seed_count = len(transcript.messages)
        self._sessions[call_sid] = transcript
        logger.info(f"Call started: {mask_id(call_sid)} from {mask_phone(caller_number)}")
        return transcript

    def get(self, call_sid: Optional[str]) -> Optional[SessionTranscript]:
        if not call_sid:
            return None
        return self._sessions.get(call_sid)

    def close(self, call_sid: Optional[str]) -> bool:
        if not call_sid:
            return False
        removed = self._sessions.pop(call_sid, None) is not None
        if removed:
            logger.info(f"Call ended: {mask_id(call_sid)}")
        return removed

    def __contains__(self, call_sid: str) -> bool:
        return call_sid in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


_registry_instance: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = SessionRegistry()
    return _registry_instance
