"""
Per-utterance conversation loop.

One turn walks an explicit state machine:

    idle -> awaiting_model -> (tool_round -> awaiting_model)* -> complete

with terminal ``abandoned`` (the turn task was cancelled by a caller
interrupt) and ``failed`` (the LLM API raised). Tool rounds are bounded by
``max_tool_rounds``; once they are used up the next completion is requested
without tools, so it has to answer in text.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from loguru import logger
from openai import AsyncOpenAI

from hospital_agent.config import (
    DOMAIN,
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_TEMPERATURE,
    MAX_TOOL_ROUNDS,
    OPENAI_API_KEY,
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
)
from hospital_agent.constants import MessageRole, TurnState
from hospital_agent.sessions import SessionTranscript
from hospital_agent.tools import TOOL_DEFINITIONS, ToolDispatcher, to_json
from hospital_agent.utils import mask_id

# Tools that write to the store; once started they are not cancelled
WRITE_TOOLS = frozenset({"create_reservation"})
CANCELLED_RESULT = to_json({"success": False, "error": "cancelled"})

_llm_client: Optional[AsyncOpenAI] = None


def get_llm_client() -> AsyncOpenAI:
    """Shared chat-completion client; OpenRouter when configured, else OpenAI."""
    global _llm_client
    if _llm_client is None:
        if OPENROUTER_API_KEY:
            logger.info("Using OpenRouter for chat completions")
            _llm_client = AsyncOpenAI(
                api_key=OPENROUTER_API_KEY,
                base_url=OPENROUTER_BASE_URL,
                default_headers={
                    "HTTP-Referer": f"https://{DOMAIN}",
                    "X-Title": "Hospital Voice Agent",
                },
            )
        else:
            logger.info("Using OpenAI for chat completions")
            _llm_client = AsyncOpenAI(api_key=OPENAI_API_KEY)
    return _llm_client


@dataclass
class TurnResult:
    reply: str
    state: TurnState
    tool_rounds: int


def tool_call_message(message: Any) -> Dict[str, Any]:
    """Assistant message carrying tool calls, in the shape the API expects back."""
    return {
        "role": MessageRole.ASSISTANT.value,
        "content": message.content,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.function.name, "arguments": call.function.arguments},
            }
            for call in message.tool_calls
        ],
    }


def tool_result_message(call_id: str, content: str) -> Dict[str, Any]:
    return {"role": MessageRole.TOOL.value, "tool_call_id": call_id, "content": content}


class ConversationLoop:
    """Runs one caller utterance through the LLM and any tool rounds it asks for."""

    def __init__(
        self,
        llm: AsyncOpenAI,
        dispatcher: ToolDispatcher,
        model: str = LLM_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ):
        self.llm = llm
        self.dispatcher = dispatcher
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_tool_rounds = max(max_tool_rounds, 0)
        self.state = TurnState.IDLE

    async def _complete(self, messages: List[Dict[str, Any]], offer_tools: bool):
        kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if offer_tools:
            kwargs["tools"] = TOOL_DEFINITIONS
            kwargs["tool_choice"] = "auto"

        completion = await self.llm.chat.completions.create(**kwargs)
        return completion.choices[0].message

    async def _run_tool_round(self, transcript: SessionTranscript, message: Any) -> None:
        # Every requested call gets a result before commit, so the transcript
        # never holds an unanswered tool call, even when the turn is interrupted.
        staged = [tool_call_message(message)]
        pending = list(message.tool_calls)
        interrupted = False

        while pending and not interrupted:
            call = pending.pop(0)
            task = asyncio.ensure_future(self.dispatcher.dispatch(
                call.function.name,
                call.function.arguments,
                idempotency_key=f"{transcript.call_sid}:{call.id}",
            ))
            try:
                if call.function.name in WRITE_TOOLS:
                    content = await asyncio.shield(task)
                else:
                    content = await task
            except asyncio.CancelledError:
                interrupted = True
                if call.function.name in WRITE_TOOLS:
                    # A write already under way runs to completion and is recorded
                    content = await task
                else:
                    task.cancel()
                    content = CANCELLED_RESULT
            staged.append(tool_result_message(call.id, content))

        for call in pending:
            staged.append(tool_result_message(call.id, CANCELLED_RESULT))
        transcript.extend(staged)

        if interrupted:
            logger.info(
                f"Tool round interrupted for call {mask_id(transcript.call_sid)}; "
                f"{len(pending)} call(s) not run"
            )
            raise asyncio.CancelledError()

    async def run_turn(self, transcript: SessionTranscript, utterance: str) -> TurnResult:
        transcript.append({"role": MessageRole.USER.value, "content": utterance})
        rounds = 0

        try:
            self.state = TurnState.AWAITING_MODEL
            message = await self._complete(transcript.snapshot(), offer_tools=self.max_tool_rounds > 0)

            while message.tool_calls and rounds < self.max_tool_rounds:
                self.state = TurnState.TOOL_ROUND
                rounds += 1
                await self._run_tool_round(transcript, message)

                self.state = TurnState.AWAITING_MODEL
                message = await self._complete(
                    transcript.snapshot(),
                    offer_tools=rounds < self.max_tool_rounds,
                )

            if message.tool_calls:
                logger.warning(
                    f"Ignoring {len(message.tool_calls)} tool call(s) after {rounds} round(s) "
                    f"for call {mask_id(transcript.call_sid)}"
                )

            reply = message.content or ""
            transcript.append({"role": MessageRole.ASSISTANT.value, "content": reply})
            self.state = TurnState.COMPLETE
            return TurnResult(reply=reply, state=self.state, tool_rounds=rounds)

        except asyncio.CancelledError:
            self.state = TurnState.ABANDONED
            logger.info(f"Turn abandoned for call {mask_id(transcript.call_sid)} after {rounds} tool round(s)")
            raise
        except Exception:
            self.state = TurnState.FAILED
            raise
