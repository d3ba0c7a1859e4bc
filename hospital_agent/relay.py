"""
ConversationRelay frame handling for one phone call.

The WebSocket receive loop feeds raw frames to ``CallRelay.handle_frame``.
Prompts go onto a per-call queue drained by a single worker task, so replies
keep caller order while the receive loop stays free to see interrupts. Each
utterance runs as its own task; an interrupt cancels it.
"""
import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from hospital_agent.conversation import ConversationLoop
from hospital_agent.sessions import SessionRegistry
from hospital_agent.utils import mask_id, mask_phone

SendJson = Callable[[Dict[str, Any]], Awaitable[None]]
LoopFactory = Callable[[Optional[str]], ConversationLoop]


class CallRelay:
    def __init__(
        self,
        send_json: SendJson,
        registry: SessionRegistry,
        loop_factory: LoopFactory,
        caller_number: Optional[str] = None
    ):
        self.send_json = send_json
        self.registry = registry
        self.loop_factory = loop_factory
        self.caller_number = caller_number
        self.call_sid: Optional[str] = None
        self.conversation: Optional[ConversationLoop] = None
        self._prompts: "asyncio.Queue[str]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._current_turn: Optional[asyncio.Task] = None
        self.log = logger.bind(call="-")

    async def handle_frame(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError as e:
            self.log.warning(f"Dropping malformed relay frame: {e}")
            return
        if not isinstance(frame, dict):
            self.log.warning("Dropping relay frame that is not a JSON object")
            return

        frame_type = frame.get("type")
        if frame_type == "setup":
            await self._on_setup(frame)
        elif frame_type == "prompt":
            self._on_prompt(frame)
        elif frame_type == "interrupt":
            self._on_interrupt()
        else:
            self.log.warning(f"Unknown message type received: {frame_type}")

    async def _on_setup(self, frame: dict) -> None:
        call_sid = frame.get("callSid")
        if not call_sid:
            self.log.warning("Setup frame without callSid ignored")
            return

        if self.call_sid and self.call_sid != call_sid:
            self.registry.close(self.call_sid)

        self.call_sid = call_sid
        self.log = logger.bind(call=mask_id(call_sid))
        self.caller_number = self.caller_number or frame.get("from")
        await self.registry.open(call_sid, self.caller_number)
        self.conversation = self.loop_factory(self.caller_number)

        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain_prompts())

    def _on_prompt(self, frame: dict) -> None:
        if self.call_sid is None or self.call_sid not in self.registry:
            self.log.debug("Prompt for unknown or closed call ignored")
            return

        prompt = frame.get("voicePrompt") or ""
        self.log.info("Processing prompt")
        self._prompts.put_nowait(prompt)

    def _on_interrupt(self) -> None:
        self.log.info("Handling interruption")
        if self._current_turn is not None and not self._current_turn.done():
            self._current_turn.cancel()

    async def _drain_prompts(self) -> None:
        while True:
            prompt = await self._prompts.get()
            transcript = self.registry.get(self.call_sid)
            if transcript is None:
                continue

            turn = asyncio.create_task(self.conversation.run_turn(transcript, prompt))
            self._current_turn = turn
            try:
                # wait() lets the turn be cancelled without cancelling this worker
                await asyncio.wait({turn})
            finally:
                if not turn.done():
                    turn.cancel()
                self._current_turn = None

            if turn.cancelled():
                continue

            error = turn.exception()
            if error is not None:
                self.log.opt(exception=error).error(f"WS error: {error}")
                continue

            result = turn.result()
            self.log.info(f"Sent response ({result.tool_rounds} tool rounds)")
            try:
                await self.send_json({"type": "text", "token": result.reply, "last": True})
            except Exception as e:
                self.log.error(f"Failed to send reply: {e}")

    async def close(self) -> None:
        if self.registry.close(self.call_sid):
            self.log.info(f"WebSocket connection closed for {mask_phone(self.caller_number)}")

        for task in (self._current_turn, self._worker):
            if task is not None and not task.done():
                task.cancel()
        if self._worker is not None:
            await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
        self._current_turn = None
