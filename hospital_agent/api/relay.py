from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from loguru import logger

from hospital_agent.conversation import ConversationLoop, get_llm_client
from hospital_agent.dependencies import get_hospital_db, get_registry, get_reservation_db
from hospital_agent.models import AsyncHospitalRecord, AsyncReservationRecord
from hospital_agent.relay import CallRelay, LoopFactory
from hospital_agent.sessions import SessionRegistry
from hospital_agent.tools import ToolDispatcher
from hospital_agent.utils import mask_phone

router = APIRouter()


def get_loop_factory(
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db),
    reservation_db: AsyncReservationRecord = Depends(get_reservation_db)
) -> LoopFactory:
    def build(caller_number: Optional[str]) -> ConversationLoop:
        dispatcher = ToolDispatcher(hospital_db, reservation_db, caller_number=caller_number)
        return ConversationLoop(get_llm_client(), dispatcher)
    return build


@router.websocket("/ws")
async def conversation_relay(
    websocket: WebSocket,
    caller: Optional[str] = None,
    registry: SessionRegistry = Depends(get_registry),
    loop_factory: LoopFactory = Depends(get_loop_factory)
):
    await websocket.accept()
    logger.info(f"WebSocket connection established for {mask_phone(caller)}")

    relay = CallRelay(websocket.send_json, registry, loop_factory, caller_number=caller)
    try:
        while True:
            raw = await websocket.receive_text()
            await relay.handle_frame(raw)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for {mask_phone(caller)}")
    finally:
        await relay.close()
