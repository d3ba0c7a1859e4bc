from urllib.parse import quote

from fastapi import APIRouter, Form, Response
from loguru import logger
from twilio.twiml.voice_response import Connect, VoiceResponse

from hospital_agent.config import DOMAIN, TTS_PROVIDER, TTS_VOICE, WELCOME_GREETING
from hospital_agent.utils import mask_phone

router = APIRouter()


def build_relay_twiml(caller_number: str = "") -> str:
    """TwiML that hands the call to ConversationRelay, pointing back at our /ws socket."""
    ws_url = f"wss://{DOMAIN}/ws?caller={quote(caller_number or '')}"

    response = VoiceResponse()
    connect = Connect()
    connect.conversation_relay(
        url=ws_url,
        welcome_greeting=WELCOME_GREETING,
        tts_provider=TTS_PROVIDER,
        voice=TTS_VOICE,
    )
    response.append(connect)
    return str(response)


@router.post("")
async def incoming_call(From: str = Form(default="")):
    logger.info(f"Incoming call from {mask_phone(From)} - generating TwiML response")
    return Response(content=build_relay_twiml(From), media_type="text/xml")
