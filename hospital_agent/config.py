import os
from typing import List, Tuple
from loguru import logger

ENV = os.getenv("ENV", "local")
PORT = int(os.getenv("PORT", "5000"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")

# Public host Twilio dials back into for the ConversationRelay socket
DOMAIN = os.getenv("DOMAIN", "localhost:5000")
WELCOME_GREETING = os.getenv(
    "WELCOME_GREETING",
    "Welcome to the Hospital Booking Agent. How can I assist you today?"
)
TTS_PROVIDER = os.getenv("TTS_PROVIDER", "ElevenLabs")
TTS_VOICE = os.getenv("TTS_VOICE", "STxLVfvNUAFB2Mhc218c")

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "openai/gpt-4o-mini" if OPENROUTER_API_KEY else "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "180"))

MAX_TOOL_ROUNDS = int(os.getenv("MAX_TOOL_ROUNDS", "3"))
# 0 disables the cap
MAX_TRANSCRIPT_MESSAGES = int(os.getenv("MAX_TRANSCRIPT_MESSAGES", "0"))

REQUIRED_BACKEND_ENV_VARS = [
    "JWT_SECRET_KEY",
    "MONGO_URI",
]

# Twilio needs a reachable host outside local development
if ENV in ("production", "test"):
    REQUIRED_BACKEND_ENV_VARS.append("DOMAIN")


def validate_env_vars(required_vars: List[str]) -> Tuple[bool, List[str]]:
    missing = [var for var in required_vars if not os.getenv(var)]
    return len(missing) == 0, missing


async def validate_backend_startup() -> None:
    from hospital_agent.database import check_connection

    logger.info("Validating backend environment...")

    all_present, missing = validate_env_vars(REQUIRED_BACKEND_ENV_VARS)
    if not all_present:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
    logger.info("✓ Required environment variables present")

    secret_key = os.getenv("JWT_SECRET_KEY", "")
    if len(secret_key) < 32:
        raise RuntimeError("JWT_SECRET_KEY must be at least 32 characters")

    if not (os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY")):
        raise RuntimeError("Either OPENROUTER_API_KEY or OPENAI_API_KEY must be set")
    logger.info("✓ LLM credentials present")

    is_healthy, error = await check_connection()
    if not is_healthy:
        raise RuntimeError(f"MongoDB health check failed: {error}")

    logger.info("✓ MongoDB connection successful")
    logger.info("Backend validation complete - ready to start")
