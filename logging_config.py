import os
import sys
import logging
from loguru import logger

NOISY_LIBRARIES = ['pymongo', 'motor', 'websockets', 'httpx', 'httpcore', 'openai', 'twilio.http_client']

# CallRelay binds "call" to the masked call sid; everything else logs "-"
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[call]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def llm_provider() -> str:
    return "openrouter" if os.getenv("OPENROUTER_API_KEY") else "openai"


def setup_logging(debug: bool = None):
    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ["true", "1", "yes"]

    env = os.getenv("ENV", "local")
    level = "DEBUG" if debug else "INFO"

    logger.remove()
    logger.configure(extra={"call": "-"})

    if env == "production":
        logger.add(sys.stderr, level=level, format="{message}", serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    for lib in NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)

    relay_url = f"wss://{os.getenv('DOMAIN', 'localhost:5000')}/ws"
    logger.info(f"Logging configured (env={env}, level={level}, llm={llm_provider()}, relay={relay_url})")
