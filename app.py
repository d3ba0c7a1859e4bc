import asyncio
import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

# Load environment variables from .env file
load_dotenv()

from logging_config import setup_logging
from hospital_agent.config import PORT, validate_backend_startup
from hospital_agent.main import app

if __name__ == "__main__":
    setup_logging()

    logger.info("=" * 60)
    logger.info("Hospital Booking Voice Agent")
    logger.info("=" * 60)

    # Validate environment and service connectivity
    try:
        asyncio.run(validate_backend_startup())
    except RuntimeError as e:
        logger.error(f"❌ Startup validation failed: {e}")
        logger.error("Cannot start application - fix configuration and try again")
        sys.exit(1)

    logger.info(f"Starting server on port {PORT}...")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
