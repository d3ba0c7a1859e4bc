from contextlib import asynccontextmanager
from fastapi import FastAPI
from loguru import logger

from hospital_agent.database import close_mongo_client
from hospital_agent.models import ensure_all_indexes


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")

    await ensure_all_indexes()
    logger.info("Indexes ensured")

    logger.info("Application ready")

    yield

    logger.info("Shutdown signal received...")
    await close_mongo_client()
    logger.info("Graceful shutdown complete")
