from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hospital_agent.config import ALLOWED_ORIGINS
from hospital_agent.dependencies import get_rate_limit_key
from hospital_agent.exceptions import register_exception_handlers
from hospital_agent.lifespan import lifespan
from hospital_agent.api import auth, health, hospitals, relay, reservations, twilio

app = FastAPI(
    title="Hospital Booking Voice Agent",
    version="1.0.0",
    lifespan=lifespan
)

limiter = Limiter(key_func=get_rate_limit_key)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

allowed_origins = [origin.strip() for origin in ALLOWED_ORIGINS.split(",")]
logger.info(f"CORS allowed origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials="*" not in allowed_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
    max_age=600
)

register_exception_handlers(app)

app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(twilio.router, prefix="/api/twilio", tags=["Twilio"])
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(hospitals.router, prefix="/api/hospitals", tags=["Hospitals"])
app.include_router(reservations.router, prefix="/api", tags=["Reservations"])
app.include_router(relay.router, tags=["Conversation Relay"])
