"""Dependency injection providers for FastAPI"""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError, jwt
from loguru import logger

from hospital_agent.config import JWT_ALGORITHM, JWT_SECRET_KEY
from hospital_agent.exceptions import AuthorizationError
from hospital_agent.models import (
    AsyncCallLogRecord,
    AsyncHospitalRecord,
    AsyncReservationRecord,
    get_async_call_log_db,
    get_async_hospital_db,
    get_async_reservation_db,
)
from hospital_agent.sessions import SessionRegistry, get_session_registry

security = HTTPBearer(auto_error=False)


# Database dependencies
def get_hospital_db() -> AsyncHospitalRecord:
    return get_async_hospital_db()

def get_reservation_db() -> AsyncReservationRecord:
    return get_async_reservation_db()

def get_call_log_db() -> AsyncCallLogRecord:
    return get_async_call_log_db()

def get_registry() -> SessionRegistry:
    return get_session_registry()


# Utilities
def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthorizationError("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise AuthorizationError("Invalid token")

    if not payload.get("sub"):
        raise AuthorizationError("Invalid token")
    return payload


# Authentication
async def get_current_hospital(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """Validate the bearer JWT; the payload's sub is the hospital id."""
    if credentials is None or not credentials.credentials:
        raise AuthorizationError("No token provided")
    return decode_access_token(credentials.credentials)


async def get_current_hospital_id(current: dict = Depends(get_current_hospital)) -> str:
    return current["sub"]


# Rate limiting
def get_rate_limit_key(request: Request) -> str:
    """Hospital id from the JWT when present, else client IP"""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        try:
            payload = jwt.decode(auth_header[7:], JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
            return f"hospital:{payload.get('sub')}"
        except JWTError:
            pass
    return f"ip:{get_client_ip(request)}"
