from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import APIRouter, Depends, Request
from jose import jwt
from loguru import logger
from pymongo.errors import DuplicateKeyError
from slowapi import Limiter

from hospital_agent.config import JWT_ALGORITHM, JWT_EXPIRE_DAYS, JWT_SECRET_KEY
from hospital_agent.dependencies import get_hospital_db, get_rate_limit_key
from hospital_agent.exceptions import AuthorizationError, ConflictError
from hospital_agent.models import AsyncHospitalRecord
from hospital_agent.schemas import LoginRequest, SignupRequest
from hospital_agent.utils import convert_objectid, mask_id

router = APIRouter()
limiter = Limiter(key_func=get_rate_limit_key)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(hospital_id: str, expires_delta: timedelta = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=JWT_EXPIRE_DAYS))
    return jwt.encode({"sub": hospital_id, "exp": expire}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def _public(hospital: dict) -> dict:
    hospital = {k: v for k, v in hospital.items() if k != "hashed_password"}
    return convert_objectid(hospital)


@router.post("/signup", status_code=201)
@limiter.limit("5/minute")
async def signup(
    request: Request,
    signup_data: SignupRequest,
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    if await hospital_db.find_by_email(signup_data.email):
        raise ConflictError("Hospital with this email already exists")

    hospital_dict = signup_data.model_dump(mode="json", exclude={"password"}, exclude_none=True)
    hospital_dict["hashed_password"] = hash_password(signup_data.password)

    try:
        hospital_id = await hospital_db.add_hospital(hospital_dict)
    except DuplicateKeyError:
        raise ConflictError("Hospital with this email already exists")

    logger.info(f"Hospital signed up: {mask_id(hospital_id)}")
    hospital = await hospital_db.find_by_id(hospital_id)

    return {
        "success": True,
        "message": "Hospital registered successfully",
        "data": {
            "token": create_access_token(hospital_id),
            "hospital": _public(hospital or {"_id": hospital_id}),
        },
    }


@router.post("/login")
@limiter.limit("5/minute")
async def login(
    request: Request,
    login_data: LoginRequest,
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    hospital = await hospital_db.find_by_email(login_data.email)

    if not hospital or not verify_password(login_data.password, hospital.get("hashed_password", "")):
        logger.warning("Failed login attempt")
        raise AuthorizationError("Invalid email or password")

    if not hospital.get("is_active", True):
        raise AuthorizationError("Hospital account is inactive")

    hospital_id = str(hospital["_id"])
    logger.info(f"Hospital logged in: {mask_id(hospital_id)}")

    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "token": create_access_token(hospital_id),
            "hospital": _public(hospital),
        },
    }
