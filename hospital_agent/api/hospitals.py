import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger
from pymongo.errors import DuplicateKeyError

from hospital_agent.dependencies import get_current_hospital_id, get_hospital_db
from hospital_agent.exceptions import ConflictError, InputValidationError, NotFoundError
from hospital_agent.models import AsyncHospitalRecord
from hospital_agent.models.hospital import NEARBY_DEFAULT_MAX_DISTANCE, SPECIALTY_DEFAULT_MAX_DISTANCE
from hospital_agent.schemas import HospitalCreate, HospitalUpdate
from hospital_agent.utils import convert_objectid, mask_id

router = APIRouter()


def _search_result(hospitals: list) -> dict:
    return {
        "success": True,
        "data": {"count": len(hospitals), "hospitals": convert_objectid(hospitals)},
    }


# Public search endpoints

@router.get("/search/nearby")
async def search_nearby(
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    max_distance: int = Query(NEARBY_DEFAULT_MAX_DISTANCE, alias="maxDistance", gt=0),
    limit: int = Query(10, gt=0),
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    if latitude is None or longitude is None:
        raise InputValidationError("Latitude and longitude are required")

    hospitals = await hospital_db.find_nearby(longitude, latitude, max_distance, limit)
    return _search_result(hospitals)


@router.get("/search/location")
async def search_by_location(
    city: Optional[str] = None,
    state: Optional[str] = None,
    zip_code: Optional[str] = Query(None, alias="zipCode"),
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    hospitals = await hospital_db.find_by_location(city, state, zip_code)
    return _search_result(hospitals)


@router.get("/search/specialty")
async def search_by_specialty(
    specialty: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    max_distance: int = Query(SPECIALTY_DEFAULT_MAX_DISTANCE, alias="maxDistance", gt=0),
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    hospitals = await hospital_db.find_by_specialty(specialty, longitude, latitude, max_distance)
    return _search_result(hospitals)


# CRUD

@router.post("", status_code=201)
async def create_hospital(
    hospital_data: HospitalCreate,
    hospital_id: str = Depends(get_current_hospital_id),
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    if await hospital_db.find_by_email(hospital_data.email):
        raise ConflictError("Hospital with this email already exists")

    try:
        new_id = await hospital_db.add_hospital(hospital_data.model_dump(mode="json", exclude_none=True))
    except DuplicateKeyError:
        raise ConflictError("Hospital with this email already exists")

    logger.info(f"Hospital {mask_id(new_id)} created by {mask_id(hospital_id)}")
    hospital = await hospital_db.find_by_id(new_id)

    return {
        "success": True,
        "message": "Hospital created successfully",
        "data": convert_objectid(hospital),
    }


@router.get("")
async def list_hospitals(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    hospitals, total = await hospital_db.list_page(page, limit)

    return {
        "success": True,
        "data": {
            "hospitals": convert_objectid(hospitals),
            "totalPages": math.ceil(total / limit),
            "currentPage": page,
            "total": total,
        },
    }


@router.get("/{hospital_id}")
async def get_hospital(
    hospital_id: str,
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    hospital = await hospital_db.find_by_id(hospital_id)
    if not hospital:
        raise NotFoundError("Hospital not found")

    return {"success": True, "data": convert_objectid(hospital)}


@router.put("/{hospital_id}")
async def update_hospital(
    hospital_id: str,
    update_data: HospitalUpdate,
    current_id: str = Depends(get_current_hospital_id),
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    update_fields = update_data.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    if not update_fields:
        raise InputValidationError("No fields to update")

    hospital = await hospital_db.update_hospital(hospital_id, update_fields)
    if not hospital:
        raise NotFoundError("Hospital not found")

    logger.info(f"Hospital {mask_id(hospital_id)} updated by {mask_id(current_id)}")
    return {
        "success": True,
        "message": "Hospital updated successfully",
        "data": convert_objectid(hospital),
    }


@router.delete("/{hospital_id}")
async def delete_hospital(
    hospital_id: str,
    current_id: str = Depends(get_current_hospital_id),
    hospital_db: AsyncHospitalRecord = Depends(get_hospital_db)
):
    if not await hospital_db.soft_delete(hospital_id):
        raise NotFoundError("Hospital not found")

    logger.info(f"Hospital {mask_id(hospital_id)} deactivated by {mask_id(current_id)}")
    return {"success": True, "message": "Hospital deleted successfully"}
