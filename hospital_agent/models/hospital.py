import re
from datetime import datetime, timezone
from typing import Optional, List, Tuple, TYPE_CHECKING
from pymongo import ReturnDocument
from loguru import logger

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorClient

from hospital_agent.database import get_mongo_client, MONGO_DB_NAME
from hospital_agent.exceptions import InputValidationError
from hospital_agent.utils import to_object_id
from hospital_agent.validation import validate_coordinates

# Fields exposed by directory searches (never the password hash)
PUBLIC_PROJECTION = {
    "hospital_name": 1,
    "phone": 1,
    "location": 1,
    "specialties": 1,
    "availability": 1,
    "rating": 1,
}

NEARBY_DEFAULT_MAX_DISTANCE = 5000
SPECIALTY_DEFAULT_MAX_DISTANCE = 10000
LOCATION_SEARCH_LIMIT = 20
SPECIALTY_SEARCH_LIMIT = 10
LIST_DEFAULT_LIMIT = 50


def _contains(value: str) -> dict:
    return {"$regex": re.escape(value.strip()), "$options": "i"}


class AsyncHospitalRecord:
    """Hospital directory: geo and text searches over active hospitals, plus CRUD."""

    def __init__(self, db_client: "AsyncIOMotorClient"):
        self.client = db_client
        self.db = db_client[MONGO_DB_NAME]
        self.hospitals = self.db.hospitals

    async def _ensure_indexes(self):
        try:
            await self.hospitals.create_index([("location", "2dsphere")])
            await self.hospitals.create_index("email", unique=True)
        except Exception as e:
            logger.warning(f"Index creation warning: {e}")

    def _geo_near_pipeline(
        self,
        longitude: float,
        latitude: float,
        max_distance: float,
        limit: int,
        query: dict
    ) -> list:
        return [
            {
                "$geoNear": {
                    "near": {"type": "Point", "coordinates": [longitude, latitude]},
                    "distanceField": "distance",
                    "maxDistance": max_distance,
                    "query": query,
                    "spherical": True,
                }
            },
            {"$limit": limit},
            {"$project": {**PUBLIC_PROJECTION, "distance": 1}},
        ]

    async def find_nearby(
        self,
        longitude,
        latitude,
        max_distance: Optional[float] = None,
        limit: Optional[int] = None
    ) -> List[dict]:
        """Active hospitals within max_distance metres, nearest first."""
        lng, lat = validate_coordinates(longitude, latitude)
        max_distance = max_distance or NEARBY_DEFAULT_MAX_DISTANCE
        limit = int(limit or 10)
        if limit < 1:
            raise InputValidationError("limit must be a positive integer")

        try:
            pipeline = self._geo_near_pipeline(lng, lat, max_distance, limit, {"is_active": True})
            return await self.hospitals.aggregate(pipeline).to_list(length=None)
        except Exception as e:
            logger.error(f"Get nearby hospitals error: {e}")
            raise

    async def find_by_location(
        self,
        city: Optional[str] = None,
        state: Optional[str] = None,
        zip_code: Optional[str] = None
    ) -> List[dict]:
        filters = {
            "location.city": city,
            "location.state": state,
            "location.zip_code": zip_code,
        }
        filters = {field: value for field, value in filters.items() if value and str(value).strip()}
        if not filters:
            raise InputValidationError(
                "At least one location parameter (city, state, or zipCode) is required"
            )

        query = {"is_active": True}
        for field, value in filters.items():
            query[field] = _contains(str(value))

        try:
            cursor = self.hospitals.find(query, PUBLIC_PROJECTION).limit(LOCATION_SEARCH_LIMIT)
            hospitals = await cursor.to_list(length=None)
            logger.debug(f"Hospitals by location {list(filters)}: {len(hospitals)} found")
            return hospitals
        except Exception as e:
            logger.error(f"Get hospitals by location error: {e}")
            raise

    async def find_by_specialty(
        self,
        specialty: str,
        longitude=None,
        latitude=None,
        max_distance: Optional[float] = None
    ) -> List[dict]:
        if not specialty or not str(specialty).strip():
            raise InputValidationError("Specialty is required")

        query = {"is_active": True, "specialties": _contains(str(specialty))}

        try:
            if longitude is not None and latitude is not None:
                lng, lat = validate_coordinates(longitude, latitude)
                pipeline = self._geo_near_pipeline(
                    lng, lat,
                    max_distance or SPECIALTY_DEFAULT_MAX_DISTANCE,
                    SPECIALTY_SEARCH_LIMIT,
                    query
                )
                return await self.hospitals.aggregate(pipeline).to_list(length=None)

            cursor = self.hospitals.find(query, PUBLIC_PROJECTION).limit(SPECIALTY_SEARCH_LIMIT)
            return await cursor.to_list(length=None)
        except InputValidationError:
            raise
        except Exception as e:
            logger.error(f"Get hospitals by specialty error: {e}")
            raise

    async def list_active(self, limit: Optional[int] = None) -> List[dict]:
        try:
            cursor = self.hospitals.find({"is_active": True}, PUBLIC_PROJECTION).limit(int(limit or LIST_DEFAULT_LIMIT))
            return await cursor.to_list(length=None)
        except Exception as e:
            logger.error(f"Get all hospitals error: {e}")
            raise

    async def list_page(self, page: int = 1, limit: int = 20) -> Tuple[List[dict], int]:
        page = max(int(page), 1)
        limit = max(int(limit), 1)
        query = {"is_active": True}
        cursor = (
            self.hospitals.find(query, {"hashed_password": 0})
            .sort("created_at", -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        hospitals = await cursor.to_list(length=None)
        total = await self.hospitals.count_documents(query)
        return hospitals, total

    async def find_by_id(self, hospital_id: str) -> Optional[dict]:
        oid = to_object_id(hospital_id)
        if oid is None:
            return None
        return await self.hospitals.find_one({"_id": oid}, {"hashed_password": 0})

    async def find_by_email(self, email: str) -> Optional[dict]:
        return await self.hospitals.find_one({"email": email.strip().lower()})

    async def find_active_by_name(self, hospital_name: str) -> Optional[dict]:
        return await self.hospitals.find_one({
            "hospital_name": _contains(hospital_name),
            "is_active": True,
        })

    async def add_hospital(self, hospital_data: dict) -> str:
        await self._ensure_indexes()
        now = datetime.now(timezone.utc)

        location = hospital_data.get("location") or {}
        coordinates = location.get("coordinates") or []
        if len(coordinates) != 2:
            raise InputValidationError("Please provide valid longitude and latitude values")
        lng, lat = validate_coordinates(coordinates[0], coordinates[1])

        doc = {
            "specialties": [],
            "departments": [],
            "availability": "business-hours",
            "rating": 0,
            "total_reviews": 0,
            "is_active": True,
            **hospital_data,
            "location": {**location, "type": "Point", "coordinates": [lng, lat]},
            "email": hospital_data["email"].strip().lower(),
            "created_at": now,
            "updated_at": now,
        }

        result = await self.hospitals.insert_one(doc)
        logger.info(f"Hospital created: {result.inserted_id}")
        return str(result.inserted_id)

    async def update_hospital(self, hospital_id: str, update_fields: dict) -> Optional[dict]:
        oid = to_object_id(hospital_id)
        if oid is None:
            return None

        location = update_fields.get("location")
        if location and "coordinates" in location:
            coordinates = location.get("coordinates") or []
            if len(coordinates) != 2:
                raise InputValidationError("Please provide valid longitude and latitude values")
            lng, lat = validate_coordinates(coordinates[0], coordinates[1])
            update_fields["location"] = {**location, "type": "Point", "coordinates": [lng, lat]}

        update_fields["updated_at"] = datetime.now(timezone.utc)
        return await self.hospitals.find_one_and_update(
            {"_id": oid},
            {"$set": update_fields},
            projection={"hashed_password": 0},
            return_document=ReturnDocument.AFTER
        )

    async def soft_delete(self, hospital_id: str) -> bool:
        oid = to_object_id(hospital_id)
        if oid is None:
            return False
        result = await self.hospitals.update_one(
            {"_id": oid},
            {"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc)}}
        )
        return result.matched_count > 0


_hospital_db_instance: Optional[AsyncHospitalRecord] = None


def get_async_hospital_db() -> AsyncHospitalRecord:
    global _hospital_db_instance
    if _hospital_db_instance is None:
        _hospital_db_instance = AsyncHospitalRecord(get_mongo_client())
    return _hospital_db_instance
