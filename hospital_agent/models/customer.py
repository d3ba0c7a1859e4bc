from datetime import datetime, timezone
from typing import Optional, TYPE_CHECKING
from pymongo import ReturnDocument
from loguru import logger

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorClient

from hospital_agent.constants import DEFAULT_CUSTOMER_PHONE
from hospital_agent.database import get_mongo_client, MONGO_DB_NAME
from hospital_agent.utils import mask_phone


def name_key(name: str) -> str:
    return " ".join(name.split()).lower()


class AsyncCustomerRecord:
    def __init__(self, db_client: "AsyncIOMotorClient"):
        self.client = db_client
        self.db = db_client[MONGO_DB_NAME]
        self.customers = self.db.customers

    async def _ensure_indexes(self):
        try:
            await self.customers.create_index("name_key", unique=True)
        except Exception as e:
            logger.warning(f"Index creation warning: {e}")

    async def find_by_name(self, name: str) -> Optional[dict]:
        return await self.customers.find_one({"name_key": name_key(name)})

    async def find_or_create(self, name: str, phone: Optional[str] = None) -> dict:
        """
        Case-insensitive lookup by name, creating the customer when absent.

        The upsert is keyed on the normalized name, so concurrent first bookings
        for the same caller resolve to a single document.
        """
        now = datetime.now(timezone.utc)
        customer = await self.customers.find_one_and_update(
            {"name_key": name_key(name)},
            {
                "$setOnInsert": {
                    "name": name.strip(),
                    "name_key": name_key(name),
                    "phone": phone or DEFAULT_CUSTOMER_PHONE,
                    "created_at": now,
                    "updated_at": now,
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        logger.debug(f"Resolved customer {customer['_id']} (phone {mask_phone(customer.get('phone'))})")
        return customer


_customer_db_instance: Optional[AsyncCustomerRecord] = None


def get_async_customer_db() -> AsyncCustomerRecord:
    global _customer_db_instance
    if _customer_db_instance is None:
        _customer_db_instance = AsyncCustomerRecord(get_mongo_client())
    return _customer_db_instance
