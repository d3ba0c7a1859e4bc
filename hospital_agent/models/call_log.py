from datetime import datetime, timezone
from typing import Optional, List, TYPE_CHECKING
from loguru import logger

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorClient

from hospital_agent.constants import CallLogStatus, CallOutcome
from hospital_agent.database import get_mongo_client, MONGO_DB_NAME
from hospital_agent.utils import DateRange, date_range_query, to_object_id

EMPTY_STATS = {
    "totalCalls": 0,
    "completedCalls": 0,
    "missedCalls": 0,
    "failedCalls": 0,
    "totalDuration": 0,
    "avgDuration": 0,
    "avgQualityScore": 0,
    "reservationsMade": 0,
}


def _count_where(field: str, value: str) -> dict:
    return {"$sum": {"$cond": [{"$eq": [f"${field}", value]}, 1, 0]}}


class AsyncCallLogRecord:
    """Call logs written by the telephony/recording side; read by the dashboard."""

    def __init__(self, db_client: "AsyncIOMotorClient"):
        self.client = db_client
        self.db = db_client[MONGO_DB_NAME]
        self.call_logs = self.db.call_logs

    async def _ensure_indexes(self):
        try:
            await self.call_logs.create_index([("start_time", -1)])
            await self.call_logs.create_index("customer_id")
            await self.call_logs.create_index("agent_id")
        except Exception as e:
            logger.warning(f"Index creation warning: {e}")

    async def add_call_log(self, call_data: dict) -> str:
        now = datetime.now(timezone.utc)
        for ref in ("customer_id", "reservation_id"):
            if isinstance(call_data.get(ref), str):
                call_data[ref] = to_object_id(call_data[ref])

        call_data.update({"created_at": now, "updated_at": now})
        result = await self.call_logs.insert_one(call_data)
        return str(result.inserted_id)

    def _joined(self, query: dict) -> list:
        return [
            {"$match": query},
            {"$lookup": {
                "from": "customers",
                "let": {"ref": "$customer_id"},
                "pipeline": [
                    {"$match": {"$expr": {"$eq": ["$_id", "$$ref"]}}},
                    {"$project": {"name": 1, "phone": 1}},
                ],
                "as": "customer",
            }},
            {"$unwind": {"path": "$customer", "preserveNullAndEmptyArrays": True}},
            {"$lookup": {
                "from": "reservations",
                "localField": "reservation_id",
                "foreignField": "_id",
                "as": "reservation",
            }},
            {"$unwind": {"path": "$reservation", "preserveNullAndEmptyArrays": True}},
        ]

    async def find_call_logs(
        self,
        date_range: Optional[DateRange] = None,
        call_status: Optional[str] = None,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None
    ) -> List[dict]:
        query = date_range_query("start_time", date_range)
        if customer_id:
            query["customer_id"] = to_object_id(customer_id)
        if agent_id:
            query["agent_id"] = agent_id
        if call_status:
            query["call_status"] = call_status

        pipeline = [*self._joined(query), {"$sort": {"start_time": -1}}]
        return await self.call_logs.aggregate(pipeline).to_list(length=None)

    async def find_call_log(self, call_log_id: str) -> Optional[dict]:
        oid = to_object_id(call_log_id)
        if oid is None:
            return None
        results = await self.call_logs.aggregate(self._joined({"_id": oid})).to_list(length=1)
        return results[0] if results else None

    async def get_stats(self, date_range: Optional[DateRange] = None) -> dict:
        pipeline = [
            {"$match": date_range_query("start_time", date_range)},
            {"$group": {
                "_id": None,
                "totalCalls": {"$sum": 1},
                "completedCalls": _count_where("call_status", CallLogStatus.COMPLETED.value),
                "missedCalls": _count_where("call_status", CallLogStatus.MISSED.value),
                "failedCalls": _count_where("call_status", CallLogStatus.FAILED.value),
                "totalDuration": {"$sum": "$duration"},
                "avgDuration": {"$avg": "$duration"},
                "avgQualityScore": {"$avg": "$quality_score"},
                "reservationsMade": _count_where("call_outcome", CallOutcome.RESERVATION_MADE.value),
            }},
            {"$project": {"_id": 0}},
        ]
        results = await self.call_logs.aggregate(pipeline).to_list(length=1)
        if not results:
            return dict(EMPTY_STATS)

        # $avg yields null when no document carries the field
        stats = {**EMPTY_STATS, **results[0]}
        return {key: (0 if value is None else value) for key, value in stats.items()}


_call_log_db_instance: Optional[AsyncCallLogRecord] = None


def get_async_call_log_db() -> AsyncCallLogRecord:
    global _call_log_db_instance
    if _call_log_db_instance is None:
        _call_log_db_instance = AsyncCallLogRecord(get_mongo_client())
    return _call_log_db_instance
