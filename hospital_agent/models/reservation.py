from datetime import datetime, timezone
from typing import Optional, List, TYPE_CHECKING
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from loguru import logger

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorClient

from hospital_agent.constants import ReservationStatus
from hospital_agent.database import get_mongo_client, MONGO_DB_NAME
from hospital_agent.exceptions import InputValidationError, NotFoundError
from hospital_agent.models.customer import AsyncCustomerRecord, get_async_customer_db
from hospital_agent.models.hospital import AsyncHospitalRecord, get_async_hospital_db
from hospital_agent.utils import DateRange, date_range_query, parse_reservation_date, to_object_id


def _lookup_one(collection: str, local_field: str, as_field: str, project: Optional[dict] = None) -> list:
    lookup = {"from": collection, "localField": local_field, "foreignField": "_id", "as": as_field}
    if project:
        lookup = {
            "from": collection,
            "let": {"ref": f"${local_field}"},
            "pipeline": [
                {"$match": {"$expr": {"$eq": ["$_id", "$$ref"]}}},
                {"$project": project},
            ],
            "as": as_field,
        }
    return [
        {"$lookup": lookup},
        {"$unwind": {"path": f"${as_field}", "preserveNullAndEmptyArrays": True}},
    ]


RESERVATION_JOINS = (
    _lookup_one("customers", "customer_id", "customer", {"name": 1, "phone": 1})
    + _lookup_one("hospitals", "hospital_id", "hospital", {"hashed_password": 0})
    + _lookup_one("call_logs", "call_log_id", "call_log")
)


class AsyncReservationRecord:
    def __init__(
        self,
        db_client: "AsyncIOMotorClient",
        hospital_db: Optional[AsyncHospitalRecord] = None,
        customer_db: Optional[AsyncCustomerRecord] = None
    ):
        self.client = db_client
        self.db = db_client[MONGO_DB_NAME]
        self.reservations = self.db.reservations
        self.hospital_db = hospital_db or AsyncHospitalRecord(db_client)
        self.customer_db = customer_db or AsyncCustomerRecord(db_client)

    async def _ensure_indexes(self):
        try:
            await self.reservations.create_index([("hospital_id", 1), ("reservation_date", -1)])
            await self.reservations.create_index("customer_id")
            await self.reservations.create_index("idempotency_key", unique=True, sparse=True)
        except Exception as e:
            logger.warning(f"Index creation warning: {e}")

    @staticmethod
    def _confirmation(
        reservation_id,
        customer_name: str,
        hospital_name: str,
        appointment_type: str,
        reservation_date: str,
        time_slot: str
    ) -> dict:
        return {
            "success": True,
            "message": (
                f"Reservation confirmed for {customer_name} at {hospital_name}: "
                f"{appointment_type} on {reservation_date} at {time_slot}"
            ),
            "reservationId": str(reservation_id),
            "details": {
                "customerName": customer_name,
                "hospitalName": hospital_name,
                "appointmentType": appointment_type,
                "reservationDate": reservation_date,
                "timeSlot": time_slot,
            },
        }

    async def create_reservation(
        self,
        customer_name: str,
        customer_phone: Optional[str],
        hospital_name: str,
        appointment_type: str,
        reservation_date: str,
        time_slot: str,
        reason: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        call_log_id: Optional[str] = None
    ) -> dict:
        """
        Book an appointment, status "confirmed".

        The hospital is resolved before anything is written. Without an
        idempotency key every call inserts a new reservation; with one, a
        repeated call returns the reservation written the first time.
        """
        hospital = await self.hospital_db.find_active_by_name(hospital_name)
        if not hospital:
            raise NotFoundError(f'Hospital "{hospital_name}" not found')

        confirmation_args = (
            customer_name, hospital["hospital_name"], appointment_type, reservation_date, time_slot
        )

        if idempotency_key:
            existing = await self.reservations.find_one({"idempotency_key": idempotency_key})
            if existing:
                logger.info(f"Replayed reservation {existing['_id']} for key {idempotency_key}")
                return self._confirmation(existing["_id"], *confirmation_args)

        parsed_date = parse_reservation_date(reservation_date)
        if parsed_date is None:
            raise InputValidationError("Invalid reservation date format")

        customer = await self.customer_db.find_or_create(customer_name, customer_phone)

        now = datetime.now(timezone.utc)
        doc = {
            "customer_id": customer["_id"],
            "hospital_id": hospital["_id"],
            "appointment_type": appointment_type,
            "reservation_date": parsed_date,
            "time_slot": time_slot,
            "reason": reason or "",
            "status": ReservationStatus.CONFIRMED.value,
            "call_log_id": to_object_id(call_log_id) if call_log_id else None,
            "reminder_sent": False,
            "created_at": now,
            "updated_at": now,
        }
        if idempotency_key:
            doc["idempotency_key"] = idempotency_key

        try:
            result = await self.reservations.insert_one(doc)
        except DuplicateKeyError:
            # Lost a race against the same tool call
            existing = await self.reservations.find_one({"idempotency_key": idempotency_key})
            return self._confirmation(existing["_id"], *confirmation_args)

        logger.info(f"Reservation created: {result.inserted_id}")
        return self._confirmation(result.inserted_id, *confirmation_args)

    async def cancel_reservation(self, reservation_id: str) -> dict:
        oid = to_object_id(reservation_id)
        reservation = None
        if oid is not None:
            reservation = await self.reservations.find_one_and_update(
                {"_id": oid},
                {"$set": {
                    "status": ReservationStatus.CANCELLED.value,
                    "updated_at": datetime.now(timezone.utc),
                }},
                return_document=ReturnDocument.AFTER
            )
        if not reservation:
            raise NotFoundError("Reservation not found")

        logger.info(f"Reservation cancelled: {oid}")
        return {
            "success": True,
            "message": "Reservation cancelled successfully",
            "reservationId": str(reservation["_id"]),
        }

    async def reschedule_reservation(self, reservation_id: str, new_date: str, new_time_slot: str) -> dict:
        parsed_date = parse_reservation_date(new_date)
        if parsed_date is None:
            raise InputValidationError("Invalid reservation date format")
        if not new_time_slot or not new_time_slot.strip():
            raise InputValidationError("Time slot is required")

        oid = to_object_id(reservation_id)
        reservation = None
        if oid is not None:
            reservation = await self.reservations.find_one_and_update(
                {"_id": oid},
                {"$set": {
                    "reservation_date": parsed_date,
                    "time_slot": new_time_slot,
                    "status": ReservationStatus.CONFIRMED.value,
                    "updated_at": datetime.now(timezone.utc),
                }},
                return_document=ReturnDocument.AFTER
            )
        if not reservation:
            raise NotFoundError("Reservation not found")

        logger.info(f"Reservation rescheduled: {oid}")
        return {
            "success": True,
            "message": f"Reservation rescheduled to {new_date} at {new_time_slot}",
            "reservationId": str(reservation["_id"]),
            "newDate": new_date,
            "newTimeSlot": new_time_slot,
        }

    async def find_reservations(
        self,
        hospital_id: str,
        date_range: Optional[DateRange] = None,
        status: Optional[str] = None
    ) -> List[dict]:
        query = {"hospital_id": to_object_id(hospital_id)}
        query.update(date_range_query("reservation_date", date_range))
        if status:
            query["status"] = status

        pipeline = [{"$match": query}, *RESERVATION_JOINS, {"$sort": {"reservation_date": -1}}]
        return await self.reservations.aggregate(pipeline).to_list(length=None)

    async def find_reservation_details(self, reservation_id: str) -> Optional[dict]:
        oid = to_object_id(reservation_id)
        if oid is None:
            return None
        pipeline = [{"$match": {"_id": oid}}, *RESERVATION_JOINS, {"$limit": 1}]
        results = await self.reservations.aggregate(pipeline).to_list(length=1)
        return results[0] if results else None

    async def find_customer_reservations(self, customer_name: str) -> List[dict]:
        customer = await self.customer_db.find_by_name(customer_name)
        if not customer:
            return []
        pipeline = [
            {"$match": {"customer_id": customer["_id"]}},
            *_lookup_one("hospitals", "hospital_id", "hospital", {"hospital_name": 1, "phone": 1, "location": 1}),
            {"$sort": {"reservation_date": -1}},
        ]
        return await self.reservations.aggregate(pipeline).to_list(length=None)

    async def summarize_customers(self, hospital_id: str) -> List[dict]:
        """Customers who booked with this hospital, most recent booking first."""
        pipeline = [
            {"$match": {"hospital_id": to_object_id(hospital_id)}},
            {"$group": {
                "_id": "$customer_id",
                "totalReservations": {"$sum": 1},
                "lastReservation": {"$max": "$reservation_date"},
            }},
            {"$lookup": {"from": "customers", "localField": "_id", "foreignField": "_id", "as": "customer"}},
            {"$unwind": "$customer"},
            {"$project": {
                "_id": 0,
                "customerId": "$customer._id",
                "name": "$customer.name",
                "phone": "$customer.phone",
                "totalReservations": 1,
                "lastReservation": 1,
            }},
            {"$sort": {"lastReservation": -1}},
        ]
        return await self.reservations.aggregate(pipeline).to_list(length=None)


_reservation_db_instance: Optional[AsyncReservationRecord] = None


def get_async_reservation_db() -> AsyncReservationRecord:
    global _reservation_db_instance
    if _reservation_db_instance is None:
        _reservation_db_instance = AsyncReservationRecord(
            get_mongo_client(),
            hospital_db=get_async_hospital_db(),
            customer_db=get_async_customer_db()
        )
    return _reservation_db_instance
