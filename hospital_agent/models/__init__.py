"""Database models package"""
from hospital_agent.models.hospital import AsyncHospitalRecord, get_async_hospital_db
from hospital_agent.models.customer import AsyncCustomerRecord, get_async_customer_db
from hospital_agent.models.reservation import AsyncReservationRecord, get_async_reservation_db
from hospital_agent.models.call_log import AsyncCallLogRecord, get_async_call_log_db


async def ensure_all_indexes() -> None:
    await get_async_hospital_db()._ensure_indexes()
    await get_async_customer_db()._ensure_indexes()
    await get_async_reservation_db()._ensure_indexes()
    await get_async_call_log_db()._ensure_indexes()


__all__ = [
    'AsyncHospitalRecord',
    'get_async_hospital_db',
    'AsyncCustomerRecord',
    'get_async_customer_db',
    'AsyncReservationRecord',
    'get_async_reservation_db',
    'AsyncCallLogRecord',
    'get_async_call_log_db',
    'ensure_all_indexes',
]
