"""Dashboard reads for reservations, call logs and customers. All routes need a hospital token."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger

from hospital_agent.constants import DateFilter
from hospital_agent.dependencies import get_call_log_db, get_current_hospital_id, get_reservation_db
from hospital_agent.exceptions import NotFoundError
from hospital_agent.models import AsyncCallLogRecord, AsyncReservationRecord
from hospital_agent.schemas import RescheduleRequest
from hospital_agent.utils import convert_objectid, mask_id, resolve_date_range

router = APIRouter()


class DateFilterParams:
    def __init__(
        self,
        date_filter: str = Query(DateFilter.ALL.value, alias="dateFilter"),
        start_date: Optional[str] = Query(None, alias="startDate"),
        end_date: Optional[str] = Query(None, alias="endDate"),
    ):
        self.date_range = resolve_date_range(date_filter, start_date, end_date)


# Reservations

@router.get("/reservations")
async def list_reservations(
    status: Optional[str] = None,
    hospital_id: Optional[str] = Query(None, alias="hospitalId"),
    dates: DateFilterParams = Depends(),
    current_id: str = Depends(get_current_hospital_id),
    reservation_db: AsyncReservationRecord = Depends(get_reservation_db)
):
    reservations = await reservation_db.find_reservations(
        hospital_id or current_id, dates.date_range, status
    )
    logger.info(f"Found {len(reservations)} reservations for hospital {mask_id(hospital_id or current_id)}")

    return {
        "success": True,
        "message": "Reservations fetched successfully",
        "data": {"count": len(reservations), "reservations": convert_objectid(reservations)},
    }


@router.get("/reservations/{reservation_id}")
async def get_reservation(
    reservation_id: str,
    current_id: str = Depends(get_current_hospital_id),
    reservation_db: AsyncReservationRecord = Depends(get_reservation_db)
):
    reservation = await reservation_db.find_reservation_details(reservation_id)
    if not reservation:
        raise NotFoundError("Reservation not found")

    return {
        "success": True,
        "message": "Reservation fetched successfully",
        "data": convert_objectid(reservation),
    }


@router.post("/reservations/{reservation_id}/cancel")
async def cancel_reservation(
    reservation_id: str,
    current_id: str = Depends(get_current_hospital_id),
    reservation_db: AsyncReservationRecord = Depends(get_reservation_db)
):
    result = await reservation_db.cancel_reservation(reservation_id)
    return {"success": True, "message": result["message"], "data": result}


@router.post("/reservations/{reservation_id}/reschedule")
async def reschedule_reservation(
    reservation_id: str,
    body: RescheduleRequest,
    current_id: str = Depends(get_current_hospital_id),
    reservation_db: AsyncReservationRecord = Depends(get_reservation_db)
):
    result = await reservation_db.reschedule_reservation(reservation_id, body.new_date, body.new_time_slot)
    return {"success": True, "message": result["message"], "data": result}


# Call logs

@router.get("/call-logs")
async def list_call_logs(
    call_status: Optional[str] = Query(None, alias="callStatus"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    dates: DateFilterParams = Depends(),
    current_id: str = Depends(get_current_hospital_id),
    call_log_db: AsyncCallLogRecord = Depends(get_call_log_db)
):
    call_logs = await call_log_db.find_call_logs(
        dates.date_range, call_status=call_status, customer_id=customer_id
    )

    return {
        "success": True,
        "message": "Call logs fetched successfully",
        "data": {"count": len(call_logs), "callLogs": convert_objectid(call_logs)},
    }


@router.get("/call-logs/stats/overview")
async def call_log_stats(
    dates: DateFilterParams = Depends(),
    current_id: str = Depends(get_current_hospital_id),
    call_log_db: AsyncCallLogRecord = Depends(get_call_log_db)
):
    stats = await call_log_db.get_stats(dates.date_range)

    return {
        "success": True,
        "message": "Call logs statistics fetched successfully",
        "data": stats,
    }


@router.get("/call-logs/{call_log_id}")
async def get_call_log(
    call_log_id: str,
    current_id: str = Depends(get_current_hospital_id),
    call_log_db: AsyncCallLogRecord = Depends(get_call_log_db)
):
    call_log = await call_log_db.find_call_log(call_log_id)
    if not call_log:
        raise NotFoundError("Call log not found")

    return {
        "success": True,
        "message": "Call log fetched successfully",
        "data": convert_objectid(call_log),
    }


@router.get("/me/call-logs")
async def list_my_call_logs(
    call_status: Optional[str] = Query(None, alias="callStatus"),
    dates: DateFilterParams = Depends(),
    current_id: str = Depends(get_current_hospital_id),
    call_log_db: AsyncCallLogRecord = Depends(get_call_log_db)
):
    call_logs = await call_log_db.find_call_logs(
        dates.date_range, call_status=call_status, agent_id=current_id
    )

    return {
        "success": True,
        "message": "Current user call logs fetched successfully",
        "data": {"count": len(call_logs), "callLogs": convert_objectid(call_logs)},
    }


# Customers

@router.get("/customers")
async def list_customers(
    current_id: str = Depends(get_current_hospital_id),
    reservation_db: AsyncReservationRecord = Depends(get_reservation_db)
):
    customers = await reservation_db.summarize_customers(current_id)

    return {
        "success": True,
        "message": "Customers fetched successfully",
        "data": {"count": len(customers), "customers": convert_objectid(customers)},
    }
