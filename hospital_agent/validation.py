from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple

from hospital_agent.constants import APPOINTMENT_TYPES
from hospital_agent.exceptions import InputValidationError
from hospital_agent.utils import parse_reservation_date


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_coordinates(longitude: Any, latitude: Any) -> Tuple[float, float]:
    """Coerce a (longitude, latitude) pair to floats, raising on bad input."""
    try:
        lng = float(longitude)
        lat = float(latitude)
    except (TypeError, ValueError):
        raise InputValidationError("Please provide valid longitude and latitude values")

    # NaN fails every comparison, so check it explicitly
    if lng != lng or lat != lat:
        raise InputValidationError("Please provide valid longitude and latitude values")

    if not (-180 <= lng <= 180) or not (-90 <= lat <= 90):
        raise InputValidationError(
            "Longitude must be between -180 and 180 and latitude between -90 and 90"
        )
    return lng, lat


def validate_reservation_data(
    data: Mapping[str, Any],
    today: Optional[datetime] = None
) -> Tuple[bool, List[str]]:
    """Check a create_reservation payload; returns (is_valid, errors)."""
    errors: List[str] = []

    if _blank(data.get("customerName")):
        errors.append("Customer name is required")

    if _blank(data.get("hospitalName")):
        errors.append("Hospital name is required")

    appointment_type = data.get("appointmentType")
    if _blank(appointment_type):
        errors.append("Appointment type is required")
    elif appointment_type not in APPOINTMENT_TYPES:
        errors.append(f"Invalid appointment type. Must be one of: {', '.join(APPOINTMENT_TYPES)}")

    raw_date = data.get("reservationDate")
    if _blank(raw_date):
        errors.append("Reservation date is required")
    else:
        parsed = parse_reservation_date(raw_date)
        if parsed is None:
            errors.append("Invalid reservation date format")
        else:
            today_date = (today or datetime.now()).date()
            if parsed.date() < today_date:
                errors.append("Reservation date cannot be in the past")

    if _blank(data.get("timeSlot")):
        errors.append("Time slot is required")

    return len(errors) == 0, errors
