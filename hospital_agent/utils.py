import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from dateutil import parser as dateutil_parser
from loguru import logger

from hospital_agent.constants import DateFilter

DateRange = Tuple[datetime, datetime]


def convert_objectid(doc: Union[Dict, List, Any]) -> Union[Dict, List, Any]:
    """Recursively make a Mongo document JSON-friendly (ObjectId and datetime to str)."""
    if doc is None:
        return doc

    if isinstance(doc, ObjectId):
        return str(doc)

    if isinstance(doc, datetime):
        return doc.isoformat()

    if isinstance(doc, list):
        return [convert_objectid(item) for item in doc]

    if isinstance(doc, dict):
        return {key: convert_objectid(value) for key, value in doc.items()}

    return doc


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def mask_phone(phone: Optional[str]) -> str:
    if not phone:
        return "unknown"
    digits = "".join(c for c in phone if c.isdigit())
    return f"...{digits[-4:]}" if len(digits) >= 4 else "***"


def mask_id(value: Any) -> str:
    text = str(value or "")
    return f"{text[:6]}..." if len(text) > 6 else text


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-ish date string; returns None when it cannot be parsed."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return dateutil_parser.parse(text)
    except (ValueError, OverflowError, TypeError) as e:
        logger.debug(f"Could not parse date '{text}': {e}")
        return None


def parse_reservation_date(value: Any) -> Optional[datetime]:
    """Reservation dates without an offset are stored as UTC midnight of that day."""
    parsed = parse_date(value)
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999000)


def _as_local_naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


def get_date_range(
    filter_type: str,
    custom_start: Optional[str] = None,
    custom_end: Optional[str] = None,
    now: Optional[datetime] = None
) -> Optional[DateRange]:
    """
    Compute a [start, end] window in server-local time.

    Returns None when a custom range was requested but a bound is missing or
    unparseable. Unknown filter types span the epoch to the end of today.
    """
    now = _as_local_naive(now) if now else datetime.now()
    today_start = _start_of_day(now)
    today_end = _end_of_day(now)

    if filter_type == DateFilter.TODAY.value:
        start, end = today_start, today_end

    elif filter_type == DateFilter.THIS_WEEK.value:
        start = today_start - timedelta(days=now.weekday())
        end = _end_of_day(start + timedelta(days=6))

    elif filter_type == DateFilter.THIS_MONTH.value:
        start = today_start.replace(day=1)
        last_day = calendar.monthrange(now.year, now.month)[1]
        end = today_end.replace(day=last_day)

    elif filter_type == DateFilter.CUSTOM.value:
        if not custom_start or not custom_end:
            return None
        start = parse_date(custom_start)
        end = parse_date(custom_end)
        if start is None or end is None:
            return None
        start = _as_local_naive(start)
        end = _end_of_day(_as_local_naive(end))

    else:
        start, end = datetime(1970, 1, 1), today_end

    return start.astimezone(), end.astimezone()


def resolve_date_range(
    filter_type: Optional[str],
    custom_start: Optional[str] = None,
    custom_end: Optional[str] = None,
    now: Optional[datetime] = None
) -> Optional[DateRange]:
    """None means no date filter; invalid custom ranges fall back to today."""
    if not filter_type or filter_type == DateFilter.ALL.value:
        return None

    date_range = get_date_range(filter_type, custom_start, custom_end, now=now)
    if date_range is None:
        logger.debug(f"Invalid custom date range ({custom_start!r}, {custom_end!r}), using today")
        date_range = get_date_range(DateFilter.TODAY.value, now=now)
    return date_range


def date_range_query(field: str, date_range: Optional[DateRange]) -> dict:
    if date_range is None:
        return {}
    start, end = date_range
    return {field: {"$gte": start, "$lte": end}}
