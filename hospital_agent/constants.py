from enum import Enum


class AppointmentType(str, Enum):
    CONSULTATION = "consultation"
    SURGERY = "surgery"
    CHECKUP = "checkup"
    EMERGENCY = "emergency"
    FOLLOW_UP = "follow-up"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class Availability(str, Enum):
    ALWAYS = "24/7"
    BUSINESS_HOURS = "business-hours"
    LIMITED = "limited"


class CallType(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class CallLogStatus(str, Enum):
    COMPLETED = "completed"
    MISSED = "missed"
    REJECTED = "rejected"
    FAILED = "failed"
    IN_PROGRESS = "in-progress"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class CallOutcome(str, Enum):
    RESERVATION_MADE = "reservation_made"
    RESERVATION_RESCHEDULED = "reservation_rescheduled"
    NO_ACTION = "no_action"
    ESCALATED = "escalated"


class DateFilter(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this-week"
    THIS_MONTH = "this-month"
    CUSTOM = "custom"
    ALL = "all"


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    TOOL_ROUND = "tool_round"
    COMPLETE = "complete"
    ABANDONED = "abandoned"
    FAILED = "failed"


APPOINTMENT_TYPES = [t.value for t in AppointmentType]

DEFAULT_CUSTOMER_PHONE = "unknown"
