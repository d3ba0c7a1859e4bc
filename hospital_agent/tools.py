"""
Function-calling tools offered to the LLM and the dispatcher that runs them.

Every result goes back into the transcript as a JSON string. Store failures
become {"success": false, ...} payloads so the model can talk about them;
nothing raised by a store escapes dispatch().
"""
import json
import time
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from hospital_agent.constants import APPOINTMENT_TYPES
from hospital_agent.models import AsyncHospitalRecord, AsyncReservationRecord
from hospital_agent.utils import convert_objectid, mask_phone
from hospital_agent.validation import validate_reservation_data

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "get_nearby_hospitals",
            "description": (
                "Find hospitals near a specific location using coordinates (latitude and longitude). "
                "Returns hospitals within a specified distance."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "latitude": {"type": "number", "description": "Latitude coordinate of the location"},
                    "longitude": {"type": "number", "description": "Longitude coordinate of the location"},
                    "maxDistance": {
                        "type": "number",
                        "description": "Maximum distance in meters (default: 5000)",
                        "default": 5000,
                    },
                    "limit": {
                        "type": "number",
                        "description": "Maximum number of hospitals to return (default: 5)",
                        "default": 5,
                    },
                },
                "required": ["latitude", "longitude"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_hospitals_by_location",
            "description": (
                "Find hospitals by city, state, or zip code. "
                "Use this when the user provides a city name or zip code."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "city": {"type": "string", "description": "City name"},
                    "state": {"type": "string", "description": "State name or abbreviation"},
                    "zipCode": {"type": "string", "description": "Zip code"},
                },
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_hospitals_by_specialty",
            "description": (
                "Find hospitals that offer a specific medical specialty "
                "(e.g., cardiology, pediatrics, orthopedics). Optionally filter by location."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "specialty": {"type": "string", "description": "Medical specialty to search for"},
                    "latitude": {"type": "number", "description": "Optional latitude for location-based search"},
                    "longitude": {"type": "number", "description": "Optional longitude for location-based search"},
                    "maxDistance": {
                        "type": "number",
                        "description": "Maximum distance in meters (default: 10000)",
                        "default": 10000,
                    },
                },
                "required": ["specialty"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_all_hospitals",
            "description": (
                "Get a list of all available hospitals in the system. Returns hospitals with their "
                "names, contact info, specialties, and ratings."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "number",
                        "description": "Maximum number of hospitals to return (default: 50)",
                        "default": 50,
                    },
                },
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "create_reservation",
            "description": (
                "Create a new hospital appointment reservation for a customer. Collects customer name, "
                "selects hospital, appointment type, and date."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "customerName": {"type": "string", "description": "Full name of the customer/patient"},
                    "customerPhone": {"type": "string", "description": "Phone number of the customer"},
                    "hospitalName": {"type": "string", "description": "Name of the hospital"},
                    "appointmentType": {
                        "type": "string",
                        "enum": APPOINTMENT_TYPES,
                        "description": "Type of appointment",
                    },
                    "reservationDate": {
                        "type": "string",
                        "description": "Date of the appointment (ISO format: YYYY-MM-DD)",
                    },
                    "timeSlot": {"type": "string", "description": "Time slot for the appointment (e.g., 09:00 AM)"},
                    "reason": {"type": "string", "description": "Reason for the appointment"},
                },
                "required": ["customerName", "hospitalName", "appointmentType", "reservationDate", "timeSlot"],
            },
        },
    },
]

TOOLS_BY_NAME = {tool["function"]["name"]: tool["function"] for tool in TOOL_DEFINITIONS}


def to_json(result: Any) -> str:
    return json.dumps(convert_objectid(result), default=str)


def missing_required(name: str, arguments: Dict[str, Any]) -> List[str]:
    required = TOOLS_BY_NAME[name]["parameters"].get("required", [])
    missing = []
    for field in required:
        value = arguments.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(f"{field} is required")
    return missing


class ToolDispatcher:
    """Runs one named tool call against the directory and reservation stores."""

    def __init__(
        self,
        hospital_db: AsyncHospitalRecord,
        reservation_db: AsyncReservationRecord,
        caller_number: Optional[str] = None
    ):
        self.hospital_db = hospital_db
        self.reservation_db = reservation_db
        self.caller_number = caller_number
        self._handlers = {
            "get_all_hospitals": self._get_all_hospitals,
            "get_nearby_hospitals": self._get_nearby_hospitals,
            "get_hospitals_by_location": self._get_hospitals_by_location,
            "get_hospitals_by_specialty": self._get_hospitals_by_specialty,
            "create_reservation": self._create_reservation,
        }

    async def dispatch(
        self,
        name: str,
        arguments: Union[str, Dict[str, Any], None],
        idempotency_key: Optional[str] = None
    ) -> str:
        start_time = time.time()

        if name not in self._handlers:
            logger.warning(f"Unknown tool requested: {name}")
            return to_json({"success": False, "error": "Unknown function", "message": f"No tool named {name}"})

        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                logger.warning(f"Malformed arguments for {name}: {e}")
                return to_json({"success": False, "error": "Invalid arguments", "message": str(e)})
        arguments = arguments or {}
        if not isinstance(arguments, dict):
            return to_json({"success": False, "error": "Invalid arguments", "message": "Arguments must be an object"})

        errors = missing_required(name, arguments)
        if errors:
            logger.info(f"Tool {name} rejected: {errors}")
            return to_json({"success": False, "error": "Validation failed", "errors": errors})

        logger.info(f"🔧 Calling function: {name}")
        try:
            result = await self._handlers[name](arguments, idempotency_key)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            result = {"success": False, "error": f"Failed to run {name}", "message": str(e)}

        latency = (time.time() - start_time) * 1000
        logger.debug(f"Tool {name} latency: {latency:.2f}ms")
        return to_json(result)

    async def _get_all_hospitals(self, args: dict, _key: Optional[str]):
        return await self.hospital_db.list_active(args.get("limit") or 50)

    async def _get_nearby_hospitals(self, args: dict, _key: Optional[str]):
        return await self.hospital_db.find_nearby(
            args.get("longitude"),
            args.get("latitude"),
            args.get("maxDistance"),
            args.get("limit"),
        )

    async def _get_hospitals_by_location(self, args: dict, _key: Optional[str]):
        return await self.hospital_db.find_by_location(
            args.get("city"), args.get("state"), args.get("zipCode")
        )

    async def _get_hospitals_by_specialty(self, args: dict, _key: Optional[str]):
        return await self.hospital_db.find_by_specialty(
            args.get("specialty"),
            args.get("longitude"),
            args.get("latitude"),
            args.get("maxDistance"),
        )

    async def _create_reservation(self, args: dict, idempotency_key: Optional[str]):
        is_valid, errors = validate_reservation_data(args)
        if not is_valid:
            return {"success": False, "error": "Validation failed", "errors": errors}

        phone = args.get("customerPhone") or self.caller_number
        logger.info(f"Creating reservation for caller {mask_phone(phone)}")
        try:
            return await self.reservation_db.create_reservation(
                customer_name=args["customerName"].strip(),
                customer_phone=phone,
                hospital_name=args["hospitalName"].strip(),
                appointment_type=args["appointmentType"],
                reservation_date=args["reservationDate"],
                time_slot=args["timeSlot"],
                reason=args.get("reason"),
                idempotency_key=idempotency_key,
            )
        except Exception as e:
            logger.error(f"Create reservation error: {e}")
            return {"success": False, "error": "Failed to create reservation", "message": str(e)}
