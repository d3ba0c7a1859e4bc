"""
Tests for ToolDispatcher - argument parsing, required-field checks and store error containment.
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from hospital_agent.exceptions import InputValidationError, NotFoundError
from hospital_agent.tools import TOOL_DEFINITIONS, ToolDispatcher


@pytest.fixture
def hospital_db():
    db = MagicMock()
    db.list_active = AsyncMock(return_value=[{"_id": ObjectId(), "hospital_name": "City General Hospital"}])
    db.find_nearby = AsyncMock(return_value=[])
    db.find_by_location = AsyncMock(return_value=[])
    db.find_by_specialty = AsyncMock(return_value=[])
    return db


@pytest.fixture
def reservation_db():
    db = MagicMock()
    db.create_reservation = AsyncMock(return_value={
        "success": True,
        "message": "Reservation confirmed",
        "reservationId": "abc",
    })
    return db


@pytest.fixture
def dispatcher(hospital_db, reservation_db):
    return ToolDispatcher(hospital_db, reservation_db, caller_number="+15551234567")


def booking_args(**overrides):
    args = {
        "customerName": "Jane Doe",
        "hospitalName": "City General Hospital",
        "appointmentType": "consultation",
        "reservationDate": "2099-01-15",
        "timeSlot": "10:00 AM",
    }
    args.update(overrides)
    return args


class TestToolDefinitions:

    def test_five_tools(self):
        names = {tool["function"]["name"] for tool in TOOL_DEFINITIONS}
        assert names == {
            "get_all_hospitals",
            "get_nearby_hospitals",
            "get_hospitals_by_location",
            "get_hospitals_by_specialty",
            "create_reservation",
        }

    def test_create_reservation_required_fields(self):
        create = next(t for t in TOOL_DEFINITIONS if t["function"]["name"] == "create_reservation")
        assert create["function"]["parameters"]["required"] == [
            "customerName", "hospitalName", "appointmentType", "reservationDate", "timeSlot"
        ]


class TestDispatch:
    """Test dispatch() routing and result serialization."""

    @pytest.mark.asyncio
    async def test_result_is_json_with_string_ids(self, dispatcher):
        result = json.loads(await dispatcher.dispatch("get_all_hospitals", "{}"))

        assert isinstance(result, list)
        assert isinstance(result[0]["_id"], str)

    @pytest.mark.asyncio
    async def test_routes_nearby_arguments(self, dispatcher, hospital_db):
        await dispatcher.dispatch(
            "get_nearby_hospitals",
            json.dumps({"latitude": 42.36, "longitude": -71.06, "maxDistance": 3000, "limit": 3}),
        )

        hospital_db.find_nearby.assert_awaited_once_with(-71.06, 42.36, 3000, 3)

    @pytest.mark.asyncio
    async def test_accepts_dict_arguments(self, dispatcher, hospital_db):
        await dispatcher.dispatch("get_hospitals_by_location", {"city": "Boston"})

        hospital_db.find_by_location.assert_awaited_once_with("Boston", None, None)

    @pytest.mark.asyncio
    async def test_unknown_tool(self, dispatcher):
        result = json.loads(await dispatcher.dispatch("delete_everything", "{}"))

        assert result["success"] is False
        assert result["error"] == "Unknown function"

    @pytest.mark.asyncio
    async def test_malformed_json(self, dispatcher, hospital_db):
        result = json.loads(await dispatcher.dispatch("get_hospitals_by_location", "{city: Boston"))

        assert result["success"] is False
        assert result["error"] == "Invalid arguments"
        hospital_db.find_by_location.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_required_skips_store(self, dispatcher, hospital_db):
        result = json.loads(await dispatcher.dispatch("get_nearby_hospitals", {"latitude": 42.36}))

        assert result == {"success": False, "error": "Validation failed", "errors": ["longitude is required"]}
        hospital_db.find_nearby.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_errors_never_propagate(self, dispatcher, hospital_db):
        hospital_db.find_by_location.side_effect = InputValidationError(
            "At least one location parameter (city, state, or zipCode) is required"
        )

        result = json.loads(await dispatcher.dispatch("get_hospitals_by_location", "{}"))

        assert result["success"] is False
        assert "At least one location parameter" in result["message"]


class TestCreateReservationTool:

    @pytest.mark.asyncio
    async def test_defaults_phone_to_caller_and_passes_key(self, dispatcher, reservation_db):
        result = json.loads(await dispatcher.dispatch(
            "create_reservation", json.dumps(booking_args()), idempotency_key="CA1:call_9"
        ))

        assert result["success"] is True
        kwargs = reservation_db.create_reservation.call_args.kwargs
        assert kwargs["customer_phone"] == "+15551234567"
        assert kwargs["idempotency_key"] == "CA1:call_9"
        assert kwargs["hospital_name"] == "City General Hospital"

    @pytest.mark.asyncio
    async def test_explicit_phone_wins(self, dispatcher, reservation_db):
        await dispatcher.dispatch("create_reservation", booking_args(customerPhone="+15550000000"))

        assert reservation_db.create_reservation.call_args.kwargs["customer_phone"] == "+15550000000"

    @pytest.mark.asyncio
    async def test_missing_fields(self, dispatcher, reservation_db):
        args = booking_args()
        del args["timeSlot"]

        result = json.loads(await dispatcher.dispatch("create_reservation", args))

        assert result["error"] == "Validation failed"
        assert result["errors"] == ["timeSlot is required"]
        reservation_db.create_reservation.assert_not_called()

    @pytest.mark.asyncio
    async def test_past_date_rejected(self, dispatcher, reservation_db):
        result = json.loads(await dispatcher.dispatch(
            "create_reservation", booking_args(reservationDate="2001-01-01")
        ))

        assert result["errors"] == ["Reservation date cannot be in the past"]
        reservation_db.create_reservation.assert_not_called()

    @pytest.mark.asyncio
    async def test_nonexistent_hospital(self, dispatcher, reservation_db):
        reservation_db.create_reservation.side_effect = NotFoundError('Hospital "Nonexistent Hospital" not found')

        result = json.loads(await dispatcher.dispatch(
            "create_reservation", booking_args(hospitalName="Nonexistent Hospital")
        ))

        assert result["success"] is False
        assert result["error"] == "Failed to create reservation"
        assert "not found" in result["message"]
