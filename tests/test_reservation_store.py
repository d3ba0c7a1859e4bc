"""
Tests for AsyncReservationRecord, AsyncCustomerRecord and AsyncCallLogRecord.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from hospital_agent.exceptions import InputValidationError, NotFoundError
from hospital_agent.models.call_log import AsyncCallLogRecord, EMPTY_STATS
from hospital_agent.models.customer import AsyncCustomerRecord, name_key
from hospital_agent.models.reservation import AsyncReservationRecord


@pytest.fixture
def customer():
    return {"_id": ObjectId(), "name": "Jane Doe", "name_key": "jane doe", "phone": "+15550000001"}


@pytest.fixture
def hospital_db(city_general):
    db = MagicMock()
    db.find_active_by_name = AsyncMock(return_value=city_general)
    return db


@pytest.fixture
def customer_db(customer):
    db = MagicMock()
    db.find_or_create = AsyncMock(return_value=customer)
    db.find_by_name = AsyncMock(return_value=customer)
    return db


@pytest.fixture
def reservation_db(mock_db_client, hospital_db, customer_db):
    record = AsyncReservationRecord(mock_db_client, hospital_db=hospital_db, customer_db=customer_db)
    record.reservations.insert_one.return_value.inserted_id = ObjectId()
    return record


JANE = dict(
    customer_name="Jane Doe",
    customer_phone="+15550000001",
    hospital_name="City General Hospital",
    appointment_type="consultation",
    reservation_date="2030-01-15",
    time_slot="10:00 AM",
)


class TestCreateReservation:
    """Test booking through the reservation store."""

    @pytest.mark.asyncio
    async def test_confirmation_names_all_five_values(self, reservation_db):
        result = await reservation_db.create_reservation(**JANE)

        assert result["success"] is True
        for value in ("Jane Doe", "City General Hospital", "consultation", "2030-01-15", "10:00 AM"):
            assert value in result["message"]
        assert result["reservationId"] == str(reservation_db.reservations.insert_one.return_value.inserted_id)
        assert result["details"]["timeSlot"] == "10:00 AM"

    @pytest.mark.asyncio
    async def test_writes_confirmed_reservation(self, reservation_db, customer, city_general):
        await reservation_db.create_reservation(**JANE, reason="chest pain")

        doc = reservation_db.reservations.insert_one.call_args[0][0]
        assert doc["status"] == "confirmed"
        assert doc["customer_id"] == customer["_id"]
        assert doc["hospital_id"] == city_general["_id"]
        assert doc["reason"] == "chest pain"
        assert doc["reservation_date"].year == 2030
        assert "idempotency_key" not in doc

    @pytest.mark.asyncio
    async def test_unknown_hospital_writes_nothing(self, reservation_db, hospital_db, customer_db):
        hospital_db.find_active_by_name.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            await reservation_db.create_reservation(**{**JANE, "hospital_name": "Nonexistent Hospital"})

        assert "not found" in exc_info.value.message
        customer_db.find_or_create.assert_not_called()
        reservation_db.reservations.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_key_is_not_idempotent(self, reservation_db):
        await reservation_db.create_reservation(**JANE)
        await reservation_db.create_reservation(**JANE)

        assert reservation_db.reservations.insert_one.call_count == 2

    @pytest.mark.asyncio
    async def test_key_replays_existing_reservation(self, reservation_db):
        existing_id = ObjectId()
        reservation_db.reservations.find_one.return_value = {"_id": existing_id}

        result = await reservation_db.create_reservation(**JANE, idempotency_key="CA123:call_1")

        assert result["reservationId"] == str(existing_id)
        reservation_db.reservations.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_key_is_stored_on_first_write(self, reservation_db):
        await reservation_db.create_reservation(**JANE, idempotency_key="CA123:call_1")

        doc = reservation_db.reservations.insert_one.call_args[0][0]
        assert doc["idempotency_key"] == "CA123:call_1"

    @pytest.mark.asyncio
    async def test_duplicate_key_race_returns_winner(self, reservation_db):
        winner = ObjectId()
        reservation_db.reservations.find_one.side_effect = [None, {"_id": winner}]
        reservation_db.reservations.insert_one.side_effect = DuplicateKeyError("dup")

        result = await reservation_db.create_reservation(**JANE, idempotency_key="CA123:call_1")

        assert result["reservationId"] == str(winner)

    @pytest.mark.asyncio
    async def test_bad_date_rejected(self, reservation_db):
        with pytest.raises(InputValidationError):
            await reservation_db.create_reservation(**{**JANE, "reservation_date": "someday"})

        reservation_db.reservations.insert_one.assert_not_called()


class TestCancelAndReschedule:

    @pytest.mark.asyncio
    async def test_cancel(self, reservation_db):
        oid = ObjectId()
        reservation_db.reservations.find_one_and_update.return_value = {"_id": oid, "status": "cancelled"}

        result = await reservation_db.cancel_reservation(str(oid))

        assert result["success"] is True
        update = reservation_db.reservations.find_one_and_update.call_args[0][1]
        assert update["$set"]["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_cancel_missing(self, reservation_db):
        with pytest.raises(NotFoundError):
            await reservation_db.cancel_reservation("bogus")

    @pytest.mark.asyncio
    async def test_reschedule(self, reservation_db):
        oid = ObjectId()
        reservation_db.reservations.find_one_and_update.return_value = {"_id": oid}

        result = await reservation_db.reschedule_reservation(str(oid), "2030-02-01", "02:00 PM")

        assert result["message"] == "Reservation rescheduled to 2030-02-01 at 02:00 PM"
        update = reservation_db.reservations.find_one_and_update.call_args[0][1]
        assert update["$set"]["time_slot"] == "02:00 PM"
        assert update["$set"]["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_reschedule_requires_time_slot(self, reservation_db):
        with pytest.raises(InputValidationError):
            await reservation_db.reschedule_reservation(str(ObjectId()), "2030-02-01", " ")


class TestReservationQueries:

    @pytest.mark.asyncio
    async def test_find_reservations_filters(self, reservation_db):
        hospital_id = ObjectId()
        date_range = ("start", "end")

        await reservation_db.find_reservations(str(hospital_id), date_range, "confirmed")

        pipeline = reservation_db.reservations.aggregate.call_args[0][0]
        assert pipeline[0]["$match"] == {
            "hospital_id": hospital_id,
            "reservation_date": {"$gte": "start", "$lte": "end"},
            "status": "confirmed",
        }
        assert pipeline[-1] == {"$sort": {"reservation_date": -1}}

    @pytest.mark.asyncio
    async def test_customer_with_no_record_has_no_reservations(self, reservation_db, customer_db):
        customer_db.find_by_name.return_value = None

        assert await reservation_db.find_customer_reservations("Nobody") == []
        reservation_db.reservations.aggregate.assert_not_called()

    @pytest.mark.asyncio
    async def test_summarize_customers(self, reservation_db, cursor_factory):
        summary = [{"name": "Jane Doe", "totalReservations": 2}]
        reservation_db.reservations.aggregate.return_value = cursor_factory(summary)

        assert await reservation_db.summarize_customers(str(ObjectId())) == summary


class TestCustomerRecord:

    def test_name_key_normalizes(self):
        assert name_key("  Jane   DOE ") == "jane doe"

    @pytest.mark.asyncio
    async def test_find_or_create_is_one_upsert(self, mock_db_client, customer):
        record = AsyncCustomerRecord(mock_db_client)
        record.customers.find_one_and_update.return_value = customer

        result = await record.find_or_create("Jane Doe", None)

        assert result == customer
        query, update = record.customers.find_one_and_update.call_args[0]
        kwargs = record.customers.find_one_and_update.call_args[1]
        assert query == {"name_key": "jane doe"}
        assert update["$setOnInsert"]["phone"] == "unknown"
        assert kwargs["upsert"] is True


class TestCallLogStats:

    @pytest.mark.asyncio
    async def test_empty_stats(self, mock_db_client):
        record = AsyncCallLogRecord(mock_db_client)

        assert await record.get_stats() == EMPTY_STATS

    @pytest.mark.asyncio
    async def test_null_averages_become_zero(self, mock_db_client, cursor_factory):
        record = AsyncCallLogRecord(mock_db_client)
        record.call_logs.aggregate.return_value = cursor_factory([
            {**EMPTY_STATS, "totalCalls": 3, "completedCalls": 2, "avgQualityScore": None}
        ])

        stats = await record.get_stats()

        assert stats["totalCalls"] == 3
        assert stats["avgQualityScore"] == 0

    @pytest.mark.asyncio
    async def test_find_call_logs_for_agent(self, mock_db_client):
        record = AsyncCallLogRecord(mock_db_client)

        await record.find_call_logs(call_status="missed", agent_id="abc")

        pipeline = record.call_logs.aggregate.call_args[0][0]
        assert pipeline[0]["$match"] == {"agent_id": "abc", "call_status": "missed"}

    @pytest.mark.asyncio
    async def test_add_call_log_converts_refs_and_stamps(self, mock_db_client):
        record = AsyncCallLogRecord(mock_db_client)
        log_id = ObjectId()
        record.call_logs.insert_one.return_value = MagicMock(inserted_id=log_id)
        customer_id, reservation_id = ObjectId(), ObjectId()

        result = await record.add_call_log({
            "customer_id": str(customer_id),
            "reservation_id": str(reservation_id),
            "call_status": "completed",
        })

        assert result == str(log_id)
        doc = record.call_logs.insert_one.call_args[0][0]
        assert doc["customer_id"] == customer_id
        assert doc["reservation_id"] == reservation_id
        assert doc["created_at"] == doc["updated_at"]
