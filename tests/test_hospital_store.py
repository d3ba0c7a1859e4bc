"""
Tests for AsyncHospitalRecord - directory searches and CRUD against a mocked motor collection.
"""

import pytest
from bson import ObjectId

from hospital_agent.exceptions import InputValidationError
from hospital_agent.models.hospital import AsyncHospitalRecord, PUBLIC_PROJECTION


@pytest.fixture
def hospital_db(mock_db_client):
    return AsyncHospitalRecord(mock_db_client)


def _geo_stage(hospital_db):
    pipeline = hospital_db.hospitals.aggregate.call_args[0][0]
    return pipeline, pipeline[0]["$geoNear"]


class TestFindNearby:
    """Test the nearest-first geo search."""

    @pytest.mark.asyncio
    async def test_builds_geo_near_pipeline(self, hospital_db, cursor_factory):
        hospitals = [
            {"hospital_name": "City General Hospital", "distance": 120.0},
            {"hospital_name": "University Medical Center", "distance": 560.5},
        ]
        hospital_db.hospitals.aggregate.return_value = cursor_factory(hospitals)

        result = await hospital_db.find_nearby(-71.06, 42.36, 2000, 2)

        assert result == hospitals
        pipeline, geo = _geo_stage(hospital_db)
        assert geo["near"] == {"type": "Point", "coordinates": [-71.06, 42.36]}
        assert geo["maxDistance"] == 2000
        assert geo["distanceField"] == "distance"
        assert geo["query"] == {"is_active": True}
        assert {"$limit": 2} in pipeline

    @pytest.mark.asyncio
    async def test_defaults(self, hospital_db):
        await hospital_db.find_nearby("-71.06", "42.36")

        pipeline, geo = _geo_stage(hospital_db)
        assert geo["maxDistance"] == 5000
        assert {"$limit": 10} in pipeline

    @pytest.mark.asyncio
    async def test_projection_hides_password(self, hospital_db):
        await hospital_db.find_nearby(-71.06, 42.36)

        pipeline, _ = _geo_stage(hospital_db)
        projection = pipeline[-1]["$project"]
        assert "hashed_password" not in projection
        assert projection["distance"] == 1

    @pytest.mark.asyncio
    async def test_bad_coordinates_fail_before_query(self, hospital_db):
        with pytest.raises(InputValidationError):
            await hospital_db.find_nearby("north", 42.36)

        hospital_db.hospitals.aggregate.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, hospital_db):
        hospital_db.hospitals.aggregate.side_effect = RuntimeError("no 2dsphere index")

        with pytest.raises(RuntimeError):
            await hospital_db.find_nearby(-71.06, 42.36)


class TestFindByLocation:

    @pytest.mark.asyncio
    async def test_requires_a_filter(self, hospital_db):
        with pytest.raises(InputValidationError) as exc_info:
            await hospital_db.find_by_location()

        assert "At least one location parameter" in exc_info.value.message
        hospital_db.hospitals.find.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_strings_are_not_filters(self, hospital_db):
        with pytest.raises(InputValidationError):
            await hospital_db.find_by_location(city="  ", state="")

    @pytest.mark.asyncio
    async def test_filters_on_every_supplied_field(self, hospital_db, cursor_factory, city_general):
        hospital_db.hospitals.find.return_value = cursor_factory([city_general])

        result = await hospital_db.find_by_location(city="boston", zip_code="02115")

        assert result == [city_general]
        query, projection = hospital_db.hospitals.find.call_args[0]
        assert query["is_active"] is True
        assert query["location.city"] == {"$regex": "boston", "$options": "i"}
        assert query["location.zip_code"] == {"$regex": "02115", "$options": "i"}
        assert "location.state" not in query
        assert projection == PUBLIC_PROJECTION
        hospital_db.hospitals.find.return_value.limit.assert_called_once_with(20)

    @pytest.mark.asyncio
    async def test_regex_input_is_escaped(self, hospital_db):
        await hospital_db.find_by_location(city="St. Louis (MO)")

        query, _ = hospital_db.hospitals.find.call_args[0]
        assert query["location.city"]["$regex"] == r"St\.\ Louis\ \(MO\)"


class TestFindBySpecialty:

    @pytest.mark.asyncio
    async def test_requires_specialty(self, hospital_db):
        with pytest.raises(InputValidationError):
            await hospital_db.find_by_specialty("")

    @pytest.mark.asyncio
    async def test_without_coordinates_uses_find(self, hospital_db):
        await hospital_db.find_by_specialty("cardio")

        query, _ = hospital_db.hospitals.find.call_args[0]
        assert query["specialties"] == {"$regex": "cardio", "$options": "i"}
        hospital_db.hospitals.find.return_value.limit.assert_called_once_with(10)
        hospital_db.hospitals.aggregate.assert_not_called()

    @pytest.mark.asyncio
    async def test_with_coordinates_uses_geo_near(self, hospital_db):
        await hospital_db.find_by_specialty("cardio", -71.06, 42.36)

        pipeline, geo = _geo_stage(hospital_db)
        assert geo["maxDistance"] == 10000
        assert geo["query"]["specialties"] == {"$regex": "cardio", "$options": "i"}
        assert {"$limit": 10} in pipeline


class TestHospitalCrud:

    @pytest.mark.asyncio
    async def test_list_active_default_limit(self, hospital_db):
        await hospital_db.list_active()

        query, _ = hospital_db.hospitals.find.call_args[0]
        assert query == {"is_active": True}
        hospital_db.hospitals.find.return_value.limit.assert_called_once_with(50)

    @pytest.mark.asyncio
    async def test_list_page(self, hospital_db, cursor_factory, city_general):
        cursor = cursor_factory([city_general])
        hospital_db.hospitals.find.return_value = cursor
        hospital_db.hospitals.count_documents.return_value = 41

        hospitals, total = await hospital_db.list_page(page=3, limit=20)

        assert hospitals == [city_general]
        assert total == 41
        cursor.skip.assert_called_once_with(40)
        cursor.limit.assert_called_once_with(20)

    @pytest.mark.asyncio
    async def test_add_hospital_normalizes(self, hospital_db):
        inserted = ObjectId()
        hospital_db.hospitals.insert_one.return_value.inserted_id = inserted

        hospital_id = await hospital_db.add_hospital({
            "hospital_name": "New Clinic",
            "email": " Front@NewClinic.com ",
            "phone": "+1-555-9999",
            "location": {"coordinates": ["-71.1", "42.3"], "city": "Boston"},
        })

        assert hospital_id == str(inserted)
        doc = hospital_db.hospitals.insert_one.call_args[0][0]
        assert doc["email"] == "front@newclinic.com"
        assert doc["location"]["type"] == "Point"
        assert doc["location"]["coordinates"] == [-71.1, 42.3]
        assert doc["is_active"] is True
        assert doc["availability"] == "business-hours"

    @pytest.mark.asyncio
    async def test_add_hospital_rejects_bad_coordinates(self, hospital_db):
        with pytest.raises(InputValidationError):
            await hospital_db.add_hospital({
                "hospital_name": "Nowhere",
                "email": "x@nowhere.com",
                "location": {"coordinates": [200, 10]},
            })

        hospital_db.hospitals.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_find_by_id_with_invalid_id(self, hospital_db):
        assert await hospital_db.find_by_id("not-an-object-id") is None
        hospital_db.hospitals.find_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_soft_delete(self, hospital_db):
        hospital_db.hospitals.update_one.return_value.matched_count = 1

        assert await hospital_db.soft_delete(str(ObjectId())) is True

        update = hospital_db.hospitals.update_one.call_args[0][1]
        assert update["$set"]["is_active"] is False

    @pytest.mark.asyncio
    async def test_find_active_by_name(self, hospital_db, city_general):
        hospital_db.hospitals.find_one.return_value = city_general

        result = await hospital_db.find_active_by_name("city general")

        assert result == city_general
        query = hospital_db.hospitals.find_one.call_args[0][0]
        assert query["is_active"] is True
        assert query["hospital_name"]["$options"] == "i"
