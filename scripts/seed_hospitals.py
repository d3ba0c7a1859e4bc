#!/usr/bin/env python3
"""
Seed script for the hospital directory.
Drops the hospitals and call_logs collections, inserts sample hospitals sharing
one login password and a few call logs for the dashboard.

Run: python scripts/seed_hospitals.py
"""

import asyncio
import os
import sys
from collections import Counter
from datetime import datetime, timedelta, timezone

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import bcrypt
from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient

load_dotenv()

# Imported after load_dotenv so MONGO_DB_NAME picks up .env
from hospital_agent.constants import CallLogStatus, CallOutcome, CallType, Sentiment  # noqa: E402
from hospital_agent.models.call_log import AsyncCallLogRecord  # noqa: E402

DEFAULT_PASSWORD = "Hospital@123"

# (name, email, phone prefix, [lng, lat], address, city, state, zip, specialties, departments, availability, rating, reviews)
SAMPLE_HOSPITALS = [
    ("City General Hospital", "info@citygeneralhospital.com", "+1-555-01",
     [-71.0589, 42.3601], "123 Medical Center Drive", "Boston", "MA", "02115",
     ["Cardiology", "Neurology", "Orthopedics", "Emergency Medicine", "Internal Medicine"],
     ["Emergency", "Cardiology", "Neurology"], "24/7", 4.5, 1250),
    ("St. Mary's Medical Center", "contact@stmaryshospital.com", "+1-555-02",
     [-118.2437, 34.0522], "456 Healthcare Boulevard", "Los Angeles", "CA", "90012",
     ["Pediatrics", "Obstetrics", "Gynecology", "Oncology", "General Surgery"],
     ["Pediatrics", "Maternity", "Surgery"], "24/7", 4.7, 2100),
    ("Metropolitan Heart Institute", "info@metroheartinstitute.com", "+1-555-03",
     [-87.6298, 41.8781], "789 Cardiac Care Way", "Chicago", "IL", "60601",
     ["Cardiology", "Cardiovascular Surgery", "Cardiac Rehabilitation", "Vascular Surgery"],
     ["Cardiology", "Cardiac Surgery", "Rehabilitation"], "24/7", 4.8, 980),
    ("Riverside Community Hospital", "info@riversidecommunityhospital.com", "+1-555-04",
     [-73.935242, 40.73061], "321 Riverside Avenue", "New York", "NY", "10002",
     ["Family Medicine", "Emergency Medicine", "Internal Medicine", "Radiology", "Laboratory Services"],
     ["Emergency", "Family Medicine", "Radiology"], "24/7", 4.3, 870),
    ("Sunshine Children's Hospital", "care@sunshinechildrens.com", "+1-555-05",
     [-122.4194, 37.7749], "555 Pediatric Lane", "San Francisco", "CA", "94102",
     ["Pediatrics", "Neonatology", "Pediatric Surgery", "Child Psychology", "Pediatric Cardiology"],
     ["Pediatrics", "NICU", "Pediatric Surgery"], "24/7", 4.9, 1560),
    ("Western Orthopedic Center", "contact@westernortho.com", "+1-555-06",
     [-122.3321, 47.6062], "888 Bone and Joint Road", "Seattle", "WA", "98101",
     ["Orthopedics", "Sports Medicine", "Physical Therapy", "Joint Replacement", "Spine Surgery"],
     ["Orthopedics", "Sports Medicine", "Physical Therapy"], "business-hours", 4.6, 720),
    ("Central Cancer Treatment Center", "info@centralcancercenter.com", "+1-555-07",
     [-84.388, 33.749], "777 Hope Drive", "Atlanta", "GA", "30303",
     ["Oncology", "Radiation Therapy", "Chemotherapy", "Surgical Oncology", "Palliative Care"],
     ["Medical Oncology", "Radiation", "Surgery"], "business-hours", 4.7, 650),
    ("Harbor View Medical Center", "info@harborviewmedical.com", "+1-555-08",
     [-80.1918, 25.7617], "999 Ocean Boulevard", "Miami", "FL", "33101",
     ["Emergency Medicine", "Trauma Surgery", "Internal Medicine", "Neurology", "Cardiology"],
     ["Emergency", "Trauma", "ICU"], "24/7", 4.4, 1100),
    ("University Medical Center", "contact@universitymedical.com", "+1-555-09",
     [-71.0636, 42.3605], "111 University Avenue", "Boston", "MA", "02116",
     ["Teaching Hospital", "Research", "All Specialties", "Neurology", "Gastroenterology"],
     ["Neurology", "Gastroenterology", "Research"], "24/7", 4.8, 2400),
    ("Valley Wellness Center", "info@valleywellness.com", "+1-555-10",
     [-112.074, 33.4484], "222 Wellness Way", "Phoenix", "AZ", "85001",
     ["Primary Care", "Urgent Care", "Preventive Medicine", "Women's Health", "Men's Health"],
     ["Primary Care", "Urgent Care", "Women's Health"], "business-hours", 4.2, 540),
]


def build_hospital(row, hashed_password: str, now: datetime) -> dict:
    (name, email, phone_prefix, coordinates, address, city, state, zip_code,
     specialties, departments, availability, rating, reviews) = row
    return {
        "hospital_name": name,
        "email": email,
        "hashed_password": hashed_password,
        "phone": f"{phone_prefix}01",
        "location": {
            "type": "Point",
            "coordinates": coordinates,
            "address": address,
            "city": city,
            "state": state,
            "zip_code": zip_code,
            "country": "USA",
        },
        "specialties": specialties,
        "departments": [
            {"name": dept, "phone": f"{phone_prefix}0{i + 2}"}
            for i, dept in enumerate(departments)
        ],
        "availability": availability,
        "rating": rating,
        "total_reviews": reviews,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }

# (status, outcome, sentiment, duration seconds)
SAMPLE_CALLS = [
    (CallLogStatus.COMPLETED, CallOutcome.RESERVATION_MADE, Sentiment.POSITIVE, 185),
    (CallLogStatus.COMPLETED, CallOutcome.NO_ACTION, Sentiment.NEUTRAL, 64),
    (CallLogStatus.MISSED, CallOutcome.NO_ACTION, Sentiment.NEUTRAL, 0),
]


def build_call_log(agent_id: str, offset: int, sample, now: datetime) -> dict:
    status, outcome, sentiment, duration = sample
    start = now - timedelta(hours=offset + 1)
    return {
        "phone_number": f"+1555000{offset:04d}",
        "call_type": CallType.INBOUND.value,
        "call_status": status.value,
        "start_time": start,
        "end_time": start + timedelta(seconds=duration),
        "duration": duration,
        "sentiment": sentiment.value,
        "call_outcome": outcome.value,
        "agent_id": agent_id,
        "quality_score": 4 if status == CallLogStatus.COMPLETED else 0,
    }


async def main():
    mongo_uri = os.getenv("MONGO_URI", "mongodb://localhost:27017/")
    client = AsyncIOMotorClient(mongo_uri)
    db = client[os.getenv("MONGO_DB_NAME", "hospital-booking-agent")]

    print("=" * 60)
    print("Hospital Directory Seed")
    print("=" * 60)

    print("\n[1/4] Dropping hospitals and call logs...")
    await db.drop_collection("hospitals")
    await db.drop_collection("call_logs")
    print("  ✓ Dropped hospitals, call_logs")

    print("\n[2/4] Inserting hospitals...")
    hashed = bcrypt.hashpw(DEFAULT_PASSWORD.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    now = datetime.now(timezone.utc)
    docs = [build_hospital(row, hashed, now) for row in SAMPLE_HOSPITALS]
    result = await db.hospitals.insert_many(docs)
    print(f"  ✓ {len(result.inserted_ids)} hospitals inserted")

    print("\n[3/4] Creating indexes...")
    await db.hospitals.create_index([("location", "2dsphere")])
    await db.hospitals.create_index("email", unique=True)
    print("  ✓ location (2dsphere), email (unique)")

    print("\n[4/4] Inserting call logs...")
    call_log_db = AsyncCallLogRecord(client)
    for hospital_id in result.inserted_ids[:3]:
        for offset, sample in enumerate(SAMPLE_CALLS):
            await call_log_db.add_call_log(build_call_log(str(hospital_id), offset, sample, now))
    print(f"  ✓ {3 * len(SAMPLE_CALLS)} call logs inserted")

    print("\nHospitals by city:")
    for city, count in Counter(d["location"]["city"] for d in docs).items():
        print(f"  - {city}: {count}")

    print(f"\nSample login: {docs[0]['email']} / {DEFAULT_PASSWORD}")

    client.close()


if __name__ == "__main__":
    asyncio.run(main())
