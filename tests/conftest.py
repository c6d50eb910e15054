import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app

# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
WEDNESDAY = date(2026, 10, 21)
THURSDAY = date(2026, 10, 22)
FRIDAY = date(2026, 10, 23)
SATURDAY = date(2026, 10, 24)
SUNDAY = date(2026, 10, 25)
NEXT_MONDAY = date(2026, 10, 26)

WEEKDAY_RATE = 1000.0
WEEKEND_RATE = 1500.0


@pytest.fixture
def mongo_db():
    database = mongomock.MongoClient()["rental_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(mongo_db):
    app.dependency_overrides[get_db] = lambda: mongo_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_motorcycle(mongo_db):
    def _make(model="Classic 350", weekday_rate=WEEKDAY_RATE, weekend_rate=WEEKEND_RATE,
              security_deposit=2000.0, stock=None):
        result = mongo_db["motorcycle"].insert_one({
            "make": "Royal Enfield",
            "model": model,
            "price_per_day_mon_thu": weekday_rate,
            "price_per_day_fri_sun": weekend_rate,
            "security_deposit": security_deposit,
            "available_in_cities": stock if stock is not None else [{"branch": "Bangalore", "quantity": 3}],
        })
        return str(result.inserted_id)
    return _make


@pytest.fixture
def make_coupon(mongo_db):
    def _make(code="SAVE500", type="FLAT", discount_value=500.0, minimum_cart_value=1000.0,
              is_active=True, starts_in=timedelta(days=-1), expires_in=timedelta(days=30)):
        now = datetime.now(timezone.utc)
        result = mongo_db["promocode"].insert_one({
            "name": f"{code} campaign",
            "promo_code": code,
            "type": type,
            "discount_value": discount_value,
            "minimum_cart_value": minimum_cart_value,
            "start_date": now + starts_in,
            "expiry_date": now + expires_in,
            "is_active": is_active,
            "updated_at": now,
        })
        return result.inserted_id
    return _make


def booking_payload(pickup_date=MONDAY, pickup_time="10:00", dropoff_date=TUESDAY, dropoff_time="10:00",
                    quantity=1, pickup_location="Bangalore", dropoff_location="Bangalore"):
    return {
        "quantity": quantity,
        "pickup_date": pickup_date.isoformat(),
        "pickup_time": pickup_time,
        "dropoff_date": dropoff_date.isoformat(),
        "dropoff_time": dropoff_time,
        "pickup_location": pickup_location,
        "dropoff_location": dropoff_location,
    }
