import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from bson import ObjectId

import carts
import promo_codes
from database import create_document, db, ensure_indexes, get_db, get_documents, to_object_id
from errors import ItemNotFound
from logging_config import configure_logging, get_logger
from pricing import (
    HOURS_PER_BLOCK,
    booking_hours,
    combine_date_time,
    describe_calculation,
    get_booking_period,
    policy_constants,
)
from schemas import TIME_OF_DAY_PATTERN, BookingRequest, Motorcycle, PromoCode, PromoCodeUpdate

configure_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))
logger = get_logger(__name__)


def serialize_value(v):
    if isinstance(v, ObjectId):
        return str(v)
    if isinstance(v, datetime):
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc).isoformat()
    if isinstance(v, dict):
        return serialize_doc(v)
    if isinstance(v, (list, tuple)):
        return [serialize_value(i) for i in v]
    return v


def serialize_doc(doc: dict):
    return {k: serialize_value(v) for k, v in doc.items()}


def serialize_cart(cart):
    return serialize_doc(cart.model_dump())


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is not None:
        ensure_indexes(db)
        logger.info("mongo_indexes_ensured")
    yield


app = FastAPI(title="Motorcycle Rental API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_customer_id(x_customer_id: Optional[str] = Header(None)) -> str:
    if not x_customer_id or not x_customer_id.strip():
        raise HTTPException(status_code=401, detail="Please log in to manage your cart")
    return x_customer_id.strip()


@app.get("/")
def read_root():
    return {"message": "Motorcycle Rental Backend is running"}


# Motorcycles Endpoints
@app.get("/api/motorcycles")
def list_motorcycles(database=Depends(get_db)):
    motorcycles = get_documents(database, "motorcycle")
    return [serialize_doc(m) for m in motorcycles]


@app.post("/api/motorcycles")
def add_motorcycle(payload: Motorcycle, database=Depends(get_db)):
    motorcycle_id = create_document(database, "motorcycle", payload)
    created = database["motorcycle"].find_one({"_id": ObjectId(motorcycle_id)})
    logger.info("motorcycle_created", motorcycle_id=motorcycle_id, model=payload.model)
    return serialize_doc(created)


@app.get("/api/motorcycles/{motorcycle_id}")
def get_motorcycle(motorcycle_id: str, database=Depends(get_db)):
    motorcycle = database["motorcycle"].find_one({"_id": to_object_id(motorcycle_id, "motorcycle_id")})
    if not motorcycle:
        raise ItemNotFound("Motorcycle not found")
    return serialize_doc(motorcycle)


# Cart Endpoints
class ApplyCouponRequest(BaseModel):
    coupon_code: str


@app.get("/api/carts")
def get_user_cart(customer_id: str = Depends(get_customer_id), database=Depends(get_db)):
    return serialize_cart(carts.get_cart(database, customer_id))


@app.post("/api/carts/coupon")
def apply_coupon(payload: ApplyCouponRequest, customer_id: str = Depends(get_customer_id), database=Depends(get_db)):
    return serialize_cart(carts.apply_coupon(database, customer_id, payload.coupon_code))


@app.delete("/api/carts/coupon")
def remove_coupon(customer_id: str = Depends(get_customer_id), database=Depends(get_db)):
    return serialize_cart(carts.remove_coupon(database, customer_id))


@app.post("/api/carts/{motorcycle_id}")
def add_or_update_cart_item(
    motorcycle_id: str,
    payload: BookingRequest,
    customer_id: str = Depends(get_customer_id),
    database=Depends(get_db),
):
    return serialize_cart(carts.add_or_update_item(database, customer_id, motorcycle_id, payload))


@app.delete("/api/carts/{motorcycle_id}")
def remove_cart_item(motorcycle_id: str, customer_id: str = Depends(get_customer_id), database=Depends(get_db)):
    return serialize_cart(carts.remove_item(database, customer_id, motorcycle_id))


@app.delete("/api/carts")
def clear_cart(customer_id: str = Depends(get_customer_id), database=Depends(get_db)):
    return serialize_cart(carts.clear_cart(database, customer_id))


# Promo Code Endpoints
class UpdateStatusRequest(BaseModel):
    is_active: bool


@app.post("/api/promo-codes", status_code=201)
def create_promo_code(payload: PromoCode, x_customer_id: Optional[str] = Header(None), database=Depends(get_db)):
    return serialize_doc(promo_codes.create_promo_code(database, payload, owner_id=x_customer_id))


@app.get("/api/promo-codes")
def list_promo_codes(page: int = 1, limit: int = 10, active: Optional[bool] = None, database=Depends(get_db)):
    result = promo_codes.list_promo_codes(database, page=page, limit=limit, active=active)
    return {"metadata": result["metadata"], "data": [serialize_doc(c) for c in result["data"]]}


@app.get("/api/promo-codes/{coupon_id}")
def get_promo_code(coupon_id: str, database=Depends(get_db)):
    return serialize_doc(promo_codes.get_promo_code(database, coupon_id))


@app.put("/api/promo-codes/{coupon_id}")
def update_promo_code(coupon_id: str, payload: PromoCodeUpdate, database=Depends(get_db)):
    return serialize_doc(promo_codes.update_promo_code(database, coupon_id, payload))


@app.patch("/api/promo-codes/{coupon_id}/status")
def update_promo_code_status(coupon_id: str, payload: UpdateStatusRequest, database=Depends(get_db)):
    coupon = promo_codes.set_promo_code_active(database, coupon_id, payload.is_active)
    state = "active" if coupon["is_active"] else "inactive"
    return {"message": f"Promo-Code {coupon['promo_code']} is {state}", "data": serialize_doc(coupon)}


@app.delete("/api/promo-codes/{coupon_id}")
def delete_promo_code(coupon_id: str, database=Depends(get_db)):
    promo_codes.delete_promo_code(database, coupon_id)
    return {"message": "Coupon deleted successfully"}


# Pricing inspection
class DebugCalculationRequest(BaseModel):
    motorcycle_id: str
    quantity: int = Field(1, ge=1)
    pickup_date: date
    pickup_time: str = Field(..., pattern=TIME_OF_DAY_PATTERN)
    dropoff_date: date
    dropoff_time: str = Field(..., pattern=TIME_OF_DAY_PATTERN)


@app.post("/api/debug/calculation")
def debug_calculation(payload: DebugCalculationRequest, database=Depends(get_db)):
    motorcycle = carts.get_motorcycle(database, payload.motorcycle_id)

    pickup = combine_date_time(payload.pickup_date, payload.pickup_time)
    dropoff = combine_date_time(payload.dropoff_date, payload.dropoff_time)
    total_hours = booking_hours(payload.pickup_date, payload.pickup_time, payload.dropoff_date, payload.dropoff_time)

    period = get_booking_period(payload.pickup_date, payload.pickup_time, payload.dropoff_date, payload.dropoff_time)

    return serialize_doc({
        "motorcycle": {
            "model": motorcycle.model,
            "weekday_rate": motorcycle.price_per_day_mon_thu,
            "weekend_rate": motorcycle.price_per_day_fri_sun,
        },
        "booking": {
            "pickup_date_time": pickup,
            "dropoff_date_time": dropoff,
            "total_hours": total_hours,
            "full_days": int(total_hours // HOURS_PER_BLOCK) if total_hours > 0 else 0,
            "extra_hours": total_hours % HOURS_PER_BLOCK if total_hours > 0 else 0,
            "duration": period.duration,
            "quantity": payload.quantity,
        },
        "calculation": describe_calculation(
            period,
            motorcycle.price_per_day_mon_thu,
            motorcycle.price_per_day_fri_sun,
            payload.quantity,
        ),
    })


@app.get("/api/debug/pricing-constants")
def pricing_constants():
    return policy_constants()


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }

    try:
        database = get_db()
        response["database"] = "✅ Available"
        response["database_name"] = database.name
        response["connection_status"] = "Connected"
        collections = database.list_collection_names()
        response["collections"] = collections[:10]
        response["database"] = "✅ Connected & Working"
    except HTTPException:
        response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        logger.warning("database_check_failed", error=str(e))
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    # Check environment variables
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"

    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
