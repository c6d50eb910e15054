"""
Promo-code store.

CRUD for coupons plus the live-window lookup used when a customer applies
a code and when a cart revalidates its coupon on read.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, to_object_id
from errors import DuplicatePromoCode, InvalidPromoCode, ItemNotFound
from logging_config import get_logger
from schemas import PromoCode, PromoCodeUpdate

logger = get_logger(__name__)

COLLECTION = "promocode"
DEFAULT_PAGE_SIZE = 10


def as_utc(value: datetime) -> datetime:
    # MongoDB hands back naive datetimes that are already UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_promo_code_live(coupon: dict, now: Optional[datetime] = None) -> bool:
    now = as_utc(now or datetime.now(timezone.utc))
    if not coupon.get("is_active", False):
        return False
    return as_utc(coupon["start_date"]) < now < as_utc(coupon["expiry_date"])


def _find_by_code(db: Database, code: str, exclude_id=None) -> Optional[dict]:
    query = {"promo_code": code.strip().upper()}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return db[COLLECTION].find_one(query)


def _get_or_404(db: Database, coupon_id: str) -> dict:
    coupon = db[COLLECTION].find_one({"_id": to_object_id(coupon_id, "coupon_id")})
    if not coupon:
        raise ItemNotFound("Coupon does not exist")
    return coupon


def create_promo_code(db: Database, payload: PromoCode, owner_id: Optional[str] = None) -> dict:
    if _find_by_code(db, payload.promo_code):
        raise DuplicatePromoCode(payload.promo_code)

    data = payload.model_dump()
    data["owner"] = owner_id
    coupon_id = create_document(db, COLLECTION, data)
    logger.info("promo_code_created", coupon_id=coupon_id, promo_code=payload.promo_code)
    return db[COLLECTION].find_one({"_id": to_object_id(coupon_id)})


def update_promo_code(db: Database, coupon_id: str, payload: PromoCodeUpdate) -> dict:
    existing = _get_or_404(db, coupon_id)

    changes = payload.model_dump(exclude_none=True)
    if "promo_code" in changes:
        duplicate = _find_by_code(db, changes["promo_code"], exclude_id=existing["_id"])
        if duplicate:
            raise DuplicatePromoCode(duplicate["promo_code"])

    merged = {field: existing.get(field) for field in PromoCode.model_fields if field in existing}
    merged.update(changes)
    try:
        validated = PromoCode(**merged)
    except ValidationError as exc:
        raise InvalidPromoCode(exc.errors()[0]["msg"]) from exc

    update = validated.model_dump(exclude={"is_active"})
    update["updated_at"] = datetime.now(timezone.utc)
    coupon = db[COLLECTION].find_one_and_update(
        {"_id": existing["_id"]},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("promo_code_updated", coupon_id=coupon_id, fields=sorted(changes))
    return coupon


def set_promo_code_active(db: Database, coupon_id: str, is_active: bool) -> dict:
    coupon = db[COLLECTION].find_one_and_update(
        {"_id": to_object_id(coupon_id, "coupon_id")},
        {"$set": {"is_active": is_active, "updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if not coupon:
        raise ItemNotFound("Coupon does not exist")
    logger.info("promo_code_status_changed", coupon_id=coupon_id, is_active=is_active)
    return coupon


def get_promo_code(db: Database, coupon_id: str) -> dict:
    return _get_or_404(db, coupon_id)


def delete_promo_code(db: Database, coupon_id: str) -> None:
    result = db[COLLECTION].delete_one({"_id": to_object_id(coupon_id, "coupon_id")})
    if not result.deleted_count:
        raise ItemNotFound("Coupon does not exist")
    logger.info("promo_code_deleted", coupon_id=coupon_id)


def list_promo_codes(db: Database, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, active: Optional[bool] = None) -> dict:
    page = max(page or 1, 1)
    limit = max(limit or DEFAULT_PAGE_SIZE, 1)

    query = {}
    if active is not None:
        query["is_active"] = active

    total = db[COLLECTION].count_documents(query)
    cursor = db[COLLECTION].find(query).sort("updated_at", -1).skip((page - 1) * limit).limit(limit)
    return {
        "metadata": {"total": total, "page": page, "limit": limit},
        "data": list(cursor),
    }


def find_live_promo_code(db: Database, code: str, now: Optional[datetime] = None) -> Optional[dict]:
    coupon = _find_by_code(db, code)
    if coupon and is_promo_code_live(coupon, now):
        return coupon
    return None
