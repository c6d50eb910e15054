"""
Customer carts.

Each operation reads the current cart document, applies one atomic update
and returns the re-priced snapshot from get_cart(). Totals and discounts are
never stored; the coupon is kept as an id and revalidated on every read.
"""

from datetime import datetime, time, timezone
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from cart_totals import apply_discounts_and_calculate_totals, cart_total_before_discount
from database import to_object_id
from errors import CouponIneligible, InsufficientInventory, InvalidBookingWindow, ItemNotFound
from logging_config import get_logger
from pricing import MINIMUM_BOOKING_HOURS, TAX_PERCENTAGE, booking_hours, calculate_rent, get_booking_period
from promo_codes import find_live_promo_code, is_promo_code_live
from schemas import BookingRequest, Cart, CartItem, Motorcycle, PromoCode

logger = get_logger(__name__)

COLLECTION = "cart"
SAVE_ATTEMPTS = 3


def _pick(model, doc: dict) -> dict:
    return {field: doc[field] for field in model.model_fields if field in doc}


def _load_items(db: Database, raw_items: List[dict]) -> List[CartItem]:
    items = [CartItem(**_pick(CartItem, raw)) for raw in raw_items if raw.get("motorcycle_id")]
    if not items:
        return items

    ids = [to_object_id(item.motorcycle_id, "motorcycle_id") for item in items]
    deposits = {
        str(doc["_id"]): doc.get("security_deposit", 0)
        for doc in db["motorcycle"].find({"_id": {"$in": ids}}, {"security_deposit": 1})
    }
    for item in items:
        item.security_deposit = deposits.get(item.motorcycle_id, 0)
    return items


def _clear_coupon(db: Database, cart_id, coupon_id, reason: str) -> None:
    db[COLLECTION].update_one(
        {"_id": cart_id, "coupon_id": coupon_id},
        {"$set": {"coupon_id": None, "updated_at": datetime.now(timezone.utc)}},
    )
    logger.info("cart_coupon_cleared", cart_id=str(cart_id), coupon_id=str(coupon_id), reason=reason)


def get_cart(db: Database, customer_id: str, now: Optional[datetime] = None) -> Cart:
    doc = db[COLLECTION].find_one({"customer_id": customer_id})
    if not doc:
        return apply_discounts_and_calculate_totals(Cart(customer_id=customer_id))

    cart = Cart(
        id=str(doc["_id"]),
        customer_id=customer_id,
        items=_load_items(db, doc.get("items") or []),
    )

    coupon_id = doc.get("coupon_id")
    if coupon_id:
        coupon = db["promocode"].find_one({"_id": coupon_id})
        if coupon is None or not is_promo_code_live(coupon, now):
            _clear_coupon(db, doc["_id"], coupon_id, "coupon_unavailable")
        elif not cart.items or cart_total_before_discount(cart) < coupon.get("minimum_cart_value", 0):
            _clear_coupon(db, doc["_id"], coupon_id, "below_minimum_cart_value")
        else:
            cart.coupon_id = str(coupon_id)
            cart.coupon = PromoCode(**_pick(PromoCode, coupon))

    priced = apply_discounts_and_calculate_totals(cart)
    priced.cart_total = cart_total_before_discount(priced)
    return priced


def get_motorcycle(db: Database, motorcycle_id: str) -> Motorcycle:
    doc = db["motorcycle"].find_one({"_id": to_object_id(motorcycle_id, "motorcycle_id")})
    if not doc:
        raise ItemNotFound("Motorcycle not found")
    return Motorcycle(**_pick(Motorcycle, doc))


def price_cart_item(motorcycle_id: str, motorcycle: Motorcycle, booking: BookingRequest) -> CartItem:
    hours = booking_hours(booking.pickup_date, booking.pickup_time, booking.dropoff_date, booking.dropoff_time)
    if hours <= 0:
        raise InvalidBookingWindow()
    if hours < MINIMUM_BOOKING_HOURS:
        raise InvalidBookingWindow(f"Minimum booking duration is {MINIMUM_BOOKING_HOURS} hours.")

    period = get_booking_period(booking.pickup_date, booking.pickup_time, booking.dropoff_date, booking.dropoff_time)
    rent_amount = calculate_rent(
        period,
        motorcycle.price_per_day_mon_thu,
        motorcycle.price_per_day_fri_sun,
    ) * booking.quantity

    return CartItem(
        motorcycle_id=motorcycle_id,
        quantity=booking.quantity,
        pickup_date=datetime.combine(booking.pickup_date, time.min),
        pickup_time=booking.pickup_time,
        dropoff_date=datetime.combine(booking.dropoff_date, time.min),
        dropoff_time=booking.dropoff_time,
        pickup_location=booking.pickup_location,
        dropoff_location=booking.dropoff_location,
        duration=period.duration,
        total_hours=period.total_hours,
        rent_amount=rent_amount,
        tax_percentage=TAX_PERCENTAGE,
        discounted_rent_amount=rent_amount,
        total_tax=rent_amount * (TAX_PERCENTAGE / 100),
        security_deposit=motorcycle.security_deposit,
    )


def add_or_update_item(db: Database, customer_id: str, motorcycle_id: str, booking: BookingRequest) -> Cart:
    motorcycle = get_motorcycle(db, motorcycle_id)

    available = motorcycle.available_at(booking.pickup_location)
    if available < booking.quantity:
        raise InsufficientInventory(available)

    item = price_cart_item(str(to_object_id(motorcycle_id)), motorcycle, booking)
    replaced = _save_item(db, customer_id, item.model_dump(exclude={"security_deposit"}))

    logger.info(
        "cart_item_saved",
        customer_id=customer_id,
        motorcycle_id=item.motorcycle_id,
        quantity=item.quantity,
        rent_amount=item.rent_amount,
        replaced=replaced,
    )
    return get_cart(db, customer_id)


def _replace_item(db: Database, customer_id: str, item_doc: dict, now: datetime) -> bool:
    # Replace in place so the item keeps its position in the cart
    result = db[COLLECTION].update_one(
        {"customer_id": customer_id, "items.motorcycle_id": item_doc["motorcycle_id"]},
        {"$set": {"items.$": item_doc, "coupon_id": None, "updated_at": now}},
    )
    return bool(result.matched_count)


def _save_item(db: Database, customer_id: str, item_doc: dict) -> bool:
    """
    Store one item per motorcycle in the customer's single cart.

    Returns True when an existing item was replaced. The push only matches a
    cart that does not hold the motorcycle yet, and a new cart is inserted
    against the unique customer_id index, so a writer that loses a race to a
    concurrent add hits DuplicateKeyError and goes back to replacing.
    """
    for attempt in range(SAVE_ATTEMPTS):
        now = datetime.now(timezone.utc)
        if _replace_item(db, customer_id, item_doc, now):
            return True

        pushed = db[COLLECTION].update_one(
            {"customer_id": customer_id, "items.motorcycle_id": {"$ne": item_doc["motorcycle_id"]}},
            {"$push": {"items": item_doc}, "$set": {"coupon_id": None, "updated_at": now}},
        )
        if pushed.matched_count:
            return False

        try:
            db[COLLECTION].insert_one({
                "customer_id": customer_id,
                "items": [item_doc],
                "coupon_id": None,
                "created_at": now,
                "updated_at": now,
            })
            return False
        except DuplicateKeyError:
            if attempt == SAVE_ATTEMPTS - 1:
                raise
            logger.info("cart_item_save_retried", customer_id=customer_id, motorcycle_id=item_doc["motorcycle_id"])


def remove_item(db: Database, customer_id: str, motorcycle_id: str) -> Cart:
    get_motorcycle(db, motorcycle_id)

    updated = db[COLLECTION].find_one_and_update(
        {"customer_id": customer_id},
        {
            "$pull": {"items": {"motorcycle_id": str(to_object_id(motorcycle_id))}},
            "$set": {"coupon_id": None, "updated_at": datetime.now(timezone.utc)},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise ItemNotFound("Cart not found")

    logger.info("cart_item_removed", customer_id=customer_id, motorcycle_id=motorcycle_id)
    return get_cart(db, customer_id)


def clear_cart(db: Database, customer_id: str) -> Cart:
    db[COLLECTION].update_one(
        {"customer_id": customer_id},
        {"$set": {"items": [], "coupon_id": None, "updated_at": datetime.now(timezone.utc)}},
    )
    logger.info("cart_cleared", customer_id=customer_id)
    return get_cart(db, customer_id)


def apply_coupon(db: Database, customer_id: str, code: str, now: Optional[datetime] = None) -> Cart:
    if not code or not code.strip():
        raise CouponIneligible("Coupon code is required")

    coupon = find_live_promo_code(db, code, now)
    if not coupon:
        raise CouponIneligible("Coupon is invalid, expired, or inactive")

    cart = get_cart(db, customer_id, now)
    if not cart.items:
        raise CouponIneligible("Your cart is empty. Add items to apply coupon")

    total = cart_total_before_discount(cart)
    minimum = coupon.get("minimum_cart_value", 0)
    if total < minimum:
        raise CouponIneligible(
            f"Minimum cart value of ₹{minimum:g} required. "
            f"Add items worth ₹{minimum - total:.0f} more to apply this coupon"
        )

    if cart.coupon and cart.coupon.promo_code == coupon["promo_code"]:
        raise CouponIneligible("This coupon is already applied to your cart")

    db[COLLECTION].update_one(
        {"customer_id": customer_id},
        {"$set": {"coupon_id": coupon["_id"], "updated_at": datetime.now(timezone.utc)}},
    )
    logger.info("cart_coupon_applied", customer_id=customer_id, promo_code=coupon["promo_code"])
    return get_cart(db, customer_id, now)


def remove_coupon(db: Database, customer_id: str) -> Cart:
    db[COLLECTION].update_one(
        {"customer_id": customer_id},
        {"$set": {"coupon_id": None, "updated_at": datetime.now(timezone.utc)}},
    )
    logger.info("cart_coupon_removed", customer_id=customer_id)
    return get_cart(db, customer_id)
