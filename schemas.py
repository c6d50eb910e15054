"""
Database Schemas

Motorcycle Rental App Schemas using Pydantic models.
Each Pydantic model maps to a MongoDB collection using the lowercase class name.
- Motorcycle -> "motorcycle"
- PromoCode -> "promocode"
- Cart -> "cart"
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pricing import TAX_PERCENTAGE

TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class BranchStock(BaseModel):
    branch: str = Field(..., description="Branch / city name used as pickup location")
    quantity: int = Field(0, ge=0, description="Units available at this branch")


class Motorcycle(BaseModel):
    """
    Motorcycles available for rent
    Collection: "motorcycle"
    """
    make: str = Field(..., description="Manufacturer, e.g., Royal Enfield")
    model: str = Field(..., description="Model, e.g., Classic 350")
    price_per_day_mon_thu: float = Field(..., ge=0, description="Daily rate for weekday blocks")
    price_per_day_fri_sun: float = Field(..., ge=0, description="Daily rate for weekend blocks")
    security_deposit: float = Field(0, ge=0, description="Refundable deposit per unit")
    available_in_cities: List[BranchStock] = Field(default_factory=list)

    def available_at(self, branch: str) -> int:
        for stock in self.available_in_cities:
            if stock.branch == branch:
                return stock.quantity
        return 0


class PromoCodeType(str, Enum):
    FLAT = "FLAT"
    PERCENTAGE = "PERCENTAGE"


class PromoCode(BaseModel):
    """
    Discount coupons
    Collection: "promocode"
    """
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., description="Display name of the campaign")
    promo_code: str = Field(..., min_length=1, description="Code typed by the customer")
    type: PromoCodeType = Field(PromoCodeType.FLAT)
    discount_value: float = Field(..., ge=0, description="Currency amount (FLAT) or percent (PERCENTAGE)")
    minimum_cart_value: float = Field(0, ge=0, description="Pre-discount cart total required")
    start_date: datetime
    expiry_date: datetime
    is_active: bool = Field(True)

    @field_validator("promo_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("start_date", "expiry_date")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Stored datetimes come back naive but are UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def check_discount_bounds(self):
        if self.type == PromoCodeType.FLAT and self.minimum_cart_value < self.discount_value:
            raise ValueError(
                "For flat discount coupons, minimum cart value must be greater than or equal to the discount value"
            )
        if self.type == PromoCodeType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot be more than 100%")
        if self.expiry_date <= self.start_date:
            raise ValueError("Expiry date must be after start date")
        return self


class PromoCodeUpdate(BaseModel):
    name: Optional[str] = None
    promo_code: Optional[str] = None
    type: Optional[PromoCodeType] = None
    discount_value: Optional[float] = Field(None, ge=0)
    minimum_cart_value: Optional[float] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None


class BookingRequest(BaseModel):
    """Booking intent shared by the cart and debug endpoints."""
    quantity: int = Field(1, ge=1)
    pickup_date: date
    pickup_time: str = Field(..., pattern=TIME_OF_DAY_PATTERN, description="HH:MM, 24h clock")
    dropoff_date: date
    dropoff_time: str = Field(..., pattern=TIME_OF_DAY_PATTERN, description="HH:MM, 24h clock")
    pickup_location: str
    dropoff_location: str


class CartItem(BaseModel):
    motorcycle_id: str
    quantity: int = Field(1, ge=1)
    pickup_date: datetime
    pickup_time: str
    dropoff_date: datetime
    dropoff_time: str
    pickup_location: str
    dropoff_location: str
    duration: str = ""
    total_hours: float = 0.0
    rent_amount: float = Field(0, ge=0)
    tax_percentage: float = TAX_PERCENTAGE
    discounted_rent_amount: float = Field(0, ge=0)
    total_tax: float = Field(0, ge=0)
    # Per-unit deposit, resolved from the catalog on every read
    security_deposit: float = Field(0, ge=0)


class Cart(BaseModel):
    """
    One cart per customer. Only items and coupon_id are persisted; the
    totals are recomputed on every read.
    Collection: "cart"
    """
    id: Optional[str] = None
    customer_id: str
    items: List[CartItem] = Field(default_factory=list)
    coupon_id: Optional[str] = None
    coupon: Optional[PromoCode] = None

    rent_total: float = 0.0
    total_tax: float = 0.0
    security_deposit_total: float = 0.0
    discount_total: float = 0.0
    discounted_rent_total: float = 0.0
    discounted_total: float = 0.0
    cart_total: float = 0.0
