"""
Rental pricing

Turns a pickup/drop-off pair into a billing period and prices that period
against the weekday (Mon-Thu) and weekend (Fri-Sun) daily tariffs.

Billing tiers:
- up to 24 hours: one full day, whatever the actual duration
- 24 to 28 hours: the full day plus 10% of the daily rate per extra hour
- over 28 hours: the trailing partial day is rounded up to a full day
"""

import math
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import List, Tuple, Union

from pydantic import BaseModel, ConfigDict

# Pricing policy
TAX_PERCENTAGE = 18.0
MINIMUM_BOOKING_HOURS = 6
EXTRA_HOUR_RATE = 0.10
EXTRA_HOUR_WINDOW = 4
HOURS_PER_BLOCK = 24

# Weekend blocks start Thursday 16:00 and run through Sunday 23:59
WEEKEND_START_WEEKDAY = 3  # Thursday
WEEKEND_START_HOUR = 16
WEEKEND_FULL_DAYS = (4, 5, 6)  # Friday, Saturday, Sunday


class DayType(str, Enum):
    WEEKDAY = "weekday"
    WEEKEND = "weekend"


class BillingBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    day_type: DayType


class BookingPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_hours: float = 0.0
    duration: str = "0 days 0 hours"
    weekday_count: int = 0
    weekend_count: int = 0
    extra_hours: float = 0.0
    last_day_type_for_extra_hours: DayType = DayType.WEEKDAY
    blocks: Tuple[BillingBlock, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.total_hours <= 0


def parse_time_of_day(value: str) -> time:
    hours, minutes = (int(part) for part in value.split(":"))
    return time(hour=hours, minute=minutes)


def combine_date_time(day: Union[date, datetime], time_of_day: str) -> datetime:
    """Place an "HH:MM" time of day on a calendar date (naive wall-clock time)."""
    if isinstance(day, datetime):
        day = day.date()
    return datetime.combine(day, parse_time_of_day(time_of_day))


def booking_hours(pickup_date, pickup_time: str, dropoff_date, dropoff_time: str) -> float:
    pickup = combine_date_time(pickup_date, pickup_time)
    dropoff = combine_date_time(dropoff_date, dropoff_time)
    return (dropoff - pickup).total_seconds() / 3600


def is_weekend_block_start(dt: datetime) -> bool:
    if dt.weekday() == WEEKEND_START_WEEKDAY and dt.hour >= WEEKEND_START_HOUR:
        return True
    return dt.weekday() in WEEKEND_FULL_DAYS


def classify_block(dt: datetime) -> DayType:
    return DayType.WEEKEND if is_weekend_block_start(dt) else DayType.WEEKDAY


def format_duration(total_hours: float, extra_hours: float) -> str:
    days = math.floor(total_hours / HOURS_PER_BLOCK)
    hours = math.ceil(extra_hours)
    if hours > 0:
        return f"{days} days {hours} hours"
    return f"{days} days"


def get_booking_period(pickup_date, pickup_time: str, dropoff_date, dropoff_time: str) -> BookingPeriod:
    pickup = combine_date_time(pickup_date, pickup_time)
    dropoff = combine_date_time(dropoff_date, dropoff_time)

    total_hours = (dropoff - pickup).total_seconds() / 3600
    if total_hours <= 0:
        return BookingPeriod()

    full_days = math.floor(total_hours / HOURS_PER_BLOCK)
    remainder = total_hours % HOURS_PER_BLOCK

    # Past the hourly window the trailing partial day becomes a full block
    if total_hours > HOURS_PER_BLOCK + EXTRA_HOUR_WINDOW and remainder > 0:
        blocks_to_bill = full_days + 1
    else:
        blocks_to_bill = max(full_days, 1)

    blocks: List[BillingBlock] = []
    block_start = pickup
    for _ in range(blocks_to_bill):
        blocks.append(BillingBlock(start=block_start, day_type=classify_block(block_start)))
        block_start += timedelta(hours=HOURS_PER_BLOCK)

    weekend_count = sum(1 for b in blocks if b.day_type == DayType.WEEKEND)
    weekday_count = len(blocks) - weekend_count

    last_day_type = DayType.WEEKDAY
    if HOURS_PER_BLOCK < total_hours <= HOURS_PER_BLOCK + EXTRA_HOUR_WINDOW and remainder > 0:
        last_day_type = classify_block(pickup + timedelta(hours=HOURS_PER_BLOCK * full_days))

    # Shown for every multi-day booking, billed only inside the hourly window
    extra_hours = remainder if total_hours > HOURS_PER_BLOCK else 0.0

    return BookingPeriod(
        total_hours=total_hours,
        duration=format_duration(total_hours, extra_hours),
        weekday_count=weekday_count,
        weekend_count=weekend_count,
        extra_hours=extra_hours,
        last_day_type_for_extra_hours=last_day_type,
        blocks=tuple(blocks),
    )


def _rate_for(day_type: DayType, weekday_rate: float, weekend_rate: float) -> float:
    return weekend_rate if day_type == DayType.WEEKEND else weekday_rate


def extra_hours_cost(period: BookingPeriod, weekday_rate: float, weekend_rate: float) -> float:
    """Hourly surcharge for bookings between 24 and 28 hours; zero otherwise."""
    if not HOURS_PER_BLOCK < period.total_hours <= HOURS_PER_BLOCK + EXTRA_HOUR_WINDOW:
        return 0.0
    daily_rate = _rate_for(period.last_day_type_for_extra_hours, weekday_rate, weekend_rate)
    hours_in_block = period.total_hours - math.floor(period.total_hours / HOURS_PER_BLOCK) * HOURS_PER_BLOCK
    return math.ceil(hours_in_block) * (daily_rate * EXTRA_HOUR_RATE)


def calculate_rent(period: BookingPeriod, weekday_rate: float, weekend_rate: float) -> float:
    if period.is_empty:
        return 0.0

    if period.total_hours <= HOURS_PER_BLOCK:
        return weekday_rate if period.weekday_count > 0 else weekend_rate

    rent = period.weekday_count * weekday_rate + period.weekend_count * weekend_rate
    return rent + extra_hours_cost(period, weekday_rate, weekend_rate)


def describe_calculation(period: BookingPeriod, weekday_rate: float, weekend_rate: float, quantity: int = 1) -> dict:
    subtotal = calculate_rent(period, weekday_rate, weekend_rate)
    return {
        "weekday_count": period.weekday_count,
        "weekend_count": period.weekend_count,
        "extra_hours": period.extra_hours,
        "extra_hours_cost": extra_hours_cost(period, weekday_rate, weekend_rate),
        "last_day_type_for_extra_hours": period.last_day_type_for_extra_hours.value,
        "weekday_total": period.weekday_count * weekday_rate,
        "weekend_total": period.weekend_count * weekend_rate,
        "subtotal": subtotal,
        "total_rent": subtotal * quantity,
        "blocks": [
            {
                "start": b.start,
                "day_type": b.day_type.value,
                "rate": _rate_for(b.day_type, weekday_rate, weekend_rate),
            }
            for b in period.blocks
        ],
    }


def policy_constants() -> dict:
    return {
        "tax_percentage": TAX_PERCENTAGE,
        "minimum_booking_hours": MINIMUM_BOOKING_HOURS,
        "extra_hour_rate": EXTRA_HOUR_RATE,
        "extra_hour_window": EXTRA_HOUR_WINDOW,
        "hours_per_block": HOURS_PER_BLOCK,
        "weekend_window": {
            "starts": {"weekday": "Thursday", "hour": WEEKEND_START_HOUR},
            "ends": {"weekday": "Sunday", "hour": 23, "minute": 59},
        },
    }
