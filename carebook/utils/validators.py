# carebook/utils/validators.py - explicit per-endpoint input checks

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Generic, List, Optional, TypeVar, Union

from carebook.utils.errors import ValidationError

T = TypeVar("T")

# Pre-compiled HH:mm pattern (00:00 - 23:59)
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

MIN_DURATION_MINUTES = 15


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    detail: str
    field: Optional[str] = None


Result = Union[Ok, Invalid]


def unwrap(result: Result) -> Any:
    """Return the validated value or raise ValidationError for the API handler"""
    if isinstance(result, Invalid):
        raise ValidationError(result.detail, details={"field": result.field})
    return result.value


def is_time_slot(value: str) -> bool:
    return bool(value) and TIME_PATTERN.match(value) is not None


def validate_date_param(value: str, field: str = "date") -> Result:
    """Parse a YYYY-MM-DD query/path value"""
    if not value:
        return Invalid(f"{field} is required (YYYY-MM-DD)", field)
    try:
        return Ok(datetime.strptime(value, "%Y-%m-%d").date())
    except ValueError:
        return Invalid(f"{field} must be a date in YYYY-MM-DD format. Got: {value}", field)


def validate_date_range(start: Optional[date], end: Optional[date]) -> Result:
    if start and end and start > end:
        return Invalid("start_date must not be after end_date", "start_date")
    return Ok((start, end))


def validate_create_booking(payload) -> Result:
    """Checks a BookingCreate payload beyond what its field types guarantee"""
    for field in ("start_time", "end_time"):
        value = getattr(payload, field)
        if not is_time_slot(value):
            return Invalid(f"{field} must be in format HH:mm (e.g., 09:00)", field)

    if payload.start_time >= payload.end_time:
        return Invalid("end_time must be later than start_time", "end_time")

    if payload.duration_minutes < MIN_DURATION_MINUTES:
        return Invalid(f"duration_minutes must be at least {MIN_DURATION_MINUTES}", "duration_minutes")

    if payload.consultation_fee < 0:
        return Invalid("consultation_fee must not be negative", "consultation_fee")

    return Ok(payload)


def validate_schedule_items(items: List) -> Result:
    if not items:
        return Invalid("At least one schedule is required", "schedules")

    seen = set()
    for index, item in enumerate(items):
        if not is_time_slot(item.time_slot):
            return Invalid("time_slot must be in format HH:mm (e.g., 09:00, 14:30)", f"schedules.{index}.time_slot")
        if item.duration_minutes < MIN_DURATION_MINUTES:
            return Invalid(
                f"duration_minutes must be at least {MIN_DURATION_MINUTES}",
                f"schedules.{index}.duration_minutes"
            )

        key = (item.day_of_week, item.time_slot)
        if key in seen:
            return Invalid(
                f"Duplicate schedule {item.day_of_week.value} {item.time_slot}",
                f"schedules.{index}"
            )
        seen.add(key)

    return Ok(items)


def validate_schedule_update(payload) -> Result:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return Invalid("No schedule fields to update")

    if "time_slot" in changes and not is_time_slot(changes["time_slot"]):
        return Invalid("time_slot must be in format HH:mm (e.g., 09:00, 14:30)", "time_slot")
    if "duration_minutes" in changes and changes["duration_minutes"] < MIN_DURATION_MINUTES:
        return Invalid(f"duration_minutes must be at least {MIN_DURATION_MINUTES}", "duration_minutes")

    return Ok(changes)


def validate_create_order(payload) -> Result:
    if not payload.items:
        return Invalid("Order must contain at least one item", "items")

    product_ids = [item.product_id for item in payload.items]
    if len(set(product_ids)) != len(product_ids):
        return Invalid("Each product may appear only once per order", "items")

    for index, item in enumerate(payload.items):
        if item.quantity < 1:
            return Invalid("quantity must be at least 1", f"items.{index}.quantity")

    if payload.shipping_cost < 0:
        return Invalid("shipping_cost must not be negative", "shipping_cost")

    return Ok(payload)
