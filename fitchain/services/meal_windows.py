# backend/fitchain/services/meal_windows.py
"""
Meal window resolution.

A window is stored as hour:minute pairs and resolved against the calendar date
of the evaluation instant, so a window never spans midnight.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from .. import db
from ..errors import ConfigurationMissing, NotFound, ValidationError
from ..models.food_entry import FoodEntry
from ..models.meal_window import DEFAULT_MEAL_WINDOWS, MEAL_TYPES, MealWindow


@dataclass(frozen=True)
class ResolvedWindow:
    meal_type: str
    window_start: datetime
    window_end: datetime
    min_images: int
    is_active: bool

    def contains(self, instant: datetime) -> bool:
        return self.window_start <= instant <= self.window_end


def get_active_window(meal_type: str) -> Optional[MealWindow]:
    return (
        MealWindow.query.filter_by(meal_type=meal_type, is_active=True)
        .order_by(MealWindow.id.asc())
        .first()
    )


def _at(day: datetime, hour: int, minute: int) -> datetime:
    return day.replace(hour=hour, minute=minute or 0, second=0, microsecond=0)


def resolve_window(meal_type: str, now: datetime) -> ResolvedWindow:
    """Resolve today's window for ``meal_type``; raises ConfigurationMissing."""
    if meal_type not in MEAL_TYPES:
        raise ValidationError(f"unknown meal type '{meal_type}'")

    window = get_active_window(meal_type)
    if window is None:
        raise ConfigurationMissing(f"no active meal window for '{meal_type}'")

    start = _at(now, window.start_hour, window.start_minute)
    end = _at(now, window.end_hour, window.end_minute)

    return ResolvedWindow(
        meal_type=meal_type,
        window_start=start,
        window_end=end,
        min_images=int(window.min_images or 0),
        is_active=start <= now <= end,
    )


def list_active_windows() -> List[MealWindow]:
    return (
        MealWindow.query.filter_by(is_active=True)
        .order_by(MealWindow.start_hour.asc(), MealWindow.start_minute.asc())
        .all()
    )


def window_statuses(
    now: datetime, user_id: Optional[int] = None, stake_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    """
    Per-window submission status for "now".

    ``current_images`` counts the user's entries of that meal type logged on
    today's date (optionally restricted to one stake).
    """
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start.replace(hour=23, minute=59, second=59, microsecond=999999)

    statuses = []
    for window in list_active_windows():
        start = _at(now, window.start_hour, window.start_minute)
        end = _at(now, window.end_hour, window.end_minute)
        is_active = start <= now <= end

        current_images = 0
        if user_id is not None:
            q = db.session.query(func.count(FoodEntry.id)).filter(
                FoodEntry.user_id == user_id,
                FoodEntry.meal_type == window.meal_type,
                FoodEntry.created_at >= day_start,
                FoodEntry.created_at <= day_end,
            )
            if stake_id is not None:
                q = q.filter(FoodEntry.stake_id == stake_id)
            current_images = int(q.scalar() or 0)

        remaining_ms = int((end - now).total_seconds() * 1000) if is_active else 0

        statuses.append(
            {
                "meal_type": window.meal_type,
                "is_active": is_active,
                "window_start": start.isoformat(),
                "window_end": end.isoformat(),
                "min_images": window.min_images,
                "current_images": current_images,
                "can_submit": is_active and current_images < window.min_images,
                "time_remaining": remaining_ms if remaining_ms > 0 else None,
            }
        )
    return statuses


def update_window(
    meal_type: str,
    start_hour: int,
    end_hour: int,
    start_minute: int = 0,
    end_minute: int = 0,
    min_images: int = 2,
) -> MealWindow:
    if (end_hour, end_minute) < (start_hour, start_minute):
        # windows crossing midnight are not supported
        raise ValidationError("meal window must end on the same day it starts")

    window = get_active_window(meal_type)
    if window is None:
        raise NotFound("Meal window not found")

    window.start_hour = start_hour
    window.start_minute = start_minute
    window.end_hour = end_hour
    window.end_minute = end_minute
    window.min_images = min_images

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return window


def seed_default_windows() -> int:
    """Insert the default windows when the table is empty. Returns rows added."""
    if MealWindow.query.count() > 0:
        return 0
    for row in DEFAULT_MEAL_WINDOWS:
        db.session.add(MealWindow(**row))
    db.session.commit()
    return len(DEFAULT_MEAL_WINDOWS)
