# backend/fitchain/services/food_entries.py
"""
Food-entry recording and stake qualification.

``record_entry`` runs as one transaction:
  1. resolve the meal window (captured on the row, never recomputed later)
  2. insert the entry
  3. bump the user's aggregate totals, level and streak
  4. for entries made inside the window of an active stake: bump participant counters and
     re-check the min-images qualification (true is never reset to false)
  5. upsert today's user_stats_history row
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.dialects import mysql, postgresql, sqlite

from .. import db
from ..errors import ConfigurationMissing, NotFound
from ..leveling import compute_entry_xp, compute_level, next_streak
from ..models.food_entry import FoodEntry
from ..models.meal_window import MEAL_TYPES
from ..models.stake import Stake, StakeParticipant
from ..models.user import User
from ..models.user_stats_history import UserStatsHistory
from .meal_windows import ResolvedWindow, resolve_window

ENTRY_METADATA_FIELDS = (
    "group_id",
    "confidence",
    "cuisine",
    "portion_size",
    "ingredients",
    "cooking_method",
    "nutrients",
    "health_score",
    "allergens",
    "alternatives",
)


def _resolve_entry_window(meal_type: Optional[str], now: datetime) -> Optional[ResolvedWindow]:
    if meal_type not in MEAL_TYPES:
        return None
    try:
        return resolve_window(meal_type, now)
    except ConfigurationMissing:
        current_app.logger.warning(
            f"[food_entries] no active meal window for '{meal_type}', recording without one"
        )
        return None


def _bump_user_totals(user: User, calories: int, xp: int, today: date) -> None:
    db.session.execute(
        update(User)
        .where(User.id == user.id)
        .values(
            total_calories=User.total_calories + calories,
            total_xp=User.total_xp + xp,
            total_entries=User.total_entries + 1,
        )
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(user, ["total_xp", "streak", "last_entry_date"])

    user.level = compute_level(user.total_xp)
    user.streak = next_streak(user.streak, user.last_entry_date, today)
    user.last_entry_date = today


def _daily_stats_upsert(dialect_name: str, user_id: int, today: date, calories: int, xp: int):
    """Single-statement insert-or-accumulate on (user_id, stat_date)."""
    values = dict(
        user_id=user_id, stat_date=today, calories=calories, xp_earned=xp, entries_count=1
    )
    if dialect_name == "mysql":
        stmt = mysql.insert(UserStatsHistory).values(**values)
        incoming = stmt.inserted
        return stmt.on_duplicate_key_update(
            calories=UserStatsHistory.calories + incoming.calories,
            xp_earned=UserStatsHistory.xp_earned + incoming.xp_earned,
            entries_count=UserStatsHistory.entries_count + 1,
        )

    dialect_insert = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}.get(dialect_name)
    if dialect_insert is None:
        raise ConfigurationMissing(f"Daily stats upsert is not supported on {dialect_name}")
    stmt = dialect_insert(UserStatsHistory).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["user_id", "stat_date"],
        set_={
            "calories": UserStatsHistory.calories + stmt.excluded.calories,
            "xp_earned": UserStatsHistory.xp_earned + stmt.excluded.xp_earned,
            "entries_count": UserStatsHistory.entries_count + 1,
        },
    )


def _upsert_daily_stats(user_id: int, today: date, calories: int, xp: int) -> None:
    dialect_name = db.session.get_bind().dialect.name
    db.session.execute(_daily_stats_upsert(dialect_name, user_id, today, calories, xp))


def _track_stake_submission(
    entry: FoodEntry, window: Optional[ResolvedWindow], stake: Stake
) -> bool:
    """Update participant counters for an in-window stake entry. Returns validity."""
    if stake.status != "active" or entry.created_at > stake.end_time:
        current_app.logger.info(
            f"[food_entries] entry_id={entry.id} not counted, stake_id={stake.id} "
            f"is {stake.status} and ends {stake.end_time.isoformat()}"
        )
        return False

    if window is not None and not window.contains(entry.created_at):
        current_app.logger.info(
            f"[food_entries] entry_id={entry.id} outside {window.meal_type} window, "
            f"not counted for stake_id={entry.stake_id}"
        )
        return False

    participant = (
        StakeParticipant.query.filter_by(stake_id=entry.stake_id, user_id=entry.user_id)
        .with_for_update()
        .first()
    )
    if participant is None:
        return False

    db.session.execute(
        update(StakeParticipant)
        .where(StakeParticipant.id == participant.id)
        .values(
            calories_tracked=StakeParticipant.calories_tracked + entry.calories,
            images_submitted=StakeParticipant.images_submitted + 1,
        )
        .execution_options(synchronize_session=False)
    )

    if window is None or participant.is_qualified:
        return True

    in_window = (
        db.session.query(func.count(FoodEntry.id))
        .filter(
            FoodEntry.stake_id == entry.stake_id,
            FoodEntry.user_id == entry.user_id,
            FoodEntry.meal_type == window.meal_type,
            FoodEntry.created_at >= window.window_start,
            FoodEntry.created_at <= window.window_end,
        )
        .scalar()
    )
    if int(in_window or 0) >= window.min_images:
        participant.is_qualified = True
        current_app.logger.info(
            f"[food_entries] user_id={entry.user_id} qualified for stake_id={entry.stake_id}"
        )
    return True


def record_entry(
    user_id: int,
    food_name: str,
    calories: int,
    image_url: str,
    xp_earned: Optional[int] = None,
    stake_id: Optional[int] = None,
    meal_type: Optional[str] = None,
    now: Optional[datetime] = None,
    **metadata: Any,
) -> Dict[str, Any]:
    """
    Record one food entry. Returns ``{"entry": {...}, "counted_for_stake": bool | None}``.
    """
    now = now or datetime.utcnow()
    today = now.date()

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    stake = db.session.get(Stake, stake_id) if stake_id is not None else None
    if stake_id is not None and stake is None:
        raise NotFound("Stake not found")

    if xp_earned is None:
        xp_earned = compute_entry_xp(calories, user.streak, food_name)

    try:
        window = _resolve_entry_window(meal_type, now)

        entry = FoodEntry(
            user_id=user_id,
            stake_id=stake_id,
            food_name=food_name,
            calories=calories,
            xp_earned=xp_earned,
            image_url=image_url,
            meal_type=meal_type,
            meal_window_start=window.window_start if window else None,
            meal_window_end=window.window_end if window else None,
            created_at=now,
            **{k: v for k, v in metadata.items() if k in ENTRY_METADATA_FIELDS},
        )
        db.session.add(entry)
        db.session.flush()

        _bump_user_totals(user, calories, xp_earned, today)

        counted = None
        if stake is not None:
            counted = _track_stake_submission(entry, window, stake)

        _upsert_daily_stats(user_id, today, calories, xp_earned)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return {"entry": entry.to_dict(), "counted_for_stake": counted}


def list_entries(
    user_id: Optional[int] = None,
    group_id: Optional[int] = None,
    stake_id: Optional[int] = None,
    meal_type: Optional[str] = None,
    on_date: Optional[date] = None,
    limit: int = 50,
) -> List[FoodEntry]:
    q = FoodEntry.query
    if user_id is not None:
        q = q.filter(FoodEntry.user_id == user_id)
    if group_id is not None:
        q = q.filter(FoodEntry.group_id == group_id)
    if stake_id is not None:
        q = q.filter(FoodEntry.stake_id == stake_id)
    if meal_type:
        q = q.filter(FoodEntry.meal_type == meal_type)
    if on_date is not None:
        day_start = datetime.combine(on_date, datetime.min.time())
        day_end = datetime.combine(on_date, datetime.max.time())
        q = q.filter(FoodEntry.created_at >= day_start, FoodEntry.created_at <= day_end)

    return q.order_by(FoodEntry.created_at.desc(), FoodEntry.id.desc()).limit(limit).all()
