# backend/fitchain/services/leaderboards.py
"""
Read-only leaderboards for a stake or a group.

Ranks are sequential integers starting at 1. Members with no history rows
count as zero.
"""
from datetime import date, timedelta
from typing import Any, Dict, List, Tuple

from sqlalchemy import and_, func

from .. import db
from ..errors import NotFound, ValidationError
from ..models.food_entry import FoodEntry
from ..models.group import Group, GroupMember
from ..models.stake import Stake, StakeParticipant
from ..models.user import User
from ..models.user_stats_history import UserStatsHistory

LEADERBOARD_TYPES = ("daily", "weekly", "alltime")


def week_bounds(day: date) -> Tuple[date, date]:
    """Sunday-started calendar week containing ``day``."""
    days_since_sunday = (day.weekday() + 1) % 7
    start = day - timedelta(days=days_since_sunday)
    return start, start + timedelta(days=6)


def _ranked(rows) -> List[Dict[str, Any]]:
    board = []
    for rank, row in enumerate(rows, start=1):
        row["rank"] = rank
        board.append(row)
    return board


def stake_leaderboard(stake_id: int) -> List[Dict[str, Any]]:
    if db.session.get(Stake, stake_id) is None:
        raise NotFound("Stake not found")

    xp_sum = func.coalesce(func.sum(FoodEntry.xp_earned), 0)
    rows = (
        db.session.query(StakeParticipant, User.username, xp_sum)
        .join(User, StakeParticipant.user_id == User.id)
        .outerjoin(
            FoodEntry,
            and_(
                FoodEntry.user_id == StakeParticipant.user_id,
                FoodEntry.stake_id == StakeParticipant.stake_id,
            ),
        )
        .filter(StakeParticipant.stake_id == stake_id)
        .group_by(StakeParticipant.id, User.username)
        .order_by(
            StakeParticipant.calories_tracked.desc(),
            StakeParticipant.images_submitted.desc(),
            StakeParticipant.joined_at.asc(),
        )
        .all()
    )

    return _ranked(
        {
            "user_id": participant.user_id,
            "username": username,
            "calories": int(participant.calories_tracked or 0),
            "images_count": int(participant.images_submitted or 0),
            "xp_earned": int(xp or 0),
            "is_qualified": bool(participant.is_qualified),
        }
        for participant, username, xp in rows
    )


def _history_board(group_id: int, start: date, end: date):
    calories = func.coalesce(func.sum(UserStatsHistory.calories), 0)
    entries = func.coalesce(func.sum(UserStatsHistory.entries_count), 0)
    xp = func.coalesce(func.sum(UserStatsHistory.xp_earned), 0)

    return (
        db.session.query(GroupMember.user_id, User.username, calories, entries, xp)
        .join(User, GroupMember.user_id == User.id)
        .outerjoin(
            UserStatsHistory,
            and_(
                UserStatsHistory.user_id == GroupMember.user_id,
                UserStatsHistory.stat_date >= start,
                UserStatsHistory.stat_date <= end,
            ),
        )
        .filter(GroupMember.group_id == group_id)
        .group_by(GroupMember.user_id, User.username)
        .order_by(calories.desc(), xp.desc(), GroupMember.user_id.asc())
        .all()
    )


def _alltime_board(group_id: int):
    return (
        db.session.query(
            GroupMember.user_id,
            User.username,
            User.total_calories,
            User.total_entries,
            User.total_xp,
        )
        .join(User, GroupMember.user_id == User.id)
        .filter(GroupMember.group_id == group_id)
        .order_by(User.total_calories.desc(), User.total_xp.desc(), GroupMember.user_id.asc())
        .all()
    )


def group_leaderboard(group_id: int, board_type: str, on_date: date) -> List[Dict[str, Any]]:
    if board_type not in LEADERBOARD_TYPES:
        raise ValidationError("type must be one of daily, weekly, alltime")
    if db.session.get(Group, group_id) is None:
        raise NotFound("Group not found")

    if board_type == "daily":
        rows = _history_board(group_id, on_date, on_date)
    elif board_type == "weekly":
        rows = _history_board(group_id, *week_bounds(on_date))
    else:
        rows = _alltime_board(group_id)

    return _ranked(
        {
            "user_id": user_id,
            "username": username,
            "calories": int(calories or 0),
            "images_count": int(entries or 0),
            "xp_earned": int(xp or 0),
            "is_qualified": True,
        }
        for user_id, username, calories, entries, xp in rows
    )
