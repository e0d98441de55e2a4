# backend/fitchain/services/stakes.py
"""
Stake lifecycle: create, join, leave, finalize.

Invariant: ``stakes.total_pool`` equals the sum of ``stake_participants.amount``
for the stake. Pool changes are applied as SQL expressions in the same
transaction as the participant row change.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from .. import db
from ..errors import (
    AlreadyJoined,
    ConfigurationMissing,
    NotAuthorized,
    NotFound,
    NotReady,
    TooLateToLeave,
    ValidationError,
)
from ..models.group import Group, GroupMember
from ..models.stake import COMPETITION_TYPES, Stake, StakeParticipant
from ..models.meal_window import MEAL_TYPES
from .meal_windows import resolve_window

DAILY_STAKE_DURATION = timedelta(hours=24)
CENTS = Decimal("0.01")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _to_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value)).quantize(CENTS)
    except Exception:
        raise ValidationError("amount must be a number")
    if amount <= 0:
        raise ValidationError("amount must be greater than zero")
    return amount


def is_group_member(group_id: int, user_id: int) -> bool:
    return (
        GroupMember.query.filter_by(group_id=group_id, user_id=user_id).first()
        is not None
    )


def _adjust_pool(stake_id: int, delta: Decimal) -> None:
    db.session.execute(
        update(Stake)
        .where(Stake.id == stake_id)
        .values(total_pool=Stake.total_pool + delta)
        .execution_options(synchronize_session=False)
    )


def compute_end_time(
    competition_type: str, start_time: datetime, meal_type: Optional[str] = None
) -> datetime:
    if competition_type == "daily":
        return start_time + DAILY_STAKE_DURATION

    try:
        return resolve_window(meal_type, start_time).window_end
    except ConfigurationMissing:
        hours = current_app.config.get("DEFAULT_MEAL_WINDOW_HOURS", 2)
        current_app.logger.warning(
            f"[stakes] no meal window for '{meal_type}', defaulting to {hours}h"
        )
        return start_time + timedelta(hours=hours)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def create_stake(
    group_id: int,
    creator_id: int,
    competition_type: str,
    amount,
    start_time: datetime,
    meal_type: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Stake:
    now = now or datetime.utcnow()
    if competition_type not in COMPETITION_TYPES:
        raise ValidationError("competition_type must be 'daily' or 'meal'")
    if competition_type == "meal" and meal_type not in MEAL_TYPES:
        raise ValidationError("meal_type is required for meal competitions")
    amount = _to_amount(amount)

    if db.session.get(Group, group_id) is None:
        raise NotFound("Group not found")
    if not is_group_member(group_id, creator_id):
        raise NotAuthorized("User is not a member of this group")

    end_time = compute_end_time(competition_type, start_time, meal_type)

    try:
        stake = Stake(
            group_id=group_id,
            creator_id=creator_id,
            competition_type=competition_type,
            meal_type=meal_type if competition_type == "meal" else None,
            stake_amount=amount,
            total_pool=amount,
            start_time=start_time,
            end_time=end_time,
            status="active",
            created_at=now,
        )
        db.session.add(stake)
        db.session.flush()

        db.session.add(
            StakeParticipant(
                stake_id=stake.id, user_id=creator_id, amount=amount, joined_at=now
            )
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"[stakes] created stake_id={stake.id} group_id={group_id} "
        f"type={competition_type} end_time={end_time.isoformat()}"
    )
    return stake


def join_stake(
    stake_id: int, user_id: int, amount, now: Optional[datetime] = None
) -> StakeParticipant:
    now = now or datetime.utcnow()
    amount = _to_amount(amount)

    stake = db.session.get(Stake, stake_id)
    if stake is None or stake.status != "active" or stake.end_time <= now:
        raise NotFound("Stake not found or not active")

    if not is_group_member(stake.group_id, user_id):
        raise NotAuthorized("User is not a member of this group")

    existing = StakeParticipant.query.filter_by(stake_id=stake_id, user_id=user_id).first()
    if existing:
        raise AlreadyJoined("User is already participating in this stake")

    try:
        participant = StakeParticipant(
            stake_id=stake_id, user_id=user_id, amount=amount, joined_at=now
        )
        db.session.add(participant)
        db.session.flush()
        _adjust_pool(stake_id, amount)
        db.session.commit()
    except IntegrityError:
        # concurrent join raced us past the unique constraint
        db.session.rollback()
        raise AlreadyJoined("User is already participating in this stake")
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"[stakes] user_id={user_id} joined stake_id={stake_id}")
    return participant


def leave_stake(stake_id: int, user_id: int, now: Optional[datetime] = None) -> bool:
    """Leave before the stake starts. Returns True when the stake was cancelled."""
    now = now or datetime.utcnow()

    stake = db.session.get(Stake, stake_id)
    if stake is None:
        raise NotFound("Stake not found")
    if stake.status != "active" or now >= stake.start_time:
        raise TooLateToLeave("Cannot leave stake that has already started or is not active")

    participant = StakeParticipant.query.filter_by(stake_id=stake_id, user_id=user_id).first()
    if participant is None:
        raise NotFound("User is not participating in this stake")

    cancelled = False
    try:
        refund = participant.amount
        db.session.delete(participant)
        db.session.flush()
        _adjust_pool(stake_id, -refund)

        remaining = (
            db.session.query(func.count(StakeParticipant.id))
            .filter(StakeParticipant.stake_id == stake_id)
            .scalar()
        )
        if not remaining:
            stake.status = "cancelled"
            cancelled = True

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"[stakes] user_id={user_id} left stake_id={stake_id} cancelled={cancelled}"
    )
    return cancelled


def finalize_stake(stake_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Complete an ended stake and pick its winner.

    Winner: qualified participant with the most calories tracked, earliest
    joiner on ties. No qualified participant completes the stake with no winner.
    """
    now = now or datetime.utcnow()

    stake = db.session.get(Stake, stake_id)
    if stake is None:
        raise NotFound("Stake not found")
    if stake.status != "active" or stake.end_time > now:
        raise NotReady("Stake is not ready to be finalized")

    try:
        winner = (
            StakeParticipant.query.filter_by(stake_id=stake_id, is_qualified=True)
            .order_by(
                StakeParticipant.calories_tracked.desc(),
                StakeParticipant.joined_at.asc(),
                StakeParticipant.id.asc(),
            )
            .first()
        )

        stake.status = "completed"
        stake.winner_id = winner.user_id if winner else None
        winner_username = winner.user.username if winner else None
        total_pool = float(stake.total_pool or 0)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"[stakes] finalized stake_id={stake_id} winner_id={stake.winner_id}"
    )
    return {
        "stake_id": stake_id,
        "winner_id": stake.winner_id,
        "winner_username": winner_username,
        "total_pool": total_pool,
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_stake_detail(stake_id: int) -> Dict[str, Any]:
    stake = db.session.get(Stake, stake_id)
    if stake is None:
        raise NotFound("Stake not found")

    participants = (
        StakeParticipant.query.filter_by(stake_id=stake_id)
        .order_by(StakeParticipant.calories_tracked.desc(), StakeParticipant.joined_at.asc())
        .all()
    )
    payload = stake.to_dict()
    payload["participants"] = [p.to_dict() for p in participants]
    return payload


def list_stakes(
    status: str = "active",
    group_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    counts = (
        db.session.query(
            StakeParticipant.stake_id,
            func.count(StakeParticipant.id).label("participant_count"),
        )
        .group_by(StakeParticipant.stake_id)
        .subquery()
    )

    q = (
        db.session.query(Stake, func.coalesce(counts.c.participant_count, 0))
        .outerjoin(counts, counts.c.stake_id == Stake.id)
        .filter(Stake.status == status)
    )
    if group_id is not None:
        q = q.filter(Stake.group_id == group_id)
    if user_id is not None:
        q = q.filter(
            Stake.participants.any(StakeParticipant.user_id == user_id)
        )

    rows = q.order_by(Stake.created_at.desc(), Stake.id.desc()).all()

    payload = []
    for stake, participant_count in rows:
        item = stake.to_dict()
        item["participant_count"] = int(participant_count or 0)
        payload.append(item)
    return payload
