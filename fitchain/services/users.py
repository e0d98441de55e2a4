# backend/fitchain/services/users.py
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app

from .. import db
from ..errors import NotAuthorized, NotFound
from ..models.user import User

STAT_FIELDS = ("total_calories", "total_xp", "streak", "level", "total_entries")


def get_or_create_user(
    username: str,
    verification_type: str = "guest",
    wallet_address: Optional[str] = None,
    nullifier_hash: Optional[str] = None,
) -> Tuple[User, str]:
    """
    Returns (user, outcome) where outcome is "created", "upgraded" or "found".

    A nullifier always resolves to the account it is bound to, whatever
    username accompanies it. A username whose account is bound to a different
    human raises NotAuthorized. An existing guest is upgraded when a verified
    type is supplied; verified users are never downgraded.
    """
    if nullifier_hash:
        bound = User.query.filter_by(nullifier_hash=nullifier_hash).first()
        if bound is not None:
            return bound, "found"

    user = User.query.filter_by(username=username).first()

    if user is not None:
        if nullifier_hash and user.verification_type != "guest":
            current_app.logger.warning(
                f"[users] identity mismatch for user_id={user.id}, refusing sign-in"
            )
            raise NotAuthorized("This username is linked to a different identity")
        if verification_type != "guest" and user.verification_type == "guest":
            user.verification_type = verification_type
            user.wallet_address = wallet_address or user.wallet_address
            user.nullifier_hash = nullifier_hash or user.nullifier_hash
            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            current_app.logger.info(
                f"[users] upgraded user_id={user.id} to {verification_type}"
            )
            return user, "upgraded"
        return user, "found"

    user = User(
        username=username,
        verification_type=verification_type,
        wallet_address=wallet_address,
        nullifier_hash=nullifier_hash,
    )
    try:
        db.session.add(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(f"[users] created user_id={user.id} type={verification_type}")
    return user, "created"


def search_users(
    query: str, limit: int = 10, exclude_user_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    q = User.query.filter(User.username.ilike(f"%{query}%"))
    if exclude_user_id is not None:
        q = q.filter(User.id != exclude_user_id)

    rows = q.order_by(User.total_xp.desc(), User.id.asc()).limit(limit).all()
    return [
        {
            "id": u.id,
            "username": u.username,
            "level": u.level or 1,
            "total_xp": u.total_xp or 0,
            "verification_type": u.verification_type,
        }
        for u in rows
    ]


def update_user_stats(user_id: int, **fields: Any) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    for key in STAT_FIELDS:
        value = fields.get(key)
        if value is not None:
            setattr(user, key, value)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return user
