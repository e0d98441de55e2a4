# backend/fitchain/services/groups.py
"""
Groups and memberships.

While a group has members exactly one of them is admin. When the creator
leaves, ownership moves to the next member by join time; when the last member
leaves, the group is deleted.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func

from .. import db
from ..errors import Conflict, GroupFull, NotFound
from ..models.group import Group, GroupMember
from ..models.user import User


def create_group(
    name: str,
    creator_id: int,
    description: Optional[str] = None,
    is_private: bool = True,
    max_members: int = 10,
) -> Group:
    if db.session.get(User, creator_id) is None:
        raise NotFound("User not found")

    try:
        group = Group(
            name=name,
            description=description,
            creator_id=creator_id,
            is_private=is_private,
            max_members=max_members,
        )
        db.session.add(group)
        db.session.flush()

        db.session.add(GroupMember(group_id=group.id, user_id=creator_id, role="admin"))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"[groups] created group_id={group.id} creator_id={creator_id}")
    return group


def get_group_detail(group_id: int) -> Dict[str, Any]:
    group = db.session.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")

    payload = group.to_dict()
    payload["members"] = [m.to_dict() for m in group.members]
    payload["member_count"] = len(group.members)
    return payload


def list_user_groups(user_id: int) -> List[Dict[str, Any]]:
    counts = (
        db.session.query(GroupMember.group_id, func.count(GroupMember.id).label("member_count"))
        .group_by(GroupMember.group_id)
        .subquery()
    )
    rows = (
        db.session.query(Group, GroupMember.role, counts.c.member_count)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .join(counts, counts.c.group_id == Group.id)
        .filter(GroupMember.user_id == user_id)
        .order_by(Group.created_at.desc(), Group.id.desc())
        .all()
    )

    payload = []
    for group, role, member_count in rows:
        item = group.to_dict()
        item["role"] = role
        item["member_count"] = int(member_count or 0)
        payload.append(item)
    return payload


def join_group(group_id: int, user_id: int, now: Optional[datetime] = None) -> GroupMember:
    now = now or datetime.utcnow()

    group = db.session.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")
    if db.session.get(User, user_id) is None:
        raise NotFound("User not found")

    if GroupMember.query.filter_by(group_id=group_id, user_id=user_id).first():
        raise Conflict("User is already a member of this group", status_code=400)

    current_members = GroupMember.query.filter_by(group_id=group_id).count()
    if current_members >= group.max_members:
        raise GroupFull("Group is full")

    try:
        member = GroupMember(group_id=group_id, user_id=user_id, role="member", joined_at=now)
        db.session.add(member)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return member


def leave_group(group_id: int, user_id: int) -> bool:
    """Remove a member. Returns True when the group was deleted."""
    member = GroupMember.query.filter_by(group_id=group_id, user_id=user_id).first()
    if member is None:
        raise NotFound("User is not a member of this group")

    group = member.group
    deleted = False
    try:
        if group.creator_id == user_id:
            successor = (
                GroupMember.query.filter(
                    GroupMember.group_id == group_id,
                    GroupMember.user_id != user_id,
                )
                .order_by(GroupMember.joined_at.asc(), GroupMember.id.asc())
                .first()
            )
            if successor is None:
                db.session.delete(group)
                deleted = True
            else:
                group.creator_id = successor.user_id
                successor.role = "admin"

        if not deleted:
            db.session.delete(member)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"[groups] user_id={user_id} left group_id={group_id} deleted={deleted}"
    )
    return deleted
