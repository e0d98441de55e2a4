# backend/fitchain/routes/groups_routes.py

from flask import Blueprint, request

from ..responses import success
from ..schemas import CreateGroupRequest, GroupQuery, JoinGroupRequest, LeaveGroupQuery, parse
from ..services.groups import (
    create_group,
    get_group_detail,
    join_group,
    leave_group,
    list_user_groups,
)

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("", methods=["POST"])
def create():
    body = parse(CreateGroupRequest, request.get_json(silent=True))
    group = create_group(
        body.name,
        body.creator_id,
        description=body.description,
        is_private=body.is_private,
        max_members=body.max_members,
    )
    return success(get_group_detail(group.id), "Group created successfully", 201)


@groups_bp.route("", methods=["GET"])
def get_groups():
    query = parse(GroupQuery, request.args.to_dict())
    if query.group_id is not None:
        return success(get_group_detail(query.group_id))
    return success(list_user_groups(query.user_id))


@groups_bp.route("/join", methods=["POST"])
def join():
    body = parse(JoinGroupRequest, request.get_json(silent=True))
    member = join_group(body.group_id, body.user_id)
    return success(member.to_dict(), "Successfully joined group", 201)


@groups_bp.route("/join", methods=["DELETE"])
def leave():
    query = parse(LeaveGroupQuery, request.args.to_dict())
    deleted = leave_group(query.group_id, query.user_id)
    return success({"group_deleted": deleted}, "Successfully left group")
