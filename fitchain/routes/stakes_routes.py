# backend/fitchain/routes/stakes_routes.py

from flask import Blueprint, request

from ..responses import success
from ..schemas import CreateStakeRequest, JoinStakeRequest, LeaveStakeQuery, StakeQuery, parse
from ..services.stakes import (
    create_stake,
    get_stake_detail,
    join_stake,
    leave_stake,
    list_stakes,
)

stakes_bp = Blueprint("stakes", __name__)


@stakes_bp.route("", methods=["POST"])
def create():
    """
    Body:
    {
      "group_id": 1,
      "creator_id": 2,
      "competition_type": "daily" | "meal",
      "meal_type": "lunch",             // required for meal stakes
      "stake_amount": "5.00",
      "start_time": "2025-06-01T14:00:00Z"
    }
    """
    body = parse(CreateStakeRequest, request.get_json(silent=True))
    stake = create_stake(
        body.group_id,
        body.creator_id,
        body.competition_type,
        body.stake_amount,
        body.start_time,
        meal_type=body.meal_type,
    )
    return success(stake.to_dict(), "Stake created successfully", 201)


@stakes_bp.route("", methods=["GET"])
def get_stakes():
    query = parse(StakeQuery, request.args.to_dict())
    if query.stake_id is not None:
        return success(get_stake_detail(query.stake_id))
    return success(
        list_stakes(status=query.status, group_id=query.group_id, user_id=query.user_id)
    )


@stakes_bp.route("/join", methods=["POST"])
def join():
    body = parse(JoinStakeRequest, request.get_json(silent=True))
    participant = join_stake(body.stake_id, body.user_id, body.amount)
    return success(participant.to_dict(), "Successfully joined stake", 201)


@stakes_bp.route("/join", methods=["DELETE"])
def leave():
    query = parse(LeaveStakeQuery, request.args.to_dict())
    cancelled = leave_stake(query.stake_id, query.user_id)
    return success({"stake_cancelled": cancelled}, "Successfully left stake")
