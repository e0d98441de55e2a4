# backend/fitchain/routes/leaderboard_routes.py

from datetime import datetime

from flask import Blueprint, request

from ..responses import success
from ..schemas import FinalizeStakeRequest, LeaderboardQuery, parse
from ..services.leaderboards import group_leaderboard, stake_leaderboard
from ..services.stakes import finalize_stake

leaderboards_bp = Blueprint("leaderboards", __name__)


@leaderboards_bp.route("", methods=["GET"])
def get_leaderboard():
    """
    ?stakeId=3                       -> ranking inside one stake
    ?groupId=1&type=weekly&date=...  -> daily / weekly / alltime group board
    """
    query = parse(LeaderboardQuery, request.args.to_dict())
    if query.stake_id is not None:
        return success(stake_leaderboard(query.stake_id))

    on_date = query.on_date or datetime.utcnow().date()
    return success(group_leaderboard(query.group_id, query.type, on_date))


@leaderboards_bp.route("", methods=["POST"])
def finalize():
    body = parse(FinalizeStakeRequest, request.get_json(silent=True))
    result = finalize_stake(body.stake_id)
    return success(result, "Stake finalized successfully")
