# backend/fitchain/routes/users_routes.py

from flask import Blueprint, current_app, request
from flask_jwt_extended import create_access_token, get_jwt_identity, jwt_required

from .. import db
from ..errors import NotFound
from ..leveling import get_achievements, get_xp_progress
from ..models.user import User
from ..responses import success
from ..schemas import CreateUserRequest, UpdateUserStatsRequest, UserSearchQuery, parse
from ..services.users import get_or_create_user, search_users, update_user_stats

users_bp = Blueprint("users", __name__)


@users_bp.route("", methods=["POST"])
def create_or_get_user():
    """
    Body:
    {
      "username": "alice",
      "verification_type": "guest" | "worldid" | "wallet",
      "wallet_address": "0x...",      // optional
      "nullifier_hash": "0x..."       // optional
    }
    """
    body = parse(CreateUserRequest, request.get_json(silent=True))

    user, outcome = get_or_create_user(
        body.username,
        verification_type=body.verification_type,
        wallet_address=body.wallet_address,
        nullifier_hash=body.nullifier_hash,
    )
    data = {"user": user.to_dict()}
    # existing accounts sign in through /api/verify
    if outcome != "found":
        data["token"] = create_access_token(identity=str(user.id))

    messages = {
        "created": "User created successfully",
        "upgraded": "User upgraded successfully",
        "found": "User already exists",
    }
    return success(
        data,
        messages[outcome],
        201 if outcome == "created" else 200,
    )


@users_bp.route("", methods=["GET"])
def find_users():
    query = parse(UserSearchQuery, request.args.to_dict())
    users = search_users(query.q, limit=query.limit, exclude_user_id=query.current_user_id)
    return success(users)


@users_bp.route("", methods=["PUT"])
def update_stats():
    body = parse(UpdateUserStatsRequest, request.get_json(silent=True))
    user = update_user_stats(body.user_id, **body.model_dump(exclude={"user_id"}))
    current_app.logger.info(f"[users] stats updated for user_id={user.id}")
    return success(user.to_dict(), "User stats updated successfully")


@users_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    payload = user.to_dict()
    payload["progress"] = get_xp_progress(user.total_xp)
    payload["achievements"] = get_achievements(user.total_xp, user.streak, user.total_entries)
    return success(payload)
