# backend/fitchain/routes/verify_routes.py

from flask import Blueprint, current_app, request
from flask_jwt_extended import create_access_token

from ..errors import ValidationError
from ..ratelimit import rate_limited
from ..responses import success
from ..schemas import VerifyRequest, parse
from ..services.users import get_or_create_user

verify_bp = Blueprint("verify", __name__)


@verify_bp.route("", methods=["POST"])
@rate_limited("verify", "Too many verification attempts. Please try again later.")
def verify():
    """
    Body:
    {
      "payload": {
        "proof": "0x...",
        "merkle_root": "0x...",
        "nullifier_hash": "0x...",
        "verification_level": "orb"
      },
      "action": "fitchain-login",     // optional, defaults to WORLD_ID_ACTION
      "signal": "optional signal",
      "username": "alice"             // optional, defaults to a nullifier-derived name
    }
    """
    body = parse(VerifyRequest, request.get_json(silent=True))

    action = body.action or current_app.config["WORLD_ID_ACTION"]
    provider = current_app.extensions["identity_provider"]
    result = provider.verify_proof(body.payload.model_dump(), action, body.signal)
    if not result.success:
        raise ValidationError(result.error_detail or "Verification failed")

    nullifier = result.nullifier_hash
    # an already bound nullifier wins over the supplied username
    username = body.username or f"world_{nullifier[-8:]}"

    user, outcome = get_or_create_user(
        username, verification_type="worldid", nullifier_hash=nullifier
    )
    token = create_access_token(identity=str(user.id))

    current_app.logger.info(f"[verify] user_id={user.id} outcome={outcome}")
    return success(
        {"user": user.to_dict(), "token": token, "verified": True},
        "Verification successful",
    )
