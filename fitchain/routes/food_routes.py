# backend/fitchain/routes/food_routes.py

from flask import Blueprint, current_app, request

from ..integrations.food_recognition import decode_image
from ..ratelimit import rate_limited
from ..responses import success
from ..schemas import AnalyzeFoodRequest, CreateFoodEntryRequest, FoodEntryQuery, parse
from ..services.food_entries import list_entries, record_entry

food_entries_bp = Blueprint("food_entries", __name__)
analyze_bp = Blueprint("analyze_food", __name__)


# ---------------------------------------------------------------------------
# Food entries
# ---------------------------------------------------------------------------

@food_entries_bp.route("", methods=["POST"])
def create_entry():
    """
    Body:
    {
      "user_id": 1,
      "stake_id": 3,                  // optional
      "food_name": "Chicken salad",
      "calories": 450,
      "image_url": "https://...",
      "meal_type": "lunch",           // optional
      "xp_earned": 25,                // optional, computed when omitted
      ...analysis metadata
    }
    """
    body = parse(CreateFoodEntryRequest, request.get_json(silent=True))
    fields = body.model_dump(exclude_none=True)

    result = record_entry(
        fields.pop("user_id"),
        fields.pop("food_name"),
        fields.pop("calories"),
        fields.pop("image_url"),
        **fields,
    )

    message = "Food entry saved successfully"
    if result["counted_for_stake"] is False:
        message = "Food entry saved, but it was not counted for the stake"
    return success(result, message, 201)


@food_entries_bp.route("", methods=["GET"])
def get_entries():
    query = parse(FoodEntryQuery, request.args.to_dict())
    entries = list_entries(
        user_id=query.user_id,
        group_id=query.group_id,
        stake_id=query.stake_id,
        meal_type=query.meal_type,
        on_date=query.on_date,
        limit=query.limit,
    )
    return success([e.to_dict() for e in entries])


# ---------------------------------------------------------------------------
# Image analysis
# ---------------------------------------------------------------------------

@analyze_bp.route("", methods=["POST"])
@rate_limited("analyze", "Too many analysis requests. Please wait before trying again.")
def analyze_food():
    body = parse(AnalyzeFoodRequest, request.get_json(silent=True))
    raw = decode_image(body.image)
    result = current_app.extensions["food_recognizer"].analyze(raw)

    current_app.logger.info(
        f"[analyze-food] food='{result['food_name']}' placeholder={result['is_placeholder']}"
    )
    return success(result)
