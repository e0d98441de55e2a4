# backend/fitchain/routes/meal_window_routes.py

from datetime import datetime

from flask import Blueprint, request

from ..responses import success
from ..schemas import MealWindowQuery, UpdateMealWindowRequest, parse
from ..services.meal_windows import list_active_windows, update_window, window_statuses

meal_windows_bp = Blueprint("meal_windows", __name__)


@meal_windows_bp.route("", methods=["GET"])
def get_windows():
    query = parse(MealWindowQuery, request.args.to_dict())
    if query.status:
        return success(
            window_statuses(datetime.utcnow(), user_id=query.user_id, stake_id=query.stake_id)
        )
    return success([w.to_dict() for w in list_active_windows()])


@meal_windows_bp.route("", methods=["PUT"])
def put_window():
    body = parse(UpdateMealWindowRequest, request.get_json(silent=True))
    window = update_window(
        body.meal_type,
        body.start_hour,
        body.end_hour,
        start_minute=body.start_minute,
        end_minute=body.end_minute,
        min_images=body.min_images,
    )
    return success(window.to_dict(), "Meal window updated successfully")
