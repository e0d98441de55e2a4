"""
Meal window resolution and configuration.
"""

from datetime import datetime, timedelta

import pytest

from fitchain import db
from fitchain.errors import ConfigurationMissing, NotFound, ValidationError
from fitchain.models.meal_window import MealWindow
from fitchain.services.food_entries import record_entry
from fitchain.services.meal_windows import (
    list_active_windows,
    resolve_window,
    update_window,
    window_statuses,
)

DAY = datetime(2025, 6, 4)


def at(hour, minute=0, second=0, microsecond=0):
    return DAY.replace(hour=hour, minute=minute, second=second, microsecond=microsecond)


def _deactivate(meal_type):
    MealWindow.query.filter_by(meal_type=meal_type).update({"is_active": False})
    db.session.commit()


class TestDefaults:
    def test_default_windows_are_seeded_in_start_order(self, ctx):
        windows = list_active_windows()
        assert [w.meal_type for w in windows] == ["breakfast", "lunch", "dinner"]
        assert [(w.start_hour, w.end_hour) for w in windows] == [(8, 10), (14, 16), (20, 22)]
        assert all(w.min_images == 2 for w in windows)


class TestResolveWindow:
    def test_resolves_against_the_date_of_now(self, ctx):
        window = resolve_window("lunch", at(15, 12))
        assert window.window_start == at(14)
        assert window.window_end == at(16)
        assert window.min_images == 2
        assert window.is_active is True

    def test_inactive_outside_the_window(self, ctx):
        assert resolve_window("lunch", at(13, 59)).is_active is False
        assert resolve_window("lunch", at(16, 0, 1)).is_active is False

    def test_end_is_inclusive(self, ctx):
        window = resolve_window("lunch", at(12))
        assert window.contains(at(16))
        assert not window.contains(at(16) + timedelta(milliseconds=1))
        assert window.contains(at(14))
        assert not window.contains(at(14) - timedelta(milliseconds=1))

    def test_unknown_meal_type(self, ctx):
        with pytest.raises(ValidationError):
            resolve_window("brunch", at(12))

    def test_missing_row_raises_configuration_missing(self, ctx):
        _deactivate("dinner")
        with pytest.raises(ConfigurationMissing):
            resolve_window("dinner", at(21))


class TestUpdateWindow:
    def test_update_changes_resolution(self, ctx):
        update_window("lunch", 12, 13, start_minute=30, end_minute=45, min_images=3)

        window = resolve_window("lunch", at(13))
        assert window.window_start == at(12, 30)
        assert window.window_end == at(13, 45)
        assert window.min_images == 3

    def test_window_crossing_midnight_is_rejected(self, ctx):
        with pytest.raises(ValidationError):
            update_window("dinner", 22, 1)

    def test_update_without_active_row(self, ctx):
        _deactivate("breakfast")
        with pytest.raises(NotFound):
            update_window("breakfast", 7, 9)


class TestWindowStatuses:
    def test_status_counts_todays_entries(self, make_user):
        user = make_user("alice")
        record_entry(user.id, "Soup", 200, "https://img/1", meal_type="lunch", now=at(14, 10))

        statuses = {s["meal_type"]: s for s in window_statuses(at(15), user_id=user.id)}

        lunch = statuses["lunch"]
        assert lunch["is_active"] is True
        assert lunch["current_images"] == 1
        assert lunch["can_submit"] is True
        assert lunch["time_remaining"] == 3600 * 1000

        dinner = statuses["dinner"]
        assert dinner["is_active"] is False
        assert dinner["can_submit"] is False
        assert dinner["time_remaining"] is None

    def test_cannot_submit_once_min_images_reached(self, make_user):
        user = make_user("bob")
        for minute in (5, 10):
            record_entry(
                user.id, "Rice", 300, "https://img/x", meal_type="lunch", now=at(14, minute)
            )

        lunch = next(s for s in window_statuses(at(15), user_id=user.id) if s["meal_type"] == "lunch")
        assert lunch["current_images"] == 2
        assert lunch["can_submit"] is False
