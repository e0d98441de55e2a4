"""
Stake lifecycle: create, join, leave, finalize.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func

from fitchain import db
from fitchain.errors import (
    AlreadyJoined,
    NotAuthorized,
    NotFound,
    NotReady,
    TooLateToLeave,
    ValidationError,
)
from fitchain.models.meal_window import MealWindow
from fitchain.models.stake import Stake, StakeParticipant
from fitchain.services import stakes as stakes_service
from fitchain.services.stakes import (
    create_stake,
    finalize_stake,
    get_stake_detail,
    join_stake,
    leave_stake,
    list_stakes,
)

DAY = datetime(2025, 6, 4)


def at(hour, minute=0, day=DAY):
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def pool_matches_participants(stake_id):
    stake = db.session.get(Stake, stake_id)
    db.session.refresh(stake)
    total = (
        db.session.query(func.coalesce(func.sum(StakeParticipant.amount), 0))
        .filter(StakeParticipant.stake_id == stake_id)
        .scalar()
    )
    return Decimal(str(stake.total_pool)) == Decimal(str(total)).quantize(Decimal("0.01"))


@pytest.fixture
def trio(make_user, make_group):
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
    group = make_group(alice, bob, carol)
    return group, alice, bob, carol


# ============================================================================
# Create
# ============================================================================

class TestCreateStake:
    def test_daily_stake_runs_for_24_hours(self, trio):
        group, alice, _, _ = trio
        stake = create_stake(group.id, alice.id, "daily", "5", at(9), now=at(8))

        assert stake.end_time == at(9) + timedelta(hours=24)
        assert stake.status == "active"
        assert stake.total_pool == Decimal("5.00")

    def test_meal_stake_ends_at_window_end(self, trio):
        group, alice, _, _ = trio
        stake = create_stake(group.id, alice.id, "meal", 5, at(14), meal_type="lunch", now=at(9))
        assert stake.end_time == at(16)

    def test_meal_stake_falls_back_to_default_duration(self, trio):
        group, alice, _, _ = trio
        MealWindow.query.filter_by(meal_type="lunch").update({"is_active": False})
        db.session.commit()

        stake = create_stake(group.id, alice.id, "meal", 5, at(14), meal_type="lunch", now=at(9))
        assert stake.end_time == at(16)
        assert stake.end_time - stake.start_time == timedelta(hours=2)

    def test_creator_is_first_participant(self, trio):
        group, alice, _, _ = trio
        stake = create_stake(group.id, alice.id, "daily", "2.50", at(9), now=at(8))

        participants = StakeParticipant.query.filter_by(stake_id=stake.id).all()
        assert [(p.user_id, p.amount) for p in participants] == [(alice.id, Decimal("2.50"))]
        assert pool_matches_participants(stake.id)

    def test_meal_stake_requires_meal_type(self, trio):
        group, alice, _, _ = trio
        with pytest.raises(ValidationError):
            create_stake(group.id, alice.id, "meal", 5, at(14))

    def test_amount_must_be_positive(self, trio):
        group, alice, _, _ = trio
        with pytest.raises(ValidationError):
            create_stake(group.id, alice.id, "daily", 0, at(9))

    def test_unknown_group(self, trio):
        _, alice, _, _ = trio
        with pytest.raises(NotFound):
            create_stake(999, alice.id, "daily", 5, at(9))

    def test_non_member_cannot_create(self, trio, make_user):
        group, _, _, _ = trio
        outsider = make_user("mallory")
        with pytest.raises(NotAuthorized):
            create_stake(group.id, outsider.id, "daily", 5, at(9))
        assert Stake.query.count() == 0

    def test_failed_creator_insert_leaves_no_stake(self, trio, monkeypatch):
        group, alice, _, _ = trio

        def failing_participant(**kwargs):
            raise RuntimeError("participant insert failed")

        monkeypatch.setattr(stakes_service, "StakeParticipant", failing_participant)

        with pytest.raises(RuntimeError):
            create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))
        assert Stake.query.count() == 0


# ============================================================================
# Join / leave
# ============================================================================

class TestJoinStake:
    def test_join_adds_to_pool(self, trio):
        group, alice, bob, carol = trio
        stake = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))

        join_stake(stake.id, bob.id, "3", now=at(8, 30))
        join_stake(stake.id, carol.id, Decimal("2.5"), now=at(8, 45))

        db.session.refresh(stake)
        assert stake.total_pool == Decimal("10.50")
        assert pool_matches_participants(stake.id)

    def test_join_is_idempotent(self, trio):
        group, alice, bob, _ = trio
        stake = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))
        join_stake(stake.id, bob.id, 5, now=at(8, 30))

        with pytest.raises(AlreadyJoined) as exc:
            join_stake(stake.id, bob.id, 5, now=at(8, 40))

        assert exc.value.status_code == 400
        assert StakeParticipant.query.filter_by(stake_id=stake.id).count() == 2
        assert pool_matches_participants(stake.id)
        assert db.session.get(Stake, stake.id).total_pool == Decimal("10.00")

    def test_non_member_cannot_join(self, trio, make_user):
        group, alice, _, _ = trio
        outsider = make_user("mallory")
        stake = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))

        with pytest.raises(NotAuthorized):
            join_stake(stake.id, outsider.id, 5, now=at(8, 30))

    def test_cannot_join_ended_stake(self, trio):
        group, alice, bob, _ = trio
        stake = create_stake(group.id, alice.id, "meal", 5, at(14), meal_type="lunch", now=at(9))

        with pytest.raises(NotFound):
            join_stake(stake.id, bob.id, 5, now=at(16))

    def test_cannot_join_missing_stake(self, trio):
        _, _, bob, _ = trio
        with pytest.raises(NotFound):
            join_stake(42, bob.id, 5)

    def test_failed_pool_update_leaves_no_participant(self, trio, monkeypatch):
        group, alice, bob, _ = trio
        stake = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))

        def failing_pool(stake_id, delta):
            raise RuntimeError("pool update failed")

        monkeypatch.setattr(stakes_service, "_adjust_pool", failing_pool)

        with pytest.raises(RuntimeError):
            join_stake(stake.id, bob.id, 3, now=at(8, 30))

        assert StakeParticipant.query.filter_by(stake_id=stake.id, user_id=bob.id).count() == 0
        assert db.session.get(Stake, stake.id).total_pool == Decimal("5.00")
        assert pool_matches_participants(stake.id)


class TestLeaveStake:
    def test_leave_refunds_pool(self, trio):
        group, alice, bob, _ = trio
        stake = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))
        join_stake(stake.id, bob.id, 3, now=at(8, 10))

        cancelled = leave_stake(stake.id, bob.id, now=at(8, 30))

        assert cancelled is False
        assert db.session.get(Stake, stake.id).total_pool == Decimal("5.00")
        assert pool_matches_participants(stake.id)

    def test_last_participant_leaving_cancels(self, trio):
        group, alice, _, _ = trio
        stake = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))

        assert leave_stake(stake.id, alice.id, now=at(8, 30)) is True

        stake = db.session.get(Stake, stake.id)
        assert stake.status == "cancelled"
        assert stake.total_pool == Decimal("0.00")

    def test_cannot_leave_after_start(self, trio):
        group, alice, bob, _ = trio
        stake = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))
        join_stake(stake.id, bob.id, 5, now=at(8, 10))

        with pytest.raises(TooLateToLeave):
            leave_stake(stake.id, bob.id, now=at(9))
        assert pool_matches_participants(stake.id)

    def test_leave_without_participation(self, trio):
        group, alice, bob, _ = trio
        stake = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))
        with pytest.raises(NotFound):
            leave_stake(stake.id, bob.id, now=at(8, 30))


# ============================================================================
# Finalize
# ============================================================================

def _set_progress(stake_id, user_id, calories, qualified):
    StakeParticipant.query.filter_by(stake_id=stake_id, user_id=user_id).update(
        {"calories_tracked": calories, "is_qualified": qualified}
    )
    db.session.commit()


class TestFinalizeStake:
    @pytest.fixture
    def lunch_stake(self, trio):
        group, alice, bob, carol = trio
        stake = create_stake(group.id, alice.id, "meal", 5, at(14), meal_type="lunch", now=at(9))
        join_stake(stake.id, bob.id, 5, now=at(9, 5))
        join_stake(stake.id, carol.id, 5, now=at(9, 10))
        return stake, alice, bob, carol

    def test_not_ready_before_end(self, lunch_stake):
        stake, *_ = lunch_stake
        with pytest.raises(NotReady):
            finalize_stake(stake.id, now=at(15, 59))

    def test_highest_qualified_calories_wins(self, lunch_stake):
        stake, alice, bob, carol = lunch_stake
        _set_progress(stake.id, alice.id, 900, False)
        _set_progress(stake.id, bob.id, 700, True)
        _set_progress(stake.id, carol.id, 650, True)

        result = finalize_stake(stake.id, now=at(16))

        assert result == {
            "stake_id": stake.id,
            "winner_id": bob.id,
            "winner_username": "bob",
            "total_pool": 15.0,
        }
        assert db.session.get(Stake, stake.id).status == "completed"

    def test_tie_goes_to_earliest_joiner(self, lunch_stake):
        stake, alice, bob, carol = lunch_stake
        _set_progress(stake.id, bob.id, 500, True)
        _set_progress(stake.id, carol.id, 500, True)

        result = finalize_stake(stake.id, now=at(17))
        assert result["winner_id"] == bob.id

    def test_no_qualified_participant_completes_without_winner(self, lunch_stake):
        stake, *_ = lunch_stake
        result = finalize_stake(stake.id, now=at(17))

        assert result["winner_id"] is None
        assert result["winner_username"] is None
        assert db.session.get(Stake, stake.id).status == "completed"

    def test_finalize_only_once(self, lunch_stake):
        stake, *_ = lunch_stake
        finalize_stake(stake.id, now=at(17))
        with pytest.raises(NotReady):
            finalize_stake(stake.id, now=at(18))

    def test_missing_stake(self, ctx):
        with pytest.raises(NotFound):
            finalize_stake(7)


# ============================================================================
# Read model
# ============================================================================

class TestStakeReads:
    def test_detail_and_listing(self, trio):
        group, alice, bob, _ = trio
        first = create_stake(group.id, alice.id, "daily", 5, at(9), now=at(8))
        second = create_stake(group.id, bob.id, "daily", 1, at(10), now=at(8, 30))
        join_stake(first.id, bob.id, 5, now=at(8, 40))

        detail = get_stake_detail(first.id)
        assert detail["group_name"] == "Lunch Club"
        assert detail["creator_username"] == "alice"
        assert [p["user_id"] for p in detail["participants"]] == [alice.id, bob.id]

        listing = list_stakes(group_id=group.id)
        assert [s["id"] for s in listing] == [second.id, first.id]
        assert [s["participant_count"] for s in listing] == [1, 2]

        assert [s["id"] for s in list_stakes(user_id=alice.id)] == [first.id]
        assert list_stakes(status="completed") == []
