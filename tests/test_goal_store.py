from decimal import Decimal

import pytest

from goalpost.exceptions import InvalidSecret, MilestoneMismatch, NotFound, ValidationFailed
from goalpost.models import Goal
from goalpost.services import goal_store


def _names(goal_id):
    return [(m.name, m.target_amount, m.order) for m in goal_store.get_goal(goal_id).ordered_milestones]


def test_create_goal_stores_only_a_hash_of_the_secret(ctx):
    goal, secret = goal_store.create_goal("Trip", None, "1000", "acct_x", milestones=[{"name": "All", "target_amount": "1000"}])

    stored = goal_store.get_goal(goal.id)
    assert secret and len(secret) >= 16
    assert stored.edit_secret_hash != secret
    assert secret not in stored.edit_secret_hash
    assert goal_store.authorize(goal.id, secret).id == goal.id


def test_two_goals_get_different_secrets(ctx):
    _, s1 = goal_store.create_goal("A", None, 10, "acct_a")
    _, s2 = goal_store.create_goal("B", None, 10, "acct_b")
    assert s1 != s2


def test_create_rejects_mismatched_milestones_and_writes_nothing(ctx):
    with pytest.raises(MilestoneMismatch) as exc:
        goal_store.create_goal(
            "Trip", None, "1000", "acct_x",
            milestones=[{"name": "Flights", "target_amount": "600"}, {"name": "Hotel", "target_amount": "300"}],
        )
    assert exc.value.discrepancy == Decimal("100.00")
    assert Goal.query.count() == 0


def test_get_unknown_goal_raises_not_found(ctx):
    with pytest.raises(NotFound):
        goal_store.get_goal("does-not-exist")


def test_replace_milestones_swaps_the_whole_list(ctx, make_goal):
    goal_id, secret = make_goal()

    result = goal_store.replace_milestones(
        goal_id, secret, [{"name": "First half", "target_amount": "1500"}, {"name": "Second half", "target_amount": "1500"}]
    )

    assert [m.name for m in result] == ["First half", "Second half"]
    assert _names(goal_id) == [("First half", Decimal("1500.00"), 0), ("Second half", Decimal("1500.00"), 1)]


def test_replace_milestones_sum_mismatch_leaves_old_list(ctx, make_goal):
    goal_id, secret = make_goal()
    before = _names(goal_id)

    with pytest.raises(MilestoneMismatch) as exc:
        goal_store.replace_milestones(goal_id, secret, [{"name": "Too small", "target_amount": "2000"}])

    assert exc.value.discrepancy == Decimal("1000.00")
    assert _names(goal_id) == before


def test_replace_milestones_within_one_cent_tolerance(ctx, make_goal):
    goal_id, secret = make_goal(target=Decimal("100"), milestones=[{"name": "All", "target_amount": "100"}])

    goal_store.replace_milestones(
        goal_id, secret, [{"name": "a", "target_amount": "33.33"}, {"name": "b", "target_amount": "33.33"}, {"name": "c", "target_amount": "33.33"}]
    )
    assert len(_names(goal_id)) == 3


def test_replace_milestones_rejects_empty_list_and_bad_items(ctx, make_goal):
    goal_id, secret = make_goal()
    before = _names(goal_id)

    with pytest.raises(ValidationFailed):
        goal_store.replace_milestones(goal_id, secret, [])
    with pytest.raises(ValidationFailed):
        goal_store.replace_milestones(goal_id, secret, [{"name": "", "target_amount": "3000"}])
    with pytest.raises(ValidationFailed):
        goal_store.replace_milestones(
            goal_id, secret, [{"name": "neg", "target_amount": "-1"}, {"name": "big", "target_amount": "3001"}]
        )

    assert _names(goal_id) == before


def test_amounts_beyond_the_storable_range_are_validation_errors(ctx, make_goal, app):
    goal_id, secret = make_goal()
    before = _names(goal_id)
    ceiling = app.config["MAX_TARGET_CENTS"]

    with pytest.raises(ValidationFailed):
        goal_store.create_goal("Too big", None, Decimal(ceiling + 1) / 100, "acct_x")
    with pytest.raises(ValidationFailed):
        goal_store.create_goal("Way too big", None, "1e30", "acct_x")
    with pytest.raises(ValidationFailed):
        goal_store.update_goal(goal_id, secret, {"target_amount": "Infinity"})
    with pytest.raises(ValidationFailed):
        goal_store.replace_milestones(goal_id, secret, [{"name": "Moon", "target_amount": "1e400"}])

    assert goal_store.get_goal(goal_id).target_amount == Decimal("3000")
    assert _names(goal_id) == before


def test_wrong_secret_is_rejected_without_mutation(ctx, make_goal):
    goal_id, _secret = make_goal()
    before = _names(goal_id)

    with pytest.raises(InvalidSecret):
        goal_store.replace_milestones(goal_id, "not-the-secret", [{"name": "All", "target_amount": "3000"}])
    with pytest.raises(InvalidSecret):
        goal_store.update_goal(goal_id, "", {"name": "Hijacked"})

    assert _names(goal_id) == before
    assert goal_store.get_goal(goal_id).name == "Team trip"


def test_update_goal_fields(ctx, make_goal):
    goal_id, secret = make_goal()

    goal = goal_store.update_goal(goal_id, secret, {"name": "  Renamed  ", "description": "new text"})

    assert goal.name == "Renamed"
    assert goal.description == "new text"


def test_update_target_with_milestones_is_one_change(ctx, make_goal):
    goal_id, secret = make_goal()

    goal = goal_store.update_goal(
        goal_id,
        secret,
        {"target_amount": "1000"},
        milestones=[{"name": "Flights", "target_amount": "600"}, {"name": "Hotel", "target_amount": "400"}],
    )

    assert goal.target_amount == Decimal("1000.00")
    assert [m.name for m in goal.ordered_milestones] == ["Flights", "Hotel"]


def test_update_target_with_bad_milestones_changes_nothing(ctx, make_goal):
    goal_id, secret = make_goal()

    with pytest.raises(MilestoneMismatch):
        goal_store.update_goal(goal_id, secret, {"target_amount": "1000"}, milestones=[{"name": "x", "target_amount": "3000"}])

    goal = goal_store.get_goal(goal_id)
    assert goal.target_amount == Decimal("3000.00")
    assert len(goal.milestones) == 3


def test_update_rejects_unknown_fields(ctx, make_goal):
    goal_id, secret = make_goal()
    with pytest.raises(ValidationFailed):
        goal_store.update_goal(goal_id, secret, {"payout_account_id": "acct_evil"})
