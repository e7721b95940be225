from decimal import Decimal
from types import SimpleNamespace

import pytest

from goalpost.services.progress import compute_progress, milestone_ladder, percent_of, sum_completed


def _ms(name, amount, order):
    return SimpleNamespace(id=order + 1, name=name, target_amount=Decimal(amount), order=order)


def _don(amount, status="completed"):
    return SimpleNamespace(amount=Decimal(amount), status=status)


LADDER = [_ms("Jerseys", "1000", 0), _ms("Travel", "1500", 1), _ms("Tournament fees", "500", 2)]


def test_ladder_reaches_only_first_milestone_below_second_threshold():
    p = compute_progress(Decimal("3000"), LADDER, [_don("2000"), _don("400")])

    assert p.current_amount == Decimal("2400")
    assert p.progress_percent == Decimal("80")
    assert [m.reached for m in p.milestones] == [True, False, False]
    assert [m.cumulative_threshold for m in p.milestones] == [Decimal("1000"), Decimal("2500"), Decimal("3000")]
    assert p.next_milestone.name == "Travel"
    assert p.next_milestone.remaining == Decimal("100")
    assert not p.is_complete


def test_full_target_reaches_every_milestone():
    p = compute_progress(Decimal("3000"), LADDER, [_don("3000")])

    assert all(m.reached for m in p.milestones)
    assert p.progress_percent == Decimal("100")
    assert p.is_complete
    assert p.next_milestone is None
    assert p.as_dict()["next_milestone"] is None


def test_overfunded_goal_caps_percent_at_100():
    p = compute_progress(Decimal("3000"), LADDER, [_don("2500"), _don("1000")])

    assert p.current_amount == Decimal("3500")
    assert p.progress_percent == Decimal("100")
    assert p.remaining == Decimal("0")


def test_ladder_larger_than_target_stays_on_the_bar():
    ladder = [_ms("Flights", "600", 0), _ms("Hotel", "800", 1)]
    p = compute_progress(Decimal("1000"), ladder, [_don("1200")])

    assert [m.cumulative_threshold for m in p.milestones] == [Decimal("600"), Decimal("1400")]
    assert p.milestones[0].position_percent == Decimal("60")
    assert p.milestones[1].position_percent == Decimal("100")
    assert p.progress_percent <= Decimal("100")
    assert [m.reached for m in p.milestones] == [True, False]


def test_pending_and_failed_donations_are_inert():
    donations = [_don("700"), _don("5000", status="pending"), _don("900", status="failed")]
    p = compute_progress(Decimal("1000"), [_ms("All", "1000", 0)], donations)

    assert p.current_amount == Decimal("700")
    assert p.donation_count == 1
    assert sum_completed(donations) == Decimal("700")


def test_milestones_are_walked_in_order_not_list_position():
    shuffled = [LADDER[2], LADDER[0], LADDER[1]]
    ladder = milestone_ladder(shuffled, Decimal("1200"), Decimal("3000"))

    assert [m.name for m in ladder] == ["Jerseys", "Travel", "Tournament fees"]
    assert [m.position_percent for m in ladder][0] == Decimal("100") * Decimal("1000") / Decimal("3000")


def test_no_donations_means_zero_progress():
    p = compute_progress(Decimal("1000"), [_ms("All", "1000", 0)], [])

    assert p.current_amount == Decimal("0")
    assert p.progress_percent == Decimal("0")
    assert not any(m.reached for m in p.milestones)


def test_non_positive_target_is_rejected():
    with pytest.raises(ValueError):
        compute_progress(Decimal("0"), [], [])
    with pytest.raises(ValueError):
        percent_of(Decimal("10"), Decimal("-1"))


def test_as_dict_renders_money_as_strings():
    d = compute_progress(Decimal("1000"), [_ms("Flights", "600", 0), _ms("Hotel", "400", 1)], [_don("700")]).as_dict()

    assert d["current_amount"] == "700.00"
    assert d["progress_percent"] == 70.0
    assert d["next_milestone"] == {"id": 2, "name": "Hotel", "gap": "300.00"}
    assert d["milestones"][0]["cumulative_threshold"] == "600.00"
