"""Unit tests for hour-proportional tip distribution and balances."""

from datetime import datetime

import pytest

from tippool.sdk import (
    HourRegistration,
    Period,
    RoundingStep,
    TeamMember,
    TipEntry,
    apply_rounding,
    average_tip_per_hour,
    build_payout_items,
    distribute,
    reconcile,
)

WHEN = datetime(2024, 4, 8, 20, 0)


def make_period(period_id, *amounts):
    period = Period(id=period_id, start_date=WHEN, is_active=False)
    period.tips = [
        TipEntry(id=f"{period_id}-{i}", amount=a, date=WHEN, period_id=period_id)
        for i, a in enumerate(amounts)
    ]
    return period


def make_member(member_id, *hours, balance=0.0):
    return TeamMember(
        id=member_id,
        name=member_id.upper(),
        balance=balance,
        hour_registrations=[
            HourRegistration(id=f"{member_id}-{i}", hours=h, date=WHEN)
            for i, h in enumerate(hours)
        ],
    )


class TestDistribute:

    def test_splits_by_hours(self):
        shares = distribute([make_period("p1", 60, 40)], [make_member("a", 10), make_member("b", 30)])
        assert [(s.member_id, s.tip_amount) for s in shares] == [("a", 25.0), ("b", 75.0)]
        assert [s.hours for s in shares] == [10, 30]

    def test_pools_several_periods(self):
        shares = distribute(
            [make_period("p1", 50), make_period("p2", 25, 25)],
            [make_member("a", 4, 6), make_member("b", 30)],
        )
        assert shares[0].tip_amount == pytest.approx(25.0)
        assert shares[1].tip_amount == pytest.approx(75.0)

    def test_shares_sum_to_pool(self):
        members = [make_member("a", 7), make_member("b", 11), make_member("c", 13)]
        shares = distribute([make_period("p1", 100)], members)
        assert sum(s.tip_amount for s in shares) == pytest.approx(100.0)

    def test_zero_hours_splits_evenly(self):
        shares = distribute([make_period("p1", 90)], [make_member("a"), make_member("b"), make_member("c")])
        assert [s.tip_amount for s in shares] == [30.0, 30.0, 30.0]

    def test_no_members(self):
        assert distribute([make_period("p1", 90)], []) == []

    def test_member_without_hours_gets_nothing(self):
        shares = distribute([make_period("p1", 90)], [make_member("a", 3), make_member("b")])
        assert [s.tip_amount for s in shares] == [90.0, 0.0]

    def test_same_input_same_output(self):
        """Period and tip order do not change the result."""
        members = [make_member("a", 7.5), make_member("b", 11), make_member("c", 13.25)]
        periods = [make_period("p1", 33.33, 0.1, 12.07), make_period("p2", 0.2, 66.67)]

        first = distribute(periods, members)
        again = distribute(periods, members)

        shuffled = [make_period("p2", 66.67, 0.2), make_period("p1", 12.07, 33.33, 0.1)]
        reordered = distribute(shuffled, members)

        assert first == again == reordered


class TestAverageTipPerHour:

    def test_average(self):
        assert average_tip_per_hour([make_period("p1", 100)], [make_member("a", 10), make_member("b", 30)]) == 2.5

    def test_zero_hours_gives_zero(self):
        assert average_tip_per_hour([make_period("p1", 100)], [make_member("a")]) == 0.0


class TestReconcile:

    def test_balance_is_due_minus_paid(self):
        shares = distribute([make_period("p1", 100)], [make_member("a", 10), make_member("b", 30)])
        balances = reconcile(shares, {"a": 5.0, "b": -2.0}, {"a": 30.0, "b": 70.0})
        assert [(b.member_id, b.balance) for b in balances] == [("a", 0.0), ("b", 3.0)]

    def test_missing_actual_pays_exactly_due(self):
        shares = distribute([make_period("p1", 100)], [make_member("a", 1)])
        balances = reconcile(shares, {"a": 2.5}, {})
        assert balances[0].balance == 0.0

    def test_overpayment_goes_negative(self):
        shares = distribute([make_period("p1", 10)], [make_member("a", 1)])
        assert reconcile(shares, {}, {"a": 15.0})[0].balance == -5.0

    def test_leftover_cent_goes_to_largest_remainder(self):
        shares = distribute([make_period("p1", 100)], [make_member("a", 1), make_member("b", 1), make_member("c", 1)])
        balances = reconcile(shares, {}, {"a": 30.0, "b": 30.0, "c": 30.0})
        # Equal remainders: the earliest line gets the cent
        assert [b.balance for b in balances] == [3.34, 3.33, 3.33]


class TestBuildPayoutItems:

    def setup_method(self):
        self.shares = distribute([make_period("p1", 100)], [make_member("a", 10), make_member("b", 30)])
        self.prior = {"a": 5.0, "b": -2.0}

    def test_rounding_carries_remainder(self):
        items = build_payout_items(self.shares, self.prior, RoundingStep.FIVE)
        assert [(i.actual_amount, i.balance) for i in items] == [(30.0, 0.0), (70.0, 3.0)]
        assert [i.prior_balance for i in items] == [5.0, -2.0]

    def test_conservation(self):
        """Paid plus new balances equals shares plus prior balances."""
        items = build_payout_items(self.shares, self.prior, RoundingStep.TEN)
        paid_and_kept = sum(i.actual_amount + i.balance for i in items)
        due = sum(i.amount + i.prior_balance for i in items)
        assert round(paid_and_kept, 2) == round(due, 2)

    @pytest.mark.parametrize("hours", [(1, 1, 1), (7, 11, 13), (1, 2, 3, 4, 5, 6)])
    def test_conservation_to_the_cent(self, hours):
        members = [make_member(f"m{i}", h) for i, h in enumerate(hours)]
        shares = distribute([make_period("p1", 100)], members)
        prior = {"m0": 1.99, "m1": -4.5}

        items = build_payout_items(shares, prior, RoundingStep.FIVE)

        paid_and_kept = sum(i.actual_amount for i in items) + sum(i.balance for i in items)
        due = sum(i.amount for i in items) + sum(i.prior_balance for i in items)
        assert round(paid_and_kept, 2) == round(due, 2)

    def test_override_replaces_default(self):
        items = build_payout_items(self.shares, self.prior, RoundingStep.FIVE, overrides={"b": 73.0})
        assert items[1].actual_amount == 73.0
        assert items[1].balance == 0.0
        assert items[0].actual_amount == 30.0

    def test_negative_due_pays_nothing(self):
        shares = distribute([make_period("p1", 10)], [make_member("a", 1)])
        items = build_payout_items(shares, {"a": -25.0}, RoundingStep.NONE)
        assert items[0].actual_amount == 0.0
        assert items[0].balance == -15.0

    def test_apply_rounding_rerounds_preview(self):
        preview = build_payout_items(self.shares, self.prior, RoundingStep.NONE)
        assert [i.actual_amount for i in preview] == [30.0, 73.0]

        rerounded = apply_rounding(preview, RoundingStep.TEN)
        assert [(i.actual_amount, i.balance) for i in rerounded] == [(30.0, 0.0), (70.0, 3.0)]
        # The preview itself is untouched
        assert [i.actual_amount for i in preview] == [30.0, 73.0]
