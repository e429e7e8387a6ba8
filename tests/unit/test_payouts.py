"""Unit tests for payout preview and settlement."""

import asyncio

import pytest

from tippool.sdk import (
    PeriodStatus,
    PersistenceError,
    RoundingStep,
    StateConflictError,
    ValidationError,
)


async def closed_week(pool, tips=(60, 40), hours=None, balances=None):
    """Two members (A: 10h, B: 30h) and one closed period of tips."""
    hours = hours or {"A": 10, "B": 30}
    members = {}
    for name, worked in hours.items():
        member = await pool.roster.add_member(name)
        await pool.roster.add_hours(member.id, worked)
        if balances and name in balances:
            await pool.roster.update_balance(member.id, balances[name])
        members[name] = member.id
    period_id = None
    for amount in tips:
        period_id = (await pool.add_tip(amount)).period_id
    await pool.end_current_period()
    return period_id, members


class TestPreview:

    def test_preview_saves_nothing(self, make_pool, store):
        pool = make_pool()

        async def scenario():
            period_id, members = await closed_week(pool, balances={"A": 5, "B": -2})
            saves = store.save_count
            items = await pool.preview_payout([period_id], rounding_step="5")
            return items, members, saves

        items, members, saves = asyncio.run(scenario())
        assert store.save_count == saves
        by_member = {i.member_id: i for i in items}
        a, b = by_member[members["A"]], by_member[members["B"]]
        assert (a.amount, a.actual_amount, a.balance) == (25.0, 30.0, 0.0)
        assert (b.amount, b.actual_amount, b.balance) == (75.0, 70.0, 3.0)

    def test_default_selection_is_all_unpaid(self, make_pool):
        pool = make_pool()

        async def scenario():
            await closed_week(pool)
            await pool.add_tip(40)
            shares = await pool.calculate_tip_distribution()
            average = await pool.calculate_average_tip_per_hour()
            return shares, average

        shares, average = asyncio.run(scenario())
        assert sum(s.tip_amount for s in shares) == pytest.approx(140.0)
        assert average == pytest.approx(3.5)

    def test_apply_rounding_to_preview(self, make_pool):
        pool = make_pool()

        async def scenario():
            period_id, _ = await closed_week(pool, tips=(101,))
            return await pool.preview_payout([period_id], rounding_step=RoundingStep.NONE)

        preview = asyncio.run(scenario())
        rerounded = pool.apply_rounding(preview, "10")
        assert [i.actual_amount for i in rerounded] == [20.0, 70.0]
        assert [i.balance for i in rerounded] == [5.25, 5.75]
        with pytest.raises(ValidationError):
            pool.apply_rounding(preview, "3")

    def test_average_for_one_period(self, make_pool):
        pool = make_pool()

        async def scenario():
            period_id, _ = await closed_week(pool)
            return await pool.calculate_average_tip_per_hour(period_id)

        assert asyncio.run(scenario()) == 2.5


class TestSettle:

    def test_settlement_updates_everything(self, make_pool, clock):
        pool = make_pool()

        async def scenario():
            period_id, members = await closed_week(pool, balances={"A": 5, "B": -2})
            payout = await pool.mark_periods_as_paid([period_id], payer_name="Kim", rounding_step="5")
            return (
                period_id,
                members,
                payout,
                await pool.periods.get_period(period_id),
                await pool.roster.list_members(),
                await pool.payouts.list_payouts(),
            )

        period_id, members, payout, period, roster, history = asyncio.run(scenario())
        assert period.status is PeriodStatus.PAID
        assert period.average_tip_per_hour == 2.5
        assert payout.period_ids == (period_id,)
        assert payout.payer_name == "Kim"
        assert payout.date == clock.now
        assert payout.total_paid == 100.0
        assert {m.name: m.balance for m in roster} == {"A": 0.0, "B": 3.0}
        assert all(m.hours == 0 for m in roster)
        assert [p.id for p in history] == [payout.id]
        # The payout keeps its own copy of the hours
        assert sorted(i.hours for i in payout.distribution) == [10, 30]

    def test_conservation_across_payout(self, make_pool):
        pool = make_pool()

        async def scenario():
            period_id, _ = await closed_week(pool, tips=(33.33, 66.67, 12.01), balances={"A": 1.99, "B": -4.5})
            before = sum(m.balance for m in await pool.roster.list_members())
            payout = await pool.mark_periods_as_paid([period_id], rounding_step="2")
            after = sum(m.balance for m in await pool.roster.list_members())
            return before, payout, after

        before, payout, after = asyncio.run(scenario())
        assert round(payout.total_paid + after, 2) == round(payout.total_amount + before, 2)

    def test_three_equal_shares_keep_every_cent(self, make_pool):
        pool = make_pool()

        async def scenario():
            period_id, _ = await closed_week(pool, tips=(100,), hours={"A": 1, "B": 1, "C": 1})
            payout = await pool.mark_periods_as_paid([period_id], rounding_step="5")
            return payout, await pool.roster.list_members()

        payout, roster = asyncio.run(scenario())
        assert [i.actual_amount for i in payout.distribution] == [30.0, 30.0, 30.0]
        assert sorted(m.balance for m in roster) == [3.33, 3.33, 3.34]
        assert round(payout.total_paid + sum(m.balance for m in roster), 2) == 100.0

    def test_overrides_by_member(self, make_pool):
        pool = make_pool()

        async def scenario():
            period_id, members = await closed_week(pool)
            payout = await pool.mark_periods_as_paid([period_id], overrides={members["A"]: 20})
            return members, payout, await pool.roster.get_member(members["A"])

        members, payout, a = asyncio.run(scenario())
        line = next(i for i in payout.distribution if i.member_id == members["A"])
        assert line.actual_amount == 20.0
        assert a.balance == 5.0

    def test_second_settlement_rejected(self, make_pool, store):
        pool = make_pool()

        async def scenario():
            period_id, _ = await closed_week(pool)
            await pool.mark_periods_as_paid([period_id])
            saves = store.save_count
            with pytest.raises(StateConflictError):
                await pool.mark_periods_as_paid([period_id])
            return saves, await pool.payouts.list_payouts()

        saves, history = asyncio.run(scenario())
        assert store.save_count == saves
        assert len(history) == 1

    def test_active_period_rejected(self, make_pool):
        pool = make_pool()

        async def scenario():
            tip = await pool.add_tip(10)
            with pytest.raises(StateConflictError):
                await pool.mark_periods_as_paid([tip.period_id])
            return await pool.periods.get_period(tip.period_id)

        assert asyncio.run(scenario()).status is PeriodStatus.ACTIVE

    def test_mixed_selection_rejected_whole(self, make_pool):
        """One bad period in the selection leaves the others unpaid too."""
        pool = make_pool()

        async def scenario():
            closed_id, _ = await closed_week(pool)
            active = await pool.add_tip(5)
            with pytest.raises(StateConflictError):
                await pool.mark_periods_as_paid([closed_id, active.period_id])
            return await pool.periods.get_period(closed_id)

        assert asyncio.run(scenario()).status is PeriodStatus.CLOSED

    @pytest.mark.parametrize("period_ids,overrides", [
        ([], None),
        (["missing"], None),
        (None, {"nobody": 5}),
        (None, {"A": -1}),
    ])
    def test_invalid_input_rejected(self, make_pool, store, period_ids, overrides):
        pool = make_pool()

        async def scenario():
            period_id, members = await closed_week(pool)
            ids = [period_id] if period_ids is None else period_ids
            resolved = None
            if overrides:
                resolved = {members.get(k, k): v for k, v in overrides.items()}
            saves = store.save_count
            with pytest.raises(ValidationError):
                await pool.mark_periods_as_paid(ids, overrides=resolved)
            return saves

        saves = asyncio.run(scenario())
        assert store.save_count == saves

    def test_no_members_settles_empty_payout(self, make_pool):
        pool = make_pool()

        async def scenario():
            tip = await pool.add_tip(10)
            await pool.end_current_period()
            return await pool.mark_periods_as_paid(tip.period_id)

        payout = asyncio.run(scenario())
        assert payout.distribution == ()


class TestPersistenceFailure:

    def test_failed_save_changes_nothing_and_retry_reuses_plan(self, make_pool, store):
        pool = make_pool()

        async def scenario():
            period_id, _ = await closed_week(pool, balances={"A": 5, "B": -2})
            store.fail_saves = 1
            with pytest.raises(PersistenceError):
                await pool.mark_periods_as_paid([period_id], rounding_step="5")

            pending = pool.payouts.pending
            unpaid = await pool.periods.get_period(period_id)
            members = await pool.roster.list_members()

            # Later edits must not change what the retry writes
            await pool.roster.update_balance(members[0].id, 1000)
            with pytest.raises(StateConflictError):
                await pool.mark_periods_as_paid([period_id])

            payout = await pool.payouts.retry_pending()
            return pending, unpaid, members, payout, await pool.payouts.list_payouts()

        pending, unpaid, members, payout, history = asyncio.run(scenario())
        assert pending is not None
        assert unpaid.status is PeriodStatus.CLOSED
        assert {m.name: m.balance for m in members} == {"A": 5.0, "B": -2.0}
        assert payout.id == pending.payout.id
        assert sorted(i.actual_amount for i in payout.distribution) == [30.0, 70.0]
        assert [p.id for p in history] == [payout.id]
        assert pool.payouts.pending is None

    def test_retry_without_pending(self, make_pool):
        with pytest.raises(StateConflictError):
            asyncio.run(make_pool().payouts.retry_pending())

    def test_discard_pending(self, make_pool, store):
        pool = make_pool()

        async def scenario():
            period_id, _ = await closed_week(pool)
            store.fail_saves = 1
            with pytest.raises(PersistenceError):
                await pool.mark_periods_as_paid([period_id])
            discarded = pool.payouts.discard_pending()
            payout = await pool.mark_periods_as_paid([period_id])
            return discarded, payout

        discarded, payout = asyncio.run(scenario())
        assert discarded is not None
        assert payout.id != discarded.payout.id


class TestConcurrentSettlement:

    def test_two_settlements_of_same_period(self, make_pool):
        """Sessions sharing the team lock settle a period exactly once."""
        pool = make_pool()

        async def scenario():
            period_id, _ = await closed_week(pool)
            other = make_pool(locks=pool.session.locks)
            results = await asyncio.gather(
                pool.mark_periods_as_paid([period_id]),
                other.mark_periods_as_paid([period_id]),
                return_exceptions=True,
            )
            return results, await pool.payouts.list_payouts()

        results, history = asyncio.run(scenario())
        assert sum(1 for r in results if isinstance(r, StateConflictError)) == 1
        assert len(history) == 1
