"""Unit tests for the team roster."""

import asyncio

import pytest

from tippool.sdk import ValidationError


class TestMembers:

    def test_add_and_list_sorted(self, make_pool):
        pool = make_pool()

        async def scenario():
            for name in ("zoe", "Ana", " bo "):
                await pool.roster.add_member(name)
            return await pool.roster.list_members()

        assert [m.name for m in asyncio.run(scenario())] == ["Ana", "bo", "zoe"]

    @pytest.mark.parametrize("name", ["", "   ", "ana", "ANA"])
    def test_blank_or_duplicate_name_rejected(self, make_pool, name):
        pool = make_pool()

        async def scenario():
            await pool.roster.add_member("Ana")
            with pytest.raises(ValidationError):
                await pool.roster.add_member(name)
            return await pool.roster.list_members()

        assert len(asyncio.run(scenario())) == 1

    def test_find_by_name_or_id(self, make_pool):
        pool = make_pool()

        async def scenario():
            member = await pool.roster.add_member("Ana")
            by_name = await pool.roster.find_member("aNa")
            by_id = await pool.roster.find_member(member.id)
            with pytest.raises(ValidationError):
                await pool.roster.find_member("Bo")
            return member, by_name, by_id

        member, by_name, by_id = asyncio.run(scenario())
        assert by_name.id == by_id.id == member.id

    def test_rename_keeps_names_unique(self, make_pool):
        pool = make_pool()

        async def scenario():
            ana = await pool.roster.add_member("Ana")
            await pool.roster.add_member("Bo")
            with pytest.raises(ValidationError):
                await pool.roster.rename_member(ana.id, "bo")
            # Changing only the case of one's own name is fine
            return await pool.roster.rename_member(ana.id, "ANA")

        assert asyncio.run(scenario()).name == "ANA"

    def test_remove(self, make_pool):
        pool = make_pool()

        async def scenario():
            ana = await pool.roster.add_member("Ana")
            await pool.roster.update_balance(ana.id, 4.5)
            removed = await pool.roster.remove_member(ana.id)
            return removed, await pool.roster.list_members()

        removed, remaining = asyncio.run(scenario())
        assert removed.balance == 4.5
        assert remaining == []


class TestHours:

    def test_hours_are_sum_of_registrations(self, make_pool, clock):
        pool = make_pool(acting_user="manager")

        async def scenario():
            ana = await pool.roster.add_member("Ana")
            reg = await pool.roster.add_hours(ana.id, 6.5)
            await pool.roster.add_hours(ana.id, 2)
            return reg, await pool.roster.get_member(ana.id)

        reg, ana = asyncio.run(scenario())
        assert ana.hours == 8.5
        assert reg.date == clock.now
        assert reg.added_by == "manager"

    def test_negative_hours_need_correction_flag(self, make_pool):
        pool = make_pool()

        async def scenario():
            ana = await pool.roster.add_member("Ana")
            await pool.roster.add_hours(ana.id, 5)
            with pytest.raises(ValidationError):
                await pool.roster.add_hours(ana.id, -2)
            await pool.roster.add_hours(ana.id, -2, correction=True)
            with pytest.raises(ValidationError):
                await pool.roster.add_hours(ana.id, -4, correction=True)
            return await pool.roster.get_member(ana.id)

        assert asyncio.run(scenario()).hours == 3

    def test_delete_and_clear_registrations(self, make_pool):
        pool = make_pool()

        async def scenario():
            ana = await pool.roster.add_member("Ana")
            first = await pool.roster.add_hours(ana.id, 5)
            await pool.roster.add_hours(ana.id, 3)
            after_delete = await pool.roster.delete_hour_registration(ana.id, first.id)
            with pytest.raises(ValidationError):
                await pool.roster.delete_hour_registration(ana.id, first.id)
            after_clear = await pool.roster.clear_hours(ana.id)
            return after_delete.hours, after_clear.hours

        assert asyncio.run(scenario()) == (3, 0)

    def test_balance_accepts_negative(self, make_pool):
        pool = make_pool()

        async def scenario():
            ana = await pool.roster.add_member("Ana")
            return await pool.roster.update_balance(ana.id, -12.3456)

        assert asyncio.run(scenario()).balance == -12.35
