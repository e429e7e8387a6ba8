"""Period lifecycle: starting, closing and deleting tip periods.

State machine for a team's periods:

    (no active) --tip logged / start--> active
    active      --deadline / end------> closed
    active      --start new-----------> closed, and a new active period
    closed      --settlement----------> paid      (payouts.py)
    closed      --delete--------------> removed
    paid        (terminal: cannot be deleted, reopened or edited)

At most one period per team is active. When auto-close is enabled every
new period gets a deadline from schedule.compute_auto_close_date and a
watcher task that polls the clock and closes the period once the deadline
passes, immediately opening the next one. Explicit and automatic closing
both run under the team lock; whichever commits first wins and the other
finds the period no longer active and does nothing.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .config import update_pool_settings
from .errors import StateConflictError, TipPoolError, ValidationError
from .models import Period, PeriodStatus, TeamState, TipEntry, coerce_amount, new_id
from .schedule import compute_auto_close_date, format_closing_time, generate_period_name
from .schemas import PoolSettings
from .session import TeamSession

logger = logging.getLogger(__name__)

AUTO_CLOSE_POLL_SECONDS = 60.0

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class AutoCloseHandle:
    """Cancellable watcher for one period's auto-close deadline."""

    period_id: str
    deadline: datetime
    task: "asyncio.Task"

    def cancel(self) -> None:
        if not self.task.done():
            self.task.cancel()

    @property
    def done(self) -> bool:
        return self.task.done()


class PeriodLifecycleController:
    """Owns the active period and applies auto-close decisions."""

    def __init__(
        self,
        session: TeamSession,
        poll_interval: float = AUTO_CLOSE_POLL_SECONDS,
        sleep: Optional[Sleep] = None,
        watch_auto_close: bool = True,
    ):
        """
        Args:
            session: Team session (store, clock, lock).
            poll_interval: Seconds between auto-close checks.
            sleep: Awaitable sleep used between checks (defaults to asyncio.sleep).
            watch_auto_close: Start a watcher task for each new active period.
                Short-lived callers (the CLI) turn this off and call
                check_auto_close() instead.
        """
        self.session = session
        self.poll_interval = poll_interval
        self._sleep: Sleep = sleep or asyncio.sleep
        self.watch_auto_close = watch_auto_close
        self._watches: Dict[str, AutoCloseHandle] = {}

    # --- Queries ---

    async def list_periods(self) -> List[Period]:
        """All periods, newest first."""
        state = await self.session.load()
        return sorted(state.periods, key=lambda p: p.start_date, reverse=True)

    async def current_period(self) -> Optional[Period]:
        state = await self.session.load()
        return state.active_period

    async def get_period(self, period_id: str) -> Period:
        state = await self.session.load()
        return _require_period(state, period_id)

    async def unpaid_period_count(self) -> int:
        """Number of closed periods waiting for a payout."""
        state = await self.session.load()
        return sum(1 for p in state.periods if p.status is PeriodStatus.CLOSED)

    async def get_next_auto_close_date(self) -> Optional[datetime]:
        period = await self.current_period()
        return period.auto_close_date if period else None

    async def get_settings(self) -> PoolSettings:
        state = await self.session.load()
        return state.settings

    async def get_formatted_closing_time(self) -> str:
        settings = await self.get_settings()
        return format_closing_time(settings.closing_time)

    # --- Transitions ---

    async def start_new_period(self) -> Period:
        """Start a new active period, closing the current one first."""
        async with self.session.lock:
            state = await self.session.load_for_update()
            closed = state.active_period
            period = self._open_period(state)
            await self.session.commit(state)

        if closed is not None:
            self.cancel_watch(closed.id)
        self._sync_watch(period)
        return period

    async def end_current_period(self) -> Optional[Period]:
        """Close the active period.

        Returns:
            The closed period, or None if no period was active.
        """
        async with self.session.lock:
            state = await self.session.load_for_update()
            period = state.active_period
            if period is None:
                logger.info(f"Team '{self.session.team_id}': no active period to end")
                return None
            self._close_period(period)
            await self.session.commit(state)

        self.cancel_watch(period.id)
        return period

    async def check_auto_close(self, period_id: Optional[str] = None) -> Optional[Period]:
        """Close the active period if its auto-close deadline has passed.

        When auto-close is enabled a new active period is started right after.

        Args:
            period_id: Only act on this period (a watcher passes its own id).

        Returns:
            The period that was closed, or None.
        """
        closed, _ = await self._auto_close(period_id)
        return closed

    async def delete_period(self, period_id: str) -> Period:
        """Delete an unpaid period together with its tips.

        Raises:
            ValidationError: If the period does not exist.
            StateConflictError: If the period has been paid out.
        """
        async with self.session.lock:
            state = await self.session.load_for_update()
            period = _require_period(state, period_id)
            if period.is_paid:
                raise StateConflictError(
                    f"Period '{period.label}' has been paid out and cannot be deleted"
                )
            state.periods = [p for p in state.periods if p.id != period_id]
            await self.session.commit(state)

        self.cancel_watch(period_id)
        logger.info(
            f"Team '{self.session.team_id}': deleted period {period_id} "
            f"({len(period.tips)} tip(s), was {period.status.value})"
        )
        return period

    async def update_period(self, period_id: str, name: Optional[str] = None, notes: Optional[str] = None) -> Period:
        """Rename a period or change its notes."""
        async with self.session.lock:
            state = await self.session.load_for_update()
            period = _require_period(state, period_id)
            if name is not None:
                period.name = name.strip() or None
            if notes is not None:
                period.notes = notes.strip() or None
            await self.session.commit(state)
        return period

    async def schedule_auto_close(self, when: datetime) -> Period:
        """Override the active period's auto-close deadline.

        Raises:
            StateConflictError: If no period is active.
        """
        async with self.session.lock:
            state = await self.session.load_for_update()
            period = state.active_period
            if period is None:
                raise StateConflictError("No active period to schedule an auto-close for")
            period.auto_close_date = when
            await self.session.commit(state)

        self._sync_watch(period)
        logger.info(f"Team '{self.session.team_id}': period {period.id} will auto-close at {when.isoformat()}")
        return period

    async def update_settings(self, **changes: Any) -> PoolSettings:
        """Change pool settings and recompute the active period's deadline.

        Raises:
            ValidationError: If a value is invalid (nothing is changed).
        """
        async with self.session.lock:
            state = await self.session.load_for_update()
            settings = update_pool_settings(state.settings, **changes)
            state.settings = settings
            period = state.active_period
            if period is not None:
                period.auto_close_date = self._deadline_for(period.start_date, settings)
            await self.session.commit(state)

        if period is not None:
            self._sync_watch(period)
        return settings

    # --- Tips ---

    async def add_tip(
        self,
        amount: Any,
        note: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> TipEntry:
        """Log a tip in the active period, starting one if needed.

        Raises:
            ValidationError: If the amount is negative or not a number.
        """
        amount = coerce_amount(amount, "Tip amount")

        async with self.session.lock:
            state = await self.session.load_for_update()
            period = state.active_period
            started = period is None
            if started:
                period = self._open_period(state)
            tip = TipEntry(
                id=new_id(),
                amount=amount,
                date=date or self.session.now(),
                period_id=period.id,
                note=(note or "").strip() or None,
                added_by=self.session.acting_user,
            )
            period.tips.append(tip)
            await self.session.commit(state)

        if started:
            self._sync_watch(period)
        logger.info(f"Team '{self.session.team_id}': tip {amount:.2f} added to period {period.id}")
        return tip

    async def update_tip(
        self,
        period_id: str,
        tip_id: str,
        amount: Any = None,
        note: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> TipEntry:
        """Edit a tip of an unpaid period."""
        if amount is not None:
            amount = coerce_amount(amount, "Tip amount")

        async with self.session.lock:
            state = await self.session.load_for_update()
            period, tip = _require_tip(state, period_id, tip_id)
            if period.is_paid:
                raise StateConflictError(f"Period '{period.label}' has been paid out; its tips cannot be changed")
            if amount is not None:
                tip.amount = amount
            if note is not None:
                tip.note = note.strip() or None
            if date is not None:
                tip.date = date
            await self.session.commit(state)
        return tip

    async def delete_tip(self, period_id: str, tip_id: str) -> TipEntry:
        """Remove a tip from an unpaid period."""
        async with self.session.lock:
            state = await self.session.load_for_update()
            period, tip = _require_tip(state, period_id, tip_id)
            if period.is_paid:
                raise StateConflictError(f"Period '{period.label}' has been paid out; its tips cannot be deleted")
            period.tips = [t for t in period.tips if t.id != tip_id]
            await self.session.commit(state)
        return tip

    # --- Auto-close watching ---

    async def resume(self) -> Optional[AutoCloseHandle]:
        """Catch up on a missed deadline, then watch the active period."""
        await self.check_auto_close()
        period = await self.current_period()
        if period is None:
            return None
        return self._sync_watch(period)

    def watch(self, period: Period) -> Optional[AutoCloseHandle]:
        """Start (or restart) the watcher for a period's deadline.

        Must be called from a running event loop.
        """
        self.cancel_watch(period.id)
        if not period.is_active or period.auto_close_date is None:
            return None
        task = asyncio.get_running_loop().create_task(
            self._watch_loop(period.id),
            name=f"auto-close-{period.id}",
        )
        handle = AutoCloseHandle(period_id=period.id, deadline=period.auto_close_date, task=task)
        self._watches[period.id] = handle
        return handle

    def cancel_watch(self, period_id: str) -> None:
        handle = self._watches.pop(period_id, None)
        if handle is None:
            return
        # A watcher that just closed its own period must not cancel itself
        if handle.task is not asyncio.current_task():
            handle.cancel()

    def get_watch(self, period_id: str) -> Optional[AutoCloseHandle]:
        return self._watches.get(period_id)

    async def shutdown(self) -> None:
        """Cancel every watcher and wait for them to finish."""
        handles = list(self._watches.values())
        self._watches.clear()
        for handle in handles:
            handle.cancel()
        if handles:
            await asyncio.gather(*(h.task for h in handles), return_exceptions=True)

    async def _watch_loop(self, period_id: str) -> None:
        while True:
            try:
                _, done = await self._auto_close(period_id)
            except TipPoolError as e:
                logger.error(f"Auto-close check for period {period_id} failed: {e}")
            except Exception:
                # A custom PoolStore may raise anything; keep watching
                logger.exception(f"Unexpected error while checking auto-close for period {period_id}")
            else:
                if done:
                    handle = self._watches.get(period_id)
                    if handle is not None and handle.task is asyncio.current_task():
                        del self._watches[period_id]
                    return
            await self._sleep(self.poll_interval)

    def _sync_watch(self, period: Period) -> Optional[AutoCloseHandle]:
        if not self.watch_auto_close:
            return None
        return self.watch(period)

    async def _auto_close(self, period_id: Optional[str]) -> Tuple[Optional[Period], bool]:
        """Returns (closed period or None, whether watching can stop)."""
        async with self.session.lock:
            state = await self.session.load_for_update()
            period = state.active_period
            if period is None or (period_id is not None and period.id != period_id):
                return None, True
            if period.auto_close_date is None:
                return None, True

            now = self.session.now()
            if now < period.auto_close_date:
                return None, False

            self._close_period(period)
            opened = None
            if state.settings.auto_close_periods:
                opened = self._open_period(state)
            await self.session.commit(state)

        logger.info(
            f"Team '{self.session.team_id}': period {period.id} auto-closed "
            f"(deadline {period.auto_close_date.isoformat()})"
        )
        self.cancel_watch(period.id)
        if opened is not None:
            self._sync_watch(opened)
        return period, True

    # --- State helpers (caller holds the lock) ---

    def _deadline_for(self, start: datetime, settings: PoolSettings) -> Optional[datetime]:
        if not settings.auto_close_periods:
            return None
        return compute_auto_close_date(
            start,
            settings.period_duration,
            settings.align_with_calendar,
            settings.closing_time,
            now=self.session.now(),
        )

    def _open_period(self, state: TeamState) -> Period:
        active = state.active_period
        if active is not None:
            self._close_period(active)

        now = self.session.now()
        settings = state.settings
        period = Period(
            id=new_id(),
            start_date=now,
            is_active=True,
            auto_close_date=self._deadline_for(now, settings),
            name=generate_period_name(now, settings.period_duration) if settings.auto_close_periods else None,
        )
        state.periods.append(period)
        logger.info(
            f"Team '{self.session.team_id}': started period {period.id}"
            + (f", auto-closes {period.auto_close_date.isoformat()}" if period.auto_close_date else "")
        )
        return period

    def _close_period(self, period: Period) -> None:
        period.is_active = False
        period.end_date = self.session.now()
        logger.info(f"Team '{self.session.team_id}': closed period {period.id}")


def _require_period(state: TeamState, period_id: str) -> Period:
    period = state.find_period(period_id)
    if period is None:
        raise ValidationError(f"Period not found: {period_id}")
    return period


def _require_tip(state: TeamState, period_id: str, tip_id: str) -> Tuple[Period, TipEntry]:
    period = _require_period(state, period_id)
    tip = period.find_tip(tip_id)
    if tip is None:
        raise ValidationError(f"Tip {tip_id} not found in period {period_id}")
    return period, tip
