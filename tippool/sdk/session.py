"""Per-team session shared by the controllers.

A TeamSession bundles what every controller of one team needs: the team
id, the store, the clock and the team's lock. Each "read state, decide,
write state" step runs while holding the lock, and the lock stays held
across the awaited save, so two settlements (or a settlement and an
auto-close) for the same team never interleave.
"""

import asyncio
import copy
import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from .errors import PersistenceError
from .models import TeamState
from .store import PoolStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class TeamLocks:
    """Registry handing out one asyncio.Lock per team id."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, team_id: str) -> asyncio.Lock:
        lock = self._locks.get(team_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[team_id] = lock
        return lock


class TeamSession:
    """Store access, clock and lock for one team."""

    def __init__(
        self,
        team_id: str,
        store: PoolStore,
        clock: Optional[Clock] = None,
        locks: Optional[TeamLocks] = None,
        acting_user: Optional[str] = None,
    ):
        """
        Args:
            team_id: Team whose state this session manages.
            store: Persistence collaborator.
            clock: Returns "now". Defaults to datetime.now.
            locks: Lock registry shared by sessions of the same team.
            acting_user: Recorded as added_by on new tips and hours.
        """
        self.team_id = team_id
        self.store = store
        self.clock: Clock = clock or datetime.now
        self.locks = locks or TeamLocks()
        self.acting_user = acting_user
        self._snapshot: Optional[TeamState] = None

    @property
    def lock(self) -> asyncio.Lock:
        return self.locks.get(self.team_id)

    def now(self) -> datetime:
        return self.clock()

    async def load(self) -> TeamState:
        """Load a fresh copy of the team state for a query.

        Falls back to the last good snapshot when the store fails and one
        is available. Never commit a state obtained here; use
        load_for_update() inside the lock instead.

        Raises:
            PersistenceError: If the store fails and nothing was loaded before.
        """
        try:
            return await self.load_for_update()
        except PersistenceError as e:
            if self._snapshot is None:
                raise
            logger.warning(f"{e}. Using last loaded state for team '{self.team_id}'.")
            return copy.deepcopy(self._snapshot)

    async def load_for_update(self) -> TeamState:
        """Load the stored team state that a mutation will build on.

        Raises:
            PersistenceError: If the store fails. The cached snapshot may be
                behind storage, so it is never used here.
        """
        state = await self.store.load(self.team_id)
        self._snapshot = copy.deepcopy(state)
        return state

    async def commit(self, state: TeamState) -> None:
        """Save state; the snapshot only advances once the save succeeds.

        Raises:
            PersistenceError: If the store fails. The previous snapshot is kept.
        """
        await self.store.save(self.team_id, state)
        self._snapshot = copy.deepcopy(state)

    @property
    def snapshot(self) -> Optional[TeamState]:
        """Last state known to match storage (read-only use)."""
        return self._snapshot
