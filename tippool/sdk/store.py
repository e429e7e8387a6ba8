"""Team document storage.

Each team is stored as a single JSON document holding its pool settings,
periods (with tips), members (with hour registrations) and payout history:

    <data_dir>/teams/<team_id>.json

A document is always written whole, via a temporary file that replaces the
old one, so a failed write never leaves a half-updated team behind. File
I/O runs in a worker thread so awaiting it does not block the event loop.

Controllers talk to storage only through the PoolStore protocol; tests and
other backends can provide their own implementation.
"""

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Optional, Protocol

from .config import get_data_path, load_pool_defaults, load_pool_settings
from .errors import PersistenceError, ValidationError
from .models import TeamState
from .schemas import PoolSettings

# Configure logging based on LOG_LEVEL environment variable
_log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, _log_level, logging.INFO),
    format="%(asctime)s.%(msecs)03d %(levelname)s: %(message)s",
    datefmt="%H:%M:%S"
)
logger = logging.getLogger(__name__)

_TEAM_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class PoolStore(Protocol):
    """Persistence collaborator for team state."""

    async def load(self, team_id: str) -> TeamState:
        ...

    async def save(self, team_id: str, state: TeamState) -> None:
        ...


def validate_team_id(team_id: str) -> str:
    """Team ids become file names, so keep them to a safe character set."""
    if not team_id or not _TEAM_ID_PATTERN.match(team_id):
        raise ValidationError(f"Invalid team id: {team_id!r} (use letters, digits, '.', '_' or '-')")
    return team_id


class JsonPoolStore:
    """PoolStore keeping one JSON document per team on disk."""

    def __init__(self, base_dir: Optional[Path] = None, new_team_settings: Optional[PoolSettings] = None):
        """
        Args:
            base_dir: Directory holding team documents. Defaults to
                <data_dir>/teams.
            new_team_settings: Pool settings for teams without a document.
                Defaults to pool.yaml defaults.
        """
        self._base_dir = base_dir
        self._new_team_settings = new_team_settings

    @property
    def base_dir(self) -> Path:
        if self._base_dir is None:
            self._base_dir = get_data_path() / "teams"
        return self._base_dir

    def team_path(self, team_id: str) -> Path:
        return self.base_dir / f"{validate_team_id(team_id)}.json"

    async def load(self, team_id: str) -> TeamState:
        return await asyncio.to_thread(self._load_sync, team_id)

    async def save(self, team_id: str, state: TeamState) -> None:
        await asyncio.to_thread(self._save_sync, team_id, state)

    def _load_sync(self, team_id: str) -> TeamState:
        path = self.team_path(team_id)

        if not path.exists():
            settings = self._new_team_settings or load_pool_defaults()
            logger.debug(f"No document for team '{team_id}', starting fresh")
            return TeamState(team_id=team_id, settings=settings)

        try:
            with open(path, "r") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read team '{team_id}' from {path}: {e}")

        settings = load_pool_settings(document.get("settings"), source=f"team '{team_id}' settings")
        try:
            return TeamState.from_dict(document, settings)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Team document {path} is malformed: {e}")

    def _save_sync(self, team_id: str, state: TeamState) -> None:
        path = self.team_path(team_id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(state.to_dict(), f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Failed to save team '{team_id}' to {path}: {e}")
        logger.debug(f"Saved team '{team_id}' to {path}")
