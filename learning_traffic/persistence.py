"""Best-effort storage of the learned Q-table and the session timer."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping

logger = logging.getLogger(__name__)

Q_TABLE_KEY = "TRAFFIC_Q_TABLE"
SESSION_TIME_KEY = "TOTAL_SESSION_TIME"


@dataclass(slots=True)
class SavedState:
    """What a previous session left behind; empty when nothing was readable."""

    q_table: Dict[str, Dict[str, float]] = field(default_factory=dict)
    session_time: int = 0


def format_duration(seconds: int) -> str:
    """Format ``seconds`` as ``HH:MM:SS``."""

    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class StateStore:
    """Two-entry JSON key-value file.

    Storage failures never propagate: they are logged as warnings and the
    caller continues with a fresh table or zeroed timer.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> SavedState:
        if not self.path.exists():
            logger.info("No saved state at %s, starting fresh", self.path)
            return SavedState()
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Could not load saved state from %s: %s", self.path, exc)
            return SavedState()

        if not isinstance(data, dict):
            logger.warning("Ignoring saved state in %s: not a mapping", self.path)
            return SavedState()

        q_table = data.get(Q_TABLE_KEY)
        if not isinstance(q_table, dict):
            q_table = {}
        try:
            session_time = max(0, int(data.get(SESSION_TIME_KEY, 0)))
        except (OverflowError, TypeError, ValueError):
            logger.warning("Ignoring invalid session time in %s", self.path)
            session_time = 0

        logger.info("Q-table loaded: %d states", len(q_table))
        return SavedState(q_table=q_table, session_time=session_time)

    def save(self, q_table: Mapping[str, Mapping[str, float]], session_time: int) -> bool:
        payload = {Q_TABLE_KEY: dict(q_table), SESSION_TIME_KEY: int(session_time)}
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
            tmp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not save state to %s: %s", self.path, exc)
            return False
        logger.debug("Saved %d Q-table states to %s", len(q_table), self.path)
        return True

    def clear(self) -> bool:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not clear saved state at %s: %s", self.path, exc)
            return False
        logger.info("Cleared saved state at %s", self.path)
        return True
