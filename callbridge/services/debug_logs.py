"""In-memory sink for client-side debug logs."""
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from pydantic import BaseModel

MAX_DEBUG_LOGS = 300


class DebugLogEntry(BaseModel):
    ts: str
    level: str = "log"
    msg: str


def _parse_ts(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


class DebugLogBuffer:
    """
    Fixed-size ring of log entries; the oldest entry is dropped first.

    Best effort only: nothing is synchronized or persisted.
    """

    def __init__(self, capacity: int = MAX_DEBUG_LOGS):
        self._entries: Deque[DebugLogEntry] = deque(maxlen=capacity)

    def append(self, msg: str, level: Optional[str] = None, ts: Optional[str] = None) -> DebugLogEntry:
        entry = DebugLogEntry(
            ts=ts or datetime.utcnow().isoformat() + "Z",
            level=level or "log",
            msg=str(msg),
        )
        self._entries.append(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def entries(self, since: Optional[datetime] = None) -> List[DebugLogEntry]:
        """Entries in insertion order, optionally only those strictly after ``since`` (naive UTC)."""
        if since is None:
            return list(self._entries)
        result = []
        for entry in self._entries:
            entry_ts = _parse_ts(entry.ts)
            if entry_ts is not None and entry_ts > since:
                result.append(entry)
        return result

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def format_text(entries: List[DebugLogEntry]) -> str:
        if not entries:
            return "(no logs)"
        return "\n".join(f"[{e.ts}] [{e.level.upper()}] {e.msg}" for e in entries)


def parse_since(value: Optional[str]) -> Optional[datetime]:
    """Parse the ``since`` query parameter into naive UTC."""
    if not value:
        return None
    return _parse_ts(value)
