"""Append-only history of transcribed text."""

from __future__ import annotations

import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from whisper_dictate.types import HistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 50


class HistoryStore:
    """Stores one JSON object per line: ``{"timestamp": ..., "text": ...}``."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def add(self, text: str) -> None:
        entry: HistoryEntry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "text": text,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[HistoryEntry]:
        """Return up to ``limit`` entries, newest first."""
        if limit <= 0 or not self._path.exists():
            return []

        entries: deque[HistoryEntry] = deque(maxlen=limit)
        with self._path.open(encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except ValueError:
                    logger.warning("Skipping corrupt history line %d", line_no)
        return list(reversed(entries))
