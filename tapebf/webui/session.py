from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from tapebf.visualizer import VisualizerSession


@dataclass
class SessionRecord:
    session_id: str
    session: VisualizerSession
    total_steps: int
    total_steps_capped: bool


class SessionStore:
    """Registry of debugging sessions shared by the API's worker threads."""

    def __init__(self) -> None:
        self._records: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def add(self, session: VisualizerSession, total_steps: int, total_steps_capped: bool) -> SessionRecord:
        record = SessionRecord(uuid.uuid4().hex, session, total_steps, total_steps_capped)
        with self._lock:
            self._records[record.session_id] = record
        return record

    def find(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._records.get(session_id)

    def discard(self, session_id: str) -> bool:
        with self._lock:
            return self._records.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["SessionRecord", "SessionStore"]
