"""Structured event sink for a single pipeline run."""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class RunEvent:
    """One thing that happened during a run."""

    run_id: str
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)
    level: int = logging.INFO
    created_at: datetime = field(default_factory=datetime.now)


Listener = Callable[[RunEvent], None]


class RunEvents:
    """Collects the events of one run and forwards them to logging.

    Every event carries the run id, so interleaved runs in one process stay
    attributable. The history is kept in memory for the run summary.
    """

    def __init__(
        self,
        run_id: Optional[str] = None,
        log: Optional[logging.Logger] = None,
        listeners: Optional[List[Listener]] = None,
    ) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self._log = log or logger
        self._listeners: List[Listener] = list(listeners or [])
        self._history: List[RunEvent] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def emit(self, name: str, level: int = logging.INFO, **fields: Any) -> RunEvent:
        event = RunEvent(run_id=self.run_id, name=name, fields=fields, level=level)
        with self._lock:
            self._history.append(event)

        detail = " ".join(f"{key}={value}" for key, value in fields.items())
        self._log.log(level, f"[{self.run_id}] {name} {detail}".rstrip())

        for listener in self._listeners:
            listener(event)
        return event

    @property
    def history(self) -> List[RunEvent]:
        with self._lock:
            return list(self._history)

    def named(self, name: str) -> List[RunEvent]:
        return [event for event in self.history if event.name == name]
