"""
Discovery Engine — Event Log
============================
Version 1.0 — October 2026

Append-only, strictly ordered event stream. It is the only channel by
which a run reports progress; observers (CLI, files, dashboards) receive
every event synchronously and in emission order.
"""

import copy
import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .orchestrator_types import Event

logger = logging.getLogger(__name__)

# Run lifecycle
RUN_START = "run.start"
RUN_STOPPED = "run.stopped"
RUN_DONE = "run.done"
RUN_FAILED = "run.failed"

# Node lifecycle
NODE_START = "node.start"
NODE_STATUS_UPDATE = "node.status.update"
NODE_RESULT = "node.result"
NODE_TOOL_START = "node.tool.start"
NODE_TOOL_RESULT = "node.tool.result"

# Repair cycle
REPAIR_START = "repair.start"
REPAIR_PROPOSE_START = "repair.propose.start"
REPAIR_VET_START = "repair.vet.start"
REPAIR_VET_SUCCESS = "repair.vet.success"
REPAIR_APPLY_CODE_PATCH = "repair.apply.code_patch"
REPAIR_SUCCESS = "repair.success"
REPAIR_FAILED = "repair.failed"
REPAIR_FAILED_PERMANENT = "repair.failed.permanent"

Observer = Callable[[Event], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _snapshot(event: Event) -> Event:
    return replace(event, data=copy.deepcopy(event.data))


class EventLog:
    """
    Stamps and delivers events.

    Usage:
        log = EventLog()
        log.subscribe(lambda event: print(event.to_dict()))
        log.emit(RUN_START, run_id, data={"goal": goal})
    """

    def __init__(self, clock: Callable[[], datetime] = _now):
        self._clock = clock
        self._observers: List[Observer] = []
        self._history: List[Event] = []
        self._last_timestamp: Optional[datetime] = None

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def emit(
        self,
        event_type: str,
        run_id: str,
        node_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Event:
        """
        Stamp an event and deliver it to every observer before returning.

        The stored event keeps a deep copy of data; observers and callers only
        ever see copies, so the history cannot be changed from outside.
        """
        timestamp = self._clock()
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp

        event = Event(
            timestamp=timestamp,
            run_id=run_id,
            type=event_type,
            data=copy.deepcopy(data or {}),
            node_id=node_id,
            sequence=len(self._history) + 1,
        )
        self._history.append(event)

        for observer in list(self._observers):
            try:
                observer(_snapshot(event))
            except Exception as e:
                logger.error(f"Error delivering {event.type} to observer {observer!r}: {e}", exc_info=True)

        return _snapshot(event)

    def events(self, run_id: Optional[str] = None) -> Tuple[Event, ...]:
        """Full history, optionally restricted to one run."""
        return tuple(_snapshot(e) for e in self._history if run_id is None or e.run_id == run_id)


# =============================================================================
# OBSERVERS
# =============================================================================

class NDJSONFileSink:
    """Appends every event to a file as one JSON line."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, event: Event) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), default=str) + "\n")


class LoggingObserver:
    """Mirrors events into the log, one compact JSON line each."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def __call__(self, event: Event) -> None:
        logger.log(self.level, json.dumps(event.to_dict(), default=str))


def read_ndjson_events(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Load events written by NDJSONFileSink (wire format dicts)."""
    events = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                events.append(json.loads(line))
    return events
