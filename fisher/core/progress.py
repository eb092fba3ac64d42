"""Progress counters written by the scheduler and read by observers."""
from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Deque, Optional


@dataclass
class Progress:
    events_issued: int = 0  # evaluator calls
    elapsed_ms: int = 0  # summed over all runs of this state
    nodes_reached: int = 0  # tree nodes created (root, responder and initiator nodes)
    window_s: float = 10.0
    _events: Deque[float] = field(default_factory=deque, repr=False, compare=False)
    _run_started: Optional[float] = field(default=None, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def start_clock(self, now: Optional[float] = None):
        self._run_started = time.monotonic() if now is None else now
        self._events.clear()

    def stop_clock(self, now: Optional[float] = None):
        if self._run_started is None:
            return
        now = time.monotonic() if now is None else now
        self.elapsed_ms += int((now - self._run_started) * 1000)
        self._run_started = None

    def current_elapsed_ms(self, now: Optional[float] = None) -> int:
        if self._run_started is None:
            return self.elapsed_ms
        now = time.monotonic() if now is None else now
        return self.elapsed_ms + int((now - self._run_started) * 1000)

    def record_event(self, now: Optional[float] = None):
        # called from evaluator worker threads
        with self._lock:
            self.events_issued += 1
            self._events.append(time.monotonic() if now is None else now)

    def events_per_second(self, now: Optional[float] = None) -> float:
        now = time.monotonic() if now is None else now
        horizon = now - self.window_s
        with self._lock:
            while self._events and self._events[0] < horizon:
                self._events.popleft()
            count = len(self._events)
        if not count:
            return 0.0
        span = self.window_s
        if self._run_started is not None:
            span = min(span, now - self._run_started)
        return count / max(span, 1e-3)


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only view handed to observers; replaced wholesale after each batch."""

    events_issued: int = 0
    elapsed_ms: int = 0
    events_per_second: float = 0.0
    nodes_reached: int = 0
    total_nodes: int = 1
    lines_total: int = 0
    lines_active: int = 0
    lines_done: int = 0
    lines_completed: int = 0  # leaf lines: done for any reason but branching
    expected_lines: int = 1
    lines_mate: int = 0
    lines_stalemate: int = 0
    lines_full: int = 0
    lines_transposition: int = 0
    lines_error: int = 0
    queue_length: int = 0
    current_line: Optional[str] = None
    is_running: bool = False

    @property
    def node_percent(self) -> float:
        return 100.0 * self.nodes_reached / self.total_nodes if self.total_nodes else 0.0

    @property
    def line_percent(self) -> float:
        if not self.expected_lines:
            return 0.0
        return min(100.0, 100.0 * self.lines_completed / self.expected_lines)

    def to_dict(self) -> dict:
        out = asdict(self)
        out["node_percent"] = round(self.node_percent, 2)
        out["line_percent"] = round(self.line_percent, 2)
        return out
