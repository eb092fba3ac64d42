import logging
import threading
from typing import Any, Callable, List, Optional

from fisher.config import CONFIG, FisherConfig, SchedulerConfig
from fisher.core.evaluator import MoveEvaluator, UCIEvaluator
from fisher.core.lines import Line
from fisher.core.progress import ProgressSnapshot
from fisher.core.scheduler import LineScheduler, RunOutcome
from fisher.core.state import FisherState
from fisher.core.tree import LineTree
from fisher.errors import FisherBusyError, FisherError
from fisher.persistence import LineSink

log = logging.getLogger(__name__)


class LineFisher:
    """Owns one fisher state and runs the scheduler over it.

    `run()` blocks; `start()` runs on a daemon thread and `stop()` cancels it.
    The state can be exported at any time and replaced (import, reset) only
    while no run is active.
    """

    def __init__(
        self,
        evaluator: Optional[MoveEvaluator] = None,
        settings: Optional[SchedulerConfig] = None,
        sink: Optional[LineSink] = None,
        session_id: Optional[str] = None,
        config: Optional[FisherConfig] = None,
    ):
        self.evaluator = evaluator or UCIEvaluator(
            CONFIG.evaluator.engine_path,
            pool_size=CONFIG.evaluator.pool_size,
            timeout_s=CONFIG.evaluator.timeout_s,
            hash_mb=CONFIG.evaluator.hash_mb,
        )
        self.settings = settings or CONFIG.scheduler
        self.sink = sink
        self.session_id = session_id or CONFIG.api.session_id
        self.defaults = config or CONFIG.fisher
        self.state = FisherState.create(self.defaults)
        self.last_outcome: Optional[RunOutcome] = None
        self.last_error: Optional[str] = None
        self._scheduler: Optional[LineScheduler] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    # ── run control ────────────────────────────────────────
    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def configure(self, config: FisherConfig) -> FisherConfig:
        """Start over with a new configuration."""
        config.validate()
        with self._lock:
            self._ensure_idle("configure")
            self.state = FisherState.create(config)
            self.last_outcome = None
            self.last_error = None
        return config

    def _scheduler_for_run(self, yield_hook: Optional[Callable[[ProgressSnapshot], None]]) -> LineScheduler:
        self._scheduler = LineScheduler(
            self.state,
            self.evaluator,
            self.settings,
            yield_hook=yield_hook,
            sink=self.sink,
            session_id=self.session_id,
        )
        return self._scheduler

    def run(self, yield_hook: Optional[Callable[[ProgressSnapshot], None]] = None) -> RunOutcome:
        with self._lock:
            self._ensure_idle("run")
            scheduler = self._scheduler_for_run(yield_hook)
        self.last_outcome = scheduler.run()
        return self.last_outcome

    def start(self, yield_hook: Optional[Callable[[ProgressSnapshot], None]] = None) -> bool:
        """Run on a background thread. Returns False if a run is already active."""
        with self._lock:
            if self.is_running:
                return False
            scheduler = self._scheduler_for_run(yield_hook)
            self.last_outcome = None
            self.last_error = None

            def worker():
                try:
                    self.last_outcome = scheduler.run()
                except FisherError as e:
                    log.error("fishing stopped: %s", e)
                    self.last_error = str(e)
                except Exception as e:
                    log.exception("fishing crashed")
                    self.last_error = f"{type(e).__name__}: {e}"

            self._thread = threading.Thread(target=worker, name="fisher", daemon=True)
            self._thread.start()
        return True

    # resuming is running again on a non-empty queue
    resume = start

    def stop(self, timeout: Optional[float] = 5.0) -> bool:
        """Cancel the active run. Returns True once the worker has exited."""
        if self._scheduler is not None:
            self._scheduler.cancel()
        if self._thread:
            self._thread.join(timeout=timeout)
            return not self._thread.is_alive()
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[RunOutcome]:
        if self._thread:
            self._thread.join(timeout=timeout)
        return self.last_outcome

    def reset(self):
        with self._lock:
            self._ensure_idle("reset")
            self.state = FisherState.create(self.defaults)
            self._scheduler = None
            self.last_outcome = None
            self.last_error = None

    def _ensure_idle(self, action: str):
        if self.is_running:
            raise FisherBusyError(f"cannot {action} while fishing; stop first")

    # ── state access ───────────────────────────────────────
    def progress(self) -> ProgressSnapshot:
        if self._scheduler is not None and self._scheduler.state is self.state:
            return self._scheduler.snapshot
        return self.state.progress_snapshot()

    def lines(self, done_only: bool = False) -> List[Line]:
        state = self.state
        with state.lock:
            ordered = [state.lines[i] for i in sorted(state.lines)]
        if done_only:
            return [l for l in ordered if l.is_leaf]
        return ordered

    def tree(self) -> LineTree:
        state = self.state
        with state.lock:
            return LineTree.from_state(state)

    def export_state(self) -> dict:
        return self.state.to_snapshot()

    def export_json(self) -> str:
        return self.state.to_json()

    def import_state(self, data: Any) -> FisherState:
        """Replace the live state with a snapshot; the live state is untouched on failure."""
        with self._lock:
            self._ensure_idle("import")
            if isinstance(data, (str, bytes)):
                state = FisherState.from_json(data)
            else:
                state = FisherState.from_snapshot(data)
            self.state = state
            self._scheduler = None
            self.last_outcome = None
            self.last_error = None
        log.info("imported state: %d line(s), %d queued", len(state.lines), len(state.queue))
        return state

    def close(self):
        self.stop()
        for resource in (self.evaluator, self.sink):
            close = getattr(resource, "close", None)
            if close is not None:
                close()
