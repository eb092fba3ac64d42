"""Work-queue scheduler that expands opening lines.

Lines are read from the front of the queue in batches. Each batch is
evaluated concurrently (at most ``config.threads`` requests in flight), then
the results are applied one line at a time in dequeue order:

  - responder turn (even ply): the top ``K`` replies become successor lines
    appended to the queue, the parent line is done (branched);
  - initiator turn (odd ply): the forced or best move extends the line in
    place and the line goes back to the end of the queue.

A line leaves the front of the queue only when its result is applied, under
the state lock, so an export taken mid-run lists in-flight lines as pending.
After each extension a line is checked for mate, stalemate, transposition
and full depth, in that order. Since results are applied in dequeue order,
line indices and transposition targets do not depend on evaluator latency.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from itertools import islice
from typing import Callable, List, Optional, Tuple

import chess

from fisher.config import FisherConfig, SchedulerConfig
from fisher.core.evaluator import MATE_SCORE, Evaluation, EvaluationRequest, MoveEvaluator
from fisher.core.lines import EndReason, Line, ScoredMove
from fisher.core.notation import apply_move, board_at, parse_pcn, position_key, to_long_form_moves, to_pcn
from fisher.core.progress import ProgressSnapshot
from fisher.core.state import FisherState
from fisher.core.utils import format_info
from fisher.errors import EvaluatorError, NotationError
from fisher.persistence import LineSink

log = logging.getLogger(__name__)

YieldHook = Callable[[ProgressSnapshot], None]


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class _Cancelled(Exception):
    """Raised internally when the cancel flag is seen mid-batch."""


@dataclass(frozen=True)
class _LineResult:
    evaluation: Evaluation
    forced: Optional[chess.Move] = None  # initiator move taken from config
    forced_evaluation: Optional[Evaluation] = None  # position after `forced`, when not among candidates


class LineScheduler:
    """Runs fishing passes over a FisherState.

    The scheduler is the only writer of the state while `run()` is active.
    `cancel()` may be called from any thread; the run then returns
    `RunOutcome.CANCELLED` with every unprocessed line still at the front of
    the queue. The cancel flag is cleared when a run ends, so a later `run()`
    on the same scheduler or state picks up from there.
    """

    def __init__(
        self,
        state: FisherState,
        evaluator: MoveEvaluator,
        settings: Optional[SchedulerConfig] = None,
        yield_hook: Optional[YieldHook] = None,
        sink: Optional[LineSink] = None,
        session_id: str = "default",
        cancel_event: Optional[threading.Event] = None,
    ):
        self.state = state
        self.evaluator = evaluator
        self.settings = settings or SchedulerConfig()
        self.yield_hook = yield_hook
        self.sink = sink
        self.session_id = session_id
        self._cancel = cancel_event or threading.Event()
        self._running = False
        self.snapshot: ProgressSnapshot = state.progress_snapshot()

    # ── control ────────────────────────────────────────────
    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self):
        self._cancel.set()

    # ── seeding ────────────────────────────────────────────
    def seed(self, pool: Optional[ThreadPoolExecutor] = None) -> Optional[Line]:
        """Create and enqueue the root line if the state has none yet.

        Evaluator calls go through `pool` when given, so a cancel is seen
        while they are pending; the state stays unseeded in that case.
        """
        state = self.state
        if state.is_seeded:
            return None
        cfg = state.config.validate().resolved()
        if not cfg.baseline_moves:
            cfg = self._with_baseline(cfg, pool)

        root = Line(
            index=0,
            position=cfg.root_fen,
            score=cfg.baseline_score,
            best_alternatives=list(cfg.baseline_moves[: self.settings.summary_width]),
        )
        if cfg.initiator_moves:
            pcn = to_long_form_moves(cfg.initiator_moves[:1], cfg.root_fen)[0]
            score, mate = self._opening_score(cfg, pcn, pool)
            root.extend(pcn, apply_move(cfg.root_fen, pcn), score, mate)
            root.ply = 0  # the forced first move is part of the seed

        with state.lock:
            state.config = cfg
            root.index = state.allocate_index()
            state.add_line(root)
            state.index.record_fen(root.position, root.index)
            state.progress.nodes_reached += 1
            if cfg.max_depth == 0:
                self._finish(root, EndReason.FULL)
            else:
                state.enqueue(root)
        log.info("seeded line %d at %s", root.index, root.position)
        return root

    def _with_baseline(self, cfg: FisherConfig, pool: Optional[ThreadPoolExecutor]) -> FisherConfig:
        request = EvaluationRequest(cfg.root_fen, cfg.target_depth, self.settings.summary_width, cfg.threads)
        try:
            evaluation = self._call_and_wait(pool, request)
        except EvaluatorError as e:
            if e.fatal:
                raise
            log.warning("baseline evaluation failed, continuing without one: %s", e)
            return cfg
        moves = tuple(ScoredMove(c.move, c.score, c.mate) for c in evaluation.candidates)
        if not moves:
            return cfg
        return cfg.with_baseline(moves[0].score, moves)

    def _opening_score(self, cfg: FisherConfig, pcn: str, pool: Optional[ThreadPoolExecutor]) -> Tuple[Optional[int], int]:
        """Score of the forced first move: from the baseline, else one extra call."""
        for known in cfg.baseline_moves:
            if known.move == pcn[1:]:
                return known.score, known.mate
        after = apply_move(cfg.root_fen, pcn)
        try:
            evaluation = self._call_and_wait(pool, EvaluationRequest(after, cfg.target_depth, 1, cfg.threads))
            return self._score_after(cfg.root_fen, after, evaluation)
        except EvaluatorError as e:
            if e.fatal:
                raise
            log.warning("could not score the first initiator move: %s", e)
            return None, 0

    def _call_and_wait(self, pool: Optional[ThreadPoolExecutor], request: EvaluationRequest) -> Evaluation:
        if pool is None:
            return self._call(request)
        future = pool.submit(self._call, request)
        self._await(future)
        return future.result()

    # ── main loop ──────────────────────────────────────────
    def run(self) -> RunOutcome:
        """Process the queue until it is empty or the run is cancelled.

        Raises EvaluatorError when the evaluator fails fatally; unprocessed
        lines are still in the queue by then.
        """
        state = self.state
        self._running = True
        state.progress.window_s = self.settings.rate_window_s
        state.progress.start_clock()
        pool = None
        outcome = RunOutcome.COMPLETED
        try:
            state.config.validate()
            pool = ThreadPoolExecutor(max_workers=state.config.threads, thread_name_prefix="fisher-eval")
            self.seed(pool)
            log.info("fishing: %d line(s) queued, %d done", len(state.queue), len(state.done_lines()))
            while state.queue:
                if self._cancel.is_set():
                    raise _Cancelled()
                self._run_batch(pool, list(islice(state.queue, self.settings.batch_size)))
                self._publish()
                log.debug(format_info(self.snapshot))
                if self.yield_hook is not None:
                    self.yield_hook(self.snapshot)
        except _Cancelled:
            outcome = RunOutcome.CANCELLED
        finally:
            if pool is not None:
                pool.shutdown(wait=False, cancel_futures=True)
            state.progress.stop_clock()
            self._running = False
            self._cancel.clear()
            self._publish()
        log.info("fishing %s: %s", outcome.value, format_info(self.snapshot))
        return outcome

    def _run_batch(self, pool: ThreadPoolExecutor, batch: List[int]):
        """Evaluate the lines at the front of the queue and apply the results.

        Each line is popped only after its result is applied; on any
        exception the remaining lines are still queued, in order.
        """
        state = self.state
        lines = [state.line(i) for i in batch]
        futures = [pool.submit(self._evaluate_line, line) for line in lines]
        for n, (line, future) in enumerate(zip(lines, futures)):
            try:
                if self._cancel.is_set():
                    raise _Cancelled()
                self._await(future)
                with state.lock:
                    try:
                        self._apply(line, future.result())
                    except NotationError as e:
                        log.warning("line %d: %s", line.index, e)
                        self._finish(line, EndReason.ERROR, error=str(e))
                    except EvaluatorError as e:
                        if e.fatal:
                            raise
                        log.warning("line %d: %s", line.index, e)
                        self._finish(line, EndReason.ERROR, error=str(e))
                    state.queue.popleft()
            except BaseException:
                for f in futures[n:]:
                    f.cancel()
                raise

    def _await(self, future: Future):
        while True:
            done, _ = wait([future], timeout=self.settings.poll_interval_s)
            if done:
                return
            if self._cancel.is_set():
                raise _Cancelled()

    def _publish(self):
        self.snapshot = self.state.progress_snapshot(is_running=self._running)

    # ── evaluation (worker threads, no state writes) ───────
    def _call(self, request: EvaluationRequest) -> Evaluation:
        self.state.progress.record_event()
        return self.evaluator.evaluate(request)

    def _evaluate_line(self, line: Line) -> _LineResult:
        cfg = self.state.config
        if line.is_responder_turn:
            multipv = max(self.settings.summary_width, cfg.branching_factor(line.ply // 2))
            return _LineResult(self._call(EvaluationRequest(line.position, cfg.target_depth, multipv, cfg.threads)))

        evaluation = self._call(
            EvaluationRequest(line.position, cfg.target_depth, self.settings.initiator_multipv, cfg.threads)
        )
        forced = self._forced_move(line)
        if forced is None or evaluation.is_terminal:
            return _LineResult(evaluation)
        if any(c.move == forced.uci() for c in evaluation.candidates):
            return _LineResult(evaluation, forced)
        after = apply_move(line.position, forced)
        extra = self._call(EvaluationRequest(after, cfg.target_depth, 1, cfg.threads))
        return _LineResult(evaluation, forced, extra)

    def _forced_move(self, line: Line) -> Optional[chess.Move]:
        moves = self.state.config.initiator_moves
        turn = line.ply // 2 + 1
        if turn >= len(moves):
            return None
        board = board_at(line.position)
        try:
            return board.parse_san(moves[turn])
        except ValueError:
            log.warning("line %d: initiator move %r is not legal here, using the best move", line.index, moves[turn])
            return None

    # ── applying results (scheduler thread, state lock held) ──
    def _apply(self, line: Line, result: _LineResult):
        evaluation = result.evaluation
        if evaluation.is_checkmate:
            self._finish(line, EndReason.MATE)
        elif evaluation.is_stalemate:
            self._finish(line, EndReason.STALEMATE)
        elif line.is_responder_turn:
            self._branch(line, evaluation)
        else:
            self._extend(line, result)

    def _branch(self, line: Line, evaluation: Evaluation):
        state = self.state
        if not evaluation.candidates:
            raise EvaluatorError(f"no candidate moves for {line.position}")
        width = state.config.branching_factor(line.ply // 2)
        board = board_at(line.position)
        # convert every reply before touching the state
        replies: List[Tuple[str, str, int, int]] = []
        for c in evaluation.candidates[:width]:
            move = parse_pcn(c.move, board)
            replies.append((to_pcn(board, move), _position_after(line.position, move, c.fen), c.score, c.mate))

        line.best_replies = [ScoredMove(c.move, c.score, c.mate) for c in evaluation.candidates[: self.settings.summary_width]]
        for pcn, fen, score, mate in replies:
            child = line.successor(state.allocate_index())
            child.extend(pcn, fen, score, mate)
            state.add_line(child)
            state.progress.nodes_reached += 1
            if self._settle(child):
                state.enqueue(child)
        self._finish(line, EndReason.BRANCHED)

    def _extend(self, line: Line, result: _LineResult):
        evaluation = result.evaluation
        board = board_at(line.position)
        if result.forced is not None:
            move = result.forced
            score, mate, fen = self._forced_score(line, result)
        else:
            best = evaluation.best
            if best is None:
                raise EvaluatorError(f"no candidate moves for {line.position}")
            move = parse_pcn(best.move, board)
            score, mate, fen = best.score, best.mate, _position_after(line.position, move, best.fen)
        pcn = to_pcn(board, move)
        line.best_alternatives = [
            ScoredMove(c.move, c.score, c.mate) for c in evaluation.candidates[: self.settings.summary_width]
        ]
        line.extend(pcn, fen, score, mate)
        self.state.progress.nodes_reached += 1
        if self._settle(line):
            self.state.enqueue(line)

    def _forced_score(self, line: Line, result: _LineResult) -> Tuple[int, int, str]:
        uci = result.forced.uci()
        for c in result.evaluation.candidates:
            if c.move == uci:
                return c.score, c.mate, _position_after(line.position, result.forced, c.fen)
        fen = apply_move(line.position, result.forced)
        if result.forced_evaluation is None:
            return 0, 0, fen
        score, mate = self._score_after(line.position, fen, result.forced_evaluation)
        return score, mate, fen

    @staticmethod
    def _score_after(before: str, after: str, evaluation: Evaluation) -> Tuple[int, int]:
        """Score of a move from the evaluation of the position it leads to."""
        if evaluation.is_stalemate:
            return 0, 0
        if evaluation.is_checkmate:
            # the mover delivered mate
            return (MATE_SCORE if board_at(before).turn == chess.WHITE else -MATE_SCORE), 0
        if evaluation.best is None:
            raise EvaluatorError(f"no candidate moves for {after}")
        return evaluation.best.score, evaluation.best.mate

    def _settle(self, line: Line) -> bool:
        """Apply the termination checks to a freshly extended line.

        Returns True when the line stays active.
        """
        board = board_at(line.position)
        if board.is_checkmate():
            self._finish(line, EndReason.MATE)
            return False
        if not any(board.legal_moves):
            self._finish(line, EndReason.STALEMATE)
            return False
        index = self.state.index
        key = board.epd()
        if not index.record(key, line.index):
            self._finish(line, EndReason.TRANSPOSITION, target=index.lookup(key))
            return False
        if line.ply >= 2 * self.state.config.max_depth:
            self._finish(line, EndReason.FULL)
            return False
        return True

    def _finish(self, line: Line, reason: EndReason, *, target: Optional[int] = None, error: Optional[str] = None):
        line.finish(reason, target=target, error=error)
        if self.sink is None:
            return
        try:
            self.sink.write_line(self.session_id, line)
        except Exception:
            log.exception("could not persist line %d", line.index)


def _position_after(fen: str, move: chess.Move, reported: str) -> str:
    """Position after `move`, checked against the one the evaluator reported."""
    after = apply_move(fen, move)
    if reported and reported != after:
        try:
            same = position_key(reported) == position_key(after)
        except NotationError:
            same = False
        if not same:
            raise EvaluatorError(f"evaluator reported position {reported!r} after {move.uci()}, expected {after}")
    return after
