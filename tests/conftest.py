"""Shared fixtures: a deterministic evaluator standing in for a UCI engine."""

import threading
import time

import chess
import pytest

from fisher.config import SchedulerConfig
from fisher.core.evaluator import Candidate, Evaluation, EvaluationRequest, terminal_evaluation
from fisher.errors import EvaluatorError


def position(*sans, fen=chess.STARTING_FEN) -> str:
    """EPD key of the position reached by playing `sans` from `fen`."""
    board = chess.Board(fen)
    for san in sans:
        board.push_san(san)
    return board.epd()


class ScriptedEvaluator:
    """Answers from a script keyed by position, else from a fixed move order.

    script:   {epd: [(san, score), ...]} best first
    by_turn:  {chess.WHITE: [...], chess.BLACK: [...]} used when the position
              is not scripted; moves that are illegal in the position are skipped
    default:  legal moves sorted by uci, scored 30, 25, 20, ... for the side to move
    raw:      {epd: Evaluation} returned as is, for answers no engine should give
    """

    def __init__(self, script=None, by_turn=None, latency=0.0, fail_on=(), fatal_on=(), on_call=None, raw=None):
        self.script = dict(script or {})
        self.by_turn = dict(by_turn or {})
        self.latency = latency
        self.fail_on = set(fail_on)
        self.fatal_on = set(fatal_on)
        self.on_call = on_call
        self.raw = dict(raw or {})
        self.calls = []
        self._lock = threading.Lock()

    def evaluate(self, request: EvaluationRequest) -> Evaluation:
        board = chess.Board(request.fen)
        key = board.epd()
        with self._lock:
            self.calls.append(request)
            n = len(self.calls)
        if self.on_call is not None:
            self.on_call(n, request)
        delay = self.latency(key) if callable(self.latency) else self.latency
        if delay:
            time.sleep(delay)

        terminal = terminal_evaluation(board)
        if terminal is not None:
            return terminal
        if key in self.fatal_on:
            raise EvaluatorError(f"engine died on {key}", fatal=True)
        if key in self.fail_on:
            raise EvaluatorError(f"timeout on {key}")
        if key in self.raw:
            return self.raw[key]

        if key in self.script:
            scripted = self.script[key]
        elif board.turn in self.by_turn:
            scripted = self.by_turn[board.turn]
        else:
            sign = 1 if board.turn == chess.WHITE else -1
            ordered = sorted(board.legal_moves, key=lambda m: m.uci())
            scripted = [(board.san(m), sign * (30 - 5 * i)) for i, m in enumerate(ordered)]

        candidates = []
        for san, score in scripted:
            try:
                move = board.parse_san(san)
            except ValueError:
                continue
            board.push(move)
            candidates.append(Candidate(move.uci(), score, 0, board.fen()))
            board.pop()
            if len(candidates) == request.multipv:
                break
        return Evaluation(candidates=tuple(candidates))

    def positions(self):
        return [chess.Board(r.fen).epd() for r in self.calls]


@pytest.fixture
def evaluator():
    return ScriptedEvaluator()


@pytest.fixture
def settings():
    return SchedulerConfig(batch_size=10, poll_interval_s=0.01)


@pytest.fixture
def scenario_evaluator():
    """e4/d4 for White, e5 for Black."""
    return ScriptedEvaluator(by_turn={chess.WHITE: [("e4", 30), ("d4", 25)], chess.BLACK: [("e5", -10)]})
