"""Move evaluator contract and a UCI engine adapter.

The scheduler only sees ``MoveEvaluator.evaluate(request) -> Evaluation``.
``UCIEvaluator`` answers those requests with a small pool of UCI engine
processes (Stockfish by default) driven by ``chess.engine.SimpleEngine``.
Scores are always centipawns from White's point of view.
"""
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Tuple

import chess
import chess.engine

from fisher.errors import EvaluatorError

log = logging.getLogger(__name__)

MATE_SCORE = 100000


@dataclass(frozen=True)
class EvaluationRequest:
    fen: str
    depth: int
    multipv: int = 1
    threads: int = 1


@dataclass(frozen=True)
class Candidate:
    move: str  # uci
    score: int  # centipawns, White-relative
    mate: int = 0  # moves to mate, signed like score, 0 if none
    fen: str = ""  # position after the move


@dataclass(frozen=True)
class Evaluation:
    candidates: Tuple[Candidate, ...] = ()
    is_checkmate: bool = False
    is_stalemate: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.is_checkmate or self.is_stalemate

    @property
    def best(self) -> Optional[Candidate]:
        return self.candidates[0] if self.candidates else None


class MoveEvaluator(Protocol):
    def evaluate(self, request: EvaluationRequest) -> Evaluation:
        ...


def terminal_evaluation(board: chess.Board) -> Optional[Evaluation]:
    """Evaluation for a position without legal moves, None otherwise."""
    if board.is_checkmate():
        return Evaluation(is_checkmate=True)
    if not any(board.legal_moves):
        return Evaluation(is_stalemate=True)
    return None


def candidate_from_info(board: chess.Board, info: "chess.engine.InfoDict") -> Optional[Candidate]:
    pv = info.get("pv")
    score = info.get("score")
    if not pv or score is None:
        return None
    move = pv[0]
    if move not in board.legal_moves:
        raise EvaluatorError(f"engine proposed illegal move {move.uci()} in {board.fen()}")
    white = score.white()
    board.push(move)
    fen = board.fen()
    board.pop()
    return Candidate(
        move=move.uci(),
        score=white.score(mate_score=MATE_SCORE),
        mate=white.mate() or 0,
        fen=fen,
    )


class UCIEvaluator:
    """Pool of UCI engine processes answering evaluation requests.

    Each request borrows one idle engine, so at most `pool_size` analyses run
    at once; further callers block until an engine is released.
    """

    def __init__(
        self,
        engine_path: str = "stockfish",
        pool_size: int = 1,
        timeout_s: Optional[float] = 120.0,
        hash_mb: int = 64,
        engine_factory: Optional[Callable[[], chess.engine.SimpleEngine]] = None,
    ):
        self.engine_path = engine_path
        self.pool_size = max(1, pool_size)
        self.hash_mb = hash_mb
        self._factory = engine_factory or (
            lambda: chess.engine.SimpleEngine.popen_uci(engine_path, timeout=timeout_s)
        )
        self._idle: "queue.Queue[chess.engine.SimpleEngine]" = queue.Queue()
        self._engines: List[chess.engine.SimpleEngine] = []
        self._threads: Dict[int, int] = {}
        self._lock = threading.Lock()

    def start(self):
        with self._lock:
            if self._engines:
                return
            for _ in range(self.pool_size):
                try:
                    engine = self._factory()
                except (OSError, chess.engine.EngineError) as e:
                    raise EvaluatorError(f"cannot start engine {self.engine_path!r}: {e}", fatal=True) from e
                if "Hash" in engine.options:
                    engine.configure({"Hash": self.hash_mb})
                self._engines.append(engine)
                self._idle.put(engine)
            log.info("started %d engine process(es) from %s", len(self._engines), self.engine_path)

    def evaluate(self, request: EvaluationRequest) -> Evaluation:
        try:
            board = chess.Board(request.fen)
        except ValueError as e:
            raise EvaluatorError(f"invalid FEN {request.fen!r}: {e}") from e
        terminal = terminal_evaluation(board)
        if terminal is not None:
            return terminal

        self.start()
        engine = self._idle.get()
        try:
            self._set_threads(engine, request.threads)
            infos = engine.analyse(
                board,
                chess.engine.Limit(depth=request.depth),
                multipv=max(1, request.multipv),
            )
        except chess.engine.EngineTerminatedError as e:
            raise EvaluatorError(f"engine terminated: {e}", fatal=True) from e
        except (chess.engine.EngineError, TimeoutError) as e:
            raise EvaluatorError(f"engine failed on {request.fen}: {e}") from e
        finally:
            self._idle.put(engine)

        candidates = []
        for info in infos:
            candidate = candidate_from_info(board, info)
            if candidate is not None:
                candidates.append(candidate)
        if not candidates:
            raise EvaluatorError(f"engine returned no moves for {request.fen}")
        return Evaluation(candidates=tuple(candidates))

    def _set_threads(self, engine: chess.engine.SimpleEngine, threads: int):
        if "Threads" not in engine.options or self._threads.get(id(engine)) == threads:
            return
        engine.configure({"Threads": threads})
        self._threads[id(engine)] = threads

    def close(self):
        with self._lock:
            engines, self._engines = self._engines, []
            self._idle = queue.Queue()
            self._threads.clear()
        for engine in engines:
            try:
                engine.quit()
            except chess.engine.EngineError as e:
                log.warning("engine did not quit cleanly: %s", e)

    def __enter__(self) -> "UCIEvaluator":
        self.start()
        return self

    def __exit__(self, *exc):
        self.close()
