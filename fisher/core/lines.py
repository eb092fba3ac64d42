"""Line model: one path from the seed position to its current frontier."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class EndReason(str, Enum):
    MATE = "mate"
    STALEMATE = "stalemate"
    TRANSPOSITION = "transposition"
    FULL = "full"
    BRANCHED = "branched"  # responder turn expanded into successor lines
    ERROR = "error"


@dataclass(frozen=True)
class ScoredMove:
    """An evaluator candidate kept as summary data (never expanded)."""

    move: str  # long-form (uci) move
    score: int  # centipawns, positive favors White
    mate: int = 0


@dataclass
class Line:
    index: int
    moves: List[str] = field(default_factory=list)  # PCN, e.g. "Ng1f3"
    position: str = ""
    ply: int = 0
    score: int = 0
    mate: int = 0
    scores: List[Optional[int]] = field(default_factory=list)
    san_game: str = ""
    is_done: bool = False
    is_full: bool = False
    is_mate: bool = False
    is_stalemate: bool = False
    is_transposition: bool = False
    is_branched: bool = False
    transposition_target: Optional[int] = None
    error: Optional[str] = None
    best_replies: List[ScoredMove] = field(default_factory=list)
    best_alternatives: List[ScoredMove] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return not self.is_done

    @property
    def is_responder_turn(self) -> bool:
        return self.ply % 2 == 0

    @property
    def end_reason(self) -> Optional[EndReason]:
        if not self.is_done:
            return None
        if self.error is not None:
            return EndReason.ERROR
        if self.is_mate:
            return EndReason.MATE
        if self.is_stalemate:
            return EndReason.STALEMATE
        if self.is_transposition:
            return EndReason.TRANSPOSITION
        if self.is_full:
            return EndReason.FULL
        if self.is_branched:
            return EndReason.BRANCHED
        return None

    @property
    def is_leaf(self) -> bool:
        """Done for any reason other than having been branched."""
        return self.is_done and not self.is_branched

    def extend(self, pcn: str, position: str, score: Optional[int], mate: int = 0) -> None:
        self.moves.append(pcn)
        self.scores.append(score)
        self.position = position
        self.ply += 1
        if score is not None:
            self.score = score
        self.mate = mate
        self.san_game = ""  # derived, recomputed on demand

    def successor(self, index: int) -> "Line":
        """A fresh active line continuing this one's move sequence."""
        return Line(
            index=index,
            moves=list(self.moves),
            position=self.position,
            ply=self.ply,
            score=self.score,
            mate=self.mate,
            scores=list(self.scores),
        )

    def finish(self, reason: EndReason, *, target: Optional[int] = None, error: Optional[str] = None) -> None:
        self.is_done = True
        if reason is EndReason.MATE:
            self.is_mate = True
        elif reason is EndReason.STALEMATE:
            self.is_stalemate = True
        elif reason is EndReason.TRANSPOSITION:
            if target is None:
                raise ValueError("a transposition needs a target line")
            self.is_transposition = True
            self.transposition_target = target
        elif reason is EndReason.FULL:
            self.is_full = True
        elif reason is EndReason.BRANCHED:
            self.is_branched = True
        elif reason is EndReason.ERROR:
            self.error = error or "unknown error"
