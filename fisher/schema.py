"""Pydantic models for the JSON fish-state snapshot and for API payloads.

Keys are camelCase on the wire (``lineIndex``, ``best5Replies``,
``rootFEN``) and snake_case in Python. Validation is strict: ints must be
ints, bools must be bools, every FEN must parse. Failures are reported as
``ImportIssue`` items with a ``RejectReason``.
"""
from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Tuple

import chess
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError
from pydantic import model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from fisher.config import MAX_THREADS, FisherConfig
from fisher.core.lines import Line, ScoredMove
from fisher.core.notation import position_key, replay
from fisher.errors import ImportIssue, NotationError, RejectReason

SNAPSHOT_TYPE = "fish-state"
SNAPSHOT_VERSION = 1

NonNegInt = Annotated[StrictInt, Field(ge=0)]
PosInt = Annotated[StrictInt, Field(ge=1)]


def _check_fen(value: str) -> str:
    try:
        chess.Board(value)
    except ValueError as e:
        raise PydanticCustomError("invalid_position", "invalid FEN '{fen}': {err}", {"fen": value, "err": str(e)})
    return value


FenStr = Annotated[StrictStr, AfterValidator(_check_fen)]


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ScoredMoveModel(_Model):
    move: StrictStr
    score: StrictInt
    mate: StrictInt = 0

    @classmethod
    def from_move(cls, m: ScoredMove) -> "ScoredMoveModel":
        return cls(move=m.move, score=m.score, mate=m.mate)

    def to_move(self) -> ScoredMove:
        return ScoredMove(self.move, self.score, self.mate)


class ConfigModel(_Model):
    root_fen: FenStr = Field(default=chess.STARTING_FEN, alias="rootFEN")
    initiator_moves: List[StrictStr] = []
    responder_counts: List[PosInt] = []
    default_responder_count: PosInt = 1
    max_depth: NonNegInt = 1
    target_depth: PosInt = 20
    threads: Annotated[StrictInt, Field(ge=1, le=MAX_THREADS)] = 1
    baseline_score: StrictInt = 0
    baseline_moves: List[ScoredMoveModel] = []
    initiator_is_white: Optional[StrictBool] = None

    @classmethod
    def from_config(cls, cfg: FisherConfig) -> "ConfigModel":
        return cls(
            root_fen=cfg.root_fen,
            initiator_moves=list(cfg.initiator_moves),
            responder_counts=list(cfg.responder_counts),
            default_responder_count=cfg.default_responder_count,
            max_depth=cfg.max_depth,
            target_depth=cfg.target_depth,
            threads=cfg.threads,
            baseline_score=cfg.baseline_score,
            baseline_moves=[ScoredMoveModel.from_move(m) for m in cfg.baseline_moves],
            initiator_is_white=cfg.initiator_is_white,
        )

    def to_config(self) -> FisherConfig:
        return FisherConfig(
            root_fen=self.root_fen,
            initiator_moves=tuple(self.initiator_moves),
            responder_counts=tuple(self.responder_counts),
            default_responder_count=self.default_responder_count,
            max_depth=self.max_depth,
            target_depth=self.target_depth,
            threads=self.threads,
            baseline_score=self.baseline_score,
            baseline_moves=tuple(m.to_move() for m in self.baseline_moves),
            initiator_is_white=self.initiator_is_white,
        )


class LineModel(_Model):
    line_index: NonNegInt
    pcns: List[StrictStr]
    position: FenStr
    ply: NonNegInt
    score: StrictInt
    mate: StrictInt = 0
    scores: List[Optional[StrictInt]] = []
    san_game: StrictStr = ""
    is_done: StrictBool = False
    is_full: StrictBool = False
    is_mate: StrictBool = False
    is_stalemate: StrictBool = False
    is_transposition: StrictBool = False
    is_branched: StrictBool = False
    transposition_target: Optional[NonNegInt] = None
    error: Optional[StrictStr] = None
    best5_replies: List[ScoredMoveModel] = []
    best5_alts: List[ScoredMoveModel] = []

    @model_validator(mode="after")
    def _flags_agree(self) -> "LineModel":
        reasons = [self.is_full, self.is_mate, self.is_stalemate, self.is_transposition, self.is_branched,
                   self.error is not None]
        if self.is_done and not any(reasons):
            raise PydanticCustomError("inconsistent_flags", "done line without an end reason")
        if not self.is_done and any(reasons):
            raise PydanticCustomError("inconsistent_flags", "active line carries an end reason")
        if self.is_transposition and self.transposition_target is None:
            raise PydanticCustomError("inconsistent_flags", "transposition without a target line")
        if self.ply > len(self.pcns):
            raise PydanticCustomError("inconsistent_flags", "ply exceeds the number of moves")
        return self

    @classmethod
    def from_line(cls, line: Line) -> "LineModel":
        return cls(
            line_index=line.index,
            pcns=list(line.moves),
            position=line.position,
            ply=line.ply,
            score=line.score,
            mate=line.mate,
            scores=list(line.scores),
            san_game=line.san_game,
            is_done=line.is_done,
            is_full=line.is_full,
            is_mate=line.is_mate,
            is_stalemate=line.is_stalemate,
            is_transposition=line.is_transposition,
            is_branched=line.is_branched,
            transposition_target=line.transposition_target,
            error=line.error,
            best5_replies=[ScoredMoveModel.from_move(m) for m in line.best_replies],
            best5_alts=[ScoredMoveModel.from_move(m) for m in line.best_alternatives],
        )

    def to_line(self) -> Line:
        return Line(
            index=self.line_index,
            moves=list(self.pcns),
            position=self.position,
            ply=self.ply,
            score=self.score,
            mate=self.mate,
            scores=list(self.scores),
            san_game=self.san_game,
            is_done=self.is_done,
            is_full=self.is_full,
            is_mate=self.is_mate,
            is_stalemate=self.is_stalemate,
            is_transposition=self.is_transposition,
            is_branched=self.is_branched,
            transposition_target=self.transposition_target,
            error=self.error,
            best_replies=[m.to_move() for m in self.best5_replies],
            best_alternatives=[m.to_move() for m in self.best5_alts],
        )


class ProgressModel(_Model):
    events_issued: NonNegInt = 0
    elapsed_ms: NonNegInt = 0
    nodes_reached: NonNegInt = 0


class SnapshotModel(_Model):
    type: Literal["fish-state"]
    version: StrictInt = SNAPSHOT_VERSION
    config: ConfigModel
    lines: List[LineModel]
    queue: List[NonNegInt]
    progress: ProgressModel
    transpositions: Optional[List[Tuple[StrictStr, NonNegInt]]] = None
    next_index: Optional[NonNegInt] = None


def _reason_for(error_type: str) -> RejectReason:
    if error_type == "missing":
        return RejectReason.MISSING_FIELD
    if error_type == "literal_error":
        return RejectReason.WRONG_TYPE_TAG
    if error_type == "invalid_position":
        return RejectReason.INVALID_POSITION
    if error_type == "inconsistent_flags":
        return RejectReason.INCONSISTENT_FLAGS
    if error_type.endswith("_type"):
        return RejectReason.INVALID_TYPE
    return RejectReason.INVALID_VALUE


def issues_from_validation_error(error: ValidationError) -> List[ImportIssue]:
    issues = []
    for err in error.errors():
        location = ".".join(str(p) for p in err["loc"]) or "<root>"
        issues.append(ImportIssue(_reason_for(err["type"]), location, err["msg"]))
    return issues


def semantic_issues(snapshot: SnapshotModel) -> List[ImportIssue]:
    """Cross-field checks the field validators cannot express."""
    issues: List[ImportIssue] = []
    root_fen = snapshot.config.root_fen
    by_index = {}
    for i, line in enumerate(snapshot.lines):
        where = f"lines.{i}"
        if line.line_index in by_index:
            issues.append(ImportIssue(RejectReason.DUPLICATE_LINE, where, f"duplicate line index {line.line_index}"))
            continue
        by_index[line.line_index] = line
        try:
            replayed = replay(line.pcns, root_fen)
        except NotationError as e:
            issues.append(ImportIssue(RejectReason.INVALID_MOVE, f"{where}.pcns", str(e)))
            continue
        if position_key(replayed) != position_key(line.position):
            issues.append(ImportIssue(
                RejectReason.INVALID_POSITION, f"{where}.position", "position does not match the line's moves"))

    for i, line in enumerate(snapshot.lines):
        target = line.transposition_target
        if line.is_transposition and target not in by_index:
            issues.append(ImportIssue(
                RejectReason.UNKNOWN_LINE, f"lines.{i}.transpositionTarget", f"no line with index {target}"))

    queued = set()
    for i, line_id in enumerate(snapshot.queue):
        where = f"queue.{i}"
        if line_id in queued:
            issues.append(ImportIssue(RejectReason.DUPLICATE_LINE, where, f"line {line_id} queued twice"))
            continue
        queued.add(line_id)
        line = by_index.get(line_id)
        if line is None:
            issues.append(ImportIssue(RejectReason.UNKNOWN_LINE, where, f"no line with index {line_id}"))
        elif line.is_done:
            issues.append(ImportIssue(RejectReason.INCONSISTENT_FLAGS, where, f"line {line_id} is done but queued"))

    for index, line in by_index.items():
        if not line.is_done and index not in queued:
            issues.append(ImportIssue(
                RejectReason.INCONSISTENT_FLAGS, "queue", f"active line {index} is missing from the queue"))

    for i, (_key, line_id) in enumerate(snapshot.transpositions or ()):
        if line_id not in by_index:
            issues.append(ImportIssue(
                RejectReason.UNKNOWN_LINE, f"transpositions.{i}", f"no line with index {line_id}"))

    if snapshot.next_index is not None and by_index and snapshot.next_index <= max(by_index):
        issues.append(ImportIssue(
            RejectReason.INVALID_VALUE, "nextIndex", "nextIndex must exceed every line index"))
    return issues
