"""Fisher state: configuration, lines, pending queue, index and progress.

The state is a plain object owned by one scheduler at a time. It can be
exported to a self-contained JSON snapshot at any point and rebuilt from one
on a fresh process; the rebuilt state continues with the same pending lines
and the same line indices.
"""
from __future__ import annotations

import json
import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Union

from pydantic import ValidationError

from fisher.config import FisherConfig
from fisher.core import combinatorics
from fisher.core.lines import EndReason, Line
from fisher.core.notation import replay, san_game
from fisher.core.progress import Progress, ProgressSnapshot
from fisher.core.transposition import TranspositionIndex
from fisher.errors import ImportIssue, NotationError, RejectReason, StateImportError
from fisher.schema import (
    SNAPSHOT_TYPE,
    SNAPSHOT_VERSION,
    ConfigModel,
    LineModel,
    ProgressModel,
    SnapshotModel,
    issues_from_validation_error,
    semantic_issues,
)

log = logging.getLogger(__name__)


@dataclass
class FisherState:
    config: FisherConfig = field(default_factory=FisherConfig)
    lines: Dict[int, Line] = field(default_factory=dict)
    queue: Deque[int] = field(default_factory=deque)
    index: TranspositionIndex = field(default_factory=TranspositionIndex)
    progress: Progress = field(default_factory=Progress)
    next_index: int = 0
    # held by the scheduler while it applies a result, and by readers that need a consistent view
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @classmethod
    def create(cls, config: Optional[FisherConfig] = None) -> "FisherState":
        return cls(config=config or FisherConfig())

    # ── lines and queue ────────────────────────────────────
    @property
    def is_seeded(self) -> bool:
        return bool(self.lines)

    def allocate_index(self) -> int:
        index = self.next_index
        self.next_index += 1
        return index

    def add_line(self, line: Line):
        self.lines[line.index] = line

    def enqueue(self, line: Line):
        self.queue.append(line.index)

    def line(self, index: int) -> Line:
        return self.lines[index]

    def done_lines(self) -> List[Line]:
        return [l for l in self.lines.values() if l.is_done]

    def completed_lines(self) -> List[Line]:
        """Leaf lines: done for a reason other than having been branched."""
        return [l for l in self.lines.values() if l.is_leaf]

    def reason_counts(self) -> Counter:
        return Counter(l.end_reason for l in self.lines.values() if l.is_done)

    def san_game(self, line: Line) -> str:
        if not line.san_game and line.moves:
            try:
                line.san_game = san_game(line.moves, self.config.root_fen)
            except NotationError as e:
                log.warning("cannot render line %d as SAN: %s", line.index, e)
        return line.san_game

    # ── progress ───────────────────────────────────────────
    def progress_snapshot(self, is_running: bool = False) -> ProgressSnapshot:
        with self.lock:
            counts = self.reason_counts()
            lines_total, queued = len(self.lines), len(self.queue)
            current = None
            if self.queue:
                head = self.lines[self.queue[0]]
                current = " ".join(head.moves) or "(root)"
        return ProgressSnapshot(
            events_issued=self.progress.events_issued,
            elapsed_ms=self.progress.current_elapsed_ms(),
            events_per_second=round(self.progress.events_per_second(), 3),
            nodes_reached=self.progress.nodes_reached,
            total_nodes=combinatorics.total_node_count(self.config),
            lines_total=lines_total,
            lines_active=queued,
            lines_done=sum(counts.values()),
            lines_completed=sum(n for reason, n in counts.items() if reason is not EndReason.BRANCHED),
            expected_lines=combinatorics.total_line_count(self.config),
            lines_mate=counts[EndReason.MATE],
            lines_stalemate=counts[EndReason.STALEMATE],
            lines_full=counts[EndReason.FULL],
            lines_transposition=counts[EndReason.TRANSPOSITION],
            lines_error=counts[EndReason.ERROR],
            queue_length=queued,
            current_line=current,
            is_running=is_running,
        )

    # ── export / import ────────────────────────────────────
    def to_snapshot(self) -> Dict[str, Any]:
        with self.lock:
            model = SnapshotModel(
                type=SNAPSHOT_TYPE,
                version=SNAPSHOT_VERSION,
                config=ConfigModel.from_config(self.config),
                lines=[LineModel.from_line(self.lines[i]) for i in sorted(self.lines)],
                queue=list(self.queue),
                progress=ProgressModel(
                    events_issued=self.progress.events_issued,
                    elapsed_ms=self.progress.current_elapsed_ms(),
                    nodes_reached=self.progress.nodes_reached,
                ),
                transpositions=[(k, v) for k, v in self.index.entries()],
                next_index=self.next_index,
            )
            return model.model_dump(by_alias=True, mode="json")

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_snapshot(), indent=indent)

    @classmethod
    def from_snapshot(cls, data: Any) -> "FisherState":
        """Build a new state from snapshot data, or raise StateImportError."""
        try:
            model = SnapshotModel.model_validate(data)
        except ValidationError as e:
            raise StateImportError(issues_from_validation_error(e)) from e
        issues = semantic_issues(model)
        if issues:
            raise StateImportError(issues)

        lines = {m.line_index: m.to_line() for m in model.lines}
        config = model.config.to_config()
        if model.transpositions is not None:
            index = TranspositionIndex(model.transpositions)
        else:
            index = _rebuild_index(config.root_fen, lines)
        next_index = model.next_index if model.next_index is not None else max(lines, default=-1) + 1
        progress = Progress(
            events_issued=model.progress.events_issued,
            elapsed_ms=model.progress.elapsed_ms,
            nodes_reached=model.progress.nodes_reached,
        )
        return cls(
            config=config,
            lines=lines,
            queue=deque(model.queue),
            index=index,
            progress=progress,
            next_index=next_index,
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "FisherState":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StateImportError([ImportIssue(RejectReason.MALFORMED_JSON, "<root>", str(e))]) from e
        return cls.from_snapshot(data)


def _rebuild_index(root_fen: str, lines: Dict[int, Line]) -> TranspositionIndex:
    """Approximate the index for snapshots that did not carry one.

    Replays every line in index order and records each position it passes
    through; an ancestor always has a lower index than its successors.
    """
    index = TranspositionIndex()
    for i in sorted(lines):
        line = lines[i]
        if line.is_transposition:
            continue
        index.record_fen(root_fen, i)
        for n in range(1, len(line.moves) + 1):
            index.record_fen(replay(line.moves[:n], root_fen), i)
    return index
