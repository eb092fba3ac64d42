"""Tree view over the lines of a state.

Lines share move prefixes (a successor starts as a copy of its parent), so
merging every line's moves yields the explored tree. Nodes live in a flat
list and refer to each other by position in that list.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import chess

from fisher.core.evaluator import MATE_SCORE
from fisher.core.notation import parse_pcn

if TYPE_CHECKING:
    from fisher.core.state import FisherState


def format_score(score: Optional[int], mate: int = 0) -> str:
    """Pawns with one decimal (``+0.3``), or ``#3`` / ``#-2`` for mates."""
    if mate:
        return f"#{mate}"
    if score is None:
        return "?"
    if abs(score) >= MATE_SCORE:
        return "#" if score > 0 else "#-"
    return f"{score / 100:+.1f}"


def format_delta(score: Optional[int], baseline: int, initiator_is_white: bool = True) -> str:
    """Change against the baseline, seen from the initiator's side."""
    if score is None:
        return "?"
    delta = score - baseline
    if not initiator_is_white:
        delta = -delta
    if round(delta / 100, 1) == 0:
        return "="
    return f"{delta / 100:+.1f}"


@dataclass
class TreeNode:
    index: int
    parent: Optional[int]
    move: Optional[str] = None  # PCN, None for the root
    san: str = ""
    score: Optional[int] = None
    mate: int = 0
    line_index: Optional[int] = None  # deepest line ending here, if any
    needs_evaluation: bool = False  # reached by a line still in the queue
    children: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "parent": self.parent,
            "move": self.move,
            "san": self.san,
            "score": self.score,
            "mate": self.mate,
            "lineIndex": self.line_index,
            "needsEvaluation": self.needs_evaluation,
            "children": list(self.children),
        }


class LineTree:
    def __init__(self, root_fen: str = chess.STARTING_FEN):
        self.root_fen = root_fen
        self.nodes: List[TreeNode] = [TreeNode(index=0, parent=None)]
        self._edges: Dict[Tuple[int, str], int] = {}

    @property
    def root(self) -> TreeNode:
        return self.nodes[0]

    def add_path(self, moves: List[str], scores: List[Optional[int]], final_mate: int = 0) -> int:
        """Merge one move sequence into the tree and return its last node."""
        board = chess.Board(self.root_fen)
        node = self.root
        for i, pcn in enumerate(moves):
            move = parse_pcn(pcn, board)
            child_id = self._edges.get((node.index, pcn))
            if child_id is None:
                child_id = len(self.nodes)
                self.nodes.append(TreeNode(index=child_id, parent=node.index, move=pcn, san=board.san(move)))
                self._edges[(node.index, pcn)] = child_id
                node.children.append(child_id)
            board.push(move)
            node = self.nodes[child_id]
            score = scores[i] if i < len(scores) else None
            if score is not None:
                node.score = score
        if moves:
            node.mate = final_mate
        return node.index

    def path(self, node_id: int) -> List[TreeNode]:
        out = []
        node: Optional[TreeNode] = self.nodes[node_id]
        while node is not None:
            out.append(node)
            node = self.nodes[node.parent] if node.parent is not None else None
        return out[::-1]

    def to_list(self) -> List[dict]:
        return [n.to_dict() for n in self.nodes]

    @classmethod
    def from_state(cls, state: "FisherState") -> "LineTree":
        tree = cls(state.config.root_fen)
        queued = set(state.queue)
        for i in sorted(state.lines):
            line = state.lines[i]
            node_id = tree.add_path(line.moves, line.scores, line.mate)
            node = tree.nodes[node_id]
            node.line_index = line.index
            if line.index in queued:
                node.needs_evaluation = True
        return tree
