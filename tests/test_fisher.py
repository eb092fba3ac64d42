"""
Unit test suite for the line fisher.

Covers:
- Combinatorics (node/line counts, formulas, depth 0)
- Position codec (PCN, SAN, keys, failures)
- Transposition index (first writer wins, record order, threads)
- Line model (end reasons, successors)
- Configuration (validation, derived initiator side, TOML)
- Snapshot schema (strict rejection with typed reasons)
- Tree view and score formatting
- Progress counters
- UCI evaluator adapter (fake engine process)
"""

import json
import threading

import chess
import chess.engine
import pytest

from fisher.config import Config, FisherConfig
from fisher.core import combinatorics
from fisher.core.evaluator import MATE_SCORE, EvaluationRequest, UCIEvaluator
from fisher.core.lines import EndReason, Line, ScoredMove
from fisher.core.notation import (
    apply_move,
    format_line_with_move_numbers,
    parse_pcn,
    position_key,
    replay,
    san_game,
    to_long_form_moves,
    to_standard_notation,
)
from fisher.core.progress import Progress, ProgressSnapshot
from fisher.core.state import FisherState
from fisher.core.transposition import TranspositionIndex
from fisher.core.tree import LineTree, format_delta, format_score
from fisher.core.utils import format_info
from fisher.errors import ConfigurationError, EvaluatorError, NotationError, RejectReason, StateImportError

START = chess.STARTING_FEN
AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
FOOLS_MATE = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
STALEMATE = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"


# ════════════════════════════════════════════════════════════════════════════
#  COMBINATORICS
# ════════════════════════════════════════════════════════════════════════════


class TestCombinatorics:
    @pytest.mark.parametrize("b,d", [(1, 1), (2, 1), (2, 3), (3, 2), (5, 4)])
    def test_constant_branching(self, b, d):
        cfg = FisherConfig(max_depth=d, default_responder_count=b)
        assert combinatorics.total_line_count(cfg) == b**d
        assert combinatorics.responder_node_count(cfg) == sum(b**i for i in range(1, d + 1))
        assert combinatorics.total_node_count(cfg) == 1 + 2 * combinatorics.responder_node_count(cfg)

    def test_depth_zero(self):
        cfg = FisherConfig(max_depth=0, responder_counts=(4, 4))
        assert combinatorics.total_line_count(cfg) == 1
        assert combinatorics.responder_node_count(cfg) == 0
        assert combinatorics.total_node_count(cfg) == 1
        assert combinatorics.expected_evaluator_calls(cfg) == 0

    def test_overrides_then_default(self):
        cfg = FisherConfig(max_depth=3, responder_counts=(3,), default_responder_count=2)
        assert combinatorics.branching_factors(cfg) == [3, 2, 2]
        assert combinatorics.total_line_count(cfg) == 12
        assert combinatorics.responder_node_count(cfg) == 3 + 6 + 12

    def test_scenario_counts(self):
        cfg = FisherConfig(max_depth=1, default_responder_count=2)
        assert combinatorics.total_node_count(cfg) == 5
        assert combinatorics.total_line_count(cfg) == 2
        assert combinatorics.expected_evaluator_calls(cfg) == 3

    def test_formulas(self):
        cfg = FisherConfig(max_depth=2, responder_counts=(2, 3), default_responder_count=1)
        assert combinatorics.node_formula(cfg) == "1 + 2 * (2 + 2*3) = 17"
        assert combinatorics.line_formula(cfg) == "2 * 3 = 6"

    def test_formulas_fold_default_into_power(self):
        cfg = FisherConfig(max_depth=3, default_responder_count=2)
        assert combinatorics.node_formula(cfg) == "1 + 2 * (2 + 2^2 + 2^3) = 29"
        assert combinatorics.line_formula(cfg) == "2^3 = 8"

    def test_formulas_depth_zero(self):
        cfg = FisherConfig(max_depth=0)
        assert combinatorics.node_formula(cfg) == "1 = 1"
        assert combinatorics.line_formula(cfg) == "1 = 1"


# ════════════════════════════════════════════════════════════════════════════
#  POSITION CODEC
# ════════════════════════════════════════════════════════════════════════════


class TestNotation:
    def test_long_form_moves(self):
        sans = ["e4", "e5", "Nf3", "Nc6", "Bc4", "Nf6", "O-O"]
        assert to_long_form_moves(sans, START) == [
            "Pe2e4", "Pe7e5", "Ng1f3", "Nb8c6", "Bf1c4", "Ng8f6", "Ke1g1",
        ]

    def test_long_form_illegal(self):
        with pytest.raises(NotationError):
            to_long_form_moves(["e4", "e4"], START)

    def test_standard_notation(self):
        assert to_standard_notation("Ng1f3", START) == "Nf3"
        assert to_standard_notation("e2e4", START) == "e4"

    def test_parse_pcn_checks_piece(self):
        board = chess.Board()
        assert parse_pcn("Pe2e4", board) == chess.Move.from_uci("e2e4")
        with pytest.raises(NotationError):
            parse_pcn("Ne2e4", board)

    def test_parse_pcn_rejects_illegal_and_garbage(self):
        board = chess.Board()
        with pytest.raises(NotationError):
            parse_pcn("Pe2e5", board)
        with pytest.raises(NotationError):
            parse_pcn("zz", board)

    def test_parse_castling(self):
        fen = replay(to_long_form_moves(["e4", "e5", "Nf3", "Nc6", "Bc4", "Nf6"], START), START)
        assert parse_pcn("O-O", chess.Board(fen)) == chess.Move.from_uci("e1g1")

    def test_promotion(self):
        fen = "8/4P3/8/8/8/8/k7/7K w - - 0 1"
        assert chess.Board(apply_move(fen, "Pe7e8q")).piece_at(chess.E8) == chess.Piece(chess.QUEEN, chess.WHITE)

    def test_apply_move(self):
        board = chess.Board()
        board.push_san("e4")
        assert apply_move(START, "Pe2e4") == board.fen()
        assert apply_move(START, chess.Move.from_uci("e2e4")) == board.fen()
        with pytest.raises(NotationError):
            apply_move(START, chess.Move.from_uci("e2e5"))

    def test_position_key_ignores_counters(self):
        a = "rnbqkbnr/pppppppp/8/8/8/5N2/PPPPPPPP/RNBQKB1R b KQkq - 1 1"
        b = "rnbqkbnr/pppppppp/8/8/8/5N2/PPPPPPPP/RNBQKB1R b KQkq - 5 9"
        assert position_key(a) == position_key(b)

    def test_position_key_invalid(self):
        with pytest.raises(NotationError):
            position_key("not a fen")

    def test_san_game(self):
        assert san_game(["Pe2e4", "Pe7e5", "Ng1f3"], START) == "1. e4 e5 2. Nf3"
        assert san_game(["Pe7e5"], AFTER_E4) == "1... e5"
        assert san_game([], START) == ""

    def test_format_line_with_move_numbers(self):
        assert format_line_with_move_numbers(["e4", "e5", "Nf3"]) == "1. e4 e5 2. Nf3"
        assert format_line_with_move_numbers(["e5", "Nf3"], white_first=False) == "1... e5 2. Nf3"


# ════════════════════════════════════════════════════════════════════════════
#  TRANSPOSITION INDEX
# ════════════════════════════════════════════════════════════════════════════


class TestTranspositionIndex:
    def test_first_writer_wins(self):
        index = TranspositionIndex()
        assert index.record("k", 3) is True
        assert index.record("k", 1) is False
        assert index.lookup("k") == 3

    def test_entries_in_record_order(self):
        index = TranspositionIndex()
        for key, i in [("c", 0), ("a", 1), ("b", 2)]:
            index.record(key, i)
        assert index.entries() == [("c", 0), ("a", 1), ("b", 2)]
        assert TranspositionIndex(index.entries()).entries() == index.entries()

    def test_fen_helpers_share_keys(self):
        index = TranspositionIndex()
        index.record_fen(AFTER_E4, 7)
        assert index.lookup_fen(AFTER_E4.replace(" 0 1", " 4 12")) == 7
        assert position_key(AFTER_E4) in index

    def test_clear(self):
        index = TranspositionIndex([("a", 1)])
        index.clear()
        assert len(index) == 0
        assert index.lookup("a") is None

    def test_concurrent_record_single_winner(self):
        index = TranspositionIndex()
        wins = []
        barrier = threading.Barrier(8)

        def worker(i):
            barrier.wait()
            if index.record("same", i):
                wins.append(i)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(wins) == 1
        assert index.lookup("same") == wins[0]


# ════════════════════════════════════════════════════════════════════════════
#  LINE MODEL
# ════════════════════════════════════════════════════════════════════════════


class TestLine:
    def test_turns_follow_ply(self):
        line = Line(index=0, position=START)
        assert line.is_responder_turn
        line.extend("Pe2e4", AFTER_E4, 30)
        assert not line.is_responder_turn
        assert line.ply == 1 and line.score == 30

    def test_extend_without_score_keeps_score(self):
        line = Line(index=0, position=START, score=12)
        line.extend("Pe2e4", AFTER_E4, None)
        assert line.score == 12
        assert line.scores == [None]

    def test_successor_copies_path_not_flags(self):
        line = Line(index=0, position=START, moves=["Pe2e4"], ply=1, scores=[30])
        line.finish(EndReason.BRANCHED)
        child = line.successor(4)
        assert child.index == 4
        assert child.moves == ["Pe2e4"] and child.moves is not line.moves
        assert child.is_active and not child.is_branched

    def test_end_reasons(self):
        for reason in (EndReason.MATE, EndReason.STALEMATE, EndReason.FULL, EndReason.BRANCHED):
            line = Line(index=0)
            line.finish(reason)
            assert line.is_done and line.end_reason is reason
        line = Line(index=1)
        line.finish(EndReason.TRANSPOSITION, target=0)
        assert line.transposition_target == 0 and line.end_reason is EndReason.TRANSPOSITION
        line = Line(index=2)
        line.finish(EndReason.ERROR, error="boom")
        assert line.error == "boom" and line.is_leaf

    def test_transposition_needs_target(self):
        with pytest.raises(ValueError):
            Line(index=0).finish(EndReason.TRANSPOSITION)

    def test_branched_is_not_a_leaf(self):
        line = Line(index=0)
        line.finish(EndReason.BRANCHED)
        assert line.is_done and not line.is_leaf


# ════════════════════════════════════════════════════════════════════════════
#  CONFIGURATION
# ════════════════════════════════════════════════════════════════════════════


class TestConfig:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_depth": -1},
            {"responder_counts": (2, 0)},
            {"default_responder_count": 0},
            {"threads": 0},
            {"threads": 65},
            {"target_depth": True},
            {"root_fen": "garbage"},
            {"initiator_moves": ("e5",)},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            FisherConfig(**kwargs).validate()

    def test_valid_returns_self(self):
        cfg = FisherConfig(initiator_moves=("e4", "Nf3"), max_depth=0)
        assert cfg.validate() is cfg

    def test_branching_factor(self):
        cfg = FisherConfig(responder_counts=(3, 2), default_responder_count=1)
        assert [cfg.branching_factor(i) for i in range(4)] == [3, 2, 1, 1]

    def test_initiator_side_derived(self):
        assert FisherConfig().resolved().initiator_is_white is False
        assert FisherConfig(initiator_moves=("e4",)).resolved().initiator_is_white is True
        assert FisherConfig(root_fen=AFTER_E4).resolved().initiator_is_white is True
        assert FisherConfig(initiator_is_white=True).resolved().initiator_is_white is True

    def test_with_baseline(self):
        moves = (ScoredMove("e2e4", 30), ScoredMove("d2d4", 25))
        cfg = FisherConfig().with_baseline(30, moves)
        assert cfg.baseline_score == 30 and cfg.baseline_moves == moves

    def test_load_from_toml(self, tmp_path):
        path = tmp_path / "fisher.toml"
        path.write_text(
            'log_level = "DEBUG"\n'
            "[fisher]\n"
            "max_depth = 3\n"
            "responder_counts = [3, 2]\n"
            'initiator_moves = ["e4"]\n'
            "[evaluator]\n"
            'engine_path = "/opt/sf"\n'
            "[scheduler]\n"
            "batch_size = 4\n"
        )
        cfg = Config.load_from_toml(str(path))
        assert cfg.fisher.max_depth == 3
        assert cfg.fisher.responder_counts == (3, 2)
        assert cfg.fisher.initiator_moves == ("e4",)
        assert cfg.evaluator.engine_path == "/opt/sf"
        assert cfg.scheduler.batch_size == 4
        assert cfg.log_level == "DEBUG"

    def test_load_missing_file_gives_defaults(self, tmp_path):
        cfg = Config.load_from_toml(str(tmp_path / "absent.toml"))
        assert cfg.fisher == FisherConfig()


# ════════════════════════════════════════════════════════════════════════════
#  SNAPSHOT SCHEMA
# ════════════════════════════════════════════════════════════════════════════


def _snapshot():
    state = FisherState.create(FisherConfig(max_depth=1, default_responder_count=2))
    root = Line(index=0, position=START)
    root.finish(EndReason.BRANCHED)
    child = root.successor(1)
    child.extend("Pe2e4", AFTER_E4, 30)
    for line in (root, child):
        state.add_line(line)
    state.enqueue(child)
    state.index.record_fen(START, 0)
    state.index.record_fen(AFTER_E4, 1)
    state.next_index = 2
    return state.to_snapshot()


def _reasons(data):
    with pytest.raises(StateImportError) as info:
        FisherState.from_snapshot(data)
    return {issue.reason for issue in info.value.issues}


class TestSnapshotSchema:
    def test_camel_case_keys(self):
        data = _snapshot()
        assert data["type"] == "fish-state"
        assert data["config"]["rootFEN"] == START
        assert set(data["progress"]) == {"eventsIssued", "elapsedMs", "nodesReached"}
        assert "lineIndex" in data["lines"][0] and "best5Replies" in data["lines"][0]
        assert data["nextIndex"] == 2

    def test_valid_snapshot_imports(self):
        state = FisherState.from_snapshot(_snapshot())
        assert list(state.queue) == [1]
        assert state.lines[0].is_branched
        assert state.index.lookup_fen(AFTER_E4) == 1

    def test_malformed_json(self):
        with pytest.raises(StateImportError) as info:
            FisherState.from_json("{not json")
        assert info.value.issues[0].reason is RejectReason.MALFORMED_JSON

    def test_wrong_type_tag(self):
        data = _snapshot()
        data["type"] = "something-else"
        assert RejectReason.WRONG_TYPE_TAG in _reasons(data)

    def test_missing_field(self):
        data = _snapshot()
        del data["queue"]
        assert RejectReason.MISSING_FIELD in _reasons(data)

    def test_bool_is_not_an_int(self):
        data = _snapshot()
        data["lines"][0]["lineIndex"] = True
        assert RejectReason.INVALID_TYPE in _reasons(data)

    def test_negative_depth(self):
        data = _snapshot()
        data["config"]["maxDepth"] = -1
        assert RejectReason.INVALID_VALUE in _reasons(data)

    def test_invalid_position(self):
        data = _snapshot()
        data["lines"][1]["position"] = "nonsense"
        assert RejectReason.INVALID_POSITION in _reasons(data)

    def test_position_must_match_moves(self):
        data = _snapshot()
        data["lines"][1]["position"] = START
        assert RejectReason.INVALID_POSITION in _reasons(data)

    def test_illegal_move(self):
        data = _snapshot()
        data["lines"][1]["pcns"] = ["Pe2e5"]
        assert RejectReason.INVALID_MOVE in _reasons(data)

    def test_duplicate_line(self):
        data = _snapshot()
        data["lines"].append(dict(data["lines"][1]))
        assert RejectReason.DUPLICATE_LINE in _reasons(data)

    def test_unknown_queue_entry(self):
        data = _snapshot()
        data["queue"].append(42)
        assert RejectReason.UNKNOWN_LINE in _reasons(data)

    def test_done_line_in_queue(self):
        data = _snapshot()
        data["queue"].append(0)
        assert RejectReason.INCONSISTENT_FLAGS in _reasons(data)

    def test_active_line_missing_from_queue(self):
        data = _snapshot()
        data["queue"] = []
        assert RejectReason.INCONSISTENT_FLAGS in _reasons(data)

    def test_done_without_reason(self):
        data = _snapshot()
        data["lines"][0]["isBranched"] = False
        assert RejectReason.INCONSISTENT_FLAGS in _reasons(data)

    def test_transposition_without_target(self):
        data = _snapshot()
        data["lines"][1].update(isDone=True, isTransposition=True, transpositionTarget=None)
        data["queue"] = []
        assert RejectReason.INCONSISTENT_FLAGS in _reasons(data)

    def test_next_index_must_exceed_lines(self):
        data = _snapshot()
        data["nextIndex"] = 1
        assert RejectReason.INVALID_VALUE in _reasons(data)

    def test_index_rebuilt_when_absent(self):
        data = _snapshot()
        del data["transpositions"]
        del data["nextIndex"]
        state = FisherState.from_snapshot(data)
        assert state.index.lookup_fen(START) == 0
        assert state.index.lookup_fen(AFTER_E4) == 1
        assert state.next_index == 2

    def test_issue_locations(self):
        data = _snapshot()
        data["queue"].append(42)
        with pytest.raises(StateImportError) as info:
            FisherState.from_snapshot(data)
        issue = info.value.issues[0]
        assert issue.location == "queue.1"
        assert issue.to_dict()["reason"] == "unknown_line"

    def test_json_round_trip(self):
        state = FisherState.from_json(json.dumps(_snapshot()))
        assert state.to_snapshot()["lines"] == _snapshot()["lines"]


# ════════════════════════════════════════════════════════════════════════════
#  TREE VIEW AND FORMATTING
# ════════════════════════════════════════════════════════════════════════════


class TestFormatting:
    def test_format_score(self):
        assert format_score(30) == "+0.3"
        assert format_score(-120) == "-1.2"
        assert format_score(0) == "+0.0"
        assert format_score(500, mate=3) == "#3"
        assert format_score(-500, mate=-2) == "#-2"
        assert format_score(None) == "?"

    def test_format_delta(self):
        assert format_delta(30, 30) == "="
        assert format_delta(50, 30) == "+0.2"
        assert format_delta(-20, 30) == "-0.5"
        assert format_delta(50, 30, initiator_is_white=False) == "-0.2"
        assert format_delta(None, 30) == "?"


class TestLineTree:
    def test_shared_prefixes_merge(self):
        tree = LineTree(START)
        a = tree.add_path(["Pe2e4", "Pe7e5"], [30, 20])
        b = tree.add_path(["Pe2e4", "Pc7c5"], [30, 35])
        assert len(tree.nodes) == 4
        e4 = tree.nodes[tree.nodes[a].parent]
        assert e4.san == "e4" and e4.parent == 0
        assert e4.children == [a, b]
        assert [n.san for n in tree.path(b)] == ["", "e4", "c5"]
        assert tree.nodes[b].score == 35

    def test_from_state_marks_pending(self):
        state = FisherState.from_snapshot(_snapshot())
        tree = LineTree.from_state(state)
        assert tree.root.line_index == 0
        leaf = tree.nodes[tree.root.children[0]]
        assert leaf.line_index == 1 and leaf.needs_evaluation
        assert tree.to_list()[0]["children"] == [leaf.index]


# ════════════════════════════════════════════════════════════════════════════
#  PROGRESS
# ════════════════════════════════════════════════════════════════════════════


class TestProgress:
    def test_clock_accumulates(self):
        p = Progress(elapsed_ms=1000)
        p.start_clock(now=10.0)
        assert p.current_elapsed_ms(now=11.0) == 2000
        p.stop_clock(now=12.5)
        assert p.elapsed_ms == 3500
        p.stop_clock(now=20.0)
        assert p.elapsed_ms == 3500

    def test_events_per_second(self):
        p = Progress(window_s=10.0)
        p.start_clock(now=100.0)
        for _ in range(4):
            p.record_event(now=101.0)
        assert p.events_issued == 4
        assert p.events_per_second(now=102.0) == pytest.approx(2.0)
        assert p.events_per_second(now=200.0) == 0.0

    def test_snapshot_percentages(self):
        snap = ProgressSnapshot(nodes_reached=3, total_nodes=5, lines_completed=1, expected_lines=2)
        assert snap.node_percent == pytest.approx(60.0)
        assert snap.line_percent == pytest.approx(50.0)
        out = snap.to_dict()
        assert out["node_percent"] == 60.0 and out["lines_completed"] == 1

    def test_format_info(self):
        text = format_info(ProgressSnapshot(nodes_reached=3, total_nodes=5, lines_error=1, current_line="Pe2e4"))
        assert text.startswith("info nodes 3/5")
        assert "errors 1" in text and text.endswith("line Pe2e4")


# ════════════════════════════════════════════════════════════════════════════
#  UCI EVALUATOR
# ════════════════════════════════════════════════════════════════════════════


class FakeEngine:
    def __init__(self, infos=None, error=None):
        self.options = {"Threads": None, "Hash": None}
        self.configured = []
        self.infos = infos or []
        self.error = error
        self.analysed = []
        self.quit_called = False

    def configure(self, options):
        self.configured.append(options)

    def analyse(self, board, limit, multipv=None):
        self.analysed.append((board.fen(), limit.depth, multipv))
        if self.error is not None:
            raise self.error
        return self.infos

    def quit(self):
        self.quit_called = True


def _info(uci, score, turn=chess.WHITE):
    return {"pv": [chess.Move.from_uci(uci)], "score": chess.engine.PovScore(score, turn)}


class TestUCIEvaluator:
    def test_candidates_are_white_relative(self):
        engine = FakeEngine([_info("e2e4", chess.engine.Cp(30)), _info("d2d4", chess.engine.Cp(-25), chess.BLACK)])
        with UCIEvaluator(engine_factory=lambda: engine) as ev:
            result = ev.evaluate(EvaluationRequest(START, depth=12, multipv=2, threads=2))
        assert [c.move for c in result.candidates] == ["e2e4", "d2d4"]
        assert [c.score for c in result.candidates] == [30, 25]
        assert result.best.fen == chess.Board(AFTER_E4).fen()
        assert engine.analysed == [(START, 12, 2)]
        assert {"Threads": 2} in engine.configured
        assert engine.quit_called

    def test_mate_scores(self):
        engine = FakeEngine([_info("e2e4", chess.engine.Mate(2))])
        ev = UCIEvaluator(engine_factory=lambda: engine)
        best = ev.evaluate(EvaluationRequest(START, depth=5)).best
        assert best.mate == 2
        assert best.score == MATE_SCORE - 2

    def test_terminal_positions_skip_engine(self):
        engine = FakeEngine()
        ev = UCIEvaluator(engine_factory=lambda: engine)
        assert ev.evaluate(EvaluationRequest(FOOLS_MATE, depth=5)).is_checkmate
        assert ev.evaluate(EvaluationRequest(STALEMATE, depth=5)).is_stalemate
        assert engine.analysed == []

    def test_illegal_engine_move(self):
        engine = FakeEngine([_info("e2e5", chess.engine.Cp(0))])
        ev = UCIEvaluator(engine_factory=lambda: engine)
        with pytest.raises(EvaluatorError) as info:
            ev.evaluate(EvaluationRequest(START, depth=5))
        assert not info.value.fatal

    def test_terminated_engine_is_fatal(self):
        engine = FakeEngine(error=chess.engine.EngineTerminatedError("gone"))
        ev = UCIEvaluator(engine_factory=lambda: engine)
        with pytest.raises(EvaluatorError) as info:
            ev.evaluate(EvaluationRequest(START, depth=5))
        assert info.value.fatal

    def test_engine_error_is_local(self):
        engine = FakeEngine(error=chess.engine.EngineError("bad option"))
        ev = UCIEvaluator(engine_factory=lambda: engine)
        with pytest.raises(EvaluatorError) as info:
            ev.evaluate(EvaluationRequest(START, depth=5))
        assert not info.value.fatal

    def test_missing_binary_is_fatal(self):
        def factory():
            raise FileNotFoundError("no stockfish")

        with pytest.raises(EvaluatorError) as info:
            UCIEvaluator(engine_factory=factory).start()
        assert info.value.fatal

    def test_empty_answer(self):
        ev = UCIEvaluator(engine_factory=lambda: FakeEngine([]))
        with pytest.raises(EvaluatorError):
            ev.evaluate(EvaluationRequest(START, depth=5))
