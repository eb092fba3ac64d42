"""Command-line fisher.

    python -m interface.cli --moves e4 --depth 2 --responders 3,2 --export run.json
    python -m interface.cli --resume run.json --export run.json

Ctrl-C stops the run; with --export the snapshot is written either way and
can be resumed later.
"""
import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from fisher.config import CONFIG, configure_logging
from fisher.core import combinatorics
from fisher.core.evaluator import UCIEvaluator
from fisher.core.scheduler import RunOutcome
from fisher.core.tree import format_delta, format_score
from fisher.core.utils import format_info
from fisher.errors import FisherError, StateImportError
from fisher.main import LineFisher
from fisher.persistence import SqliteLineStore

log = logging.getLogger("fisher.cli")


def _counts(text: str):
    return tuple(int(c) for c in text.split(",") if c.strip())


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fisher", description="Expand chess opening lines with a UCI engine.")
    p.add_argument("--fen", default=CONFIG.fisher.root_fen, help="root position")
    p.add_argument("--moves", nargs="*", default=list(CONFIG.fisher.initiator_moves), help="forced initiator moves (SAN)")
    p.add_argument("--depth", type=int, default=CONFIG.fisher.max_depth, help="initiator/responder move pairs")
    p.add_argument("--responders", type=_counts, default=CONFIG.fisher.responder_counts, help="per-depth replies, e.g. 3,2")
    p.add_argument("--default", type=int, default=CONFIG.fisher.default_responder_count, help="replies beyond the overrides")
    p.add_argument("--target-depth", type=int, default=CONFIG.fisher.target_depth, help="engine search depth")
    p.add_argument("--threads", type=int, default=CONFIG.fisher.threads)
    p.add_argument("--engine", default=CONFIG.evaluator.engine_path, help="UCI engine binary")
    p.add_argument("--batch-size", type=int, default=CONFIG.scheduler.batch_size)
    p.add_argument("--resume", type=Path, help="continue from a snapshot file")
    p.add_argument("--export", type=Path, help="write the snapshot here when the run ends")
    p.add_argument("--store", default=CONFIG.api.store_path, help="sqlite file receiving finished lines")
    p.add_argument("--estimate", action="store_true", help="print the expected tree size and exit")
    p.add_argument("--log-level", default=CONFIG.log_level)
    return p


def print_lines(fisher: LineFisher, out=sys.stdout):
    state = fisher.state
    cfg = state.config
    white = cfg.resolved().initiator_is_white
    for line in fisher.lines(done_only=True):
        score = format_score(line.score, line.mate)
        delta = format_delta(line.score, cfg.baseline_score, white)
        reason = line.end_reason.value if line.end_reason else "-"
        print(f"{line.index:>4} {score:>6} {delta:>5} {reason:<13} {state.san_game(line)}", file=out)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    config = replace(
        CONFIG.fisher,
        root_fen=args.fen,
        initiator_moves=tuple(args.moves),
        max_depth=args.depth,
        responder_counts=tuple(args.responders),
        default_responder_count=args.default,
        target_depth=args.target_depth,
        threads=args.threads,
    )
    if args.estimate:
        print(f"nodes: {combinatorics.node_formula(config)}")
        print(f"lines: {combinatorics.line_formula(config)}")
        print(f"engine calls: {combinatorics.expected_evaluator_calls(config)}")
        return 0

    evaluator = UCIEvaluator(
        args.engine,
        pool_size=CONFIG.evaluator.pool_size,
        timeout_s=CONFIG.evaluator.timeout_s,
        hash_mb=CONFIG.evaluator.hash_mb,
    )
    sink = SqliteLineStore(args.store) if args.store else None
    fisher = LineFisher(evaluator, replace(CONFIG.scheduler, batch_size=args.batch_size), sink=sink)
    try:
        if args.resume:
            fisher.import_state(args.resume.read_text())
        else:
            fisher.configure(config)
    except StateImportError as e:
        for issue in e.issues:
            print(f"{issue.location}: {issue.reason.value}: {issue.message}", file=sys.stderr)
        return 1
    except (FisherError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    fisher.start(yield_hook=lambda p: print(format_info(p), flush=True))
    try:
        while fisher.is_running:
            fisher.wait(timeout=0.5)
    except KeyboardInterrupt:
        print("stopping...", file=sys.stderr)
        fisher.stop(timeout=None)
    finally:
        if args.export:
            args.export.write_text(fisher.export_json())
            log.info("snapshot written to %s", args.export)
        fisher.close()

    print(format_info(fisher.progress()))
    print_lines(fisher)
    if fisher.last_error:
        print(f"error: {fisher.last_error}", file=sys.stderr)
        return 1
    return 0 if fisher.last_outcome is RunOutcome.COMPLETED else 130


if __name__ == "__main__":
    sys.exit(main())
