# fisher/config.py
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple
import logging
import os
import tomllib  # python >=3.11

import chess

from fisher.core.lines import ScoredMove
from fisher.errors import ConfigurationError

log = logging.getLogger(__name__)

# Defaults for a run
DEFAULT_MAX_DEPTH = 1
DEFAULT_RESPONDER_COUNT = 1
DEFAULT_TARGET_DEPTH = 20
MAX_THREADS = 64


@dataclass(frozen=True)
class FisherConfig:
    """Configuration of a single fishing run. Immutable once a run starts."""

    root_fen: str = chess.STARTING_FEN
    initiator_moves: Tuple[str, ...] = ()  # SAN, forced initiator moves for the first turns
    responder_counts: Tuple[int, ...] = ()  # per-depth override of the branching factor
    default_responder_count: int = DEFAULT_RESPONDER_COUNT
    max_depth: int = DEFAULT_MAX_DEPTH  # initiator/responder move pairs
    target_depth: int = DEFAULT_TARGET_DEPTH  # evaluation depth handed to the engine
    threads: int = 1
    baseline_score: int = 0
    baseline_moves: Tuple[ScoredMove, ...] = ()
    initiator_is_white: Optional[bool] = None  # None: derived from root side to move

    def branching_factor(self, depth: int) -> int:
        if 0 <= depth < len(self.responder_counts):
            return self.responder_counts[depth]
        return self.default_responder_count

    def validate(self) -> "FisherConfig":
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int) or self.max_depth < 0:
            raise ConfigurationError(f"max_depth must be a non-negative integer, got {self.max_depth!r}")
        for name in ("default_responder_count", "target_depth", "threads"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if self.threads > MAX_THREADS:
            raise ConfigurationError(f"threads must be at most {MAX_THREADS}, got {self.threads}")
        for i, count in enumerate(self.responder_counts):
            if isinstance(count, bool) or not isinstance(count, int) or count < 1:
                raise ConfigurationError(f"responder_counts[{i}] must be a positive integer, got {count!r}")
        try:
            board = chess.Board(self.root_fen)
        except ValueError as e:
            raise ConfigurationError(f"invalid root FEN {self.root_fen!r}: {e}") from e
        if self.initiator_moves:
            try:
                board.parse_san(self.initiator_moves[0])
            except ValueError as e:
                raise ConfigurationError(
                    f"initiator move {self.initiator_moves[0]!r} is not legal in the root position"
                ) from e
        return self

    def resolved(self) -> "FisherConfig":
        """Return a copy with `initiator_is_white` filled in.

        With forced initiator moves the initiator moves first from the root,
        otherwise the side to move at the root is the responder.
        """
        if self.initiator_is_white is not None:
            return self
        white_to_move = chess.Board(self.root_fen).turn == chess.WHITE
        initiator_is_white = white_to_move if self.initiator_moves else not white_to_move
        return replace(self, initiator_is_white=initiator_is_white)

    def with_baseline(self, score: int, moves: Tuple[ScoredMove, ...]) -> "FisherConfig":
        return replace(self, baseline_score=score, baseline_moves=tuple(moves))


@dataclass
class EvaluatorConfig:
    engine_path: str = "stockfish"
    pool_size: int = 1  # engine processes
    timeout_s: Optional[float] = 120.0
    hash_mb: int = 64


@dataclass
class SchedulerConfig:
    batch_size: int = 10  # lines processed between two yields
    rate_window_s: float = 10.0  # rolling window for events/second
    poll_interval_s: float = 0.05  # cancel polling while waiting on the engine
    summary_width: int = 5  # best replies / alternatives kept per line
    initiator_multipv: int = 5  # candidates kept as alternatives to the initiator move


@dataclass
class ApiConfig:
    title: str = "Line Fisher"
    api_port: int = 8000
    session_id: str = "default"
    store_path: Optional[str] = None  # sqlite file for finished lines, None disables


@dataclass
class Config:
    fisher: FisherConfig = field(default_factory=FisherConfig)
    evaluator: EvaluatorConfig = field(default_factory=EvaluatorConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log_level: str = "INFO"

    @staticmethod
    def load_from_toml(path: str = "fisher.toml") -> "Config":
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        if "fisher" in raw:
            known = {k: v for k, v in raw["fisher"].items() if k in FisherConfig.__dataclass_fields__}
            for k in ("initiator_moves", "responder_counts"):
                if k in known:
                    known[k] = tuple(known[k])
            known.pop("baseline_moves", None)
            cfg.fisher = replace(cfg.fisher, **known)
        for section in ("evaluator", "scheduler", "api"):
            if section in raw:
                target = getattr(cfg, section)
                for k, v in raw[section].items():
                    if hasattr(target, k):
                        setattr(target, k, v)
        if "log_level" in raw:
            cfg.log_level = str(raw["log_level"])
        return cfg


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# single globally importable config instance (defaults only, never run state)
CONFIG = Config.load_from_toml(os.environ.get("FISHER_CONFIG_TOML", "fisher.toml"))
# allow env override of depth for quick debugging
override_depth = os.environ.get("FISHER_MAX_DEPTH")
if override_depth:
    try:
        CONFIG.fisher = replace(CONFIG.fisher, max_depth=int(override_depth))
    except ValueError:
        log.warning("ignoring FISHER_MAX_DEPTH=%r: not an integer", override_depth)
