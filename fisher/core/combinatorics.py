"""Expected node and line counts for a run, computed from configuration only.

Depth ``i`` has branching factor ``b[i]`` (override if present, otherwise the
default responder count). Every responder node is answered by exactly one
initiator node, so the full tree has ``1 + 2 * sum_i prod_{j<=i} b[j]``
nodes and ``prod_i b[i]`` leaf lines, as long as no line stops early.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from fisher.config import FisherConfig


def branching_factors(cfg: "FisherConfig") -> List[int]:
    return [cfg.branching_factor(i) for i in range(max(cfg.max_depth, 0))]


def responder_node_count(cfg: "FisherConfig") -> int:
    total = 0
    prod = 1
    for b in branching_factors(cfg):
        prod *= b
        total += prod
    return total


def total_node_count(cfg: "FisherConfig") -> int:
    return 1 + 2 * responder_node_count(cfg)


def total_line_count(cfg: "FisherConfig") -> int:
    prod = 1
    for b in branching_factors(cfg):
        prod *= b
    return prod


def expected_evaluator_calls(cfg: "FisherConfig") -> int:
    """Evaluator calls of an uninterrupted run, baseline call excluded.

    One call per responder-turn line plus one per initiator reply.
    """
    expansions = 0
    prod = 1
    for b in branching_factors(cfg):
        expansions += prod
        prod *= b
    return expansions + responder_node_count(cfg)


def _product_term(factors: List[int], default: int) -> str:
    """Render a product, folding a trailing run of the default into a power."""
    n_default = 0
    while n_default < len(factors) and factors[len(factors) - 1 - n_default] == default:
        n_default += 1
    head = [str(f) for f in factors[: len(factors) - n_default]]
    if n_default == 1:
        head.append(str(default))
    elif n_default > 1:
        head.append(f"{default}^{n_default}")
    return "*".join(head) or "1"


def node_formula(cfg: "FisherConfig") -> str:
    factors = branching_factors(cfg)
    total = total_node_count(cfg)
    if not factors:
        return f"1 = {total}"
    terms = [_product_term(factors[: i + 1], cfg.default_responder_count) for i in range(len(factors))]
    return f"1 + 2 * ({' + '.join(terms)}) = {total}"


def line_formula(cfg: "FisherConfig") -> str:
    factors = branching_factors(cfg)
    product = _product_term(factors, cfg.default_responder_count).replace("*", " * ")
    return f"{product} = {total_line_count(cfg)}"
