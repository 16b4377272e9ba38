"""
ranking_core/scoring.py
───────────────────────
ScoringEngine: ranks every registered node for starting one candidate service.

What this is
─────────────
The engine answers "if this service had to be placed right now, how
desirable is each node?" It reads a snapshot of node capacities and per-node
usage, never mutates either, and returns one (node_name, score) pair per
node. A strictly higher score means a strictly more desirable node.

The score
──────────
  1. Projected utilisation, per dimension, as if the candidate were already
     running on the node:

         cpu_fraction    = (used_cpu    + cpu_request)    / cpu_capacity
         memory_fraction = (used_memory + memory_request) / memory_capacity

     Unclamped. A fraction above 1.0 means the node is (or would become)
     overcommitted; it is scored, never rejected.

  2. badness = max(CPU_WEIGHT × cpu_fraction, MEMORY_WEIGHT × memory_fraction)
     The fuller dimension decides. With the default 1.0 / 1.0 both resources
     count the same, and a node nearly exhausted on either one is disfavoured
     however idle the other is.

  3. score = −badness

  4. Exact badness ties are decided by the placement key (see below). Two
     nodes with different keys but equal badness get scores one float step
     apart; nodes with identical keys get identical scores and the caller's
     own tie-break (usually node name) decides.

Placement key
──────────────
A placement key maps (badness, NodeCapacity) to a sortable value where
smaller sorts first (= more preferred). It is the only place the tie-break
rule lives. The default, prefer_larger_capacity, orders equally loaded nodes
by total capacity, largest first. Pass another key to
ScoringEngine(placement_key=...) to
change the rule without touching the rest of the engine.

Worked example (two nodes, candidate cpu=4, mem=20 GB)
───────────────────────────────────────────────────────
  A: 10 cpu, 100 GB, empty          → max(0.4, 0.2) = 0.40
  B: 20 cpu, 200 GB, 4 cpu / 20 GB  → max(0.4, 0.2) = 0.40
  Tie on badness; B is larger, so B scores just above A.

Standalone use:
    from ranking_core.scoring import ScoringEngine
    engine = ScoringEngine()
    scores = engine.score_nodes(registry.capacities(), ledger.aggregate(), footprint)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import numpy as np

from ha_scheduler.shared.models import (
    NodeCapacity,
    NodeScore,
    NodeUsage,
    ServiceFootprint,
)

logger = logging.getLogger(__name__)

# ── Scoring constants ──────────────────────────────────────────────────────────
# Module-level so tests can import and assert against them directly.

CPU_WEIGHT: float = 1.0
"""Scale applied to the CPU fraction before taking the bottleneck.

Equal to MEMORY_WEIGHT: neither resource dominates placement decisions.
A weight of 2.0 makes that resource count as twice as full.
"""

MEMORY_WEIGHT: float = 1.0
"""Scale applied to the memory fraction before taking the bottleneck."""


PlacementKey = Callable[[float, NodeCapacity], Any]


def prefer_larger_capacity(badness: float, node: NodeCapacity) -> tuple:
    """Default placement key: lowest badness first, then largest total capacity."""
    return (badness, -node.total_capacity)


def badness_only(badness: float, node: NodeCapacity) -> tuple:
    """Placement key without a capacity tie-break. Equal badness ⇒ equal score."""
    return (badness,)


class ScoringEngine:
    """
    Stateless node scorer for placement decisions.

    One engine instance can be shared by any number of schedulers; all
    inputs arrive as arguments.

    Usage:
        engine = ScoringEngine()
        engine.score_nodes(capacities, usage, footprint)   → [(name, score), ...]
        engine.score_breakdown(capacities, usage, footprint) → {name: {...}}

    Returns:
        Unordered list with exactly one entry per node in `capacities`.
        Empty list when there are no nodes.
    """

    def __init__(
        self,
        *,
        placement_key: Optional[PlacementKey] = None,
        cpu_weight: Optional[float] = None,
        memory_weight: Optional[float] = None,
    ) -> None:
        """
        Args:
            placement_key: Tie-break rule (keyword-only). Defaults to
                           prefer_larger_capacity.
            cpu_weight:    Override for CPU_WEIGHT (keyword-only).
            memory_weight: Override for MEMORY_WEIGHT (keyword-only).

        Raises:
            ValueError: a weight is not strictly positive.
        """
        self._placement_key = placement_key or prefer_larger_capacity
        self._cpu_weight = CPU_WEIGHT if cpu_weight is None else float(cpu_weight)
        self._memory_weight = MEMORY_WEIGHT if memory_weight is None else float(memory_weight)
        if self._cpu_weight <= 0.0 or self._memory_weight <= 0.0:
            raise ValueError(
                f"Scoring weights must be positive "
                f"(cpu_weight={self._cpu_weight}, memory_weight={self._memory_weight})."
            )

    @property
    def placement_key(self) -> PlacementKey:
        return self._placement_key

    # ── Main scoring entrypoint ────────────────────────────────────────────────

    def score_nodes(
        self,
        capacities: Mapping[str, NodeCapacity],
        usage: Mapping[str, NodeUsage],
        footprint: ServiceFootprint,
    ) -> List[NodeScore]:
        """
        Score every node in `capacities` for starting a service of `footprint`.

        Algorithm:
            1. Vectorised projected fractions and badness (numpy).
            2. Order nodes by placement key.
            3. Walk from worst to best, turning −badness into a score that is
               strictly increasing whenever the placement key improves.

        Args:
            capacities: node name → NodeCapacity (read-only snapshot).
            usage:      node name → NodeUsage. Missing nodes count as unused.
            footprint:  The candidate service.

        Returns:
            List of (node_name, score), in no particular order.
        """
        if not capacities:
            return []

        names = list(capacities)
        nodes = [capacities[name] for name in names]
        badness = self._badness(nodes, usage, footprint)

        keys = [self._placement_key(float(b), node) for b, node in zip(badness, nodes)]
        order = sorted(range(len(names)), key=lambda i: keys[i])

        scores: Dict[str, float] = {}
        previous_key: Any = None
        previous_score: Optional[float] = None
        for i in reversed(order):
            score = -float(badness[i])
            if previous_score is not None:
                if keys[i] == previous_key:
                    score = previous_score
                elif score <= previous_score:
                    score = float(np.nextafter(previous_score, np.inf))
            scores[names[i]] = score
            previous_key, previous_score = keys[i], score

        logger.debug(
            "score_nodes: cpu=%d mem=%d → %s",
            footprint.cpu_request, footprint.memory_request,
            ", ".join(f"{name}={scores[name]:.6f}" for name in names),
        )
        return [(name, scores[name]) for name in names]

    # ── Detailed breakdown (for observability / debugging) ─────────────────────

    def score_breakdown(
        self,
        capacities: Mapping[str, NodeCapacity],
        usage: Mapping[str, NodeUsage],
        footprint: ServiceFootprint,
    ) -> Dict[str, Dict[str, float]]:
        """
        Per-node projected fractions, badness and final score.

        Returns:
            {
                node_name: {
                    "cpu_fraction":    float,
                    "memory_fraction": float,
                    "badness":         float,
                    "score":           float,
                },
                ...
            }
        """
        if not capacities:
            return {}

        names = list(capacities)
        nodes = [capacities[name] for name in names]
        cpu_fraction, memory_fraction = self._projected_fractions(nodes, usage, footprint)
        badness = self._combine(cpu_fraction, memory_fraction)
        scores = dict(self.score_nodes(capacities, usage, footprint))

        return {
            name: {
                "cpu_fraction": float(cpu_fraction[i]),
                "memory_fraction": float(memory_fraction[i]),
                "badness": float(badness[i]),
                "score": scores[name],
            }
            for i, name in enumerate(names)
        }

    # ── Internals ─────────────────────────────────────────────────────────────

    @staticmethod
    def _projected_fractions(
        nodes: List[NodeCapacity],
        usage: Mapping[str, NodeUsage],
        footprint: ServiceFootprint,
    ) -> tuple:
        # float64 holds every integer below 2**53 exactly, which covers byte
        # counts of any real node.
        empty = NodeUsage()
        used = [usage.get(node.name, empty) for node in nodes]

        cpu_used = np.array([u.cpu for u in used], dtype=np.float64)
        memory_used = np.array([u.memory for u in used], dtype=np.float64)
        cpu_capacity = np.array([n.cpu_capacity for n in nodes], dtype=np.float64)
        memory_capacity = np.array([n.memory_capacity for n in nodes], dtype=np.float64)

        cpu_fraction = (cpu_used + footprint.cpu_request) / cpu_capacity
        memory_fraction = (memory_used + footprint.memory_request) / memory_capacity
        return cpu_fraction, memory_fraction

    def _combine(self, cpu_fraction: np.ndarray, memory_fraction: np.ndarray) -> np.ndarray:
        # Bottleneck dimension. Equal fractions stay bit-identical, so exact
        # ties survive for the placement key.
        return np.maximum(
            self._cpu_weight * cpu_fraction, self._memory_weight * memory_fraction,
        )

    def _badness(
        self,
        nodes: List[NodeCapacity],
        usage: Mapping[str, NodeUsage],
        footprint: ServiceFootprint,
    ) -> np.ndarray:
        cpu_fraction, memory_fraction = self._projected_fractions(nodes, usage, footprint)
        return self._combine(cpu_fraction, memory_fraction)

    def __repr__(self) -> str:
        return (
            f"ScoringEngine("
            f"cpu_weight={self._cpu_weight}, "
            f"memory_weight={self._memory_weight}, "
            f"placement_key={getattr(self._placement_key, '__name__', self._placement_key)!r})"
        )
