"""
tests/test_scoring_engine.py
─────────────────────────────
Test suite for ranking_core/scoring.py

What we are testing
────────────────────
ScoringEngine.score_nodes() turns projected utilisation into one comparable
score per node. It must:
  • Score every node exactly once, and never raise for overcommit
  • Prefer the lower bottleneck fraction, weighing CPU and memory equally
  • Break exact ties through the placement key only
  • Stay a pure function of its inputs

Test groups
────────────
Group 1: projected fractions and badness
Group 2: ties and placement keys
Group 3: weights and configuration
Group 4: invariants (coverage, purity, monotonicity)
"""

from __future__ import annotations

import random
from typing import Dict

import pytest

from ha_scheduler.shared.models import NodeCapacity, NodeUsage, ServiceFootprint
from ranking_core.scoring import (
    CPU_WEIGHT,
    MEMORY_WEIGHT,
    ScoringEngine,
    badness_only,
    prefer_larger_capacity,
)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _nodes(*specs) -> Dict[str, NodeCapacity]:
    """(name, cpu, mem) tuples → capacities mapping."""
    return {
        name: NodeCapacity(name=name, cpu_capacity=cpu, memory_capacity=mem)
        for name, cpu, mem in specs
    }


def _fp(cpu: int, mem: int) -> ServiceFootprint:
    return ServiceFootprint(cpu_request=cpu, memory_request=mem)


# ─────────────────────────────────────────────────────────────────────────────
# Group 1: projected fractions and badness
# ─────────────────────────────────────────────────────────────────────────────

class TestProjectedUtilisation:

    engine = ScoringEngine()

    def test_empty_registry_scores_nothing(self) -> None:
        assert self.engine.score_nodes({}, {}, _fp(1, 1)) == []
        assert self.engine.score_breakdown({}, {}, _fp(1, 1)) == {}

    def test_score_is_negated_bottleneck_fraction(self) -> None:
        capacities = _nodes(("A", 10, 100))
        scores = dict(self.engine.score_nodes(capacities, {}, _fp(4, 20)))
        # cpu 0.4, mem 0.2 → badness 0.4
        assert scores["A"] == pytest.approx(-0.4)

    def test_memory_can_be_the_bottleneck(self) -> None:
        capacities = _nodes(("A", 10, 100))
        breakdown = self.engine.score_breakdown(capacities, {}, _fp(1, 70))["A"]
        assert breakdown["badness"] == pytest.approx(0.7)

    def test_current_usage_is_added_to_request(self) -> None:
        capacities = _nodes(("A", 10, 100))
        usage = {"A": NodeUsage(cpu=2, memory=30)}
        breakdown = self.engine.score_breakdown(capacities, usage, _fp(4, 20))["A"]

        assert breakdown["cpu_fraction"] == pytest.approx(0.6)
        assert breakdown["memory_fraction"] == pytest.approx(0.5)
        assert breakdown["badness"] == pytest.approx(0.6)
        assert breakdown["score"] == pytest.approx(-0.6)

    def test_overcommit_is_scored_not_rejected(self) -> None:
        """Fractions above 1.0 are legal; they just score worse."""
        capacities = _nodes(("A", 4, 1000), ("B", 4, 1000))
        usage = {"A": NodeUsage(cpu=12, memory=3000)}
        breakdown = self.engine.score_breakdown(capacities, usage, _fp(1, 100))

        assert breakdown["A"]["cpu_fraction"] == pytest.approx(13 / 4)
        assert breakdown["A"]["memory_fraction"] == pytest.approx(3.1)
        assert breakdown["A"]["score"] < breakdown["B"]["score"]

    def test_lighter_node_scores_higher(self) -> None:
        capacities = _nodes(("A", 8, 8000), ("B", 8, 8000))
        usage = {"A": NodeUsage(cpu=4, memory=4000)}
        scores = dict(self.engine.score_nodes(capacities, usage, _fp(1, 1000)))
        assert scores["B"] > scores["A"]

    def test_nearly_exhausted_memory_is_disfavoured(self) -> None:
        """A node almost out of memory loses even with idle CPUs."""
        capacities = _nodes(("A", 64, 1000), ("B", 8, 1000))
        usage = {"A": NodeUsage(cpu=0, memory=950), "B": NodeUsage(cpu=2, memory=100)}
        scores = dict(self.engine.score_nodes(capacities, usage, _fp(1, 10)))
        assert scores["B"] > scores["A"]

    def test_usage_of_unknown_node_is_ignored(self) -> None:
        capacities = _nodes(("A", 10, 100))
        usage = {"gone": NodeUsage(cpu=100, memory=100)}
        scores = self.engine.score_nodes(capacities, usage, _fp(1, 10))
        assert [name for name, _ in scores] == ["A"]

    def test_returns_plain_floats(self) -> None:
        scores = self.engine.score_nodes(_nodes(("A", 2, 2)), {}, _fp(1, 1))
        assert type(scores[0][1]) is float


# ─────────────────────────────────────────────────────────────────────────────
# Group 2: ties and placement keys
# ─────────────────────────────────────────────────────────────────────────────

class TestTieBreaking:

    def test_equal_badness_prefers_larger_node(self) -> None:
        """A(10, 100) empty vs B(20, 200) half-loaded: equal badness, B wins."""
        engine = ScoringEngine()
        capacities = _nodes(("A", 10, 100_000_000_000), ("B", 20, 200_000_000_000))
        usage = {"B": NodeUsage(cpu=4, memory=20_000_000_000)}
        breakdown = engine.score_breakdown(capacities, usage, _fp(4, 20_000_000_000))

        assert breakdown["A"]["badness"] == breakdown["B"]["badness"]
        assert breakdown["B"]["score"] > breakdown["A"]["score"]
        # Only nudged, never reordered against a genuinely different badness.
        assert breakdown["B"]["score"] == pytest.approx(-0.4)

    def test_identical_nodes_get_identical_scores(self) -> None:
        engine = ScoringEngine()
        capacities = _nodes(("C", 4, 4096), ("D", 4, 4096))
        scores = dict(engine.score_nodes(capacities, {}, _fp(1, 512)))
        assert scores["C"] == scores["D"]

    def test_badness_only_key_keeps_ties(self) -> None:
        engine = ScoringEngine(placement_key=badness_only)
        capacities = _nodes(("A", 10, 100), ("B", 20, 200))
        usage = {"B": NodeUsage(cpu=4, memory=20)}
        scores = dict(engine.score_nodes(capacities, usage, _fp(4, 20)))
        assert scores["A"] == scores["B"]

    def test_custom_key_can_prefer_smaller_nodes(self) -> None:
        def prefer_smaller(badness: float, node: NodeCapacity) -> tuple:
            return (badness, node.total_capacity)

        engine = ScoringEngine(placement_key=prefer_smaller)
        capacities = _nodes(("A", 10, 100), ("B", 20, 200))
        usage = {"B": NodeUsage(cpu=4, memory=20)}
        scores = dict(engine.score_nodes(capacities, usage, _fp(4, 20)))
        assert scores["A"] > scores["B"]

    def test_three_way_tie_is_strictly_ordered_by_capacity(self) -> None:
        engine = ScoringEngine()
        capacities = _nodes(("S", 10, 100), ("M", 20, 200), ("L", 40, 400))
        usage = {"M": NodeUsage(cpu=4, memory=20), "L": NodeUsage(cpu=12, memory=60)}
        scores = dict(engine.score_nodes(capacities, usage, _fp(4, 20)))
        assert scores["L"] > scores["M"] > scores["S"]

    def test_default_key_is_prefer_larger_capacity(self) -> None:
        assert ScoringEngine().placement_key is prefer_larger_capacity


# ─────────────────────────────────────────────────────────────────────────────
# Group 3: weights and configuration
# ─────────────────────────────────────────────────────────────────────────────

class TestWeights:

    def test_default_weights_are_equal(self) -> None:
        assert CPU_WEIGHT == MEMORY_WEIGHT == 1.0

    def test_cpu_and_memory_are_symmetric(self) -> None:
        """Swapping which dimension is loaded does not change the score."""
        engine = ScoringEngine()
        capacities = _nodes(("A", 100, 100), ("B", 100, 100))
        usage = {"A": NodeUsage(cpu=50, memory=0), "B": NodeUsage(cpu=0, memory=50)}
        scores = dict(engine.score_nodes(capacities, usage, _fp(0, 0)))
        assert scores["A"] == pytest.approx(scores["B"])

    def test_weight_override(self) -> None:
        engine = ScoringEngine(cpu_weight=3.0, memory_weight=1.0)
        breakdown = engine.score_breakdown(_nodes(("A", 10, 100)), {}, _fp(4, 20))["A"]
        assert breakdown["badness"] == pytest.approx(3 * 0.4)

    def test_weight_can_change_the_bottleneck(self) -> None:
        """Doubling the memory weight lets memory outrank a busier CPU."""
        capacities = _nodes(("A", 10, 100), ("B", 10, 100))
        usage = {"A": NodeUsage(cpu=5, memory=0), "B": NodeUsage(cpu=0, memory=30)}

        default = dict(ScoringEngine().score_nodes(capacities, usage, _fp(0, 0)))
        assert default["B"] > default["A"]

        heavy_memory = ScoringEngine(memory_weight=2.0)
        weighted = dict(heavy_memory.score_nodes(capacities, usage, _fp(0, 0)))
        assert weighted["A"] > weighted["B"]

    @pytest.mark.parametrize("cpu_weight, memory_weight", [(0.0, 1.0), (1.0, -1.0)])
    def test_non_positive_weight_rejected(self, cpu_weight: float, memory_weight: float) -> None:
        with pytest.raises(ValueError, match="positive"):
            ScoringEngine(cpu_weight=cpu_weight, memory_weight=memory_weight)

    def test_repr_mentions_key(self) -> None:
        assert "prefer_larger_capacity" in repr(ScoringEngine())


# ─────────────────────────────────────────────────────────────────────────────
# Group 4: invariants
# ─────────────────────────────────────────────────────────────────────────────

class TestInvariants:

    engine = ScoringEngine()

    def test_one_entry_per_node(self) -> None:
        rng = random.Random(3)
        capacities = _nodes(*[
            (f"n{i}", rng.randint(1, 64), rng.randint(1, 2**40)) for i in range(25)
        ])
        usage = {
            name: NodeUsage(cpu=rng.randint(0, 200), memory=rng.randint(0, 2**42))
            for name in capacities if rng.random() < 0.7
        }
        scores = self.engine.score_nodes(capacities, usage, _fp(2, 2**30))

        assert sorted(name for name, _ in scores) == sorted(capacities)

    def test_inputs_are_not_mutated(self) -> None:
        capacities = _nodes(("A", 4, 400), ("B", 8, 800))
        usage = {"A": NodeUsage(cpu=1, memory=100)}
        before = (dict(capacities), dict(usage))
        self.engine.score_nodes(capacities, usage, _fp(1, 100))
        assert (capacities, usage) == before

    def test_monotonic_in_usage(self) -> None:
        """More usage on A never improves A relative to an unchanged competitor B."""
        capacities = _nodes(("A", 8, 8000), ("B", 8, 8000))
        fp = _fp(1, 500)
        previous_gap = None
        for load in range(0, 40, 3):
            usage = {"A": NodeUsage(cpu=load, memory=load * 250), "B": NodeUsage(cpu=2, memory=1000)}
            scores = dict(self.engine.score_nodes(capacities, usage, fp))
            gap = scores["A"] - scores["B"]
            if previous_gap is not None:
                assert gap <= previous_gap
            previous_gap = gap
