"""
ranking_core: capacity-aware node ranking core.

Public API:
    NodeRegistry           : static capacity per node name (upsert semantics)
    UsageLedger            : service_id → (node, footprint); migration on re-add
    ScoringEngine          : scores every node for one candidate footprint
    UnknownNodeError       : raised when usage references an unregistered node
    prefer_larger_capacity : default tie-break placement key
    badness_only           : placement key without a capacity tie-break

Usage:
    from ranking_core import NodeRegistry, UsageLedger, ScoringEngine

    registry = NodeRegistry()
    ledger = UsageLedger(registry)
    registry.add_node("A", 10, 100_000_000_000)
    scores = ScoringEngine().score_nodes(
        registry.capacities(), ledger.aggregate(), footprint,
    )
"""

from ranking_core.registry import NodeRegistry
from ranking_core.ledger import UnknownNodeError, UsageLedger
from ranking_core.scoring import ScoringEngine, badness_only, prefer_larger_capacity

__all__ = [
    "NodeRegistry",
    "UsageLedger",
    "UnknownNodeError",
    "ScoringEngine",
    "prefer_larger_capacity",
    "badness_only",
]
