"""
ha_scheduler/control_plane/static_scheduler.py
───────────────────────────────────────────────
StaticScheduler: the facade the host orchestrator talks to.

It owns all mutable state (a NodeRegistry and a UsageLedger built on it) and
delegates scoring to a ScoringEngine. "Static" because it works from reserved
footprints and static capacities, not from live load measurements.

Lifecycle
──────────
There are no lifecycle states beyond "constructed" and "holds N nodes and M
usage records". Every call is a direct, synchronous mutation or a pure query.

    scheduler = StaticScheduler()                         # empty
    scheduler = StaticScheduler.from_nodes(node_tuples)   # rehydrate nodes
    scheduler = StaticScheduler.from_state(state)         # rehydrate everything

The host mutates the scheduler as services start, stop and migrate, and
queries it right before each placement decision:

    scheduler.add_node("A", 10, 100_000_000_000)
    scores = scheduler.score_nodes_to_start_service({"maxcpu": 4, "maxmem": 20 * 10**9})
    scheduler.add_service_usage_to_node("A", "vm:100", {"maxcpu": 4, "maxmem": 20 * 10**9})

Node removal with live usage
─────────────────────────────
remove_node() cascades: every usage record still hosted on the node is
dropped together with the node. A later add_node() under the same name
starts from zero usage. The host re-adds usage for services it still
considers running there.

Persistence
────────────
The scheduler never stores anything. state() returns a SchedulerState the
host can serialise; from_state() replays it via add_node() and
add_service_usage_to_node().

Thread safety
──────────────
Not thread-safe. No internal locking. A host that shares one instance
between threads must serialise every call (one lock around the instance),
or confine the instance to a single thread or task.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

from ha_scheduler.shared.models import (
    NodeScore,
    NodeSpec,
    NodeUsage,
    SchedulerState,
    ServiceFootprint,
    UsageRecord,
)
from ranking_core import NodeRegistry, ScoringEngine, UsageLedger

logger = logging.getLogger(__name__)

FootprintLike = Union[ServiceFootprint, Mapping[str, int]]


def as_footprint(footprint: FootprintLike) -> ServiceFootprint:
    """
    Validate a footprint at the API boundary.

    Accepts a ServiceFootprint as-is, or a mapping with the keys
    cpu_request/memory_request (or maxcpu/maxmem). Any other key is rejected.

    Raises:
        pydantic.ValidationError: negative values, missing or unknown keys.
    """
    if isinstance(footprint, ServiceFootprint):
        return footprint
    return ServiceFootprint.model_validate(footprint)


class StaticScheduler:
    """
    Node registry + usage ledger + scoring engine behind one API.

    Public API:
        add_node(name, cpu_capacity, memory_capacity)   → None  (upsert)
        remove_node(name)                               → None  (cascades usage)
        contains_node(name)                             → bool
        list_nodes()                                    → Set[str]
        add_service_usage_to_node(node, service_id, fp) → None  (UnknownNodeError)
        remove_service_usage(service_id)                → None  (idempotent)
        get_service_usage(service_id)                   → Optional[UsageRecord]
        usage_of_node(name)                             → NodeUsage
        score_nodes_to_start_service(fp)                → List[(name, score)]
        state() / from_state(state) / from_nodes(specs) → persistence helpers
        get_scheduling_metrics()                        → Dict

    Attributes:
        engine: the ScoringEngine in use (one instance may be shared)
    """

    def __init__(self, engine: Optional[ScoringEngine] = None) -> None:
        self._registry = NodeRegistry()
        self._ledger = UsageLedger(self._registry)
        self.engine = engine or ScoringEngine()

    # ── Construction helpers ───────────────────────────────────────────────────

    @classmethod
    def from_nodes(
        cls,
        nodes: Iterable[NodeSpec],
        engine: Optional[ScoringEngine] = None,
    ) -> "StaticScheduler":
        """Build a scheduler from (name, cpu_capacity, memory_capacity) tuples."""
        scheduler = cls(engine=engine)
        for name, cpu_capacity, memory_capacity in nodes:
            scheduler.add_node(name, cpu_capacity, memory_capacity)
        return scheduler

    @classmethod
    def from_state(
        cls,
        state: Union[SchedulerState, Mapping],
        engine: Optional[ScoringEngine] = None,
    ) -> "StaticScheduler":
        """
        Rebuild a scheduler from a snapshot taken with state().

        Raises:
            UnknownNodeError: a usage record names a node missing from the
                              snapshot's node list.
        """
        if not isinstance(state, SchedulerState):
            state = SchedulerState.model_validate(state)

        scheduler = cls(engine=engine)
        for node in state.nodes:
            scheduler.add_node(node.name, node.cpu_capacity, node.memory_capacity)
        for record in state.usages:
            scheduler.add_service_usage_to_node(
                record.node_name, record.service_id, record.footprint,
            )
        logger.info(
            "StaticScheduler restored: %d nodes, %d usage records",
            len(state.nodes), len(state.usages),
        )
        return scheduler

    def state(self) -> SchedulerState:
        """Snapshot of all nodes and usage records, for the host to persist."""
        return SchedulerState(
            nodes=sorted(self._registry, key=lambda node: node.name),
            usages=sorted(self._ledger.records(), key=lambda record: record.service_id),
        )

    # ── Nodes ──────────────────────────────────────────────────────────────────

    def add_node(self, name: str, cpu_capacity: int, memory_capacity: int) -> None:
        """Register a node, or replace the capacity of an existing one."""
        self._registry.add_node(name, cpu_capacity, memory_capacity)

    def remove_node(self, name: str) -> None:
        """Remove a node and every usage record it hosts. No-op if unknown."""
        if not self._registry.remove_node(name):
            return
        dropped = self._ledger.remove_node_usages(name)
        if dropped:
            logger.info(
                "Node %s removed with %d usage record(s); records dropped", name, dropped,
            )

    def contains_node(self, name: str) -> bool:
        return self._registry.contains_node(name)

    def list_nodes(self) -> Set[str]:
        return self._registry.list_nodes()

    # ── Service usage ──────────────────────────────────────────────────────────

    def add_service_usage_to_node(
        self,
        node_name: str,
        service_id: str,
        footprint: FootprintLike,
    ) -> None:
        """
        Reserve `footprint` for `service_id` on `node_name`.

        A service that already has a record is moved: its node and footprint
        are replaced, never summed.

        Raises:
            UnknownNodeError: node_name is not registered.
            pydantic.ValidationError: malformed footprint.
        """
        self._ledger.add_service_usage_to_node(node_name, service_id, as_footprint(footprint))

    def remove_service_usage(self, service_id: str) -> None:
        """Release the reservation of `service_id`. No-op if it has none."""
        self._ledger.remove_service_usage(service_id)

    def get_service_usage(self, service_id: str) -> Optional[UsageRecord]:
        return self._ledger.get(service_id)

    def usage_of_node(self, name: str) -> NodeUsage:
        """Aggregate reserved footprint on `name` (zero for unknown or idle nodes)."""
        return self._ledger.usage_of_node(name)

    # ── Scoring ────────────────────────────────────────────────────────────────

    def score_nodes_to_start_service(self, footprint: FootprintLike) -> List[NodeScore]:
        """
        Score every registered node for starting a service of `footprint`.

        Pure query: reads a snapshot of registry and ledger, mutates nothing.

        Returns:
            One (node_name, score) per registered node, unordered. Higher is
            better. Empty list when no nodes are registered.
        """
        return self.engine.score_nodes(
            self._registry.capacities(),
            self._ledger.aggregate(),
            as_footprint(footprint),
        )

    def score_breakdown(self, footprint: FootprintLike) -> Dict[str, Dict[str, float]]:
        """Per-node fractions, badness and score. See ScoringEngine.score_breakdown."""
        return self.engine.score_breakdown(
            self._registry.capacities(),
            self._ledger.aggregate(),
            as_footprint(footprint),
        )

    # ── Observability ──────────────────────────────────────────────────────────

    def get_scheduling_metrics(self) -> dict:
        """
        Return current node and usage figures for the host's metrics endpoint.

        Metrics:
            node_count:       Registered nodes.
            service_count:    Usage records across all nodes.
            node_usage:       Per-node reserved cpu / memory.
            node_utilisation: Per-node reserved share of capacity in %
                              (may exceed 100 when overcommitted).
        """
        usage = self._ledger.aggregate()
        empty = NodeUsage()
        node_usage = {}
        node_utilisation = {}
        for node in self._registry:
            used = usage.get(node.name, empty)
            node_usage[node.name] = {"cpu": used.cpu, "memory": used.memory}
            node_utilisation[node.name] = {
                "cpu_pct": round(used.cpu / node.cpu_capacity * 100.0, 1),
                "memory_pct": round(used.memory / node.memory_capacity * 100.0, 1),
            }

        return {
            "node_count": len(self._registry),
            "service_count": len(self._ledger),
            "node_usage": node_usage,
            "node_utilisation": node_utilisation,
        }

    def __repr__(self) -> str:
        return (
            f"StaticScheduler(nodes={len(self._registry)}, "
            f"services={len(self._ledger)}, engine={self.engine!r})"
        )
