"""
ranking_core/registry.py
────────────────────────
The node registry: static capacity of every node in the scheduling domain.

What lives here
───────────────
One NodeCapacity per node name. That is all. Usage is tracked separately by
the UsageLedger (ledger.py) because capacity changes rarely while usage
changes on every service start, stop and migration.

Re-registration
───────────────
add_node() is an upsert. After a restart the host replays every node it
knows about, possibly with new capacity values; re-adding an existing name
replaces its capacity instead of failing or duplicating it.

Validation
──────────
Capacities are validated by the NodeCapacity model before the registry is
touched, so a rejected add_node() leaves the registry unchanged.

Thread safety
─────────────
Not thread-safe. The owning StaticScheduler is the only writer and the host
serialises access to it.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, Optional, Set

from ha_scheduler.shared.models import NodeCapacity

logger = logging.getLogger(__name__)


class NodeRegistry:
    """
    Map of node name → NodeCapacity.

    Used by:
        UsageLedger       → contains_node() to reject usage on unknown nodes.
        ScoringEngine     → capacities() as the read-only scoring snapshot.
        StaticScheduler   → add/remove/list on behalf of the host.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, NodeCapacity] = {}

    def add_node(self, name: str, cpu_capacity: int, memory_capacity: int) -> NodeCapacity:
        """
        Register a node, or replace the capacity of an existing one.

        Raises:
            pydantic.ValidationError: empty name, or a capacity that is not a
                positive int.
        """
        node = NodeCapacity(
            name=name,
            cpu_capacity=cpu_capacity,
            memory_capacity=memory_capacity,
        )
        previous = self._nodes.get(name)
        self._nodes[name] = node

        if previous is None:
            logger.info(
                "Node %s registered (cpu=%d, mem=%d)",
                name, node.cpu_capacity, node.memory_capacity,
            )
        elif previous != node:
            logger.info(
                "Node %s capacity updated (cpu=%d→%d, mem=%d→%d)",
                name,
                previous.cpu_capacity, node.cpu_capacity,
                previous.memory_capacity, node.memory_capacity,
            )
        return node

    def remove_node(self, name: str) -> bool:
        """Remove a node. Returns False (and does nothing) if it was unknown."""
        if self._nodes.pop(name, None) is None:
            return False
        logger.info("Node %s removed", name)
        return True

    def contains_node(self, name: str) -> bool:
        return name in self._nodes

    def list_nodes(self) -> Set[str]:
        return set(self._nodes)

    def get(self, name: str) -> Optional[NodeCapacity]:
        return self._nodes.get(name)

    def capacities(self) -> Dict[str, NodeCapacity]:
        """Shallow copy of the registry. NodeCapacity is frozen, so this is a safe snapshot."""
        return dict(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[NodeCapacity]:
        return iter(list(self._nodes.values()))

    def __repr__(self) -> str:
        return f"NodeRegistry(nodes={sorted(self._nodes)})"
