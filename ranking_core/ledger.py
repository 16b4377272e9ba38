"""
ranking_core/ledger.py
──────────────────────
The usage ledger: which node hosts each service, and what it reserves.

Ledger layout
─────────────
  service_id → UsageRecord(service_id, node_name, footprint)

Keyed by service, not by node: a service identifier is unique across the
whole scheduling domain, so there is at most one record per service at any
time. Per-node aggregates are computed on demand by summing records. There is
no cached per-node total that could drift out of sync with the records.

Migration semantics
───────────────────
add_service_usage_to_node() with a service_id that already has a record
overwrites it: the node and the footprint are both replaced. This is how a
live migration (or a footprint change on restart) is modelled. Usage never
accumulates under one service_id.

Error handling contract
────────────────────────
  UnknownNodeError: raised when a usage mutation names a node the registry
                    does not know. Raised before anything is written, so the
                    ledger is unchanged. Recoverable: register the node first,
                    or ignore the service.

  Removal of an unknown service_id is a no-op, not an error.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ha_scheduler.shared.models import NodeUsage, ServiceFootprint, UsageRecord
from ranking_core.registry import NodeRegistry

logger = logging.getLogger(__name__)


class UnknownNodeError(Exception):
    """
    Raised when a usage mutation references a node that is not registered.

    Caller contract:
        The host either registers the node and retries, or drops the
        service from its bookkeeping. Nothing was mutated.

    Attributes:
        node_name: The name that was not found in the registry.
    """

    def __init__(self, node_name: str) -> None:
        self.node_name = node_name
        super().__init__(f"node {node_name!r} is not registered in the scheduler")


class UsageLedger:
    """
    Map of service_id → UsageRecord, built on a NodeRegistry's node set.

    The ledger only reads the registry (contains_node). Keeping the two in
    step when a node disappears is the owning StaticScheduler's job; see
    remove_node_usages().
    """

    def __init__(self, registry: NodeRegistry) -> None:
        self._registry = registry
        self._records: Dict[str, UsageRecord] = {}

    # ── Mutations ──────────────────────────────────────────────────────────────

    def add_service_usage_to_node(
        self,
        node_name: str,
        service_id: str,
        footprint: ServiceFootprint,
    ) -> UsageRecord:
        """
        Record (or replace) the usage of `service_id` on `node_name`.

        Raises:
            UnknownNodeError: node_name is not in the registry.
        """
        if not self._registry.contains_node(node_name):
            raise UnknownNodeError(node_name)

        record = UsageRecord(service_id=service_id, node_name=node_name, footprint=footprint)
        previous = self._records.get(service_id)
        self._records[service_id] = record

        if previous is not None and previous.node_name != node_name:
            logger.warning(
                "Service %s moved %s → %s", service_id, previous.node_name, node_name,
            )
        logger.debug(
            "Usage recorded: service=%s node=%s cpu=%d mem=%d",
            service_id, node_name, footprint.cpu_request, footprint.memory_request,
        )
        return record

    def remove_service_usage(self, service_id: str) -> Optional[UsageRecord]:
        """Drop the record for `service_id`. Returns it, or None if there was none."""
        record = self._records.pop(service_id, None)
        if record is not None:
            logger.debug("Usage released: service=%s node=%s", service_id, record.node_name)
        return record

    def remove_node_usages(self, node_name: str) -> int:
        """Drop every record hosted on `node_name`. Returns how many were dropped."""
        orphaned = [
            service_id for service_id, record in self._records.items()
            if record.node_name == node_name
        ]
        for service_id in orphaned:
            del self._records[service_id]
        return len(orphaned)

    # ── Queries ────────────────────────────────────────────────────────────────

    def usage_of_node(self, node_name: str) -> NodeUsage:
        cpu = 0
        memory = 0
        for record in self._records.values():
            if record.node_name == node_name:
                cpu += record.footprint.cpu_request
                memory += record.footprint.memory_request
        return NodeUsage(cpu=cpu, memory=memory)

    def aggregate(self) -> Dict[str, NodeUsage]:
        """
        Per-node usage totals in a single pass over all records.

        Nodes without any record are absent from the result; callers treat
        a missing entry as zero usage.
        """
        totals: Dict[str, List[int]] = {}
        for record in self._records.values():
            total = totals.setdefault(record.node_name, [0, 0])
            total[0] += record.footprint.cpu_request
            total[1] += record.footprint.memory_request
        return {
            node_name: NodeUsage(cpu=cpu, memory=memory)
            for node_name, (cpu, memory) in totals.items()
        }

    def get(self, service_id: str) -> Optional[UsageRecord]:
        return self._records.get(service_id)

    def records(self) -> List[UsageRecord]:
        return list(self._records.values())

    def __contains__(self, service_id: object) -> bool:
        return service_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"UsageLedger(records={len(self._records)})"
