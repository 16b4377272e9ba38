"""
ha_scheduler/shared/models.py
─────────────────────────────
The single source of truth for every value type the static scheduler uses.

Design philosophy
-----------------
Every model answers one question: "What does the ranking engine *need to
know* about this thing in order to score nodes for a placement?"

For a node that is its static capacity. For a service it is the resource
footprint the host reserves for it. Nothing else: node health, quorum and
networking belong to the host orchestrator, not to this engine.

Reading guide
-------------
Read top-to-bottom. Each model builds on the ones above it.
"""

from __future__ import annotations

from typing import List, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: NODE MODELS
# What a cluster member provides.
# ─────────────────────────────────────────────────────────────────────────────

class NodeCapacity(BaseModel):
    """
    Static capacity of one node in the scheduling domain.

    Capacities change rarely (hardware upgrade, re-registration after a
    restart), so they are kept apart from the usage ledger, which changes
    on every service start, stop and migration.

    Fields:
        name            → Unique node name, e.g. "pve-node-01".
        cpu_capacity    → Abstract CPU units (threads). Strictly positive int.
        memory_capacity → Memory in bytes. Strictly positive int.

    Capacities are strict ints. A bool or a numeric string is rejected
    instead of being coerced.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique node name")
    cpu_capacity: int = Field(..., gt=0, strict=True, description="CPU units (threads) on this node")
    memory_capacity: int = Field(..., gt=0, strict=True, description="Memory on this node in bytes")

    @property
    def total_capacity(self) -> int:
        """cpu + memory. Only meaningful as an ordering between nodes."""
        return self.cpu_capacity + self.memory_capacity


class NodeUsage(BaseModel):
    """
    Aggregate footprint currently reserved on one node.

    Sum of cpu_request and memory_request over every usage record hosted on
    the node. May exceed the node's capacity: overcommit is a legal state.
    """
    cpu: int = Field(0, ge=0, description="Sum of reserved CPU units")
    memory: int = Field(0, ge=0, description="Sum of reserved memory in bytes")


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: SERVICE MODELS
# What a workload reserves and where it runs.
# ─────────────────────────────────────────────────────────────────────────────

class ServiceFootprint(BaseModel):
    """
    Fixed-shape resource footprint of a service (VM or container).

    Exactly two fields. Unknown keys are rejected at the boundary instead of
    being interpreted, so a typo such as "maxmemory" fails loudly.

    The HA manager historically hands over a dict with the keys "maxcpu" and
    "maxmem"; those two names are accepted as aliases:

        ServiceFootprint.model_validate({"maxcpu": 4, "maxmem": 20_000_000_000})

    Requests are not checked against any node's capacity. Like capacities
    they are strict ints: {"maxcpu": "4"} or {"maxcpu": True} is rejected.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    cpu_request: int = Field(
        ..., ge=0, strict=True,
        validation_alias=AliasChoices("cpu_request", "maxcpu"),
        description="CPU units reserved for the service",
    )
    memory_request: int = Field(
        ..., ge=0, strict=True,
        validation_alias=AliasChoices("memory_request", "maxmem"),
        description="Memory reserved for the service in bytes",
    )


class UsageRecord(BaseModel):
    """
    Binding of one service to one hosting node plus its reserved footprint.

    service_id is unique across the whole scheduling domain, not per node.
    Re-adding a record under an existing service_id replaces it (migration).

    Frozen: the ledger hands out its own instances (get_service_usage,
    state()), and only the ledger may change where a service runs.
    """
    model_config = ConfigDict(frozen=True)

    service_id: str = Field(..., min_length=1, description="Globally unique service identifier")
    node_name: str = Field(..., min_length=1, description="Node currently hosting the service")
    footprint: ServiceFootprint


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: PERSISTENCE SNAPSHOT
# What the host stores to rebuild a scheduler after a restart.
# ─────────────────────────────────────────────────────────────────────────────

class SchedulerState(BaseModel):
    """
    Complete node and usage state of a StaticScheduler.

    The engine never writes this anywhere itself. The host serialises it
    (model_dump_json) and later replays it with StaticScheduler.from_state().
    """
    nodes: List[NodeCapacity] = Field(default_factory=list)
    usages: List[UsageRecord] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: CONVENIENCE TYPE ALIASES
# ─────────────────────────────────────────────────────────────────────────────

# One scoring result: (node_name, score). Higher score = more preferred.
NodeScore = Tuple[str, float]

# Rehydration input: (node_name, cpu_capacity, memory_capacity)
NodeSpec = Tuple[str, int, int]
