"""
ha_scheduler/control_plane: what the host orchestrator talks to.

Public API:

    StaticScheduler        : facade over registry, ledger and scoring engine
                              score_nodes_to_start_service(fp) → [(name, score)]
    UnknownNodeError       : usage added to a node that is not registered
    rank_nodes()           : scores → node names, best first, name tie-break
    select_node()          : best node for a footprint
    SchedulingFailedError  : raised by select_node() when no node exists
"""

from ranking_core import UnknownNodeError
from ha_scheduler.control_plane.static_scheduler import StaticScheduler
from ha_scheduler.control_plane.placement import (
    SchedulingFailedError,
    rank_nodes,
    select_node,
)

__all__ = [
    "StaticScheduler",
    "UnknownNodeError",
    "rank_nodes",
    "select_node",
    "SchedulingFailedError",
]
