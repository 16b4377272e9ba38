"""
ha_scheduler/control_plane/placement.py
────────────────────────────────────────
Host-side helpers that turn raw scores into a placement choice.

The ScoringEngine deliberately returns an unordered list and may hand out
equal scores. Every consumer therefore needs the same two steps: sort by
score, then break exact ties deterministically. These helpers do it the way
the HA manager does: highest score first, then node name ascending.

    ranking = rank_nodes(scheduler.score_nodes_to_start_service(footprint))
    node = select_node(scheduler, footprint)

Error handling contract
────────────────────────
  SchedulingFailedError: raised by select_node() when there is no node to
                         choose from. rank_nodes() never raises; an empty
                         score list yields an empty ranking.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from ha_scheduler.shared.models import NodeScore
from ha_scheduler.control_plane.static_scheduler import FootprintLike, StaticScheduler

logger = logging.getLogger(__name__)


class SchedulingFailedError(Exception):
    """
    Raised when select_node() has no registered node to choose from.

    Overcommit never triggers this: an overcommitted node still has a score
    and is still selectable.
    """
    pass


def rank_nodes(scores: Iterable[NodeScore]) -> List[str]:
    """Node names ordered best first: score descending, then name ascending."""
    return [name for name, _score in sorted(scores, key=lambda item: (-item[1], item[0]))]


def select_node(scheduler: StaticScheduler, footprint: FootprintLike) -> str:
    """
    Return the most preferred node for starting a service of `footprint`.

    Does not reserve anything; the caller records usage once the service
    is actually started.

    Raises:
        SchedulingFailedError: the scheduler holds no nodes.
    """
    ranking = rank_nodes(scheduler.score_nodes_to_start_service(footprint))
    if not ranking:
        raise SchedulingFailedError("No nodes registered; cannot select a node for the service.")
    logger.debug("select_node: %s (ranking: %s)", ranking[0], ", ".join(ranking))
    return ranking[0]
