from __future__ import annotations

import heapq
import logging
from enum import Enum
from typing import Iterable

from metaroute.config import DEFAULT_MAX_PATH_LEN
from metaroute.network import ReactionNetwork

logger = logging.getLogger(__name__)


class PaintDirection(Enum):
    """
    PRODUCERS measures how many reactions it takes to get from each compound to
    the target; CONSUMERS measures how many it takes to get from the target to
    each compound; BOTH keeps the smaller of the two.
    """

    PRODUCERS = "producers"
    CONSUMERS = "consumers"
    BOTH = "both"


class ConnectivityPainter:
    """
    Reaction-hop distances between a target compound and the rest of the network.

    Paintings are cached per (target, direction, commons) and dropped whenever
    the network changes.
    """

    def __init__(self, network: ReactionNetwork, *, max_distance: int = DEFAULT_MAX_PATH_LEN):
        self.network = network
        self.max_distance = max_distance
        self._cache: dict[tuple[str, PaintDirection, frozenset[str]], dict[str, int]] = {}
        self._version = network.version

    def paint(
        self,
        target: str,
        direction: PaintDirection = PaintDirection.PRODUCERS,
        commons: Iterable[str] | None = None,
    ) -> dict[str, int]:
        """
        Return the distance of every reachable compound from `target`.

        Parameters
        ----------
        target:
            Compound to paint from. It always has distance 0, even when common.
        direction:
            Which adjacency to walk, see `PaintDirection`.
        commons:
            Compounds never used as stepping stones. Defaults to the network's
            current commons.
        """
        if self._version != self.network.version:
            self._cache.clear()
            self._version = self.network.version
        common_set = frozenset(self.network.commons() if commons is None else commons)
        key = (target, direction, common_set)
        cached = self._cache.get(key)
        if cached is None:
            if direction is PaintDirection.BOTH:
                cached = _merge_min(
                    self.paint(target, PaintDirection.PRODUCERS, common_set),
                    self.paint(target, PaintDirection.CONSUMERS, common_set),
                )
            else:
                cached = self._calculate(target, direction, common_set)
            self._cache[key] = cached
        return dict(cached)

    def distance(
        self,
        compound: str,
        target: str,
        direction: PaintDirection = PaintDirection.PRODUCERS,
    ) -> int | None:
        return self.paint(target, direction).get(compound)

    def _calculate(self, target: str, direction: PaintDirection, commons: frozenset[str]) -> dict[str, int]:
        if direction is PaintDirection.PRODUCERS:
            adjacent = self.network.producers_of
        else:
            adjacent = self.network.successors_of
        distances = {target: 0}
        queue = [(0, target)]
        while queue:
            dist, compound = heapq.heappop(queue)
            step = dist + 1
            if step >= self.max_distance:
                continue
            for reaction in adjacent(compound):
                for stoich in reaction.outputs_for(compound):
                    other = stoich.metabolite
                    if other in commons or other in distances:
                        continue
                    distances[other] = step
                    heapq.heappush(queue, (step, other))
        logger.debug("Painted %d compounds %s of %s.", len(distances), direction.value, target)
        return distances


def _merge_min(first: dict[str, int], second: dict[str, int]) -> dict[str, int]:
    merged = dict(first)
    for compound, dist in second.items():
        if dist < merged.get(compound, dist + 1):
            merged[compound] = dist
    return merged
