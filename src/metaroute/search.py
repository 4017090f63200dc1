from __future__ import annotations

import heapq
import itertools
import logging
from typing import Iterable

from metaroute.config import DEFAULT_MAX_PATH_LEN
from metaroute.filters import PathwayFilter
from metaroute.network import ReactionNetwork
from metaroute.painting import ConnectivityPainter, PaintDirection
from metaroute.pathway import Pathway

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100000


class PathwaySearch:
    """
    Best-first search for the shortest pathway that satisfies a filter chain.

    Partial pathways are ranked by painted distance to their goal plus their
    length, then by length, then by their reaction ids step by step. Painted
    distances never overestimate, so the first acceptable completion popped is
    a shortest one.
    """

    def __init__(
        self,
        network: ReactionNetwork,
        painter: ConnectivityPainter | None = None,
        *,
        max_path_len: int = DEFAULT_MAX_PATH_LEN,
    ):
        self.network = network
        self.painter = painter or ConnectivityPainter(network, max_distance=max_path_len)
        self.max_path_len = max_path_len

    def find_shortest(self, source: str, target: str, *filters: PathwayFilter) -> Pathway | None:
        """Return the shortest pathway from `source` to `target`, or None if there is none."""
        successors = self.network.successors_of(source)
        if not successors:
            logger.warning("No reactions consume %s.", source)
            return None
        commons = self.network.commons()
        seeds: list[Pathway] = []
        for reaction in successors:
            for stoich in reaction.outputs_for(source):
                if stoich.metabolite in commons and stoich.metabolite != target:
                    continue
                seed = Pathway.start(source, reaction, stoich, goal=target)
                if all(f.is_possible(seed) for f in filters):
                    seeds.append(seed)
        return self.search(seeds, *filters)

    def extend(self, pathway: Pathway, target: str, *filters: PathwayFilter) -> Pathway | None:
        """Continue `pathway` until it reaches `target`."""
        if not pathway.elements:
            return self.find_shortest(pathway.input, target, *filters)
        return self.search([pathway.with_goal(target)], *filters)

    def loop(self, pathway: Pathway, *filters: PathwayFilter) -> Pathway | None:
        """
        Close `pathway` into a cycle.

        A fully reversible pathway is also tried backwards, continuing from its
        old input back to its old output; that orientation wins ties.
        """
        if not pathway.elements:
            return self.find_shortest(pathway.input, pathway.input, *filters)
        seeds: list[Pathway] = []
        if pathway.is_reversible():
            seeds.append(pathway.reverse().with_goal(pathway.output))
        seeds.append(pathway.with_goal(pathway.input))
        return self.search(seeds, *filters)

    def search(self, seeds: Iterable[Pathway], *filters: PathwayFilter) -> Pathway | None:
        """
        Run the search from partial pathways that already carry their goals.

        Parameters
        ----------
        seeds:
            Non-empty pathways with a goal set. Seeds whose goal no reaction can
            produce are dropped.
        filters:
            All must accept a candidate for it to be kept.
        """
        commons = self.network.commons()
        paintings: dict[str, dict[str, int]] = {}
        counter = itertools.count()
        queue: list[tuple[int, int, tuple[str, ...], int, Pathway]] = []

        def _push(path: Pathway) -> None:
            dist = paintings[path.goal].get(path.output, self.max_path_len)
            n = len(path)
            heapq.heappush(queue, (dist + n, n, path.reaction_ids, next(counter), path))

        for seed in seeds:
            goal = seed.goal
            if goal is None:
                raise ValueError(f"Search seed has no goal: {seed}")
            if goal not in paintings:
                if not self.network.producers_of(goal):
                    logger.warning("No reactions produce %s.", goal)
                    continue
                paintings[goal] = self.painter.paint(goal, PaintDirection.PRODUCERS, commons)
            _push(seed)

        processed = 0
        while queue:
            path = heapq.heappop(queue)[-1]
            processed += 1
            if processed % PROGRESS_EVERY == 0:
                logger.info("%d partial pathways processed, %d queued.", processed, len(queue))
            if path.is_complete():
                if all(f.is_good(path) for f in filters):
                    logger.debug("Found %s in %d steps after %d expansions.", path, len(path), processed)
                    return path
                continue
            painting = paintings[path.goal]
            output = path.output
            for reaction in self.network.successors_of(output):
                if reaction in path:
                    continue
                for stoich in reaction.outputs_for(output):
                    dist = painting.get(stoich.metabolite, self.max_path_len)
                    # length before extending; only the goal is painted among commons
                    if dist + len(path) < self.max_path_len:
                        candidate = path.extended(reaction, stoich)
                        if all(f.is_possible(candidate) for f in filters):
                            _push(candidate)
        logger.info("No pathway found after %d expansions.", processed)
        return None
