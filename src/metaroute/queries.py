from __future__ import annotations

import heapq
import itertools
import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

import pandas as pd

from metaroute.network import Reaction, ReactionNetwork
from metaroute.painting import ConnectivityPainter, PaintDirection
from metaroute.pathway import Pathway

logger = logging.getLogger(__name__)


class CloseNodeKind(Enum):
    """
    PRODUCT looks for compounds all the query compounds can be turned into,
    REACTANT for compounds that can be turned into all of them.
    """

    PRODUCT = "product"
    REACTANT = "reactant"
    BOTH = "both"

    @property
    def direction(self) -> PaintDirection:
        return {
            CloseNodeKind.PRODUCT: PaintDirection.CONSUMERS,
            CloseNodeKind.REACTANT: PaintDirection.PRODUCERS,
            CloseNodeKind.BOTH: PaintDirection.BOTH,
        }[self]


@dataclass(frozen=True)
class NodeRating:
    compound: str
    count: int
    distance: int

    def sort_key(self) -> tuple[int, int, str]:
        return (-self.count, self.distance, self.compound)


def rate_close_nodes(
    network: ReactionNetwork,
    compounds: Iterable[str],
    kind: CloseNodeKind = CloseNodeKind.PRODUCT,
    *,
    painter: ConnectivityPainter | None = None,
) -> list[NodeRating]:
    """
    Rate every compound reachable from the query compounds.

    A compound reached from more query compounds rates higher; among equals,
    the smaller summed distance wins. The query compounds are not rated.
    """
    painter = painter or ConnectivityPainter(network)
    query = list(dict.fromkeys(compounds))
    counts: Counter = Counter()
    totals: Counter = Counter()
    for compound in query:
        for other, dist in painter.paint(compound, kind.direction).items():
            if other in query:
                continue
            counts[other] += 1
            totals[other] += dist
    ratings = [NodeRating(c, counts[c], totals[c]) for c in counts]
    return sorted(ratings, key=NodeRating.sort_key)


def close_nodes(
    network: ReactionNetwork,
    compounds: Iterable[str],
    kind: CloseNodeKind = CloseNodeKind.PRODUCT,
    *,
    painter: ConnectivityPainter | None = None,
) -> list[str]:
    """Return the best-rated compounds, all of them when several tie."""
    ratings = rate_close_nodes(network, compounds, kind, painter=painter)
    if not ratings:
        return []
    best = ratings[0]
    return sorted(r.compound for r in ratings if (r.count, r.distance) == (best.count, best.distance))


class ReactionQuery(Enum):
    PRODUCERS = "producers"
    CONSUMERS = "consumers"
    REACTIONS = "reactions"
    TRIGGERED = "triggered"
    ALL = "all"


def query_reactions(network: ReactionNetwork, kind: ReactionQuery, key: str | None = None) -> list[Reaction]:
    """
    List reactions of the network.

    `key` is a compound id for PRODUCERS, CONSUMERS and REACTIONS, a gene or
    alias for TRIGGERED, and ignored for ALL.
    """
    if kind is ReactionQuery.ALL:
        return sorted(network.reactions, key=lambda r: (r.name, r.id))
    if not key:
        raise ValueError(f"Reaction query '{kind.value}' needs a key.")
    if kind is ReactionQuery.TRIGGERED:
        return network.triggered_reactions(key)
    if not network.has_compound(key):
        raise ValueError(f"Compound not found in network: {key}")
    if kind is ReactionQuery.PRODUCERS:
        return list(network.producers_of(key))
    if kind is ReactionQuery.CONSUMERS:
        return list(network.successors_of(key))
    return sorted(set(network.producers_of(key)) | set(network.successors_of(key)))


class PathMap:
    """
    Shortest pathways between every ordered pair of a compound set.

    Pathways are grown from each source in pathway order (length, then reaction
    ids) and never continue through a common compound. Every compound found as
    an intermediate of a pathway that ends in the set scores one point.
    """

    def __init__(self, network: ReactionNetwork, compounds: Iterable[str]):
        self.network = network
        self.compounds = list(dict.fromkeys(compounds))
        self._paths: dict[str, dict[str, Pathway]] = {}
        self._scores: Counter = Counter()
        commons = network.commons()
        targets = set(self.compounds)
        for compound in self.compounds:
            self._paths[compound] = self._explore(compound, commons, targets)
            logger.debug("Path map from %s reached %d compounds.", compound, len(self._paths[compound]))

    def _explore(self, source: str, commons: set[str], targets: set[str]) -> dict[str, Pathway]:
        found: dict[str, Pathway] = {}
        queue: list[tuple[tuple, int, Pathway]] = []
        counter = itertools.count()

        def _record(path: Pathway) -> None:
            terminus = path.output
            if terminus in found:
                return
            found[terminus] = path
            if terminus in targets:
                self._scores.update(path.intermediates())
            if terminus not in commons:
                heapq.heappush(queue, (path.sort_key(), next(counter), path))

        for reaction in self.network.successors_of(source):
            for stoich in reaction.outputs_for(source):
                _record(Pathway.start(source, reaction, stoich))
        while queue:
            path = heapq.heappop(queue)[-1]
            output = path.output
            for reaction in self.network.successors_of(output):
                if reaction in path:
                    continue
                for stoich in reaction.outputs_for(output):
                    if stoich.metabolite not in found:
                        _record(path.extended(reaction, stoich))
        return found

    def path(self, source: str, target: str) -> Pathway | None:
        return self._paths.get(source, {}).get(target)

    def score(self, compound: str) -> int:
        return self._scores.get(compound, 0)

    def scores(self) -> list[tuple[str, int]]:
        return sorted(self._scores.items(), key=lambda kv: (-kv[1], kv[0]))

    def to_frame(self) -> pd.DataFrame:
        """One row per ordered pair of the compound set; `length` is NA when unreachable."""
        rows = []
        for source in self.compounds:
            for target in self.compounds:
                path = self.path(source, target)
                rows.append(
                    {
                        "source": source,
                        "target": target,
                        "length": len(path) if path is not None else pd.NA,
                        "reactions": " ".join(path.reaction_ids) if path is not None else "",
                        "intermediates": " ".join(path.outputs()[:-1]) if path is not None else "",
                    }
                )
        df = pd.DataFrame(rows, columns=["source", "target", "length", "reactions", "intermediates"])
        df["length"] = df["length"].astype("Int64")
        return df
