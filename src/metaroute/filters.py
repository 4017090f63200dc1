from __future__ import annotations

from typing import ClassVar, Iterable

from metaroute.network import ReactionNetwork
from metaroute.pathway import Pathway


class FilterConfigError(ValueError):
    """Raised when a filter names a reaction or compound the network does not have."""


class PathwayFilter:
    """
    Accept/reject hooks applied by the pathway search.

    `is_possible` is called on every candidate extension and should be cheap;
    `is_good` is only called when a candidate reaches its goal.
    """

    command: ClassVar[str] = ""

    def __init__(self, network: ReactionNetwork, items: Iterable[str]):
        self.items: frozenset[str] = frozenset(items)
        self._validate(network)

    def _validate(self, network: ReactionNetwork) -> None:
        missing = sorted(c for c in self.items if not network.has_compound(c))
        if missing:
            raise FilterConfigError(f"{self.command} filter: compounds not found in network: {', '.join(missing)}")

    def is_possible(self, path: Pathway) -> bool:
        return True

    def is_good(self, path: Pathway) -> bool:
        return True

    @property
    def parms(self) -> list[str]:
        return sorted(self.items)

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.items == self.items

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.items))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.parms!r})"


class AvoidFilter(PathwayFilter):
    """Reject pathways that pass through any of the given compounds."""

    command = "AVOID"

    def is_possible(self, path: Pathway) -> bool:
        return path.output not in self.items

    def is_good(self, path: Pathway) -> bool:
        return self.items.isdisjoint(path.outputs())


class IncludeFilter(PathwayFilter):
    """Only accept finished pathways that use every one of the given reactions."""

    command = "INCLUDE"

    def _validate(self, network: ReactionNetwork) -> None:
        missing = sorted(r for r in self.items if r not in network)
        if missing:
            raise FilterConfigError(f"INCLUDE filter: reactions not found in network: {', '.join(missing)}")

    def is_good(self, path: Pathway) -> bool:
        return path.includes_all(self.items)


class CofactorFilter(PathwayFilter):
    """
    Restrict which compounds the steps may draw on.

    Every input of every step must be common, explicitly allowed, the pathway
    input, or something an earlier step produced. The common set follows the
    network, so commons added after the filter was built still count.
    """

    command = "COFACTORS"

    def __init__(self, network: ReactionNetwork, items: Iterable[str]):
        super().__init__(network, items)
        self.network = network
        self._legal: frozenset[str] = frozenset()
        self._version = -1

    def legal_compounds(self) -> frozenset[str]:
        if self._version != self.network.version:
            self._legal = frozenset(self.network.commons()) | self.items
            self._version = self.network.version
        return self._legal

    def is_possible(self, path: Pathway) -> bool:
        legal = set(self.legal_compounds())
        legal.add(path.input)
        for element in path:
            if not element.inputs() <= legal:
                return False
            legal.update(element.outputs())
        return True
