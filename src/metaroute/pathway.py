from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Iterator

from metaroute.network import Reaction, ReactionNetwork, Stoich, compartment_of

logger = logging.getLogger(__name__)

FILE_EXT = ".path.json"


class PathwayFormatError(ValueError):
    """Raised when a serialized pathway does not describe a valid pathway of the network."""


class IrreversibleReactionError(RuntimeError):
    """Raised when reversing a pathway that contains an irreversible reaction."""


@dataclass(frozen=True)
class PathwayElement:
    """
    One step of a pathway: a reaction and the compound it delivers to the next step.

    `reversed` is True when the reaction runs from its products to its reactants.
    """

    reaction: Reaction
    output: str
    reversed: bool
    seq: int = field(default=0, compare=False)

    @classmethod
    def from_stoich(cls, reaction: Reaction, stoich: Stoich, seq: int = 0) -> PathwayElement:
        return cls(reaction, stoich.metabolite, not stoich.is_product(), seq)

    def inputs(self) -> set[str]:
        return {s.metabolite for s in self.reaction.outputs_for(self.output)}

    def outputs(self) -> list[str]:
        return [s.metabolite for s in self.reaction.metabolites if s.is_product() != self.reversed]

    def sort_key(self) -> tuple[str, str, bool]:
        return (self.reaction.id, self.output, self.reversed)

    def to_dict(self) -> dict[str, Any]:
        return {"reaction_id": self.reaction.id, "output": self.output, "reversed": self.reversed}

    def __str__(self) -> str:
        arrow = "<-" if self.reversed else "->"
        return f"{arrow}({self.reaction.id}){self.output}"


@dataclass(frozen=True)
class Pathway:
    """
    An ordered, non-repeating chain of reactions starting from `input`.

    Pathways are values: every operation that adds or reorders steps returns a
    new instance. Equality ignores the goal.
    """

    input: str
    elements: tuple[PathwayElement, ...] = ()
    goal: str | None = field(default=None, compare=False)
    _ids: frozenset[str] = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        ids = [e.reaction.id for e in self.elements]
        unique = frozenset(ids)
        if len(unique) != len(ids):
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            raise ValueError(f"Reaction used twice in pathway: {', '.join(dupes)}")
        object.__setattr__(self, "_ids", unique)

    # -- construction --------------------------------------------------------

    @classmethod
    def start(cls, input: str, reaction: Reaction, stoich: Stoich, goal: str | None = None) -> Pathway:
        return cls(input, (PathwayElement.from_stoich(reaction, stoich, 1),), goal)

    def extended(self, reaction: Reaction, stoich: Stoich) -> Pathway:
        element = PathwayElement.from_stoich(reaction, stoich, len(self.elements) + 1)
        return Pathway(self.input, self.elements + (element,), self.goal)

    def with_goal(self, goal: str | None) -> Pathway:
        return replace(self, goal=goal)

    def append(self, other: Pathway) -> Pathway:
        """Concatenate `other`, which must start where this pathway ends."""
        if other.input != self.output:
            raise ValueError(f"Cannot append a pathway from {other.input} to one ending in {self.output}")
        n = len(self.elements)
        tail = tuple(replace(e, seq=n + i + 1) for i, e in enumerate(other.elements))
        return Pathway(self.input, self.elements + tail, other.goal)

    def reverse(self) -> Pathway:
        """
        Run the pathway backwards, from its output to its input.

        Each step now delivers the compound the previous step delivered in the
        original orientation.
        """
        blocked = [e.reaction.id for e in self.elements if not e.reaction.reversible]
        if blocked:
            raise IrreversibleReactionError(f"Pathway cannot be reversed, irreversible: {', '.join(blocked)}")
        n = len(self.elements)
        if n == 0:
            return Pathway(self.input)
        delivered = [self.input] + [e.output for e in self.elements[:-1]]
        elements = tuple(
            PathwayElement(self.elements[i].reaction, delivered[i], not self.elements[i].reversed, n - i)
            for i in range(n - 1, -1, -1)
        )
        return Pathway(self.output, elements)

    # -- queries -------------------------------------------------------------

    @property
    def output(self) -> str:
        return self.elements[-1].output if self.elements else self.input

    @property
    def last(self) -> PathwayElement | None:
        return self.elements[-1] if self.elements else None

    @property
    def first(self) -> PathwayElement | None:
        return self.elements[0] if self.elements else None

    @property
    def reaction_ids(self) -> tuple[str, ...]:
        return tuple(e.reaction.id for e in self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[PathwayElement]:
        return iter(self.elements)

    def __getitem__(self, i: int) -> PathwayElement:
        return self.elements[i]

    def __contains__(self, reaction: Reaction | str) -> bool:
        rid = reaction.id if isinstance(reaction, Reaction) else reaction
        return rid in self._ids

    def is_reversible(self) -> bool:
        return all(e.reaction.reversible for e in self.elements)

    def is_complete(self) -> bool:
        return self.goal is not None and self.output == self.goal

    def outputs(self) -> list[str]:
        return [e.output for e in self.elements]

    def intermediates(self) -> set[str]:
        return {e.output for e in self.elements[:-1]}

    def main_input(self, i: int) -> str:
        """Compound that step `i` consumes from the mainline."""
        return self.elements[i - 1].output if i > 0 else self.input

    def includes_all(self, reaction_ids: Iterable[str]) -> bool:
        return self._ids.issuperset(reaction_ids)

    def tail(self, n: int) -> Iterator[PathwayElement]:
        return iter(self.elements[max(len(self.elements) - n, 0):])

    def branches(self, network: ReactionNetwork, *, include_terminus: bool = False) -> dict[str, list[Reaction]]:
        """
        Reactions that could divert the mainline at each intermediate.

        For every non-terminal output, lists the successor reactions that are not
        part of the pathway and do not deliver the next step's output. With
        `include_terminus`, also lists the unused successors of the final output
        unless it is an external compound.
        """
        found: dict[str, list[Reaction]] = {}

        def _add(compound: str, reaction: Reaction) -> None:
            bucket = found.setdefault(compound, [])
            if reaction not in bucket:
                bucket.append(reaction)

        for i, element in enumerate(self.elements[:-1]):
            compound = element.output
            nxt = self.elements[i + 1].output
            for reaction in network.successors_of(compound):
                if reaction in self:
                    continue
                if any(s.metabolite == nxt for s in reaction.outputs_for(compound)):
                    continue
                _add(compound, reaction)
        if include_terminus and self.elements and compartment_of(self.output) != "e":
            for reaction in network.successors_of(self.output):
                if reaction not in self:
                    _add(self.output, reaction)
        return found

    def required_inputs(self, network: ReactionNetwork, *, include_commons: bool = False) -> Counter:
        """
        Net compound demand of the pathway.

        Counts, by coefficient, every compound consumed by a step, then drops the
        ones that some step also produces. Common compounds are skipped unless
        `include_commons`.
        """
        skip = set() if include_commons else network.commons()
        demand: Counter = Counter()
        produced: set[str] = set()
        for element in self.elements:
            for stoich in element.reaction.metabolites:
                if stoich.metabolite in skip:
                    continue
                if stoich.is_product() == element.reversed:
                    demand[stoich.metabolite] += stoich.magnitude
                else:
                    produced.add(stoich.metabolite)
        for compound in produced:
            demand.pop(compound, None)
        return demand

    # -- ordering ------------------------------------------------------------

    def sort_key(self) -> tuple[int, tuple[tuple[str, str, bool], ...]]:
        return (len(self.elements), tuple(e.sort_key() for e in self.elements))

    def __lt__(self, other: Pathway) -> bool:
        return self.sort_key() < other.sort_key()

    # -- records -------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"input": self.input}
        if self.goal is not None:
            out["goal"] = self.goal
        out["elements"] = [e.to_dict() for e in self.elements]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any], network: ReactionNetwork) -> Pathway:
        """
        Rebuild a pathway from its structured record.

        Raises
        ------
        PathwayFormatError
            If the record is malformed, names a reaction the network lacks, or
            its steps do not connect.
        """
        if not isinstance(data, dict) or not isinstance(data.get("input"), str):
            raise PathwayFormatError(f"Pathway record must be a mapping with a string 'input': {data!r}")
        raw = data.get("elements", [])
        if not isinstance(raw, list):
            raise PathwayFormatError("Pathway record 'elements' must be a list.")
        goal = data.get("goal")
        if goal is not None and not isinstance(goal, str):
            raise PathwayFormatError(f"Pathway goal must be a string, got: {goal!r}")

        elements: list[PathwayElement] = []
        previous = data["input"]
        for i, item in enumerate(raw, start=1):
            if not isinstance(item, dict):
                raise PathwayFormatError(f"Pathway element #{i} must be a mapping.")
            rid, output = item.get("reaction_id"), item.get("output")
            reversed_ = item.get("reversed", False)
            if not isinstance(rid, str) or not isinstance(output, str) or not isinstance(reversed_, bool):
                raise PathwayFormatError(f"Pathway element #{i} needs reaction_id, output and a boolean reversed.")
            reaction = network.reaction(rid)
            if reaction is None:
                raise PathwayFormatError(f"Pathway element #{i}: reaction not found in network: {rid}")
            try:
                stoich = reaction.stoich_for(output)
            except KeyError as e:
                raise PathwayFormatError(f"Pathway element #{i}: {output} is not a compound of {rid}") from e
            if stoich.is_product() == reversed_:
                raise PathwayFormatError(f"Pathway element #{i}: {output} is not an output of {rid} (reversed={reversed_})")
            element = PathwayElement(reaction, output, reversed_, i)
            if previous not in element.inputs():
                raise PathwayFormatError(f"Pathway element #{i}: {rid} does not consume {previous}")
            elements.append(element)
            previous = output
        try:
            return cls(data["input"], tuple(elements), goal)
        except ValueError as e:
            raise PathwayFormatError(str(e)) from e

    def to_json(self, **kwargs) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    @classmethod
    def from_json(cls, text: str, network: ReactionNetwork) -> Pathway:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PathwayFormatError(f"Pathway record is not valid JSON: {e}") from e
        return cls.from_dict(data, network)

    def save(self, path: str | Path) -> Path:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(self.to_json(indent=2), encoding="utf-8")
        logger.info("Saved pathway: %s (steps=%d)", p, len(self))
        return p

    @classmethod
    def load(cls, path: str | Path, network: ReactionNetwork) -> Pathway:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Pathway file not found: {p}")
        return cls.from_json(p.read_text(encoding="utf-8"), network)

    def __str__(self) -> str:
        return f"{self.input} ==> {self.output}" + (f" (goal {self.goal})" if self.goal else "")
