from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Union

from metaroute.config import DEFAULT_MAX_SUCCESSORS
from metaroute.rules import rule_triggers

logger = logging.getLogger(__name__)

DEFAULT_COMMONS: frozenset[str] = frozenset(
    {
        "h_c", "h_p", "h2o_c", "atp_c", "co2_c", "o2_c", "pi_c", "adp_c", "glc__D_c",
        "nadh_c", "nad_c", "nadph_c", "o2_p", "na1_p", "na1_c", "h2o2_c", "h2_c",
        "glc__D_e", "glc__D_p", "ppi_c", "udp_c",
    }
)

COMPARTMENT_LABELS: dict[str, str] = {
    "c": "cytoplasm",
    "p": "periplasm",
    "e": "external",
}


@dataclass(frozen=True, order=True)
class Stoich:
    """
    One compound of a reaction with its signed coefficient.

    Negative coefficients are reactants and positive ones products, in the
    reaction's canonical (unreversed) orientation. Sorting puts reactants first.
    """

    coefficient: float
    metabolite: str

    def is_product(self) -> bool:
        return self.coefficient > 0

    def is_reactant(self) -> bool:
        return self.coefficient < 0

    @property
    def magnitude(self) -> float:
        return abs(self.coefficient)

    def __str__(self) -> str:
        return _stoich_text(self.magnitude, self.metabolite)


def _stoich_text(magnitude: float, label: str) -> str:
    if magnitude == 1:
        return label
    return f"{magnitude:g}*{label}"


class ActiveDirection(Enum):
    """Which stoichiometric roles of a reaction are currently usable."""

    BOTH = "REVERSIBLE"
    FORWARD = "ONEWAY"
    REVERSE = "INVERTED"
    NEITHER = "SUPPRESS"

    @property
    def command(self) -> str:
        return self.value

    @classmethod
    def default_for(cls, reversible: bool) -> ActiveDirection:
        return cls.BOTH if reversible else cls.FORWARD

    def is_input(self, stoich: Stoich) -> bool:
        if self is ActiveDirection.BOTH:
            return True
        if self is ActiveDirection.FORWARD:
            return not stoich.is_product()
        if self is ActiveDirection.REVERSE:
            return stoich.is_product()
        return False

    def is_output(self, stoich: Stoich) -> bool:
        if self is ActiveDirection.BOTH:
            return True
        if self is ActiveDirection.FORWARD:
            return stoich.is_product()
        if self is ActiveDirection.REVERSE:
            return not stoich.is_product()
        return False


class Reaction:
    """
    A reaction of the network.

    The active direction is owned by the network: change it with
    `ReactionNetwork.set_active_direction` so the indices are invalidated.
    """

    def __init__(
        self,
        reaction_id: str,
        stoichiometry: Mapping[str, float] | Iterable[Stoich] = (),
        *,
        name: str = "",
        rule: str = "",
        reversible: bool = False,
        aliases: Mapping[str, str] | None = None,
        direction: ActiveDirection | None = None,
    ):
        self.id = reaction_id
        self.name = name or reaction_id
        self.rule = rule or ""
        self.reversible = bool(reversible)
        # gene id -> display name
        self.aliases: dict[str, str] = dict(aliases or {})
        if isinstance(stoichiometry, Mapping):
            items = [Stoich(float(c), m) for m, c in stoichiometry.items()]
        else:
            items = list(stoichiometry)
        zero = [s.metabolite for s in items if s.coefficient == 0]
        if zero:
            raise ValueError(f"Reaction {reaction_id} has zero coefficients for: {', '.join(zero)}")
        self.metabolites: tuple[Stoich, ...] = tuple(sorted(items))
        # direction restored by ReactionNetwork.reset_flow
        self.default_direction = direction if direction is not None else ActiveDirection.default_for(self.reversible)
        self._active = self.default_direction

    @property
    def active(self) -> ActiveDirection:
        return self._active

    def is_input(self, stoich: Stoich) -> bool:
        return self._active.is_input(stoich)

    def is_output(self, stoich: Stoich) -> bool:
        return self._active.is_output(stoich)

    @property
    def compounds(self) -> list[str]:
        return [s.metabolite for s in self.metabolites]

    def stoich_for(self, compound: str) -> Stoich:
        for s in self.metabolites:
            if s.metabolite == compound:
                return s
        raise KeyError(f"Compound {compound} not found in reaction {self.id}")

    def is_product(self, compound: str) -> bool:
        return self.stoich_for(compound).is_product()

    def outputs_for(self, input_id: str) -> list[Stoich]:
        """
        Return the compounds on the other side of the reaction from `input_id`.

        The active direction is not consulted here; callers reach a reaction
        through the network indices, which already honor it.
        """
        side = None
        for s in self.metabolites:
            if s.metabolite == input_id:
                side = s.is_product()
                break
        if side is None:
            return []
        return [s for s in self.metabolites if s.is_product() != side]

    @property
    def triggers(self) -> list[str]:
        return rule_triggers(self.rule)

    @property
    def genes(self) -> list[str]:
        return sorted(set(self.aliases) | set(self.triggers))

    def formula(self, reverse: bool = False) -> str:
        return self._render(reverse, lambda s: s.metabolite)

    def long_formula(self, network: ReactionNetwork, reverse: bool = False) -> str:
        return self._render(reverse, lambda s: network.compound_name(s.metabolite))

    def _render(self, reverse: bool, label) -> str:
        left = [_stoich_text(s.magnitude, label(s)) for s in self.metabolites if s.is_product() == reverse]
        right = [_stoich_text(s.magnitude, label(s)) for s in self.metabolites if s.is_product() != reverse]
        arrow = " <-> " if self.reversible else " --> "
        return " + ".join(left) + arrow + " + ".join(right)

    def weight(self, ratings: Mapping[str, object], products: bool) -> float:
        """
        Sum of coefficient times compound weight over one side of the reaction.

        `ratings` maps compound ids to objects with a `weight` attribute.
        """
        total = 0.0
        for s in self.metabolites:
            if s.is_product() == products:
                rating = ratings.get(s.metabolite)
                if rating is not None:
                    total += s.magnitude * rating.weight
        return total

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Reaction) and other.id == self.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __lt__(self, other: Reaction) -> bool:
        return self.id < other.id

    def __repr__(self) -> str:
        return f"Reaction({self.id!r}, {self.formula()!r}, active={self._active.name})"

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class MetaboliteNode:
    """One drawn occurrence of a compound."""

    node_id: int
    bigg_id: str
    name: str
    compartment: str = ""
    primary: bool = True
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class MarkerNode:
    """A display-only node (midpoint, multimarker...). Ignored by graph code."""

    node_id: int
    kind: str
    x: float = 0.0
    y: float = 0.0


ModelNode = Union[MetaboliteNode, MarkerNode]


def compartment_of(compound: str) -> str:
    head, sep, tail = compound.rpartition("_")
    return tail if sep and head else ""


class ReactionNetwork:
    """
    Reactions, their metabolites, and the adjacency indices used by searches.

    The successor index maps a compound to the reactions that can currently
    consume it; the producer index maps it to the reactions that can currently
    yield it. Both depend on the reactions' active directions and are rebuilt
    lazily after any change.
    """

    def __init__(
        self,
        reactions: Iterable[Reaction] = (),
        nodes: Iterable[ModelNode] = (),
        *,
        aliases: Mapping[str, Iterable[str]] | None = None,
        commons: Iterable[str] | None = None,
        max_successors: int = DEFAULT_MAX_SUCCESSORS,
        name: str = "",
    ):
        self.name = name
        self.max_successors = max_successors
        self._default_commons = frozenset(DEFAULT_COMMONS if commons is None else commons)
        self._commons: set[str] = set(self._default_commons)
        self._reactions: dict[str, Reaction] = {}
        self.duplicates: list[Reaction] = []
        self._successors: dict[str, tuple[Reaction, ...]] = {}
        self._producers: dict[str, tuple[Reaction, ...]] = {}
        self._trigger_map: dict[str, set[Reaction]] | None = None
        self._dirty = True
        self.version = 0
        for reaction in reactions:
            self.add_reaction(reaction)

        self._nodes: dict[int, ModelNode] = {}
        self._metabolites: dict[str, list[MetaboliteNode]] = defaultdict(list)
        for node in nodes:
            self.add_node(node)

        # alias -> feature ids; None means every gene is its own feature id
        self._alias_map: dict[str, set[str]] | None = None
        if aliases is not None:
            self._alias_map = {a: set(fids) for a, fids in aliases.items()}

    # -- construction -------------------------------------------------------

    def add_reaction(self, reaction: Reaction) -> None:
        if reaction.id in self._reactions:
            logger.debug("Duplicate reaction %s kept for display only.", reaction.id)
            self.duplicates.append(reaction)
            return
        self._reactions[reaction.id] = reaction
        self._trigger_map = None
        self._touch()

    def add_node(self, node: ModelNode) -> None:
        self._nodes[node.node_id] = node
        if isinstance(node, MetaboliteNode):
            self._metabolites[node.bigg_id].append(node)

    def _touch(self) -> None:
        self._dirty = True
        self.version += 1

    # -- reactions -----------------------------------------------------------

    @property
    def reactions(self) -> list[Reaction]:
        return list(self._reactions.values())

    def reaction(self, reaction_id: str) -> Reaction | None:
        return self._reactions.get(reaction_id)

    def __contains__(self, reaction_id: str) -> bool:
        return reaction_id in self._reactions

    def __len__(self) -> int:
        return len(self._reactions)

    def set_active_direction(self, reaction_id: str, direction: ActiveDirection) -> None:
        try:
            reaction = self._reactions[reaction_id]
        except KeyError as e:
            raise KeyError(f"Reaction not found in network: {reaction_id}") from e
        if reaction._active is not direction:
            logger.debug("Direction %s: %s -> %s", reaction_id, reaction._active.name, direction.name)
            reaction._active = direction
            self._touch()

    def reset_flow(self) -> None:
        """Put every reaction back to its default direction."""
        for reaction in self._reactions.values():
            reaction._active = reaction.default_direction
        self._touch()

    def clear_mods(self) -> None:
        """Undo every rerouting change: default directions and default commons."""
        self._commons = set(self._default_commons)
        self.reset_flow()

    # -- indices -------------------------------------------------------------

    def rebuild_indices(self) -> None:
        successors: dict[str, set[Reaction]] = defaultdict(set)
        producers: dict[str, set[Reaction]] = defaultdict(set)
        for reaction in self._reactions.values():
            for stoich in reaction.metabolites:
                if reaction.is_input(stoich):
                    successors[stoich.metabolite].add(reaction)
                if reaction.is_output(stoich):
                    producers[stoich.metabolite].add(reaction)
        self._successors, self._producers = (
            {c: tuple(sorted(rs)) for c, rs in successors.items()},
            {c: tuple(sorted(rs)) for c, rs in producers.items()},
        )
        self._dirty = False
        logger.debug("Rebuilt indices: %d consumed, %d produced compounds.", len(successors), len(producers))

    def _ensure_indices(self) -> None:
        if self._dirty:
            self.rebuild_indices()

    def successors_of(self, compound: str) -> tuple[Reaction, ...]:
        """Reactions that can currently consume `compound`, sorted by id."""
        self._ensure_indices()
        return self._successors.get(compound, ())

    def producers_of(self, compound: str) -> tuple[Reaction, ...]:
        """Reactions that can currently yield `compound`, sorted by id."""
        self._ensure_indices()
        return self._producers.get(compound, ())

    def input_compounds(self) -> list[str]:
        self._ensure_indices()
        return sorted(self._successors)

    # -- commons -------------------------------------------------------------

    def commons(self) -> set[str]:
        self._ensure_indices()
        crowded = {c for c, rs in self._successors.items() if len(rs) > self.max_successors}
        return self._commons | crowded

    @property
    def explicit_commons(self) -> frozenset[str]:
        return frozenset(self._commons)

    def add_commons(self, compounds: Iterable[str]) -> None:
        new = set(compounds) - self._commons
        if new:
            self._commons |= new
            self._touch()

    # -- compounds -----------------------------------------------------------

    def compounds(self) -> set[str]:
        found = {s.metabolite for r in self._reactions.values() for s in r.metabolites}
        return found | set(self._metabolites)

    def has_compound(self, compound: str) -> bool:
        if compound in self._metabolites:
            return True
        return any(compound in r.compounds for r in self._reactions.values())

    def metabolite_nodes(self, compound: str) -> list[MetaboliteNode]:
        return list(self._metabolites.get(compound, []))

    @property
    def metabolite_count(self) -> int:
        return len(self._metabolites)

    @property
    def nodes(self) -> list[ModelNode]:
        return list(self._nodes.values())

    def compound_name(self, compound: str) -> str:
        nodes = self._metabolites.get(compound)
        if not nodes:
            return f"Unknown compound {compound}"
        label = COMPARTMENT_LABELS.get(compartment_of(compound))
        return f"{nodes[0].name} [{label}]" if label else nodes[0].name

    def compound_ids_by_name(self) -> dict[str, set[str]]:
        out: dict[str, set[str]] = defaultdict(set)
        for bigg_id, nodes in self._metabolites.items():
            out[nodes[0].name].add(bigg_id)
        return dict(out)

    # -- triggers ------------------------------------------------------------

    def _features_of(self, gene: str) -> set[str]:
        if self._alias_map is None:
            return {gene}
        return self._alias_map.get(gene, set())

    def _build_trigger_map(self) -> dict[str, set[Reaction]]:
        if self._trigger_map is None:
            tmap: dict[str, set[Reaction]] = defaultdict(set)
            for reaction in self._reactions.values():
                for gene in reaction.genes:
                    for fid in self._features_of(gene):
                        tmap[fid].add(reaction)
            self._trigger_map = dict(tmap)
        return self._trigger_map

    def triggered_reactions(self, gene: str) -> list[Reaction]:
        """Reactions triggered by a feature id, or by any feature a gene alias points to."""
        tmap = self._build_trigger_map()
        fids = {gene} if gene in tmap else self._features_of(gene)
        found: set[Reaction] = set()
        for fid in fids:
            found |= tmap.get(fid, set())
        return sorted(found)

    def orphan_reactions(self) -> list[Reaction]:
        """Reactions with a rule none of whose genes resolve to a known feature."""
        return sorted(
            r for r in self._reactions.values() if r.genes and not any(self._features_of(g) for g in r.genes)
        )

    def gene_name(self, gene: str) -> str:
        for reaction in self._reactions.values():
            name = reaction.aliases.get(gene)
            if name:
                return name
        return gene

    def __repr__(self) -> str:
        return f"ReactionNetwork({self.name!r}, reactions={len(self._reactions)}, metabolites={self.metabolite_count})"
