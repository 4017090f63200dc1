from __future__ import annotations

import logging
from dataclasses import dataclass

from metaroute.network import Reaction, ReactionNetwork
from metaroute.pathway import Pathway
from metaroute.rules import parse_rule, translate_rule

logger = logging.getLogger(__name__)

GOAL_WEIGHT = 1.1


@dataclass
class CompoundRating:
    """
    How much a pathway depends on one compound.

    `weight` sums, over the steps that consume the compound, the step position
    times the coefficient, so late inputs matter more. The goal's weight is the
    pathway length times GOAL_WEIGHT.
    """

    compound: str
    common: bool = False
    goal: bool = False
    usage: float = 0.0
    effort: int = 0
    output: float = 0.0
    weight: float = 0.0

    def sort_key(self) -> tuple:
        return (not self.goal, self.common, -self.weight, -self.usage, self.output, -self.effort, self.compound)


def compound_ratings(pathway: Pathway, network: ReactionNetwork) -> dict[str, CompoundRating]:
    commons = network.commons()
    ratings: dict[str, CompoundRating] = {}

    def _get(compound: str) -> CompoundRating:
        rating = ratings.get(compound)
        if rating is None:
            rating = ratings[compound] = CompoundRating(compound, common=compound in commons)
        return rating

    goal = _get(pathway.output)
    goal.goal = True
    goal.weight = len(pathway) * GOAL_WEIGHT
    for position, element in enumerate(pathway, start=1):
        for stoich in element.reaction.metabolites:
            rating = _get(stoich.metabolite)
            if stoich.is_product() != element.reversed:
                rating.output += stoich.magnitude
            else:
                rating.weight += position * stoich.magnitude
                rating.effort = max(rating.effort, position)
                rating.usage += stoich.magnitude
    return ratings


@dataclass
class ProteinRating:
    """
    Influence of one protein on a pathway.

    Triggering ratings come from pathway steps (adding the protein helps);
    branch ratings come from diverting reactions (removing it helps). The
    strongest contribution is kept along with where it came from.
    """

    protein: str
    triggering: bool
    weight: float = 0.0
    reaction: Reaction | None = None
    reversed: bool = False
    compound: str = ""

    @property
    def spec(self) -> str:
        return self.protein if self.triggering else "D" + self.protein

    def add(self, weight: float, reaction: Reaction, reversed: bool, compound: str) -> None:
        if self.reaction is None or weight > self.weight:
            self.weight = weight
            self.reaction = reaction
            self.reversed = reversed
            self.compound = compound

    def sort_key(self) -> tuple[float, bool, str]:
        return (-self.weight, not self.triggering, self.protein)


def apply_weights(
    ratings: dict[str, ProteinRating],
    triggering: bool,
    weight: float,
    rule: str,
    reaction: Reaction,
    reversed: bool,
    compound: str,
) -> None:
    """
    Spread a reaction weight over the proteins of its rule.

    Triggering uses the rule's trigger weights, branching its branch weights.
    `ratings` is keyed by the rating spec, so a protein can hold one rating of
    each kind.
    """
    formula = parse_rule(rule)
    weights = formula.trigger_weights() if triggering else formula.branch_weights()
    for protein, w in weights.items():
        key = protein if triggering else "D" + protein
        rating = ratings.get(key)
        if rating is None:
            rating = ratings[key] = ProteinRating(protein, triggering)
        rating.add(w * weight, reaction, reversed, compound)


def protein_ratings(pathway: Pathway, network: ReactionNetwork, *, gene_names: bool = True) -> list[ProteinRating]:
    """
    Rank the proteins that most influence `pathway`.

    Parameters
    ----------
    gene_names:
        Report proteins under their gene names instead of gene ids.
    """
    compounds = compound_ratings(pathway, network)
    commons = network.commons()
    ratings: dict[str, ProteinRating] = {}

    def _rule(reaction: Reaction) -> str:
        return translate_rule(reaction.rule, network.gene_name) if gene_names else reaction.rule

    for element in pathway:
        if not element.reaction.rule.strip():
            continue
        w = element.reaction.weight(compounds, products=not element.reversed)
        apply_weights(ratings, True, w, _rule(element.reaction), element.reaction, element.reversed, element.output)

    for compound, reactions in pathway.branches(network, include_terminus=True).items():
        if compound in commons:
            continue
        for reaction in reactions:
            if not reaction.rule.strip():
                continue
            reverse = reaction.is_product(compound)
            w = reaction.weight(compounds, products=reverse)
            apply_weights(ratings, False, w, _rule(reaction), reaction, reverse, compound)

    logger.debug("Rated %d proteins for %s.", len(ratings), pathway)
    return sorted(ratings.values(), key=ProteinRating.sort_key)
