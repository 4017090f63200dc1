"""Pathway search over genome-scale metabolic reaction networks."""

from __future__ import annotations

from metaroute.filters import AvoidFilter, CofactorFilter, FilterConfigError, IncludeFilter, PathwayFilter
from metaroute.mods import ModifierList, ModifierSyntaxError
from metaroute.network import ActiveDirection, Reaction, ReactionNetwork, Stoich
from metaroute.painting import ConnectivityPainter, PaintDirection
from metaroute.pathway import IrreversibleReactionError, Pathway, PathwayElement, PathwayFormatError
from metaroute.rules import RuleFormula, RuleSyntaxError, parse_rule
from metaroute.search import PathwaySearch

__version__ = "0.3.0"

__all__ = [
    "ActiveDirection",
    "AvoidFilter",
    "CofactorFilter",
    "ConnectivityPainter",
    "FilterConfigError",
    "IncludeFilter",
    "IrreversibleReactionError",
    "ModifierList",
    "ModifierSyntaxError",
    "PaintDirection",
    "Pathway",
    "PathwayElement",
    "PathwayFilter",
    "PathwayFormatError",
    "PathwaySearch",
    "Reaction",
    "ReactionNetwork",
    "RuleFormula",
    "RuleSyntaxError",
    "Stoich",
    "parse_rule",
    "__version__",
]
