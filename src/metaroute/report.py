from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from metaroute.io import save_table
from metaroute.network import ReactionNetwork
from metaroute.pathway import Pathway
from metaroute.scoring import ProteinRating, compound_ratings, protein_ratings

logger = logging.getLogger(__name__)


def steps_frame(pathway: Pathway, network: ReactionNetwork) -> pd.DataFrame:
    rows = []
    for i, element in enumerate(pathway):
        reaction = element.reaction
        rows.append(
            {
                "step": i + 1,
                "reaction": reaction.id,
                "name": reaction.name,
                "rule": reaction.rule,
                "reversed": element.reversed,
                "input": pathway.main_input(i),
                "output": element.output,
                "output_name": network.compound_name(element.output),
                "formula": reaction.formula(element.reversed),
            }
        )
    return pd.DataFrame(
        rows, columns=["step", "reaction", "name", "rule", "reversed", "input", "output", "output_name", "formula"]
    )


def inputs_frame(pathway: Pathway, network: ReactionNetwork, *, include_commons: bool = False) -> pd.DataFrame:
    demand = pathway.required_inputs(network, include_commons=include_commons)
    rows = [
        {"compound": c, "name": network.compound_name(c), "count": n}
        for c, n in sorted(demand.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    return pd.DataFrame(rows, columns=["compound", "name", "count"])


def branches_frame(pathway: Pathway, network: ReactionNetwork) -> pd.DataFrame:
    rows = []
    for compound, reactions in pathway.branches(network, include_terminus=True).items():
        for reaction in reactions:
            reverse = reaction.is_product(compound)
            rows.append(
                {
                    "compound": compound,
                    "reaction": reaction.id,
                    "name": reaction.name,
                    "rule": reaction.rule,
                    "formula": reaction.formula(reverse),
                }
            )
    return pd.DataFrame(rows, columns=["compound", "reaction", "name", "rule", "formula"])


def compounds_frame(pathway: Pathway, network: ReactionNetwork) -> pd.DataFrame:
    ratings = sorted(compound_ratings(pathway, network).values(), key=lambda r: r.sort_key())
    rows = [
        {
            "compound": r.compound,
            "name": network.compound_name(r.compound),
            "goal": r.goal,
            "common": r.common,
            "weight": r.weight,
            "usage": r.usage,
            "output": r.output,
            "effort": r.effort,
        }
        for r in ratings
    ]
    return pd.DataFrame(rows, columns=["compound", "name", "goal", "common", "weight", "usage", "output", "effort"])


def proteins_frame(ratings: list[ProteinRating]) -> pd.DataFrame:
    rows = [
        {
            "protein": r.spec,
            "kind": "trigger" if r.triggering else "branch",
            "weight": r.weight,
            "reaction": r.reaction.id if r.reaction is not None else "",
            "reversed": r.reversed,
            "compound": r.compound,
        }
        for r in ratings
    ]
    return pd.DataFrame(rows, columns=["protein", "kind", "weight", "reaction", "reversed", "compound"])


def pathway_report(pathway: Pathway, network: ReactionNetwork) -> dict[str, pd.DataFrame]:
    """Build the report tables of a pathway, keyed by table name."""
    return {
        "steps": steps_frame(pathway, network),
        "inputs": inputs_frame(pathway, network),
        "branches": branches_frame(pathway, network),
        "compounds": compounds_frame(pathway, network),
        "proteins": proteins_frame(protein_ratings(pathway, network)),
    }


def save_report(tables: dict[str, pd.DataFrame], out_dir: str | Path, *, fmt: str = "csv") -> list[Path]:
    out = Path(out_dir)
    written = [save_table(df, out / f"{name}.{fmt}", fmt=fmt) for name, df in tables.items()]
    logger.info("Wrote %d report tables to %s", len(written), out)
    return written
