from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Literal, Mapping

import pandas as pd

from metaroute.config import SearchSettings
from metaroute.network import ActiveDirection, MetaboliteNode, Reaction, ReactionNetwork

logger = logging.getLogger(__name__)

REQUIRED_ALIAS_COLUMNS: tuple[str, ...] = ("alias", "feature_id")

TABLE_FORMATS: dict[str, str] = {".parquet": "parquet", ".csv": "csv", ".tsv": "tsv"}


def load_model(model_path: str | Path):
    """
    Load a metabolic model using cobra, picking the reader from the extension.

    Returns
    -------
    cobra.Model
    """
    from cobra.io import load_json_model, load_yaml_model, read_sbml_model

    p = Path(model_path)
    if not p.exists():
        raise FileNotFoundError(f"Model file not found: {p}")
    suffix = p.suffix.lower()
    logger.info("Loading model: %s", p)
    if suffix in {".xml", ".sbml"}:
        return read_sbml_model(str(p))
    if suffix == ".json":
        return load_json_model(str(p))
    if suffix in {".yaml", ".yml"}:
        return load_yaml_model(str(p))
    raise ValueError(f"Unsupported model extension: {p.suffix} (expected .xml/.sbml/.json/.yaml)")


def _bounds_direction(lower: float, upper: float) -> ActiveDirection | None:
    """Direction forced by flux bounds; None when the reversibility flag decides."""
    if lower == 0 and upper == 0:
        return ActiveDirection.NEITHER
    if lower < 0 and upper <= 0:
        return ActiveDirection.REVERSE
    return None


def network_from_cobra(
    model,
    *,
    aliases: Mapping[str, Iterable[str]] | None = None,
    commons: Iterable[str] | None = None,
    max_successors: int | None = None,
) -> ReactionNetwork:
    """
    Convert a cobra.Model into a ReactionNetwork.

    Reversibility comes from the reaction bounds: reverse-only reactions start
    INVERTED and blocked ones SUPPRESSED. The rule is the GPR string. Every
    gene is its own trigger feature and is also reachable under its gene name;
    `aliases` adds further alias -> feature id entries.
    """
    alias_map: dict[str, set[str]] = defaultdict(set)
    for gene in model.genes:
        alias_map[gene.id].add(gene.id)
        if gene.name:
            alias_map[gene.name].add(gene.id)
    for alias, fids in (aliases or {}).items():
        alias_map[alias].update(fids)

    reactions: list[Reaction] = []
    for rxn in model.reactions:
        stoich = {met.id: float(coef) for met, coef in rxn.metabolites.items() if coef}
        if not stoich:
            logger.debug("Skipping reaction without metabolites: %s", rxn.id)
            continue
        reactions.append(
            Reaction(
                rxn.id,
                stoich,
                name=rxn.name,
                rule=rxn.gene_reaction_rule,
                reversible=rxn.reversibility,
                direction=_bounds_direction(rxn.lower_bound, rxn.upper_bound),
                aliases={g.id: (g.name or g.id) for g in rxn.genes},
            )
        )
    nodes = [
        MetaboliteNode(i, met.id, met.name or met.id, met.compartment or "")
        for i, met in enumerate(model.metabolites)
    ]
    kwargs = {} if max_successors is None else {"max_successors": max_successors}
    network = ReactionNetwork(reactions, nodes, aliases=alias_map, commons=commons, name=model.id or "", **kwargs)
    logger.info("Built network %s: %d reactions, %d metabolites", network.name, len(network), network.metabolite_count)
    return network


def load_network(
    model_path: str | Path,
    *,
    settings: SearchSettings | None = None,
    aliases: Mapping[str, Iterable[str]] | None = None,
) -> ReactionNetwork:
    settings = settings or SearchSettings()
    return network_from_cobra(
        load_model(model_path),
        aliases=aliases,
        commons=settings.commons,
        max_successors=settings.max_successors,
    )


def load_alias_table(path: str | Path) -> dict[str, set[str]]:
    """
    Load a gene alias table (one row = one alias of one feature).

    Required columns
    ----------------
    - alias: gene name, locus tag or any other identifier used in rules
    - feature_id: the trigger id the alias resolves to
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Alias table not found: {p}")

    sep = "\t" if p.suffix.lower() in {".tsv", ".tab", ".txt"} else ","
    df = pd.read_csv(p, sep=sep, dtype=str)
    missing = [c for c in REQUIRED_ALIAS_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(
            "Missing required columns in alias table: "
            + ", ".join(missing)
            + f". Required columns: {', '.join(REQUIRED_ALIAS_COLUMNS)}"
        )

    df = df.dropna(subset=list(REQUIRED_ALIAS_COLUMNS))
    out: dict[str, set[str]] = defaultdict(set)
    for alias, fid in zip(df["alias"].str.strip(), df["feature_id"].str.strip()):
        if alias and fid:
            out[alias].add(fid)
    logger.info("Loaded %d aliases from %s", len(out), p)
    return dict(out)


def save_table(
    df: pd.DataFrame,
    out_path: str | Path,
    *,
    fmt: Literal["parquet", "csv", "tsv"] | None = None,
) -> Path:
    """
    Save a table to parquet, CSV or TSV, inferred by extension unless fmt is provided.
    """
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if fmt is None:
        fmt = TABLE_FORMATS.get(p.suffix.lower())
        if fmt is None:
            raise ValueError(f"Cannot infer format from extension: {p.suffix} (use .parquet, .csv or .tsv)")

    if fmt == "parquet":
        df.to_parquet(p, index=False)
    elif fmt in {"csv", "tsv"}:
        df.to_csv(p, index=False, sep="\t" if fmt == "tsv" else ",")
    else:
        raise ValueError(f"Unsupported fmt: {fmt}")

    logger.info("Saved table: %s (rows=%d, cols=%d)", p, len(df), len(df.columns))
    return p
