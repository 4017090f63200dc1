from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.logging import RichHandler

from metaroute import __version__
from metaroute.config import ConfigError, SearchSettings, load_config, settings_from_config
from metaroute.filters import AvoidFilter, CofactorFilter, FilterConfigError, IncludeFilter, PathwayFilter
from metaroute.io import load_alias_table, load_network, save_table
from metaroute.mods import ModifierList, ModifierSyntaxError
from metaroute.network import ReactionNetwork
from metaroute.painting import ConnectivityPainter
from metaroute.pathway import IrreversibleReactionError, Pathway, PathwayFormatError
from metaroute.queries import CloseNodeKind, PathMap, ReactionQuery, close_nodes, query_reactions, rate_close_nodes
from metaroute.report import pathway_report, save_report
from metaroute.rules import RuleSyntaxError, parse_rule
from metaroute.search import PathwaySearch

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="metaroute: pathway search over metabolic reaction networks")

USER_ERRORS = (
    ConfigError,
    FilterConfigError,
    ModifierSyntaxError,
    PathwayFormatError,
    RuleSyntaxError,
    IrreversibleReactionError,
    FileNotFoundError,
    ValueError,
)

MODEL_ARG = typer.Argument(..., help="Model file (.xml/.sbml, .json or .yaml).")
CONFIG_OPT = typer.Option(None, "--config", "-c", help="Settings YAML/JSON (search: and modifiers: blocks).")
ALIASES_OPT = typer.Option(None, "--aliases", help="Alias table with columns alias, feature_id.")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_time=False, show_path=False)],
    )


def _fail(e: Exception) -> None:
    typer.echo(f"[ERROR] {e}", err=True)
    raise typer.Exit(code=1)


def _settings(config: Optional[Path]) -> SearchSettings:
    return settings_from_config(load_config(config)) if config else SearchSettings()


def _network(model: Path, settings: SearchSettings, aliases: Optional[Path] = None) -> ReactionNetwork:
    alias_map = load_alias_table(aliases) if aliases else None
    return load_network(model, settings=settings, aliases=alias_map)


def _echo_pathway(pathway: Pathway, network: ReactionNetwork) -> None:
    typer.echo(f"{pathway.input} ==> {pathway.output} ({len(pathway)} steps)")
    for i, element in enumerate(pathway, start=1):
        reaction = element.reaction
        typer.echo(f"{i:>3}. {reaction.id:<14} {reaction.formula(element.reversed)}  => {element.output}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
) -> None:
    """Entry point."""
    _setup_logging(verbose=verbose)


@app.command()
def version() -> None:
    """Print package version."""
    typer.echo(__version__)


@app.command()
def rule(
    text: str = typer.Argument(..., help="Gene-trigger rule, e.g. '(b0001 and b0002) or b0003'."),
) -> None:
    """Normalize a gene-trigger rule and print its protein weights."""
    try:
        formula = parse_rule(text)
    except RuleSyntaxError as e:
        _fail(e)
    typer.echo(str(formula))
    triggers = formula.trigger_weights()
    branches = formula.branch_weights()
    for protein in formula.proteins:
        typer.echo(f"{protein}\ttrigger={triggers[protein]:.3f}\tbranch={branches[protein]:.3f}")


@app.command()
def path(
    model: Path = MODEL_ARG,
    source: str = typer.Argument(..., help="Starting compound id."),
    target: str = typer.Argument(..., help="Goal compound id."),
    extend_to: List[str] = typer.Option([], "--extend-to", help="Further goals, reached in order."),
    loop: bool = typer.Option(False, "--loop", help="Close the final pathway back to its start."),
    avoid: List[str] = typer.Option([], "--avoid", help="Compound the pathway must not pass through."),
    include: List[str] = typer.Option([], "--include", help="Reaction the pathway must use."),
    cofactors: List[str] = typer.Option([], "--cofactors", help="Extra compounds steps may draw on."),
    mods: Optional[Path] = typer.Option(None, "--mods", help="Tab-delimited rerouting directive file."),
    config: Optional[Path] = CONFIG_OPT,
    aliases: Optional[Path] = ALIASES_OPT,
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the pathway record (JSON)."),
) -> None:
    """Find the shortest pathway from SOURCE to TARGET."""
    try:
        settings = _settings(config)
        network = _network(model, settings, aliases)
        directives = ModifierList.from_config(settings.modifiers)
        if mods:
            directives.modifiers.extend(ModifierList.load(mods))
        filters: list[PathwayFilter] = directives.apply(network)
        if avoid:
            filters.append(AvoidFilter(network, avoid))
        if include:
            filters.append(IncludeFilter(network, include))
        if cofactors:
            filters.append(CofactorFilter(network, cofactors))

        search = PathwaySearch(network, max_path_len=settings.max_path_len)
        result = search.find_shortest(source, target, *filters)
        for goal in extend_to:
            if result is None:
                break
            result = search.extend(result, goal, *filters)
        if result is not None and loop:
            result = search.loop(result, *filters)
    except USER_ERRORS as e:
        _fail(e)

    if result is None:
        typer.echo("No pathway found.")
        raise typer.Exit(code=1)
    _echo_pathway(result, network)
    if out:
        result.save(out)


@app.command()
def close(
    model: Path = MODEL_ARG,
    compounds: List[str] = typer.Argument(..., help="Compounds to find a meeting point for."),
    kind: CloseNodeKind = typer.Option(CloseNodeKind.PRODUCT, "--kind", help="product, reactant or both."),
    top: int = typer.Option(0, "--top", help="Also list the N best-rated compounds."),
    config: Optional[Path] = CONFIG_OPT,
) -> None:
    """Find the compounds closest to all of COMPOUNDS."""
    try:
        settings = _settings(config)
        network = _network(model, settings)
        painter = ConnectivityPainter(network, max_distance=settings.max_path_len)
        best = close_nodes(network, compounds, kind, painter=painter)
        ratings = rate_close_nodes(network, compounds, kind, painter=painter)[:top] if top > 0 else []
    except USER_ERRORS as e:
        _fail(e)
    if not best:
        typer.echo("No common neighbor found.")
        raise typer.Exit(code=1)
    for compound in best:
        typer.echo(f"{compound}\t{network.compound_name(compound)}")
    for r in ratings:
        typer.echo(f"  {r.compound}\tcount={r.count}\tdistance={r.distance}")


@app.command()
def reactions(
    model: Path = MODEL_ARG,
    kind: ReactionQuery = typer.Argument(..., help="producers, consumers, reactions, triggered or all."),
    key: Optional[str] = typer.Argument(None, help="Compound id, or gene for 'triggered'."),
    aliases: Optional[Path] = ALIASES_OPT,
) -> None:
    """List reactions related to a compound or a gene."""
    try:
        network = _network(model, SearchSettings(), aliases)
        found = query_reactions(network, kind, key)
    except USER_ERRORS as e:
        _fail(e)
    for r in found:
        typer.echo(f"{r.id}\t{r.name}\t{r.formula()}")
    logger.info("%d reactions.", len(found))


@app.command()
def table(
    model: Path = MODEL_ARG,
    compounds: List[str] = typer.Argument(..., help="Compound set for the all-pairs table."),
    out: Path = typer.Option(Path("path_table.csv"), "--out", "-o", help="Output table (.csv/.tsv/.parquet)."),
    config: Optional[Path] = CONFIG_OPT,
) -> None:
    """Build the shortest-pathway table between every pair of COMPOUNDS."""
    try:
        network = _network(model, _settings(config))
        pmap = PathMap(network, compounds)
        save_table(pmap.to_frame(), out)
    except USER_ERRORS as e:
        _fail(e)
    for compound, score in pmap.scores()[:10]:
        typer.echo(f"{compound}\t{score}")


@app.command()
def report(
    model: Path = MODEL_ARG,
    pathway_file: Path = typer.Argument(..., help="Pathway record written by 'path --out'."),
    out_dir: Path = typer.Option(Path("report"), "--out-dir", help="Directory for the report tables."),
    fmt: str = typer.Option("csv", "--fmt", help="csv, tsv or parquet."),
    config: Optional[Path] = CONFIG_OPT,
    aliases: Optional[Path] = ALIASES_OPT,
) -> None:
    """Write the step, input, branch and protein tables of a saved pathway."""
    try:
        settings = _settings(config)
        network = _network(model, settings, aliases)
        ModifierList.from_config(settings.modifiers).apply(network)
        pathway = Pathway.load(pathway_file, network)
        written = save_report(pathway_report(pathway, network), out_dir, fmt=fmt)
    except USER_ERRORS as e:
        _fail(e)
    for p in written:
        typer.echo(str(p))


if __name__ == "__main__":
    app()
