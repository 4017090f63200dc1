from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pandas as pd

from metaroute.config import ConfigError, SearchSettings, load_config, settings_from_config
from metaroute.io import load_network, save_table
from metaroute.mods import ModifierList, ModifierSyntaxError
from metaroute.queries import PathMap


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="All-pairs shortest pathway table + intermediate scores.")
    p.add_argument("--model", required=True, help="Model path (e.g., models/iJO1366.xml)")
    p.add_argument("--compounds", required=True, help="Text file with one compound id per line.")
    p.add_argument("--config", default=None, help="Settings YAML (e.g., configs/search.yaml)")
    p.add_argument("--out", required=True, help="Output table (e.g., results/path_table.csv)")
    p.add_argument("--scores-out", default=None, help="Optional intermediate score table.")
    return p


def _read_compounds(path: str | Path) -> list[str]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Compound list not found: {p}")
    lines = (line.split("#", 1)[0].strip() for line in p.read_text(encoding="utf-8").splitlines())
    return list(dict.fromkeys(c for c in lines if c))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = settings_from_config(load_config(args.config)) if args.config else SearchSettings()
        network = load_network(args.model, settings=settings)
        ModifierList.from_config(settings.modifiers).apply(network)
        compounds = _read_compounds(args.compounds)
    except (FileNotFoundError, ConfigError, ModifierSyntaxError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2
    except Exception as e:  # noqa: BLE001
        print(f"[ERROR] Failed to load model: {e}", file=sys.stderr)
        return 2

    if len(compounds) < 2:
        print("[ERROR] Need at least two compounds.", file=sys.stderr)
        return 2

    pmap = PathMap(network, compounds)
    df = pmap.to_frame()
    save_table(df, args.out)
    if args.scores_out:
        scores = pd.DataFrame(pmap.scores(), columns=["compound", "score"])
        save_table(scores, args.scores_out)

    found = int(df["length"].notna().sum())
    print(f"[OK] {found}/{len(df)} pairs connected; wrote {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
