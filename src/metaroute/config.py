from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_MAX_SUCCESSORS = 20
DEFAULT_MAX_PATH_LEN = 100
DEFAULT_MAX_CLAUSES = 1000


class ConfigError(ValueError):
    """Raised when a config file cannot be loaded or has invalid structure."""


def load_config(path: str | Path) -> dict[str, Any]:
    """
    Load a YAML or JSON config file into a dict.

    Parameters
    ----------
    path:
        Path to a .yaml/.yml or .json file.
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    suffix = p.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    elif suffix == ".json":
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    else:
        raise ConfigError(f"Unsupported config extension: {suffix} (expected .yaml/.yml/.json)")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping/dict, got: {type(data).__name__}")
    return data


@dataclass(frozen=True)
class SearchSettings:
    """
    Tunables shared by the network, the painter and the search.

    `commons` replaces the built-in common-compound list when given; `modifiers`
    holds raw rerouting directives in the YAML list form accepted by
    `ModifierList.from_config`.
    """

    max_successors: int = DEFAULT_MAX_SUCCESSORS
    max_path_len: int = DEFAULT_MAX_PATH_LEN
    max_clauses: int = DEFAULT_MAX_CLAUSES
    commons: tuple[str, ...] | None = None
    modifiers: tuple[dict[str, Any], ...] = ()


def _positive_int(block: dict[str, Any], key: str, default: int) -> int:
    raw = block.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
        raise ConfigError(f"search.{key} must be a positive integer, got: {raw!r}")
    return raw


def settings_from_config(cfg: dict[str, Any]) -> SearchSettings:
    """
    Build `SearchSettings` from a loaded config.

    Expected schema
    ---------------
    search:
      max_successors: 20
      max_path_len: 100
      max_clauses: 1000
      commons: [h2o_c, atp_c, ...]
    modifiers:
      - {command: SUPPRESS, parms: [PFK]}
    """
    block = cfg.get("search", {}) or {}
    if not isinstance(block, dict):
        raise ConfigError("config['search'] must be a mapping.")

    commons = block.get("commons")
    if commons is not None:
        if not isinstance(commons, list) or not all(isinstance(c, str) for c in commons):
            raise ConfigError("search.commons must be a list of compound ids.")
        commons = tuple(dict.fromkeys(c.strip() for c in commons if c.strip()))

    mods = cfg.get("modifiers", []) or []
    if not isinstance(mods, list) or not all(isinstance(m, dict) for m in mods):
        raise ConfigError("config['modifiers'] must be a list of mappings.")

    return SearchSettings(
        max_successors=_positive_int(block, "max_successors", DEFAULT_MAX_SUCCESSORS),
        max_path_len=_positive_int(block, "max_path_len", DEFAULT_MAX_PATH_LEN),
        max_clauses=_positive_int(block, "max_clauses", DEFAULT_MAX_CLAUSES),
        commons=commons,
        modifiers=tuple(mods),
    )
