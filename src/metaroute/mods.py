from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from typing import Any, Callable, ClassVar, Iterable, Iterator

from metaroute.filters import AvoidFilter, CofactorFilter, IncludeFilter, PathwayFilter
from metaroute.network import ActiveDirection, ReactionNetwork

logger = logging.getLogger(__name__)

HEADER: tuple[str, str] = ("command", "parms")

_SPLIT_RE = re.compile(r"[\s,]+")


class ModifierSyntaxError(ValueError):
    """Raised when a rerouting directive or directive file is malformed."""


class Modifier:
    """
    A single rerouting directive.

    Directives either change the network in place (directions, commons) or
    produce a filter for the searches that follow.
    """

    command: ClassVar[str] = ""

    def __init__(self, parms: Iterable[str] | str, *, active: bool = True):
        if isinstance(parms, str):
            parms = _SPLIT_RE.split(parms)
        self.items: frozenset[str] = frozenset(str(p).strip() for p in parms if str(p).strip())
        if not self.items:
            raise ModifierSyntaxError(f"{self.code} needs at least one parameter.")
        self.active = active

    @property
    def code(self) -> str:
        return self.command

    @property
    def parms(self) -> str:
        return " ".join(sorted(self.items))

    def apply(self, network: ReactionNetwork) -> PathwayFilter | None:
        raise NotImplementedError

    def to_row(self) -> list[str]:
        return [("" if self.active else "#") + self.code, self.parms]

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Modifier) and other.code == self.code and other.items == self.items

    def __hash__(self) -> int:
        return hash((self.code, self.items))

    def __repr__(self) -> str:
        state = "" if self.active else ", inactive"
        return f"{type(self).__name__}({self.code} {self.parms}{state})"


class FlowModifier(Modifier):
    """Set the active direction of the listed reactions."""

    def __init__(self, parms: Iterable[str] | str, direction: ActiveDirection, *, active: bool = True):
        self.direction = direction
        super().__init__(parms, active=active)

    @property
    def code(self) -> str:
        return self.direction.command

    def apply(self, network: ReactionNetwork) -> None:
        for rid in sorted(self.items):
            if rid in network:
                network.set_active_direction(rid, self.direction)
            else:
                logger.warning("%s: reaction %s not in network.", self.code, rid)


class ForwardOnlyModifier(Modifier):
    """Make every reaction that consumes one of the listed compounds run forward only."""

    command = "FORWARD"

    def apply(self, network: ReactionNetwork) -> None:
        changed = 0
        for reaction in network.reactions:
            if any(s.is_reactant() and s.metabolite in self.items for s in reaction.metabolites):
                network.set_active_direction(reaction.id, ActiveDirection.FORWARD)
                changed += 1
        logger.debug("FORWARD %s: %d reactions restricted.", self.parms, changed)


class CommonsModifier(Modifier):
    command = "COMMONS"

    def apply(self, network: ReactionNetwork) -> None:
        network.add_commons(self.items)


class FilterModifier(Modifier):
    filter_class: ClassVar[type[PathwayFilter]]

    def apply(self, network: ReactionNetwork) -> PathwayFilter:
        return self.filter_class(network, self.items)


class AvoidModifier(FilterModifier):
    command = "AVOID"
    filter_class = AvoidFilter


class IncludeModifier(FilterModifier):
    command = "INCLUDE"
    filter_class = IncludeFilter


class CofactorModifier(FilterModifier):
    command = "COFACTORS"
    filter_class = CofactorFilter


def _flow(direction: ActiveDirection) -> Callable[..., Modifier]:
    return lambda parms, active=True: FlowModifier(parms, direction, active=active)


COMMANDS: dict[str, Callable[..., Modifier]] = {
    **{d.command: _flow(d) for d in ActiveDirection},
    ForwardOnlyModifier.command: ForwardOnlyModifier,
    CommonsModifier.command: CommonsModifier,
    AvoidModifier.command: AvoidModifier,
    IncludeModifier.command: IncludeModifier,
    CofactorModifier.command: CofactorModifier,
}


def make_modifier(command: str, parms: Iterable[str] | str, *, active: bool = True) -> Modifier:
    code = command.strip().upper()
    try:
        factory = COMMANDS[code]
    except KeyError as e:
        raise ModifierSyntaxError(
            f"Unknown rerouting command: {command!r}. Allowed: {', '.join(sorted(COMMANDS))}"
        ) from e
    return factory(parms, active=active)


class ModifierList:
    """
    Ordered rerouting directives, each individually switchable.

    `apply` always starts from an unmodified network, so applying the same
    list twice leaves the network in the same state.
    """

    def __init__(self, modifiers: Iterable[Modifier] = ()):
        self.modifiers: list[Modifier] = list(modifiers)

    def __iter__(self) -> Iterator[Modifier]:
        return iter(self.modifiers)

    def __len__(self) -> int:
        return len(self.modifiers)

    def __getitem__(self, i: int) -> Modifier:
        return self.modifiers[i]

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ModifierList) and other.modifiers == self.modifiers

    def add(self, command: str, parms: Iterable[str] | str, *, active: bool = True) -> Modifier:
        mod = make_modifier(command, parms, active=active)
        self.modifiers.append(mod)
        return mod

    def remove(self, i: int) -> Modifier:
        return self.modifiers.pop(i)

    def enable(self, i: int) -> None:
        self.modifiers[i].active = True

    def disable(self, i: int) -> None:
        self.modifiers[i].active = False

    @property
    def active(self) -> list[Modifier]:
        return [m for m in self.modifiers if m.active]

    def apply(self, network: ReactionNetwork) -> list[PathwayFilter]:
        """Reset the network, apply the active directives, and return the filters they define."""
        network.clear_mods()
        filters: list[PathwayFilter] = []
        for mod in self.active:
            f = mod.apply(network)
            if f is not None:
                filters.append(f)
        logger.info("Applied %d of %d rerouting directives (%d filters).", len(self.active), len(self), len(filters))
        return filters

    # -- files ---------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path) -> ModifierList:
        """
        Load a tab-delimited directive file.

        The first line must be the header `command<TAB>parms`. A command
        prefixed with `#` is kept but inactive.
        """
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Modifier file not found: {p}")
        out = cls()
        with p.open("r", encoding="utf-8", newline="") as f:
            rows = csv.reader(f, delimiter="\t")
            header = next(rows, None)
            if header is None or tuple(h.strip().lower() for h in header[:2]) != HEADER:
                raise ModifierSyntaxError(f"{p}: expected header 'command<TAB>parms', got: {header!r}")
            for lineno, row in enumerate(rows, start=2):
                if not row or not "".join(row).strip():
                    continue
                if len(row) < 2:
                    raise ModifierSyntaxError(f"{p}:{lineno}: missing parms for {row[0]!r}")
                command = row[0].strip()
                active = not command.startswith("#")
                try:
                    out.add(command.lstrip("#"), row[1], active=active)
                except ModifierSyntaxError as e:
                    raise ModifierSyntaxError(f"{p}:{lineno}: {e}") from e
        logger.info("Loaded %d rerouting directives from %s", len(out), p)
        return out

    def save(self, path: str | Path) -> Path:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8", newline="") as f:
            w = csv.writer(f, delimiter="\t", lineterminator="\n")
            w.writerow(HEADER)
            for mod in self.modifiers:
                w.writerow(mod.to_row())
        return p

    @classmethod
    def from_config(cls, entries: Iterable[dict[str, Any]]) -> ModifierList:
        """
        Build directives from the YAML list form.

        Expected schema
        ---------------
        modifiers:
          - {command: SUPPRESS, parms: [PFK, PFK_2]}
          - {command: AVOID, parms: "glx_c", active: false}
        """
        out = cls()
        for i, item in enumerate(entries):
            if not isinstance(item, dict) or "command" not in item:
                raise ModifierSyntaxError(f"Modifier #{i} must be a mapping with keys: command, parms.")
            parms = item.get("parms", [])
            if not isinstance(parms, (str, list)):
                raise ModifierSyntaxError(f"Modifier #{i}: parms must be a string or a list.")
            out.add(str(item["command"]), parms, active=bool(item.get("active", True)))
        return out
