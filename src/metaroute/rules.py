from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable

from metaroute.config import DEFAULT_MAX_CLAUSES

CONNECTORS: frozenset[str] = frozenset({"and", "or"})

_TOKEN_RE = re.compile(r"\(|\)|[^\s()]+")


class RuleSyntaxError(ValueError):
    """Raised when a gene-trigger rule cannot be parsed."""

    def __init__(self, rule: str, reason: str):
        super().__init__(f'Invalid syntax in reaction rule "{rule}": {reason}')
        self.rule = rule
        self.reason = reason


@dataclass(frozen=True)
class RuleFormula:
    """
    A gene-trigger rule in disjunctive normal form.

    Each clause is a set of proteins that must all be present (AND); the formula
    is satisfied when any clause is (OR).
    """

    clauses: frozenset[frozenset[str]]

    @classmethod
    def single(cls, protein: str) -> RuleFormula:
        return cls(frozenset({frozenset({protein})}))

    def or_(self, other: RuleFormula) -> RuleFormula:
        return RuleFormula(self.clauses | other.clauses)

    def and_(self, other: RuleFormula) -> RuleFormula:
        return RuleFormula(frozenset(a | b for a in self.clauses for b in other.clauses))

    @property
    def proteins(self) -> list[str]:
        return sorted({p for clause in self.clauses for p in clause})

    def is_singleton(self) -> bool:
        return len(self.clauses) == 1 and len(next(iter(self.clauses))) == 1

    def sorted_clauses(self) -> list[tuple[str, ...]]:
        return sorted(tuple(sorted(clause)) for clause in self.clauses)

    def trigger_weights(self) -> dict[str, float]:
        """Per protein, the best `1/|clause|` over the clauses that mention it."""
        weights = dict.fromkeys(self.proteins, 0.0)
        for clause in self.clauses:
            w = 1.0 / len(clause)
            for protein in clause:
                if w > weights[protein]:
                    weights[protein] = w
        return weights

    def branch_weights(self) -> dict[str, float]:
        """Per protein, the fraction of clauses that would be lost by removing it."""
        weights = dict.fromkeys(self.proteins, 0.0)
        w = 1.0 / len(self.clauses)
        for clause in self.clauses:
            for protein in clause:
                weights[protein] += w
        return weights

    def __str__(self) -> str:
        return " or ".join(" and ".join(clause) for clause in self.sorted_clauses())


def tokenize(rule: str) -> list[str]:
    return _TOKEN_RE.findall(rule)


def rule_triggers(rule: str) -> list[str]:
    """Return the protein tokens of a raw rule, in order of first appearance."""
    return list(dict.fromkeys(t for t in tokenize(rule) if t not in "()" and t.lower() not in CONNECTORS))


def translate_rule(rule: str, name_of: Callable[[str], str]) -> str:
    """Rewrite every protein token of a rule with `name_of`, keeping connectors and spacing."""

    def _swap(match: re.Match) -> str:
        token = match.group(0)
        if token in "()" or token.lower() in CONNECTORS:
            return token
        return name_of(token)

    return _TOKEN_RE.sub(_swap, rule)


def parse_rule(rule: str, *, max_clauses: int = DEFAULT_MAX_CLAUSES) -> RuleFormula:
    """
    Compile a gene-trigger rule into DNF.

    Parameters
    ----------
    rule:
        Rule text made of protein ids, `and`, `or` and parentheses.
    max_clauses:
        Upper bound on the clause count of any intermediate result. AND over
        nested ORs multiplies clauses, so pathological rules fail here instead
        of exhausting memory.
    """
    operators: list[str] = []
    outputs: list[RuleFormula] = []

    def _apply(op: str) -> None:
        if len(outputs) < 2:
            raise RuleSyntaxError(rule, f"dangling '{op}'")
        right = outputs.pop()
        left = outputs.pop()
        result = left.and_(right) if op == "and" else left.or_(right)
        if len(result.clauses) > max_clauses:
            raise RuleSyntaxError(rule, f"more than {max_clauses} clauses")
        outputs.append(result)

    for token in tokenize(rule):
        word = token.lower()
        if token == "(":
            operators.append(token)
        elif token == ")":
            while operators and operators[-1] != "(":
                _apply(operators.pop())
            if not operators:
                raise RuleSyntaxError(rule, "unbalanced ')'")
            operators.pop()
        elif word == "and":
            operators.append("and")
        elif word == "or":
            while operators and operators[-1] == "and":
                _apply(operators.pop())
            operators.append("or")
        else:
            outputs.append(RuleFormula.single(token))

    while operators:
        op = operators.pop()
        if op == "(":
            raise RuleSyntaxError(rule, "unbalanced '('")
        _apply(op)

    if not outputs:
        raise RuleSyntaxError(rule, "empty rule")
    if len(outputs) > 1:
        raise RuleSyntaxError(rule, "missing operator between proteins")
    return outputs[0]


def parse_rules(rules: Iterable[str], **kwargs) -> dict[str, RuleFormula]:
    """Parse several rules, keyed by their text. Duplicates are parsed once."""
    return {r: parse_rule(r, **kwargs) for r in dict.fromkeys(rules)}
