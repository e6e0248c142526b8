from __future__ import annotations

import functools
import json
from pathlib import Path
from typing import Iterable, Sequence

from .errors import ConfigError
from .model import Report, ReplacementRule, SymbolCost


def apply_rules(name: str, rules: Iterable[ReplacementRule]) -> str:
    return functools.reduce(
        lambda current, rule: current.replace(rule.pattern, rule.replacement),
        rules,
        name,
    )


def normalize_report(report: Report, rules: Sequence[ReplacementRule]) -> Report:
    """Rename every symbol and merge the ones that end up sharing a name."""
    if not rules:
        return report
    costs: dict[str, int] = {}
    for symbol in report.symbols:
        name = apply_rules(symbol.name, rules)
        costs[name] = costs.get(name, 0) + symbol.cost
    return Report(
        source=report.source,
        name=report.name,
        symbols=tuple(SymbolCost(name, cost) for name, cost in costs.items()),
        total=report.total,
    )


def parse_rule(text: str) -> ReplacementRule:
    pattern, sep, replacement = text.partition("=")
    if not sep:
        raise ConfigError(f"replacement rule '{text}' must have the form PATTERN=REPLACEMENT")
    if not pattern:
        raise ConfigError(f"replacement rule '{text}' has an empty pattern")
    return ReplacementRule(pattern, replacement)


def load_rules(path: Path | str) -> list[ReplacementRule]:
    rules_path = Path(path)
    try:
        payload = json.loads(rules_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{rules_path}: invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"{rules_path}: top-level value must be an object")
    entries = payload.get("rules")
    if not isinstance(entries, list):
        raise ConfigError(f"{rules_path}: rules must be an array")

    rules: list[ReplacementRule] = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigError(f"{rules_path}: rule #{position} must be an object")
        pattern = entry.get("pattern")
        replacement = entry.get("replacement", "")
        if not isinstance(pattern, str) or not pattern:
            raise ConfigError(f"{rules_path}: rule #{position} needs a non-empty string pattern")
        if not isinstance(replacement, str):
            raise ConfigError(f"{rules_path}: rule #{position} has non-string replacement")
        rules.append(ReplacementRule(pattern, replacement))
    return rules
