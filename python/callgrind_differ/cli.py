from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence, TextIO

from .compare import compare_reports
from .errors import EXIT_FAILURE, ConfigError, DifferError, ParseError
from .formatting import render_csv, render_text
from .model import DEFAULT_SHOW, BaselineMode, CompareOptions, ReplacementRule, ShowItem, SortKey
from .normalize import load_rules, parse_rule
from .parser import ReportInput, parse_reports

PROG = "callgrind-differ"

logger = logging.getLogger(__name__)

SHOW_CHOICES = {
    "ircount": ShowItem.VALUE,
    "value": ShowItem.VALUE,
    "ircountdiff": ShowItem.DELTA,
    "delta": ShowItem.DELTA,
    "percentagediff": ShowItem.RELATION,
    "relation": ShowItem.RELATION,
}


def parse_sort_key(text: str, n_columns: int) -> SortKey:
    value = text.strip()
    descending: bool | None = None
    if value.startswith("+"):
        descending, value = False, value[1:]
    elif value.startswith("-"):
        descending, value = True, value[1:]

    if value == "symbol":
        return SortKey.by_symbol(descending=bool(descending))
    column = _parse_column_ref(
        value,
        option="sort-by",
        aliases={"first-ir": 0, "last-ir": n_columns - 1},
    )
    return SortKey.by_column(column, descending=True if descending is None else descending)


def parse_baseline(text: str, n_columns: int) -> BaselineMode:
    value = text.strip()
    if value == "previous":
        return BaselineMode.previous()
    column = _parse_column_ref(
        value,
        option="relative-to",
        aliases={"first": 0, "last": n_columns - 1},
    )
    return BaselineMode.fixed(column)


def parse_show(values: Sequence[str]) -> tuple[ShowItem, ...]:
    items: list[ShowItem] = []
    for raw in values:
        for token in raw.split(","):
            name = token.strip().lower()
            if not name:
                continue
            if name == "all":
                return DEFAULT_SHOW
            if name not in SHOW_CHOICES:
                raise ConfigError(
                    f"invalid show value '{name}'; expected one of: all, ircount, percentagediff, ircountdiff"
                )
            item = SHOW_CHOICES[name]
            if item not in items:
                items.append(item)
    return tuple(items) or DEFAULT_SHOW


def color_enabled(mode: str, stream: TextIO | None = None) -> bool:
    if mode == "always":
        return True
    if mode == "never":
        return False
    out = stream or sys.stdout
    return out.isatty() and "NO_COLOR" not in os.environ


def _parse_column_ref(value: str, *, option: str, aliases: dict[str, int]) -> int:
    if value in aliases:
        return aliases[value]
    if value.startswith("column"):
        number = value[len("column") :]
        if not number:
            raise ConfigError(f"{option}=column needs a 0-index, e.g. column3 for the 4th column")
        if not number.isdigit():
            raise ConfigError(f"invalid column number: {number}")
        return int(number)
    accepted = ", ".join([*aliases, "columnX"])
    raise ConfigError(f"invalid {option} '{value}'; accepted values are: {accepted}")


def _split_names(values: Sequence[str] | None) -> list[str]:
    names: list[str] = []
    for raw in values or ():
        names.extend(name.strip() for name in raw.split(","))
    return names


def _read_report(path: Path) -> str:
    data = path.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        line_number = data.count(b"\n", 0, exc.start) + 1
        line = data.split(b"\n")[line_number - 1].rstrip(b"\r").decode("utf-8", errors="replace")
        raise ParseError(str(path), line_number, line, reason="invalid UTF-8") from exc


def _load_inputs(paths: Sequence[Path]) -> list[ReportInput]:
    inputs: list[ReportInput] = []
    for path in paths:
        kind = "csv" if path.suffix.lower() == ".csv" else "annotate"
        inputs.append(
            ReportInput(
                source=str(path),
                text=_read_report(path),
                name=path.name,
                kind=kind,
            )
        )
    return inputs


def _collect_rules(args: argparse.Namespace) -> tuple[ReplacementRule, ...]:
    rules: list[ReplacementRule] = []
    if args.rules_file is not None:
        rules.extend(load_rules(args.rules_file))
    rules.extend(parse_rule(text) for text in args.replace or ())
    return tuple(rules)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Compare callgrind_annotate outputs and keep track of instruction counts over time",
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        type=Path,
        help="callgrind_annotate outputs or .csv exports, oldest first",
    )
    parser.add_argument("-a", "--all", action="store_true", help="show rows without any change")
    parser.add_argument(
        "--sort-by",
        default="symbol",
        help=(
            "[+|-](symbol|first-ir|last-ir|columnX), columns sort descending unless prefixed "
            "with +; use the --sort-by=-VALUE form for a leading -"
        ),
    )
    parser.add_argument("--relative-to", default="first", help="first, last, previous or columnX")
    parser.add_argument(
        "--show",
        action="append",
        default=[],
        help="comma-separated list of ircount, ircountdiff, percentagediff, all",
    )
    parser.add_argument(
        "--replace",
        action="append",
        metavar="PATTERN=REPLACEMENT",
        help="rewrite symbol names before merging (repeatable, applied in order)",
    )
    parser.add_argument("--rules-file", type=Path, default=None, help="JSON file of replacement rules")
    parser.add_argument(
        "--csv-export",
        type=Path,
        default=None,
        help="write the comparison as CSV ('-' for stdout)",
    )
    parser.add_argument("--csv-names", action="append", help="comma-separated column names for the CSV export")
    parser.add_argument("--color", choices=["auto", "always", "never"], default="auto")
    parser.add_argument("-j", "--jobs", type=int, default=1, help="number of reports parsed in parallel")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _run(args: argparse.Namespace) -> int:
    rules = _collect_rules(args)
    show = parse_show(args.show)
    reports = parse_reports(_load_inputs(args.inputs), jobs=args.jobs)
    if not reports:
        raise ConfigError("no input run")
    n_columns = len(reports)

    options = CompareOptions(
        show_all=args.all,
        baseline=parse_baseline(args.relative_to, n_columns),
        sort=parse_sort_key(args.sort_by, n_columns),
        rules=rules,
    )
    comparison = compare_reports(reports, options)
    logger.debug("%d rows to display", len(comparison.rows))

    text = render_text(comparison, show, color=color_enabled(args.color))
    if args.csv_export is not None:
        csv_text = render_csv(comparison, show, names=_split_names(args.csv_names) or None)
        if str(args.csv_export) == "-":
            sys.stdout.write(csv_text)
            return 0
        args.csv_export.write_text(csv_text, encoding="utf-8")

    print(text)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return _run(args)
    except DifferError as exc:
        print(f"{PROG}: error: {exc}", file=sys.stderr)
        return exc.exit_code
    except OSError as exc:
        print(f"{PROG}: error: {exc}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
