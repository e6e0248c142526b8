from __future__ import annotations

import concurrent.futures
import csv
import io
import logging
import re
from dataclasses import dataclass
from typing import Iterable

from .errors import ConfigError, ParseError
from .model import U64_MAX, Report, SymbolCost

logger = logging.getLogger(__name__)

INPUT_KINDS = {"annotate", "csv"}
TOTALS_LABEL = "PROGRAM TOTALS"
CSV_SYMBOL_HEADER = "symbol"

# Thousands separators emitted by callgrind_annotate under various locales.
_GROUP_SEPARATORS = str.maketrans("", "", ",.'_")
_DIGITS = re.compile(r"[0-9]+")

_DATA_LINE = re.compile(r"^\s*(?P<cost>[0-9]\S*)\s+(?P<rest>\S.*?)\s*$")
_PERCENTAGE = re.compile(r"^\(\s*[0-9.]+%(?:,\s*[0-9.]+%)*\)\s*")
_OBJECT_SUFFIX = re.compile(r"\s+\[[^\[\]]*\]$")
_LOCATION = re.compile(r"^(?P<file>.*?[^:]):(?!:)(?P<symbol>.+)$")
_CALL_TREE_MARKER = re.compile(r"^[<>]\s")
_FUNCTION_TABLE_HEADER = re.compile(r"^Ir(?:\s|_).*function")

_CSV_DERIVED_SUFFIXES = (":delta", ":relation")


@dataclass(frozen=True)
class ReportInput:
    source: str
    text: str
    name: str | None = None
    kind: str = "annotate"


def parse_report(text: str, *, source: str = "<report>", name: str | None = None) -> Report:
    lines = text.splitlines()
    table_header = _find_function_table(lines)
    costs: dict[str, int] = {}
    total: int | None = None
    seen_data = False
    skipped = 0

    for line_number, line in enumerate(lines, start=1):
        if table_header is not None and line_number <= table_header:
            # Only the totals line is of interest before the function table.
            if TOTALS_LABEL in line:
                entry = _parse_data_line(line, source=source, line_number=line_number)
                if entry is not None:
                    total = entry[1]
            continue
        if table_header is not None and seen_data and _ends_table(line):
            break

        entry = _parse_data_line(line, source=source, line_number=line_number)
        if entry is None:
            skipped += 1
            continue
        symbol, cost = entry
        if symbol == TOTALS_LABEL:
            total = cost
            continue
        seen_data = True
        costs[symbol] = costs.get(symbol, 0) + cost

    logger.debug(
        "%s: parsed %d symbols (%d lines skipped, total=%s)",
        source,
        len(costs),
        skipped,
        total,
    )
    return Report(
        source=source,
        name=name,
        symbols=tuple(SymbolCost(symbol, cost) for symbol, cost in costs.items()),
        total=total,
    )


def parse_cost(token: str, *, source: str, line_number: int, line: str) -> int:
    digits = token.translate(_GROUP_SEPARATORS)
    if not _DIGITS.fullmatch(digits):
        raise ParseError(source, line_number, line)
    cost = int(digits)
    if cost > U64_MAX:
        raise ParseError(source, line_number, line, reason="cost exceeds 64-bit range")
    return cost


def parse_csv_reports(text: str, *, source: str = "<csv>") -> list[Report]:
    reader = csv.reader(io.StringIO(text))
    header: list[str] | None = None
    value_fields: list[tuple[int, str | None]] = []
    columns: list[dict[str, int]] = []

    for record in reader:
        if not record:
            continue
        if not value_fields:
            if _is_csv_header(record):
                header = record
                value_fields = [
                    (index, field.strip())
                    for index, field in enumerate(record[1:], start=1)
                    if not field.strip().endswith(_CSV_DERIVED_SUFFIXES)
                ]
                if not value_fields:
                    raise ParseError(
                        source, reader.line_num, ",".join(record), reason="no value column"
                    )
                columns = [{} for _ in value_fields]
                continue
            value_fields = [(index, None) for index in range(1, len(record))]
            columns = [{} for _ in value_fields]
            if not value_fields:
                raise ParseError(source, reader.line_num, ",".join(record), reason="no value column")

        line = ",".join(record)
        symbol = record[0]
        for column, (index, _) in zip(columns, value_fields):
            raw = record[index] if index < len(record) else ""
            cost = parse_cost(raw.strip(), source=source, line_number=reader.line_num, line=line)
            column[symbol] = column.get(symbol, 0) + cost

    logger.debug(
        "%s: loaded %d columns from csv (header=%s)", source, len(columns), header is not None
    )
    return [
        Report(
            source=source,
            name=name,
            symbols=tuple(SymbolCost(symbol, cost) for symbol, cost in column.items()),
        )
        for column, (_, name) in zip(columns, value_fields)
    ]


def parse_input(item: ReportInput) -> list[Report]:
    if item.kind not in INPUT_KINDS:
        raise ConfigError(f"unknown input kind '{item.kind}' for {item.source}")
    if item.kind == "csv":
        return parse_csv_reports(item.text, source=item.source)
    return [parse_report(item.text, source=item.source, name=item.name)]


def parse_reports(inputs: Iterable[ReportInput], *, jobs: int = 1) -> list[Report]:
    items = list(inputs)
    if jobs <= 0:
        raise ConfigError("jobs must be > 0")
    if jobs == 1 or len(items) <= 1:
        parsed = [parse_input(item) for item in items]
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=jobs) as pool:
            parsed = list(pool.map(parse_input, items))
    return [report for group in parsed for report in group]


def _parse_data_line(line: str, *, source: str, line_number: int) -> tuple[str, int] | None:
    match = _DATA_LINE.match(line)
    if match is None:
        return None
    cost = parse_cost(match.group("cost"), source=source, line_number=line_number, line=line)
    symbol = _clean_symbol(match.group("rest"))
    if symbol is None:
        return None
    return symbol, cost


def _clean_symbol(rest: str) -> str | None:
    rest = _PERCENTAGE.sub("", rest, count=1)
    if not rest or _CALL_TREE_MARKER.match(rest):
        return None
    if rest.startswith("* "):
        rest = rest[2:].lstrip()
    rest = _OBJECT_SUFFIX.sub("", rest)
    location = _LOCATION.match(rest)
    if location is not None:
        rest = location.group("symbol")
    rest = rest.strip()
    return rest or None


def _find_function_table(lines: list[str]) -> int | None:
    for line_number, line in enumerate(lines, start=1):
        if _FUNCTION_TABLE_HEADER.match(line):
            return line_number
    return None


def _ends_table(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("--")


def _is_csv_header(record: list[str]) -> bool:
    first = record[0].strip().lower()
    # Our own exports are headers whatever the column names look like.
    if first == CSV_SYMBOL_HEADER:
        return True
    if "symbol" not in first and "name" not in first:
        return False
    if len(record) < 2:
        return True
    return not _DIGITS.fullmatch(record[1].strip().translate(_GROUP_SEPARATORS))
