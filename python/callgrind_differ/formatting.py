from __future__ import annotations

import csv
import enum
import io
from dataclasses import dataclass
from typing import Iterable, Sequence

from .errors import ConfigError
from .model import DEFAULT_SHOW, Comparison, DiffCell, Relation, RelationKind, Row, ShowItem
from .parser import CSV_SYMBOL_HEADER

SYMBOL_HEADER = "Symbol"
CSV_ORDER = (ShowItem.VALUE, ShowItem.DELTA, ShowItem.RELATION)
CSV_SUFFIXES = {ShowItem.VALUE: "", ShowItem.DELTA: ":delta", ShowItem.RELATION: ":relation"}
NEW_MARKER = "new"

_RESET = "\x1b[0m"


class Tone(enum.Enum):
    GOOD = "good"
    BAD = "bad"
    NEUTRAL = "neutral"


_ANSI = {
    (Tone.GOOD, False): "\x1b[32m",
    (Tone.GOOD, True): "\x1b[32;1m",
    (Tone.BAD, False): "\x1b[31m",
    (Tone.BAD, True): "\x1b[31;1m",
}


@dataclass(frozen=True)
class StyledText:
    text: str
    tone: Tone = Tone.NEUTRAL
    strong: bool = False


@dataclass(frozen=True)
class TextRow:
    symbol: str
    cells: tuple[tuple[StyledText, ...], ...]


@dataclass(frozen=True)
class TextTable:
    headers: tuple[str, ...]
    totals: TextRow
    rows: tuple[TextRow, ...]


def normalize_show(show: Iterable[ShowItem] | None) -> tuple[ShowItem, ...]:
    items: list[ShowItem] = []
    for item in show or ():
        if item not in items:
            items.append(item)
    return tuple(items) or DEFAULT_SHOW


def tone_for(delta: int) -> Tone:
    if delta < 0:
        return Tone.GOOD
    if delta > 0:
        return Tone.BAD
    return Tone.NEUTRAL


def format_delta(delta: int) -> str:
    return "-" if delta == 0 else f"{delta:+d}"


def format_relation(cell: DiffCell) -> str:
    relation = cell.relation
    if cell.delta == 0 or relation.kind is RelationKind.UNDEFINED:
        return "-"
    if relation.is_new:
        return NEW_MARKER
    if relation.kind is RelationKind.RATIO:
        return f"{relation.value:.3f}x"
    return f"{relation.value:+.3f}%"


def _styled_cell(cell: DiffCell, show: Sequence[ShowItem]) -> tuple[StyledText, ...]:
    if cell.reference:
        return (StyledText(str(cell.value)),)
    tone = tone_for(cell.delta)
    parts: list[StyledText] = []
    for item in show:
        if item is ShowItem.VALUE:
            parts.append(StyledText(str(cell.value)))
        elif item is ShowItem.DELTA:
            parts.append(StyledText(format_delta(cell.delta), tone))
        else:
            strong = cell.delta > 0 and cell.relation.kind is RelationKind.RATIO
            parts.append(StyledText(format_relation(cell), tone, strong))
    return tuple(parts)


def _text_row(row: Row, show: Sequence[ShowItem]) -> TextRow:
    return TextRow(row.symbol, tuple(_styled_cell(cell, show) for cell in row.cells))


def project_table(comparison: Comparison, show: Iterable[ShowItem] | None = None) -> TextTable:
    items = normalize_show(show)
    return TextTable(
        headers=(SYMBOL_HEADER, *comparison.columns),
        totals=_text_row(comparison.totals, items),
        rows=tuple(_text_row(row, items) for row in comparison.rows),
    )


def paint(text: str, tone: Tone, strong: bool = False) -> str:
    code = _ANSI.get((tone, strong))
    if code is None:
        return text
    return f"{code}{text}{_RESET}"


def render_text_table(table: TextTable, *, color: bool = False) -> str:
    all_rows = (table.totals, *table.rows)
    n_columns = len(table.headers) - 1

    part_widths: list[list[int]] = []
    for column in range(n_columns):
        widths: list[int] = []
        for row in all_rows:
            for index, part in enumerate(row.cells[column]):
                if index == len(widths):
                    widths.append(0)
                widths[index] = max(widths[index], len(part.text))
        part_widths.append(widths)

    column_widths = []
    for column in range(n_columns):
        content = sum(part_widths[column]) + max(len(part_widths[column]) - 1, 0)
        column_widths.append(max(content, len(table.headers[column + 1])))
    symbol_width = max(len(row.symbol) for row in all_rows)
    symbol_width = max(symbol_width, len(table.headers[0]))

    def cell_text(row: TextRow, column: int) -> str:
        parts = row.cells[column]
        widths = part_widths[column]
        pieces = []
        for part, width in zip(parts, widths):
            text = paint(part.text, part.tone, part.strong) if color else part.text
            pieces.append(" " * (width - len(part.text)) + text)
        used = sum(widths) + len(widths) - 1
        return " " * (column_widths[column] - used) + " ".join(pieces)

    def line(row: TextRow) -> str:
        cells = [row.symbol.ljust(symbol_width)]
        cells.extend(cell_text(row, column) for column in range(n_columns))
        return " | ".join(cells).rstrip()

    header = [table.headers[0].ljust(symbol_width)]
    header.extend(name.center(column_widths[i]) for i, name in enumerate(table.headers[1:]))
    rule = "-+-".join(["-" * symbol_width, *("-" * width for width in column_widths)])

    lines = [" | ".join(header).rstrip(), rule, line(table.totals), rule]
    lines.extend(line(row) for row in table.rows)
    return "\n".join(lines)


def render_text(
    comparison: Comparison,
    show: Iterable[ShowItem] | None = None,
    *,
    color: bool = False,
) -> str:
    return render_text_table(project_table(comparison, show), color=color)


def encode_relation(cell: DiffCell) -> str:
    relation = cell.relation
    if cell.reference or relation.kind is RelationKind.UNDEFINED:
        return ""
    if relation.is_new:
        return NEW_MARKER
    if relation.kind is RelationKind.RATIO:
        return f"{relation.value!r}x"
    return f"{relation.value!r}%"


def parse_relation(text: str) -> Relation:
    value = text.strip()
    if not value:
        return Relation.undefined()
    if value == NEW_MARKER:
        return Relation.new()
    if value.endswith("%"):
        return Relation.percent(float(value[:-1]))
    if value.endswith("x"):
        return Relation.ratio(float(value[:-1]))
    raise ValueError(f"invalid relation field {text!r}")


def project_csv(
    comparison: Comparison,
    show: Iterable[ShowItem] | None = None,
    *,
    names: Sequence[str] | None = None,
) -> list[list[str]]:
    requested = set(normalize_show(show))
    items = [item for item in CSV_ORDER if item in requested]
    columns = list(comparison.columns)
    if names:
        if len(names) != len(columns):
            raise ConfigError(
                f"mismatch between csv names count {len(names)} and number of columns {len(columns)}"
            )
        columns = list(names)

    header = [CSV_SYMBOL_HEADER]
    for name in columns:
        header.extend(f"{name}{CSV_SUFFIXES[item]}" for item in items)

    records = [header]
    for row in comparison.rows:
        record = [row.symbol]
        for cell in row.cells:
            for item in items:
                if item is ShowItem.VALUE:
                    record.append(str(cell.value))
                elif item is ShowItem.DELTA:
                    record.append(str(cell.delta))
                else:
                    record.append(encode_relation(cell))
        records.append(record)
    return records


def write_csv(records: Iterable[Sequence[str]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerows(records)
    return buf.getvalue()


def render_csv(
    comparison: Comparison,
    show: Iterable[ShowItem] | None = None,
    *,
    names: Sequence[str] | None = None,
) -> str:
    return write_csv(project_csv(comparison, show, names=names))
