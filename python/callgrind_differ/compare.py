from __future__ import annotations

import logging
from typing import Iterable, Sequence

from .errors import ConfigError
from .matrix import build_matrix
from .model import (
    BaselineMode,
    CompareOptions,
    Comparison,
    DiffCell,
    Matrix,
    Relation,
    Report,
    Row,
    SortKey,
)
from .normalize import normalize_report

logger = logging.getLogger(__name__)

RATIO_THRESHOLD_PERCENT = 1000.0
TOTALS_ROW_NAME = "Total"


def compute_relation(value: int, baseline: int) -> Relation:
    if baseline == 0:
        if value == 0:
            return Relation.undefined()
        return Relation.new()

    percent = (value - baseline) * 100.0 / baseline
    if abs(percent) >= RATIO_THRESHOLD_PERCENT:
        return Relation.ratio(value / baseline)
    return Relation.percent(percent)


def baseline_column(mode: BaselineMode, column: int) -> int | None:
    """Index compared against ``column``, or None when it is a reference column."""
    if mode.is_previous:
        return column - 1 if column > 0 else None
    if column == mode.column:
        return None
    return mode.column


def validate_baseline(mode: BaselineMode, n_columns: int) -> None:
    if mode.is_previous:
        return
    if not 0 <= mode.column < n_columns:
        raise ConfigError(f"invalid baseline column {mode.column} (got {n_columns} columns)")


def diff_row(symbol: str, values: Sequence[int], mode: BaselineMode) -> Row:
    cells: list[DiffCell] = []
    for column, value in enumerate(values):
        reference = baseline_column(mode, column)
        if reference is None:
            cells.append(DiffCell(value, value, 0, Relation.undefined(), reference=True))
            continue
        baseline = values[reference]
        cells.append(
            DiffCell(
                value=value,
                baseline=baseline,
                delta=value - baseline,
                relation=compute_relation(value, baseline),
            )
        )
    return Row(symbol, tuple(cells))


def diff_matrix(matrix: Matrix, mode: BaselineMode) -> tuple[Row, ...]:
    validate_baseline(mode, matrix.n_columns)
    return tuple(diff_row(symbol, matrix.values(symbol), mode) for symbol in sorted(matrix.symbols))


def diff_totals(matrix: Matrix, mode: BaselineMode) -> Row:
    validate_baseline(mode, matrix.n_columns)
    return diff_row(TOTALS_ROW_NAME, matrix.totals, mode)


def is_unchanged(row: Row) -> bool:
    values = row.values
    if len(values) <= 1:
        return False
    return all(value == values[0] for value in values[1:])


def filter_rows(rows: Iterable[Row], show_all: bool) -> list[Row]:
    if show_all:
        return list(rows)
    return [row for row in rows if not is_unchanged(row)]


def sort_rows(rows: Iterable[Row], key: SortKey, n_columns: int) -> list[Row]:
    if key.column is None:
        return sorted(rows, key=lambda row: row.symbol, reverse=key.descending)
    if not 0 <= key.column < n_columns:
        raise ConfigError(f"invalid sort column {key.column} (got {n_columns} columns)")

    column = key.column
    # Names always break ties in ascending order, whatever the cost order.
    by_name = sorted(rows, key=lambda row: row.symbol)
    return sorted(by_name, key=lambda row: row.cells[column].value, reverse=key.descending)


def compare_reports(reports: Sequence[Report], options: CompareOptions | None = None) -> Comparison:
    opts = options or CompareOptions()
    if not reports:
        raise ConfigError("no input report")

    normalized = [normalize_report(report, opts.rules) for report in reports]
    matrix = build_matrix(normalized)
    validate_baseline(opts.baseline, matrix.n_columns)
    if opts.sort.column is not None and not 0 <= opts.sort.column < matrix.n_columns:
        raise ConfigError(
            f"invalid sort column {opts.sort.column} (got {matrix.n_columns} columns)"
        )
    logger.debug("matrix: %d symbols x %d columns", len(matrix.symbols), matrix.n_columns)

    rows = diff_matrix(matrix, opts.baseline)
    kept = filter_rows(rows, opts.show_all)
    logger.debug("filter: kept %d of %d rows", len(kept), len(rows))
    ordered = sort_rows(kept, opts.sort, matrix.n_columns)

    return Comparison(
        columns=matrix.column_names,
        baseline=opts.baseline,
        totals=diff_totals(matrix, opts.baseline),
        rows=tuple(ordered),
    )
