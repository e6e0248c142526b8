from __future__ import annotations

from types import MappingProxyType
from typing import Sequence

from .model import Column, Matrix, Report


def default_column_name(index: int) -> str:
    return f"run{index}"


def build_matrix(reports: Sequence[Report]) -> Matrix:
    columns: list[Column] = []
    symbols: set[str] = set()
    for index, report in enumerate(reports):
        costs = report.costs()
        symbols.update(costs)
        columns.append(
            Column(
                name=report.name or default_column_name(index),
                costs=MappingProxyType(costs),
                total=report.total_cost,
            )
        )
    return Matrix(symbols=frozenset(symbols), columns=tuple(columns))
