from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Mapping

U64_MAX = 2**64 - 1


@dataclass(frozen=True)
class SymbolCost:
    name: str
    cost: int


@dataclass(frozen=True)
class Report:
    source: str
    symbols: tuple[SymbolCost, ...]
    name: str | None = None
    total: int | None = None

    def costs(self) -> dict[str, int]:
        return {symbol.name: symbol.cost for symbol in self.symbols}

    @property
    def total_cost(self) -> int:
        if self.total is not None:
            return self.total
        return sum(symbol.cost for symbol in self.symbols)


@dataclass(frozen=True)
class ReplacementRule:
    pattern: str
    replacement: str


@dataclass(frozen=True)
class Column:
    name: str
    costs: Mapping[str, int]
    total: int

    def cost(self, symbol: str) -> int:
        return self.costs.get(symbol, 0)


@dataclass(frozen=True)
class Matrix:
    symbols: frozenset[str]
    columns: tuple[Column, ...]

    @property
    def n_columns(self) -> int:
        return len(self.columns)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def totals(self) -> tuple[int, ...]:
        return tuple(column.total for column in self.columns)

    def cost(self, symbol: str, column: int) -> int:
        return self.columns[column].cost(symbol)

    def values(self, symbol: str) -> tuple[int, ...]:
        return tuple(column.cost(symbol) for column in self.columns)


class RelationKind(enum.Enum):
    PERCENT = "percent"
    RATIO = "ratio"
    UNDEFINED = "undefined"


@dataclass(frozen=True)
class Relation:
    kind: RelationKind
    value: float | None = None

    @classmethod
    def percent(cls, value: float) -> Relation:
        return cls(RelationKind.PERCENT, value)

    @classmethod
    def ratio(cls, value: float) -> Relation:
        return cls(RelationKind.RATIO, value)

    @classmethod
    def new(cls) -> Relation:
        """A cost that appeared from a zero baseline."""
        return cls(RelationKind.RATIO, math.inf)

    @classmethod
    def undefined(cls) -> Relation:
        return cls(RelationKind.UNDEFINED)

    @property
    def is_new(self) -> bool:
        return self.kind is RelationKind.RATIO and self.value == math.inf


@dataclass(frozen=True)
class DiffCell:
    value: int
    baseline: int
    delta: int
    relation: Relation
    reference: bool = False


@dataclass(frozen=True)
class Row:
    symbol: str
    cells: tuple[DiffCell, ...]

    @property
    def values(self) -> tuple[int, ...]:
        return tuple(cell.value for cell in self.cells)


@dataclass(frozen=True)
class BaselineMode:
    # None means "compare to the previous column".
    column: int | None

    @classmethod
    def fixed(cls, column: int) -> BaselineMode:
        return cls(column)

    @classmethod
    def previous(cls) -> BaselineMode:
        return cls(None)

    @property
    def is_previous(self) -> bool:
        return self.column is None


@dataclass(frozen=True)
class SortKey:
    # None sorts by symbol name.
    column: int | None
    descending: bool = False

    @classmethod
    def by_symbol(cls, *, descending: bool = False) -> SortKey:
        return cls(None, descending)

    @classmethod
    def by_column(cls, column: int, *, descending: bool = True) -> SortKey:
        return cls(column, descending)


class ShowItem(enum.Enum):
    VALUE = "value"
    DELTA = "delta"
    RELATION = "relation"


DEFAULT_SHOW = (ShowItem.DELTA, ShowItem.RELATION, ShowItem.VALUE)


@dataclass(frozen=True)
class CompareOptions:
    show_all: bool = False
    baseline: BaselineMode = field(default_factory=lambda: BaselineMode.fixed(0))
    sort: SortKey = field(default_factory=SortKey.by_symbol)
    rules: tuple[ReplacementRule, ...] = ()


@dataclass(frozen=True)
class Comparison:
    columns: tuple[str, ...]
    baseline: BaselineMode
    totals: Row
    rows: tuple[Row, ...]
