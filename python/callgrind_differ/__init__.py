"""Compare callgrind_annotate outputs across runs."""

from .compare import compare_reports, filter_rows, sort_rows
from .errors import ConfigError, ParseError
from .formatting import render_csv, render_text
from .matrix import build_matrix
from .model import BaselineMode, CompareOptions, ReplacementRule, ShowItem, SortKey
from .normalize import apply_rules, normalize_report
from .parser import ReportInput, parse_report, parse_reports

__all__ = [
    "BaselineMode",
    "CompareOptions",
    "ConfigError",
    "ParseError",
    "ReplacementRule",
    "ReportInput",
    "ShowItem",
    "SortKey",
    "apply_rules",
    "build_matrix",
    "compare_reports",
    "filter_rows",
    "normalize_report",
    "parse_report",
    "parse_reports",
    "render_csv",
    "render_text",
    "sort_rows",
]
