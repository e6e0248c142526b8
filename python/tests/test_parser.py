from __future__ import annotations

import pytest

from callgrind_differ.errors import ParseError
from callgrind_differ.parser import (
    ReportInput,
    parse_cost,
    parse_csv_reports,
    parse_report,
    parse_reports,
)

ANNOTATE_OUTPUT = """\
--------------------------------------------------------------------------------
Profile data file 'callgrind.out.2741' (creator: callgrind-3.22.0)
--------------------------------------------------------------------------------
I1 cache:
D1 cache:
LL cache:
Timerange: Basic block 0 - 41827
Trigger: Program termination
Profiled target:  ./target/release/bench 100 (PID 2741, part 1)
Events recorded:  Ir
Events shown:     Ir
Event sort order: Ir
Thresholds:       99
Include dirs:
User annotated:
Auto-annotation:  on

--------------------------------------------------------------------------------
Ir
--------------------------------------------------------------------------------
14,418,621,168 (100.0%)  PROGRAM TOTALS

--------------------------------------------------------------------------------
Ir                      file:function
--------------------------------------------------------------------------------
3,932,711,340 (27.28%)  ???:yaml_rust2::scanner::Scanner<T>::fetch_more_tokens [/opt/bench]
1,000,000,000 ( 6.94%)  src/parser.rs:<yaml_rust2::parser::Event as core::cmp::PartialEq>::eq [/opt/bench]
  500,000,000 ( 3.47%)  ./string/../sysdeps/x86_64/multiarch/memmove-vec-unaligned-erms.S:memcpy [/usr/lib/libc.so.6]
  250,000,000 ( 1.73%)  ???:yaml_rust2::scanner::Scanner<T>::fetch_more_tokens [/opt/bench]

--------------------------------------------------------------------------------
-- Auto-annotated source: src/parser.rs
--------------------------------------------------------------------------------
Ir

          .           fn eq(&self, other: &Self) -> bool {
        12 ( 0.00%)      self.kind == other.kind
"""


def _costs(text: str) -> dict[str, int]:
    return parse_report(text).costs()


def test_parse_report_reads_function_table() -> None:
    report = parse_report(ANNOTATE_OUTPUT, source="callgrind.1.txt", name="v1")

    assert report.source == "callgrind.1.txt"
    assert report.name == "v1"
    assert report.total == 14_418_621_168
    assert report.costs() == {
        "yaml_rust2::scanner::Scanner<T>::fetch_more_tokens": 4_182_711_340,
        "<yaml_rust2::parser::Event as core::cmp::PartialEq>::eq": 1_000_000_000,
        "memcpy": 500_000_000,
    }


def test_parse_report_keeps_first_occurrence_order() -> None:
    report = parse_report("10 b\n20 a\n5 b\n")
    assert [symbol.name for symbol in report.symbols] == ["b", "a"]
    assert [symbol.cost for symbol in report.symbols] == [15, 20]


def test_duplicate_symbols_accumulate() -> None:
    text = "100 foo\n1,000 foo\n50 bar\n1 foo\n"
    assert _costs(text) == {"foo": 1101, "bar": 50}


def test_group_separators_are_stripped() -> None:
    assert _costs("1,234,567 a\n1.234 b\n1'000 c\n1_0 d\n") == {
        "a": 1_234_567,
        "b": 1234,
        "c": 1000,
        "d": 10,
    }


def test_non_data_lines_are_skipped() -> None:
    text = "\n".join(
        [
            "Events recorded:  Ir",
            "",
            "-----------------------------",
            "   ",
            "100 (50.0%)  file.c:main",
            "Thresholds:       99",
        ]
    )
    assert _costs(text) == {"main": 100}


def test_call_tree_lines_are_skipped() -> None:
    text = "\n".join(
        [
            "  2,000 (10.0%)  < file.c:caller (1x) [/bin/prog]",
            " 10,000 (50.0%)  *  file.c:func [/bin/prog]",
            "  3,000 (15.0%)  >   file.c:callee (2x) [/bin/prog]",
        ]
    )
    assert _costs(text) == {"func": 10_000}


def test_symbol_without_location_is_kept_whole() -> None:
    assert _costs("42 std::vec::Vec<T>::push\n") == {"std::vec::Vec<T>::push": 42}


def test_totals_line_is_not_a_symbol() -> None:
    report = parse_report("300 (100.0%)  PROGRAM TOTALS\n200 a\n")
    assert report.total == 300
    assert report.costs() == {"a": 200}


def test_total_cost_falls_back_to_symbol_sum() -> None:
    report = parse_report("200 a\n50 b\n")
    assert report.total is None
    assert report.total_cost == 250


def test_malformed_cost_is_fatal_with_position() -> None:
    text = "100 a\n12x4 broken_symbol\n"
    with pytest.raises(ParseError) as excinfo:
        parse_report(text, source="run2.txt")

    err = excinfo.value
    assert err.source == "run2.txt"
    assert err.line_number == 2
    assert err.line == "12x4 broken_symbol"
    assert "run2.txt:2" in str(err)


def test_cost_beyond_u64_is_rejected() -> None:
    with pytest.raises(ParseError):
        parse_cost("18,446,744,073,709,551,616", source="s", line_number=1, line="")
    assert parse_cost("18,446,744,073,709,551,615", source="s", line_number=1, line="") == 2**64 - 1


def test_parse_csv_reports_with_header() -> None:
    text = "symbol,v1,v1:delta,v2,v2:delta,v2:relation\nfoo,100,0,80,-20,-20.0%\nbar,0,0,5,5,new\n"

    reports = parse_csv_reports(text, source="export.csv")

    assert [report.name for report in reports] == ["v1", "v2"]
    assert reports[0].costs() == {"foo": 100, "bar": 0}
    assert reports[1].costs() == {"foo": 80, "bar": 5}


def test_parse_csv_reports_without_header() -> None:
    reports = parse_csv_reports("foo,1,2,3\nbar,4,5,6\n")

    assert [report.name for report in reports] == [None, None, None]
    assert [report.costs()["bar"] for report in reports] == [4, 5, 6]


def test_parse_csv_reports_rejects_bad_values() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_csv_reports("symbol,a\nfoo,1\nbar,oops\n", source="bad.csv")
    assert excinfo.value.line_number == 3


def test_parse_reports_preserves_order_with_workers() -> None:
    inputs = [ReportInput(source=f"r{i}", text=f"{i} sym\n", name=f"r{i}") for i in range(1, 6)]

    reports = parse_reports(inputs, jobs=3)

    assert [report.name for report in reports] == ["r1", "r2", "r3", "r4", "r5"]
    assert [report.costs()["sym"] for report in reports] == [1, 2, 3, 4, 5]


def test_parse_reports_expands_csv_inputs_in_place() -> None:
    inputs = [
        ReportInput(source="a.txt", text="1 x\n", name="a"),
        ReportInput(source="b.csv", text="symbol,b,c\nx,2,3\n", kind="csv"),
        ReportInput(source="d.txt", text="4 x\n", name="d"),
    ]

    reports = parse_reports(inputs)

    assert [report.name for report in reports] == ["a", "b", "c", "d"]


def test_parse_reports_propagates_parse_errors() -> None:
    inputs = [
        ReportInput(source="ok.txt", text="1 x\n"),
        ReportInput(source="bad.txt", text="1z x\n"),
    ]
    with pytest.raises(ParseError) as excinfo:
        parse_reports(inputs, jobs=2)
    assert excinfo.value.source == "bad.txt"


def test_parse_csv_reports_other_headers_need_non_integer_second_field() -> None:
    reports = parse_csv_reports("function name,7\nfoo,1\n")

    assert reports[0].name is None
    assert reports[0].costs() == {"function name": 7, "foo": 1}
