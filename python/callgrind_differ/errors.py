from __future__ import annotations

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_PARSE_ERROR = 3


class DifferError(Exception):
    exit_code = EXIT_FAILURE


class ParseError(DifferError, ValueError):
    """A report line carries a cost that cannot be read as an unsigned 64-bit count."""

    exit_code = EXIT_PARSE_ERROR

    def __init__(
        self,
        source: str,
        line_number: int,
        line: str,
        reason: str = "cannot parse cost",
    ) -> None:
        self.source = source
        self.line_number = line_number
        self.line = line
        super().__init__(f"{source}:{line_number}: {reason} in line: {line!r}")


class ConfigError(DifferError, ValueError):
    exit_code = EXIT_CONFIG_ERROR
