"""
errors.py
Error kinds raised by the stop-data pipeline.

Each one aborts the run with a clear message instead of letting a silent
wrong value (NaT, NaN, inf) flow into the report.
"""


class StopDataError(Exception):
    """Base class for every pipeline failure."""


class FetchError(StopDataError):
    """The source CSV could not be downloaded into the local cache."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not download {url}: {reason}")


class ParseError(StopDataError, ValueError):
    """A timestamp column holds values that do not match YYYY/MM/DD HH:MM:SS+ZZZZ."""

    def __init__(self, column: str, row_ids: list, samples: list):
        self.column = column
        self.row_ids = row_ids
        self.samples = samples
        shown = ", ".join(repr(s) for s in samples[:5])
        super().__init__(
            f"{len(row_ids):,} malformed value(s) in '{column}' "
            f"(rows {row_ids[:5]}{' ...' if len(row_ids) > 5 else ''}): {shown}"
        )


class UndefinedRatioError(StopDataError, ZeroDivisionError):
    """The denominator group of a ratio has a count of zero."""

    def __init__(self, numerator: str, denominator: str, where: str = ""):
        self.numerator = numerator
        self.denominator = denominator
        self.where = where
        suffix = f" for {where}" if where else ""
        super().__init__(
            f"Ratio {numerator}/{denominator} is undefined{suffix}: "
            f"no records for '{denominator}'"
        )
