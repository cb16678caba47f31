"""
aggregation.py
Grouped counts and ratios over cleaned stop records.

Every function takes a frame and returns a new, deterministically ordered
table. Categorical keys (e.g. the restricted gender column) keep their
display order; other keys sort naturally.
"""

import logging
from typing import Sequence, Union

import pandas as pd

from errors import UndefinedRatioError

log = logging.getLogger(__name__)

Keys = Union[str, Sequence[str]]


def _as_list(keys: Keys) -> list:
    return [keys] if isinstance(keys, str) else list(keys)


# ── Grouped counts ────────────────────────────────────────────────────────────

def grouped_count(df: pd.DataFrame, keys: Keys) -> pd.DataFrame:
    """
    Count rows per observed combination of `keys`.

    Missing key values form their own group, so the counts always add up to
    len(df).
    """
    keys = _as_list(keys)
    counts = (
        df.groupby(keys, observed=True, dropna=False, sort=True)
        .size()
        .reset_index(name="count")
    )
    return counts


def year_bucket(dates: pd.Series) -> pd.Series:
    """Truncate each date to January 1st of its year."""
    return dates.dt.to_period("Y").dt.to_timestamp()


def count_by_year(df: pd.DataFrame, column: str = "gender") -> pd.DataFrame:
    return grouped_count(df.assign(year=year_bucket(df["date"])), [column, "year"])


def daily_counts(df: pd.DataFrame, column: str = "gender") -> pd.DataFrame:
    return grouped_count(df, [column, "date"])


# ── Ratios ────────────────────────────────────────────────────────────────────

def _label_count(counts: pd.DataFrame, column: str, label) -> int:
    return int(counts.loc[counts[column] == label, "count"].sum())


def ratio(counts: pd.DataFrame, numerator, denominator, column: str = "gender") -> float:
    """
    count(numerator) / count(denominator) from a grouped-count table.

    Raises UndefinedRatioError instead of returning inf/NaN when the
    denominator has no records.
    """
    den = _label_count(counts, column, denominator)
    if den == 0:
        raise UndefinedRatioError(str(numerator), str(denominator))
    return _label_count(counts, column, numerator) / den


def ratio_by(
    counts: pd.DataFrame,
    numerator,
    denominator,
    column: str = "gender",
    by: str = "year",
) -> pd.DataFrame:
    """Per-`by` ratio table, e.g. male/female stops for each year."""
    wide = (
        counts.assign(**{column: counts[column].astype(object)})
        .pivot_table(index=by, columns=column, values="count", aggfunc="sum", fill_value=0)
        .reindex(columns=[numerator, denominator], fill_value=0)
        .sort_index()
    )

    undefined = wide.index[wide[denominator] == 0]
    if len(undefined):
        where = ", ".join(str(v.year) if isinstance(v, pd.Timestamp) else str(v)
                          for v in undefined)
        raise UndefinedRatioError(str(numerator), str(denominator), f"{by} {where}")

    out = pd.DataFrame({
        by: wide.index,
        numerator: wide[numerator].to_numpy(),
        denominator: wide[denominator].to_numpy(),
        "ratio": (wide[numerator] / wide[denominator]).to_numpy(),
    })
    return out


def flag_proportion(df: pd.DataFrame, column: str, flag: str) -> pd.DataFrame:
    """
    Share of rows with `flag` True within each `column` category.

    Returns one row per category with true_count, false_count and
    proportion = true / (true + false), always within [0, 1].
    """
    counts = grouped_count(df, [column, flag]).dropna(subset=[column])
    is_true = counts[flag].astype(bool)

    by_label = counts.groupby(column, observed=True, sort=True)["count"]
    total = by_label.sum()
    true_count = (
        counts["count"].where(is_true, 0)
        .groupby(counts[column], observed=True, sort=True)
        .sum()
    )

    table = pd.DataFrame({
        column: total.index,
        "true_count": true_count.to_numpy(),
        "false_count": (total - true_count).to_numpy(),
    })
    # every observed category has at least one row, so the total is never zero
    table["proportion"] = table["true_count"] / (table["true_count"] + table["false_count"])
    return table


# ── Adapter boundary ──────────────────────────────────────────────────────────

def as_records(table: pd.DataFrame) -> list:
    """Plain, ordered tuples for consumers that should not depend on pandas."""
    return list(table.itertuples(index=False, name=None))
