"""
data_cleaning.py
Cleaning Pipeline for Minneapolis Police Stop Data

Design principles:
- Every transformation is logged with before/after counts
- No silent data loss: malformed timestamps either abort the run or are
  dropped with a warning and an audit entry
- Functions are pure (input → new output), the canonical table is never mutated
- A single `run_pipeline()` call reproduces the cleaned tables end-to-end
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from errors import ParseError

log = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

# 2016 and 2023 are only partially covered by the export; keep full years only
STUDY_START = pd.Timestamp("2016-12-31")   # exclusive
STUDY_END   = pd.Timestamp("2023-01-01")   # exclusive

GENDER_CATEGORIES = ("Male", "Female", "Gender Non-Conforming")

DATE_FORMAT = "%Y/%m/%d"
TIME_FORMAT = "%H:%M:%S"

# "YYYY/MM/DD" then "HH:MM:SS" with a numeric UTC offset (+0000, +00:00, +00)
TIMESTAMP_PATTERN = r"^(?P<date>\d{4}/\d{2}/\d{2})\s+(?P<time>\S+)$"
TIME_PATTERN      = r"^(\d{2}:\d{2}:\d{2})(?:[+-]\d{2}(?::?\d{2})?|Z)$"

# Raw name → normalized name, for the columns copied through unchanged
PASSTHROUGH_COLUMNS = {
    "OBJECTID":             "id",
    "masterIncidentNumber": "incident_number",
    "reason":               "reason",
    "problem":              "problem",
    "callDisposition":      "call_disposition",
    "preRace":              "pre_race",
    "race":                 "race",
    "gender":               "gender",
    "lat":                  "latitude",
    "long":                 "longitude",
    "x":                    "x",
    "y":                    "y",
    "policePrecinct":       "precinct",
    "neighborhood":         "neighborhood",
}

FLAG_COLUMNS = {
    "citationIssued": "citation_issued",
    "personSearch":   "person_searched",
    "vehicleSearch":  "vehicle_searched",
}

TIMESTAMP_COLUMNS = {
    "responseDate":   ("date", "time"),
    "lastUpdateDate": ("last_update_date", "last_update_time"),
}

STOP_COLUMNS = [
    "id", "incident_number", "date", "time", "reason", "problem",
    "call_disposition", "citation_issued", "person_searched", "vehicle_searched",
    "pre_race", "race", "gender", "latitude", "longitude", "x", "y",
    "precinct", "neighborhood", "last_update_date", "last_update_time",
]

ON_ERROR_CHOICES = ("raise", "skip")


# ── Audit Trail ───────────────────────────────────────────────────────────────

class AuditTrail:
    """Tracks every cleaning decision with before/after row counts and change stats."""

    def __init__(self, total_rows: int):
        self.total_rows = total_rows
        self.steps: list[dict] = []

    def record(self, step: str, description: str, changed: int, detail: str = ""):
        pct = changed / self.total_rows * 100 if self.total_rows else 0.0
        self.steps.append({
            "step": step,
            "description": description,
            "rows_affected": changed,
            "pct_affected": round(pct, 2),
            "detail": detail,
        })
        log.info(f"[{step}] {description} → {changed:,} rows affected ({pct:.1f}%) {detail}")

    def save(self, path: str):
        class _NumpyEncoder(json.JSONEncoder):
            """Convert numpy int/float types to native Python before serialising."""
            def default(self, obj):
                if isinstance(obj, np.integer):
                    return int(obj)
                if isinstance(obj, np.floating):
                    return float(obj)
                if isinstance(obj, np.ndarray):
                    return obj.tolist()
                return super().default(obj)

        with open(path, "w") as f:
            json.dump({"total_rows": self.total_rows, "steps": self.steps}, f,
                      indent=2, cls=_NumpyEncoder)
        log.info(f"Audit trail saved → {path}")

    def summary(self):
        print("\n" + "=" * 65)
        print("CLEANING AUDIT SUMMARY")
        print("=" * 65)
        print(f"{'Step':<26} {'Affected':>10} {'%':>7}  Description")
        print("-" * 65)
        for s in self.steps:
            print(f"{s['step']:<26} {s['rows_affected']:>10,} {s['pct_affected']:>6.1f}%  {s['description']}")
        print("=" * 65)


def _record(audit: Optional[AuditTrail], *args, **kwargs):
    if audit is not None:
        audit.record(*args, **kwargs)


# ── Row Normalizer ────────────────────────────────────────────────────────────

def split_timestamp(series: pd.Series) -> pd.DataFrame:
    """
    Split "YYYY/MM/DD HH:MM:SS+ZZZZ" values into a `date` and a `time` column.

    The UTC offset is consumed and dropped. Rows that do not match the shape
    (including missing values) get NaT in both columns; callers decide whether
    that is fatal.
    """
    text = series.astype("string").str.strip()
    parts = text.str.extract(TIMESTAMP_PATTERN)

    dates = pd.to_datetime(parts["date"], format=DATE_FORMAT, errors="coerce")
    clock = parts["time"].str.extract(TIME_PATTERN, expand=False)
    times = pd.to_datetime(clock, format=TIME_FORMAT, errors="coerce")

    valid = dates.notna() & times.notna()
    return pd.DataFrame({
        "date": dates.where(valid),
        "time": times.dt.time.where(valid),
    }, index=series.index)


def normalize_flag(series: pd.Series) -> pd.Series:
    """Exactly "YES" → True. "NO", "", missing and anything else → False."""
    return series.eq("YES").fillna(False).astype(bool)


def normalize_stops(
    raw: pd.DataFrame,
    audit: Optional[AuditTrail] = None,
    on_error: str = "raise",
) -> pd.DataFrame:
    """
    Turn raw export rows into stop records (see STOP_COLUMNS).

    on_error="raise" aborts on the first timestamp column holding malformed
    values; on_error="skip" drops those rows and logs how many went.
    """
    if on_error not in ON_ERROR_CHOICES:
        raise ValueError(f"on_error must be one of {ON_ERROR_CHOICES}, got {on_error!r}")

    parsed = {col: split_timestamp(raw[col]) for col in TIMESTAMP_COLUMNS}

    bad = pd.Series(False, index=raw.index)
    for col, frame in parsed.items():
        col_bad = frame["date"].isna()
        if not col_bad.any():
            continue
        if on_error == "raise":
            raise ParseError(
                col,
                raw.loc[col_bad, "OBJECTID"].tolist(),
                raw.loc[col_bad, col].tolist(),
            )
        log.warning(f"Skipping {col_bad.sum():,} rows with malformed '{col}'")
        bad |= col_bad

    out = pd.DataFrame(index=raw.index)
    for src, dst in PASSTHROUGH_COLUMNS.items():
        out[dst] = raw[src]
    for src, (date_col, time_col) in TIMESTAMP_COLUMNS.items():
        out[date_col] = parsed[src]["date"]
        out[time_col] = parsed[src]["time"]
    for src, dst in FLAG_COLUMNS.items():
        out[dst] = normalize_flag(raw[src])
        # NO and missing collapse into False; keep a record of how many were missing
        _record(audit, f"Flag: {dst}", f"'{src}' YES → True, NO/missing → False",
                int(raw[src].isna().sum()), "(missing values counted)")

    out = out[STOP_COLUMNS]
    if bad.any():
        _record(audit, "Malformed timestamps", "Rows dropped with unparseable dates",
                int(bad.sum()), f"(ids {raw.loc[bad, 'OBJECTID'].tolist()[:5]})")
        out = out[~bad]

    _record(audit, "Timestamps split", "responseDate/lastUpdateDate → date + time",
            len(out))
    return out


# ── Range Filter ──────────────────────────────────────────────────────────────

def filter_date_range(
    df: pd.DataFrame,
    lower: pd.Timestamp = STUDY_START,
    upper: pd.Timestamp = STUDY_END,
    audit: Optional[AuditTrail] = None,
) -> pd.DataFrame:
    """Keep rows with lower < date < upper (both bounds exclusive), order preserved."""
    lower, upper = pd.Timestamp(lower), pd.Timestamp(upper)
    mask = (df["date"] > lower) & (df["date"] < upper)
    _record(audit, "Date range filter",
            f"Rows outside ({lower.date()}, {upper.date()}) removed",
            int((~mask).sum()))
    return df[mask]


# ── Categorical Restrictor ────────────────────────────────────────────────────

def frequency_order(series: pd.Series, allowed: Iterable[str]) -> list:
    """
    Allowed labels present in `series`, most frequent first.

    Ties are broken alphabetically so the order is stable between runs.
    """
    allowed = list(allowed)
    counts = series[series.isin(allowed)].astype(object).value_counts()
    counts = counts[counts > 0]
    return sorted(counts.index, key=lambda label: (-counts[label], label))


def restrict_categories(
    df: pd.DataFrame,
    column: str = "gender",
    allowed: Iterable[str] = GENDER_CATEGORIES,
    audit: Optional[AuditTrail] = None,
) -> pd.DataFrame:
    """
    Keep rows whose `column` is exactly one of `allowed`.

    The column becomes an ordered Categorical in frequency order, so groupby
    and plots show categories most-common first.
    """
    allowed = list(allowed)
    mask = df[column].isin(allowed)
    order = frequency_order(df[column], allowed)

    kept = df[mask].copy()
    kept[column] = pd.Categorical(kept[column].astype(object), categories=order, ordered=True)

    _record(audit, f"Restrict: {column}", f"Values outside {allowed} dropped from view",
            int((~mask).sum()), f"(order: {order})")
    return kept


# ── Pipeline Orchestrator ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class CleanedStops:
    stops: pd.DataFrame          # normalized + range filtered, all genders
    gender_view: pd.DataFrame    # stops restricted to GENDER_CATEGORIES
    audit: AuditTrail


def run_pipeline(
    raw: pd.DataFrame,
    output_path: Optional[str] = None,
    audit_path: Optional[str] = None,
    on_error: str = "raise",
    lower: pd.Timestamp = STUDY_START,
    upper: pd.Timestamp = STUDY_END,
) -> CleanedStops:
    """
    End-to-end cleaning. Call this to fully reproduce the cleaned tables.

    Parameters
    ----------
    raw         : raw export frame (see data_collection.load_raw)
    output_path : optional path for the cleaned CSV (unrestricted table)
    audit_path  : optional path for the JSON audit log
    on_error    : "raise" or "skip" for malformed timestamps
    lower/upper : exclusive date bounds of the study window

    Returns
    -------
    CleanedStops with the unrestricted table and the gender view
    """
    log.info("=" * 60)
    log.info("POLICE STOP DATA — CLEANING PIPELINE START")
    log.info("=" * 60)

    audit = AuditTrail(total_rows=len(raw))

    stops = normalize_stops(raw, audit, on_error=on_error)
    stops = filter_date_range(stops, lower, upper, audit)
    gender_view = restrict_categories(stops, "gender", GENDER_CATEGORIES, audit)

    log.info(f"Final shape: {stops.shape[0]:,} rows × {stops.shape[1]} columns "
             f"({len(gender_view):,} in gender view)")

    if output_path:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        stops.to_csv(output_path, index=False)
        log.info(f"Cleaned data saved → {output_path}")

    if audit_path:
        Path(audit_path).parent.mkdir(parents=True, exist_ok=True)
        audit.save(audit_path)

    return CleanedStops(stops=stops, gender_view=gender_view, audit=audit)
