"""
data_collection.py
Download-once cache and raw CSV loading for the Minneapolis Police Stop Data.

The cache is a single local file: if it exists it is used as-is, otherwise the
CSV is fetched from the open data portal and persisted before the first read.
The fetcher is passed in so tests (and offline runs) never touch the network.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

import pandas as pd
import requests

from errors import FetchError

log = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

CSV_URL = (
    "https://opendata.arcgis.com/api/v3/datasets/"
    "215b4b543d894750aef86c725b56ee2a_0/downloads/data?format=csv&spatialRefId=4326"
)
RAW_PATH = Path("data/raw/police_stop_data.csv")

DOWNLOAD_TIMEOUT_SECONDS = 60
CHUNK_SIZE = 1 << 16

# Raw header of the export; order differs between dataset versions
RAW_COLUMNS = [
    "OBJECTID", "masterIncidentNumber", "responseDate", "reason", "problem",
    "callDisposition", "citationIssued", "personSearch", "vehicleSearch",
    "preRace", "race", "gender", "lat", "long", "x", "y",
    "policePrecinct", "neighborhood", "lastUpdateDate",
]

# Keep identifiers and labels as text; pandas would otherwise guess per chunk
TEXT_COLUMNS = [
    "masterIncidentNumber", "responseDate", "reason", "problem", "callDisposition",
    "citationIssued", "personSearch", "vehicleSearch", "preRace", "race",
    "gender", "policePrecinct", "neighborhood", "lastUpdateDate",
]

Fetcher = Callable[[str, Path], None]


# ── Download ──────────────────────────────────────────────────────────────────

def download_csv(url: str, path: Path) -> None:
    """Stream `url` into `path`. A partial download never lands at `path`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".part")

    log.info(f"Downloading {url}")
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS) as resp:
            resp.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
        partial.replace(path)
    # RequestException is itself an OSError, so it must be caught first
    except requests.RequestException as exc:
        raise FetchError(url, str(exc)) from exc
    except OSError as exc:
        raise FetchError(url, f"could not write {path}: {exc}") from exc
    finally:
        partial.unlink(missing_ok=True)

    log.info(f"Saved {path.stat().st_size:,} bytes → {path}")


def fetch_if_absent(
    path: Path = RAW_PATH,
    url: str = CSV_URL,
    fetch: Optional[Fetcher] = None,
) -> Path:
    """
    Return `path`, downloading it first when it does not exist yet.

    There is no freshness check: once the file exists it is reused forever.
    """
    path = Path(path)
    if path.exists():
        log.info(f"Using cached data: {path}")
        return path

    (fetch or download_csv)(url, path)
    if not path.exists():
        raise FetchError(url, f"fetcher returned without creating {path}")
    return path


# ── Load ──────────────────────────────────────────────────────────────────────

def load_raw(filepath) -> pd.DataFrame:
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {filepath}")

    log.info(f"Loading: {filepath}")
    df = pd.read_csv(
        path,
        encoding="utf-8",
        dtype={c: str for c in TEXT_COLUMNS},
        low_memory=False,
    )
    log.info(f"Loaded {len(df):,} rows × {len(df.columns)} columns")

    check_columns(df)
    # Resolve by name so a reordered export produces the same frame
    return df[RAW_COLUMNS]


def check_columns(df: pd.DataFrame) -> None:
    missing_cols = set(RAW_COLUMNS) - set(df.columns)
    if missing_cols:
        raise ValueError(f"Dataset is missing expected columns: {sorted(missing_cols)}")
