"""
report.py
End-to-end report: cached download → cleaning → aggregation → charts.

    stops-report --cache data/raw/police_stop_data.csv --skip-bad-rows
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from data_cleaning import CleanedStops, run_pipeline
from data_collection import CSV_URL, RAW_PATH, Fetcher, fetch_if_absent, load_raw
from eda import FIG_DIR, run_eda
from errors import StopDataError

log = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def build_report(
    cache_path: Path = RAW_PATH,
    url: str = CSV_URL,
    fig_dir: Path = FIG_DIR,
    cleaned_path: Optional[str] = None,
    audit_path: Optional[str] = None,
    on_error: str = "raise",
    fetch: Optional[Fetcher] = None,
) -> CleanedStops:
    path = fetch_if_absent(cache_path, url, fetch=fetch)
    cleaned = run_pipeline(
        load_raw(path),
        output_path=cleaned_path,
        audit_path=audit_path,
        on_error=on_error,
    )
    cleaned.audit.summary()
    run_eda(cleaned, fig_dir)
    return cleaned


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Minneapolis police stop EDA report")
    parser.add_argument("--cache", type=Path, default=RAW_PATH,
                        help="local CSV cache; downloaded only when missing")
    parser.add_argument("--url", default=CSV_URL, help="source CSV endpoint")
    parser.add_argument("--figures", type=Path, default=FIG_DIR,
                        help="directory for PNG charts")
    parser.add_argument("--cleaned", default=None, help="optional cleaned CSV output path")
    parser.add_argument("--audit", default=None, help="optional JSON audit output path")
    parser.add_argument("--skip-bad-rows", action="store_true",
                        help="drop rows with malformed timestamps instead of aborting")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        build_report(
            cache_path=args.cache,
            url=args.url,
            fig_dir=args.figures,
            cleaned_path=args.cleaned,
            audit_path=args.audit,
            on_error="skip" if args.skip_bad_rows else "raise",
        )
    except (StopDataError, FileNotFoundError, ValueError) as exc:
        log.error(f"Report aborted: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
