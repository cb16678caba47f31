"""
eda.py
Exploratory Data Analysis for Minneapolis Police Stop Data

Design principles:
- Every plot answers one question about who gets stopped and searched
- Charts consume the aggregated tables from aggregation.py, never raw rows
- Ratios that cannot be computed are reported as undefined, never as inf/NaN
- All outputs are reproducible and saved with descriptive names
"""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import pandas as pd
import seaborn as sns

from aggregation import (
    count_by_year,
    daily_counts,
    flag_proportion,
    grouped_count,
    ratio,
)
from data_cleaning import GENDER_CATEGORIES, CleanedStops
from errors import UndefinedRatioError

log = logging.getLogger(__name__)

# ── Style ─────────────────────────────────────────────────────────────────────
PALETTE  = "Set2"
ACCENT   = "#D62728"   # red: draws attention to key findings
NEUTRAL  = "#4C72B0"   # blue: standard bars
BG_GRAY  = "#F7F7F7"
FIG_DIR  = Path("data/processed/eda/plots")

SMOOTHING_WINDOW_DAYS = 30
TOP_PROBLEMS = 10

plt.rcParams.update({
    "figure.facecolor": BG_GRAY,
    "axes.facecolor":   BG_GRAY,
    "axes.spines.top":  False,
    "axes.spines.right": False,
    "axes.labelsize":   11,
    "axes.titlesize":   13,
    "axes.titleweight": "bold",
    "xtick.labelsize":  9,
    "ytick.labelsize":  9,
    "font.family":      "sans-serif",
})


# ── Helpers ───────────────────────────────────────────────────────────────────

def _save(fig: plt.Figure, name: str, fig_dir: Path = FIG_DIR) -> Path:
    fig_dir = Path(fig_dir)
    fig_dir.mkdir(parents=True, exist_ok=True)
    path = fig_dir / f"{name}.png"
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  ✓ Saved → {path}")
    return path


def _source_note(ax, note="Source: Minneapolis Police Stop Data / opendata.minneapolismn.gov"):
    ax.annotate(note, xy=(0, -0.12), xycoords="axes fraction",
                fontsize=7, color="gray")


def _banner(title: str):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def fmt_thousands(ax, axis="y"):
    fmt = mticker.FuncFormatter(lambda x, _: f"{x:,.0f}")
    if axis == "y":
        ax.yaxis.set_major_formatter(fmt)
    else:
        ax.xaxis.set_major_formatter(fmt)


# ── EDA 1: Who Gets Stopped ───────────────────────────────────────────────────

def eda_stop_counts(cleaned: CleanedStops, fig_dir: Path = FIG_DIR):
    """
    Q: How are stops distributed across gender and race?
    Gender uses the restricted view; race uses every stop in the study window.
    """
    _banner("EDA 1 | STOPS BY GENDER AND RACE")

    by_gender = grouped_count(cleaned.gender_view, "gender")
    by_race = grouped_count(cleaned.stops, "race").sort_values("count", ascending=False)
    by_race["race"] = by_race["race"].fillna("Missing")

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))
    fig.suptitle("Police Stops by Gender and Race (2017–2022)", fontsize=14, fontweight="bold")

    labels = by_gender["gender"].astype(str)
    colors = [ACCENT if i == 0 else NEUTRAL for i in range(len(by_gender))]
    axes[0].bar(labels, by_gender["count"], color=colors)
    axes[0].set_title("Stops by Gender")
    axes[0].set_ylabel("Number of Stops")
    fmt_thousands(axes[0])
    for i, v in enumerate(by_gender["count"]):
        axes[0].text(i, v, f"{v:,}", ha="center", va="bottom", fontsize=8)

    axes[1].barh(by_race["race"][::-1], by_race["count"][::-1], color=NEUTRAL)
    axes[1].set_title("Stops by Race")
    axes[1].set_xlabel("Number of Stops")
    fmt_thousands(axes[1], axis="x")
    _source_note(axes[1])

    plt.tight_layout()
    _save(fig, "01_stops_by_gender_race", fig_dir)

    for label, n in zip(labels, by_gender["count"]):
        print(f"  {label:<24} {n:>10,}")


# ── EDA 2: Gender Over Time ───────────────────────────────────────────────────

def eda_gender_by_year(cleaned: CleanedStops, fig_dir: Path = FIG_DIR):
    """
    Q: Is the gender split of stops stable from year to year?
    """
    _banner("EDA 2 | STOPS BY GENDER PER YEAR")

    yearly = count_by_year(cleaned.gender_view, "gender")
    yearly["year"] = yearly["year"].dt.year

    fig, ax = plt.subplots(figsize=(12, 5))
    sns.barplot(data=yearly, x="year", y="count", hue="gender", palette=PALETTE, ax=ax)
    ax.set_title("Stops per Year by Gender")
    ax.set_xlabel("Year")
    ax.set_ylabel("Number of Stops")
    ax.legend(title="Gender", fontsize=8)
    fmt_thousands(ax)
    _source_note(ax)

    plt.tight_layout()
    _save(fig, "02_gender_by_year", fig_dir)


# ── EDA 3: Daily Trend ────────────────────────────────────────────────────────

def eda_daily_trend(cleaned: CleanedStops, fig_dir: Path = FIG_DIR,
                    window: int = SMOOTHING_WINDOW_DAYS):
    """
    Q: How did daily stop volume move over the study window?
    Raw daily counts are noisy, so each gender is shown as a centred rolling mean.
    """
    _banner("EDA 3 | DAILY STOP TREND")

    daily = daily_counts(cleaned.gender_view, "gender")
    wide = (
        daily.assign(gender=daily["gender"].astype(str))
        .pivot_table(index="date", columns="gender", values="count", aggfunc="sum", fill_value=0)
    )
    # days without any stop count as zero, not as gaps
    full_range = pd.date_range(wide.index.min(), wide.index.max(), freq="D")
    wide = wide.reindex(full_range, fill_value=0)
    smooth = wide.rolling(window, center=True, min_periods=1).mean()

    order = [str(c) for c in cleaned.gender_view["gender"].cat.categories]
    fig, ax = plt.subplots(figsize=(13, 5))
    for gender, color in zip(order, sns.color_palette(PALETTE, len(order))):
        if gender in smooth.columns:
            ax.plot(smooth.index, smooth[gender], label=gender, color=color, linewidth=2)
    ax.set_title(f"Daily Stops by Gender ({window}-day rolling mean)")
    ax.set_ylabel("Stops per Day")
    ax.legend(title="Gender", fontsize=8)
    _source_note(ax)

    plt.tight_layout()
    _save(fig, "03_daily_trend_by_gender", fig_dir)

    busiest = wide.sum(axis=1).idxmax()
    print(f"  Busiest day: {busiest.date()} ({int(wide.sum(axis=1).max()):,} stops)")


# ── EDA 4: Searches ───────────────────────────────────────────────────────────

def eda_search_rates(cleaned: CleanedStops, fig_dir: Path = FIG_DIR) -> dict:
    """
    Q: Once stopped, how often is the person or the vehicle searched, by gender?
    Shown as proportions so group size does not dominate the picture.
    """
    _banner("EDA 4 | SEARCH RATES BY GENDER")

    tables = {
        "Person searched": flag_proportion(cleaned.gender_view, "gender", "person_searched"),
        "Vehicle searched": flag_proportion(cleaned.gender_view, "gender", "vehicle_searched"),
    }

    fig, axes = plt.subplots(1, 2, figsize=(14, 5), sharey=True)
    fig.suptitle("Search Rates by Gender", fontsize=14, fontweight="bold")

    for ax, (title, table) in zip(axes, tables.items()):
        labels = table["gender"].astype(str)
        pct = table["proportion"] * 100
        colors = [ACCENT if v == pct.max() else NEUTRAL for v in pct]
        ax.bar(labels, pct, color=colors)
        ax.set_title(title)
        ax.set_ylabel("% of Stops")
        for i, v in enumerate(pct):
            ax.text(i, v, f"{v:.1f}%", ha="center", va="bottom", fontsize=9)
        print(f"  {title}:")
        for label, v in zip(labels, pct):
            print(f"    {label:<24} {v:5.1f}%")
    _source_note(axes[1])

    plt.tight_layout()
    _save(fig, "04_search_rates_by_gender", fig_dir)
    return tables


# ── EDA 5: Problem Types ──────────────────────────────────────────────────────

def eda_problem_types(cleaned: CleanedStops, fig_dir: Path = FIG_DIR,
                      top: int = TOP_PROBLEMS):
    """
    Q: What kind of call leads to a stop?
    """
    _banner("EDA 5 | PROBLEM TYPES")

    problems = (
        grouped_count(cleaned.stops, "problem")
        .dropna(subset=["problem"])
        .sort_values(["count", "problem"], ascending=[False, True])
        .head(top)
    )

    fig, ax = plt.subplots(figsize=(11, 5))
    colors = [ACCENT if i == 0 else NEUTRAL for i in range(len(problems))]
    ax.barh(problems["problem"][::-1], problems["count"][::-1], color=colors[::-1])
    ax.set_title(f"Top {top} Problem Types")
    ax.set_xlabel("Number of Stops")
    fmt_thousands(ax, axis="x")
    _source_note(ax)

    plt.tight_layout()
    _save(fig, "05_problem_types", fig_dir)

    if len(problems):
        first = problems.iloc[0]
        print(f"  Most common problem: {first['problem']} ({first['count']:,} stops)")


# ── Ratio Summary ─────────────────────────────────────────────────────────────

def eda_ratio_summary(cleaned: CleanedStops, numerator: str = "Male",
                      denominator: str = "Female"):
    """
    Prints the numerator/denominator stop ratio overall and per year.

    Years with no `denominator` stops are printed and logged as undefined;
    the returned table holds only the years whose ratio is defined.
    """
    _banner(f"RATIO SUMMARY | {numerator.upper()} / {denominator.upper()} STOPS")

    overall = grouped_count(cleaned.gender_view, "gender")
    try:
        print(f"  Overall: {ratio(overall, numerator, denominator):.2f}")
    except UndefinedRatioError as exc:
        log.error(str(exc))
        print(f"  Overall: undefined (no {denominator} stops)")

    yearly = count_by_year(cleaned.gender_view, "gender")
    rows = []
    for year, group in yearly.groupby("year", sort=True):
        try:
            value = ratio(group, numerator, denominator)
        except UndefinedRatioError as exc:
            log.error(f"{year.year}: {exc}")
            print(f"  {year.year}: undefined (no {denominator} stops)")
            continue
        print(f"  {year.year}: {value:.2f}")
        rows.append({"year": year, "ratio": value})
    return pd.DataFrame(rows, columns=["year", "ratio"])


# ── Pipeline Orchestrator ─────────────────────────────────────────────────────

def run_eda(cleaned: CleanedStops, fig_dir: Path = FIG_DIR):
    """
    Run the full EDA report in one call.
    All figures saved to `fig_dir`.

    Charts need at least one stop in the gender view; otherwise the report
    says why and skips them.
    """
    fig_dir = Path(fig_dir)

    if cleaned.stops.empty or cleaned.gender_view.empty:
        reason = ("no stops in the study window" if cleaned.stops.empty
                  else f"no stops with gender in {list(GENDER_CATEGORIES)}")
        log.warning(f"EDA skipped: {reason}")
        print(f"\n⚠ EDA SKIPPED — {reason}")
        return

    eda_stop_counts(cleaned, fig_dir)
    eda_gender_by_year(cleaned, fig_dir)
    eda_daily_trend(cleaned, fig_dir)
    eda_search_rates(cleaned, fig_dir)
    eda_problem_types(cleaned, fig_dir)
    eda_ratio_summary(cleaned)

    print("\n" + "=" * 60)
    print(f"✓ EDA COMPLETE — {len(list(fig_dir.glob('*.png')))} figures saved to {fig_dir}/")
    print("=" * 60)
