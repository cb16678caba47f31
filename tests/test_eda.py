"""
Smoke tests for the EDA report and the end-to-end entry point.
"""

import logging

import pytest

import eda
import report
from conftest import make_raw, raw_row
from data_cleaning import run_pipeline


@pytest.fixture
def cleaned(raw_stops):
    return run_pipeline(raw_stops)


@pytest.fixture
def balanced_cleaned():
    """Male and Female stops in every year, so every yearly ratio is defined."""
    rows = []
    for i, year in enumerate(range(2017, 2023)):
        rows.append(raw_row(3 * i + 1, f"{year}/02/01 10:00:00+0000", "Male", personSearch="YES"))
        rows.append(raw_row(3 * i + 2, f"{year}/08/01 10:00:00+0000", "Male"))
        rows.append(raw_row(3 * i + 3, f"{year}/05/01 10:00:00+0000", "Female"))
    return run_pipeline(make_raw(rows))


class TestCharts:
    """Each chart lands in the figure directory."""

    def test_run_eda_writes_all_figures(self, balanced_cleaned, tmp_path, capsys):
        eda.run_eda(balanced_cleaned, tmp_path)

        names = sorted(p.name for p in tmp_path.glob("*.png"))
        assert names == [
            "01_stops_by_gender_race.png",
            "02_gender_by_year.png",
            "03_daily_trend_by_gender.png",
            "04_search_rates_by_gender.png",
            "05_problem_types.png",
        ]
        assert "EDA COMPLETE" in capsys.readouterr().out

    def test_search_rates_returns_tables(self, cleaned, tmp_path):
        tables = eda.eda_search_rates(cleaned, tmp_path)

        assert set(tables) == {"Person searched", "Vehicle searched"}
        person = tables["Person searched"]
        assert person["proportion"].iloc[0] == pytest.approx(2 / 3)

    def test_no_allowed_genders_skips_charts(self, tmp_path, capsys):
        """In-window stops whose gender is outside the allow-set leave nothing to chart."""
        cleaned = run_pipeline(make_raw([
            raw_row(1, "2019/07/04 13:05:00+0000", "Unknown"),
            raw_row(2, "2020/01/02 13:05:00+0000", None),
        ]))

        eda.run_eda(cleaned, tmp_path)

        assert list(tmp_path.glob("*.png")) == []
        assert "no stops with gender in" in capsys.readouterr().out


class TestRatioSummary:
    """Printed male/female ratios."""

    def test_defined_every_year(self, balanced_cleaned, capsys):
        table = eda.eda_ratio_summary(balanced_cleaned)

        assert table["ratio"].tolist() == [2.0] * 6
        out = capsys.readouterr().out
        assert "Overall: 2.00" in out
        assert "2019: 2.00" in out

    def test_undefined_years_do_not_hide_defined_ones(self, cleaned, capsys, caplog):
        """2020 and 2022 have no Female stops; 2017 and 2018 still print."""
        with caplog.at_level(logging.ERROR):
            table = eda.eda_ratio_summary(cleaned)

        assert table["year"].dt.year.tolist() == [2017, 2018]
        assert table["ratio"].tolist() == [1.0, 1.0]
        out = capsys.readouterr().out
        assert "Overall: 1.50" in out
        assert "2017: 1.00" in out
        assert "2020: undefined" in out
        assert "2022: undefined" in out
        assert "inf" not in out.replace("undefined", "")
        assert any("undefined" in r.message for r in caplog.records)

    def test_overall_undefined_without_denominator(self, capsys):
        cleaned = run_pipeline(make_raw([raw_row(1, "2019/07/04 13:05:00+0000", "Male")]))

        table = eda.eda_ratio_summary(cleaned)

        assert table.empty
        out = capsys.readouterr().out
        assert "Overall: undefined" in out
        assert "2019: undefined" in out


class TestReportMain:
    """CLI entry point over a cached CSV."""

    def _write_cache(self, path, rows):
        path.parent.mkdir(parents=True, exist_ok=True)
        make_raw(rows).to_csv(path, index=False)

    def test_build_report_with_injected_fetch(self, raw_stops, tmp_path):
        cache = tmp_path / "raw" / "stops.csv"

        def fake_fetch(url, path):
            self._write_cache(path, raw_stops.to_dict("records"))

        cleaned = report.build_report(cache_path=cache, fig_dir=tmp_path / "plots",
                                      fetch=fake_fetch)

        assert cache.exists()
        assert len(cleaned.stops) == 8
        assert len(list((tmp_path / "plots").glob("*.png"))) == 5

    def test_main_success(self, raw_stops, tmp_path):
        cache = tmp_path / "stops.csv"
        self._write_cache(cache, raw_stops.to_dict("records"))

        code = report.main([
            "--cache", str(cache),
            "--figures", str(tmp_path / "plots"),
            "--audit", str(tmp_path / "audit.json"),
        ])

        assert code == 0
        assert (tmp_path / "audit.json").exists()

    def test_main_aborts_on_malformed_rows(self, tmp_path):
        cache = tmp_path / "stops.csv"
        self._write_cache(cache, [raw_row(1, "2019/07/04 13:05:00+0000"), raw_row(2, "bad")])

        assert report.main(["--cache", str(cache), "--figures", str(tmp_path / "plots")]) == 1

    def test_main_skips_malformed_rows_when_asked(self, tmp_path):
        cache = tmp_path / "stops.csv"
        self._write_cache(cache, [
            raw_row(1, "2019/07/04 13:05:00+0000", "Male"),
            raw_row(2, "bad"),
            raw_row(3, "2019/08/04 13:05:00+0000", "Female"),
        ])

        code = report.main([
            "--cache", str(cache),
            "--figures", str(tmp_path / "plots"),
            "--skip-bad-rows",
        ])

        assert code == 0

    def test_main_with_no_stops_in_window(self, tmp_path, capsys):
        """A cache holding only 2016 stops still completes, without charts."""
        cache = tmp_path / "stops.csv"
        self._write_cache(cache, [raw_row(1, "2016/06/01 13:05:00+0000", "Male")])

        code = report.main(["--cache", str(cache), "--figures", str(tmp_path / "plots")])

        assert code == 0
        assert not (tmp_path / "plots").exists()
        assert "no stops in the study window" in capsys.readouterr().out
