"""
Shared fixtures: small raw exports built in memory, no network or disk.
"""

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

from data_collection import RAW_COLUMNS


def raw_row(object_id, response="2019/07/04 13:05:00+0000", gender="Male", **overrides):
    row = {
        "OBJECTID": object_id,
        "masterIncidentNumber": f"MP19{object_id:06d}",
        "responseDate": response,
        "reason": "Moving Violation",
        "problem": "Traffic Law Enforcement (P)",
        "callDisposition": "TAG-Tagged",
        "citationIssued": "NO",
        "personSearch": "NO",
        "vehicleSearch": "NO",
        "preRace": "Unknown",
        "race": "White",
        "gender": gender,
        "lat": 44.9778,
        "long": -93.2650,
        "x": -10410000.0,
        "y": 5618000.0,
        "policePrecinct": "1",
        "neighborhood": "Downtown West",
        "lastUpdateDate": "2019/07/05 08:00:00+0000",
    }
    row.update(overrides)
    return row


def make_raw(rows) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=RAW_COLUMNS)


@pytest.fixture
def raw_stops() -> pd.DataFrame:
    """Ten stops spanning 2016–2023 with mixed genders and search flags."""
    return make_raw([
        raw_row(1, "2016/12/31 23:59:59+0000", "Male"),
        raw_row(2, "2017/01/01 00:00:01+0000", "Male", personSearch="YES"),
        raw_row(3, "2017/06/15 10:30:00+0000", "Female", vehicleSearch="YES"),
        raw_row(4, "2018/03/02 18:45:10+0000", "Male", personSearch="YES", vehicleSearch="YES"),
        raw_row(5, "2018/11/20 07:05:00+0000", "Female", personSearch=None),
        raw_row(6, "2019/07/04 13:05:00+0000", "Unknown", race="Black"),
        raw_row(7, "2020/02/29 12:00:00+0000", "Gender Non-Conforming", citationIssued="YES"),
        raw_row(8, "2021/09/09 09:09:09+0000", None, problem="Suspicious Person (P)"),
        raw_row(9, "2022/12/31 23:00:00+0000", "Male", personSearch="yes"),
        raw_row(10, "2023/01/01 00:00:00+0000", "Female"),
    ])


@pytest.fixture
def example_gender_stops() -> pd.DataFrame:
    """Three Male, one Female and one Unknown stop, all in 2019."""
    return make_raw([
        raw_row(1, "2019/01/15 08:00:00+0000", "Male"),
        raw_row(2, "2019/03/01 09:00:00+0000", "Male"),
        raw_row(3, "2019/11/02 10:00:00+0000", "Male"),
        raw_row(4, "2019/05/05 11:00:00+0000", "Female"),
        raw_row(5, "2019/06/06 12:00:00+0000", "Unknown"),
    ])
