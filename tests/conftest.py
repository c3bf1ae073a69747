"""Shared fixtures: a small in-memory record table."""

import pandas as pd
import pytest

from abortion_access.dataset import prepare_dataset
from abortion_access.selection import build_catalog

COLUMNS = [
    "state", "county_name", "year",
    "origin_lon", "origin_lat", "dest_lon", "dest_lat",
    "dest_county_name", "distance_origintodest",
    "births_total", "abortions_total", "self_managed_abortions", "fetal_deaths",
]

ROWS = [
    ("AL", "Jefferson", 2021, -86.9, 32.3, -84.39, 33.75, "Fulton", 147.8, 8120, 310, 42, 61),
    ("AL", "Jefferson", 2021, -86.9, 32.3, -86.3, 32.4, "Montgomery", 45.2, 8120, 310, 42, 61),
    ("AL", "Jefferson", 2022, -86.9, 32.3, -88.0, 30.69, "Mobile", 210.4, 8045, 120, 88, 59),
    ("AL", "Madison", 2021, -86.59, 34.73, -86.78, 36.16, "Davidson", 112.6, 4110, 205, 19, 30),
    ("AL", "Madison", 2021, -86.59, 34.73, -84.39, 33.75, "Fulton", 112.6, 4110, 205, 19, 30),
    ("NV", "Clark", 2022, -115.14, 36.17, -115.17, 36.11, "Clark", 6.1, 25880, 3390, 49, 168),
]


@pytest.fixture
def raw_df():
    return pd.DataFrame(ROWS, columns=COLUMNS)


@pytest.fixture
def records_df(raw_df):
    return prepare_dataset(raw_df)


@pytest.fixture
def catalog(records_df):
    return build_catalog(records_df)


@pytest.fixture
def csv_path(tmp_path, raw_df):
    path = tmp_path / "records.csv"
    raw_df.to_csv(path, index=False)
    return path
