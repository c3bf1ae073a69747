"""
Dataset access layer.
- Single CSV source: one row per origin county, year and candidate provider destination
- Loaded once at startup; callers only ever read from the returned frame
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List

import numpy as np
import pandas as pd


REQUIRED_COLUMNS = (
    "state", "county_name", "year",
    "origin_lon", "origin_lat", "dest_lon", "dest_lat",
    "dest_county_name", "distance_origintodest",
    "births_total", "abortions_total", "self_managed_abortions", "fetal_deaths",
)

COORD_COLUMNS = ("origin_lon", "origin_lat", "dest_lon", "dest_lat")
NUMERIC_COLUMNS = COORD_COLUMNS + (
    "distance_origintodest",
    "births_total", "abortions_total", "self_managed_abortions", "fetal_deaths",
)


@dataclass(frozen=True)
class DatasetRecord:
    state: str
    county_name: str
    year: int
    origin_lon: float
    origin_lat: float
    dest_lon: float
    dest_lat: float
    dest_county_name: str
    distance_origintodest: float
    births_total: float
    abortions_total: float
    self_managed_abortions: float
    fetal_deaths: float

    @property
    def origin(self):
        return (self.origin_lon, self.origin_lat)

    @property
    def destination(self):
        return (self.dest_lon, self.dest_lat)


# ======================
# Utilities
# ======================

def clean_county_name(s: pd.Series) -> pd.Series:
    """Normalize county names for consistent matching/labeling."""
    return (
        s.astype(str)
         .str.strip()
         .str.replace(r"\s+", " ", regex=True)
    )


def coerce_num(x):
    """Safely coerce to float; return NaN on failure."""
    try:
        return float(x)
    except (TypeError, ValueError):
        return np.nan


# ======================
# Loaders
# ======================

def prepare_dataset(df: pd.DataFrame) -> pd.DataFrame:
    """
    Validate and normalize a raw record table.
    The original row order is kept in ``row_order`` so that ties can be
    broken by dataset order no matter how the frame is later sorted.
    """
    df = df.rename(columns={c: str(c).strip() for c in df.columns})

    missing = set(REQUIRED_COLUMNS).difference(set(df.columns))
    if missing:
        raise ValueError(f"CSV is missing required columns: {sorted(missing)}")

    df = df[list(REQUIRED_COLUMNS)].copy()
    df["state"] = df["state"].astype(str).str.strip().str.upper()
    df["county_name"] = clean_county_name(df["county_name"])
    df["dest_county_name"] = clean_county_name(df["dest_county_name"])
    df["year"] = pd.to_numeric(df["year"], errors="coerce")

    for c in NUMERIC_COLUMNS:
        df[c] = df[c].map(coerce_num)

    # rows without a year can never be selected; missing coordinates are kept
    # and reported when a route is requested
    df = df[df["year"].notna()].copy()
    df["year"] = df["year"].astype(int)

    df = df.reset_index(drop=True)
    df["row_order"] = np.arange(len(df))
    return df


@lru_cache(maxsize=4)
def load_dataset(csv_path: Path) -> pd.DataFrame:
    """Load the per-county-year record table once per path."""
    df = pd.read_csv(csv_path, dtype={"county_name": str, "dest_county_name": str, "state": str})
    return prepare_dataset(df)


def to_record(row) -> DatasetRecord:
    """Freeze one row (Series or mapping) into a DatasetRecord."""
    return DatasetRecord(
        state=str(row["state"]),
        county_name=str(row["county_name"]),
        year=int(row["year"]),
        origin_lon=float(row["origin_lon"]),
        origin_lat=float(row["origin_lat"]),
        dest_lon=float(row["dest_lon"]),
        dest_lat=float(row["dest_lat"]),
        dest_county_name=str(row["dest_county_name"]),
        distance_origintodest=float(row["distance_origintodest"]),
        births_total=float(row["births_total"]),
        abortions_total=float(row["abortions_total"]),
        self_managed_abortions=float(row["self_managed_abortions"]),
        fetal_deaths=float(row["fetal_deaths"]),
    )


def county_choices(df: pd.DataFrame) -> List[str]:
    """All county names in the dataset, sorted. Not filtered by state."""
    return sorted(df["county_name"].dropna().unique().tolist())


def year_choices(df: pd.DataFrame) -> List[int]:
    """All years in the dataset, sorted."""
    return sorted(int(y) for y in df["year"].dropna().unique())
