"""Record resolver: pick the single dataset row for a complete selection."""

from __future__ import annotations

from typing import Optional

import pandas as pd

from .dataset import DatasetRecord, to_record
from .selection import SelectionContext, is_ready


def resolve_record(df: pd.DataFrame, context: SelectionContext) -> Optional[DatasetRecord]:
    """
    Return the record matching the context's county and year exactly.

    Among several matches the one with the smallest ``distance_origintodest``
    wins; equal distances keep dataset order. Returns None when nothing
    matches or the context is not ready.
    """
    if not is_ready(context):
        return None

    matches = df[(df["county_name"] == context.county) & (df["year"] == int(context.year))]
    if matches.empty:
        return None

    # mergesort is stable, row_order makes the dataset order explicit
    best = matches.sort_values(["distance_origintodest", "row_order"], kind="mergesort").iloc[0]
    return to_record(best)
