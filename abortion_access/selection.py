"""
Selection cascade: state -> (county, year).

County and year are siblings; both depend only on the state. Their option
lists are drawn from the whole dataset once a state is picked, exactly as
the published app behaves (they are not narrowed to the chosen state).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

import pandas as pd

from . import config
from .dataset import county_choices, year_choices


@dataclass(frozen=True)
class SelectionContext:
    state: Optional[str] = None
    county: Optional[str] = None
    year: Optional[int] = None


@dataclass(frozen=True)
class Catalog:
    """Every value the dataset can offer, computed once at startup."""
    states: Tuple[str, ...]
    counties: Tuple[str, ...]
    years: Tuple[int, ...]


@dataclass(frozen=True)
class SelectionOptions:
    states: Tuple[str, ...]
    counties: Tuple[str, ...]
    years: Tuple[int, ...]


def build_catalog(df: pd.DataFrame) -> Catalog:
    return Catalog(
        states=tuple(config.STATE_VIEWPORTS),
        counties=tuple(county_choices(df)),
        years=tuple(year_choices(df)),
    )


def options_for(context: SelectionContext, catalog: Catalog) -> SelectionOptions:
    """Option lists currently offered for each selector."""
    if context.state is None:
        return SelectionOptions(states=catalog.states, counties=(), years=())
    return SelectionOptions(states=catalog.states, counties=catalog.counties, years=catalog.years)


def _settle(context: SelectionContext, catalog: Catalog) -> SelectionContext:
    """Clear any dependent field whose value is no longer offered."""
    opts = options_for(context, catalog)
    if context.county is not None and context.county not in opts.counties:
        context = replace(context, county=None)
    if context.year is not None and context.year not in opts.years:
        context = replace(context, year=None)
    return context


def set_state(context: SelectionContext, value: Optional[str], catalog: Catalog) -> SelectionContext:
    if value == context.state:
        return context
    if value is not None and value not in options_for(context, catalog).states:
        return context
    # a new state always starts a fresh county/year selection
    return _settle(SelectionContext(state=value), catalog)


def set_county(context: SelectionContext, value: Optional[str], catalog: Catalog) -> SelectionContext:
    if value == context.county:
        return context
    if value is not None and value not in options_for(context, catalog).counties:
        return context
    return _settle(replace(context, county=value), catalog)


def set_year(context: SelectionContext, value: Optional[int], catalog: Catalog) -> SelectionContext:
    if value is not None:
        try:
            value = int(value)
        except (TypeError, ValueError):
            return context
    if value == context.year:
        return context
    if value is not None and value not in options_for(context, catalog).years:
        return context
    return _settle(replace(context, year=value), catalog)


def is_ready(context: SelectionContext) -> bool:
    """County and year both chosen; only then is a record looked up."""
    return context.county is not None and context.year is not None
