"""
Mortality cleaner
=================

WHO GHO export -> one row per (country, year) with a reported death count.

Source columns (WHO naming):
    ParentLocationCode, ParentLocation, SpatialDimValueCode, Location,
    Period, FactValueNumeric, Value

Only the region, the country code, the period and the numeric fact value are
kept. `Value` is the display string of the same fact and is ignored.
"""

from __future__ import annotations
from typing import Iterable
import logging

import pandas as pd

from .countries import names_for_codes
from .errors import SchemaMismatchError
from .models import MORTALITY_COLUMNS

logger = logging.getLogger(__name__)

# Incomplete at source
EXCLUDED_YEAR = 2022

# The two WHO codes with no ISO 3166-1 entry: ANT was dissolved in 2010, XKX is user-assigned
KNOWN_UNMAPPED_CODES = ("ANT", "XKX")

SOURCE_COLUMNS = {
    "ParentLocationCode": "region_code",
    "ParentLocation": "region_name",
    "SpatialDimValueCode": "country_code",
    "Period": "year",
    "FactValueNumeric": "death_count",
}


def clean_mortality(
    raw: pd.DataFrame,
    *,
    excluded_year: int = EXCLUDED_YEAR,
    known_unmapped: Iterable[str] = KNOWN_UNMAPPED_CODES,
    strict_codes: bool = False,
) -> pd.DataFrame:
    """Select, filter and name-normalise the raw mortality table."""
    missing = [c for c in SOURCE_COLUMNS if c not in raw.columns]
    if missing:
        raise SchemaMismatchError(f"Mortality table is missing columns {missing}")

    df = raw[list(SOURCE_COLUMNS)].rename(columns=SOURCE_COLUMNS)
    df["country_code"] = df["country_code"].astype("string").str.strip().str.upper()

    years = pd.to_numeric(df["year"], errors="coerce")
    if years.isna().any():
        logger.warning("Mortality: dropping %d rows without a valid period", int(years.isna().sum()))
    df = df[years.notna()].copy()
    df["year"] = years[years.notna()].astype(int)
    df = df[df["year"] != excluded_year].copy()

    deaths = pd.to_numeric(df["death_count"], errors="coerce")
    bad = deaths.isna() & df["death_count"].notna()
    negative = deaths < 0
    if bad.any() or negative.any():
        logger.warning("Mortality: %d non-numeric and %d negative death counts set to null",
                       int(bad.sum()), int(negative.sum()))
    df["death_count"] = deaths.where(deaths >= 0)

    known = {str(c).upper() for c in known_unmapped}
    excluded = df["country_code"].isin(known)
    if excluded.any():
        logger.debug("Mortality: dropping %d rows for excluded codes %s",
                     int(excluded.sum()), sorted(known))
    df = df[~excluded].copy()

    df["country_name"] = names_for_codes(
        df["country_code"], known_unmapped=known_unmapped,
        strict=strict_codes, source="mortality",
    )
    df = df[df["country_name"].notna()]

    dupes = df.duplicated(subset=["country_name", "year"], keep=False)
    if dupes.any():
        keys = df.loc[dupes, ["country_name", "year"]].drop_duplicates().head(5).values.tolist()
        raise SchemaMismatchError(f"Mortality table has duplicate (country, year) keys, e.g. {keys}")

    df = df[MORTALITY_COLUMNS].sort_values(["country_name", "year"]).reset_index(drop=True)
    df["country_code"] = df["country_code"].astype(object)
    logger.info("Mortality: %d rows, %d countries, years %s-%s", len(df),
                df["country_name"].nunique(),
                df["year"].min() if len(df) else "-", df["year"].max() if len(df) else "-")
    return df
