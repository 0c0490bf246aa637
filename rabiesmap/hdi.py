"""
HDI reshaper
============

The UNDP table is wide: one row per country, and one column per
(indicator, year) pair named `<indicator> (<year>)`, e.g.

    ISO3 | Country | Hemisphere | Human Development Groups | UNDP Developing Regions |
    HDI Rank (2021) | Human Development Index (1990) | ... |
    Human Development Index (female) (2021) | ... | <trailing> | <trailing>

We need one row per (country, year) with the four retained indicators as
value columns side by side. A generic melt would give one row per
(country, year, indicator), so instead the reshape is schema-directed: the
headers are parsed once into an (indicator, year) -> column table, and for
each year of the window one frame is assembled from exactly those columns.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import re

import pandas as pd

from .countries import names_for_codes
from .errors import SchemaMismatchError
from .models import HDI_COLUMNS, HDI_INDICATORS, HdiGroup

logger = logging.getLogger(__name__)

YEAR_START, YEAR_END = 2010, 2021

# leading identifier columns -> canonical names
IDENTIFIERS = {
    "ISO3": "country_code",
    "Country": "country_label",
    "Hemisphere": "hemisphere",
    "Human Development Groups": "hdi_group",
    "UNDP Developing Regions": "undp_region",
}
TRAILING_COLUMNS = 2

# source indicator name -> canonical column
INDICATORS = {
    "Human Development Index": "hdi_value",
    "Human Development Index (female)": "hdi_female",
    "Human Development Index (male)": "hdi_male",
    "HDI Rank": "hdi_rank",
}

# lazy prefix so "Human Development Index (female) (2015)" keeps "(female)"
_HEADER_RE = re.compile(r"^(?P<indicator>.+?)\s*\((?P<year>\d{4})\)$")


@dataclass(frozen=True)
class IndicatorColumn:
    indicator: str
    year: int
    column: str


def parse_indicator_columns(columns: Sequence[str], *, trailing: int = TRAILING_COLUMNS) -> List[IndicatorColumn]:
    """Parse `<indicator> (<year>)` headers, skipping identifiers and trailing columns."""
    body = list(columns)[:-trailing] if trailing else list(columns)
    out: List[IndicatorColumn] = []
    for c in body:
        if c in IDENTIFIERS:
            continue
        m = _HEADER_RE.match(str(c).strip())
        if not m:
            logger.debug("HDI: column %r is not an indicator-year column, skipped", c)
            continue
        out.append(IndicatorColumn(indicator=m.group("indicator").strip(), year=int(m.group("year")), column=c))
    return out


def _column_table(parsed: Sequence[IndicatorColumn]) -> Dict[Tuple[str, int], str]:
    table: Dict[Tuple[str, int], str] = {}
    for ic in parsed:
        key = (ic.indicator, ic.year)
        if key in table:
            raise SchemaMismatchError(f"HDI: indicator {ic.indicator!r} has two columns for {ic.year}")
        table[key] = ic.column
    return table


def spread_indicators(
    wide: pd.DataFrame,
    *,
    year_start: int = YEAR_START,
    year_end: int = YEAR_END,
    trailing: int = TRAILING_COLUMNS,
) -> pd.DataFrame:
    """Wide -> long with one row per (identifiers, year) and one column per indicator.

    Identifier columns keep their canonical names; indicator columns are the
    canonical HDI_INDICATORS.
    """
    missing_ids = [c for c in IDENTIFIERS if c not in wide.columns]
    if missing_ids:
        raise SchemaMismatchError(f"HDI table is missing identifier columns {missing_ids}")

    table = _column_table(parse_indicator_columns(wide.columns, trailing=trailing))
    present = {ind for ind, _ in table}
    absent = [ind for ind in INDICATORS if ind not in present]
    if absent:
        raise SchemaMismatchError(f"HDI table has no columns for indicators {absent}")

    ids = wide[list(IDENTIFIERS)].rename(columns=IDENTIFIERS).reset_index(drop=True)
    frames: List[pd.DataFrame] = []
    for year in range(year_start, year_end + 1):
        cols = {canon: table.get((ind, year)) for ind, canon in INDICATORS.items()}
        if not any(cols.values()):
            continue
        frame = ids.copy()
        frame["year"] = year
        for canon, col in cols.items():
            if col is None:
                logger.debug("HDI: no %s column for %d", canon, year)
                frame[canon] = pd.NA
            else:
                frame[canon] = pd.to_numeric(wide[col], errors="coerce").reset_index(drop=True)
        frames.append(frame)

    if not frames:
        raise SchemaMismatchError(f"HDI table has no indicator columns in {year_start}-{year_end}")
    long = pd.concat(frames, ignore_index=True)
    for canon in HDI_INDICATORS:
        long[canon] = pd.to_numeric(long[canon], errors="coerce")
    return long


def _classify_groups(labels: pd.Series) -> pd.Series:
    """Map raw group labels onto HdiGroup labels; unclassified -> None."""
    unknown = set()

    def one(label) -> Optional[str]:
        try:
            g = HdiGroup.parse(label)
        except ValueError:
            unknown.add(str(label))
            return None
        return g.value if g is not None else None

    out = labels.map(one)
    if unknown:
        logger.warning("HDI: dropping rows with unknown development groups %s", sorted(unknown))
    return out


def reshape_hdi(
    wide: pd.DataFrame,
    *,
    year_start: int = YEAR_START,
    year_end: int = YEAR_END,
    trailing: int = TRAILING_COLUMNS,
    strict_codes: bool = False,
) -> pd.DataFrame:
    """Wide UNDP table -> HdiRecord table (canonical HDI_COLUMNS)."""
    long = spread_indicators(wide, year_start=year_start, year_end=year_end, trailing=trailing)

    long["hdi_group"] = _classify_groups(long["hdi_group"])
    unclassified = long["hdi_group"].isna()
    if unclassified.any():
        dropped = sorted(long.loc[unclassified, "country_code"].dropna().astype(str).unique())
        logger.debug("HDI: dropping unclassified territories %s", dropped)
    long = long[~unclassified].copy()

    long["country_code"] = long["country_code"].astype(str).str.strip().str.upper()
    long["country_name"] = names_for_codes(long["country_code"], strict=strict_codes, source="hdi")
    long = long[long["country_name"].notna()].copy()

    long["hdi_group"] = pd.Categorical(long["hdi_group"], categories=HdiGroup.labels(), ordered=True)
    long["hdi_rank"] = long["hdi_rank"].round().astype("Int64")

    out = long[HDI_COLUMNS].sort_values(["country_name", "year"]).reset_index(drop=True)
    logger.info("HDI: %d rows, %d countries, years %d-%d", len(out),
                out["country_name"].nunique(), year_start, year_end)
    return out


def widen_hdi(long: pd.DataFrame) -> pd.DataFrame:
    """Inverse of the spread for the retained indicators.

    Returns one row per country_code with `<indicator> (<year>)` columns.
    """
    back = {canon: ind for ind, canon in INDICATORS.items()}
    pieces = []
    for canon in HDI_INDICATORS:
        p = long.pivot(index="country_code", columns="year", values=canon)
        p.columns = [f"{back[canon]} ({y})" for y in p.columns]
        pieces.append(p)
    return pd.concat(pieces, axis=1).reset_index()
