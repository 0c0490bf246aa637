"""
Geometry enricher
=================

Country polygons (Natural Earth admin-0 style) -> one GeoRecord per ISO3
country, then attached to the joined table for choropleth rendering.

The polygon table drives the map join: every polygon is drawn, and countries
with no joined row fall into the "Data unavailable" bucket.
"""

from __future__ import annotations
from typing import Iterable, Optional
import logging

import geopandas as gpd
import pandas as pd

from .countries import names_for_codes
from .loader import _col
from .models import GEO_COLUMNS, JOINED_COLUMNS, DeathBucket

logger = logging.getLogger(__name__)

SENTINEL_CODE = "-99"

# Antarctica plus non-sovereign / disputed / sub-national shapes
EXCLUDED_GEOGRAPHIES = (
    "Antarctica",
    "Fr. S. Antarctic Lands",
    "French Southern and Antarctic Lands",
    "N. Cyprus",
    "Northern Cyprus",
    "Somaliland",
    "Kosovo",
    "Siachen Glacier",
    "Cyprus U.N. Buffer Zone",
    "Baikonur",
    "Dhekelia",
    "Akrotiri",
    "Bir Tawil",
    "Bajo Nuevo Bank",
    "Serranilla Bank",
    "Scarborough Reef",
    "Spratly Is.",
    "Southern Patagonian Ice Field",
    "USNB Guantanamo Bay",
    "Ashmore and Cartier Is.",
    "Coral Sea Is.",
    "Clipperton I.",
    "Indian Ocean Ter.",
)

_CODE_COLUMNS = ("ISO_A3", "ISO_A3_EH", "ADM0_A3")

# MapRecord column order
MAP_COLUMNS = [
    "country_name", "country_code", "note",
    *[c for c in JOINED_COLUMNS if c not in ("country_name", "country_code")],
    "geometry",
]


def _valid_code(v) -> Optional[str]:
    if v is None or pd.isna(v):
        return None
    s = str(v).strip().upper()
    if s == SENTINEL_CODE or len(s) != 3 or not s.isalpha():
        return None
    return s


def _country_codes(raw: pd.DataFrame) -> pd.Series:
    """First valid ISO3 code across ISO_A3, ISO_A3_EH, ADM0_A3."""
    cols = [c for c in (_col(raw, n, required=False) for n in _CODE_COLUMNS) if c]
    if not cols:
        _col(raw, *_CODE_COLUMNS)  # raises SchemaMismatchError
    codes = pd.Series([None] * len(raw), index=raw.index, dtype=object)
    for c in cols:
        codes = codes.where(codes.notna(), raw[c].map(_valid_code))
    return codes


def prepare_geography(
    raw: gpd.GeoDataFrame,
    *,
    excluded: Iterable[str] = EXCLUDED_GEOGRAPHIES,
    strict_codes: bool = False,
) -> gpd.GeoDataFrame:
    """Clean the polygon table down to GeoRecord columns (GEO_COLUMNS)."""
    name_col = _col(raw, "NAME", "ADMIN", "NAME_LONG", "SOVEREIGNT")
    note_col = _col(raw, "NOTE_ADM0", "NOTE", required=False)

    excluded_names = {n.lower() for n in excluded}
    names = raw[name_col].astype(str).str.strip()
    keep = ~names.str.lower().isin(excluded_names)
    admin_col = _col(raw, "ADMIN", required=False)
    if admin_col and admin_col != name_col:
        keep &= ~raw[admin_col].astype(str).str.strip().str.lower().isin(excluded_names)
    logger.debug("Geography: %d excluded shapes", int((~keep).sum()))

    gdf = raw[keep].copy()
    gdf["country_code"] = _country_codes(gdf)
    no_code = gdf["country_code"].isna()
    if no_code.any():
        logger.debug("Geography: dropping %d shapes with sentinel codes: %s", int(no_code.sum()),
                     sorted(gdf.loc[no_code, name_col].astype(str)))
    gdf = gdf[~no_code].copy()

    gdf["country_name"] = names_for_codes(gdf["country_code"], strict=strict_codes, source="geography")
    gdf = gdf[gdf["country_name"].notna()].copy()
    gdf["note"] = gdf[note_col].fillna("").astype(str) if note_col else ""

    out = gpd.GeoDataFrame(gdf[GEO_COLUMNS], geometry="geometry")
    if out["country_code"].duplicated().any():
        # multi-part countries spread over several features
        out = out.dissolve(by=["country_code", "country_name"], as_index=False, aggfunc="first")
        out = out[GEO_COLUMNS]
    out = out.sort_values("country_name").reset_index(drop=True)
    logger.info("Geography: %d countries", len(out))
    return out


def _attach(geography: gpd.GeoDataFrame, rows: pd.DataFrame) -> gpd.GeoDataFrame:
    data = rows.drop(columns=[c for c in ("geometry", "note") if c in rows.columns])
    merged = geography.merge(data, how="left", on=["country_code", "country_name"])
    buckets = merged["death_bucket"]
    if not isinstance(buckets.dtype, pd.CategoricalDtype):
        buckets = pd.Categorical(buckets, categories=DeathBucket.labels(), ordered=True)
        merged["death_bucket"] = buckets
    merged["death_bucket"] = merged["death_bucket"].fillna(DeathBucket.UNAVAILABLE.value)
    return gpd.GeoDataFrame(merged, geometry="geometry")


def enrich(geography: gpd.GeoDataFrame, joined: pd.DataFrame) -> gpd.GeoDataFrame:
    """All country-years on their polygons, plus unmatched polygons once (MapRecord set)."""
    out = _attach(geography, joined)
    return out[MAP_COLUMNS]


def map_for_selection(geography: gpd.GeoDataFrame, rows: pd.DataFrame) -> gpd.GeoDataFrame:
    """Every polygon exactly once, bucketed from the selected rows.

    `rows` must hold at most one row per country (one selected year).
    """
    if rows["country_code"].duplicated().any():
        raise ValueError("map_for_selection expects one row per country")
    return enrich(geography, rows)
