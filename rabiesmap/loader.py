"""
Source loaders (files -> tables)
================================

Reads the three inputs once at startup:
- the WHO rabies mortality table (delimited text or Excel),
- the UNDP HDI wide table (delimited text or Excel),
- the country boundary polygons (any vector format geopandas reads).

Key ideas:
- Any failure here is fatal and raised as SourceLoadError; there are no retries.
- Column lookups tolerate case/punctuation drift (`_col`), because exports of
  the same dataset do not always agree on header spelling.
"""

from __future__ import annotations
from pathlib import Path
from typing import Optional, Union
import logging
import re

import geopandas as gpd
import pandas as pd

from .errors import SchemaMismatchError, SourceLoadError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_DELIMITED = {".csv": ",", ".tsv": "\t", ".txt": None}
_EXCEL = {".xlsx", ".xlsm"}


def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(s).lower())


def _col(df: pd.DataFrame, *names: str, required: bool = True) -> Optional[str]:
    """Find the first of `names` among df's columns (exact, then normalised)."""
    cols = list(df.columns)
    for n in names:
        if n in cols:
            return n
    norm_map = {_norm(c): c for c in cols}
    for n in names:
        nn = _norm(n)
        if nn in norm_map:
            return norm_map[nn]
    if required:
        raise SchemaMismatchError(f"Missing required column. Tried={names}. Available={cols}")
    return None


def read_table(path: PathLike) -> pd.DataFrame:
    """Read one delimited or Excel table. Headers are stripped."""
    p = Path(path)
    if not p.is_file():
        raise SourceLoadError(p, "file not found")
    suffix = p.suffix.lower()
    try:
        if suffix in _EXCEL:
            df = pd.read_excel(p, engine="openpyxl")
        elif suffix in _DELIMITED:
            sep = _DELIMITED[suffix]
            if sep is None:
                df = pd.read_csv(p, sep=None, engine="python", encoding="utf-8-sig")
            else:
                df = pd.read_csv(p, sep=sep, encoding="utf-8-sig")
        else:
            raise SourceLoadError(p, f"unsupported file type {suffix!r}")
    except SourceLoadError:
        raise
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, ValueError, OSError) as e:
        raise SourceLoadError(p, str(e)) from e

    if df.empty:
        raise SourceLoadError(p, "table has no rows")
    df.rename(columns={c: str(c).strip() for c in df.columns}, inplace=True)
    logger.info("Loaded %s: %d rows x %d columns", p.name, len(df), len(df.columns))
    return df


def load_mortality(path: PathLike) -> pd.DataFrame:
    return read_table(path)


def load_hdi(path: PathLike) -> pd.DataFrame:
    return read_table(path)


def load_geography(path: PathLike) -> gpd.GeoDataFrame:
    """Read country polygons and reproject to WGS84 lon/lat if needed."""
    p = Path(path)
    if not p.exists():
        raise SourceLoadError(p, "file not found")
    try:
        gdf = gpd.read_file(p)
    except Exception as e:
        # fiona/pyogrio raise driver-specific error types
        raise SourceLoadError(p, str(e)) from e
    if gdf.empty:
        raise SourceLoadError(p, "no features")
    if gdf.crs is not None and gdf.crs != "EPSG:4326":
        gdf = gdf.to_crs("EPSG:4326")
    logger.info("Loaded %s: %d features", p.name, len(gdf))
    return gdf
