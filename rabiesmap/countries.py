"""
Country codes -> canonical names
================================

Both source tables and the geography carry ISO3 codes but spell country names
differently. Every table rederives its names from the code through this one
lookup, so the join keys agree by construction.

The mapping table is pycountry's ISO 3166-1 database. The common name is
preferred where ISO lists a formal one ("Bolivia" rather than
"Bolivia, Plurinational State of").
"""

from __future__ import annotations
import logging
import warnings
from functools import lru_cache
from typing import Iterable, Optional

import pandas as pd
import pycountry

from .errors import SchemaMismatchError, UnmappableCodeWarning

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def iso3_to_name(code) -> Optional[str]:
    """Return the canonical name for an ISO3 code, or None if unknown."""
    if code is None or pd.isna(code):
        return None
    text = str(code).strip().upper()
    if len(text) != 3 or not text.isalpha():
        return None
    country = pycountry.countries.get(alpha_3=text)
    if country is None:
        return None
    return getattr(country, "common_name", None) or country.name


def names_for_codes(
    codes: pd.Series,
    *,
    known_unmapped: Iterable[str] = (),
    strict: bool = False,
    source: str = "table",
) -> pd.Series:
    """Vectorised `iso3_to_name` over a column of codes.

    Unmappable codes come back as NA. Codes listed in `known_unmapped` are
    expected and only logged at DEBUG. Any other unmappable code is reported
    once as an UnmappableCodeWarning, or raises SchemaMismatchError when
    `strict` is set.
    """
    known = {str(c).upper() for c in known_unmapped}
    names = codes.map(lambda c: None if pd.isna(c) else iso3_to_name(str(c)))
    missing = sorted({str(c) for c in codes[names.isna()].dropna().unique()})

    expected = [c for c in missing if c.upper() in known]
    unexpected = [c for c in missing if c.upper() not in known]
    if expected:
        logger.debug("%s: dropping known unmapped codes %s", source, expected)
    if unexpected:
        msg = f"{source}: no canonical country name for codes {unexpected}"
        if strict:
            raise SchemaMismatchError(msg)
        logger.warning(msg)
        warnings.warn(msg, UnmappableCodeWarning, stacklevel=2)
    return names.astype("object")
