"""
Reconciler / joiner
===================

HDI rows drive the join: every classified (country, year) is kept, and the
mortality count is attached where WHO reported one. Both sides name countries
through the same ISO3 lookup, so `country_name` is a safe join key.

After the join each row gets a DeathBucket for map colouring. Bucket upper
bounds are inclusive (0 -> "0", 10 -> "1-10", 500 -> "101-500").
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import math

import pandas as pd

from .errors import SchemaMismatchError
from .models import JOINED_COLUMNS, DeathBucket

logger = logging.getLogger(__name__)

JOIN_KEYS = ["country_name", "year"]


@dataclass(frozen=True)
class JoinSummary:
    hdi_rows: int
    matched: int
    unmatched_hdi: int
    # mortality keys that found no HDI row (outside the window or unclassified)
    orphan_mortality: int


def death_bucket(value) -> DeathBucket:
    """Bucket one death count. Null -> UNAVAILABLE."""
    if value is None or value is pd.NA:
        return DeathBucket.UNAVAILABLE
    v = float(value)
    if math.isnan(v):
        return DeathBucket.UNAVAILABLE
    if v < 0:
        raise ValueError(f"Negative death count: {value!r}")
    for b in (DeathBucket.ZERO, DeathBucket.ONE_TO_TEN,
              DeathBucket.ELEVEN_TO_HUNDRED, DeathBucket.HUNDRED_TO_FIVE_HUNDRED):
        if v <= b.upper:
            return b
    return DeathBucket.OVER_FIVE_HUNDRED


def bucket_deaths(deaths: pd.Series) -> pd.Categorical:
    labels = [death_bucket(v).value for v in deaths]
    return pd.Categorical(labels, categories=DeathBucket.labels(), ordered=True)


def summarize_join(hdi: pd.DataFrame, mortality: pd.DataFrame, joined: pd.DataFrame) -> JoinSummary:
    matched = int(joined["reported_deaths"].notna().sum())
    hdi_keys = set(map(tuple, hdi[JOIN_KEYS].itertuples(index=False)))
    orphans = sum(1 for k in mortality[JOIN_KEYS].itertuples(index=False) if tuple(k) not in hdi_keys)
    return JoinSummary(
        hdi_rows=len(hdi),
        matched=matched,
        unmatched_hdi=len(joined) - matched,
        orphan_mortality=orphans,
    )


def join_tables(hdi: pd.DataFrame, mortality: pd.DataFrame) -> pd.DataFrame:
    """Left-join HDI (driving side) with mortality on (country_name, year)."""
    for name, df, cols in (("HDI", hdi, JOIN_KEYS + ["country_code", "undp_region"]),
                           ("Mortality", mortality, JOIN_KEYS + ["country_code", "death_count"])):
        missing = [c for c in cols if c not in df.columns]
        if missing:
            raise SchemaMismatchError(f"{name} table is missing columns {missing}")

    right = mortality.drop(columns=["country_code"])
    try:
        joined = hdi.merge(right, how="left", on=JOIN_KEYS, validate="one_to_one")
    except pd.errors.MergeError as e:
        raise SchemaMismatchError(f"Join keys are not unique: {e}") from e

    joined = joined.rename(columns={"death_count": "reported_deaths"})
    joined = joined.drop(columns=["undp_region"])
    joined["death_bucket"] = bucket_deaths(joined["reported_deaths"])

    missing = [c for c in JOINED_COLUMNS if c not in joined.columns]
    if missing:
        raise SchemaMismatchError(f"Joined table is missing columns {missing}")
    joined = joined[JOINED_COLUMNS].sort_values(JOIN_KEYS).reset_index(drop=True)

    s = summarize_join(hdi, mortality, joined)
    logger.info("Join: %d HDI rows, %d with deaths, %d without, %d mortality rows unmatched",
                s.hdi_rows, s.matched, s.unmatched_hdi, s.orphan_mortality)
    return joined
