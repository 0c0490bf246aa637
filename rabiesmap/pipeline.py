"""
Startup pipeline
================

Runs once, fully, at process start:

    mortality file ─ clean_mortality ─┐
                                      ├─ join_tables ─┐
    HDI file ─────── reshape_hdi ─────┘               ├─ enrich ─> map table
    geography file ─ prepare_geography ───────────────┘

Every stage either succeeds or raises; there is no partial state. The result
is a frozen `Tables` bundle that the engine only reads from.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple
import logging
import math

import geopandas as gpd
import pandas as pd

from . import geometry, hdi, mortality
from .loader import load_geography, load_hdi, load_mortality
from .models import DeathBucket, GeoRecord, HdiGroup, HdiRecord, JoinedRecord, MortalityRecord
from .reconcile import join_tables

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Inputs and knobs for one pipeline run."""
    mortality_path: Optional[str] = None
    hdi_path: Optional[str] = None
    geography_path: Optional[str] = None

    # inclusive HDI year window
    year_start: int = hdi.YEAR_START
    year_end: int = hdi.YEAR_END

    excluded_year: int = mortality.EXCLUDED_YEAR
    known_unmapped_codes: Tuple[str, ...] = mortality.KNOWN_UNMAPPED_CODES
    excluded_geographies: Tuple[str, ...] = geometry.EXCLUDED_GEOGRAPHIES
    hdi_trailing_columns: int = hdi.TRAILING_COLUMNS

    # raise instead of warn on unexpected unmappable country codes
    strict_codes: bool = False

    def __post_init__(self) -> None:
        if self.year_start > self.year_end:
            raise ValueError(f"year_start {self.year_start} is after year_end {self.year_end}")


def _opt(v):
    if v is None or v is pd.NA:
        return None
    if isinstance(v, float) and math.isnan(v):
        return None
    return v


def _str(v) -> str:
    v = _opt(v)
    return "" if v is None else str(v)


@dataclass(frozen=True, eq=False)
class Tables:
    """Immutable result of one pipeline run."""
    mortality: pd.DataFrame
    hdi: pd.DataFrame
    joined: pd.DataFrame
    geography: gpd.GeoDataFrame
    map_table: gpd.GeoDataFrame
    config: PipelineConfig = field(default_factory=PipelineConfig)

    @property
    def years(self) -> Tuple[int, int]:
        return self.config.year_start, self.config.year_end

    def joined_records(self) -> Tuple[JoinedRecord, ...]:
        out = []
        for i, r in enumerate(self.joined.itertuples(index=False)):
            rank = _opt(r.hdi_rank)
            out.append(JoinedRecord(
                row_id=i,
                country_name=r.country_name,
                country_code=r.country_code,
                year=int(r.year),
                hdi_group=HdiGroup(r.hdi_group),
                hdi_value=_opt(r.hdi_value),
                hdi_female=_opt(r.hdi_female),
                hdi_male=_opt(r.hdi_male),
                hdi_rank=int(rank) if rank is not None else None,
                hemisphere=_str(r.hemisphere),
                region_code=_str(r.region_code),
                region_name=_str(r.region_name),
                reported_deaths=_opt(r.reported_deaths),
                death_bucket=DeathBucket(r.death_bucket),
            ))
        return tuple(out)

    def mortality_records(self) -> Tuple[MortalityRecord, ...]:
        return tuple(
            MortalityRecord(
                region_code=_str(r.region_code),
                region_name=_str(r.region_name),
                country_code=r.country_code,
                country_name=r.country_name,
                year=int(r.year),
                death_count=_opt(r.death_count),
            )
            for r in self.mortality.itertuples(index=False)
        )

    def hdi_records(self) -> Tuple[HdiRecord, ...]:
        out = []
        for r in self.hdi.itertuples(index=False):
            rank = _opt(r.hdi_rank)
            out.append(HdiRecord(
                country_code=r.country_code,
                country_name=r.country_name,
                year=int(r.year),
                hdi_group=HdiGroup(r.hdi_group),
                hdi_value=_opt(r.hdi_value),
                hdi_female=_opt(r.hdi_female),
                hdi_male=_opt(r.hdi_male),
                hdi_rank=int(rank) if rank is not None else None,
            ))
        return tuple(out)

    def geo_records(self) -> Tuple[GeoRecord, ...]:
        return tuple(
            GeoRecord(country_name=r.country_name, country_code=r.country_code,
                      note=_str(r.note), geometry=r.geometry)
            for r in self.geography.itertuples(index=False)
        )


def build_tables(
    raw_mortality: pd.DataFrame,
    raw_hdi: pd.DataFrame,
    raw_geography: gpd.GeoDataFrame,
    config: Optional[PipelineConfig] = None,
) -> Tables:
    """Run every stage on already-loaded frames."""
    config = config or PipelineConfig()
    mort = mortality.clean_mortality(
        raw_mortality,
        excluded_year=config.excluded_year,
        known_unmapped=config.known_unmapped_codes,
        strict_codes=config.strict_codes,
    )
    hdi_long = hdi.reshape_hdi(
        raw_hdi,
        year_start=config.year_start,
        year_end=config.year_end,
        trailing=config.hdi_trailing_columns,
        strict_codes=config.strict_codes,
    )
    joined = join_tables(hdi_long, mort)
    geo = geometry.prepare_geography(
        raw_geography,
        excluded=config.excluded_geographies,
        strict_codes=config.strict_codes,
    )
    map_table = geometry.enrich(geo, joined)
    return Tables(mortality=mort, hdi=hdi_long, joined=joined,
                  geography=geo, map_table=map_table, config=config)


def run_pipeline(config: PipelineConfig) -> Tables:
    """Load the three inputs named in `config` and build the tables."""
    for name in ("mortality_path", "hdi_path", "geography_path"):
        if not getattr(config, name):
            raise ValueError(f"PipelineConfig.{name} is required")
    logger.info("Loading sources")
    raw_mortality = load_mortality(config.mortality_path)
    raw_hdi = load_hdi(config.hdi_path)
    raw_geography = load_geography(config.geography_path)
    tables = build_tables(raw_mortality, raw_hdi, raw_geography, config)
    logger.info("Pipeline complete: %d joined rows, %d map rows",
                len(tables.joined), len(tables.map_table))
    return tables
