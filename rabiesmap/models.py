"""
Data model
==========

The pipeline works on pandas tables, but the engine and the report consume
rows as immutable records (`frozen=True`), so that:
- nothing can modify the joined table after startup, and
- filters operate by selecting row IDs rather than editing data.

The two categorical fields (development group and death bucket) are explicit
enumerations with a fixed ordering table. Legends, colours and comparisons use
that table, never string order.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple


class HdiGroup(Enum):
    """UNDP human development group, ordered Low < Medium < High < Very High."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"

    @property
    def rank(self) -> int:
        return _GROUP_ORDER.index(self)

    @classmethod
    def labels(cls) -> List[str]:
        return [g.value for g in _GROUP_ORDER]

    @classmethod
    def parse(cls, label) -> Optional["HdiGroup"]:
        """Map a source label onto a group.

        Returns None for an empty label. Raises ValueError for an unknown one.
        """
        if label is None:
            return None
        text = " ".join(str(label).split()).lower()
        if text in ("", "nan", "none"):
            return None
        for g in cls:
            if g.value.lower() == text:
                return g
        raise ValueError(f"Unknown development group: {label!r}")

    def __lt__(self, other: "HdiGroup") -> bool:
        if not isinstance(other, HdiGroup):
            return NotImplemented
        return self.rank < other.rank


_GROUP_ORDER: Tuple[HdiGroup, ...] = (
    HdiGroup.LOW, HdiGroup.MEDIUM, HdiGroup.HIGH, HdiGroup.VERY_HIGH,
)


class DeathBucket(Enum):
    """Ordered range of reported deaths used for map colouring."""
    ZERO = "0"
    ONE_TO_TEN = "1-10"
    ELEVEN_TO_HUNDRED = "11-100"
    HUNDRED_TO_FIVE_HUNDRED = "101-500"
    OVER_FIVE_HUNDRED = "500+"
    UNAVAILABLE = "Data unavailable"

    @property
    def rank(self) -> int:
        return _BUCKET_ORDER.index(self)

    @property
    def upper(self) -> Optional[float]:
        """Inclusive upper bound of the bucket (None for open/unavailable)."""
        return _BUCKET_UPPER.get(self)

    @classmethod
    def labels(cls) -> List[str]:
        return [b.value for b in _BUCKET_ORDER]

    @classmethod
    def parse(cls, label) -> "DeathBucket":
        for b in cls:
            if b.value.lower() == str(label).strip().lower():
                return b
        raise ValueError(f"Unknown death bucket: {label!r}")

    def __lt__(self, other: "DeathBucket") -> bool:
        if not isinstance(other, DeathBucket):
            return NotImplemented
        return self.rank < other.rank


_BUCKET_ORDER: Tuple[DeathBucket, ...] = (
    DeathBucket.ZERO,
    DeathBucket.ONE_TO_TEN,
    DeathBucket.ELEVEN_TO_HUNDRED,
    DeathBucket.HUNDRED_TO_FIVE_HUNDRED,
    DeathBucket.OVER_FIVE_HUNDRED,
    DeathBucket.UNAVAILABLE,
)

# upper bounds are inclusive: exactly 10 is "1-10"
_BUCKET_UPPER = {
    DeathBucket.ZERO: 0.0,
    DeathBucket.ONE_TO_TEN: 10.0,
    DeathBucket.ELEVEN_TO_HUNDRED: 100.0,
    DeathBucket.HUNDRED_TO_FIVE_HUNDRED: 500.0,
}


# Canonical column orders of the pipeline tables
MORTALITY_COLUMNS = ["region_code", "region_name", "country_code", "country_name", "year", "death_count"]
HDI_INDICATORS = ["hdi_value", "hdi_female", "hdi_male", "hdi_rank"]
HDI_COLUMNS = ["country_code", "country_name", "year", "hdi_group", *HDI_INDICATORS, "hemisphere", "undp_region"]
JOINED_COLUMNS = [
    "country_name", "country_code", "year", "hdi_group",
    *HDI_INDICATORS, "hemisphere", "region_code", "region_name",
    "reported_deaths", "death_bucket",
]
GEO_COLUMNS = ["country_name", "country_code", "note", "geometry"]


@dataclass(frozen=True)
class MortalityRecord:
    region_code: str
    region_name: str
    country_code: str
    country_name: str
    year: int
    death_count: Optional[float]


@dataclass(frozen=True)
class HdiRecord:
    country_code: str
    country_name: str
    year: int
    hdi_group: HdiGroup
    hdi_value: Optional[float]
    hdi_female: Optional[float]
    hdi_male: Optional[float]
    hdi_rank: Optional[int]


@dataclass(frozen=True)
class JoinedRecord:
    """One (country, year) row of the reconciled table.

    `row_id` is the position in the joined table; indices and the engine's
    selection refer to rows by it.
    """
    row_id: int
    country_name: str
    country_code: str
    year: int
    hdi_group: HdiGroup
    hdi_value: Optional[float]
    hdi_female: Optional[float]
    hdi_male: Optional[float]
    hdi_rank: Optional[int]
    hemisphere: str
    region_code: str
    region_name: str
    reported_deaths: Optional[float]
    death_bucket: DeathBucket

    def as_row(self) -> dict:
        """Plain dict for exports (enums replaced by their labels)."""
        return {
            "country_name": self.country_name,
            "country_code": self.country_code,
            "year": self.year,
            "hdi_group": self.hdi_group.value,
            "hdi_value": self.hdi_value,
            "hdi_female": self.hdi_female,
            "hdi_male": self.hdi_male,
            "hdi_rank": self.hdi_rank,
            "hemisphere": self.hemisphere,
            "region_code": self.region_code,
            "region_name": self.region_name,
            "reported_deaths": self.reported_deaths,
            "death_bucket": self.death_bucket.value,
        }


@dataclass(frozen=True)
class GeoRecord:
    country_name: str
    country_code: str
    note: str
    # shapely geometry
    geometry: object
