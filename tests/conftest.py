import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

from rabiesmap.pipeline import build_tables

WHO_COLUMNS = ["ParentLocationCode", "ParentLocation", "SpatialDimValueCode", "Location",
               "Period", "FactValueNumeric", "Value"]

# (region code, region, ISO3, location, period, deaths)
MORTALITY_ROWS = [
    ("AFR", "Africa", "KEN", "Kenya", 2015, 20),
    ("AFR", "Africa", "KEN", "Kenya", 2016, 5),
    ("AFR", "Africa", "KEN", "Kenya", 2022, 8),
    ("AMR", "Americas", "USA", "United States of America", 2020, 5),
    ("AMR", "Americas", "USA", "United States of America", 2016, 0),
    ("SEAR", "South-East Asia", "IND", "India", 2015, 600),
    ("SEAR", "South-East Asia", "IND", "India", 2016, 450),
    ("EMR", "Eastern Mediterranean", "AFG", "Afghanistan", 2015, 12),
    ("AFR", "Africa", "NER", "Niger", 2015, 3),
    ("AMR", "Americas", "BOL", "Bolivia (Plurinational State of)", 2015, float("nan")),
    ("AMR", "Americas", "ANT", "Netherlands Antilles", 2015, 1),
    ("EUR", "Europe", "XKX", "Kosovo", 2015, 3),
]

# (ISO3, country, hemisphere, group, UNDP region)
HDI_COUNTRIES = [
    ("KEN", "Kenya", "Southern Hemisphere", "Medium", "SSA"),
    ("USA", "United States", "Northern Hemisphere", "Very High", None),
    ("IND", "India", "Northern Hemisphere", "Medium", "SA"),
    ("AFG", "Afghanistan", "Northern Hemisphere", "Low", "SA"),
    ("BOL", "Bolivia (Plurinational State of)", "Southern Hemisphere", "high", "LAC"),
    ("NER", "Niger", "Northern Hemisphere", "Low", "SSA"),
    ("SOM", "Somalia", "Northern Hemisphere", None, "AS"),
    ("ZZA.VHHD", "Very high human development", None, None, None),
]
HDI_YEARS = [2009, 2015, 2016, 2020, 2021, 2022]
HDI_INDICATOR_NAMES = {
    "Human Development Index": 0.0,
    "Human Development Index (female)": -0.01,
    "Human Development Index (male)": 0.01,
}


def hdi_value(i: int, year: int, offset: float) -> float:
    return round(0.3 + 0.08 * i + 0.002 * (year - 2000) + offset, 4)


def make_raw_mortality(rows=MORTALITY_ROWS) -> pd.DataFrame:
    data = [(rc, rn, code, loc, year, v, "" if pd.isna(v) else str(v))
            for rc, rn, code, loc, year, v in rows]
    return pd.DataFrame(data, columns=WHO_COLUMNS)


def make_raw_hdi() -> pd.DataFrame:
    records = []
    for i, (iso3, country, hemi, group, region) in enumerate(HDI_COUNTRIES):
        row = {
            "ISO3": iso3,
            "Country": country,
            "Hemisphere": hemi,
            "Human Development Groups": group,
            "UNDP Developing Regions": region,
            "HDI Rank (2021)": float(i + 1),
        }
        for name, offset in HDI_INDICATOR_NAMES.items():
            for year in HDI_YEARS:
                row[f"{name} ({year})"] = hdi_value(i, year, offset)
        row["Gender Inequality Index (2021)"] = 0.5
        row["Material footprint per capita (tonnes) (2021)"] = 10.0
        records.append(row)
    return pd.DataFrame(records)


def make_raw_geography() -> gpd.GeoDataFrame:
    rows = [
        ("Kenya", "Kenya", "KEN", "KEN", None, box(0, 0, 1, 1)),
        ("United States of America", "United States of America", "USA", "USA", None, box(1, 0, 2, 1)),
        ("United States of America", "United States of America", "USA", "USA", None, box(1, 2, 2, 3)),
        ("India", "India", "IND", "IND", None, box(2, 0, 3, 1)),
        ("Afghanistan", "Afghanistan", "AFG", "AFG", None, box(3, 0, 4, 1)),
        ("Bolivia", "Bolivia", "BOL", "BOL", None, box(4, 0, 5, 1)),
        ("Somalia", "Somalia", "SOM", "SOM", None, box(5, 0, 6, 1)),
        ("France", "France", "-99", "FRA", None, box(6, 0, 7, 1)),
        ("Antarctica", "Antarctica", "ATA", "ATA", None, box(0, -3, 7, -2)),
        ("Somaliland", "Somaliland", "-99", "SOL", "Self admin.; Claimed by Somalia", box(5, 1, 6, 2)),
        ("N. Cyprus", "Northern Cyprus", "-99", "CYN", "Self admin.; Claimed by Cyprus", box(7, 0, 8, 1)),
    ]
    df = pd.DataFrame(rows, columns=["NAME", "ADMIN", "ISO_A3", "ADM0_A3", "NOTE_ADM0", "geometry"])
    return gpd.GeoDataFrame(df, geometry="geometry", crs="EPSG:4326")


@pytest.fixture
def raw_mortality() -> pd.DataFrame:
    return make_raw_mortality()


@pytest.fixture
def raw_hdi() -> pd.DataFrame:
    return make_raw_hdi()


@pytest.fixture
def raw_geography() -> gpd.GeoDataFrame:
    return make_raw_geography()


@pytest.fixture
def tables(raw_mortality, raw_hdi, raw_geography):
    return build_tables(raw_mortality, raw_hdi, raw_geography)
