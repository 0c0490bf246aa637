import geopandas as gpd
import pandas as pd
import pytest

from rabiesmap.errors import SchemaMismatchError
from rabiesmap.geometry import enrich, map_for_selection, prepare_geography
from rabiesmap.models import GEO_COLUMNS


def test_exclusions_and_sentinels(raw_geography):
    geo = prepare_geography(raw_geography)
    assert list(geo.columns) == GEO_COLUMNS
    codes = set(geo["country_code"])
    assert codes == {"KEN", "USA", "IND", "AFG", "BOL", "SOM", "FRA"}
    assert "ATA" not in codes
    assert "-99" not in codes


def test_sentinel_falls_back_to_adm0_code(raw_geography):
    geo = prepare_geography(raw_geography)
    assert geo.loc[geo["country_code"] == "FRA", "country_name"].iloc[0] == "France"


def test_names_rederived_from_codes(raw_geography):
    geo = prepare_geography(raw_geography)
    names = dict(zip(geo["country_code"], geo["country_name"]))
    assert names["USA"] == "United States"
    assert names["BOL"] == "Bolivia"


def test_multi_part_country_dissolved(raw_geography):
    geo = prepare_geography(raw_geography)
    usa = geo[geo["country_code"] == "USA"]
    assert len(usa) == 1
    assert usa.geometry.iloc[0].area == pytest.approx(2.0)


def test_missing_name_column(raw_geography):
    with pytest.raises(SchemaMismatchError):
        prepare_geography(raw_geography.drop(columns=["NAME", "ADMIN"]))


def test_without_sentinel_fallback_columns(raw_geography):
    geo = prepare_geography(raw_geography.drop(columns=["ADM0_A3"]))
    assert "FRA" not in set(geo["country_code"])


def test_enrich_keeps_all_country_years_and_bare_polygons(tables):
    mt = tables.map_table
    assert isinstance(mt, gpd.GeoDataFrame)
    # 5 HDI countries with polygons x 4 years + France + Somalia
    assert len(mt) == 5 * 4 + 2
    bare = mt[mt["country_code"].isin(["FRA", "SOM"])]
    assert bare["year"].isna().all()
    assert (bare["death_bucket"] == "Data unavailable").all()


def test_map_for_one_year(tables):
    rows = tables.joined[tables.joined["year"] == 2015]
    mt = map_for_selection(tables.geography, rows)
    assert len(mt) == len(tables.geography)
    assert mt["country_code"].is_unique
    buckets = dict(zip(mt["country_code"], mt["death_bucket"]))
    assert buckets["KEN"] == "11-100"
    assert buckets["FRA"] == "Data unavailable"


def test_map_for_empty_selection(tables):
    rows = tables.joined.iloc[[]]
    mt = map_for_selection(tables.geography, rows)
    assert len(mt) == len(tables.geography)
    assert (mt["death_bucket"] == "Data unavailable").all()


def test_map_rejects_multiple_years(tables):
    with pytest.raises(ValueError):
        map_for_selection(tables.geography, tables.joined)
