import json

import pytest

from rabiesmap.engine import (Dashboard, FilterState, build_view, select_ids, time_series,
                              value_boxes)
from rabiesmap.errors import EmptyJoinResult
from rabiesmap.indices import build_indices
from rabiesmap.models import DeathBucket, HdiGroup, JoinedRecord
from rabiesmap.query_lang import ParseError


@pytest.fixture
def dash(tables):
    return Dashboard(tables=tables)


def test_initial_state_is_latest_year_all_groups(dash):
    assert dash.state == FilterState(year=2021)
    assert dash.state.groups == frozenset(HdiGroup)


@pytest.mark.parametrize("year", [2015, 2016, 2020, 2021])
def test_year_filter_returns_only_that_year(dash, year):
    dash.select_year(year)
    rows = dash.selected_rows()
    assert {r.year for r in rows} == {year}
    classified = dash.tables.hdi[dash.tables.hdi["year"] == year]["country_name"].nunique()
    assert len(rows) == classified


def test_year_without_data_is_empty_not_an_error(dash):
    dash.select_year(2012)
    view = dash.view()
    assert view.empty
    assert view.boxes is None
    assert view.year_label == "Year: 2012"
    assert (view.map_table["death_bucket"] == "Data unavailable").all()


def test_year_outside_window_rejected(dash):
    with pytest.raises(ValueError):
        dash.select_year(2030)
    assert dash.state.year == 2021


def test_low_group_2015_scenario(dash):
    dash.select_year(2015)
    dash.select_groups([HdiGroup.LOW])
    view = dash.view()
    assert {r.hdi_group for r in view.rows} == {HdiGroup.LOW}
    assert {r.year for r in view.rows} == {2015}
    # AFG 12 + NER 3; India's 600 is outside the selection
    assert view.boxes.total_deaths == 15
    assert view.boxes.top_country == "Afghanistan"
    assert view.boxes.top_deaths == 12
    assert view.boxes.top_share == pytest.approx(80.0)


def test_all_groups_2015(dash):
    dash.select_year(2015)
    b = dash.view().boxes
    assert b.total_deaths == 20 + 600 + 12 + 3
    assert b.top_country == "India"
    assert b.top_share == pytest.approx(100 * 600 / 635)
    assert b.year_label == "Year: 2015"


def test_value_boxes_empty_raises():
    with pytest.raises(EmptyJoinResult):
        value_boxes([], 2015)


def test_value_boxes_without_reported_deaths(dash):
    dash.select_year(2021)
    b = dash.view().boxes
    assert b.total_deaths == 0
    assert b.top_country is None


def test_time_series_top_countries_and_global_total(dash):
    series = time_series(dash.records, dash.idx, frozenset(HdiGroup))
    assert list(series.countries) == ["India", "Kenya", "Afghanistan", "United States", "Niger"]
    assert dict(series.global_total) == {2015: 635.0, 2016: 455.0, 2020: 5.0, 2021: 0.0}
    assert series.countries["India"][0] == (2015, 600.0)


def test_time_series_limited_to_six(tables):
    dash = Dashboard(tables=tables)
    series = time_series(dash.records, dash.idx, frozenset(HdiGroup), n=2)
    assert list(series.countries) == ["India", "Kenya"]


def test_time_series_follows_groups(dash):
    series = time_series(dash.records, dash.idx, [HdiGroup.VERY_HIGH])
    assert list(series.countries) == ["United States"]
    assert dict(series.global_total)[2015] == 0.0


def _row(row_id, name, year, group, deaths):
    return JoinedRecord(
        row_id=row_id, country_name=name, country_code=name[:3].upper(), year=year, hdi_group=group,
        hdi_value=None, hdi_female=None, hdi_male=None, hdi_rank=None, hemisphere="",
        region_code="", region_name="", reported_deaths=deaths, death_bucket=DeathBucket.UNAVAILABLE,
    )


def test_time_series_points_stay_inside_groups():
    # Ghana moves from Low to Medium in 2016
    records = [
        _row(0, "Ghana", 2015, HdiGroup.LOW, 40.0),
        _row(1, "Ghana", 2016, HdiGroup.MEDIUM, 30.0),
        _row(2, "Mali", 2015, HdiGroup.LOW, 10.0),
        _row(3, "Mali", 2016, HdiGroup.LOW, 5.0),
    ]
    series = time_series(records, build_indices(records), [HdiGroup.LOW])
    assert series.countries["Ghana"] == [(2015, 40.0)]
    assert series.countries["Mali"] == [(2015, 10.0), (2016, 5.0)]
    assert dict(series.global_total) == {2015: 50.0, 2016: 5.0}


def test_view_is_pure_function_of_state(dash):
    state = FilterState(year=2016, groups=frozenset([HdiGroup.MEDIUM]))
    v1 = build_view(state, dash.tables, dash.records, dash.idx)
    v2 = build_view(state, dash.tables, dash.records, dash.idx)
    assert v1.rows == v2.rows
    assert v1.boxes == v2.boxes
    assert dash.state == FilterState(year=2021)


def test_map_table_covers_every_polygon(dash):
    dash.select_year(2015)
    mt = dash.view().map_table
    assert len(mt) == len(dash.tables.geography)
    assert dict(zip(mt["country_code"], mt["death_bucket"]))["IND"] == "500+"


def test_undo_redo(dash):
    dash.select_year(2015)
    dash.select_groups([HdiGroup.LOW])
    assert dash.undo()
    assert dash.state == FilterState(year=2015)
    assert dash.undo()
    assert dash.state == FilterState(year=2021)
    assert not dash.undo()
    assert dash.redo()
    assert dash.state.year == 2015
    dash.select_year(2016)
    assert not dash.redo()


def test_same_input_does_not_grow_history(dash):
    dash.select_year(2021)
    assert not dash.undo()


def test_search(dash):
    dash.select_year(2015)
    dash.search("deaths >= 12")
    assert {r.country_code for r in dash.selected_rows()} == {"KEN", "IND", "AFG"}
    dash.clear_search()
    assert len(dash.selected_rows()) == 6


def test_bad_search_leaves_state_alone(dash):
    with pytest.raises(ParseError):
        dash.search("deaths >>> 3")
    assert dash.state.query is None


def test_select_ids_intersects_year_and_groups(dash):
    state = FilterState(year=2016, groups=frozenset([HdiGroup.MEDIUM, HdiGroup.HIGH]))
    rows = [dash.records[i] for i in select_ids(state, dash.records, dash.idx)]
    assert {r.country_code for r in rows} == {"KEN", "IND", "BOL"}


def test_exports(dash, tmp_path):
    dash.select_year(2015)
    n = dash.export_csv(str(tmp_path / "out.csv"))
    assert n == 6
    header = (tmp_path / "out.csv").read_text(encoding="utf-8").splitlines()[0]
    assert header.startswith("country_name,country_code,year,hdi_group")

    dash.export_json(str(tmp_path / "out.json"))
    data = json.loads((tmp_path / "out.json").read_text(encoding="utf-8"))
    ind = next(r for r in data if r["country_code"] == "IND")
    assert ind["death_bucket"] == "500+"
    assert ind["hdi_group"] == "Medium"
