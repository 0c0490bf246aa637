"""
Dashboard engine
================

The presentation layer's state, kept as explicit one-way data flow:

1) The pipeline builds the immutable `Tables` once.
2) The user's inputs (year slider, group multi-select, table search) form a
   frozen `FilterState` snapshot.
3) Every input event produces a *new* snapshot; the old one goes on the undo
   stack. Nothing is edited in place.
4) `build_view(snapshot, ...)` is a pure function from the snapshot and the
   static tables to everything the screen shows: value boxes, the filtered
   table, the map table and the time series.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple
import csv
import heapq
import json
import logging

import geopandas as gpd

from .errors import EmptyJoinResult
from .geometry import map_for_selection
from .indices import Indices, build_indices, group_ids, intersect_sorted
from .models import HdiGroup, JoinedRecord
from .pipeline import Tables
from .query_lang import compile_query

logger = logging.getLogger(__name__)

ALL_GROUPS: FrozenSet[HdiGroup] = frozenset(HdiGroup)
SERIES_COUNTRIES = 6


@dataclass(frozen=True)
class FilterState:
    """One snapshot of the dashboard inputs."""
    year: int
    groups: FrozenSet[HdiGroup] = ALL_GROUPS
    query: Optional[str] = None

    def sorted_groups(self) -> List[HdiGroup]:
        return sorted(self.groups)


@dataclass(frozen=True)
class ValueBoxes:
    year_label: str
    total_deaths: float
    top_country: Optional[str]
    top_deaths: Optional[float]
    # share of total_deaths, in percent
    top_share: Optional[float]


@dataclass(frozen=True)
class TimeSeries:
    # country -> [(year, deaths)], highest burden first
    countries: Dict[str, List[Tuple[int, Optional[float]]]]
    global_total: List[Tuple[int, float]]


@dataclass(frozen=True, eq=False)
class DashboardView:
    state: FilterState
    year_label: str
    rows: Tuple[JoinedRecord, ...]
    boxes: Optional[ValueBoxes]
    series: TimeSeries
    map_table: gpd.GeoDataFrame

    @property
    def empty(self) -> bool:
        return not self.rows


# ---------------- Pure view builders ----------------
def year_label(year: int) -> str:
    return f"Year: {year}"


def select_ids(state: FilterState, records: Sequence[JoinedRecord], idx: Indices) -> List[int]:
    """Sorted row IDs matching the snapshot."""
    ids = intersect_sorted(idx.by_year.get(state.year, []), group_ids(idx, state.sorted_groups()))
    if state.query:
        pred = compile_query(state.query)
        ids = [i for i in ids if pred(records[i])]
    return ids


def select_rows(state: FilterState, records: Sequence[JoinedRecord], idx: Indices) -> Tuple[JoinedRecord, ...]:
    return tuple(records[i] for i in select_ids(state, records, idx))


def value_boxes(rows: Sequence[JoinedRecord], year: int) -> ValueBoxes:
    """Totals and the top country over the selected rows only."""
    if not rows:
        raise EmptyJoinResult(f"No rows for the selection in {year}")
    reported = [r for r in rows if r.reported_deaths is not None]
    total = float(sum(r.reported_deaths for r in reported))
    if not reported:
        return ValueBoxes(year_label(year), 0.0, None, None, None)
    # max() keeps the first of equal values; rows are sorted by country
    top = max(reported, key=lambda r: r.reported_deaths)
    share = 100.0 * top.reported_deaths / total if total > 0 else 0.0
    return ValueBoxes(year_label(year), total, top.country_name, float(top.reported_deaths), share)


def time_series(
    records: Sequence[JoinedRecord],
    idx: Indices,
    groups: Iterable[HdiGroup],
    n: int = SERIES_COUNTRIES,
) -> TimeSeries:
    """Yearly deaths of the n highest-burden countries plus the yearly total.

    Only rows in `groups` count, for the ranking, the totals and the plotted
    points alike.
    """
    ids = group_ids(idx, groups)
    burden: Dict[str, float] = {}
    yearly: Dict[int, float] = {y: 0.0 for y in idx.years_sorted}
    for i in ids:
        r = records[i]
        if r.reported_deaths is None:
            continue
        burden[r.country_name] = burden.get(r.country_name, 0.0) + r.reported_deaths
        yearly[r.year] += r.reported_deaths

    top = heapq.nlargest(n, sorted(burden.items()), key=lambda kv: kv[1])
    countries: Dict[str, List[Tuple[int, Optional[float]]]] = {}
    for name, _ in top:
        points = intersect_sorted(idx.by_country[name], ids)
        countries[name] = [(records[i].year, records[i].reported_deaths) for i in points]
    return TimeSeries(countries=countries, global_total=sorted(yearly.items()))


def build_view(state: FilterState, tables: Tables, records: Sequence[JoinedRecord], idx: Indices) -> DashboardView:
    ids = select_ids(state, records, idx)
    rows = tuple(records[i] for i in ids)
    try:
        boxes: Optional[ValueBoxes] = value_boxes(rows, state.year)
    except EmptyJoinResult as e:
        logger.info("%s", e)
        boxes = None
    return DashboardView(
        state=state,
        year_label=year_label(state.year),
        rows=rows,
        boxes=boxes,
        series=time_series(records, idx, state.groups),
        map_table=map_for_selection(tables.geography, tables.joined.iloc[ids]),
    )


# ---------------- Stateful shell (input events) ----------------
@dataclass
class Dashboard:
    """Holds the current snapshot and its history.

    Each input method swaps in a new FilterState; `view()` recomputes from it.
    """
    tables: Tables
    records: Tuple[JoinedRecord, ...] = field(init=False)
    idx: Indices = field(init=False)
    state: FilterState = field(init=False)
    # Stores REPL commands (for reproducibility in reports)
    command_log: List[str] = field(default_factory=list)

    _undo: List[FilterState] = field(default_factory=list, init=False)
    _redo: List[FilterState] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        self.records = self.tables.joined_records()
        self.idx = build_indices(self.records)
        self.state = self.initial_state()

    def initial_state(self) -> FilterState:
        return FilterState(year=self.tables.config.year_end)

    # ---------------- History (stacks) ----------------
    def _push(self, new: FilterState) -> FilterState:
        if new != self.state:
            self._undo.append(self.state)
            self._redo.clear()
            self.state = new
        return self.state

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self.state)
        self.state = self._undo.pop()
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._undo.append(self.state)
        self.state = self._redo.pop()
        return True

    # ---------------- Inputs ----------------
    def reset(self) -> FilterState:
        return self._push(self.initial_state())

    def select_year(self, year: int) -> FilterState:
        lo, hi = self.tables.years
        if not lo <= year <= hi:
            raise ValueError(f"year must be within {lo}-{hi}")
        return self._push(replace(self.state, year=year))

    def select_groups(self, groups: Iterable[HdiGroup]) -> FilterState:
        return self._push(replace(self.state, groups=frozenset(groups)))

    def search(self, expr: str) -> FilterState:
        compile_query(expr)  # reject bad expressions before they enter history
        return self._push(replace(self.state, query=expr))

    def clear_search(self) -> FilterState:
        return self._push(replace(self.state, query=None))

    # ---------------- Outputs ----------------
    def view(self) -> DashboardView:
        return build_view(self.state, self.tables, self.records, self.idx)

    def selected_rows(self) -> Tuple[JoinedRecord, ...]:
        return select_rows(self.state, self.records, self.idx)

    def export_csv(self, path: str) -> int:
        rows = [r.as_row() for r in self.selected_rows()]
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=list(JoinedRecord.__dataclass_fields__)[1:])
            w.writeheader()
            w.writerows(rows)
        return len(rows)

    def export_json(self, path: str) -> int:
        rows = [r.as_row() for r in self.selected_rows()]
        with open(path, "w", encoding="utf-8") as f:
            json.dump(rows, f, ensure_ascii=False, indent=2)
        return len(rows)
