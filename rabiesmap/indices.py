"""
Indices (precomputed lookup tables)
===================================

Built once over the joined records so that every input change is a couple of
dictionary lookups and a sorted-list intersection:

- `by_year[2015]` gives the sorted row IDs for 2015.
- `by_group[HdiGroup.LOW]` gives the sorted row IDs of low-development rows.
- `by_country["Kenya"]` gives the sorted row IDs for Kenya (one per year).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from .models import HdiGroup, JoinedRecord


@dataclass(frozen=True)
class Indices:
    by_year: Dict[int, List[int]]
    by_group: Dict[HdiGroup, List[int]]
    by_country: Dict[str, List[int]]
    years_sorted: List[int]


def build_indices(records: Sequence[JoinedRecord]) -> Indices:
    by_year: Dict[int, List[int]] = {}
    by_group: Dict[HdiGroup, List[int]] = {}
    by_country: Dict[str, List[int]] = {}

    for r in records:
        by_year.setdefault(r.year, []).append(r.row_id)
        by_group.setdefault(r.hdi_group, []).append(r.row_id)
        by_country.setdefault(r.country_name, []).append(r.row_id)

    for d in (by_year, by_group, by_country):
        for k in d:
            d[k].sort()

    return Indices(by_year=by_year, by_group=by_group, by_country=by_country,
                   years_sorted=sorted(by_year))


def group_ids(idx: Indices, groups: Iterable[HdiGroup]) -> List[int]:
    """Sorted row IDs belonging to any of `groups`."""
    out: List[int] = []
    for g in groups:
        out = union_sorted(out, idx.by_group.get(g, []))
    return out


def intersect_sorted(a: List[int], b: List[int]) -> List[int]:
    """Two-pointer intersection of sorted ID lists."""
    i = j = 0
    out: List[int] = []
    while i < len(a) and j < len(b):
        if a[i] == b[j]:
            out.append(a[i]); i += 1; j += 1
        elif a[i] < b[j]:
            i += 1
        else:
            j += 1
    return out


def union_sorted(a: List[int], b: List[int]) -> List[int]:
    """Merge two sorted ID lists without duplicates."""
    i = j = 0
    out: List[int] = []
    while i < len(a) and j < len(b):
        if a[i] == b[j]:
            out.append(a[i]); i += 1; j += 1
        elif a[i] < b[j]:
            out.append(a[i]); i += 1
        else:
            out.append(b[j]); j += 1
    out.extend(a[i:])
    out.extend(b[j:])
    return out
