"""Fold an activity stream into per-category year-to-date totals.

Activities must arrive in ascending chronological order: the running totals
reset whenever an activity's effective year differs from the tracked one, so
out-of-order input yields meaningless totals.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .categories import group_type
from .client import Activity, ActivityFetcher

TOP_N = 3


@dataclass(frozen=True)
class CategoryTotals:
    count: int = 0
    total_time_s: float = 0.0
    total_distance_m: float = 0.0

    def add(self, activity: Activity) -> CategoryTotals:
        return CategoryTotals(
            count=self.count + 1,
            total_time_s=self.total_time_s + activity.moving_time_s,
            total_distance_m=self.total_distance_m + activity.distance_m,
        )


@dataclass(frozen=True)
class AggregationSnapshot:
    year: int | None
    as_of: dt.datetime
    totals: Mapping[str, CategoryTotals] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "totals", MappingProxyType(dict(self.totals)))

    def fold(self, activity: Activity) -> AggregationSnapshot:
        """Return a new snapshot with one more activity; ``self`` is left untouched."""
        effective = activity.effective_date
        totals = dict(self.totals) if effective.year == self.year else {}
        category = group_type(activity.category)
        totals[category] = totals.get(category, CategoryTotals()).add(activity)
        return AggregationSnapshot(year=effective.year, as_of=effective, totals=totals)


@dataclass(frozen=True)
class RankedCategory:
    category: str
    count: int
    total_time_s: float
    total_distance_m: float
    share: float

    @property
    def percent(self) -> float:
        return self.share * 100


AggregationTrace = list[AggregationSnapshot]


def aggregate(
    activities: Iterable[Activity],
    stepped: bool = False,
    now: dt.datetime | None = None,
) -> AggregationTrace:
    """Fold ``activities`` in order.

    Snapshot mode returns a one-element trace holding the final state (an
    empty snapshot stamped ``now`` when there were no activities). Stepped
    mode returns one snapshot per activity.
    """
    now = now or dt.datetime.now(dt.UTC)
    current = AggregationSnapshot(year=now.year, as_of=now)
    trace: AggregationTrace = [] if stepped else [current]

    for activity in activities:
        current = current.fold(activity)
        if stepped:
            trace.append(current)
        else:
            trace[0] = current
    return trace


def finalize(snapshot: AggregationSnapshot, limit: int = TOP_N) -> list[RankedCategory]:
    # sorted() is stable, so equal counts keep first-seen order.
    ranked = sorted(snapshot.totals.items(), key=lambda item: -item[1].count)[:limit]
    total_time = sum(totals.total_time_s for totals in snapshot.totals.values())
    return [
        RankedCategory(
            category=category,
            count=totals.count,
            total_time_s=totals.total_time_s,
            total_distance_m=totals.total_distance_m,
            share=totals.total_time_s / total_time if total_time else 0.0,
        )
        for category, totals in ranked
    ]


def start_of_year(now: dt.datetime | None = None) -> int:
    """Epoch seconds for local midnight on 1 January of ``now``'s year."""
    now = now or dt.datetime.now()
    return int(dt.datetime(now.year, 1, 1).timestamp())


def year_to_date(
    fetcher: ActivityFetcher,
    stepped: bool = False,
    after: int | None = None,
    now: dt.datetime | None = None,
) -> AggregationTrace:
    if after is None:
        after = start_of_year(now)
    return aggregate(fetcher.iter_activities(after), stepped=stepped, now=now)
