"""Filtering and aggregation over the normalized working set.

Every function here is pure: it receives the current records and returns
fresh results, nothing is cached between calls.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from triplog.api.headers import strip_diacritics
from triplog.api.models import (
    NIGHT,
    TRIP,
    CityAggregate,
    DayBreakdown,
    FilterCriteria,
    Summary,
    TripRecord,
)

NO_CITY = "—"


def collation_key(value: str) -> Tuple[str, str]:
    """Sort key approximating Italian collation (accents and case secondary)."""
    return strip_diacritics(value).casefold(), value


def apply_filters(records: Iterable[TripRecord], criteria: FilterCriteria) -> List[TripRecord]:
    """Return the records matching every supplied criterion, order preserved."""
    text = criteria.text.strip().lower()
    activity = criteria.activity.strip()
    city = criteria.city.strip()
    status = criteria.status.strip()

    out = []
    for r in records:
        if activity and r.activity.strip() != activity:
            continue
        if city and r.city.strip() != city:
            continue
        if status and r.status.strip() != status:
            continue
        if text and text not in r.search_text().lower():
            continue
        out.append(r)
    return out


def summarize(records: Sequence[TripRecord]) -> Summary:
    """Headline counts and totals.

    km and cost are summed over every record regardless of activity kind.
    """
    return Summary(
        rows=len(records),
        days=len({r.date_iso for r in records}),
        trips=sum(1 for r in records if r.activity == TRIP),
        nights=sum(1 for r in records if r.activity == NIGHT),
        km=sum(r.km_value for r in records),
        cost=sum(r.cost_value for r in records),
    )


def city_rollup(records: Iterable[TripRecord]) -> List[CityAggregate]:
    """Group by derived city, most nights first then by city name."""
    groups: Dict[str, CityAggregate] = {}

    for r in records:
        c = r.city.strip()
        if not c:
            continue
        agg = groups.setdefault(c, CityAggregate(city=c))
        if r.activity == NIGHT:
            agg.nights += 1
        if r.activity == TRIP:
            agg.km += r.km_value
            if r.origin == c:
                agg.trips_out += 1
            if r.destination == c:
                agg.trips_in += 1
        agg.cost += r.cost_value

    return sorted(groups.values(), key=lambda a: (-a.nights, collation_key(a.city)))


def filter_options(records: Iterable[TripRecord]) -> Dict[str, List[str]]:
    """Distinct cities and statuses available for the filter controls."""
    cities = set()
    statuses = set()
    for r in records:
        if r.city.strip():
            cities.add(r.city.strip())
        if r.status.strip():
            statuses.add(r.status.strip())
    return {
        "cities": sorted(cities, key=collation_key),
        "statuses": sorted(statuses, key=collation_key),
    }


def daily_breakdown(records: Iterable[TripRecord]) -> List[DayBreakdown]:
    """Group records per ISO date for the timeline view."""
    by_day: Dict[str, DayBreakdown] = {}
    for r in records:
        day = by_day.setdefault(r.date_iso, DayBreakdown(date_iso=r.date_iso))
        if r.activity == TRIP:
            day.trips.append(r)
            day.km += r.km_value
        elif r.activity == NIGHT:
            day.nights.append(r)
        else:
            day.others.append(r)
        day.cost += r.cost_value
    return [by_day[d] for d in sorted(by_day)]


def bookings_by_city(records: Iterable[TripRecord]) -> List[Tuple[str, List[TripRecord]]]:
    """Overnight stays grouped by city, each group in date order."""
    groups: Dict[str, List[TripRecord]] = {}
    for r in records:
        if r.activity != NIGHT:
            continue
        groups.setdefault(r.city.strip() or NO_CITY, []).append(r)

    return [
        (city, sorted(items, key=lambda r: r.date_iso))
        for city, items in sorted(groups.items(), key=lambda kv: collation_key(kv[0]))
    ]


__all__ = [
    "apply_filters",
    "bookings_by_city",
    "city_rollup",
    "collation_key",
    "daily_breakdown",
    "filter_options",
    "summarize",
]
