import pytest

from triplog.api.filters import (
    apply_filters,
    bookings_by_city,
    city_rollup,
    daily_breakdown,
    filter_options,
    summarize,
)
from triplog.api.models import FilterCriteria, TripRecord
from triplog.api.normalizer import load_records_from_text


@pytest.fixture
def records(sample_csv):
    return load_records_from_text(sample_csv)


def test_free_text_is_case_insensitive_substring():
    milano = TripRecord(activity="Trip", origin="Milano", date_iso="2024-01-01")
    other = TripRecord(activity="Trip", origin="Bari", destination="Lecce", date_iso="2024-01-01")

    assert apply_filters([milano, other], FilterCriteria(text="milano")) == [milano]
    assert apply_filters([milano, other], FilterCriteria(text="MILANO")) == [milano]


def test_free_text_matches_derived_fields():
    record = TripRecord(date="5/3/2024", date_iso="2024-03-05")
    assert apply_filters([record], FilterCriteria(text="2024-03-05")) == [record]


def test_exact_criteria_are_anded(records):
    result = apply_filters(records, FilterCriteria(activity="Notte", city="Roma"))
    assert [r.inc for r in result] == ["4", "5"]

    result = apply_filters(records, FilterCriteria(activity="Notte", city="Roma", status="Pagato"))
    assert [r.inc for r in result] == ["5"]

    assert apply_filters(records, FilterCriteria(activity="notte")) == []


def test_filter_preserves_order(records):
    result = apply_filters(records, FilterCriteria(text="roma"))
    # "Via Roma" in the address of row 1 matches too
    assert [r.inc for r in result] == ["1", "3", "4", "5"]


def test_criteria_from_query_args():
    criteria = FilterCriteria.from_mapping({"q": "  Roma ", "type": "Trip "})
    assert criteria == FilterCriteria(text="roma", activity="Trip")


def test_summary(records):
    summary = summarize(records)
    assert summary.rows == 5
    assert summary.days == 3
    assert summary.trips == 2
    assert summary.nights == 3
    assert summary.km == 715
    assert summary.cost == pytest.approx(376.0)


def test_summary_totals_include_every_activity_kind():
    # km/cost on a night row still count towards the totals
    rows = [
        TripRecord(activity="Trip", km_value=100, cost_value=10, date_iso="2024-01-01"),
        TripRecord(activity="Notte", km_value=5, cost_value=80, date_iso="2024-01-01"),
    ]
    summary = summarize(rows)
    assert summary.km == 105
    assert summary.cost == 90


def test_city_rollup(records):
    rollup = city_rollup(records)
    assert [c.city for c in rollup] == ["Roma", "Milano"]

    roma, milano = rollup
    assert roma.nights == 2
    assert roma.trips_in == 1
    assert roma.trips_out == 0
    assert roma.km == 575
    assert roma.cost == pytest.approx(225.5)

    assert milano.nights == 1
    assert milano.trips_in == 1
    assert milano.km == 140
    assert milano.cost == pytest.approx(150.5)


def test_city_rollup_counts_outbound_trips_and_skips_empty_city():
    rows = [
        TripRecord(activity="Trip", origin="Pisa", city="Pisa", km_value=80, date_iso="2024-01-01"),
        TripRecord(activity="Notte", city="", cost_value=50, date_iso="2024-01-01"),
    ]
    rollup = city_rollup(rows)
    assert len(rollup) == 1
    assert rollup[0].trips_out == 1
    assert rollup[0].km == 80


def test_city_rollup_ties_sorted_by_name_ignoring_accents():
    rows = [
        TripRecord(activity="Notte", city=name, date_iso="2024-01-01")
        for name in ["Zurigo", "Éze", "Aosta"]
    ]
    assert [c.city for c in city_rollup(rows)] == ["Aosta", "Éze", "Zurigo"]


def test_filter_options(records):
    options = filter_options(records)
    assert options["cities"] == ["Milano", "Roma"]
    assert options["statuses"] == ["da prenotare", "Pagato", "Prenotato"]


def test_daily_breakdown(records):
    days = daily_breakdown(records)
    assert [d.date_iso for d in days] == ["2024-03-05", "2024-03-06", "2024-03-07"]
    first = days[0]
    assert len(first.trips) == 1
    assert len(first.nights) == 1
    assert first.km == 140
    assert first.cost == pytest.approx(150.5)


def test_bookings_by_city(records):
    bookings = bookings_by_city(records)
    assert [city for city, _ in bookings] == ["Milano", "Roma"]
    assert [r.inc for r in bookings[1][1]] == ["4", "5"]
