"""Tests for grouped aggregation with explicit missing-value fallback."""

from __future__ import annotations

import math

import pandas as pd
import pytest
from pytest import approx

from core.aggregate import AggregateResult, aggregate, align_series, distinct_keys


RECORDS = [
    {"country": "China", "year": 2020, "value": 10.0},
    {"country": "China", "year": 2020, "value": 20.0},
    {"country": "Japan", "year": 2020, "value": 5.0},
    {"country": "Japan", "year": 2021, "value": None},
]


def test_mean_per_country() -> None:
    """Average a metric per country in first-seen order."""

    out = aggregate(RECORDS, "country", "value", "mean", fallback="zero")
    assert [r.key for r in out] == ["China", "Japan"]
    assert out[0] == AggregateResult("China", 15.0, 2)
    assert out[1].value == approx(5.0)
    assert out[1].count == 2


def test_sum_per_year() -> None:
    """Sum a metric per year, an all-missing year sums to zero."""

    out = aggregate(RECORDS, "year", "value", "sum", fallback="zero")
    assert [(r.key, r.value) for r in out] == [(2020, 35.0), (2021, 0.0)]


def test_all_missing_group_takes_fallback() -> None:
    """A group with no values takes 0 or None depending on fallback."""

    zero = aggregate(RECORDS, "year", "value", "mean", fallback="zero")
    null = aggregate(RECORDS, "year", "value", "mean", fallback="null")
    assert zero[-1].value == 0.0
    assert null[-1].value is None
    assert null[-1].count == 1


def test_fallback_is_required() -> None:
    """Callers must name a fallback."""

    with pytest.raises(TypeError):
        aggregate(RECORDS, "year", "value")  # type: ignore[call-arg]


def test_rejects_unknown_reducer_and_fallback() -> None:
    """Unknown reducer or fallback names raise ValueError."""

    with pytest.raises(ValueError):
        aggregate(RECORDS, "year", "value", "median", fallback="zero")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        aggregate(RECORDS, "year", "value", "sum", fallback="skip")  # type: ignore[arg-type]


def test_empty_input_gives_no_groups() -> None:
    """No records means no groups."""

    assert aggregate([], "year", "value", fallback="zero") == []
    assert aggregate(pd.DataFrame(), "year", "value", fallback="null") == []


def test_multi_key_and_callable_selectors() -> None:
    """Group by several columns or by callables."""

    out = aggregate(RECORDS, ["country", "year"], "value", "sum", fallback="null")
    assert [r.key for r in out] == [("China", 2020), ("Japan", 2020), ("Japan", 2021)]

    doubled = aggregate(RECORDS, lambda r: r["country"][0], lambda r: (r["value"] or 0) * 2, "sum", fallback="zero")
    assert [(r.key, r.value) for r in doubled] == [("C", 60.0), ("J", 10.0)]


def test_groups_partition_the_input(records) -> None:
    """Every record lands in exactly one group."""

    out = aggregate(records, ["country", "tech_sector"], "startups", "sum", fallback="zero")
    assert sum(r.count for r in out) == len(records)
    assert sum(r.value for r in out) == approx(records["startups"].sum())


def test_china_japan_yearly_sum(records) -> None:
    """Yearly startup sums per country on the fixture table."""

    china = aggregate(records[records["country"] == "China"], "year", "startups", "sum", fallback="zero")
    japan = aggregate(records[records["country"] == "Japan"], "year", "startups", "sum", fallback="zero")
    # two sectors per country, startups = 100 + offset * 10 + (year - 2019)
    assert [r.value for r in china] == [200.0, 202.0, 204.0]
    assert [r.value for r in japan] == [300.0, 302.0, 304.0]


def test_year_keys_are_native_ints(records) -> None:
    """Year keys come back as plain ints that match distinct_keys."""

    out = aggregate(records, "year", "startups", "sum", fallback="zero")
    assert all(type(r.key) is int for r in out)
    assert [r.key for r in out] == distinct_keys(records, "year")


def test_distinct_keys_sorted_and_native(records) -> None:
    """Distinct keys are sorted native scalars, missing columns give none."""

    assert distinct_keys(records, "year") == [2019, 2020, 2021]
    assert distinct_keys(records, "tech_sector") == ["AI", "Robotics"]
    assert distinct_keys(records, "nope") == []
    assert distinct_keys(pd.DataFrame({"k": [2, None, "a"]}), "k") == [2, "a"]


def test_align_series_fills_missing_keys() -> None:
    """Series are aligned on a shared key list with the fallback filling gaps."""

    series = {
        "China": [AggregateResult("AI", 1.0, 1)],
        "Japan": [AggregateResult("Robotics", 2.0, 1)],
    }
    zero = align_series(series, ["AI", "Robotics"], fallback="zero")
    assert zero["China"].tolist() == [1.0, 0.0]
    assert zero["Japan"].tolist() == [0.0, 2.0]

    null = align_series(series, fallback="null")
    assert null["key"].tolist() == ["AI", "Robotics"]
    assert math.isnan(null.loc[1, "China"])


def test_mean_of_single_record_is_its_value() -> None:
    """The mean of one value is that value."""

    out = aggregate([{"year": 2020, "value": 7.5}], "year", "value", "mean", fallback="null")
    assert out == [AggregateResult(2020, 7.5, 1)]
