"""
Tests for same-day aggregation of a factor into a daily series.
"""
import logging

import pytest

from analytics.daily_series import daily_series
from records import RecordSet


def test_numeric_readings_averaged(make_record):
    rs = RecordSet([
        make_record(1, sleep_hours=6),
        make_record(0, sleep_hours=8),
        make_record(1, sleep_hours=9),
        make_record(2, sleep_hours=None),
    ])
    points = daily_series(rs, "sleep_hours")
    assert [p.value for p in points] == [8.0, 7.5]
    assert [p.n for p in points] == [1, 2]
    assert points[0].date < points[1].date


def test_boolean_minority_rounds_false_and_is_flagged(make_record, caplog):
    rs = RecordSet(
        [make_record(0, exercise=True) for _ in range(2)]
        + [make_record(0, exercise=False) for _ in range(3)]
    )
    with caplog.at_level(logging.WARNING, logger="daily_series"):
        points = daily_series(rs, "exercise")
    assert len(points) == 1
    assert points[0].value is False
    assert points[0].mixed is True
    assert points[0].n == 5
    assert "1 day(s)" in caplog.text


def test_boolean_half_share_rounds_true(make_record):
    rs = RecordSet([make_record(0, alcohol=True), make_record(0, alcohol=False)])
    point = daily_series(rs, "alcohol")[0]
    assert point.value is True
    assert point.mixed is True


def test_unanimous_day_not_mixed(make_record, caplog):
    rs = RecordSet([make_record(0, meditation=True), make_record(0, meditation=True)])
    with caplog.at_level(logging.WARNING, logger="daily_series"):
        point = daily_series(rs, "meditation")[0]
    assert point.value is True
    assert point.mixed is False
    assert caplog.text == ""


def test_unknown_factor_raises(make_record):
    with pytest.raises(KeyError):
        daily_series(RecordSet([make_record()]), "nope")
