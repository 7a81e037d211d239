"""
Shared test configuration.

Adds src/ to sys.path so the flat modules (correlation_engine, records,
factor_extractor, ...) and the analytics package import the same way the
runner imports them, and provides small record-building fixtures.
"""

import os
import sys
from datetime import date, timedelta

import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

from records import CustomCategoryValue, Record, RecordSet  # noqa: E402

START = date(2026, 1, 1)


@pytest.fixture
def make_record():
    """Factory: ``make_record(day_offset, **fields)`` → Record."""
    counter = {"n": 0}

    def _make(day: int = 0, custom=(), **fields) -> Record:
        counter["n"] += 1
        values = tuple(
            cv if isinstance(cv, CustomCategoryValue) else CustomCategoryValue(*cv)
            for cv in custom
        )
        return Record(
            id=f"r{counter['n']}",
            date=START + timedelta(days=day),
            custom_values=values,
            **fields,
        )
    return _make


@pytest.fixture
def series_records(make_record):
    """Factory: one record per day from parallel field series."""
    def _make(**series) -> RecordSet:
        n = len(next(iter(series.values())))
        return RecordSet(
            make_record(i, **{k: v[i] for k, v in series.items()})
            for i in range(n)
        )
    return _make
