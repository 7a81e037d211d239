"""Same-day aggregation of one factor for time-series display.

Numeric readings logged on the same date are averaged.  Boolean readings
are averaged and rounded to the nearest flag (a 0.5 share reads True).
That rounding can hide disagreement, e.g. 2 of 5 entries true becomes
False, so such days are flagged with ``mixed=True`` and counted in a
warning instead of being silently collapsed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Union

import numpy as np

from factor_extractor import MISSING
from records import RecordSet

log = logging.getLogger("daily_series")


@dataclass(frozen=True)
class DailyPoint:
    date: date
    value: Union[float, bool]
    n: int
    mixed: bool = False


def daily_series(records, factor_id: str) -> List[DailyPoint]:
    """One point per date with at least one valid reading, ascending."""
    record_set = RecordSet.coerce(records)
    spec = record_set.catalog[factor_id]
    extractor = record_set.extractor

    by_day: Dict[date, list] = defaultdict(list)
    for rec in record_set:
        val = extractor.value(rec, factor_id)
        if val is not MISSING:
            by_day[rec.date].append(val)

    points: List[DailyPoint] = []
    n_mixed = 0
    for day in sorted(by_day):
        vals = by_day[day]
        if spec.is_boolean:
            share = sum(bool(v) for v in vals) / len(vals)
            mixed = 0 < share < 1
            n_mixed += mixed
            points.append(DailyPoint(day, share >= 0.5, len(vals), mixed))
        else:
            points.append(DailyPoint(day, float(np.mean(vals)), len(vals)))

    if n_mixed:
        log.warning("%s: %d day(s) with disagreeing same-day readings rounded to one flag",
                    factor_id, n_mixed)
    return points
