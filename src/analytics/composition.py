"""Per-day lifestyle composition for stacked visualization.

Three passes over the whole date-ordered snapshot:

  Pass 1 — per metric, per record: raw reading → [0, 10] using the
           metric's typical max (linear) or its 1-10 scale rule.
           Missing / NaN / ≤ 0 readings count as 0.  Records sharing a
           date are averaged into one day.
  Pass 2 — per metric, across days: divide by the metric's own observed
           max (floor fixed at 0) so its historical peak reads 1.0 and
           only a literal zero reads 0.
  Pass 3 — per day: divide by the day's sum so the metrics add to 1.
           Any floating-point residual beyond the tolerance goes to the
           LAST metric of the ordered catalog.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from constants import (
    COMPOSITION_SCALE,
    COMPOSITION_TOLERANCE,
    LIFESTYLE_METRICS,
    LINEAR,
    SCALE,
)
from factor_extractor import DATE_COLUMN, MISSING
from records import RecordSet

log = logging.getLogger("composition")


@dataclass(frozen=True)
class MetricConfig:
    metric_id: str
    label: str
    max_value: float
    rule: str = LINEAR

    def __post_init__(self):
        if self.rule not in (LINEAR, SCALE):
            raise ValueError(f"{self.metric_id}: unknown normalization rule {self.rule!r}")
        if not self.max_value > 0:
            raise ValueError(f"{self.metric_id}: max_value must be positive")
        if self.rule == SCALE and not self.max_value > 1:
            raise ValueError(f"{self.metric_id}: scale metrics need max_value > 1")

    def normalize(self, value: Any) -> float:
        """Pass 1: map one reading onto [0, 10]."""
        if value is MISSING or value is None:
            return 0.0
        try:
            v = float(value)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(v) or v <= 0:
            return 0.0
        if self.rule == SCALE:
            scaled = (v - 1) / (self.max_value - 1) * COMPOSITION_SCALE
        else:
            scaled = min(v, self.max_value) / self.max_value * COMPOSITION_SCALE
        return min(COMPOSITION_SCALE, max(0.0, scaled))


DEFAULT_METRICS: Tuple[MetricConfig, ...] = tuple(
    MetricConfig(mid, label, max_value, rule)
    for mid, label, max_value, rule in LIFESTYLE_METRICS
)


@dataclass(frozen=True)
class CompositionFrame:
    date: date
    proportions: Tuple[Tuple[str, float], ...]

    @property
    def total(self) -> float:
        return sum(p for _, p in self.proportions)

    @property
    def is_empty(self) -> bool:
        return all(p == 0 for _, p in self.proportions)

    def get(self, metric_id: str) -> float:
        for mid, p in self.proportions:
            if mid == metric_id:
                return p
        raise KeyError(metric_id)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "proportions": [{"metric_id": m, "proportion": p} for m, p in self.proportions],
        }


class CompositionNormalizer:
    """Daily composition over an explicit, ordered metric catalog."""

    def __init__(self, metrics: Optional[Sequence[MetricConfig]] = None):
        if isinstance(metrics, (set, frozenset)):
            raise TypeError("metric catalog must be an ordered sequence, not a set")
        metrics = tuple(DEFAULT_METRICS if metrics is None else metrics)
        if not metrics:
            raise ValueError("metric catalog is empty")
        ids = [m.metric_id for m in metrics]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate metric ids in {ids}")
        self.metrics = metrics

    @property
    def metric_ids(self) -> List[str]:
        return [m.metric_id for m in self.metrics]

    def compose_daily(self, records) -> List[CompositionFrame]:
        record_set = RecordSet.coerce(records)
        if len(record_set) == 0:
            return []

        raw = self._pass1_normalize(record_set)
        scaled = self._pass2_rescale(raw)
        composed = self._pass3_compose(scaled)

        n_empty = int((composed.sum(axis=1) == 0).sum())
        log.info("   Composition: %d days (%d empty) from %d records",
                 len(composed), n_empty, len(record_set))

        ids = self.metric_ids
        return [
            CompositionFrame(
                date=day.date(),
                proportions=tuple((mid, float(row[mid])) for mid in ids),
            )
            for day, row in composed.iterrows()
        ]

    # ─── Pass 1 ───────────────────────────────────────────────

    def _pass1_normalize(self, record_set: RecordSet) -> pd.DataFrame:
        """Rows = calendar days (ascending), columns = metric ids, values in [0, 10]."""
        extractor = record_set.extractor
        ids = self.metric_ids
        rows = []
        for rec in record_set:
            row: Dict[str, Any] = {DATE_COLUMN: pd.Timestamp(rec.date)}
            for metric in self.metrics:
                if metric.metric_id in extractor.catalog:
                    val = extractor.value(rec, metric.metric_id)
                else:
                    val = MISSING
                row[metric.metric_id] = metric.normalize(val)
            rows.append(row)
        frame = pd.DataFrame(rows, columns=[DATE_COLUMN, *ids])
        # Keyed by the record's date, never by array position
        return frame.groupby(DATE_COLUMN, sort=True)[ids].mean()

    # ─── Pass 2 ───────────────────────────────────────────────

    def _pass2_rescale(self, raw: pd.DataFrame) -> pd.DataFrame:
        observed_max = raw.max(axis=0).clip(lower=0.0)
        peaks = observed_max.where(observed_max > 0)
        # Metrics that never rose above zero stay at zero
        return raw.div(peaks, axis=1).fillna(0.0)

    # ─── Pass 3 ───────────────────────────────────────────────

    def _pass3_compose(self, scaled: pd.DataFrame) -> pd.DataFrame:
        out = scaled.copy()
        day_sum = scaled.sum(axis=1)
        active = day_sum > 0
        if not active.any():
            return out

        out.loc[active] = scaled.loc[active].div(day_sum[active], axis=0)
        residual = 1.0 - out.loc[active].sum(axis=1)
        off = residual[residual.abs() > COMPOSITION_TOLERANCE]
        if len(off):
            last = out.columns[-1]
            out.loc[off.index, last] = out.loc[off.index, last] + off
            log.debug("   Residual correction applied to %d days", len(off))
        return out
