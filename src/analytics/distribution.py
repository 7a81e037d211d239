"""Fixed-bin distribution histograms."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from constants import HAPPINESS, HISTOGRAM_CATALOG, RATING_MAX, RATING_MIN, STRESS
from factor_extractor import MISSING, clean_number
from records import RecordSet

log = logging.getLogger("distribution")


@dataclass(frozen=True)
class Histogram:
    labels: Tuple[str, ...]
    counts: Tuple[int, ...]

    @property
    def total(self) -> int:
        return sum(self.counts)

    @property
    def bins(self) -> List[Tuple[str, int]]:
        return list(zip(self.labels, self.counts))

    def as_dict(self) -> Dict[str, Any]:
        return {"labels": list(self.labels), "counts": list(self.counts)}


def _valid_values(values: Iterable[Any]) -> np.ndarray:
    """Finite, non-negative readings; missing / NaN / negative dropped."""
    cleaned = [clean_number(v) for v in values]
    return np.array([v for v in cleaned if v is not MISSING], dtype=np.float64)


def histogram(values: Iterable[Any], bin_count: int, domain_max: float,
              decimal_places: int = 1) -> Histogram:
    """Count valid values into *bin_count* equal bins over [0, domain_max].

    index = floor(v / width), clamped into [0, bin_count − 1], so anything
    at or beyond *domain_max* lands in the last bin.  Labels are bin
    midpoints formatted to *decimal_places*.
    """
    if int(bin_count) != bin_count or bin_count <= 0:
        raise ValueError(f"bin_count must be a positive integer, got {bin_count!r}")
    if not (isinstance(domain_max, (int, float)) and math.isfinite(domain_max) and domain_max > 0):
        raise ValueError(f"domain_max must be positive and finite, got {domain_max!r}")
    if decimal_places < 0:
        raise ValueError("decimal_places must be >= 0")
    bin_count = int(bin_count)

    width = domain_max / bin_count
    vals = _valid_values(values)
    idx = np.clip(np.floor(vals / width), 0, bin_count - 1).astype(np.int64)
    counts = np.bincount(idx, minlength=bin_count)

    labels = tuple(f"{i * width + width / 2:.{decimal_places}f}" for i in range(bin_count))
    return Histogram(labels=labels, counts=tuple(int(c) for c in counts))


def rating_histogram(values: Iterable[Any], low: int = RATING_MIN,
                     high: int = RATING_MAX) -> Histogram:
    """One bin per integer rating in [low, high]; readings round half-up.

    Readings outside [low, high] are ignored.
    """
    counts = [0] * (high - low + 1)
    for v in _valid_values(values):
        if low <= v <= high:
            counts[int(math.floor(v + 0.5)) - low] += 1
    labels = tuple(str(i) for i in range(low, high + 1))
    return Histogram(labels=labels, counts=tuple(counts))


class DistributionBinner:
    """Histograms for factors of one record snapshot."""

    def __init__(self, records):
        self.record_set = RecordSet.coerce(records)

    def factor_values(self, factor_id: str) -> list:
        return self.record_set.extractor.values(self.record_set, factor_id)

    def factor_histogram(self, factor_id: str, bin_count: Optional[int] = None,
                         domain_max: Optional[float] = None,
                         decimal_places: Optional[int] = None) -> Histogram:
        """Histogram for *factor_id*; unset parameters come from the catalog."""
        defaults = HISTOGRAM_CATALOG.get(factor_id)
        if defaults is None and (bin_count is None or domain_max is None):
            raise ValueError(f"no histogram defaults for {factor_id!r}; pass bin_count and domain_max")
        cat_max, cat_bins, cat_places = defaults or (None, None, 1)
        hist = histogram(
            self.factor_values(factor_id),
            bin_count=cat_bins if bin_count is None else bin_count,
            domain_max=cat_max if domain_max is None else domain_max,
            decimal_places=cat_places if decimal_places is None else decimal_places,
        )
        log.debug("   Histogram %s: %d values in %d bins", factor_id, hist.total, len(hist.counts))
        return hist

    def catalog_histograms(self) -> Dict[str, Histogram]:
        """Every catalogued factor present in the snapshot's catalog."""
        catalog = self.record_set.catalog
        return {fid: self.factor_histogram(fid) for fid in HISTOGRAM_CATALOG if fid in catalog}

    def target_histograms(self) -> Dict[str, Histogram]:
        """1-10 rating histograms for happiness and stress."""
        return {
            target: rating_histogram(self.factor_values(target))
            for target in (HAPPINESS, STRESS)
        }
