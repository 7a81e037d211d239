"""
Correlation Engine — Well-being Factors
=======================================
Ranks how each lifestyle factor co-moves with the two subjective targets
(happiness, stress) for one user's record snapshot.

Architecture (3 layers):
  Layer 0 — Extraction:  project every record onto the factor catalog once
            per run (NaN for missing, booleans coded 1/0).
  Layer 1 — Estimators:  Pearson for numeric factors, point-biserial for
            boolean factors, each target handled independently.
  Layer 2 — Assembly:    one CorrelationResult per factor that has a
            primary-target estimate.  Ranking is a separate, stable sort.

Exclusions are local, never raised (logged at DEBUG):
  • MISSING / NaN / non-finite value  → the pair is dropped, not the record.
  • fewer than min_samples valid pairs → no estimate for that target.
  • zero-variance numeric factor, single-class boolean factor, or zero
    target standard deviation → no estimate.
  • non-finite r → discarded.

Point-biserial uses the sample standard deviation of the target (n−1):

    r_pb = (ȳ₁ − ȳ₀) · √(p·q) / s_y

p-values come from the usual t statistic  t = r·√(n−2) / √(1−r²).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats as sp_stats

import analysis_config
from constants import HAPPINESS, MATRIX_FACTORS, STRENGTH_BANDS, STRESS, TARGETS
from factor_extractor import FactorSpec
from records import RecordSet

log = logging.getLogger("correlation_engine")

PEARSON = "pearson"
POINT_BISERIAL = "point_biserial"


# ═══════════════════════════════════════════════════════════════
#  ESTIMATORS
# ═══════════════════════════════════════════════════════════════

def pearson(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """Pearson r from raw sums.

        r = (nΣxy − ΣxΣy) / √((nΣx² − (Σx)²)(nΣy² − (Σy)²))

    Returns None when the denominator vanishes or r is not finite.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    n = len(x)
    if n == 0 or n != len(y):
        return None
    sx, sy = x.sum(), y.sum()
    num = n * (x * y).sum() - sx * sy
    den_sq = (n * (x * x).sum() - sx * sx) * (n * (y * y).sum() - sy * sy)
    if not den_sq > 0:
        return None
    r = num / math.sqrt(den_sq)
    if not math.isfinite(r):
        return None
    # Sum formula can overshoot ±1 by an ulp on perfectly linear data
    return float(min(1.0, max(-1.0, r)))


def point_biserial(flags: Sequence[bool], y: Sequence[float]) -> Optional[float]:
    """Point-biserial r between a binary variable and a continuous one.

    Needs both classes present and a non-zero sample stdev of *y*.
    """
    flags = np.asarray(flags, dtype=bool)
    y = np.asarray(y, dtype=np.float64)
    n = len(y)
    if n < 2 or n != len(flags):
        return None
    n_true = int(flags.sum())
    if n_true == 0 or n_true == n:
        return None
    sd = float(np.std(y, ddof=1))
    if sd == 0 or not math.isfinite(sd):
        return None
    p = n_true / n
    q = 1.0 - p
    r = (y[flags].mean() - y[~flags].mean()) * math.sqrt(p * q) / sd
    if not math.isfinite(r):
        return None
    return float(min(1.0, max(-1.0, r)))


def p_value(r: float, n: int) -> float:
    """Two-sided p-value for H₀: ρ = 0."""
    if n <= 2:
        return 1.0
    if abs(r) >= 1.0:
        return 0.0
    t_stat = r * math.sqrt(n - 2) / math.sqrt(1 - r * r + 1e-15)
    return float(2 * sp_stats.t.sf(abs(t_stat), n - 2))


def describe_correlation(r: Optional[float]) -> str:
    """Plain-language strength label for *r*."""
    if r is None or not math.isfinite(r):
        return "Unable to calculate correlation"
    abs_r = abs(r)
    direction = "positive" if r > 0 else "negative"
    for bound, stem in STRENGTH_BANDS:
        if abs_r < bound:
            if stem is None:
                return "No correlation"
            return f"{stem} {direction} correlation"
    return f"Strong {direction} correlation"


# ═══════════════════════════════════════════════════════════════
#  RESULTS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TargetCorrelation:
    target: str
    r: float
    n: int
    p_value: float
    method: str


@dataclass(frozen=True)
class CorrelationResult:
    factor_id: str
    name: str
    kind: str
    estimates: Tuple[TargetCorrelation, ...]

    def estimate_for(self, target: str) -> Optional[TargetCorrelation]:
        for est in self.estimates:
            if est.target == target:
                return est
        return None

    def correlation_for(self, target: str) -> Optional[float]:
        est = self.estimate_for(target)
        return est.r if est is not None else None

    @property
    def correlation_with_happiness(self) -> Optional[float]:
        return self.correlation_for(HAPPINESS)

    @property
    def correlation_with_stress(self) -> Optional[float]:
        return self.correlation_for(STRESS)

    @property
    def description(self) -> str:
        return describe_correlation(self.estimates[0].r if self.estimates else None)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "factor_id": self.factor_id,
            "name": self.name,
            "kind": self.kind,
            "correlation_with_happiness": self.correlation_with_happiness,
            "correlation_with_stress": self.correlation_with_stress,
            "description": self.description,
            "estimates": [
                {"target": e.target, "r": e.r, "n": e.n,
                 "p_value": e.p_value, "method": e.method}
                for e in self.estimates
            ],
        }


def rank_correlations(results: Sequence[CorrelationResult],
                      target: str = HAPPINESS) -> List[CorrelationResult]:
    """Sort by |r| for *target*, strongest first.

    Stable: ties keep catalog order.  Results without an estimate for
    *target* go last.
    """
    def strength(res: CorrelationResult) -> float:
        r = res.correlation_for(target)
        return abs(r) if r is not None else -1.0
    return sorted(results, key=strength, reverse=True)


# ═══════════════════════════════════════════════════════════════
#  ENGINE
# ═══════════════════════════════════════════════════════════════

class CorrelationEngine:
    """
    Factor-vs-target correlation over an immutable record snapshot.
    Stateless between calls; safe to share across threads.
    """

    def __init__(self, min_samples: Optional[int] = None):
        self.min_samples = analysis_config.MIN_SAMPLES if min_samples is None else int(min_samples)
        if self.min_samples < 2:
            raise ValueError(f"min_samples must be >= 2, got {self.min_samples}")

    # ─── MAIN ENTRY ───────────────────────────────────────────

    def correlate(self, records, factor_ids: Optional[Sequence[str]] = None,
                  targets: Sequence[str] = TARGETS) -> List[CorrelationResult]:
        """
        Correlate every factor with every target.

        Parameters
        ----------
        records : RecordSet or iterable of Record / entry dicts
        factor_ids : list of str, optional
            Defaults to the full catalog (built-ins + custom categories)
            minus the primary target.
        targets : sequence of str
            The first target is primary: a factor only appears in the
            output when it has an estimate for it.
        """
        if not targets:
            raise ValueError("at least one target is required")
        record_set = RecordSet.coerce(records)
        catalog = record_set.catalog
        primary = targets[0]

        boolean_targets = [t for t in targets if catalog[t].is_boolean]
        if boolean_targets:
            # A custom category can shadow a target id with a boolean kind
            log.warning("Skipping boolean-tagged target(s): %s", ", ".join(boolean_targets))
            if primary in boolean_targets:
                return []
            targets = [t for t in targets if t not in boolean_targets]
        if factor_ids is None:
            factor_ids = [fid for fid in catalog.ids() if fid != primary]
        specs = [catalog[fid] for fid in factor_ids]

        log.info("Correlation Engine - %d records, %d factors, targets=%s",
                 len(record_set), len(specs), ",".join(targets))

        frame = self._layer0_extract(record_set, [*factor_ids, *targets])
        results: List[CorrelationResult] = []
        for spec in specs:
            estimates = self._layer1_estimates(frame, spec, targets)
            result = self._layer2_assemble(spec, estimates, primary)
            if result is not None:
                results.append(result)

        log.info("   ✓ %d/%d factors correlated", len(results), len(specs))
        return results

    def rank(self, records, target: str = HAPPINESS, **kwargs) -> List[CorrelationResult]:
        """``correlate`` followed by ``rank_correlations`` for *target*."""
        return rank_correlations(self.correlate(records, **kwargs), target=target)

    # ─── LAYER 0: Extraction ──────────────────────────────────

    def _layer0_extract(self, record_set: RecordSet, columns: Sequence[str]) -> pd.DataFrame:
        log.debug("   Layer 0: extracting %d columns", len(set(columns)))
        return record_set.extractor.frame(record_set, columns)

    # ─── LAYER 1: Estimators ──────────────────────────────────

    def _layer1_estimates(self, frame: pd.DataFrame, spec: FactorSpec,
                          targets: Sequence[str]) -> List[TargetCorrelation]:
        estimates = []
        for target in targets:
            if target == spec.factor_id:
                continue
            est = self._estimate(frame, spec, target)
            if est is not None:
                estimates.append(est)
        return estimates

    def _estimate(self, frame: pd.DataFrame, spec: FactorSpec,
                  target: str) -> Optional[TargetCorrelation]:
        fid = spec.factor_id
        valid = frame[[fid, target]].dropna()
        valid = valid[np.isfinite(valid.to_numpy(dtype=np.float64)).all(axis=1)]
        n = len(valid)
        if n < self.min_samples:
            log.debug("   skip %s x %s: %d/%d samples", fid, target, n, self.min_samples)
            return None

        x = valid[fid].to_numpy(dtype=np.float64)
        y = valid[target].to_numpy(dtype=np.float64)

        if spec.is_boolean:
            flags = x > 0.5
            if flags.all() or not flags.any():
                log.debug("   skip %s x %s: single class", fid, target)
                return None
            r = point_biserial(flags, y)
            method = POINT_BISERIAL
        else:
            if np.unique(x).size < 2:
                log.debug("   skip %s x %s: zero variance", fid, target)
                return None
            r = pearson(x, y)
            method = PEARSON

        if r is None or not math.isfinite(r):
            log.debug("   skip %s x %s: degenerate estimate", fid, target)
            return None
        return TargetCorrelation(target=target, r=r, n=n,
                                 p_value=p_value(r, n), method=method)

    # ─── LAYER 2: Assembly ────────────────────────────────────

    def _layer2_assemble(self, spec: FactorSpec, estimates: List[TargetCorrelation],
                         primary: str) -> Optional[CorrelationResult]:
        if not any(e.target == primary for e in estimates):
            return None
        # Primary estimate first so description/ordering read it
        ordered = sorted(estimates, key=lambda e: e.target != primary)
        return CorrelationResult(
            factor_id=spec.factor_id,
            name=spec.name,
            kind=spec.kind,
            estimates=tuple(ordered),
        )

    # ─── Feature correlation matrix ───────────────────────────

    def correlation_matrix(self, records, factor_ids: Optional[Sequence[str]] = None,
                           min_samples: Optional[int] = None) -> pd.DataFrame:
        """Pairwise Pearson r between factors (booleans coded 0/1).

        Diagonal is 1.0.  Cells are NaN when the snapshot or the pair has
        fewer than *min_samples* rows, or the denominator vanishes.
        """
        record_set = RecordSet.coerce(records)
        min_n = analysis_config.MATRIX_MIN_SAMPLES if min_samples is None else int(min_samples)
        if factor_ids is None:
            factor_ids = [f for f in MATRIX_FACTORS if f in record_set.catalog]
        factor_ids = list(dict.fromkeys(factor_ids))
        unknown = [f for f in factor_ids if f not in record_set.catalog]
        if unknown:
            raise KeyError(f"unknown factors {unknown!r}")

        matrix = pd.DataFrame(np.nan, index=factor_ids, columns=factor_ids, dtype=np.float64)
        if len(record_set) < min_n:
            log.info("   Matrix skipped: %d records (need >= %d)", len(record_set), min_n)
            return matrix

        data = self._layer0_extract(record_set, factor_ids)
        for i, ci in enumerate(factor_ids):
            matrix.loc[ci, ci] = 1.0
            for cj in factor_ids[i + 1:]:
                pair = data[[ci, cj]].dropna()
                if len(pair) < min_n:
                    continue
                r = pearson(pair[ci].to_numpy(), pair[cj].to_numpy())
                if r is not None:
                    matrix.loc[ci, cj] = r
                    matrix.loc[cj, ci] = r
        return matrix

    # ─── Drill-down ───────────────────────────────────────────

    def factor_scatter(self, records, factor_id: str,
                       target: str = HAPPINESS) -> List[Tuple[float, float]]:
        """Points behind a single factor's correlation.

        Numeric factors: every valid (x, y) pair.  Boolean factors: two
        points, (0, mean target when false) and (1, mean when true); an
        empty group reads 0.0.
        """
        record_set = RecordSet.coerce(records)
        spec = record_set.catalog[factor_id]
        valid = self._layer0_extract(record_set, [factor_id, target])[[factor_id, target]].dropna()

        if not spec.is_boolean:
            return [(float(x), float(y)) for x, y in valid.itertuples(index=False)]

        flags = valid[factor_id] > 0.5
        y = valid[target]
        mean_false = float(y[~flags].mean()) if (~flags).any() else 0.0
        mean_true = float(y[flags].mean()) if flags.any() else 0.0
        return [(0.0, mean_false), (1.0, mean_true)]
