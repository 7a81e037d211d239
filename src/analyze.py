"""
Well-being Analysis Runner
==========================
Runs the analytics engine over a JSON export of daily entries and prints
one JSON document.

Usage:
    python analyze.py entries.json                   # every analysis
    python analyze.py entries.json --correlations    # ranked correlations only
    python analyze.py entries.json --composition     # daily composition only
    python analyze.py entries.json --histogram sleep_hours
    python analyze.py entries.json --matrix --min-samples 10
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import analysis_config
from analytics.composition import CompositionNormalizer
from analytics.distribution import DistributionBinner
from constants import HAPPINESS, TARGETS
from correlation_engine import CorrelationEngine
from records import RecordSet

log = logging.getLogger("analyze")


def load_entries(path: Path) -> List[Dict[str, Any]]:
    """Read a list of entries, or ``{"entries": [...]}``, from *path*."""
    with open(path, encoding="utf-8") as fh:
        payload = json.load(fh)
    if isinstance(payload, dict):
        payload = payload.get("entries", [])
    if not isinstance(payload, list):
        raise ValueError("expected a list of entries")
    bad = [i for i, entry in enumerate(payload) if not isinstance(entry, dict)]
    if bad:
        raise ValueError(f"entries at positions {bad[:5]} are not JSON objects")
    return payload


def _json_safe(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


def run_analysis(record_set: RecordSet, *, correlations: bool = True,
                 composition: bool = True, histograms: Optional[List[str]] = None,
                 matrix: bool = False, min_samples: Optional[int] = None,
                 target: str = HAPPINESS) -> Dict[str, Any]:
    """Run the selected analyses; each is independent of the others."""
    report: Dict[str, Any] = {"n_records": len(record_set)}

    if correlations:
        engine = CorrelationEngine(min_samples=min_samples)
        ranked = engine.rank(record_set, target=target, targets=TARGETS)
        report["correlations"] = [r.as_dict() for r in ranked]

    if composition:
        frames = CompositionNormalizer().compose_daily(record_set)
        report["composition"] = [f.as_dict() for f in frames]

    if histograms is not None:
        binner = DistributionBinner(record_set)
        if histograms:
            hists = {fid: binner.factor_histogram(fid) for fid in histograms}
        else:
            hists = binner.catalog_histograms()
            hists.update(binner.target_histograms())
        report["histograms"] = {fid: h.as_dict() for fid, h in hists.items()}

    if matrix:
        engine = CorrelationEngine(min_samples=min_samples)
        mat = engine.correlation_matrix(record_set, min_samples=min_samples)
        report["matrix"] = {
            "factors": list(mat.columns),
            "values": [[None if math.isnan(v) else float(v) for v in row] for row in mat.to_numpy()],
        }

    return _json_safe(report)


# ═══════════════════════════════════════════════════════════════
#  CLI
# ═══════════════════════════════════════════════════════════════

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Well-being correlation analysis")
    parser.add_argument("entries", type=Path, help="JSON export of daily entries")
    parser.add_argument("--correlations", action="store_true",
                        help="Ranked factor correlations")
    parser.add_argument("--composition", action="store_true",
                        help="Per-day lifestyle composition")
    parser.add_argument("--histogram", action="append", metavar="FACTOR",
                        help="Distribution histogram for FACTOR (repeatable)")
    parser.add_argument("--matrix", action="store_true",
                        help="Factor-vs-factor correlation matrix")
    parser.add_argument("--min-samples", type=int, default=None,
                        help=f"Minimum valid pairs per estimate and matrix cell "
                             f"(defaults: {analysis_config.MIN_SAMPLES} / {analysis_config.MATRIX_MIN_SAMPLES})")
    parser.add_argument("--target", default=HAPPINESS, choices=list(TARGETS),
                        help="Target used to rank correlations")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, analysis_config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    try:
        record_set = RecordSet.from_dicts(load_entries(args.entries))
    except (OSError, ValueError) as e:
        log.error("Could not load entries from %s: %s", args.entries, e)
        return 1

    selected = args.correlations or args.composition or args.histogram or args.matrix
    try:
        report = run_analysis(
            record_set,
            correlations=args.correlations or not selected,
            composition=args.composition or not selected,
            histograms=args.histogram if selected else [],
            matrix=args.matrix or not selected,
            min_samples=args.min_samples,
            target=args.target,
        )
    except (KeyError, ValueError) as e:
        log.error("Analysis failed: %s", e)
        return 1
    json.dump(report, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
