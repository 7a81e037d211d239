"""
Factor extraction
=================
Typed projections over a Record.

A factor is either built in (fixed derivation rule, see constants.py) or a
user-defined custom category discovered by scanning the snapshot.  Lookup
goes through a dispatch table ``factor_id -> extraction function`` built
once per snapshot; nothing re-scans records per call.

Extraction results:
  • float    — finite, non-negative reading
  • bool     — flag factors
  • MISSING  — absent, null, NaN, non-finite, negative or malformed value
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from operator import attrgetter
from typing import Any, Callable, Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from constants import BOOLEAN, BUILTIN_FACTORS, FLAG_GATED_AMOUNTS, NUMERIC

log = logging.getLogger("factor_extractor")

BUILTIN = "builtin"
CUSTOM = "custom"

# Reserved date column of extraction frames
DATE_COLUMN = "_date"


class _Missing:
    """Singleton marker for an absent factor value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def clean_number(value: Any):
    """Return *value* as a finite, non-negative float, else MISSING."""
    if value is None or isinstance(value, (bool, np.bool_)):
        return MISSING
    try:
        num = float(value)
    except (TypeError, ValueError):
        return MISSING
    if not math.isfinite(num) or num < 0:
        return MISSING
    return num


def clean_flag(value: Any):
    """Return *value* as a bool (True/False or 1/0), else MISSING."""
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    return MISSING


@dataclass(frozen=True)
class FactorSpec:
    factor_id: str
    name: str
    kind: str
    source: str = BUILTIN

    @property
    def is_boolean(self) -> bool:
        return self.kind == BOOLEAN


class FactorCatalog:
    """Ordered factor catalog: built-ins first, then custom categories in
    first-appearance order.  A custom category whose id collides with a
    built-in keeps that built-in's slot but takes over its kind and
    extraction.
    """

    def __init__(self, specs: Sequence[FactorSpec]):
        self._specs: List[FactorSpec] = list(specs)
        self._index: Dict[str, int] = {s.factor_id: i for i, s in enumerate(self._specs)}

    @classmethod
    def build(cls, records: Iterable) -> "FactorCatalog":
        specs = [FactorSpec(fid, name, kind, BUILTIN) for fid, name, kind in BUILTIN_FACTORS]
        index = {s.factor_id: i for i, s in enumerate(specs)}

        # One scan: first appearance fixes the slot, any boolean tag fixes the kind
        order: List[str] = []
        is_bool: Dict[str, bool] = {}
        names: Dict[str, str] = {}
        for rec in records:
            for cv in rec.custom_values:
                cid = cv.category_id
                if cid not in is_bool:
                    order.append(cid)
                    is_bool[cid] = False
                is_bool[cid] = is_bool[cid] or cv.is_boolean
                if cv.name and cid not in names:
                    names[cid] = cv.name

        for cid in order:
            spec = FactorSpec(
                factor_id=cid,
                name=names.get(cid, cid),
                kind=BOOLEAN if is_bool[cid] else NUMERIC,
                source=CUSTOM,
            )
            if cid in index:
                log.debug("Custom category %s overrides built-in factor", cid)
                specs[index[cid]] = spec
            else:
                index[cid] = len(specs)
                specs.append(spec)

        if order:
            log.info("   Discovered %d custom categories", len(order))
        return cls(specs)

    def __contains__(self, factor_id: str) -> bool:
        return factor_id in self._index

    def __getitem__(self, factor_id: str) -> FactorSpec:
        try:
            return self._specs[self._index[factor_id]]
        except KeyError:
            raise KeyError(f"unknown factor {factor_id!r}") from None

    def __iter__(self):
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def ids(self) -> List[str]:
        return [s.factor_id for s in self._specs]

    def custom(self) -> List[FactorSpec]:
        return [s for s in self._specs if s.source == CUSTOM]


# ─── Extraction functions ─────────────────────────────────────

def _numeric_field(field: str) -> Callable:
    get = attrgetter(field)

    def extract(record):
        return clean_number(get(record))
    return extract


def _flag_field(field: str) -> Callable:
    get = attrgetter(field)

    def extract(record):
        return clean_flag(get(record))
    return extract


def _gated_amount(field: str, flag: str) -> Callable:
    get, get_flag = attrgetter(field), attrgetter(flag)

    def extract(record):
        if clean_flag(get_flag(record)) is False:
            return 0.0
        return clean_number(get(record))
    return extract


def _custom_numeric(category_id: str) -> Callable:
    def extract(record):
        cv = record.custom_value(category_id)
        if cv is None:
            return MISSING
        return clean_number(cv.value)
    return extract


def _custom_flag(category_id: str) -> Callable:
    def extract(record):
        cv = record.custom_value(category_id)
        # An unlogged boolean category means "no", not "unknown"
        if cv is None:
            return False
        flag = clean_flag(cv.value)
        if flag is MISSING:
            num = clean_number(cv.value)
            return MISSING if num is MISSING else num > 0
        return flag
    return extract


def _extraction_for(spec: FactorSpec) -> Callable:
    if spec.source == CUSTOM:
        return _custom_flag(spec.factor_id) if spec.is_boolean else _custom_numeric(spec.factor_id)
    if spec.is_boolean:
        return _flag_field(spec.factor_id)
    if spec.factor_id in FLAG_GATED_AMOUNTS:
        return _gated_amount(spec.factor_id, FLAG_GATED_AMOUNTS[spec.factor_id])
    return _numeric_field(spec.factor_id)


class FactorExtractor:
    """Pure lookup ``value(record, factor_id)`` over a fixed catalog."""

    def __init__(self, catalog: FactorCatalog):
        self.catalog = catalog
        self._table: Dict[str, Callable] = {
            spec.factor_id: _extraction_for(spec) for spec in catalog
        }

    def value(self, record, factor_id: str):
        try:
            extract = self._table[factor_id]
        except KeyError:
            raise KeyError(f"unknown factor {factor_id!r}") from None
        return extract(record)

    def values(self, records: Iterable, factor_id: str) -> list:
        return [self.value(r, factor_id) for r in records]

    def frame(self, records: Iterable, factor_ids: Sequence[str]) -> pd.DataFrame:
        """One row per record: ``DATE_COLUMN`` plus one float column per factor.

        Missing values are NaN; boolean factors are coded 1.0 / 0.0.
        """
        factor_ids = list(dict.fromkeys(factor_ids))
        rows = []
        for rec in records:
            row: Dict[str, Any] = {DATE_COLUMN: pd.Timestamp(rec.date)}
            for fid in factor_ids:
                val = self.value(rec, fid)
                row[fid] = np.nan if val is MISSING else float(val)
            rows.append(row)
        return pd.DataFrame(rows, columns=[DATE_COLUMN, *factor_ids])
