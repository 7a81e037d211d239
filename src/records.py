"""
Daily entry model
=================
Immutable records handed over by the entries API, plus the RecordSet
snapshot every analysis runs against.

Ingestion accepts both the camelCase API shape (``sleepHours``) and the
snake_case database shape (``sleep_hours``).  Individually malformed
values are kept as given; the factor extractor treats them as missing.
A payload without a usable date violates the input contract and raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from functools import cached_property
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import pandas as pd

from constants import BOOLEAN, CUSTOM_KINDS, RECORD_FIELD_KEYS
from factor_extractor import FactorCatalog, FactorExtractor

log = logging.getLogger("records")


def _to_date(value: Any) -> date:
    """Reduce a date, datetime, Timestamp or ISO string to a calendar date."""
    if value is None:
        raise ValueError("entry has no date")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"unparseable entry date {value!r}") from e
    if pd.isna(ts):
        raise ValueError(f"unparseable entry date {value!r}")
    return ts.date()


def _pick(payload: Dict[str, Any], *keys: str) -> Any:
    """First non-null value among *keys* (camelCase first, then snake_case)."""
    for key in keys:
        val = payload.get(key)
        if val is not None:
            return val
    return None


@dataclass(frozen=True)
class CustomCategoryValue:
    category_id: str
    value: Any
    kind: str = "numeric"
    name: Optional[str] = None

    @property
    def is_boolean(self) -> bool:
        return self.kind == BOOLEAN

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CustomCategoryValue":
        """Parse nested ``{value, customCategory: {...}}`` or flat entries."""
        if not isinstance(payload, Mapping):
            raise ValueError(f"custom category entry must be a mapping, got {type(payload).__name__}")
        category =payload.get("customCategory") or payload.get("custom_categories")
        if isinstance(category, dict):
            category_id = _pick(category, "id") or _pick(
                payload, "customCategoryId", "custom_category_id"
            )
        else:
            category = payload
            category_id = _pick(
                payload, "categoryId", "category_id",
                "customCategoryId", "custom_category_id", "id",
            )
        if category_id is None:
            raise ValueError("custom category entry has no category id")

        kind = str(_pick(category, "type", "kind") or "numeric").lower()
        if kind not in CUSTOM_KINDS:
            log.debug("Unknown custom kind %r for %s, using numeric", kind, category_id)
            kind = "numeric"
        return cls(
            category_id=str(category_id),
            value=payload.get("value"),
            kind=kind,
            name=_pick(category, "name"),
        )


@dataclass(frozen=True)
class Record:
    """One logged day.  Several records may share a date."""

    id: str
    date: date
    sleep_hours: Any = None
    sleep_quality: Any = None
    exercise: Any = False
    exercise_time: Any = None
    alcohol: Any = False
    alcohol_units: Any = None
    cannabis: Any = False
    cannabis_amount: Any = None
    meditation: Any = False
    meditation_time: Any = None
    social_time: Any = None
    work_hours: Any = None
    meals: Any = None
    food_quality: Any = None
    stress_level: Any = None
    happiness_rating: Any = None
    notes: Optional[str] = None
    custom_values: Tuple[CustomCategoryValue, ...] = ()

    def custom_value(self, category_id: str) -> Optional[CustomCategoryValue]:
        """First value logged for *category_id*, or None."""
        for cv in self.custom_values:
            if cv.category_id == category_id:
                return cv
        return None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Record":
        if not isinstance(payload, Mapping):
            raise ValueError(f"entry must be a mapping, got {type(payload).__name__}")
        fields: Dict[str, Any] = {}
        for field_name, camel in RECORD_FIELD_KEYS.items():
            val = _pick(payload, camel, field_name)
            if val is not None:
                fields[field_name] = val

        raw_custom = (
            payload.get("customCategoryEntries")
            or payload.get("custom_category_entries")
            or payload.get("customCategories")
            or []
        )
        custom = tuple(CustomCategoryValue.from_dict(c) for c in raw_custom)

        return cls(
            id=str(payload.get("id", "")),
            date=_to_date(payload.get("date")),
            custom_values=custom,
            **fields,
        )


class RecordSet:
    """Immutable, ordered snapshot of one user's records.

    Derived structures (factor catalog, extractor) are built once per
    snapshot and cached on it; nothing here is ever written after that.
    """

    def __init__(self, records: Iterable[Record]):
        self._records: Tuple[Record, ...] = tuple(records)

    @classmethod
    def from_dicts(cls, payloads: Iterable[Dict[str, Any]]) -> "RecordSet":
        return cls(Record.from_dict(p) for p in payloads)

    @classmethod
    def coerce(cls, records: Any) -> "RecordSet":
        """Accept a RecordSet, or any iterable of Records / API dicts."""
        if isinstance(records, RecordSet):
            return records
        return cls(r if isinstance(r, Record) else Record.from_dict(r) for r in records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __getitem__(self, idx: int) -> Record:
        return self._records[idx]

    @property
    def records(self) -> Tuple[Record, ...]:
        return self._records

    def dates(self) -> List[date]:
        """Distinct calendar dates, ascending."""
        return sorted({r.date for r in self._records})

    @cached_property
    def catalog(self) -> FactorCatalog:
        return FactorCatalog.build(self._records)

    @cached_property
    def extractor(self) -> FactorExtractor:
        return FactorExtractor(self.catalog)
