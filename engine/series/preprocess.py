"""
Series preprocessing: resolves the column for a subject in raw time-indexed points, coerces values,
drops malformed points at the boundary and produces ordered, date-aligned numeric series.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from engine.constants import DATE_KEY
from engine.errors import InvalidInput

log = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class Series:
    subject: str
    dates: Tuple[date, ...]
    values: Tuple[float, ...]
    dropped: int = 0

    def __len__(self) -> int:
        return len(self.values)

    @property
    def last_date(self) -> Optional[date]:
        return self.dates[-1] if self.dates else None

    @property
    def last_value(self) -> float:
        return self.values[-1] if self.values else 0.0

    def iso_dates(self) -> List[str]:
        return [d.isoformat() for d in self.dates]

    def as_mapping(self) -> Dict[str, float]:
        return {d.isoformat(): v for d, v in zip(self.dates, self.values)}


def _normalize(key: str) -> str:
    return _NON_ALNUM.sub("", key.lower())


def resolve_subject_key(keys: Iterable[str], subject: str) -> Optional[str]:
    candidates = [k for k in keys if k != DATE_KEY]
    for k in candidates:
        if k == subject:
            return k
    lowered = subject.lower()
    for k in candidates:
        if k.lower() == lowered:
            return k
    wanted = _normalize(subject)
    if not wanted:
        return None
    for k in candidates:
        if _normalize(k) == wanted:
            return k
    return None


def parse_date(raw: Any) -> date:
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or len(raw) < 10:
        raise InvalidInput(f"unparseable date: {raw!r}")
    try:
        return date.fromisoformat(raw[:10])
    except ValueError as exc:
        raise InvalidInput(f"unparseable date: {raw!r}") from exc


def coerce_value(raw: Any) -> float:
    if raw is None:
        return 0.0
    if isinstance(raw, bool):
        raise InvalidInput(f"non-numeric value: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"non-numeric value: {raw!r}") from exc
    if not math.isfinite(value):
        raise InvalidInput(f"non-finite value: {raw!r}")
    if value < 0:
        raise InvalidInput(f"negative value: {raw!r}")
    return value


def _collect_keys(points: Sequence[Mapping[str, Any]]) -> List[str]:
    seen: Dict[str, None] = {}
    for p in points:
        if isinstance(p, Mapping):
            for k in p.keys():
                seen.setdefault(str(k), None)
    return list(seen)


def _extract_rows(
    points: Sequence[Mapping[str, Any]],
    columns: Sequence[Optional[str]],
) -> Tuple[Dict[date, Tuple[float, ...]], int]:
    rows: Dict[date, Tuple[float, ...]] = {}
    dropped = 0
    for p in points:
        try:
            if not isinstance(p, Mapping):
                raise InvalidInput(f"point is not a mapping: {p!r}")
            day = parse_date(p.get(DATE_KEY))
            vals = tuple(coerce_value(p.get(c)) if c else 0.0 for c in columns)
        except InvalidInput as exc:
            dropped += 1
            log.debug("dropping series point: %s", exc)
            continue
        # later duplicates win
        rows[day] = vals
    return rows, dropped


def extract(points: Sequence[Mapping[str, Any]], subject: str) -> Series:
    key = resolve_subject_key(_collect_keys(points), subject)
    if key is None:
        log.debug("subject %r not present in series columns", subject)
        return Series(subject=subject, dates=(), values=(), dropped=len(points))

    rows, dropped = _extract_rows(points, [key])
    ordered = sorted(rows)
    return Series(
        subject=subject,
        dates=tuple(ordered),
        values=tuple(rows[d][0] for d in ordered),
        dropped=dropped,
    )


def extract_pair(
    points: Sequence[Mapping[str, Any]],
    subject_a: str,
    subject_b: str,
) -> Tuple[Series, Series]:
    """Extract two subjects keeping only the dates usable for both.

    Both series end up with identical dates, which is what lets the two
    resulting forecasts share their forecast dates.
    """
    keys = _collect_keys(points)
    key_a = resolve_subject_key(keys, subject_a)
    key_b = resolve_subject_key([k for k in keys if k != key_a], subject_b)
    if key_a is None or key_b is None:
        log.debug("pair %r/%r not fully present in series columns", subject_a, subject_b)
        empty_a = extract(points, subject_a) if key_a else Series(subject_a, (), (), len(points))
        empty_b = extract(points, subject_b) if key_b else Series(subject_b, (), (), len(points))
        return empty_a, empty_b

    rows, dropped = _extract_rows(points, [key_a, key_b])
    ordered = sorted(rows)
    dates = tuple(ordered)
    return (
        Series(subject_a, dates, tuple(rows[d][0] for d in ordered), dropped),
        Series(subject_b, dates, tuple(rows[d][1] for d in ordered), dropped),
    )
