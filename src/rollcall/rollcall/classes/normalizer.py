"""ClassContext normalization.

Every class identity entering the system goes through ``normalize_context``
so that composite-key equality is a reliable identity test. The functions
here are pure; invalid input raises ``MalformedContext`` and is never
coerced into a different class.
"""
from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from ..core.constants import COMPOSITE_KEY_SEPARATOR, YEAR_SEMESTERS
from ..core.exceptions import MalformedContext
from .model import ClassContext

_ORDINALS = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th"}

_YEAR_RE = re.compile(r"^(\d+)\s*(st|nd|rd|th)?(?:\s*year)?$", re.IGNORECASE)
_SEMESTER_RE = re.compile(r"^(?:sem(?:ester)?\s*)?(\d+)$", re.IGNORECASE)
_BATCH_RE = re.compile(r"^(\d{4})[-_](\d{4})$")
_SINGLE_YEAR_RE = re.compile(r"^\d{4}$")

_UNSET = ("", None)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def normalize_year(value: Any) -> str:
    raw = _text(value)
    m = _YEAR_RE.match(raw)
    if not m:
        raise MalformedContext(f"Unrecognized year {value!r}", details={"field": "year"})
    number = int(m.group(1))
    if number not in _ORDINALS:
        raise MalformedContext(f"Year must be between 1 and 4, got {value!r}", details={"field": "year"})
    suffix = m.group(2)
    if suffix and suffix.lower() != _ORDINALS[number][-2:]:
        raise MalformedContext(f"Ordinal suffix does not match year {value!r}", details={"field": "year"})
    return f"{_ORDINALS[number]} Year"


def normalize_semester(value: Any) -> str:
    raw = _text(value)
    m = _SEMESTER_RE.match(raw)
    if not m:
        raise MalformedContext(f"Unrecognized semester {value!r}", details={"field": "semester"})
    number = int(m.group(1))
    if not 1 <= number <= 8:
        raise MalformedContext(f"Semester must be between 1 and 8, got {value!r}", details={"field": "semester"})
    return f"Sem {number}"


def normalize_section(value: Any) -> str:
    raw = _text(value).upper()
    if not re.fullmatch(r"[A-Z]", raw):
        raise MalformedContext(f"Section must be a single letter, got {value!r}", details={"field": "section"})
    return raw


def normalize_batch(value: Any) -> str:
    raw = _text(value)
    if _SINGLE_YEAR_RE.match(raw):
        start = int(raw)
        return f"{start}-{start + 4}"

    m = _BATCH_RE.match(raw)
    if not m:
        raise MalformedContext(f"Batch must look like YYYY-YYYY, got {value!r}", details={"field": "batch"})
    start, end = int(m.group(1)), int(m.group(2))
    if end <= start:
        raise MalformedContext(f"Batch end year must follow start year, got {value!r}", details={"field": "batch"})
    return f"{start}-{end}"


def normalize_department(value: Any) -> str:
    raw = _text(value)
    if not raw:
        raise MalformedContext("Department is required", details={"field": "department"})
    return raw


def check_year_semester(year_label: str, semester_label: str) -> None:
    year = int(year_label[0])
    semester = int(semester_label.split()[-1])
    if semester not in YEAR_SEMESTERS[year]:
        raise MalformedContext(
            f"{semester_label} does not belong to {year_label}",
            details={"year": year_label, "semester": semester_label, "allowed": list(YEAR_SEMESTERS[year])},
        )


def normalize_context(
    *,
    year: Any,
    semester: Any,
    section: Any,
    batch: Any,
    department: Any,
) -> ClassContext:
    year_label = normalize_year(year)
    semester_label = normalize_semester(semester)
    check_year_semester(year_label, semester_label)
    return ClassContext(
        batch_year=normalize_batch(batch),
        year_label=year_label,
        semester_label=semester_label,
        section=normalize_section(section),
        department=normalize_department(department),
    )


def context_from_mapping(raw: Mapping[str, Any]) -> ClassContext:
    """Build a context from request-style parameters.

    Accepts ``batch`` or ``batchYear``/``batch_year``; a ``composite_key``
    (or ``classId``) may stand in for the four identity fields.
    """
    if not isinstance(raw, Mapping):
        raise MalformedContext("Class parameters must be a mapping")

    key = raw.get("composite_key") or raw.get("classId")
    if key and all(raw.get(f) in _UNSET for f in ("year", "semester", "section")):
        return context_from_key(str(key), raw.get("department"))

    batch = raw.get("batch")
    if batch in _UNSET:
        batch = raw.get("batchYear") or raw.get("batch_year")
    return normalize_context(
        year=raw.get("year"),
        semester=raw.get("semester"),
        section=raw.get("section"),
        batch=batch,
        department=raw.get("department"),
    )


def parse_composite_key(key: str) -> tuple[str, str, str, str]:
    parts = _text(key).split(COMPOSITE_KEY_SEPARATOR)
    if len(parts) != 4:
        raise MalformedContext(f"Composite key must have four parts, got {key!r}", details={"field": "composite_key"})
    batch, year, semester, section = parts
    return batch, year, semester, section


def context_from_key(key: str, department: Any) -> ClassContext:
    batch, year, semester, section = parse_composite_key(key)
    ctx = normalize_context(year=year, semester=semester, section=section, batch=batch, department=department)
    if ctx.composite_key != key:
        raise MalformedContext(f"Composite key {key!r} is not canonical", details={"canonical": ctx.composite_key})
    return ctx


def try_identity(
    *,
    batch: Any,
    year: Any,
    semester: Any,
    section: Any,
) -> Optional[tuple[str, str, str, str]]:
    """Tolerant identity of stored legacy fields; ``None`` if they cannot be normalized."""
    try:
        year_label = normalize_year(year)
        semester_label = normalize_semester(semester)
        return (normalize_batch(batch), year_label, semester_label, normalize_section(section))
    except MalformedContext:
        return None
