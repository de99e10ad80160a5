"""Struct decoding for contract return values.

Depending on whether ABI metadata survives the trip, a struct comes back as a
mapping (``AttributeDict``), a named tuple, or a bare positional tuple. Every
struct read goes through ``decode_struct`` so nothing above the ledger layer
has to care which one it got.
"""
from __future__ import annotations
from collections.abc import Mapping
from typing import Any, Dict, Sequence

# Field order of each contract struct, matching abi/feedback_abi.json
STUDENT_FIELDS = ("wallet", "name", "isRegistered")
TEACHER_FIELDS = ("teacherId", "name", "isRegistered")
COURSE_FIELDS = ("courseId", "courseName", "exists")
FEEDBACK_FIELDS = (
    "studentWallet",
    "facultyId",
    "courseId",
    "ratings",
    "totalScore",
    "id",
    "comments",
    "timestamp",
)

_MISSING = object()


def _named(raw: Any, name: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(name, _MISSING)
    # named tuples and attribute objects; a plain tuple has no such attribute
    return getattr(raw, name, _MISSING)


def decode_struct(raw: Any, fields: Sequence[str]) -> Dict[str, Any]:
    """Read ``fields`` from ``raw`` by name first, falling back to position."""
    decoded: Dict[str, Any] = {}
    for index, name in enumerate(fields):
        value = _named(raw, name)
        if value is _MISSING:
            try:
                value = raw[index]
            except (IndexError, KeyError, TypeError):
                value = None
        decoded[name] = value
    return decoded


def as_int_list(values) -> list:
    return [int(v) for v in (values or [])]
