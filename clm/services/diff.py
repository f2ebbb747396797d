"""Field-level comparison of a draft and a canonical contract reading.

Raw extraction payloads are JSON-like mappings. Before comparing, each one
is flattened into ``field path -> FieldValue`` where FieldValue is a tagged
variant, so equality never depends on Python runtime types:

- nested mappings become dotted paths (``classificacao_juridica.etiquetas``)
- ISO ``YYYY-MM-DD`` strings and date objects are dates
- bools are booleans, never numbers; ints and floats compare numerically
- lists, tuples and sets are unordered collections (multiset equality)
- ``None`` is absent, the same as a missing key
"""

from __future__ import annotations

import enum
import json
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from clm.core.errors import MalformedPayload

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ValueKind(str, enum.Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    date = "date"
    collection = "collection"
    absent = "absent"


@dataclass(frozen=True, slots=True)
class FieldValue:
    """A tagged, hashable leaf value of an extraction payload.

    ``value`` holds str/int/float/bool/date for scalars, a frozenset of
    (encoded element, count) pairs for collections and None when absent.
    ``raw`` keeps the JSON-ready original for reporting.
    """

    kind: ValueKind
    value: Any
    raw: Any = field(default=None, compare=False, hash=False)

    def to_json(self) -> Any:
        return self.raw


ABSENT = FieldValue(ValueKind.absent, None, None)


@dataclass(frozen=True, slots=True)
class FieldDiff:
    field_path: str
    draft_value: Any
    canonical_value: Any


def _parse_date(text: str) -> Optional[date]:
    if not _ISO_DATE.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _encode_element(item: Any) -> str:
    """Stable text form of a collection element, used for multiset counting."""
    leaf = to_field_value(item)
    if leaf.kind is ValueKind.collection:
        inner = sorted(f"{k}*{n}" for k, n in leaf.value)
        return f"collection:[{','.join(inner)}]"
    if leaf.kind is ValueKind.date:
        return f"date:{leaf.value.isoformat()}"
    if isinstance(item, Mapping):
        return "mapping:" + json.dumps(item, sort_keys=True, default=str)
    return f"{leaf.kind.value}:{leaf.value!r}"


def to_field_value(value: Any) -> FieldValue:
    """Tag a single leaf value."""
    if value is None:
        return ABSENT
    if isinstance(value, bool):
        return FieldValue(ValueKind.boolean, value, value)
    if isinstance(value, int):
        return FieldValue(ValueKind.number, value, value)
    if isinstance(value, float):
        # Integral floats compare as ints so 100 == 100.0 without losing int precision
        return FieldValue(ValueKind.number, int(value) if value.is_integer() else value, value)
    if isinstance(value, datetime):
        return FieldValue(ValueKind.date, value.date(), value.date().isoformat())
    if isinstance(value, date):
        return FieldValue(ValueKind.date, value, value.isoformat())
    if isinstance(value, str):
        parsed = _parse_date(value)
        if parsed is not None:
            return FieldValue(ValueKind.date, parsed, value)
        return FieldValue(ValueKind.string, value, value)
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=_encode_element) if isinstance(value, (set, frozenset)) else list(value)
        counts = Counter(_encode_element(item) for item in items)
        raw = [_jsonable(item) for item in items]
        return FieldValue(ValueKind.collection, frozenset(counts.items()), raw)
    if isinstance(value, Mapping):
        # Only reachable for mappings nested in collections; top-level ones are flattened.
        return FieldValue(ValueKind.string, json.dumps(value, sort_keys=True, default=str), _jsonable(value))
    raise MalformedPayload(f"unsupported value type {type(value).__name__}")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _jsonable(item) for key, item in value.items()}
    return to_field_value(value).to_json()


def _flatten(payload: Mapping[str, Any], prefix: str, out: dict[str, FieldValue]) -> None:
    for key, value in payload.items():
        if not isinstance(key, str):
            raise MalformedPayload(f"field path keys must be strings, got {type(key).__name__}")
        path = f"{prefix}.{key}" if prefix else key
        if path in out:
            raise MalformedPayload(f"field path {path!r} appears more than once")
        if isinstance(value, Mapping):
            if value:
                _flatten(value, path, out)
            else:
                out[path] = ABSENT
            continue
        out[path] = to_field_value(value)


def normalize_payload(payload: Any) -> dict[str, FieldValue]:
    """Flatten a raw extraction payload into typed field values.

    Raises:
        MalformedPayload: payload is not a mapping, or holds keys/values that
            cannot be represented.
    """
    if not isinstance(payload, Mapping):
        raise MalformedPayload(f"extraction payload must be a mapping, got {type(payload).__name__}")
    out: dict[str, FieldValue] = {}
    _flatten(payload, "", out)
    return out


def to_json_payload(payload: Any) -> dict[str, Any]:
    """JSON-ready copy of a raw payload, suitable for a JSON column.

    Dates become ISO strings and sets become lists (sorted, so the stored
    form is stable). Nested mappings keep their shape.

    Raises:
        MalformedPayload: same conditions as normalize_payload.
    """
    normalize_payload(payload)
    return _jsonable(payload)


def _as_normalized(payload: Any) -> dict[str, FieldValue]:
    if isinstance(payload, dict) and all(isinstance(v, FieldValue) for v in payload.values()):
        return payload
    return normalize_payload(payload)


def compute_diff(draft: Any, canonical: Any) -> list[FieldDiff]:
    """Return one FieldDiff per field path where the two readings disagree.

    A path present on one side only compares against absent, so it yields a
    diff unless the present value is itself null. Output is sorted by field
    path; the function is pure and idempotent.
    """
    left = _as_normalized(draft)
    right = _as_normalized(canonical)

    diffs: list[FieldDiff] = []
    for path in sorted(set(left) | set(right)):
        d = left.get(path, ABSENT)
        c = right.get(path, ABSENT)
        if (d.kind, d.value) == (c.kind, c.value):
            continue
        diffs.append(FieldDiff(field_path=path, draft_value=d.to_json(), canonical_value=c.to_json()))
    return diffs


def is_material(field_path: str, material_fields: Iterable[str]) -> bool:
    """Whether a disagreement on ``field_path`` forces human review.

    An empty material set means every field is material. Otherwise the path
    itself or one of its dotted parents must be listed.
    """
    fields = set(material_fields)
    if not fields:
        return True
    parts = field_path.split(".")
    return any(".".join(parts[:i]) in fields for i in range(1, len(parts) + 1))


__all__ = [
    "ABSENT",
    "FieldDiff",
    "FieldValue",
    "ValueKind",
    "compute_diff",
    "is_material",
    "normalize_payload",
    "to_field_value",
    "to_json_payload",
]
