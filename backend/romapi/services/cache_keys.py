"""
Deterministic cache keys for business reads.

  detail:<uuid>
  listing:<urlsafe-base64 of the normalized spec>

Normalization works on the *validated* BusinessQuerySpec, so defaults
are already substituted and query-string types already coerced. On top
of that, fields are sorted by name, unset fields are dropped, and values
are rendered one way only: booleans as true/false, whole numbers
without a fractional part ("2" == 2 == 2.0), enums by value.

The normalized form is a compact JSON object, so a free-text value
containing separators such as "|city=" stays inside its own string and
can never collide with a different filter set.
"""

from __future__ import annotations

import base64
import enum
import json
import uuid
from typing import Any

from romapi.schemas.business import BusinessQuerySpec

LISTING_PREFIX = "listing:"
DETAIL_PREFIX = "detail:"


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return _render(value.value)
    if isinstance(value, (int, float)):
        number = float(value)
        if number.is_integer():
            return str(int(number))
        return repr(number)
    return str(value)


def normalize_spec(spec: BusinessQuerySpec) -> str:
    fields = spec.model_dump(exclude_none=True)
    return json.dumps(
        {name: _render(value) for name, value in fields.items()},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def listing_cache_key(spec: BusinessQuerySpec) -> str:
    encoded = base64.urlsafe_b64encode(normalize_spec(spec).encode("utf-8")).decode("ascii")
    return f"{LISTING_PREFIX}{encoded}"


def detail_cache_key(business_id: uuid.UUID | str) -> str:
    return f"{DETAIL_PREFIX}{business_id}"
