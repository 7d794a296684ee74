from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from dealerhub.canonical.registry import resolve_schema

HASH_PREFIX = "sha256:"


@dataclass(frozen=True)
class CanonicalValidationResult:
    ok: bool
    model: BaseModel | None = None
    normalized: dict[str, Any] | None = None
    content_hash: str | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)


def content_hash(model: BaseModel) -> str:
    """Fingerprint of a validated vehicle, independent of key order and of
    how the caller spelled numbers ("20000" and 20000 hash the same)."""
    data = model.model_dump(mode="json", exclude_none=True)
    raw = json.dumps(data, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    return HASH_PREFIX + hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _field_errors(exc: ValidationError) -> list[dict[str, Any]]:
    # inputs are left out: raw payloads may carry contact data
    return [
        {"loc": list(e["loc"]), "type": e["type"], "msg": e["msg"]}
        for e in exc.errors(include_url=False, include_context=False, include_input=False)
    ]


def validate_and_normalize_canonical(
    *,
    schema: str,
    schema_version: str,
    payload: dict[str, Any],
) -> CanonicalValidationResult:
    """
    Validate a listing payload against a registered canonical schema.

    `normalized` keeps python types (Decimal prices) for storage. Failures
    never raise; callers turn `errors` into a ValidationError.
    """
    try:
        schema_cls = resolve_schema(schema, schema_version)
    except KeyError as e:
        return CanonicalValidationResult(ok=False, errors=[{"type": "schema_not_supported", "msg": str(e)}])

    try:
        obj = schema_cls.model_validate(payload)
    except ValidationError as e:
        return CanonicalValidationResult(ok=False, errors=_field_errors(e))

    return CanonicalValidationResult(
        ok=True,
        model=obj,
        normalized=obj.model_dump(exclude_none=True),
        content_hash=content_hash(obj),
    )
