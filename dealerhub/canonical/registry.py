from typing import Type

from pydantic import BaseModel

from dealerhub.canonical.v1.vehicle import ListingSubmissionV1, VehicleV1

# (schema id, version) -> model. Ids never change meaning; a breaking change
# to a contract gets a new major version next to the old one.
_CANONICAL_REGISTRY: dict[tuple[str, str], Type[BaseModel]] = {
    ("canonical.vehicle", "1.0"): VehicleV1,
    ("canonical.listing_submission", "1.0"): ListingSubmissionV1,
}


def registered_schemas() -> list[str]:
    return sorted(f"{schema}@{version}" for schema, version in _CANONICAL_REGISTRY)


def resolve_schema(schema: str, version: str) -> Type[BaseModel]:
    try:
        return _CANONICAL_REGISTRY[(schema, version)]
    except KeyError:
        raise KeyError(f"Unknown schema/version: {schema}@{version}") from None
