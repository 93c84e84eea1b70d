"""Data models for vldedupe: listing snapshots and pair identifiers."""

from vldedupe.models.identifiers import (
    VIN_LENGTH,
    canonical_pair,
    is_full_vin,
    new_entity_id,
    normalize_postal_code,
    normalize_vin,
)
from vldedupe.models.listing import ListingData

__all__ = [
    "ListingData",
    "VIN_LENGTH",
    "canonical_pair",
    "new_entity_id",
    "normalize_vin",
    "is_full_vin",
    "normalize_postal_code",
]
