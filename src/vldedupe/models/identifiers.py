"""Identifier helpers: pair canonicalization and field normalization.

Pairs of listings are always stored in canonical (lexicographic) order so
that (A, B) and (B, A) refer to the same DuplicateMatch / ReviewItem.
"""

import re
import uuid

__all__ = [
    "VIN_LENGTH",
    "canonical_pair",
    "new_entity_id",
    "normalize_vin",
    "is_full_vin",
    "normalize_postal_code",
]

VIN_LENGTH = 17

# VINs never contain I, O or Q; scrapers and OCR confuse them with digits
_VIN_CONFUSABLES = str.maketrans({"I": "1", "O": "0", "Q": "0"})
_VIN_SEPARATORS = re.compile(r"[\s\-]+")
_POSTAL_SEPARATORS = re.compile(r"[\s\-]+")


def canonical_pair(listing_id_a: str, listing_id_b: str) -> tuple[str, str]:
    """Return the two listing ids in canonical (lexicographic) order.

    Parameters
    ----------
    listing_id_a : str
        First listing id.
    listing_id_b : str
        Second listing id.

    Returns
    -------
    tuple[str, str]
        (smaller_id, larger_id).

    Raises
    ------
    ValueError
        If both ids are equal (a listing is never paired with itself).
    """
    if listing_id_a == listing_id_b:
        raise ValueError(f"Cannot pair listing {listing_id_a!r} with itself")
    if listing_id_a < listing_id_b:
        return listing_id_a, listing_id_b
    return listing_id_b, listing_id_a


def new_entity_id() -> str:
    """Generate a random identifier for persisted entities."""
    return uuid.uuid4().hex


def normalize_vin(vin: str | None) -> str | None:
    """Normalize a VIN for comparison.

    Upper-cases, strips whitespace and hyphens, and maps the letters
    I/O/Q (never valid in a VIN) to their look-alike digits.

    Parameters
    ----------
    vin : str | None
        Raw VIN as scraped.

    Returns
    -------
    str | None
        Normalized VIN, or None if empty after normalization.
    """
    if not vin:
        return None
    normalized = _VIN_SEPARATORS.sub("", vin).upper().translate(_VIN_CONFUSABLES)
    return normalized or None


def is_full_vin(vin: str | None) -> bool:
    """Check whether a normalized VIN is a complete 17-character VIN."""
    return vin is not None and len(vin) == VIN_LENGTH and vin.isalnum() and vin.isascii()


def normalize_postal_code(postal_code: str | None) -> str | None:
    """Strip separators and upper-case a postal/ZIP code.

    Returns None for empty input.
    """
    if not postal_code:
        return None
    normalized = _POSTAL_SEPARATORS.sub("", postal_code).upper()
    return normalized or None
