"""Geographic and postal proximity between listings.

``combined_location_similarity`` uses the single best signal available on
both sides, in priority order: coordinates, postal code (FSA), then an
exact city + province match. With none of them comparable it returns None.
"""

import math

from vldedupe.models import ListingData, normalize_postal_code
from vldedupe.similarity.strings import normalize_text

__all__ = [
    "EARTH_RADIUS_KM",
    "DEFAULT_MAX_DISTANCE_KM",
    "FSA_LENGTH",
    "haversine_distance_km",
    "location_similarity",
    "postal_code_similarity",
    "combined_location_similarity",
]

EARTH_RADIUS_KM = 6371.0
DEFAULT_MAX_DISTANCE_KM = 50.0

# Forward Sortation Area: first three characters of a Canadian postal code
FSA_LENGTH = 3
FSA_PARTIAL_CREDIT = 0.5


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Clamp guards against rounding pushing a marginally above 1.0
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_KM * c


def location_similarity(
    distance_km: float,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
) -> float:
    """Linear falloff from 1.0 at 0 km to 0.0 at ``max_distance_km``.

    Raises
    ------
    ValueError
        If max_distance_km is not positive.
    """
    if max_distance_km <= 0:
        raise ValueError(f"max_distance_km must be positive, got {max_distance_km}")
    if distance_km >= max_distance_km:
        return 0.0
    return 1.0 - max(distance_km, 0.0) / max_distance_km


def postal_code_similarity(postal_a: str | None, postal_b: str | None) -> float | None:
    """Compare the FSA (first three characters) of two postal codes.

    Parameters
    ----------
    postal_a : str | None
        First postal code (any spacing/case).
    postal_b : str | None
        Second postal code.

    Returns
    -------
    float | None
        1.0 for identical FSAs, 0.5 when exactly one FSA character differs,
        0.0 otherwise. None if either code is missing or shorter than an FSA.
    """
    code_a = normalize_postal_code(postal_a)
    code_b = normalize_postal_code(postal_b)
    if not code_a or not code_b or len(code_a) < FSA_LENGTH or len(code_b) < FSA_LENGTH:
        return None

    fsa_a = code_a[:FSA_LENGTH]
    fsa_b = code_b[:FSA_LENGTH]
    mismatches = sum(1 for char_a, char_b in zip(fsa_a, fsa_b, strict=True) if char_a != char_b)

    if mismatches == 0:
        return 1.0
    if mismatches == 1:
        return FSA_PARTIAL_CREDIT
    return 0.0


def _city_province_similarity(source: ListingData, target: ListingData) -> float | None:
    cities = normalize_text(source.city), normalize_text(target.city)
    provinces = normalize_text(source.province), normalize_text(target.province)
    if not all(cities) or not all(provinces):
        return None
    return 1.0 if cities[0] == cities[1] and provinces[0] == provinces[1] else 0.0


def combined_location_similarity(
    source: ListingData,
    target: ListingData,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
) -> float | None:
    """Best available location signal for a listing pair.

    Parameters
    ----------
    source : ListingData
        First listing.
    target : ListingData
        Second listing.
    max_distance_km : float, optional
        Distance at which coordinate similarity reaches 0.0.

    Returns
    -------
    float | None
        Similarity in [0, 1], or None if no location signal is comparable.
    """
    if source.has_coordinates and target.has_coordinates:
        distance = haversine_distance_km(
            source.latitude, source.longitude, target.latitude, target.longitude
        )
        return location_similarity(distance, max_distance_km)

    postal = postal_code_similarity(source.postal_code, target.postal_code)
    if postal is not None:
        return postal

    return _city_province_similarity(source, target)
