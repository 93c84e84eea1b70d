"""Numeric proximity for price and mileage.

Both metrics fall off linearly from 1.0 (equal values) to 0.0 at the
configured tolerance and stay at 0.0 beyond it. A missing value on either
side yields None: the field is unavailable and is excluded from the
weighted score instead of counting as a mismatch.
"""

__all__ = [
    "DEFAULT_PRICE_TOLERANCE_PERCENT",
    "DEFAULT_MILEAGE_TOLERANCE",
    "percentage_similarity",
    "absolute_similarity",
]

DEFAULT_PRICE_TOLERANCE_PERCENT = 10.0
DEFAULT_MILEAGE_TOLERANCE = 500.0


def percentage_similarity(
    value_a: float | None,
    value_b: float | None,
    max_percent: float = DEFAULT_PRICE_TOLERANCE_PERCENT,
) -> float | None:
    """Similarity from relative difference ``|a - b| / max(|a|, |b|)``.

    Parameters
    ----------
    value_a : float | None
        First value (e.g., price).
    value_b : float | None
        Second value.
    max_percent : float, optional
        Relative difference, in percent, at which similarity reaches 0.0.

    Returns
    -------
    float | None
        Similarity in [0, 1], or None if either value is missing.

    Raises
    ------
    ValueError
        If max_percent is not positive.
    """
    if max_percent <= 0:
        raise ValueError(f"max_percent must be positive, got {max_percent}")
    if value_a is None or value_b is None:
        return None
    if value_a == value_b:
        return 1.0

    reference = max(abs(value_a), abs(value_b))
    percent_difference = abs(value_a - value_b) / reference * 100.0

    if percent_difference >= max_percent:
        return 0.0
    return 1.0 - percent_difference / max_percent


def absolute_similarity(
    value_a: float | None,
    value_b: float | None,
    max_difference: float = DEFAULT_MILEAGE_TOLERANCE,
) -> float | None:
    """Similarity from absolute difference ``|a - b|``.

    Parameters
    ----------
    value_a : float | None
        First value (e.g., mileage).
    value_b : float | None
        Second value.
    max_difference : float, optional
        Absolute difference at which similarity reaches 0.0.

    Returns
    -------
    float | None
        Similarity in [0, 1], or None if either value is missing.

    Raises
    ------
    ValueError
        If max_difference is not positive.
    """
    if max_difference <= 0:
        raise ValueError(f"max_difference must be positive, got {max_difference}")
    if value_a is None or value_b is None:
        return None

    difference = abs(value_a - value_b)
    if difference >= max_difference:
        return 0.0
    return 1.0 - difference / max_difference
