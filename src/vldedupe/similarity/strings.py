"""String similarity metrics for listing titles and identifiers.

Edit-distance and Jaro metrics come from rapidfuzz; this module adds the
normalization (case-folded, trimmed, internal whitespace collapsed)
applied before every comparison, so "Honda  CIVIC " and "honda civic"
compare as equal.
"""

from rapidfuzz.distance import Jaro, JaroWinkler, Levenshtein

__all__ = [
    "normalize_text",
    "levenshtein_distance",
    "levenshtein_similarity",
    "jaro_similarity",
    "jaro_winkler_similarity",
    "jaccard_similarity",
    "ngram_similarity",
]

# Jaro-Winkler prefix bonus (rapidfuzz caps the prefix at 4 characters)
WINKLER_SCALING_FACTOR = 0.1


def normalize_text(text: str | None) -> str:
    """Case-fold, trim and collapse whitespace.

    Parameters
    ----------
    text : str | None
        Raw text.

    Returns
    -------
    str
        Normalized text ("" for None).
    """
    if not text:
        return ""
    return " ".join(text.casefold().split())


def levenshtein_distance(source: str | None, target: str | None) -> int:
    """Classic edit distance with unit insert/delete/substitute costs.

    Parameters
    ----------
    source : str | None
        First string.
    target : str | None
        Second string.

    Returns
    -------
    int
        Minimum number of single-character edits turning source into target.
    """
    return Levenshtein.distance(normalize_text(source), normalize_text(target))


def levenshtein_similarity(source: str | None, target: str | None) -> float:
    """Edit-distance similarity: ``1 - distance / max(len(a), len(b))``.

    Returns 1.0 when both strings are empty after normalization.
    """
    a = normalize_text(source)
    b = normalize_text(target)

    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def jaro_similarity(source: str | None, target: str | None) -> float:
    """Jaro similarity between two strings.

    Parameters
    ----------
    source : str | None
        First string.
    target : str | None
        Second string.

    Returns
    -------
    float
        Similarity in [0, 1]. 1.0 if both empty, 0.0 if exactly one empty.
    """
    a = normalize_text(source)
    b = normalize_text(target)

    if not a and not b:
        return 1.0
    return Jaro.similarity(a, b)


def jaro_winkler_similarity(source: str | None, target: str | None) -> float:
    """Jaro-Winkler similarity (prefix scale 0.1, prefix capped at 4 chars).

    Leading characters weigh more, which suits vehicle titles where the
    year and make usually come first.
    """
    a = normalize_text(source)
    b = normalize_text(target)

    if not a and not b:
        return 1.0
    return JaroWinkler.similarity(a, b, prefix_weight=WINKLER_SCALING_FACTOR)


def jaccard_similarity(set_a: set[str], set_b: set[str]) -> float:
    """Jaccard similarity |A ∩ B| / |A ∪ B|; two empty sets count as equal."""
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def _ngrams(text: str, n: int) -> set[str]:
    if len(text) < n:
        return {text}
    return {text[i : i + n] for i in range(len(text) - n + 1)}


def ngram_similarity(source: str | None, target: str | None, n: int = 2) -> float:
    """Jaccard overlap of character n-gram sets.

    Robust to word reordering ("Civic Honda 2019" vs "2019 Honda Civic").
    Strings shorter than ``n`` contribute themselves as a single gram.

    Parameters
    ----------
    source : str | None
        First string.
    target : str | None
        Second string.
    n : int, optional
        Gram length, by default 2.

    Returns
    -------
    float
        |A ∩ B| / |A ∪ B| over the gram sets. 1.0 if both strings are
        empty, 0.0 if exactly one is.

    Raises
    ------
    ValueError
        If n < 1.
    """
    if n < 1:
        raise ValueError(f"n-gram length must be >= 1, got {n}")

    a = normalize_text(source)
    b = normalize_text(target)

    grams_a = _ngrams(a, n) if a else set()
    grams_b = _ngrams(b, n) if b else set()
    return jaccard_similarity(grams_a, grams_b)
