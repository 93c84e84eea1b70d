"""Perceptual image hashing.

- phash: DCT-based 64-bit fingerprint, Hamming distance and similarity
- service: concurrent download + hashing of listing photos
"""

from vldedupe.images.phash import (
    DEFAULT_MAX_DISTANCE,
    HASH_BITS,
    ImageHashError,
    are_similar,
    compute_phash,
    compute_phash_from_image,
    hamming_distance,
    hash_similarity,
    is_valid_hash,
)
from vldedupe.images.service import ImageHasher

__all__ = [
    "HASH_BITS",
    "DEFAULT_MAX_DISTANCE",
    "ImageHashError",
    "compute_phash",
    "compute_phash_from_image",
    "is_valid_hash",
    "hamming_distance",
    "hash_similarity",
    "are_similar",
    "ImageHasher",
]
