"""DCT-based perceptual image hash (pHash).

Algorithm
---------
1. Decode the image, convert to 8-bit grayscale, resize to 32x32
   (hash size 8 x high-frequency factor 4).
2. Apply a 2D DCT-II over the 32x32 pixel grid.
3. Keep the lowest-frequency 8x8 block, drop the DC term: 63 coefficients.
4. Threshold each coefficient against the median of the 63.
5. Pack into a 64-bit word (bit ``i`` = coefficient ``i`` > median, row-major;
   bit 63 is always zero) and render as 16 upper-case hex digits.

The hash is reproducible bit-for-bit from the same image bytes. Comparison
functions never raise: a missing or malformed hash is at maximal distance.
"""

import io
import re

import numpy as np
from PIL import Image, UnidentifiedImageError

__all__ = [
    "HASH_SIZE",
    "HIGH_FREQUENCY_FACTOR",
    "HASH_BITS",
    "DEFAULT_MAX_DISTANCE",
    "ImageHashError",
    "compute_phash",
    "compute_phash_from_image",
    "dct_2d",
    "is_valid_hash",
    "hamming_distance",
    "hash_similarity",
    "are_similar",
]

HASH_SIZE = 8
HIGH_FREQUENCY_FACTOR = 4
IMAGE_SIZE = HASH_SIZE * HIGH_FREQUENCY_FACTOR
HASH_BITS = 64
HEX_DIGITS = HASH_BITS // 4
DEFAULT_MAX_DISTANCE = 10

_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]{1,16}$")


class ImageHashError(Exception):
    """Raised when image bytes cannot be decoded into a hashable image."""


def _dct_basis(size: int) -> np.ndarray:
    # basis[u, i] = cos(pi / size * (i + 0.5) * u)
    u = np.arange(size).reshape(-1, 1)
    i = np.arange(size).reshape(1, -1)
    return np.cos(np.pi / size * (i + 0.5) * u)


_BASIS = _dct_basis(IMAGE_SIZE)
_NORMALIZATION = np.ones(IMAGE_SIZE)
_NORMALIZATION[0] = 1.0 / np.sqrt(2.0)
_SCALE = 0.25 * np.outer(_NORMALIZATION, _NORMALIZATION)


def dct_2d(pixels: np.ndarray) -> np.ndarray:
    """2D DCT-II of a square grid, indexed ``[row_frequency, column_frequency]``.

    Parameters
    ----------
    pixels : np.ndarray
        Square array of shape (32, 32).

    Returns
    -------
    np.ndarray
        DCT coefficients, same shape as input.
    """
    if pixels.shape != (IMAGE_SIZE, IMAGE_SIZE):
        raise ValueError(f"Expected a {IMAGE_SIZE}x{IMAGE_SIZE} grid, got {pixels.shape}")
    return _SCALE * (_BASIS @ pixels @ _BASIS.T)


def compute_phash_from_image(image: Image.Image) -> str:
    """Compute the perceptual hash of an already decoded image.

    Parameters
    ----------
    image : Image.Image
        Any Pillow image (mode is converted to grayscale).

    Returns
    -------
    str
        16-digit upper-case hexadecimal hash.
    """
    grayscale = image.convert("L").resize((IMAGE_SIZE, IMAGE_SIZE), Image.Resampling.LANCZOS)
    pixels = np.asarray(grayscale, dtype=np.float64)

    coefficients = dct_2d(pixels)[:HASH_SIZE, :HASH_SIZE].flatten()[1:]
    median = np.median(coefficients)

    value = 0
    for index, coefficient in enumerate(coefficients):
        if coefficient > median:
            value |= 1 << index

    return f"{value:0{HEX_DIGITS}X}"


def compute_phash(image_bytes: bytes) -> str:
    """Compute the perceptual hash of encoded image bytes.

    Parameters
    ----------
    image_bytes : bytes
        Encoded image (JPEG, PNG, WebP, ...).

    Returns
    -------
    str
        16-digit upper-case hexadecimal hash.

    Raises
    ------
    ImageHashError
        If the bytes are empty or cannot be decoded.
    """
    if not image_bytes:
        raise ImageHashError("Empty image bytes")

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.load()
            return compute_phash_from_image(image)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageHashError(f"Cannot decode image: {e}") from e


def _parse_hash(image_hash: str | None) -> int | None:
    if not image_hash:
        return None
    candidate = image_hash.strip()
    if not _HEX_PATTERN.match(candidate):
        return None
    return int(candidate, 16)


def is_valid_hash(image_hash: str | None) -> bool:
    """Whether the string parses as a 64-bit hexadecimal hash."""
    return _parse_hash(image_hash) is not None


def hamming_distance(hash_a: str | None, hash_b: str | None) -> int:
    """Number of differing bits between two hashes.

    Returns 64 (maximal distance) when either hash is missing or malformed.
    """
    value_a = _parse_hash(hash_a)
    value_b = _parse_hash(hash_b)
    if value_a is None or value_b is None:
        return HASH_BITS
    return (value_a ^ value_b).bit_count()


def hash_similarity(hash_a: str | None, hash_b: str | None) -> float:
    """Similarity ``1 - distance / 64`` in [0, 1]."""
    return 1.0 - hamming_distance(hash_a, hash_b) / HASH_BITS


def are_similar(
    hash_a: str | None,
    hash_b: str | None,
    max_distance: int = DEFAULT_MAX_DISTANCE,
) -> bool:
    """Whether two hashes are within ``max_distance`` bits of each other."""
    return hamming_distance(hash_a, hash_b) <= max_distance
