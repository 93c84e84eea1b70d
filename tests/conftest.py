"""Pytest configuration and fixtures for test suite."""

import io
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

# Add src directory to path for imports
SRC_PATH = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_PATH))

from PIL import Image, ImageDraw  # noqa: E402

from vldedupe.config import DeduplicationConfig  # noqa: E402
from vldedupe.models import ListingData  # noqa: E402
from vldedupe.storage import SQLiteStore  # noqa: E402

# Downtown Toronto
_LATITUDE = 43.6532
_LONGITUDE = -79.3832


@pytest.fixture
def make_listing() -> Callable[..., ListingData]:
    """Factory for a fully populated 2019 Honda Civic listing.

    Every attribute can be overridden; pass None to drop a field.
    """

    def _factory(listing_id: str = "L1", **overrides: Any) -> ListingData:
        values: dict[str, Any] = {
            "id": listing_id,
            "title": "2019 Honda Civic LX",
            "source": "autotrader",
            "vin": None,
            "make": "Honda",
            "model": "Civic",
            "year": 2019,
            "price": 20000.0,
            "mileage": 45000,
            "image_hash": None,
            "city": "Toronto",
            "province": "ON",
            "postal_code": "M5V 2T6",
            "latitude": _LATITUDE,
            "longitude": _LONGITUDE,
        }
        values.update(overrides)
        return ListingData(**values)

    return _factory


@pytest.fixture
def config() -> DeduplicationConfig:
    """Default configuration (match 0.85, review 0.60)."""
    return DeduplicationConfig()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[SQLiteStore]:
    """SQLite store in a temporary directory, closed after the test."""
    db = SQLiteStore(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def make_image_bytes() -> Callable[..., bytes]:
    """Factory for PNG bytes of a synthetic photo (shapes on a gradient)."""

    def _factory(size: int = 128, invert: bool = False) -> bytes:
        image = Image.new("L", (size, size))
        image.putdata([(x * 2 + y) % 256 for y in range(size) for x in range(size)])
        draw = ImageDraw.Draw(image)
        draw.rectangle((size // 8, size // 8, size // 2, size // 3), fill=255)
        draw.ellipse((size // 2, size // 2, size - size // 8, size - size // 8), fill=0)
        if invert:
            image = image.point(lambda value: 255 - value)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    return _factory

