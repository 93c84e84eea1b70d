"""ListingData: the flat record of listing attributes consumed by the engine.

Listings are produced by an external listing store. Only ``id``, ``title``
and ``source`` are guaranteed; every other attribute may be missing, and
missing attributes are excluded from scoring rather than penalized.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any

__all__ = ["ListingData"]


@dataclass(frozen=True, slots=True)
class ListingData:
    """Immutable vehicle listing snapshot.

    Attributes
    ----------
    id : str
        Listing identifier.
    title : str
        Listing title as scraped (e.g., "2019 Honda Civic LX").
    source : str
        Source site name (e.g., "autotrader").
    vin : str | None
        Vehicle identification number, raw.
    make, model : str | None
        Vehicle make and model.
    year : int | None
        Model year.
    price : float | None
        Asking price.
    mileage : int | None
        Odometer reading.
    image_hash : str | None
        Perceptual hash of the primary photo (16 hex digits).
    city, province, postal_code : str | None
        Location fields.
    latitude, longitude : float | None
        Coordinates in decimal degrees.
    source_listing_id : str | None
        Listing id native to the source site.
    """

    id: str
    title: str
    source: str
    vin: str | None = None
    make: str | None = None
    model: str | None = None
    year: int | None = None
    price: float | None = None
    mileage: int | None = None
    image_hash: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    source_listing_id: str | None = None

    def __post_init__(self) -> None:
        """Validate required identity fields."""
        if not self.id:
            raise ValueError("Listing id is required")
        if self.title is None:
            raise ValueError(f"Listing {self.id!r} has no title")
        if not self.source:
            raise ValueError(f"Listing {self.id!r} has no source")

    @property
    def has_coordinates(self) -> bool:
        """Whether both latitude and longitude are present."""
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ListingData":
        """Build a listing from a dictionary, ignoring unknown keys.

        Parameters
        ----------
        data : dict[str, Any]
            Listing attributes. ``id`` is coerced to ``str``.

        Returns
        -------
        ListingData
            Parsed listing.
        """
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        if "id" in values:
            values["id"] = str(values["id"])
        return cls(**values)
