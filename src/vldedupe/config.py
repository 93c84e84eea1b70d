"""Deduplication configuration: weights, thresholds and tolerances.

A configuration is an immutable snapshot. The registry in the storage layer
keeps every saved version and marks exactly one as active; the detector
reads the active snapshot once at the start of each run.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from importlib import resources
from pathlib import Path
from typing import Any

import jsonschema

from vldedupe.similarity import (
    DEFAULT_MAX_DISTANCE_KM,
    DEFAULT_MILEAGE_TOLERANCE,
    DEFAULT_PRICE_TOLERANCE_PERCENT,
)
from vldedupe.utils import get_iso_timestamp, parse_iso_timestamp, utc_now

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "WEIGHT_FIELDS",
    "ConfigValidationError",
    "ConfigNotFoundError",
    "DeduplicationConfig",
    "load_config",
    "load_config_schema",
]

DEFAULT_CONFIG_NAME = "default"

WEIGHT_FIELDS = (
    "vin_weight",
    "title_weight",
    "image_weight",
    "price_weight",
    "mileage_weight",
    "location_weight",
)

_UNIT_INTERVAL_FIELDS = (
    "title_similarity_threshold",
    "image_similarity_threshold",
    "overall_match_threshold",
    "review_threshold",
)

_TOLERANCE_FIELDS = (
    "price_tolerance_percent",
    "mileage_tolerance",
    "max_distance_km",
)


class ConfigValidationError(ValueError):
    """Raised when configuration values or documents are invalid."""


class ConfigNotFoundError(LookupError):
    """Raised when a configuration id is not in the registry."""


@dataclass(frozen=True, slots=True)
class DeduplicationConfig:
    """Tunable parameters of the matching engine.

    Weights need not sum to 1.0; the engine divides by the sum of the
    weights of fields actually compared.

    Attributes
    ----------
    vin_weight, title_weight, image_weight : float
        Weights of the identifier, text and photo signals.
    price_weight, mileage_weight, location_weight : float
        Weights of the numeric and geographic signals.
    title_similarity_threshold : float
        Title score at which the ``title_similar`` reason is reported.
    image_similarity_threshold : float
        Image score at which the ``image_similar`` reason is reported.
    overall_match_threshold : float
        Score at or above which a pair is an automatic duplicate.
    review_threshold : float
        Score at or above which (and below the match threshold) a pair
        needs human review.
    price_tolerance_percent : float
        Relative price difference (percent) at which price similarity hits 0.
    mileage_tolerance : float
        Absolute mileage difference at which mileage similarity hits 0.
    max_distance_km : float
        Distance at which location similarity hits 0.
    id : str | None
        Registry id (None until saved).
    name : str
        Configuration name.
    version : int
        Version number within ``name``.
    is_active : bool
        Whether this is the active configuration.
    created_at : datetime | None
        Creation time in the registry.
    """

    vin_weight: float = 0.30
    title_weight: float = 0.25
    image_weight: float = 0.20
    price_weight: float = 0.10
    mileage_weight: float = 0.10
    location_weight: float = 0.05
    title_similarity_threshold: float = 0.85
    image_similarity_threshold: float = 0.90
    overall_match_threshold: float = 0.85
    review_threshold: float = 0.60
    price_tolerance_percent: float = DEFAULT_PRICE_TOLERANCE_PERCENT
    mileage_tolerance: float = DEFAULT_MILEAGE_TOLERANCE
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM
    id: str | None = None
    name: str = DEFAULT_CONFIG_NAME
    version: int = 1
    is_active: bool = False
    created_at: datetime | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        """Validate value ranges."""
        for name in WEIGHT_FIELDS:
            value = getattr(self, name)
            if value < 0:
                raise ConfigValidationError(f"{name} must be >= 0, got {value}")
        if self.total_weight <= 0:
            raise ConfigValidationError("At least one weight must be positive")

        for name in _UNIT_INTERVAL_FIELDS:
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigValidationError(f"{name} must be in [0, 1], got {value}")

        if self.review_threshold >= self.overall_match_threshold:
            raise ConfigValidationError(
                f"review_threshold ({self.review_threshold}) must be less than "
                f"overall_match_threshold ({self.overall_match_threshold})"
            )

        for name in _TOLERANCE_FIELDS:
            value = getattr(self, name)
            if value <= 0:
                raise ConfigValidationError(f"{name} must be positive, got {value}")

        if not self.name:
            raise ConfigValidationError("name must not be empty")
        if self.version < 1:
            raise ConfigValidationError(f"version must be >= 1, got {self.version}")

    @property
    def total_weight(self) -> float:
        """Sum of all field weights."""
        return sum(getattr(self, name) for name in WEIGHT_FIELDS)

    @property
    def weights(self) -> dict[str, float]:
        """Field weights keyed by field name ("vin", "title", ...)."""
        return {name.removesuffix("_weight"): getattr(self, name) for name in WEIGHT_FIELDS}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["created_at"] = get_iso_timestamp(self.created_at) if self.created_at else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeduplicationConfig":
        """Build a config from a dictionary, ignoring unknown keys.

        Raises
        ------
        ConfigValidationError
            If a value is out of range.
        """
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        created_at = values.get("created_at")
        if isinstance(created_at, str):
            values["created_at"] = parse_iso_timestamp(created_at)
        return cls(**values)

    @classmethod
    def default(cls) -> "DeduplicationConfig":
        """Default configuration, stamped with the current time."""
        return cls(created_at=utc_now())


def load_config_schema() -> dict[str, Any]:
    """Load the JSON schema for configuration documents."""
    schema_file = resources.files("vldedupe") / "schemas" / "dedup_config.schema.json"
    return json.loads(schema_file.read_text(encoding="utf-8"))


def load_config(path: Path) -> DeduplicationConfig:
    """Read and validate a JSON configuration document.

    Parameters
    ----------
    path : Path
        Path to the JSON file.

    Returns
    -------
    DeduplicationConfig
        Parsed configuration (not yet registered: no id, inactive).

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ConfigValidationError
        If the document is not valid JSON, does not match the schema or
        holds out-of-range values.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigValidationError(f"Invalid JSON in {path}: {e}") from e

    try:
        jsonschema.validate(instance=document, schema=load_config_schema())
    except jsonschema.ValidationError as e:
        raise ConfigValidationError(f"Invalid config {path}: {e.message}") from e

    document = {key: value for key, value in document.items() if key not in ("id", "is_active")}
    return DeduplicationConfig.from_dict(document)
