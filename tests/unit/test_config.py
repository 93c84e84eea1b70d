"""Tests for deduplication configuration and the config registry."""

import json
from pathlib import Path

import pytest

from vldedupe.audit import AuditLogger
from vldedupe.config import (
    ConfigValidationError,
    DeduplicationConfig,
    load_config,
    load_config_schema,
)
from vldedupe.engine import ConfigRegistry
from vldedupe.storage import SQLiteStore


def _write(path: Path, document: object) -> Path:
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# DeduplicationConfig
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_default_config_values() -> None:
    """Test defaults: weights sum to 1.0, match 0.85, review 0.60."""
    config = DeduplicationConfig()

    assert config.total_weight == pytest.approx(1.0)
    assert config.weights["vin"] == 0.30
    assert config.overall_match_threshold == 0.85
    assert config.review_threshold == 0.60
    assert config.name == "default"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"vin_weight": -0.1}, "vin_weight must be >= 0"),
        (
            {
                "vin_weight": 0,
                "title_weight": 0,
                "image_weight": 0,
                "price_weight": 0,
                "mileage_weight": 0,
                "location_weight": 0,
            },
            "At least one weight",
        ),
        ({"overall_match_threshold": 1.5}, r"must be in \[0, 1\]"),
        ({"review_threshold": 0.9}, "must be less than"),
        ({"review_threshold": 0.85}, "must be less than"),
        ({"price_tolerance_percent": 0}, "must be positive"),
        ({"name": ""}, "name must not be empty"),
        ({"version": 0}, "version must be >= 1"),
    ],
)
def test_config_validation(overrides: dict, message: str) -> None:
    """Test out-of-range values raise ConfigValidationError."""
    with pytest.raises(ConfigValidationError, match=message):
        DeduplicationConfig(**overrides)


@pytest.mark.unit
def test_config_from_dict_ignores_unknown_keys() -> None:
    """Test from_dict tolerates extra keys and parses created_at."""
    config = DeduplicationConfig.from_dict(
        {"title_weight": 0.5, "comment": "x", "created_at": "2026-01-01T00:00:00Z"}
    )

    assert config.title_weight == 0.5
    assert config.created_at is not None
    assert DeduplicationConfig.from_dict(config.to_dict()) == config


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_load_config_valid_document(tmp_path: Path) -> None:
    """Test a schema-valid document loads unregistered and inactive."""
    path = _write(
        tmp_path / "strict.json",
        {"name": "strict", "overall_match_threshold": 0.9, "id": "x", "is_active": True},
    )

    config = load_config(path)

    assert config.name == "strict"
    assert config.overall_match_threshold == 0.9
    assert config.id is None
    assert not config.is_active


@pytest.mark.unit
@pytest.mark.parametrize(
    "document",
    [
        {"overall_match_threshold": 0.9},
        {"name": "x", "vin_weight": "high"},
        {"name": "x", "unknown_field": 1},
        {"name": "x", "mileage_tolerance": 0},
    ],
)
def test_load_config_schema_violations(tmp_path: Path, document: dict) -> None:
    """Test documents violating the schema are rejected."""
    with pytest.raises(ConfigValidationError, match="Invalid config"):
        load_config(_write(tmp_path / "bad.json", document))


@pytest.mark.unit
def test_load_config_range_violation_after_schema(tmp_path: Path) -> None:
    """Test cross-field rules are checked after the schema passes."""
    path = _write(tmp_path / "bad.json", {"name": "x", "review_threshold": 0.95})

    with pytest.raises(ConfigValidationError, match="must be less than"):
        load_config(path)


@pytest.mark.unit
def test_load_config_invalid_json_and_missing_file(tmp_path: Path) -> None:
    """Test malformed JSON and missing files raise clear errors."""
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigValidationError, match="Invalid JSON"):
        load_config(bad)
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")


@pytest.mark.unit
def test_config_schema_is_packaged() -> None:
    """Test the bundled schema loads and requires a name."""
    schema = load_config_schema()

    assert schema["required"] == ["name"]
    assert schema["additionalProperties"] is False


# ---------------------------------------------------------------------------
# ConfigRegistry
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_registry_import_and_activate(store: SQLiteStore, tmp_path: Path) -> None:
    """Test importing with activation switches the active snapshot."""
    log_path = tmp_path / "events.jsonl"
    path = _write(tmp_path / "strict.json", {"name": "strict", "review_threshold": 0.7})

    with AuditLogger(log_path, run_id="test_run") as logger:
        registry = ConfigRegistry(store, logger=logger)
        default = registry.active()
        imported = registry.import_file(path, activate=True)

    assert imported.is_active
    assert registry.active().id == imported.id
    assert not registry.get(default.id).is_active
    assert [config.name for config in registry.list_configs()] == ["default", "strict"]

    with log_path.open() as f:
        events = [json.loads(line) for line in f]
    assert events[-1]["event"] == "config_activated"
    assert events[-1]["data"]["name"] == "strict"


@pytest.mark.unit
def test_registry_create_keeps_previous_versions(store: SQLiteStore) -> None:
    """Test creating a config never overwrites an earlier version."""
    registry = ConfigRegistry(store)

    first = registry.create(DeduplicationConfig(name="tuned", title_weight=0.3))
    second = registry.create(DeduplicationConfig(name="tuned", title_weight=0.4))

    assert registry.get(first.id).title_weight == 0.3
    assert registry.get(second.id).title_weight == 0.4
    assert second.version == first.version + 1
    assert registry.deactivate(second.id).is_active is False
