"""Versioned configuration registry on top of the store."""

from pathlib import Path

from vldedupe.audit.logger import AuditLogger
from vldedupe.config import DeduplicationConfig, load_config
from vldedupe.storage.sqlite import SQLiteStore

__all__ = ["ConfigRegistry"]


class ConfigRegistry:
    """Create, import, activate and deactivate configurations.

    Every save creates a new inactive version; exactly one version is
    active at a time. Detection only ever reads the active snapshot.
    """

    def __init__(self, store: SQLiteStore, logger: AuditLogger | None = None) -> None:
        self.store = store
        self.logger = logger

    def active(self) -> DeduplicationConfig:
        """Active configuration (the default one is seeded if none is)."""
        return self.store.get_active_config()

    def get(self, config_id: str) -> DeduplicationConfig:
        """Configuration by id."""
        return self.store.get_config(config_id)

    def list_configs(self) -> list[DeduplicationConfig]:
        """All stored configurations, oldest first."""
        return self.store.list_configs()

    def create(self, config: DeduplicationConfig, activate: bool = False) -> DeduplicationConfig:
        """Store a new version, optionally activating it."""
        stored = self.store.save_config(config)
        if activate:
            return self.activate(stored.id)
        return stored

    def import_file(self, path: Path, activate: bool = False) -> DeduplicationConfig:
        """Validate a JSON config document and store it as a new version."""
        return self.create(load_config(path), activate=activate)

    def activate(self, config_id: str) -> DeduplicationConfig:
        """Make a version the active one."""
        activated = self.store.activate_config(config_id)
        if self.logger:
            self.logger.event(
                "config_activated",
                data={"id": activated.id, "name": activated.name, "version": activated.version},
                stage="config",
            )
        return activated

    def deactivate(self, config_id: str) -> DeduplicationConfig:
        """Clear the active flag of a version."""
        return self.store.deactivate_config(config_id)
