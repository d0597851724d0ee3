"""
Settings persistence: one record with documented defaults.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from models.settings import Settings
from storage.store import SETTINGS_KEY, PersistenceStore


class SettingsRepository:
    """Loads and saves the Settings record. Missing or corrupt records read as defaults."""

    def __init__(self, store: PersistenceStore, key: str = SETTINGS_KEY):
        self.store = store
        self.key = key

    def load(self) -> Settings:
        raw = self.store.load(self.key)
        if raw is None:
            return Settings()
        if not isinstance(raw, dict):
            logging.warning(f"Settings record under {self.key} is not an object, using defaults")
            return Settings()
        try:
            return Settings.from_dict(raw)
        except (TypeError, ValueError) as e:
            logging.warning(f"Unreadable settings record, using defaults: {e}")
            return Settings()

    def save(self, settings: Settings) -> None:
        self.store.save(self.key, settings.to_dict())
        logging.info("Settings saved")

    def update(self, **changes: Any) -> Settings:
        """Apply field changes on top of the stored settings and persist the result."""
        settings = self.load().with_changes(**changes)
        self.save(settings)
        return settings

    def set_detector_api_key(self, api_key: Optional[str]) -> Settings:
        api_key = (api_key or "").strip() or None
        return self.update(detector_api_key=api_key)
