from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from counting.detector import Detector, VisionApiDetector
from counting.placeholders import GridLayout
from counting.workflow import CountingWorkflow
from export.session_export import SessionExporter
from models.config import Config
from runtime.reviews import ReviewRegistry
from storage.repository import SessionRepository
from storage.settings import SettingsRepository
from storage.store import PersistenceStore


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    store: PersistenceStore
    repository: SessionRepository
    settings: SettingsRepository
    exporter: SessionExporter
    detector: Detector
    reviews: ReviewRegistry = field(default_factory=ReviewRegistry)

    def start_review(self, session_id: str, photo_path: str) -> CountingWorkflow:
        """Create a workflow for a photo using the configured review geometry."""
        review_cfg = self.config.review
        return CountingWorkflow.for_session(
            self.repository,
            session_id,
            photo_path,
            default_object_type=review_cfg.default_object_type,
            marker_size=review_cfg.marker_size,
            layout=GridLayout.from_config(review_cfg.placeholder),
        )

    def detector_api_key(self) -> Optional[str]:
        return self.settings.load().detector_api_key

    def close(self) -> None:
        close = getattr(self.detector, "close", None)
        if callable(close):
            close()
        self.store.close()


def build_context(config: Config, detector: Optional[Detector] = None) -> RuntimeContext:
    """Open the store and wire repositories and the detector from config."""
    store = PersistenceStore(config.storage.database_path)
    store.initialize()
    repository = SessionRepository(store)
    logging.info("Runtime context ready")
    return RuntimeContext(
        config=config,
        store=store,
        repository=repository,
        settings=SettingsRepository(store),
        exporter=SessionExporter(repository),
        detector=detector or VisionApiDetector(config.detector),
        reviews=ReviewRegistry(config.review.ttl_seconds, config.review.max_open),
    )
