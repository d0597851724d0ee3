"""
Typed models for the object counter.

Every model has `from_dict` / `to_dict` adapters; persisted and exported JSON
uses camelCase keys.
"""

from .detection import BoundingBox, Detection
from .session import ImageCount, Session
from .settings import Settings
from .errors import (
    ObjectCounterError,
    ValidationError,
    NotFoundError,
    PersistenceError,
    DetectionError,
    MissingCredentialError,
    RequestFailedError,
    WorkflowStateError,
    WorkflowBusyError,
)
from .config import (
    Config,
    StorageConfig,
    DetectorConfig,
    ReviewConfig,
    PlaceholderConfig,
    WebConfig,
)

__all__ = [
    # Detection
    "BoundingBox",
    "Detection",
    # Sessions
    "ImageCount",
    "Session",
    "Settings",
    # Errors
    "ObjectCounterError",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
    "DetectionError",
    "MissingCredentialError",
    "RequestFailedError",
    "WorkflowStateError",
    "WorkflowBusyError",
    # Config
    "Config",
    "StorageConfig",
    "DetectorConfig",
    "ReviewConfig",
    "PlaceholderConfig",
    "WebConfig",
]
