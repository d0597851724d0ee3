"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class StorageConfig:
    """Storage configuration."""
    database_path: str = "data/object_counter.sqlite"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StorageConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            database_path=d.get("database_path", "data/object_counter.sqlite"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"database_path": self.database_path}


@dataclass
class DetectorConfig:
    """Remote vision detector configuration. The API key lives in Settings, not here."""
    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4o"
    timeout_seconds: float = 30.0
    max_tokens: int = 1000
    strict_parse: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        return cls(
            endpoint=d.get("endpoint", "https://api.openai.com/v1/chat/completions"),
            model=d.get("model", "gpt-4o"),
            timeout_seconds=float(d.get("timeout_seconds", 30.0)),
            max_tokens=int(d.get("max_tokens", 1000)),
            strict_parse=bool(d.get("strict_parse", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "model": self.model,
            "timeout_seconds": self.timeout_seconds,
            "max_tokens": self.max_tokens,
            "strict_parse": self.strict_parse,
        }


@dataclass
class PlaceholderConfig:
    """Grid geometry for placeholder detections."""
    origin: float = 50.0
    spacing: float = 100.0
    size: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PlaceholderConfig":
        return cls(
            origin=float(d.get("origin", 50.0)),
            spacing=float(d.get("spacing", 100.0)),
            size=float(d.get("size", 60.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"origin": self.origin, "spacing": self.spacing, "size": self.size}


@dataclass
class ReviewConfig:
    """Counting review configuration."""
    marker_size: float = 40.0
    default_object_type: str = "objects"
    placeholder: PlaceholderConfig = field(default_factory=PlaceholderConfig)
    ttl_seconds: float = 3600.0
    max_open: int = 100

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReviewConfig":
        return cls(
            marker_size=float(d.get("marker_size", 40.0)),
            default_object_type=d.get("default_object_type", "objects"),
            placeholder=PlaceholderConfig.from_dict(d.get("placeholder", {}) or {}),
            ttl_seconds=float(d.get("ttl_seconds", 3600.0)),
            max_open=int(d.get("max_open", 100)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marker_size": self.marker_size,
            "default_object_type": self.default_object_type,
            "placeholder": self.placeholder.to_dict(),
            "ttl_seconds": self.ttl_seconds,
            "max_open": self.max_open,
        }


@dataclass
class WebConfig:
    """HTTP API configuration."""
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(host=d.get("host", "0.0.0.0"), port=int(d.get("port", 5000)))

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    storage: StorageConfig = field(default_factory=StorageConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/object_counter.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            storage=StorageConfig.from_dict(d.get("storage", {}) or {}),
            detector=DetectorConfig.from_dict(d.get("detector", {}) or {}),
            review=ReviewConfig.from_dict(d.get("review", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/object_counter.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "storage": self.storage.to_dict(),
            "detector": self.detector.to_dict(),
            "review": self.review.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
