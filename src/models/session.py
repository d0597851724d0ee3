"""
Session and ImageCount models.

A Session owns its images and each image owns its detections; nothing is
shared between sessions, so a Session loaded from the store can be mutated
freely and written back.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .detection import Detection, detections_from_dicts, detections_to_dicts

DEFAULT_OBJECT_TYPE = "objects"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """Canonical string form of a timestamp (ISO-8601)."""
    return ts.isoformat()


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (a trailing `Z` is accepted) or epoch seconds."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


def new_image_id() -> str:
    return f"img_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class ImageCount:
    """
    One reviewed photo.

    Attributes:
        id: Unique within the session.
        path: Durable storage location of the photo; opaque to this package.
        count: Accepted count, the value aggregated into the session total.
            Not necessarily equal to len(detections).
        timestamp: Creation time.
        corrections: User edits applied during the review.
        detections: Frozen detection set.
    """
    id: str
    path: str
    count: int
    timestamp: datetime
    corrections: int = 0
    detections: Tuple[Detection, ...] = ()

    @classmethod
    def create(
        cls,
        path: str,
        count: int,
        detections: Optional[List[Detection]] = None,
        corrections: int = 0,
    ) -> "ImageCount":
        return cls(
            id=new_image_id(),
            path=path,
            count=int(count),
            timestamp=utcnow(),
            corrections=int(corrections),
            detections=tuple(detections or ()),
        )

    def rescored(self, count: int, corrections: int) -> "ImageCount":
        return replace(self, count=int(count), corrections=int(corrections))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ImageCount":
        return cls(
            id=str(d["id"]),
            path=str(d["path"]),
            count=int(d.get("count", 0)),
            timestamp=parse_timestamp(d["timestamp"]),
            corrections=int(d.get("corrections", 0)),
            detections=tuple(detections_from_dicts(d.get("detections"))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "count": self.count,
            "timestamp": format_timestamp(self.timestamp),
            "corrections": self.corrections,
            "detections": detections_to_dicts(list(self.detections)),
        }


@dataclass
class Session:
    """
    A named counting project.

    `total_count` must equal the sum of image counts. SessionRepository keeps
    it that way for every image mutation it performs; code that edits
    `images` directly must call `recompute_total()` before persisting.
    """
    id: str
    name: str
    created_at: datetime
    object_type: Optional[str] = None
    images: List[ImageCount] = field(default_factory=list)
    total_count: int = 0

    @classmethod
    def create(cls, name: str, object_type: Optional[str] = None) -> "Session":
        return cls(id=new_session_id(), name=name, created_at=utcnow(), object_type=object_type)

    @property
    def display_object_type(self) -> str:
        return self.object_type or DEFAULT_OBJECT_TYPE

    def computed_total(self) -> int:
        return sum(img.count for img in self.images)

    def recompute_total(self) -> int:
        self.total_count = self.computed_total()
        return self.total_count

    def find_image(self, image_id: str) -> Optional[ImageCount]:
        for img in self.images:
            if img.id == image_id:
                return img
        return None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Session":
        """Adapter: Create from a persisted dictionary (camelCase keys)."""
        images = [ImageCount.from_dict(i) for i in d.get("images", []) or []]
        total = d.get("totalCount")
        return cls(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            created_at=parse_timestamp(d["createdAt"]),
            object_type=d.get("objectType"),
            images=images,
            total_count=int(total) if total is not None else sum(i.count for i in images),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "createdAt": format_timestamp(self.created_at),
            "images": [img.to_dict() for img in self.images],
            "totalCount": self.total_count,
        }
        if self.object_type is not None:
            d["objectType"] = self.object_type
        return d
