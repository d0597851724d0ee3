"""
Detection models for counted objects.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

MANUAL_CLASS = "manual"
PLACEHOLDER_CLASS = "object"
DEFAULT_MARKER_SIZE = 40.0


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in image-display coordinates.

    Coordinates are not normalized; the scale is whatever the caller renders
    the photo at.

    Attributes:
        x: Left edge x coordinate.
        y: Top edge y coordinate.
        width: Box width.
        height: Box height.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, width, height) tuple."""
        return (self.x, self.y, self.width, self.height)

    @classmethod
    def from_center(cls, cx: float, cy: float, size: float) -> "BoundingBox":
        """Create a square box of side `size` centred on (cx, cy)."""
        return cls(x=cx - size / 2, y=cy - size / 2, width=size, height=size)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BoundingBox":
        return cls(
            x=float(d.get("x", 0.0)),
            y=float(d.get("y", 0.0)),
            width=float(d.get("width", 0.0)),
            height=float(d.get("height", 0.0)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class Detection:
    """
    One counted object instance.

    Attributes:
        id: Unique within the owning image's detection set.
        bbox: Location used for overlay rendering.
        confidence: Score in [0, 1]; 1.0 for manual and placeholder entries.
        class_name: Optional label ("manual" or "object" in practice).
        manual: True when the user placed it by tapping.
    """
    id: str
    bbox: BoundingBox
    confidence: float = 1.0
    class_name: Optional[str] = None
    manual: bool = False

    @classmethod
    def manual_at(cls, x: float, y: float, size: float = DEFAULT_MARKER_SIZE) -> "Detection":
        """Create a manual detection centred on a tap location."""
        return cls(
            id=f"manual_{uuid.uuid4().hex}",
            bbox=BoundingBox.from_center(x, y, size),
            confidence=1.0,
            class_name=MANUAL_CLASS,
            manual=True,
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Detection":
        """Adapter: Create from a persisted dictionary (JSON key `class`)."""
        return cls(
            id=str(d["id"]),
            bbox=BoundingBox.from_dict(d.get("bbox", {})),
            confidence=float(d.get("confidence", 1.0)),
            class_name=d.get("class"),
            manual=bool(d.get("manual", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "bbox": self.bbox.to_dict(),
            "confidence": self.confidence,
            "manual": self.manual,
        }
        if self.class_name is not None:
            d["class"] = self.class_name
        return d


def detections_from_dicts(items: Optional[List[Dict[str, Any]]]) -> List[Detection]:
    """Adapter: Convert persisted detection dictionaries to Detection objects."""
    if not items:
        return []
    return [Detection.from_dict(item) for item in items]


def detections_to_dicts(detections: List[Detection]) -> List[Dict[str, Any]]:
    return [d.to_dict() for d in detections]
