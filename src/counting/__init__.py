"""
Counting review: workflow state machine, placeholder layout and detector client.
"""

from .placeholders import GridLayout, grid_shape, synthesize_placeholders
from .detector import Detector, VisionApiDetector, encode_image, parse_count
from .workflow import (
    CountingWorkflow,
    DetectionRequest,
    ReviewMode,
    ReviewState,
    TappedCount,
    TypedCount,
)

__all__ = [
    "GridLayout",
    "grid_shape",
    "synthesize_placeholders",
    "Detector",
    "VisionApiDetector",
    "encode_image",
    "parse_count",
    "CountingWorkflow",
    "DetectionRequest",
    "ReviewMode",
    "ReviewState",
    "TappedCount",
    "TypedCount",
]
