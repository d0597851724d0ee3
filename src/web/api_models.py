from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BoundingBoxModel(_CamelModel):
    x: float
    y: float
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)


class DetectionModel(_CamelModel):
    id: str
    bbox: BoundingBoxModel
    confidence: float = Field(1.0, ge=0, le=1)
    class_name: Optional[str] = Field(None, alias="class")
    manual: bool = False


class ImageCountModel(_CamelModel):
    id: str
    path: str
    count: int = Field(..., ge=0)
    timestamp: datetime
    corrections: int = Field(0, ge=0)
    detections: List[DetectionModel] = Field(default_factory=list)


class SessionModel(_CamelModel):
    """Full session as persisted; used for verbatim replacement."""
    id: str
    name: str
    created_at: datetime = Field(..., alias="createdAt")
    object_type: Optional[str] = Field(None, alias="objectType")
    images: List[ImageCountModel] = Field(default_factory=list)
    total_count: int = Field(0, alias="totalCount", ge=0)


class CreateSessionRequest(_CamelModel):
    name: str
    object_type: Optional[str] = Field(None, alias="objectType")


class RescoreImageRequest(_CamelModel):
    count: int = Field(..., ge=0)
    corrections: int = Field(0, ge=0)


class SettingsUpdateRequest(_CamelModel):
    """Partial settings update; omitted or null fields keep their stored values, a null detectorApiKey clears the key."""
    sensitivity: Optional[float] = Field(None, ge=0, le=1)
    min_object_size: Optional[int] = Field(None, alias="minObjectSize", ge=0)
    enable_haptics: Optional[bool] = Field(None, alias="enableHaptics")
    enable_sound: Optional[bool] = Field(None, alias="enableSound")
    auto_save: Optional[bool] = Field(None, alias="autoSave")
    theme: Optional[str] = None
    detector_api_key: Optional[str] = Field(None, alias="detectorApiKey")


class SettingsResponse(_CamelModel):
    """Settings as exposed over HTTP; the API key itself is never returned."""
    sensitivity: float
    min_object_size: int = Field(..., alias="minObjectSize")
    enable_haptics: bool = Field(..., alias="enableHaptics")
    enable_sound: bool = Field(..., alias="enableSound")
    auto_save: bool = Field(..., alias="autoSave")
    theme: str
    has_detector_api_key: bool = Field(..., alias="hasDetectorApiKey")


class StartReviewRequest(_CamelModel):
    session_id: str = Field(..., alias="sessionId")
    photo_path: str = Field(..., alias="photoPath")


class ModeRequest(_CamelModel):
    mode: Literal["manual", "automatic"]


class PointRequest(_CamelModel):
    x: float
    y: float


class CountTextRequest(_CamelModel):
    text: str = ""


class ReviewStateResponse(_CamelModel):
    """
    Snapshot of a photo review.

    `noObjectsFound` is set after an automatic run that reported zero
    objects; the UI should suggest manual mode.
    """
    review_id: str = Field(..., alias="reviewId")
    session_id: str = Field(..., alias="sessionId")
    photo_path: str = Field(..., alias="photoPath")
    object_type: str = Field(..., alias="objectType")
    mode: Literal["manual", "automatic"]
    detections: List[DetectionModel]
    corrections: int
    auto_count: Optional[int] = Field(None, alias="autoCount")
    count_text: str = Field(..., alias="countText")
    resolved_count: int = Field(..., alias="resolvedCount")
    processing: bool
    no_objects_found: bool = Field(..., alias="noObjectsFound")
    committed: bool
    can_commit: bool = Field(..., alias="canCommit")
    last_error: Optional[str] = Field(None, alias="lastError")


class ErrorResponse(BaseModel):
    detail: str
    error: str
