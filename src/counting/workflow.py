"""
Counting review workflow for a single photo.

The workflow starts in manual mode and accumulates detections until it is
committed into the SessionRepository, after which it is spent.

Modes:
- MANUAL: the user taps objects or types a number.
- AUTOMATIC: a remote detector reports a count, shown as placeholder
  detections the user may still correct.

The manual count field is one tagged value rather than two fields kept in
sync: TappedCount (the field mirrors len(detections)) or TypedCount (the
field holds what the user typed). Taps and removals switch it to
TappedCount; typing switches it to TypedCount. Neither transition triggers
the other.

Detection requests are split into begin / complete so the detector call can
run without holding the workflow lock. Each request carries a sequence
number; a result for a request that was superseded or cancelled (e.g. by a
switch to manual mode) is dropped.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from counting.detector import Detector
from counting.placeholders import GridLayout, synthesize_placeholders
from models.detection import DEFAULT_MARKER_SIZE, Detection
from models.errors import (
    DetectionError,
    NotFoundError,
    RequestFailedError,
    ValidationError,
    WorkflowBusyError,
    WorkflowStateError,
)
from models.session import DEFAULT_OBJECT_TYPE, ImageCount
from storage.repository import SessionRepository

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class ReviewMode(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


@dataclass(frozen=True)
class TappedCount:
    """Count field mirrors the number of detections."""


@dataclass(frozen=True)
class TypedCount:
    """Count field holds text the user typed."""
    text: str


ManualCount = Union[TappedCount, TypedCount]

TAPPED = TappedCount()
EMPTY_COUNT = TypedCount("")


def parse_count_text(text: str) -> int:
    """Leading-integer parse of the count field; 0 when nothing parses."""
    match = _LEADING_INT.match(text or "")
    return int(match.group(1)) if match else 0


@dataclass(frozen=True)
class DetectionRequest:
    """One in-flight detector call."""
    seq: int
    photo_path: str
    object_type: str


@dataclass(frozen=True)
class ReviewState:
    """Immutable view of a workflow for UIs and the HTTP layer."""
    session_id: str
    photo_path: str
    object_type: str
    mode: ReviewMode
    detections: Tuple[Detection, ...]
    corrections: int
    auto_count: Optional[int]
    count_text: str
    resolved_count: int
    processing: bool
    no_objects_found: bool
    committed: bool
    can_commit: bool
    last_error: Optional[str]


class CountingWorkflow:
    """
    Review state machine for one (photo_path, session_id) pair.

    All methods are safe to call from multiple threads. While a detection
    request is pending, edits raise WorkflowBusyError; switch_to_manual()
    is still accepted and cancels the request.
    """

    def __init__(
        self,
        photo_path: str,
        session_id: str,
        repository: SessionRepository,
        object_type: Optional[str] = None,
        marker_size: float = DEFAULT_MARKER_SIZE,
        layout: GridLayout = GridLayout(),
    ):
        self.photo_path = photo_path
        self.session_id = session_id
        self.repository = repository
        self.object_type = object_type or DEFAULT_OBJECT_TYPE
        self.marker_size = marker_size
        self.layout = layout

        self._lock = threading.RLock()
        self._mode = ReviewMode.MANUAL
        self._detections: List[Detection] = []
        self._corrections = 0
        self._count: ManualCount = EMPTY_COUNT
        self._auto_count: Optional[int] = None
        self._pending: Optional[DetectionRequest] = None
        self._seq = 0
        self._no_objects_found = False
        self._last_error: Optional[str] = None
        self._committed = False

    @classmethod
    def for_session(
        cls,
        repository: SessionRepository,
        session_id: str,
        photo_path: str,
        default_object_type: str = DEFAULT_OBJECT_TYPE,
        **kwargs,
    ) -> "CountingWorkflow":
        """
        Start a review for a session, taking the object label from it.

        Raises:
            NotFoundError: if the session does not exist.
        """
        session = repository.require_session(session_id)
        object_type = session.object_type or default_object_type
        return cls(photo_path, session_id, repository, object_type=object_type, **kwargs)

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> ReviewMode:
        return self._mode

    @property
    def detections(self) -> Tuple[Detection, ...]:
        with self._lock:
            return tuple(self._detections)

    @property
    def corrections(self) -> int:
        return self._corrections

    @property
    def auto_count(self) -> Optional[int]:
        """Raw count from the last automatic run, kept for reference after manual edits."""
        return self._auto_count

    @property
    def processing(self) -> bool:
        return self._pending is not None

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def no_objects_found(self) -> bool:
        return self._no_objects_found

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def count_text(self) -> str:
        with self._lock:
            if isinstance(self._count, TypedCount):
                return self._count.text
            return str(len(self._detections))

    @property
    def resolved_count(self) -> int:
        """Count that commit() would store."""
        with self._lock:
            if self._mode is ReviewMode.MANUAL:
                return parse_count_text(self.count_text)
            return len(self._detections)

    @property
    def can_commit(self) -> bool:
        with self._lock:
            return not self._committed and not self.processing and self.resolved_count > 0

    def snapshot(self) -> ReviewState:
        with self._lock:
            return ReviewState(
                session_id=self.session_id,
                photo_path=self.photo_path,
                object_type=self.object_type,
                mode=self._mode,
                detections=tuple(self._detections),
                corrections=self._corrections,
                auto_count=self._auto_count,
                count_text=self.count_text,
                resolved_count=self.resolved_count,
                processing=self.processing,
                no_objects_found=self._no_objects_found,
                committed=self._committed,
                can_commit=self.can_commit,
                last_error=self._last_error,
            )

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def _check_live(self) -> None:
        if self._committed:
            raise WorkflowStateError("Review already committed")

    def _check_editable(self) -> None:
        self._check_live()
        if self.processing:
            raise WorkflowBusyError("Detection in progress")

    def _reset_edits(self) -> None:
        self._detections = []
        self._corrections = 0
        self._count = EMPTY_COUNT
        self._no_objects_found = False
        self._last_error = None

    # -------------------------------------------------------------------------
    # Mode transitions
    # -------------------------------------------------------------------------

    def switch_to_manual(self) -> None:
        """Enter manual mode with an empty count. Cancels a pending detection."""
        with self._lock:
            self._check_live()
            if self._pending is not None:
                logging.info(f"Detection request {self._pending.seq} cancelled by switch to manual")
                self._pending = None
            self._mode = ReviewMode.MANUAL
            self._reset_edits()

    def switch_to_automatic(self) -> DetectionRequest:
        """
        Enter automatic mode and start a detection request.

        The caller runs the request (see run_detection) and reports the
        outcome through complete_detection / fail_detection.
        """
        with self._lock:
            self._check_editable()
            self._mode = ReviewMode.AUTOMATIC
            self._reset_edits()
            self._auto_count = None
            return self._begin_request()

    def recount(self) -> DetectionRequest:
        """Re-issue the detection request; current detections stay until it succeeds."""
        with self._lock:
            self._check_editable()
            if self._mode is not ReviewMode.AUTOMATIC:
                raise WorkflowStateError("Recount is only available in automatic mode")
            return self._begin_request()

    def _begin_request(self) -> DetectionRequest:
        self._seq += 1
        request = DetectionRequest(self._seq, self.photo_path, self.object_type)
        self._pending = request
        self._no_objects_found = False
        self._last_error = None
        logging.debug(f"Detection request {request.seq} started for {self.photo_path}")
        return request

    def _is_current(self, request: DetectionRequest) -> bool:
        return self._pending is not None and self._pending.seq == request.seq

    def complete_detection(self, request: DetectionRequest, count: int) -> bool:
        """
        Apply a detector result.

        Returns:
            False if the request is no longer current and the result was dropped.
        """
        if count < 0:
            raise ValueError(f"Detector count must be non-negative, got {count}")
        with self._lock:
            if not self._is_current(request):
                logging.warning(f"Dropping stale detection result for request {request.seq}")
                return False
            self._pending = None
            self._detections = synthesize_placeholders(count, self.layout)
            self._corrections = 0
            self._count = TAPPED
            self._auto_count = count
            self._no_objects_found = count == 0
            if self._no_objects_found:
                logging.info(f"No {self.object_type} found in {self.photo_path}")
            return True

    def fail_detection(self, request: DetectionRequest, error: Exception) -> bool:
        """
        Record a detector failure. Mode and detections are left as they were.

        Returns:
            False if the request is no longer current.
        """
        with self._lock:
            if not self._is_current(request):
                return False
            self._pending = None
            self._last_error = str(error)
            return True

    def run_detection(
        self,
        detector: Detector,
        api_key: Optional[str],
        request: Optional[DetectionRequest] = None,
    ) -> bool:
        """
        Run the pending (or given) request against `detector`.

        The detector call happens outside the workflow lock, so a concurrent
        switch_to_manual() can cancel it.

        Returns:
            True if the result was applied, False if it was dropped as stale.

        Raises:
            DetectionError: the detector failed; the workflow is back in its
                pre-request state.
        """
        with self._lock:
            request = request or self._pending
            if request is None:
                raise WorkflowStateError("No detection request pending")

        try:
            count = detector.count_objects(request.photo_path, request.object_type, api_key)
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise RequestFailedError(f"Detector returned an invalid count: {count!r}")
        except DetectionError as e:
            logging.error(f"Detection failed for {request.photo_path}: {e}")
            self.fail_detection(request, e)
            raise
        except Exception as e:
            logging.error(f"Unexpected detector error for {request.photo_path}: {e}")
            self.fail_detection(request, e)
            raise RequestFailedError(f"Detector error: {e}") from e

        return self.complete_detection(request, count)

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def add_point(self, x: float, y: float) -> Detection:
        """Add a manual detection centred on a tap."""
        with self._lock:
            self._check_editable()
            detection = Detection.manual_at(x, y, self.marker_size)
            self._detections.append(detection)
            self._corrections += 1
            self._count = TAPPED
            return detection

    def remove_point(self, detection_id: str) -> Detection:
        """Remove a detection (manual or placeholder)."""
        with self._lock:
            self._check_editable()
            for i, detection in enumerate(self._detections):
                if detection.id == detection_id:
                    del self._detections[i]
                    self._corrections += 1
                    self._count = TAPPED
                    return detection
            raise NotFoundError(f"Detection not found: {detection_id}")

    def set_count_text(self, text: str) -> None:
        """
        Type a count directly (manual mode).

        A positive number that differs from the current detection count
        replaces the tapped detections: they and the corrections are cleared.
        """
        with self._lock:
            self._check_editable()
            if self._mode is not ReviewMode.MANUAL:
                raise WorkflowStateError("Typed counts are only accepted in manual mode")
            text = text or ""
            self._count = TypedCount(text)
            typed = parse_count_text(text)
            if typed > 0 and typed != len(self._detections):
                self._detections = []
                self._corrections = 0

    def clear_all(self) -> None:
        """Drop all detections, corrections and the automatic reference count."""
        with self._lock:
            self._check_editable()
            self._reset_edits()
            self._auto_count = None

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    def commit(self) -> ImageCount:
        """
        Store the reviewed photo in its session.

        Raises:
            ValidationError: if the resolved count is not positive.
            WorkflowBusyError: while a detection request is pending.
            WorkflowStateError: if already committed.
            NotFoundError: if the session has been deleted meanwhile.
        """
        with self._lock:
            self._check_editable()
            count = self.resolved_count
            if count <= 0:
                if self._mode is ReviewMode.MANUAL:
                    raise ValidationError("Please enter a count value")
                raise ValidationError("No objects to save; recount or switch to manual mode")

            image = self.repository.add_image_to_session(
                self.session_id,
                self.photo_path,
                count,
                list(self._detections),
                corrections=self._corrections,
            )
            self._committed = True

        logging.info(f"Review committed: {count} {self.object_type} in session {self.session_id}")
        return image
