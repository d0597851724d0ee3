"""
Error taxonomy for the object counter.

Validation and not-found errors are raised before anything is written to the
store. Persistence errors signal that a write did not happen. Detection errors
describe a failed remote count and never leave the review workflow half-updated.
"""

from __future__ import annotations


class ObjectCounterError(Exception):
    """Base class for all application errors."""

    code = "error"


class ValidationError(ObjectCounterError):
    """Input rejected (empty session name, zero count at commit)."""

    code = "validation_error"


class NotFoundError(ObjectCounterError):
    """A referenced session, image or detection does not exist."""

    code = "not_found"


class PersistenceError(ObjectCounterError):
    """The store could not write a record."""

    code = "persistence_error"


class DetectionError(ObjectCounterError):
    """The remote detector did not produce a count."""

    code = "detection_error"


class MissingCredentialError(DetectionError):
    """No detector API key is configured; the caller should prompt for one and retry."""

    code = "missing_credential"


class RequestFailedError(DetectionError):
    """Network, timeout, API or response-format failure."""

    code = "request_failed"


class WorkflowStateError(ObjectCounterError):
    """Operation not permitted in the review workflow's current state."""

    code = "invalid_state"


class WorkflowBusyError(WorkflowStateError):
    """A detection request is in flight; edits are rejected until it resolves."""

    code = "busy"
