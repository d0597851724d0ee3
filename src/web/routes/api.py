from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from counting.workflow import CountingWorkflow, ReviewMode
from models.errors import ValidationError
from models.session import Session
from runtime.context import RuntimeContext
from ..api_models import (
    CountTextRequest,
    CreateSessionRequest,
    ErrorResponse,
    ModeRequest,
    PointRequest,
    RescoreImageRequest,
    ReviewStateResponse,
    SessionModel,
    SettingsResponse,
    SettingsUpdateRequest,
    StartReviewRequest,
)

# Error bodies produced by the ObjectCounterError handler in web.app
router = APIRouter(
    responses={
        status: {"model": ErrorResponse}
        for status in (400, 401, 404, 409, 500, 502)
    },
)


def get_ctx(request: Request) -> RuntimeContext:
    return request.app.state.ctx


def _review_response(review_id: str, workflow: CountingWorkflow) -> Dict[str, Any]:
    state = workflow.snapshot()
    return {
        "reviewId": review_id,
        "sessionId": state.session_id,
        "photoPath": state.photo_path,
        "objectType": state.object_type,
        "mode": state.mode.value,
        "detections": [d.to_dict() for d in state.detections],
        "corrections": state.corrections,
        "autoCount": state.auto_count,
        "countText": state.count_text,
        "resolvedCount": state.resolved_count,
        "processing": state.processing,
        "noObjectsFound": state.no_objects_found,
        "committed": state.committed,
        "canCommit": state.can_commit,
        "lastError": state.last_error,
    }


def _settings_response(ctx: RuntimeContext) -> Dict[str, Any]:
    settings = ctx.settings.load()
    d = settings.to_dict()
    d.pop("detectorApiKey", None)
    d["hasDetectorApiKey"] = settings.has_detector_api_key
    return d


@router.get("/health")
def health(ctx: RuntimeContext = Depends(get_ctx)):
    return {
        "status": "ok",
        "sessions": len(ctx.repository.list_sessions()),
        "open_reviews": len(ctx.reviews),
        "detector_configured": ctx.settings.load().has_detector_api_key,
    }


# -----------------------------------------------------------------------------
# Sessions
# -----------------------------------------------------------------------------

@router.get("/sessions")
def list_sessions(ctx: RuntimeContext = Depends(get_ctx)) -> List[Dict[str, Any]]:
    return [s.to_dict() for s in ctx.repository.list_sessions()]


@router.post("/sessions", status_code=201)
def create_session(body: CreateSessionRequest, ctx: RuntimeContext = Depends(get_ctx)):
    return ctx.repository.create_session(body.name, body.object_type).to_dict()


@router.get("/sessions/{session_id}")
def get_session(session_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    return ctx.repository.require_session(session_id).to_dict()


@router.put("/sessions/{session_id}")
def replace_session(session_id: str, body: SessionModel, ctx: RuntimeContext = Depends(get_ctx)):
    """Verbatim replace. The caller owns `totalCount` consistency."""
    if body.id != session_id:
        raise ValidationError(f"Body id {body.id} does not match path id {session_id}")
    session = Session.from_dict(body.model_dump(by_alias=True, mode="json"))
    ctx.repository.update_session(session)
    return session.to_dict()


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    ctx.repository.delete_session(session_id)
    return Response(status_code=204)


@router.delete("/sessions/{session_id}/images/{image_id}")
def remove_image(session_id: str, image_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    ctx.repository.remove_image_from_session(session_id, image_id)
    return ctx.repository.require_session(session_id).to_dict()


@router.patch("/sessions/{session_id}/images/{image_id}")
def rescore_image(
    session_id: str,
    image_id: str,
    body: RescoreImageRequest,
    ctx: RuntimeContext = Depends(get_ctx),
):
    return ctx.repository.update_image_count(
        session_id, image_id, body.count, body.corrections
    ).to_dict()


@router.get("/sessions/{session_id}/export.csv", response_class=PlainTextResponse)
def export_csv(session_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    csv_text = ctx.exporter.export_csv(session_id)
    return PlainTextResponse(
        csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{session_id}_count.csv"'},
    )


@router.get("/sessions/{session_id}/export.json")
def export_json(session_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    return Response(ctx.exporter.export_json(session_id), media_type="application/json")


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------

@router.get("/settings", response_model=SettingsResponse)
def get_settings(ctx: RuntimeContext = Depends(get_ctx)):
    return _settings_response(ctx)


@router.put("/settings", response_model=SettingsResponse)
def update_settings(body: SettingsUpdateRequest, ctx: RuntimeContext = Depends(get_ctx)):
    changes = body.model_dump(exclude_unset=True)
    # null clears the key; for every other field it means "leave as is"
    if "detector_api_key" in changes:
        ctx.settings.set_detector_api_key(changes.pop("detector_api_key"))
    changes = {k: v for k, v in changes.items() if v is not None}
    if changes:
        ctx.settings.update(**changes)
    return _settings_response(ctx)


# -----------------------------------------------------------------------------
# Reviews
# -----------------------------------------------------------------------------

@router.post("/reviews", status_code=201, response_model=ReviewStateResponse)
def start_review(body: StartReviewRequest, ctx: RuntimeContext = Depends(get_ctx)):
    workflow = ctx.start_review(body.session_id, body.photo_path)
    review_id = ctx.reviews.add(workflow)
    return _review_response(review_id, workflow)


@router.get("/reviews/{review_id}", response_model=ReviewStateResponse)
def get_review(review_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    return _review_response(review_id, ctx.reviews.get(review_id))


@router.delete("/reviews/{review_id}", status_code=204)
def discard_review(review_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    ctx.reviews.discard(review_id)
    return Response(status_code=204)


@router.post("/reviews/{review_id}/mode", response_model=ReviewStateResponse)
def set_mode(review_id: str, body: ModeRequest, ctx: RuntimeContext = Depends(get_ctx)):
    """Switch mode; automatic mode runs the detector before responding."""
    workflow = ctx.reviews.get(review_id)
    if body.mode == ReviewMode.MANUAL.value:
        workflow.switch_to_manual()
    else:
        request = workflow.switch_to_automatic()
        workflow.run_detection(ctx.detector, ctx.detector_api_key(), request)
    return _review_response(review_id, workflow)


@router.post("/reviews/{review_id}/recount", response_model=ReviewStateResponse)
def recount(review_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    workflow = ctx.reviews.get(review_id)
    request = workflow.recount()
    workflow.run_detection(ctx.detector, ctx.detector_api_key(), request)
    return _review_response(review_id, workflow)


@router.post("/reviews/{review_id}/points", response_model=ReviewStateResponse)
def add_point(review_id: str, body: PointRequest, ctx: RuntimeContext = Depends(get_ctx)):
    workflow = ctx.reviews.get(review_id)
    workflow.add_point(body.x, body.y)
    return _review_response(review_id, workflow)


@router.delete("/reviews/{review_id}/points/{detection_id}", response_model=ReviewStateResponse)
def remove_point(review_id: str, detection_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    workflow = ctx.reviews.get(review_id)
    workflow.remove_point(detection_id)
    return _review_response(review_id, workflow)


@router.put("/reviews/{review_id}/count", response_model=ReviewStateResponse)
def set_count(review_id: str, body: CountTextRequest, ctx: RuntimeContext = Depends(get_ctx)):
    workflow = ctx.reviews.get(review_id)
    workflow.set_count_text(body.text)
    return _review_response(review_id, workflow)


@router.post("/reviews/{review_id}/clear", response_model=ReviewStateResponse)
def clear_review(review_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    workflow = ctx.reviews.get(review_id)
    workflow.clear_all()
    return _review_response(review_id, workflow)


@router.post("/reviews/{review_id}/commit", status_code=201)
def commit_review(review_id: str, ctx: RuntimeContext = Depends(get_ctx)):
    """Store the photo in its session and close the review."""
    workflow = ctx.reviews.get(review_id)
    image = workflow.commit()
    ctx.reviews.discard(review_id)
    logging.info(f"Review {review_id} committed as image {image.id}")
    return image.to_dict()
