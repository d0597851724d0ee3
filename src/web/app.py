"""
FastAPI application factory for Object Counter.

Routes:
- /api/* -> REST API for sessions, settings and photo reviews

The camera/UI client is an external collaborator: it saves the photo
somewhere durable and hands the path to /api/reviews.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from models.errors import (
    MissingCredentialError,
    NotFoundError,
    ObjectCounterError,
    PersistenceError,
    RequestFailedError,
    ValidationError,
    WorkflowStateError,
)
from runtime.context import RuntimeContext
from .routes import api

# Most specific first
_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (MissingCredentialError, 401),
    (NotFoundError, 404),
    (WorkflowStateError, 409),
    (RequestFailedError, 502),
    (PersistenceError, 500),
)


def status_for(exc: ObjectCounterError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(ctx: RuntimeContext) -> FastAPI:
    """Create the FastAPI app and wire routes to the runtime context."""
    app = FastAPI(
        title="Object Counter",
        version="0.1.0",
        description="Photo-based object counting sessions",
    )
    app.state.ctx = ctx

    # CORS for development (Vite dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ObjectCounterError)
    async def handle_app_error(request: Request, exc: ObjectCounterError):
        status = status_for(exc)
        if status >= 500:
            logging.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse({"detail": str(exc), "error": exc.code}, status_code=status)

    app.include_router(api.router, prefix="/api")

    return app
