from __future__ import annotations

import logging
from datetime import datetime
from http import HTTPStatus

from flask import Blueprint, current_app, request, url_for
from pydantic import ValidationError
from werkzeug.exceptions import BadRequest, HTTPException

from pastebin_lite.api.schemas import (
    ErrorResponse,
    HealthResponse,
    HealthzResponse,
    InvalidTimeOverride,
    PasteCreateRequest,
    PasteCreatedResponse,
    parse_time_override,
    validation_error_details,
)
from pastebin_lite.clock import resolve_clock
from pastebin_lite.domain.errors import InvalidPasteParameters, PasteStorageError
from pastebin_lite.domain.outcomes import Consumed
from pastebin_lite.services.helpers import consumed_to_dto
from pastebin_lite.services.registry import get_paste_service, get_paste_store

logger = logging.getLogger(__name__)

TIME_OVERRIDE_HEADER = "X-Test-Now-Ms"

api_bp = Blueprint("api", __name__)


def _error(message: str, status: HTTPStatus, **fields) -> tuple[dict, int]:
    return ErrorResponse(error=message, **fields).model_dump(exclude_none=True), status


def request_now() -> datetime:
    """
    Return "now" for the current API request.

    The override header is only read when ``TEST_MODE`` is enabled.
    """
    test_mode = bool(current_app.config.get("TEST_MODE", False))
    override_ms = None
    if test_mode:
        override_ms = parse_time_override(request.headers.get(TIME_OVERRIDE_HEADER))
    return resolve_clock(test_mode=test_mode, override_ms=override_ms).now()


@api_bp.errorhandler(InvalidTimeOverride)
def _invalid_time_override(exc: InvalidTimeOverride) -> tuple[dict, int]:
    return _error(f"Invalid {TIME_OVERRIDE_HEADER} header", HTTPStatus.BAD_REQUEST)


@api_bp.errorhandler(InvalidPasteParameters)
def _invalid_paste_parameters(exc: InvalidPasteParameters) -> tuple[dict, int]:
    logger.info(
        "Rejected paste creation request",
        extra={"event": "paste_create_invalid", "error_type": type(exc).__name__},
    )
    return _error(str(exc), HTTPStatus.BAD_REQUEST)


@api_bp.errorhandler(Exception)
def _internal_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    logger.exception(
        "Unhandled error while serving API request",
        extra={
            "event": "internal_error",
            "error_type": type(exc).__name__,
        },
    )
    return _error("Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR)


@api_bp.route("/health", methods=["GET"])
def health() -> tuple[dict, int]:
    """Simple liveness endpoint."""

    body = HealthResponse().model_dump()
    return body, HTTPStatus.OK


@api_bp.route("/api/healthz", methods=["GET"])
def healthz() -> tuple[dict, int]:
    """Readiness endpoint: verifies the paste store is reachable."""

    try:
        get_paste_store().ping()
    except PasteStorageError as exc:
        logger.warning(
            "Health check failed",
            extra={"event": "healthz_failed", "error_type": type(exc.__cause__ or exc).__name__},
        )
        return HealthzResponse(ok=False).model_dump(), HTTPStatus.SERVICE_UNAVAILABLE

    return HealthzResponse(ok=True).model_dump(), HTTPStatus.OK


@api_bp.route("/api/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Validation is handled by Pydantic; expiry arithmetic by the service layer.
    """
    try:
        body = request.get_json(force=True)
    except BadRequest:
        return _error("Invalid JSON body", HTTPStatus.BAD_REQUEST)

    try:
        payload = PasteCreateRequest.model_validate(body)
    except ValidationError as exc:
        details = validation_error_details(exc)
        logger.info(
            "Rejected paste creation request",
            extra={"event": "paste_create_invalid"},
        )
        return _error("Validation failed", HTTPStatus.BAD_REQUEST, details=details)

    now = request_now()
    created = get_paste_service().create_paste(
        content=payload.content,
        ttl_seconds=payload.ttl_seconds,
        max_views=payload.max_views,
        now=now,
    )
    logger.info(
        "Paste created",
        extra={"event": "paste_created", "paste_id": created.id},
    )

    url = url_for("web.show_paste", paste_id=created.id, _external=True)
    return PasteCreatedResponse(id=created.id, url=url).model_dump(), HTTPStatus.CREATED


@api_bp.route("/api/pastes/<paste_id>", methods=["GET"])
def fetch_paste(paste_id: str) -> tuple[dict, int]:
    """
    Return a paste's content and count the view.

    Unknown and expired pastes are indistinguishable to the caller.
    """
    now = request_now()
    outcome = get_paste_service().fetch_and_consume(paste_id, now=now)

    if not isinstance(outcome, Consumed):
        logger.info(
            "Paste view refused",
            extra={
                "event": "paste_view_refused",
                "paste_id": paste_id,
                "outcome": type(outcome).__name__,
            },
        )
        return _error("Paste not found", HTTPStatus.NOT_FOUND)

    logger.info(
        "Paste view consumed",
        extra={"event": "paste_view_consumed", "paste_id": paste_id},
    )
    return consumed_to_dto(outcome), HTTPStatus.OK
