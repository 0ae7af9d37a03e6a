from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, render_template, request, url_for
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from pastebin_lite.api.schemas import (
    PasteCreateRequest,
    form_to_payload,
    validation_error_details,
)
from pastebin_lite.clock import SystemClock
from pastebin_lite.domain.errors import InvalidPasteParameters
from pastebin_lite.domain.outcomes import Consumed
from pastebin_lite.services.registry import get_paste_service

logger = logging.getLogger(__name__)

web_bp = Blueprint("web", __name__)

# Pages always use the wall clock; time overrides are an API-only test aid.
_clock = SystemClock()


@web_bp.errorhandler(Exception)
def _internal_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    logger.exception(
        "Unhandled error while rendering page",
        extra={"event": "internal_error", "error_type": type(exc).__name__},
    )
    return render_template("error.html"), HTTPStatus.INTERNAL_SERVER_ERROR


@web_bp.route("/", methods=["GET"])
def index():
    return render_template("index.html", form={}, errors=[], created_url=None)


def _form_errors(errors: list[str]):
    return (
        render_template("index.html", form=request.form, errors=errors, created_url=None),
        HTTPStatus.BAD_REQUEST,
    )


@web_bp.route("/", methods=["POST"])
def create_from_form():
    """Handle the paste form; re-render it with the new link or the errors."""

    try:
        payload = PasteCreateRequest.model_validate(form_to_payload(request.form))
    except ValidationError as exc:
        errors = [detail.message for detail in validation_error_details(exc)]
        return _form_errors(errors)

    try:
        created = get_paste_service().create_paste(
            content=payload.content,
            ttl_seconds=payload.ttl_seconds,
            max_views=payload.max_views,
            now=_clock.now(),
        )
    except InvalidPasteParameters as exc:
        return _form_errors([str(exc)])
    logger.info(
        "Paste created",
        extra={"event": "paste_created", "paste_id": created.id},
    )
    created_url = url_for("web.show_paste", paste_id=created.id, _external=True)
    return (
        render_template("index.html", form={}, errors=[], created_url=created_url),
        HTTPStatus.CREATED,
    )


@web_bp.route("/p/<paste_id>", methods=["GET"])
def show_paste(paste_id: str):
    """Render a paste; viewing the page counts as a view."""

    outcome = get_paste_service().fetch_and_consume(paste_id, now=_clock.now())
    if not isinstance(outcome, Consumed):
        logger.info(
            "Paste page refused",
            extra={
                "event": "paste_view_refused",
                "paste_id": paste_id,
                "outcome": type(outcome).__name__,
            },
        )
        return render_template("not_found.html"), HTTPStatus.NOT_FOUND

    logger.info(
        "Paste page consumed",
        extra={"event": "paste_view_consumed", "paste_id": paste_id},
    )
    return render_template("paste.html", content=outcome.content), HTTPStatus.OK
