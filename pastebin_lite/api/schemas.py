from __future__ import annotations

import re
from datetime import timedelta
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pastebin_lite.clock import from_epoch_millis


# Upper bounds keep values inside the INTEGER column and datetime range.
MAX_TTL_SECONDS = 100 * 365 * 24 * 60 * 60
MAX_VIEWS_LIMIT = 2_147_483_647


class PasteCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str = Field(..., min_length=1, strict=True, description="Paste content")
    ttl_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        le=MAX_TTL_SECONDS,
        strict=True,
        description="Optional time-to-live in seconds (>= 1)",
    )
    max_views: Optional[int] = Field(
        default=None,
        ge=1,
        le=MAX_VIEWS_LIMIT,
        strict=True,
        description="Optional maximum number of views (>= 1)",
    )


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[list[FieldError]] = None


class PasteCreatedResponse(BaseModel):
    id: str
    url: str


class HealthResponse(BaseModel):
    status: str = "ok"


class HealthzResponse(BaseModel):
    ok: bool


def _message_for(field: str, error: Mapping[str, Any]) -> str:
    if field == "body":
        return "Request body must be an object"
    if field == "content":
        if error["type"] == "missing" or error.get("input") is None:
            return "content is required"
        if error["type"] == "string_too_short":
            return "content cannot be empty"
        return "content must be a string"
    if error["type"] == "less_than_equal":
        limit = MAX_TTL_SECONDS if field == "ttl_seconds" else MAX_VIEWS_LIMIT
        return f"{field} must be an integer between 1 and {limit}"
    return f"{field} must be an integer >= 1"


def validation_error_details(exc: ValidationError) -> list[FieldError]:
    """Flatten a pydantic error into one ``{field, message}`` entry per field."""
    details: list[FieldError] = []
    seen: set[str] = set()
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else "body"
        if field in seen:
            continue
        seen.add(field)
        details.append(FieldError(field=field, message=_message_for(field, error)))
    return details


_INTEGER_RE = re.compile(r"^-?\d+$")


def form_to_payload(form: Mapping[str, str]) -> dict[str, Any]:
    """
    Turn HTML form fields into the JSON shape of ``PasteCreateRequest``.

    Blank numeric fields mean "not set"; non-numeric text is passed through
    so that validation reports it.
    """
    payload: dict[str, Any] = {"content": form.get("content", "")}
    for name in ("ttl_seconds", "max_views"):
        raw = (form.get(name) or "").strip()
        if not raw:
            continue
        payload[name] = int(raw) if _INTEGER_RE.match(raw) else raw
    return payload


class InvalidTimeOverride(ValueError):
    """Raised when a time override header is not an integer millisecond value."""


def parse_time_override(raw: Optional[str]) -> Optional[int]:
    """Parse an ``X-Test-Now-Ms`` header value (milliseconds since epoch)."""
    if raw is None:
        return None
    value = raw.strip()
    if not _INTEGER_RE.match(value):
        raise InvalidTimeOverride(f"Invalid time override {raw!r}")
    millis = int(value)
    # The latest accepted instant must still leave room for the longest TTL.
    try:
        from_epoch_millis(millis) + timedelta(seconds=MAX_TTL_SECONDS)
    except OverflowError as exc:
        raise InvalidTimeOverride(f"Time override {raw!r} is out of range") from exc
    return millis
