"""FastAPI wrapper around the template preview and patching engine."""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from core.edits.models import EditSetSpec
from core.orchestrator.reports import build_locate_report, build_session_report
from core.orchestrator.session import TemplateSession, build_session
from core.templates.sample_values import SampleValueLookup, load_sample_table, sample_value_for_key
from core.utils.errors import ConfigError

app = FastAPI(title="tplkit API", version="0.1.0")
logger = logging.getLogger("tplkit.api")

_REQUEST_ID_HEADER = "X-Tplkit-Request-Id"
_DEFAULT_MAX_SOURCE_BYTES = 2 * 1024 * 1024


class SourceRequest(BaseModel):
    """Template source plus an optional edit set."""

    model_config = ConfigDict(extra="forbid")

    source: str
    edits: EditSetSpec = Field(default_factory=EditSetSpec)


class LocateRequest(SourceRequest):
    """Selection ``[start, end)`` in the source, or a clicked preview index."""

    start: int | None = Field(default=None, ge=0)
    end: int | None = Field(default=None, ge=0)
    preview_index: int | None = Field(default=None, ge=0)


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        logger.exception("unhandled error request_id=%s", request_id)
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            path=request.url.path,
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(_REQUEST_ID_HEADER, request_id)
    return response


@app.exception_handler(ApiRequestError)
async def api_request_error_handler(request: Request, exc: ApiRequestError) -> JSONResponse:
    request_id = _request_id_from_request(request)
    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code=exc.error_code,
        status_code=exc.status_code,
        path=request.url.path,
    )
    return _error_response(
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        request_id=request_id,
        detail=exc.detail,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    request_id = _request_id_from_request(request)
    _log_event(
        logging.INFO,
        "error",
        request_id,
        error_code="INVALID_REQUEST",
        status_code=422,
        path=request.url.path,
    )
    return _error_response(
        status_code=422,
        error_code="INVALID_REQUEST",
        message="request body failed validation",
        request_id=request_id,
        detail={"errors": [_error_location(error) for error in exc.errors()]},
    )


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.post("/v1/inspect")
async def inspect_v1(request: Request, body: SourceRequest) -> JSONResponse:
    """Positions, sample data, resolved source and preview markup for a source."""

    started = time.perf_counter()
    request_id = _request_id_from_request(request)
    payload = await run_in_threadpool(_inspect_payload, body)
    _log_event(
        logging.INFO,
        "inspect",
        request_id,
        source_length=len(body.source),
        element_count=payload["element_count"],
        positions_available=payload["positions_available"],
        elapsed_ms=_elapsed_ms(started),
    )
    return _json_response(payload, request_id)


@app.post("/v1/apply")
async def apply_v1(request: Request, body: SourceRequest) -> JSONResponse:
    """Apply the edit set and return the patched source.

    When the source cannot be indexed, the source is returned unchanged with
    ``positions_available`` set to false.
    """

    started = time.perf_counter()
    request_id = _request_id_from_request(request)
    payload = await run_in_threadpool(_apply_payload, body)
    _log_event(
        logging.INFO,
        "apply",
        request_id,
        source_length=len(body.source),
        removals=len(body.edits.removals),
        styles=len(body.edits.styles),
        stale_count=len(payload["stale_ids"]),
        elapsed_ms=_elapsed_ms(started),
    )
    return _json_response(payload, request_id)


@app.post("/v1/locate")
async def locate_v1(request: Request, body: LocateRequest) -> JSONResponse:
    """Map a source selection or a preview click to an element."""

    request_id = _request_id_from_request(request)
    if (body.start is None) == (body.preview_index is None):
        raise ApiRequestError(
            status_code=422,
            error_code="INVALID_REQUEST",
            message="provide either start/end or preview_index",
        )
    if body.start is not None and body.end is not None and body.end < body.start:
        raise ApiRequestError(
            status_code=422,
            error_code="INVALID_REQUEST",
            message="end must not be before start",
            detail={"start": body.start, "end": body.end},
        )

    payload = await run_in_threadpool(_locate_payload, body)
    _log_event(logging.INFO, "locate", request_id, found=payload["found"])
    return _json_response(payload, request_id)


def _inspect_payload(body: SourceRequest) -> dict[str, Any]:
    return build_session_report(_build_session(body)).model_dump(mode="json")


def _apply_payload(body: SourceRequest) -> dict[str, Any]:
    session = _build_session(body)
    known = {position.element_id for position in session.positions or []}
    requested = set(session.edits.removals) | set(session.edits.styles)
    return {
        "positions_available": session.positions_available,
        "patched_source": session.patched_source,
        "stale_ids": sorted(requested - known) if session.positions_available else [],
    }


def _locate_payload(body: LocateRequest) -> dict[str, Any]:
    session = _build_session(body)
    if body.start is not None:
        end = body.end if body.end is not None else body.start
        match = session.locate(body.start, end)
        element_id = match.element_id if match is not None else None
    else:
        element_id = session.preview_index_to_id(body.preview_index or 0)

    payload = build_locate_report(session, element_id).model_dump(mode="json")
    payload["positions_available"] = session.positions_available
    return payload


def _build_session(body: SourceRequest) -> TemplateSession:
    max_bytes = _max_source_bytes()
    size = len(body.source.encode("utf-8"))
    if size > max_bytes:
        raise ApiRequestError(
            status_code=413,
            error_code="SOURCE_TOO_LARGE",
            message="source exceeds size limit",
            detail={"max_bytes": max_bytes, "received_bytes": size},
        )
    return build_session(body.source, body.edits.to_edit_set(), _sample_lookup())


def _sample_lookup() -> SampleValueLookup:
    raw = os.getenv("TPLKIT_SAMPLE_VALUES")
    if not raw:
        return sample_value_for_key
    try:
        return load_sample_table(Path(raw)).lookup
    except ConfigError as exc:
        raise ApiRequestError(
            status_code=500,
            error_code="CONFIG_ERROR",
            message="sample values configuration is invalid",
            detail={"path": str(exc.path) if exc.path is not None else raw},
        ) from exc


def _max_source_bytes() -> int:
    raw = os.getenv("TPLKIT_MAX_SOURCE_BYTES")
    if raw is None:
        return _DEFAULT_MAX_SOURCE_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_SOURCE_BYTES
    return parsed if parsed > 0 else _DEFAULT_MAX_SOURCE_BYTES


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _error_location(error: Any) -> dict[str, Any]:
    return {
        "loc": [str(part) for part in error.get("loc", ())],
        "type": error.get("type"),
    }


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _json_response(content: dict[str, Any], request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        headers={_REQUEST_ID_HEADER: request_id},
        content=content,
    )


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id
    return JSONResponse(
        status_code=status_code,
        headers={_REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )
