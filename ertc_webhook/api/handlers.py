"""Endpoint handlers – the bridge between HTTP routes and the service layer."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError

from ertc_webhook.config import Settings
from ertc_webhook.db import Database
from ertc_webhook.schemas.common import ApiResponse, ErrorDetail, Meta
from ertc_webhook.schemas.submission import FileDownload, IncomingFile, WebhookReceipt
from ertc_webhook.services import submission_service
from ertc_webhook.services.extraction import extract_submission, form_data, parse_submission_payload
from ertc_webhook.services.forwarding import forward_submission
from ertc_webhook.services.qualification import analyze
from ertc_webhook.services.report_service import render_report, report_filename

logger = logging.getLogger("ertc.webhook")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _elapsed(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 2)


def _error_response(
    endpoint: str, code: str, message: str, elapsed: float, hint: str | None = None
) -> dict:
    return ApiResponse(
        endpoint=endpoint,
        ok=False,
        data=None,
        error=ErrorDetail(error_code=code, message=message, hint=hint),
        meta=Meta(execution_ms=elapsed, row_count=0),
    ).model_dump()


def _ok(endpoint: str, data, elapsed: float, row_count: int | None = None) -> dict:
    return ApiResponse(
        endpoint=endpoint,
        ok=True,
        data=data,
        error=None,
        meta=Meta(execution_ms=elapsed, row_count=row_count),
    ).model_dump()


def _submission_not_found(endpoint: str, submission_id: str, elapsed: float) -> dict:
    return _error_response(
        endpoint,
        "SUBMISSION_NOT_FOUND",
        f"No submission found with id '{submission_id}'",
        elapsed,
        hint="List submissions via GET /submissions to find valid ids.",
    )


def new_submission_id() -> str:
    """Millisecond timestamp plus a random suffix, sortable and unique."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def _forwarding_payload(
    submission_id: str,
    received_at: datetime,
    payload: dict[str, Any],
    files: list[IncomingFile],
    receipt_quarters: list[str],
    analysis: list[dict[str, Any]],
) -> dict[str, Any]:
    return {
        "id": submission_id,
        "receivedAt": received_at.isoformat(),
        "originalData": payload,
        "receivedFiles": [
            {
                "fieldName": f.field_name,
                "originalName": f.filename,
                "size": f.size,
                "mimetype": f.content_type,
            }
            for f in files
        ],
        "qualifyingQuarters": receipt_quarters,
        "quarterAnalysis": analysis,
    }


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_receive_submission(
    database: Database,
    settings: Settings,
    fields: Mapping[str, Any],
    files: list[IncomingFile],
    *,
    http_client: httpx.AsyncClient | None = None,
) -> dict:
    """Process one webhook notification end to end.

    Decode → extract → analyze → render report → persist → forward.
    A report that fails to render is logged and the submission is still
    stored; forwarding failures never fail the request.
    """
    t0 = time.perf_counter()
    endpoint = "receive_submission"
    logger.info("Received webhook notification (%d files)", len(files))

    for f in files:
        if f.size > settings.max_upload_bytes:
            return _error_response(
                endpoint,
                "PAYLOAD_TOO_LARGE",
                f"File '{f.filename}' exceeds the {settings.max_upload_bytes}-byte upload limit",
                _elapsed(t0),
            )

    payload = parse_submission_payload(fields)
    extracted = extract_submission(payload)
    summary = analyze(extracted.baseline_revenue, extracted.comparison_revenue)

    submission_id = new_submission_id()
    received_at = datetime.now(timezone.utc)

    report: bytes | None = None
    try:
        report = render_report(
            submission_id,
            received_at,
            form_data(payload),
            summary,
            baseline_year=settings.baseline_year,
            comparison_year=settings.comparison_year,
            creator=settings.report_creator,
        )
    except Exception:
        logger.exception("Error generating Excel report for submission %s", submission_id)

    try:
        async with database.session() as session:
            submission = await submission_service.create_submission(
                session,
                submission_id=submission_id,
                received_at=received_at,
                payload=payload,
                extracted=extracted,
                summary=summary,
                files=files,
                report=report,
            )
    except SQLAlchemyError as exc:
        logger.exception("Error saving submission %s", submission_id)
        return _error_response(
            endpoint,
            "PERSISTENCE_ERROR",
            f"Error processing webhook notification: {exc.__class__.__name__}",
            _elapsed(t0),
        )

    quarters = list(summary.qualifying_quarters)
    forwarding = await forward_submission(
        settings.forward_webhook_url,
        _forwarding_payload(
            submission_id,
            received_at,
            payload,
            files,
            quarters,
            submission.quarter_analysis,
        ),
        files,
        report,
        report_filename(submission_id),
        timeout=settings.forward_timeout_seconds,
        client=http_client,
    )

    try:
        async with database.session() as session:
            await submission_service.record_forwarding(session, submission, forwarding)
    except SQLAlchemyError:
        logger.exception("Could not record forwarding outcome for %s", submission_id)

    receipt = WebhookReceipt(
        submission_id=submission_id,
        report_generated=report is not None,
        forwarded=forwarding.success,
        forwarding_details=forwarding,
        qualifying_quarters=quarters,
        file_count=len(files),
    )
    elapsed = _elapsed(t0)
    logger.info(
        "receive_submission id=%s files=%d qualifying=%s ms=%.1f",
        submission_id,
        len(files),
        quarters,
        elapsed,
    )
    return _ok(endpoint, receipt.model_dump(by_alias=True, mode="json"), elapsed, row_count=1)


async def handle_list_submissions(database: Database, arguments: dict) -> dict:
    """Paginated submission listing.

    Args:
        arguments: {"limit": int (default 20, max 100), "offset": int (default 0)}
    """
    t0 = time.perf_counter()
    endpoint = "list_submissions"

    try:
        limit = int(arguments.get("limit", 20))
        offset = int(arguments.get("offset", 0))
    except (TypeError, ValueError):
        return _error_response(endpoint, "INVALID_INPUT", "limit and offset must be integers", _elapsed(t0))
    if limit < 1 or offset < 0:
        return _error_response(
            endpoint,
            "INVALID_INPUT",
            "limit must be >= 1 and offset must be >= 0",
            _elapsed(t0),
        )

    async with database.session() as session:
        briefs, total = await submission_service.list_submissions(session, limit, offset)

    elapsed = _elapsed(t0)
    logger.info("list_submissions limit=%d offset=%d results=%d ms=%.1f", limit, offset, len(briefs), elapsed)
    return _ok(
        endpoint,
        {
            "submissions": [b.model_dump(by_alias=True, mode="json") for b in briefs],
            "total": total,
            "hasMore": offset + len(briefs) < total,
        },
        elapsed,
        row_count=len(briefs),
    )


async def handle_get_submission(database: Database, submission_id: str) -> dict:
    t0 = time.perf_counter()
    endpoint = "get_submission"

    async with database.session() as session:
        submission = await submission_service.get_submission(session, submission_id)
        detail = submission_service.to_detail(submission) if submission is not None else None

    elapsed = _elapsed(t0)
    if detail is None:
        return _submission_not_found(endpoint, submission_id, elapsed)
    return _ok(endpoint, detail.model_dump(by_alias=True, mode="json"), elapsed, row_count=1)


async def handle_download_report(database: Database, submission_id: str) -> FileDownload | dict:
    """Return the stored xlsx, or an error envelope."""
    t0 = time.perf_counter()
    endpoint = "download_report"

    async with database.session() as session:
        download = await submission_service.get_report_file(session, submission_id)
        exists = download is not None or (
            await submission_service.get_submission(session, submission_id) is not None
        )

    if download is not None:
        return download
    if not exists:
        return _submission_not_found(endpoint, submission_id, _elapsed(t0))
    return _error_response(
        endpoint,
        "REPORT_NOT_FOUND",
        f"No report was generated for submission '{submission_id}'",
        _elapsed(t0),
    )


async def handle_download_file(
    database: Database, submission_id: str, file_id: str
) -> FileDownload | dict:
    """Return one attachment, or an error envelope."""
    t0 = time.perf_counter()
    endpoint = "download_file"

    try:
        file_uuid = uuid.UUID(file_id)
    except ValueError:
        return _error_response(endpoint, "INVALID_INPUT", "file_id must be a UUID", _elapsed(t0))

    async with database.session() as session:
        download = await submission_service.get_stored_file(session, submission_id, file_uuid)

    if download is None:
        return _error_response(
            endpoint,
            "FILE_NOT_FOUND",
            f"No file '{file_id}' on submission '{submission_id}'",
            _elapsed(t0),
        )
    return download
