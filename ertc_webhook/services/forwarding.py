"""Relay a processed submission, its files and report to a second webhook."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from ertc_webhook.schemas.submission import ForwardingResult, IncomingFile
from ertc_webhook.services.report_service import XLSX_CONTENT_TYPE

logger = logging.getLogger("ertc.forwarding")


def build_multipart(
    submission_data: dict[str, Any],
    files: list[IncomingFile],
    report: bytes | None,
    report_filename: str | None,
) -> tuple[dict[str, str], list[tuple[str, tuple[str, bytes, str]]]]:
    """Return the (data, files) pair httpx expects for a multipart POST."""
    data = {"submissionData": json.dumps(submission_data, default=str)}
    parts = [
        (f"uploadedFile_{index}", (f.filename, f.content, f.content_type))
        for index, f in enumerate(files)
    ]
    if report is not None:
        parts.append(("excelReport", (report_filename or "report.xlsx", report, XLSX_CONTENT_TYPE)))
    return data, parts


async def forward_submission(
    url: str,
    submission_data: dict[str, Any],
    files: list[IncomingFile],
    report: bytes | None = None,
    report_filename: str | None = None,
    *,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> ForwardingResult:
    """POST the submission as multipart/form-data.

    Never raises; transport failures and non-2xx replies come back as an
    unsuccessful ``ForwardingResult``.
    """
    if not url:
        logger.info("No forward webhook URL configured, skipping outbound data forwarding")
        return ForwardingResult(success=False, message="No forward webhook URL configured")

    data, parts = build_multipart(submission_data, files, report, report_filename)
    logger.info("Forwarding submission data to %s (%d attachments)", url, len(parts))

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        response = await http.post(url, data=data, files=parts or None)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.error("Forward webhook rejected submission: HTTP %d", status)
        return ForwardingResult(
            success=False,
            status=status,
            error=f"HTTP {status}",
            message="Error forwarding submission data",
        )
    except httpx.HTTPError as exc:
        logger.error("Error forwarding submission data: %s", exc)
        return ForwardingResult(
            success=False,
            error=str(exc) or exc.__class__.__name__,
            message="Error forwarding submission data",
        )
    finally:
        if owns_client:
            await http.aclose()

    logger.info("Data forwarding successful: %d %s", response.status_code, response.reason_phrase)
    return ForwardingResult(
        success=True,
        status=response.status_code,
        message="Data forwarded successfully",
    )
