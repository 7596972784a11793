"""Submission-related Pydantic schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ertc_webhook.schemas.common import CamelModel
from ertc_webhook.schemas.qualification import QuarterAnalysisResult


class IncomingFile(BaseModel):
    """A multipart attachment read fully into memory."""

    field_name: str | None = None
    filename: str
    content_type: str = "application/octet-stream"
    content: bytes = b""

    @property
    def size(self) -> int:
        return len(self.content)


class ExtractedSubmission(BaseModel):
    """Typed fields pulled out of a submission payload by the extraction contract."""

    contract_version: str
    user_email: str | None = None
    user_id: str | None = None
    baseline_revenue: dict[str, Any] = Field(default_factory=dict)
    comparison_revenue: dict[str, Any] = Field(default_factory=dict)


class ForwardingResult(CamelModel):
    """Outcome of relaying a submission to the second webhook."""

    success: bool
    message: str
    status: int | None = None
    error: str | None = None


class StoredFileInfo(CamelModel):
    """Attachment metadata (never the bytes)."""

    id: uuid.UUID
    kind: str
    field_name: str | None = None
    filename: str
    content_type: str
    size: int
    download_url: str


class SubmissionBrief(CamelModel):
    """Row returned by the submission listing."""

    submission_id: str
    received_at: datetime
    user_email: str | None = None
    qualifying_quarters: list[str] = Field(default_factory=list)
    file_count: int = 0
    report_generated: bool = False
    forwarded: bool = False


class SubmissionDetail(CamelModel):
    """Full submission record including the qualification analysis."""

    submission_id: str
    received_at: datetime
    user_id: str | None = None
    user_email: str | None = None
    original_data: dict[str, Any]
    contract_version: str
    qualifying_quarters: list[str]
    quarter_analysis: list[QuarterAnalysisResult]
    report_generated: bool
    report_url: str | None = None
    forwarded: bool
    forwarding_message: str | None = None
    files: list[StoredFileInfo]


class WebhookReceipt(CamelModel):
    """Acknowledgement sent back to the webhook caller."""

    submission_id: str
    report_generated: bool
    forwarded: bool
    forwarding_details: ForwardingResult
    qualifying_quarters: list[str]
    file_count: int


class FileDownload(BaseModel):
    """Bytes plus the headers needed to serve them."""

    filename: str
    content_type: str
    content: bytes
