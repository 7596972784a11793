"""Pydantic schemas."""

from ertc_webhook.schemas.common import ApiResponse
from ertc_webhook.schemas.qualification import (
    QualificationSummary,
    QuarterAnalysisResult,
    QuarterRevenuePair,
)
from ertc_webhook.schemas.submission import (
    ExtractedSubmission,
    FileDownload,
    ForwardingResult,
    IncomingFile,
    StoredFileInfo,
    SubmissionBrief,
    SubmissionDetail,
    WebhookReceipt,
)

__all__ = [
    "ApiResponse",
    "QualificationSummary",
    "QuarterAnalysisResult",
    "QuarterRevenuePair",
    "ExtractedSubmission",
    "FileDownload",
    "ForwardingResult",
    "IncomingFile",
    "StoredFileInfo",
    "SubmissionBrief",
    "SubmissionDetail",
    "WebhookReceipt",
]
