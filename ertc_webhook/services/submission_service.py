"""Submission persistence: records, attachments and the stored report."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, undefer

from ertc_webhook.models.stored_file import KIND_REPORT, KIND_UPLOAD, StoredFile
from ertc_webhook.models.submission import Submission
from ertc_webhook.schemas.qualification import QualificationSummary
from ertc_webhook.schemas.submission import (
    ExtractedSubmission,
    FileDownload,
    ForwardingResult,
    IncomingFile,
    StoredFileInfo,
    SubmissionBrief,
    SubmissionDetail,
)
from ertc_webhook.services.qualification import summary_from_records
from ertc_webhook.services.report_service import XLSX_CONTENT_TYPE, report_filename


async def create_submission(
    session: AsyncSession,
    *,
    submission_id: str,
    received_at: datetime,
    payload: dict[str, Any],
    extracted: ExtractedSubmission,
    summary: QualificationSummary,
    files: list[IncomingFile],
    report: bytes | None = None,
) -> Submission:
    """Insert a submission with its uploads and (optional) report, then commit."""
    stored = [
        StoredFile(
            kind=KIND_UPLOAD,
            field_name=f.field_name,
            filename=f.filename,
            content_type=f.content_type,
            size=f.size,
            content=f.content,
            position=position,
        )
        for position, f in enumerate(files)
    ]
    if report is not None:
        stored.append(
            StoredFile(
                kind=KIND_REPORT,
                filename=report_filename(submission_id),
                content_type=XLSX_CONTENT_TYPE,
                size=len(report),
                content=report,
                position=len(stored),
            )
        )

    submission = Submission(
        submission_id=submission_id,
        received_at=received_at,
        user_id=extracted.user_id,
        user_email=extracted.user_email,
        original_data=payload,
        contract_version=extracted.contract_version,
        qualifying_quarters=list(summary.qualifying_quarters),
        quarter_analysis=[r.model_dump(by_alias=True) for r in summary.results],
        report_generated=report is not None,
        files=stored,
    )
    session.add(submission)
    await session.commit()
    return submission


async def record_forwarding(
    session: AsyncSession,
    submission: Submission,
    result: ForwardingResult,
) -> None:
    """Persist the outcome of the outbound forward."""
    submission.forwarded = result.success
    submission.forwarding_message = (result.error or result.message)[:500]
    session.add(submission)
    await session.commit()


async def get_submission(session: AsyncSession, submission_id: str) -> Submission | None:
    stmt = (
        select(Submission)
        .options(selectinload(Submission.files))
        .where(Submission.submission_id == submission_id)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_submissions(
    session: AsyncSession,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[SubmissionBrief], int]:
    """Return one page of submissions (newest first) and the total count."""
    limit = max(1, min(limit, 100))  # hard cap
    offset = max(0, offset)

    total = (await session.execute(select(func.count()).select_from(Submission))).scalar_one()

    stmt = (
        select(Submission)
        .options(selectinload(Submission.files))
        .order_by(Submission.received_at.desc(), Submission.submission_id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    rows = list(result.scalars().all())

    briefs = [
        SubmissionBrief(
            submission_id=r.submission_id,
            received_at=r.received_at,
            user_email=r.user_email,
            qualifying_quarters=list(r.qualifying_quarters or []),
            file_count=sum(1 for f in r.files if f.kind == KIND_UPLOAD),
            report_generated=r.report_generated,
            forwarded=r.forwarded,
        )
        for r in rows
    ]
    return briefs, total


def file_url(submission_id: str, file_id: uuid.UUID) -> str:
    return f"/submissions/{submission_id}/files/{file_id}"


def to_detail(submission: Submission) -> SubmissionDetail:
    """Convert an ORM row (files already loaded) to the API schema."""
    summary = summary_from_records(submission.quarter_analysis or [])
    files = [
        StoredFileInfo(
            id=f.id,
            kind=f.kind,
            field_name=f.field_name,
            filename=f.filename,
            content_type=f.content_type,
            size=f.size,
            download_url=file_url(submission.submission_id, f.id),
        )
        for f in submission.files
    ]
    return SubmissionDetail(
        submission_id=submission.submission_id,
        received_at=submission.received_at,
        user_id=submission.user_id,
        user_email=submission.user_email,
        original_data=submission.original_data,
        contract_version=submission.contract_version,
        qualifying_quarters=list(submission.qualifying_quarters or []),
        quarter_analysis=list(summary.results),
        report_generated=submission.report_generated,
        report_url=(
            f"/submissions/{submission.submission_id}/report"
            if submission.report_generated
            else None
        ),
        forwarded=submission.forwarded,
        forwarding_message=submission.forwarding_message,
        files=files,
    )


async def _load_file(session: AsyncSession, *criteria) -> FileDownload | None:
    stmt = (
        select(StoredFile)
        .join(Submission, StoredFile.submission_pk == Submission.id)
        .options(undefer(StoredFile.content))
        .where(*criteria)
    )
    result = await session.execute(stmt)
    row = result.scalars().first()
    if row is None:
        return None
    return FileDownload(filename=row.filename, content_type=row.content_type, content=row.content)


async def get_stored_file(
    session: AsyncSession,
    submission_id: str,
    file_id: uuid.UUID,
) -> FileDownload | None:
    """Fetch one attachment's bytes, scoped to its submission."""
    return await _load_file(
        session,
        Submission.submission_id == submission_id,
        StoredFile.id == file_id,
    )


async def get_report_file(session: AsyncSession, submission_id: str) -> FileDownload | None:
    return await _load_file(
        session,
        Submission.submission_id == submission_id,
        StoredFile.kind == KIND_REPORT,
    )
