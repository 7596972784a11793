"""Excel report for a submission: form summary sheet plus revenue analysis sheet."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ertc_webhook.schemas.qualification import QualificationSummary

logger = logging.getLogger("ertc.report")

SUMMARY_SHEET = "Form Submission Summary"
ANALYSIS_SHEET = "Revenue Analysis"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CURRENCY_FORMAT = "$#,##0.00"

_thin = Side(style="thin", color="000000")
HEADER_FONT = Font(bold=True, size=12, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_BORDER = Border(top=_thin, left=_thin, bottom=_thin, right=_thin)
SECTION_FONT = Font(bold=True, size=14)
SECTION_FILL = PatternFill(start_color="DEEBF7", end_color="DEEBF7", fill_type="solid")
QUALIFIES_FILL = PatternFill(start_color="92D050", end_color="92D050", fill_type="solid")

# Rows 1-6 hold the header, title and description; quarter rows start at 7.
FIRST_QUARTER_ROW = 7


def report_filename(submission_id: str) -> str:
    return f"report_{submission_id}.xlsx"


# ---------------------------------------------------------------------------
# Pure row builders
# ---------------------------------------------------------------------------


def analysis_headers(baseline_year: int, comparison_year: int) -> list[str]:
    return [
        "Quarter",
        f"{baseline_year} Revenue",
        f"{comparison_year} Revenue",
        "Revenue Change",
        "Percent Decrease",
        "Qualifies (>=50% Decrease)",
    ]


def analysis_rows(summary: QualificationSummary) -> list[list[Any]]:
    """One spreadsheet row per quarter, in result order."""
    return [
        [
            r.quarter,
            r.baseline_revenue,
            r.comparison_revenue,
            r.change,
            r.percent_label,
            "Yes" if r.qualifies else "No",
        ]
        for r in summary.results
    ]


def summary_line(summary: QualificationSummary) -> str:
    if summary.qualifying_quarters:
        quarters = ", ".join(summary.qualifying_quarters)
        return f"Client qualifies based on revenue reduction for: {quarters}"
    return "Client does not qualify based on revenue reduction alone"


def display_value(value: Any) -> str:
    """Render a JSON scalar the way it was submitted."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def object_rows(obj: Any, prefix: str = "") -> list[tuple[str, str]]:
    """Flatten a nested form section into (field, value) rows.

    Nested objects become ``parent - child`` fields, arrays of objects are
    expanded item by item as ``field #n``.
    """
    if not isinstance(obj, Mapping):
        return []
    rows: list[tuple[str, str]] = []
    for key, value in obj.items():
        field = f"{prefix} - {key}" if prefix else str(key)
        if isinstance(value, Mapping):
            rows.extend(object_rows(value, field))
        elif isinstance(value, list):
            if not value:
                rows.append((field, "None"))
            elif isinstance(value[0], Mapping):
                rows.append((field, f"{len(value)} items"))
                for index, item in enumerate(value, start=1):
                    rows.extend(object_rows(item, f"{field} #{index}"))
            else:
                rows.append((field, ", ".join(display_value(v) for v in value)))
        else:
            rows.append((field, display_value(value) or "N/A"))
    return rows


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, Mapping) else None


def ownership_rows(owners: Any) -> list[tuple[str, str]]:
    if not isinstance(owners, list) or not owners:
        return [("Ownership Structure", "None provided")]
    rows: list[tuple[str, str]] = []
    for index, owner in enumerate(owners, start=1):
        rows.append((f"Owner #{index} Name", display_value(_get(owner, "owner_name"))))
        rows.append(
            (f"Owner #{index} Percentage", f"{display_value(_get(owner, 'ownership_percentage'))}%")
        )
    return rows


def relatives_rows(relatives: Any) -> list[tuple[str, str]]:
    if not isinstance(relatives, Mapping):
        return []
    answer = relatives.get("has_relatives")
    rows = [("Has Relatives Working in Business", display_value(answer))]
    relative_list = relatives.get("relative_rows")
    if answer == "yes" and isinstance(relative_list, list):
        for index, relative in enumerate(relative_list, start=1):
            rows.append((f"Relative #{index} Name", display_value(_get(relative, "relative_name"))))
            rows.append(
                (f"Relative #{index} Relationship", display_value(_get(relative, "relationship")))
            )
    return rows


def uploaded_file_rows(uploaded: Any) -> list[tuple[str, str]]:
    if not isinstance(uploaded, Mapping) or not uploaded:
        return [("Uploaded Files", "None")]
    rows: list[tuple[str, str]] = []
    for category, files in uploaded.items():
        if not isinstance(files, list) or not files:
            continue
        rows.append((str(category), f"{len(files)} file(s) uploaded"))
        for index, item in enumerate(files, start=1):
            rows.append((f"{category} #{index}", display_value(_get(item, "name"))))
    return rows


# ---------------------------------------------------------------------------
# Workbook assembly
# ---------------------------------------------------------------------------


def _style_header(ws: Worksheet, widths: list[int]) -> None:
    for col, width in enumerate(widths, start=1):
        cell = ws.cell(row=1, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER
        cell.alignment = Alignment(horizontal="left")
        ws.column_dimensions[get_column_letter(col)].width = width


def _add_section(ws: Worksheet, title: str, rows: list[tuple[str, str]]) -> None:
    ws.append([title, ""])
    for cell in ws[ws.max_row]:
        cell.font = SECTION_FONT
        cell.fill = SECTION_FILL
    ws.append(["", ""])
    for row in rows:
        ws.append(list(row))
    ws.append(["", ""])


def _build_summary_sheet(
    ws: Worksheet,
    submission_id: str,
    received_at: datetime,
    form: Mapping[str, Any],
) -> None:
    ws.title = SUMMARY_SHEET
    ws.append(["Field", "Value"])
    _style_header(ws, [40, 60])

    ws.append(["Submission ID", submission_id])
    ws.append(["Submission Date", received_at.isoformat()])
    ws.append(["", ""])

    email = form.get("userEmail")
    _add_section(ws, "Basic Information", [("Email", display_value(email))] if email else [])
    _add_section(ws, "Qualifying Questions", object_rows(form.get("qualifyingQuestions")))
    _add_section(ws, "Business Challenges", object_rows(form.get("businessChallenges")))
    _add_section(ws, "Requested Information", object_rows(form.get("requestedInfo")))
    _add_section(ws, "Ownership Structure", ownership_rows(form.get("ownershipStructure")))
    _add_section(ws, "Relatives", relatives_rows(form.get("relatives")))
    _add_section(ws, "Uploaded Files", uploaded_file_rows(form.get("uploadedFiles")))


def _build_analysis_sheet(
    ws: Worksheet,
    summary: QualificationSummary,
    baseline_year: int,
    comparison_year: int,
) -> None:
    ws.append(analysis_headers(baseline_year, comparison_year))
    _style_header(ws, [15, 20, 20, 20, 20, 25])

    ws.append(["Revenue Analysis for Qualification"])
    ws.cell(row=2, column=1).font = Font(bold=True, size=16)
    ws.row_dimensions[2].height = 30
    ws.append(
        [
            f"Comparing {baseline_year} vs {comparison_year} quarterly revenue "
            "to determine qualification based on revenue reduction"
        ]
    )
    ws.append([f"Formula: ({baseline_year} Revenue - {comparison_year} Revenue) / {baseline_year} Revenue"])
    ws.append(["A quarter qualifies if the reduction is 50% or more"])
    ws.append([])

    for offset, row in enumerate(analysis_rows(summary)):
        row_idx = FIRST_QUARTER_ROW + offset
        for col, value in enumerate(row, start=1):
            ws.cell(row=row_idx, column=col, value=value)
        for col in (2, 3, 4):
            ws.cell(row=row_idx, column=col).number_format = CURRENCY_FORMAT
        if row[5] == "Yes":
            ws.cell(row=row_idx, column=6).fill = QUALIFIES_FILL

    ws.append([])
    ws.append(["Summary:"])
    ws.append([summary_line(summary)])
    cell = ws.cell(row=ws.max_row, column=1)
    cell.font = Font(bold=True)
    if summary.qualifying_quarters:
        cell.fill = QUALIFIES_FILL


def build_workbook(
    submission_id: str,
    received_at: datetime,
    form: Mapping[str, Any],
    summary: QualificationSummary,
    *,
    baseline_year: int = 2019,
    comparison_year: int = 2021,
    creator: str = "ERTC Webhook Receiver",
) -> Workbook:
    wb = Workbook()
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    wb.properties.creator = creator
    wb.properties.lastModifiedBy = creator
    wb.properties.created = now
    wb.properties.modified = now

    _build_summary_sheet(wb.active, submission_id, received_at, form)
    _build_analysis_sheet(wb.create_sheet(ANALYSIS_SHEET), summary, baseline_year, comparison_year)
    return wb


def render_report(
    submission_id: str,
    received_at: datetime,
    form: Mapping[str, Any],
    summary: QualificationSummary,
    *,
    baseline_year: int = 2019,
    comparison_year: int = 2021,
    creator: str = "ERTC Webhook Receiver",
) -> bytes:
    """Serialize the submission report to xlsx bytes."""
    logger.info("Generating Excel report for submission %s", submission_id)
    wb = build_workbook(
        submission_id,
        received_at,
        form,
        summary,
        baseline_year=baseline_year,
        comparison_year=comparison_year,
        creator=creator,
    )
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
