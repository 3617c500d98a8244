"""Render a ReportResult as a spreadsheet or PDF attachment."""

from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from typing import Any

from fpdf import FPDF
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy.orm import Session

from ..errors import ValidationError
from .audit import record_event
from .auth import AuthContext
from .reports import ReportFilters, ReportResult, generate_report

logger = logging.getLogger(__name__)

EXCEL = "EXCEL"
PDF = "PDF"
EXPORT_FORMATS = (EXCEL, PDF)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"

TITLE = "Document Management System - Report"


def _heading(column: str) -> str:
    return column.replace("_", " ").title()


def _filter_lines(result: ReportResult) -> list[str]:
    return [f"{_heading(key)}: {value}" for key, value in result.filters.items() if value not in (None, "", "ALL")]


def _cell_text(value: Any) -> str:
    return "" if value is None else str(value)


def render_excel(result: ReportResult, *, generated_at: datetime) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Report"

    header_font = Font(name="Arial", bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill("solid", fgColor="0066CC")
    header_align = Alignment(horizontal="center", vertical="center", wrap_text=True)

    ws.append([TITLE])
    ws["A1"].font = Font(name="Arial", bold=True, size=14)
    ws.append([f"Report Type: {result.report_type.replace('_', ' ')}"])
    ws.append([f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}"])
    ws.append([])

    filters = _filter_lines(result)
    if filters:
        ws.append(["Filters:"])
        for line in filters:
            ws.append([line])
        ws.append([])

    header_row = ws.max_row + 1
    for col_idx, column in enumerate(result.columns, 1):
        cell = ws.cell(row=header_row, column=col_idx, value=_heading(column))
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_align

    for row in result.data:
        ws.append([row.get(column) for column in result.columns])

    if result.summary:
        ws.append([])
        ws.append(["Summary"])
        ws.cell(row=ws.max_row, column=1).font = Font(name="Arial", bold=True)
        for key, value in result.summary.items():
            ws.append([_heading(key), value])

    for col_idx, column in enumerate(result.columns, 1):
        values = [_heading(column)] + [_cell_text(row.get(column)) for row in result.data]
        width = min(max(len(value) for value in values) + 2, 50)
        ws.column_dimensions[ws.cell(row=header_row, column=col_idx).column_letter].width = width

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def _latin1(text: str) -> str:
    # core PDF fonts only cover latin-1
    return text.encode("latin-1", "replace").decode("latin-1")


def render_pdf(result: ReportResult, *, generated_at: datetime) -> bytes:
    pdf = FPDF(format="A4")
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 18)
    pdf.set_text_color(0, 102, 204)
    pdf.cell(0, 10, "Document Management System", align="C")
    pdf.ln(10)
    pdf.set_font("Helvetica", "B", 14)
    pdf.set_text_color(51, 51, 51)
    pdf.cell(0, 8, _latin1(f"Report: {result.report_type.replace('_', ' ')}"), align="C")
    pdf.ln(8)
    pdf.set_font("Helvetica", "", 9)
    pdf.set_text_color(102, 102, 102)
    pdf.cell(0, 6, f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}", align="C")
    pdf.ln(10)

    filters = _filter_lines(result)
    if filters:
        pdf.set_font("Helvetica", "B", 11)
        pdf.set_text_color(0, 102, 204)
        pdf.cell(0, 7, "Filters Applied:")
        pdf.ln(7)
        pdf.set_font("Helvetica", "", 9)
        pdf.set_text_color(51, 51, 51)
        for line in filters:
            pdf.cell(0, 5, _latin1(line))
            pdf.ln(5)
        pdf.ln(4)

    column_width = pdf.epw / max(len(result.columns), 1)
    pdf.set_font("Helvetica", "B", 9)
    pdf.set_fill_color(0, 102, 204)
    pdf.set_text_color(255, 255, 255)
    for column in result.columns:
        pdf.cell(column_width, 7, _heading(column), border=1, fill=True)
    pdf.ln(7)

    pdf.set_font("Helvetica", "", 9)
    pdf.set_text_color(51, 51, 51)
    if not result.data:
        pdf.cell(0, 7, "No data for the selected filters.")
        pdf.ln(7)
    for row in result.data:
        for column in result.columns:
            text = _latin1(_cell_text(row.get(column)))
            # truncate to keep rows on a single line
            while text and pdf.get_string_width(text) > column_width - 2:
                text = text[:-1]
            pdf.cell(column_width, 6, text, border=1)
        pdf.ln(6)

    if result.summary:
        pdf.ln(4)
        pdf.set_font("Helvetica", "B", 11)
        pdf.set_text_color(0, 102, 204)
        pdf.cell(0, 7, "Summary")
        pdf.ln(7)
        pdf.set_font("Helvetica", "", 9)
        pdf.set_text_color(51, 51, 51)
        for key, value in result.summary.items():
            pdf.cell(0, 5, _latin1(f"{_heading(key)}: {value}"))
            pdf.ln(5)

    return bytes(pdf.output())


def render_report(result: ReportResult, export_format: str, *, generated_at: datetime | None = None) -> tuple[bytes, str, str]:
    """Return (payload, media type, file name)."""
    generated_at = generated_at or datetime.now(timezone.utc)
    stamp = generated_at.strftime("%Y%m%d%H%M%S")
    if export_format == EXCEL:
        return render_excel(result, generated_at=generated_at), XLSX_MEDIA_TYPE, f"report_{result.report_type}_{stamp}.xlsx"
    if export_format == PDF:
        return render_pdf(result, generated_at=generated_at), PDF_MEDIA_TYPE, f"report_{result.report_type}_{stamp}.pdf"
    raise ValidationError("Unknown export format")


def export_report(
    db: Session,
    context: AuthContext,
    report_type: str,
    filters: ReportFilters,
    export_format: str,
) -> tuple[bytes, str, str]:
    if export_format not in EXPORT_FORMATS:
        raise ValidationError("Unknown export format")
    result = generate_report(db, report_type, filters)

    record_event(
        db,
        action="EXPORT_REPORT",
        entity="REPORT",
        user_id=context.user_id,
        meta={"format": export_format, "report_type": report_type, "filters": result.filters},
    )

    logger.info("report_exported report_type=%s format=%s rows=%s", report_type, export_format, len(result.data))
    return render_report(result, export_format)
