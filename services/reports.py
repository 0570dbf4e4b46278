"""PDF and spreadsheet exports of stored measurements."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from datetime import timezone
from typing import Dict, Iterable, Sequence

from fpdf import FPDF
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from app.schemas import ComplianceStatus, Measurement
from models.records import PARAMETER_FIELDS, PARAMETER_LABELS
from services.compliance import failing_parameters

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"

STATUS_LABELS = {
    ComplianceStatus.compliant: "Compliant",
    ComplianceStatus.non_compliant: "Non-compliant",
}

_SHEET_HEADER = [
    "Date",
    "Institution",
    "Sector",
    "Temp (°C)",
    "Humidity (%)",
    "CO2 Int (ppm)",
    "CO2 Ext (ppm)",
    "Status",
]
_NON_COMPLIANT_FILL = PatternFill(start_color="FFF4CCCC", end_color="FFF4CCCC", fill_type="solid")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class ReportNames:
    """Display names for the identifiers referenced by measurements."""

    institutions: Dict[str, str] = field(default_factory=dict)
    sectors: Dict[str, str] = field(default_factory=dict)
    users: Dict[str, str] = field(default_factory=dict)

    def institution(self, measurement: Measurement) -> str:
        return self.institutions.get(measurement.institution_id, measurement.institution_id)

    def sector(self, measurement: Measurement) -> str:
        return self.sectors.get(measurement.sector_id, measurement.sector_id)

    def user(self, measurement: Measurement) -> str:
        return self.users.get(measurement.user_id, measurement.user_id)


def build_measurements_workbook(items: Iterable[Measurement], names: ReportNames) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Measurements"
    ws.append(_SHEET_HEADER)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for item in items:
        ws.append(
            [
                item.date.astimezone(timezone.utc).replace(tzinfo=None),
                names.institution(item),
                names.sector(item),
                item.temperature,
                item.humidity,
                item.co2_internal,
                item.co2_external,
                STATUS_LABELS[item.status],
            ]
        )
        row = ws.max_row
        ws.cell(row=row, column=1).number_format = "yyyy-mm-dd hh:mm"
        if item.status is ComplianceStatus.non_compliant:
            ws.cell(row=row, column=len(_SHEET_HEADER)).fill = _NON_COMPLIANT_FILL

    for column, width in zip("ABCDEFGH", (18, 28, 24, 11, 13, 14, 14, 15)):
        ws.column_dimensions[column].width = width
    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def build_measurements_pdf(items: Sequence[Measurement], names: ReportNames) -> bytes:
    pdf = _new_document()
    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 10, "Measurements Report", align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)
    pdf.set_font("Helvetica", size=10)
    if not items:
        pdf.cell(0, 6, "No measurements match the selected filters.", new_x="LMARGIN", new_y="NEXT")
    for item in items:
        line = (
            f"{item.date:%d/%m/%Y} | {names.institution(item)} > {names.sector(item)} | "
            f"Temp: {item.temperature} °C | Humidity: {item.humidity}% | "
            f"Status: {STATUS_LABELS[item.status]}"
        )
        pdf.multi_cell(0, 6, _latin1(line), new_x="LMARGIN", new_y="NEXT")
    return bytes(pdf.output())


def build_measurement_pdf(measurement: Measurement, names: ReportNames) -> bytes:
    """Single-measurement report; out-of-range parameters are marked."""

    failing = set(failing_parameters(measurement))
    if "co2_internal" in failing:
        failing.add("co2_external")

    pdf = _new_document()
    pdf.set_font("Helvetica", "B", 18)
    pdf.cell(0, 12, "Measurement Report", align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)
    pdf.set_font("Helvetica", size=12)
    header = [
        f"Date: {measurement.date:%d/%m/%Y | %H:%M}",
        f"Institution: {names.institution(measurement)}",
        f"Sector: {names.sector(measurement)}",
        f"Recorded by: {names.user(measurement)}",
        f"Status: {STATUS_LABELS[measurement.status]}",
    ]
    for line in header:
        pdf.cell(0, 7, _latin1(line), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    for name in PARAMETER_FIELDS:
        flagged = name in failing
        if flagged:
            pdf.set_text_color(180, 0, 0)
        else:
            pdf.set_text_color(0, 0, 0)
        suffix = "  (out of range)" if flagged else ""
        text = f"{PARAMETER_LABELS[name]}: {getattr(measurement, name)}{suffix}"
        pdf.cell(0, 7, _latin1(text), new_x="LMARGIN", new_y="NEXT")
    pdf.set_text_color(0, 0, 0)
    return bytes(pdf.output())


def measurement_report_filename(measurement: Measurement, names: ReportNames) -> str:
    """Header-safe file name; runs of other characters collapse to ``_``."""
    stem = (
        f"measurement_{measurement.date:%Y-%m-%d}_"
        f"{names.institution(measurement)}_{names.sector(measurement)}.pdf"
    )
    return _UNSAFE_FILENAME_CHARS.sub("_", stem)


def _new_document() -> FPDF:
    pdf = FPDF(orientation="P", unit="mm", format="A4")
    pdf.set_margins(14, 14, 14)
    pdf.set_auto_page_break(auto=True, margin=14)
    pdf.add_page()
    return pdf


def _latin1(text: str) -> str:
    # Core PDF fonts only cover Latin-1.
    return text.encode("latin-1", "replace").decode("latin-1")
