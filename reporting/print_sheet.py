"""
Property Valuation Print Sheet

Generates the printable valuation report for an approved property file.
Uses ReportLab for deterministic PDF generation.

Output Structure:
1. Header (file code, bank, status)
2. Owner & Property Identification
3. Site Validation
4. Measurements
5. Construction
6. Valuation
7. Verification
8. Signature Block

Only files that are ready to print or already completed have a sheet.
"""

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import (
    HRFlowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from core.exceptions import InvalidTransition
from core.identity.policy import Action, require_permission, visible_files_clause
from core.schema import Actor, FileStatus
from core.store.database import Database
from core.store.repository import FileRepository
from utils.formatting import format_area, format_currency

PRINTABLE_STATES = (FileStatus.READY_TO_PRINT, FileStatus.COMPLETED)


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class PrintSheetSuccess:
    """Returned when a sheet is written to disk."""
    path: Path
    file_code: str


# =============================================================================
# Color Palette - Print-friendly
# =============================================================================

class Palette:
    """Charcoal text on white with a muted accent for headings."""
    BLACK = colors.Color(0.1, 0.1, 0.1)
    CHARCOAL = colors.Color(0.2, 0.2, 0.22)
    GRAY = colors.Color(0.5, 0.5, 0.5)
    LIGHT_GRAY = colors.Color(0.85, 0.85, 0.85)
    PALE_GRAY = colors.Color(0.95, 0.95, 0.95)
    WHITE = colors.white

    ACCENT = colors.Color(0.15, 0.25, 0.4)


# =============================================================================
# Style Configuration
# =============================================================================

def get_sheet_styles():
    """Paragraph styles for the print sheet."""
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name='SheetTitle',
        parent=styles['Normal'],
        fontSize=16,
        leading=20,
        textColor=Palette.BLACK,
        fontName='Helvetica-Bold',
        alignment=TA_LEFT,
        spaceAfter=2*mm,
    ))
    styles.add(ParagraphStyle(
        name='SheetMeta',
        parent=styles['Normal'],
        fontSize=9,
        leading=12,
        textColor=Palette.GRAY,
        alignment=TA_LEFT,
    ))
    styles.add(ParagraphStyle(
        name='SectionHeading',
        parent=styles['Normal'],
        fontSize=11,
        leading=14,
        textColor=Palette.ACCENT,
        fontName='Helvetica-Bold',
        spaceBefore=5*mm,
        spaceAfter=2*mm,
    ))
    styles.add(ParagraphStyle(
        name='Cell',
        parent=styles['Normal'],
        fontSize=8.5,
        leading=11,
        textColor=Palette.CHARCOAL,
    ))
    styles.add(ParagraphStyle(
        name='Note',
        parent=styles['Normal'],
        fontSize=9,
        leading=12,
        textColor=Palette.CHARCOAL,
    ))
    styles.add(ParagraphStyle(
        name='Signature',
        parent=styles['Normal'],
        fontSize=8.5,
        leading=11,
        textColor=Palette.GRAY,
        alignment=TA_RIGHT,
    ))
    return styles


def _text(value: Any) -> str:
    if value is None or value == "":
        return "-"
    return escape(str(value))


# =============================================================================
# Generator
# =============================================================================

class PrintSheetGenerator:
    """
    Renders a property file as a one-file valuation report.

    Usage:
        generator = PrintSheetGenerator()
        pdf_bytes = generator.generate_to_buffer(sheet_data)

    The same input always produces the same PDF.
    """

    PAGE_WIDTH, PAGE_HEIGHT = A4
    MARGIN_LEFT = 18*mm
    MARGIN_RIGHT = 18*mm
    MARGIN_TOP = 18*mm
    MARGIN_BOTTOM = 22*mm

    LABEL_WIDTH = 50*mm

    def __init__(self):
        self.styles = get_sheet_styles()

    def generate_to_buffer(self, sheet: dict) -> bytes:
        """Generate the PDF and return it as bytes (for streaming)."""
        buffer = BytesIO()
        self._build_document(sheet, buffer)
        return buffer.getvalue()

    def generate_report(self, sheet: dict, output_dir: Path) -> PrintSheetSuccess:
        """Generate the PDF into ``output_dir`` as ``<file code>.pdf``."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / f"{sheet['file_code']}.pdf"
        output_path.write_bytes(self.generate_to_buffer(sheet))
        return PrintSheetSuccess(path=output_path, file_code=sheet["file_code"])

    def _build_document(self, sheet: dict, buffer: BytesIO):
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=self.MARGIN_LEFT,
            rightMargin=self.MARGIN_RIGHT,
            topMargin=self.MARGIN_TOP,
            bottomMargin=self.MARGIN_BOTTOM,
            title=f"Property Valuation Report - {sheet['file_code']}",
            author="PropertyFlow",
            subject="Property Valuation Report",
            invariant=1,
        )
        self._file_code = sheet["file_code"]

        story = []
        story.extend(self._build_header(sheet))
        story.extend(self._build_identification(sheet))
        story.extend(self._build_validation(sheet))
        story.extend(self._build_measurements(sheet))
        story.extend(self._build_construction(sheet))
        story.extend(self._build_valuation(sheet))
        story.extend(self._build_verification(sheet))
        story.extend(self._build_signatures(sheet))

        doc.build(story, onFirstPage=self._draw_page_frame, onLaterPages=self._draw_page_frame)

    def _draw_page_frame(self, canvas_obj: canvas.Canvas, doc):
        """Footer: file code left, page number right."""
        canvas_obj.saveState()
        canvas_obj.setFont('Helvetica', 7)
        canvas_obj.setFillColor(Palette.GRAY)
        canvas_obj.drawString(
            self.MARGIN_LEFT,
            self.MARGIN_BOTTOM - 10*mm,
            f"PROPERTYFLOW  |  {self._file_code}",
        )
        canvas_obj.drawRightString(
            self.PAGE_WIDTH - self.MARGIN_RIGHT,
            self.MARGIN_BOTTOM - 10*mm,
            f"{doc.page}",
        )
        canvas_obj.restoreState()

    def _key_value_table(self, rows: list[tuple[str, Any]]) -> Table:
        data = [
            [Paragraph(f"<b>{escape(label)}</b>", self.styles['Cell']),
             Paragraph(_text(value), self.styles['Cell'])]
            for label, value in rows
        ]
        content_width = self.PAGE_WIDTH - self.MARGIN_LEFT - self.MARGIN_RIGHT
        table = Table(data, colWidths=[self.LABEL_WIDTH, content_width - self.LABEL_WIDTH])
        table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('GRID', (0, 0), (-1, -1), 0.5, Palette.LIGHT_GRAY),
            ('BACKGROUND', (0, 0), (0, -1), Palette.PALE_GRAY),
            ('TOPPADDING', (0, 0), (-1, -1), 1.8*mm),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 1.8*mm),
            ('LEFTPADDING', (0, 0), (-1, -1), 2*mm),
            ('RIGHTPADDING', (0, 0), (-1, -1), 2*mm),
        ]))
        return table

    def _section(self, title: str, rows: list[tuple[str, Any]]) -> list:
        return [
            Paragraph(title, self.styles['SectionHeading']),
            self._key_value_table(rows),
        ]

    # =========================================================================
    # Sections
    # =========================================================================

    def _build_header(self, sheet: dict) -> list:
        bank = sheet.get("bank") or {}
        bank_line = f"{bank.get('name')} - {bank.get('branch')}" if bank else "-"
        return [
            Paragraph("Property Valuation Report", self.styles['SheetTitle']),
            Paragraph(
                f"File {sheet['file_code']}  |  Bank: {escape(bank_line)}  |  "
                f"Status: {sheet['status']}",
                self.styles['SheetMeta'],
            ),
            Spacer(1, 3*mm),
            HRFlowable(width="100%", thickness=0.6, color=Palette.LIGHT_GRAY),
        ]

    def _build_identification(self, sheet: dict) -> list:
        location = sheet.get("location") or {}
        property_type = sheet.get("property_type") or {}
        location_line = ", ".join(
            v for v in (location.get("city"), location.get("district"), location.get("state")) if v
        )
        type_line = " / ".join(
            v for v in (property_type.get("category"), property_type.get("name")) if v
        )
        return self._section("Owner &amp; Property", [
            ("Owner", sheet.get("owner_name")),
            ("Owner Contact", sheet.get("owner_contact")),
            ("Property Address", sheet.get("property_address")),
            ("Village", sheet.get("village")),
            ("Location", location_line),
            ("Property Type", type_line),
        ])

    def _build_validation(self, sheet: dict) -> list:
        validation = sheet.get("validation_data") or {}
        if validation.get("gps_latitude") is not None and validation.get("gps_longitude") is not None:
            gps = f"{validation['gps_latitude']:.6f}, {validation['gps_longitude']:.6f}"
        else:
            gps = None
        return self._section("Site Validation", [
            ("Visit Date", validation.get("visit_date")),
            ("Visit Time", validation.get("visit_time")),
            ("GPS", gps),
            ("Classification", validation.get("property_type")),
            ("Condition", validation.get("property_condition")),
            ("Access Notes", validation.get("access_notes")),
            ("Weather", validation.get("weather_conditions")),
            ("Photos", len(validation.get("photos") or [])),
            ("Validated By", sheet.get("staff", {}).get("validator")),
        ])

    def _build_measurements(self, sheet: dict) -> list:
        data = sheet.get("property_data") or {}
        measurements = data.get("measurements") or {}
        return self._section("Measurements", [
            ("Length", measurements.get("length")),
            ("Width", measurements.get("width")),
            ("Area", format_area(measurements.get("area"))),
            ("Built-up Area", format_area(measurements.get("built_up_area"))),
            ("Carpet Area", format_area(measurements.get("carpet_area"))),
        ])

    def _build_construction(self, sheet: dict) -> list:
        data = sheet.get("property_data") or {}
        construction = data.get("construction") or {}
        rows = [
            ("Type", construction.get("type")),
            ("Material", construction.get("material")),
            ("Condition", construction.get("condition")),
            ("Year Built", construction.get("year_built")),
            ("Floors", construction.get("floors")),
        ]
        for key, value in sorted((data.get("custom_data") or {}).items()):
            rows.append((key.replace("_", " ").title(), value))
        return self._section("Construction", rows)

    def _build_valuation(self, sheet: dict) -> list:
        data = sheet.get("property_data") or {}
        valuation = data.get("valuation") or {}
        return self._section("Valuation", [
            ("Estimated Value", format_currency(valuation.get("estimated_value"))),
            ("Market Rate", format_currency(valuation.get("market_rate"))),
            ("Government Rate", format_currency(valuation.get("government_rate"))),
            ("Notes", valuation.get("notes")),
            ("Data Source", data.get("data_source")),
            ("Entered By", sheet.get("staff", {}).get("key_in_operator")),
        ])

    def _build_verification(self, sheet: dict) -> list:
        return self._section("Verification", [
            ("Verified By", sheet.get("staff", {}).get("verification_officer")),
            ("Verification Notes", sheet.get("verification_notes")),
            ("Printed At", sheet.get("printed_at")),
        ])

    def _build_signatures(self, sheet: dict) -> list:
        staff = sheet.get("staff", {})
        return [
            Spacer(1, 18*mm),
            Paragraph(
                f"Coordinator: {_text(staff.get('coordinator'))}"
                "&nbsp;&nbsp;&nbsp;&nbsp;______________________",
                self.styles['Signature'],
            ),
            Spacer(1, 8*mm),
            Paragraph(
                f"Verification Officer: {_text(staff.get('verification_officer'))}"
                "&nbsp;&nbsp;&nbsp;&nbsp;______________________",
                self.styles['Signature'],
            ),
        ]


# =============================================================================
# Loading
# =============================================================================

def load_sheet_data(database: Database, actor: Actor, file_id: int) -> dict:
    """
    Collect everything the sheet shows for a file the actor can see.

    Raises:
        NotFound: If the file is absent or outside the actor's visible set
        InvalidTransition: If the file is not ready to print or completed
    """
    require_permission(actor, Action.FILE_VIEW)
    with database.session_scope() as session:
        record = FileRepository.get_visible(session, file_id, visible_files_clause(actor))
        if record.status_enum not in PRINTABLE_STATES:
            raise InvalidTransition(
                f"File {record.file_code} is '{record.status}'; only ready-to-print "
                "or completed files can be printed",
                field="status",
            )
        sheet = record.to_dict()
        sheet["staff"] = {
            "coordinator": record.coordinator.full_name if record.coordinator else None,
            "validator": record.validator.full_name if record.validator else None,
            "key_in_operator": (
                record.key_in_operator.full_name if record.key_in_operator else None
            ),
            "verification_officer": (
                record.verification_officer.full_name if record.verification_officer else None
            ),
        }
    return sheet


def render_print_sheet(
    database: Database,
    actor: Actor,
    file_id: int,
    output_dir: Optional[Path] = None,
) -> tuple[str, bytes]:
    """
    Render the print sheet for a file.

    Returns:
        (filename, pdf bytes). When ``output_dir`` is given a copy is also
        written there.
    """
    sheet = load_sheet_data(database, actor, file_id)
    generator = PrintSheetGenerator()
    if output_dir is not None:
        result = generator.generate_report(sheet, output_dir)
        return result.path.name, result.path.read_bytes()
    return f"{sheet['file_code']}.pdf", generator.generate_to_buffer(sheet)
