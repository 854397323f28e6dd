"""
Reporting module for PropertyFlow.

Generates the printable valuation report for approved property files.

Usage:
    from reporting import render_print_sheet

    filename, pdf_bytes = render_print_sheet(database, actor, file_id)
"""

from .print_sheet import (
    PRINTABLE_STATES,
    PrintSheetGenerator,
    PrintSheetSuccess,
    load_sheet_data,
    render_print_sheet,
)

__all__ = [
    "PRINTABLE_STATES",
    "PrintSheetGenerator",
    "PrintSheetSuccess",
    "load_sheet_data",
    "render_print_sheet",
]
