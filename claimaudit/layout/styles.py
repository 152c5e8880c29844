from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm

Color = Tuple[int, int, int]

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 20 * mm
TOP_MARGIN = MARGIN
BOTTOM_MARGIN = MARGIN

PANEL_PADDING = 6 * mm
PANEL_RADIUS = 2 * mm
CELL_PADDING = 4.0
SECTION_GAP = 15 * mm

COLORS: Dict[str, Color] = {
    "header_blue": (44, 62, 80),
    "text_gray": (68, 68, 68),
    "muted": (100, 100, 100),
    "heading": (40, 40, 40),
    "body": (60, 60, 60),
    "panel_bg": (248, 249, 250),
    "border": (224, 224, 224),
    "disclaimer_bg": (255, 245, 245),
    "disclaimer": (197, 48, 48),
    "teal": (20, 184, 166),
    "white": (255, 255, 255),
    "summary_bg": (250, 250, 250),
    "summary_text": (80, 80, 80),
    "group_bg": (241, 245, 249),
    "group_text": (30, 64, 120),
    "alert": (220, 38, 38),
    "ok": (22, 163, 74),
}


@dataclass(frozen=True)
class TextStyle:
    font: str
    size: float
    color: Color
    leading: float


def _style(font: str, size: float, color: str, leading: Optional[float] = None) -> TextStyle:
    return TextStyle(font, size, COLORS[color], leading if leading is not None else round(size * 1.45, 2))


STYLES: Dict[str, TextStyle] = {
    "title": _style("Helvetica-Bold", 22, "header_blue", 28),
    "subtitle": _style("Helvetica", 10, "muted"),
    "page_heading": _style("Helvetica-Bold", 16, "heading", 22),
    "section": _style("Helvetica-Bold", 12, "header_blue"),
    "label": _style("Helvetica-Bold", 11, "header_blue", 17),
    "value": _style("Helvetica", 11, "text_gray", 17),
    "body": _style("Helvetica", 10, "text_gray"),
    "body_bold": _style("Helvetica-Bold", 10, "text_gray"),
    "bullet": _style("Helvetica-Bold", 10, "header_blue"),
    "disclaimer_title": _style("Helvetica-Bold", 11, "disclaimer", 16),
    "disclaimer_bold": _style("Helvetica-Bold", 10, "disclaimer", 14),
    "disclaimer": _style("Helvetica", 10, "disclaimer", 14),
    "alert": _style("Helvetica-Bold", 10, "alert"),
    "ok": _style("Helvetica-Bold", 10, "ok"),
    "footer": _style("Helvetica", 8, "muted"),
}

TABLE_STYLES: Dict[str, Tuple[TextStyle, Optional[Color]]] = {
    "header": (_style("Helvetica-Bold", 9, "white", 12), COLORS["teal"]),
    "group": (_style("Helvetica-Bold", 9, "group_text", 12), COLORS["group_bg"]),
    "item": (_style("Helvetica", 9, "text_gray", 12), None),
    "summary": (_style("Helvetica-Bold", 9, "summary_text", 12), COLORS["summary_bg"]),
    "total": (_style("Helvetica-Bold", 10, "white", 13), COLORS["teal"]),
}
GRID_COLOR: Color = COLORS["border"]
GRID_WIDTH = 0.5

RULE_HEAVY = (COLORS["header_blue"], 2.2)
RULE_LIGHT = (COLORS["border"], 0.8)

REPORT_TITLES = {
    "supplement_diff": "Supplement Analysis Report",
    "negotiation_audit": "Subrogation / Arbitration Audit Report",
    "valuation_audit": "Valuation Comparison Report",
}

REPORT_FILE_NAMES = {
    "supplement_diff": "supplement-analysis-report",
    "negotiation_audit": "negotiation-audit-report",
    "valuation_audit": "valuation-audit-report",
}

DISCLAIMER_TITLE = "IMPORTANT DISCLAIMER:"
SUPPLEMENT_DISCLAIMER = (
    "ALL ESTIMATE AND SUPPLEMENT PAYMENTS WILL BE ISSUED TO THE VEHICLE OWNER.",
    "The repair contract exists solely between the vehicle owner and the repair facility. "
    "The insurance company is not involved in this agreement and does not assume responsibility "
    "for repair quality, timelines, or costs. All repair-related disputes must be handled directly "
    "with the repair facility.",
    "Please note: Any misrepresentation of repairs, labor, parts, or supplements, including "
    "unnecessary operations or inflated charges, may constitute insurance fraud and will result "
    "in further review or investigation.",
)
NEGOTIATION_DISCLAIMER = (
    "THIS AUDIT IS AN AUTOMATED COMPARISON AND IS NOT A SETTLEMENT OFFER.",
    "Amounts, liability percentages and rental terms were extracted automatically from the demand "
    "package and the counter offer. Verify every figure against the source documents before "
    "responding, negotiating or filing for arbitration.",
)
VALUATION_DISCLAIMER = (
    "THIS COMPARISON DOES NOT CONSTITUTE A VEHICLE APPRAISAL.",
    "Values, mileage and equipment were extracted automatically from the CCC valuation and the "
    "CarFax history report. Discrepancies listed here should be confirmed against the source "
    "reports before any valuation decision is made.",
)
WARRANTY_TEXT = (
    "Based on the body shop you selected, the following parts should be covered under their "
    "warranty since they were newly installed or replaced. Please note that the insurer is not "
    "involved in, nor responsible for, any repairs performed by the body shop."
)
