from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from reportlab.lib.units import mm

from claimaudit.domain.reconcile import (
    MILEAGE_HIGHLIGHT_THRESHOLD,
    VALUE_HIGHLIGHT_THRESHOLD,
    active_category_summaries,
    category_status,
    cents,
    group_disputes_by_category,
    group_items_by_category,
    group_outliers_by_category,
    warranty_items,
)
from claimaudit.errors import LayoutOverflow
from claimaudit.layout.engine import (
    Column,
    GapSpec,
    LineSpec,
    Page,
    PageGeometry,
    ParagraphSpec,
    ReportLayout,
    Row,
    RunSpec,
)
from claimaudit.layout.styles import (
    COLORS,
    DISCLAIMER_TITLE,
    NEGOTIATION_DISCLAIMER,
    REPORT_FILE_NAMES,
    REPORT_TITLES,
    RULE_HEAVY,
    RULE_LIGHT,
    SECTION_GAP,
    STYLES,
    SUPPLEMENT_DISCLAIMER,
    VALUATION_DISCLAIMER,
    WARRANTY_TEXT,
)
from claimaudit.models import (
    ComparisonResult,
    MatchStatus,
    NegotiationAuditResult,
    SchemaTag,
    SupplementDiffResult,
    ValuationAuditResult,
)

BULLET_INDENT = 8 * mm
LABEL_GAP = 6


@dataclass(frozen=True)
class RenderedReport:
    tag: SchemaTag
    file_name: str
    title: str
    pages: Tuple[Page, ...]
    overflows: Tuple[LayoutOverflow, ...] = ()
    geometry: PageGeometry = PageGeometry()

    @property
    def page_count(self) -> int:
        return len(self.pages)


def money(value: float) -> str:
    value = cents(value)
    if value < 0:
        return f"-${abs(value):.2f}"
    return f"${value:.2f}"


def quantity(value: float) -> str:
    return f"{value:g}"


def _label(label: str, value: str) -> LineSpec:
    return LineSpec(((f"{label}  ", STYLES["label"]), (value, STYLES["value"])))


def _report_header(layout: ReportLayout, title: str, generated_on: date) -> None:
    layout.line((title, STYLES["title"]))
    layout.line((f"Generated on: {generated_on.strftime('%m/%d/%Y')}", STYLES["subtitle"]))
    layout.space(3)
    layout.rule(*RULE_HEAVY)
    layout.space(SECTION_GAP)


def _page_heading(layout: ReportLayout, heading: str) -> None:
    layout.new_page()
    layout.line((heading, STYLES["page_heading"]))
    layout.space(8)


def _section(layout: ReportLayout, heading: str) -> None:
    layout.line((heading, STYLES["section"]))
    layout.space(4)


def _disclaimer(layout: ReportLayout, paragraphs: Tuple[str, ...]) -> None:
    contents: List = [LineSpec(((DISCLAIMER_TITLE, STYLES["disclaimer_title"]),)), GapSpec(4)]
    for index, text in enumerate(paragraphs):
        if index:
            contents.append(GapSpec(3))
        style = STYLES["disclaimer_bold"] if index == 0 else STYLES["disclaimer"]
        contents.append(ParagraphSpec(text, style))
    layout.panel(contents, fill=COLORS["disclaimer_bg"], stroke=COLORS["disclaimer"], stroke_width=0.5)


def _summary_panel(layout: ReportLayout, heading: str, text: str) -> None:
    layout.panel(
        [
            LineSpec(((heading, STYLES["section"]),)),
            GapSpec(4),
            ParagraphSpec(text, STYLES["body"]),
        ],
        fill=COLORS["panel_bg"],
    )


# --- Supplement diff -------------------------------------------------------


def _equation(label: str, original: float, added: float, final: float) -> Tuple[RunSpec, ...]:
    return (
        (f"{label} ({money(original)}) ", STYLES["body"]),
        (f"ADDED ({money(added)})", STYLES["body_bold"]),
        (" = TOTAL ", STYLES["body"]),
        (f"({money(final)})", STYLES["body_bold"]),
    )


def _supplement_cover(layout: ReportLayout, result: SupplementDiffResult) -> None:
    layout.panel(
        [
            _label("Claim #:", result.claim_number),
            GapSpec(LABEL_GAP),
            LineSpec((("Vehicle:", STYLES["label"]),)),
            ParagraphSpec(result.vehicle_info, STYLES["value"]),
            GapSpec(LABEL_GAP),
            _label("VIN:", result.vin),
        ],
        fill=COLORS["panel_bg"],
    )
    layout.space(SECTION_GAP)

    financials = result.financials
    layout.paragraph(
        "Below shows your original estimate, what was added, and your new total after all changes.",
        STYLES["body"],
    )
    layout.space(4)
    layout.line(("Total Estimate", STYLES["section"]))
    total = financials.total
    layout.line(*_equation("Original Estimate", total.original, total.added, total.final))
    layout.space(6)

    for label, kind, breakdown in (
        ("Parts Total", "Parts", financials.parts),
        ("Labor Total", "Labor", financials.labor),
    ):
        layout.line((f"• {label}", STYLES["bullet"]), indent=BULLET_INDENT)
        layout.line(
            *_equation(f"Original {kind}", breakdown.original, breakdown.added, breakdown.final),
            indent=BULLET_INDENT,
        )
        layout.space(6)

    layout.line(("Parts Total + Labor Total = Total Estimate", STYLES["body_bold"]), indent=BULLET_INDENT)
    layout.space(8)
    layout.rule(*RULE_LIGHT)
    layout.space(SECTION_GAP)
    _disclaimer(layout, SUPPLEMENT_DISCLAIMER)


def _supplement_added(layout: ReportLayout, result: SupplementDiffResult) -> None:
    _page_heading(layout, "What was Added")
    financials = result.financials

    rows = [
        Row((summary.category_name.upper(), money(summary.added_total)))
        for summary in active_category_summaries(result)
    ]
    rows.append(Row(("ADDED TAX", money(financials.tax.added)), "summary"))
    rows.append(Row(("TOTAL ADDED VALUE", money(financials.total.added)), "total"))
    layout.table([Column("Supplement Header"), Column("Added Amount", 60 * mm, "right")], rows)
    layout.space(SECTION_GAP)

    _section(layout, "Added Line Items")
    item_rows: List[Row] = []
    for category, items in group_items_by_category(result.added_items).items():
        item_rows.append(Row((category.upper(),), "group"))
        for item in items:
            description = item.description
            if item.reason_for_addition:
                description = f"{description}\nReason: {item.reason_for_addition}"
            item_rows.append(
                Row(
                    (
                        description,
                        item.item_type.value,
                        quantity(item.quantity),
                        money(item.unit_price),
                        money(item.total_price),
                    )
                )
            )
    item_rows.append(Row(("TAX", money(financials.tax.added)), "summary"))
    item_rows.append(Row(("TOTAL ADDED VALUE", money(financials.total.added)), "total"))
    layout.table(
        [
            Column("Description"),
            Column("Type", 20 * mm),
            Column("Qty", 14 * mm, "right"),
            Column("Unit Price", 26 * mm, "right"),
            Column("Total", 28 * mm, "right"),
        ],
        item_rows,
    )


def _supplement_warranty(layout: ReportLayout, result: SupplementDiffResult) -> None:
    _page_heading(layout, "NEEDS WARRANTY")
    layout.paragraph(WARRANTY_TEXT, STYLES["body"])
    layout.space(8)

    eligible = warranty_items(result)
    if not eligible:
        layout.line(("No parts in this supplement require warranty coverage.", STYLES["body"]))
        return

    rows: List[Row] = []
    for category, items in group_items_by_category(eligible).items():
        rows.append(Row((category.upper(),), "group"))
        for item in items:
            rows.append(Row((item.part_number, item.description, item.operation, money(item.total_price))))
    layout.table(
        [
            Column("Part Number", 34 * mm),
            Column("Description"),
            Column("Operation", 24 * mm),
            Column("Total", 28 * mm, "right"),
        ],
        rows,
    )


def _layout_supplement(layout: ReportLayout, result: SupplementDiffResult) -> None:
    _supplement_cover(layout, result)
    _supplement_added(layout, result)
    _supplement_warranty(layout, result)


# --- Negotiation audit -----------------------------------------------------


def _negotiation_cover(layout: ReportLayout, result: NegotiationAuditResult) -> None:
    identity = [
        _label("Claim #:", result.claim_number),
        GapSpec(LABEL_GAP),
        _label("Insured:", result.insured_name),
        GapSpec(LABEL_GAP),
        _label("Date of Loss:", result.date_of_loss),
        GapSpec(LABEL_GAP),
        LineSpec((("Vehicle:", STYLES["label"]),)),
        ParagraphSpec(result.vehicle_info, STYLES["value"]),
    ]
    if result.demand_date or result.offer_date:
        identity.append(GapSpec(LABEL_GAP))
        identity.append(
            LineSpec(
                (
                    ("Demand Date:  ", STYLES["label"]),
                    (f"{result.demand_date or 'N/A'}    ", STYLES["value"]),
                    ("Offer Date:  ", STYLES["label"]),
                    (result.offer_date or "N/A", STYLES["value"]),
                )
            )
        )
    layout.panel(identity, fill=COLORS["panel_bg"])
    layout.space(8)
    _summary_panel(layout, "Executive Summary", result.summary_text)
    layout.space(12)

    _section(layout, "Settlement Gap")
    gap_style = STYLES["alert"] if result.total_gap > 0 else STYLES["ok"]
    layout.line(
        ("Total Demand ", STYLES["body"]),
        (money(result.total_demand), STYLES["body_bold"]),
        ("   Total Offer ", STYLES["body"]),
        (money(result.total_offer), STYLES["body_bold"]),
        ("   Gap ", STYLES["body"]),
        (f"{money(result.total_gap)} ({result.gap_percentage:.1f}%)", gap_style),
    )
    layout.line(
        ("Negotiation direction: ", STYLES["body_bold"]),
        (result.negotiation_direction.value, STYLES["body"]),
    )

    liability = result.liability
    runs: List[RunSpec] = [
        ("Liability: ", STYLES["body_bold"]),
        (f"Demand {quantity(liability.demand_percent)}% / Offer {quantity(liability.offer_percent)}%", STYLES["body"]),
    ]
    if liability.is_disputed:
        runs.append(("   DISPUTED", STYLES["alert"]))
    layout.line(*runs)

    rental = result.rental_specifics
    if rental is not None:
        layout.space(8)
        _section(layout, "Rental Analysis")
        layout.line(
            (f"Demand: {quantity(rental.demand_days)} days at {money(rental.demand_rate)}/day", STYLES["body"])
        )
        layout.line(
            (f"Offer: {quantity(rental.offer_days)} days at {money(rental.offer_rate)}/day", STYLES["body"])
        )
        gap_style = STYLES["alert"] if rental.day_gap > 0 or rental.rate_gap > 0 else STYLES["body"]
        layout.line(
            (f"Gap: {quantity(rental.day_gap)} days, {money(rental.rate_gap)}/day", gap_style)
        )

    layout.space(8)
    layout.rule(*RULE_LIGHT)
    layout.space(12)
    _disclaimer(layout, NEGOTIATION_DISCLAIMER)


def _negotiation_breakdown(layout: ReportLayout, result: NegotiationAuditResult) -> None:
    _page_heading(layout, "Negotiation Breakdown")
    rows = [
        Row(
            (
                category.name,
                money(category.demand_total),
                money(category.offer_total),
                money(category.delta),
                category_status(category),
            )
        )
        for category in result.categories
    ]
    rows.append(
        Row(("TOTAL", money(result.total_demand), money(result.total_offer), money(result.total_gap), ""), "total")
    )
    layout.table(
        [
            Column("Category"),
            Column("Demand", 28 * mm, "right"),
            Column("Offer", 28 * mm, "right"),
            Column("Delta", 28 * mm, "right"),
            Column("Status", 22 * mm),
        ],
        rows,
    )
    layout.space(SECTION_GAP)

    _section(layout, "Line Item Disputes")
    if not result.line_item_disputes:
        layout.line(("No line item disputes were reported.", STYLES["body"]))
        return

    dispute_rows: List[Row] = []
    for category, disputes in group_disputes_by_category(result.line_item_disputes).items():
        dispute_rows.append(Row((category.upper(),), "group"))
        for dispute in disputes:
            description = dispute.item_description
            if dispute.notes:
                description = f"{description}\n{dispute.notes}"
            dispute_rows.append(
                Row(
                    (
                        description,
                        money(dispute.demand_amount),
                        money(dispute.offer_amount),
                        money(dispute.delta),
                        dispute.status.value if dispute.status is not None else "",
                    )
                )
            )
    layout.table(
        [
            Column("Item"),
            Column("Demand", 26 * mm, "right"),
            Column("Offer", 26 * mm, "right"),
            Column("Delta", 26 * mm, "right"),
            Column("Status", 24 * mm),
        ],
        dispute_rows,
    )


def _layout_negotiation(layout: ReportLayout, result: NegotiationAuditResult) -> None:
    _negotiation_cover(layout, result)
    _negotiation_breakdown(layout, result)


# --- Valuation audit -------------------------------------------------------


def _valuation_cover(layout: ReportLayout, result: ValuationAuditResult) -> None:
    vehicle = result.vehicle_info
    description = vehicle.year_make_model
    if vehicle.trim:
        description = f"{description} {vehicle.trim}"
    layout.panel(
        [
            LineSpec((("Vehicle:", STYLES["label"]),)),
            ParagraphSpec(description, STYLES["value"]),
            GapSpec(LABEL_GAP),
            _label("VIN:", vehicle.vin),
        ],
        fill=COLORS["panel_bg"],
    )
    layout.space(SECTION_GAP)

    comparison = result.comparison
    _section(layout, "Value Comparison")
    delta_style = (
        STYLES["alert"] if abs(comparison.value_delta) > VALUE_HIGHLIGHT_THRESHOLD else STYLES["body_bold"]
    )
    layout.line(
        ("CCC Value ", STYLES["body"]),
        (money(comparison.ccc_total_value), STYLES["body_bold"]),
        ("   CarFax Value ", STYLES["body"]),
        (money(comparison.carfax_total_value), STYLES["body_bold"]),
        ("   Delta ", STYLES["body"]),
        (money(comparison.value_delta), delta_style),
    )
    mileage_style = (
        STYLES["alert"]
        if comparison.mileage_discrepancy > MILEAGE_HIGHLIGHT_THRESHOLD
        else STYLES["body_bold"]
    )
    layout.line(
        ("CCC Mileage ", STYLES["body"]),
        (f"{comparison.ccc_mileage:,.0f} mi", STYLES["body_bold"]),
        ("   CarFax Mileage ", STYLES["body"]),
        (f"{comparison.carfax_mileage:,.0f} mi", STYLES["body_bold"]),
        ("   Discrepancy ", STYLES["body"]),
        (f"{comparison.mileage_discrepancy:,.0f} mi", mileage_style),
    )
    status_style = STYLES["ok"] if comparison.match_status is MatchStatus.PERFECT_MATCH else STYLES["alert"]
    layout.line(
        ("Match status: ", STYLES["body_bold"]),
        (comparison.match_status.value.replace("_", " "), status_style),
    )
    layout.space(8)
    _summary_panel(layout, "Summary", result.summary)
    layout.space(SECTION_GAP)
    _disclaimer(layout, VALUATION_DISCLAIMER)


def _valuation_breakdown(layout: ReportLayout, result: ValuationAuditResult) -> None:
    _page_heading(layout, "Outlier Breakdown")
    if not result.outliers:
        layout.line(("No outliers: the CCC valuation and the CarFax report agree.", STYLES["ok"]))
        return

    rows: List[Row] = []
    for category, outliers in group_outliers_by_category(result).items():
        rows.append(Row((category.upper(),), "group"))
        for outlier in outliers:
            description = outlier.description
            if outlier.note:
                description = f"{description}\n{outlier.note}"
            rows.append(
                Row((description, outlier.severity.value, outlier.source_a_value, outlier.source_b_value))
            )
    rows.append(Row(("OUTLIERS FOUND", str(len(result.outliers))), "total"))
    layout.table(
        [
            Column("Description"),
            Column("Severity", 22 * mm),
            Column("CCC", 34 * mm),
            Column("CarFax", 34 * mm),
        ],
        rows,
    )


def _layout_valuation(layout: ReportLayout, result: ValuationAuditResult) -> None:
    _valuation_cover(layout, result)
    _valuation_breakdown(layout, result)


_BUILDERS: Dict[SchemaTag, Callable] = {
    SchemaTag.SUPPLEMENT_DIFF: _layout_supplement,
    SchemaTag.NEGOTIATION_AUDIT: _layout_negotiation,
    SchemaTag.VALUATION_AUDIT: _layout_valuation,
}


def render_report(
    result: ComparisonResult,
    generated_on: Optional[date] = None,
    geometry: Optional[PageGeometry] = None,
) -> RenderedReport:
    """Lay out the fixed report structure for one result.

    The result is rendered as given; run it through reconciliation first so
    totals and statuses are consistent.
    """
    tag = result.tag
    title = REPORT_TITLES[tag.slug]
    layout = ReportLayout(geometry)
    _report_header(layout, title, generated_on or date.today())
    _BUILDERS[tag](layout, result)
    return RenderedReport(
        tag=tag,
        file_name=REPORT_FILE_NAMES[tag.slug],
        title=title,
        pages=layout.finish(),
        overflows=tuple(layout.overflows),
        geometry=layout.geometry,
    )
