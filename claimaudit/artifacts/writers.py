from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Sequence

from claimaudit.domain.reconcile import (
    active_category_summaries,
    category_status,
    warranty_items,
)
from claimaudit.errors import ReconciliationNote
from claimaudit.models import (
    ComparisonResult,
    NegotiationAuditResult,
    SupplementDiffResult,
    ValuationAuditResult,
)
from claimaudit.utils.io import write_json, write_text

# Field names that do not follow the plain snake_case -> camelCase rule.
_WIRE_NAMES = {
    "source_a_value": "cccValue",
    "source_b_value": "carfaxValue",
}


def camel_case(name: str) -> str:
    if name in _WIRE_NAMES:
        return _WIRE_NAMES[name]
    head, *rest = name.split("_")
    return head + "".join(word.capitalize() for word in rest)


def to_wire(value):
    """Convert a result (or any part of one) to JSON-ready data with wire names."""
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "__dataclass_fields__"):
        return {camel_case(name): to_wire(getattr(value, name)) for name in value.__dataclass_fields__}
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return value


def result_payload(result: ComparisonResult) -> Dict:
    payload = {"schemaTag": result.tag.value}
    payload.update(to_wire(result))
    if isinstance(result, SupplementDiffResult):
        payload["totalAddedValue"] = result.total_added_value
    return payload


def notes_payload(notes: Sequence[ReconciliationNote]) -> List[Dict]:
    return [to_wire(note) for note in notes]


def write_result(path: Path, result: ComparisonResult) -> None:
    write_json(path, result_payload(result))


def write_notes(path: Path, notes: Sequence[ReconciliationNote]) -> None:
    write_json(path, notes_payload(notes))


def _supplement_summary(result: SupplementDiffResult) -> List[str]:
    financials = result.financials
    lines = [
        "# Supplement Analysis",
        "",
        f"- Claim #: {result.claim_number}",
        f"- Vehicle: {result.vehicle_info}",
        f"- VIN: {result.vin}",
        "",
        "## Financials",
        "",
        "| | Original | Added | Final |",
        "|---|---:|---:|---:|",
    ]
    for name, breakdown in financials.items():
        lines.append(
            f"| {name.capitalize()} | {breakdown.original:.2f} | {breakdown.added:.2f} | {breakdown.final:.2f} |"
        )
    lines.extend(["", "## What was Added", ""])
    for summary in active_category_summaries(result):
        lines.append(f"- **{summary.category_name}**: {summary.added_total:.2f}")
    lines.append(f"- Added tax: {financials.tax.added:.2f}")
    lines.append(f"- **Total added value: {result.total_added_value:.2f}**")

    eligible = warranty_items(result)
    lines.extend(["", "## Needs Warranty", ""])
    if eligible:
        lines.extend(f"- {item.part_number} {item.description} ({item.operation})" for item in eligible)
    else:
        lines.append("No parts in this supplement require warranty coverage.")
    return lines


def _negotiation_summary(result: NegotiationAuditResult) -> List[str]:
    lines = [
        "# Negotiation Audit",
        "",
        f"- Claim #: {result.claim_number}",
        f"- Insured: {result.insured_name}",
        f"- Date of loss: {result.date_of_loss}",
        f"- Direction: {result.negotiation_direction.value}",
        "",
        result.summary_text,
        "",
        f"Demand {result.total_demand:.2f} / Offer {result.total_offer:.2f} / "
        f"Gap {result.total_gap:.2f} ({result.gap_percentage:.1f}%)",
    ]
    if result.categories:
        lines.extend(["", "## Categories", ""])
        for category in result.categories:
            lines.append(
                f"- {category.name}: {category.demand_total:.2f} vs {category.offer_total:.2f} "
                f"({category_status(category)})"
            )
    if result.line_item_disputes:
        lines.extend(["", "## Disputes", ""])
        for dispute in result.line_item_disputes:
            status = dispute.status.value if dispute.status is not None else "UNKNOWN"
            lines.append(f"- [{status}] {dispute.item_description}: {dispute.delta:.2f}")
    return lines


def _valuation_summary(result: ValuationAuditResult) -> List[str]:
    comparison = result.comparison
    lines = [
        "# Valuation Audit",
        "",
        f"- Vehicle: {result.vehicle_info.year_make_model} {result.vehicle_info.trim}".rstrip(),
        f"- VIN: {result.vehicle_info.vin}",
        f"- Match status: {comparison.match_status.value}",
        "",
        result.summary,
        "",
        f"CCC {comparison.ccc_total_value:.2f} / CarFax {comparison.carfax_total_value:.2f} / "
        f"Delta {comparison.value_delta:.2f}",
    ]
    if result.outliers:
        lines.extend(["", "## Outliers", ""])
        for outlier in result.outliers:
            lines.append(f"- [{outlier.severity.value}] {outlier.category}: {outlier.description}")
    return lines


def write_summary(path: Path, result: ComparisonResult, notes: Sequence[ReconciliationNote] = ()) -> None:
    if isinstance(result, SupplementDiffResult):
        lines = _supplement_summary(result)
    elif isinstance(result, NegotiationAuditResult):
        lines = _negotiation_summary(result)
    else:
        lines = _valuation_summary(result)
    if notes:
        lines.extend(["", "## Reconciliation Notes", ""])
        lines.extend(f"- {note.message}" for note in notes)
    write_text(path, "\n".join(lines).strip() + "\n")
