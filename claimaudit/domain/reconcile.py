from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Dict, List, Tuple

from claimaudit.errors import ReconciliationNote
from claimaudit.models import (
    CategorySummary,
    ComparisonResult,
    DisputeStatus,
    FinancialBreakdown,
    LineItem,
    LineItemDispute,
    MatchStatus,
    NegotiationAuditResult,
    NegotiationCategory,
    SupplementDiffResult,
    ValuationAuditResult,
    ValuationOutlier,
)

logger = logging.getLogger(__name__)

RECONCILE_EPSILON = 0.01
DISPUTE_GAP_THRESHOLD = 0.5
MILEAGE_HIGHLIGHT_THRESHOLD = 500
VALUE_HIGHLIGHT_THRESHOLD = 500
UNCATEGORIZED = "Uncategorized"
WARRANTY_OPERATIONS = ("REPL", "RPR")


@dataclass(frozen=True)
class Reconciliation:
    result: ComparisonResult
    notes: Tuple[ReconciliationNote, ...] = ()


def cents(value: float) -> float:
    # + 0.0 folds -0.0 into 0.0
    return round(value, 2) + 0.0


def _differs(reported: float, recomputed: float) -> bool:
    return abs(reported - recomputed) > RECONCILE_EPSILON


class _NoteLog:
    def __init__(self) -> None:
        self.notes: List[ReconciliationNote] = []

    def override(self, path: str, reported: object, recomputed: object) -> None:
        self.add(path, reported, recomputed, f"{path} overridden: reported {reported}, recomputed {recomputed}")

    def add(self, path: str, reported: object, recomputed: object, message: str) -> None:
        logger.debug("reconcile: %s", message)
        self.notes.append(ReconciliationNote(path, reported, recomputed, message))


# --- Supplement diff -------------------------------------------------------


def group_items_by_category(items: Tuple[LineItem, ...]) -> "OrderedDict[str, List[LineItem]]":
    grouped: Dict[str, List[LineItem]] = {}
    for item in items:
        grouped.setdefault(item.category or UNCATEGORIZED, []).append(item)
    return OrderedDict((name, grouped[name]) for name in sorted(grouped))


def is_warranty_eligible(item: LineItem) -> bool:
    part_number = item.part_number.strip()
    if not part_number or part_number.upper() == "N/A":
        return False
    operation = item.operation.strip().upper()
    return any(code in operation for code in WARRANTY_OPERATIONS)


def warranty_items(result: SupplementDiffResult) -> Tuple[LineItem, ...]:
    return tuple(item for item in result.added_items if is_warranty_eligible(item))


def rank_category_summaries(summaries: Tuple[CategorySummary, ...]) -> Tuple[CategorySummary, ...]:
    return tuple(sorted(summaries, key=lambda summary: summary.added_total, reverse=True))


def active_category_summaries(result: SupplementDiffResult) -> Tuple[CategorySummary, ...]:
    active = tuple(s for s in result.category_summaries if abs(s.added_total) > RECONCILE_EPSILON)
    return rank_category_summaries(active)


def _reconcile_breakdown(name: str, breakdown: FinancialBreakdown, log: _NoteLog) -> FinancialBreakdown:
    recomputed = cents(breakdown.final - breakdown.original)
    if not _differs(breakdown.added, recomputed):
        return breakdown
    log.override(f"financials.{name}.added", breakdown.added, recomputed)
    return replace(breakdown, added=recomputed)


def reconcile_supplement(result: SupplementDiffResult) -> Reconciliation:
    log = _NoteLog()
    financials = result.financials
    updated = {name: _reconcile_breakdown(name, value, log) for name, value in financials.items()}

    for index, item in enumerate(result.added_items):
        expected = cents(item.quantity * item.unit_price)
        if _differs(item.total_price, expected):
            log.add(
                f"addedItems[{index}].totalPrice",
                item.total_price,
                expected,
                f"addedItems[{index}].totalPrice {item.total_price} does not match "
                f"quantity x unitPrice {expected}; kept as printed",
            )

    reconciled = replace(
        result,
        financials=replace(financials, **updated),
        category_summaries=rank_category_summaries(result.category_summaries),
    )
    return Reconciliation(reconciled, tuple(log.notes))


# --- Negotiation audit -----------------------------------------------------


def gap_percentage(total_demand: float, total_gap: float) -> float:
    if total_demand == 0:
        return 0.0
    return round(total_gap / total_demand * 100, 1)


def derive_dispute_status(demand_amount: float, offer_amount: float) -> DisputeStatus:
    if not _differs(demand_amount, offer_amount):
        return DisputeStatus.RESOLVED
    if offer_amount == 0:
        return DisputeStatus.DISPUTED
    if demand_amount > 0 and (demand_amount - offer_amount) / demand_amount > DISPUTE_GAP_THRESHOLD:
        return DisputeStatus.DISPUTED
    return DisputeStatus.IMPROVED


def category_status(category: NegotiationCategory) -> str:
    if not _differs(category.delta, 0.0):
        return "Match"
    if category.offer_total == 0:
        return "Denied"
    return "Partial"


def _reconcile_category(index: int, category: NegotiationCategory, log: _NoteLog) -> NegotiationCategory:
    delta = cents(category.demand_total - category.offer_total)
    if not _differs(category.delta, delta):
        return category
    log.override(f"categories[{index}].delta", category.delta, delta)
    return replace(category, delta=delta)


def _reconcile_dispute(index: int, dispute: LineItemDispute, log: _NoteLog) -> LineItemDispute:
    path = f"lineItemDisputes[{index}]"
    changes = {}
    delta = cents(dispute.demand_amount - dispute.offer_amount)
    if _differs(dispute.delta, delta):
        log.override(f"{path}.delta", dispute.delta, delta)
        changes["delta"] = delta
    if dispute.status is None:
        status = derive_dispute_status(dispute.demand_amount, dispute.offer_amount)
        log.add(f"{path}.status", None, status.value, f"{path}.status derived as {status.value}")
        changes["status"] = status
    return replace(dispute, **changes) if changes else dispute


def reconcile_negotiation(result: NegotiationAuditResult) -> Reconciliation:
    log = _NoteLog()
    changes = {}

    total_gap = cents(result.total_demand - result.total_offer)
    if _differs(result.total_gap, total_gap):
        log.override("totalGap", result.total_gap, total_gap)
    changes["total_gap"] = total_gap

    percentage = gap_percentage(result.total_demand, total_gap)
    if abs(result.gap_percentage - percentage) > 0.05:
        log.override("gapPercentage", result.gap_percentage, percentage)
    changes["gap_percentage"] = percentage

    changes["categories"] = tuple(
        _reconcile_category(index, category, log) for index, category in enumerate(result.categories)
    )
    changes["line_item_disputes"] = tuple(
        _reconcile_dispute(index, dispute, log) for index, dispute in enumerate(result.line_item_disputes)
    )
    return Reconciliation(replace(result, **changes), tuple(log.notes))


def group_disputes_by_category(disputes: Tuple[LineItemDispute, ...]) -> "OrderedDict[str, List[LineItemDispute]]":
    grouped: Dict[str, List[LineItemDispute]] = {}
    for dispute in disputes:
        grouped.setdefault(dispute.category or UNCATEGORIZED, []).append(dispute)
    return OrderedDict((name, grouped[name]) for name in sorted(grouped))


# --- Valuation audit -------------------------------------------------------


def reconcile_valuation(result: ValuationAuditResult) -> Reconciliation:
    log = _NoteLog()
    comparison = result.comparison

    value_delta = cents(comparison.ccc_total_value - comparison.carfax_total_value)
    if _differs(comparison.value_delta, value_delta):
        log.override("comparison.valueDelta", comparison.value_delta, value_delta)

    status = comparison.match_status
    if not result.outliers:
        status = MatchStatus.PERFECT_MATCH
    elif status is MatchStatus.PERFECT_MATCH:
        status = MatchStatus.SIGNIFICANT_OUTLIERS
    if status is not comparison.match_status:
        log.override("comparison.matchStatus", comparison.match_status.value, status.value)

    if comparison.mileage_discrepancy > MILEAGE_HIGHLIGHT_THRESHOLD:
        log.add(
            "comparison.mileage",
            comparison.ccc_mileage,
            comparison.carfax_mileage,
            f"mileage discrepancy of {comparison.mileage_discrepancy:.0f} mi exceeds "
            f"{MILEAGE_HIGHLIGHT_THRESHOLD} mi",
        )

    reconciled = replace(result, comparison=replace(comparison, value_delta=value_delta, match_status=status))
    return Reconciliation(reconciled, tuple(log.notes))


def group_outliers_by_category(result: ValuationAuditResult) -> "OrderedDict[str, List[ValuationOutlier]]":
    grouped: Dict[str, List[ValuationOutlier]] = {}
    for outlier in result.outliers:
        grouped.setdefault(outlier.category or UNCATEGORIZED, []).append(outlier)
    return OrderedDict((name, grouped[name]) for name in sorted(grouped))


def reconcile(result: ComparisonResult) -> Reconciliation:
    if isinstance(result, SupplementDiffResult):
        return reconcile_supplement(result)
    if isinstance(result, NegotiationAuditResult):
        return reconcile_negotiation(result)
    if isinstance(result, ValuationAuditResult):
        return reconcile_valuation(result)
    raise TypeError(f"Unsupported result type: {type(result).__name__}")
