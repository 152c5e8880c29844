from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class SchemaTag(str, Enum):
    SUPPLEMENT_DIFF = "SupplementDiff"
    NEGOTIATION_AUDIT = "NegotiationAudit"
    VALUATION_AUDIT = "ValuationAudit"

    @classmethod
    def parse(cls, value: Union[str, "SchemaTag"]) -> "SchemaTag":
        if isinstance(value, SchemaTag):
            return value
        key = str(value).strip().replace("-", "").replace("_", "").lower()
        for member in cls:
            if key in (member.value.lower(), member.name.replace("_", "").lower()):
                return member
        raise ValueError(f"Unknown schema tag: {value}")

    @property
    def slug(self) -> str:
        return self.name.lower()


class ItemType(str, Enum):
    PART = "Part"
    LABOR = "Labor"
    SUBLET = "Sublet"
    OTHER = "Other"


class DisputeStatus(str, Enum):
    RESOLVED = "RESOLVED"
    IMPROVED = "IMPROVED"
    DISPUTED = "DISPUTED"
    WORSENED = "WORSENED"


class NegotiationDirection(str, Enum):
    POSITIVE = "POSITIVE"
    STALLED = "STALLED"
    NEGATIVE = "NEGATIVE"


class MatchStatus(str, Enum):
    PERFECT_MATCH = "PERFECT_MATCH"
    MINOR_DISCREPANCIES = "MINOR_DISCREPANCIES"
    SIGNIFICANT_OUTLIERS = "SIGNIFICANT_OUTLIERS"


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# --- Supplement diff -------------------------------------------------------


@dataclass(frozen=True)
class FinancialBreakdown:
    original: float
    added: float
    final: float


@dataclass(frozen=True)
class Financials:
    total: FinancialBreakdown
    parts: FinancialBreakdown
    labor: FinancialBreakdown
    tax: FinancialBreakdown

    def items(self) -> Tuple[Tuple[str, FinancialBreakdown], ...]:
        return (
            ("total", self.total),
            ("parts", self.parts),
            ("labor", self.labor),
            ("tax", self.tax),
        )


@dataclass(frozen=True)
class CategorySummary:
    category_name: str
    final_total: float = 0.0
    final_labor: float = 0.0
    added_total: float = 0.0
    added_labor: float = 0.0


@dataclass(frozen=True)
class LineItem:
    description: str
    category: str
    quantity: float
    unit_price: float
    total_price: float
    reason_for_addition: str = ""
    part_number: str = ""
    operation: str = ""
    item_type: ItemType = ItemType.OTHER


@dataclass(frozen=True)
class SupplementDiffResult:
    claim_number: str
    vehicle_info: str
    vin: str
    financials: Financials
    category_summaries: Tuple[CategorySummary, ...] = ()
    added_items: Tuple[LineItem, ...] = ()

    tag = SchemaTag.SUPPLEMENT_DIFF

    @property
    def total_added_value(self) -> float:
        return self.financials.total.added


# --- Negotiation audit -----------------------------------------------------


@dataclass(frozen=True)
class Liability:
    demand_percent: float = 0.0
    offer_percent: float = 0.0
    is_disputed: bool = False


@dataclass(frozen=True)
class RentalSpecifics:
    demand_days: float = 0.0
    demand_rate: float = 0.0
    offer_days: float = 0.0
    offer_rate: float = 0.0

    @property
    def day_gap(self) -> float:
        return self.demand_days - self.offer_days

    @property
    def rate_gap(self) -> float:
        return round(self.demand_rate - self.offer_rate, 2)


@dataclass(frozen=True)
class NegotiationCategory:
    name: str
    demand_total: float = 0.0
    offer_total: float = 0.0
    delta: float = 0.0


@dataclass(frozen=True)
class LineItemDispute:
    category: str
    item_description: str
    demand_amount: float
    offer_amount: float
    delta: float = 0.0
    status: Optional[DisputeStatus] = None
    notes: str = ""


@dataclass(frozen=True)
class NegotiationAuditResult:
    claim_number: str
    insured_name: str
    date_of_loss: str
    vehicle_info: str
    liability: Liability
    total_demand: float
    total_offer: float
    total_gap: float
    gap_percentage: float
    summary_text: str
    demand_date: str = ""
    offer_date: str = ""
    rental_specifics: Optional[RentalSpecifics] = None
    categories: Tuple[NegotiationCategory, ...] = ()
    line_item_disputes: Tuple[LineItemDispute, ...] = ()
    negotiation_direction: NegotiationDirection = NegotiationDirection.STALLED

    tag = SchemaTag.NEGOTIATION_AUDIT


# --- Valuation audit -------------------------------------------------------


@dataclass(frozen=True)
class VehicleIdentity:
    vin: str = "N/A"
    year_make_model: str = "N/A"
    trim: str = ""


@dataclass(frozen=True)
class ValuationComparison:
    ccc_total_value: float
    carfax_total_value: float
    value_delta: float = 0.0
    ccc_mileage: float = 0.0
    carfax_mileage: float = 0.0
    match_status: MatchStatus = MatchStatus.SIGNIFICANT_OUTLIERS

    @property
    def mileage_discrepancy(self) -> float:
        return abs(self.ccc_mileage - self.carfax_mileage)


@dataclass(frozen=True)
class ValuationOutlier:
    category: str
    description: str
    severity: Severity
    source_a_value: str = ""
    source_b_value: str = ""
    note: str = ""


@dataclass(frozen=True)
class ValuationAuditResult:
    vehicle_info: VehicleIdentity
    comparison: ValuationComparison
    summary: str
    outliers: Tuple[ValuationOutlier, ...] = ()

    tag = SchemaTag.VALUATION_AUDIT


ComparisonResult = Union[SupplementDiffResult, NegotiationAuditResult, ValuationAuditResult]
