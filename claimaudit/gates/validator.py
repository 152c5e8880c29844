from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError, best_match

from claimaudit.errors import ValidationFailure
from claimaudit.models import (
    CategorySummary,
    ComparisonResult,
    DisputeStatus,
    FinancialBreakdown,
    Financials,
    ItemType,
    Liability,
    LineItem,
    LineItemDispute,
    MatchStatus,
    NegotiationAuditResult,
    NegotiationCategory,
    NegotiationDirection,
    RentalSpecifics,
    SchemaTag,
    Severity,
    SupplementDiffResult,
    ValuationAuditResult,
    ValuationComparison,
    ValuationOutlier,
    VehicleIdentity,
)

SCHEMAS_DIR = Path(__file__).resolve().parents[1] / "schemas"
NOT_AVAILABLE = "N/A"

E = TypeVar("E")


def schema_path(tag: SchemaTag) -> Path:
    return SCHEMAS_DIR / f"{tag.slug}.schema.json"


@lru_cache(maxsize=None)
def load_schema(tag: SchemaTag) -> Dict:
    return json.loads(schema_path(tag).read_text(encoding="utf-8"))


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def format_path(parts: Iterable[Any]) -> str:
    path = ""
    for part in parts:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "$"


def _error_path(error: ValidationError) -> str:
    parts: List[Any] = list(error.absolute_path)
    if error.validator == "required":
        match = re.search(r"'([^']+)' is a required property", error.message)
        if match:
            parts.append(match.group(1))
    return format_path(parts)


class _Reader:
    """Typed field access over a decoded payload.

    Absent keys and explicit nulls fall back to the default; a present value
    of the wrong type is a ValidationFailure, never a coercion.
    """

    def __init__(self, tag: SchemaTag, raw_length: int) -> None:
        self.tag = tag
        self.raw_length = raw_length

    def fail(self, path: str, reason: str) -> ValidationFailure:
        return ValidationFailure(path, reason, tag=self.tag.value, raw_length=self.raw_length)

    def _present(self, obj: Dict, key: str, path: str, required: bool) -> Any:
        value = obj.get(key)
        if value is None and required:
            raise self.fail(path, "required field is missing")
        return value

    def number(self, obj: Dict, key: str, path: str, default: float = 0.0, required: bool = False) -> float:
        value = self._present(obj, key, path, required)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.fail(path, f"expected a number, found {type(value).__name__}")
        return float(value)

    def string(self, obj: Dict, key: str, path: str, default: str = "", required: bool = False) -> str:
        value = self._present(obj, key, path, required)
        if value is None:
            return default
        if not isinstance(value, str):
            raise self.fail(path, f"expected a string, found {type(value).__name__}")
        if not value.strip() and default == NOT_AVAILABLE:
            return default
        return value.strip()

    def boolean(self, obj: Dict, key: str, path: str, default: bool = False) -> bool:
        value = self._present(obj, key, path, False)
        if value is None:
            return default
        if not isinstance(value, bool):
            raise self.fail(path, f"expected a boolean, found {type(value).__name__}")
        return value

    def display(self, obj: Dict, keys: Tuple[str, ...], path: str) -> str:
        for key in keys:
            value = obj.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise self.fail(f"{path}.{key}", f"expected text or a number, found {type(value).__name__}")
            if isinstance(value, float) and value.is_integer():
                return str(int(value))
            return str(value).strip()
        return ""

    def obj(self, obj: Dict, key: str, path: str, required: bool = False) -> Optional[Dict]:
        value = self._present(obj, key, path, required)
        if value is None:
            return None
        if not isinstance(value, dict):
            raise self.fail(path, f"expected an object, found {type(value).__name__}")
        return value

    def array(self, obj: Dict, key: str, path: str) -> List[Tuple[str, Dict]]:
        value = obj.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise self.fail(path, f"expected a list, found {type(value).__name__}")
        items: List[Tuple[str, Dict]] = []
        for index, item in enumerate(value):
            item_path = f"{path}[{index}]"
            if not isinstance(item, dict):
                raise self.fail(item_path, f"expected an object, found {type(item).__name__}")
            items.append((item_path, item))
        return items

    def enum(
        self,
        obj: Dict,
        key: str,
        path: str,
        enum_type: Type[E],
        default: Optional[E] = None,
        required: bool = False,
    ) -> Optional[E]:
        value = self._present(obj, key, path, required)
        if value is None:
            return default
        try:
            return enum_type(value)  # type: ignore[call-arg]
        except ValueError:
            allowed = ", ".join(member.value for member in enum_type)  # type: ignore[attr-defined]
            raise self.fail(path, f"expected one of {allowed}, found {value!r}") from None


# --- Supplement diff -------------------------------------------------------


def _decode_breakdown(reader: _Reader, payload: Dict, path: str) -> FinancialBreakdown:
    return FinancialBreakdown(
        original=reader.number(payload, "original", f"{path}.original", required=True),
        added=reader.number(payload, "added", f"{path}.added", required=True),
        final=reader.number(payload, "final", f"{path}.final", required=True),
    )


def _decode_supplement(reader: _Reader, payload: Dict) -> SupplementDiffResult:
    financials = reader.obj(payload, "financials", "financials", required=True)
    breakdowns = {}
    for name in ("total", "parts", "labor", "tax"):
        path = f"financials.{name}"
        breakdowns[name] = _decode_breakdown(reader, reader.obj(financials, name, path, required=True), path)

    summaries = tuple(
        CategorySummary(
            category_name=reader.string(item, "categoryName", f"{path}.categoryName", required=True),
            final_total=reader.number(item, "finalTotal", f"{path}.finalTotal"),
            final_labor=reader.number(item, "finalLabor", f"{path}.finalLabor"),
            added_total=reader.number(item, "addedTotal", f"{path}.addedTotal"),
            added_labor=reader.number(item, "addedLabor", f"{path}.addedLabor"),
        )
        for path, item in reader.array(payload, "categorySummaries", "categorySummaries")
    )

    items = tuple(
        LineItem(
            description=reader.string(item, "description", f"{path}.description", required=True),
            category=reader.string(item, "category", f"{path}.category"),
            quantity=reader.number(item, "quantity", f"{path}.quantity", required=True),
            unit_price=reader.number(item, "unitPrice", f"{path}.unitPrice", required=True),
            total_price=reader.number(item, "totalPrice", f"{path}.totalPrice", required=True),
            reason_for_addition=reader.string(item, "reasonForAddition", f"{path}.reasonForAddition"),
            part_number=reader.string(item, "partNumber", f"{path}.partNumber"),
            operation=reader.string(item, "operation", f"{path}.operation"),
            item_type=reader.enum(item, "itemType", f"{path}.itemType", ItemType, ItemType.OTHER),
        )
        for path, item in reader.array(payload, "addedItems", "addedItems")
    )

    return SupplementDiffResult(
        claim_number=reader.string(payload, "claimNumber", "claimNumber", NOT_AVAILABLE),
        vehicle_info=reader.string(payload, "vehicleInfo", "vehicleInfo", NOT_AVAILABLE),
        vin=reader.string(payload, "vin", "vin", NOT_AVAILABLE),
        financials=Financials(**breakdowns),
        category_summaries=summaries,
        added_items=items,
    )


# --- Negotiation audit -----------------------------------------------------


def _decode_negotiation(reader: _Reader, payload: Dict) -> NegotiationAuditResult:
    liability_payload = reader.obj(payload, "liability", "liability") or {}
    liability = Liability(
        demand_percent=reader.number(liability_payload, "demandPercent", "liability.demandPercent"),
        offer_percent=reader.number(liability_payload, "offerPercent", "liability.offerPercent"),
        is_disputed=reader.boolean(liability_payload, "isDisputed", "liability.isDisputed"),
    )

    rental = None
    rental_payload = reader.obj(payload, "rentalSpecifics", "rentalSpecifics")
    if rental_payload is not None:
        rental = RentalSpecifics(
            demand_days=reader.number(rental_payload, "demandDays", "rentalSpecifics.demandDays"),
            demand_rate=reader.number(rental_payload, "demandRate", "rentalSpecifics.demandRate"),
            offer_days=reader.number(rental_payload, "offerDays", "rentalSpecifics.offerDays"),
            offer_rate=reader.number(rental_payload, "offerRate", "rentalSpecifics.offerRate"),
        )

    categories = tuple(
        NegotiationCategory(
            name=reader.string(item, "name", f"{path}.name", required=True),
            demand_total=reader.number(item, "demandTotal", f"{path}.demandTotal"),
            offer_total=reader.number(item, "offerTotal", f"{path}.offerTotal"),
            delta=reader.number(item, "delta", f"{path}.delta"),
        )
        for path, item in reader.array(payload, "categories", "categories")
    )

    disputes = tuple(
        LineItemDispute(
            category=reader.string(item, "category", f"{path}.category"),
            item_description=reader.string(item, "itemDescription", f"{path}.itemDescription", required=True),
            demand_amount=reader.number(item, "demandAmount", f"{path}.demandAmount", required=True),
            offer_amount=reader.number(item, "offerAmount", f"{path}.offerAmount", required=True),
            delta=reader.number(item, "delta", f"{path}.delta"),
            status=reader.enum(item, "status", f"{path}.status", DisputeStatus),
            notes=reader.string(item, "notes", f"{path}.notes"),
        )
        for path, item in reader.array(payload, "lineItemDisputes", "lineItemDisputes")
    )

    summary_text = reader.string(payload, "summaryText", "summaryText", required=True)
    if not summary_text:
        raise reader.fail("summaryText", "required field is empty")

    return NegotiationAuditResult(
        claim_number=reader.string(payload, "claimNumber", "claimNumber", NOT_AVAILABLE),
        insured_name=reader.string(payload, "insuredName", "insuredName"),
        date_of_loss=reader.string(payload, "dateOfLoss", "dateOfLoss"),
        vehicle_info=reader.string(payload, "vehicleInfo", "vehicleInfo", NOT_AVAILABLE),
        demand_date=reader.string(payload, "demandDate", "demandDate"),
        offer_date=reader.string(payload, "offerDate", "offerDate"),
        liability=liability,
        total_demand=reader.number(payload, "totalDemand", "totalDemand", required=True),
        total_offer=reader.number(payload, "totalOffer", "totalOffer", required=True),
        total_gap=reader.number(payload, "totalGap", "totalGap"),
        gap_percentage=reader.number(payload, "gapPercentage", "gapPercentage"),
        rental_specifics=rental,
        categories=categories,
        line_item_disputes=disputes,
        negotiation_direction=reader.enum(
            payload,
            "negotiationDirection",
            "negotiationDirection",
            NegotiationDirection,
            NegotiationDirection.STALLED,
        ),
        summary_text=summary_text,
    )


# --- Valuation audit -------------------------------------------------------


def _decode_valuation(reader: _Reader, payload: Dict) -> ValuationAuditResult:
    vehicle_payload = reader.obj(payload, "vehicleInfo", "vehicleInfo", required=True)
    vehicle = VehicleIdentity(
        vin=reader.string(vehicle_payload, "vin", "vehicleInfo.vin", NOT_AVAILABLE),
        year_make_model=reader.string(vehicle_payload, "yearMakeModel", "vehicleInfo.yearMakeModel", NOT_AVAILABLE),
        trim=reader.string(vehicle_payload, "trim", "vehicleInfo.trim"),
    )

    outliers = tuple(
        ValuationOutlier(
            category=reader.string(item, "category", f"{path}.category", required=True),
            description=reader.string(item, "description", f"{path}.description", required=True),
            severity=reader.enum(item, "severity", f"{path}.severity", Severity, required=True),
            source_a_value=reader.display(item, ("cccValue", "sourceAValue"), path),
            source_b_value=reader.display(item, ("carfaxValue", "sourceBValue"), path),
            note=reader.string(item, "note", f"{path}.note"),
        )
        for path, item in reader.array(payload, "outliers", "outliers")
    )

    comparison_payload = reader.obj(payload, "comparison", "comparison", required=True)
    default_status = MatchStatus.SIGNIFICANT_OUTLIERS if outliers else MatchStatus.PERFECT_MATCH
    comparison = ValuationComparison(
        ccc_total_value=reader.number(comparison_payload, "cccTotalValue", "comparison.cccTotalValue", required=True),
        carfax_total_value=reader.number(
            comparison_payload, "carfaxTotalValue", "comparison.carfaxTotalValue", required=True
        ),
        value_delta=reader.number(comparison_payload, "valueDelta", "comparison.valueDelta"),
        ccc_mileage=reader.number(comparison_payload, "cccMileage", "comparison.cccMileage"),
        carfax_mileage=reader.number(comparison_payload, "carfaxMileage", "comparison.carfaxMileage"),
        match_status=reader.enum(
            comparison_payload, "matchStatus", "comparison.matchStatus", MatchStatus, default_status
        ),
    )

    return ValuationAuditResult(
        vehicle_info=vehicle,
        comparison=comparison,
        outliers=outliers,
        summary=reader.string(payload, "summary", "summary", required=True),
    )


_DECODERS: Dict[SchemaTag, Callable[[_Reader, Dict], ComparisonResult]] = {
    SchemaTag.SUPPLEMENT_DIFF: _decode_supplement,
    SchemaTag.NEGOTIATION_AUDIT: _decode_negotiation,
    SchemaTag.VALUATION_AUDIT: _decode_valuation,
}


def decode_json(sanitized_text: str, tag: SchemaTag, raw_length: int = 0) -> Dict:
    decoder = json.JSONDecoder(parse_constant=_reject_constant)
    try:
        parsed, _ = decoder.raw_decode(sanitized_text.lstrip())
    except ValueError as exc:
        raise ValidationFailure("$", f"malformed JSON: {exc}", tag=tag.value, raw_length=raw_length) from exc
    if not isinstance(parsed, dict):
        raise ValidationFailure(
            "$", f"expected a JSON object, found {type(parsed).__name__}", tag=tag.value, raw_length=raw_length
        )
    return parsed


def check_schema(payload: Dict, tag: SchemaTag, raw_length: int = 0) -> None:
    validator = Draft7Validator(load_schema(tag))
    error = best_match(validator.iter_errors(payload))
    if error is not None:
        raise ValidationFailure(_error_path(error), error.message, tag=tag.value, raw_length=raw_length)


def validate_payload(tag: SchemaTag, sanitized_text: str, raw_length: Optional[int] = None) -> ComparisonResult:
    tag = SchemaTag.parse(tag)
    if raw_length is None:
        raw_length = len(sanitized_text)
    payload = decode_json(sanitized_text, tag, raw_length)
    check_schema(payload, tag, raw_length)
    return _DECODERS[tag](_Reader(tag, raw_length), payload)
