from __future__ import annotations

import json

import pytest

from claimaudit.errors import ValidationFailure
from claimaudit.gates.validator import format_path, load_schema, validate_payload
from claimaudit.models import (
    DisputeStatus,
    ItemType,
    MatchStatus,
    NegotiationDirection,
    SchemaTag,
    Severity,
    SupplementDiffResult,
)


def _validate(tag, payload):
    return validate_payload(tag, json.dumps(payload))


def _failure(tag, payload) -> ValidationFailure:
    with pytest.raises(ValidationFailure) as excinfo:
        _validate(tag, payload)
    return excinfo.value


class TestSchemaTag:

    @pytest.mark.parametrize("value", ["SupplementDiff", "supplement_diff", "supplement-diff", "SUPPLEMENT_DIFF"])
    def test_parse_accepts_spellings(self, value):
        assert SchemaTag.parse(value) is SchemaTag.SUPPLEMENT_DIFF

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            SchemaTag.parse("Appraisal")

    def test_every_tag_has_a_schema(self):
        for tag in SchemaTag:
            assert load_schema(tag)["title"] == tag.value


class TestFormatPath:

    def test_nested_path(self):
        assert format_path(["addedItems", 3, "unitPrice"]) == "addedItems[3].unitPrice"

    def test_root(self):
        assert format_path([]) == "$"


class TestSupplementDecode:

    def test_full_payload(self, supplement_payload):
        result = _validate(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert isinstance(result, SupplementDiffResult)
        assert result.financials.total.final == 1250.0
        assert result.added_items[0].item_type is ItemType.PART
        assert result.added_items[0].part_number == "52119-06986"
        assert result.total_added_value == 250.0

    def test_identity_defaults_to_not_available(self, supplement_payload):
        del supplement_payload["claimNumber"]
        supplement_payload["vin"] = None
        supplement_payload["vehicleInfo"] = "   "
        result = _validate(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert result.claim_number == "N/A"
        assert result.vin == "N/A"
        assert result.vehicle_info == "N/A"

    def test_optional_lists_default_to_empty(self, supplement_payload):
        del supplement_payload["addedItems"]
        result = _validate(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert result.added_items == ()
        assert result.category_summaries == ()

    def test_item_type_defaults_to_other(self, supplement_payload):
        del supplement_payload["addedItems"][0]["itemType"]
        result = _validate(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert result.added_items[0].item_type is ItemType.OTHER

    def test_missing_final_total(self, supplement_payload):
        del supplement_payload["financials"]["total"]["final"]
        failure = _failure(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert failure.field_path == "financials.total.final"
        assert failure.tag == "SupplementDiff"

    def test_missing_financials(self, supplement_payload):
        del supplement_payload["financials"]
        assert _failure(SchemaTag.SUPPLEMENT_DIFF, supplement_payload).field_path == "financials"

    def test_string_quantity_is_rejected(self, supplement_payload):
        supplement_payload["addedItems"][0]["quantity"] = "two"
        failure = _failure(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert failure.field_path == "addedItems[0].quantity"

    def test_boolean_is_not_a_number(self, supplement_payload):
        supplement_payload["financials"]["tax"]["added"] = True
        failure = _failure(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert failure.field_path == "financials.tax.added"

    def test_unknown_item_type_is_rejected(self, supplement_payload):
        supplement_payload["addedItems"][0]["itemType"] = "Widget"
        failure = _failure(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert failure.field_path == "addedItems[0].itemType"

    def test_malformed_json_fails_at_root(self):
        with pytest.raises(ValidationFailure) as excinfo:
            validate_payload(SchemaTag.SUPPLEMENT_DIFF, '{"financials": ', raw_length=99)
        assert excinfo.value.field_path == "$"
        assert excinfo.value.raw_length == 99

    def test_non_object_fails_at_root(self):
        with pytest.raises(ValidationFailure) as excinfo:
            validate_payload(SchemaTag.SUPPLEMENT_DIFF, "[1, 2]")
        assert excinfo.value.field_path == "$"

    def test_message_names_the_field(self, supplement_payload):
        del supplement_payload["financials"]["parts"]
        failure = _failure(SchemaTag.SUPPLEMENT_DIFF, supplement_payload)
        assert "financials.parts" in str(failure)
        assert "tag=SupplementDiff" in str(failure)


class TestNegotiationDecode:

    def test_minimal_payload(self, negotiation_payload):
        result = _validate(SchemaTag.NEGOTIATION_AUDIT, negotiation_payload)
        assert result.total_demand == 1000.0
        assert result.rental_specifics is None
        assert result.negotiation_direction is NegotiationDirection.STALLED
        assert result.liability.is_disputed is False

    def test_missing_summary(self, negotiation_payload):
        del negotiation_payload["summaryText"]
        assert _failure(SchemaTag.NEGOTIATION_AUDIT, negotiation_payload).field_path == "summaryText"

    def test_blank_summary(self, negotiation_payload):
        negotiation_payload["summaryText"] = "   "
        assert _failure(SchemaTag.NEGOTIATION_AUDIT, negotiation_payload).field_path == "summaryText"

    def test_dispute_status_may_be_absent(self, negotiation_payload):
        negotiation_payload["lineItemDisputes"] = [
            {"itemDescription": "Storage", "demandAmount": 300, "offerAmount": 100},
            {"itemDescription": "Towing", "demandAmount": 200, "offerAmount": 100, "status": "WORSENED"},
        ]
        result = _validate(SchemaTag.NEGOTIATION_AUDIT, negotiation_payload)
        assert result.line_item_disputes[0].status is None
        assert result.line_item_disputes[1].status is DisputeStatus.WORSENED

    def test_missing_offer_amount(self, negotiation_payload):
        negotiation_payload["lineItemDisputes"] = [{"itemDescription": "Storage", "demandAmount": 300}]
        failure = _failure(SchemaTag.NEGOTIATION_AUDIT, negotiation_payload)
        assert failure.field_path == "lineItemDisputes[0].offerAmount"

    def test_rental_is_decoded(self, negotiation_payload):
        negotiation_payload["rentalSpecifics"] = {"demandDays": 30, "demandRate": 80, "offerDays": 20, "offerRate": 60}
        rental = _validate(SchemaTag.NEGOTIATION_AUDIT, negotiation_payload).rental_specifics
        assert rental.day_gap == 10
        assert rental.rate_gap == 20


class TestValuationDecode:

    def test_no_outliers_defaults_to_perfect_match(self, valuation_payload):
        result = _validate(SchemaTag.VALUATION_AUDIT, valuation_payload)
        assert result.comparison.match_status is MatchStatus.PERFECT_MATCH
        assert result.vehicle_info.trim == ""

    def test_outliers_default_to_significant(self, valuation_payload):
        valuation_payload["outliers"] = [
            {"category": "Mileage", "description": "Mileage differs", "severity": "HIGH", "cccValue": 48210, "carfaxValue": 47100.0}
        ]
        result = _validate(SchemaTag.VALUATION_AUDIT, valuation_payload)
        assert result.comparison.match_status is MatchStatus.SIGNIFICANT_OUTLIERS
        outlier = result.outliers[0]
        assert outlier.severity is Severity.HIGH
        assert outlier.source_a_value == "48210"
        assert outlier.source_b_value == "47100"

    def test_source_value_aliases(self, valuation_payload):
        valuation_payload["outliers"] = [
            {"category": "Options", "description": "Seats", "severity": "LOW", "sourceAValue": "Leather", "sourceBValue": "Cloth"}
        ]
        outlier = _validate(SchemaTag.VALUATION_AUDIT, valuation_payload).outliers[0]
        assert (outlier.source_a_value, outlier.source_b_value) == ("Leather", "Cloth")

    def test_missing_carfax_value(self, valuation_payload):
        del valuation_payload["comparison"]["carfaxTotalValue"]
        failure = _failure(SchemaTag.VALUATION_AUDIT, valuation_payload)
        assert failure.field_path == "comparison.carfaxTotalValue"

    def test_missing_vehicle(self, valuation_payload):
        del valuation_payload["vehicleInfo"]
        assert _failure(SchemaTag.VALUATION_AUDIT, valuation_payload).field_path == "vehicleInfo"
