from __future__ import annotations

import copy
from datetime import date
from typing import Dict

import pytest

from claimaudit.adapters.mock_adapter import (
    NEGOTIATION_RESPONSE,
    SUPPLEMENT_RESPONSE,
    VALUATION_RESPONSE,
)
from claimaudit.models import (
    FinancialBreakdown,
    Financials,
    ItemType,
    LineItem,
    SupplementDiffResult,
)

SUPPLEMENT_PAYLOAD: Dict = {
    "claimNumber": "CLM-1",
    "vehicleInfo": "2019 Toyota Camry SE",
    "vin": "4T1B11HK5KU123456",
    "financials": {
        "total": {"original": 1000.0, "added": 250.0, "final": 1250.0},
        "parts": {"original": 600.0, "added": 150.0, "final": 750.0},
        "labor": {"original": 350.0, "added": 80.0, "final": 430.0},
        "tax": {"original": 50.0, "added": 20.0, "final": 70.0},
    },
    "addedItems": [
        {
            "description": "Front bumper cover",
            "category": "Front Bumper",
            "quantity": 1,
            "unitPrice": 150.0,
            "totalPrice": 150.0,
            "partNumber": "52119-06986",
            "operation": "Repl",
            "itemType": "Part",
        }
    ],
}

NEGOTIATION_PAYLOAD: Dict = {
    "claimNumber": "SUB-1",
    "insuredName": "Jordan Reyes",
    "dateOfLoss": "2024-03-14",
    "totalDemand": 1000.0,
    "totalOffer": 600.0,
    "summaryText": "Offer reduces rental days.",
}

VALUATION_PAYLOAD: Dict = {
    "vehicleInfo": {"vin": "1FTEW1EP5JFA00001", "yearMakeModel": "2018 Ford F-150"},
    "comparison": {"cccTotalValue": 18450.0, "carfaxTotalValue": 19200.0},
    "summary": "Values are close.",
}


@pytest.fixture
def supplement_payload() -> Dict:
    return copy.deepcopy(SUPPLEMENT_PAYLOAD)


@pytest.fixture
def negotiation_payload() -> Dict:
    return copy.deepcopy(NEGOTIATION_PAYLOAD)


@pytest.fixture
def valuation_payload() -> Dict:
    return copy.deepcopy(VALUATION_PAYLOAD)


@pytest.fixture
def supplement_raw() -> str:
    """Fenced generator output with a missing comma between added items."""
    return SUPPLEMENT_RESPONSE


@pytest.fixture
def negotiation_raw() -> str:
    return NEGOTIATION_RESPONSE


@pytest.fixture
def valuation_raw() -> str:
    return VALUATION_RESPONSE


@pytest.fixture
def report_date() -> date:
    return date(2024, 7, 1)


def make_item(index: int = 0, **overrides) -> LineItem:
    fields = dict(
        description=f"Line item {index}",
        category=f"Section {index % 7}",
        quantity=1.0,
        unit_price=10.0,
        total_price=10.0,
        part_number="",
        operation="Rpr",
        item_type=ItemType.LABOR,
    )
    fields.update(overrides)
    return LineItem(**fields)


def make_supplement(items=(), summaries=(), **breakdowns) -> SupplementDiffResult:
    defaults = {
        "total": FinancialBreakdown(1000.0, 250.0, 1250.0),
        "parts": FinancialBreakdown(600.0, 150.0, 750.0),
        "labor": FinancialBreakdown(350.0, 80.0, 430.0),
        "tax": FinancialBreakdown(50.0, 20.0, 70.0),
    }
    defaults.update(breakdowns)
    return SupplementDiffResult(
        claim_number="CLM-1",
        vehicle_info="2019 Toyota Camry SE",
        vin="4T1B11HK5KU123456",
        financials=Financials(**defaults),
        category_summaries=tuple(summaries),
        added_items=tuple(items),
    )
