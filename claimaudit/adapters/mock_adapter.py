from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .llm_base import DocumentPart, LLMAdapter, LLMResponse

# Canned responses mimic real generator output: fenced, with the odd missing
# separator between array elements.

SUPPLEMENT_RESPONSE = """```json
{
  "claimNumber": "CLM-2024-00117",
  "vehicleInfo": "2019 Toyota Camry SE 4D Sedan 4-2.5L Gasoline Sequential MPI",
  "vin": "4T1B11HK5KU123456",
  "financials": {
    "total": {"original": 1000.00, "added": 250.00, "final": 1250.00},
    "parts": {"original": 600.00, "added": 150.00, "final": 750.00},
    "labor": {"original": 350.00, "added": 80.00, "final": 430.00},
    "tax": {"original": 50.00, "added": 20.00, "final": 70.00}
  },
  "categorySummaries": [
    {"categoryName": "Refinish", "finalTotal": 200.00, "finalLabor": 130.00, "addedTotal": 80.00, "addedLabor": 80.00},
    {"categoryName": "Front Bumper", "finalTotal": 980.00, "finalLabor": 300.00, "addedTotal": 150.00, "addedLabor": 0.00},
    {"categoryName": "Alignment", "finalTotal": 0.00, "finalLabor": 0.00, "addedTotal": 0.00, "addedLabor": 0.00}
  ],
  "addedItems": [
    {"description": "Front bumper cover", "category": "Front Bumper", "quantity": 1, "unitPrice": 150.00, "totalPrice": 150.00, "reasonForAddition": "S01 hidden damage found at teardown", "partNumber": "52119-06986", "operation": "Repl", "itemType": "Part"}
    {"description": "Refinish bumper cover", "category": "Refinish", "quantity": 2, "unitPrice": 40.00, "totalPrice": 80.00, "reasonForAddition": "S01 refinish for replaced cover", "partNumber": "", "operation": "Refn", "itemType": "Labor"}
  ]
}
```"""

NEGOTIATION_RESPONSE = """```json
{
  "claimNumber": "SUB-88213",
  "insuredName": "Jordan Reyes",
  "dateOfLoss": "2024-03-14",
  "vehicleInfo": "2021 Honda Accord EX-L",
  "demandDate": "2024-05-02",
  "offerDate": "2024-06-10",
  "liability": {"demandPercent": 100, "offerPercent": 80, "isDisputed": true},
  "rentalSpecifics": {"demandDays": 30, "demandRate": 80.00, "offerDays": 20, "offerRate": 60.00},
  "totalDemand": 12500.00,
  "totalOffer": 9800.00,
  "totalGap": 2700.00,
  "gapPercentage": 21.6,
  "categories": [
    {"name": "Auto Damage", "demandTotal": 9500.00, "offerTotal": 8200.00, "delta": 1300.00},
    {"name": "Rental", "demandTotal": 2400.00, "offerTotal": 1200.00, "delta": 1200.00},
    {"name": "Towing & Storage", "demandTotal": 600.00, "offerTotal": 400.00, "delta": 200.00}
  ],
  "lineItemDisputes": [
    {"category": "Rental", "itemDescription": "Rental duration", "demandAmount": 2400.00, "offerAmount": 1200.00, "delta": 1200.00, "status": "IMPROVED", "notes": "Offer limits rental to 20 days at $60/day"}
    {"category": "Towing & Storage", "itemDescription": "Storage fees", "demandAmount": 350.00, "offerAmount": 150.00, "delta": 200.00, "notes": "Storage after day 5 denied"},
    {"category": "Auto Damage", "itemDescription": "Rear bumper reinforcement", "demandAmount": 1300.00, "offerAmount": 0.00, "delta": 1300.00, "status": "DISPUTED", "notes": "Carrier disputes relatedness"},
  ],
  "negotiationDirection": "POSITIVE",
  "summaryText": "The counter offer accepts 80% liability and cuts rental from 30 to 20 days at a lower daily rate. The remaining gap is driven by the denied rear reinforcement and the rental reduction; negotiation is progressing."
}
```"""

VALUATION_RESPONSE = """```json
{
  "vehicleInfo": {"vin": "1FTEW1EP5JFA00001", "yearMakeModel": "2018 Ford F-150", "trim": "XLT SuperCrew"},
  "comparison": {
    "cccTotalValue": 18450.00,
    "carfaxTotalValue": 19200.00,
    "valueDelta": -750.00,
    "cccMileage": 48210,
    "carfaxMileage": 47100,
    "matchStatus": "SIGNIFICANT_OUTLIERS"
  },
  "outliers": [
    {"category": "Options", "description": "CCC lists navigation, CarFax build data does not", "severity": "MEDIUM", "cccValue": "Navigation", "carfaxValue": "Not listed"}
    {"category": "Mileage", "description": "Mileage differs by 1,110 miles", "severity": "HIGH", "cccValue": 48210, "carfaxValue": 47100, "note": "CarFax reading is three months older"},
  ],
  "summary": "CCC values the truck $750 below CarFax. The gap is explained mostly by the mileage difference and an options mismatch on navigation."
}
```"""


@dataclass
class MockAdapter(LLMAdapter):
    scenario: str = "default"

    def complete(self, system_prompt: str, parts: Sequence[DocumentPart]) -> LLMResponse:
        return LLMResponse(raw_text=self._build_response(system_prompt), finish_reason="STOP")

    def _build_response(self, system_prompt: str) -> str:
        if self.scenario == "empty":
            return ""
        if "NegotiationAudit" in system_prompt:
            return NEGOTIATION_RESPONSE
        if "ValuationAudit" in system_prompt:
            return VALUATION_RESPONSE
        return SUPPLEMENT_RESPONSE
