from __future__ import annotations

from datetime import date
from typing import Optional, Union

from claimaudit.domain.reconcile import Reconciliation, reconcile
from claimaudit.errors import EmptyUpstreamResponse
from claimaudit.gates.sanitizer import sanitize
from claimaudit.gates.validator import validate_payload
from claimaudit.layout.pdf import render_pdf
from claimaudit.layout.templates import RenderedReport, render_report
from claimaudit.models import ComparisonResult, SchemaTag

__all__ = [
    "analyze",
    "render_pdf",
    "render_report",
    "report_pdf",
    "validate_response",
]


def validate_response(tag: Union[str, SchemaTag], raw_text: Optional[str]) -> ComparisonResult:
    """Sanitize raw generator output and decode it into the typed result for ``tag``."""
    tag = SchemaTag.parse(tag)
    if raw_text is None or not raw_text.strip():
        raise EmptyUpstreamResponse(tag=tag.value)
    cleaned = sanitize(raw_text, tag=tag.value)
    return validate_payload(tag, cleaned, raw_length=len(raw_text))


def analyze(tag: Union[str, SchemaTag], raw_text: Optional[str]) -> Reconciliation:
    return reconcile(validate_response(tag, raw_text))


def report_pdf(result: ComparisonResult, generated_on: Optional[date] = None) -> bytes:
    report: RenderedReport = render_report(result, generated_on=generated_on)
    return render_pdf(report.pages, title=report.title, geometry=report.geometry)
