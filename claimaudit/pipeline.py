from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, Optional

from claimaudit.adapters.gemini_adapter import GeminiAdapter
from claimaudit.adapters.llm_base import DocumentPart, LLMAdapter
from claimaudit.adapters.mock_adapter import MockAdapter
from claimaudit.artifacts.writers import write_notes, write_result, write_summary
from claimaudit.core import analyze
from claimaudit.domain.reconcile import Reconciliation
from claimaudit.gates.validator import load_schema
from claimaudit.layout.pdf import render_pdf
from claimaudit.layout.templates import RenderedReport, render_report
from claimaudit.models import SchemaTag
from claimaudit.utils.io import read_text, write_bytes, write_text

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_MB = 4
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
MIME_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


class DocumentError(ValueError):
    pass


@dataclass(frozen=True)
class VariantProfile:
    first_label: str
    second_label: str
    instruction: str


VARIANTS: Dict[SchemaTag, VariantProfile] = {
    SchemaTag.SUPPLEMENT_DIFF: VariantProfile(
        "DOCUMENT 1: ORIGINAL ESTIMATE",
        "DOCUMENT 2: SUPPLEMENT RECORD",
        "Analyze the differences. 'Estimate Totals' is the cumulative final state and 'Totals Summary' "
        "is supplement specific. Identify all S01+ items with their part numbers, operation codes and item types.",
    ),
    SchemaTag.NEGOTIATION_AUDIT: VariantProfile(
        "DOCUMENT 1: DEMAND PACKAGE",
        "DOCUMENT 2: COUNTER OFFER",
        "Compare the demand against the counter offer. Extract liability, rental terms, category totals "
        "and every disputed line item.",
    ),
    SchemaTag.VALUATION_AUDIT: VariantProfile(
        "DOCUMENT 1: CCC VALUATION REPORT",
        "DOCUMENT 2: CARFAX VALUATION REPORT",
        "Compare these two reports. Extract the VIN and vehicle details first, then find any outliers "
        "in value, mileage, condition or options.",
    ),
}


def guess_mime_type(path: Path) -> str:
    mime_type = MIME_TYPES.get(path.suffix.lower())
    if mime_type is None:
        raise DocumentError(f"Unsupported document type '{path.suffix}' for {path.name}. Use PDF, PNG or JPG.")
    return mime_type


def load_document(path: Path, label: str) -> DocumentPart:
    path = Path(path)
    if not path.is_file():
        raise DocumentError(f"Document not found: {path}")
    mime_type = guess_mime_type(path)
    size = path.stat().st_size
    if size > MAX_FILE_SIZE_BYTES:
        raise DocumentError(
            f"{path.name} is too large ({size / 1024 / 1024:.1f}MB). Limit is {MAX_FILE_SIZE_MB}MB."
        )
    return DocumentPart(label=label, data=path.read_bytes(), mime_type=mime_type)


@dataclass(frozen=True)
class PipelineResult:
    reconciliation: Reconciliation
    report: RenderedReport
    pdf_path: Path


class ComparisonPipeline:
    def __init__(self, mode: str, base_dir: Path, generated_on: Optional[date] = None) -> None:
        self.mode = mode
        self.base_dir = base_dir
        self.generated_on = generated_on
        self.prompts_dir = Path(__file__).resolve().parent / "prompts"

    def system_prompt(self, tag: SchemaTag) -> str:
        prompt = read_text(self.prompts_dir / f"{tag.slug}.md")
        schema = json.dumps(load_schema(tag), indent=2)
        return f"{prompt}\n{schema}\n"

    def run(self, tag: SchemaTag, first: Path, second: Path, run_dir: Path) -> PipelineResult:
        tag = SchemaTag.parse(tag)
        raw_text = self.generate(tag, first, second, run_dir / "raw")
        return self.process(tag, raw_text, run_dir)

    def generate(self, tag: SchemaTag, first: Path, second: Path, raw_dir: Path) -> str:
        profile = VARIANTS[tag]
        parts = [load_document(first, profile.first_label), load_document(second, profile.second_label)]
        response = self._adapter(tag).complete(self.system_prompt(tag), parts)
        write_text(raw_dir / "response.txt", response.raw_text)
        return response.raw_text

    def process(self, tag: SchemaTag, raw_text: str, run_dir: Path) -> PipelineResult:
        tag = SchemaTag.parse(tag)
        artifacts_dir = run_dir / "artifacts"
        artifacts_dir.mkdir(parents=True, exist_ok=True)

        reconciliation = analyze(tag, raw_text)
        result = reconciliation.result
        report = render_report(result, generated_on=self.generated_on)
        pdf_path = artifacts_dir / f"{report.file_name}.pdf"

        write_result(artifacts_dir / "result.json", result)
        write_notes(artifacts_dir / "reconciliation_notes.json", reconciliation.notes)
        write_summary(artifacts_dir / "summary.md", result, reconciliation.notes)
        write_bytes(pdf_path, render_pdf(report.pages, title=report.title, geometry=report.geometry))

        if report.overflows:
            logger.warning("%d block(s) overflowed their page in %s", len(report.overflows), report.file_name)
        print(
            f"[pipeline] {tag.value}: {report.page_count} page(s), "
            f"{len(reconciliation.notes)} reconciliation note(s) -> {pdf_path}"
        )
        return PipelineResult(reconciliation, report, pdf_path)

    def _adapter(self, tag: SchemaTag) -> LLMAdapter:
        if self.mode == "mock":
            return MockAdapter()
        return GeminiAdapter(tag=tag.value, instruction=VARIANTS[tag].instruction)
