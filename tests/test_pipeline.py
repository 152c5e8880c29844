from __future__ import annotations

import json
from datetime import date

import pytest

from claimaudit.adapters.mock_adapter import MockAdapter
from claimaudit.artifacts.writers import camel_case, result_payload
from claimaudit.errors import EmptyUpstreamResponse
from claimaudit.main import main
from claimaudit.models import SchemaTag
from claimaudit.pipeline import (
    MAX_FILE_SIZE_BYTES,
    ComparisonPipeline,
    DocumentError,
    guess_mime_type,
    load_document,
)


@pytest.fixture
def documents(tmp_path):
    first = tmp_path / "original.pdf"
    second = tmp_path / "supplement.png"
    first.write_bytes(b"%PDF-1.4 original")
    second.write_bytes(b"\x89PNG supplement")
    return first, second


class TestDocuments:

    def test_mime_types(self, tmp_path):
        assert guess_mime_type(tmp_path / "a.PDF") == "application/pdf"
        assert guess_mime_type(tmp_path / "b.jpeg") == "image/jpeg"

    def test_unsupported_type(self, tmp_path):
        with pytest.raises(DocumentError):
            guess_mime_type(tmp_path / "notes.docx")

    def test_missing_document(self, tmp_path):
        with pytest.raises(DocumentError):
            load_document(tmp_path / "missing.pdf", "DOCUMENT 1")

    def test_size_cap(self, tmp_path):
        big = tmp_path / "big.pdf"
        big.write_bytes(b"0" * (MAX_FILE_SIZE_BYTES + 1))
        with pytest.raises(DocumentError, match="too large"):
            load_document(big, "DOCUMENT 1")

    def test_document_part(self, documents):
        part = load_document(documents[1], "DOCUMENT 2: SUPPLEMENT RECORD")
        assert part.mime_type == "image/png"
        assert part.label == "DOCUMENT 2: SUPPLEMENT RECORD"


class TestMockPipeline:

    @pytest.mark.parametrize(
        "tag, file_name",
        [
            (SchemaTag.SUPPLEMENT_DIFF, "supplement-analysis-report.pdf"),
            (SchemaTag.NEGOTIATION_AUDIT, "negotiation-audit-report.pdf"),
            (SchemaTag.VALUATION_AUDIT, "valuation-audit-report.pdf"),
        ],
    )
    def test_run_writes_artifacts(self, tmp_path, documents, tag, file_name):
        pipeline = ComparisonPipeline("mock", tmp_path, generated_on=date(2024, 7, 1))
        outcome = pipeline.run(tag, documents[0], documents[1], tmp_path / "run")

        artifacts = tmp_path / "run" / "artifacts"
        assert outcome.pdf_path == artifacts / file_name
        assert outcome.pdf_path.read_bytes().startswith(b"%PDF")
        assert (tmp_path / "run" / "raw" / "response.txt").read_text(encoding="utf-8").startswith("```json")
        payload = json.loads((artifacts / "result.json").read_text(encoding="utf-8"))
        assert payload["schemaTag"] == tag.value
        assert isinstance(json.loads((artifacts / "reconciliation_notes.json").read_text(encoding="utf-8")), list)
        assert (artifacts / "summary.md").read_text(encoding="utf-8").startswith("# ")

    def test_system_prompt_carries_schema(self, tmp_path):
        prompt = ComparisonPipeline("mock", tmp_path).system_prompt(SchemaTag.VALUATION_AUDIT)
        assert "CarFax" in prompt
        assert '"title": "ValuationAudit"' in prompt

    def test_empty_mock_response(self, tmp_path):
        response = MockAdapter(scenario="empty").complete("", [])
        with pytest.raises(EmptyUpstreamResponse):
            ComparisonPipeline("mock", tmp_path).process(SchemaTag.SUPPLEMENT_DIFF, response.raw_text, tmp_path)


class TestWriters:

    def test_camel_case(self):
        assert camel_case("unit_price") == "unitPrice"
        assert camel_case("source_a_value") == "cccValue"
        assert camel_case("vin") == "vin"

    def test_supplement_payload(self, tmp_path, documents):
        pipeline = ComparisonPipeline("mock", tmp_path)
        result = pipeline.run(SchemaTag.SUPPLEMENT_DIFF, documents[0], documents[1], tmp_path / "run")
        payload = result_payload(result.reconciliation.result)
        assert payload["financials"]["total"] == {"original": 1000.0, "added": 250.0, "final": 1250.0}
        assert payload["addedItems"][0]["itemType"] == "Part"
        assert payload["totalAddedValue"] == 250.0


class TestCli:

    def test_from_raw(self, tmp_path, supplement_raw, capsys):
        raw = tmp_path / "response.txt"
        raw.write_text(supplement_raw, encoding="utf-8")
        code = main(
            ["--mode", "mock", "--variant", "SupplementDiff", "--from-raw", str(raw), "--out", str(tmp_path / "runs")]
        )
        assert code == 0
        assert "supplement-analysis-report.pdf" in capsys.readouterr().out
        assert list((tmp_path / "runs").glob("*-supplement_diff/artifacts/supplement-analysis-report.pdf"))

    def test_validation_failure_exits_with_two(self, tmp_path, capsys):
        raw = tmp_path / "response.txt"
        raw.write_text('{"financials": {}}', encoding="utf-8")
        code = main(
            ["--mode", "mock", "--variant", "supplement_diff", "--from-raw", str(raw), "--out", str(tmp_path / "runs")]
        )
        assert code == 2
        err = capsys.readouterr().err
        assert "ValidationFailure" in err
        assert "Invalid field 'financials." in err
        saved = list((tmp_path / "runs").glob("*/raw/response.txt"))
        assert saved and saved[0].read_text(encoding="utf-8") == '{"financials": {}}'

    def test_documents_are_required_without_raw(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["--mode", "mock", "--variant", "SupplementDiff", "--out", str(tmp_path)])
        assert excinfo.value.code == 2

    def test_unknown_variant(self):
        with pytest.raises(SystemExit):
            main(["--mode", "mock", "--variant", "Appraisal"])

    def test_mock_run(self, tmp_path, documents):
        code = main(
            [
                "--mode", "mock",
                "--variant", "NegotiationAudit",
                "--first", str(documents[0]),
                "--second", str(documents[1]),
                "--out", str(tmp_path / "runs"),
            ]
        )
        assert code == 0
