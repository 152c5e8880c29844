from __future__ import annotations

import json
import logging
from dataclasses import replace

import pytest
from reportlab.lib.units import mm

from claimaudit.core import analyze
from claimaudit.gates.validator import validate_payload
from claimaudit.layout.engine import (
    Column,
    LineSpec,
    PageGeometry,
    ReportLayout,
    Row,
    TableBlock,
    text_width,
    wrap_text,
)
from claimaudit.layout.pdf import render_pdf
from claimaudit.layout.styles import CELL_PADDING, STYLES, TABLE_STYLES
from claimaudit.layout.templates import money, render_report
from claimaudit.models import SchemaTag

from conftest import make_item, make_supplement

TOLERANCE = 1e-6


def _assert_bounded(report):
    geometry = report.geometry
    for page in report.pages:
        for block in page.blocks:
            assert block.y >= geometry.top - TOLERANCE
            assert block.y + block.height <= geometry.bottom_limit + TOLERANCE
        assert page.used_height <= geometry.content_height + TOLERANCE


class TestMoney:

    def test_two_decimals_without_grouping(self):
        assert money(1250) == "$1250.00"

    def test_negative(self):
        assert money(-750) == "-$750.00"

    def test_negative_zero(self):
        assert money(-0.001) == "$0.00"


class TestSupplementReport:

    def test_sample_has_three_pages(self, supplement_raw, report_date):
        report = render_report(analyze(SchemaTag.SUPPLEMENT_DIFF, supplement_raw).result, report_date)
        assert report.page_count == 3
        assert report.file_name == "supplement-analysis-report"
        assert report.overflows == ()
        _assert_bounded(report)

    def test_cover_page_content(self, supplement_raw, report_date):
        report = render_report(analyze(SchemaTag.SUPPLEMENT_DIFF, supplement_raw).result, report_date)
        cover = report.pages[0].text
        assert "Supplement Analysis Report" in cover
        assert "Generated on: 07/01/2024" in cover
        assert "CLM-2024-00117" in cover
        assert "Original Estimate ($1000.00) ADDED ($250.00) = TOTAL ($1250.00)" in cover
        assert "IMPORTANT DISCLAIMER:" in cover

    def test_added_page_ranks_categories(self, supplement_raw, report_date):
        report = render_report(analyze(SchemaTag.SUPPLEMENT_DIFF, supplement_raw).result, report_date)
        added = report.pages[1].text
        assert added.index("FRONT BUMPER | $150.00") < added.index("REFINISH | $80.00")
        assert "ALIGNMENT | $" not in added
        assert "ADDED TAX | $20.00" in added
        assert "TOTAL ADDED VALUE | $250.00" in added

    def test_warranty_page_lists_eligible_parts(self, supplement_raw, report_date):
        report = render_report(analyze(SchemaTag.SUPPLEMENT_DIFF, supplement_raw).result, report_date)
        warranty = report.pages[2].text
        assert "NEEDS WARRANTY" in warranty
        assert "52119-06986" in warranty
        assert "Refinish bumper cover" not in warranty

    def test_warranty_page_without_parts(self, report_date):
        report = render_report(make_supplement(items=[make_item()]), report_date)
        assert "No parts in this supplement require warranty coverage." in report.pages[-1].text


class TestPagination:

    @pytest.fixture
    def large_report(self, report_date):
        items = [
            make_item(
                index,
                part_number=f"P-{index}" if index % 3 == 0 else "",
                operation="Repl" if index % 2 == 0 else "Rpr",
                reason_for_addition="Hidden damage found at teardown" if index % 5 == 0 else "",
            )
            for index in range(500)
        ]
        return render_report(make_supplement(items=items), report_date)

    def test_every_page_is_bounded(self, large_report):
        assert large_report.page_count > 3
        assert large_report.overflows == ()
        _assert_bounded(large_report)

    def test_page_numbers_are_sequential(self, large_report):
        assert [page.number for page in large_report.pages] == list(range(1, large_report.page_count + 1))

    def test_table_segments_repeat_the_header(self, large_report):
        for page in large_report.pages:
            for block in page.blocks:
                if isinstance(block, TableBlock):
                    assert block.rows[0].kind == "header"

    def test_group_rows_are_not_orphaned(self, large_report):
        segments = [block for page in large_report.pages for block in page.blocks if isinstance(block, TableBlock)]
        for segment in segments:
            assert segment.rows[-1].kind != "group"

    def test_every_item_is_rendered_once(self, large_report):
        text = "\n".join(page.text for page in large_report.pages)
        for index in (1, 137, 499):
            assert text.count(f"Line item {index} | Labor") == 1

    def test_warranty_rows_follow_the_items(self, large_report):
        text = "\n".join(page.text for page in large_report.pages)
        assert "P-6 | Line item 6 | Repl | $10.00" in text
        assert "P-3 | Line item 3 |" in text
        assert "P-9 | Line item 9 | Rpr" in text


class TestReportLayout:

    def test_new_page_on_empty_page_is_a_no_op(self):
        layout = ReportLayout()
        layout.new_page()
        layout.line(("Hello", STYLES["body"]))
        pages = layout.finish()
        assert len(pages) == 1
        assert pages[0].number == 1

    def test_finish_without_content_returns_one_page(self):
        assert len(ReportLayout().finish()) == 1

    def test_leading_space_is_dropped_at_page_top(self):
        layout = ReportLayout()
        layout.space(100)
        block = layout.line(("Hello", STYLES["body"]))
        assert block.y == layout.geometry.top

    def test_long_paragraph_continues_on_next_page(self):
        layout = ReportLayout()
        blocks = layout.paragraph("word " * 6000, STYLES["body"])
        pages = layout.finish()
        assert len(blocks) == len(pages) > 1
        assert layout.overflows == []
        for page in pages:
            assert page.used_height <= layout.geometry.content_height + TOLERANCE

    def test_row_that_does_not_fit_moves_with_header(self):
        geometry = PageGeometry(height=300.0)
        layout = ReportLayout(geometry)
        rows = [Row((f"row {index}", "1")) for index in range(40)]
        blocks = layout.table([Column("Name"), Column("Value", 60.0, "right")], rows)
        assert len(blocks) > 1
        assert all(block.rows[0].text == "Name | Value" for block in blocks)
        assert sum(len(block.rows) - 1 for block in blocks) == 40

    def test_oversized_row_is_recorded(self, caplog):
        geometry = PageGeometry(height=300.0)
        layout = ReportLayout(geometry)
        tall = Row(("\n".join(f"line {index}" for index in range(60)), "1"))
        with caplog.at_level(logging.WARNING, logger="claimaudit.layout.engine"):
            layout.table([Column("Name"), Column("Value", 60.0)], [Row(("short", "1")), tall])
        assert [overflow.block_kind for overflow in layout.overflows] == ["table-row"]
        assert layout.overflows[0].height > layout.overflows[0].available
        assert "layout overflow" in caplog.text
        assert len(layout.finish()) == 2

    def test_oversized_panel_is_rendered_anyway(self, report_date):
        result = replace(make_supplement(), vehicle_info="Sedan " * 4000)
        report = render_report(result, report_date)
        assert [overflow.block_kind for overflow in report.overflows] == ["panel"]
        assert report.overflows[0].page_number == 2


class TestOtherVariants:

    def test_negotiation_report(self, negotiation_raw, report_date):
        report = render_report(analyze(SchemaTag.NEGOTIATION_AUDIT, negotiation_raw).result, report_date)
        assert report.page_count == 2
        assert report.file_name == "negotiation-audit-report"
        cover, breakdown = report.pages[0].text, report.pages[1].text
        assert "Gap $2700.00 (21.6%)" in cover
        assert "Rental Analysis" in cover
        assert "Gap: 10 days, $20.00/day" in cover
        assert "Rental | $2400.00 | $1200.00 | $1200.00 | Partial" in breakdown
        assert "TOTAL | $12500.00 | $9800.00 | $2700.00" in breakdown
        assert "DISPUTED" in breakdown
        _assert_bounded(report)

    def test_negotiation_without_disputes(self, negotiation_payload, report_date):
        result = validate_payload(SchemaTag.NEGOTIATION_AUDIT, json.dumps(negotiation_payload))
        report = render_report(result, report_date)
        assert "No line item disputes were reported." in report.pages[-1].text
        assert "Rental Analysis" not in report.pages[0].text

    def test_valuation_report(self, valuation_raw, report_date):
        report = render_report(analyze(SchemaTag.VALUATION_AUDIT, valuation_raw).result, report_date)
        assert report.page_count == 2
        assert report.file_name == "valuation-audit-report"
        cover, breakdown = report.pages[0].text, report.pages[1].text
        assert "Delta -$750.00" in cover
        assert "Discrepancy 1,110 mi" in cover
        assert "Match status: SIGNIFICANT OUTLIERS" in cover
        assert "OUTLIERS FOUND | 2" in breakdown
        assert "MILEAGE" in breakdown


class TestPdf:

    def test_identical_pages_give_identical_bytes(self, supplement_raw, report_date):
        report = render_report(analyze(SchemaTag.SUPPLEMENT_DIFF, supplement_raw).result, report_date)
        first = render_pdf(report.pages, title=report.title)
        second = render_pdf(report.pages, title=report.title)
        assert first.startswith(b"%PDF")
        assert first == second


class TestWrapping:

    def test_unbroken_token_is_split_to_fit(self):
        style = STYLES["body"]
        lines = wrap_text("X" * 200, style, 80.0)
        assert len(lines) > 1
        assert "".join(lines) == "X" * 200
        assert all(text_width(line, style) <= 80.0 for line in lines)

    def test_words_still_break_at_spaces(self):
        assert wrap_text("alpha beta", STYLES["body"], 1000.0) == ("alpha beta",)

    def test_wide_cell_grows_the_row(self):
        layout = ReportLayout()
        columns = [Column("Code", 34 * mm), Column("Description")]
        (block,) = layout.table(columns, [Row(("X" * 200, "short"))])
        row = block.rows[1]
        code = row.cells[0]
        style, _ = TABLE_STYLES["item"]
        assert len(code.lines) > 1
        for line in code.lines:
            assert text_width(line, style) <= code.width - 2 * CELL_PADDING
        assert row.height >= len(code.lines) * style.leading


class TestEmptyRuns:

    def test_line_without_runs_is_rejected(self):
        with pytest.raises(ValueError):
            ReportLayout().line()

    def test_panel_line_without_runs_is_rejected(self):
        with pytest.raises(ValueError):
            ReportLayout().panel([LineSpec(())])
