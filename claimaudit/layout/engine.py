from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth

from claimaudit.errors import LayoutOverflow
from claimaudit.layout.styles import (
    BOTTOM_MARGIN,
    CELL_PADDING,
    MARGIN,
    PAGE_HEIGHT,
    PAGE_WIDTH,
    PANEL_PADDING,
    TABLE_STYLES,
    TOP_MARGIN,
    Color,
    TextStyle,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageGeometry:
    width: float = PAGE_WIDTH
    height: float = PAGE_HEIGHT
    top: float = TOP_MARGIN
    bottom: float = BOTTOM_MARGIN
    left: float = MARGIN
    right: float = MARGIN

    @property
    def content_width(self) -> float:
        return self.width - self.left - self.right

    @property
    def content_height(self) -> float:
        return self.height - self.top - self.bottom

    @property
    def bottom_limit(self) -> float:
        return self.height - self.bottom


@dataclass(frozen=True)
class LayoutCursor:
    page_number: int
    y: float

    def advance(self, amount: float) -> "LayoutCursor":
        return LayoutCursor(self.page_number, self.y + amount)


# --- Page descriptors ------------------------------------------------------
# Coordinates are points measured from the top-left corner of the page.


@dataclass(frozen=True)
class TextRun:
    text: str
    style: TextStyle
    offset: float = 0.0


@dataclass(frozen=True)
class TextBlock:
    x: float
    y: float
    height: float
    runs: Tuple[TextRun, ...]

    kind = "line"

    def texts(self) -> Iterator[str]:
        yield "".join(run.text for run in self.runs)


@dataclass(frozen=True)
class ParagraphBlock:
    x: float
    y: float
    width: float
    height: float
    lines: Tuple[str, ...]
    style: TextStyle

    kind = "paragraph"

    def texts(self) -> Iterator[str]:
        yield from self.lines


@dataclass(frozen=True)
class RuleBlock:
    x: float
    y: float
    width: float
    height: float
    color: Color

    kind = "rule"

    def texts(self) -> Iterator[str]:
        return iter(())


@dataclass(frozen=True)
class PanelBlock:
    x: float
    y: float
    width: float
    height: float
    children: Tuple[Union[TextBlock, ParagraphBlock], ...]
    fill: Optional[Color] = None
    stroke: Optional[Color] = None
    stroke_width: float = 0.0

    kind = "panel"

    def texts(self) -> Iterator[str]:
        for child in self.children:
            yield from child.texts()


@dataclass(frozen=True)
class TableCell:
    x: float
    width: float
    lines: Tuple[str, ...]
    align: str = "left"


@dataclass(frozen=True)
class TableRow:
    y: float
    height: float
    kind: str
    cells: Tuple[TableCell, ...]

    @property
    def text(self) -> str:
        return " | ".join(" ".join(cell.lines) for cell in self.cells)


@dataclass(frozen=True)
class TableBlock:
    x: float
    y: float
    width: float
    height: float
    rows: Tuple[TableRow, ...]

    kind = "table"

    def texts(self) -> Iterator[str]:
        for row in self.rows:
            yield row.text


Block = Union[TextBlock, ParagraphBlock, RuleBlock, PanelBlock, TableBlock]


@dataclass(frozen=True)
class Page:
    number: int
    blocks: Tuple[Block, ...]

    @property
    def used_height(self) -> float:
        return sum(block.height for block in self.blocks)

    @property
    def text(self) -> str:
        return "\n".join(text for block in self.blocks for text in block.texts())


# --- Content specs ---------------------------------------------------------

RunSpec = Tuple[str, TextStyle]


@dataclass(frozen=True)
class LineSpec:
    runs: Tuple[RunSpec, ...]
    indent: float = 0.0


@dataclass(frozen=True)
class ParagraphSpec:
    text: str
    style: TextStyle
    indent: float = 0.0


@dataclass(frozen=True)
class GapSpec:
    height: float


PanelContent = Union[LineSpec, ParagraphSpec, GapSpec]


@dataclass(frozen=True)
class Column:
    title: str
    width: Optional[float] = None
    align: str = "left"


@dataclass(frozen=True)
class Row:
    """One table row.

    When a row has fewer cells than the table has columns, its first cell
    spans the surplus columns (used for category headers and total rows).
    """

    cells: Tuple[str, ...]
    kind: str = "item"


@dataclass(frozen=True)
class _MeasuredRow:
    height: float
    kind: str
    cells: Tuple[TableCell, ...]

    def at(self, y: float) -> TableRow:
        return TableRow(y, self.height, self.kind, self.cells)


def text_width(text: str, style: TextStyle) -> float:
    return stringWidth(text, style.font, style.size)


def _break_wide(line: str, style: TextStyle, width: float) -> List[str]:
    if text_width(line, style) <= width:
        return [line]
    pieces: List[str] = []
    current = ""
    for char in line:
        if current and text_width(current + char, style) > width:
            pieces.append(current)
            current = char
        else:
            current += char
    pieces.append(current)
    return pieces


def wrap_text(text: str, style: TextStyle, width: float) -> Tuple[str, ...]:
    """Word-wrap to width; tokens wider than a line are broken by character."""
    lines: List[str] = []
    for chunk in (text or "").split("\n"):
        for line in simpleSplit(chunk, style.font, style.size, width) or [""]:
            lines.extend(_break_wide(line, style, width))
    return tuple(lines) or ("",)


def layout_runs(runs: Sequence[RunSpec]) -> Tuple[TextRun, ...]:
    placed: List[TextRun] = []
    offset = 0.0
    for text, style in runs:
        placed.append(TextRun(text, style, offset))
        offset += text_width(text, style)
    return tuple(placed)


def resolve_widths(columns: Sequence[Column], total: float) -> Tuple[float, ...]:
    fixed = sum(column.width for column in columns if column.width is not None)
    flexible = [column for column in columns if column.width is None]
    share = max(total - fixed, 0.0) / len(flexible) if flexible else 0.0
    return tuple(column.width if column.width is not None else share for column in columns)


class ReportLayout:
    """Builds the pages of one report.

    Owns the vertical cursor for a single render call; every placement
    method checks the remaining height and starts a new page before a block
    that would not fit.
    """

    def __init__(self, geometry: Optional[PageGeometry] = None) -> None:
        self.geometry = geometry or PageGeometry()
        self.cursor = LayoutCursor(1, self.geometry.top)
        self.overflows: List[LayoutOverflow] = []
        self._pages: List[Page] = []
        self._blocks: List[Block] = []

    @property
    def remaining(self) -> float:
        return self.geometry.bottom_limit - self.cursor.y

    @property
    def at_page_top(self) -> bool:
        return not self._blocks

    def new_page(self) -> None:
        if self.at_page_top:
            return
        self._pages.append(Page(self.cursor.page_number, tuple(self._blocks)))
        self._blocks = []
        self.cursor = LayoutCursor(self.cursor.page_number + 1, self.geometry.top)

    def space(self, amount: float) -> None:
        if self.at_page_top:
            return
        y = self.cursor.y + amount
        if y > self.geometry.bottom_limit:
            y = max(self.cursor.y, self.geometry.bottom_limit)
        self.cursor = LayoutCursor(self.cursor.page_number, y)

    def finish(self) -> Tuple[Page, ...]:
        if self._blocks or not self._pages:
            self._pages.append(Page(self.cursor.page_number, tuple(self._blocks)))
            self._blocks = []
        return tuple(self._pages)

    def _record_overflow(self, kind: str, height: float) -> None:
        overflow = LayoutOverflow(self.cursor.page_number, kind, height, self.remaining)
        self.overflows.append(overflow)
        logger.warning(
            "layout overflow: %s block of %.1fpt exceeds %.1fpt available on page %d; rendering anyway",
            kind,
            height,
            overflow.available,
            overflow.page_number,
        )

    def _place(self, height: float, kind: str) -> float:
        if height > self.remaining and not self.at_page_top:
            self.new_page()
        if height > self.remaining:
            self._record_overflow(kind, height)
        y = self.cursor.y
        self.cursor = self.cursor.advance(height)
        return y

    def _emit(self, block: Block) -> Block:
        self._blocks.append(block)
        return block

    # --- fixed-height lines ------------------------------------------------

    def line(self, *runs: RunSpec, indent: float = 0.0) -> TextBlock:
        if not runs:
            raise ValueError("a line needs at least one text run")
        height = max(style.leading for _, style in runs)
        y = self._place(height, "line")
        block = TextBlock(self.geometry.left + indent, y, height, layout_runs(runs))
        self._emit(block)
        return block

    def rule(self, color: Color, thickness: float) -> RuleBlock:
        y = self._place(thickness, "rule")
        block = RuleBlock(self.geometry.left, y, self.geometry.content_width, thickness, color)
        self._emit(block)
        return block

    # --- wrapped text ------------------------------------------------------

    def paragraph(self, text: str, style: TextStyle, indent: float = 0.0) -> List[ParagraphBlock]:
        width = self.geometry.content_width - indent
        lines = wrap_text(text, style, width)
        blocks: List[ParagraphBlock] = []
        while lines:
            fit = int(self.remaining // style.leading)
            if fit < 1 and not self.at_page_top:
                self.new_page()
                fit = int(self.remaining // style.leading)
            chunk, lines = lines[:max(fit, 1)], lines[max(fit, 1):]
            height = len(chunk) * style.leading
            y = self._place(height, "paragraph")
            block = ParagraphBlock(self.geometry.left + indent, y, width, height, chunk, style)
            self._emit(block)
            blocks.append(block)
        return blocks

    def panel(
        self,
        contents: Sequence[PanelContent],
        fill: Optional[Color] = None,
        stroke: Optional[Color] = None,
        stroke_width: float = 0.0,
        padding: float = PANEL_PADDING,
    ) -> PanelBlock:
        width = self.geometry.content_width
        inner_width = width - 2 * padding
        measured = []
        for spec in contents:
            if isinstance(spec, LineSpec):
                if not spec.runs:
                    raise ValueError("a panel line needs at least one text run")
                measured.append((spec, max(style.leading for _, style in spec.runs), None))
            elif isinstance(spec, ParagraphSpec):
                lines = wrap_text(spec.text, spec.style, inner_width - spec.indent)
                measured.append((spec, len(lines) * spec.style.leading, lines))
            else:
                measured.append((spec, spec.height, None))

        height = 2 * padding + sum(item_height for _, item_height, _ in measured)
        y = self._place(height, "panel")
        x = self.geometry.left + padding
        child_y = y + padding
        children: List[Union[TextBlock, ParagraphBlock]] = []
        for spec, item_height, lines in measured:
            if isinstance(spec, LineSpec):
                children.append(TextBlock(x + spec.indent, child_y, item_height, layout_runs(spec.runs)))
            elif isinstance(spec, ParagraphSpec):
                children.append(
                    ParagraphBlock(
                        x + spec.indent, child_y, inner_width - spec.indent, item_height, lines, spec.style
                    )
                )
            child_y += item_height

        block = PanelBlock(
            self.geometry.left, y, width, height, tuple(children), fill, stroke, stroke_width
        )
        self._emit(block)
        return block

    # --- tables ------------------------------------------------------------

    def _measure_row(self, row: Row, columns: Sequence[Column], widths: Tuple[float, ...]) -> _MeasuredRow:
        style, _ = TABLE_STYLES[row.kind]
        span = max(len(columns) - len(row.cells) + 1, 1)
        x = self.geometry.left
        cells: List[TableCell] = []
        for index, text in enumerate(row.cells):
            if index == 0:
                width = sum(widths[:span])
                if row.kind in ("summary", "total"):
                    align = "right"
                elif span > 1:
                    align = "left"
                else:
                    align = columns[0].align
            else:
                column = index + span - 1
                width = widths[column]
                align = columns[column].align
            lines = wrap_text(text, style, width - 2 * CELL_PADDING)
            cells.append(TableCell(x, width, lines, align))
            x += width
        tallest = max(len(cell.lines) for cell in cells) if cells else 1
        return _MeasuredRow(tallest * style.leading + 2 * CELL_PADDING, row.kind, tuple(cells))

    def table(self, columns: Sequence[Column], rows: Sequence[Row]) -> List[TableBlock]:
        widths = resolve_widths(columns, self.geometry.content_width)
        header = self._measure_row(Row(tuple(column.title for column in columns), "header"), columns, widths)
        body = [self._measure_row(row, columns, widths) for row in rows]
        table_width = sum(widths)
        blocks: List[TableBlock] = []
        segment: List[TableRow] = []

        def open_segment() -> None:
            segment.append(header.at(self.cursor.y))
            self.cursor = self.cursor.advance(header.height)

        def close_segment() -> None:
            if not segment:
                return
            block = TableBlock(
                self.geometry.left,
                segment[0].y,
                table_width,
                sum(row.height for row in segment),
                tuple(segment),
            )
            self._emit(block)
            blocks.append(block)
            segment.clear()

        first_need = header.height
        if body:
            first_need += body[0].height
            if body[0].kind == "group" and len(body) > 1:
                first_need += body[1].height
        if first_need > self.remaining and not self.at_page_top:
            self.new_page()
        if header.height > self.remaining:
            self._record_overflow("table-header", header.height)
        open_segment()

        for index, row in enumerate(body):
            need = row.height
            if row.kind == "group" and index + 1 < len(body):
                need += body[index + 1].height
            if need > self.remaining and len(segment) > 1:
                close_segment()
                self.new_page()
                open_segment()
            if row.height > self.remaining:
                self._record_overflow("table-row", row.height)
            segment.append(row.at(self.cursor.y))
            self.cursor = self.cursor.advance(row.height)

        close_segment()
        return blocks
