from __future__ import annotations

from io import BytesIO
from typing import Optional, Sequence

from reportlab.pdfgen import canvas

from claimaudit.layout.engine import (
    Block,
    Page,
    PageGeometry,
    PanelBlock,
    ParagraphBlock,
    RuleBlock,
    TableBlock,
    TableRow,
    TextBlock,
)
from claimaudit.layout.styles import (
    CELL_PADDING,
    GRID_COLOR,
    GRID_WIDTH,
    PANEL_RADIUS,
    STYLES,
    TABLE_STYLES,
    Color,
    TextStyle,
)


def _rgb(color: Color):
    return tuple(channel / 255.0 for channel in color)


def _baseline(style: TextStyle, height: float) -> float:
    # distance from the top of a line box to the text baseline
    return (height + style.size * 0.7) / 2


class _PageWriter:
    def __init__(self, pdf: canvas.Canvas, geometry: PageGeometry) -> None:
        self.pdf = pdf
        self.geometry = geometry

    def y(self, top: float) -> float:
        return self.geometry.height - top

    def text(self, x: float, top: float, text: str, style: TextStyle, align: str = "left") -> None:
        self.pdf.setFont(style.font, style.size)
        self.pdf.setFillColorRGB(*_rgb(style.color))
        if align == "right":
            self.pdf.drawRightString(x, self.y(top), text)
        elif align == "center":
            self.pdf.drawCentredString(x, self.y(top), text)
        else:
            self.pdf.drawString(x, self.y(top), text)

    def draw(self, block: Block) -> None:
        if isinstance(block, TextBlock):
            self._line(block)
        elif isinstance(block, ParagraphBlock):
            self._paragraph(block)
        elif isinstance(block, RuleBlock):
            self._rule(block)
        elif isinstance(block, PanelBlock):
            self._panel(block)
        elif isinstance(block, TableBlock):
            for row in block.rows:
                self._row(row)

    def _line(self, block: TextBlock) -> None:
        for run in block.runs:
            self.text(block.x + run.offset, block.y + _baseline(run.style, block.height), run.text, run.style)

    def _paragraph(self, block: ParagraphBlock) -> None:
        leading = block.style.leading
        for index, line in enumerate(block.lines):
            top = block.y + index * leading + _baseline(block.style, leading)
            self.text(block.x, top, line, block.style)

    def _rule(self, block: RuleBlock) -> None:
        self.pdf.setStrokeColorRGB(*_rgb(block.color))
        self.pdf.setLineWidth(block.height)
        middle = self.y(block.y + block.height / 2)
        self.pdf.line(block.x, middle, block.x + block.width, middle)

    def _panel(self, block: PanelBlock) -> None:
        if block.fill is not None:
            self.pdf.setFillColorRGB(*_rgb(block.fill))
        if block.stroke is not None:
            self.pdf.setStrokeColorRGB(*_rgb(block.stroke))
            self.pdf.setLineWidth(block.stroke_width)
        self.pdf.roundRect(
            block.x,
            self.y(block.y + block.height),
            block.width,
            block.height,
            PANEL_RADIUS,
            stroke=1 if block.stroke is not None else 0,
            fill=1 if block.fill is not None else 0,
        )
        for child in block.children:
            self.draw(child)

    def _row(self, row: TableRow) -> None:
        style, fill = TABLE_STYLES[row.kind]
        bottom = self.y(row.y + row.height)
        self.pdf.setStrokeColorRGB(*_rgb(GRID_COLOR))
        self.pdf.setLineWidth(GRID_WIDTH)
        if fill is not None:
            self.pdf.setFillColorRGB(*_rgb(fill))
        for cell in row.cells:
            self.pdf.rect(cell.x, bottom, cell.width, row.height, stroke=1, fill=1 if fill is not None else 0)
        for cell in row.cells:
            if cell.align == "right":
                x = cell.x + cell.width - CELL_PADDING
            elif cell.align == "center":
                x = cell.x + cell.width / 2
            else:
                x = cell.x + CELL_PADDING
            for index, line in enumerate(cell.lines):
                top = row.y + CELL_PADDING + index * style.leading + _baseline(style, style.leading)
                self.text(x, top, line, style, cell.align)

    def footer(self, number: int, total: int) -> None:
        style = STYLES["footer"]
        self.text(
            self.geometry.width / 2,
            self.geometry.height - self.geometry.bottom / 2,
            f"Page {number} of {total}",
            style,
            "center",
        )


def render_pdf(pages: Sequence[Page], title: str = "", geometry: Optional[PageGeometry] = None) -> bytes:
    """Serialize laid-out pages to PDF bytes.

    The canvas runs in invariant mode, so identical pages produce identical
    bytes.
    """
    geometry = geometry or PageGeometry()
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(geometry.width, geometry.height), invariant=1)
    if title:
        pdf.setTitle(title)
    writer = _PageWriter(pdf, geometry)
    for page in pages:
        for block in page.blocks:
            writer.draw(block)
        writer.footer(page.number, len(pages))
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()
