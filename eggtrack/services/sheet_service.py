"""
EggTrack Backend — Label Sheet
===============================

What:  Lays many labels out on one printable sheet.
How:   arrange() decides the order, then one of two renderers draws a grid
       of `columns` cells, each holding the QR of the link, the egg_id, the
       name and the cage:

           render_sheet_png  one Pillow image per page of MAX_PNG_ROWS rows
           render_sheet_pdf  reportlab A4 pages, rows flow onto new pages

Ordering:
    Ids listed in `order` come first, in that order. Every other entry
    follows in insertion order. Unknown and repeated ids are ignored; reset
    markers never appear on a sheet.
"""

import io
import logging
import math
from typing import List, Optional, Sequence

from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from eggtrack.exceptions import RenderError, ValidationError
from eggtrack.schemas.entry import Entry, visible_entries
from eggtrack.services.label_service import QR_PLACEHOLDER_TEXT, draw_qr_placeholder, wrap_text
from eggtrack.services.qr_service import image_to_png, make_qr_image_or_none

logger = logging.getLogger(__name__)

# PNG cell geometry, pixels
CELL_WIDTH = 320
CELL_HEIGHT = 400
CELL_PADDING = 16
CELL_QR_SIZE = 240
MAX_PNG_ROWS = 20

# PDF geometry, points
PAGE_MARGIN = 36
EMPTY_SHEET_TEXT = "No labels to print"

FONT_CANDIDATES = [
    "DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/Library/Fonts/Arial.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
]


def parse_order(raw: Optional[str]) -> List[str]:
    """Comma-separated entry ids from the `order` query parameter."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def arrange(entries: Sequence[Entry], order: Sequence[str] = ()) -> List[Entry]:
    """Printable entries in sheet order."""
    printable = visible_entries(list(entries))
    by_id = {entry.id: entry for entry in printable}

    arranged: List[Entry] = []
    placed = set()
    for entry_id in order:
        entry = by_id.get(entry_id)
        if entry is None or entry_id in placed:
            continue
        arranged.append(entry)
        placed.add(entry_id)

    arranged.extend(entry for entry in printable if entry.id not in placed)
    return arranged


# ══════════════════════════════════════════════════════════════════════════
# PNG
# ══════════════════════════════════════════════════════════════════════════


def _load_font(size: int):
    for path in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(path, size=size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _fit_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> str:
    if draw.textlength(text, font=font) <= max_width:
        return text
    while text and draw.textlength(text + "...", font=font) > max_width:
        text = text[:-1]
    return text + "..."


def _draw_cell(sheet: Image.Image, entry: Entry, left: int, top: int, fonts) -> None:
    title_font, text_font = fonts
    draw = ImageDraw.Draw(sheet)
    text_width = CELL_WIDTH - 2 * CELL_PADDING

    draw.rectangle(
        [left, top, left + CELL_WIDTH - 1, top + CELL_HEIGHT - 1],
        outline=(200, 200, 200),
    )

    qr_left = left + (CELL_WIDTH - CELL_QR_SIZE) // 2
    qr_top = top + CELL_PADDING
    qr = make_qr_image_or_none(entry.link or entry.egg_id)
    if qr is None:
        draw.rectangle(
            [qr_left, qr_top, qr_left + CELL_QR_SIZE - 1, qr_top + CELL_QR_SIZE - 1],
            outline=(150, 150, 150),
        )
        placeholder = _fit_text(draw, QR_PLACEHOLDER_TEXT, text_font, CELL_QR_SIZE - 8)
        width = draw.textlength(placeholder, font=text_font)
        draw.text(
            (qr_left + (CELL_QR_SIZE - width) / 2, qr_top + CELL_QR_SIZE // 2 - 10),
            placeholder,
            fill=(100, 100, 100),
            font=text_font,
        )
    else:
        qr = qr.resize((CELL_QR_SIZE, CELL_QR_SIZE), Image.NEAREST)
        sheet.paste(qr, (qr_left, qr_top))

    y = top + CELL_PADDING + CELL_QR_SIZE + 10
    lines = [
        (entry.egg_id, title_font),
        (entry.name, text_font),
        (f"Cage: {entry.cage}", text_font),
    ]
    for text, font in lines:
        text = _fit_text(draw, text, font, text_width)
        width = draw.textlength(text, font=font)
        draw.text((left + (CELL_WIDTH - width) / 2, y), text, fill=(0, 0, 0), font=font)
        box = draw.textbbox((0, 0), text or " ", font=font)
        y += (box[3] - box[1]) + 8


def png_page_count(entry_count: int, columns: int = 3) -> int:
    """Number of PNG pages a sheet of `entry_count` labels needs (at least 1)."""
    per_page = max(1, columns) * MAX_PNG_ROWS
    return max(1, math.ceil(entry_count / per_page))


def render_sheet_png(entries: Sequence[Entry], columns: int = 3, page: int = 1) -> bytes:
    """
    One page of the label sheet as a PNG.

    A page holds at most MAX_PNG_ROWS rows; `page` is 1-based.

    Raises:
        ValidationError: page is outside 1..png_page_count().
        RenderError: image encoding failed.
    """
    columns = max(1, columns)
    pages = png_page_count(len(entries), columns)
    if page < 1 or page > pages:
        raise ValidationError(
            message=f"Page must be between 1 and {pages}",
            field="page",
            context={"page": page, "pages": pages},
        )

    fonts = (_load_font(22), _load_font(18))
    per_page = columns * MAX_PNG_ROWS
    page_entries = list(entries[(page - 1) * per_page:page * per_page])

    if not page_entries:
        sheet = Image.new("RGB", (CELL_WIDTH, CELL_HEIGHT // 2), "white")
        draw = ImageDraw.Draw(sheet)
        draw.text((CELL_PADDING, CELL_PADDING), EMPTY_SHEET_TEXT, fill=(0, 0, 0), font=fonts[1])
    else:
        rows = math.ceil(len(page_entries) / columns)
        sheet = Image.new("RGB", (columns * CELL_WIDTH, rows * CELL_HEIGHT), "white")
        for index, entry in enumerate(page_entries):
            row, col = divmod(index, columns)
            _draw_cell(sheet, entry, col * CELL_WIDTH, row * CELL_HEIGHT, fonts)

    try:
        data = image_to_png(sheet)
    except OSError as e:
        raise RenderError(message="Failed to generate label sheet", context={"error": str(e)}) from e

    logger.info(
        "Rendered PNG sheet page %d/%d: %d labels, %d columns",
        page, pages, len(page_entries), columns,
    )
    return data


# ══════════════════════════════════════════════════════════════════════════
# PDF
# ══════════════════════════════════════════════════════════════════════════


def _first_line(text: str, font: str, size: float, width: float) -> str:
    return wrap_text(text, font, size, width, max_lines=1)[0]


def render_sheet_pdf(entries: Sequence[Entry], columns: int = 3) -> bytes:
    """
    Label sheet as an A4 PDF.

    Raises:
        RenderError: reportlab failed to build the document.
    """
    columns = max(1, columns)
    page_width, page_height = A4
    cell_width = (page_width - 2 * PAGE_MARGIN) / columns
    font_size = max(6.0, min(12.0, cell_width / 14))
    qr_size = cell_width - 16
    cell_height = qr_size + 3.6 * font_size + 16
    rows_per_page = max(1, int((page_height - 2 * PAGE_MARGIN) // cell_height))
    per_page = rows_per_page * columns

    qr_images = [make_qr_image_or_none(entry.link or entry.egg_id) for entry in entries]

    try:
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        pdf.setTitle("Egg labels")

        if not entries:
            pdf.setFont("Helvetica", 14)
            pdf.drawString(PAGE_MARGIN, page_height - PAGE_MARGIN - 14, EMPTY_SHEET_TEXT)
            pdf.showPage()

        for start in range(0, len(entries), per_page):
            page_entries = entries[start:start + per_page]
            for offset, entry in enumerate(page_entries):
                row, col = divmod(offset, columns)
                left = PAGE_MARGIN + col * cell_width
                top = page_height - PAGE_MARGIN - row * cell_height
                center_x = left + cell_width / 2

                pdf.setStrokeGray(0.8)
                pdf.rect(left, top - cell_height, cell_width, cell_height)
                qr_image = qr_images[start + offset]
                if qr_image is None:
                    draw_qr_placeholder(
                        pdf, center_x - qr_size / 2, top - 8 - qr_size, qr_size, font_size
                    )
                else:
                    pdf.drawImage(
                        ImageReader(qr_image),
                        center_x - qr_size / 2,
                        top - 8 - qr_size,
                        width=qr_size,
                        height=qr_size,
                    )

                y = top - 8 - qr_size - font_size
                text_width = cell_width - 8
                for text, font in (
                    (entry.egg_id, "Helvetica-Bold"),
                    (entry.name, "Helvetica"),
                    (f"Cage: {entry.cage}", "Helvetica"),
                ):
                    pdf.setFont(font, font_size)
                    pdf.drawCentredString(center_x, y, _first_line(text, font, font_size, text_width))
                    y -= font_size * 1.2
            pdf.showPage()

        pdf.save()
    except Exception as e:
        logger.error("Label sheet PDF failed: %s", str(e), exc_info=True)
        raise RenderError(message="Failed to generate label sheet", context={"error": str(e)}) from e

    logger.info("Rendered PDF sheet: %d labels, %d columns", len(entries), columns)
    return buffer.getvalue()
