"""
EggTrack Backend — Single Label Renderer
=========================================

What:  Printable label for one entry, as a PDF or as a minimal HTML page.
How:   reportlab canvas on an A4 page, everything centered between 50pt
       margins, top to bottom:

           name (or egg_id)     Helvetica-Bold 24, shrunk to 14 and wrapped
                                to at most two lines
           QR code of the link  200 x 200 pt (a framed placeholder when the
                                link is too long to encode)
           Cage: <cage>         Helvetica 16
           Egg ID: <egg_id>     Helvetica 14
           <link>               Helvetica 10, wrapped to the text width

       The canvas is created with invariant=1, so the PDF carries no
       creation timestamp or random document id.

The HTML variant is served by /api/pdf?format=html and whenever the PDF
cannot be produced.
"""

import io
import logging
from typing import List

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from eggtrack.exceptions import RenderError
from eggtrack.schemas.entry import Entry
from eggtrack.services.qr_service import make_qr_image_or_none, qr_data_uri
from eggtrack.templating import render_template

logger = logging.getLogger(__name__)

MARGIN = 50
QR_SIZE = 200
TITLE_FONT = ("Helvetica-Bold", 24)
TITLE_MIN_SIZE = 14
TITLE_MAX_LINES = 2
CAGE_FONT = ("Helvetica", 16)
EGG_ID_FONT = ("Helvetica", 14)
LINK_FONT = ("Helvetica", 10)
LINK_MAX_LINES = 20
QR_PLACEHOLDER_TEXT = "QR code unavailable"
ELLIPSIS = "..."


def label_title(entry: Entry) -> str:
    return entry.name or entry.egg_id


def _break_long_line(line: str, font: str, size: float, width: float) -> List[str]:
    pieces = []
    current, current_width = "", 0.0
    for char in line:
        char_width = stringWidth(char, font, size)
        if current and current_width + char_width > width:
            pieces.append(current)
            current, current_width = "", 0.0
        current += char
        current_width += char_width
    pieces.append(current)
    return pieces


def wrap_text(text: str, font: str, size: float, width: float, max_lines: int) -> List[str]:
    """
    Lines of `text` that each fit in `width` points.

    Breaks on spaces first and inside words (URLs) when it has to. Past
    `max_lines` the last kept line ends with an ellipsis.
    """
    lines: List[str] = []
    for line in simpleSplit(text, font, size, width) or [""]:
        if stringWidth(line, font, size) <= width:
            lines.append(line)
        else:
            lines.extend(_break_long_line(line, font, size, width))

    if len(lines) > max_lines:
        lines = lines[:max_lines]
        last = lines[-1]
        while last and stringWidth(last + ELLIPSIS, font, size) > width:
            last = last[:-1]
        lines[-1] = last + ELLIPSIS
    return lines


def fit_title(title: str, width: float) -> tuple:
    """(font size, lines) for the largest title size that needs no truncation."""
    font, size = TITLE_FONT
    while size > TITLE_MIN_SIZE:
        lines = wrap_text(title, font, size, width, max_lines=TITLE_MAX_LINES + 1)
        if len(lines) <= TITLE_MAX_LINES:
            return size, lines
        size -= 2
    return TITLE_MIN_SIZE, wrap_text(title, font, TITLE_MIN_SIZE, width, TITLE_MAX_LINES)


def draw_qr_placeholder(pdf: canvas.Canvas, left: float, bottom: float, size: float, font_size: float) -> None:
    pdf.setStrokeGray(0.6)
    pdf.rect(left, bottom, size, size)
    pdf.setFont("Helvetica", font_size)
    pdf.drawCentredString(left + size / 2, bottom + size / 2, QR_PLACEHOLDER_TEXT)


def render_label_pdf(entry: Entry) -> bytes:
    """
    A4 PDF label for `entry`.

    Raises:
        RenderError: reportlab failed to build the document.
    """
    qr_image = make_qr_image_or_none(entry.link or entry.egg_id)

    try:
        buffer = io.BytesIO()
        page_width, page_height = A4
        center_x = page_width / 2
        text_width = page_width - 2 * MARGIN

        pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        pdf.setTitle(f"Label {entry.egg_id}")

        title_size, title_lines = fit_title(label_title(entry), text_width)
        y = page_height - MARGIN - title_size
        pdf.setFont(TITLE_FONT[0], title_size)
        for index, line in enumerate(title_lines):
            if index:
                y -= title_size * 1.2
            pdf.drawCentredString(center_x, y, line)

        y -= 20 + QR_SIZE
        if qr_image is None:
            draw_qr_placeholder(pdf, center_x - QR_SIZE / 2, y, QR_SIZE, 12)
        else:
            pdf.drawImage(
                ImageReader(qr_image),
                center_x - QR_SIZE / 2,
                y,
                width=QR_SIZE,
                height=QR_SIZE,
            )

        y -= 30
        pdf.setFont(*CAGE_FONT)
        pdf.drawCentredString(center_x, y, f"Cage: {entry.cage}")

        y -= 24
        pdf.setFont(*EGG_ID_FONT)
        pdf.drawCentredString(center_x, y, f"Egg ID: {entry.egg_id}")

        if entry.link:
            y -= 24
            pdf.setFont(*LINK_FONT)
            for line in wrap_text(entry.link, LINK_FONT[0], LINK_FONT[1], text_width, LINK_MAX_LINES):
                pdf.drawCentredString(center_x, y, line)
                y -= LINK_FONT[1] + 2

        pdf.showPage()
        pdf.save()
    except Exception as e:
        logger.error("Label PDF for %s failed: %s", entry.egg_id, str(e), exc_info=True)
        raise RenderError(
            message="Failed to generate PDF",
            context={"egg_id": entry.egg_id, "error": str(e)},
        ) from e

    logger.info("Rendered label PDF for %s", entry.egg_id)
    return buffer.getvalue()


def render_label_html(entry: Entry) -> str:
    """Printable HTML label with the QR code inlined as a data URI."""
    return render_template(
        "label.html",
        entry=entry,
        title=label_title(entry),
        qr_src=qr_data_uri(entry.link or entry.egg_id),
        placeholder=QR_PLACEHOLDER_TEXT,
    )
