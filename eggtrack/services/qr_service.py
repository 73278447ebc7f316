"""
EggTrack Backend — QR Code Encoder
===================================

What:  Encodes an arbitrary string as a QR code PNG.
How:   qrcode with fixed parameters (ECC level M, box 8px, 2-module border),
       rendered through Pillow. No metadata or timestamps are written, so the
       same input always yields byte-identical PNG output.
"""

import base64
import io
import logging
from typing import Optional

import qrcode
from qrcode.exceptions import DataOverflowError
from PIL import Image

from eggtrack.exceptions import RenderError, ValidationError

logger = logging.getLogger(__name__)

QR_BOX_SIZE = 8
QR_BORDER = 2


def make_qr_image(data: str, box_size: int = QR_BOX_SIZE, border: int = QR_BORDER) -> Image.Image:
    """
    QR code for `data` as an RGB Pillow image.

    Raises:
        ValidationError: data does not fit in the largest QR version.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    try:
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        # qrcode 8 reports overflow as ValueError("Invalid version (was 41, ...)")
        raise ValidationError(
            message="Value is too long to encode as a QR code",
            field="link",
            context={"length": len(data)},
        ) from e

    img = qr.make_image(fill_color="black", back_color="white")
    # qrcode wraps the Pillow image in its own class
    if not isinstance(img, Image.Image):
        img = img.get_image()
    return img.convert("RGB")


def make_qr_image_or_none(data: str, box_size: int = QR_BOX_SIZE) -> Optional[Image.Image]:
    """QR image for `data`, or None when it cannot be encoded (labels draw a placeholder)."""
    try:
        return make_qr_image(data, box_size=box_size)
    except ValidationError as e:
        logger.warning("No QR code for a %d-char value: %s", len(data), e.message)
        return None


def image_to_png(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_qr_png(data: str) -> bytes:
    """
    PNG bytes of the QR encoding of the literal `data` string.

    Raises:
        ValidationError: data is empty or too long.
        RenderError: image encoding failed.
    """
    if not data:
        raise ValidationError(message="Missing link parameter", field="link")

    img = make_qr_image(data)
    try:
        return image_to_png(img)
    except OSError as e:
        logger.error("QR PNG encoding failed: %s", str(e))
        raise RenderError(message="Failed to generate QR code", context={"error": str(e)}) from e


def qr_data_uri(data: str) -> Optional[str]:
    """data: URI for embedding a QR code in HTML, or None if `data` cannot be encoded."""
    img = make_qr_image_or_none(data)
    if img is None:
        return None
    encoded = base64.b64encode(image_to_png(img)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
