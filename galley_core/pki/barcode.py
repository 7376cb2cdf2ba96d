from __future__ import annotations

import io

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M
from qrcode.image.pil import PilImage

DEFAULT_SIZE = 256


def render_qr_png(data: str, *, size: int = DEFAULT_SIZE) -> bytes:
    """Render ``data`` as a square PNG QR code of ``size`` pixels."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(image_factory=PilImage).get_image()
    image = image.resize((size, size), Image.Resampling.NEAREST)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
