from __future__ import annotations

import io

import qrcode

from ..core.constants import BARCODE_WIDTH, QR_PREFIX


def qr_payload(student_id: str) -> str:
    """Text encoded on a student's badge QR code."""
    return f"{QR_PREFIX}{student_id}"


def barcode_payload(student_id: str) -> str:
    return str(student_id).rjust(BARCODE_WIDTH, "0")


def render_qr_png(student_id: str, *, box_size: int = 8, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=box_size,
        border=border,
    )
    qr.add_data(qr_payload(student_id))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
