"""QR code rendering for session URLs."""

import base64
import io
import logging

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

logger = logging.getLogger(__name__)

DEFAULT_QR_SIZE = 300
DEFAULT_QR_BORDER = 2


class QRCodeError(RuntimeError):
    """Raised when a QR code image could not be produced."""

    pass


def build_session_url(base_url: str, session_id: str) -> str:
    return f"{base_url.rstrip('/')}/session/{session_id}"


def generate_qr_data_url(
    text: str,
    size: int = DEFAULT_QR_SIZE,
    border: int = DEFAULT_QR_BORDER,
) -> str:
    """Encode text as a black-on-white PNG QR code, returned as a data URL.

    The image is scaled to size x size pixels with nearest-neighbour
    resampling so modules stay crisp.

    Raises:
        QRCodeError: the text could not be encoded or the PNG not written.
    """
    try:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=border)
        qr.add_data(text)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white").get_image()
        image = image.convert("RGB").resize((size, size), Image.Resampling.NEAREST)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
    except Exception as exc:
        logger.exception("QR code generation failed")
        raise QRCodeError("Failed to generate QR code") from exc

    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
