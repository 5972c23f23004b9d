import base64
import io
from unittest.mock import patch

import pytest
from PIL import Image

from qrshare.services.qr_code import QRCodeError, build_session_url, generate_qr_data_url
from qrshare.services.session_id import (
    SESSION_ID_ALPHABET,
    generate_session_id,
    is_valid_session_id,
)


def _decode(data_url: str) -> Image.Image:
    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    return Image.open(io.BytesIO(base64.b64decode(data_url[len(prefix) :])))


def test_qr_data_url_is_png_of_requested_size():
    image = _decode(generate_qr_data_url("http://localhost:3000/session/abc1234567"))
    assert image.format == "PNG"
    assert image.size == (300, 300)


def test_qr_data_url_custom_size():
    image = _decode(generate_qr_data_url("https://example.com/session/x", size=120))
    assert image.size == (120, 120)


def test_qr_is_black_on_white():
    image = _decode(generate_qr_data_url("https://example.com")).convert("RGB")
    colors = {color for _, color in image.getcolors()}
    assert colors == {(0, 0, 0), (255, 255, 255)}


def test_qr_failure_raises_qr_code_error():
    with patch(
        "qrshare.services.qr_code.qrcode.QRCode.make",
        side_effect=ValueError("too much data"),
    ):
        with pytest.raises(QRCodeError):
            generate_qr_data_url("https://example.com")


@pytest.mark.parametrize(
    "base_url",
    ["http://localhost:3000", "http://localhost:3000/"],
)
def test_build_session_url_strips_trailing_slash(base_url):
    assert (
        build_session_url(base_url, "abc1234567")
        == "http://localhost:3000/session/abc1234567"
    )


def test_generated_ids_are_url_safe():
    for _ in range(50):
        session_id = generate_session_id()
        assert len(session_id) == 10
        assert set(session_id) <= set(SESSION_ID_ALPHABET)
        assert is_valid_session_id(session_id)


def test_generated_id_length_is_configurable():
    assert len(generate_session_id(21)) == 21
    with pytest.raises(ValueError):
        generate_session_id(8)


@pytest.mark.parametrize(
    "session_id, expected",
    [
        ("abc1234567", True),
        ("A-b_C-d_E-f", True),
        ("short", False),
        ("abc123456!", False),
        ("abc1234567\n", False),
        ("../../etc/passwd", False),
    ],
)
def test_is_valid_session_id(session_id, expected):
    assert is_valid_session_id(session_id) is expected
