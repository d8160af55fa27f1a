import base64
from io import BytesIO
from typing import Optional

import qrcode
import qrcode.image.svg
from PIL import Image
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q

ERROR_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

FORMATS = ("png", "svg", "dataurl")


def _build(data: str, margin: int, error_level: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        error_correction=ERROR_LEVELS.get((error_level or "M").upper(), ERROR_CORRECT_M),
        box_size=10,
        border=margin,
    )
    qr.add_data(data)
    qr.make(fit=True)
    return qr


def make_png(
    data: str,
    size: int = 200,
    margin: int = 2,
    dark_color: str = "#000000",
    light_color: str = "#FFFFFF",
    error_level: str = "M",
) -> bytes:
    """Render ``data`` as a square PNG ``size`` pixels wide."""
    qr = _build(data, margin, error_level)
    rendered = qr.make_image(fill_color=dark_color, back_color=light_color)

    raw = BytesIO()
    rendered.save(raw)
    raw.seek(0)
    img = Image.open(raw).convert("RGB")
    if img.size != (size, size):
        img = img.resize((size, size), Image.NEAREST)

    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_svg(data: str, margin: int = 2, error_level: str = "M") -> bytes:
    qr = _build(data, margin, error_level)
    rendered = qr.make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buf = BytesIO()
    rendered.save(buf)
    return buf.getvalue()


def make_data_url(data: str, size: int = 200, **options) -> str:
    png = make_png(data, size=size, **options)
    return "data:image/png;base64," + base64.b64encode(png).decode()


def clamp_size(size: Optional[int], default: int = 200, maximum: int = 2000) -> int:
    if not size or size < 1:
        return default
    return min(size, maximum)
