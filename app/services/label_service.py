import io
import os

import qrcode
from PIL import Image, ImageDraw, ImageFont

from app.config import settings
from app.models.product import Product

# 2x1 inch shelf label at 300 DPI
DPI = 300
LABEL_SIZE = (2 * DPI, DPI)
MARGIN = 12

FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
]


def _font(size: int):
    for path in FONT_PATHS:
        if os.path.exists(path):
            return ImageFont.truetype(path, size)
    return ImageFont.load_default()


def label_url(product: Product) -> str:
    return f"{settings.BASE_URL.rstrip('/')}/products/{product.id}"


def _fit(draw: ImageDraw.ImageDraw, text: str, font, width: int) -> str:
    while len(text) > 3 and draw.textlength(text, font=font) > width:
        text = text[:-4] + "..."
    return text


def render_product_label(product: Product) -> bytes:
    """PNG label: QR code to the product page on the left, identifiers on the right."""
    width, height = LABEL_SIZE
    qr_side = height - 2 * MARGIN

    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=8, border=1)
    qr.add_data(label_url(product))
    qr.make(fit=True)
    code = qr.make_image(fill_color="black", back_color="white").convert("RGB").resize((qr_side, qr_side), Image.NEAREST)

    img = Image.new("RGB", LABEL_SIZE, "white")
    img.paste(code, (MARGIN, MARGIN))
    draw = ImageDraw.Draw(img)

    lines = [(36, product.sku or product.barcode or "", "#000000"), (28, product.name, "#333333")]
    if product.category:
        lines.append((22, product.category.name, "#666666"))
    lines.append((20, product.unit_of_measure, "#888888"))

    x = qr_side + 2 * MARGIN
    text_width = width - x - MARGIN
    y = MARGIN + 10
    for size, text, color in lines:
        if not text:
            continue
        font = _font(size)
        draw.text((x, y), _fit(draw, text, font, text_width), fill=color, font=font)
        y += size + max(6, size // 4)

    buf = io.BytesIO()
    img.save(buf, format="PNG", dpi=(DPI, DPI))
    return buf.getvalue()
