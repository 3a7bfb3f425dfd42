import logging
import os

import qrcode
from qrcode.constants import ERROR_CORRECT_H

from config import Settings
from services.errors import CodeGenerationError
from .models import GeneratedCode

logger = logging.getLogger(__name__)


def build_target_url(sku_code: str, config: Settings) -> str:
    """Public resolution URL encoded in the QR code: {QR_BASE_URL}/{sku_code}."""
    return f"{config.QR_BASE_URL.rstrip('/')}/{sku_code}"


def generate_qr_code(sku_id: str, sku_code: str, config: Settings) -> GeneratedCode:
    """
    Render a PNG QR code pointing at the SKU's public guide page.
    Returns the public image path and the encoded target URL.
    """
    target_url = build_target_url(sku_code, config)
    filename = f"{sku_id}.png"
    output_path = os.path.join(config.QR_OUTPUT_DIR, filename)

    try:
        os.makedirs(config.QR_OUTPUT_DIR, exist_ok=True)
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, box_size=10, border=2)
        qr.add_data(target_url)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")
        image.save(output_path)
    except Exception as e:
        logger.error(f"Error generating QR code for SKU {sku_code}: {e}")
        raise CodeGenerationError(f"QR generation failed: {e}") from e

    return GeneratedCode(
        qr_code_url=f"{config.QR_PUBLIC_PATH.rstrip('/')}/{filename}",
        qr_target_url=target_url,
    )
