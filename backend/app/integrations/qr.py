"""
QR code generation for batch and unit scan links
"""
import base64
import secrets
from io import BytesIO

import qrcode
from qrcode.exceptions import DataOverflowError

from app.exceptions import ExternalSyncError


class QRCodeGenerator:
    """Issues opaque scan tokens and renders scan URLs as PNG QR codes"""

    def __init__(self, token_bytes: int = 16, box_size: int = 10, border: int = 4):
        self.token_bytes = token_bytes
        self.box_size = box_size
        self.border = border

    def generate_token(self) -> str:
        return secrets.token_hex(self.token_bytes)

    def render_scannable(self, url: str) -> bytes:
        """Render a URL as PNG bytes."""
        try:
            qr = qrcode.QRCode(
                version=1,
                error_correction=qrcode.constants.ERROR_CORRECT_L,
                box_size=self.box_size,
                border=self.border,
            )
            qr.add_data(url)
            qr.make(fit=True)
            img = qr.make_image(fill_color="black", back_color="white")

            buffer = BytesIO()
            img.save(buffer, format="PNG")
            return buffer.getvalue()
        except (DataOverflowError, ValueError, OSError) as e:
            raise ExternalSyncError("QR", f"Could not render QR code: {e}") from e

    def render_data_url(self, url: str) -> str:
        png = self.render_scannable(url)
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
