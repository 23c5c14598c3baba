"""Renderização do payload de QR em imagem (data URL PNG).

O payload vem do driver como texto; clientes web exibem a imagem direto
num <img src="...">.
"""

from __future__ import annotations

import base64
from io import BytesIO

import qrcode

DATA_URL_PREFIX = "data:image/png;base64,"


def render_qr_png(payload: str, box_size: int = 10, border: int = 4) -> bytes:
    """Gera o PNG do QR code para o payload."""
    if not payload:
        raise ValueError("QR payload vazio")

    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    image = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def render_qr_data_url(payload: str) -> str:
    """Retorna `data:image/png;base64,...` para o payload."""
    encoded = base64.b64encode(render_qr_png(payload)).decode("ascii")
    return f"{DATA_URL_PREFIX}{encoded}"
