from __future__ import annotations

import base64
from io import BytesIO

import segno


def qr_png_data_uri(payload: str, *, scale: int = 5, border: int = 2) -> str:
    qr = segno.make_qr(payload, error="m")
    buffer = BytesIO()
    qr.save(buffer, kind="png", scale=scale, border=border, dark="#000000", light="#ffffff")
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode('ascii')}"
