# Overview: QR image files for material stock items (render, locate, remove).

from __future__ import annotations

import os
import re

import qrcode
from flask import current_app


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def qr_file_name(unique_id: str) -> str:
    """PNG file name derived from the sanitized unique id."""
    return f"{_UNSAFE_CHARS.sub('_', unique_id)}.png"


def qr_dir() -> str:
    path = current_app.config["QR_CODE_DIR"]
    os.makedirs(path, exist_ok=True)
    return path


def write_qr(unique_id: str) -> str:
    """
    Render unique_id as a PNG into QR_CODE_DIR and return its public URL path.

    NOTE: The file is written outside the DB transaction; a failed insert after
    this call leaves the image behind.
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(unique_id)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    file_name = qr_file_name(unique_id)
    img.save(os.path.join(qr_dir(), file_name))

    prefix = current_app.config.get("QR_CODE_URL_PREFIX", "/static/qrcodes").rstrip("/")
    return f"{prefix}/{file_name}"


def remove_qr(unique_id: str) -> bool:
    """Delete the item's QR image; returns False when there was no file."""
    path = os.path.join(current_app.config["QR_CODE_DIR"], qr_file_name(unique_id))
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True
