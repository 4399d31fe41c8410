# Overview: CSV download responses for report endpoints and CSV text from import uploads.

from __future__ import annotations

import csv
import io
from typing import Iterable, Sequence

from flask import make_response, request

from .validation import ValidationError


def render_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return output.getvalue()


def csv_response(filename: str, headers: Sequence[str], rows: Iterable[Sequence]):
    """text/csv attachment; one header line then one line per row."""
    response = make_response(render_csv(headers, rows))
    response.headers["Content-Type"] = "text/csv; charset=utf-8"
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


def uploaded_csv_text() -> str:
    """CSV text from a multipart "file" field or a JSON {"csv": "..."} body."""
    upload = request.files.get("file")
    if upload is not None:
        try:
            return upload.read().decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV must be UTF-8 encoded")
    data = request.get_json(silent=True) or {}
    return data.get("csv") or ""
