# backend/fairdesk/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Signs the session cookie that carries {id, username, role}
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///fairdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # QR images; None resolves to <package>/static/qrcodes in create_app()
    QR_CODE_DIR = os.environ.get("QR_CODE_DIR")
    QR_CODE_URL_PREFIX = "/static/qrcodes"

    # ALTER TABLE ... ADD COLUMN patches for databases created by older builds
    APPLY_COLUMN_PATCHES = _env_flag("APPLY_COLUMN_PATCHES", True)

    ACCOUNTING_PAGE_SIZE = 25
    PAYMENT_REPORT_PAGE_SIZE = 25
    AUDIT_LOG_PAGE_SIZE = 50

    # Tests lower this to keep fixture setup fast
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
