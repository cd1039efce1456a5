# backend/isms/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/isms.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///isms.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Days between a credit sale (or an installment payment) and the next due date
    INSTALLMENT_INTERVAL_DAYS = int(os.environ.get("INSTALLMENT_INTERVAL_DAYS", "30"))

    # When false, a decrement that would take stock below zero is rejected
    ALLOW_NEGATIVE_STOCK = _env_flag("ALLOW_NEGATIVE_STOCK")

    # bcrypt work factor for new password hashes
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Browser origins allowed to call the API (comma separated)
    CORS_ORIGINS = {
        o.strip()
        for o in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    }
