# backend/pharmapos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmapos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Login handles map to "<handle>@<LOGIN_DOMAIN>" in the credential store
    LOGIN_DOMAIN = os.environ.get("LOGIN_DOMAIN", "marjoc.local")

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    PASSWORD_MIN_LENGTH = int(os.environ.get("PASSWORD_MIN_LENGTH", "6"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # "monthly" reports use a fixed lookback rather than calendar months
    REPORT_MONTHLY_LOOKBACK_DAYS = int(os.environ.get("REPORT_MONTHLY_LOOKBACK_DAYS", "30"))

    COMPANY_NAME = os.environ.get("COMPANY_NAME", "Marjoc Lda")
    CURRENCY_LABEL = os.environ.get("CURRENCY_LABEL", "Akz")
    LOW_STOCK_DEFAULT_MIN = int(os.environ.get("LOW_STOCK_DEFAULT_MIN", "0"))
