# backend/routewise/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/routewise.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///routewise.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tenant defaults used when no active parameters row exists
    ROUTEWISE_DEFAULT_CURRENCY = os.environ.get("ROUTEWISE_DEFAULT_CURRENCY", "HNL")
    ROUTEWISE_DEFAULT_TAX_PERCENTAGE = float(os.environ.get("ROUTEWISE_DEFAULT_TAX_PERCENTAGE", "15"))  # ISV
    ROUTEWISE_DEFAULT_PAYMENT_TERMS_DAYS = int(os.environ.get("ROUTEWISE_DEFAULT_PAYMENT_TERMS_DAYS", "30"))
    ROUTEWISE_DEFAULT_MARKUP = float(os.environ.get("ROUTEWISE_DEFAULT_MARKUP", "20"))
    ROUTEWISE_QUOTATION_VALIDITY_DAYS = int(os.environ.get("ROUTEWISE_QUOTATION_VALIDITY_DAYS", "30"))
