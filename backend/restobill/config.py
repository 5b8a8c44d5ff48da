# backend/restobill/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///restobill.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Combined GST rate (percent); split evenly into CGST/SGST intra-state
    GST_RATE_PERCENT = os.environ.get("GST_RATE_PERCENT", "5")

    # Invoice numbering: sequential probe bound, then insert retries on
    # (restaurant_id, invoice_number) unique violations
    INVOICE_NUMBER_MAX_PROBES = int(os.environ.get("INVOICE_NUMBER_MAX_PROBES", "100"))
    INVOICE_INSERT_ATTEMPTS = int(os.environ.get("INVOICE_INSERT_ATTEMPTS", "5"))

    INVOICE_DEFAULT_HSN_CODE = os.environ.get("INVOICE_DEFAULT_HSN_CODE", "996331")  # restaurant services
    INVOICE_DEFAULT_TERMS = os.environ.get(
        "INVOICE_DEFAULT_TERMS",
        "Thank you for your business! Please visit again.",
    )

    NOTIFICATION_LIST_LIMIT = int(os.environ.get("NOTIFICATION_LIST_LIMIT", "50"))
    TRIAL_ENDING_THRESHOLD_DAYS = int(os.environ.get("TRIAL_ENDING_THRESHOLD_DAYS", "3"))
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "INR")
