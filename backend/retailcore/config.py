# backend/retailcore/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the process by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retailcore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar used for sale_date, hourly buckets and "current month"
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Kolkata")

    # Batch reconciliation
    RECONCILE_PAGE_SIZE = int(os.environ.get("RECONCILE_PAGE_SIZE", "50"))
    RECONCILE_MAX_PAGE_SIZE = int(os.environ.get("RECONCILE_MAX_PAGE_SIZE", "500"))

    # Optimistic read-modify-write retries on shared aggregate/ledger rows
    AGGREGATE_RETRY_ATTEMPTS = int(os.environ.get("AGGREGATE_RETRY_ATTEMPTS", "5"))
    AGGREGATE_RETRY_BACKOFF = float(os.environ.get("AGGREGATE_RETRY_BACKOFF", "0.05"))

    # Point-of-sale guard (1.5 kg)
    MAX_SALE_WEIGHT_GRAMS = int(os.environ.get("MAX_SALE_WEIGHT_GRAMS", "1500"))
    BULK_SALE_MAX_ROWS = int(os.environ.get("BULK_SALE_MAX_ROWS", "500"))

    # Applied to staff that appear in sales but have no configured target
    DEFAULT_INCENTIVE_PERCENTAGE = float(os.environ.get("DEFAULT_INCENTIVE_PERCENTAGE", "0.5"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
