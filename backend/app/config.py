#!/usr/bin/env python3
"""
Configuration management for the CakeRaft billing backend.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_DATA_DIR = os.path.join(os.path.dirname(__file__), "..", "data")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration class for the application."""

    # Database
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"sqlite:///{os.path.abspath(os.path.join(_DATA_DIR, 'cakeraft.db'))}",
    )

    # Loyalty programme: every Nth cake purchase earns a percentage off the cakes
    LOYALTY_FREQUENCY = int(os.getenv("LOYALTY_FREQUENCY", 5))
    LOYALTY_DISCOUNT_PERCENTAGE = float(os.getenv("LOYALTY_DISCOUNT_PERCENTAGE", 10))

    # Bill numbering
    BILL_NUMBER_MAX_ATTEMPTS = int(os.getenv("BILL_NUMBER_MAX_ATTEMPTS", 10))
    BILL_NUMBER_MAX_BACKOFF_MS = float(os.getenv("BILL_NUMBER_MAX_BACKOFF_MS", 10))

    # Whether a bill total may go below zero when discounts overlap
    CLAMP_TOTAL_AT_ZERO = _env_bool("CLAMP_TOTAL_AT_ZERO", "false")

    # Post-commit archival
    ARCHIVE_ENABLED = _env_bool("ARCHIVE_ENABLED", "true")
    ARCHIVE_DIR = os.getenv("ARCHIVE_DIR", os.path.abspath(os.path.join(_DATA_DIR, "archive")))

    # Revenue export
    REVENUE_RETENTION_DAYS = int(os.getenv("REVENUE_RETENTION_DAYS", 30))
    REVENUE_EXPORT_PATH = os.getenv(
        "REVENUE_EXPORT_PATH",
        os.path.abspath(os.path.join(_DATA_DIR, "exports", "revenue_archive.csv")),
    )

    # Application
    SHOP_NAME = os.getenv("SHOP_NAME", "CakeRaft")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    @classmethod
    def debug_print(cls):
        print(f"[CONFIG] DATABASE_URL={cls.DATABASE_URL}")
        print(f"[CONFIG] LOYALTY every {cls.LOYALTY_FREQUENCY} cake purchases -> {cls.LOYALTY_DISCOUNT_PERCENTAGE}%")
        print(f"[CONFIG] BILL_NUMBER attempts={cls.BILL_NUMBER_MAX_ATTEMPTS} backoff<={cls.BILL_NUMBER_MAX_BACKOFF_MS}ms")
        print(f"[CONFIG] CLAMP_TOTAL_AT_ZERO={cls.CLAMP_TOTAL_AT_ZERO}")
        print(f"[CONFIG] ARCHIVE enabled={cls.ARCHIVE_ENABLED} dir={cls.ARCHIVE_DIR}")
        print(f"[CONFIG] REVENUE retention={cls.REVENUE_RETENTION_DAYS}d export={cls.REVENUE_EXPORT_PATH}")

    @classmethod
    def validate(cls):
        """Validate that the configured values are usable."""
        problems = []

        if cls.LOYALTY_FREQUENCY < 1:
            problems.append("LOYALTY_FREQUENCY must be at least 1")
        if not 0 <= cls.LOYALTY_DISCOUNT_PERCENTAGE <= 100:
            problems.append("LOYALTY_DISCOUNT_PERCENTAGE must be between 0 and 100")
        if cls.BILL_NUMBER_MAX_ATTEMPTS < 1:
            problems.append("BILL_NUMBER_MAX_ATTEMPTS must be at least 1")
        if cls.BILL_NUMBER_MAX_BACKOFF_MS < 0:
            problems.append("BILL_NUMBER_MAX_BACKOFF_MS cannot be negative")
        if cls.REVENUE_RETENTION_DAYS < 1:
            problems.append("REVENUE_RETENTION_DAYS must be at least 1")

        if problems:
            raise ValueError(f"Invalid configuration: {'; '.join(problems)}")

        return True

# Validate configuration on import
Config.validate()
