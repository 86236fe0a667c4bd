"""
CakeRaft Billing — System Documentation
=======================================

This module-style README documents the architecture, components, data flows
and operational practices of the CakeRaft billing backend. It can be imported
to surface sections programmatically or printed for human consumption.

How to use this file
--------------------
- View in an editor for structured reading.
- Run `python README.py` to print the outline.
- Import `README` in tools or scripts to surface sections.

Table of Contents
-----------------
1. System Overview
2. Architecture
3. Backend Components
4. Data & Persistence
5. Checkout Flow
6. Loyalty Programme
7. Bill Numbering
8. Archival & Revenue Export
9. Configuration & Environment
10. Testing Strategy
11. Security & PII Handling
12. Observability
13. Troubleshooting

"""

from __future__ import annotations

import textwrap


def section(title: str, body: str) -> str:
    return f"\n{title}\n{'-' * len(title)}\n{textwrap.dedent(body).strip()}\n"


SYSTEM_OVERVIEW = section(
    "1. System Overview",
    """
    CakeRaft is the point-of-sale backend of a bakery. Cashiers submit a cart
    and the customer's name and phone; the server prices the cart from the
    catalog, applies item discounts and the cake loyalty reward, assigns a
    human readable bill number and stores the bill in one transaction.
    Reports over the stored bills cover today, this week and the last 30 days.
    """,
)


ARCHITECTURE = section(
    "2. Architecture",
    """
    - API: FastAPI app (`backend/app/main.py`) with a `{success, message, data}` envelope.
    - Services: checkout, loyalty, bill numbering, archival, revenue, catalog.
    - Data: SQLite via SQLAlchemy; any SQLAlchemy URL works through `DATABASE_URL`.
    - Sinks: archived receipts and exported revenue go through small pluggable
      sink classes (local files by default).
    """,
)


BACKEND_COMPONENTS = section(
    "3. Backend Components",
    """
    app/
      - main.py: FastAPI app setup, routes, CORS, error envelope.
      - config.py: Env-driven configuration (loyalty cadence, numbering, sinks).

    services/
      - checkout_service.py: Cart parsing, server-side pricing, the checkout transaction.
      - loyalty_service.py: Cake purchase counting, milestone discount, history.
      - bill_numbering.py: Per-day counter with collision retry and timestamp fallback.
      - archive_service.py: Receipt rendering and post-commit archival.
      - revenue_service.py: Bill lookups, sales summary, revenue windows, export.
      - catalog_service.py: Category and product management.
      - errors.py: Error taxonomy mapped to HTTP status codes.

    data/
      - models.py/database.py: SQLAlchemy models and session management.
      - populate_db.py: Seed the catalog from `raw/catalog.csv`.

    scripts/
      - inspect_db.py: Read-only dump of catalog, bills and counters.
      - export_revenue.py: Run the aged revenue export from the shell or cron.
    """,
)


DATA_AND_PERSISTENCE = section(
    "4. Data & Persistence",
    """
    - Entities: Category, Product, Bill, BillItem, BillSequence.
    - Bills are immutable once committed; only `archive_url` may be filled in later.
    - Bill items snapshot name, unit price and discount at checkout time.
    - Products are soft-deleted so old bills keep their references.
    """,
)


CHECKOUT_FLOW = section(
    "5. Checkout Flow",
    """
    1) Validate items and customer details (400 on failure, nothing written).
    2) Load every referenced active product (404 if one is missing).
    3) Price each line: fixed price x quantity, or price/kg x weight x quantity.
    4) Apply per-item discounts, clamped to the line price.
    5) If any cake item is present, ask the loyalty engine about the cake subtotal.
    6) Allocate the bill number, insert the bill, commit (503 on commit failure).
    7) Schedule archival; its failure never affects the response.
    """,
)


LOYALTY = section(
    "6. Loyalty Programme",
    """
    - Every `LOYALTY_FREQUENCY`th cake purchase (default 5th) gets
      `LOYALTY_DISCOUNT_PERCENTAGE` (default 10%) off the cake items only.
    - The count is derived from stored bills with cake items for the phone number.
    - `POST /api/checkout/loyalty/check` previews status, potential discount and history.
    """,
)


BILL_NUMBERING = section(
    "7. Bill Numbering",
    """
    - Format `BILL-YYYYMMDD-NNNN`, restarting every day.
    - The `bill_sequences` row for the day is incremented atomically inside the
      checkout transaction; simultaneous checkouts queue on the database lock.
    - A taken number triggers a short random pause and the next sequence; after
      `BILL_NUMBER_MAX_ATTEMPTS` the number falls back to `BILL-YYYYMMDD-<ms digits>`.
    """,
)


ARCHIVAL_AND_EXPORT = section(
    "8. Archival & Revenue Export",
    """
    - Receipts are written to `ARCHIVE_DIR` after the response is sent.
    - `POST /api/revenue/export` or `python -m backend.scripts.export_revenue`
      appends one row per day older than `REVENUE_RETENTION_DAYS` to the CSV at
      `REVENUE_EXPORT_PATH`, then deletes those bills. A failed export deletes nothing.
    """,
)


CONFIG_ENV = section(
    "9. Configuration & Environment",
    """
    - `.env` compatible; keys: DATABASE_URL, LOYALTY_FREQUENCY, LOYALTY_DISCOUNT_PERCENTAGE,
      BILL_NUMBER_MAX_ATTEMPTS, BILL_NUMBER_MAX_BACKOFF_MS, CLAMP_TOTAL_AT_ZERO,
      ARCHIVE_ENABLED, ARCHIVE_DIR, REVENUE_RETENTION_DAYS, REVENUE_EXPORT_PATH,
      SHOP_NAME, LOG_LEVEL, CORS_ORIGINS.
    - Defaults live in `config.py`; invalid values fail at import.
    """,
)


TESTING = section(
    "10. Testing Strategy",
    """
    - unittest-style suites in `/tests`, run with pytest (`pip install -e .[test]`).
    - Each test gets its own SQLite file, so concurrency tests use real connections.
    - `python tests/run_tests.py --billing|--reports|--api|--all [--coverage]`.
    """,
)


SECURITY = section(
    "11. Security & PII Handling",
    """
    - `utils/security.py`: phone numbers are masked in every log line.
    - Prices are never taken from the client.
    """,
)


OBSERVABILITY = section(
    "12. Observability",
    """
    - Logs via `utils/logger.py` under the `cakeraft` logger, level from LOG_LEVEL.
    - Checkout start/commit, loyalty decisions, numbering retries and fallbacks,
      archival and export outcomes are all logged.
    """,
)


TROUBLESHOOTING = section(
    "13. Troubleshooting",
    """
    - 503 on checkout: the transaction was rolled back; the cashier can resubmit.
    - Fallback bill numbers in the log: the daily counter kept colliding; inspect
      `bill_sequences` with `python -m backend.scripts.inspect_db`.
    - Missing archive URLs: check the archival errors in the log; bills are unaffected.
    """,
)


def as_text() -> str:
    return "\n".join(
        [
            SYSTEM_OVERVIEW,
            ARCHITECTURE,
            BACKEND_COMPONENTS,
            DATA_AND_PERSISTENCE,
            CHECKOUT_FLOW,
            LOYALTY,
            BILL_NUMBERING,
            ARCHIVAL_AND_EXPORT,
            CONFIG_ENV,
            TESTING,
            SECURITY,
            OBSERVABILITY,
            TROUBLESHOOTING,
        ]
    )


def main() -> None:
    print(as_text())


if __name__ == "__main__":
    main()
