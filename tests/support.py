"""
Shared fixtures for the CakeRaft test suites.

Every suite gets its own SQLite file in a temporary directory so tests never
touch the application database and can use real concurrent connections.
"""

import os
import shutil
import tempfile
from datetime import datetime

from backend.data.database import create_tables, make_engine, make_session_factory
from backend.data.models import Bill, BillItem, Category, PriceType, Product


class TempDatabaseMixin:
    """unittest mixin: fresh database per test, ``self.db`` is an open session."""

    def setUp(self):
        super().setUp()
        self.tmpdir = tempfile.mkdtemp(prefix="cakeraft-test-")
        self.engine = make_engine(f"sqlite:///{os.path.join(self.tmpdir, 'test.db')}")
        create_tables(bind=self.engine)
        self.Session = make_session_factory(self.engine)
        self.db = self.Session()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()
        shutil.rmtree(self.tmpdir, ignore_errors=True)
        super().tearDown()


def seed_catalog(db):
    """Create a small catalog and return its products keyed by a short name."""
    cakes = Category(name="Cakes", description="Celebration cakes")
    cupcakes = Category(name="Cupcakes")
    snacks = Category(name="Snacks")
    breads = Category(name="Breads")
    db.add_all([cakes, cupcakes, snacks, breads])

    products = {
        "chocolate_cake": Product(name="Chocolate Cake", price=500, price_type=PriceType.fixed, category=cakes),
        "truffle_cake": Product(name="Truffle Cake", price=800, price_type=PriceType.per_kg, category=cakes),
        "cupcakes": Product(name="Vanilla Cupcakes", price=180, price_type=PriceType.fixed, category=cupcakes),
        "cookie_jar": Product(name="Cookie Jar", price=200, price_type=PriceType.fixed, category=snacks),
        "sourdough": Product(name="Sourdough", price=300, price_type=PriceType.fixed, category=breads),
        "retired_bun": Product(name="Retired Bun", price=20, price_type=PriceType.fixed, category=breads, is_active=False),
    }
    db.add_all(products.values())
    db.commit()
    return products


_bill_counter = [0]


def add_bill(db, phone="9876543210", has_cake_items=True, created_at=None, total=500.0,
             bill_number=None, name="Asha", items=None, loyalty_applied=False, total_discount=0.0):
    """Insert a committed bill directly, bypassing checkout."""
    _bill_counter[0] += 1
    created_at = created_at or datetime.now()
    bill = Bill(
        bill_number=bill_number or f"TEST-{_bill_counter[0]:06d}",
        subtotal=total + total_discount,
        total_discount=total_discount,
        total=total,
        customer_name=name,
        customer_phone=phone,
        has_cake_items=has_cake_items,
        loyalty_applied=loyalty_applied,
        created_at=created_at,
    )
    for position, (product_id, quantity, price) in enumerate(items or []):
        bill.items.append(
            BillItem(
                position=position,
                product_id=product_id,
                name=f"Product {product_id}",
                quantity=quantity,
                price=price,
                line_subtotal=price * quantity,
            )
        )
    db.add(bill)
    db.commit()
    return bill
