import csv
import os
from .database import SessionLocal, create_tables
from .models import Category, PriceType, Product

CATALOG_CSV_PATH = os.path.join(os.path.dirname(__file__), "raw", "catalog.csv")

def _parse_price(raw: str) -> float:
    return round(float(raw.replace("₹", "").replace("$", "").replace(",", "").strip()), 2)

def populate_catalog(db=None, csv_path: str = CATALOG_CSV_PATH) -> int:
    """Read catalog.csv and populate the categories and products tables.

    Returns the number of products created; an already populated catalog is
    left untouched.
    """
    own_session = db is None
    if own_session:
        # Ensure tables are created
        create_tables()
        db = SessionLocal()
    try:
        if db.query(Product).count() > 0:
            print("Products table is not empty. Skipping population.")
            return 0

        categories = {}
        created = 0
        with open(csv_path, mode='r', encoding='utf-8') as csvfile:
            reader = csv.DictReader(csvfile)
            for row in reader:
                name = row['category'].strip()
                if name not in categories:
                    categories[name] = Category(name=name, description="")
                    db.add(categories[name])
                product = Product(
                    name=row['item'].strip(),
                    description=row.get('description', '').strip(),
                    price=_parse_price(row['price']),
                    price_type=PriceType(row.get('price_type') or PriceType.fixed.value),
                    category=categories[name],
                )
                db.add(product)
                created += 1

        db.commit()
        print(f"Successfully populated the catalog with {created} products.")
        return created
    except Exception:
        db.rollback()
        raise
    finally:
        if own_session:
            db.close()

if __name__ == "__main__":
    populate_catalog()
