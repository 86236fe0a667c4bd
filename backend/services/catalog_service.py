"""Category and product management for the shop catalog."""
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..data.models import Category, Product
from ..schemas.catalog_models import CategoryIn, CategoryUpdate, ProductIn, ProductUpdate
from ..utils.logger import get_logger
from .errors import NotFoundError, ValidationError

logger = get_logger("catalog")


def _commit(db: Session, conflict_message: str):
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError(conflict_message) from exc


# --- Categories ------------------------------------------------------------

def list_categories(db: Session, include_inactive: bool = False) -> List[Category]:
    query = db.query(Category)
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    return query.order_by(Category.name).all()


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if category is None:
        raise NotFoundError("Category not found")
    return category


def create_category(db: Session, payload: CategoryIn) -> Category:
    category = Category(**payload.model_dump())
    db.add(category)
    _commit(db, f"Category '{payload.name}' already exists")
    logger.info("Created category %s", category.name)
    return category


def update_category(db: Session, category_id: int, payload: CategoryUpdate) -> Category:
    category = get_category(db, category_id)
    for key, value in payload.model_dump(exclude_none=True).items():
        setattr(category, key, value.strip() if isinstance(value, str) else value)
    _commit(db, "Category name already exists")
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = get_category(db, category_id)
    in_use = db.query(Product).filter(Product.category_id == category.id, Product.is_active.is_(True)).count()
    if in_use:
        raise ValidationError(f"Cannot delete category with {in_use} active product(s)")
    if category.products:
        # Retired products still point here and old bills refer to them
        category.is_active = False
        db.commit()
        logger.info("Deactivated category %s", category.name)
        return
    db.delete(category)
    db.commit()
    logger.info("Deleted category %s", category.name)


# --- Products --------------------------------------------------------------

def list_products(db: Session, category_id: Optional[int] = None, search: Optional[str] = None) -> List[Product]:
    query = db.query(Product).options(joinedload(Product.category)).filter(Product.is_active.is_(True))
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(or_(func.lower(Product.name).like(pattern), func.lower(Product.description).like(pattern)))
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(db: Session, product_id: int) -> Product:
    """Active product by id; inactive products count as missing."""
    product = (
        db.query(Product)
        .options(joinedload(Product.category))
        .filter(Product.id == product_id, Product.is_active.is_(True))
        .first()
    )
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(db: Session, payload: ProductIn) -> Product:
    get_category(db, payload.category_id)
    product = Product(**payload.model_dump())
    db.add(product)
    db.commit()
    logger.info("Created product %s (%s, %.2f)", product.name, product.price_type.value, product.price)
    return get_product(db, product.id)


def update_product(db: Session, product_id: int, payload: ProductUpdate) -> Product:
    product = get_product(db, product_id)
    changes = payload.model_dump(exclude_none=True)
    if "category_id" in changes:
        get_category(db, changes["category_id"])
    if "price" in changes:
        changes["price"] = round(changes["price"], 2)
    for key, value in changes.items():
        setattr(product, key, value)
    db.commit()
    return product


def deactivate_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id)
    product.is_active = False
    db.commit()
    logger.info("Deactivated product %s", product.name)
