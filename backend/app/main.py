#!/usr/bin/env python3
"""
Main FastAPI application for the CakeRaft billing backend.
"""

from contextlib import asynccontextmanager
from datetime import datetime
import math

from fastapi import BackgroundTasks, Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional

from .config import Config
from ..data.database import create_tables, get_db, get_session_factory
from ..schemas.catalog_models import CategoryIn, CategoryOut, CategoryUpdate, ProductIn, ProductOut, ProductUpdate
from ..schemas.checkout_models import BillOut, CheckoutRequest, LoyaltyCheckRequest, LoyaltySummaryOut, dump
from ..schemas.io_models import ErrorResponse, camelize, ok
from ..services import catalog_service, revenue_service
from ..services.archive_service import ArchiveSink, BillArchiver, LocalArchiveSink
from ..services.checkout_service import CheckoutService
from ..services.errors import CakeRaftError
from ..services.loyalty_service import LoyaltyService
from ..services.revenue_service import CsvRevenueSink, RevenueSink
from ..utils.logger import get_logger

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    logger.info("CakeRaft API ready")
    yield


# Initialize FastAPI app
app = FastAPI(
    title="CakeRaft Billing API",
    description="Billing, loyalty and revenue backend for the CakeRaft bakery",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_archive_sink() -> ArchiveSink:
    return LocalArchiveSink()


def get_revenue_sink() -> RevenueSink:
    return CsvRevenueSink()


@app.exception_handler(CakeRaftError)
async def cakeraft_error_handler(request, exc: CakeRaftError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(message=exc.message).model_dump())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request ({location}): {first.get('msg', 'malformed body')}"
    return JSONResponse(status_code=400, content=ErrorResponse(message=message).model_dump())


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# ----- Checkout -----

@app.post("/api/checkout", status_code=201)
def create_checkout(
    payload: CheckoutRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    archive_sink: ArchiveSink = Depends(get_archive_sink),
):
    result = CheckoutService(db).create_checkout(payload.items, payload.customer_info)

    # Runs after the response is sent; it can never turn this checkout into an error
    archiver = BillArchiver(session_factory, archive_sink)
    background_tasks.add_task(archiver.archive_safely, result.bill.id)

    return ok(
        dump(BillOut.model_validate(result.bill)),
        message="Checkout completed successfully!",
        loyalty=dump(LoyaltySummaryOut(**result.loyalty)),
    )


@app.get("/api/checkout/bills")
def list_bills(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    bills, total = revenue_service.list_bills(db, page, limit, search, start_date, end_date)
    return ok(
        [dump(BillOut.model_validate(bill)) for bill in bills],
        pagination={"current": page, "pages": math.ceil(total / limit), "total": total},
    )


@app.get("/api/checkout/bills/{bill_id}")
def get_bill(bill_id: int, db: Session = Depends(get_db)):
    return ok(dump(BillOut.model_validate(revenue_service.get_bill(db, bill_id))))


@app.get("/api/checkout/summary")
def sales_summary(db: Session = Depends(get_db)):
    return ok(camelize(revenue_service.sales_summary(db)))


@app.post("/api/checkout/loyalty/check")
def check_loyalty(payload: LoyaltyCheckRequest, db: Session = Depends(get_db)):
    service = LoyaltyService(db)
    status = service.check_loyalty_status(payload.customer_phone)

    potential = None
    if payload.subtotal and payload.subtotal > 0:
        potential = service.calculate_loyalty_discount(payload.subtotal, payload.customer_phone).to_dict()

    history = service.get_loyalty_history(payload.customer_phone).to_dict()
    return ok(
        jsonable_encoder(camelize({"status": status.to_dict(), "potential_discount": potential, "history": history}))
    )


# ----- Revenue -----

@app.get("/api/revenue/today")
def revenue_today(db: Session = Depends(get_db)):
    return ok(camelize(revenue_service.today_revenue(db)))


@app.get("/api/revenue/weekly")
def revenue_weekly(db: Session = Depends(get_db)):
    return ok(camelize(revenue_service.weekly_revenue(db)))


@app.get("/api/revenue/30days")
def revenue_30_days(db: Session = Depends(get_db)):
    return ok(camelize(revenue_service.last_30_days_revenue(db)))


@app.post("/api/revenue/export")
def export_revenue(db: Session = Depends(get_db), sink: RevenueSink = Depends(get_revenue_sink)):
    result = revenue_service.export_aged_revenue(db, sink)
    if not result.exported_days:
        return ok(message="No old revenue data found to export", exportedDays=0, deletedBills=0)
    return ok(
        message=f"Exported {result.exported_days} day(s) of revenue",
        exportedDays=result.exported_days,
        deletedBills=result.deleted_bills,
    )


# ----- Catalog -----

@app.get("/api/products/categories")
def list_categories(db: Session = Depends(get_db)):
    return ok([dump(CategoryOut.model_validate(c)) for c in catalog_service.list_categories(db)])


@app.post("/api/products/categories", status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    return ok(dump(CategoryOut.model_validate(catalog_service.create_category(db, payload))))


@app.put("/api/products/categories/{category_id}")
def update_category(category_id: int, payload: CategoryUpdate, db: Session = Depends(get_db)):
    return ok(dump(CategoryOut.model_validate(catalog_service.update_category(db, category_id, payload))))


@app.delete("/api/products/categories/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db)):
    catalog_service.delete_category(db, category_id)
    return ok(message="Category deleted")


@app.get("/api/products")
def list_products(
    category: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    products = catalog_service.list_products(db, category_id=category, search=search)
    return ok([dump(ProductOut.model_validate(p)) for p in products])


@app.get("/api/products/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    return ok(dump(ProductOut.model_validate(catalog_service.get_product(db, product_id))))


@app.post("/api/products", status_code=201)
def create_product(payload: ProductIn, db: Session = Depends(get_db)):
    return ok(dump(ProductOut.model_validate(catalog_service.create_product(db, payload))))


@app.put("/api/products/{product_id}")
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    return ok(dump(ProductOut.model_validate(catalog_service.update_product(db, product_id, payload))))


@app.delete("/api/products/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db)):
    catalog_service.deactivate_product(db, product_id)
    return ok(message="Product deleted")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
