# app/api/routers/products.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.schemas import StockAvailability
from app.services.stock_ledger import StockLedger

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/{product_id}/availability", response_model=StockAvailability)
def get_availability(product_id: int, db: Session = Depends(get_db)):
    return StockLedger(db).get_availability(product_id)
