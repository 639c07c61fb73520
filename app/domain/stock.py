# app/domain/stock.py
from enum import Enum


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


def derive_stock_status(quantity: int, low_stock_threshold: int) -> StockStatus:
    """stock_status is never stored, it always follows stock_quantity."""
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= low_stock_threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def is_purchasable(quantity: int, requested: int) -> bool:
    return quantity > 0 and quantity >= requested
