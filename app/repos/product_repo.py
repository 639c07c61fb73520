# app/repos/product_repo.py
from typing import Dict, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.data.models.pharmacy import PharmacyModel
from app.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int, refresh: bool = False) -> ProductModel | None:
        #refresh=True ignores the identity map, stock changes under our feet
        options = {"populate_existing": True} if refresh else {}
        return self.db.get(ProductModel, product_id, **options)

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, ProductModel]:
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(ProductModel)
            .where(ProductModel.id.in_(ids))
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {p.id: p for p in rows}

    def get_pharmacy(self, pharmacy_id: int) -> PharmacyModel | None:
        return self.db.get(PharmacyModel, pharmacy_id)

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        """
        UPDATE products SET stock_quantity = stock_quantity - :q
        WHERE id = :id AND stock_quantity >= :q

        One statement, so two buyers of the last unit cannot both win.
        Returns affected rows (0 = not enough stock or no such product).
        """
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock_quantity >= quantity)
            .values(stock_quantity=ProductModel.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def increment_stock(self, product_id: int, quantity: int) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(stock_quantity=ProductModel.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
