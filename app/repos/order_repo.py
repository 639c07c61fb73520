# app/repos/order_repo.py
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id, populate_existing=True)

    def update_order_if(self, order_id: int, conditions: Dict[str, Any], new_data: Dict[str, Any]) -> int:
        """
        Compare-and-set on the order row, e.g.
        UPDATE orders SET status = 'cancelled' WHERE id = 1 AND status = 'pending'
        """
        stmt = update(OrderModel).where(OrderModel.id == order_id)
        for column, expected in conditions.items():
            col = getattr(OrderModel, column)
            stmt = stmt.where(col.is_(None) if expected is None else col == expected)
        result = self.db.execute(
            stmt.values(**new_data).execution_options(synchronize_session=False)
        )
        return result.rowcount

    def list_orders(self, owner_column: str, owner_id: int, offset: int, limit: int) -> Tuple[List[OrderModel], int]:
        col = getattr(OrderModel, owner_column)
        total = self.db.execute(
            select(func.count()).select_from(OrderModel).where(col == owner_id)
        ).scalar_one()
        orders = self.db.execute(
            select(OrderModel)
            .where(col == owner_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return list(orders), total

    def count_by_status(self, owner_column: str, owner_id: int) -> Dict[str, int]:
        col = getattr(OrderModel, owner_column)
        rows = self.db.execute(
            select(OrderModel.status, func.count())
            .where(col == owner_id)
            .group_by(OrderModel.status)
        ).all()
        return {status: count for status, count in rows}

    def revenue(self, owner_column: str, owner_id: int, excluded_statuses: List[str]) -> Decimal:
        col = getattr(OrderModel, owner_column)
        total = self.db.execute(
            select(func.coalesce(func.sum(OrderModel.total_price), 0))
            .where(col == owner_id, OrderModel.status.notin_(excluded_statuses))
        ).scalar_one()
        return Decimal(str(total))

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
