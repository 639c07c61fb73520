import random
import string
import time
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, CheckConstraint
from sqlalchemy.orm import relationship

from app.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_code = Column(String(32), nullable=False, unique=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)

    # pending, confirmed, declined, preparing, ready_for_pickup, picked_up, shipped, delivered, cancelled
    status = Column(String(20), nullable=False, default="pending", index=True)
    total_price = Column(Numeric(10, 2), nullable=False)

    delivery_address = Column(String, nullable=False)
    delivery_type = Column(String(10), nullable=False, default="delivery")
    payment_method = Column(String(20), nullable=False)
    payment_status = Column(String(10), nullable=False, default="pending")

    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    actual_delivery = Column(DateTime(timezone=True), nullable=True)
    notes = Column(String(1000), nullable=True)

    review_rating = Column(Integer, nullable=True)
    review_comment = Column(String(500), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    cancellation_reason = Column(String(500), nullable=True)
    decline_reason = Column(String(500), nullable=True)
    cancelled_by = Column(String(10), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_order_total_non_negative"),
        CheckConstraint(
            "review_rating IS NULL OR (review_rating >= 1 AND review_rating <= 5)",
            name="ck_order_review_rating",
        ),
    )

    @staticmethod
    def generate_order_code() -> str:
        """ORD-<epoch ms>-<6 chars>, e.g. ORD-1760000000000-K3F9QZ"""
        suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
        return f"ORD-{int(time.time() * 1000)}-{suffix}"

    @property
    def review(self):
        if self.review_rating is None:
            return None
        return {
            "rating": self.review_rating,
            "comment": self.review_comment,
            "created_at": self.reviewed_at,
        }


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    quantity = Column(Integer, nullable=False)
    # frozen at purchase time
    price_at_time = Column(Numeric(10, 2), nullable=False)

    order = relationship("OrderModel", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_quantity"),
        CheckConstraint("price_at_time >= 0", name="ck_order_item_price"),
    )
