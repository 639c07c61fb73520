from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import relationship

from app.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    pharmacy_id = Column(Integer, ForeignKey("pharmacies.id"), nullable=False, index=True)

    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    is_prescription_required = Column(Boolean, nullable=False, default=False)

    # single source of truth for stock, stock_status is derived from it
    stock_quantity = Column(Integer, nullable=False, default=0)

    pharmacy = relationship("PharmacyModel")

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
    )
