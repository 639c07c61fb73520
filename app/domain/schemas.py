# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, List, Optional
from decimal import Decimal
from datetime import datetime

from app.domain.order_status import ActorType, DeliveryType, OrderStatus, PaymentMethod
from app.domain.stock import StockStatus


class Actor(BaseModel):
    """Already authenticated caller: a user or a pharmacy."""

    id: int
    type: ActorType


# =====================================================
# STOCK
# =====================================================
class StockAvailability(BaseModel):
    """Current stock of a product (the ledger view)."""

    product_id: int
    quantity: int
    status: StockStatus


# =====================================================
# CART
# =====================================================
class CartItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., gt=0, description="Product ID (must be > 0)")
    # quantity rules live in CartService so a bad value is a 400, not a 422
    quantity: int = Field(1, description="Quantity to add")


class CartItemUpdate(BaseModel):
    quantity: int


class LocalCartItem(BaseModel):
    """A line of a client-side cart built while offline."""

    product_id: int
    quantity: int


class CartSyncIn(BaseModel):
    items: List[LocalCartItem] = Field(default_factory=list)


class CartLineOut(BaseModel):
    product_id: int
    name: str
    price: Decimal
    quantity: int
    subtotal: Decimal
    stock_status: StockStatus


class CartOut(BaseModel):
    """Schema for the cart (response)."""

    cart_id: int
    user_id: int
    items: List[CartLineOut]
    item_count: int
    total_price: Decimal


class PharmacyGroupOut(BaseModel):
    pharmacy_id: int
    pharmacy_name: str
    items: List[CartLineOut]
    subtotal: Decimal


class CartSummaryOut(BaseModel):
    item_count: int
    total_price: Decimal
    pharmacies: List[PharmacyGroupOut]


# =====================================================
# ORDERS
# =====================================================
class OrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0, description="Product ID (must be > 0)")
    quantity: int


class OrderCreate(BaseModel):
    """Schema for placing an order directly from a product list."""

    pharmacy_id: int = Field(..., gt=0, description="Pharmacy ID (must be > 0)")
    items: List[OrderItemIn] = Field(..., min_length=1)
    delivery_address: str = Field(..., min_length=1)
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    payment_method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=1000)
    estimated_delivery: Optional[datetime] = None


class CheckoutIn(BaseModel):
    """Schema for checking out the cart lines of one pharmacy."""

    pharmacy_id: int = Field(..., gt=0, description="Pharmacy ID (must be > 0)")
    delivery_address: str = Field(..., min_length=1)
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    payment_method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=1000)


class ReasonIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class ReviewIn(BaseModel):
    rating: int
    comment: Optional[str] = None


class OrderItemOut(BaseModel):
    product_id: int
    quantity: int
    price_at_time: Decimal

    model_config = ConfigDict(from_attributes=True)


class ReviewOut(BaseModel):
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderOut(BaseModel):
    """Schema for an order (response)."""

    id: int
    order_code: str
    user_id: int
    pharmacy_id: int
    items: List[OrderItemOut]
    total_price: Decimal
    status: OrderStatus
    delivery_address: str
    delivery_type: DeliveryType
    payment_method: PaymentMethod
    payment_status: str
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    notes: Optional[str] = None
    review: Optional[ReviewOut] = None
    cancellation_reason: Optional[str] = None
    decline_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class OrderStatisticsOut(BaseModel):
    total_orders: int
    orders_by_status: Dict[str, int]
    total_revenue: Decimal


# =====================================================
# USERS
# =====================================================
class UserCreate(BaseModel):
    """Schema for creating a user."""

    id: int = Field(..., gt=0, description="User ID (must be > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="User name")


class UserRead(BaseModel):
    """Schema for a user (response)."""

    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class FavouritesOut(BaseModel):
    user_id: int
    product_ids: List[int]
