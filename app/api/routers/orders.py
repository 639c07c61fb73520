# app/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_lock_service, get_notification_service, require_pharmacy, require_user
from app.data.database import get_db
from app.domain.schemas import (
    Actor,
    CheckoutIn,
    OrderCreate,
    OrderListOut,
    OrderOut,
    OrderStatisticsOut,
    OrderStatusUpdate,
    ReasonIn,
    ReviewIn,
)
from app.services.lock_service import LockService
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> OrderService:
    return OrderService(db, lock_service, notification_service)


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    actor: Actor = Depends(require_user),
    svc: OrderService = Depends(get_service),
):
    """
    Places an order for products of one pharmacy.
    Stock is reserved immediately; the pharmacy is notified asynchronously.
    """
    return svc.create_order(
        user_id=actor.id,
        pharmacy_id=payload.pharmacy_id,
        items=payload.items,
        delivery_address=payload.delivery_address,
        payment_method=payload.payment_method,
        delivery_type=payload.delivery_type,
        notes=payload.notes,
        estimated_delivery=payload.estimated_delivery,
    )


@router.post("/checkout", response_model=OrderOut, status_code=201)
def checkout_cart(
    payload: CheckoutIn,
    actor: Actor = Depends(require_user),
    svc: OrderService = Depends(get_service),
):
    """
    Orders the cart lines that belong to one pharmacy.
    """
    return svc.create_order_from_cart(
        user_id=actor.id,
        pharmacy_id=payload.pharmacy_id,
        delivery_address=payload.delivery_address,
        payment_method=payload.payment_method,
        delivery_type=payload.delivery_type,
        notes=payload.notes,
    )


@router.get("/", response_model=OrderListOut)
def list_orders(
    page: int = Query(1),
    limit: int = Query(10),
    actor: Actor = Depends(get_actor),
    svc: OrderService = Depends(get_service),
):
    result = svc.list_orders(actor, page=page, limit=limit)
    result["orders"] = [OrderOut.model_validate(o) for o in result["orders"]]
    return result


@router.get("/statistics", response_model=OrderStatisticsOut)
def order_statistics(actor: Actor = Depends(get_actor), svc: OrderService = Depends(get_service)):
    return svc.statistics(actor)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    actor: Actor = Depends(get_actor),
    svc: OrderService = Depends(get_service),
):
    return svc.get_order(actor, order_id)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    payload: ReasonIn,
    actor: Actor = Depends(get_actor),
    svc: OrderService = Depends(get_service),
):
    return svc.cancel_order(actor, order_id, payload.reason)


@router.post("/{order_id}/decline", response_model=OrderOut)
def decline_order(
    order_id: int,
    payload: ReasonIn,
    actor: Actor = Depends(require_pharmacy),
    svc: OrderService = Depends(get_service),
):
    return svc.decline_order(actor, order_id, payload.reason)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    actor: Actor = Depends(require_pharmacy),
    svc: OrderService = Depends(get_service),
):
    return svc.update_order_status(actor, order_id, payload.status)


@router.post("/{order_id}/review", response_model=OrderOut)
def add_review(
    order_id: int,
    payload: ReviewIn,
    actor: Actor = Depends(require_user),
    svc: OrderService = Depends(get_service),
):
    return svc.add_review(actor, order_id, payload.rating, payload.comment)
