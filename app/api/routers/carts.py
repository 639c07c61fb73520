#app/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_notification_service, require_user
from app.data.database import get_db
from app.domain.schemas import (
    Actor,
    CartItemIn,
    CartItemUpdate,
    CartOut,
    CartSummaryOut,
    CartSyncIn,
)
from app.services.cart_service import CartService
from app.services.notification_service import NotificationService
from app.services.stock_ledger import StockLedger

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> CartService:
    return CartService(db=db, ledger=StockLedger(db, notification_service))


@router.get("/", response_model=CartOut)
def get_cart(actor: Actor = Depends(require_user), svc: CartService = Depends(get_service)):
    return svc.get_cart(actor.id)


@router.get("/summary", response_model=CartSummaryOut)
def get_cart_summary(actor: Actor = Depends(require_user), svc: CartService = Depends(get_service)):
    return svc.summary(actor.id)


@router.post("/items", response_model=CartOut, status_code=201)
def add_item(
    payload: CartItemIn,
    actor: Actor = Depends(require_user),
    svc: CartService = Depends(get_service),
):
    return svc.add_item(actor.id, payload.product_id, payload.quantity)


@router.put("/items/{product_id}", response_model=CartOut)
def update_item(
    product_id: int,
    payload: CartItemUpdate,
    actor: Actor = Depends(require_user),
    svc: CartService = Depends(get_service),
):
    return svc.update_item(actor.id, product_id, payload.quantity)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    actor: Actor = Depends(require_user),
    svc: CartService = Depends(get_service),
):
    return svc.remove_item(actor.id, product_id)


@router.delete("/", response_model=CartOut)
def clear_cart(actor: Actor = Depends(require_user), svc: CartService = Depends(get_service)):
    return svc.clear(actor.id)


@router.post("/items/{product_id}/move-to-favourites", response_model=CartOut)
def move_to_favourites(
    product_id: int,
    actor: Actor = Depends(require_user),
    svc: CartService = Depends(get_service),
):
    return svc.move_to_favourites(actor.id, product_id)


@router.post("/sync", response_model=CartOut)
def sync_cart(
    payload: CartSyncIn,
    actor: Actor = Depends(require_user),
    svc: CartService = Depends(get_service),
):
    return svc.sync(actor.id, payload.items)
