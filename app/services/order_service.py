# app/services/order_service.py
import math
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Tuple

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from app.data.models.order import OrderItemModel, OrderModel
from app.domain.errors import (
    Conflict,
    Forbidden,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    OutOfStock,
    ProductPharmacyMismatch,
    ValidationError,
)
from app.domain.order_status import (
    CANCELLABLE_STATUSES,
    DECLINABLE_STATUSES,
    ActorType,
    CancelledBy,
    DeliveryType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    can_transition,
)
from app.domain.schemas import Actor, OrderItemIn
from app.repos.order_repo import OrderRepo
from app.repos.product_repo import ProductRepo
from app.repos.user_repo import UserRepo
from app.services.cart_service import CartService
from app.services.lock_service import LockService
from app.services.notification_service import NotificationService
from app.services.stock_ledger import StockLedger
from app.utils.settings import (
    CHECKOUT_LOCK_TTL_SECONDS,
    DELIVERY_ESTIMATE_DAYS,
    PICKUP_ESTIMATE_DAYS,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)

MAX_REVIEW_COMMENT = 500
MAX_PAGE_SIZE = 100


class OrderService:
    """
    Order lifecycle: placement with stock reservation, then the status
    machine (confirm, decline, cancel, deliver, review).

    Stock is reserved item by item through the StockLedger. If one item
    fails, the items already reserved for this attempt are released
    before the error reaches the caller.
    Every status change is a compare-and-set on the current status, so two
    concurrent cancels cannot both hand the stock back.
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService,
        notification_service: NotificationService | None = None,
    ):
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)
        self.users = UserRepo(db)
        self.lock_service = lock_service
        self.notification_service = notification_service or NotificationService()
        self.ledger = StockLedger(db, self.notification_service)
        self.carts = CartService(db, self.ledger)

    # =====================================================
    # PLACEMENT
    # =====================================================
    def create_order(
        self,
        user_id: int,
        pharmacy_id: int,
        items: Iterable[OrderItemIn],
        delivery_address: str,
        payment_method: PaymentMethod,
        delivery_type: DeliveryType = DeliveryType.DELIVERY,
        notes: str | None = None,
        estimated_delivery: datetime | None = None,
    ) -> OrderModel:
        """
        1. validate pharmacy and every product (owner pharmacy, stock)
        2. freeze current prices and compute the total
        3. reserve stock (compensating release on failure)
        4. persist the order as pending
        5. drop the ordered products from the cart (best effort)
        """
        merged = self._merge_items(items)
        if not merged:
            raise ValidationError("Order must contain at least one product")

        token = uuid.uuid4().hex
        if not self.lock_service.acquire_checkout_lock(user_id, token, CHECKOUT_LOCK_TTL_SECONDS):
            raise Conflict("Another checkout is already in progress for this user")

        try:
            return self._place_order(
                user_id=user_id,
                pharmacy_id=pharmacy_id,
                items=merged,
                delivery_address=delivery_address,
                payment_method=PaymentMethod(payment_method),
                delivery_type=DeliveryType(delivery_type),
                notes=notes,
                estimated_delivery=estimated_delivery,
            )
        finally:
            try:
                self.lock_service.release_checkout_lock(user_id, token)
            except RedisError as e:
                # the lock expires on its own after CHECKOUT_LOCK_TTL_SECONDS
                logger.warning(f"Failed to release checkout lock of user {user_id}: {e}")

    def create_order_from_cart(
        self,
        user_id: int,
        pharmacy_id: int,
        delivery_address: str,
        payment_method: PaymentMethod,
        delivery_type: DeliveryType = DeliveryType.DELIVERY,
        notes: str | None = None,
    ) -> OrderModel:
        lines = self.carts.lines_for_pharmacy(user_id, pharmacy_id)
        if not lines:
            raise ValidationError("Cart has no products from this pharmacy")

        return self.create_order(
            user_id=user_id,
            pharmacy_id=pharmacy_id,
            items=[OrderItemIn(product_id=p, quantity=q) for p, q in lines],
            delivery_address=delivery_address,
            payment_method=payment_method,
            delivery_type=delivery_type,
            notes=notes,
        )

    def _place_order(
        self,
        user_id: int,
        pharmacy_id: int,
        items: List[Tuple[int, int]],
        delivery_address: str,
        payment_method: PaymentMethod,
        delivery_type: DeliveryType,
        notes: str | None,
        estimated_delivery: datetime | None,
    ) -> OrderModel:
        if not self.users.get_user(user_id):
            raise NotFound("User not found")
        if not self.products.get_pharmacy(pharmacy_id):
            raise NotFound("Pharmacy not found")

        validated: List[Tuple[int, int, Decimal]] = []
        total = Decimal("0.00")

        for product_id, quantity in items:
            if quantity < 1:
                raise ValidationError("Quantity must be at least 1")

            product = self.products.get_product(product_id, refresh=True)
            if not product:
                raise NotFound(f"Product with ID {product_id} not found")
            if product.pharmacy_id != pharmacy_id:
                raise ProductPharmacyMismatch(product.name)
            if product.stock_quantity <= 0:
                raise OutOfStock(f"Product {product.name} is out of stock")
            if product.stock_quantity < quantity:
                raise InsufficientStock(
                    product.stock_quantity, f"Insufficient stock for product {product.name}"
                )

            price = Decimal(product.price)
            total += price * quantity
            validated.append((product_id, quantity, price))

        if estimated_delivery is None:
            days = PICKUP_ESTIMATE_DAYS if delivery_type == DeliveryType.PICKUP else DELIVERY_ESTIMATE_DAYS
            estimated_delivery = datetime.now(timezone.utc) + timedelta(days=days)

        reserved: List[Tuple[int, int]] = []
        try:
            for product_id, quantity, _ in validated:
                self.ledger.reserve(product_id, quantity)
                reserved.append((product_id, quantity))

            order = OrderModel(
                order_code=OrderModel.generate_order_code(),
                user_id=user_id,
                pharmacy_id=pharmacy_id,
                status=OrderStatus.PENDING.value,
                total_price=total,
                delivery_address=delivery_address.strip(),
                delivery_type=delivery_type.value,
                payment_method=payment_method.value,
                payment_status=PaymentStatus.PENDING.value,
                estimated_delivery=estimated_delivery,
                notes=notes.strip() if notes else None,
                items=[
                    OrderItemModel(product_id=p, quantity=q, price_at_time=price)
                    for p, q, price in validated
                ],
            )
            created = self.repo.create_order(order)
        except Exception:
            self.repo.rollback()
            if reserved:
                logger.warning(
                    f"Order placement for user {user_id} failed, "
                    f"releasing {len(reserved)} reservation(s)"
                )
                self._release(reserved)
            raise

        logger.info(
            f"Order {created.order_code} created for user {user_id} at pharmacy "
            f"{pharmacy_id}, total {total}"
        )

        try:
            self.carts.remove_products(user_id, [p for p, _, _ in validated])
        except Exception as e:
            # the order stands even if the cart could not be cleaned up
            self.repo.rollback()
            logger.warning(f"Cart cleanup after order {created.order_code} failed: {e}")

        self.notification_service.notify(
            pharmacy_id,
            ActorType.PHARMACY.value,
            "New Order Received",
            f"Order #{created.order_code} was placed and is waiting for confirmation.",
        )

        return self.repo.get_order(created.id)

    # =====================================================
    # TRANSITIONS
    # =====================================================
    def cancel_order(self, actor: Actor, order_id: int, reason: str | None = None) -> OrderModel:
        order = self._get_visible_order(actor, order_id, "You can only cancel your own orders")
        current = OrderStatus(order.status)

        if current not in CANCELLABLE_STATUSES:
            raise InvalidTransition(current.value, OrderStatus.CANCELLED.value)

        cancelled_by = CancelledBy.USER if actor.type == ActorType.USER else CancelledBy.PHARMACY
        self._compare_and_set(
            order,
            current,
            {
                "status": OrderStatus.CANCELLED.value,
                "cancellation_reason": reason,
                "cancelled_by": cancelled_by.value,
            },
        )
        self._release((i.product_id, i.quantity) for i in order.items)

        logger.info(f"Order {order.order_code} cancelled by {cancelled_by.value}")

        message = f"Order #{order.order_code} has been cancelled."
        if reason:
            message += f" Reason: {reason}"
        if cancelled_by == CancelledBy.USER:
            self._notify_pharmacy(order, "Order Cancelled", message)
        else:
            self._notify_user(order, "Order Cancelled", message)

        return self.repo.get_order(order_id)

    def decline_order(self, actor: Actor, order_id: int, reason: str | None = None) -> OrderModel:
        if actor.type != ActorType.PHARMACY:
            raise Forbidden("Only pharmacies can decline orders")

        order = self._get_order(order_id)
        if order.pharmacy_id != actor.id:
            raise Forbidden("You can only decline your own orders")

        current = OrderStatus(order.status)
        if current not in DECLINABLE_STATUSES:
            raise InvalidTransition(current.value, OrderStatus.DECLINED.value)

        self._compare_and_set(
            order,
            current,
            {
                "status": OrderStatus.DECLINED.value,
                "decline_reason": reason,
                "cancelled_by": CancelledBy.PHARMACY.value,
            },
        )
        self._release((i.product_id, i.quantity) for i in order.items)

        logger.info(f"Order {order.order_code} declined by pharmacy {actor.id}")

        message = f"Your order #{order.order_code} was declined by the pharmacy."
        if reason:
            message += f" Reason: {reason}"
        self._notify_user(order, "Order Declined", message)

        return self.repo.get_order(order_id)

    def update_order_status(self, actor: Actor, order_id: int, new_status: OrderStatus) -> OrderModel:
        if actor.type != ActorType.PHARMACY:
            raise Forbidden("Only pharmacies can update order status")

        order = self._get_order(order_id)
        if order.pharmacy_id != actor.id:
            raise Forbidden("You can only update your own orders")

        new_status = OrderStatus(new_status)

        # these two give stock back, they go through their own paths
        if new_status == OrderStatus.CANCELLED:
            return self.cancel_order(actor, order_id)
        if new_status == OrderStatus.DECLINED:
            return self.decline_order(actor, order_id)

        current = OrderStatus(order.status)
        if not can_transition(current, new_status):
            raise InvalidTransition(current.value, new_status.value)

        values: Dict[str, Any] = {"status": new_status.value}
        if new_status == OrderStatus.DELIVERED:
            values["actual_delivery"] = datetime.now(timezone.utc)

        self._compare_and_set(order, current, values)
        logger.info(f"Order {order.order_code}: {current.value} -> {new_status.value}")

        if new_status == OrderStatus.CONFIRMED:
            self._notify_user(
                order,
                "Order Confirmed",
                f"Your order #{order.order_code} has been confirmed and is being prepared.",
            )
        elif new_status == OrderStatus.DELIVERED:
            self._notify_user(
                order,
                "Order Delivered",
                f"Your order #{order.order_code} has been delivered successfully.",
            )
        else:
            label = new_status.value.replace("_", " ")
            self._notify_user(order, "Order Update", f"Your order #{order.order_code} is now {label}.")

        return self.repo.get_order(order_id)

    def add_review(self, actor: Actor, order_id: int, rating: int, comment: str | None = None) -> OrderModel:
        if actor.type != ActorType.USER:
            raise Forbidden("Only users can add reviews")

        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        comment = comment.strip() if comment else None
        if comment and len(comment) > MAX_REVIEW_COMMENT:
            raise ValidationError(f"Review comment cannot exceed {MAX_REVIEW_COMMENT} characters")

        order = self._get_order(order_id)
        if order.user_id != actor.id:
            raise Forbidden("You can only review your own orders")

        if order.review_rating is not None:
            raise Conflict("This order has already been reviewed")
        if OrderStatus(order.status) != OrderStatus.DELIVERED:
            raise ValidationError("Only delivered orders can be reviewed")

        # one review per order: the row only changes while review_rating IS NULL
        rowcount = self.repo.update_order_if(
            order_id,
            {"status": OrderStatus.DELIVERED.value, "review_rating": None},
            {
                "review_rating": rating,
                "review_comment": comment,
                "reviewed_at": datetime.now(timezone.utc),
            },
        )
        if rowcount == 0:
            self.repo.rollback()
            raise Conflict("This order has already been reviewed")
        self.repo.commit()

        logger.info(f"Order {order.order_code} reviewed with rating {rating}")
        self._notify_pharmacy(
            order,
            "New Review",
            f"Order #{order.order_code} received a {rating}-star review.",
        )

        return self.repo.get_order(order_id)

    # =====================================================
    # QUERIES
    # =====================================================
    def get_order(self, actor: Actor, order_id: int) -> OrderModel:
        return self._get_visible_order(actor, order_id, "Access denied. You can only view your own orders")

    def list_orders(self, actor: Actor, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        if page < 1:
            raise ValidationError("Page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")

        orders, total = self.repo.list_orders(
            self._owner_column(actor), actor.id, offset=(page - 1) * limit, limit=limit
        )
        total_pages = math.ceil(total / limit) if total else 0

        return {
            "orders": orders,
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        }

    def statistics(self, actor: Actor) -> Dict[str, Any]:
        column = self._owner_column(actor)
        counts = self.repo.count_by_status(column, actor.id)

        return {
            "total_orders": sum(counts.values()),
            "orders_by_status": {s.value: counts.get(s.value, 0) for s in OrderStatus},
            "total_revenue": self.repo.revenue(
                column,
                actor.id,
                [OrderStatus.CANCELLED.value, OrderStatus.DECLINED.value],
            ),
        }

    # =====================================================
    # HELPERS
    # =====================================================
    @staticmethod
    def _merge_items(items: Iterable[OrderItemIn]) -> List[Tuple[int, int]]:
        """One line per product, repeated products are summed."""
        merged: "OrderedDict[int, int]" = OrderedDict()
        for item in items:
            # each line on its own, a negative line must not shrink another one
            if item.quantity < 1:
                raise ValidationError("Quantity must be at least 1")
            merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
        return list(merged.items())

    @staticmethod
    def _owner_column(actor: Actor) -> str:
        return "user_id" if actor.type == ActorType.USER else "pharmacy_id"

    def _get_order(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound("Order not found")
        return order

    def _get_visible_order(self, actor: Actor, order_id: int, denied: str) -> OrderModel:
        order = self._get_order(order_id)

        is_owner = (actor.type == ActorType.USER and order.user_id == actor.id) or (
            actor.type == ActorType.PHARMACY and order.pharmacy_id == actor.id
        )
        if not is_owner:
            raise Forbidden(denied)
        return order

    def _compare_and_set(self, order: OrderModel, expected: OrderStatus, values: Dict[str, Any]) -> None:
        rowcount = self.repo.update_order_if(order.id, {"status": expected.value}, values)
        if rowcount == 0:
            # somebody moved the order first, report against what it is now
            self.repo.rollback()
            fresh = self._get_order(order.id)
            raise InvalidTransition(fresh.status, values["status"])
        self.repo.commit()

    def _release(self, items: Iterable[Tuple[int, int]]) -> None:
        for product_id, quantity in items:
            try:
                self.ledger.release(product_id, quantity)
            except Exception as e:
                # keep going, the other products must still be released
                logger.error(f"Failed to release {quantity} of product {product_id}: {e}")

    def _notify_user(self, order: OrderModel, title: str, message: str) -> None:
        self.notification_service.notify(order.user_id, ActorType.USER.value, title, message)

    def _notify_pharmacy(self, order: OrderModel, title: str, message: str) -> None:
        self.notification_service.notify(order.pharmacy_id, ActorType.PHARMACY.value, title, message)
