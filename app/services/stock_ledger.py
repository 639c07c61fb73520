# app/services/stock_ledger.py
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.data.models.product import ProductModel
from app.domain.errors import InsufficientStock, NotFound, OutOfStock, ValidationError
from app.domain.order_status import ActorType
from app.domain.schemas import StockAvailability
from app.domain.stock import StockStatus, derive_stock_status
from app.repos.product_repo import ProductRepo
from app.services.notification_service import NotificationService
from app.utils.retry import db_retry
from app.utils.settings import LOW_STOCK_THRESHOLD
from app.utils.logging import get_logger

logger = get_logger(__name__)


class StockLedger:
    """
    Authoritative stock counter per product.

    -reserve: conditional decrement in a single UPDATE (no read-then-write)
    -release: increment in a single UPDATE
    -every operation commits on its own, transient db errors are retried
     (tenacity), business failures never are
    """

    def __init__(
        self,
        db: Session,
        notification_service: NotificationService | None = None,
        low_stock_threshold: int | None = None,
    ):
        self.repo = ProductRepo(db)
        self.notification_service = notification_service or NotificationService()
        self.low_stock_threshold = (
            LOW_STOCK_THRESHOLD if low_stock_threshold is None else low_stock_threshold
        )

    def describe(self, product: ProductModel) -> StockAvailability:
        return StockAvailability(
            product_id=product.id,
            quantity=product.stock_quantity,
            status=self.status_of(product),
        )

    def status_of(self, product: ProductModel) -> StockStatus:
        return derive_stock_status(product.stock_quantity, self.low_stock_threshold)

    @db_retry()
    def get_availability(self, product_id: int) -> StockAvailability:
        product = self.repo.get_product(product_id, refresh=True)
        if not product:
            raise NotFound("Product not found")
        return self.describe(product)

    def reserve(self, product_id: int, quantity: int) -> None:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        self._reserve(product_id, quantity)
        logger.info(f"Reserved {quantity} of product {product_id}")

        # the reservation is committed, the alert must not undo or repeat it
        try:
            self._alert_if_running_low(product_id)
        except Exception as e:
            logger.warning(f"Low stock check for product {product_id} failed: {e}")

    @db_retry()
    def _reserve(self, product_id: int, quantity: int) -> None:
        try:
            rowcount = self.repo.decrement_stock(product_id, quantity)

            if rowcount == 0:
                self.repo.rollback()
                # zero rows: find out why, for the caller's message
                product = self.repo.get_product(product_id, refresh=True)
                if not product:
                    raise NotFound(f"Product with ID {product_id} not found")
                if product.stock_quantity <= 0:
                    raise OutOfStock(f"Product {product.name} is out of stock")
                raise InsufficientStock(
                    product.stock_quantity,
                    f"Insufficient stock for product {product.name}, "
                    f"only {product.stock_quantity} available",
                )

            self.repo.commit()
        except OperationalError:
            self.repo.rollback()
            raise

    @db_retry()
    def release(self, product_id: int, quantity: int) -> None:
        try:
            rowcount = self.repo.increment_stock(product_id, quantity)
            self.repo.commit()
        except OperationalError:
            self.repo.rollback()
            raise

        if rowcount == 0:
            logger.warning(f"Release of {quantity} for missing product {product_id} ignored")
            return

        logger.info(f"Released {quantity} of product {product_id}")

    def _alert_if_running_low(self, product_id: int) -> None:
        product = self.repo.get_product(product_id, refresh=True)
        if not product:
            return

        status = self.status_of(product)
        if status == StockStatus.IN_STOCK:
            return

        if status == StockStatus.OUT_OF_STOCK:
            title = "Out of Stock"
            message = f"{product.name} is out of stock. Restock it to accept new orders."
        else:
            title = "Low Stock Alert"
            message = (
                f"{product.name} is running low in stock ({product.stock_quantity} remaining). "
                f"Please reorder soon to avoid stockouts."
            )

        self.notification_service.notify(product.pharmacy_id, ActorType.PHARMACY.value, title, message)
