from decimal import Decimal
from typing import Any, Dict, Iterable, List, Tuple

from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.data.models.product import ProductModel
from app.domain.errors import Conflict, InsufficientStock, NotFound, OutOfStock, ValidationError
from app.domain.schemas import LocalCartItem
from app.domain.stock import is_purchasable
from app.repos.cart_repo import CartRepo
from app.repos.product_repo import ProductRepo
from app.repos.user_repo import UserRepo
from app.services.stock_ledger import StockLedger
from app.utils.logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0.00")


class CartService:
    """
    One cart per user, created lazily.
    The cart is soft state: lines that can no longer be bought are dropped
    on read instead of failing, the real stock check happens at checkout.
    commands (add, update, remove, clear, move, sync) modify state
    query (get, summary) read only, except for self-healing on get
    """

    def __init__(self, db: Session, ledger: StockLedger | None = None):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.users = UserRepo(db)
        self.ledger = ledger or StockLedger(db)

    #query
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self._get_or_create(user_id)

        items = list(cart.items)
        valid, total, products = self._evaluate(items)

        # persist only when something was out of bounds
        if len(valid) != len(items) or cart.total_price != total:
            dropped = [i for i in items if i not in valid]
            for item in dropped:
                logger.info(
                    f"Dropping product {item.product_id} (qty {item.quantity}) "
                    f"from cart {cart.id}, no longer purchasable"
                )
                cart.items.remove(item)
            self._save(cart, total)

        return self._to_dict(cart, valid, products, total)

    def summary(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            return {"item_count": 0, "total_price": ZERO, "pharmacies": []}

        valid, total, products = self._evaluate(list(cart.items))

        groups: Dict[int, Dict[str, Any]] = {}
        for item in valid:
            product = products[item.product_id]
            group = groups.get(product.pharmacy_id)
            if group is None:
                group = groups[product.pharmacy_id] = {
                    "pharmacy_id": product.pharmacy_id,
                    "pharmacy_name": product.pharmacy.name,
                    "items": [],
                    "subtotal": ZERO,
                }
            line = self._line(item, product)
            group["items"].append(line)
            group["subtotal"] += line["subtotal"]

        return {
            "item_count": len(valid),
            "total_price": total,
            "pharmacies": list(groups.values()),
        }

    #commands
    def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        product = self._get_purchasable_product(product_id, quantity)
        available = product.stock_quantity

        cart = self._get_or_create(user_id)
        line = self._find_line(cart, product_id)

        if line:
            new_quantity = line.quantity + quantity
            if new_quantity > available:
                more = max(available - line.quantity, 0)
                raise InsufficientStock(
                    more,
                    f"Cannot add {quantity} more items. Only {more} more available",
                )
            logger.info(
                f"Product {product_id} already in cart {cart.id}, "
                f"quantity {line.quantity} -> {new_quantity}"
            )
            line.quantity = new_quantity
        else:
            logger.info(f"Adding product {product_id} x{quantity} to cart {cart.id}")
            cart.items.append(CartItemModel(product_id=product_id, quantity=quantity))

        self._recalculate_and_save(cart)
        return self.get_cart(user_id)

    def update_item(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        cart = self._get_existing(user_id)
        line = self._find_line(cart, product_id)
        if not line:
            raise NotFound("Item not found in cart")

        self._get_purchasable_product(product_id, quantity)

        line.quantity = quantity
        self._recalculate_and_save(cart)
        return self.get_cart(user_id)

    def remove_item(self, user_id: int, product_id: int) -> Dict[str, Any]:
        cart = self._get_existing(user_id)
        line = self._find_line(cart, product_id)
        if not line:
            raise NotFound("Item not found in cart")

        logger.info(f"Removing product {product_id} from cart {cart.id}")
        cart.items.remove(line)

        self._recalculate_and_save(cart)
        return self.get_cart(user_id)

    def clear(self, user_id: int) -> Dict[str, Any]:
        cart = self._get_existing(user_id)

        cart.items.clear()
        self._save(cart, ZERO)

        logger.info(f"Cart {cart.id} cleared")
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": [],
            "item_count": 0,
            "total_price": ZERO,
        }

    def move_to_favourites(self, user_id: int, product_id: int) -> Dict[str, Any]:
        cart = self._get_existing(user_id)
        line = self._find_line(cart, product_id)
        if not line:
            raise NotFound("Item not found in cart")

        cart.items.remove(line)
        # same transaction as the cart update, a favourite is stored only once
        self.users.add_favourite(user_id, product_id)

        self._recalculate_and_save(cart)
        logger.info(f"Product {product_id} moved from cart {cart.id} to favourites")
        return self.get_cart(user_id)

    def sync(self, user_id: int, local_items: Iterable[LocalCartItem]) -> Dict[str, Any]:
        """
        Merge a cart built on the client (offline / before login).
        Unknown and out of stock products are skipped; quantities are capped
        by stock and never lower what the server cart already holds.
        """
        cart = self._get_or_create(user_id)

        for local in local_items:
            if local.quantity < 1:
                continue

            product = self.products.get_product(local.product_id, refresh=True)
            if not product or product.stock_quantity <= 0:
                logger.info(f"Sync of cart {cart.id}: skipping product {local.product_id}")
                continue

            capped = min(local.quantity, product.stock_quantity)
            line = self._find_line(cart, local.product_id)

            if line:
                line.quantity = max(line.quantity, capped)
            else:
                cart.items.append(CartItemModel(product_id=local.product_id, quantity=capped))

        self._recalculate_and_save(cart)
        return self.get_cart(user_id)

    def remove_products(self, user_id: int, product_ids: Iterable[int]) -> None:
        """Checkout cleanup: drop the lines that were just ordered."""
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            return

        ids = set(product_ids)
        ordered = [i for i in cart.items if i.product_id in ids]
        if not ordered:
            return

        for item in ordered:
            cart.items.remove(item)

        self._recalculate_and_save(cart)
        logger.info(f"Removed {len(ordered)} ordered products from cart {cart.id}")

    def lines_for_pharmacy(self, user_id: int, pharmacy_id: int) -> List[Tuple[int, int]]:
        """(product_id, quantity) of the cart lines sold by one pharmacy."""
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise NotFound("Cart not found")

        products = self.products.get_products(i.product_id for i in cart.items)
        return [
            (i.product_id, i.quantity)
            for i in cart.items
            if i.product_id in products and products[i.product_id].pharmacy_id == pharmacy_id
        ]

    #helpers
    def _get_or_create(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if cart:
            return cart

        if not self.users.get_user(user_id):
            raise NotFound("User not found")

        created = self.repo.create_cart(CartModel(user_id=user_id, total_price=ZERO, version=1))
        if created is None:
            # the insert failed for another reason than a concurrent create
            raise NotFound("User not found")
        logger.info(f"Created cart {created.id} for user {user_id}")
        return created

    def _get_existing(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise NotFound("Cart not found")
        return cart

    @staticmethod
    def _find_line(cart: CartModel, product_id: int) -> CartItemModel | None:
        for item in cart.items:
            if item.product_id == product_id:
                return item
        return None

    def _get_purchasable_product(self, product_id: int, quantity: int) -> ProductModel:
        product = self.products.get_product(product_id, refresh=True)
        if not product:
            raise NotFound("Product not found")
        if product.stock_quantity <= 0:
            raise OutOfStock()
        if product.stock_quantity < quantity:
            raise InsufficientStock(product.stock_quantity)
        return product

    def _evaluate(
        self, items: List[CartItemModel]
    ) -> Tuple[List[CartItemModel], Decimal, Dict[int, ProductModel]]:
        """Purchasable lines and their total against current stock and price."""
        products = self.products.get_products(i.product_id for i in items)

        valid = []
        total = ZERO
        for item in items:
            product = products.get(item.product_id)
            if product and is_purchasable(product.stock_quantity, item.quantity):
                total += Decimal(product.price) * item.quantity
                valid.append(item)

        return valid, total, products

    def _recalculate_and_save(self, cart: CartModel) -> None:
        _, total, _ = self._evaluate(list(cart.items))
        self._save(cart, total)

    def _save(self, cart: CartModel, total: Decimal) -> None:
        # Optimistic locking on the version column
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "total_price": total,
            },
        )

        if rowcount == 0:
            self.repo.rollback()
            raise Conflict("Cart was modified by another operation, please retry")

        self.repo.commit()

    def _line(self, item: CartItemModel, product: ProductModel) -> Dict[str, Any]:
        price = Decimal(product.price)
        return {
            "product_id": item.product_id,
            "name": product.name,
            "price": price,
            "quantity": item.quantity,
            "subtotal": price * item.quantity,
            "stock_status": self.ledger.status_of(product),
        }

    def _to_dict(
        self,
        cart: CartModel,
        items: List[CartItemModel],
        products: Dict[int, ProductModel],
        total: Decimal,
    ) -> Dict[str, Any]:
        lines = [self._line(i, products[i.product_id]) for i in items]
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": lines,
            "item_count": len(lines),
            "total_price": total,
        }
