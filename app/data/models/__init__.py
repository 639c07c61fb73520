#import all models so SQLAlchemy registers them in Base.metadata

from app.data.models.user import UserModel, FavouriteProductModel
from app.data.models.pharmacy import PharmacyModel
from app.data.models.product import ProductModel
from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.data.models.order import OrderModel, OrderItemModel
from app.data.models.notification import NotificationModel

__all__ = [
    "UserModel",
    "FavouriteProductModel",
    "PharmacyModel",
    "ProductModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "NotificationModel",
]
