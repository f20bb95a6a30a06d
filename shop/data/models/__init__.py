#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from shop.data.models.user import UserModel
from shop.data.models.cart import CartModel
from shop.data.models.cart_item import CartItemModel
from shop.data.models.order import OrderModel
from shop.data.models.webhook_event import WebhookEventModel

__all__ = ["UserModel", "CartModel", "CartItemModel", "OrderModel", "WebhookEventModel"]
