from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session
from shop.data.models.cart import CartModel, CART_ACTIVE
from shop.domain.errors import LineNotFound, NotFound, OutOfStock, ValidationError
from shop.repos.cart_repo import CartRepo
from shop.services.product_client import ProductClient
from shop.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Prosta implementacja cqrs dla domeny cart
    commands (add, update, remove, clear) modyfikuja stan przez ledger koszyka
    query (get, summary) tylko odczyt
    stan magazynu sprawdzany tutaj, ledger sam go nie waliduje
    """

    def __init__(self, db: Session, product_client: ProductClient):
        self.repo = CartRepo(db)
        self.product_client = product_client

    @staticmethod
    def _view(cart: CartModel) -> Dict[str, Any]:
        #dict przeksztalcany w jsona
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "status": cart.status,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                    "price": i.price,
                    "line_total": i.line_total,
                    "added_at": i.added_at,
                }
                for i in cart.items
            ],
            "total": cart.total,
            "item_count": cart.item_count,
            "version": cart.version,
            "updated_at": cart.updated_at,
        }

    @staticmethod
    def _empty_view(user_id: int) -> Dict[str, Any]:
        return {
            "cart_id": None,
            "user_id": user_id,
            "status": CART_ACTIVE,
            "items": [],
            "total": Decimal("0.00"),
            "item_count": 0,
        }

    def _available(self, product_id: int) -> tuple[dict, int]:
        pdata = self.product_client.fetch_product(product_id)
        if pdata.get("status", "active") != "active":
            raise ValidationError("Product is not available")
        return pdata, int(pdata.get("stock", 0))

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            return self._empty_view(user_id)
        return self._view(cart)

    def get_summary(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            return {"item_count": 0, "total": Decimal("0.00")}
        return {"item_count": cart.item_count, "total": cart.total}

    #commands
    def add_item(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1")

        logger.info(f"Pobieranie danych produktu {product_id} z product-service")
        pdata, stock = self._available(product_id)

        cart = self.repo.get_or_create_active_cart(user_id)

        existing = cart.find_product_line(product_id)
        requested = quantity + (existing.quantity if existing else 0)
        if requested > stock:
            raise OutOfStock(product_id, requested, stock)

        if existing:
            logger.info(
                f"Produkt {product_id} juz jest w koszyku {cart.id}, zwiekszam ilosc "
                f"z {existing.quantity} do {requested}"
            )
        cart.add_item(product_id, quantity, pdata["price"])
        self.repo.save(cart)

        logger.info(f"Produkt {product_id} dodany do koszyka {cart.id}, wersja {cart.version}")
        return self._view(cart)

    def update_item(self, user_id: int, line_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            raise NotFound("Cart not found")

        line = cart.find_line(line_id)
        if not line:
            raise LineNotFound(f"Item {line_id} not found in cart")

        _, stock = self._available(line.product_id)
        if quantity > stock:
            raise OutOfStock(line.product_id, quantity, stock)

        cart.update_quantity(line_id, quantity)
        self.repo.save(cart)
        return self._view(cart)

    def remove_item(self, user_id: int, line_id: int) -> Dict[str, Any]:
        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            return self._empty_view(user_id)

        #usuniecie nieistniejacej pozycji to no-op
        if not cart.remove_line(line_id):
            logger.info(f"Pozycja {line_id} nie istnieje w koszyku {cart.id}, nic do usuniecia")
            return self._view(cart)

        self.repo.save(cart)
        logger.info(f"Pozycja {line_id} usunieta z koszyka {cart.id}")
        return self._view(cart)

    def clear_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            return self._empty_view(user_id)

        if cart.items:
            cart.clear()
            self.repo.save(cart)
            logger.info(f"Koszyk {cart.id} wyczyszczony")
        return self._view(cart)
