# shop/domain/errors.py


class ShopError(Exception):
    """Base class for domain errors raised by the services."""


class ValidationError(ShopError):
    pass


class NotFound(ShopError):
    pass


class LineNotFound(NotFound):
    pass


class InvalidTransition(ShopError):
    def __init__(self, status: str, event: str):
        self.status = status
        self.event = event
        super().__init__(f"Cannot apply '{event}' to order in status '{status}'")


class OutOfStock(ShopError):
    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Only {available} items of product {product_id} available in stock"
        )


class RefundExceedsAvailable(ShopError):
    pass


class GatewayError(ShopError):
    """The payment processor rejected the call."""


class GatewayUnavailable(GatewayError):
    """The payment processor could not be reached (network error, timeout)."""


class ConcurrentModification(ShopError):
    pass


class SignatureVerificationFailed(ShopError):
    pass
