# app/domain/errors.py
"""
Domain failures raised by the services.

Each class carries the HTTP status the API layer answers with, so the
routers never have to guess. Messages are stable and safe to show to
the caller.
"""


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(DomainError):
    status_code = 404


class Unauthenticated(DomainError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class Forbidden(DomainError):
    status_code = 403


class ValidationError(DomainError):
    status_code = 400


class ProductPharmacyMismatch(ValidationError):
    def __init__(self, product_name: str):
        super().__init__(f"Product {product_name} does not belong to this pharmacy")
        self.product_name = product_name


class StockConflict(DomainError):
    status_code = 400


class OutOfStock(StockConflict):
    def __init__(self, message: str = "Product is currently out of stock"):
        super().__init__(message)


class InsufficientStock(StockConflict):
    def __init__(self, available: int, message: str | None = None):
        super().__init__(message or f"Only {available} items available in stock")
        self.available = available


class InvalidTransition(DomainError):
    status_code = 400

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot change order status from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class Conflict(DomainError):
    status_code = 409
