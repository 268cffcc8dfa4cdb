from .models import Product, Customer, Sale, SaleItem, PaymentDetails, StockMovement, MetalTransaction, User
from .errors import (
    ValidationError,
    NotFoundError,
    PaymentInsufficientError,
    InvalidTransitionError,
    StoreUnavailableError,
    FxUnavailableError,
    AuthorizationError,
    PermissionDeniedError,
)
from .receipt import Receipt, ReceiptLine
from .payment import PaymentResolver, MetalLot

__all__ = [
    "Product",
    "Customer",
    "Sale",
    "SaleItem",
    "PaymentDetails",
    "StockMovement",
    "MetalTransaction",
    "User",
    "Receipt",
    "ReceiptLine",
    "PaymentResolver",
    "MetalLot",
    "ValidationError",
    "NotFoundError",
    "PaymentInsufficientError",
    "InvalidTransitionError",
    "StoreUnavailableError",
    "FxUnavailableError",
    "AuthorizationError",
    "PermissionDeniedError",
]
