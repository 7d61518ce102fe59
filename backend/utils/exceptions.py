"""
Domain errors raised by services and routers.

They subclass HTTPException so route handlers can keep re-raising them
untouched while converting anything unexpected into a 500.
"""
from fastapi import HTTPException, status
from typing import Any, Dict, List, Optional


class MarketplaceError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ValidationError(MarketplaceError):
    """Malformed or missing input, with field-level detail"""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, str]]] = None, field: Optional[str] = None):
        self.errors = list(errors or [])
        if field and message:
            self.errors.append({"field": field, "message": message})
        self.message = message or self.default_detail
        super().__init__({"message": self.message, "errors": self.errors})


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class UserNotFound(NotFound):
    default_detail = "User not found"


class SupplierNotFound(NotFound):
    default_detail = "Supplier not found"


class VendorNotFound(NotFound):
    default_detail = "Vendor not found"


class ProductNotFound(NotFound):
    default_detail = "Product not found"


class OrderNotFound(NotFound):
    default_detail = "Order not found"


class NotificationNotFound(NotFound):
    default_detail = "Notification not found"


class Conflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists"


class InvalidTransition(Conflict):
    default_detail = "Invalid order status transition"

    def __init__(self, current_status: str, target_status: str):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(f"Cannot move order from '{current_status}' to '{target_status}'")


class InsufficientStock(Conflict):
    default_detail = "Insufficient stock"

    def __init__(self, product_id: str, requested: int, available: Optional[int] = None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__({
            "message": f"Insufficient stock for product {product_id}",
            "product_id": product_id,
            "requested": requested,
            "available": available,
        })


class DuplicateOrderNumber(Conflict):
    default_detail = "Order number already exists, please retry"


class DuplicateReview(Conflict):
    default_detail = "You have already reviewed this order"


class InvalidCoordinates(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Latitude must be within [-90, 90] and longitude within [-180, 180]"


class StorageError(MarketplaceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Storage operation failed"
