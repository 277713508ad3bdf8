"""
Custom exception classes
Provides consistent error responses for the checkout API
"""

from fastapi import HTTPException, status
from typing import Any, Dict, Optional

class StorefrontException(HTTPException):
    """Base exception class for the storefront application"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code

class BadRequestException(StorefrontException):
    """400 Bad Request"""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )

class NotFoundException(StorefrontException):
    """404 Not Found"""

    def __init__(self, detail: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code
        )

class ConflictException(StorefrontException):
    """409 Conflict"""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )

class ValidationException(StorefrontException):
    """422 Unprocessable Entity"""

    def __init__(self, detail: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )

# Business logic exceptions
class CartItemNotFoundException(NotFoundException):
    """Line item is not in the cart"""

    def __init__(self, item_id: str):
        super().__init__(
            detail=f"Cart item {item_id} not found",
            error_code="CART_ITEM_NOT_FOUND"
        )

class CheckoutSessionNotFoundException(NotFoundException):
    """Checkout session does not exist"""

    def __init__(self, session_id: str):
        super().__init__(
            detail=f"Checkout session {session_id} not found",
            error_code="CHECKOUT_SESSION_NOT_FOUND"
        )

class EmptyCartException(BadRequestException):
    """Checkout cannot start on an empty cart"""

    def __init__(self, detail: str = "Add some products to your cart before checkout"):
        super().__init__(
            detail=detail,
            error_code="EMPTY_CART"
        )

class UnknownFieldException(ValidationException):
    """Field has no validation rule in any checkout step"""

    def __init__(self, field: str):
        super().__init__(
            detail=f"Unknown checkout field '{field}'",
            error_code="UNKNOWN_FIELD"
        )

class SubmissionInProgressException(ConflictException):
    """An order submission is already in flight"""

    def __init__(self, detail: str = "Order submission already in progress"):
        super().__init__(
            detail=detail,
            error_code="SUBMISSION_IN_PROGRESS"
        )

class OrderProcessingError(Exception):
    """Raised by the order processor when an order cannot be placed"""
