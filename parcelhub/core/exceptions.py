"""
Custom Exception Hierarchy

Provides structured exceptions for consistent error handling across the application.
Every exception carries a ``kind`` (the name the HTTP layer and clients switch on)
and an ``error_code`` for API responses.
"""
from decimal import Decimal
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    ALREADY_EXISTS = "ERR_1003"
    UNAUTHORIZED = "ERR_1004"
    FORBIDDEN = "ERR_1005"
    STORAGE_ERROR = "ERR_1007"

    # Shipment errors (2xxx)
    SHIPMENT_NOT_FOUND = "ERR_2001"
    IDENTITY_DOCUMENTS_REQUIRED = "ERR_2002"
    INVALID_DIMENSIONS = "ERR_2003"

    # User errors (3xxx)
    USER_NOT_FOUND = "ERR_3001"

    # Wallet errors (4xxx)
    INSUFFICIENT_BALANCE = "ERR_4002"
    INVALID_AMOUNT = "ERR_4003"
    TOPUP_NOT_FOUND = "ERR_4005"

    # Pricing errors (5xxx)
    PRICE_NOT_AVAILABLE = "ERR_5001"
    NO_PRICING_TIER_FOUND = "ERR_5002"

    # State machine errors (6xxx)
    INVALID_STATUS_TRANSITION = "ERR_6001"


class AppException(Exception):
    """Base exception for all application errors"""

    kind = "InternalError"

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "success": False,
            "message": self.message,
            "error": {
                "code": self.error_code.value,
                "kind": self.kind,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    kind = "ValidationError"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class InvalidDimensionsError(ValidationException):
    """Raised when weight or a parcel dimension is missing, not positive or out of range"""

    def __init__(self, field: str, value: Any, message: str | None = None):
        super().__init__(
            message=message or f"{field} must be a number greater than zero",
            field=field,
            details={"value": str(value)},
            error_code=ErrorCode.INVALID_DIMENSIONS
        )


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    kind = "NotFound"

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class ShipmentNotFoundError(NotFoundException):
    """Raised when a shipment id or tracking code does not resolve"""

    kind = "ShipmentNotFound"

    def __init__(self, identifier: int | str):
        super().__init__("Shipment", identifier, ErrorCode.SHIPMENT_NOT_FOUND)


class UserNotFoundError(NotFoundException):
    """Raised when user is not found"""

    def __init__(self, user_id: int):
        super().__init__("User", user_id, ErrorCode.USER_NOT_FOUND)


class TopupNotFoundError(NotFoundException):
    """Raised when a top-up request is not found"""

    def __init__(self, topup_id: int):
        super().__init__("Topup", topup_id, ErrorCode.TOPUP_NOT_FOUND)


class UnauthorizedError(AppException):
    """Raised when the bearer token is missing, invalid or expired"""

    kind = "Unauthorized"

    def __init__(self, message: str = "Access token required"):
        super().__init__(
            message=message,
            error_code=ErrorCode.UNAUTHORIZED,
            status_code=401
        )


class ForbiddenError(AppException):
    """Raised when the caller's role does not allow the operation"""

    kind = "Forbidden"

    def __init__(self, message: str = "Admin access required"):
        super().__init__(
            message=message,
            error_code=ErrorCode.FORBIDDEN,
            status_code=403
        )


class PricingException(AppException):
    """Base exception for catalog gaps - the request cannot be priced"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )


class PriceNotAvailableError(PricingException):
    """Raised when no Price row exists for (destination, category)"""

    kind = "PriceNotAvailable"

    def __init__(self, destination: str, category: str):
        super().__init__(
            message="Price not available for this destination and category",
            error_code=ErrorCode.PRICE_NOT_AVAILABLE,
            details={"destination": destination, "category": category}
        )


class NoPricingTierFoundError(PricingException):
    """Raised when a tiered Price has no tier covering the effective weight"""

    kind = "NoPricingTierFound"

    def __init__(self, price_id: int, effective_weight: Decimal):
        super().__init__(
            message="No pricing tier found for this weight",
            error_code=ErrorCode.NO_PRICING_TIER_FOUND,
            details={"price_id": price_id, "effective_weight": str(effective_weight)}
        )


class ShipmentException(AppException):
    """Base exception for shipment business rules"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        shipment_id: int | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )
        if shipment_id:
            self.details["shipment_id"] = shipment_id


class IdentityDocumentsRequiredError(ShipmentException):
    """Raised when the destination requires receiver identity documents"""

    kind = "IdentityDocumentsRequired"

    def __init__(self, destination: str, missing: list[str]):
        super().__init__(
            message="Identity documents are required for this destination",
            error_code=ErrorCode.IDENTITY_DOCUMENTS_REQUIRED,
            details={"destination": destination, "missing": missing}
        )


class InvalidStatusTransitionError(ShipmentException):
    """Raised when a status change is not allowed from the current status"""

    kind = "InvalidStatusTransition"

    def __init__(
        self,
        current_status: str,
        target_status: str,
        shipment_id: int | None = None,
        message: str | None = None
    ):
        super().__init__(
            message=message or f"Invalid transition from '{current_status}' to '{target_status}'",
            error_code=ErrorCode.INVALID_STATUS_TRANSITION,
            shipment_id=shipment_id,
            details={"current_status": current_status, "target_status": target_status}
        )


class WalletException(AppException):
    """Base exception for wallet-related errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        user_id: int | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )
        if user_id:
            self.details["user_id"] = user_id


class InsufficientBalanceError(WalletException):
    """Raised when the wallet cannot cover the requested debit"""

    kind = "InsufficientBalance"

    def __init__(self, user_id: int, current_balance: Decimal, required_amount: Decimal):
        super().__init__(
            message="Insufficient balance. Please top up your account.",
            error_code=ErrorCode.INSUFFICIENT_BALANCE,
            user_id=user_id,
            details={
                "current_balance": str(current_balance),
                "required_amount": str(required_amount),
                "shortfall": str(required_amount - current_balance)
            }
        )


class InvalidAmountError(WalletException):
    """Raised when a money amount is not strictly positive or has too many decimals"""

    kind = "ValidationError"

    def __init__(self, amount: Any, reason: str):
        super().__init__(
            message=f"Invalid amount: {reason}",
            error_code=ErrorCode.INVALID_AMOUNT,
            details={"amount": str(amount)}
        )


class StorageError(AppException):
    """Raised when a transaction fails to flush or commit; the unit of work was rolled back"""

    kind = "StorageError"

    def __init__(self, operation: str, message: str | None = None):
        super().__init__(
            message=message or f"Storage failure during {operation}",
            error_code=ErrorCode.STORAGE_ERROR,
            status_code=500,
            details={"operation": operation}
        )
