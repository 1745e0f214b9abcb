"""Domain errors raised by services and rendered by the handlers in main.py."""
from typing import Any, Dict, Optional


class AppError(Exception):
    status_code: int = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def extra(self) -> Dict[str, Any]:
        return {}


class ValidationFailed(AppError):
    """Missing or malformed input, rejected before any write."""

    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def extra(self) -> Dict[str, Any]:
        return {"field": self.field}


class BusinessRuleError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class PermissionDenied(AppError):
    status_code = 403


class AuthenticationFailed(AppError):
    status_code = 401


COUPON_MESSAGES = {
    "invalid_code": "Invalid coupon code",
    "already_used": "You have already used this coupon",
    "inactive": "Coupon is not active",
    "not_started": "Coupon is not valid yet",
    "expired": "Coupon has expired",
    "exhausted": "Coupon usage limit has been reached",
    "below_minimum": "Minimum order amount is {minimum}",
}


class CouponRejected(BusinessRuleError):
    """A coupon failed one of the validation rules.

    ``reason`` is a stable machine code so clients can localize the message.
    """

    def __init__(self, reason: str, **params: Any):
        message = COUPON_MESSAGES[reason].format(**params)
        super().__init__(message, status_code=404 if reason == "invalid_code" else None)
        self.reason = reason
        self.params = params

    def extra(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"reason": self.reason}
        data.update({k: str(v) for k, v in self.params.items()})
        return data
