from enum import Enum
from typing import Any

from fastapi import HTTPException


class ErrorType(Enum):
    """
    All possible error types that could be passed to the client.

    Each entry is a tuple of the message key, status code and fallback message.
    The message key is the stable code clients should branch on.
    """

    UNKNOWN = ("unknown", 500, "An unexpected error occurred")

    # request
    VALIDATION_ERROR = ("validation_error", 422, "Request validation failed")
    NOT_FOUND = ("not_found", 404, "Resource not found")
    TOO_MANY_REQUESTS = ("too_many_requests", 429, "Request too frequent, please try again later")

    # accounts
    DUPLICATE_EMAIL = ("duplicate_email", 409, "Email already registered")
    UNVERIFIED = ("unverified", 403, "Please verify your email first")
    ACCOUNT_DEACTIVATED = ("account_deactivated", 403, "Account is deactivated")
    INVALID_CREDENTIALS = ("invalid_credentials", 401, "Invalid credentials")
    INVALID_PASSWORD = ("invalid_password", 400, "Password does not meet requirements")

    # one-time codes
    INVALID_CODE = ("invalid_code", 400, "Invalid OTP")
    CODE_EXPIRED = ("code_expired", 410, "OTP expired, please request a new one")
    CODE_ALREADY_USED = ("code_already_used", 409, "OTP has already been used")
    CODE_DELIVERY_FAILED = ("code_delivery_failed", 503, "Failed to send OTP email, please try again later")
    INVALID_OR_EXPIRED_TOKEN = ("invalid_or_expired_token", 400, "Invalid or expired reset token")

    # sessions
    UNAUTHORIZED = ("unauthorized", 401, "Invalid or missing authentication token")
    INSUFFICIENT_PERMISSIONS = ("insufficient_permissions", 403, "Insufficient permissions")
    CANNOT_MODIFY_SELF = ("cannot_modify_self", 400, "Admins cannot deactivate or demote themselves")

    # infrastructure
    TRANSIENT_STORE_ERROR = ("transient_store_error", 503, "Service temporarily unavailable, please try again later")


class RequestError(HTTPException):
    """
    A wrapper for major API errors to simplify response composition.

    Attributes:
        msg_key (str): The stable error code.
        status_code (int): The status code to respond with.
        fallback_msg (str): The human-readable message.
        details (dict[str, Any]): Extra fields merged into the response body.

    Args:
        error_type (ErrorType): The error type to initialize from.
        extra (dict[str, Any] | None): Details to include in the response.
        status_code (int): Overrides the default one given by the error type.
        headers (dict[str, str] | None): Will be attached to the response header.
    """

    def __init__(
        self,
        error_type: ErrorType,
        extra: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.error_type = error_type
        self.msg_key, default_status, self.fallback_msg = error_type.value
        self.details = dict(extra) if extra else {}

        if headers is None and error_type is ErrorType.UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}

        final_status = status_code if status_code is not None else default_status
        super().__init__(final_status, detail=self.fallback_msg, headers=headers)

    @property
    def formatted_message(self) -> str:
        return self.fallback_msg

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {
            "success": False,
            "error": self.msg_key,
            "message": self.formatted_message,
        }
        content.update(self.details)
        return content
