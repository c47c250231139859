"""
HTTP exceptions carrying a machine-readable error code.

Services raise these directly; the API turns them into the standard error
envelope. Anything else that escapes a route is a 500.

Example:
    raise NotFoundException(message="User not found", code="USER_NOT_FOUND")
"""

from typing import Optional, Any, Dict

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from common.utils.responses import error_response


class APIException(HTTPException):
    """
    Base class: HTTP status + message + code (+ optional details).
    """

    status: int = 500
    default_message: str = "Internal server error"
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details

        super().__init__(
            status_code=status_code or self.status,
            detail=error_response(self.message, code=self.code, details=details)["error"],
            headers=headers,
        )

    def to_response(self) -> JSONResponse:
        """Render as the standard error envelope."""
        return JSONResponse(
            status_code=self.status_code,
            content=error_response(self.message, code=self.code, details=self.details),
            headers=self.headers,
        )


class UnauthorizedException(APIException):
    """401 - missing, invalid, expired or revoked bearer token."""

    status = 401
    default_message = "Unauthorized"
    default_code = "UNAUTHORIZED"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, code, details, headers={"WWW-Authenticate": "Bearer"})


class NotFoundException(APIException):
    """404 - unknown user, entry or notification (or one owned by someone else)."""

    status = 404
    default_message = "Not found"
    default_code = "NOT_FOUND"


class ValidationException(APIException):
    """422 - request passed schema parsing but failed a domain rule."""

    status = 422
    default_message = "Validation error"
    default_code = "VALIDATION_ERROR"
