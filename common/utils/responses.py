"""
Response envelopes.

    {"success": true, "data": ...}
    {"success": false, "error": {"message": ..., "code": ..., "details": ...}}
"""

from typing import Any, Optional, Dict


def success_response(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    """Wrap a route result; `data` and `message` are omitted when empty."""
    response: Dict[str, Any] = {"success": True}
    if data is not None:
        response["data"] = data
    if message:
        response["message"] = message
    return response


def error_response(
    message: str,
    code: Optional[str] = None,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """
    Build the error envelope.

    Args:
        message: Human-readable error message
        code: Machine-readable error code (e.g. "NOTIFICATION_NOT_FOUND")
        details: Field errors or other structured context
    """
    error: Dict[str, Any] = {"message": message}
    if code:
        error["code"] = code
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}
