"""
FastAPI dependency resolving the caller's user id from a bearer token.

Example:
    require_auth = create_auth_dependency(get_jwt_auth)

    @router.get("/checkin/today")
    async def get_today(user_id: Annotated[str, Depends(require_auth)]):
        ...
"""

from typing import Callable, Optional

from bson import ObjectId
from fastapi import Header

from common.auth.base import TokenVerifier
from common.utils.exceptions import UnauthorizedException


def _extract_token(authorization: Optional[str], scheme: str) -> str:
    if not authorization:
        raise UnauthorizedException(message="Missing authorization header", code="UNAUTHORIZED")

    prefix = f"{scheme} "
    if not authorization.startswith(prefix):
        raise UnauthorizedException(
            message=f"Invalid authorization scheme. Expected: {scheme}",
            code="INVALID_AUTH_SCHEME",
        )

    token = authorization[len(prefix):].strip()
    if not token:
        raise UnauthorizedException(message="Token is empty", code="EMPTY_TOKEN")
    return token


def create_auth_dependency(
    get_verifier: Callable[[], TokenVerifier],
    header_name: str = "Authorization",
    scheme: str = "Bearer",
):
    """
    Build a dependency returning the authenticated user id.

    The user id is the token subject and must be a MongoDB ObjectId, since
    every user reference in the database is one.

    Args:
        get_verifier: Returns the TokenVerifier (looked up per request)
        header_name: Header carrying the token
        scheme: Expected scheme prefix

    Returns:
        Async dependency function
    """

    async def get_current_user_id(
        authorization: Optional[str] = Header(None, alias=header_name),
    ) -> str:
        token = _extract_token(authorization, scheme)

        try:
            user_id = await get_verifier().get_user_id(token)
        except ValueError as e:
            raise UnauthorizedException(message=str(e), code="INVALID_TOKEN")

        if not ObjectId.is_valid(user_id):
            raise UnauthorizedException(message="Token subject is not a user ID", code="INVALID_TOKEN")

        return user_id

    return get_current_user_id
