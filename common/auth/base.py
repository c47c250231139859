"""
Bearer token verification contract.

Accounts, passwords and sessions belong to the identity service. An API
built on this package only has to turn the bearer token of a request into
a trusted user id, and to refuse tokens that were revoked before they
expired (for example after a logout).
"""

from abc import ABC, abstractmethod
from typing import Dict, Any


class TokenVerifier(ABC):
    """
    Verifies bearer tokens and tracks revocations.

    Methods are async so a verifier backed by a remote introspection
    endpoint or a shared revocation store fits the same contract.
    """

    # Claim holding the user id
    subject_claim: str = "sub"

    @abstractmethod
    async def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify a token and return its claims.

        Raises:
            ValueError: Token is malformed, expired, revoked or carries the
                wrong issuer or audience
        """

    @abstractmethod
    async def revoke_token(self, token: str) -> None:
        """Refuse this token from now on, even if it has not expired."""

    async def get_user_id(self, token: str) -> str:
        """
        Verify a token and return the user id it was issued for.

        Raises:
            ValueError: Token is invalid or has no subject
        """
        claims = await self.verify_token(token)
        user_id = claims.get(self.subject_claim)
        if not user_id:
            raise ValueError("Token missing user ID")
        return str(user_id)
