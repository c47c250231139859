"""
JWT verifier backed by python-jose.

Tokens are signed by the identity service with a shared secret. Every token
carries a `jti` so a single token can be revoked without rotating the
secret; revocations are forgotten once the token would have expired anyway.

Example:
    auth = JWTAuth(secret=settings.JWT_SECRET, issuer="identity")

    user_id = await auth.get_user_id(token)
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError, ExpiredSignatureError
from jose.exceptions import JWTClaimsError

from common.auth.base import TokenVerifier


class JWTAuth(TokenVerifier):
    """
    HS256 (by default) token verifier with in-process revocation.

    The revocation list lives in memory, so it only covers the worker that
    received the revoke call.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 30,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        leeway_seconds: int = 0,
    ):
        """
        Initialize JWTAuth.

        Args:
            secret: Shared signing secret
            algorithm: Signing algorithm
            access_token_expire_minutes: Lifetime of tokens minted by create_token
            issuer: Required `iss` claim, if set
            audience: Required `aud` claim, if set
            leeway_seconds: Clock skew tolerated on `exp` and `iat`
        """
        self.secret = secret
        self.algorithm = algorithm
        self.access_token_expire = timedelta(minutes=access_token_expire_minutes)
        self.issuer = issuer
        self.audience = audience
        self.leeway_seconds = leeway_seconds

        # jti -> expiry timestamp
        self._revoked: Dict[str, float] = {}

    async def create_token(self, user_id: str, **claims: Any) -> str:
        """
        Mint a token the way the identity service does.

        Used by local tooling and tests; production tokens come from the
        identity service.
        """
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": user_id,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + self.access_token_expire,
        }
        if self.issuer:
            payload["iss"] = self.issuer
        if self.audience:
            payload["aud"] = self.audience
        payload.update(claims)
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    async def verify_token(self, token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={
                    "verify_aud": self.audience is not None,
                    "leeway": self.leeway_seconds,
                },
            )
        except ExpiredSignatureError:
            raise ValueError("Token has expired")
        except JWTClaimsError as e:
            raise ValueError(f"Invalid token claims: {e}")
        except JWTError as e:
            raise ValueError(f"Invalid token: {e}")

        if claims.get("jti") in self._revoked:
            raise ValueError("Token has been revoked")
        return claims

    async def revoke_token(self, token: str) -> None:
        """
        Revoke a token by its `jti`.

        Raises:
            ValueError: Token cannot be decoded or has no `jti`
        """
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise ValueError(f"Invalid token: {e}")

        jti = claims.get("jti")
        if not jti:
            raise ValueError("Token has no jti and cannot be revoked")

        self._prune_revoked()
        expires_at = claims.get("exp") or (datetime.now(timezone.utc) + self.access_token_expire).timestamp()
        self._revoked[jti] = float(expires_at)

    def _prune_revoked(self) -> None:
        now = datetime.now(timezone.utc).timestamp() - self.leeway_seconds
        for jti in [j for j, exp in self._revoked.items() if exp < now]:
            del self._revoked[jti]
