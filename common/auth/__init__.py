"""
Authentication - bearer token verification for services behind the identity service.
"""

from common.auth.base import TokenVerifier
from common.auth.jwt_auth import JWTAuth
from common.auth.dependencies import create_auth_dependency

__all__ = ["TokenVerifier", "JWTAuth", "create_auth_dependency"]
