"""JWT verification for recipient-facing routes.

Tokens are either issued by Supabase (ES256, verified against the
project's JWKS) or signed locally with the shared HS256 secret.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

import httpx
from jose import JWTError, jwt
from jose.backends import ECKey

from core.config import settings
from infrastructure.auth.provider import AuthenticatedUser

logger = logging.getLogger(__name__)

JWKS_TTL_SECONDS = 3600.0


class JWKSCache:
    """kid -> JWK mapping fetched from the issuer and refreshed on a miss."""

    def __init__(self, jwks_url: str, ttl_seconds: float = JWKS_TTL_SECONDS) -> None:
        self._jwks_url = jwks_url
        self._ttl_seconds = ttl_seconds
        self._keys: dict[str, dict[str, Any]] = {}
        self._fetched_at = 0.0

    def _is_stale(self) -> bool:
        return not self._keys or time.monotonic() - self._fetched_at > self._ttl_seconds

    async def get(self, kid: str) -> Optional[dict[str, Any]]:
        if self._is_stale():
            await self.refresh()
        key = self._keys.get(kid)
        if key is None:
            # Unknown kid usually means the issuer rotated its keys.
            await self.refresh()
            key = self._keys.get(kid)
        return key

    async def refresh(self) -> None:
        if not self._jwks_url:
            return
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(self._jwks_url, timeout=10.0)
                response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("Failed to fetch JWKS from %s", self._jwks_url)
            return

        self._keys = {k["kid"]: k for k in response.json().get("keys", []) if k.get("kid")}
        self._fetched_at = time.monotonic()
        logger.info("Loaded %d signing keys from JWKS", len(self._keys))


class JWTAuthProvider:
    """IAuthProvider for Supabase ES256 and local HS256 tokens."""

    def __init__(
        self,
        secret_key: str = settings.jwt_secret_key,
        algorithm: str = settings.jwt_algorithm,
        expire_minutes: int = settings.jwt_expire_minutes,
        jwks: Optional[JWKSCache] = None,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes
        self._jwks = jwks or JWKSCache(settings.supabase_jwks_url)

    async def validate_token(self, token: str) -> Optional[AuthenticatedUser]:
        """Verify a bearer token and return its subject."""
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") == "ES256":
                claims = await self._decode_es256(token, header.get("kid"))
            else:
                claims = jwt.decode(
                    token,
                    self._secret_key,
                    algorithms=[self._algorithm],
                    options={"verify_aud": False},
                )
        except JWTError:
            return None

        if not claims or not claims.get("sub"):
            return None

        try:
            user_id = UUID(claims["sub"])
        except ValueError:
            logger.warning("Token subject is not a UUID")
            return None

        return AuthenticatedUser(id=user_id, email=claims.get("email"), role=claims.get("role"))

    async def _decode_es256(self, token: str, kid: Optional[str]) -> Optional[dict[str, Any]]:
        if not kid:
            return None
        key_data = await self._jwks.get(kid)
        if key_data is None:
            logger.warning("No JWKS key for kid=%s", kid)
            return None
        return jwt.decode(
            token,
            ECKey(key_data, algorithm="ES256"),
            algorithms=["ES256"],
            options={"verify_aud": False},
        )

    def create_token(self, user: AuthenticatedUser) -> str:
        """Issue an HS256 token for local development and tests."""
        claims: dict[str, Any] = {
            "sub": str(user.id),
            "aud": "authenticated",
            "role": user.role or "authenticated",
            "exp": datetime.utcnow() + timedelta(minutes=self._expire_minutes),
        }
        if user.email:
            claims["email"] = user.email
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)
