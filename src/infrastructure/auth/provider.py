"""Authentication provider protocol."""

from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID


@dataclass(frozen=True)
class AuthenticatedUser:
    """The notification recipient identified by a bearer token."""

    id: UUID
    email: Optional[str] = None
    role: Optional[str] = None


class IAuthProvider(Protocol):
    """Verifies bearer tokens issued by the identity provider."""

    async def validate_token(self, token: str) -> Optional[AuthenticatedUser]:
        """Return the token's user, or None if the token is invalid or expired."""
        ...

    def create_token(self, user: AuthenticatedUser) -> str:
        """Issue a short-lived HS256 token (local development and tests)."""
        ...
