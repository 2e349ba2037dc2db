"""
Admin authentication verifiers.

Only the admin routes consult a verifier. The anonymous track path never
does. Every failure, whatever its cause, becomes the same UnauthorizedError.
"""

import abc
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import httpx
import structlog
from jose import jwt, JWTError
from pydantic import BaseModel, ValidationError as PydanticValidationError

from whistlebox.core.exceptions import UnauthorizedError

logger = structlog.get_logger()

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"


class AdminPrincipal(BaseModel):
    sub: str
    email: Optional[str] = None
    role: str = ADMIN_ROLE


def create_access_token(
    subject: Union[str, Any], secret: str, expires_delta: Optional[timedelta] = None
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=60)
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"exp": expire, "sub": str(subject), "role": ADMIN_ROLE}
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


class AuthVerifier(abc.ABC):
    @abc.abstractmethod
    async def verify(self, token: str) -> AdminPrincipal:
        """Return the verified principal or raise UnauthorizedError."""

    async def aclose(self) -> None:
        pass


class JwtAuthVerifier(AuthVerifier):
    """Verifies locally issued HS256 admin tokens."""

    def __init__(self, secret: str):
        self._secret = secret

    async def verify(self, token: str) -> AdminPrincipal:
        if not token:
            raise UnauthorizedError("empty bearer token")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
            principal = AdminPrincipal(**payload)
        except (JWTError, PydanticValidationError) as e:
            raise UnauthorizedError(f"token rejected: {type(e).__name__}") from e
        if principal.role != ADMIN_ROLE:
            raise UnauthorizedError("token lacks admin role")
        return principal


class HttpAuthVerifier(AuthVerifier):
    """
    Delegates to an external identity provider. The endpoint receives the
    bearer token and answers 200 with the principal's claims.
    """

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 5.0):
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def verify(self, token: str) -> AdminPrincipal:
        if not token:
            raise UnauthorizedError("empty bearer token")
        try:
            response = await self._client.get(
                self._url, headers={"Authorization": f"Bearer {token}"}
            )
        except httpx.HTTPError as e:
            logger.warning("auth_verifier_unreachable", error_type=type(e).__name__)
            raise UnauthorizedError("verifier unreachable") from e

        if response.status_code != 200:
            raise UnauthorizedError(f"verifier answered {response.status_code}")
        try:
            principal = AdminPrincipal(**response.json())
        except (ValueError, TypeError, PydanticValidationError) as e:
            raise UnauthorizedError("verifier returned malformed claims") from e
        if principal.role != ADMIN_ROLE:
            raise UnauthorizedError("principal lacks admin role")
        return principal

    async def aclose(self) -> None:
        await self._client.aclose()


class DenyAllVerifier(AuthVerifier):
    async def verify(self, token: str) -> AdminPrincipal:
        raise UnauthorizedError("no admin verifier configured")


def build_auth_verifier(settings) -> AuthVerifier:
    if settings.AUTH_VERIFIER_URL:
        return HttpAuthVerifier(settings.AUTH_VERIFIER_URL)
    if settings.ADMIN_TOKEN_SECRET:
        return JwtAuthVerifier(settings.ADMIN_TOKEN_SECRET)
    logger.warning("admin_auth_disabled", reason="no verifier configured")
    return DenyAllVerifier()
