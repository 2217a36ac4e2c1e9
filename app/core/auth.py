# app/core/auth.py
import hmac
import logging
from typing import Any

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader, HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import SQLModel

from app.core.config import Settings, get_settings
from app.core.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header does not raise a 403,
#   we answer 401 ourselves in require_user.
bearer_scheme = HTTPBearer(auto_error=False)

# Shared secret sent by internal services calling the RPC surface.
internal_token_scheme = APIKeyHeader(name="X-Internal-Token", auto_error=False)


class IdentityResult(SQLModel):
    """
    Outcome of verifying a bearer credential.
    """

    is_valid: bool
    entity_id: str = ""


INVALID = IdentityResult(is_valid=False)


class IdentityClient:
    """
    Resolves a bearer token to the entity id that owns it.

    Two modes, picked from settings:
      - IDENTITY_SERVICE_URL set => ask the identity service
        (POST /validate {"token": ...} -> {"isValid", "entityId"})
      - otherwise => verify an HS256 JWT locally with IDENTITY_JWT_SECRET
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.transport = transport

    def verify(self, token: str) -> IdentityResult:
        if self.settings.IDENTITY_SERVICE_URL:
            return self._verify_remote(token)
        return self._verify_local(token)

    def _verify_remote(self, token: str) -> IdentityResult:
        """
        Raises:
            UpstreamUnavailable: if the identity service cannot be reached,
            times out or answers with a server error.
        """
        url = f"{self.settings.IDENTITY_SERVICE_URL.rstrip('/')}/validate"
        try:
            with httpx.Client(
                timeout=self.settings.IDENTITY_TIMEOUT_SECONDS,
                transport=self.transport,
            ) as client:
                response = client.post(url, json={"token": token})
        except httpx.RequestError as e:
            logger.warning("Identity service call failed: %s", e)
            raise UpstreamUnavailable("Identity service is unavailable") from e

        if response.status_code >= 500:
            logger.warning("Identity service answered %s", response.status_code)
            raise UpstreamUnavailable("Identity service is unavailable")
        if response.status_code != 200:
            return INVALID

        try:
            body = response.json()
        except ValueError:
            return INVALID
        if not isinstance(body, dict):
            return INVALID

        entity_id = body.get("entityId")
        if body.get("isValid") is not True or not isinstance(entity_id, str) or not entity_id:
            return INVALID
        return IdentityResult(is_valid=True, entity_id=entity_id)

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """
        Decode and verify an access token (JWT).

        Verification:
          - signature (IDENTITY_JWT_ALG using IDENTITY_JWT_SECRET)
          - expiration time (exp)
          - audience is NOT verified

        Raises:
            JWTError: if token is invalid/expired.
            RuntimeError: if no secret is configured.
        """
        if not self.settings.IDENTITY_JWT_SECRET:
            raise RuntimeError(
                "Missing IDENTITY_SERVICE_URL or IDENTITY_JWT_SECRET in .env"
            )
        return jwt.decode(
            token,
            self.settings.IDENTITY_JWT_SECRET,
            algorithms=[self.settings.IDENTITY_JWT_ALG],
            options={"verify_aud": False},
        )

    def _verify_local(self, token: str) -> IdentityResult:
        try:
            claims = self.decode_access_token(token)
        except JWTError:
            return INVALID

        entity_id = claims.get("entityId") or claims.get("sub")
        if not isinstance(entity_id, str) or not entity_id:
            return INVALID
        return IdentityResult(is_valid=True, entity_id=entity_id)


def get_identity_client() -> IdentityClient:
    return IdentityClient(get_settings())


def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    identity: IdentityClient = Depends(get_identity_client),
) -> str:
    """
    Enforce authentication and return the caller's entity id.

    Raises:
        HTTPException(401): missing, invalid or expired token.
        UpstreamUnavailable: identity service unreachable (rendered as 503).
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
        )

    result = identity.verify(credentials.credentials)
    if not result.is_valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return result.entity_id


def require_internal_caller(
    token: str | None = Depends(internal_token_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Enforce that the caller is a trusted internal service.

    RPC callers pass user_id in the payload; without a configured
    RPC_SHARED_SECRET every call is refused.

    Raises:
        HTTPException(401): secret not configured, missing or wrong.
    """
    expected = settings.RPC_SHARED_SECRET
    if not expected:
        logger.warning("RPC call rejected: RPC_SHARED_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Internal RPC is not enabled",
        )
    if token is None or not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal token",
        )
