"""Authentication middleware resolving the caller's identity from a JWT."""

import asyncio
import logging
from collections.abc import Callable

import jwt
from fastapi import HTTPException, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from ..config import settings
from ..models import Identity
from ..telemetry import TelemetryEvents, track_event

logger = logging.getLogger(__name__)

# Shared JWKS client (caches signing keys between requests)
_jwks_client: jwt.PyJWKClient | None = None


def _get_jwks_client() -> jwt.PyJWKClient:
    global _jwks_client
    if _jwks_client is None:
        _jwks_client = jwt.PyJWKClient(settings.jwt_public_key_url, cache_keys=True)
    return _jwks_client


def identity_from_claims(payload: dict) -> Identity:
    """Build an identity from verified JWT claims.

    Raises:
        HTTPException: If the token has no 'sub' claim
    """
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="JWT missing 'sub' claim (user_id)")
    return Identity(user_id=user_id, display_name=payload.get("name"), email=payload.get("email"))


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware resolving the current identity.

    With ``AUTH_REQUIRED=false`` the identity comes from the ``X-User-Id`` /
    ``X-User-Name`` headers, falling back to the configured dev user. With
    auth enabled a Bearer JWT is required (HS256 with the secret key, or
    RS256 against the JWKS endpoint).

    Sets on request.state:
    - identity: Identity, or None when key lookup timed out (read-only)
    - user_id: Identity user id, or None
    """

    # Paths that don't require authentication
    PUBLIC_PATHS = [
        "/",
        "/health",
        "/version",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/interest-tags",
    ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request through authentication."""
        request.state.identity = None
        request.state.user_id = None

        # Skip auth for public endpoints
        if request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        # Skip auth if not required (dev mode)
        if not settings.auth_required:
            identity = Identity(
                user_id=request.headers.get("X-User-Id") or settings.dev_user_id,
                display_name=request.headers.get("X-User-Name"),
            )
            self._set_identity(request, identity)
            logger.debug(f"Auth disabled - using dev identity (user_id={identity.user_id})")
            return await call_next(request)

        try:
            identity = await self._verify_jwt(request)
        except HTTPException as e:
            track_event(TelemetryEvents.AUTHENTICATION_FAILED, {"reason": str(e.detail)})
            # Convert HTTPException to JSONResponse
            return JSONResponse(status_code=e.status_code, content={"detail": e.detail})
        except TimeoutError:
            # Degrade to an anonymous, read-only caller
            logger.warning(
                f"Identity resolution timed out after {settings.identity_timeout_seconds}s"
            )
            return await call_next(request)

        self._set_identity(request, identity)
        logger.debug(f"Authenticated request: user_id={identity.user_id}")
        return await call_next(request)

    @staticmethod
    def _set_identity(request: Request, identity: Identity) -> None:
        request.state.identity = identity
        request.state.user_id = identity.user_id

    async def _verify_jwt(self, request: Request) -> Identity:
        """Verify JWT and return the caller's identity.

        Args:
            request: FastAPI request

        Returns:
            Identity from the 'sub', 'name' and 'email' claims

        Raises:
            HTTPException: If JWT missing, invalid, or expired
            TimeoutError: If the signing key could not be fetched in time
        """
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            raise HTTPException(
                status_code=401,
                detail="Missing or invalid Authorization header (expected: Bearer <token>)",
            )

        token = auth_header.split(" ")[1]
        options = {
            "verify_aud": settings.jwt_audience is not None,
            "verify_iss": settings.jwt_issuer is not None,
        }

        try:
            if settings.jwt_algorithm == "HS256":
                key = settings.secret_key
            else:
                if not settings.jwt_public_key_url:
                    raise HTTPException(
                        status_code=500,
                        detail="JWT public key URL not configured for RS256",
                    )
                # Key fetch is blocking network I/O
                signing_key = await asyncio.wait_for(
                    asyncio.to_thread(_get_jwks_client().get_signing_key_from_jwt, token),
                    timeout=settings.identity_timeout_seconds,
                )
                key = signing_key.key

            payload = jwt.decode(
                token,
                key,
                algorithms=[settings.jwt_algorithm],
                audience=settings.jwt_audience,
                issuer=settings.jwt_issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="JWT expired")
        except jwt.PyJWKClientError as e:
            logger.error(f"Failed to fetch JWT signing key: {e}")
            raise HTTPException(status_code=401, detail="Unable to verify JWT signing key")
        except jwt.InvalidTokenError as e:
            raise HTTPException(status_code=401, detail=f"Invalid JWT: {str(e)}")

        return identity_from_claims(payload)
