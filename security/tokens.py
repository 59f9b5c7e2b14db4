from __future__ import annotations

from typing import Any

import jwt
from loguru import logger

from core.errors import auth_invalid_token
from core.settings import Settings


class TokenVerifier:
    """Verifies bearer tokens issued by the identity provider.

    Signing keys come from the issuer's JWKS endpoint when one is configured,
    otherwise from a shared secret (HS* algorithms).
    """

    def __init__(
        self,
        *,
        algorithms: tuple[str, ...],
        jwks_url: str | None = None,
        secret_key: str | None = None,
        issuer: str | None = None,
        audience: str | None = None,
    ) -> None:
        if not jwks_url and not secret_key:
            raise RuntimeError("Either a JWKS url or a secret key is required to verify tokens")
        self._algorithms = list(algorithms)
        self._jwks_client = jwt.PyJWKClient(jwks_url) if jwks_url else None
        self._secret_key = secret_key
        self._issuer = issuer
        self._audience = audience

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenVerifier":
        return cls(
            algorithms=settings.auth_algorithms,
            jwks_url=settings.auth_jwks_url,
            secret_key=settings.auth_secret_key,
            issuer=settings.auth_issuer,
            audience=settings.auth_audience,
        )

    def _signing_key(self, token: str) -> Any:
        if self._jwks_client is not None:
            return self._jwks_client.get_signing_key_from_jwt(token).key
        return self._secret_key

    def verify(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._signing_key(token),
                algorithms=self._algorithms,
                issuer=self._issuer,
                audience=self._audience,
                options={"verify_aud": self._audience is not None, "require": ["exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired token")
            raise auth_invalid_token(details={"reason": "expired"})
        except jwt.InvalidSignatureError:
            logger.warning("Rejected token with invalid signature")
            raise auth_invalid_token(details={"reason": "invalid_signature"})
        except jwt.DecodeError:
            logger.warning("Rejected malformed token")
            raise auth_invalid_token(details={"reason": "malformed"})
        except jwt.PyJWTError as exc:
            logger.warning("Rejected token: {}", exc)
            raise auth_invalid_token(details={"reason": type(exc).__name__})
