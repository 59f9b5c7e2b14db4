from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from core.errors import auth_missing_token, auth_role_missing
from core.settings import get_settings
from security.claims import extract_client_roles
from security.path_rules import is_authorized, required_roles
from security.principal import AuthPrincipal
from security.tokens import TokenVerifier

token_auth_scheme = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_token_verifier() -> TokenVerifier:
    return TokenVerifier.from_settings(get_settings())


def get_client_id() -> str:
    return get_settings().auth_client_id


def resolve_principal(token: str, *, verifier: TokenVerifier, client_id: str) -> AuthPrincipal:
    claims = verifier.verify(token)
    return AuthPrincipal(
        subject=claims.get("sub"),
        roles=extract_client_roles(claims, client_id),
        claims=claims,
    )


async def authorize_request(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(token_auth_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
    client_id: str = Depends(get_client_id),
) -> AuthPrincipal | None:
    """Apply the path rule table; open paths pass without looking at the token."""
    method, path = request.method, request.url.path
    needed = required_roles(method, path)
    if not needed:
        return None

    if credentials is None:
        raise auth_missing_token()

    principal = resolve_principal(credentials.credentials, verifier=verifier, client_id=client_id)
    if not is_authorized(principal.roles, method, path):
        logger.info("Denied {} {} for subject {}", method, path, principal.subject)
        raise auth_role_missing(required_role=",".join(sorted(needed)), actual_roles=principal.roles)
    return principal
