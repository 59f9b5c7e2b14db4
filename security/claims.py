from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

RESOURCE_ACCESS_CLAIM = "resource_access"
ROLES_FIELD = "roles"


def extract_client_roles(claims: Mapping[str, Any], client_id: str) -> frozenset[str]:
    """Project ``resource_access[client_id].roles`` from verified claims into a role set.

    Total over malformed input: any unexpected shape yields an empty set and a warning,
    so a gated request is denied instead of erroring.
    """
    resource_access = claims.get(RESOURCE_ACCESS_CLAIM)
    if resource_access is None:
        return frozenset()
    if not isinstance(resource_access, Mapping):
        logger.warning("Claim {} has unexpected type {}", RESOURCE_ACCESS_CLAIM, type(resource_access).__name__)
        return frozenset()

    client = resource_access.get(client_id)
    if client is None:
        return frozenset()
    if not isinstance(client, Mapping):
        logger.warning("Client entry {} has unexpected type {}", client_id, type(client).__name__)
        return frozenset()

    roles = client.get(ROLES_FIELD)
    if roles is None:
        return frozenset()
    if not isinstance(roles, (list, tuple)):
        logger.warning("Roles of client {} have unexpected type {}", client_id, type(roles).__name__)
        return frozenset()

    client_roles = frozenset(str(role) for role in roles if isinstance(role, str) and role)
    logger.info("client roles: {}", sorted(client_roles))
    return client_roles
