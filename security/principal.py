from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from security.path_rules import ADMIN_ROLE


class AuthPrincipal(BaseModel):
    subject: str | None = None
    roles: frozenset[str] = Field(default_factory=frozenset)
    claims: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles
