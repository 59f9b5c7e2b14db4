from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Iterable, Sequence

ADMIN_ROLE: Final[str] = "ADMIN"


def _segments(path: str) -> list[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


def match_path(pattern: str, path: str) -> bool:
    """Ant-style match: ``*`` is exactly one segment, ``**`` is zero or more."""
    return _match(_segments(pattern), _segments(path))


def _match(pattern: Sequence[str], path: Sequence[str]) -> bool:
    if not pattern:
        return not path
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match(rest, path[index:]) for index in range(len(path) + 1))
    if not path:
        return False
    if head != "*" and head != path[0]:
        return False
    return _match(rest, path[1:])


@dataclass(frozen=True)
class PathRule:
    pattern: str
    required_role: str
    methods: frozenset[str] | None = None

    def applies_to(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        return match_path(self.pattern, path)


DEFAULT_RULES: Final[tuple[PathRule, ...]] = (
    PathRule(pattern="/*/remove/**", required_role=ADMIN_ROLE),
    PathRule(pattern="/*/upload/**", required_role=ADMIN_ROLE),
    PathRule(pattern="/remove/folders/**", required_role=ADMIN_ROLE, methods=frozenset({"DELETE"})),
)


def required_roles(method: str, path: str, rules: Iterable[PathRule] = DEFAULT_RULES) -> frozenset[str]:
    return frozenset(rule.required_role for rule in rules if rule.applies_to(method, path))


def is_protected(method: str, path: str, rules: Iterable[PathRule] = DEFAULT_RULES) -> bool:
    return bool(required_roles(method, path, rules))


def is_authorized(
    roles: Iterable[str],
    method: str,
    path: str,
    rules: Iterable[PathRule] = DEFAULT_RULES,
) -> bool:
    """Every rule matching the request must be satisfied; unmatched paths are open."""
    return required_roles(method, path, rules).issubset(set(roles))
