"""
Group role principals.

A principal names a role inside the current group, for example
``"$group:admin"``. The ``$group:`` scope prefix is mandatory.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .exceptions import ConfigurationError

GROUP_SCOPE_PREFIX = "$group:"


@dataclass(frozen=True)
class RolePrincipal:
    principal: str
    role_name: str

    @classmethod
    def parse(cls, principal: Any) -> "RolePrincipal":
        role_name = extract_role_name(principal)
        if not role_name:
            raise ConfigurationError(
                f"{principal!r} is an invalid access group name, "
                f"expected '{GROUP_SCOPE_PREFIX}<role>'",
                setting="group_roles",
            )
        return cls(principal=principal, role_name=role_name)

    def __str__(self) -> str:
        return self.principal


def extract_role_name(principal: Any) -> Optional[str]:
    """
    Extract the role name from a principal (``"$group:admin"`` -> ``"admin"``).

    Returns None when the principal does not carry the group scope prefix or
    the role part is empty.
    """
    if not isinstance(principal, str):
        return None
    if not principal.startswith(GROUP_SCOPE_PREFIX):
        return None
    role_name = principal[len(GROUP_SCOPE_PREFIX):].strip()
    if not role_name or ":" in role_name:
        return None
    return role_name


def is_valid_principal(principal: Any) -> bool:
    return extract_role_name(principal) is not None


def parse_principals(principals: Iterable[Any]) -> tuple[RolePrincipal, ...]:
    """Validate every principal, raising ConfigurationError on the first bad one."""
    if isinstance(principals, str):
        principals = [principals]
    parsed = []
    seen = set()
    for principal in principals or ():
        item = RolePrincipal.parse(principal)
        if item.principal in seen:
            continue
        seen.add(item.principal)
        parsed.append(item)
    return tuple(parsed)


__all__ = [
    "GROUP_SCOPE_PREFIX",
    "RolePrincipal",
    "extract_role_name",
    "is_valid_principal",
    "parse_principals",
]
