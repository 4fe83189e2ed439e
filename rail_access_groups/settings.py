"""
Access-group settings.

``get_access_groups_settings()`` builds one immutable settings value that is
passed by reference into every component.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from django.conf import settings as django_settings

from .config_proxy import get_settings_proxy
from .defaults import validate_settings
from .exceptions import ConfigurationError
from .principals import RolePrincipal, parse_principals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessGroupsSettings:
    user_model: str
    group_model: str
    group_access_model: str
    user_key: str
    group_key: str
    role_model: Optional[str] = None
    role_field: str = "role"
    group_roles: tuple[RolePrincipal, ...] = ()
    apply_to_static: bool = False
    unresolved_group_policy: str = "allow"
    role_matching: Optional[str] = None
    group_header: str = "X-Group-Id"
    target_group_header: str = "X-Target-Group-Id"
    track_last_used: bool = False
    stamp_group_on_create: bool = True
    scoping: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    @property
    def role_lookup(self) -> str:
        """ORM path of the role name on the membership model."""
        if self.role_model:
            return f"{self.role_field}__name"
        return self.role_field

    @property
    def principals(self) -> tuple[str, ...]:
        return tuple(item.principal for item in self.group_roles)

    def case_sensitive_roles(self, extended: bool) -> bool:
        """
        Role matching rule for a decision.

        An explicit ``role_matching`` applies to both modes. Without it, basic
        mode matches exactly and extended mode ignores case.
        """
        if self.role_matching == "exact":
            return True
        if self.role_matching == "iexact":
            return False
        return not extended


def _coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _coerce_str(value: Any, default: Optional[str]) -> Optional[str]:
    if value is None:
        return default
    value = str(value).strip()
    return value or default


def _default_key(model_label: str) -> str:
    return f"{model_label.rsplit('.', 1)[-1].lower()}_id"


def build_access_groups_settings(
    overrides: Optional[Mapping[str, Any]] = None,
) -> AccessGroupsSettings:
    """
    Build settings from the ACCESS_GROUPS Django setting, library defaults and
    optional explicit overrides.

    Raises:
        ConfigurationError: If a required option is missing or a role
            principal is malformed.
    """
    proxy = get_settings_proxy()
    raw = proxy.as_dict()
    if overrides:
        raw.update(overrides)

    raw["unresolved_group_policy"] = (
        _coerce_str(raw.get("unresolved_group_policy"), "allow") or "allow"
    ).lower()
    if raw.get("role_matching") is not None:
        raw["role_matching"] = _coerce_str(raw["role_matching"], None)
        if raw["role_matching"]:
            raw["role_matching"] = raw["role_matching"].lower()

    errors = validate_settings(raw)
    if errors:
        raise ConfigurationError("; ".join(errors))

    user_model = _coerce_str(raw.get("user_model"), None) or django_settings.AUTH_USER_MODEL
    group_model = _coerce_str(raw.get("group_model"), None)
    group_access_model = _coerce_str(raw.get("group_access_model"), None)

    group_roles = parse_principals(raw.get("group_roles") or ())

    result = AccessGroupsSettings(
        user_model=user_model,
        group_model=group_model,
        group_access_model=group_access_model,
        user_key=_coerce_str(raw.get("user_key"), None) or _default_key(user_model),
        group_key=_coerce_str(raw.get("group_key"), None) or _default_key(group_model),
        role_model=_coerce_str(raw.get("role_model"), None),
        role_field=_coerce_str(raw.get("role_field"), "role"),
        group_roles=group_roles,
        apply_to_static=_coerce_bool(raw.get("apply_to_static"), False),
        unresolved_group_policy=raw["unresolved_group_policy"],
        role_matching=raw.get("role_matching"),
        group_header=_coerce_str(raw.get("group_header"), "X-Group-Id"),
        target_group_header=_coerce_str(
            raw.get("target_group_header"), "X-Target-Group-Id"
        ),
        track_last_used=_coerce_bool(raw.get("track_last_used"), False),
        stamp_group_on_create=_coerce_bool(raw.get("stamp_group_on_create"), True),
        scoping=dict(raw.get("scoping") or {}),
    )
    logger.debug("Parsed access group settings: %s", result)
    return result


def get_access_groups_settings() -> AccessGroupsSettings:
    return build_access_groups_settings()


__all__ = [
    "AccessGroupsSettings",
    "build_access_groups_settings",
    "get_access_groups_settings",
]
