"""
Default configuration for the rail-access-groups library.

Every key the library consumes has a default here. Projects override them
through the ``ACCESS_GROUPS`` dictionary in their Django settings.
"""

from __future__ import annotations

from typing import Any

LIBRARY_VERSION = "0.1.0"

SETTINGS_NAME = "ACCESS_GROUPS"


# --------------------------------------------------------------------------- #
# Library-wide defaults
# --------------------------------------------------------------------------- #
LIBRARY_DEFAULTS: dict[str, Any] = {
    # Model bindings. ``user_model`` falls back to AUTH_USER_MODEL.
    "user_model": None,
    "group_model": None,
    "role_model": None,
    "group_access_model": None,
    # Foreign key attnames, defaulting to "<model name>_id".
    "user_key": None,
    "group_key": None,
    "role_field": "role",
    "group_roles": [
        "$group:admin",
        "$group:member",
    ],
    "apply_to_static": False,
    "unresolved_group_policy": "allow",
    "role_matching": None,
    "group_header": "X-Group-Id",
    "target_group_header": "X-Target-Group-Id",
    "track_last_used": False,
    "stamp_group_on_create": True,
    "scoping": {},
}

UNRESOLVED_GROUP_POLICIES = frozenset({"allow", "deny"})
ROLE_MATCHING_MODES = frozenset({"exact", "iexact"})


def validate_settings(settings: dict[str, Any]) -> list[str]:
    """
    Validate a settings dictionary and return a list of validation errors.

    Principal format is checked separately by ``rail_access_groups.principals``.
    """
    errors: list[str] = []

    for key in ("group_model", "group_access_model"):
        if not settings.get(key):
            errors.append(f"Required setting '{key}' is missing")

    policy = settings.get("unresolved_group_policy")
    if policy not in UNRESOLVED_GROUP_POLICIES:
        errors.append(
            f"unresolved_group_policy must be one of "
            f"{sorted(UNRESOLVED_GROUP_POLICIES)}, got {policy!r}"
        )

    matching = settings.get("role_matching")
    if matching is not None and matching not in ROLE_MATCHING_MODES:
        errors.append(
            f"role_matching must be None or one of "
            f"{sorted(ROLE_MATCHING_MODES)}, got {matching!r}"
        )

    scoping = settings.get("scoping")
    if scoping is not None and not isinstance(scoping, dict):
        errors.append("scoping must be a mapping of model labels to declarations")

    return errors
