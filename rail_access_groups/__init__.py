"""
Group-scoped authorization for Django.

Decides whether a user holds a role in the group a resource belongs to and
narrows read querysets to the groups the user is a member of.

Usage:
    from rail_access_groups import AccessContext, get_access_control

    control = get_access_control()
    decision = await control.authorize("$group:admin", context, Document, pk)
    documents = await control.scope_queryset(Document.objects.all(), context, decision)
"""

from .context import AccessContext, AccessDecision, Operation
from .defaults import LIBRARY_VERSION
from .exceptions import (
    AccessGroupsError,
    AccessLookupError,
    AmbiguousRelationWarning,
    ConfigurationError,
    ResourceNotFound,
)
from .principals import RolePrincipal, extract_role_name, is_valid_principal
from .service import GroupAccessControl, get_access_control
from .settings import AccessGroupsSettings, get_access_groups_settings

__version__ = LIBRARY_VERSION

__all__ = [
    "AccessContext",
    "AccessDecision",
    "Operation",
    "AccessGroupsError",
    "AccessLookupError",
    "AmbiguousRelationWarning",
    "ConfigurationError",
    "ResourceNotFound",
    "RolePrincipal",
    "extract_role_name",
    "is_valid_principal",
    "GroupAccessControl",
    "get_access_control",
    "AccessGroupsSettings",
    "get_access_groups_settings",
]
