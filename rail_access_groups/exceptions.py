"""
Exceptions raised by the access-group engine.

Configuration problems are fatal at setup. Lookup failures abort a decision
and propagate to the caller. A missing instance is a normal DENY outcome and
only surfaces internally as ``ResourceNotFound``.
"""

from typing import Any, Optional

from django.core.exceptions import ImproperlyConfigured


class AccessGroupsError(Exception):
    """Base exception for access-group errors."""


class ConfigurationError(AccessGroupsError, ImproperlyConfigured):
    """Raised at setup when the access-group configuration is invalid."""

    def __init__(self, message: str, setting: Optional[str] = None):
        self.setting = setting
        super().__init__(message)


class AccessLookupError(AccessGroupsError):
    """Raised when a membership or instance lookup fails during a decision."""

    def __init__(self, message: str, model_name: Optional[str] = None):
        self.model_name = model_name
        super().__init__(message)


class ResourceNotFound(AccessGroupsError):
    """Raised when an instance id does not match any stored instance."""

    def __init__(self, model_name: str, instance_id: Any):
        self.model_name = model_name
        self.instance_id = instance_id
        super().__init__(f"{model_name} with id {instance_id!r} not found")


class AmbiguousRelationWarning(UserWarning):
    """A model declares more than one many-to-one edge to the group model."""


__all__ = [
    "AccessGroupsError",
    "ConfigurationError",
    "AccessLookupError",
    "ResourceNotFound",
    "AmbiguousRelationWarning",
]
