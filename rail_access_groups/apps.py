"""
Django app configuration for rail-access-groups.

On ready() the access-group settings are parsed and validated, the resource
registry is built (warning about ambiguous group relations) and one role
resolver is registered per configured group role.
"""

import logging

from django.apps import AppConfig as BaseAppConfig

logger = logging.getLogger(__name__)


class AppConfig(BaseAppConfig):
    """Django app configuration for rail-access-groups."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "rail_access_groups"
    verbose_name = "Rail Access Groups"
    label = "rail_access_groups"

    access_control = None

    def ready(self):
        """Build the access control once the model registry is populated."""
        from .service import GroupAccessControl

        logger.info("Initializing access groups")
        # Configuration errors are fatal here.
        self.access_control = GroupAccessControl()
        logger.info(
            "Access groups initialized (mode: %s, roles: %s)",
            "extended" if self.access_control.settings.apply_to_static else "basic",
            ", ".join(self.access_control.resolvers),
        )
