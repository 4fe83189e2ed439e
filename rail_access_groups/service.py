"""
Access-group control: wiring of the registry, membership store, group
context resolver, role resolvers and query filter builder.
"""

import logging
from typing import Any, Iterable, Optional, Union

from django.apps import apps
from django.db import models
from django.db.models import QuerySet

from .context import AccessContext, AccessDecision
from .exceptions import ConfigurationError
from .filters import QueryFilterBuilder
from .group_context import GroupContextResolver
from .membership import MembershipStore
from .registry import ModelRef, ResourceRegistry
from .resolvers import RoleResolver
from .settings import AccessGroupsSettings, get_access_groups_settings

logger = logging.getLogger(__name__)


class GroupAccessControl:
    """
    Entry point used by authorization boundaries.

    Builds one role resolver per configured principal and exposes decision,
    filtering and save-stamping helpers sharing one settings value.
    """

    def __init__(
        self,
        settings: Optional[AccessGroupsSettings] = None,
        registry: Optional[ResourceRegistry] = None,
    ):
        self.settings = settings or get_access_groups_settings()
        self.registry = registry or ResourceRegistry(self.settings)
        self.membership = MembershipStore(self.settings, self.registry.group_access_model)
        self.group_context = GroupContextResolver(self.settings, self.registry)
        self.filters = QueryFilterBuilder(self.settings, self.registry, self.membership)
        self.resolvers: dict[str, RoleResolver] = {}
        for principal in self.settings.group_roles:
            logger.debug("Registering role resolver for %s", principal)
            self.resolvers[principal.principal] = RoleResolver(
                principal,
                self.settings,
                self.registry,
                self.membership,
                self.group_context,
            )

    def resolver_for(self, principal: str) -> RoleResolver:
        try:
            return self.resolvers[principal]
        except KeyError:
            raise ConfigurationError(
                f"{principal!r} is not a configured group role", setting="group_roles"
            ) from None

    async def has_role(
        self,
        principal: str,
        context: AccessContext,
        resource: ModelRef,
        instance_id: Optional[Any] = None,
        *,
        is_static: Optional[bool] = None,
    ) -> AccessDecision:
        if is_static is None:
            is_static = instance_id in (None, "")
        return await self.resolver_for(principal).resolve(
            context, resource, instance_id, is_static=is_static
        )

    async def authorize(
        self,
        principals: Union[str, Iterable[str], None],
        context: AccessContext,
        resource: ModelRef,
        instance_id: Optional[Any] = None,
        *,
        is_static: Optional[bool] = None,
    ) -> AccessDecision:
        """
        Evaluate principals in order and return the first ALLOW.

        Without principals every configured group role is tried. Lookup
        errors abort the evaluation.
        """
        if principals is None:
            principals = self.settings.principals
        elif isinstance(principals, str):
            principals = [principals]
        principals = list(principals)
        if not principals:
            raise ConfigurationError("No group roles to evaluate", setting="group_roles")

        decision = None
        for principal in principals:
            decision = await self.has_role(
                principal, context, resource, instance_id, is_static=is_static
            )
            if decision.allowed:
                break
        logger.debug(
            "Authorization for user %s on %s: %s (%s)",
            context.user_id,
            self.registry.get_model(resource)._meta.label,
            "ALLOW" if decision.allowed else "DENY",
            decision.reason,
        )
        return decision

    async def scope_queryset(
        self,
        queryset: QuerySet,
        context: AccessContext,
        decision: Optional[AccessDecision] = None,
    ) -> QuerySet:
        """Restrict a read queryset according to a decision (or the context flag)."""
        if decision is None:
            return await self.filters.scope_queryset(queryset, context)
        return await self.filters.scope_queryset(
            queryset,
            context,
            current_group_id=decision.current_group_id,
            group_access_applied=decision.group_access_applied,
        )

    async def get_access_groups(self, user_id: Any) -> list[models.Model]:
        return await self.membership.find_all(user_id)

    async def record_group_access(self, context: AccessContext) -> bool:
        """Stamp last use of the user's membership in the current group."""
        if context.is_anonymous or context.current_group_id in (None, ""):
            return False
        return await self.membership.touch_last_used(
            context.user_id, context.current_group_id
        )

    def stamp_group(
        self,
        instance: models.Model,
        context: AccessContext,
        decision: Optional[AccessDecision] = None,
    ) -> bool:
        """
        Set the owning group of a new group content instance.

        Only applies when group access was applied for the operation. The
        verified target group wins over the current group.
        """
        if not self.settings.stamp_group_on_create:
            return False
        applied = decision.group_access_applied if decision else context.group_access_applied
        if not applied or not instance._state.adding:
            return False

        strategy = self.registry.strategy_for(instance)
        if strategy is None:
            return False

        group_id = None
        if decision is not None:
            group_id = decision.target_group_id or decision.current_group_id
        if group_id in (None, ""):
            group_id = context.current_group_id
        if group_id in (None, ""):
            return False

        setattr(instance, strategy.attname, group_id)
        logger.debug(
            "Stamped %s %r on new %s",
            strategy.attname,
            group_id,
            instance._meta.label,
        )
        return True


def get_access_control() -> GroupAccessControl:
    """Return the control built when the app registry became ready."""
    app_config = apps.get_app_config("rail_access_groups")
    control = getattr(app_config, "access_control", None)
    if control is None:
        control = GroupAccessControl()
        app_config.access_control = control
    return control


__all__ = ["GroupAccessControl", "get_access_control"]
