"""
Dynamic role resolution for group role principals.

One ``RoleResolver`` exists per configured principal (``"$group:admin"``,
``"$group:member"``, ...). A resolver answers whether the user of an access
context holds that role in the group a resource belongs to.

Basic mode (``apply_to_static = False``) only covers operations on a single
existing instance, much like an owner check. Extended mode also covers
collection and create operations by reasoning about the current group and,
for writes, the target group.
"""

import asyncio
import logging
from typing import Any, Optional, Union

from .context import AccessContext, AccessDecision
from .exceptions import ResourceNotFound
from .group_context import GroupContextResolver
from .membership import MembershipStore
from .principals import RolePrincipal
from .registry import ModelRef, ResourceRegistry
from .settings import AccessGroupsSettings

logger = logging.getLogger(__name__)


def _same_group(left: Any, right: Any) -> bool:
    # Header hints arrive as strings while stored keys are usually integers.
    return str(left) == str(right)


class RoleResolver:
    """Resolves one group role principal against an access context."""

    def __init__(
        self,
        principal: Union[str, RolePrincipal],
        settings: AccessGroupsSettings,
        registry: ResourceRegistry,
        membership: MembershipStore,
        group_context: Optional[GroupContextResolver] = None,
    ):
        if not isinstance(principal, RolePrincipal):
            principal = RolePrincipal.parse(principal)
        self.principal = principal
        self.settings = settings
        self.registry = registry
        self.membership = membership
        self.group_context = group_context or GroupContextResolver(settings, registry)

    @property
    def role_name(self) -> str:
        return self.principal.role_name

    async def resolve(
        self,
        context: AccessContext,
        resource: ModelRef,
        instance_id: Optional[Any] = None,
        *,
        is_static: bool = False,
    ) -> AccessDecision:
        """
        Decide whether the context's user holds this role for the resource.

        Args:
            context: Access context of the current operation
            resource: Model class, instance or label being operated on
            instance_id: Id of the instance, absent for collection operations
            is_static: True when the operation targets the collection rather
                than one instance. Basic mode denies static operations even
                when an instance id is supplied.

        Returns:
            AccessDecision; on an extended-mode ALLOW the context is marked as
            having had group access applied.

        Raises:
            AccessLookupError: A membership or instance lookup failed.
        """
        model = self.registry.get_model(resource)
        logger.debug(
            "Role resolver: evaluating if user %s has %s role; user attempting %s on %s",
            context.user_id,
            self.role_name,
            context.operation.value,
            model._meta.label,
        )

        if context.is_anonymous:
            logger.debug("Deny access for anonymous user")
            return self._decision(False, reason="anonymous")

        if not self.settings.apply_to_static:
            return await self._resolve_basic(context, model, instance_id, is_static)
        return await self._resolve_extended(context, model, instance_id)

    async def _resolve_basic(
        self,
        context: AccessContext,
        model: ModelRef,
        instance_id: Optional[Any],
        is_static: bool,
    ) -> AccessDecision:
        if is_static or instance_id in (None, ""):
            logger.debug(
                "Deny access (static: %s, instance id: %s)", is_static, instance_id
            )
            return self._decision(False, reason="static operation in basic mode")

        try:
            group_id = await self.registry.resolve_owning_group_id(model, instance_id)
        except ResourceNotFound as exc:
            logger.debug("Deny access: %s", exc)
            return self._decision(False, reason="instance not found")

        if group_id in (None, ""):
            logger.debug("No owning group found for instance %r", instance_id)
            return self._decision(False, reason="no owning group")

        count = await self.membership.count(
            context.user_id,
            group_id,
            self.role_name,
            case_sensitive=self.settings.case_sensitive_roles(extended=False),
        )
        allowed = count > 0
        return self._decision(
            allowed,
            current_group_id=group_id,
            reason="member" if allowed else "not a member",
        )

    async def _resolve_extended(
        self,
        context: AccessContext,
        model: ModelRef,
        instance_id: Optional[Any],
    ) -> AccessDecision:
        try:
            current_group_id, target_group_id = await asyncio.gather(
                self.group_context.get_current_group_id(context, model, instance_id),
                self.group_context.get_target_group_id(context, model),
            )
        except ResourceNotFound as exc:
            logger.debug("Deny access: %s", exc)
            return self._decision(False, reason="instance not found")

        logger.debug(
            "currentGroupId %r targetGroupId %r", current_group_id, target_group_id
        )

        if current_group_id in (None, ""):
            if self.settings.unresolved_group_policy == "deny":
                logger.debug("No group context determined, denying access")
                return self._decision(
                    False, target_group_id=target_group_id, reason="no group context"
                )
            # group_access_applied stays False so reads are not filtered.
            logger.debug("No group context determined, allowing passthrough access")
            return self._decision(
                True,
                target_group_id=target_group_id,
                reason="no group context (bypass)",
            )

        case_sensitive = self.settings.case_sensitive_roles(extended=True)
        moving = target_group_id not in (None, "") and not _same_group(
            target_group_id, current_group_id
        )

        lookups = [
            self.membership.count(
                context.user_id,
                current_group_id,
                self.role_name,
                case_sensitive=case_sensitive,
            )
        ]
        if moving:
            lookups.append(
                self.membership.count(
                    context.user_id,
                    target_group_id,
                    self.role_name,
                    case_sensitive=case_sensitive,
                )
            )
        counts = await asyncio.gather(*lookups)

        allowed = counts[0] > 0
        logger.debug(
            "User %s %s %s of %s %r",
            context.user_id,
            "is a" if allowed else "is not a",
            self.role_name,
            self.settings.group_model,
            current_group_id,
        )
        reason = "member" if allowed else "not a member"
        if moving:
            target_member = counts[1] > 0
            logger.debug(
                "User %s %s %s of %s %r",
                context.user_id,
                "is a" if target_member else "is not a",
                self.role_name,
                self.settings.group_model,
                target_group_id,
            )
            if allowed and not target_member:
                reason = "not a member of target group"
            allowed = allowed and target_member

        if allowed:
            context.mark_group_access_applied()

        return self._decision(
            allowed,
            group_access_applied=allowed,
            current_group_id=current_group_id,
            target_group_id=target_group_id,
            reason=reason,
        )

    def _decision(self, allowed: bool, **kwargs: Any) -> AccessDecision:
        return AccessDecision(
            allowed=allowed,
            principal=self.principal.principal,
            role_name=self.role_name,
            **kwargs,
        )


__all__ = ["RoleResolver"]
