"""
Query filters restricting reads to the groups a user belongs to.
"""

import logging
from typing import Any, Optional

from django.db.models import Q, QuerySet

from .context import AccessContext
from .membership import MembershipStore
from .registry import ModelRef, ResourceRegistry
from .settings import AccessGroupsSettings

logger = logging.getLogger(__name__)


class QueryFilterBuilder:
    def __init__(
        self,
        settings: AccessGroupsSettings,
        registry: ResourceRegistry,
        membership: MembershipStore,
    ):
        self.settings = settings
        self.registry = registry
        self.membership = membership

    def group_lookup(self, resource: ModelRef) -> Optional[str]:
        strategy = self.registry.strategy_for(resource)
        return strategy.lookup if strategy is not None else None

    async def build(
        self,
        user_id: Any,
        current_group_id: Optional[Any],
        resource: ModelRef,
        existing_filter: Optional[Q] = None,
    ) -> Q:
        """
        Build a where filter restricting results to the user's groups.

        User, group and membership listings are returned unchanged: a user
        must see every group and membership they hold across tenants.

        Raises:
            AccessLookupError: The user's memberships could not be listed.
        """
        existing = existing_filter if existing_filter is not None else Q()
        model = self.registry.get_model(resource)

        if self.registry.is_unscoped_type(model):
            return existing

        lookup = self.group_lookup(model)
        if lookup is None:
            logger.debug("%s is not group content, filter unchanged", model._meta.label)
            return existing

        if current_group_id not in (None, ""):
            return existing & Q(**{lookup: current_group_id})

        group_ids = await self.membership.group_ids_for_user(user_id)
        return existing & Q(**{f"{lookup}__in": sorted(group_ids, key=str)})

    async def scope_queryset(
        self,
        queryset: QuerySet,
        context: AccessContext,
        current_group_id: Optional[Any] = None,
        group_access_applied: Optional[bool] = None,
    ) -> QuerySet:
        """
        Layer the group filter onto a read queryset.

        Nothing is added unless group access was applied for this operation;
        a bypassed decision leaves the queryset untouched.
        """
        if group_access_applied is None:
            group_access_applied = context.group_access_applied
        if not group_access_applied:
            logger.debug("ACLs not applied, skipping access filters")
            return queryset

        if current_group_id is None:
            current_group_id = context.current_group_id

        group_filter = await self.build(
            context.user_id, current_group_id, queryset.model
        )
        logger.debug("Group filter for %s: %s", queryset.model._meta.label, group_filter)
        if not group_filter:
            return queryset
        return queryset.filter(group_filter)


__all__ = ["QueryFilterBuilder"]
