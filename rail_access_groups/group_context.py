"""
Derivation of the current and target group of an authorization attempt.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from .context import AccessContext
from .registry import ModelRef, ResourceRegistry
from .settings import AccessGroupsSettings

logger = logging.getLogger(__name__)


def _present(value: Any) -> bool:
    return value not in (None, "")


class GroupContextResolver:
    def __init__(self, settings: AccessGroupsSettings, registry: ResourceRegistry):
        self.settings = settings
        self.registry = registry

    async def get_current_group_id(
        self,
        context: AccessContext,
        resource: ModelRef,
        instance_id: Optional[Any] = None,
    ) -> Optional[Any]:
        """
        Determine the group the operation currently acts in.

        The group model's own id is its group. An existing instance yields its
        owning group. Otherwise the current-group hint on the context is used,
        then the group the operation writes into (payload group key or target
        hint), so a create naming only its target group is still checked.

        Raises:
            ResourceNotFound: ``instance_id`` does not match an instance.
            AccessLookupError: The instance could not be read.
        """
        model = self.registry.get_model(resource)
        logger.debug("Resolving current group for %s", model._meta.label)

        if self.registry.is_group_type(model):
            return instance_id

        if _present(instance_id):
            return await self.registry.resolve_owning_group_id(model, instance_id)

        if _present(context.current_group_id):
            logger.debug(
                "Determined current %s %r from the request hint",
                self.settings.group_key,
                context.current_group_id,
            )
            return context.current_group_id

        target_group_id = await self.get_target_group_id(context, model)
        if _present(target_group_id):
            logger.debug(
                "Using target %s %r as the current group",
                self.settings.group_key,
                target_group_id,
            )
            return target_group_id

        logger.debug("Unable to determine current group context")
        return None

    async def get_target_group_id(
        self, context: AccessContext, resource: Optional[ModelRef] = None
    ) -> Optional[Any]:
        """
        Determine the group a create or move operation writes into.

        The incoming payload's group key wins over the target header hint.
        Reads and deletes have no target group.
        """
        if not context.operation.can_move:
            return None

        value = None
        if isinstance(context.data, Mapping):
            for key in self._payload_keys(resource):
                if _present(context.data.get(key)):
                    value = context.data[key]
                    break

        if not _present(value) and _present(context.target_group_id):
            value = context.target_group_id

        if _present(value):
            value = getattr(value, "pk", value)
            logger.debug("Determined target %s %r", self.settings.group_key, value)
            return value

        logger.debug("Unable to determine target group context")
        return None

    def _payload_keys(self, resource: Optional[ModelRef]) -> list[str]:
        keys = [self.settings.group_key]
        if resource is None:
            return keys
        strategy = self.registry.strategy_for(resource)
        if strategy is not None:
            for key in (strategy.attname, strategy.field_name):
                if key not in keys:
                    keys.append(key)
        return keys


__all__ = ["GroupContextResolver"]
