"""
Group-aware model bases, managers and querysets.
"""

from typing import Any, Iterable

from django.conf import settings as django_settings
from django.db import models

from .exceptions import ConfigurationError
from .service import get_access_control


class GroupScopedQuerySet(models.QuerySet):
    def _group_lookup(self) -> str:
        strategy = get_access_control().registry.strategy_for(self.model)
        if strategy is None:
            raise ConfigurationError(
                f"{self.model._meta.label} is not scoped to a group",
                setting="scoping",
            )
        return strategy.lookup

    def for_group(self, group_id: Any):
        if group_id in (None, ""):
            return self.none()
        return self.filter(**{self._group_lookup(): group_id})

    def for_groups(self, group_ids: Iterable[Any]):
        group_ids = [group_id for group_id in group_ids if group_id not in (None, "")]
        if not group_ids:
            return self.none()
        return self.filter(**{f"{self._group_lookup()}__in": group_ids})


class GroupScopedManager(models.Manager):
    def get_queryset(self):
        return GroupScopedQuerySet(self.model, using=self._db)

    def for_group(self, group_id: Any):
        return self.get_queryset().for_group(group_id)

    def for_groups(self, group_ids: Iterable[Any]):
        return self.get_queryset().for_groups(group_ids)

    def unscoped(self):
        """All rows, read through the base manager without group scoping."""
        return self.model._base_manager.all()


class GroupScopedModel(models.Model):
    """
    Abstract base for group content.

    The owning group is whatever the resource registry resolved for the
    model: ``AccessGroupsMeta``, the ``scoping`` setting or discovery.
    """

    objects = GroupScopedManager()

    class Meta:
        abstract = True


class AbstractGroupAccess(models.Model):
    """
    Abstract membership record: a user holds a role in a group.

    Concrete models add the foreign key to the project's group model.
    """

    user = models.ForeignKey(
        django_settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="%(app_label)s_%(class)s_set",
    )
    role = models.CharField(max_length=64, db_index=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True

    def __str__(self) -> str:
        return f"{self.user_id}:{self.role}"
