"""
Resource registry and relation traversal.

Every model states how it is scoped to a group exactly once, when the
registry is built: through a direct group key or through one named
many-to-one edge to the group model.
"""

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from django.apps import apps
from django.core.exceptions import FieldDoesNotExist
from django.db import DatabaseError, models

from .exceptions import (
    AccessLookupError,
    AmbiguousRelationWarning,
    ConfigurationError,
    ResourceNotFound,
)
from .settings import AccessGroupsSettings

logger = logging.getLogger(__name__)

ModelRef = Union[type[models.Model], models.Model, str]


class ScopingKind(Enum):
    DIRECT = "direct"
    RELATION = "relation"


@dataclass(frozen=True)
class ScopingStrategy:
    kind: ScopingKind
    field_name: str
    # Instance attribute holding the owning group id.
    attname: str
    # ORM path used when filtering on the owning group.
    lookup: str


def _model_label(model: type[models.Model]) -> str:
    return model._meta.label_lower


def _resolve_model(label: Optional[str], setting: str) -> type[models.Model]:
    if not label:
        raise ConfigurationError(f"'{setting}' is not configured", setting=setting)
    try:
        return apps.get_model(label)
    except (LookupError, ValueError) as exc:
        raise ConfigurationError(
            f"'{setting}' refers to unknown model {label!r}", setting=setting
        ) from exc


def _get_declaration(
    model: type[models.Model], settings: AccessGroupsSettings
) -> Optional[dict[str, Any]]:
    for key in (model._meta.label, model._meta.label_lower):
        if key in settings.scoping:
            return dict(settings.scoping[key])
    meta_decl = getattr(model, "AccessGroupsMeta", None)
    if meta_decl is None:
        return None
    declaration = {}
    for attr in ("scoped", "group_field", "group_relation"):
        if hasattr(meta_decl, attr):
            declaration[attr] = getattr(meta_decl, attr)
    return declaration


class ResourceRegistry:
    """
    Type registry consumed by the decision engine.

    Resolves the configured user, group and membership models and computes a
    ``ScopingStrategy`` for every installed model.
    """

    def __init__(self, settings: AccessGroupsSettings):
        self.settings = settings
        self.user_model = _resolve_model(settings.user_model, "user_model")
        self.group_model = _resolve_model(settings.group_model, "group_model")
        self.group_access_model = _resolve_model(
            settings.group_access_model, "group_access_model"
        )
        self._strategies: dict[str, Optional[ScopingStrategy]] = {}
        for model in apps.get_models():
            self._strategies[_model_label(model)] = self._build_strategy(model)

    # --- Type checks ---

    def get_model(self, resource: ModelRef) -> type[models.Model]:
        if isinstance(resource, str):
            return _resolve_model(resource, "resource")
        if isinstance(resource, models.Model):
            return resource.__class__
        return resource

    def is_group_type(self, resource: Optional[ModelRef]) -> bool:
        if resource is None:
            return False
        return issubclass(self.get_model(resource), self.group_model)

    def is_group_access_type(self, resource: Optional[ModelRef]) -> bool:
        if resource is None:
            return False
        return issubclass(self.get_model(resource), self.group_access_model)

    def is_user_type(self, resource: Optional[ModelRef]) -> bool:
        if resource is None:
            return False
        return issubclass(self.get_model(resource), self.user_model)

    def is_unscoped_type(self, resource: ModelRef) -> bool:
        """User, group and membership listings are never group scoped."""
        return (
            self.is_user_type(resource)
            or self.is_group_type(resource)
            or self.is_group_access_type(resource)
        )

    # --- Scoping strategies ---

    def strategy_for(self, resource: ModelRef) -> Optional[ScopingStrategy]:
        model = self.get_model(resource)
        label = _model_label(model)
        if label not in self._strategies:
            self._strategies[label] = self._build_strategy(model)
        return self._strategies[label]

    def group_content_models(self) -> list[type[models.Model]]:
        """Models that belong to a group, directly or through one edge."""
        content = [
            model
            for model in apps.get_models()
            if self.strategy_for(model) is not None
        ]
        logger.debug(
            "Group content models: %s", [_model_label(model) for model in content]
        )
        return content

    def _build_strategy(self, model: type[models.Model]) -> Optional[ScopingStrategy]:
        if self.is_unscoped_type(model):
            return None

        declaration = _get_declaration(model, self.settings)
        if declaration is not None:
            return self._declared_strategy(model, declaration)
        return self._discovered_strategy(model)

    def _declared_strategy(
        self, model: type[models.Model], declaration: dict[str, Any]
    ) -> Optional[ScopingStrategy]:
        label = model._meta.label
        if declaration.get("scoped") is False:
            return None

        group_field = declaration.get("group_field")
        group_relation = declaration.get("group_relation")
        if group_field and group_relation:
            raise ConfigurationError(
                f"{label} declares both group_field and group_relation",
                setting="scoping",
            )

        if group_field:
            field = self._get_field(model, group_field)
            return ScopingStrategy(
                kind=ScopingKind.DIRECT,
                field_name=field.name,
                attname=field.attname,
                lookup=field.attname,
            )

        if group_relation:
            field = self._get_field(model, group_relation)
            related = getattr(field, "related_model", None)
            if not (field.many_to_one or field.one_to_one) or related is None or not (
                self.is_group_type(related)
            ):
                raise ConfigurationError(
                    f"{label}.{group_relation} is not a relation to "
                    f"{self.group_model._meta.label}",
                    setting="scoping",
                )
            return ScopingStrategy(
                kind=ScopingKind.RELATION,
                field_name=field.name,
                attname=field.attname,
                lookup=field.attname,
            )

        return self._discovered_strategy(model)

    def _discovered_strategy(self, model: type[models.Model]) -> Optional[ScopingStrategy]:
        fields = model._meta.concrete_fields
        group_key = self.settings.group_key

        for field in fields:
            if field.attname == group_key or field.name == group_key:
                return ScopingStrategy(
                    kind=ScopingKind.DIRECT,
                    field_name=field.name,
                    attname=field.attname,
                    lookup=field.attname,
                )

        edges = [
            field
            for field in fields
            if (field.many_to_one or field.one_to_one)
            and field.related_model is not None
            and not isinstance(field.related_model, str)
            and self.is_group_type(field.related_model)
        ]
        if not edges:
            return None

        if len(edges) > 1:
            message = (
                f"{model._meta.label} declares {len(edges)} relations to "
                f"{self.group_model._meta.label} "
                f"({', '.join(edge.name for edge in edges)}); using '{edges[0].name}'. "
                "Declare AccessGroupsMeta.group_relation to make scoping explicit."
            )
            logger.warning(message)
            warnings.warn(message, AmbiguousRelationWarning, stacklevel=2)

        edge = edges[0]
        return ScopingStrategy(
            kind=ScopingKind.RELATION,
            field_name=edge.name,
            attname=edge.attname,
            lookup=edge.attname,
        )

    def _get_field(self, model: type[models.Model], name: str) -> models.Field:
        try:
            return model._meta.get_field(name)
        except FieldDoesNotExist as exc:
            raise ConfigurationError(
                f"{model._meta.label} has no field {name!r}", setting="scoping"
            ) from exc

    # --- Relation traversal ---

    async def resolve_owning_group_id(
        self, resource: ModelRef, instance_id: Any
    ) -> Optional[Any]:
        """
        Return the id of the group owning an instance.

        The instance is read through the model's base manager so group scoping
        is never re-entered.

        Raises:
            ResourceNotFound: No instance has this id.
            AccessLookupError: The instance could not be read.
        """
        model = self.get_model(resource)
        if self.is_group_type(model):
            return instance_id

        strategy = self.strategy_for(model)
        queryset = model._base_manager.filter(pk=instance_id)
        try:
            if strategy is None:
                exists = await queryset.aexists()
                row = {} if exists else None
            else:
                row = await queryset.values(strategy.attname).afirst()
        except DatabaseError as exc:
            logger.error(
                "Failed to fetch %s %r: %s", model._meta.label, instance_id, exc
            )
            raise AccessLookupError(
                f"Could not fetch {model._meta.label} {instance_id!r}",
                model_name=model._meta.label,
            ) from exc

        if row is None:
            logger.debug("Model not found for id %r", instance_id)
            raise ResourceNotFound(model._meta.label, instance_id)

        if strategy is None:
            logger.debug(
                "No group key or relation to %s declared for %s",
                self.group_model._meta.label,
                model._meta.label,
            )
            return None

        group_id = row.get(strategy.attname)
        logger.debug(
            "Determined %s %r from %s %r via %s",
            self.settings.group_key,
            group_id,
            model._meta.label,
            instance_id,
            strategy.field_name,
        )
        return group_id


__all__ = ["ScopingKind", "ScopingStrategy", "ResourceRegistry"]
