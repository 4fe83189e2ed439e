"""
Authorization boundaries for GraphQL resolvers and Django views.

Both decorators build the request's access context, evaluate the given group
role principals and keep the decision on the request so list resolvers can
scope their querysets with ``scope_for_request``.
"""

from collections.abc import Mapping
from dataclasses import replace
from functools import wraps
from typing import Any, Callable, Optional, Union

from asgiref.sync import async_to_sync, iscoroutinefunction
from django.core.exceptions import PermissionDenied
from django.db import models
from django.db.models import QuerySet
from graphql import GraphQLError

from .context import AccessContext, AccessDecision, Operation
from .middleware import ACCESS_DECISION_ATTR, get_access_context
from .service import get_access_control


def _normalize_principals(principals: Union[str, list[str], None]) -> Optional[list[str]]:
    if principals is None:
        return None
    if isinstance(principals, str):
        return [principals]
    return list(principals)


def _extract_object_id(kwargs: dict, id_arg: str) -> Optional[Any]:
    """Extract an object ID from resolver keyword arguments."""
    for key in (id_arg, "object_id", "id", "pk"):
        if key in kwargs and kwargs[key] is not None:
            return kwargs[key]

    input_value = kwargs.get("input")
    if isinstance(input_value, dict):
        for key in (id_arg, "id", "pk"):
            if key in input_value and input_value[key] is not None:
                return input_value[key]
    elif input_value is not None:
        for key in (id_arg, "id", "pk"):
            value = getattr(input_value, key, None)
            if value is not None:
                return value
    return None


def _extract_input_data(kwargs: dict) -> dict:
    """Payload of a GraphQL write: the ``input`` argument, else the arguments."""
    input_value = kwargs.get("input")
    if isinstance(input_value, Mapping):
        return dict(input_value)
    if input_value is not None:
        return {
            key: value
            for key, value in getattr(input_value, "__dict__", {}).items()
            if not key.startswith("_")
        }
    return dict(kwargs)


def _operation_context(
    info, context: AccessContext, kwargs: dict, object_id: Optional[Any]
) -> AccessContext:
    """
    Copy of the request context for one GraphQL operation.

    GraphQL requests are all POSTs, so the operation kind comes from the
    document (query or mutation) and the payload from the resolver arguments.
    """
    operation_node = getattr(info, "operation", None)
    operation_type = getattr(operation_node, "operation", None)
    if operation_type is None:
        return context
    operation = Operation.from_graphql_operation(
        operation_type, has_instance=object_id is not None
    )
    data = _extract_input_data(kwargs) if operation.can_move else {}
    return replace(context, operation=operation, data=data)


def _infer_model_class(info) -> Optional[type[models.Model]]:
    """Infer the Django model class from GraphQL type information."""
    graphql_type = getattr(info, "return_type", None)
    while hasattr(graphql_type, "of_type"):
        graphql_type = graphql_type.of_type

    graphene_type = getattr(graphql_type, "graphene_type", None)
    meta = getattr(graphene_type, "_meta", None)
    model = getattr(meta, "model", None)
    if model is not None:
        return model
    return getattr(graphene_type, "model_class", None)


def require_group_role(
    principals: Union[str, list[str], None] = None,
    model: Optional[type[models.Model]] = None,
    id_arg: str = "id",
):
    """
    Decorator requiring a group role for a GraphQL resolver.

    Args:
        principals: Group role principal(s); all configured roles when None.
        model: Model being resolved, inferred from the return type if omitted.
        id_arg: Resolver argument carrying the instance id.

    Raises:
        GraphQLError: If the user is anonymous or holds none of the roles.
    """
    principals = _normalize_principals(principals)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            info = None
            for arg in args:
                if hasattr(arg, "context"):
                    info = arg
                    break

            if not info or info.context is None:
                raise GraphQLError("User context unavailable")

            context = get_access_context(info.context)
            if context.is_anonymous:
                raise GraphQLError("Authentication required")

            model_class = model or _infer_model_class(info)
            if model_class is None:
                raise GraphQLError("Unable to determine the resource being accessed")

            object_id = _extract_object_id(kwargs, id_arg)
            context = _operation_context(info, context, kwargs, object_id)
            control = get_access_control()
            decision = async_to_sync(control.authorize)(
                principals, context, model_class, object_id
            )
            if not decision.allowed:
                raise GraphQLError(f"Group role required: {decision.principal}")

            setattr(info.context, ACCESS_DECISION_ATTR, decision)
            return func(*args, **kwargs)

        return wrapper

    return decorator


def group_role_required(
    principals: Union[str, list[str], None] = None,
    model: Optional[type[models.Model]] = None,
    id_kwarg: str = "pk",
):
    """
    Decorator requiring a group role for a Django view (sync or async).

    Raises:
        PermissionDenied: If the user holds none of the roles.
    """
    principals = _normalize_principals(principals)
    if model is None:
        raise TypeError("group_role_required() needs the model being accessed")

    def decorator(view: Callable) -> Callable:
        if iscoroutinefunction(view):

            @wraps(view)
            async def async_wrapper(request, *args, **kwargs):
                context = get_access_context(request)
                decision = await get_access_control().authorize(
                    principals, context, model, kwargs.get(id_kwarg)
                )
                _enforce(request, decision)
                return await view(request, *args, **kwargs)

            return async_wrapper

        @wraps(view)
        def wrapper(request, *args, **kwargs):
            context = get_access_context(request)
            decision = async_to_sync(get_access_control().authorize)(
                principals, context, model, kwargs.get(id_kwarg)
            )
            _enforce(request, decision)
            return view(request, *args, **kwargs)

        return wrapper

    return decorator


def _enforce(request: Any, decision: AccessDecision) -> None:
    if not decision.allowed:
        raise PermissionDenied(f"Group role required: {decision.principal}")
    setattr(request, ACCESS_DECISION_ATTR, decision)


def scope_for_request(queryset: QuerySet, request: Any) -> QuerySet:
    """Restrict a read queryset using the decision stored on a request."""
    context = get_access_context(request)
    decision = getattr(request, ACCESS_DECISION_ATTR, None)
    return async_to_sync(get_access_control().scope_queryset)(
        queryset, context, decision
    )


__all__ = ["require_group_role", "group_role_required", "scope_for_request"]
