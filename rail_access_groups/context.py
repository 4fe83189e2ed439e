"""
Per-operation access context and decision values.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from django.http import HttpRequest

if TYPE_CHECKING:
    from .settings import AccessGroupsSettings


class Operation(Enum):
    """Kind of operation being authorized."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXECUTE = "execute"

    @classmethod
    def from_http_method(cls, method: Optional[str]) -> "Operation":
        method = (method or "GET").upper()
        if method in {"GET", "HEAD", "OPTIONS"}:
            return cls.READ
        if method == "POST":
            return cls.CREATE
        if method in {"PUT", "PATCH"}:
            return cls.UPDATE
        if method == "DELETE":
            return cls.DELETE
        return cls.EXECUTE

    @classmethod
    def from_graphql_operation(
        cls, operation_type: Any, has_instance: bool = False
    ) -> "Operation":
        """Map a GraphQL operation type (query, mutation, subscription)."""
        value = str(getattr(operation_type, "value", operation_type) or "").lower()
        if value == "mutation":
            return cls.UPDATE if has_instance else cls.CREATE
        return cls.READ

    @property
    def can_move(self) -> bool:
        """True when the operation may place data into a target group."""
        return self in {Operation.CREATE, Operation.UPDATE, Operation.EXECUTE}


@dataclass
class AccessContext:
    """
    Transient context for one operation.

    Built at the start of an operation, never shared across operations.
    ``group_access_applied`` only moves from False to True.
    """

    user_id: Optional[Any] = None
    current_group_id: Optional[Any] = None
    target_group_id: Optional[Any] = None
    operation: Operation = Operation.READ
    data: dict[str, Any] = field(default_factory=dict)
    _group_access_applied: bool = field(default=False, init=False, repr=False)

    @property
    def group_access_applied(self) -> bool:
        return self._group_access_applied

    @property
    def is_anonymous(self) -> bool:
        return self.user_id in (None, "")

    def mark_group_access_applied(self) -> None:
        self._group_access_applied = True

    @classmethod
    def from_request(
        cls, request: HttpRequest, settings: "AccessGroupsSettings"
    ) -> "AccessContext":
        user = getattr(request, "user", None)
        user_id = None
        if user is not None and getattr(user, "is_authenticated", False):
            user_id = user.pk
        return cls(
            user_id=user_id,
            current_group_id=_get_header_value(request, settings.group_header),
            target_group_id=_get_header_value(request, settings.target_group_header),
            operation=Operation.from_http_method(getattr(request, "method", None)),
            data=_get_request_data(request),
        )


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of evaluating one role principal."""

    allowed: bool
    principal: str
    role_name: str
    group_access_applied: bool = False
    current_group_id: Optional[Any] = None
    target_group_id: Optional[Any] = None
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


def _normalize_header_key(header_name: str) -> str:
    name = header_name.upper().replace("-", "_")
    if name not in {"CONTENT_TYPE", "CONTENT_LENGTH"} and not name.startswith("HTTP_"):
        name = f"HTTP_{name}"
    return name


def _get_header_value(request: Any, header_name: Optional[str]) -> Optional[str]:
    if not header_name or request is None:
        return None
    headers = getattr(request, "headers", None)
    if headers:
        value = headers.get(header_name)
        if value:
            return str(value).strip() or None
    meta = getattr(request, "META", None)
    if isinstance(meta, dict):
        value = meta.get(_normalize_header_key(header_name))
        if value:
            return str(value).strip() or None
    return None


def _get_request_data(request: Any) -> dict[str, Any]:
    if request is None or getattr(request, "method", "GET") in {"GET", "HEAD"}:
        return {}
    content_type = getattr(request, "content_type", "") or ""
    if content_type.startswith("application/json"):
        try:
            payload = json.loads(request.body or b"{}")
        except (TypeError, ValueError):
            return {}
        return payload if isinstance(payload, dict) else {}
    post = getattr(request, "POST", None)
    if post is None:
        return {}
    return post.dict() if hasattr(post, "dict") else dict(post)


__all__ = ["Operation", "AccessContext", "AccessDecision"]
