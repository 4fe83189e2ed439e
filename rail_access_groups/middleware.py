"""
Request middleware attaching the per-operation access context.
"""

from asgiref.sync import async_to_sync
from django.http import HttpRequest
from django.utils.deprecation import MiddlewareMixin

from .context import AccessContext
from .service import get_access_control

ACCESS_CONTEXT_ATTR = "access_context"
ACCESS_DECISION_ATTR = "access_decision"


class AccessContextMiddleware(MiddlewareMixin):
    """Attaches an AccessContext (user, group hints, operation) to every request."""

    def process_request(self, request: HttpRequest) -> None:
        control = get_access_control()
        context = AccessContext.from_request(request, control.settings)
        setattr(request, ACCESS_CONTEXT_ATTR, context)
        if control.settings.track_last_used:
            async_to_sync(control.record_group_access)(context)


def get_access_context(request: HttpRequest) -> AccessContext:
    """Retrieve the access context of a request."""
    context = getattr(request, ACCESS_CONTEXT_ATTR, None)
    if context is None:
        # Middleware not installed
        context = AccessContext.from_request(request, get_access_control().settings)
        setattr(request, ACCESS_CONTEXT_ATTR, context)
    return context
