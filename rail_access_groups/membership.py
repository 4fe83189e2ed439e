"""
Read-only accessor over (user, group, role) membership records.
"""

import logging
from typing import Any

from django.db import DatabaseError, models
from django.utils import timezone

from .exceptions import AccessLookupError
from .settings import AccessGroupsSettings

logger = logging.getLogger(__name__)


class MembershipStore:
    """
    Queries the configured group access model.

    Role comparison is chosen by the caller: exact or case-insensitive.
    """

    def __init__(
        self,
        settings: AccessGroupsSettings,
        group_access_model: type[models.Model],
    ):
        self.settings = settings
        self.model = group_access_model

    @property
    def model_name(self) -> str:
        return self.model._meta.label

    def _role_condition(self, role: str, case_sensitive: bool) -> dict[str, Any]:
        lookup = self.settings.role_lookup
        if not case_sensitive:
            lookup = f"{lookup}__iexact"
        return {lookup: role}

    async def count(
        self,
        user_id: Any,
        group_id: Any,
        role: str,
        *,
        case_sensitive: bool = True,
    ) -> int:
        """Count membership rows of ``user_id`` in ``group_id`` with ``role``."""
        conditions = {
            self.settings.user_key: user_id,
            self.settings.group_key: group_id,
            **self._role_condition(role, case_sensitive),
        }
        try:
            count = await self.model._base_manager.filter(**conditions).acount()
        except DatabaseError as exc:
            logger.error("Membership count failed for %s: %s", conditions, exc)
            raise AccessLookupError(
                f"Could not count {self.model_name} rows", model_name=self.model_name
            ) from exc
        logger.debug(
            "User %s %s %s role in group %s",
            user_id,
            "HAS" if count > 0 else "DOESNT HAVE",
            role,
            group_id,
        )
        return count

    async def find_all(self, user_id: Any) -> list[models.Model]:
        """Return every membership row of ``user_id``."""
        queryset = self.model._base_manager.filter(**{self.settings.user_key: user_id})
        try:
            rows = [row async for row in queryset]
        except DatabaseError as exc:
            logger.error("Membership lookup failed for user %s: %s", user_id, exc)
            raise AccessLookupError(
                f"Could not list {self.model_name} rows", model_name=self.model_name
            ) from exc
        logger.debug("Access groups for user %s: %s", user_id, rows)
        return rows

    async def group_ids_for_user(self, user_id: Any) -> set[Any]:
        rows = await self.find_all(user_id)
        return {getattr(row, self.settings.group_key) for row in rows}

    async def touch_last_used(self, user_id: Any, group_id: Any) -> bool:
        """
        Stamp ``last_used_at`` on the user's membership of a group.

        Returns False when the user holds no membership in the group.
        """
        conditions = {
            self.settings.user_key: user_id,
            self.settings.group_key: group_id,
        }
        try:
            updated = await self.model._base_manager.filter(**conditions).aupdate(
                last_used_at=timezone.now()
            )
        except DatabaseError as exc:
            raise AccessLookupError(
                f"Could not update {self.model_name} last use",
                model_name=self.model_name,
            ) from exc
        if not updated:
            logger.warning(
                "No %s found for user %s in group %s", self.model_name, user_id, group_id
            )
        return bool(updated)


__all__ = ["MembershipStore"]
