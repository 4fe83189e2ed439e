"""
Configuration access for rail-access-groups.

Settings are resolved hierarchically from the ``ACCESS_GROUPS`` Django
setting and then from the library defaults.
"""

from typing import Any

from django.conf import settings

from .defaults import LIBRARY_DEFAULTS, SETTINGS_NAME


class SettingsProxy:
    """
    Proxy for reading access-group settings with hierarchical resolution.

    Settings are resolved in the following order:
    1. Django settings (ACCESS_GROUPS)
    2. Library defaults (LIBRARY_DEFAULTS)
    3. The caller supplied default
    """

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value with hierarchical resolution.

        Args:
            key: Setting key to retrieve (dot notation for nested keys)
            default: Default value if setting is not found

        Returns:
            The setting value from the highest priority source
        """
        django_value = self._get_nested_value(
            getattr(settings, SETTINGS_NAME, {}) or {}, key
        )
        if django_value is not None:
            return django_value

        library_value = self._get_nested_value(LIBRARY_DEFAULTS, key)
        if library_value is not None:
            return library_value

        return default

    def as_dict(self) -> dict[str, Any]:
        """Return the fully resolved top-level settings as a plain dict."""
        return {key: self.get(key) for key in LIBRARY_DEFAULTS}

    def _get_nested_value(self, data: dict[str, Any], key: str) -> Any:
        if not isinstance(data, dict):
            return None

        current: Any = data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
        return current


def get_settings_proxy() -> SettingsProxy:
    """Return a fresh proxy so overridden Django settings are always honored."""
    return SettingsProxy()
