# users/device.py

from __future__ import annotations

from typing import Any, Dict, MutableMapping, Optional

# Device-local keys. Values are JSON-compatible structures.
TASKS_KEY = "gamified-tasks"
STATS_KEY = "gamified-stats"
CATEGORIES_KEY = "gamified-categories"
GUEST_MODE_KEY = "guest-mode"
MIGRATION_KEY_PREFIX = "migrated-tasks-"
TIMEZONE_KEY = "device-timezone"


def migration_key(user_id: Any) -> str:
    return f"{MIGRATION_KEY_PREFIX}{user_id}"


def _is_device_key(key: str) -> bool:
    return key in (TASKS_KEY, STATS_KEY, CATEGORIES_KEY, GUEST_MODE_KEY, TIMEZONE_KEY) or key.startswith(
        MIGRATION_KEY_PREFIX
    )


class DeviceStorage:
    """
    Key/value storage local to one browser.

    Wraps the Django session of the request (any mutable mapping works, which
    is what the unit tests use). Values must be JSON-serializable because the
    session backend serializes them.
    """

    def __init__(self, backend: MutableMapping[str, Any]) -> None:
        self._backend = backend

    def get(self, key: str, default: Any = None) -> Any:
        return self._backend.get(key, default)

    def set(self, key: str, value: Any) -> None:
        # Assignment (not in-place mutation) so the session is marked modified.
        self._backend[key] = value

    def remove(self, key: str) -> None:
        self._backend.pop(key, None)

    def has(self, key: str) -> bool:
        return key in self._backend

    def snapshot(self) -> Dict[str, Any]:
        """Copy of every device key, used to carry data across session rotation."""
        return {k: v for k, v in self._backend.items() if _is_device_key(k)}

    def restore(self, data: Optional[Dict[str, Any]]) -> None:
        for key, value in (data or {}).items():
            self._backend[key] = value
