"""
In-process hotkey registry.

Capturing physical key presses is left to whatever front end owns the
keyboard (a desktop hotkey daemon, the HTTP API, MQTT). It calls trigger()
with the binding string and the registry runs the bound action.
"""

import threading
from typing import Callable

from gloaming.logger import logger


def normalize_binding(binding: str) -> str:
    """'Ctrl + Alt+L' -> 'alt+ctrl+l' (modifier order does not matter)."""
    keys = [key.strip().lower() for key in binding.split("+") if key.strip()]
    if not keys:
        return ""
    *modifiers, key = keys
    return "+".join(sorted(modifiers) + [key])


class HotKeyRegistry:
    def __init__(self):
        self._actions: dict[str, Callable[[], None]] = {}
        self._lock = threading.Lock()

    def register_hot_key(self, binding: str, action: Callable[[], None]):
        normalized = normalize_binding(binding)
        if not normalized:
            return

        with self._lock:
            if normalized in self._actions:
                logger.warning(f"Hotkey {normalized} registered twice, keeping the latest action")
            self._actions[normalized] = action

        logger.debug(f"Registered hotkey {normalized}")

    def unregister_all(self):
        with self._lock:
            self._actions.clear()

    def get_bindings(self) -> list[str]:
        with self._lock:
            return sorted(self._actions)

    def trigger(self, binding: str) -> bool:
        """
        Run the action bound to binding.

        Returns:
            True if an action was bound and ran, False otherwise
        """
        with self._lock:
            action = self._actions.get(normalize_binding(binding))

        if action is None:
            return False

        logger.info(f"Hotkey triggered: {normalize_binding(binding)}")
        action()
        return True
