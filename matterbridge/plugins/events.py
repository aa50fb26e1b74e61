"""PluginEvents - lifecycle notifications for code embedding the plugin host."""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

EVENTS = (
    "added",
    "removed",
    "enabled",
    "disabled",
    "installed",
    "uninstalled",
    "loaded",
    "started",
    "configured",
    "shutdown",
)


class PluginEvents:
    """Registry of listeners for plugin lifecycle events.

    Listeners are plain callables receiving the plugin name (and the installed
    version for 'installed'). A failing listener never breaks the operation
    that emitted the event.
    """

    def __init__(self):
        self._handlers: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        """Register a listener.

        Args:
            event: One of EVENTS (e.g. 'added', 'started', 'shutdown')
            handler: Callable invoked with the event arguments
        """
        if event not in EVENTS:
            raise ValueError(f"Unknown plugin event: {event}")
        self._handlers.setdefault(event, []).append(handler)
        logger.debug(f"Registered listener for plugin event: {event}")

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception as e:
                logger.error(f"Error in listener for plugin event {event}: {e}")

    @property
    def handlers(self) -> dict[str, list[Callable[..., Any]]]:
        """Get all registered listeners."""
        return self._handlers
