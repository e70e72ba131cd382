"""Job handler registry."""

from collections.abc import Callable
from typing import Optional


class JobRegistry:
    """Registry for job handlers and their failure hooks."""

    def __init__(self):
        self._handlers: dict[str, Callable] = {}
        self._failure_hooks: dict[str, Callable] = {}

    def register(
        self, name: str, handler: Callable, on_failed: Optional[Callable] = None
    ) -> None:
        """Register ``handler(ctx, payload)`` for a job type."""
        self._handlers[name] = handler
        if on_failed is not None:
            self._failure_hooks[name] = on_failed

    def get_handler(self, name: str) -> Optional[Callable]:
        """Get a handler by name."""
        return self._handlers.get(name)

    def get_failure_hook(self, name: str) -> Optional[Callable]:
        """Get the hook called when a job of this type fails terminally."""
        return self._failure_hooks.get(name)

