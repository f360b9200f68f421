"""Plugin registry for FormKeeper.

The registry keeps the installed plugins in registration order, rejects
duplicate names and plugins whose dependencies are not registered yet, and
wires each plugin's declared hooks onto the event bus. Teardown runs in
reverse registration order so that a plugin is always uninstalled before
the plugins it depends on.
"""

from typing import Dict, List, Optional
import logging

from .errors import DuplicatePluginError, PluginDependencyError
from .events import EventBus, FormEvent, Unsubscribe
from .plugins.base import Plugin, PluginHooks
from .types import EventType, PluginInfo

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Bookkeeping for the plugins installed on a kernel.

    Attributes:
        event_bus: Bus that declared hooks are subscribed to

    Examples:
        >>> registry = PluginRegistry(EventBus())
        >>> class Noop(Plugin):
        ...     name = "noop"
        >>> registry.register(Noop())
        >>> [info.name for info in registry.list()]
        ['noop']
    """

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self._plugins: Dict[str, Plugin] = {}
        self._hook_subscriptions: Dict[str, List[Unsubscribe]] = {}

    def register(self, plugin: Plugin) -> None:
        """Register a plugin and wire its hooks.

        Raises:
            DuplicatePluginError: If a plugin with the same name is registered
            PluginDependencyError: If a declared dependency is not registered
        """
        if plugin.name in self._plugins:
            raise DuplicatePluginError(plugin.name)

        missing = [name for name in plugin.dependencies if name not in self._plugins]
        if missing:
            raise PluginDependencyError(plugin.name, missing)

        self._plugins[plugin.name] = plugin
        self._hook_subscriptions[plugin.name] = self._register_hooks(plugin.hooks)

    def unregister(self, name: str) -> None:
        """Drop a plugin's bookkeeping and hook subscriptions.

        Does not call uninstall(); the kernel does that first when needed.
        """
        self._plugins.pop(name, None)
        for unsubscribe in self._hook_subscriptions.pop(name, []):
            unsubscribe()

    def unregister_all(self) -> None:
        """Uninstall and drop every plugin, newest first.

        A plugin whose uninstall() raises is logged and skipped so the
        remaining plugins are still torn down.
        """
        for plugin in reversed(list(self._plugins.values())):
            try:
                plugin.uninstall()
            except Exception:
                logger.exception('Error uninstalling plugin "%s"', plugin.name)
            else:
                logger.debug('Uninstalled plugin "%s"', plugin.name)

        for subscriptions in self._hook_subscriptions.values():
            for unsubscribe in subscriptions:
                unsubscribe()
        self._hook_subscriptions.clear()
        self._plugins.clear()

    def get(self, name: str) -> Optional[Plugin]:
        return self._plugins.get(name)

    def has(self, name: str) -> bool:
        return name in self._plugins

    def names(self) -> List[str]:
        """Registered plugin names in registration order."""
        return list(self._plugins)

    def list(self) -> List[PluginInfo]:
        """Describe every registered plugin in registration order."""
        return [
            PluginInfo(name=plugin.name, version=plugin.version, type=plugin.type)
            for plugin in self._plugins.values()
        ]

    def _register_hooks(self, hooks: Optional[PluginHooks]) -> List[Unsubscribe]:
        if hooks is None:
            return []

        subscriptions: List[Unsubscribe] = []

        if hooks.on_value_change is not None:
            on_value_change = hooks.on_value_change

            def handle_change(event: FormEvent) -> None:
                on_value_change(event.get("path"), event.get("value"), event.get("previous_value"))

            subscriptions.append(self.event_bus.on(EventType.CHANGE, handle_change))

        if hooks.on_state_change is not None:
            on_state_change = hooks.on_state_change

            def handle_state_change(event: FormEvent) -> None:
                on_state_change(event.get("state"))

            subscriptions.append(self.event_bus.on(EventType.STATE_CHANGE, handle_state_change))

        if hooks.on_validate is not None:
            on_validate = hooks.on_validate

            def handle_validate(event: FormEvent) -> None:
                on_validate(event.get("errors"), event.get("is_valid"))

            subscriptions.append(self.event_bus.on(EventType.VALIDATE, handle_validate))

        if hooks.on_reset is not None:
            on_reset = hooks.on_reset

            def handle_reset(event: FormEvent) -> None:
                on_reset(event.get("values"))

            subscriptions.append(self.event_bus.on(EventType.RESET, handle_reset))

        return subscriptions


__all__ = [
    "PluginRegistry",
]
