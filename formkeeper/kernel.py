"""Kernel for FormKeeper forms.

The kernel owns the form configuration, the event bus and the plugin
registry, and acts as a service locator for plugin APIs. It is the only
coordination point between plugins: they find each other by name through
get_plugin() and talk through events.

On construction the kernel installs the five core plugins in dependency
order (field registry, state manager, validation engine, array fields,
submit handler) and then the caller's plugins, in the order given.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, Union
import asyncio
import logging

from .events import EventBus, EventHandler, FormEvent, Unsubscribe
from .plugins import (
    ArrayFieldsPlugin,
    FieldRegistryPlugin,
    StateManagerPlugin,
    SubmitHandlerPlugin,
    ValidationEnginePlugin,
)
from .plugins.base import Plugin
from .registry import PluginRegistry
from .types import EventType, PluginInfo, ValidationMode

logger = logging.getLogger(__name__)

SubmitCallback = Callable[[Dict[str, Any]], Any]
ErrorCallback = Callable[[Dict[str, Any]], Any]


@dataclass
class FormOptions:
    """Form-level configuration.

    Attributes:
        initial_values: Initial value tree (copied, never aliased)
        on_submit: Called with the values after a successful validation
        on_error: Called with the error tree when submit validation fails
        mode: When fields validate automatically
        should_focus_error: Focus the first invalid field on failed submit
        should_unregister: Whether unmounting a registration unregisters it
        plugins: Extra plugins installed after the core plugins

    Raises:
        TypeError: If initial_values is not a mapping or on_submit is not callable
    """
    initial_values: Dict[str, Any]
    on_submit: SubmitCallback
    on_error: Optional[ErrorCallback] = None
    mode: Union[ValidationMode, str] = ValidationMode.ON_SUBMIT
    should_focus_error: bool = True
    should_unregister: bool = False
    plugins: List[Plugin] = field(default_factory=list)

    def __post_init__(self):
        if not isinstance(self.initial_values, Mapping):
            raise TypeError(
                f"initial_values must be a mapping, got {type(self.initial_values).__name__}"
            )
        if not callable(self.on_submit):
            raise TypeError("on_submit must be callable")
        if self.on_error is not None and not callable(self.on_error):
            raise TypeError("on_error must be callable")
        self.mode = ValidationMode(self.mode)


class Kernel:
    """Core form engine with a plugin architecture.

    Examples:
        >>> kernel = Kernel(FormOptions(initial_values={"email": ""}, on_submit=print))
        >>> [info.name for info in kernel.list_plugins()]
        ['field-registry', 'state-manager', 'validation-engine', 'array-fields', 'submit-handler']
        >>> kernel.get_plugin("state-manager").get_values()
        {'email': ''}
    """

    def __init__(self, options: FormOptions):
        self.options = options
        self.event_bus = EventBus()
        self.plugin_registry = PluginRegistry(self.event_bus)
        self._apis: Dict[str, Any] = {}
        self._tasks: Set[asyncio.Task] = set()

        self._install_core_plugins()

        for plugin in options.plugins:
            self.register_plugin(plugin)

    def _install_core_plugins(self) -> None:
        self.register_plugin(FieldRegistryPlugin())
        self.register_plugin(StateManagerPlugin(self.options.initial_values))
        self.register_plugin(ValidationEnginePlugin())
        self.register_plugin(ArrayFieldsPlugin())
        self.register_plugin(SubmitHandlerPlugin())

    def register_plugin(self, plugin: Plugin) -> None:
        """Register and install a plugin, then store its API.

        Raises:
            DuplicatePluginError: If the name is already registered
            PluginDependencyError: If a declared dependency is missing
            Exception: Whatever install() raised; the plugin is uninstalled
                and its registration rolled back
        """
        self.plugin_registry.register(plugin)

        try:
            plugin.install(self)
        except Exception:
            logger.exception('Error installing plugin "%s"', plugin.name)
            try:
                plugin.uninstall()
            except Exception:
                logger.exception('Error uninstalling plugin "%s"', plugin.name)
            self.plugin_registry.unregister(plugin.name)
            raise

        api = plugin.api
        if api is not None:
            self._apis[plugin.name] = api
        logger.debug('Installed plugin "%s" %s', plugin.name, plugin.version)

    def unregister_plugin(self, name: str) -> None:
        """Uninstall and remove a plugin. Unknown names are ignored."""
        plugin = self.plugin_registry.get(name)
        if plugin is None:
            return

        try:
            plugin.uninstall()
        except Exception:
            logger.exception('Error uninstalling plugin "%s"', name)

        self.plugin_registry.unregister(name)
        self._apis.pop(name, None)

    def get_plugin(self, name: str) -> Optional[Any]:
        """Return the API a plugin exposed, or None."""
        return self._apis.get(name)

    def list_plugins(self) -> List[PluginInfo]:
        return self.plugin_registry.list()

    def emit(self, event: FormEvent) -> None:
        self.event_bus.emit(event)

    def on(self, event_type: Union[EventType, str], handler: EventHandler) -> Unsubscribe:
        return self.event_bus.on(event_type, handler)

    def off(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        self.event_bus.off(event_type, handler)

    def get_options(self) -> FormOptions:
        return self.options

    def spawn(self, coro: Awaitable[Any]) -> Optional["asyncio.Future[Any]"]:
        """Run a coroutine without the caller awaiting it.

        With a running event loop the coroutine becomes a task tracked by the
        kernel (cancelled on destroy) and the task is returned. Without one
        it runs to completion right away and None is returned.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            try:
                asyncio.run(coro)
            except Exception:
                logger.exception("Form task failed")
            return None

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background form task failed", exc_info=task.exception())

    def destroy(self) -> None:
        """Tear down plugins, listeners and stored APIs.

        Safe to call more than once.
        """
        self.plugin_registry.unregister_all()
        self.event_bus.clear()
        self._apis.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        logger.debug("Kernel destroyed")


__all__ = [
    "FormOptions",
    "Kernel",
]
