"""Form facade for FormKeeper.

This module provides create_form() and the Form class, the single surface
adapters and application code use. A Form owns a Kernel and forwards each
operation to the core plugin responsible for it, looked up by name on
every call so that a replaced core plugin takes effect immediately.

Usage:
    >>> form = create_form(initial_values={"email": ""}, on_submit=print)
    >>> email = form.register("email", {"required": "Email is required"})
    >>> asyncio.run(form.validate())
    False
    >>> form.get_error("email")
    'Email is required'
    >>> form.set_value("email", "a@b.com")
    >>> asyncio.run(form.validate())
    True
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .errors import PluginNotFoundError
from .events import EventHandler, FormEvent, Unsubscribe, make_event
from .kernel import FormOptions, Kernel
from .paths import normalize_path
from .plugins.array_fields import FieldArray
from .plugins.base import (
    ARRAY_FIELDS,
    FIELD_REGISTRY,
    STATE_MANAGER,
    SUBMIT_HANDLER,
    VALIDATION_ENGINE,
    Plugin,
)
from .plugins.field_registry import FieldRegistration
from .types import (
    EventType,
    FieldState,
    FormState,
    PluginInfo,
    ResetOptions,
    ValidationRules,
)

WatchCallback = Callable[[Any, Any], None]


class Form:
    """A form instance: registration, values, validation and submission.

    Attributes:
        kernel: The kernel hosting this form's plugins

    Examples:
        >>> form = create_form(initial_values={"user": {"name": "Ada"}}, on_submit=print)
        >>> form.set_value("user.name", "Grace")
        >>> form.get_values("user.name"), form.is_dirty()
        ('Grace', True)
    """

    def __init__(self, options: FormOptions):
        self.kernel = Kernel(options)

    def _core(self, name: str) -> Any:
        api = self.kernel.get_plugin(name)
        if api is None:
            raise PluginNotFoundError(name)
        return api

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, path: str, rules: Optional[ValidationRules] = None) -> FieldRegistration:
        return self._core(FIELD_REGISTRY).register(path, rules)

    def unregister(self, path: str) -> None:
        self._core(FIELD_REGISTRY).unregister(path)

    def get_field_state(self, path: str) -> Optional[FieldState]:
        """Cached state of a registered field, or None."""
        return self._core(FIELD_REGISTRY).get_field(path)

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def get_values(self, path: Optional[str] = None) -> Any:
        return self._core(STATE_MANAGER).get_values(path)

    def set_value(self, path: str, value: Any, *, should_validate: bool = False, should_touch: bool = False) -> None:
        self._core(STATE_MANAGER).set_value(
            path, value, should_validate=should_validate, should_touch=should_touch
        )

    def set_values(self, values: Mapping[str, Any], *, should_validate: bool = False, should_touch: bool = False) -> None:
        self._core(STATE_MANAGER).set_values(
            values, should_validate=should_validate, should_touch=should_touch
        )

    def get_default_values(self) -> Dict[str, Any]:
        return self._core(STATE_MANAGER).get_default_values()

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def get_errors(self) -> Dict[str, Any]:
        return self._core(VALIDATION_ENGINE).get_errors()

    def get_error(self, path: str) -> Optional[str]:
        return self._core(VALIDATION_ENGINE).get_error(path)

    def set_error(self, path: str, error: str) -> None:
        self._core(VALIDATION_ENGINE).set_error(path, error)

    def clear_error(self, path: str) -> None:
        self._core(VALIDATION_ENGINE).clear_error(path)

    def clear_errors(self) -> None:
        self._core(VALIDATION_ENGINE).clear_errors()

    # ------------------------------------------------------------------
    # Touched & dirty
    # ------------------------------------------------------------------

    def get_touched(self) -> Dict[str, Any]:
        return self._core(STATE_MANAGER).get_touched()

    def is_touched(self, path: str) -> bool:
        return self._core(STATE_MANAGER).is_touched(path)

    def set_touched(self, path: str, touched: bool = True) -> None:
        self._core(STATE_MANAGER).set_touched(path, touched)

    def get_dirty(self) -> Dict[str, Any]:
        return self._core(STATE_MANAGER).get_dirty()

    def is_dirty(self, path: Optional[str] = None) -> bool:
        return self._core(STATE_MANAGER).is_dirty(path)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate(self) -> bool:
        return await self._core(VALIDATION_ENGINE).validate()

    async def validate_field(self, path: str) -> bool:
        return await self._core(VALIDATION_ENGINE).validate_field(path)

    def is_valid(self) -> bool:
        return self._core(VALIDATION_ENGINE).is_valid()

    def is_validating(self) -> bool:
        return self._core(VALIDATION_ENGINE).is_validating()

    def is_field_validating(self, path: str) -> bool:
        return self._core(VALIDATION_ENGINE).is_field_validating(path)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> None:
        await self._core(SUBMIT_HANDLER).submit()

    async def handle_submit(self, native_event: Optional[Any] = None) -> None:
        await self._core(SUBMIT_HANDLER).handle_submit(native_event)

    def is_submitting(self) -> bool:
        return self._core(SUBMIT_HANDLER).is_submitting()

    def is_submit_successful(self) -> bool:
        return self._core(SUBMIT_HANDLER).is_submit_successful()

    def get_submit_count(self) -> int:
        return self._core(SUBMIT_HANDLER).get_submit_count()

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self, values: Optional[Mapping[str, Any]] = None, options: Optional[ResetOptions] = None) -> None:
        self._core(STATE_MANAGER).reset(values, options)

    def reset_field(self, path: str, options: Optional[ResetOptions] = None) -> None:
        self._core(STATE_MANAGER).reset_field(path, options)

    # ------------------------------------------------------------------
    # Watching, focus and arrays
    # ------------------------------------------------------------------

    def watch(self, path_or_callback: Union[str, WatchCallback], callback: Optional[WatchCallback] = None) -> Unsubscribe:
        """Observe value changes.

        ``watch(path, callback)`` calls ``callback(value, previous_value)``
        for changes at exactly that path. ``watch(callback)`` calls
        ``callback(values, values)`` with the whole value tree after every
        change.

        Returns:
            Callable that stops watching

        Raises:
            TypeError: If a path is given without a callback
        """
        if callable(path_or_callback):
            watch_all = path_or_callback

            def on_any_change(event: FormEvent) -> None:
                values = self.get_values()
                watch_all(values, values)

            return self.kernel.on(EventType.CHANGE, on_any_change)

        if callback is None:
            raise TypeError("watch(path, callback) requires a callback")
        path = normalize_path(path_or_callback)

        def on_path_change(event: FormEvent) -> None:
            if event.get("path") == path:
                callback(event.get("value"), event.get("previous_value"))

        return self.kernel.on(EventType.CHANGE, on_path_change)

    def set_focus(self, path: str) -> None:
        """Focus the control registered for path, if it can be focused."""
        handle = self._core(FIELD_REGISTRY).get_ref(path)
        if handle is not None and callable(getattr(handle, "focus", None)):
            handle.focus()

    def use_field_array(self, path: str) -> FieldArray:
        return self._core(ARRAY_FIELDS).use_field_array(path)

    # ------------------------------------------------------------------
    # State snapshot
    # ------------------------------------------------------------------

    def get_state(self) -> FormState:
        """Aggregate snapshot of values, errors, flags and counters."""
        state_manager = self._core(STATE_MANAGER)
        validation_engine = self._core(VALIDATION_ENGINE)
        submit_handler = self._core(SUBMIT_HANDLER)
        return FormState(
            values=state_manager.get_values(),
            errors=validation_engine.get_errors(),
            touched=state_manager.get_touched(),
            dirty=state_manager.get_dirty(),
            is_valid=validation_engine.is_valid(),
            is_submitting=submit_handler.is_submitting(),
            is_submit_successful=submit_handler.is_submit_successful(),
            submit_count=submit_handler.get_submit_count(),
        )

    def notify_state_change(self) -> None:
        """Emit a state-change event carrying get_state()."""
        self.kernel.emit(make_event(EventType.STATE_CHANGE, state=self.get_state()))

    # ------------------------------------------------------------------
    # Plugins, events and lifecycle
    # ------------------------------------------------------------------

    def register_plugin(self, plugin: Plugin) -> None:
        self.kernel.register_plugin(plugin)

    def unregister_plugin(self, name: str) -> None:
        self.kernel.unregister_plugin(name)

    def get_plugin(self, name: str) -> Optional[Any]:
        return self.kernel.get_plugin(name)

    def list_plugins(self) -> List[PluginInfo]:
        return self.kernel.list_plugins()

    def emit(self, event: FormEvent) -> None:
        self.kernel.emit(event)

    def on(self, event_type: Union[EventType, str], handler: EventHandler) -> Unsubscribe:
        return self.kernel.on(event_type, handler)

    def off(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        self.kernel.off(event_type, handler)

    def get_options(self) -> FormOptions:
        return self.kernel.get_options()

    def destroy(self) -> None:
        self.kernel.destroy()


def create_form(options: Optional[FormOptions] = None, **kwargs: Any) -> Form:
    """Create a form with the core plugins installed.

    Args:
        options: A FormOptions instance, or None to build one from kwargs
        **kwargs: FormOptions fields (initial_values, on_submit, mode, ...)

    Returns:
        A ready-to-use Form

    Raises:
        TypeError: If both options and kwargs are given, or options are invalid
    """
    if options is None:
        options = FormOptions(**kwargs)
    elif kwargs:
        raise TypeError("create_form() takes either options or keyword arguments, not both")
    return Form(options)


__all__ = [
    "Form",
    "WatchCallback",
    "create_form",
]
