"""Validation engine plugin.

Evaluates the rules declared for registered fields and owns the error tree.
Each field validation runs the built-in rules and then any custom
validators; a new validation for a path cancels the token of the previous
one for the same path. Depending on the form's ValidationMode, change and
blur events trigger field validation automatically.
"""

from typing import Any, Dict, Iterator, List, Optional, Set, Tuple
import asyncio

from ..events import FormEvent, Unsubscribe, make_event
from ..paths import PathTree, normalize_path
from .base import FIELD_REGISTRY, STATE_MANAGER, VALIDATION_ENGINE, Plugin
from ..types import EventType, PluginType, ValidationMode
from ..validation import CancellationToken, run_builtin_rules, run_custom_validators

_CHANGE_MODES = (ValidationMode.ON_CHANGE, ValidationMode.ALL)
_BLUR_MODES = (ValidationMode.ON_BLUR, ValidationMode.ON_TOUCHED, ValidationMode.ALL)


class ValidationEnginePlugin(Plugin):
    """Rule evaluation and the error tree of a form."""

    name = VALIDATION_ENGINE
    type = PluginType.CORE
    dependencies = (FIELD_REGISTRY, STATE_MANAGER)

    def __init__(self):
        super().__init__()
        self._errors = PathTree()
        self._validating: Set[str] = set()
        self._tokens: Dict[str, CancellationToken] = {}
        self._subscriptions: List[Unsubscribe] = []

    @property
    def api(self) -> "ValidationEnginePlugin":
        return self

    def install(self, kernel) -> None:
        super().install(kernel)
        mode = kernel.get_options().mode

        subscriptions = [
            kernel.on(EventType.REGISTER, self._on_register),
            kernel.on(EventType.UNREGISTER, self._on_unregister),
            kernel.on(EventType.RESET, self._on_reset),
        ]
        if mode in _CHANGE_MODES or mode == ValidationMode.ON_TOUCHED:
            subscriptions.append(kernel.on(EventType.CHANGE, self._on_change))
        if mode in _BLUR_MODES:
            subscriptions.append(kernel.on(EventType.BLUR, self._on_blur))
        self._subscriptions = subscriptions

    def uninstall(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []
        for token in self._tokens.values():
            token.cancel()
        self._tokens.clear()
        self._validating.clear()
        self._errors.clear()
        super().uninstall()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate(self) -> bool:
        """Validate every registered field and emit validate.

        Returns:
            True when every field passes
        """
        registry = self._lookup(FIELD_REGISTRY)
        if registry is None:
            return True

        names = registry.get_registered_names()
        results = await asyncio.gather(*(self.validate_field(name) for name in names))
        is_valid = all(results)

        self._emit(EventType.VALIDATE, errors=self.get_errors(), is_valid=is_valid)
        return is_valid

    async def validate_field(self, path: str) -> bool:
        """Validate a single field and update its error entry.

        Exceptions raised by custom validators propagate to the caller.

        Returns:
            True when the field passes
        """
        path = normalize_path(path)
        registry = self._lookup(FIELD_REGISTRY)
        state_manager = self._lookup(STATE_MANAGER)
        if registry is None or state_manager is None:
            return True

        previous = self._tokens.get(path)
        if previous is not None:
            previous.cancel()
        token = CancellationToken()
        self._tokens[path] = token
        self._set_validating(path, True)

        try:
            rules = registry.get_rules(path)
            value = state_manager.get_values(path)

            error = run_builtin_rules(value, rules)
            if error is None and rules and rules.get("validate") is not None:
                error = await run_custom_validators(
                    value, rules["validate"], state_manager.get_values(), token
                )

            if error:
                self.set_error(path, error)
                return False

            self.clear_error(path)
            return True
        finally:
            if self._tokens.get(path) is token:
                del self._tokens[path]
                self._set_validating(path, False)

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def get_errors(self) -> Dict[str, Any]:
        """Nested-dict rendering of the error tree."""
        return self._errors.to_dict()

    def get_error(self, path: str) -> Optional[str]:
        error = self._errors.get_leaf(path)
        return error if isinstance(error, str) else None

    def set_error(self, path: str, error: str) -> None:
        path = normalize_path(path)
        self._errors.set(path, error)
        self._sync_field_error(path)

    def clear_error(self, path: str) -> None:
        path = normalize_path(path)
        self._errors.delete_leaf(path)
        self._sync_field_error(path)

    def clear_errors(self) -> None:
        self._errors.clear()
        self._sync_field_errors()

    def is_valid(self) -> bool:
        return self._errors.is_empty()

    def is_validating(self) -> bool:
        return bool(self._validating)

    def is_field_validating(self, path: str) -> bool:
        return normalize_path(path) in self._validating

    def iter_errors(self) -> Iterator[Tuple[str, Any]]:
        """Yield ``(path, message)`` pairs depth-first in insertion order."""
        return self._errors.iter_leaves()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_change(self, event: FormEvent) -> None:
        path = event.get("path")
        mode = self.kernel.get_options().mode
        if mode == ValidationMode.ON_TOUCHED:
            state_manager = self._lookup(STATE_MANAGER)
            if state_manager is None or not state_manager.is_touched(path):
                return
        self._trigger(path)

    def _on_blur(self, event: FormEvent) -> None:
        self._trigger(event.get("path"))

    def _on_register(self, event: FormEvent) -> None:
        self._sync_field_error(event.get("path"))

    def _on_unregister(self, event: FormEvent) -> None:
        path = event.get("path")
        token = self._tokens.pop(path, None)
        if token is not None:
            token.cancel()
        self._validating.discard(path)
        self._errors.delete_leaf(path)

    def _on_reset(self, event: FormEvent) -> None:
        options = event.get("options")
        if options is not None and options.keep_errors:
            return
        self.clear_errors()

    def _trigger(self, path: str) -> None:
        """Validate a field and the fields listed in its deps rule."""
        registry = self._lookup(FIELD_REGISTRY)
        if registry is None or not registry.is_registered(path):
            return

        rules = registry.get_rules(path) or {}
        for target in [path, *rules.get("deps", [])]:
            self.kernel.spawn(self.validate_field(target))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_validating(self, path: str, validating: bool) -> None:
        if validating:
            self._validating.add(path)
        else:
            self._validating.discard(path)
        registry = self._lookup(FIELD_REGISTRY)
        if registry is not None:
            registry.update_field(path, validating=validating)

    def _sync_field_error(self, path: str) -> None:
        registry = self._lookup(FIELD_REGISTRY)
        if registry is not None:
            registry.update_field(path, error=self.get_error(path))

    def _sync_field_errors(self) -> None:
        registry = self._lookup(FIELD_REGISTRY)
        if registry is None:
            return
        for name in registry.get_registered_names():
            registry.update_field(name, error=self.get_error(name))

    def _lookup(self, name: str) -> Any:
        return self.kernel.get_plugin(name) if self.kernel is not None else None

    def _emit(self, event_type: EventType, **payload: Any) -> None:
        if self.kernel is not None:
            self.kernel.emit(make_event(event_type, **payload))


__all__ = [
    "ValidationEnginePlugin",
]
