"""Field registry plugin.

Tracks which field paths are live, a cached FieldState per field, external
control references (used for focusing) and the validation rules declared at
registration time. Registrations hand adapters a small surface of
callbacks (on_change, on_blur, on_focus, ref, unmount) that feed changes
back into the form.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import math

from ..events import make_event
from ..paths import normalize_path
from .base import FIELD_REGISTRY, STATE_MANAGER, Plugin
from ..types import (
    ChangeNotification,
    ControlKind,
    EventType,
    FieldState,
    PluginType,
    ValidationRules,
)
from ..validation import check_rules


def _parse_number(raw: Any) -> float:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    try:
        return float(str(raw).strip())
    except ValueError:
        return math.nan


def extract_value(raw: Any) -> Any:
    """Extract the logical value from a change notification.

    Toggle controls yield their checked state, numeric controls a parsed
    float (NaN when unparsable), file controls the raw file collection and
    every other control its raw value. Anything that is not a
    ChangeNotification is already a value and passes through unchanged.

    Examples:
        >>> extract_value(ChangeNotification(kind=ControlKind.TOGGLE, checked=True))
        True
        >>> extract_value(ChangeNotification(kind=ControlKind.NUMERIC, value="42"))
        42.0
        >>> extract_value("plain")
        'plain'
    """
    if not isinstance(raw, ChangeNotification):
        return raw
    if raw.kind == ControlKind.TOGGLE:
        return raw.checked
    if raw.kind == ControlKind.NUMERIC:
        return _parse_number(raw.value)
    if raw.kind == ControlKind.FILES:
        return raw.files
    return raw.value


@dataclass
class FieldRegistration:
    """Handle returned by register() for binding a control to a field.

    Attributes:
        name: Canonical field path
        on_change: Call with a ChangeNotification or a plain value
        on_blur: Call when the control loses focus
        on_focus: Call when the control gains focus
        ref: Call with the control handle (or None when it goes away)
        unmount: Call when the control is removed from the UI
    """
    name: str
    on_change: Callable[[Any], None]
    on_blur: Callable[..., None]
    on_focus: Callable[..., None]
    ref: Callable[[Any], None]
    unmount: Callable[[], None]
    _registry: "FieldRegistryPlugin" = field(repr=False)

    @property
    def value(self) -> Any:
        state = self._registry.get_field(self.name)
        return state.value if state is not None else None


class FieldRegistryPlugin(Plugin):
    """Registry of live fields, their refs and their rules."""

    name = FIELD_REGISTRY
    type = PluginType.CORE

    def __init__(self):
        super().__init__()
        self._fields: Dict[str, FieldState] = {}
        self._refs: Dict[str, Any] = {}
        self._rules: Dict[str, ValidationRules] = {}

    @property
    def api(self) -> "FieldRegistryPlugin":
        return self

    def uninstall(self) -> None:
        self._fields.clear()
        self._refs.clear()
        self._rules.clear()
        super().uninstall()

    def register(self, path: str, rules: Optional[ValidationRules] = None) -> FieldRegistration:
        """Register a field, optionally (re)declaring its rules.

        Registering a live path again keeps its field state; new rules
        replace the stored ones.

        Raises:
            InvalidRulesError: If the rule declaration is malformed
        """
        path = normalize_path(path)
        if rules is not None:
            check_rules(path, rules)

        if path not in self._fields:
            self._fields[path] = FieldState()

        if rules is not None:
            self._rules[path] = rules

        self._emit(EventType.REGISTER, path=path, rules=rules)

        return FieldRegistration(
            name=path,
            on_change=lambda raw: self._handle_change(path, raw),
            on_blur=lambda *_: self._handle_blur(path),
            on_focus=lambda *_: self._handle_focus(path),
            ref=lambda handle: self.set_ref(path, handle),
            unmount=lambda: self._handle_unmount(path),
            _registry=self,
        )

    def unregister(self, path: str) -> None:
        """Drop a field's state, ref and rules. Unknown paths are ignored."""
        path = normalize_path(path)
        if path not in self._fields:
            return

        self._fields.pop(path, None)
        self._refs.pop(path, None)
        self._rules.pop(path, None)
        self._emit(EventType.UNREGISTER, path=path)

    def get_field(self, path: str) -> Optional[FieldState]:
        return self._fields.get(normalize_path(path))

    def get_fields(self) -> Dict[str, FieldState]:
        return dict(self._fields)

    def get_registered_names(self) -> List[str]:
        """Registered paths in registration order."""
        return list(self._fields)

    def is_registered(self, path: str) -> bool:
        return normalize_path(path) in self._fields

    def get_rules(self, path: str) -> Optional[ValidationRules]:
        return self._rules.get(normalize_path(path))

    def set_ref(self, path: str, handle: Any) -> None:
        self._refs[normalize_path(path)] = handle

    def get_ref(self, path: str) -> Any:
        return self._refs.get(normalize_path(path))

    def update_field(self, path: str, **changes: Any) -> None:
        """Update a registered field's cached state; unknown paths are ignored."""
        state = self._fields.get(path)
        if state is None:
            return
        for key, value in changes.items():
            setattr(state, key, value)

    def _handle_change(self, path: str, raw: Any) -> None:
        state = self._fields.get(path)
        if state is None:
            return

        value = extract_value(raw)
        state_manager = self.kernel.get_plugin(STATE_MANAGER) if self.kernel else None
        if state_manager is not None:
            # The state manager refreshes the cached value and emits change
            state_manager.set_value(path, value)
            return

        previous = state.value
        state.value = value
        self._emit(EventType.CHANGE, path=path, value=value, previous_value=previous)

    def _handle_blur(self, path: str) -> None:
        state = self._fields.get(path)
        if state is None:
            return

        state_manager = self.kernel.get_plugin(STATE_MANAGER) if self.kernel else None
        if state_manager is not None:
            state_manager.set_touched(path, True)
        else:
            state.touched = True
        self._emit(EventType.BLUR, path=path)

    def _handle_focus(self, path: str) -> None:
        self._emit(EventType.FOCUS, path=path)

    def _handle_unmount(self, path: str) -> None:
        if self.kernel is not None and self.kernel.get_options().should_unregister:
            self.unregister(path)
        else:
            self._refs.pop(path, None)

    def _emit(self, event_type: EventType, **payload: Any) -> None:
        if self.kernel is not None:
            self.kernel.emit(make_event(event_type, **payload))


__all__ = [
    "FieldRegistration",
    "FieldRegistryPlugin",
    "extract_value",
]
