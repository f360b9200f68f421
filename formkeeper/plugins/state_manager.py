"""State manager plugin.

Owns the canonical value tree, the default-value snapshot used as the dirty
baseline, and the touched and dirty shadow trees. Every other component
reads and writes values through this plugin's path accessors.
"""

from typing import Any, Dict, Mapping, Optional

from ..events import FormEvent, make_event
from ..paths import PathTree, deep_get, deep_set, normalize_path
from .base import FIELD_REGISTRY, STATE_MANAGER, VALIDATION_ENGINE, Plugin
from ..types import EventType, PluginType, ResetOptions
from ..utils import deep_clone, deep_equal


class StateManagerPlugin(Plugin):
    """Value, default, touched and dirty state of a form.

    Examples:
        >>> manager = StateManagerPlugin({"user": {"name": "Ada"}})
        >>> manager.set_value("user.name", "Grace")
        >>> manager.get_values("user.name"), manager.is_dirty("user.name")
        ('Grace', True)
    """

    name = STATE_MANAGER
    type = PluginType.CORE
    dependencies = (FIELD_REGISTRY,)

    def __init__(self, initial_values: Mapping[str, Any]):
        super().__init__()
        self._values: Dict[str, Any] = deep_clone(dict(initial_values))
        self._default_values: Dict[str, Any] = deep_clone(dict(initial_values))
        self._touched = PathTree()
        self._dirty = PathTree()
        self._unsubscribe_register = None

    @property
    def api(self) -> "StateManagerPlugin":
        return self

    def install(self, kernel) -> None:
        super().install(kernel)
        self._unsubscribe_register = kernel.on(EventType.REGISTER, self._on_register)

    def uninstall(self) -> None:
        if self._unsubscribe_register is not None:
            self._unsubscribe_register()
            self._unsubscribe_register = None
        super().uninstall()

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def get_values(self, path: Optional[str] = None) -> Any:
        """Return the whole value tree, or the value at a path (None if missing)."""
        if not path:
            return self._values
        return deep_get(self._values, path)

    def set_value(
        self,
        path: str,
        value: Any,
        *,
        should_validate: bool = False,
        should_touch: bool = False,
    ) -> None:
        """Write a value, recompute its dirty flag and emit change.

        Args:
            path: Field path; missing intermediates are created
            value: New value
            should_validate: Validate the path after writing
            should_touch: Mark the path touched

        Raises:
            ValueError: If path is empty
        """
        path = normalize_path(path)
        if not path:
            raise ValueError("set_value() requires a non-empty path")

        previous = deep_get(self._values, path)
        deep_set(self._values, path, value)
        self._dirty.set(path, not deep_equal(value, deep_get(self._default_values, path)))
        if should_touch:
            self._touched.set(path, True)

        self._refresh_fields(path)
        self._emit(EventType.CHANGE, path=path, value=value, previous_value=previous)

        if should_validate:
            self._validate(path)

    def set_values(self, values: Mapping[str, Any], **options: Any) -> None:
        """Apply set_value() for each top-level key; None values are skipped."""
        for key, value in values.items():
            if value is None:
                continue
            self.set_value(key, value, **options)

    def get_default_values(self) -> Dict[str, Any]:
        return self._default_values

    def set_default_values(self, values: Mapping[str, Any]) -> None:
        self._default_values = deep_clone(dict(values))
        self._refresh_fields()

    # ------------------------------------------------------------------
    # Touched / dirty
    # ------------------------------------------------------------------

    def get_touched(self) -> Dict[str, Any]:
        return self._touched.to_dict()

    def is_touched(self, path: str) -> bool:
        return self._touched.get_leaf(path) is True

    def set_touched(self, path: str, touched: bool = True) -> None:
        path = normalize_path(path)
        self._touched.set(path, touched)
        self._refresh_fields(path)

    def get_dirty(self) -> Dict[str, Any]:
        return self._dirty.to_dict()

    def is_dirty(self, path: Optional[str] = None) -> bool:
        """Whether a path is dirty, or with no path whether any field is."""
        if not path:
            return self._dirty.any_leaf(lambda dirty: dirty is True)
        return self._dirty.get_leaf(path) is True

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self, values: Optional[Mapping[str, Any]] = None, options: Optional[ResetOptions] = None) -> None:
        """Reset the form to its defaults, or to values merged over them.

        When values are given they also become the new defaults unless
        options.keep_default_values is set.
        """
        options = options or ResetOptions()
        if values is not None:
            reset_values = {**self._default_values, **values}
        else:
            reset_values = self._default_values

        if not options.keep_values:
            self._values = deep_clone(reset_values)
        if not options.keep_touched:
            self._touched.clear()
        if not options.keep_dirty:
            self._dirty.clear()
        if values is not None and not options.keep_default_values:
            self._default_values = deep_clone(reset_values)

        self._refresh_fields()
        self._emit(EventType.RESET, values=self._values, options=options)

    def reset_field(self, path: str, options: Optional[ResetOptions] = None) -> None:
        """Reset one path's value, touched and dirty state to the defaults."""
        options = options or ResetOptions()
        path = normalize_path(path)

        if not options.keep_values:
            deep_set(self._values, path, deep_clone(deep_get(self._default_values, path)))
        if not options.keep_touched:
            self._touched.delete(path)
        if not options.keep_dirty:
            self._dirty.delete(path)
        if not options.keep_errors:
            validation_engine = self._lookup(VALIDATION_ENGINE)
            if validation_engine is not None:
                validation_engine.clear_error(path)

        self._refresh_fields(path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_register(self, event: FormEvent) -> None:
        self._refresh_fields(event.get("path"))

    def _refresh_fields(self, path: Optional[str] = None) -> None:
        """Sync the field registry's cached view for fields overlapping path."""
        registry = self._lookup(FIELD_REGISTRY)
        if registry is None:
            return

        for name in registry.get_registered_names():
            if path is not None and not _overlaps(name, path):
                continue
            current = deep_get(self._values, name)
            registry.update_field(
                name,
                value=current,
                dirty=not deep_equal(current, deep_get(self._default_values, name)),
                touched=self.is_touched(name),
            )

    def _validate(self, path: str) -> None:
        validation_engine = self._lookup(VALIDATION_ENGINE)
        if validation_engine is not None and self.kernel is not None:
            self.kernel.spawn(validation_engine.validate_field(path))

    def _lookup(self, name: str) -> Any:
        return self.kernel.get_plugin(name) if self.kernel is not None else None

    def _emit(self, event_type: EventType, **payload: Any) -> None:
        if self.kernel is not None:
            self.kernel.emit(make_event(event_type, **payload))


def _overlaps(name: str, path: str) -> bool:
    return name == path or name.startswith(path + ".") or path.startswith(name + ".")


__all__ = [
    "StateManagerPlugin",
]
