"""Array fields plugin.

Keeps, per list-valued path, a mirror of identity-tagged items next to the
canonical list held by the state manager. Every operation writes the new
canonical list through the state manager and applies the same
transformation to the mirror, so an item's id follows the logical item
rather than its position.
"""

from dataclasses import dataclass, replace as replace_item
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..events import FormEvent
from ..paths import normalize_path
from .base import ARRAY_FIELDS, FIELD_REGISTRY, STATE_MANAGER, Plugin
from ..types import EventType, FieldArrayOptions, PluginType
from ..utils import IdGenerator


@dataclass(frozen=True)
class FieldArrayItem:
    """Mirror entry for one list item.

    Attributes:
        id: Stable identifier, suitable as a render key
        value: The item's value at the time of the last operation
    """
    id: str
    value: Any


class FieldArray:
    """Handle returned by use_field_array() for one list path.

    Examples:
        >>> items = form.use_field_array("items")
        >>> items.append({"name": "D"})
        >>> [item.value["name"] for item in items.fields]
        ['A', 'B', 'C', 'D']
    """

    def __init__(self, plugin: "ArrayFieldsPlugin", path: str):
        self._plugin = plugin
        self.name = path

    @property
    def fields(self) -> List[FieldArrayItem]:
        return list(self._plugin._mirror(self.name))

    def append(self, value: Any, options: Optional[FieldArrayOptions] = None) -> None:
        self._plugin.append(self.name, value, options)

    def prepend(self, value: Any, options: Optional[FieldArrayOptions] = None) -> None:
        self._plugin.prepend(self.name, value, options)

    def insert(self, index: int, value: Any, options: Optional[FieldArrayOptions] = None) -> None:
        self._plugin.insert(self.name, index, value, options)

    def remove(self, index: Union[int, Sequence[int]], options: Optional[FieldArrayOptions] = None) -> None:
        self._plugin.remove(self.name, index, options)

    def swap(self, index_a: int, index_b: int, options: Optional[FieldArrayOptions] = None) -> None:
        self._plugin.swap(self.name, index_a, index_b, options)

    def move(self, from_index: int, to_index: int, options: Optional[FieldArrayOptions] = None) -> None:
        self._plugin.move(self.name, from_index, to_index, options)

    def update(self, index: int, value: Any, options: Optional[FieldArrayOptions] = None) -> None:
        self._plugin.update(self.name, index, value, options)

    def replace(self, values: Sequence[Any], options: Optional[FieldArrayOptions] = None) -> None:
        self._plugin.replace(self.name, values, options)

    def __len__(self) -> int:
        return len(self._plugin._mirror(self.name))

    def __repr__(self) -> str:
        return f"FieldArray(name={self.name!r}, fields={self.fields!r})"


class ArrayFieldsPlugin(Plugin):
    """Identity-preserving list operations over the state manager.

    Args:
        id_factory: Zero-argument callable producing unique item ids;
            defaults to a per-instance IdGenerator
    """

    name = ARRAY_FIELDS
    type = PluginType.CORE
    dependencies = (STATE_MANAGER,)

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        super().__init__()
        self._new_id = id_factory or IdGenerator()
        self._arrays: Dict[str, List[FieldArrayItem]] = {}
        self._unsubscribe_reset = None

    @property
    def api(self) -> "ArrayFieldsPlugin":
        return self

    def install(self, kernel) -> None:
        super().install(kernel)
        self._unsubscribe_reset = kernel.on(EventType.RESET, self._on_reset)

    def uninstall(self) -> None:
        if self._unsubscribe_reset is not None:
            self._unsubscribe_reset()
            self._unsubscribe_reset = None
        self._arrays.clear()
        super().uninstall()

    def use_field_array(self, path: str) -> FieldArray:
        path = normalize_path(path)
        self._mirror(path)
        return FieldArray(self, path)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def append(self, path: str, value: Any, options: Optional[FieldArrayOptions] = None) -> None:
        path = normalize_path(path)
        items = self._canonical(path)
        self._commit(path, [*items, value], [*self._mirror(path), self._item(value)], options, len(items))

    def prepend(self, path: str, value: Any, options: Optional[FieldArrayOptions] = None) -> None:
        path = normalize_path(path)
        self._commit(path, [value, *self._canonical(path)], [self._item(value), *self._mirror(path)], options, 0)

    def insert(self, path: str, index: int, value: Any, options: Optional[FieldArrayOptions] = None) -> None:
        path = normalize_path(path)
        items = self._canonical(path)
        mirror = list(self._mirror(path))
        items.insert(index, value)
        mirror.insert(index, self._item(value))
        self._commit(path, items, mirror, options, index)

    def remove(
        self,
        path: str,
        index: Union[int, Sequence[int]],
        options: Optional[FieldArrayOptions] = None,
    ) -> None:
        """Remove one index or several; indices refer to the list before removal."""
        path = normalize_path(path)
        indices = [index] if isinstance(index, int) else list(index)
        items = self._canonical(path)
        mirror = list(self._mirror(path))

        for position in sorted(set(indices), reverse=True):
            if 0 <= position < len(items):
                del items[position]
            if 0 <= position < len(mirror):
                del mirror[position]

        self._commit(path, items, mirror, options)

    def swap(self, path: str, index_a: int, index_b: int, options: Optional[FieldArrayOptions] = None) -> None:
        path = normalize_path(path)
        items = self._canonical(path)
        mirror = list(self._mirror(path))
        items[index_a], items[index_b] = items[index_b], items[index_a]
        mirror[index_a], mirror[index_b] = mirror[index_b], mirror[index_a]
        self._commit(path, items, mirror, options)

    def move(self, path: str, from_index: int, to_index: int, options: Optional[FieldArrayOptions] = None) -> None:
        path = normalize_path(path)
        items = self._canonical(path)
        mirror = list(self._mirror(path))
        items.insert(to_index, items.pop(from_index))
        mirror.insert(to_index, mirror.pop(from_index))
        self._commit(path, items, mirror, options, to_index)

    def update(self, path: str, index: int, value: Any, options: Optional[FieldArrayOptions] = None) -> None:
        """Replace one item's value, keeping its id."""
        path = normalize_path(path)
        items = self._canonical(path)
        mirror = list(self._mirror(path))
        items[index] = value
        if 0 <= index < len(mirror):
            mirror[index] = replace_item(mirror[index], value=value)
        self._commit(path, items, mirror, options, index)

    def replace(self, path: str, values: Sequence[Any], options: Optional[FieldArrayOptions] = None) -> None:
        """Replace the whole list; every item gets a fresh id."""
        path = normalize_path(path)
        values = list(values)
        self._commit(path, values, [self._item(value) for value in values], options)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _state_manager(self) -> Any:
        return self.kernel.get_plugin(STATE_MANAGER) if self.kernel is not None else None

    def _canonical(self, path: str) -> List[Any]:
        state_manager = self._state_manager()
        current = state_manager.get_values(path) if state_manager is not None else None
        return list(current) if isinstance(current, (list, tuple)) else []

    def _mirror(self, path: str) -> List[FieldArrayItem]:
        mirror = self._arrays.get(path)
        if mirror is None:
            mirror = [self._item(value) for value in self._canonical(path)]
            self._arrays[path] = mirror
        return mirror

    def _item(self, value: Any) -> FieldArrayItem:
        return FieldArrayItem(id=self._new_id(), value=value)

    def _commit(
        self,
        path: str,
        items: List[Any],
        mirror: List[FieldArrayItem],
        options: Optional[FieldArrayOptions],
        focus_index: Optional[int] = None,
    ) -> None:
        options = options or FieldArrayOptions()
        self._arrays[path] = mirror

        state_manager = self._state_manager()
        if state_manager is not None:
            state_manager.set_value(path, items, should_validate=options.should_validate)

        if options.should_focus:
            self._focus(path, options, focus_index)

    def _focus(self, path: str, options: FieldArrayOptions, default_index: Optional[int]) -> None:
        if options.focus_name is not None:
            target = normalize_path(options.focus_name)
        else:
            index = options.focus_index if options.focus_index is not None else default_index
            if index is None:
                return
            target = f"{path}.{index}"

        registry = self.kernel.get_plugin(FIELD_REGISTRY) if self.kernel is not None else None
        handle = registry.get_ref(target) if registry is not None else None
        if handle is not None and callable(getattr(handle, "focus", None)):
            handle.focus()

    def _on_reset(self, event: FormEvent) -> None:
        self._arrays.clear()


__all__ = [
    "ArrayFieldsPlugin",
    "FieldArray",
    "FieldArrayItem",
]
