"""Focus manager plugin.

Keyboard-style focus navigation over the registered fields, in
registration order, using the control refs held by the field registry.
"""

from dataclasses import dataclass
from typing import List, Optional

from ..events import FormEvent, Unsubscribe
from .base import FIELD_REGISTRY, VALIDATION_ENGINE, Plugin
from .submit_handler import focus_control
from ..types import EventType


@dataclass(frozen=True)
class FocusManagerOptions:
    """Options for FocusManagerPlugin.

    Attributes:
        focus_on_error: Focus the first invalid field on submit-error
        scroll_to_field: Scroll focused controls into view
    """
    focus_on_error: bool = True
    scroll_to_field: bool = True


class FocusManagerPlugin(Plugin):
    """Focus navigation across registered fields."""

    name = "focus-manager"
    dependencies = (FIELD_REGISTRY,)

    def __init__(self, options: Optional[FocusManagerOptions] = None):
        super().__init__()
        self.options = options or FocusManagerOptions()
        self._focused: Optional[str] = None
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def api(self) -> "FocusManagerPlugin":
        return self

    def install(self, kernel) -> None:
        super().install(kernel)
        if self.options.focus_on_error:
            self._unsubscribe = kernel.on(EventType.SUBMIT_ERROR, self._on_submit_error)

    def uninstall(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._focused = None
        super().uninstall()

    def focus(self, path: str) -> None:
        registry = self.kernel.get_plugin(FIELD_REGISTRY) if self.kernel else None
        if registry is None:
            return
        if focus_control(registry.get_ref(path), scroll=self.options.scroll_to_field):
            self._focused = path

    def focus_first(self) -> None:
        order = self.get_tab_order()
        if order:
            self.focus(order[0])

    def focus_last(self) -> None:
        order = self.get_tab_order()
        if order:
            self.focus(order[-1])

    def focus_next(self) -> None:
        """Focus the field after the focused one; the first if none is focused."""
        order = self.get_tab_order()
        if not order:
            return
        if self._focused is None:
            self.focus_first()
            return
        if self._focused in order:
            index = order.index(self._focused)
            if index < len(order) - 1:
                self.focus(order[index + 1])

    def focus_previous(self) -> None:
        """Focus the field before the focused one; the last if none is focused."""
        order = self.get_tab_order()
        if not order:
            return
        if self._focused is None:
            self.focus_last()
            return
        if self._focused in order:
            index = order.index(self._focused)
            if index > 0:
                self.focus(order[index - 1])

    def focus_first_error(self) -> None:
        """Focus the first field, in tab order, that has an error."""
        validation_engine = self.kernel.get_plugin(VALIDATION_ENGINE) if self.kernel else None
        if validation_engine is None:
            return
        for path in self.get_tab_order():
            if validation_engine.get_error(path):
                self.focus(path)
                return

    def get_focused_field(self) -> Optional[str]:
        return self._focused

    def get_tab_order(self) -> List[str]:
        registry = self.kernel.get_plugin(FIELD_REGISTRY) if self.kernel else None
        return registry.get_registered_names() if registry is not None else []

    def _on_submit_error(self, event: FormEvent) -> None:
        self.focus_first_error()


__all__ = [
    "FocusManagerOptions",
    "FocusManagerPlugin",
]
