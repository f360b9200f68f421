"""Autosave plugin.

Saves the form values through a caller-supplied callback a short while
after the last change. Save failures never propagate; they are logged and
emitted as error events with context "autosave".
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
import inspect
import logging

from ..events import FormEvent, Unsubscribe, make_event
from .base import STATE_MANAGER, VALIDATION_ENGINE, Plugin
from ..types import EventType
from ..utils import Debouncer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutosaveOptions:
    """Options for AutosavePlugin.

    Attributes:
        on_save: Called with the values to save; may be async
        debounce_ms: Quiet period after the last change before saving
        only_when_valid: Skip saves while the error tree is non-empty
        should_save: Extra predicate over the values
    """
    on_save: Callable[[Dict[str, Any]], Any]
    debounce_ms: float = 1000
    only_when_valid: bool = False
    should_save: Optional[Callable[[Dict[str, Any]], bool]] = None


class AutosavePlugin(Plugin):
    """Debounced saving of form values on change."""

    name = "autosave"
    dependencies = (STATE_MANAGER,)

    def __init__(self, options: AutosaveOptions):
        super().__init__()
        self.options = options
        self._enabled = True
        self._saving = False
        self._last_save_time: Optional[datetime] = None
        self._debouncer = Debouncer(self._perform_save, options.debounce_ms)
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def api(self) -> "AutosavePlugin":
        return self

    def install(self, kernel) -> None:
        super().install(kernel)
        self._unsubscribe = kernel.on(EventType.CHANGE, self._on_change)

    def uninstall(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._debouncer.cancel()
        self._enabled = False
        self._saving = False
        self._last_save_time = None
        super().uninstall()

    async def save(self) -> None:
        """Save now, dropping any pending debounced save."""
        self._debouncer.cancel()
        await self._perform_save()

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False
        self._debouncer.cancel()

    def is_enabled(self) -> bool:
        return self._enabled

    def get_last_save_time(self) -> Optional[datetime]:
        return self._last_save_time

    def is_saving(self) -> bool:
        return self._saving

    def _on_change(self, event: FormEvent) -> None:
        if self._enabled:
            self._debouncer()

    async def _perform_save(self) -> None:
        if not self._enabled or self._saving or self.kernel is None:
            return

        kernel = self.kernel
        values = kernel.get_plugin(STATE_MANAGER).get_values()

        if self.options.only_when_valid:
            validation_engine = kernel.get_plugin(VALIDATION_ENGINE)
            if validation_engine is not None and not validation_engine.is_valid():
                return

        if self.options.should_save is not None and not self.options.should_save(values):
            return

        try:
            self._saving = True
            result = self.options.on_save(values)
            if inspect.isawaitable(result):
                await result
            self._last_save_time = datetime.now(timezone.utc)
            logger.debug("Autosaved form values")
        except Exception as exc:
            logger.exception("Autosave failed")
            kernel.emit(make_event(EventType.ERROR, error=exc, context="autosave"))
        finally:
            self._saving = False


__all__ = [
    "AutosaveOptions",
    "AutosavePlugin",
]
