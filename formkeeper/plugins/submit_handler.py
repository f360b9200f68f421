"""Submit handler plugin.

Runs the submission flow: validate every field, then either report the
errors (focusing the first invalid control) or hand the values to the
form's on_submit callback. Failures raised while submitting are absorbed
and reported as an error event with context "submit".
"""

from typing import Any, Optional
import inspect
import logging

from ..events import FormEvent, make_event
from .base import (
    FIELD_REGISTRY,
    STATE_MANAGER,
    SUBMIT_HANDLER,
    VALIDATION_ENGINE,
    Plugin,
)
from ..types import EventType, PluginType

logger = logging.getLogger(__name__)


def focus_control(handle: Any, scroll: bool = True) -> bool:
    """Focus an external control handle and scroll it into view.

    Returns:
        True if the handle exposed a focus() method
    """
    if handle is None or not callable(getattr(handle, "focus", None)):
        return False
    handle.focus()
    if scroll and callable(getattr(handle, "scroll_into_view", None)):
        handle.scroll_into_view()
    return True


class SubmitHandlerPlugin(Plugin):
    """Submission state and flow of a form."""

    name = SUBMIT_HANDLER
    type = PluginType.CORE
    dependencies = (FIELD_REGISTRY, STATE_MANAGER, VALIDATION_ENGINE)

    def __init__(self):
        super().__init__()
        self._submitting = False
        self._successful = False
        self._submit_count = 0
        self._unsubscribe_reset = None

    @property
    def api(self) -> "SubmitHandlerPlugin":
        return self

    def install(self, kernel) -> None:
        super().install(kernel)
        self._unsubscribe_reset = kernel.on(EventType.RESET, self._on_reset)

    def uninstall(self) -> None:
        if self._unsubscribe_reset is not None:
            self._unsubscribe_reset()
            self._unsubscribe_reset = None
        self._submitting = False
        self._successful = False
        self._submit_count = 0
        super().uninstall()

    async def submit(self) -> None:
        """Validate and submit the form.

        Does nothing while a submission is already in flight. Never raises
        for failures of validators or callbacks; those are logged and
        emitted as an error event.
        """
        if self._submitting or self.kernel is None:
            return

        kernel = self.kernel
        try:
            self._submitting = True
            self._submit_count += 1
            self._successful = False

            values = kernel.get_plugin(STATE_MANAGER).get_values()
            kernel.emit(make_event(EventType.SUBMIT, values=values))

            validation_engine = kernel.get_plugin(VALIDATION_ENGINE)
            if not await validation_engine.validate():
                errors = validation_engine.get_errors()
                options = kernel.get_options()

                if options.should_focus_error:
                    self._focus_first_error()

                if options.on_error is not None:
                    result = options.on_error(errors)
                    if inspect.isawaitable(result):
                        await result

                kernel.emit(make_event(EventType.SUBMIT_ERROR, errors=errors))
                return

            result = kernel.get_options().on_submit(values)
            if inspect.isawaitable(result):
                await result

            self._successful = True
            kernel.emit(make_event(EventType.SUBMIT_SUCCESS, values=values))
        except Exception as exc:
            logger.exception("Form submission failed")
            kernel.emit(make_event(EventType.ERROR, error=exc, context="submit"))
        finally:
            self._submitting = False

    async def handle_submit(self, native_event: Optional[Any] = None) -> None:
        """Suppress a native submit event's default handling, then submit()."""
        if native_event is not None:
            for method in ("prevent_default", "stop_propagation"):
                suppress = getattr(native_event, method, None)
                if callable(suppress):
                    suppress()
        await self.submit()

    def is_submitting(self) -> bool:
        return self._submitting

    def is_submit_successful(self) -> bool:
        return self._successful

    def get_submit_count(self) -> int:
        return self._submit_count

    def set_submitting(self, submitting: bool) -> None:
        self._submitting = submitting

    def _focus_first_error(self) -> None:
        validation_engine = self.kernel.get_plugin(VALIDATION_ENGINE)
        first = next(iter(validation_engine.iter_errors()), None)
        if first is None:
            return
        registry = self.kernel.get_plugin(FIELD_REGISTRY)
        focus_control(registry.get_ref(first[0]))

    def _on_reset(self, event: FormEvent) -> None:
        options = event.get("options")
        if options is not None and options.keep_submit_count:
            return
        self._submit_count = 0
        self._successful = False


__all__ = [
    "SubmitHandlerPlugin",
    "focus_control",
]
