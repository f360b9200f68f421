"""Wizard plugin.

Splits a form into ordered steps, each owning a subset of the fields.
Moving forward validates the current step; step changes are broadcast as
state-change events carrying a ``step_change`` payload.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Set
import asyncio
import inspect

from ..events import make_event
from .base import VALIDATION_ENGINE, Plugin
from ..types import EventType


@dataclass(frozen=True)
class WizardStep:
    """One step of a wizard.

    Attributes:
        id: Step identifier
        title: Display title
        fields: Field paths validated when leaving the step forwards
        validate: Optional extra check, sync or async, returning a bool
        optional: Whether the step may be skipped
    """
    id: str
    title: str
    fields: List[str] = field(default_factory=list)
    validate: Optional[Callable[[], Any]] = None
    optional: bool = False


@dataclass(frozen=True)
class WizardOptions:
    steps: List[WizardStep]
    initial_step: int = 0
    validate_on_next: bool = True
    allow_back: bool = True


class WizardPlugin(Plugin):
    """Multi-step navigation with per-step validation.

    Examples:
        >>> wizard = WizardPlugin(WizardOptions(steps=[
        ...     WizardStep(id="account", title="Account", fields=["email"]),
        ...     WizardStep(id="profile", title="Profile", fields=["name"]),
        ... ]))
        >>> form = create_form(initial_values={"email": "", "name": ""},
        ...                    on_submit=print, plugins=[wizard])
        >>> wizard.get_progress()
        50
    """

    name = "wizard"
    dependencies = (VALIDATION_ENGINE,)

    def __init__(self, options: WizardOptions):
        super().__init__()
        self.options = options
        self._current = options.initial_step
        self._completed: Set[int] = set()

    @property
    def api(self) -> "WizardPlugin":
        return self

    def uninstall(self) -> None:
        self._current = self.options.initial_step
        self._completed.clear()
        super().uninstall()

    async def next(self) -> bool:
        """Validate the current step and advance.

        Returns:
            True if the wizard moved forward
        """
        if not self.can_go_next():
            return False
        if self.options.validate_on_next and not await self._validate_current_step():
            return False

        self._completed.add(self._current)
        self._change_step(self._current + 1)
        return True

    def back(self) -> None:
        if self.can_go_back():
            self._change_step(self._current - 1)

    async def go_to_step(self, index: int) -> bool:
        """Jump to a step; jumping forward validates the current step first."""
        if index < 0 or index >= len(self.options.steps):
            return False
        if index == self._current:
            return True

        if index > self._current and self.options.validate_on_next:
            if not await self._validate_current_step():
                return False
            self._completed.add(self._current)

        self._change_step(index)
        return True

    def get_current_step(self) -> int:
        return self._current

    def get_current_step_config(self) -> WizardStep:
        return self.options.steps[self._current]

    def get_steps(self) -> List[WizardStep]:
        return list(self.options.steps)

    def is_first_step(self) -> bool:
        return self._current == 0

    def is_last_step(self) -> bool:
        return self._current == len(self.options.steps) - 1

    def can_go_next(self) -> bool:
        return self._current < len(self.options.steps) - 1

    def can_go_back(self) -> bool:
        return self.options.allow_back and self._current > 0

    def get_progress(self) -> int:
        """Progress through the steps as a percentage (0-100)."""
        if not self.options.steps:
            return 100
        return round((self._current + 1) / len(self.options.steps) * 100)

    def is_step_completed(self, index: int) -> bool:
        return index in self._completed

    def reset(self) -> None:
        self._completed.clear()
        self._change_step(self.options.initial_step)

    async def _validate_current_step(self) -> bool:
        if not 0 <= self._current < len(self.options.steps):
            return False
        step = self.options.steps[self._current]

        if step.validate is not None:
            result = step.validate()
            if inspect.isawaitable(result):
                result = await result
            if not result:
                return False

        validation_engine = self.kernel.get_plugin(VALIDATION_ENGINE) if self.kernel else None
        if validation_engine is None:
            return True
        results = await asyncio.gather(*(validation_engine.validate_field(path) for path in step.fields))
        return all(results)

    def _change_step(self, index: int) -> None:
        previous, self._current = self._current, index
        if self.kernel is not None:
            self.kernel.emit(
                make_event(EventType.STATE_CHANGE, step_change={"from": previous, "to": index})
            )


__all__ = [
    "WizardOptions",
    "WizardPlugin",
    "WizardStep",
]
