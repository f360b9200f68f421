"""Shared helpers: deep copy, structural equality, identifiers, debouncing."""

from datetime import date, datetime
from typing import Any, Callable, Optional
import asyncio
import copy
import inspect
import itertools
import re


def deep_clone(value: Any) -> Any:
    """Deep copy a value tree.

    Compiled patterns are immutable and are shared rather than copied.
    """
    return copy.deepcopy(value)


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality for form values.

    Dates compare by value, compiled patterns by source and flags, sequences
    by length and per index, mappings by key set and per key. A sequence is
    never equal to a mapping, and a bool is never equal to a number.

    Examples:
        >>> deep_equal({"tags": ["a", "b"]}, {"tags": ["a", "b"]})
        True
        >>> deep_equal([], {})
        False
        >>> deep_equal(1, True)
        False
    """
    if a is b:
        return True
    if a is None or b is None:
        return False

    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if isinstance(a, (datetime, date)) and isinstance(b, (datetime, date)):
        # datetime is a date subclass; never equate a date with a datetime
        return type(a) is type(b) and a == b

    if isinstance(a, re.Pattern) and isinstance(b, re.Pattern):
        return a.pattern == b.pattern and a.flags == b.flags

    a_seq = isinstance(a, (list, tuple))
    b_seq = isinstance(b, (list, tuple))
    if a_seq or b_seq:
        if not (a_seq and b_seq) or len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))

    if isinstance(a, dict) or isinstance(b, dict):
        if not (isinstance(a, dict) and isinstance(b, dict)):
            return False
        if a.keys() != b.keys():
            return False
        return all(deep_equal(a[key], b[key]) for key in a)

    return a == b


class IdGenerator:
    """Monotonic identifier source, one per owner.

    Examples:
        >>> ids = IdGenerator(prefix="item")
        >>> ids(), ids()
        ('item-1', 'item-2')
    """

    def __init__(self, prefix: str = "fk"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


class Debouncer:
    """Delay calls to a function until no new call arrived for delay_ms.

    Scheduling uses the running asyncio loop. Coroutine functions are run as
    tasks when the delay elapses. Outside a running loop there is nothing to
    schedule on, so the call happens immediately.
    """

    def __init__(self, fn: Callable[..., Any], delay_ms: float):
        self.fn = fn
        self.delay_ms = delay_ms
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any) -> None:
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            result = self.fn(*args)
            if inspect.isawaitable(result):
                asyncio.run(result)
            return
        self._handle = loop.call_later(self.delay_ms / 1000.0, self._fire, args)

    def _fire(self, args) -> None:
        self._handle = None
        result = self.fn(*args)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


__all__ = [
    "deep_clone",
    "deep_equal",
    "IdGenerator",
    "Debouncer",
]
