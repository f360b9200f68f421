"""FormKeeper: a headless, plugin-based form state engine.

FormKeeper keeps the state of a form independently of any UI toolkit:
- Nested values addressed by dot/bracket paths, with touched and dirty tracking
- Declarative and custom (sync or async) field validation with cancellation
- Identity-preserving array fields
- A submission flow that turns failures into events instead of exceptions
- A kernel with a synchronous event bus and installable plugins

Basic usage:
    >>> import asyncio
    >>> from formkeeper import create_form
    >>> form = create_form(initial_values={"email": ""}, on_submit=print)
    >>> field = form.register("email", {"required": "Email is required"})
    >>> asyncio.run(form.validate())
    False
    >>> form.get_error("email")
    'Email is required'
"""

__version__ = "0.1.0"
__author__ = "FormKeeper Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from .errors import (
    DuplicatePluginError,
    FormKeeperError,
    InvalidRulesError,
    PluginDependencyError,
    PluginNotFoundError,
)
from .events import EventBus, FormEvent, make_event
from .form import Form, create_form
from .kernel import FormOptions, Kernel
from .plugins import Plugin, PluginHooks
from .types import (
    ChangeNotification,
    ControlKind,
    EventType,
    FieldArrayOptions,
    FormState,
    PluginType,
    ResetOptions,
    ValidationMode,
)

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "create_form",
    "Form",
    "FormOptions",
    "Kernel",
    "Plugin",
    "PluginHooks",
    "EventBus",
    "FormEvent",
    "make_event",
    "EventType",
    "ValidationMode",
    "PluginType",
    "ControlKind",
    "ChangeNotification",
    "ResetOptions",
    "FieldArrayOptions",
    "FormState",
    "FormKeeperError",
    "DuplicatePluginError",
    "PluginDependencyError",
    "PluginNotFoundError",
    "InvalidRulesError",
]
