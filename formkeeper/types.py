"""Core type definitions for FormKeeper.

This module defines the fundamental types shared by the kernel and plugins:
- EventType: Closed set of event kinds carried on the event bus
- ValidationMode: When field validation runs automatically
- PluginType: Core vs optional plugin classification
- ControlKind: Kinds of input control an adapter reports changes from
- ValidationRules: Declarative per-field rule mapping
- FieldState: Cached per-field view kept by the field registry
- ResetOptions / FieldArrayOptions: Operation options
- PluginInfo / FormState: Read-only snapshots for integrators
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Pattern, Union

from typing_extensions import NotRequired, TypedDict


class EventType(str, Enum):
    """Event kinds emitted on the form event bus."""
    REGISTER = "register"
    UNREGISTER = "unregister"
    CHANGE = "change"
    BLUR = "blur"
    FOCUS = "focus"
    VALIDATE = "validate"
    SUBMIT = "submit"
    SUBMIT_SUCCESS = "submit-success"
    SUBMIT_ERROR = "submit-error"
    RESET = "reset"
    ERROR = "error"
    STATE_CHANGE = "state-change"


class ValidationMode(str, Enum):
    """Controls which field events trigger per-field validation.

    ON_SUBMIT never validates eagerly. ON_TOUCHED validates on blur, and on
    change once the field has been touched.
    """
    ON_SUBMIT = "onSubmit"
    ON_CHANGE = "onChange"
    ON_BLUR = "onBlur"
    ON_TOUCHED = "onTouched"
    ALL = "all"


class PluginType(str, Enum):
    """Plugin classification reported by list_plugins()."""
    CORE = "core"
    OPTIONAL = "optional"


class ControlKind(str, Enum):
    """Kind of control a change notification originates from.

    Adapters pass one of these with a ChangeNotification so the core can
    extract the logical value without knowing any UI toolkit.
    """
    TEXT = "text"
    NUMERIC = "numeric"
    TOGGLE = "toggle"
    FILES = "files"
    OTHER = "other"


RuleValue = Union[int, float, Dict[str, Any]]
"""A bare rule value or a ``{"value": ..., "message": ...}`` mapping."""

ValidateResult = Union[bool, str, None]
ValidateFn = Callable[..., Any]
"""Custom validator: ``fn(value, values)`` or ``fn(value, values, token)``.

May return a ValidateResult or an awaitable resolving to one.
"""


class ValidationRules(TypedDict):
    """Validation rules declared for a field at registration time.

    Examples:
        >>> rules: ValidationRules = {
        ...     "required": "Email is required",
        ...     "max_length": {"value": 64, "message": "Too long"},
        ... }
    """
    required: NotRequired[Union[bool, str]]
    min: NotRequired[RuleValue]
    max: NotRequired[RuleValue]
    min_length: NotRequired[RuleValue]
    max_length: NotRequired[RuleValue]
    pattern: NotRequired[Union[str, Pattern[str], Dict[str, Any]]]
    validate: NotRequired[Union[ValidateFn, Dict[str, ValidateFn]]]
    deps: NotRequired[List[str]]


@dataclass
class FieldState:
    """Cached per-field view kept by the field registry.

    Attributes:
        value: Current value at the field path
        error: Latest error message, None when passing
        touched: Whether the field has received a blur
        dirty: Whether the value differs from the default snapshot
        validating: Whether a validation is in flight for the field
    """
    value: Any = None
    error: Optional[str] = None
    touched: bool = False
    dirty: bool = False
    validating: bool = False


@dataclass(frozen=True)
class ChangeNotification:
    """Raw change notification handed to a registration's on_change.

    Attributes:
        kind: Control kind the notification comes from
        value: Raw textual value of the control
        checked: Checked state for toggle controls
        files: Raw file collection for file controls
    """
    kind: ControlKind = ControlKind.TEXT
    value: Any = None
    checked: bool = False
    files: Any = None


@dataclass(frozen=True)
class ResetOptions:
    """Options for reset() and reset_field().

    Each flag keeps the corresponding piece of state instead of resetting it.
    """
    keep_values: bool = False
    keep_touched: bool = False
    keep_dirty: bool = False
    keep_default_values: bool = False
    keep_errors: bool = False
    keep_submit_count: bool = False


@dataclass(frozen=True)
class FieldArrayOptions:
    """Options for array field operations."""
    should_validate: bool = False
    should_focus: bool = False
    focus_index: Optional[int] = None
    focus_name: Optional[str] = None


@dataclass(frozen=True)
class PluginInfo:
    """Registry listing entry for an installed plugin."""
    name: str
    version: str
    type: PluginType
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "name": self.name,
            "version": self.version,
            "type": self.type.value if isinstance(self.type, PluginType) else self.type,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class FormState:
    """Aggregate snapshot of a form, used for state-change notifications."""
    values: Dict[str, Any]
    errors: Dict[str, Any] = field(default_factory=dict)
    touched: Dict[str, Any] = field(default_factory=dict)
    dirty: Dict[str, Any] = field(default_factory=dict)
    is_valid: bool = True
    is_submitting: bool = False
    is_submit_successful: bool = False
    submit_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "values": self.values,
            "errors": self.errors,
            "touched": self.touched,
            "dirty": self.dirty,
            "isValid": self.is_valid,
            "isSubmitting": self.is_submitting,
            "isSubmitSuccessful": self.is_submit_successful,
            "submitCount": self.submit_count,
        }


__all__ = [
    "EventType",
    "ValidationMode",
    "PluginType",
    "ControlKind",
    "RuleValue",
    "ValidateResult",
    "ValidateFn",
    "ValidationRules",
    "FieldState",
    "ChangeNotification",
    "ResetOptions",
    "FieldArrayOptions",
    "PluginInfo",
    "FormState",
]
