"""Plugins for FormKeeper forms.

Core plugins, installed by every kernel in this order:
- FieldRegistryPlugin: live fields, their refs and rules
- StateManagerPlugin: values, defaults, touched and dirty trees
- ValidationEnginePlugin: rule evaluation and the error tree
- ArrayFieldsPlugin: identity-preserving list operations
- SubmitHandlerPlugin: the submission flow

Optional plugins, passed through FormOptions.plugins:
- FocusManagerPlugin: focus navigation across fields
- WizardPlugin: multi-step forms
- AutosavePlugin: debounced saving on change
"""

from .base import (
    ARRAY_FIELDS,
    FIELD_REGISTRY,
    STATE_MANAGER,
    SUBMIT_HANDLER,
    VALIDATION_ENGINE,
    Plugin,
    PluginHooks,
)
from .field_registry import FieldRegistration, FieldRegistryPlugin
from .state_manager import StateManagerPlugin
from .validation_engine import ValidationEnginePlugin
from .array_fields import ArrayFieldsPlugin, FieldArray, FieldArrayItem
from .submit_handler import SubmitHandlerPlugin
from .focus_manager import FocusManagerOptions, FocusManagerPlugin
from .wizard import WizardOptions, WizardPlugin, WizardStep
from .autosave import AutosaveOptions, AutosavePlugin

__all__ = [
    "ARRAY_FIELDS",
    "FIELD_REGISTRY",
    "STATE_MANAGER",
    "SUBMIT_HANDLER",
    "VALIDATION_ENGINE",
    "Plugin",
    "PluginHooks",
    "FieldRegistration",
    "FieldRegistryPlugin",
    "StateManagerPlugin",
    "ValidationEnginePlugin",
    "ArrayFieldsPlugin",
    "FieldArray",
    "FieldArrayItem",
    "SubmitHandlerPlugin",
    "FocusManagerOptions",
    "FocusManagerPlugin",
    "WizardOptions",
    "WizardPlugin",
    "WizardStep",
    "AutosaveOptions",
    "AutosavePlugin",
]
