"""Exception types raised by FormKeeper.

Only setup-time problems are raised to the integrator: duplicate or
misordered plugins, malformed rule declarations and invalid options.
Field validation failures are data kept in the error tree, and failures
during steady-state operation (event handlers, plugin teardown, submit
callbacks) are logged and reported through events instead of raised.
"""

from typing import Iterable, Optional


class FormKeeperError(Exception):
    """Base class for all FormKeeper errors."""


class DuplicatePluginError(FormKeeperError):
    """Raised when registering a plugin whose name is already taken.

    Attributes:
        plugin_name: Name of the rejected plugin
    """

    def __init__(self, plugin_name: str):
        self.plugin_name = plugin_name
        super().__init__(f'Plugin "{plugin_name}" is already registered')


class PluginDependencyError(FormKeeperError):
    """Raised when a plugin is registered before the plugins it depends on.

    Attributes:
        plugin_name: Name of the plugin being registered
        missing: Dependency names that are not registered yet
    """

    def __init__(self, plugin_name: str, missing: Iterable[str]):
        self.plugin_name = plugin_name
        self.missing = list(missing)
        super().__init__(
            f'Plugin "{plugin_name}" requires plugins that are not registered: '
            f"{', '.join(self.missing)}"
        )


class PluginNotFoundError(FormKeeperError):
    """Raised when a required plugin API cannot be found on the kernel."""

    def __init__(self, plugin_name: str):
        self.plugin_name = plugin_name
        super().__init__(f'Plugin "{plugin_name}" is not registered')


class InvalidRulesError(FormKeeperError, ValueError):
    """Raised when a field's validation rule declaration is malformed.

    Attributes:
        path: Field path the rules were declared for
        rule: Offending rule key, if known
    """

    def __init__(self, path: str, message: str, rule: Optional[str] = None):
        self.path = path
        self.rule = rule
        super().__init__(f"Invalid validation rules for field '{path}': {message}")


__all__ = [
    "FormKeeperError",
    "DuplicatePluginError",
    "PluginDependencyError",
    "PluginNotFoundError",
    "InvalidRulesError",
]
