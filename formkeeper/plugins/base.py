"""Plugin base class and hook declarations.

A plugin is a named, versioned unit with an install/uninstall lifecycle. It
may declare hooks (callbacks the registry wires onto bus events), the names
of plugins it depends on, and a public API object that the kernel stores
under the plugin's name for other plugins and the form facade to look up.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from ..types import PluginType

FIELD_REGISTRY = "field-registry"
STATE_MANAGER = "state-manager"
VALIDATION_ENGINE = "validation-engine"
ARRAY_FIELDS = "array-fields"
SUBMIT_HANDLER = "submit-handler"

if TYPE_CHECKING:
    from ..kernel import Kernel


@dataclass(frozen=True)
class PluginHooks:
    """Callbacks a plugin wants invoked on bus events.

    Attributes:
        on_value_change: Called as ``(path, value, previous_value)`` on change
        on_state_change: Called with the state snapshot on state-change
        on_validate: Called as ``(errors, is_valid)`` on validate
        on_reset: Called with the reset values on reset
    """
    on_value_change: Optional[Callable[[str, Any, Any], None]] = None
    on_state_change: Optional[Callable[[Any], None]] = None
    on_validate: Optional[Callable[[Dict[str, Any], bool], None]] = None
    on_reset: Optional[Callable[[Any], None]] = None


class Plugin:
    """Base class for kernel plugins.

    Subclasses set ``name`` (unique per kernel) and usually override
    install() to capture the kernel and look up the APIs of the plugins
    listed in ``dependencies``.

    Examples:
        >>> class AuditPlugin(Plugin):
        ...     name = "audit"
        ...     def __init__(self):
        ...         super().__init__()
        ...         self.changes = []
        ...         self.hooks = PluginHooks(
        ...             on_value_change=lambda path, value, prev: self.changes.append(path)
        ...         )
    """

    name: str = ""
    version: str = "1.0.0"
    type: PluginType = PluginType.OPTIONAL
    dependencies: Tuple[str, ...] = ()
    hooks: Optional[PluginHooks] = None

    def __init__(self):
        self.kernel: Optional["Kernel"] = None

    @property
    def api(self) -> Optional[Any]:
        """Public API stored by the kernel under this plugin's name."""
        return None

    def install(self, kernel: "Kernel") -> None:
        self.kernel = kernel

    def uninstall(self) -> None:
        self.kernel = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} version={self.version!r}>"


__all__ = [
    "FIELD_REGISTRY",
    "STATE_MANAGER",
    "VALIDATION_ENGINE",
    "ARRAY_FIELDS",
    "SUBMIT_HANDLER",
    "PluginHooks",
    "Plugin",
]
