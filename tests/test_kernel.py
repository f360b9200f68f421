"""Unit tests for the kernel.

Tests cover:
- Form option validation
- Core plugin installation order
- Plugin registration, rollback and lookup
- Background task spawning
- Teardown
"""

import asyncio
import logging

import pytest

from formkeeper.errors import DuplicatePluginError, PluginDependencyError
from formkeeper.events import make_event
from formkeeper.kernel import FormOptions, Kernel
from formkeeper.plugins.base import Plugin
from formkeeper.types import EventType, PluginType, ValidationMode


CORE_PLUGINS = [
    "field-registry",
    "state-manager",
    "validation-engine",
    "array-fields",
    "submit-handler",
]


def make_kernel(**overrides):
    options = {"initial_values": {"email": ""}, "on_submit": lambda values: None}
    options.update(overrides)
    return Kernel(FormOptions(**options))


class CounterPlugin(Plugin):
    """Small plugin exposing an API object."""

    name = "counter"
    version = "2.1.0"

    def __init__(self):
        super().__init__()
        self.count = 0
        self.uninstalled = False

    @property
    def api(self):
        return self

    def install(self, kernel):
        super().install(kernel)
        kernel.on(EventType.CHANGE, self._on_change)

    def uninstall(self):
        self.uninstalled = True
        super().uninstall()

    def _on_change(self, event):
        self.count += 1


class BrokenPlugin(Plugin):
    name = "broken"

    def install(self, kernel):
        raise RuntimeError("cannot install")


class HalfInstalledPlugin(Plugin):
    """Subscribes to change, then fails to finish installing."""

    name = "half-installed"

    def __init__(self):
        super().__init__()
        self.seen = []
        self.uninstalled = False
        self._unsubscribes = []

    def install(self, kernel):
        super().install(kernel)
        self._unsubscribes.append(kernel.on(EventType.CHANGE, self._on_change))
        raise RuntimeError("cannot finish install")

    def uninstall(self):
        self.uninstalled = True
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()
        super().uninstall()

    def _on_change(self, event):
        self.seen.append(event.get("path"))


class TestFormOptions:
    """Test form option validation."""

    def test_defaults(self):
        """Should apply documented defaults."""
        options = FormOptions(initial_values={}, on_submit=print)
        assert options.mode == ValidationMode.ON_SUBMIT
        assert options.should_focus_error is True
        assert options.should_unregister is False
        assert options.on_error is None
        assert options.plugins == []

    def test_mode_accepts_strings(self):
        """Should convert string modes to ValidationMode."""
        options = FormOptions(initial_values={}, on_submit=print, mode="onBlur")
        assert options.mode is ValidationMode.ON_BLUR

    def test_invalid_mode_rejected(self):
        """Should reject unknown modes."""
        with pytest.raises(ValueError):
            FormOptions(initial_values={}, on_submit=print, mode="sometimes")

    def test_initial_values_must_be_mapping(self):
        """Should reject non-mapping initial values."""
        with pytest.raises(TypeError):
            FormOptions(initial_values=["a"], on_submit=print)

    def test_on_submit_must_be_callable(self):
        """Should reject a non-callable submit callback."""
        with pytest.raises(TypeError):
            FormOptions(initial_values={}, on_submit="submit")


class TestCorePlugins:
    """Test core plugin installation."""

    def test_core_plugins_installed_in_order(self):
        """Should install the five core plugins in dependency order."""
        kernel = make_kernel()
        infos = kernel.list_plugins()

        assert [info.name for info in infos] == CORE_PLUGINS
        assert all(info.type == PluginType.CORE for info in infos)

    def test_core_apis_available(self):
        """Should expose every core plugin API."""
        kernel = make_kernel()
        for name in CORE_PLUGINS:
            assert kernel.get_plugin(name) is not None

    def test_initial_values_are_copied(self):
        """Should never alias the caller's initial values."""
        initial = {"user": {"name": "Ada"}}
        kernel = make_kernel(initial_values=initial)

        kernel.get_plugin("state-manager").set_value("user.name", "Grace")

        assert initial == {"user": {"name": "Ada"}}

    def test_user_plugins_installed_after_core(self):
        """Should install caller plugins after the core plugins."""
        kernel = make_kernel(plugins=[CounterPlugin()])
        assert [info.name for info in kernel.list_plugins()] == CORE_PLUGINS + ["counter"]


class TestPluginManagement:
    """Test registering and unregistering plugins."""

    def test_register_plugin_stores_api(self):
        """Should store the plugin's API under its name."""
        kernel = make_kernel()
        plugin = CounterPlugin()

        kernel.register_plugin(plugin)
        kernel.get_plugin("state-manager").set_value("email", "a@b.com")

        assert kernel.get_plugin("counter") is plugin
        assert plugin.count == 1

    def test_get_unknown_plugin(self):
        """Should return None for unknown names."""
        assert make_kernel().get_plugin("missing") is None

    def test_duplicate_keeps_first_api(self):
        """Should reject a duplicate name and keep the first plugin's API."""
        kernel = make_kernel()
        first = CounterPlugin()
        kernel.register_plugin(first)

        with pytest.raises(DuplicatePluginError):
            kernel.register_plugin(CounterPlugin())

        assert kernel.get_plugin("counter") is first

    def test_missing_dependency(self):
        """Should reject plugins whose dependencies are missing."""

        class NeedsWizard(Plugin):
            name = "needs-wizard"
            dependencies = ("wizard",)

        with pytest.raises(PluginDependencyError):
            make_kernel().register_plugin(NeedsWizard())

    def test_install_failure_rolls_back(self, caplog):
        """Should log, unregister and re-raise when install fails."""
        kernel = make_kernel()

        with caplog.at_level(logging.ERROR, logger="formkeeper.kernel"):
            with pytest.raises(RuntimeError, match="cannot install"):
                kernel.register_plugin(BrokenPlugin())

        assert 'Error installing plugin "broken"' in caplog.text
        assert "broken" not in [info.name for info in kernel.list_plugins()]
        assert kernel.get_plugin("broken") is None

    def test_install_failure_uninstalls_plugin(self):
        """Should uninstall a half-installed plugin so its listeners stop."""
        kernel = make_kernel()
        plugin = HalfInstalledPlugin()

        with pytest.raises(RuntimeError, match="cannot finish install"):
            kernel.register_plugin(plugin)

        kernel.get_plugin("state-manager").set_value("email", "a@b.com")

        assert plugin.uninstalled
        assert plugin.seen == []
        assert plugin.kernel is None
        assert "half-installed" not in [info.name for info in kernel.list_plugins()]

    def test_unregister_plugin(self):
        """Should uninstall the plugin and drop its API."""
        kernel = make_kernel()
        plugin = CounterPlugin()
        kernel.register_plugin(plugin)

        kernel.unregister_plugin("counter")

        assert plugin.uninstalled
        assert kernel.get_plugin("counter") is None

    def test_unregister_unknown_plugin(self):
        """Should ignore unknown plugin names."""
        make_kernel().unregister_plugin("missing")


class TestEvents:
    """Test kernel event delegation."""

    def test_on_emit_off(self):
        """Should forward subscriptions and emissions to the bus."""
        kernel = make_kernel()
        calls = []
        kernel.on(EventType.FOCUS, calls.append)

        kernel.emit(make_event(EventType.FOCUS, path="email"))
        kernel.off(EventType.FOCUS, calls.append)
        kernel.emit(make_event(EventType.FOCUS, path="email"))

        assert len(calls) == 1


class TestSpawn:
    """Test background coroutine scheduling."""

    def test_runs_immediately_without_loop(self):
        """Should run the coroutine to completion when no loop is running."""
        kernel = make_kernel()
        calls = []

        async def work():
            calls.append("done")

        assert kernel.spawn(work()) is None
        assert calls == ["done"]

    def test_failure_without_loop_is_logged(self, caplog):
        """Should log failures of coroutines run without a loop."""
        kernel = make_kernel()

        async def work():
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="formkeeper.kernel"):
            kernel.spawn(work())

        assert "Form task failed" in caplog.text

    @pytest.mark.asyncio
    async def test_returns_task_with_loop(self):
        """Should schedule a task on the running loop."""
        kernel = make_kernel()
        calls = []

        async def work():
            calls.append("done")

        task = kernel.spawn(work())
        assert task is not None
        await task
        assert calls == ["done"]

    @pytest.mark.asyncio
    async def test_destroy_cancels_pending_tasks(self):
        """Should cancel tasks still pending at destroy."""
        kernel = make_kernel()

        task = kernel.spawn(asyncio.sleep(10))
        kernel.destroy()
        await asyncio.sleep(0)

        assert task.cancelled()


class TestDestroy:
    """Test kernel teardown."""

    def test_destroy_clears_everything(self):
        """Should uninstall plugins, clear listeners and APIs."""
        kernel = make_kernel()
        plugin = CounterPlugin()
        kernel.register_plugin(plugin)

        kernel.destroy()

        assert plugin.uninstalled
        assert kernel.list_plugins() == []
        assert kernel.get_plugin("state-manager") is None
        assert kernel.event_bus.listener_count() == 0

    def test_destroy_twice(self):
        """Should not raise when destroyed twice."""
        kernel = make_kernel()
        kernel.destroy()
        kernel.destroy()
