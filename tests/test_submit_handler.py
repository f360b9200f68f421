"""Unit tests for the submit handler plugin.

Tests cover:
- Successful and failing submissions
- Callback failures surfacing as error events
- Re-entrancy guard and counters
- Focus on the first error
- Native event suppression
"""

import asyncio

import pytest

from formkeeper.form import create_form
from formkeeper.types import EventType, ResetOptions


def make_form(on_submit=None, **kwargs):
    submitted = []
    if on_submit is None:
        on_submit = submitted.append
    form = create_form(
        initial_values={"email": "", "user": {"name": ""}},
        on_submit=on_submit,
        **kwargs,
    )
    return form, submitted


def record(form, *event_types):
    events = []
    for event_type in event_types:
        form.on(event_type, events.append)
    return events


class FakeControl:
    def __init__(self):
        self.calls = []

    def focus(self):
        self.calls.append("focus")

    def scroll_into_view(self):
        self.calls.append("scroll")


class FakeNativeEvent:
    def __init__(self):
        self.calls = []

    def prevent_default(self):
        self.calls.append("prevent_default")

    def stop_propagation(self):
        self.calls.append("stop_propagation")


class TestSuccessfulSubmit:
    """Test submissions that pass validation."""

    @pytest.mark.asyncio
    async def test_submit_calls_on_submit(self):
        """Should hand the values to on_submit and emit events."""
        form, submitted = make_form()
        events = record(form, EventType.SUBMIT, EventType.SUBMIT_SUCCESS)
        form.set_value("email", "a@b.com")

        await form.submit()

        assert submitted == [form.get_values()]
        assert [event.type for event in events] == [EventType.SUBMIT, EventType.SUBMIT_SUCCESS]
        assert form.is_submit_successful()
        assert not form.is_submitting()
        assert form.get_submit_count() == 1

    @pytest.mark.asyncio
    async def test_async_on_submit_awaited(self):
        """Should await async submit callbacks."""
        calls = []

        async def on_submit(values):
            await asyncio.sleep(0)
            calls.append(values["email"])

        form, _ = make_form(on_submit=on_submit)

        await form.submit()

        assert calls == [""]
        assert form.is_submit_successful()

    @pytest.mark.asyncio
    async def test_submitting_flag_during_callback(self):
        """Should report submitting while on_submit runs."""
        seen = []
        form = None

        def on_submit(values):
            seen.append(form.is_submitting())

        form, _ = make_form(on_submit=on_submit)
        await form.submit()

        assert seen == [True]
        assert not form.is_submitting()


class TestFailedValidation:
    """Test submissions that fail validation."""

    @pytest.mark.asyncio
    async def test_invalid_form_not_submitted(self):
        """Should report errors and skip on_submit."""
        errors_seen = []
        form, submitted = make_form(on_error=errors_seen.append)
        events = record(form, EventType.SUBMIT_ERROR, EventType.SUBMIT_SUCCESS)
        form.register("email", {"required": "Email is required"})

        await form.submit()

        assert submitted == []
        assert errors_seen == [{"email": "Email is required"}]
        assert [event.type for event in events] == [EventType.SUBMIT_ERROR]
        assert events[0].get("errors") == {"email": "Email is required"}
        assert not form.is_submit_successful()
        assert form.get_submit_count() == 1

    @pytest.mark.asyncio
    async def test_async_on_error_awaited(self):
        """Should await async error callbacks."""
        seen = []

        async def on_error(errors):
            seen.append(errors)

        form, _ = make_form(on_error=on_error)
        form.register("email", {"required": True})

        await form.submit()

        assert seen == [{"email": "This field is required"}]

    @pytest.mark.asyncio
    async def test_focuses_first_error(self):
        """Should focus and scroll to the first invalid field."""
        form, _ = make_form()
        email = FakeControl()
        name = FakeControl()
        form.register("user.name", {"required": True}).ref(name)
        form.register("email", {"required": True}).ref(email)

        await form.submit()

        assert name.calls == ["focus", "scroll"]
        assert email.calls == []

    @pytest.mark.asyncio
    async def test_focus_disabled(self):
        """Should not focus when should_focus_error is off."""
        form, _ = make_form(should_focus_error=False)
        email = FakeControl()
        form.register("email", {"required": True}).ref(email)

        await form.submit()

        assert email.calls == []

    @pytest.mark.asyncio
    async def test_missing_ref_is_ignored(self):
        """Should not fail when the invalid field has no ref."""
        form, _ = make_form()
        events = record(form, EventType.ERROR)
        form.register("email", {"required": True})

        await form.submit()

        assert events == []


class TestSubmitFailures:
    """Test failures raised during submission."""

    @pytest.mark.asyncio
    async def test_on_submit_exception_becomes_error_event(self):
        """Should absorb on_submit failures into one error event."""
        def on_submit(values):
            raise RuntimeError("network down")

        form, _ = make_form(on_submit=on_submit)
        events = record(form, EventType.ERROR, EventType.SUBMIT_SUCCESS)

        await form.submit()

        assert not form.is_submitting()
        assert not form.is_submit_successful()
        assert len(events) == 1
        assert events[0].type == EventType.ERROR
        assert events[0].get("context") == "submit"
        assert isinstance(events[0].get("error"), RuntimeError)

    @pytest.mark.asyncio
    async def test_validator_exception_becomes_error_event(self):
        """Should absorb custom validator failures raised during submit."""
        def broken(value, values):
            raise ValueError("bad validator")

        form, submitted = make_form()
        events = record(form, EventType.ERROR)
        form.register("email", {"validate": broken})

        await form.submit()

        assert submitted == []
        assert [event.get("context") for event in events] == ["submit"]


class TestSubmitGuard:
    """Test the in-flight guard and counters."""

    @pytest.mark.asyncio
    async def test_concurrent_submit_ignored(self):
        """Should ignore submit() while another submission is in flight."""
        gate = asyncio.Event()
        calls = []

        async def on_submit(values):
            calls.append(values)
            await gate.wait()

        form, _ = make_form(on_submit=on_submit)

        first = asyncio.ensure_future(form.submit())
        await asyncio.sleep(0)
        await form.submit()
        gate.set()
        await first

        assert len(calls) == 1
        assert form.get_submit_count() == 1

    @pytest.mark.asyncio
    async def test_set_submitting_blocks_submit(self):
        """Should honour an externally set submitting flag."""
        form, submitted = make_form()
        form.get_plugin("submit-handler").set_submitting(True)

        await form.submit()

        assert submitted == []
        assert form.get_submit_count() == 0

    @pytest.mark.asyncio
    async def test_success_flag_resets_on_next_submit(self):
        """Should clear the success flag when a later submit fails."""
        form, _ = make_form()
        await form.submit()
        assert form.is_submit_successful()

        form.register("email", {"required": True})
        await form.submit()

        assert not form.is_submit_successful()
        assert form.get_submit_count() == 2

    @pytest.mark.asyncio
    async def test_reset_clears_count(self):
        """Should clear the count on reset unless kept."""
        form, _ = make_form()
        await form.submit()
        await form.submit()

        form.reset(options=ResetOptions(keep_submit_count=True))
        assert form.get_submit_count() == 2

        form.reset()
        assert form.get_submit_count() == 0
        assert not form.is_submit_successful()


class TestHandleSubmit:
    """Test the native event wrapper."""

    @pytest.mark.asyncio
    async def test_suppresses_native_event(self):
        """Should suppress default handling before submitting."""
        form, submitted = make_form()
        native = FakeNativeEvent()

        await form.handle_submit(native)

        assert native.calls == ["prevent_default", "stop_propagation"]
        assert len(submitted) == 1

    @pytest.mark.asyncio
    async def test_without_native_event(self):
        """Should submit without an event."""
        form, submitted = make_form()
        await form.handle_submit()
        assert len(submitted) == 1

    @pytest.mark.asyncio
    async def test_event_without_methods(self):
        """Should tolerate events lacking suppression methods."""
        form, submitted = make_form()
        await form.handle_submit(object())
        assert len(submitted) == 1
