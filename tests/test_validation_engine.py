"""Unit tests for the validation engine plugin.

Tests cover:
- Field and form validation results and the error tree
- Error accessors on nested paths
- Validation modes and dependent fields
- In-flight tracking and cancellation of superseded validations
- Interaction with reset and unregister
"""

import asyncio

import pytest

from formkeeper.form import create_form
from formkeeper.types import EventType, ResetOptions, ValidationMode


def make_form(initial_values=None, **kwargs):
    if initial_values is None:
        initial_values = {"email": "", "name": "", "password": "", "confirm": ""}
    return create_form(initial_values=initial_values, on_submit=lambda values: None, **kwargs)


class TestValidateField:
    """Test single-field validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("empty", ["", None, []])
    async def test_required_fails_on_empty(self, empty):
        """Should fail required fields holding an empty value."""
        form = make_form(initial_values={"field": empty})
        form.register("field", {"required": True})

        assert await form.validate_field("field") is False
        assert form.get_error("field")

        form.set_value("field", "present")
        assert await form.validate_field("field") is True
        assert form.get_error("field") is None

    @pytest.mark.asyncio
    async def test_success_removes_entry(self):
        """Should remove the error entry, not just blank it."""
        form = make_form(initial_values={"user": {"email": ""}})
        form.register("user.email", {"required": True})

        await form.validate_field("user.email")
        assert form.get_errors() == {"user": {"email": "This field is required"}}

        form.set_value("user.email", "a@b.com")
        await form.validate_field("user.email")

        assert form.get_errors() == {}
        assert form.is_valid()

    @pytest.mark.asyncio
    async def test_unregistered_path_passes(self):
        """Should pass paths without rules."""
        form = make_form()
        assert await form.validate_field("email") is True

    @pytest.mark.asyncio
    async def test_custom_validator_receives_values(self):
        """Should give custom validators the whole value tree."""
        form = make_form()
        form.set_value("password", "secret")
        form.register("confirm", {
            "validate": lambda value, values: value == values["password"] or "Passwords differ",
        })

        assert await form.validate_field("confirm") is False
        assert form.get_error("confirm") == "Passwords differ"

        form.set_value("confirm", "secret")
        assert await form.validate_field("confirm") is True

    @pytest.mark.asyncio
    async def test_builtin_rules_run_before_custom(self):
        """Should not run custom validators when a built-in rule fails."""
        form = make_form()
        calls = []
        form.register("email", {
            "required": "Required",
            "validate": lambda value, values: calls.append(value),
        })

        await form.validate_field("email")

        assert form.get_error("email") == "Required"
        assert calls == []

    @pytest.mark.asyncio
    async def test_custom_validator_errors_propagate(self):
        """Should let exceptions from custom validators reach the caller."""
        form = make_form()

        def broken(value, values):
            raise LookupError("service down")

        form.register("email", {"validate": broken})

        with pytest.raises(LookupError):
            await form.validate_field("email")
        assert not form.is_field_validating("email")

    @pytest.mark.asyncio
    async def test_field_state_tracks_error(self):
        """Should mirror the error into the cached field state."""
        form = make_form()
        form.register("email", {"required": "Required"})

        await form.validate_field("email")
        assert form.get_field_state("email").error == "Required"

        form.clear_error("email")
        assert form.get_field_state("email").error is None


class TestValidate:
    """Test whole-form validation."""

    @pytest.mark.asyncio
    async def test_concrete_email_scenario(self):
        """Should fail then pass as the required email is filled in."""
        form = make_form(initial_values={"email": ""})
        form.register("email", {"required": "Email is required"})

        assert await form.validate() is False
        assert form.get_error("email") == "Email is required"

        form.set_value("email", "a@b.com")

        assert await form.validate() is True
        assert form.get_error("email") is None

    @pytest.mark.asyncio
    async def test_all_fields_must_pass(self):
        """Should be valid only when every registered field passes."""
        form = make_form()
        form.register("email", {"required": True})
        form.register("name")

        assert await form.validate() is False
        assert form.get_errors() == {"email": "This field is required"}

    @pytest.mark.asyncio
    async def test_emits_validate_event(self):
        """Should emit validate with the error tree and validity."""
        form = make_form()
        events = []
        form.on(EventType.VALIDATE, events.append)
        form.register("email", {"required": "Required"})

        await form.validate()

        assert events[0].get("errors") == {"email": "Required"}
        assert events[0].get("is_valid") is False

    @pytest.mark.asyncio
    async def test_async_validators_run_concurrently(self):
        """Should start every field's validation before any finishes."""
        form = make_form()
        started = []
        gate = asyncio.Event()

        async def slow(value, values):
            started.append(value)
            await gate.wait()
            return True

        form.register("email", {"validate": slow})
        form.register("name", {"validate": slow})

        task = asyncio.ensure_future(form.validate())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert len(started) == 2
        assert form.is_validating()

        gate.set()
        assert await task is True
        assert not form.is_validating()

    @pytest.mark.asyncio
    async def test_passing_parent_keeps_child_errors(self):
        """Should keep a failing child's error when its parent list passes."""
        form = make_form(initial_values={"items": [{"name": ""}]})
        form.register("items.0.name", {"required": "Name required"})
        form.register("items", {"min_length": 1})

        assert await form.validate() is False
        assert form.get_error("items.0.name") == "Name required"
        assert form.get_errors() == {"items": {"0": {"name": "Name required"}}}
        assert form.is_valid() is False


class TestErrorAccessors:
    """Test direct error manipulation."""

    def test_set_and_clear_nested_errors(self):
        """Should create and prune intermediate nodes."""
        form = make_form()
        form.set_error("items[0].name", "Required")

        assert form.get_errors() == {"items": {"0": {"name": "Required"}}}
        assert form.get_error("items.0.name") == "Required"
        assert not form.is_valid()

        form.clear_error("items.0.name")

        assert form.get_errors() == {}
        assert form.is_valid()

    def test_get_error_on_internal_node(self):
        """Should only report string leaves as errors."""
        form = make_form()
        form.set_error("user.email", "Invalid")
        assert form.get_error("user") is None

    def test_clear_missing_error(self):
        """Should not raise when clearing through missing intermediates."""
        form = make_form()
        form.clear_error("a.b.c")
        assert form.is_valid()

    def test_clear_parent_keeps_children(self):
        """Should leave child errors alone when clearing a parent path."""
        form = make_form()
        form.set_error("items.0.name", "Required")

        form.clear_error("items")

        assert form.get_error("items.0.name") == "Required"
        assert not form.is_valid()

    def test_clear_errors(self):
        """Should drop every error."""
        form = make_form()
        form.set_error("email", "x")
        form.set_error("name", "y")
        form.clear_errors()
        assert form.get_errors() == {}


class TestValidationModes:
    """Test automatic validation triggers."""

    def test_on_submit_mode_never_validates_eagerly(self):
        """Should not validate on change or blur by default."""
        form = make_form()
        email = form.register("email", {"required": "Required"})

        email.on_change("")
        email.on_blur()

        assert form.get_errors() == {}

    def test_on_change_mode(self):
        """Should validate on every change."""
        form = make_form(mode=ValidationMode.ON_CHANGE)
        email = form.register("email", {"min_length": {"value": 3, "message": "Too short"}})

        email.on_change("ab")
        assert form.get_error("email") == "Too short"

        email.on_change("abc")
        assert form.get_error("email") is None

    def test_on_blur_mode(self):
        """Should validate on blur but not on change."""
        form = make_form(mode="onBlur")
        email = form.register("email", {"required": "Required"})

        email.on_change("")
        assert form.get_error("email") is None

        email.on_blur()
        assert form.get_error("email") == "Required"

    def test_on_touched_mode(self):
        """Should validate on blur and then on every change."""
        form = make_form(mode="onTouched")
        email = form.register("email", {"required": "Required"})

        email.on_change("")
        assert form.get_error("email") is None

        email.on_blur()
        assert form.get_error("email") == "Required"

        email.on_change("a@b.com")
        assert form.get_error("email") is None

    def test_all_mode(self):
        """Should validate on change and on blur."""
        form = make_form(mode="all")
        email = form.register("email", {"required": "Required"})

        email.on_change("")
        assert form.get_error("email") == "Required"

        form.clear_errors()
        email.on_blur()
        assert form.get_error("email") == "Required"

    def test_unregistered_change_not_validated(self):
        """Should ignore changes to paths that are not registered."""
        form = make_form(mode="onChange")
        form.set_value("email", "")
        assert form.get_errors() == {}

    def test_deps_validate_dependent_fields(self):
        """Should revalidate the fields listed in deps."""
        form = make_form(mode="onChange")
        password = form.register("password", {"deps": ["confirm"]})
        form.register("confirm", {
            "validate": lambda value, values: value == values["password"] or "Passwords differ",
        })

        password.on_change("secret")

        assert form.get_error("confirm") == "Passwords differ"

    def test_set_value_should_validate(self):
        """Should validate when set_value asks for it."""
        form = make_form()
        form.register("email", {"required": "Required"})

        form.set_value("email", "", should_validate=True)

        assert form.get_error("email") == "Required"

    @pytest.mark.asyncio
    async def test_mode_validation_inside_running_loop(self):
        """Should schedule validations as tasks when a loop is running."""
        form = make_form(mode="onChange")
        email = form.register("email", {"required": "Required"})

        email.on_change("")
        await asyncio.sleep(0)

        assert form.get_error("email") == "Required"


class TestInFlightTracking:
    """Test validating flags and cancellation."""

    @pytest.mark.asyncio
    async def test_field_validating_while_in_flight(self):
        """Should report the field as validating until it settles."""
        form = make_form()
        gate = asyncio.Event()

        async def slow(value, values):
            await gate.wait()
            return True

        form.register("email", {"validate": slow})

        task = asyncio.ensure_future(form.validate_field("email"))
        await asyncio.sleep(0)

        assert form.is_field_validating("email")
        assert form.get_field_state("email").validating is True

        gate.set()
        await task

        assert not form.is_field_validating("email")
        assert form.get_field_state("email").validating is False

    @pytest.mark.asyncio
    async def test_new_validation_cancels_previous_token(self):
        """Should cancel the token of a superseded validation."""
        form = make_form()
        tokens = []
        gate = asyncio.Event()

        async def check(value, values, token):
            tokens.append(token)
            await gate.wait()
            return True

        form.register("email", {"validate": check})

        first = asyncio.ensure_future(form.validate_field("email"))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(form.validate_field("email"))
        await asyncio.sleep(0)

        assert tokens[0].cancelled
        assert not tokens[1].cancelled

        gate.set()
        await asyncio.gather(first, second)

    @pytest.mark.asyncio
    async def test_superseded_custom_result_is_ignored(self):
        """Should treat a cancelled validator's late failure as passing."""
        form = make_form()
        gate = asyncio.Event()
        calls = []

        async def check(value, values):
            calls.append(value)
            if len(calls) == 1:
                await gate.wait()
                return "Stale error"
            return True

        form.register("email", {"validate": check})

        first = asyncio.ensure_future(form.validate_field("email"))
        await asyncio.sleep(0)
        assert await form.validate_field("email") is True

        gate.set()
        assert await first is True
        assert form.get_error("email") is None
        assert not form.is_field_validating("email")


class TestLifecycleInteraction:
    """Test errors across reset and unregister."""

    def test_reset_clears_errors(self):
        """Should clear errors on reset."""
        form = make_form()
        form.register("email")
        form.set_error("email", "Required")

        form.reset()

        assert form.get_errors() == {}
        assert form.get_field_state("email").error is None

    def test_reset_keep_errors(self):
        """Should keep errors when asked to."""
        form = make_form()
        form.set_error("email", "Required")

        form.reset(options=ResetOptions(keep_errors=True))

        assert form.get_error("email") == "Required"

    def test_unregister_drops_error(self):
        """Should drop the error of an unregistered field."""
        form = make_form()
        form.register("email")
        form.set_error("email", "Required")
        form.set_error("name", "Required")

        form.unregister("email")

        assert form.get_errors() == {"name": "Required"}
