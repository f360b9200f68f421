"""Field rule evaluation for FormKeeper.

This module holds the pure parts of validation: checking that a rule
declaration is well formed (with a JSON Schema, via jsonschema), running the
built-in rules against a value, and running custom validators with a
cancellation token. The ValidationEngine plugin builds on these to keep the
error tree of a form.

Built-in rules run in a fixed order and stop at the first failure:
required, min, max, min_length, max_length, pattern. Each rule other than
required only applies to values of its type and is skipped otherwise.
"""

from typing import Any, Dict, Mapping, Optional, Pattern, Tuple, Union
import inspect
import re

from jsonschema import Draft7Validator

from .errors import InvalidRulesError
from .types import ValidateFn, ValidateResult, ValidationRules

DEFAULT_REQUIRED_MESSAGE = "This field is required"
DEFAULT_PATTERN_MESSAGE = "Invalid format"
DEFAULT_CUSTOM_MESSAGE = "Validation failed"


def _rule_with_message(value_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "anyOf": [
            value_schema,
            {
                "type": "object",
                "properties": {"value": value_schema, "message": {"type": "string"}},
                "required": ["value", "message"],
            },
        ]
    }


_NUMBER_RULE = _rule_with_message({"type": "number"})
_LENGTH_RULE = _rule_with_message({"type": "integer", "minimum": 0})

RULES_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "required": {"type": ["boolean", "string"]},
        "min": _NUMBER_RULE,
        "max": _NUMBER_RULE,
        "min_length": _LENGTH_RULE,
        "max_length": _LENGTH_RULE,
        # Compiled patterns and callables are not JSON types; they are
        # checked in check_rules() instead.
        "pattern": {},
        "validate": {},
        "deps": {"type": "array", "items": {"type": "string"}},
    },
    "additionalProperties": False,
}

Draft7Validator.check_schema(RULES_SCHEMA)
_RULES_VALIDATOR = Draft7Validator(RULES_SCHEMA)


def check_rules(path: str, rules: Mapping[str, Any]) -> None:
    """Validate a rule declaration.

    Args:
        path: Field path the rules are declared for (used in messages)
        rules: Rule mapping to check

    Raises:
        InvalidRulesError: If the declaration is malformed
    """
    if not isinstance(rules, Mapping):
        raise InvalidRulesError(path, f"expected a mapping, got {type(rules).__name__}")

    error = next(iter(_RULES_VALIDATOR.iter_errors(dict(rules))), None)
    if error is not None:
        rule = str(error.path[0]) if error.path else None
        raise InvalidRulesError(path, error.message, rule=rule)

    pattern = rules.get("pattern")
    if pattern is not None:
        target = pattern.get("value") if isinstance(pattern, Mapping) else pattern
        if not isinstance(target, (str, re.Pattern)):
            raise InvalidRulesError(path, "pattern must be a string or compiled pattern", rule="pattern")
        if isinstance(pattern, Mapping) and not isinstance(pattern.get("message"), str):
            raise InvalidRulesError(path, "pattern message must be a string", rule="pattern")

    validate = rules.get("validate")
    if validate is not None:
        validators = validate.values() if isinstance(validate, Mapping) else [validate]
        if not all(callable(fn) for fn in validators):
            raise InvalidRulesError(path, "validate must be a callable or a mapping of callables", rule="validate")


class CancellationToken:
    """Signals that a field validation has been superseded.

    Passed to custom validators that accept a third argument. Only custom
    validators observe it; built-in rules never check it.
    """

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


def is_empty(value: Any) -> bool:
    """Whether a value counts as absent for the required rule."""
    return value is None or value == "" or (isinstance(value, (list, tuple)) and len(value) == 0)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _unpack(rule: Any) -> Tuple[Any, Optional[str]]:
    if isinstance(rule, Mapping):
        return rule["value"], rule["message"]
    return rule, None


def _compile(pattern: Union[str, Pattern[str]]) -> Pattern[str]:
    return pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)


def run_builtin_rules(value: Any, rules: Optional[ValidationRules]) -> Optional[str]:
    """Evaluate the built-in rules against a value.

    Args:
        value: Current field value
        rules: Declared rules, or None

    Returns:
        The first failing rule's message, or None when all pass

    Examples:
        >>> run_builtin_rules("", {"required": "Email is required"})
        'Email is required'
        >>> run_builtin_rules(5, {"min_length": 3}) is None
        True
    """
    if not rules:
        return None

    required = rules.get("required")
    if required and is_empty(value):
        return required if isinstance(required, str) else DEFAULT_REQUIRED_MESSAGE

    if "min" in rules and _is_number(value):
        minimum, message = _unpack(rules["min"])
        if value < minimum:
            return message or f"Value must be at least {minimum}"

    if "max" in rules and _is_number(value):
        maximum, message = _unpack(rules["max"])
        if value > maximum:
            return message or f"Value must be at most {maximum}"

    sized = isinstance(value, (str, list, tuple))

    if "min_length" in rules and sized:
        min_length, message = _unpack(rules["min_length"])
        if len(value) < min_length:
            return message or f"Must be at least {min_length} characters"

    if "max_length" in rules and sized:
        max_length, message = _unpack(rules["max_length"])
        if len(value) > max_length:
            return message or f"Must be at most {max_length} characters"

    if rules.get("pattern") is not None and isinstance(value, str):
        pattern, message = _unpack(rules["pattern"])
        if not _compile(pattern).search(value):
            return message or DEFAULT_PATTERN_MESSAGE

    return None


def normalize_result(result: ValidateResult) -> Optional[str]:
    """Map a custom validator result to an error message or None.

    True and None pass, False fails with a generic message, and a string is
    the error message itself.
    """
    if result is True or result is None:
        return None
    if result is False:
        return DEFAULT_CUSTOM_MESSAGE
    return str(result)


def _accepts_token(fn: ValidateFn) -> bool:
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = 0
    for parameter in parameters:
        if parameter.kind == inspect.Parameter.VAR_POSITIONAL:
            return True
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= 3


async def call_validator(fn: ValidateFn, value: Any, values: Any, token: CancellationToken) -> ValidateResult:
    """Invoke a custom validator and await its result if needed."""
    if _accepts_token(fn):
        result = fn(value, values, token)
    else:
        result = fn(value, values)
    if inspect.isawaitable(result):
        result = await result
    return result


async def run_custom_validators(
    value: Any,
    validate: Union[ValidateFn, Mapping[str, ValidateFn]],
    values: Any,
    token: CancellationToken,
) -> Optional[str]:
    """Run custom validators in declaration order, stopping at the first failure.

    A validator whose token was cancelled while it ran is treated as passing.

    Returns:
        The first error message, or None
    """
    validators = validate.values() if isinstance(validate, Mapping) else [validate]
    for fn in validators:
        result = await call_validator(fn, value, values, token)
        if token.cancelled:
            return None
        error = normalize_result(result)
        if error:
            return error
    return None


__all__ = [
    "RULES_SCHEMA",
    "DEFAULT_REQUIRED_MESSAGE",
    "DEFAULT_PATTERN_MESSAGE",
    "DEFAULT_CUSTOM_MESSAGE",
    "check_rules",
    "CancellationToken",
    "is_empty",
    "run_builtin_rules",
    "normalize_result",
    "call_validator",
    "run_custom_validators",
]
