"""Readers for kind-dependent guard config values."""

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from paywarden.errors import GuardConfigError
from paywarden.guards.models import GuardPeriod


def optional_decimal(config: dict[str, Any], key: str) -> Decimal | None:
    """Return ``config[key]`` as a non-negative Decimal, or None when absent."""
    value = config.get(key)
    if value is None:
        return None
    # bool is an int subclass; True is not a limit
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise GuardConfigError(f"'{key}' must be numeric, got {value!r}")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise GuardConfigError(f"'{key}' must be numeric, got {value!r}") from None
    if not number.is_finite() or number < 0:
        raise GuardConfigError(f"'{key}' must be a finite non-negative number, got {value!r}")
    return number


def require_decimal(config: dict[str, Any], key: str) -> Decimal:
    number = optional_decimal(config, key)
    if number is None:
        raise GuardConfigError(f"missing required '{key}'")
    return number


def require_count(config: dict[str, Any], key: str) -> int:
    number = require_decimal(config, key)
    if number != number.to_integral_value():
        raise GuardConfigError(f"'{key}' must be a whole number, got {config[key]!r}")
    return int(number)


def read_period(config: dict[str, Any], default: GuardPeriod) -> GuardPeriod:
    value = config.get("period")
    if value is None:
        return default
    try:
        return GuardPeriod(value)
    except ValueError:
        allowed = ", ".join(p.value for p in GuardPeriod)
        raise GuardConfigError(f"'period' must be one of {allowed}, got {value!r}") from None


def read_strings(config: dict[str, Any], key: str) -> list[str] | None:
    value = config.get(key)
    if value is None:
        return None
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise GuardConfigError(f"'{key}' must be a list of strings, got {value!r}")
    items = list(value)
    if not all(isinstance(item, str) for item in items):
        raise GuardConfigError(f"'{key}' must contain only strings")
    return items


def compile_patterns(patterns: list[str]) -> list[re.Pattern[str]]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            raise GuardConfigError(f"invalid pattern {pattern!r}: {e}") from None
    return compiled
