"""
Parameter validation utilities for generator configurations.

Every validator raises ConfigurationError naming the offending field and
returns the value unchanged on success. Nothing is clamped.
"""

import math
import numbers
from typing import Any, Optional

from roadweave.core.errors import ConfigurationError


def validate_int(
    name: str,
    value: Any,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    """
    Validate an integer parameter.

    Args:
        name: Field name used in the error
        value: Value to validate
        minimum: Inclusive lower bound
        maximum: Inclusive upper bound

    Returns:
        The value as int

    Raises:
        ConfigurationError: If the value is not an integer or out of range
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ConfigurationError(f"{name} must be an integer", config_key=name, value=value)

    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}", config_key=name, value=value)

    if maximum is not None and value > maximum:
        raise ConfigurationError(f"{name} must be <= {maximum}", config_key=name, value=value)

    return int(value)


def validate_float(
    name: str,
    value: Any,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    exclusive_minimum: bool = False,
) -> float:
    """
    Validate a finite real parameter.

    Args:
        name: Field name used in the error
        value: Value to validate
        minimum: Lower bound
        maximum: Inclusive upper bound
        exclusive_minimum: Whether ``minimum`` itself is rejected

    Returns:
        The value as float

    Raises:
        ConfigurationError: If the value is not a finite number or out of range
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be a number", config_key=name, value=value)

    value = float(value)
    if not math.isfinite(value):
        raise ConfigurationError(f"{name} must be finite", config_key=name, value=value)

    if minimum is not None:
        if exclusive_minimum and value <= minimum:
            raise ConfigurationError(f"{name} must be > {minimum}", config_key=name, value=value)
        if not exclusive_minimum and value < minimum:
            raise ConfigurationError(f"{name} must be >= {minimum}", config_key=name, value=value)

    if maximum is not None and value > maximum:
        raise ConfigurationError(f"{name} must be <= {maximum}", config_key=name, value=value)

    return value


def validate_probability(name: str, value: Any) -> float:
    """Validate a probability in ``[0, 1]``."""
    return validate_float(name, value, minimum=0.0, maximum=1.0)


def validate_angle(name: str, value: Any) -> float:
    """Validate a non-negative angle of at most pi radians."""
    return validate_float(name, value, minimum=0.0, maximum=math.pi)
