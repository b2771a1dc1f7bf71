"""
Input coercion shared by the calculators.

Numbers may arrive as numeric strings from forms; they are coerced before any
domain check. Every failure is reported as InvalidInput.
"""

import math
from typing import Any, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from immocalc.errors import InvalidInput

ModelT = TypeVar("ModelT", bound=BaseModel)


def coerce_number(value: Any, field: str) -> float:
    """Coerce a number or numeric string to a finite float."""
    if value is None:
        raise InvalidInput(f"{field} is required", field=field)
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a number, got {value!r}", field=field)
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(
            f"{field} must be a number, got {value!r}", field=field
        ) from exc
    if not math.isfinite(number):
        raise InvalidInput(f"{field} must be a finite number", field=field)
    return number


def coerce_non_negative(value: Any, field: str) -> float:
    number = coerce_number(value, field)
    if number < 0:
        raise InvalidInput(f"{field} must be >= 0, got {number}", field=field)
    return number


def coerce_positive_int(value: Any, field: str) -> int:
    """Coerce to an integer > 0; 3.0 and "3" are accepted, 2.5 is not."""
    number = coerce_number(value, field)
    if not number.is_integer():
        raise InvalidInput(f"{field} must be an integer, got {number}", field=field)
    if number <= 0:
        raise InvalidInput(f"{field} must be > 0, got {int(number)}", field=field)
    return int(number)


def coerce_model(
    model_cls: Type[ModelT], data: Union[ModelT, Mapping[str, Any]]
) -> ModelT:
    """
    Build a record from a mapping, translating pydantic errors to InvalidInput.

    Accepts both snake_case field names and their camelCase aliases.
    """
    if isinstance(data, model_cls):
        return data
    if data is None:
        raise InvalidInput(f"{model_cls.__name__} data is required")
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise InvalidInput(
            f"Invalid {model_cls.__name__}: {field}: {first['msg']}", field=field
        ) from exc
