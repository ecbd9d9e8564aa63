"""Typed template values.

Every variable in a ``template.toml`` carries a value that is a string, a
boolean or an integer.  The type is fixed once, from the literal type of the
variable's ``default``, and all comparisons and input coercions dispatch on
that tag explicitly.  Python's ``bool`` being a subclass of ``int`` means the
plain ``==`` operator is not enough (``True == 1``), hence
:func:`values_equal`.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import StrictBool, StrictInt, StrictStr

# Order matters for pydantic's union validation: bool before int.
TemplateValue = Union[StrictBool, StrictInt, StrictStr]

TRUTHY = frozenset({"y", "yes", "true"})
FALSY = frozenset({"n", "no", "false"})


class ValueType(str, Enum):
    """Closed set of value types a variable can have."""

    STRING = "string"
    BOOLEAN = "bool"
    INTEGER = "integer"


class CoercionError(ValueError):
    """Raised when raw input cannot be converted to a variable's type."""


def value_type(value: bool | int | str) -> ValueType:
    """Return the type tag of *value*."""
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, int):
        return ValueType.INTEGER
    if isinstance(value, str):
        return ValueType.STRING
    raise TypeError(
        f"Value {value!r} (of type `{type(value).__name__}`) is not allowed: "
        "only strings, integers and booleans are."
    )


def values_equal(left: bool | int | str, right: bool | int | str) -> bool:
    """Type-aware equality: ``True`` and ``1`` are different values."""
    return value_type(left) is value_type(right) and left == right


def interpret_bool(raw: str) -> bool:
    """Interpret a yes/no answer.

    Accepts ``y``/``yes``/``true`` and ``n``/``no``/``false`` in any case.
    """
    answer = raw.strip().lower()
    if answer in TRUTHY:
        return True
    if answer in FALSY:
        return False
    raise CoercionError(f"Invalid choice: '{raw}'")


def interpret_integer(raw: str) -> int:
    """Parse an integer; the whole (stripped) input must be a number."""
    text = raw.strip()
    try:
        return int(text)
    except ValueError:
        raise CoercionError(f"Invalid integer: '{raw}'") from None


def coerce(raw: bool | int | str, target: ValueType) -> bool | int | str:
    """Convert *raw* to *target*.

    Raw input usually arrives as text (from a prompt, ``--set`` or an answers
    file) but answers files can already hold typed scalars, which are accepted
    only when they already have the right type.
    """
    if not isinstance(raw, str):
        if value_type(raw) is target:
            return raw
        raise CoercionError(
            f"Expected a value of type {target.value}, got {value_type(raw).value} {raw!r}"
        )
    if target is ValueType.BOOLEAN:
        return interpret_bool(raw)
    if target is ValueType.INTEGER:
        return interpret_integer(raw)
    return raw


def display(value: bool | int | str) -> str:
    """Render a value the way it is written in ``template.toml``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
