"""Helpers for turning request values into model enums"""
from enum import Enum
from typing import Optional, Type, TypeVar

from infohub.core.exceptions import ValidationError

E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: Type[E], value, field: str) -> Optional[E]:
    """Return `value` as a member of `enum_cls`, raising ValidationError for unknown values"""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(str(m.value) for m in enum_cls)
        raise ValidationError(f"Invalid {field}: {value}. Allowed: {allowed}", field=field)
