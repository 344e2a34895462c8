"""
Helpers for status and type columns stored as upper-case VARCHAR.

Columns hold the enum *value* ("IN_PROGRESS"), never a native database enum.
API schemas use the Python enums; services compare against `.value`.
"""

from enum import Enum
from typing import Any, List, Optional, Type, TypeVar


E = TypeVar('E', bound=Enum)


def get_enum_value(value: Any) -> Optional[str]:
    """
    Column value for an enum member or a raw string.

        >>> get_enum_value(AuditStatus.PLANNED)
        'PLANNED'
        >>> get_enum_value("PLANNED")
        'PLANNED'
    """
    if value is None:
        return None
    return value.value if isinstance(value, Enum) else str(value)


def to_enum(value: Any, enum_class: Type[E]) -> Optional[E]:
    """Enum member for a stored value, or None when the value is unknown."""
    if value is None or isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except ValueError:
        return None


def enum_values(enum_class: Type[Enum]) -> List[str]:
    return [member.value for member in enum_class]


def enum_comment(enum_class: Type[Enum]) -> str:
    """Column comment listing allowed values, e.g. 'PENDING, COUNTED, VERIFIED, DISCREPANCY'."""
    return ", ".join(enum_values(enum_class))
