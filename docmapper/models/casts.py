"""
Primitive attribute casts.

Version: 1.0
"""

import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict

from bson.decimal128 import Decimal128

from docmapper.utils import date_utils

# Cast names that compare as plain values when deciding dirtiness
PRIMITIVE_CAST_TYPES = frozenset([
    'array', 'bool', 'boolean', 'collection', 'custom_datetime', 'date',
    'datetime', 'decimal', 'double', 'float', 'int', 'integer', 'json',
    'object', 'real', 'string', 'timestamp',
])

DATE_CAST_TYPES = frozenset(['date', 'datetime', 'custom_datetime'])

logger = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    if isinstance(value, Decimal128):
        value = value.to_decimal()
    return int(float(value)) if isinstance(value, str) else int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, Decimal128):
        value = value.to_decimal()
    return float(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    return Decimal(str(value))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ('', '0', 'false')
    return bool(value)


def _to_structure(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _to_timestamp(value: Any) -> int:
    return date_utils.to_timestamp_ms(date_utils.as_datetime(value)) // 1000


CASTERS: Dict[str, Callable[[Any], Any]] = {
    'int': _to_int,
    'integer': _to_int,
    'real': _to_float,
    'float': _to_float,
    'double': _to_float,
    'decimal': _to_decimal,
    'string': str,
    'bool': _to_bool,
    'boolean': _to_bool,
    'object': _to_structure,
    'array': _to_structure,
    'json': _to_structure,
    'collection': _to_structure,
    'date': lambda value: date_utils.start_of_day(date_utils.as_datetime(value)),
    'datetime': date_utils.as_datetime,
    'custom_datetime': date_utils.as_datetime,
    'timestamp': _to_timestamp,
}


def cast_type(cast: str) -> str:
    """Normalizes a cast declaration such as ``'datetime:%Y-%m-%d'``."""
    name = cast.split(':', 1)[0].strip().lower()
    if name == 'datetime' and ':' in cast:
        return 'custom_datetime'
    return name


def cast_value(cast: str, value: Any) -> Any:
    """
    Applies a declared cast to a value. ``None`` is never cast.

    Unknown cast names leave the value unchanged, and so does a primitive
    cast the value cannot take. Date casts raise when the value is not a date.
    """
    if value is None:
        return None

    name = cast_type(cast)
    caster = CASTERS.get(name)
    if caster is None:
        return value
    if name in DATE_CAST_TYPES or name == 'timestamp':
        return caster(value)

    try:
        return caster(value)
    except (ValueError, TypeError, ArithmeticError) as e:
        logger.debug(f"Cast {name} not applicable to {value!r}: {e}")
        return value
