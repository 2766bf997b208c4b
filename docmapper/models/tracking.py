"""
Dirty tracking for model attributes.

Decides whether an attribute still holds its last persisted value. Values
that went through a store round trip can change representation (a date comes
back as a different type, a number as a string), so equality here is about
meaning rather than representation.

Version: 1.0
"""

import copy
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, TYPE_CHECKING

from bson.datetime_ms import DatetimeMS

from docmapper.models.casts import PRIMITIVE_CAST_TYPES, cast_type, cast_value
from docmapper.utils import paths

if TYPE_CHECKING:
    from docmapper.models.base import Model

NUMERIC_PATTERN = re.compile(r'^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$')


def is_numeric(value: Any) -> bool:
    """True for ints, floats, decimals and numeric strings, never for bools."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    return isinstance(value, str) and NUMERIC_PATTERN.match(value) is not None


def numeric_string(value: Any) -> str:
    """Renders a number the way it would be written as a string."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return str(value)


def is_identical(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


class DirtyTracker:
    """Compares a model's attributes against its original snapshot."""

    def __init__(self, model: "Model"):
        self.model = model

    def is_original_equivalent(self, key: str) -> bool:
        model = self.model
        if not paths.has(model.original, key):
            return False

        attribute = paths.get(model.attributes, key)
        original = paths.get(model.original, key)

        if is_identical(attribute, original):
            return True

        if attribute is None or attribute is paths.MISSING:
            return False

        if model.is_date_attribute(key):
            attribute = self._as_date(attribute)
            original = self._as_date(original)
            return attribute == original

        cast = model.get_cast(key)
        if cast is not None and cast_type(cast) in PRIMITIVE_CAST_TYPES:
            return is_identical(cast_value(cast, attribute), cast_value(cast, original))

        return (
            is_numeric(attribute)
            and is_numeric(original)
            and numeric_string(attribute) == numeric_string(original)
        )

    def _as_date(self, value: Any) -> Any:
        if isinstance(value, (DatetimeMS, datetime)):
            return self.model.date_strategy.from_stored(value)
        return value

    def get_dirty(self) -> Dict[str, Any]:
        """Returns the top-level attributes that changed since the last sync."""
        return {
            key: value
            for key, value in self.model.attributes.items()
            if not self.is_original_equivalent(key)
        }

    def sync_original(self) -> None:
        self.model.original = copy.deepcopy(self.model.attributes)

    def sync_original_attribute(self, key: str) -> None:
        value = paths.get(self.model.attributes, key)
        if value is paths.MISSING:
            paths.forget(self.model.original, key)
        elif paths.is_dotted(key) and key not in self.model.attributes:
            paths.set(self.model.original, key, copy.deepcopy(value))
        else:
            self.model.original[key] = copy.deepcopy(value)
