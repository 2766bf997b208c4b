"""
In-memory push and pull on array attributes.

These mirror the store's $push/$addToSet and $pullAll updates on the model's
attributes, then copy the result into the original snapshot so the change is
not reported as pending once the remote update has been issued.

Version: 1.0
"""

from typing import Any, List, TYPE_CHECKING

from docmapper.core.exceptions import InvalidAttributeTypeException
from docmapper.utils import paths

if TYPE_CHECKING:
    from docmapper.models.base import Model


def wrap(values: Any) -> List[Any]:
    """Wraps a single value in a list; None becomes an empty list."""
    if values is None:
        return []
    if isinstance(values, (list, tuple)):
        return list(values)
    return [values]


def _current(model: "Model", column: str) -> Any:
    current = paths.get(model.attributes, column)
    if not current:
        return []
    if isinstance(current, list):
        return list(current)
    return current


def _write(model: "Model", column: str, value: Any) -> None:
    if paths.is_dotted(column) and column not in model.attributes:
        paths.set(model.attributes, column, value)
    else:
        model.attributes[column] = value


def push_attribute_values(model: "Model", column: str, values: List[Any], unique: bool = False) -> Any:
    """
    Appends values to the array at ``column`` and syncs the snapshot.

    With ``unique`` set, values already present are skipped, and nothing is
    appended at all if the attribute holds something other than an array.
    """
    current = _current(model, column)

    for value in values:
        # Don't add duplicate values when we only want unique values.
        if unique and (not isinstance(current, list) or value in current):
            continue

        if not isinstance(current, list):
            raise InvalidAttributeTypeException(column, current)

        current.append(value)

    _write(model, column, current)
    model.sync_original_attribute(column)

    return current


def pull_attribute_values(model: "Model", column: str, values: List[Any]) -> Any:
    """
    Removes every occurrence of each value from the array at ``column``.

    Remaining elements keep their order. Non-array values are left as they are.
    """
    current = _current(model, column)

    if isinstance(current, list):
        current = [item for item in current if item not in values]

    _write(model, column, current)
    model.sync_original_attribute(column)

    return current
