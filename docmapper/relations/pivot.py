"""
Pivot record model.

Version: 1.0
"""

from typing import Any, Dict, Optional

from docmapper.models.base import Model


class Pivot(Model):
    """A row of a pivot collection, attached to the parent it was loaded for."""

    timestamps = False

    def __init__(self, attributes: Optional[Dict[str, Any]] = None):
        self.pivot_parent: Optional[Model] = None
        super().__init__(attributes)

    @classmethod
    def from_attributes(cls, parent: Model, attributes: Dict[str, Any], table: str, exists: bool = False) -> "Pivot":
        """
        Builds a pivot record from raw pivot fields.

        Timestamps are only kept when the pivot row carries them. Date values
        go through the same coercion as any other model attribute.
        """
        instance = cls()
        instance.timestamps = instance.has_timestamp_attributes(attributes)
        instance.collection = table
        instance.fill(attributes).sync_original()
        instance.pivot_parent = parent
        instance.exists = exists
        return instance

    def has_timestamp_attributes(self, attributes: Optional[Dict[str, Any]] = None) -> bool:
        attributes = self.attributes if attributes is None else attributes
        return self.CREATED_AT in attributes
