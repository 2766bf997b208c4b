"""
docmapper - active-record style models for MongoDB documents.

Provides dot-notation attribute access, BSON type coercion, dirty tracking,
array push/pull and many-to-many relations through pivot collections.

Version: 1.0
"""

__version__ = "1.0.0"

from docmapper.models.base import Model
from docmapper.relations import BelongsToMany, Pivot, PivotRelation, belongs_to_many

__all__ = [
    "Model",
    "BelongsToMany",
    "Pivot",
    "PivotRelation",
    "belongs_to_many",
]
