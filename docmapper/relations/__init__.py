"""
Relations package: declarations and the pivot-collection relation.

Version: 1.0
"""

from .descriptors import PivotRelation, RelationDescriptor, belongs_to_many
from .pivot_relation import BelongsToMany
from .pivot import Pivot

__all__ = [
    "RelationDescriptor",
    "PivotRelation",
    "belongs_to_many",
    "BelongsToMany",
    "Pivot",
]
