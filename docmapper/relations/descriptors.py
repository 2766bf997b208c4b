"""
Relation declarations.

Models declare their relations in a static ``relationships`` mapping from
relation name to descriptor. Descriptors are immutable; binding one to a
parent model produces the relation object that builds and runs the query.

Version: 1.0
"""

from dataclasses import dataclass, replace
from typing import Any, ClassVar, Optional, Tuple, Type, Union, TYPE_CHECKING

from docmapper.config.settings import PIVOT_KEY_TYPES, get_settings
from docmapper.models.base import Model, resolve_model, snake_case

if TYPE_CHECKING:
    from docmapper.relations.pivot_relation import BelongsToMany


@dataclass(frozen=True)
class RelationDescriptor:
    """Common part of every relation declaration."""

    kind: ClassVar[str] = "relation"

    related: Union[str, Type[Model]]

    def related_model(self) -> Type[Model]:
        if isinstance(self.related, str):
            return resolve_model(self.related)
        return self.related

    def bind(self, parent: Model, constrain: bool = True) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class PivotRelation(RelationDescriptor):
    """Many-to-many relation stored in a separate pivot collection."""

    kind: ClassVar[str] = "belongs_to_many"

    table: Optional[str] = None
    foreign_pivot_key: Optional[str] = None
    related_pivot_key: Optional[str] = None
    parent_key: str = "_id"
    related_key: str = "_id"
    pivot_columns: Tuple[str, ...] = ()
    pivot_key_type: Optional[str] = None

    def __post_init__(self):
        if self.pivot_key_type is not None and self.pivot_key_type not in PIVOT_KEY_TYPES:
            raise ValueError(f"pivot_key_type must be one of {PIVOT_KEY_TYPES}")

    def with_pivot(self, *columns: str) -> "PivotRelation":
        """Returns a copy that also surfaces the given pivot columns."""
        extra = tuple(column for column in columns if column not in self.pivot_columns)
        return replace(self, pivot_columns=self.pivot_columns + extra)

    def resolve(self, parent: Model) -> "PivotRelation":
        """Fills the naming defaults from the parent and related models."""
        related = self.related_model()
        return replace(
            self,
            related=related,
            table=self.table or joining_table(type(parent), related),
            foreign_pivot_key=self.foreign_pivot_key or parent.get_foreign_key(),
            related_pivot_key=self.related_pivot_key or related().get_foreign_key(),
            pivot_key_type=self.pivot_key_type or get_settings().PIVOT_KEY_TYPE,
        )

    def bind(self, parent: Model, constrain: bool = True) -> "BelongsToMany":
        from docmapper.relations.pivot_relation import BelongsToMany

        return BelongsToMany(parent, self.resolve(parent), constrain=constrain)


def joining_table(parent: Type[Model], related: Type[Model]) -> str:
    """Default pivot collection name, e.g. ``role_user`` for User and Role."""
    return "_".join(sorted([snake_case(parent.__name__), snake_case(related.__name__)]))


def belongs_to_many(
    related: Union[str, Type[Model]],
    table: Optional[str] = None,
    foreign_pivot_key: Optional[str] = None,
    related_pivot_key: Optional[str] = None,
    parent_key: str = "_id",
    related_key: str = "_id",
    pivot_columns: Tuple[str, ...] = (),
    pivot_key_type: Optional[str] = None,
) -> PivotRelation:
    """
    Declares a many-to-many relation through a pivot collection.

    Args:
        related: Related model class, or its class name for forward references
        table: Pivot collection; defaults to the sorted snake names joined by '_'
        foreign_pivot_key: Pivot field holding the parent key, e.g. ``user_id``
        related_pivot_key: Pivot field holding the related key, e.g. ``role_id``
        parent_key: Parent attribute the pivot references
        related_key: Related attribute the pivot references
        pivot_columns: Extra pivot fields surfaced as ``pivot_<column>``
        pivot_key_type: ``"string"`` or ``"object_id"``; defaults to settings

    Returns:
        PivotRelation: The immutable relation descriptor
    """
    return PivotRelation(
        related=related,
        table=table,
        foreign_pivot_key=foreign_pivot_key,
        related_pivot_key=related_pivot_key,
        parent_key=parent_key,
        related_key=related_key,
        pivot_columns=tuple(pivot_columns),
        pivot_key_type=pivot_key_type,
    )
