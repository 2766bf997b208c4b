"""
Many-to-many relations through a pivot collection.

MongoDB has no foreign-key join, so the relation is resolved with an
aggregation pipeline on the related collection:

    $addFields  id := toString(_id)
    $lookup     pivot rows where pivot[related_pivot_key] == id, as "pivot"
    $unwind     "pivot", keeping related documents without a pivot row
    $match      pivot[foreign_pivot_key] == parent key (or $in parent keys)
    $project    drop the temporary "id"

and when results are fetched:

    $addFields  pivot_<column> := pivot.<column>
    $project    drop "pivot"

The related identity is the side that gets string-normalized: pivot
collections usually hold plain string keys, and converting one _id per related
document is cheaper than converting every pivot row. Descriptors declared with
``pivot_key_type="object_id"`` skip the conversion and join on _id directly.

Version: 1.0
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

import structlog  # structlog v23.1.0

from docmapper.db.query_builder import AggregationQuery
from docmapper.db.query_executor import ALL_COLUMNS
from docmapper.models.base import Model
from docmapper.relations.descriptors import PivotRelation
from docmapper.utils import paths

# Configure structured logging
logger = structlog.get_logger(__name__)

PIVOT_FIELD = 'pivot'
TEMPORARY_ID_FIELD = 'id'


class BelongsToMany:
    """Query builder for one many-to-many relation of one parent model."""

    def __init__(self, parent: Model, descriptor: PivotRelation, constrain: bool = True):
        """
        Initialize the relation and, unless eager loading, constrain it to the parent.

        Args:
            parent: Model owning the relation
            descriptor: Resolved relation descriptor
            constrain: False when the caller will add eager constraints instead
        """
        self.parent = parent
        self.descriptor = descriptor
        self.related: Type[Model] = descriptor.related_model()
        self.related_instance = self.related()
        self.query = AggregationQuery()

        if constrain:
            self.add_constraints()

    # Names

    def get_table(self) -> str:
        return self.descriptor.table

    def get_foreign_pivot_key_name(self) -> str:
        return self.descriptor.foreign_pivot_key

    def get_related_pivot_key_name(self) -> str:
        return self.descriptor.related_pivot_key

    def qualify_pivot_column(self, column: str) -> str:
        return f'{PIVOT_FIELD}.{column}'

    def get_pivot_fields(self) -> List[str]:
        """Pivot columns surfaced on related models, keys first."""
        fields = [self.get_related_pivot_key_name(), self.get_foreign_pivot_key_name()]
        fields.extend(column for column in self.descriptor.pivot_columns if column not in fields)
        return fields

    def _string_keys(self) -> bool:
        return self.descriptor.pivot_key_type == 'string'

    # Keys

    def to_pivot_key(self, value: Any) -> Any:
        """Converts a parent key to the representation stored in the pivot."""
        if value is paths.MISSING:
            return None
        if self._string_keys():
            return self.parent.identity_strategy.from_stored(value)
        return self.parent.identity_strategy.to_stored(value)

    def get_parent_key(self) -> Any:
        return self.to_pivot_key(self.parent.get_attribute_from_array(self.descriptor.parent_key))

    def get_keys(self, models: Iterable[Model]) -> List[Any]:
        """Distinct, non-null parent keys in pivot representation."""
        keys: List[Any] = []
        for model in models:
            key = self.to_pivot_key(model.get_attribute_from_array(self.descriptor.parent_key))
            if key is not None and key not in keys:
                keys.append(key)
        return keys

    # Constraints

    def add_constraints(self) -> None:
        self.set_where()

    def _add_lookup_stages(self) -> None:
        local_field = self.descriptor.related_key

        if self._string_keys():
            self.query.add_pipeline_stage('addFields', {
                TEMPORARY_ID_FIELD: {'$toString': f'${self.descriptor.related_key}'}
            })
            local_field = TEMPORARY_ID_FIELD

        self.query.add_pipeline_stage('lookup', {
            'from': self.get_table(),
            'localField': local_field,
            'foreignField': self.get_related_pivot_key_name(),
            'as': PIVOT_FIELD,
        })
        # Related documents without pivot rows survive until the match below
        self.query.add_pipeline_stage('unwind', {
            'path': f'${PIVOT_FIELD}',
            'preserveNullAndEmptyArrays': True,
        })

    def _discard_temporary_id(self) -> None:
        if self._string_keys():
            self.query.add_pipeline_stage('project', {TEMPORARY_ID_FIELD: 0})

    def set_where(self) -> "BelongsToMany":
        """Constrains the relation to the pivot rows of the parent."""
        foreign_pivot_key = self.qualify_pivot_column(self.get_foreign_pivot_key_name())

        parent_key = self.get_parent_key()
        # A null key would also match related documents that have no pivot row
        condition = {'$in': []} if parent_key is None else parent_key

        self._add_lookup_stages()
        self.query.add_pipeline_stage('match', {foreign_pivot_key: condition})
        self._discard_temporary_id()
        return self

    def add_eager_constraints(self, models: List[Model]) -> None:
        """Constrains the relation to the pivot rows of any of the given parents."""
        foreign_pivot_key = self.qualify_pivot_column(self.get_foreign_pivot_key_name())

        self._add_lookup_stages()
        self.query.add_pipeline_stage('match', {foreign_pivot_key: {'$in': self.get_keys(models)}})
        self._discard_temporary_id()

    # Execution

    def _select_query(self, executor: Any) -> AggregationQuery:
        query = self.query.clone(executor)
        query.add_pipeline_stage('addFields', {
            f'pivot_{column}': f'${self.qualify_pivot_column(column)}'
            for column in self.get_pivot_fields()
        })
        query.add_pipeline_stage('project', {PIVOT_FIELD: 0})
        return query

    def _select_columns(self, columns: Optional[Sequence[str]]) -> Sequence[str]:
        if not columns or tuple(columns) == ALL_COLUMNS:
            return ALL_COLUMNS
        selected = list(columns)
        # Pivot fields are needed to match results back to their parents
        selected.extend(f'pivot_{column}' for column in self.get_pivot_fields() if f'pivot_{column}' not in selected)
        return selected

    def get(self, columns: Optional[Sequence[str]] = ALL_COLUMNS) -> List[Model]:
        """Runs the relation pipeline and hydrates the related models."""
        query = self._select_query(self.related_instance.new_query())
        documents = query.get(self._select_columns(columns))
        logger.debug(
            "pivot_relation_fetched",
            table=self.get_table(),
            related=self.related.__name__,
            stages=len(query.stages),
            count=len(documents),
        )
        return self.related.hydrate(documents)

    async def get_async(self, columns: Optional[Sequence[str]] = ALL_COLUMNS) -> List[Model]:
        """Same as ``get`` but runs the pipeline through the asyncio executor."""
        query = self._select_query(self.related_instance.new_async_query())
        documents = await query.get_async(self._select_columns(columns))
        logger.debug(
            "pivot_relation_fetched",
            table=self.get_table(),
            related=self.related.__name__,
            stages=len(query.stages),
            count=len(documents),
        )
        return self.related.hydrate(documents)

    def get_results(self) -> List[Model]:
        return self.get()

    def get_eager(self) -> List[Model]:
        return self.get()

    def to_pipeline(self) -> List[Dict[str, Any]]:
        """The full pipeline ``get`` would run, for inspection."""
        return self._select_query(None).to_pipeline()

    # Eager loading

    def init_relation(self, models: List[Model], relation: str) -> List[Model]:
        for model in models:
            model.set_relation(relation, [])
        return models

    def build_dictionary(self, results: Iterable[Model]) -> Dict[Any, List[Model]]:
        """Groups related models by the parent key in their pivot field."""
        dictionary: Dict[Any, List[Model]] = OrderedDict()
        key_name = f'pivot_{self.get_foreign_pivot_key_name()}'
        for result in results:
            key = result.get_attribute_from_array(key_name)
            if key is paths.MISSING:
                continue
            dictionary.setdefault(key, []).append(result)
        return dictionary

    def match(self, models: List[Model], results: Iterable[Model], relation: str) -> List[Model]:
        dictionary = self.build_dictionary(results)

        for model in models:
            key = self.to_pivot_key(model.get_attribute_from_array(self.descriptor.parent_key))
            if key in dictionary:
                model.set_relation(relation, dictionary[key])

        return models

    def pivot_for(self, model: Model) -> Model:
        """Builds the pivot record carried by a related model's pivot_ fields."""
        attributes = {}
        for column in self.get_pivot_fields():
            value = model.get_attribute_from_array(f'pivot_{column}')
            if value is not paths.MISSING:
                attributes[column] = value
        return self.related_instance.new_pivot(self.parent, attributes, self.get_table(), True)
