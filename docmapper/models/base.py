"""
Base model class for MongoDB documents.

A model wraps one document (``attributes``) and the snapshot of its last
persisted state (``original``). Reads and writes accept dot-notation keys,
identity and date values are coerced through pluggable strategies, and
persistence only sends the attributes the dirty tracker reports as changed.

Version: 1.0
"""

import copy
import logging
import re
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from bson import ObjectId
from pymongo.database import Database

from docmapper.config.settings import get_settings
from docmapper.core.exceptions import ModelNotFoundException, RelationNotFoundException
from docmapper.db import mongodb
from docmapper.db.query_executor import AsyncQueryExecutor, QueryExecutor
from docmapper.models.array_ops import pull_attribute_values, push_attribute_values, wrap
from docmapper.models.casts import DATE_CAST_TYPES, cast_type, cast_value
from docmapper.models.tracking import DirtyTracker
from docmapper.utils import date_utils, paths
from docmapper.utils.coercion import DateCoercionStrategy, IdentityCoercionStrategy

# Configure module logger
logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound="Model")
Mutator = Callable[["Model", Any], Any]

_registry: Dict[str, Type["Model"]] = {}


def snake_case(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


def pluralize(word: str) -> str:
    if re.search(r'[^aeiou]y$', word):
        return word[:-1] + 'ies'
    if re.search(r'(s|x|z|ch|sh)$', word):
        return word + 'es'
    return word + 's'


def resolve_model(name: str) -> Type["Model"]:
    """Looks up a model class registered under its class name."""
    try:
        return _registry[name]
    except KeyError:
        raise ModelNotFoundException(name) from None


class Model:
    """Active-record style wrapper around a MongoDB document."""

    # Collection name; derived from the class name when not set
    collection: Optional[str] = None
    primary_key: str = '_id'

    casts: ClassVar[Dict[str, str]] = {}
    dates: ClassVar[Sequence[str]] = ()
    mutators: ClassVar[Dict[str, Mutator]] = {}
    relationships: ClassVar[Dict[str, Any]] = {}

    timestamps: bool = True
    date_format: Optional[str] = None

    CREATED_AT: ClassVar[str] = 'created_at'
    UPDATED_AT: ClassVar[str] = 'updated_at'

    identity_strategy: ClassVar[IdentityCoercionStrategy] = IdentityCoercionStrategy()
    date_strategy: ClassVar[DateCoercionStrategy] = DateCoercionStrategy()

    _database: ClassVar[Optional[Database]] = None
    _async_database: ClassVar[Optional[Any]] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        _registry[cls.__name__] = cls

    def __init__(self, attributes: Optional[Dict[str, Any]] = None):
        self.attributes: Dict[str, Any] = {}
        self.original: Dict[str, Any] = {}
        self.exists = False
        self._relations: Dict[str, Any] = {}
        self.tracker = DirtyTracker(self)
        self.fill(attributes or {})

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.get_attribute('id')!r}>"

    # Connection

    @classmethod
    def set_database(cls, database: Optional[Database]) -> None:
        cls._database = database

    @classmethod
    def set_async_database(cls, database: Any) -> None:
        cls._async_database = database

    @classmethod
    def get_database(cls) -> Database:
        if cls._database is not None:
            return cls._database
        return mongodb.get_database()

    @classmethod
    def get_async_database(cls) -> Any:
        if cls._async_database is not None:
            return cls._async_database
        return mongodb.get_motor_database()

    def get_collection_name(self) -> str:
        return self.collection or pluralize(snake_case(type(self).__name__))

    def new_query(self) -> QueryExecutor:
        collection = self.get_database()[self.get_collection_name()]
        return QueryExecutor(collection, self.primary_key)

    def new_async_query(self) -> AsyncQueryExecutor:
        collection = self.get_async_database()[self.get_collection_name()]
        return AsyncQueryExecutor(collection, self.primary_key)

    # Keys

    def get_key(self) -> Any:
        return self.attributes.get(self.primary_key)

    def get_key_for_save_query(self) -> Any:
        return self.original.get(self.primary_key, self.get_key())

    def get_foreign_key(self) -> str:
        """Name other documents use to reference this one, e.g. ``user_id``."""
        return f"{snake_case(type(self).__name__)}_{self.primary_key.lstrip('_')}"

    def get_id_attribute(self, value: Any = None) -> Any:
        # Fall back to the Mongo '_id' value so 'id' works like a SQL key
        if not value and '_id' in self.attributes:
            value = self.attributes['_id']
        return self.identity_strategy.from_stored(value)

    # Dates and casts

    def get_dates(self) -> List[str]:
        dates = list(self.dates)
        if self.timestamps:
            dates.extend([self.CREATED_AT, self.UPDATED_AT])
        return dates

    def get_cast(self, key: str) -> Optional[str]:
        return self.casts.get(key)

    def is_date_attribute(self, key: str) -> bool:
        if key in self.get_dates():
            return True
        cast = self.get_cast(key)
        return cast is not None and cast_type(cast) in DATE_CAST_TYPES

    def get_date_format(self) -> str:
        return self.date_format or get_settings().DATE_FORMAT

    def from_datetime(self, value: Any) -> Any:
        return self.date_strategy.to_stored(value)

    def as_datetime(self, value: Any) -> datetime:
        return self.date_strategy.from_stored(value)

    def fresh_timestamp(self) -> Any:
        return self.date_strategy.fresh_timestamp()

    def serialize_date(self, value: datetime) -> str:
        return date_utils.format_datetime(value, self.get_date_format())

    # Attribute access

    def fill(self, attributes: Dict[str, Any]) -> "Model":
        for key, value in attributes.items():
            self.set_attribute(key, value)
        return self

    def set_raw_attributes(self, attributes: Dict[str, Any], sync: bool = False) -> "Model":
        self.attributes = dict(attributes)
        if sync:
            self.sync_original()
        return self

    def get_attribute_from_array(self, key: str) -> Any:
        return paths.get(self.attributes, key)

    def get_attribute(self, key: str) -> Any:
        if not key:
            return None

        # Dot notation support.
        if paths.is_dotted(key) and paths.has_path(self.attributes, key):
            return self.get_attribute_value(key)

        if key in self._relations:
            return self._relations[key]

        if key in self.relationships:
            return self.get_relation_value(key)

        return self.get_attribute_value(key)

    def get_attribute_value(self, key: str) -> Any:
        value = self.get_attribute_from_array(key)

        if key == 'id':
            return self.get_id_attribute(None if value is paths.MISSING else value)

        if value is paths.MISSING or value is None:
            return None

        cast = self.get_cast(key)
        if cast is not None:
            kind = cast_type(cast)
            if kind == 'date':
                return date_utils.start_of_day(self.as_datetime(value))
            if kind in DATE_CAST_TYPES:
                return self.as_datetime(value)
            return cast_value(cast, value)

        if key in self.get_dates():
            return self.as_datetime(value)

        return value

    def set_attribute(self, key: str, value: Any) -> "Model":
        if key == '_id' and isinstance(value, str):
            value = self.identity_strategy.to_stored(value)
        elif paths.is_dotted(key):
            if key in self.get_dates() and value:
                value = self.from_datetime(value)
            # Nested writes skip mutators and the rest of the flat-key path
            paths.set(self.attributes, key, value)
            return self

        mutator = self.mutators.get(key)
        if mutator is not None:
            value = mutator(self, value)

        if value and self.is_date_attribute(key):
            value = self.from_datetime(value)

        self.attributes[key] = value
        return self

    def forget_attribute(self, key: str) -> None:
        paths.forget(self.attributes, key)
        self._relations.pop(key, None)

    def __getitem__(self, key: str) -> Any:
        return self.get_attribute(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set_attribute(key, value)

    def __delitem__(self, key: str) -> None:
        self.forget_attribute(key)

    def __contains__(self, key: str) -> bool:
        # Membership never loads a relation
        return paths.has(self.attributes, key) or key in self._relations

    # Dirty tracking

    def is_original_equivalent(self, key: str) -> bool:
        return self.tracker.is_original_equivalent(key)

    def get_dirty(self) -> Dict[str, Any]:
        return self.tracker.get_dirty()

    def is_dirty(self, *keys: str) -> bool:
        if not keys:
            return bool(self.get_dirty())
        return any(
            paths.has(self.attributes, key) and not self.is_original_equivalent(key)
            for key in keys
        )

    def is_clean(self, *keys: str) -> bool:
        return not self.is_dirty(*keys)

    def sync_original(self) -> "Model":
        self.tracker.sync_original()
        return self

    def sync_original_attribute(self, key: str) -> "Model":
        self.tracker.sync_original_attribute(key)
        return self

    def get_original(self, key: Optional[str] = None) -> Any:
        if key is None:
            return copy.deepcopy(self.original)
        value = paths.get(self.original, key)
        return None if value is paths.MISSING else value

    # Persistence

    def update_timestamps(self) -> None:
        time = self.fresh_timestamp()

        if self.UPDATED_AT and not self.is_dirty(self.UPDATED_AT):
            self.set_attribute(self.UPDATED_AT, time)

        if not self.exists and self.CREATED_AT and not self.is_dirty(self.CREATED_AT):
            self.set_attribute(self.CREATED_AT, time)

    def save(self) -> bool:
        """
        Inserts the document, or sends the changed attributes with $set.

        Returns:
            bool: True once the document is persisted
        """
        query = self.new_query()

        if self.exists:
            if not self.is_dirty():
                return True

            if self.timestamps:
                self.update_timestamps()

            dirty = self.get_dirty()
            dirty.pop(self.primary_key, None)
            if dirty:
                query.update(self.get_key_for_save_query(), {'$set': dirty})
                logger.debug(f"Updated {self.get_collection_name()} {self.get_key()} fields={sorted(dirty)}")
        else:
            if self.timestamps:
                self.update_timestamps()

            key = query.insert(dict(self.attributes))
            self.attributes.setdefault(self.primary_key, key)
            self.exists = True
            logger.debug(f"Inserted {self.get_collection_name()} {key}")

        self.sync_original()
        return True

    def push(self, column: Optional[str] = None, values: Any = None, unique: bool = False) -> Any:
        """
        Appends values to an array attribute, in memory and in the store.

        Without a column the model itself is saved.
        """
        if column is None:
            return self.save()

        # Do batch push by default.
        values = wrap(values)
        key = self.get_key_for_save_query()

        push_attribute_values(self, column, values, unique)

        return self.new_query().push(key, column, values, unique)

    def pull(self, column: str, values: Any) -> Any:
        """Removes values from an array attribute, in memory and in the store."""
        # Do batch pull by default.
        values = wrap(values)
        key = self.get_key_for_save_query()

        pull_attribute_values(self, column, values)

        return self.new_query().pull(key, column, values)

    def remove_fields(self, columns: Any) -> Any:
        """Removes one or more fields from this document only."""
        columns = wrap(columns)

        for column in columns:
            self.forget_attribute(column)

        return self.new_query().unset(self.get_key_for_save_query(), columns)

    # Hydration

    @classmethod
    def new_from_document(cls: Type[ModelT], document: Dict[str, Any]) -> ModelT:
        """Builds an existing model from a raw document returned by the store."""
        instance = cls()
        instance.set_raw_attributes(document, sync=True)
        instance.exists = True
        return instance

    @classmethod
    def hydrate(cls: Type[ModelT], documents: Iterable[Dict[str, Any]]) -> List[ModelT]:
        return [cls.new_from_document(document) for document in documents]

    @classmethod
    def find(cls: Type[ModelT], key: Any) -> Optional[ModelT]:
        instance = cls()
        if isinstance(key, str):
            key = instance.identity_strategy.to_stored(key)
        document = instance.new_query().find_one(key)
        if document is None:
            return None
        return cls.new_from_document(document)

    def new_pivot(self, parent: "Model", attributes: Dict[str, Any], table: str, exists: bool) -> "Model":
        from docmapper.relations.pivot import Pivot

        return Pivot.from_attributes(parent, attributes, table, exists)

    # Relations

    def relation(self, name: str, constrain: bool = True) -> Any:
        """Returns the relation object declared under ``name``."""
        descriptor = self.relationships.get(name)
        if descriptor is None:
            raise RelationNotFoundException(type(self).__name__, name)
        return descriptor.bind(self, constrain=constrain)

    def get_relation_value(self, key: str) -> Any:
        if self.relation_loaded(key):
            return self._relations[key]

        results = self.relation(key).get_results()
        self.set_relation(key, results)
        return results

    def relation_loaded(self, key: str) -> bool:
        return key in self._relations

    def get_relation(self, key: str) -> Any:
        return self._relations.get(key)

    def set_relation(self, key: str, value: Any) -> "Model":
        self._relations[key] = value
        return self

    def load(self, *names: str) -> "Model":
        type(self).eager_load([self], *names)
        return self

    @classmethod
    def eager_load(cls, models: List["Model"], *names: str) -> List["Model"]:
        """Loads the named relations for a batch of models with one query each."""
        if not models:
            return models

        for name in names:
            relation = cls().relation(name, constrain=False)
            relation.add_eager_constraints(models)
            relation.init_relation(models, name)
            relation.match(models, relation.get_eager(), name)

        return models

    # Serialization

    def attributes_to_dict(self) -> Dict[str, Any]:
        attributes = copy.deepcopy(self.attributes)

        for key in self.get_dates():
            if not paths.is_dotted(key) and attributes.get(key) is not None:
                attributes[key] = self.serialize_date(self.as_datetime(attributes[key]))

        for key, cast in self.casts.items():
            if paths.is_dotted(key) or attributes.get(key) is None:
                continue
            value = self.get_attribute_value(key)
            attributes[key] = self.serialize_date(value) if isinstance(value, datetime) else value

        # Mongo specific objects become their plain representation
        for key, value in attributes.items():
            if isinstance(value, (ObjectId, bytes)):
                attributes[key] = self.identity_strategy.from_stored(value)

        # Convert dot-notation dates.
        for key in self.get_dates():
            if paths.is_dotted(key) and paths.has_path(attributes, key):
                value = paths.get_path(attributes, key)
                paths.set(attributes, key, self.serialize_date(self.as_datetime(value)))

        return attributes

    def relations_to_dict(self) -> Dict[str, Any]:
        result = {}
        for key, value in self._relations.items():
            if isinstance(value, list):
                result[key] = [item.to_dict() for item in value]
            elif isinstance(value, Model):
                result[key] = value.to_dict()
            else:
                result[key] = value
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Converts the model to a plain dictionary with loaded relations."""
        return {**self.attributes_to_dict(), **self.relations_to_dict()}
