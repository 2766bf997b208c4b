"""
Query executors bound to a single collection.

The executor is the only component that talks to MongoDB. Models and
relations hand it pipeline stages and update commands keyed by document
identity; it returns raw documents or write counts. Store errors are logged
and re-raised unchanged.

Version: 1.0
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorCollection  # motor v3.3+
from pymongo.collection import Collection  # pymongo v4.3+
from pymongo.errors import PyMongoError

from docmapper.core.logging import log_error

# Configure module logger
logger = logging.getLogger(__name__)

ALL_COLUMNS = ('*',)


def projection_stage(columns: Optional[Sequence[str]]) -> Optional[Dict[str, Any]]:
    """Builds a final $project stage for a column list, or None for all columns."""
    if not columns or tuple(columns) == ALL_COLUMNS:
        return None
    return {'$project': {column: 1 for column in columns}}


def with_projection(stages: Iterable[Dict[str, Any]], columns: Optional[Sequence[str]]) -> List[Dict[str, Any]]:
    pipeline = list(stages)
    projection = projection_stage(columns)
    if projection is not None:
        pipeline.append(projection)
    return pipeline


def push_update(column: str, values: List[Any], unique: bool = False) -> Dict[str, Any]:
    operator = '$addToSet' if unique else '$push'
    return {operator: {column: {'$each': values}}}


def pull_update(column: str, values: List[Any]) -> Dict[str, Any]:
    return {'$pullAll': {column: values}}


def unset_update(columns: Iterable[str]) -> Dict[str, Any]:
    return {'$unset': {column: '' for column in columns}}


class QueryExecutor:
    """Synchronous executor over a pymongo collection."""

    def __init__(self, collection: Collection, key_name: str = '_id'):
        self._collection = collection
        self.key_name = key_name

    @property
    def collection_name(self) -> str:
        return self._collection.name

    def aggregate(self, stages: Iterable[Dict[str, Any]], columns: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """
        Runs an aggregation pipeline and returns the resulting documents.

        Args:
            stages: Pipeline stages in MongoDB form, e.g. {'$match': {...}}
            columns: Optional list of fields to keep in the output

        Returns:
            List of raw documents
        """
        pipeline = with_projection(stages, columns)
        logger.debug(f"Aggregating {self.collection_name} with {len(pipeline)} stages")
        try:
            return list(self._collection.aggregate(pipeline))
        except PyMongoError as e:
            log_error(logger, e, f"Aggregation on {self.collection_name} failed", {"stages": len(pipeline)})
            raise

    def find_one(self, key: Any) -> Optional[Dict[str, Any]]:
        return self._collection.find_one({self.key_name: key})

    def insert(self, document: Dict[str, Any]) -> Any:
        """Inserts a document and returns its identity."""
        try:
            result = self._collection.insert_one(document)
        except PyMongoError as e:
            log_error(logger, e, f"Insert into {self.collection_name} failed")
            raise
        return result.inserted_id

    def update(self, key: Any, update: Dict[str, Any]) -> int:
        """Applies an update document to the document with the given identity."""
        try:
            result = self._collection.update_one({self.key_name: key}, update)
        except PyMongoError as e:
            log_error(logger, e, f"Update of {self.collection_name} failed", {"key": key, "operators": sorted(update)})
            raise
        return result.modified_count

    def push(self, key: Any, column: str, values: List[Any], unique: bool = False) -> int:
        return self.update(key, push_update(column, values, unique))

    def pull(self, key: Any, column: str, values: List[Any]) -> int:
        return self.update(key, pull_update(column, values))

    def unset(self, key: Any, columns: Iterable[str]) -> int:
        return self.update(key, unset_update(columns))


class AsyncQueryExecutor:
    """Asyncio executor over a motor collection, same contract as QueryExecutor."""

    def __init__(self, collection: AsyncIOMotorCollection, key_name: str = '_id'):
        self._collection = collection
        self.key_name = key_name

    @property
    def collection_name(self) -> str:
        return self._collection.name

    async def aggregate(self, stages: Iterable[Dict[str, Any]], columns: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        pipeline = with_projection(stages, columns)
        logger.debug(f"Aggregating {self.collection_name} with {len(pipeline)} stages")
        try:
            cursor = self._collection.aggregate(pipeline)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            log_error(logger, e, f"Aggregation on {self.collection_name} failed", {"stages": len(pipeline)})
            raise

    async def find_one(self, key: Any) -> Optional[Dict[str, Any]]:
        return await self._collection.find_one({self.key_name: key})

    async def insert(self, document: Dict[str, Any]) -> Any:
        try:
            result = await self._collection.insert_one(document)
        except PyMongoError as e:
            log_error(logger, e, f"Insert into {self.collection_name} failed")
            raise
        return result.inserted_id

    async def update(self, key: Any, update: Dict[str, Any]) -> int:
        try:
            result = await self._collection.update_one({self.key_name: key}, update)
        except PyMongoError as e:
            log_error(logger, e, f"Update of {self.collection_name} failed", {"key": key, "operators": sorted(update)})
            raise
        return result.modified_count

    async def push(self, key: Any, column: str, values: List[Any], unique: bool = False) -> int:
        return await self.update(key, push_update(column, values, unique))

    async def pull(self, key: Any, column: str, values: List[Any]) -> int:
        return await self.update(key, pull_update(column, values))

    async def unset(self, key: Any, columns: Iterable[str]) -> int:
        return await self.update(key, unset_update(columns))
