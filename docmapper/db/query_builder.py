"""
Aggregation pipeline accumulator.

Version: 1.0
"""

import copy
from typing import Any, Dict, List, Optional, Sequence, Union

from docmapper.db.query_executor import ALL_COLUMNS, AsyncQueryExecutor, QueryExecutor

Executor = Union[QueryExecutor, AsyncQueryExecutor]


class AggregationQuery:
    """Collects pipeline stages for one collection and runs them."""

    def __init__(self, executor: Optional[Executor] = None):
        self.executor = executor
        self.stages: List[Dict[str, Any]] = []

    def add_pipeline_stage(self, stage: str, spec: Any) -> "AggregationQuery":
        """
        Appends a stage, e.g. ``add_pipeline_stage('match', {'a': 1})``.

        The stage name may be given with or without its leading '$'.
        """
        name = stage if stage.startswith('$') else f'${stage}'
        self.stages.append({name: spec})
        return self

    def clone(self, executor: Optional[Executor] = None) -> "AggregationQuery":
        """Copies the stages, optionally onto another executor."""
        query = AggregationQuery(executor if executor is not None else self.executor)
        query.stages = self.to_pipeline()
        return query

    def to_pipeline(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.stages)

    def get(self, columns: Optional[Sequence[str]] = ALL_COLUMNS) -> List[Dict[str, Any]]:
        return self.executor.aggregate(self.to_pipeline(), columns)

    async def get_async(self, columns: Optional[Sequence[str]] = ALL_COLUMNS) -> List[Dict[str, Any]]:
        return await self.executor.aggregate(self.to_pipeline(), columns)
