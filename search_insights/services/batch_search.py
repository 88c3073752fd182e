from __future__ import annotations
import logging
from typing import List, Optional, Sequence

from search_insights.core.config import settings
from search_insights.core.errors import ConsistencyError, IncompleteResultError
from search_insights.models.dto import InsightConfig, RepoCommit, SearchQueryTask
from search_insights.services.executor import COUNT_SELECTION, GraphQLExecutor, execute_batch
from search_insights.services.query_builder import build_search_query

log = logging.getLogger(__name__)

def build_search_tasks(config: InsightConfig, commits: Sequence[RepoCommit]) -> List[SearchQueryTask]:
    """series x present commits; dates without a commit get no task."""
    tasks: List[SearchQueryTask] = []
    for series in config.series:
        for rc in commits:
            if rc.commit is None:
                continue
            tasks.append(SearchQueryTask(
                index=len(tasks),
                series=series.name,
                date_index=rc.date_index,
                repository=rc.repository.name,
                query=build_search_query(rc.repository.name, series.query, rc.commit, rc.repository.path),
            ))
    return tasks

async def run_search_tasks(execute: GraphQLExecutor, tasks: List[SearchQueryTask],
                           retries: Optional[int] = None) -> List[SearchQueryTask]:
    """Fill in ``match_count`` on every task from one batched call."""
    results = await execute_batch(
        execute, "BulkSearch", [t.query for t in tasks], COUNT_SELECTION,
        retries=settings.SEARCH_RETRIES if retries is None else retries,
    )
    for position, (task, result) in enumerate(zip(tasks, results)):
        if task.index != position:
            raise ConsistencyError(f"Task index {task.index} does not match position {position}: {task.query}")
        count = ((result or {}).get("results") or {}).get("matchCount")
        if count is None:
            raise IncompleteResultError(f"No result for {task.query}")
        task.match_count = int(count)
    log.info("search=done tasks=%d", len(tasks))
    return tasks
