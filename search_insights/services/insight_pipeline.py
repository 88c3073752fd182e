from __future__ import annotations
import logging
from typing import Optional

import pandas as pd

from search_insights.models.dto import ChartPayload, InsightConfig, ViewerContext
from search_insights.services.aggregator import aggregate
from search_insights.services.batch_search import build_search_tasks, run_search_tasks
from search_insights.services.chart_builder import build_time_series
from search_insights.services.commit_resolver import resolve_commit_table
from search_insights.services.executor import GraphQLExecutor
from search_insights.services.repositories import resolve_repositories
from search_insights.services.timeline import date_axis

log = logging.getLogger(__name__)

async def compute_insight(execute: GraphQLExecutor, config: InsightConfig,
                          context: Optional[ViewerContext] = None,
                          now: Optional[pd.Timestamp] = None) -> ChartPayload:
    """One chart computation, derived from scratch on every call."""
    dates = date_axis(config.step, now)
    repositories = await resolve_repositories(execute, config.repositories, context)
    commits = await resolve_commit_table(execute, repositories, dates)

    tasks = build_search_tasks(config, commits)
    await run_search_tasks(execute, tasks)

    points = aggregate(dates, [s.name for s in config.series], tasks)
    log.info("insight=computed title=%s repos=%d tasks=%d", config.title, len(repositories), len(tasks))
    return build_time_series(config, points, [r.name for r in repositories])
