"""Expands an insight's ``repositories`` setting into concrete repository names."""
from __future__ import annotations
import logging
from typing import List, Optional

from search_insights.core.config import settings
from search_insights.core.errors import ConfigurationError
from search_insights.models.dto import RepositoryScope, RepositoryTarget, ViewerContext
from search_insights.services.executor import GraphQLExecutor, REPOSITORY_SELECTION, execute_batch
from search_insights.services.query_builder import build_repository_query

log = logging.getLogger(__name__)

ALL_REPOSITORIES = """query Repositories($first: Int!) {
    repositories(first: $first) {
        nodes {
            name
        }
    }
}"""

async def resolve_repositories(execute: GraphQLExecutor, scope: RepositoryScope,
                               context: Optional[ViewerContext] = None) -> List[RepositoryTarget]:
    if scope == "current":
        if context is None:
            raise ConfigurationError('repositories is "current" but no repository is being viewed')
        return [RepositoryTarget(name=context.repository, path=context.path)]

    if scope == "all":
        data = await execute(ALL_REPOSITORIES, {"first": settings.ALL_REPOSITORIES_LIMIT})
        nodes = ((data.get("repositories") or {}).get("nodes")) or []
        names = [n["name"] for n in nodes if n and n.get("name")]
    else:
        queries = [build_repository_query(p, settings.REPOSITORY_PATTERN_LIMIT) for p in scope]
        results = await execute_batch(execute, "BulkSearchRepositories", queries, REPOSITORY_SELECTION)
        names = []
        for result in results:
            for r in ((result or {}).get("results") or {}).get("results") or []:
                if r and r.get("name"):
                    names.append(r["name"])

    names = list(dict.fromkeys(names))   # union, first seen order
    log.info("repositories=resolve scope=%s matched=%d", scope, len(names))
    if not names:
        log.warning("repositories=none scope=%s", scope)
    return [RepositoryTarget(name=n) for n in names]
