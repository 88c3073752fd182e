"""Finds, for every date on the axis, the latest commit at or before that date.

All dates of one repository go out as a single batched call; repositories
are resolved concurrently and merged by repository and date, never by
completion order. Among commits sharing a timestamp the search backend's own
ordering decides which one is returned.
"""
from __future__ import annotations
import asyncio
import logging
from typing import List, Optional, Sequence

import pandas as pd

from search_insights.core.config import settings
from search_insights.core.errors import ConsistencyError
from search_insights.models.dto import RepoCommit, RepositoryTarget
from search_insights.services.executor import COMMIT_SELECTION, GraphQLExecutor, execute_batch
from search_insights.services.query_builder import build_commit_query

log = logging.getLogger(__name__)

def _committer_date(commit: dict, query: str) -> pd.Timestamp:
    raw = (commit.get("committer") or {}).get("date")
    if not raw:
        log.error("commits=invalid reason=no_committer_date query=%s", query)
        raise ConsistencyError(f"Commit {commit.get('oid')} has no committer date, query: {query}")
    committed = pd.Timestamp(raw)
    if committed.tzinfo is None:
        committed = committed.tz_localize("UTC")
    return committed

def _first_commit(result: Optional[dict]) -> Optional[dict]:
    for r in ((result or {}).get("results") or {}).get("results") or []:
        if r and r.get("commit"):
            return r["commit"]
    return None

async def resolve_commits(execute: GraphQLExecutor, repository: RepositoryTarget,
                          dates: Sequence[pd.Timestamp], retries: Optional[int] = None) -> List[RepoCommit]:
    queries = [build_commit_query(repository.name, d) for d in dates]
    log.info("commits=resolve repo=%s dates=%d", repository.name, len(dates))
    results = await execute_batch(
        execute, "BulkSearchCommits", queries, COMMIT_SELECTION,
        retries=settings.COMMIT_RESOLUTION_RETRIES if retries is None else retries,
        pattern_type="literal",
    )

    resolved: List[RepoCommit] = []
    for i, (date, query, result) in enumerate(zip(dates, queries, results)):
        commit = _first_commit(result)
        if commit is None:
            # no history yet at this date
            resolved.append(RepoCommit(repository=repository, date_index=i, date=date, commit=None))
            continue
        committed = _committer_date(commit, query)
        if committed > date:
            log.error("commits=invalid reason=after_boundary oid=%s committed=%s query=%s",
                      commit.get("oid"), committed.isoformat(), query)
            raise ConsistencyError(
                f"Commit {commit.get('oid')} committed at {committed.isoformat()} "
                f"is after the boundary of query: {query}"
            )
        resolved.append(RepoCommit(repository=repository, date_index=i, date=date, commit=commit["oid"]))
    return resolved

async def resolve_commit_table(execute: GraphQLExecutor, repositories: Sequence[RepositoryTarget],
                               dates: Sequence[pd.Timestamp]) -> List[RepoCommit]:
    per_repo = await asyncio.gather(*(resolve_commits(execute, r, dates) for r in repositories))
    return [rc for commits in per_repo for rc in commits]
