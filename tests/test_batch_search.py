import pandas as pd
import pytest

from search_insights.core.errors import IncompleteResultError, TransientSearchError
from search_insights.models.dto import InsightConfig, RepoCommit, RepositoryTarget
from search_insights.services.batch_search import build_search_tasks, run_search_tasks
from tests.fakes import FakeGraphQL, count_result

CONFIG = InsightConfig(
    title="t",
    series=[{"name": "A", "query": "foo"}, {"name": "B", "query": "bar count:10"}],
)


def table(dates, commits, repo="example.org/r", path=None):
    target = RepositoryTarget(repo, path)
    return [RepoCommit(target, i, d, c) for i, (d, c) in enumerate(zip(dates, commits))]


def test_tasks_skip_absent_commits(weekly_dates):
    commits = table(weekly_dates, [None, None, "c2", "c3", "c4", "c5", "c6"])
    tasks = build_search_tasks(CONFIG, commits)

    assert len(tasks) == 2 * 5
    assert [t.index for t in tasks] == list(range(10))
    assert {t.date_index for t in tasks} == {2, 3, 4, 5, 6}
    assert tasks[0].series == "A" and tasks[-1].series == "B"
    assert tasks[0].query == r"repo:^example\.org/r$@c2 foo count:99999"
    assert tasks[5].query == r"repo:^example\.org/r$@c2 bar count:10"


def test_tasks_carry_path_filter(weekly_dates):
    commits = table(weekly_dates, ["c"] * 7, path="cmd/server")
    tasks = build_search_tasks(CONFIG, commits)
    assert all(" file:^cmd/server/ " in t.query for t in tasks)


async def test_counts_are_mapped_back_to_tasks(weekly_dates):
    fake = FakeGraphQL(counts=lambda repo, commit, q: count_result(int(commit[1:]) * (2 if " bar " in q else 1)))
    tasks = build_search_tasks(CONFIG, table(weekly_dates, [f"c{i}" for i in range(7)]))
    await run_search_tasks(fake.execute, tasks)

    assert len(fake.calls) == 1
    assert [t.match_count for t in tasks if t.series == "A"] == [0, 1, 2, 3, 4, 5, 6]
    assert [t.match_count for t in tasks if t.series == "B"] == [0, 2, 4, 6, 8, 10, 12]


async def test_missing_result_fails_the_computation(weekly_dates):
    fake = FakeGraphQL(counts=lambda repo, commit, q: None)
    tasks = build_search_tasks(CONFIG, table(weekly_dates, ["c"] * 7))
    with pytest.raises(IncompleteResultError, match="No result for"):
        await run_search_tasks(fake.execute, tasks)


async def test_count_search_is_retried_three_times(weekly_dates):
    calls = []

    async def execute(document, variables):
        calls.append(document)
        raise TransientSearchError("timeout")

    tasks = build_search_tasks(CONFIG, table(weekly_dates, ["c"] * 7))
    with pytest.raises(TransientSearchError):
        await run_search_tasks(execute, tasks)
    assert len(calls) == 4
