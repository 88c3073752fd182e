import asyncio

import pytest
import yaml

from search_insights.core.errors import ConfigurationError, StaleInsightError, UnknownInsightError
from search_insights.models.dto import ViewerContext
from search_insights.services.insight_registry import (
    InsightSettingsSource, ViewProviderRegistry, insight_entries,
)
from tests.fakes import NOW, FakeGraphQL, commits_by_index, count_result

TODOS = {"title": "TODOs", "series": [{"name": "TODO", "query": "TODO"}], "step": {"weeks": 1}}
ALL = {"title": "All", "series": [{"name": "x", "query": "x"}], "repositories": "all"}


def write(path, document):
    path.write_text(yaml.safe_dump(document), encoding="utf-8")


def test_insight_entries_filters_prefix_and_disabled():
    entries = insight_entries({
        "searchInsights.insight.todos": TODOS,
        "searchInsights.insight.off": False,
        "searchInsights.insight.gone": None,
        "searchInsights.insight.str": "false",
        "editor.fontSize": 12,
    })
    assert entries == {"todos": TODOS, "off": None, "gone": None, "str": None}


def test_settings_source_notifies_only_on_insight_changes(tmp_path):
    path = tmp_path / "settings.yaml"
    write(path, {"searchInsights.insight.todos": TODOS, "other": 1})
    source = InsightSettingsSource(path)
    seen = []
    source.subscribe(seen.append)

    assert source.refresh() is True
    assert seen == [{"todos": TODOS}]

    write(path, {"searchInsights.insight.todos": TODOS, "other": 2})
    assert source.refresh(force=True) is False
    assert len(seen) == 1

    write(path, {"searchInsights.insight.todos": {**TODOS, "title": "New"}})
    assert source.refresh(force=True) is True
    assert seen[-1]["todos"]["title"] == "New"


def test_settings_source_missing_file_is_empty(tmp_path):
    source = InsightSettingsSource(tmp_path / "nope.yaml")
    assert source.get() == {}


def test_settings_source_rejects_non_mapping(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        InsightSettingsSource(path).refresh()


def test_late_subscribers_receive_current_settings(tmp_path):
    path = tmp_path / "settings.yaml"
    write(path, {"searchInsights.insight.todos": TODOS})
    source = InsightSettingsSource(path)
    source.refresh()
    seen = []
    unsubscribe = source.subscribe(seen.append)
    assert seen == [{"todos": TODOS}]
    unsubscribe()
    write(path, {})
    source.refresh(force=True)
    assert len(seen) == 1


def test_registry_registers_enabled_insights_with_placements():
    registry = ViewProviderRegistry(FakeGraphQL().execute)
    registry.apply({"todos": TODOS, "all": ALL, "off": None})

    summaries = {s.id: s.placements for s in registry.summaries()}
    assert summaries == {"todos": ["directory"], "all": ["homepage", "insightsPage"]}
    assert registry.get("todos").view_id == "searchInsights.todos"
    with pytest.raises(UnknownInsightError):
        registry.get("off")


def test_registry_keeps_unchanged_and_replaces_changed_insights():
    registry = ViewProviderRegistry(FakeGraphQL().execute)
    registry.apply({"todos": TODOS, "all": ALL})
    todos, all_ = registry.get("todos"), registry.get("all")

    registry.apply({"todos": TODOS, "all": {**ALL, "title": "Everything"}})

    assert registry.get("todos") is todos
    assert registry.get("all") is not all_
    assert all_.cancelled
    assert registry.get("all").config.title == "Everything"


def test_registry_unregisters_disabled_and_removed_insights():
    registry = ViewProviderRegistry(FakeGraphQL().execute)
    registry.apply({"todos": TODOS, "all": ALL})
    todos = registry.get("todos")

    registry.apply({"todos": None})

    assert todos.cancelled
    assert registry.summaries() == []


def test_invalid_insight_is_reported_on_request():
    registry = ViewProviderRegistry(FakeGraphQL().execute)
    registry.apply({"bad": {"title": "no series"}, "todos": TODOS})
    with pytest.raises(ConfigurationError, match="misconfigured"):
        registry.get("bad")
    assert [s.id for s in registry.summaries()] == ["todos"]

    registry.apply({"bad": TODOS, "todos": TODOS})
    assert registry.get("bad").config.title == "TODOs"


async def test_registration_provides_chart(weekly_dates):
    fake = FakeGraphQL(commits=commits_by_index(weekly_dates), counts=lambda repo, commit, q: count_result(2))
    registry = ViewProviderRegistry(fake.execute)
    registry.apply({"todos": TODOS})

    payload = await registry.get("todos").provide_view(ViewerContext("example.org/r"), now=NOW)
    assert payload.title == "TODOs"
    assert [row["TODO"] for row in payload.content[-1].data] == [2] * 7


async def test_changing_settings_cancels_in_flight_computation():
    started = asyncio.Event()

    async def execute(document, variables):
        started.set()
        await asyncio.Event().wait()   # never answers

    registry = ViewProviderRegistry(execute)
    registry.apply({"todos": TODOS})
    registration = registry.get("todos")

    pending = asyncio.ensure_future(registration.provide_view(ViewerContext("example.org/r"), now=NOW))
    await started.wait()
    registry.apply({"todos": {**TODOS, "title": "Changed"}})

    with pytest.raises(StaleInsightError):
        await pending
    with pytest.raises(StaleInsightError):
        await registration.provide_view(ViewerContext("example.org/r"), now=NOW)


def test_settings_source_rejects_malformed_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("a: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="not valid YAML"):
        InsightSettingsSource(path).refresh()
