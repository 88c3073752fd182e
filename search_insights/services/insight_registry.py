"""Insight settings and the view providers registered from them.

Settings are a flat YAML mapping. Keys starting with ``searchInsights.insight.``
hold one insight object each, or ``null`` / ``false`` when disabled:

    searchInsights.insight.todos:
      title: TODOs
      series:
        - name: TODO
          query: TODO
      step:
        weeks: 1
"""
from __future__ import annotations
import asyncio
import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

import pandas as pd
import yaml
from pydantic import ValidationError

from search_insights.core.errors import (
    ConfigurationError, StaleInsightError, UnknownInsightError,
)
from search_insights.models.dto import ChartPayload, InsightConfig, ViewerContext, ViewSummary
from search_insights.services.executor import GraphQLExecutor
from search_insights.services.insight_pipeline import compute_insight

log = logging.getLogger(__name__)

INSIGHT_PREFIX = "searchInsights.insight."
DISABLED = (None, False, "null", "false")

InsightEntries = Dict[str, Optional[Dict[str, Any]]]   # insight id -> raw config, None when disabled

def insight_entries(document: Dict[str, Any]) -> InsightEntries:
    return {
        key[len(INSIGHT_PREFIX):]: (None if value in DISABLED else value)
        for key, value in (document or {}).items()
        if isinstance(key, str) and key.startswith(INSIGHT_PREFIX)
    }

# ---------- settings source ----------

class InsightSettingsSource:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._entries: Optional[InsightEntries] = None
        self._mtime: Optional[float] = None
        self._listeners: List[Callable[[InsightEntries], None]] = []

    def get(self) -> InsightEntries:
        if self._entries is None:
            self.refresh()
        return copy.deepcopy(self._entries)

    def subscribe(self, listener: Callable[[InsightEntries], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        if self._entries is not None:
            listener(copy.deepcopy(self._entries))

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            log.info("settings=missing path=%s", self.path)
            return {}
        try:
            document = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Settings file {self.path} is not valid YAML: {e}") from e
        if not isinstance(document, dict):
            raise ConfigurationError(f"Settings file {self.path} must contain a mapping")
        return document

    def refresh(self, force: bool = False) -> bool:
        """Re-read the file; notify listeners only if the insight entries changed."""
        mtime = self.path.stat().st_mtime if self.path.exists() else None
        if not force and self._entries is not None and mtime == self._mtime:
            return False
        entries = insight_entries(self._load())
        self._mtime = mtime
        if entries == self._entries:
            return False
        self._entries = entries
        log.info("settings=changed insights=%d", len(entries))
        for listener in list(self._listeners):
            listener(copy.deepcopy(entries))
        return True

    async def watch(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.refresh()
            except (OSError, ConfigurationError) as e:
                # keep serving the last good settings until the file is fixed
                log.warning("settings=reload_failed path=%s err=%s", self.path, e)

# ---------- view providers ----------

def placements_for(config: InsightConfig) -> tuple:
    if config.repositories == "current":
        return ("directory",)
    return ("homepage", "insightsPage")

class ViewRegistration:
    """Handle for one registered view provider; cancelling it stops in-flight computations."""

    def __init__(self, insight_id: str, config: InsightConfig, execute: GraphQLExecutor):
        self.insight_id = insight_id
        self.view_id = f"searchInsights.{insight_id}"
        self.config = config
        self.placements = placements_for(config)
        self.cancelled = False
        self._execute = execute
        self._tasks: Set[asyncio.Task] = set()

    async def provide_view(self, context: Optional[ViewerContext] = None,
                           now: Optional[pd.Timestamp] = None) -> ChartPayload:
        if self.cancelled:
            raise StaleInsightError(f"Insight {self.insight_id} was unregistered")
        task = asyncio.ensure_future(compute_insight(self._execute, self.config, context, now))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        try:
            return await task
        except asyncio.CancelledError:
            if self.cancelled:
                raise StaleInsightError(
                    f"Insight {self.insight_id} changed while its chart was being computed"
                ) from None
            raise

    def cancel(self) -> None:
        self.cancelled = True
        for task in list(self._tasks):
            task.cancel()

    def summary(self) -> ViewSummary:
        return ViewSummary(id=self.insight_id, view_id=self.view_id, title=self.config.title,
                           placements=list(self.placements))

class ViewProviderRegistry:
    def __init__(self, execute: GraphQLExecutor):
        self._execute = execute
        self._registrations: Dict[str, ViewRegistration] = {}
        self._raw: Dict[str, Dict[str, Any]] = {}
        self._invalid: Dict[str, str] = {}

    def apply(self, entries: InsightEntries) -> None:
        """Settings listener: tear down changed/removed insights, then register new ones."""
        for insight_id in list(self._raw):
            if entries.get(insight_id) != self._raw[insight_id]:
                self._unregister(insight_id)

        for insight_id, raw in entries.items():
            if raw is None or insight_id in self._raw:
                continue
            self._raw[insight_id] = raw
            try:
                config = InsightConfig.model_validate(raw)
            except ValidationError as e:
                log.error("insight=invalid id=%s err=%s", insight_id, e)
                self._invalid[insight_id] = str(e)
                continue
            registration = ViewRegistration(insight_id, config, self._execute)
            log.info("Registering search insights provider %s", registration.view_id)
            self._registrations[insight_id] = registration

    def _unregister(self, insight_id: str) -> None:
        registration = self._registrations.pop(insight_id, None)
        if registration is not None:
            log.info("Unregistering search insights provider %s", registration.view_id)
            registration.cancel()
        self._raw.pop(insight_id, None)
        self._invalid.pop(insight_id, None)

    def get(self, insight_id: str) -> ViewRegistration:
        if insight_id in self._invalid:
            raise ConfigurationError(f"Insight {insight_id} is misconfigured: {self._invalid[insight_id]}")
        registration = self._registrations.get(insight_id)
        if registration is None:
            raise UnknownInsightError(f"No insight registered as {insight_id}")
        return registration

    def summaries(self) -> List[ViewSummary]:
        return [r.summary() for r in self._registrations.values()]

    def close(self) -> None:
        for insight_id in list(self._raw):
            self._unregister(insight_id)
