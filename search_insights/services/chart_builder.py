from __future__ import annotations
from typing import List, Sequence
from urllib.parse import urlencode

import pandas as pd

from search_insights.core.config import settings
from search_insights.models.dto import (
    ChartPayload, ChartSeries, InsightConfig, LineChartContent, MarkupContent, SeriesDataPoint,
)
from search_insights.services.query_builder import build_diff_query

DEFAULT_STROKE = "var(--warning)"

def search_url(query: str) -> str:
    return f"{settings.SOURCEGRAPH_URL.rstrip('/')}/search?{urlencode({'q': query})}"

def diff_link_urls(config: InsightConfig, query: str, dates: Sequence[pd.Timestamp],
                   repositories: Sequence[str]) -> List[str]:
    # diff search explaining what changed between the previous point and this one
    return [
        search_url(build_diff_query(repositories, config.step.subtract_from(d), d, query))
        for d in dates
    ]

def _epoch_ms(ts: pd.Timestamp) -> int:
    return int(ts.value // 1_000_000)

def build_time_series(config: InsightConfig, points: Sequence[SeriesDataPoint],
                      repositories: Sequence[str]) -> ChartPayload:
    dates = [p.date for p in points]
    data = [{"date": _epoch_ms(p.date), **p.values} for p in points]
    series = [
        ChartSeries(
            dataKey=s.name,
            name=s.name,
            stroke=s.stroke or DEFAULT_STROKE,
            linkURLs=diff_link_urls(config, s.query, dates, repositories),
        )
        for s in config.series
    ]
    content = []
    if config.description:
        content.append(MarkupContent(value=config.description))
    content.append(LineChartContent(data=data, series=series))
    return ChartPayload(title=config.title, subtitle=config.subtitle, content=content)
