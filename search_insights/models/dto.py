from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------- Insight configuration ----------

class Series(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    query: str                      # search query fragment, without repo filter
    stroke: Optional[str] = None    # line colour

class Step(BaseModel):
    """Time between two points on the X axis. Components add up."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    years: int = Field(0, ge=0)
    months: int = Field(0, ge=0)
    weeks: float = Field(0, ge=0)
    days: float = Field(0, ge=0)
    hours: float = Field(0, ge=0)
    minutes: float = Field(0, ge=0)
    seconds: float = Field(0, ge=0)

    def is_zero(self) -> bool:
        return not any((self.years, self.months, self.weeks, self.days,
                        self.hours, self.minutes, self.seconds))

    def _calendar(self) -> pd.DateOffset:
        # whole weeks and days are wall-clock units
        return pd.DateOffset(years=self.years, months=self.months,
                             weeks=int(self.weeks), days=int(self.days))

    def _fixed(self) -> pd.Timedelta:
        return pd.Timedelta(weeks=self.weeks - int(self.weeks), days=self.days - int(self.days),
                            hours=self.hours, minutes=self.minutes, seconds=self.seconds)

    def subtract_from(self, ts: pd.Timestamp) -> pd.Timestamp:
        # calendar units first, then fixed-length units
        return ts - self._calendar() - self._fixed()

    def add_to(self, ts: pd.Timestamp) -> pd.Timestamp:
        return ts + self._calendar() + self._fixed()

RepositoryScope = Union[Literal["current", "all"], List[str]]

class InsightConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str
    subtitle: Optional[str] = None
    description: Optional[str] = None   # markdown, shown above the chart
    series: List[Series] = Field(min_length=1)
    step: Step = Field(default_factory=lambda: Step(days=1))
    repositories: RepositoryScope = "current"

    @field_validator("step", mode="before")
    @classmethod
    def _default_step(cls, v):
        if v is None:
            return Step(days=1)
        return v

    @field_validator("step")
    @classmethod
    def _non_zero_step(cls, v: Step) -> Step:
        return Step(days=1) if v.is_zero() else v

    @field_validator("series")
    @classmethod
    def _unique_names(cls, v: List[Series]) -> List[Series]:
        names = [s.name for s in v]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"series names must be unique, duplicated: {', '.join(dupes)}")
        if "date" in names:
            raise ValueError('"date" is reserved for the X axis and cannot name a series')
        return v

# ---------- Pipeline records ----------

@dataclass(frozen=True)
class ViewerContext:
    repository: str
    path: Optional[str] = None

@dataclass(frozen=True)
class RepositoryTarget:
    name: str
    path: Optional[str] = None   # only set for the "current" scope

@dataclass(frozen=True)
class RepoCommit:
    repository: RepositoryTarget
    date_index: int
    date: pd.Timestamp
    commit: Optional[str]        # None: no commit at or before `date`

@dataclass
class SearchQueryTask:
    index: int                   # position of the `search{index}` sub-query
    series: str
    date_index: int
    repository: str
    query: str
    match_count: Optional[int] = None

@dataclass
class SeriesDataPoint:
    date: pd.Timestamp
    values: Dict[str, Optional[int]] = field(default_factory=dict)   # None = no data

# ---------- Chart payload ----------

class ChartSeries(BaseModel):
    dataKey: str
    name: str
    stroke: str
    linkURLs: List[str]

class XAxis(BaseModel):
    dataKey: Literal["date"] = "date"
    type: Literal["number"] = "number"
    scale: Literal["time"] = "time"

class LineChartContent(BaseModel):
    chart: Literal["line"] = "line"
    data: List[Dict[str, Optional[int]]]   # {"date": epoch ms, <series name>: count | null}
    series: List[ChartSeries]
    xAxis: XAxis = Field(default_factory=XAxis)

class MarkupContent(BaseModel):
    kind: Literal["markdown"] = "markdown"
    value: str

class ChartPayload(BaseModel):
    title: str
    subtitle: Optional[str] = None
    content: List[Union[MarkupContent, LineChartContent]]

class ViewSummary(BaseModel):
    id: str
    view_id: str          # searchInsights.<id>
    title: str
    placements: List[str]
