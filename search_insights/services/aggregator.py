from __future__ import annotations
from typing import List, Sequence

import numpy as np
import pandas as pd

from search_insights.models.dto import SearchQueryTask, SeriesDataPoint

def aggregate(dates: Sequence[pd.Timestamp], series_names: Sequence[str],
              tasks: Sequence[SearchQueryTask]) -> List[SeriesDataPoint]:
    """
    Per date and series, sum match counts across repositories.

    A slot stays None ("no data") unless at least one repository reported a
    count for it; a reported zero makes it 0.
    """
    records = [(t.date_index, t.series, t.match_count) for t in tasks if t.match_count is not None]
    df = pd.DataFrame.from_records(records, columns=["date_index", "series", "count"])
    axis = range(len(dates))

    if df.empty:
        table = pd.DataFrame(np.nan, index=axis, columns=list(series_names))
    else:
        table = (
            df.groupby(["date_index", "series"])["count"].sum()
            .unstack("series")
            .reindex(index=axis, columns=list(series_names))
        )

    points: List[SeriesDataPoint] = []
    for i, date in enumerate(dates):
        row = table.loc[i]
        points.append(SeriesDataPoint(
            date=date,
            values={name: (None if pd.isna(row[name]) else int(row[name])) for name in series_names},
        ))
    return points
