from __future__ import annotations
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from search_insights.core.config import settings
from search_insights.models.dto import Step

AXIS_LENGTH = 7
LOCALTIME = Path("/etc/localtime")

def viewer_timezone():
    """Configured zone, else the host's DST-aware zone."""
    if settings.TIMEZONE:
        return ZoneInfo(settings.TIMEZONE)
    name = os.environ.get("TZ", "").lstrip(":")
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    if LOCALTIME.exists():
        with LOCALTIME.open("rb") as f:
            return ZoneInfo.from_file(f, key="localtime")
    # no zone database entry available; fixed offset of the moment
    return datetime.now().astimezone().tzinfo

def date_axis(step: Step, now: Optional[pd.Timestamp] = None) -> List[pd.Timestamp]:
    """Seven points, one `step` apart, oldest first, ending at the start of today."""
    end = (now if now is not None else pd.Timestamp.now(tz=viewer_timezone())).normalize()
    dates = [end]
    while len(dates) < AXIS_LENGTH:
        dates.insert(0, step.subtract_from(dates[0]))
    return dates
