from typing import List, Optional

from fastapi import APIRouter, HTTPException

from search_insights.core.errors import (
    ConfigurationError, InsightError, StaleInsightError, UnknownInsightError,
)
from search_insights.deps import settings_source, view_registry
from search_insights.models.dto import ChartPayload, ViewSummary
from search_insights.services.uri import viewer_context

router = APIRouter(prefix="/insights", tags=["insights"])

@router.get("", response_model=List[ViewSummary])
def list_insights():
    return view_registry.summaries()

@router.post("/reload")
def reload_settings():
    try:
        changed = settings_source.refresh(force=True)
    except (OSError, ConfigurationError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"changed": changed, "insights": [s.id for s in view_registry.summaries()]}

@router.get("/{insight_id}", response_model=ChartPayload)
async def get_insight(insight_id: str, uri: Optional[str] = None,
                      repo: Optional[str] = None, path: Optional[str] = None):
    try:
        registration = view_registry.get(insight_id)
        context = viewer_context(uri, repo, path)
        return await registration.provide_view(context)
    except UnknownInsightError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StaleInsightError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InsightError as e:
        # JSON error so the chart view can show an error state
        raise HTTPException(status_code=502, detail=str(e))
