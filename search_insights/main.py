import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from search_insights.core.config import settings
from search_insights.deps import graphql_client, settings_source, view_registry
from search_insights.routers import insights

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
log = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings_source.refresh()
    watcher = None
    if settings.SETTINGS_POLL_INTERVAL > 0:
        watcher = asyncio.create_task(settings_source.watch(settings.SETTINGS_POLL_INTERVAL))
    log.info("app=started insights=%d", len(view_registry.summaries()))
    yield
    if watcher is not None:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
    view_registry.close()
    await graphql_client.aclose()

app = FastAPI(title="Search Insights", lifespan=lifespan)
app.include_router(insights.router)

@app.get("/health/")
def health():
    return {"status": "ok"}

def main():
    import uvicorn
    uvicorn.run("search_insights.main:app", host="127.0.0.1", port=8080)
