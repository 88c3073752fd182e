"""GraphQL transport and the batched multi-query convention.

One remote call carries N sub-queries aliased ``search0`` .. ``search{N-1}``
with variables ``$query0`` .. ``$query{N-1}``. Responses are demultiplexed
by that positional index, which is checked against the request order before
any value is trusted.
"""
from __future__ import annotations
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from jinja2 import Template
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from search_insights.core.config import settings
from search_insights.core.errors import ConsistencyError, GraphQLError, TransientSearchError

log = logging.getLogger(__name__)

# execute(query_document, variables) -> data
GraphQLExecutor = Callable[[str, Dict[str, Any]], Awaitable[Dict[str, Any]]]

_TIMEOUT_MESSAGE = re.compile(r"time ?out|timed out|deadline exceeded", re.IGNORECASE)
_GATEWAY_STATUS = {502, 503, 504}

class HttpGraphQLClient:
    """Executes GraphQL documents against ``<SOURCEGRAPH_URL>/.api/graphql``."""

    def __init__(self, base_url: str = None, token: Optional[str] = None,
                 timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        headers = {"Content-Type": "application/json"}
        token = token if token is not None else settings.SOURCEGRAPH_TOKEN
        if token:
            headers["Authorization"] = f"token {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.SOURCEGRAPH_URL,
            headers=headers,
            timeout=timeout or settings.GRAPHQL_TIMEOUT,
            transport=transport,
        )

    async def execute(self, query: str, variables: Dict[str, Any] = None) -> Dict[str, Any]:
        try:
            resp = await self._client.post("/.api/graphql", json={"query": query, "variables": variables or {}})
        except httpx.TimeoutException as e:
            raise TransientSearchError(f"GraphQL request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise GraphQLError([f"GraphQL request failed: {e}"]) from e
        if resp.status_code in _GATEWAY_STATUS:
            raise TransientSearchError(f"GraphQL request failed with HTTP {resp.status_code}")
        if resp.is_error:
            raise GraphQLError([f"GraphQL request failed with HTTP {resp.status_code}: {resp.text[:300]}"])

        body = resp.json()
        errors = body.get("errors") or []
        if errors:
            messages = [e.get("message", str(e)) for e in errors]
            if all(_TIMEOUT_MESSAGE.search(m) for m in messages):
                raise TransientSearchError("\n".join(messages))
            raise GraphQLError(messages)
        return body.get("data") or {}

    async def aclose(self) -> None:
        await self._client.aclose()

# ---------- batched documents ----------

_BATCH = Template("""query {{ name }}({% for i in range(n) %}$query{{ i }}: String!{{ ", " if not loop.last }}{% endfor %}) {
{%- for i in range(n) %}
    search{{ i }}: search(version: V2{% if pattern_type %}, patternType: {{ pattern_type }}{% endif %}, query: $query{{ i }}) {
        results {{ selection }}
    }
{%- endfor %}
}""")

COUNT_SELECTION = "{ matchCount }"
COMMIT_SELECTION = (
    "{ results { ... on CommitSearchResult { commit { oid committer { date } } } } }"
)
REPOSITORY_SELECTION = "{ results { ... on Repository { name } } }"

def render_batch(name: str, n: int, selection: str, pattern_type: Optional[str] = None) -> str:
    return _BATCH.render(name=name, n=n, selection=selection, pattern_type=pattern_type)

def batch_variables(queries: Sequence[str]) -> Dict[str, str]:
    return {f"query{i}": q for i, q in enumerate(queries)}

def demultiplex(data: Dict[str, Any], queries: Sequence[str]) -> List[Dict[str, Any]]:
    """Return sub-query results in request order; refuse reordered or missing fields."""
    fields = list(data.keys())
    for i, query in enumerate(queries):
        expected = f"search{i}"
        got = fields[i] if i < len(fields) else None
        if got != expected:
            raise ConsistencyError(
                f"Batched response field {got!r} at position {i} does not match "
                f"{expected!r} for query: {query}"
            )
    if len(fields) != len(queries):
        raise ConsistencyError(f"Batched response has {len(fields)} fields for {len(queries)} queries")
    return [data[f"search{i}"] for i in range(len(queries))]

def _log_retry(state) -> None:
    log.warning("batch=retry attempt=%d err=%s", state.attempt_number, state.outcome.exception())

async def execute_batch(execute: GraphQLExecutor, name: str, queries: Sequence[str], selection: str,
                        retries: int = 0, pattern_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Run ``queries`` as one remote call, retrying timeout-class failures ``retries`` times."""
    if not queries:
        return []
    document = render_batch(name, len(queries), selection, pattern_type)
    variables = batch_variables(queries)
    log.info("batch=%s subqueries=%d retries=%d", name, len(queries), retries)
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        retry=retry_if_exception_type(TransientSearchError),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            data = await execute(document, variables)
    return demultiplex(data, queries)
