"""Search query strings sent to the API.

Pure string construction. Malformed series fragments are passed through
verbatim; the API reports query errors.
"""
from __future__ import annotations
import re
from typing import Iterable, Iterator, List, Optional

import pandas as pd

from search_insights.core.config import settings

_REGEXP_SPECIAL = re.compile(r"[\\^$.*+?()[\]{}|]")

def escape_regexp(s: str) -> str:
    return _REGEXP_SPECIAL.sub(lambda m: "\\" + m.group(0), s)

def iso(ts: pd.Timestamp) -> str:
    return ts.isoformat()

# ---------- query inspection ----------

def _tokens(query: str) -> Iterator[str]:
    """Whitespace separated tokens; quoted sections and escapes stay inside a token."""
    token: List[str] = []
    quote: Optional[str] = None
    escaped = False
    for ch in query:
        if escaped:
            token.append(ch)
            escaped = False
        elif ch == "\\":
            token.append(ch)
            escaped = True
        elif quote:
            token.append(ch)
            if ch == quote:
                quote = None
        elif ch in "\"'":
            token.append(ch)
            quote = ch
        elif ch.isspace():
            if token:
                yield "".join(token)
                token = []
        else:
            token.append(ch)
    if token:
        yield "".join(token)

def has_count_directive(query: str) -> bool:
    return any(t.lower().startswith("count:") for t in _tokens(query))

# ---------- builders ----------

def repo_filter(repository: str) -> str:
    return f"repo:^{escape_regexp(repository)}$"

def build_commit_query(repository: str, before: pd.Timestamp) -> str:
    # exactly one commit at or before `before`
    return f"{repo_filter(repository)} type:commit before:{iso(before)} count:1"

def build_search_query(repository: str, query: str, commit: Optional[str] = None,
                       path: Optional[str] = None) -> str:
    repo = repo_filter(repository) + (f"@{commit}" if commit else "")
    parts = [repo]
    if path:
        parts.append(f"file:^{escape_regexp(path.strip('/'))}/")
    parts.append(query)
    if not has_count_directive(query):
        parts.append(f"count:{settings.COUNT_CEILING}")
    return " ".join(p for p in parts if p)

def build_diff_query(repositories: Iterable[str], after: pd.Timestamp, before: pd.Timestamp,
                     query: str) -> str:
    alternation = "|".join(escape_regexp(r) for r in repositories)
    return f"repo:^({alternation})$ type:diff after:{iso(after)} before:{iso(before)} {query}"

def build_repository_query(pattern: str, limit: int) -> str:
    # patterns are user supplied regular expressions, used as is
    return f"repo:{pattern} select:repo count:{limit}"
