from __future__ import annotations
from typing import Optional
from urllib.parse import unquote, urlsplit

from search_insights.core.errors import ConfigurationError
from search_insights.models.dto import ViewerContext

def resolve_document_uri(uri: str) -> ViewerContext:
    """``git://github.com/foo/bar?rev#some/dir`` -> repository + path."""
    parts = urlsplit(uri)
    if parts.scheme != "git" or not parts.netloc:
        raise ConfigurationError(f"Unsupported document URI: {uri}")
    repo = unquote(parts.netloc + parts.path).rstrip("/")
    path = unquote(parts.fragment).strip("/") or None
    return ViewerContext(repository=repo, path=path)

def viewer_context(uri: Optional[str] = None, repo: Optional[str] = None,
                   path: Optional[str] = None) -> Optional[ViewerContext]:
    if uri:
        return resolve_document_uri(uri)
    if repo:
        return ViewerContext(repository=repo.strip("/"), path=(path or "").strip("/") or None)
    return None
