from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from .dates import iso_from_epoch
from .models import NormalizedStory, RemoteNode
from .text import clamp

MAX_TITLE = 500
MAX_AUTHOR = 80
DEFAULT_TITLE = "(untitled)"
DEFAULT_AUTHOR = "unknown"


def normalize_url(url: Optional[str]) -> Optional[str]:
    if not url or not url.strip():
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return None
    return urlunsplit((parts.scheme.lower(), parts.netloc, parts.path or "/", parts.query, parts.fragment))


def normalize_story(node: RemoteNode) -> NormalizedStory:
    if node.type != "story":
        raise ValueError(f"Item {node.id} is a {node.type}, not a story")
    return NormalizedStory(
        id=node.id,
        title=clamp((node.title or "").strip() or DEFAULT_TITLE, MAX_TITLE),
        url=normalize_url(node.url),
        by=clamp((node.by or "").strip() or DEFAULT_AUTHOR, MAX_AUTHOR),
        time_iso=iso_from_epoch(node.time),
        comment_ids=list(node.kids),
        score=node.score,
        descendants=node.descendants,
    )
