import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Mapping, Optional, Protocol, Set, Tuple

from .config import MAX_COMMENT_DEPTH
from .dates import iso_from_epoch
from .models import NormalizedComment, RemoteNode
from .text import clamp, html_to_plain
from .transport import HttpError

logger = logging.getLogger(__name__)

MAX_AUTHOR = 80
DEFAULT_AUTHOR = "unknown"
BATCH_PAUSE = 0.05


class ItemSource(Protocol):
    async def fetch_item(self, item_id: int) -> Optional[RemoteNode]: ...


@dataclass(frozen=True)
class CrawlBudget:
    max_depth: int
    max_count: int
    concurrency: int

    def __post_init__(self):
        for name in ("max_depth", "max_count", "concurrency"):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, int) or val < 1:
                raise ValueError(f"{name} must be a positive integer, got {val!r}")
        if self.max_depth > MAX_COMMENT_DEPTH:
            raise ValueError(f"max_depth must be at most {MAX_COMMENT_DEPTH}, got {self.max_depth}")

    @classmethod
    def from_settings(cls, settings) -> "CrawlBudget":
        return cls(settings.max_depth, settings.max_comments, settings.concurrency)


@dataclass
class Collected:
    comments: List[NormalizedComment] = field(default_factory=list)
    all_seen_by_depth: Dict[int, List[int]] = field(default_factory=dict)


# (id, depth, id of the node that listed it)
_Entry = Tuple[int, int, Optional[int]]


async def _fetch(source: ItemSource, item_id: int) -> Optional[RemoteNode]:
    try:
        return await source.fetch_item(item_id)
    except HttpError as e:
        logger.warning(f"Comment {item_id} unavailable: {e}")
        return None


def _to_comment(node: RemoteNode, depth: int, via: Optional[int], body_chars: int) -> Optional[NormalizedComment]:
    text = clamp(html_to_plain(node.text or ""), body_chars)
    if not text.strip():
        return None
    parent = node.parent if node.parent is not None else (via if via is not None else 0)
    return NormalizedComment(
        id=node.id,
        by=clamp((node.by or "").strip() or DEFAULT_AUTHOR, MAX_AUTHOR),
        time_iso=iso_from_epoch(node.time),
        text_plain=text,
        parent=parent,
        depth=depth,
    )


async def collect_comments(
    source: ItemSource,
    root_ids: Iterable[int],
    budget: CrawlBudget,
    seen_by_depth: Optional[Mapping[int, Iterable[int]]] = None,
    *,
    body_chars: int = 2000,
    pause: float = BATCH_PAUSE,
) -> Collected:
    """Breadth-first walk of one story's comment tree.

    Roots start at depth 1 and are filtered like every other id: a root
    already in ``seen_by_depth[1]`` is never queued, so not every root the
    caller passes gets fetched. Pass no depth-1 history to force a full
    walk from the roots. Each wave takes up to ``budget.concurrency``
    queue entries, fetches them together and only then expands children, so
    output order follows discovery order. Ids already recorded at their
    depth in ``seen_by_depth`` (earlier runs) or visited in this run are not
    queued. Every dequeued id is recorded in ``all_seen_by_depth`` before
    its fetch, whatever the outcome; the caller merges that delta into the
    frontier cache.
    """
    if body_chars < 1:
        raise ValueError(f"body_chars must be positive, got {body_chars!r}")

    prior: Dict[int, Set[int]] = {int(d): set(ids) for d, ids in (seen_by_depth or {}).items()}
    seen_roots = prior.get(1, set())
    queue: Deque[_Entry] = deque((rid, 1, None) for rid in root_ids if rid not in seen_roots)
    visited: Set[int] = set()
    result = Collected()
    out = result.comments

    while queue and len(out) < budget.max_count:
        wave: List[_Entry] = []
        while queue and len(wave) < budget.concurrency:
            node_id, depth, via = queue.popleft()
            if node_id in visited:
                continue
            visited.add(node_id)
            result.all_seen_by_depth.setdefault(depth, []).append(node_id)
            wave.append((node_id, depth, via))
        if not wave:
            break

        nodes = await asyncio.gather(*(_fetch(source, node_id) for node_id, _, _ in wave))

        for (node_id, depth, via), node in zip(wave, nodes):
            if node is None or node.type != "comment":
                continue
            comment = _to_comment(node, depth, via, body_chars)
            if comment is not None and len(out) < budget.max_count:
                out.append(comment)
            if depth >= budget.max_depth:
                continue
            next_seen = prior.get(depth + 1, set())
            for kid in node.kids:
                if len(out) + len(queue) >= budget.max_count:
                    break
                if kid in visited or kid in next_seen:
                    continue
                queue.append((kid, depth + 1, node_id))

        if queue and pause > 0:
            await asyncio.sleep(pause)

    del out[budget.max_count:]
    logger.debug(
        f"Collected {len(out)} comments from {len(visited)} ids "
        f"(depths {sorted(result.all_seen_by_depth)})"
    )
    return result
