import functools
import logging
from typing import List, Optional
from urllib.parse import urlsplit

from slugify import slugify

from .dates import parse_iso, utc_now_iso
from .jsonio import DataPaths, read_model, write_json
from .models import (
    AggregatedFile,
    AggregatedItem,
    CommentsSummary,
    NormalizedComment,
    NormalizedStory,
    PostSummary,
    StoryIndex,
)
from .summarize import load_comments
from .text import squash

logger = logging.getLogger(__name__)

HN_ITEM_URL = "https://news.ycombinator.com/item?id={}"
FALLBACK_CHARS = 280
FALLBACK_COMMENTS = 3
SLUG_CHARS = 50


def extract_domain(url: Optional[str]) -> Optional[str]:
    if not url or not isinstance(url, str):
        return None
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def fallback_comments_summary(comments: List[NormalizedComment]) -> Optional[str]:
    texts = [squash(c.text_plain) for c in comments]
    texts = [t for t in texts if t][:FALLBACK_COMMENTS]
    if not texts:
        return None
    joined = " / ".join(texts)
    if len(joined) <= FALLBACK_CHARS:
        return joined
    return joined[: FALLBACK_CHARS - 1].rstrip() + "…"


def story_slug(story: NormalizedStory) -> str:
    dt = parse_iso(story.time_iso)
    day = dt.strftime("%Y-%m-%d") if dt else "undated"
    return f"{day}-{slugify(story.title)[:SLUG_CHARS] or story.id}"


def build_aggregated_item(
    story: NormalizedStory,
    comments: List[NormalizedComment],
    post: Optional[PostSummary] = None,
    comments_summary: Optional[CommentsSummary] = None,
) -> AggregatedItem:
    return AggregatedItem(
        id=story.id,
        title=story.title,
        url=story.url,
        by=story.by,
        time_iso=story.time_iso,
        post_summary=post.summary if post else None,
        comments_summary=comments_summary.summary if comments_summary else fallback_comments_summary(comments),
        score=story.score,
        comments_count=story.descendants if story.descendants is not None else len(comments),
        hn_url=HN_ITEM_URL.format(story.id),
        domain=extract_domain(story.url),
        slug=story_slug(story),
    )


def _compare_desc(a: AggregatedItem, b: AggregatedItem) -> int:
    da, db = parse_iso(a.time_iso), parse_iso(b.time_iso)
    if da and db and da != db:
        return -1 if da > db else 1
    if da and not db:
        return -1
    if db and not da:
        return 1
    return b.id - a.id


sort_key = functools.cmp_to_key(_compare_desc)


def aggregate(paths: DataPaths) -> AggregatedFile:
    index = read_model(paths.index, StoryIndex)
    items: List[AggregatedItem] = []
    for sid in index.story_ids if index else []:
        story = read_model(paths.raw_item(sid), NormalizedStory)
        if story is None:
            logger.warning(f"No stored story {sid}, leaving it out of the feed")
            continue
        items.append(
            build_aggregated_item(
                story,
                load_comments(paths, sid),
                read_model(paths.post_summary(sid), PostSummary),
                read_model(paths.comments_summary(sid), CommentsSummary),
            )
        )
    items.sort(key=sort_key)
    feed = AggregatedFile(updated_iso=utc_now_iso(), items=items)
    write_json(paths.aggregated, feed.to_json())
    logger.info(f"Aggregated {len(items)} stories into {paths.aggregated}")
    return feed
