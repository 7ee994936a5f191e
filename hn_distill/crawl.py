import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .collector import CrawlBudget, collect_comments
from .config import Settings
from .dates import utc_now_iso
from .frontier import FrontierCache, open_frontier
from .items import ItemClient
from .jsonio import DataPaths, write_json
from .models import StoryIndex
from .stories import normalize_story
from .transport import HttpClient

logger = logging.getLogger(__name__)


@dataclass
class CrawlReport:
    story_ids: List[int] = field(default_factory=list)
    stored: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    comments: int = 0


async def crawl_story(
    client: ItemClient,
    cache: FrontierCache,
    paths: DataPaths,
    story_id: int,
    budget: CrawlBudget,
    body_chars: int = 2000,
) -> Optional[int]:
    """Fetch one story and its comments; returns the comment count, or None if skipped."""
    node = await client.fetch_item(story_id)
    if node is None:
        logger.info(f"Skipping {story_id}: item unavailable")
        return None
    if node.type != "story":
        logger.info(f"Skipping {story_id}: {node.type}, not a story")
        return None
    story = normalize_story(node)

    collected = await collect_comments(
        client,
        story.comment_ids,
        budget,
        cache.seen_by_depth(story_id),
        body_chars=body_chars,
    )

    write_json(paths.raw_item(story_id), story.to_json())
    write_json(paths.raw_comments(story_id), [c.to_json() for c in collected.comments])
    cache.merge(story_id, collected.all_seen_by_depth, story.comment_ids)
    logger.info(f"Story {story_id}: {len(collected.comments)} comments ({story.title[:60]})")
    return len(collected.comments)


async def _crawl_story_logged(client, cache, paths, story_id, budget, body_chars) -> Optional[int]:
    try:
        return await crawl_story(client, cache, paths, story_id, budget, body_chars)
    except Exception:
        logger.exception(f"Crawl halted on story {story_id}")
        raise


async def crawl(settings: Settings, paths: DataPaths, client: ItemClient) -> CrawlReport:
    budget = CrawlBudget.from_settings(settings)
    report = CrawlReport()

    ids = list(dict.fromkeys(await client.read_top_ids(settings.top_n)))
    if not ids:
        logger.error("No top stories fetched, leaving existing data untouched")
        return report
    report.story_ids = ids
    logger.info(f"Crawling {len(ids)} stories (depth {budget.max_depth}, max {budget.max_count} comments)")

    with open_frontier(paths.frontier) as cache:
        for i in range(0, len(ids), budget.concurrency):
            batch = ids[i : i + budget.concurrency]
            counts = await asyncio.gather(
                *(_crawl_story_logged(client, cache, paths, sid, budget, settings.max_body_chars) for sid in batch)
            )
            for sid, count in zip(batch, counts):
                if count is None:
                    report.skipped.append(sid)
                else:
                    report.stored.append(sid)
                    report.comments += count

        write_json(paths.index, StoryIndex(updated_iso=utc_now_iso(), story_ids=report.stored).to_json())

    logger.info(
        f"Crawl done: {len(report.stored)} stored, {len(report.skipped)} skipped, {report.comments} comments"
    )
    return report


def run_crawl(settings: Settings, paths: Optional[DataPaths] = None) -> CrawlReport:
    paths = paths or DataPaths.at(settings.data_dir)
    http = HttpClient.from_settings(settings)

    async def _main() -> CrawlReport:
        client = ItemClient(http, settings.api_base, concurrency=settings.concurrency)
        return await crawl(settings, paths, client)

    try:
        return asyncio.run(_main())
    finally:
        http.close()
