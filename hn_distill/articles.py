import logging
from typing import Optional

from .jsonio import DataPaths, write_text
from .models import NormalizedStory
from .text import html_to_md
from .transport import HttpClient, HttpError

logger = logging.getLogger(__name__)


async def fetch_article_markdown(http: HttpClient, url: str) -> str:
    return html_to_md(await http.text(url))


async def get_or_fetch_article_markdown(
    http: HttpClient, paths: DataPaths, story: NormalizedStory
) -> Optional[str]:
    path = paths.article_md(story.id)
    if path.exists():
        return path.read_text(encoding="utf-8")
    if not story.url:
        return None
    try:
        logger.info(f"Fetching article content from {story.url}...")
        md = await fetch_article_markdown(http, story.url)
    except HttpError as e:
        logger.warning(f"Article fetch failed for {story.url}: {e}")
        return None
    if not md.strip():
        logger.info(f"Empty article for {story.id}, not caching")
        return None
    write_text(path, md)
    return md
