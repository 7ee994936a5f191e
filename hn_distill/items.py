import asyncio
import logging
from typing import List, Optional

from .config import HN_API_BASE
from .models import RemoteNode, parse_item
from .transport import HttpClient, HttpError

logger = logging.getLogger(__name__)


class ItemClient:
    """Fetches HN items by id.

    Every request goes through ``limiter``, so one semaphore shared by the
    crawl driver bounds in-flight requests across all stories.
    """

    def __init__(
        self,
        http: HttpClient,
        base_url: str = HN_API_BASE,
        limiter: Optional[asyncio.Semaphore] = None,
        concurrency: int = 8,
    ):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.limiter = limiter if limiter is not None else asyncio.Semaphore(concurrency)

    def item_url(self, item_id: int) -> str:
        return f"{self.base_url}/item/{item_id}.json"

    async def fetch_item(self, item_id: int) -> Optional[RemoteNode]:
        """Return the validated item, or None when it is missing, malformed or unreachable."""
        url = self.item_url(item_id)
        try:
            async with self.limiter:
                payload = await self.http.json(url)
        except HttpError as e:
            logger.warning(f"Item {item_id} unavailable: {e}")
            return None
        item = parse_item(payload)
        if item is None:
            logger.debug(f"Item {item_id} has no usable payload")
        return item

    async def read_top_ids(self, limit: int) -> List[int]:
        url = f"{self.base_url}/topstories.json"
        try:
            async with self.limiter:
                payload = await self.http.json(url)
        except HttpError as e:
            logger.error(f"Top stories fetch failed: {e}")
            return []
        if not isinstance(payload, list):
            logger.error(f"Unexpected top stories payload: {type(payload).__name__}")
            return []
        ids = [i for i in payload if isinstance(i, int) and not isinstance(i, bool)]
        return ids[: max(0, limit)]
