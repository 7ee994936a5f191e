import re
from typing import Any, Dict, List, Optional

import pytest

from hn_distill.models import NormalizedComment, NormalizedStory, parse_item
from hn_distill.transport import HttpError

NOW = 1_700_000_000
TEST_ISO = "2024-01-02T03:04:05.000Z"


class FakeItems:
    """In-memory item source; ids in ``failing`` raise like a dead network."""

    def __init__(self, items: Dict[int, Any], failing=()):
        self.items = items
        self.failing = set(failing)
        self.calls: List[int] = []

    async def fetch_item(self, item_id: int):
        self.calls.append(item_id)
        if item_id in self.failing:
            raise HttpError(f"https://hn.test/item/{item_id}.json", 503)
        return parse_item(self.items.get(item_id))


class FakeHttp:
    """Regex-routed stand-in for HttpClient; a route value of HttpError is raised."""

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = routes or {}
        self.calls: List[str] = []
        self.posts: List[Dict[str, Any]] = []

    def _lookup(self, url: str) -> Any:
        self.calls.append(url)
        for pattern, val in self.routes.items():
            if re.search(pattern, url):
                if isinstance(val, HttpError):
                    raise val
                return val
        return None

    async def json(self, url: str) -> Any:
        return self._lookup(url)

    async def text(self, url: str) -> str:
        val = self._lookup(url)
        return "" if val is None else str(val)

    async def post_json(self, url: str, payload, headers=None) -> Any:
        self.posts.append({"url": url, "payload": payload, "headers": headers})
        return self._lookup(url)


def comment_node(item_id: int, text: str = "text", kids=(), parent: int = 0, **over) -> Dict[str, Any]:
    node = {
        "id": item_id,
        "type": "comment",
        "by": f"u{item_id}",
        "text": text,
        "time": NOW,
        "parent": parent,
        "kids": list(kids),
    }
    node.update(over)
    return node


def make_story(**over) -> NormalizedStory:
    data = dict(id=1, title="Title", url="https://example.com/", by="u", time_iso=TEST_ISO, comment_ids=[])
    data.update(over)
    return NormalizedStory(**data)


def make_comment(**over) -> NormalizedComment:
    data = dict(id=11, by="c", time_iso=TEST_ISO, text_plain="Comment", parent=1, depth=1)
    data.update(over)
    return NormalizedComment(**data)


@pytest.fixture
def paths(tmp_path):
    from hn_distill.jsonio import DataPaths

    return DataPaths.at(tmp_path / "data")
