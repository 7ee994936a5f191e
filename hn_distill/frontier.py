"""Per-story record of comment ids already visited, by depth.

On disk the cache is one JSON object keyed by story id::

    {"123": {"seenTopLevel": [1, 2],
             "seenByDepth": {"1": [1, 2], "2": [7]},
             "updatedISO": "2024-01-02T03:04:05.000Z"}}

Older files stored either a bare list of top-level ids per story or used
``seenKids`` for ``seenTopLevel``; both are migrated on load.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .dates import utc_now_iso
from .jsonio import read_json_or, write_json

logger = logging.getLogger(__name__)

SeenByDepth = Dict[int, List[int]]


class FrontierEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    seen_top_level: List[int] = Field(default_factory=list, alias="seenTopLevel")
    seen_by_depth: SeenByDepth = Field(default_factory=dict, alias="seenByDepth")
    updated_iso: Optional[str] = Field(None, alias="updatedISO")

    def to_json(self) -> Dict[str, Any]:
        return {
            "seenTopLevel": list(self.seen_top_level),
            "seenByDepth": {str(d): list(self.seen_by_depth[d]) for d in sorted(self.seen_by_depth)},
            "updatedISO": self.updated_iso,
        }


def _union(prior: Iterable[int], new: Iterable[int]) -> List[int]:
    out = list(dict.fromkeys(prior))
    have = set(out)
    for i in new:
        if i not in have:
            have.add(i)
            out.append(i)
    return out


def migrate_entry(raw: Any) -> Optional[FrontierEntry]:
    if isinstance(raw, list):
        ids = [i for i in raw if isinstance(i, int) and not isinstance(i, bool)]
        return FrontierEntry(seen_top_level=_union(ids, []), seen_by_depth={1: _union(ids, [])})
    if not isinstance(raw, dict):
        return None
    data = dict(raw)
    if "seenTopLevel" not in data and "seenKids" in data:
        data["seenTopLevel"] = data.pop("seenKids")
    for key in ("seenTopLevel", "seenByDepth"):
        if data.get(key) is None:
            data.pop(key, None)
    try:
        entry = FrontierEntry.model_validate(data)
    except ValidationError:
        return None
    entry.seen_top_level = _union(entry.seen_top_level, [])
    entry.seen_by_depth = {d: _union(ids, []) for d, ids in entry.seen_by_depth.items()}
    return entry


class FrontierCache:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.entries: Dict[int, FrontierEntry] = {}

    def load(self) -> Dict[int, FrontierEntry]:
        raw = read_json_or(self.path, {})
        if not isinstance(raw, dict):
            logger.warning(f"Frontier cache at {self.path} is not an object, starting empty")
            raw = {}
        entries: Dict[int, FrontierEntry] = {}
        for key, value in raw.items():
            try:
                story_id = int(key)
            except (TypeError, ValueError):
                logger.warning(f"Dropping frontier entry with bad key {key!r}")
                continue
            entry = migrate_entry(value)
            if entry is None:
                logger.warning(f"Dropping unreadable frontier entry for story {story_id}")
                continue
            entries[story_id] = entry
        self.entries = entries
        logger.info(f"Loaded frontier for {len(entries)} stories from {self.path}")
        return entries

    def get(self, story_id: int) -> FrontierEntry:
        return self.entries.get(story_id) or FrontierEntry()

    def seen_by_depth(self, story_id: int) -> SeenByDepth:
        return {d: list(ids) for d, ids in self.get(story_id).seen_by_depth.items()}

    def merge(
        self,
        story_id: int,
        delta: Mapping[int, Iterable[int]],
        top_level: Iterable[int] = (),
    ) -> FrontierEntry:
        """Union ``delta`` (depth -> ids) and ``top_level`` into the story's entry.

        Ids are only ever added, so merging the same delta twice is a no-op
        apart from the timestamp.
        """
        prior = self.get(story_id)
        by_depth = {d: list(ids) for d, ids in prior.seen_by_depth.items()}
        for depth, ids in delta.items():
            depth = int(depth)
            by_depth[depth] = _union(by_depth.get(depth, []), ids)
        entry = FrontierEntry(
            seen_top_level=_union(prior.seen_top_level, top_level),
            seen_by_depth=by_depth,
            updated_iso=utc_now_iso(),
        )
        self.entries[story_id] = entry
        return entry

    def to_json(self) -> Dict[str, Any]:
        return {str(sid): self.entries[sid].to_json() for sid in sorted(self.entries)}

    def save(self) -> None:
        if write_json(self.path, self.to_json()):
            logger.info(f"Saved frontier for {len(self.entries)} stories to {self.path}")


@contextmanager
def open_frontier(path: Union[str, Path]) -> Iterator[FrontierCache]:
    """Load the cache, hand it out, and persist it once the block completes.

    Nothing is written if the block raises, so a crashed run keeps the
    previous run's cache intact.
    """
    cache = FrontierCache(path)
    cache.load()
    yield cache
    cache.save()
