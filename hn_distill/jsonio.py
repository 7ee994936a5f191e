import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
PathLike = Union[str, Path]

_MISSING = object()


def read_json(path: PathLike) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def read_json_or(path: PathLike, default: Any = None) -> Any:
    try:
        return read_json(path)
    except FileNotFoundError:
        return default
    except (OSError, ValueError) as e:
        logger.warning(f"Unreadable JSON at {path}: {e}")
        return default


def read_model(path: PathLike, model: Type[M]) -> Optional[M]:
    data = read_json_or(path, _MISSING)
    if data is _MISSING:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Invalid {model.__name__} at {path}: {e.error_count()} error(s)")
        return None


def dumps(data: Any, pretty: bool = True) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2 if pretty else None) + "\n"


def write_text(path: PathLike, text: str) -> bool:
    """Atomically replace ``path`` with ``text``.

    Returns False (and leaves the file alone) when the content is unchanged.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        if path.read_text(encoding="utf-8") == text:
            return False
    except (OSError, UnicodeDecodeError):
        pass
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return True


def write_json(path: PathLike, data: Any, pretty: bool = True) -> bool:
    return write_text(path, dumps(data, pretty))


@dataclass(frozen=True)
class DataPaths:
    root: Path

    @classmethod
    def at(cls, root: PathLike) -> "DataPaths":
        return cls(Path(root))

    @property
    def index(self) -> Path:
        return self.root / "index.json"

    @property
    def aggregated(self) -> Path:
        return self.root / "aggregated.json"

    @property
    def frontier(self) -> Path:
        return self.root / "cache" / "frontier.json"

    def raw_item(self, story_id: int) -> Path:
        return self.root / "raw" / "items" / f"{story_id}.json"

    def raw_comments(self, story_id: int) -> Path:
        return self.root / "raw" / "comments" / f"{story_id}.json"

    def article_md(self, story_id: int) -> Path:
        return self.root / "raw" / "articles" / f"{story_id}.md"

    def post_summary(self, story_id: int) -> Path:
        return self.root / "summaries" / f"{story_id}.post.json"

    def comments_summary(self, story_id: int) -> Path:
        return self.root / "summaries" / f"{story_id}.comments.json"
