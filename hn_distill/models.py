from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, ValidationError

from .config import MAX_COMMENT_DEPTH

Lang = Literal["en", "ru"]

# 9999-12-31T23:59:59Z, the last second datetime can represent
MAX_EPOCH = 253_402_300_799


class RemoteNode(BaseModel):
    """One item as served by ``/item/{id}.json``.

    Validation is strict: a string id or a boolean timestamp is garbage,
    not something to coerce.
    """

    model_config = ConfigDict(strict=True)

    id: NonNegativeInt
    type: Literal["story", "comment"]
    title: Optional[str] = None
    url: Optional[str] = None
    text: Optional[str] = None
    by: Optional[str] = None
    time: int = Field(ge=0, le=MAX_EPOCH)
    kids: List[int] = Field(default_factory=list)
    parent: Optional[int] = None
    score: Optional[int] = None
    descendants: Optional[int] = None


def parse_item(payload: Any) -> Optional[RemoteNode]:
    if not isinstance(payload, dict):
        return None
    try:
        return RemoteNode.model_validate(payload)
    except ValidationError:
        return None


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class NormalizedStory(_Record):
    id: int
    title: str = Field(max_length=500)
    url: Optional[str] = None
    by: str = Field(max_length=80)
    time_iso: str = Field(alias="timeISO")
    comment_ids: List[int] = Field(default_factory=list, alias="commentIds")
    score: Optional[int] = None
    descendants: Optional[int] = None

    def to_json(self) -> Dict[str, Any]:
        # url is always written, null when the story has none
        data = super().to_json()
        data["url"] = self.url
        return data


class NormalizedComment(_Record):
    id: int
    by: str = Field(max_length=80)
    time_iso: str = Field(alias="timeISO")
    text_plain: str = Field(alias="textPlain")
    parent: int
    depth: int = Field(ge=0, le=MAX_COMMENT_DEPTH)


class PostSummary(_Record):
    id: int
    lang: Lang
    summary: str
    input_hash: Optional[str] = Field(None, alias="inputHash")
    model: Optional[str] = None
    created_iso: Optional[str] = Field(None, alias="createdISO")


class CommentsSummary(PostSummary):
    sample_comments: List[int] = Field(default_factory=list, alias="sampleComments")


class StoryIndex(_Record):
    updated_iso: str = Field(alias="updatedISO")
    story_ids: List[int] = Field(default_factory=list, alias="storyIds")


class AggregatedItem(_Record):
    id: int
    title: str
    url: Optional[str] = None
    by: str
    time_iso: str = Field(alias="timeISO")
    post_summary: Optional[str] = Field(None, alias="postSummary")
    comments_summary: Optional[str] = Field(None, alias="commentsSummary")
    score: Optional[int] = None
    comments_count: Optional[int] = Field(None, alias="commentsCount")
    hn_url: Optional[str] = Field(None, alias="hnUrl")
    domain: Optional[str] = None
    slug: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        data = super().to_json()
        data["url"] = self.url
        return data


class AggregatedFile(_Record):
    updated_iso: str = Field(alias="updatedISO")
    items: List[AggregatedItem] = Field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {"updatedISO": self.updated_iso, "items": [i.to_json() for i in self.items]}
