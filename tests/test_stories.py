import pytest

from conftest import NOW
from hn_distill.models import parse_item
from hn_distill.stories import normalize_story, normalize_url


def test_rejects_non_story():
    with pytest.raises(ValueError):
        normalize_story(parse_item({"id": 1, "type": "comment", "time": NOW}))


def test_normalizes_fields():
    s = normalize_story(parse_item({
        "id": 2, "type": "story", "title": "Hi", "url": "http://example.com", "by": "alice",
        "time": NOW, "kids": [3, 4], "score": 10, "descendants": 5,
    }))
    assert s.id == 2
    assert s.time_iso == "2023-11-14T22:13:20.000Z"
    assert s.comment_ids == [3, 4]
    assert s.url == "http://example.com/"
    assert (s.by, s.score, s.descendants) == ("alice", 10, 5)
    assert s.to_json()["commentIds"] == [3, 4]


def test_defaults_for_missing_fields():
    s = normalize_story(parse_item({"id": 3, "type": "story", "time": NOW + 1}))
    assert s.url is None
    assert s.by == "unknown"
    assert s.title == "(untitled)"
    assert s.to_json()["url"] is None


def test_clamps_title():
    s = normalize_story(parse_item({"id": 4, "type": "story", "time": NOW, "title": "t" * 900}))
    assert len(s.title) == 500


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://example.com/a?b=1", "https://example.com/a?b=1"),
        ("HTTPS://example.com", "https://example.com/"),
        ("ftp://example.com/x", None),
        ("not a url", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected
