import asyncio
import json

import pytest

from conftest import FakeHttp, make_comment, make_story
from hn_distill.config import Settings
from hn_distill.jsonio import write_json
from hn_distill.summarize import (
    ChatClient,
    ModelCursor,
    SummaryError,
    build_comments_prompt,
    build_post_messages,
    build_post_prompt,
    chat_with_fallback,
    summarize_all,
)
from hn_distill.transport import HttpError


class FakeChat:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    async def chat(self, messages, model):
        self.calls.append(model)
        if model in self.failing:
            raise HttpError("https://llm.test", 429)
        return f"summary by {model}"


def test_build_post_prompt_slices_article():
    assert build_post_prompt(None) == ""
    assert build_post_prompt("   ") == ""
    assert build_post_prompt("# Hello\nbody") == "# Hello\nbody"
    assert build_post_prompt("x" * 200, slice_chars=100) == "x" * 100


def test_post_messages_per_language():
    en = build_post_messages("article", "en")
    ru = build_post_messages("article", "ru")
    assert en[0]["role"] == "system"
    assert en[0]["content"].startswith("make the content two times shorter")
    assert ru[0]["content"].startswith("переведи на русский")
    assert en[1] == {"role": "user", "content": "article"}


def test_comments_prompt_header_lines_and_samples():
    comments = [
        make_comment(id=1, by="alice", text_plain=" Hello   world ", depth=1),
        make_comment(id=2, by="bob", text_plain="   ", depth=2),
        make_comment(id=3, by="carol", text_plain="x" * 1000, depth=3),
    ]
    prompt, sample_ids = build_comments_prompt(comments, "en")
    lines = prompt.split("\n")

    assert "Language: en" in lines[0]
    assert "@alice [d1] Hello world" in prompt
    assert "@carol [d3]" in prompt
    assert "@bob" not in prompt
    assert all(len(line) <= 430 for line in lines[1:])
    assert sample_ids == [1, 3]


def test_comments_prompt_sample_cap_and_order():
    texts = ["one", "   ", "three", "four", "five", "six", "seven", ""]
    comments = [make_comment(id=i + 1, text_plain=t) for i, t in enumerate(texts)]

    _, sample_ids = build_comments_prompt(comments)
    assert sample_ids == [1, 3, 4, 5, 6]


def test_comments_prompt_budget_and_empty():
    comments = [make_comment(id=i, text_plain="y" * 500) for i in range(100)]
    prompt, _ = build_comments_prompt(comments, budget=2000)
    assert len(prompt) <= 2000
    assert build_comments_prompt([make_comment(text_plain=" ")]) == ("", [])


def test_model_cursor_rotation():
    cursor = ModelCursor(["a", "b", "a", ""])
    assert len(cursor) == 2
    assert cursor.current == "a"
    assert cursor.advance() == "b"
    assert cursor.advance() == "a"
    with pytest.raises(ValueError):
        ModelCursor([])


def test_chat_with_fallback_advances_past_failures():
    chat = FakeChat(failing={"primary"})
    cursor = ModelCursor(["primary", "backup"])

    text, model = asyncio.run(chat_with_fallback(chat, [], cursor))
    assert (text, model) == ("summary by backup", "backup")
    assert cursor.current == "backup"

    asyncio.run(chat_with_fallback(chat, [], cursor))
    assert chat.calls == ["primary", "backup", "backup"]


def test_chat_with_fallback_all_fail():
    with pytest.raises(SummaryError):
        asyncio.run(chat_with_fallback(FakeChat(failing={"a", "b"}), [], ModelCursor(["a", "b"])))


def test_chat_client_posts_and_reads_content():
    http = FakeHttp({r"/chat/completions$": {"choices": [{"message": {"content": "  done  "}}]}})
    chat = ChatClient(http, "key", base_url="https://llm.test/v1", max_tokens=100)

    assert asyncio.run(chat.chat([{"role": "user", "content": "hi"}], "m")) == "done"
    post = http.posts[0]
    assert post["payload"] == {"model": "m", "messages": [{"role": "user", "content": "hi"}], "max_tokens": 100}
    assert post["headers"]["Authorization"] == "Bearer key"


def test_chat_client_empty_content_raises():
    http = FakeHttp({r"/chat/completions$": {"choices": []}})
    with pytest.raises(SummaryError):
        asyncio.run(ChatClient(http, "key").chat([], "m"))


def test_skips_without_api_key(paths):
    assert asyncio.run(summarize_all(Settings(openrouter_api_key=None), paths, FakeHttp())) == 0


def _seed(paths, story):
    write_json(paths.index, {"updatedISO": "x", "storyIds": [story.id, 999]})
    write_json(paths.raw_item(story.id), story.to_json())
    write_json(paths.raw_comments(story.id), [make_comment(id=11, text_plain="nice").to_json()])


def test_summarize_writes_and_skips_unchanged(paths):
    story = make_story(id=7, url="https://example.com/a")
    _seed(paths, story)
    http = FakeHttp({r"example\.com/a": "<h1>Big news</h1>"})
    chat = FakeChat()
    settings = Settings(openrouter_model="m1")

    assert asyncio.run(summarize_all(settings, paths, http, chat)) == 2
    post = json.loads(paths.post_summary(7).read_text())
    comments = json.loads(paths.comments_summary(7).read_text())
    assert post["summary"] == "summary by m1"
    assert post["lang"] == "en" and post["model"] == "m1" and post["inputHash"]
    assert comments["sampleComments"] == [11]

    assert asyncio.run(summarize_all(settings, paths, http, chat)) == 0
    assert len(chat.calls) == 2


def test_summarize_failure_is_logged_and_skipped(paths):
    story = make_story(id=8, url=None)
    _seed(paths, story)

    written = asyncio.run(summarize_all(Settings(openrouter_model="bad"), paths, FakeHttp(), FakeChat({"bad"})))
    assert written == 0
    assert not paths.comments_summary(8).exists()
