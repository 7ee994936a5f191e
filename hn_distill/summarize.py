import asyncio
import hashlib
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .articles import get_or_fetch_article_markdown
from .config import OPENROUTER_BASE, Settings
from .dates import utc_now_iso
from .jsonio import DataPaths, read_json_or, read_model, write_json
from .models import CommentsSummary, NormalizedComment, NormalizedStory, PostSummary, StoryIndex
from .text import squash
from .transport import HttpClient, HttpError

logger = logging.getLogger(__name__)

COMMENT_LINE_CHARS = 400
COMMENTS_PROMPT_BUDGET = 8000
SAMPLE_SIZE = 5

POST_SYSTEM = {
    "en": (
        "make the content two times shorter, don't mention the title, "
        "publication date and other metadata; format the output as markdown"
    ),
    "ru": (
        "переведи на русский содержимое (не указывай заголовок, дату и другие метаданные), "
        "сократи в два раза; форматируй вывод как markdown"
    ),
}

COMMENTS_SYSTEM = {
    "en": (
        "COMMENTS contain user comments on an article, one per line as '@author [dN] text' "
        "where N is the reply depth. Summarize the discussion, highlighting interesting "
        "points, disagreements and perspectives. Avoid redundancy, repetition, and fluff. "
        "Ignore URLs and off-topic remarks. Emit only markdown."
    ),
    "ru": (
        "COMMENTS содержат комментарии пользователей к статье, по одному в строке в виде "
        "'@author [dN] text', где N - глубина ответа. Кратко перескажи обсуждение на русском, "
        "выделив интересные мысли, разногласия и точки зрения. Без повторов и воды. "
        "Игнорируй ссылки и оффтоп. Выводи только markdown."
    ),
}


class SummaryError(Exception):
    pass


def input_hash(messages: Sequence[Dict[str, str]]) -> str:
    canonical = json.dumps(list(messages), ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ModelCursor:
    """Rotation state over the primary and fallback models.

    Owned by whoever drives a batch of LLM calls; a model that fails moves
    the cursor on, so later calls in the batch start from the next model.
    """

    def __init__(self, models: Iterable[str]):
        self.models = list(dict.fromkeys(m for m in models if m))
        if not self.models:
            raise ValueError("ModelCursor needs at least one model")
        self.position = 0

    def __len__(self) -> int:
        return len(self.models)

    @property
    def current(self) -> str:
        return self.models[self.position]

    def advance(self) -> str:
        self.position = (self.position + 1) % len(self.models)
        return self.current


class ChatClient:
    def __init__(
        self,
        http: HttpClient,
        api_key: str,
        base_url: str = OPENROUTER_BASE,
        max_tokens: Optional[int] = None,
    ):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens

    async def chat(self, messages: Sequence[Dict[str, str]], model: str) -> str:
        payload: Dict[str, Any] = {"model": model, "messages": list(messages)}
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens
        data = await self.http.post_json(
            f"{self.base_url}/chat/completions",
            payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "HTTP-Referer": "https://github.com/hn-distill",
                "X-Title": "hn-distill",
            },
        )
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            content = ""
        if not content.strip():
            raise SummaryError(f"{model}: empty content")
        return content.strip()


async def chat_with_fallback(
    chat: ChatClient, messages: Sequence[Dict[str, str]], cursor: ModelCursor
) -> Tuple[str, str]:
    last: Optional[Exception] = None
    for _ in range(len(cursor)):
        model = cursor.current
        try:
            return await chat.chat(messages, model), model
        except (HttpError, SummaryError) as e:
            logger.warning(f"LLM {model} failed: {e}")
            last = e
            cursor.advance()
    raise SummaryError(f"All models failed, last error: {last}")


def build_post_prompt(article_md: Optional[str], slice_chars: int = 6000) -> str:
    if not article_md or not article_md.strip():
        return ""
    return article_md[:slice_chars]


def build_post_messages(text: str, lang: str = "en") -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": POST_SYSTEM[lang]},
        {"role": "user", "content": text},
    ]


def build_comments_prompt(
    comments: Iterable[NormalizedComment], lang: str = "en", budget: int = COMMENTS_PROMPT_BUDGET
) -> Tuple[str, List[int]]:
    """Returns the prompt and the ids of the first few comments in it."""
    lines = [f"Language: {lang}. COMMENTS:"]
    used = len(lines[0])
    ids: List[int] = []
    for c in comments:
        text = squash(c.text_plain)
        if not text:
            continue
        line = f"@{c.by} [d{c.depth}] {text[:COMMENT_LINE_CHARS]}"
        if used + len(line) + 1 > budget:
            break
        lines.append(line)
        used += len(line) + 1
        ids.append(c.id)
    if not ids:
        return "", []
    return "\n".join(lines), ids[:SAMPLE_SIZE]


def build_comments_messages(prompt: str, lang: str = "en") -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": COMMENTS_SYSTEM[lang]},
        {"role": "user", "content": prompt},
    ]


def load_comments(paths: DataPaths, story_id: int) -> List[NormalizedComment]:
    raw = read_json_or(paths.raw_comments(story_id), [])
    out: List[NormalizedComment] = []
    for c in raw if isinstance(raw, list) else []:
        try:
            out.append(NormalizedComment.model_validate(c))
        except ValidationError:
            logger.warning(f"Skipping malformed comment in story {story_id}")
    return out


def _is_fresh(existing: Optional[PostSummary], digest: str, lang: str) -> bool:
    return existing is not None and existing.input_hash == digest and existing.lang == lang


async def summarize_story(
    http: HttpClient,
    chat: ChatClient,
    cursor: ModelCursor,
    settings: Settings,
    paths: DataPaths,
    story: NormalizedStory,
) -> int:
    """Write post and comment summaries for one story; returns how many were (re)generated."""
    lang = settings.summary_lang
    written = 0

    article = await get_or_fetch_article_markdown(http, paths, story)
    prompt = build_post_prompt(article, settings.article_slice_chars)
    if prompt:
        messages = build_post_messages(prompt, lang)
        digest = input_hash(messages)
        if _is_fresh(read_model(paths.post_summary(story.id), PostSummary), digest, lang):
            logger.info(f"Post summary for {story.id} is up to date")
        else:
            try:
                logger.info(f"Generating post summary for {story.id}...")
                summary, model = await chat_with_fallback(chat, messages, cursor)
                write_json(
                    paths.post_summary(story.id),
                    PostSummary(
                        id=story.id, lang=lang, summary=summary, input_hash=digest,
                        model=model, created_iso=utc_now_iso(),
                    ).to_json(),
                )
                written += 1
            except SummaryError as e:
                logger.error(f"Post summary failed for {story.id}: {e}")

    prompt, sample_ids = build_comments_prompt(load_comments(paths, story.id), lang)
    if prompt:
        messages = build_comments_messages(prompt, lang)
        digest = input_hash(messages)
        if _is_fresh(read_model(paths.comments_summary(story.id), CommentsSummary), digest, lang):
            logger.info(f"Comments summary for {story.id} is up to date")
        else:
            try:
                logger.info(f"Generating comments summary for {story.id}...")
                summary, model = await chat_with_fallback(chat, messages, cursor)
                write_json(
                    paths.comments_summary(story.id),
                    CommentsSummary(
                        id=story.id, lang=lang, summary=summary, input_hash=digest, model=model,
                        created_iso=utc_now_iso(), sample_comments=sample_ids,
                    ).to_json(),
                )
                written += 1
            except SummaryError as e:
                logger.error(f"Comments summary failed for {story.id}: {e}")

    return written


async def summarize_all(
    settings: Settings,
    paths: DataPaths,
    http: HttpClient,
    chat: Optional[ChatClient] = None,
) -> int:
    if chat is None:
        if not settings.openrouter_api_key:
            logger.warning("OPENROUTER_API_KEY not set, skipping summaries")
            return 0
        chat = ChatClient(http, settings.openrouter_api_key, max_tokens=settings.openrouter_max_tokens)
    cursor = ModelCursor([settings.openrouter_model, *settings.openrouter_fallback_models])

    index = read_model(paths.index, StoryIndex)
    story_ids = index.story_ids if index else []
    written = 0
    for i, sid in enumerate(story_ids):
        story = read_model(paths.raw_item(sid), NormalizedStory)
        if story is None:
            logger.warning(f"No stored story {sid}, skipping")
            continue
        logger.info(f"Processing {i + 1}/{len(story_ids)}: {story.title} ({sid})")
        written += await summarize_story(http, chat, cursor, settings, paths, story)
    logger.info(f"Summaries written: {written}")
    return written


def run_summarize(settings: Settings, paths: Optional[DataPaths] = None) -> int:
    paths = paths or DataPaths.at(settings.data_dir)
    http = HttpClient.from_settings(settings)
    try:
        return asyncio.run(summarize_all(settings, paths, http))
    finally:
        http.close()
