import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

HN_API_BASE = "https://hacker-news.firebaseio.com/v0"
OPENROUTER_BASE = "https://openrouter.ai/api/v1"
RETRY_STATUSES = (408, 425, 429, 500, 502, 503, 504, 522)
LANGS = ("en", "ru")
MAX_COMMENT_DEPTH = 10

# (low, high) for the crawl knobs, shared by the environment and CLI overrides
CRAWL_RANGES = {
    "top_n": (1, 500),
    "max_depth": (1, MAX_COMMENT_DEPTH),
    "max_comments": (1, 5000),
    "concurrency": (1, 32),
}


@dataclass(frozen=True)
class Settings:
    top_n: int = 40
    max_depth: int = 2
    max_comments: int = 40
    concurrency: int = 8
    max_body_chars: int = 2000
    article_slice_chars: int = 6000

    http_timeout_ms: int = 15000
    http_retries: int = 3
    http_backoff_ms: int = 600

    summary_lang: str = "en"
    openrouter_api_key: Optional[str] = None
    openrouter_model: str = "openrouter/auto"
    openrouter_fallback_models: Tuple[str, ...] = field(default_factory=tuple)
    openrouter_max_tokens: int = 8000

    api_base: str = HN_API_BASE
    data_dir: str = "data"
    log_level: str = "INFO"


def _env_int(env: Mapping[str, str], name: str, default: int, lo: int, hi: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        val = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default
    return _clamp(name, val, lo, hi)


def _clamp(name: str, val: int, lo: int, hi: int) -> int:
    if val < lo or val > hi:
        clamped = max(lo, min(hi, val))
        logger.warning(f"{name}={val} outside [{lo}, {hi}], using {clamped}")
        return clamped
    return val


def clamp_crawl_setting(name: str, val: int) -> int:
    lo, hi = CRAWL_RANGES[name]
    return _clamp(name, val, lo, hi)


def _env_str(env: Mapping[str, str], name: str, default: Optional[str]) -> Optional[str]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ

    lang = (_env_str(env, "SUMMARY_LANG", "en") or "en").lower()
    if lang not in LANGS:
        logger.warning(f"Unsupported SUMMARY_LANG={lang!r}, using 'en'")
        lang = "en"

    fallbacks = tuple(
        m.strip() for m in (env.get("OPENROUTER_FALLBACK_MODELS") or "").split(",") if m.strip()
    )

    return Settings(
        top_n=_env_int(env, "TOP_N", 40, *CRAWL_RANGES["top_n"]),
        max_depth=_env_int(env, "MAX_DEPTH", 2, *CRAWL_RANGES["max_depth"]),
        max_comments=_env_int(env, "MAX_COMMENTS_PER_STORY", 40, *CRAWL_RANGES["max_comments"]),
        concurrency=_env_int(env, "CONCURRENCY", 8, *CRAWL_RANGES["concurrency"]),
        max_body_chars=_env_int(env, "MAX_BODY_CHARS", 2000, 1000, 50000),
        article_slice_chars=_env_int(env, "ARTICLE_SLICE_CHARS", 6000, 1000, 20000),
        http_timeout_ms=_env_int(env, "HTTP_TIMEOUT_MS", 15000, 1000, 60000),
        http_retries=_env_int(env, "HTTP_RETRIES", 3, 0, 5),
        http_backoff_ms=_env_int(env, "HTTP_BACKOFF_MS", 600, 100, 5000),
        summary_lang=lang,
        openrouter_api_key=_env_str(env, "OPENROUTER_API_KEY", None),
        openrouter_model=_env_str(env, "OPENROUTER_MODEL", "openrouter/auto"),
        openrouter_fallback_models=fallbacks,
        openrouter_max_tokens=_env_int(env, "OPENROUTER_MAX_TOKENS", 8000, 128, 32768),
        api_base=(_env_str(env, "HN_API_BASE", HN_API_BASE) or HN_API_BASE).rstrip("/"),
        data_dir=_env_str(env, "DATA_DIR", "data"),
        log_level=(_env_str(env, "LOG_LEVEL", "INFO") or "INFO").upper(),
    )
