from hn_distill.config import HN_API_BASE, load_settings


def test_defaults():
    s = load_settings({})
    assert (s.top_n, s.max_depth, s.max_comments, s.concurrency) == (40, 2, 40, 8)
    assert (s.http_timeout_ms, s.http_retries, s.http_backoff_ms) == (15000, 3, 600)
    assert s.max_body_chars == 2000
    assert s.summary_lang == "en"
    assert s.openrouter_api_key is None
    assert s.api_base == HN_API_BASE


def test_values_are_parsed_and_clamped():
    s = load_settings({
        "TOP_N": "5",
        "MAX_DEPTH": "50",
        "CONCURRENCY": "0",
        "MAX_COMMENTS_PER_STORY": "abc",
        "SUMMARY_LANG": "RU",
        "OPENROUTER_FALLBACK_MODELS": "a, b,,",
        "HN_API_BASE": "https://hn.test/v0/",
        "LOG_LEVEL": "debug",
    })
    assert s.top_n == 5
    assert s.max_depth == 10
    assert s.concurrency == 1
    assert s.max_comments == 40
    assert s.summary_lang == "ru"
    assert s.openrouter_fallback_models == ("a", "b")
    assert s.api_base == "https://hn.test/v0"
    assert s.log_level == "DEBUG"


def test_unknown_language_falls_back():
    assert load_settings({"SUMMARY_LANG": "fr"}).summary_lang == "en"
