import json

import pytest

from i18n_toolkit import translator
from i18n_toolkit.cache import TranslationCache
from i18n_toolkit.catalog import LocaleCatalog
from i18n_toolkit.errors import I18nToolkitError, TranslationError
from i18n_toolkit.translator import (
    RateLimitConfig,
    RetryConfig,
    build_url,
    parse_response,
    translate_locales,
    translate_many,
    translate_single,
    update,
)

FAST = RateLimitConfig(requests_per_second=1000, max_concurrent=3)


@pytest.fixture
def calls(monkeypatch):
    """Подменяет сетевой перевод: текст -> upper(), запоминает вызовы."""
    seen = []

    def fake_translate(text, from_lang, to_lang, retry=None, fallback=True):
        seen.append((text, from_lang, to_lang))
        if "сбой" in text:
            raise TranslationError("HTTP 503", 503)
        return text.upper()

    monkeypatch.setattr(translator, "translate_single", fake_translate)
    return seen


def test_translate_many_keeps_order(calls):
    texts = [f"текст {i}" for i in range(7)]
    progress = []
    result = translate_many(texts, "ru", "en", batch_size=2, concurrency=2,
                            on_progress=lambda done, total: progress.append((done, total)),
                            rate_limit=FAST, group_pause=0)

    assert result == [t.upper() for t in texts]
    assert len(calls) == 7
    assert progress[-1] == (7, 7)


def test_failed_text_falls_back_to_original(calls):
    result = translate_many(["привет", "сбой", "мир"], "ru", "en", rate_limit=FAST)
    assert result == ["ПРИВЕТ", "сбой", "МИР"]


def test_cache_is_consulted_and_filled(calls, tmp_path):
    cache = TranslationCache(tmp_path)
    cache.set("привет", "hello", "ru", "en")

    result = translate_many(["привет", "мир"], "ru", "en", cache=cache, rate_limit=FAST)

    assert result == ["hello", "МИР"]
    assert calls == [("мир", "ru", "en")]
    assert cache.get("мир", "ru", "en") == "МИР"


def test_failed_translation_is_not_cached(calls, tmp_path):
    cache = TranslationCache(tmp_path)
    translate_many(["сбой"], "ru", "en", cache=cache, rate_limit=FAST)
    assert cache.get("сбой", "ru", "en") is None


def test_translate_single_retries_then_succeeds(monkeypatch):
    attempts = []
    delays = []

    def flaky(text, from_lang, to_lang):
        attempts.append(text)
        if len(attempts) < 3:
            raise TranslationError("HTTP 429", 429)
        return "Hello"

    monkeypatch.setattr(translator, "_request", flaky)
    monkeypatch.setattr(translator.time, "sleep", delays.append)

    assert translate_single("Привет", "ru", "en") == "Hello"
    assert len(attempts) == 3
    assert len(delays) == 2
    assert delays[1] > delays[0] * 0.5


def test_translate_single_non_retryable(monkeypatch):
    attempts = []

    def broken(text, from_lang, to_lang):
        attempts.append(text)
        raise TranslationError("HTTP 400", 400, retryable=False)

    monkeypatch.setattr(translator, "_request", broken)

    assert translate_single("Привет", "ru", "en") == "Привет"
    assert len(attempts) == 1
    with pytest.raises(TranslationError):
        translate_single("Привет", "ru", "en", fallback=False)


def test_translate_single_gives_up_after_max_retries(monkeypatch):
    attempts = []

    def down(text, from_lang, to_lang):
        attempts.append(text)
        raise TranslationError("Network error")

    monkeypatch.setattr(translator, "_request", down)
    monkeypatch.setattr(translator.time, "sleep", lambda s: None)

    assert translate_single("Привет", "ru", "en", RetryConfig(max_retries=2)) == "Привет"
    assert len(attempts) == 3


def test_retry_delay_bounds():
    config = RetryConfig()
    for _ in range(20):
        assert 0.75 <= config.delay(0) <= 1.25
        assert 1.5 <= config.delay(1) <= 2.5
        assert 7.5 <= config.delay(10) <= 12.5


def test_parse_response_and_url():
    payload = [[["Hello", "Привет", None], [" world", " мир", None]], None, "ru"]
    assert parse_response(payload) == "Hello world"
    assert parse_response(None) == ""
    assert parse_response([]) == ""

    url = build_url("Привет мир", "ru", "en")
    assert url.startswith("https://translate.googleapis.com/translate_a/single?")
    assert "client=gtx" in url and "sl=ru" in url and "tl=en" in url and "dt=t" in url
    assert "q=%D0%9F" in url


def _write(catalog, lang, data):
    path = catalog.path(lang)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


def test_translate_locales_fills_empty_strings(calls, tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"a": {"x": "икс", "y": "игрек"}})
    _write(catalog, "en", {"a": {"x": "", "y": "done"}})

    result = translate_locales(tmp_path, "ru", ["en", "kk"])

    assert result.languages == [{"code": "en", "translated": 1}]
    assert catalog.load("en") == {"a": {"x": "ИКС", "y": "done"}}
    assert not catalog.exists("kk")


def test_update_syncs_then_translates(calls, tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"a": {"x": "икс"}})

    result = update(tmp_path, "ru", ["en", "kk"])

    assert result["sync"]["total_keys"] == 1
    assert catalog.load("en") == {"a": {"x": "ИКС"}}
    assert catalog.load("kk") == {"a": {"x": "ИКС"}}
    assert [lang["code"] for lang in result["translate"].languages] == ["en", "kk"]


def test_translate_locales_skips_broken_target(calls, tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"a": "икс"})
    _write(catalog, "en", {"a": ""})
    broken = catalog.path("kk")
    broken.parent.mkdir(parents=True)
    broken.write_text('{"a": "",}', encoding="utf-8")

    result = translate_locales(tmp_path, "ru", ["kk", "en"])

    assert result.languages == [{"code": "en", "translated": 1}]
    assert len(result.errors) == 1 and "kk" in result.errors[0]
    assert broken.read_text(encoding="utf-8") == '{"a": "",}'
    assert catalog.load("en") == {"a": "ИКС"}


def test_translate_locales_rejects_broken_source(calls, tmp_path):
    catalog = LocaleCatalog(tmp_path)
    source = catalog.path("ru")
    source.parent.mkdir(parents=True)
    source.write_text("{broken", encoding="utf-8")
    _write(catalog, "en", {"a": ""})

    with pytest.raises(I18nToolkitError):
        translate_locales(tmp_path, "ru", ["en"])
    assert catalog.load("en") == {"a": ""}
