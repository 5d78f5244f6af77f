"""
Translator - машинный перевод файлов локалей.

Backend - публичный endpoint Google Translate (translate_a/single, client=gtx),
вызов через urllib. Надёжность:
- Повторы для сетевых ошибок, 429 и 5xx: экспоненциальная задержка
  (1с -> 2с -> 4с, не более 10с) с jitter ±25%
- Token bucket: не более N запросов в секунду и M одновременных
- Батчи по batch_size, одновременно обрабатывается concurrency батчей
- Если перевести не удалось - возвращается исходный текст (translate_many
  никогда не бросает исключение из-за одной строки)

Использование:
    from .translator import translate_many
    result = translate_many(["Привет", "Мир"], "ru", "en")
"""

import json
import logging
import random
import socket
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .cache import TranslationCache
from .catalog import LocaleCatalog, get_empty_strings, set_nested_value
from .errors import TranslationError, WriteError

logger = logging.getLogger(__name__)

TRANSLATE_URL = "https://translate.googleapis.com/translate_a/single"
REQUEST_TIMEOUT = 10
USER_AGENT = "Mozilla/5.0 (compatible; i18n-toolkit/1.0)"
GROUP_PAUSE_SECONDS = 0.2

ProgressCallback = Callable[[int, int], None]


@dataclass
class RetryConfig:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.25

    def delay(self, attempt: int) -> float:
        """Задержка перед повтором номер attempt (с 0)."""
        capped = min(self.initial_delay * (self.backoff_multiplier ** attempt), self.max_delay)
        return max(0.0, capped + capped * self.jitter * random.uniform(-1, 1))


@dataclass
class RateLimitConfig:
    requests_per_second: float = 5
    max_concurrent: int = 3


class RateLimiter:
    """Token bucket + ограничение одновременных запросов. Thread-safe."""

    def __init__(self, config: Optional[RateLimitConfig] = None):
        self.config = config or RateLimitConfig()
        self._tokens = float(self.config.requests_per_second)
        self._last_refill = time.monotonic()
        self._active = 0
        self._cond = threading.Condition()

    def _refill(self) -> None:
        now = time.monotonic()
        rps = self.config.requests_per_second
        self._tokens = min(rps, self._tokens + (now - self._last_refill) * rps)
        self._last_refill = now

    def acquire(self) -> None:
        with self._cond:
            while True:
                self._refill()
                if self._tokens >= 1 and self._active < self.config.max_concurrent:
                    self._tokens -= 1
                    self._active += 1
                    return
                if self._tokens < 1:
                    wait = (1 - self._tokens) / self.config.requests_per_second
                else:
                    wait = 0.05
                self._cond.wait(timeout=wait)

    def release(self) -> None:
        with self._cond:
            self._active = max(0, self._active - 1)
            self._cond.notify_all()

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


def build_url(text: str, from_lang: str, to_lang: str) -> str:
    query = urllib.parse.urlencode({
        "client": "gtx", "sl": from_lang, "tl": to_lang, "dt": "t", "q": text,
    })
    return f"{TRANSLATE_URL}?{query}"


def parse_response(payload) -> str:
    """Склеивает переведённые фрагменты из ответа translate_a/single."""
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], list):
        return ""
    return "".join(
        chunk[0] for chunk in payload[0]
        if isinstance(chunk, list) and chunk and isinstance(chunk[0], str)
    )


def _request(text: str, from_lang: str, to_lang: str) -> str:
    req = urllib.request.Request(
        build_url(text, from_lang, to_lang),
        headers={"User-Agent": USER_AGENT},
    )
    try:
        with urllib.request.urlopen(req, timeout=REQUEST_TIMEOUT) as resp:
            payload = json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        retryable = exc.code == 429 or exc.code >= 500
        raise TranslationError(f"HTTP {exc.code}: {exc.reason}", exc.code, retryable) from exc
    except (urllib.error.URLError, socket.timeout, ConnectionError, TimeoutError) as exc:
        raise TranslationError(f"Network error: {exc}") from exc
    except ValueError as exc:
        raise TranslationError(f"Invalid response: {exc}", retryable=False) from exc
    return parse_response(payload)


def translate_single(text: str, from_lang: str, to_lang: str,
                     retry: Optional[RetryConfig] = None, fallback: bool = True) -> str:
    """
    Переводит одну строку с повторами.

    Args:
        fallback: При неудаче вернуть исходный текст (иначе TranslationError)
    """
    retry = retry or RetryConfig()
    last_error: Optional[TranslationError] = None

    for attempt in range(retry.max_retries + 1):
        try:
            return _request(text, from_lang, to_lang) or text
        except TranslationError as exc:
            last_error = exc
            if not exc.retryable or attempt >= retry.max_retries:
                break
            delay = retry.delay(attempt)
            logger.debug("Ошибка перевода (попытка %d): %s. Повтор через %.2fс",
                         attempt + 1, exc, delay)
            time.sleep(delay)

    if not fallback:
        raise last_error
    logger.warning("Перевод не удался для %r: %s", text[:50], last_error)
    return text


def _batches(items: List, size: int) -> List[List]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def translate_many(texts: List[str], from_lang: str, to_lang: str,
                   batch_size: int = 50, concurrency: int = 5,
                   cache: Optional[TranslationCache] = None,
                   on_progress: Optional[ProgressCallback] = None,
                   retry: Optional[RetryConfig] = None,
                   rate_limit: Optional[RateLimitConfig] = None,
                   group_pause: float = GROUP_PAUSE_SECONDS) -> List[str]:
    """
    Переводит список строк.

    Returns:
        Переводы в том же порядке и той же длины, что и texts
    """
    results: List[Optional[str]] = [None] * len(texts)
    pending = []
    for idx, text in enumerate(texts):
        cached = cache.get(text, from_lang, to_lang) if cache is not None else None
        if cached is not None:
            results[idx] = cached
        else:
            pending.append(idx)

    total = len(texts)
    done = total - len(pending)
    if pending:
        logger.info("Перевод %s -> %s: %d строк (из кеша: %d)", from_lang, to_lang,
                    len(pending), done)

    limiter = RateLimiter(rate_limit)
    lock = threading.Lock()

    def work(idx: int) -> None:
        nonlocal done
        text = texts[idx]
        with limiter:
            try:
                translated = translate_single(text, from_lang, to_lang, retry, fallback=False)
            except TranslationError as exc:
                logger.warning("Перевод не удался для %r: %s", text[:50], exc)
                translated = None
        results[idx] = translated if translated is not None else text
        if translated is not None and cache is not None:
            cache.set(text, translated, from_lang, to_lang)
        with lock:
            done += 1

    batches = _batches(pending, max(1, batch_size))
    group_size = max(1, concurrency)
    workers = (rate_limit or RateLimitConfig()).max_concurrent

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        for start in range(0, len(batches), group_size):
            group = [idx for batch in batches[start:start + group_size] for idx in batch]
            list(pool.map(work, group))
            if on_progress:
                on_progress(done, total)
            if start + group_size < len(batches) and group_pause:
                time.sleep(group_pause)

    return [r if r is not None else texts[i] for i, r in enumerate(results)]


@dataclass
class TranslateResult:
    languages: List[Dict] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def translate_locales(locales_dir: Path, source_language: str, target_languages: List[str],
                      batch_size: int = 50, concurrency: int = 5,
                      cache: Optional[TranslationCache] = None,
                      on_progress: Optional[ProgressCallback] = None) -> TranslateResult:
    """
    Заполняет пустые строки целевых языков переводами исходных значений.

    Языки без файла пропускаются; пустой результат, если нет исходного файла.
    Битый целевой файл не перезаписывается: ошибка попадает в result.errors.

    Raises:
        I18nToolkitError: если исходный файл есть, но не разбирается
    """
    catalog = LocaleCatalog(locales_dir)
    result = TranslateResult()

    if not catalog.exists(source_language):
        logger.warning("Исходный файл не найден: %s", catalog.path(source_language))
        return result
    source = catalog.load(source_language, strict=True)

    for lang in target_languages:
        if lang == source_language:
            continue
        if not catalog.exists(lang):
            logger.warning("Файл не найден: %s", catalog.path(lang))
            continue
        try:
            target = catalog.load_for_update(lang)
        except WriteError as exc:
            logger.warning("Пропуск %s: %s", lang, exc)
            result.errors.append(str(exc))
            continue

        empty = get_empty_strings(target, source)
        if not empty:
            result.languages.append({"code": lang, "translated": 0})
            continue

        translated = translate_many(
            [item.source_value for item in empty], source_language, lang,
            batch_size=batch_size, concurrency=concurrency,
            cache=cache, on_progress=on_progress,
        )
        for item, value in zip(empty, translated):
            set_nested_value(target, item.key, value)

        catalog.save(lang, target)
        result.languages.append({"code": lang, "translated": len(empty)})

    if cache is not None:
        cache.save()
    return result


def update(locales_dir: Path, source_language: str, target_languages: List[str],
           batch_size: int = 50, concurrency: int = 5,
           cache: Optional[TranslationCache] = None,
           on_progress: Optional[ProgressCallback] = None) -> Dict:
    """sync всех языков (исходный первым), затем перевод пустых строк."""
    languages = [source_language] + [l for l in target_languages if l != source_language]
    sync_result = LocaleCatalog(locales_dir).sync(languages)
    translate_result = translate_locales(
        locales_dir, source_language, target_languages,
        batch_size=batch_size, concurrency=concurrency,
        cache=cache, on_progress=on_progress,
    )
    return {"sync": sync_result, "translate": translate_result}
