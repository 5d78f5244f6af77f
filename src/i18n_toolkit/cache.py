"""
Кеш машинных переводов.

Ключ записи - md5 от "from:to:text", хранение - JSON-файл в корне
проекта (.i18n-toolkit-cache.json). Записи старше TTL (30 дней)
не возвращаются и удаляются при загрузке.

Использование:
    cache = TranslationCache(root)
    cache.load()

    cached = cache.get('Привет', 'ru', 'en')
    if cached is None:
        cache.set('Привет', translate_single('Привет', 'ru', 'en'), 'ru', 'en')

    cache.save()
"""

import hashlib
import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

CACHE_VERSION = 1
DEFAULT_CACHE_PATH = ".i18n-toolkit-cache.json"
CACHE_TTL_SECONDS = 30 * 24 * 60 * 60


class TranslationCache:
    """Файловый кеш переводов с TTL. Thread-safe."""

    def __init__(self, root: Path = Path("."), cache_path: str = DEFAULT_CACHE_PATH,
                 ttl: float = CACHE_TTL_SECONDS):
        path = Path(cache_path)
        self.path = path if path.is_absolute() else Path(root) / path
        self._ttl = ttl
        self._entries: Dict[str, Dict] = {}
        self._dirty = False
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(text: str, from_lang: str, to_lang: str) -> str:
        return hashlib.md5(f"{from_lang}:{to_lang}:{text}".encode("utf-8")).hexdigest()

    def load(self) -> None:
        """Загружает кеш с диска; битый файл или другая версия - пустой кеш."""
        if not self.path.exists():
            logger.debug("Кеш %s не найден, начинаем с пустого", self.path)
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Не удалось загрузить кеш переводов: %s", exc)
            return

        if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
            logger.warning("Версия кеша переводов не совпадает, начинаем с пустого")
            return

        with self._lock:
            self._entries = dict(data.get("entries") or {})
        removed = self.cleanup()
        if removed:
            logger.info("Удалено устаревших записей кеша: %d", removed)

    def save(self) -> None:
        """Сохраняет кеш, если были изменения."""
        with self._lock:
            if not self._dirty:
                return
            data = {"version": CACHE_VERSION, "entries": self._entries}
            try:
                with open(self.path, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
            except OSError as exc:
                logger.warning("Не удалось сохранить кеш переводов: %s", exc)
                return
            self._dirty = False

    def get(self, text: str, from_lang: str, to_lang: str) -> Optional[str]:
        key = self.make_key(text, from_lang, to_lang)
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry.get("source") == text and entry.get("from") == from_lang \
                    and entry.get("to") == to_lang and not self._expired(entry):
                self._hits += 1
                return entry.get("translation")
            self._misses += 1
        return None

    def set(self, text: str, translation: str, from_lang: str, to_lang: str) -> None:
        key = self.make_key(text, from_lang, to_lang)
        with self._lock:
            self._entries[key] = {
                "source": text,
                "translation": translation,
                "from": from_lang,
                "to": to_lang,
                "timestamp": time.time(),
            }
            self._dirty = True

    def cleanup(self) -> int:
        """Удаляет просроченные записи. Возвращает количество удалённых."""
        with self._lock:
            expired = [k for k, entry in self._entries.items() if self._expired(entry)]
            for key in expired:
                del self._entries[key]
            if expired:
                self._dirty = True
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries = {}
            self._dirty = True

    def stats(self) -> Dict:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "path": str(self.path),
            }

    def _expired(self, entry: Dict) -> bool:
        return time.time() - float(entry.get("timestamp") or 0) >= self._ttl

    def __len__(self) -> int:
        return len(self._entries)
