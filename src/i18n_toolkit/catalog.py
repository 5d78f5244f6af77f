"""
Catalog - управление файлами переводов.

Хранит переводы во вложенных JSON-файлах: <locales>/<lang>/translation.json
Формат: {"namespace": {"key": "значение", ...}, ...}
Полный ключ - путь через точку: "namespace.key".

Поддерживает:
- Загрузка/сохранение (UTF-8, отступ 2, перевод строки в конце)
- Синхронизация структуры между языками (sync)
- Сортировка ключей (sort)
- Статистика заполненности (stats)
- Сравнение языков (diff), проверка файлов (validate)
- Удаление неиспользуемых ключей (clean)

Файл, который не разбирается, никогда не перезаписывается: операции
с записью загружают его через load_for_update и получают WriteError.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .errors import I18nToolkitError, WriteError

logger = logging.getLogger(__name__)

TRANSLATION_FILE = "translation.json"

TranslationJson = Dict[str, Any]


# ============================================================================
# Операции над вложенным JSON
# ============================================================================

def _is_branch(value: Any) -> bool:
    return isinstance(value, dict)


def deep_merge(target: TranslationJson, source: TranslationJson) -> TranslationJson:
    """Глубокий merge: существующие листья target не перезаписываются."""
    result = dict(target)
    for key, value in source.items():
        if _is_branch(value):
            base = result.get(key)
            result[key] = deep_merge(base if _is_branch(base) else {}, value)
        elif key not in result:
            result[key] = value
    return result


def collect_all_keys(objects: List[TranslationJson]) -> TranslationJson:
    """Объединение структур нескольких языков."""
    merged: TranslationJson = {}
    for obj in objects:
        merged = deep_merge(merged, obj)
    return merged


def fill_from_source(template: TranslationJson, source: TranslationJson) -> TranslationJson:
    """Структура template, значения - из source (иначе из template)."""
    result: TranslationJson = {}
    source = source if _is_branch(source) else {}
    for key, value in template.items():
        if _is_branch(value):
            result[key] = fill_from_source(value, source.get(key) or {})
        else:
            source_value = source.get(key)
            if source_value is None:
                source_value = value if value is not None else ""
            result[key] = source_value
    return result


def create_empty_template(template: TranslationJson, source: TranslationJson) -> TranslationJson:
    """Структура template, значения - из source или пустые строки."""
    result: TranslationJson = {}
    source = source if _is_branch(source) else {}
    for key, value in template.items():
        if _is_branch(value):
            result[key] = create_empty_template(value, source.get(key) or {})
        else:
            source_value = source.get(key)
            result[key] = source_value if source_value is not None else ""
    return result


def sort_keys(obj: Any) -> Any:
    """Рекурсивная сортировка ключей."""
    if not _is_branch(obj):
        return obj
    return {key: sort_keys(obj[key]) for key in sorted(obj)}


def is_sorted(obj: Any) -> bool:
    if not _is_branch(obj):
        return True
    keys = list(obj)
    return keys == sorted(keys) and all(is_sorted(v) for v in obj.values())


def count_keys(obj: TranslationJson) -> int:
    return sum(count_keys(v) if _is_branch(v) else 1 for v in obj.values())


def count_filled(obj: TranslationJson) -> int:
    count = 0
    for value in obj.values():
        if _is_branch(value):
            count += count_filled(value)
        elif isinstance(value, str) and value.strip():
            count += 1
    return count


def get_nested_value(obj: TranslationJson, key_path: str) -> Optional[str]:
    """Значение по ключу "a.b.c"; None, если пути нет или лист не строка."""
    current: Any = obj
    for part in key_path.split("."):
        if not _is_branch(current):
            return None
        current = current.get(part)
    return current if isinstance(current, str) else None


def set_nested_value(obj: TranslationJson, key_path: str, value: str) -> None:
    parts = key_path.split(".")
    current = obj
    for part in parts[:-1]:
        if not _is_branch(current.get(part)):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def flatten_keys(obj: TranslationJson, prefix: str = "") -> Dict[str, str]:
    """{"a": {"b": "x"}} -> {"a.b": "x"}"""
    result: Dict[str, str] = {}
    for key, value in obj.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if _is_branch(value):
            result.update(flatten_keys(value, full_key))
        elif isinstance(value, str):
            result[full_key] = value
    return result


@dataclass
class EmptyString:
    key: str
    source_value: str


def get_empty_strings(obj: TranslationJson, source: TranslationJson,
                      prefix: str = "") -> List[EmptyString]:
    """Пустые значения целевого языка, для которых есть непустой исходник."""
    result: List[EmptyString] = []
    source = source if _is_branch(source) else {}
    for key, value in obj.items():
        full_key = f"{prefix}.{key}" if prefix else key
        source_value = source.get(key)
        if _is_branch(value):
            result.extend(get_empty_strings(value, source_value or {}, full_key))
        elif value == "" and isinstance(source_value, str) and source_value:
            result.append(EmptyString(key=full_key, source_value=source_value))
    return result


def get_raw_value(obj: TranslationJson, key_path: str) -> Any:
    """Значение по пути "a.b" любого типа (ветка, строка, число); None, если пути нет."""
    current: Any = obj
    for part in key_path.split("."):
        if not _is_branch(current) or part not in current:
            return None
        current = current[part]
    return current


def non_string_leaves(obj: TranslationJson, prefix: str = "") -> List[str]:
    """Пути листьев, значение которых не строка (числа, списки, null)."""
    result: List[str] = []
    for key, value in obj.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if _is_branch(value):
            result.extend(non_string_leaves(value, full_key))
        elif not isinstance(value, str):
            result.append(full_key)
    return result


def remove_unused_keys(obj: TranslationJson, used_keys: Set[str],
                       prefix: str = "") -> Tuple[TranslationJson, List[str]]:
    """
    Удаляет листья, полного ключа которых нет в used_keys.

    Опустевшие ветки удаляются целиком.

    Returns:
        (очищенная копия, удалённые полные ключи в порядке обхода)
    """
    cleaned: TranslationJson = {}
    removed: List[str] = []
    for key, value in obj.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if _is_branch(value):
            nested, nested_removed = remove_unused_keys(value, used_keys, full_key)
            if nested:
                cleaned[key] = nested
            removed.extend(nested_removed)
        elif full_key in used_keys:
            cleaned[key] = value
        else:
            removed.append(full_key)
    return cleaned, removed


_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def placeholders(text: str) -> List[str]:
    """Отсортированные имена плейсхолдеров {{name}} (с повторами)."""
    return sorted(_PLACEHOLDER_RE.findall(text))


def _has_leaf_prefix(key: str, flat: Dict[str, str]) -> bool:
    """Есть ли строка на одном из родительских путей key ("a" для "a.b")."""
    parts = key.split(".")
    return any(".".join(parts[:i]) in flat for i in range(1, len(parts)))


# ============================================================================
# Каталог файлов переводов
# ============================================================================

@dataclass
class LanguageStats:
    """Заполненность одного языка."""
    code: str
    filled: int
    total: int
    percent: int
    namespaces: Dict[str, Dict[str, int]] = field(default_factory=dict)


@dataclass
class SortResult:
    sorted_files: List[str] = field(default_factory=list)
    already_sorted: List[str] = field(default_factory=list)
    total_keys: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class LanguageDiff:
    """Расхождения целевого языка с исходным."""
    source: str
    target: str
    only_in_source: List[str] = field(default_factory=list)
    only_in_target: List[str] = field(default_factory=list)
    empty_in_target: List[str] = field(default_factory=list)
    translated: int = 0
    total_source: int = 0
    total_target: int = 0

    @property
    def percent(self) -> int:
        return round(self.translated / self.total_source * 100) if self.total_source else 0


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


# Типы проблем validate
ISSUE_MISSING_FILE = "missing_file"
ISSUE_INVALID_JSON = "invalid_json"
ISSUE_DUPLICATE_KEY = "duplicate_key"
ISSUE_MISSING_KEY = "missing_key"
ISSUE_EXTRA_KEY = "extra_key"
ISSUE_EMPTY_VALUE = "empty_value"
ISSUE_INCONSISTENT_TYPE = "inconsistent_type"
ISSUE_INTERPOLATION_MISMATCH = "interpolation_mismatch"
ISSUE_TRAILING_WHITESPACE = "trailing_whitespace"


@dataclass
class ValidationIssue:
    type: str
    language: str
    message: str
    severity: Severity
    key: Optional[str] = None


@dataclass
class ValidationReport:
    """
    Результат validate.

    В режиме strict предупреждения считаются ошибками.
    """
    issues: List[ValidationIssue] = field(default_factory=list)
    strict: bool = False

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity is Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity is Severity.WARNING)

    @property
    def valid(self) -> bool:
        failures = self.error_count + (self.warning_count if self.strict else 0)
        return failures == 0

    def add(self, kind: str, language: str, message: str,
            severity: Severity = Severity.WARNING, key: Optional[str] = None) -> None:
        self.issues.append(ValidationIssue(type=kind, language=language, message=message,
                                           severity=severity, key=key))

    def by_language(self) -> Dict[str, List[ValidationIssue]]:
        groups: Dict[str, List[ValidationIssue]] = {}
        for issue in self.issues:
            groups.setdefault(issue.language, []).append(issue)
        return groups


@dataclass
class CleanResult:
    removed_keys: List[str] = field(default_factory=list)
    removed_by_language: Dict[str, int] = field(default_factory=dict)
    used_count: int = 0
    modified_files: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed_keys)


class LocaleCatalog:
    """
    Файлы переводов проекта.

    Структура файлов:
        <locales_dir>/
            ru/translation.json  - исходный язык
            en/translation.json
            kk/translation.json
    """

    def __init__(self, locales_dir: Path):
        self.locales_dir = Path(locales_dir)

    def path(self, locale: str) -> Path:
        return self.locales_dir / locale / TRANSLATION_FILE

    def exists(self, locale: str) -> bool:
        return self.path(locale).exists()

    def load(self, locale: str, strict: bool = False) -> TranslationJson:
        """
        Загружает файл переводов локали.

        Args:
            locale: Код языка (ru, en, kk, ...)
            strict: Бросать I18nToolkitError, если файла нет или он битый

        Returns:
            Вложенный словарь переводов ({} если файла нет)
        """
        catalog_path = self.path(locale)
        if not catalog_path.exists():
            if strict:
                raise I18nToolkitError(f"Файл переводов не найден: {catalog_path}")
            return {}

        try:
            return self._read(catalog_path)
        except (OSError, ValueError) as exc:
            if strict:
                raise I18nToolkitError(f"Не удалось прочитать {catalog_path}: {exc}") from exc
            logger.warning("Не удалось прочитать %s: %s", catalog_path, exc)
            return {}

    def load_for_update(self, locale: str) -> TranslationJson:
        """
        Загрузка перед перезаписью файла.

        Отсутствующий файл - пустой словарь. Битый файл не подменяется
        пустым: его содержимое было бы потеряно при сохранении.

        Raises:
            WriteError: если файл есть, но не разбирается
        """
        catalog_path = self.path(locale)
        if not catalog_path.exists():
            return {}
        try:
            return self._read(catalog_path)
        except (OSError, ValueError) as exc:
            raise WriteError(str(catalog_path), f"файл не разобран, запись отменена ({exc})") from exc

    @staticmethod
    def _read(catalog_path: Path, object_pairs_hook=None) -> TranslationJson:
        with open(catalog_path, "r", encoding="utf-8") as f:
            data = json.load(f, object_pairs_hook=object_pairs_hook)
        if not isinstance(data, dict):
            raise ValueError(f"ожидался объект, получено {type(data).__name__}")
        return data

    def save(self, locale: str, data: TranslationJson) -> Path:
        """
        Сохраняет файл переводов.

        Raises:
            WriteError: если записать не удалось
        """
        catalog_path = self.path(locale)
        try:
            catalog_path.parent.mkdir(parents=True, exist_ok=True)
            with open(catalog_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.write("\n")
        except OSError as exc:
            raise WriteError(str(catalog_path), str(exc)) from exc
        logger.info("Сохранён %s (%d ключей)", catalog_path, count_keys(data))
        return catalog_path

    def list_locales(self) -> List[str]:
        """Возвращает список локалей, для которых есть translation.json."""
        if not self.locales_dir.exists():
            return []
        return sorted(p.parent.name for p in self.locales_dir.glob(f"*/{TRANSLATION_FILE}"))

    def merge_category(self, locale: str, category: str,
                       entries: Dict[str, str]) -> int:
        """
        Добавляет записи {short_key: text} в объект категории.

        Returns:
            Количество новых ключей

        Raises:
            WriteError: файл переводов битый или не записывается
        """
        data = self.load_for_update(locale)
        bucket = data.get(category)
        if not _is_branch(bucket):
            bucket = {}
            data[category] = bucket

        new_count = 0
        for short_key, text in entries.items():
            if short_key not in bucket:
                new_count += 1
            bucket[short_key] = text

        self.save(locale, data)
        return new_count

    def sync(self, languages: List[str]) -> Dict[str, Any]:
        """
        Синхронизирует структуру файлов всех языков.

        Первый язык - исходный (значения сохраняются), остальные получают
        пустые строки для новых ключей. Ключи сортируются.

        Returns:
            {"total_keys": int, "languages": [LanguageStats, ...]}

        Raises:
            WriteError: если хотя бы один файл битый (ничего не записывается)
        """
        translations = {lang: self.load_for_update(lang) for lang in languages}
        for lang, data in translations.items():
            logger.info("Загружен %s: %d ключей", lang, count_keys(data))

        all_keys = collect_all_keys(list(translations.values()))
        total = count_keys(all_keys)

        source_language = languages[0]
        result = {source_language: sort_keys(fill_from_source(all_keys, translations[source_language]))}
        for lang in languages[1:]:
            result[lang] = sort_keys(create_empty_template(all_keys, translations[lang]))

        stats = []
        for lang in languages:
            self.save(lang, result[lang])
            stats.append(self._language_stats(lang, result[lang], total))

        return {"total_keys": total, "languages": stats}

    def sort(self, languages: Optional[List[str]] = None, check: bool = False) -> SortResult:
        """Сортирует ключи; в режиме check только сообщает о несортированных файлах."""
        result = SortResult()
        for lang in languages or self.list_locales():
            if not self.exists(lang):
                logger.warning("Файл не найден: %s", self.path(lang))
                continue
            try:
                data = self.load_for_update(lang)
            except WriteError as exc:
                logger.warning("Пропуск %s: %s", lang, exc)
                result.errors.append(str(exc))
                continue
            result.total_keys += count_keys(data)
            if is_sorted(data):
                result.already_sorted.append(lang)
                continue
            result.sorted_files.append(lang)
            if not check:
                self.save(lang, sort_keys(data))
        return result

    def get_stats(self, languages: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Статистика заполненности.

        Total считается по объединённой структуре всех языков.
        """
        languages = languages or self.list_locales()
        translations = {lang: self.load(lang) for lang in languages}
        all_keys = collect_all_keys(list(translations.values()))
        total = count_keys(all_keys)

        stats = []
        for lang in languages:
            filled = create_empty_template(all_keys, translations[lang])
            stats.append(self._language_stats(lang, filled, total, all_keys))
        return {"total_keys": total, "languages": stats}

    def other_locales(self, source_language: str) -> List[str]:
        return [lang for lang in self.list_locales() if lang != source_language]

    def diff(self, source_language: str,
             targets: Optional[List[str]] = None) -> List[LanguageDiff]:
        """
        Сравнивает целевые языки с исходным.

        Args:
            source_language: Исходный язык
            targets: Целевые языки (по умолчанию - все найденные, кроме исходного)

        Raises:
            I18nToolkitError: если исходный файл отсутствует или битый
        """
        source = flatten_keys(self.load(source_language, strict=True))
        results = []
        for lang in targets or self.other_locales(source_language):
            if lang == source_language:
                continue
            try:
                target = flatten_keys(self.load(lang, strict=True))
            except I18nToolkitError as exc:
                logger.warning("Пропуск %s: %s", lang, exc)
                continue

            result = LanguageDiff(source=source_language, target=lang,
                                  total_source=len(source), total_target=len(target))
            for key in source:
                if key not in target:
                    result.only_in_source.append(key)
                elif target[key] == "":
                    result.empty_in_target.append(key)
                else:
                    result.translated += 1
            result.only_in_target = [key for key in target if key not in source]
            results.append(result)
        return results

    def validate(self, source_language: str, languages: Optional[List[str]] = None,
                 strict: bool = False) -> ValidationReport:
        """
        Проверяет файлы переводов.

        Ошибки: нет файла, невалидный JSON, несовпадение плейсхолдеров,
        лист в одном языке и объект в другом, нестроковые значения.
        Предупреждения: повторяющиеся ключи, пустые значения, отсутствующие
        и лишние ключи, пробелы по краям значения.
        """
        languages = list(languages or self.list_locales())
        languages = [source_language] + [lang for lang in languages if lang != source_language]
        report = ValidationReport(strict=strict)

        raw: Dict[str, TranslationJson] = {}
        for lang in languages:
            data = self._load_checked(lang, report)
            if data is not None:
                raw[lang] = data

        source = raw.get(source_language)
        if source is None:
            logger.warning("Исходный язык %s не загружен", source_language)
            return report
        source_flat = flatten_keys(source)

        for lang, data in raw.items():
            for key in non_string_leaves(data):
                report.add(ISSUE_INCONSISTENT_TYPE, lang, "Значение не строка",
                           Severity.ERROR, key)
            flat = flatten_keys(data)
            if lang == source_language:
                for key, value in flat.items():
                    self._check_whitespace(report, lang, key, value)
                continue

            for key, source_value in source_flat.items():
                if key not in flat:
                    target_value = get_raw_value(data, key)
                    if _is_branch(target_value):
                        report.add(ISSUE_INCONSISTENT_TYPE, lang,
                                   "В исходном языке строка, здесь объект", Severity.ERROR, key)
                    elif target_value is None and not _has_leaf_prefix(key, flat):
                        report.add(ISSUE_MISSING_KEY, lang, f"Ключ отсутствует в {lang}", key=key)
                    continue

                value = flat[key]
                if value == "":
                    if source_value != "":
                        report.add(ISSUE_EMPTY_VALUE, lang, "Перевод пустой", key=key)
                    continue
                expected, actual = placeholders(source_value), placeholders(value)
                if expected != actual:
                    report.add(ISSUE_INTERPOLATION_MISMATCH, lang,
                               f"Плейсхолдеры: в исходнике {{{', '.join(expected)}}}, "
                               f"в переводе {{{', '.join(actual)}}}", Severity.ERROR, key)
                self._check_whitespace(report, lang, key, value)

            for key in flat:
                if key in source_flat:
                    continue
                source_raw = get_raw_value(source, key)
                if _is_branch(source_raw):
                    report.add(ISSUE_INCONSISTENT_TYPE, lang,
                               "В исходном языке объект, здесь строка", Severity.ERROR, key)
                elif source_raw is None and not _has_leaf_prefix(key, source_flat):
                    report.add(ISSUE_EXTRA_KEY, lang,
                               f"Ключ есть в {lang}, но не в исходном языке", key=key)

        logger.info("Проверка: ошибок %d, предупреждений %d",
                    report.error_count, report.warning_count)
        return report

    def clean(self, used_keys: Set[str], languages: Optional[List[str]] = None,
              dry_run: bool = False) -> CleanResult:
        """
        Удаляет ключи, которые не используются в коде.

        Битые файлы пропускаются (ошибка в result.errors), в dry_run
        ничего не записывается.
        """
        result = CleanResult(used_count=len(used_keys))
        for lang in languages or self.list_locales():
            if not self.exists(lang):
                logger.warning("Файл не найден: %s", self.path(lang))
                continue
            try:
                data = self.load_for_update(lang)
            except WriteError as exc:
                logger.warning("Пропуск %s: %s", lang, exc)
                result.errors.append(str(exc))
                continue

            cleaned, removed = remove_unused_keys(data, used_keys)
            result.removed_by_language[lang] = len(removed)
            for key in removed:
                if key not in result.removed_keys:
                    result.removed_keys.append(key)
            if removed and not dry_run:
                result.modified_files.append(str(self.save(lang, sort_keys(cleaned))))
        return result

    def _load_checked(self, lang: str, report: ValidationReport) -> Optional[TranslationJson]:
        catalog_path = self.path(lang)
        if not catalog_path.exists():
            report.add(ISSUE_MISSING_FILE, lang, f"Файл переводов не найден: {catalog_path}",
                       Severity.ERROR)
            return None

        duplicates: List[str] = []

        def collect_pairs(pairs):
            obj = {}
            for key, value in pairs:
                if key in obj:
                    duplicates.append(key)
                obj[key] = value
            return obj

        try:
            data = self._read(catalog_path, object_pairs_hook=collect_pairs)
        except (OSError, ValueError) as exc:
            report.add(ISSUE_INVALID_JSON, lang, f"Невалидный JSON: {exc}", Severity.ERROR)
            return None
        for key in duplicates:
            report.add(ISSUE_DUPLICATE_KEY, lang, "Ключ повторяется в объекте", key=key)
        return data

    @staticmethod
    def _check_whitespace(report: ValidationReport, lang: str, key: str, value: str) -> None:
        if value != value.strip():
            report.add(ISSUE_TRAILING_WHITESPACE, lang, "Пробелы в начале или конце значения",
                       key=key)

    @staticmethod
    def _language_stats(lang: str, data: TranslationJson, total: int,
                        structure: Optional[TranslationJson] = None) -> LanguageStats:
        filled = count_filled(data)
        percent = round(filled / total * 100) if total else 0
        namespaces = {}
        for ns, value in (structure or {}).items():
            if not _is_branch(value):
                continue
            ns_data = data.get(ns) if _is_branch(data.get(ns)) else {}
            namespaces[ns] = {"total": count_keys(value), "filled": count_filled(ns_data)}
        return LanguageStats(code=lang, filled=filled, total=total,
                             percent=percent, namespaces=namespaces)
