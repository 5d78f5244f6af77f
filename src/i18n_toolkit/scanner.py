"""
Scanner - прогон извлечения строк по проекту.

Режимы (фиксируются на весь прогон):
  report    сканирование и отчёт, без записи
  extract   сканирование + замена литералов на t() + запись новых ключей
            в <locales>/<source_language>/translation.json (dry_run - без записи)
  validate  проверка ключей существующих вызовов t() по файлу переводов

Файлы обрабатываются последовательно в лексикографическом порядке
относительных путей, KeyRegistry общий на весь прогон - поэтому
суффиксы _N воспроизводимы между запусками.
"""

import fnmatch
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

from .catalog import LocaleCatalog
from .errors import I18nToolkitError, ParseError, RewriteError, WriteError
from .exclusions import (
    DEFAULT_SKIP_CALLEES,
    DEFAULT_SKIP_JSX_ATTRIBUTES,
    DEFAULT_TRANSLATION_FUNCTION,
    ExclusionConfig,
    is_excluded,
)
from .interpolation import extract_interpolations, split_template
from .keys import KeyRegistry, generate_key
from .parser import (
    JSX_TEXT_TYPES,
    SourceFile,
    jsx_text_run,
    jsx_text_value,
    node_line,
    parse,
    string_value,
    unescape_js,
    walk,
)
from .patterns import DEFAULT_SOURCE_PATTERN, detect_language, matches
from .rewriter import TreeRewriter
from .validator import KeyUsage, find_unresolved_keys

logger = logging.getLogger(__name__)

MODE_REPORT = "report"
MODE_EXTRACT = "extract"
MODE_VALIDATE = "validate"
MODES = (MODE_REPORT, MODE_EXTRACT, MODE_VALIDATE)

TYPE_STRING = "StringLiteral"
TYPE_TEMPLATE = "TemplateLiteral"
TYPE_TEMPLATE_WITH_EXPRESSIONS = "TemplateLiteralWithExpressions"
TYPE_JSX_TEXT = "JSXText"

DEFAULT_INCLUDE = "src/**/*.{ts,tsx,js,jsx}"
DEFAULT_IGNORE = [
    "**/node_modules/**",
    "**/*.d.ts",
    "**/*.test.*",
    "**/*.spec.*",
    "**/dist/**",
    "**/build/**",
]
DEFAULT_LOCALES_PATH = "public/locales"
DEFAULT_CATEGORY = "extracted"
DEFAULT_SOURCE_LANGUAGE = "ru"

LITERAL_NODE_TYPES = ("string", "template_string") + JSX_TEXT_TYPES


@dataclass
class ExtractOptions:
    """Входные параметры прогона (ядро не читает конфиги само)."""
    mode: str = MODE_REPORT
    dry_run: bool = False
    file: Optional[str] = None
    include: str = DEFAULT_INCLUDE
    ignore: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    locales_path: str = DEFAULT_LOCALES_PATH
    category: str = DEFAULT_CATEGORY
    source_pattern: str = DEFAULT_SOURCE_PATTERN
    auto_getters: bool = False
    source_language: str = DEFAULT_SOURCE_LANGUAGE
    translation_function: str = DEFAULT_TRANSLATION_FUNCTION
    skip_callees: FrozenSet[str] = DEFAULT_SKIP_CALLEES
    skip_jsx_attributes: FrozenSet[str] = DEFAULT_SKIP_JSX_ATTRIBUTES
    root: str = "."

    def exclusion_config(self) -> ExclusionConfig:
        return ExclusionConfig(
            translation_function=self.translation_function,
            skip_callees=frozenset(self.skip_callees),
            skip_jsx_attributes=frozenset(self.skip_jsx_attributes),
        )


@dataclass
class FoundString:
    """Найденная строка (запись отчёта)."""
    file: str
    line: int
    text: str
    key: str
    type: str
    interpolations: Optional[List[str]] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        if data["interpolations"] is None:
            del data["interpolations"]
        return data


@dataclass
class ExtractResult:
    found: List[FoundString] = field(default_factory=list)
    modified_files: List[str] = field(default_factory=list)
    translations: Dict[str, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    files_processed: int = 0
    missing: List[KeyUsage] = field(default_factory=list)


# ============================================================================
# Поиск файлов
# ============================================================================

def _split_brace_group(pattern: str, start: int) -> Optional[Tuple[List[str], int]]:
    """Варианты группы {a,b,{c,d}}, начинающейся в start, и индекс её '}'."""
    depth = 0
    options = []
    option_start = start + 1
    for i in range(start, len(pattern)):
        char = pattern[i]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[option_start:i])
                return options, i
        elif char == "," and depth == 1:
            options.append(pattern[option_start:i])
            option_start = i + 1
    return None


def expand_braces(pattern: str) -> List[str]:
    """
    'src/**/*.{ts,tsx}' -> ['src/**/*.ts', 'src/**/*.tsx']

    Раскрывается внешняя группа (вложенные - рекурсивно), повторы
    отбрасываются с сохранением порядка. Незакрытая скобка - литерал.
    """
    start = pattern.find("{")
    group = _split_brace_group(pattern, start) if start >= 0 else None
    if group is None:
        return [pattern]
    options, end = group
    head, tail = pattern[:start], pattern[end + 1:]
    result: List[str] = []
    for option in options:
        for expanded in expand_braces(head + option + tail):
            if expanded not in result:
                result.append(expanded)
    return result


def is_ignored(rel_path: str, ignore: List[str]) -> bool:
    for pattern in ignore:
        if fnmatch.fnmatchcase(rel_path, pattern):
            return True
        # "**/x" должен совпадать и с "x" в корне
        if pattern.startswith("**/") and fnmatch.fnmatchcase(rel_path, pattern[3:]):
            return True
    return False


def discover_files(root: Path, include: str, ignore: Optional[List[str]] = None) -> List[Path]:
    """
    Находит исходники по include-glob.

    Returns:
        Пути, отсортированные по относительному POSIX-пути

    Raises:
        I18nToolkitError: при некорректном glob
    """
    root = Path(root)
    ignore = ignore or []
    found: Dict[str, Path] = {}

    for pattern in expand_braces(include):
        try:
            candidates = list(root.glob(pattern))
        except (ValueError, NotImplementedError) as exc:
            raise I18nToolkitError(f"Некорректный include pattern {include!r}: {exc}") from exc
        for path in candidates:
            if not path.is_file():
                continue
            rel_path = path.relative_to(root).as_posix()
            if is_ignored(rel_path, ignore):
                continue
            found[rel_path] = path

    files = [found[rel] for rel in sorted(found)]
    logger.info("Найдено файлов: %d (%s)", len(files), include)
    return files


def resolve_files(options: ExtractOptions) -> List[Path]:
    root = Path(options.root)
    if options.file:
        path = Path(options.file)
        if not path.is_absolute():
            path = root / path
        if not path.exists():
            raise I18nToolkitError(f"Файл не найден: {options.file}")
        return [path]
    return discover_files(root, options.include, options.ignore)


def _relative(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


# ============================================================================
# Обработка одного файла
# ============================================================================

def _jsx_text_line(node, text: str) -> int:
    lead = text[:len(text) - len(text.lstrip())]
    return node_line(node) + lead.count("\n")


def scan_source(source: SourceFile, options: ExtractOptions, registry: KeyRegistry,
                rewriter: Optional[TreeRewriter] = None) -> List[FoundString]:
    """
    Находит строки исходного языка в одном разобранном файле.

    Ключи генерируются во всех режимах (отчёт совпадает с extract);
    если передан rewriter, для каждой строки планируется замена.
    """
    config = options.exclusion_config()
    found: List[FoundString] = []

    for node, ancestors in walk(source.root):
        if node.type not in LITERAL_NODE_TYPES:
            continue

        bindings = []
        interpolations = None
        run = None
        if node.type == "string":
            parent = ancestors[-1] if ancestors else None
            in_jsx = parent is not None and parent.type == "jsx_attribute"
            text = string_value(node, source, jsx=in_jsx)
            kind = TYPE_STRING
            line = node_line(node)
        elif node.type == "template_string":
            parts = split_template(node, source)
            if not matches(unescape_js(parts.joined), options.source_pattern):
                continue
            if parts.expressions:
                raw, bindings = extract_interpolations(parts)
                text = unescape_js(raw)
                interpolations = [b.name for b in bindings]
                kind = TYPE_TEMPLATE_WITH_EXPRESSIONS
            else:
                text = unescape_js(parts.quasis[0])
                kind = TYPE_TEMPLATE
            line = node_line(node)
        else:
            run = jsx_text_run(node, ancestors)
            if run is None:
                continue
            text = jsx_text_value(run, source)
            kind = TYPE_JSX_TEXT
            line = _jsx_text_line(run[0], source.slice(run[0].start_byte, run[-1].end_byte))

        if not matches(text, options.source_pattern):
            continue
        if is_excluded(node, ancestors, config):
            continue

        key = generate_key(text, options.category, registry)
        found.append(FoundString(file=source.path, line=line, text=text, key=key,
                                 type=kind, interpolations=interpolations))

        if rewriter is None:
            continue
        if run is not None:
            rewriter.rewrite_jsx_text(run, key)
        else:
            rewriter.rewrite(node, ancestors, key, bindings, auto_getters=options.auto_getters)

    return found


def _write_source(path: Path, code: str) -> None:
    try:
        path.write_text(code, encoding="utf-8")
    except OSError as exc:
        raise WriteError(str(path), str(exc)) from exc


def _read_and_parse(path: Path, rel_path: str) -> SourceFile:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(rel_path, f"cannot read file: {exc}") from exc
    return parse(text, rel_path)


# ============================================================================
# Прогон
# ============================================================================

def extract(options: ExtractOptions) -> ExtractResult:
    """
    Выполняет прогон в заданном режиме.

    Raises:
        I18nToolkitError: ошибки верхнего уровня (нет файла/файла
            переводов в режиме validate, некорректный include)
    """
    if options.mode not in MODES:
        raise I18nToolkitError(f"Неизвестный режим: {options.mode}")

    root = Path(options.root)
    catalog = LocaleCatalog(root / options.locales_path)
    files = resolve_files(options)

    if options.mode == MODE_VALIDATE:
        return _validate(files, root, catalog, options)

    result = ExtractResult()
    rewrite = options.mode == MODE_EXTRACT
    catalog_error: Optional[WriteError] = None
    if rewrite:
        try:
            table = catalog.load_for_update(options.source_language)
        except WriteError as exc:
            logger.warning("Файл переводов не будет записан: %s", exc)
            result.errors.append(str(exc))
            catalog_error = exc
            table = {}
    else:
        table = catalog.load(options.source_language)

    existing = table.get(options.category)
    existing = existing if isinstance(existing, dict) else {}
    registry = KeyRegistry.seeded(options.category, existing, options.source_pattern)
    # при битом файле переводов исходники тоже не пишутся: ключи некуда сохранить
    write_files = rewrite and not options.dry_run and catalog_error is None

    for path in files:
        rel_path = _relative(path, root)
        try:
            source = _read_and_parse(path, rel_path)
        except ParseError as exc:
            logger.warning("Пропуск %s: %s", rel_path, exc.message)
            result.errors.append(str(exc))
            continue

        result.files_processed += 1
        rewriter = TreeRewriter(source, options.translation_function) if rewrite else None
        result.found.extend(scan_source(source, options, registry, rewriter))

        if rewriter is None or not rewriter.modified:
            continue
        try:
            code = rewriter.apply()
            if write_files:
                _write_source(path, code)
        except (RewriteError, WriteError) as exc:
            logger.warning("Файл не изменён: %s", exc)
            result.errors.append(str(exc))
            continue
        if write_files or options.dry_run:
            result.modified_files.append(rel_path)

    new_entries = registry.new_entries(options.category, existing)
    result.translations = {f"{options.category}.{k}": v for k, v in new_entries.items()}

    if write_files and new_entries:
        try:
            added = catalog.merge_category(options.source_language, options.category, new_entries)
            logger.info("Добавлено ключей: %d", added)
        except WriteError as exc:
            logger.warning("Не удалось сохранить переводы: %s", exc)
            result.errors.append(str(exc))

    return result


def _validate(files: List[Path], root: Path, catalog: LocaleCatalog,
              options: ExtractOptions) -> ExtractResult:
    table = catalog.load(options.source_language, strict=True)
    config = options.exclusion_config()

    result = ExtractResult()
    for path in files:
        rel_path = _relative(path, root)
        try:
            source = _read_and_parse(path, rel_path)
        except ParseError as exc:
            logger.warning("Пропуск %s: %s", rel_path, exc.message)
            result.errors.append(str(exc))
            continue
        result.files_processed += 1
        result.missing.extend(find_unresolved_keys(source, table, config))
    return result


def generate_report(found: List[FoundString]) -> Dict:
    """
    Сводка по найденным строкам.

    Returns:
        Dict со статистикой по типам, файлам и языкам
    """
    by_type: Dict[str, int] = {}
    by_file: Dict[str, int] = {}
    by_language: Dict[str, int] = {}

    for s in found:
        by_type[s.type] = by_type.get(s.type, 0) + 1
        by_file[s.file] = by_file.get(s.file, 0) + 1
        lang = detect_language(s.text)
        by_language[lang] = by_language.get(lang, 0) + 1

    return {
        "total_strings": len(found),
        "unique_keys": len({s.key for s in found}),
        "by_type": by_type,
        "by_file": by_file,
        "by_language": by_language,
        "with_interpolations": sum(1 for s in found if s.interpolations),
    }


def group_by_file(items) -> List[Tuple[str, list]]:
    """Группирует записи (FoundString/KeyUsage) по файлу, сохраняя порядок."""
    groups: Dict[str, list] = {}
    for item in items:
        groups.setdefault(item.file, []).append(item)
    return list(groups.items())
