"""
Validator - проверка ключей в существующих вызовах функции перевода.

Операции:
1. find_unresolved_keys - для одного разобранного файла: вызовы
   t("key") / i18n.t("key"), ключ которых не разрешается в строку
   в таблице переводов (режим extract --mode validate).
2. find_missing - по всему проекту: все использования ключей,
   сгруппированные по ключу, и ключи, отсутствующие в файле переводов.
3. clean_unused - обратная задача: ключи файлов переводов, которых
   нет ни в одном вызове t(), удаляются.

Исходники не изменяются.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from tree_sitter import Node

from .catalog import CleanResult, LocaleCatalog, TranslationJson, get_nested_value
from .errors import I18nToolkitError, ParseError
from .exclusions import ExclusionConfig
from .parser import SourceFile, callee_name, node_line, parse, string_value, unescape_js, walk

logger = logging.getLogger(__name__)


@dataclass
class KeyUsage:
    """Использование ключа в исходнике."""
    key: str
    file: str
    line: int


def _first_argument(call: Node) -> Optional[Node]:
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return None
    for child in args.named_children:
        if child.type != "comment":
            return child
    return None


def _literal_key(arg: Node, source: SourceFile, allow_templates: bool) -> Optional[str]:
    if arg.type == "string":
        return string_value(arg, source)
    if allow_templates and arg.type == "template_string" \
            and not any(c.type == "template_substitution" for c in arg.named_children):
        return unescape_js(source.text(arg)[1:-1])
    return None


def iter_key_usages(source: SourceFile, config: Optional[ExclusionConfig] = None,
                    allow_templates: bool = False) -> Iterator[KeyUsage]:
    """
    Все вызовы функции перевода с литеральным первым аргументом.

    Args:
        source: Разобранный файл
        config: Имя функции перевода
        allow_templates: Учитывать шаблоны без подстановок: t(`key`)
    """
    config = config or ExclusionConfig()
    for node, _ in walk(source.root):
        if node.type != "call_expression" or not config.is_lookup_name(callee_name(node)):
            continue
        arg = _first_argument(node)
        if arg is None:
            continue
        key = _literal_key(arg, source, allow_templates)
        if key is not None:
            yield KeyUsage(key=key, file=source.path, line=node_line(node))


def find_unresolved_keys(source: SourceFile, table: TranslationJson,
                         config: Optional[ExclusionConfig] = None) -> List[KeyUsage]:
    """
    Ключи, которые не разрешаются в строку в таблице переводов.

    Returns:
        Список KeyUsage в порядке исходника
    """
    return [
        usage for usage in iter_key_usages(source, config)
        if get_nested_value(table, usage.key) is None
    ]


@dataclass
class MissingKeysReport:
    """Результат find_missing."""
    used: Dict[str, List[KeyUsage]] = field(default_factory=dict)
    missing: Dict[str, List[KeyUsage]] = field(default_factory=dict)
    files_processed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total_used(self) -> int:
        return len(self.used)

    @property
    def total_missing(self) -> int:
        return len(self.missing)


def collect_usages(options) -> MissingKeysReport:
    """
    Все использования ключей в проекте, сгруппированные по ключу.

    Args:
        options: ExtractOptions (root, include, ignore, translation_function)
    """
    from .scanner import discover_files

    root = Path(options.root)
    config = options.exclusion_config()

    report = MissingKeysReport()
    for path in discover_files(root, options.include, options.ignore):
        rel_path = path.relative_to(root).as_posix()
        try:
            source = parse(path.read_text(encoding="utf-8"), rel_path)
        except (ParseError, OSError, UnicodeDecodeError) as exc:
            logger.warning("Пропуск %s: %s", rel_path, exc)
            report.errors.append(f"{rel_path}: {exc}")
            continue

        report.files_processed += 1
        for usage in iter_key_usages(source, config, allow_templates=True):
            report.used.setdefault(usage.key, []).append(usage)
    return report


def find_missing(options) -> MissingKeysReport:
    """
    Ищет ключи, используемые в коде, но отсутствующие в файле переводов.

    Args:
        options: ExtractOptions (root, include, ignore, locales_path,
            source_language, translation_function)
    """
    catalog = LocaleCatalog(Path(options.root) / options.locales_path)
    table = catalog.load(options.source_language)

    report = collect_usages(options)
    for key in sorted(report.used):
        if get_nested_value(table, key) is None:
            report.missing[key] = report.used[key]

    logger.info("Проверено ключей: %d, отсутствует: %d",
                report.total_used, report.total_missing)
    return report


def clean_unused(options, languages: Optional[List[str]] = None,
                 dry_run: bool = False) -> CleanResult:
    """
    Удаляет из файлов переводов ключи, которые не используются в коде.

    Raises:
        I18nToolkitError: если часть исходников не разобрана (без dry_run):
            ключи из них были бы удалены как неиспользуемые
    """
    usages = collect_usages(options)
    if usages.errors and not dry_run:
        raise I18nToolkitError(
            f"Не разобрано файлов: {len(usages.errors)}; clean отменён "
            f"(используйте --dry-run, чтобы посмотреть список)"
        )

    catalog = LocaleCatalog(Path(options.root) / options.locales_path)
    result = catalog.clean(set(usages.used), languages, dry_run=dry_run)
    result.errors = usages.errors + result.errors
    logger.info("Удалено ключей: %d (используется: %d)", result.removed_count, result.used_count)
    return result
