#!/usr/bin/env python3
"""
Manager - CLI i18n-toolkit.

Команды:
  init          Создаёт шаблон конфигурации (.i18n-toolkitrc.yaml)
  extract       Ищет строки исходного языка (report/extract/validate)
  find-missing  Ключи из t() без перевода в файле исходного языка
  sync          Синхронизирует структуру файлов всех языков
  translate     Переводит пустые строки целевых языков
  update        sync + translate
  sort          Сортирует ключи файлов переводов
  stats         Статистика заполненности
  diff          Расхождения целевых языков с исходным
  validate      Проверка файлов переводов (--strict)
  clean         Удаление ключей, которых нет в коде

Использование:
  i18n-toolkit extract                       # отчёт
  i18n-toolkit extract --mode extract --dry-run
  i18n-toolkit extract --mode extract --auto-getters
  i18n-toolkit extract --mode validate
  i18n-toolkit update --to en kk
  i18n-toolkit sort --check
  i18n-toolkit validate --strict
  i18n-toolkit clean --dry-run
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .cache import TranslationCache
from .catalog import LocaleCatalog, Severity
from .config import (
    ToolkitConfig,
    create_config_template,
    ensure_valid,
    load_config,
    merge_cli_options,
    validate_config,
)
from .errors import I18nToolkitError
from .scanner import MODES, MODE_REPORT, MODE_VALIDATE, extract, generate_report, group_by_file
from .translator import translate_locales, update
from .validator import clean_unused, find_missing

logger = logging.getLogger(__name__)

console = Console()

DETAIL_LIMIT = 30

TYPE_LABELS = {
    "StringLiteral": "Строки",
    "TemplateLiteral": "Шаблоны",
    "TemplateLiteralWithExpressions": "Шаблоны с переменными",
    "JSXText": "JSX текст",
}


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
    )


def _load(args) -> ToolkitConfig:
    config = load_config(Path(args.root))
    return merge_cli_options(
        config,
        locales_path=getattr(args, "locales_path", None),
        source_language=getattr(args, "source_language", None),
        target_languages=getattr(args, "target_languages", None),
        include=getattr(args, "include", None),
        category=getattr(args, "category", None),
        source_pattern=getattr(args, "source_pattern", None),
        batch_size=getattr(args, "batch_size", None),
        concurrency=getattr(args, "concurrency", None),
    )


def _shorten(text: str, limit: int = 60) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


def _make_cache(config: ToolkitConfig, args):
    if not config.cache_translations or getattr(args, "no_cache", False):
        return None
    cache = TranslationCache(Path(args.root), config.cache_path)
    if getattr(args, "clear_cache", False):
        cache.clear()
        console.print(f"[yellow]Кеш переводов очищен: {cache.path}[/yellow]")
    else:
        cache.load()
    return cache


def _print_cache_stats(cache) -> None:
    if cache is None:
        return
    stats = cache.stats()
    console.print(f"  [dim]Кеш: {stats['entries']} записей, попаданий {stats['hits']}, "
                  f"промахов {stats['misses']}[/dim]")


def _print_errors(errors) -> None:
    for error in errors:
        console.print(f"[yellow]⚠ {escape(error)}[/yellow]")


def _progress(done: int, total: int) -> None:
    console.print(f"  Прогресс: {done}/{total}", highlight=False)


# ============================================================================
# Команды
# ============================================================================

def cmd_init(args) -> int:
    """Команда: шаблон конфигурации."""
    root = Path(args.root)
    existing = load_config(root)
    if existing.source and not args.force:
        console.print(f"[yellow]Конфигурация уже есть: {existing.source}[/yellow] (--force для перезаписи)")
        return 1
    path = create_config_template(root)
    console.print(f"[green]Создан {path}[/green]")
    return 0


def cmd_extract(args) -> int:
    """Команда: поиск/извлечение/валидация строк."""
    config = _load(args)
    for problem in validate_config(config):
        console.print(f"[yellow]⚠ {escape(problem)}[/yellow]")

    options = config.to_extract_options(
        Path(args.root),
        mode=args.mode,
        dry_run=args.dry_run,
        file=args.file,
        auto_getters=args.auto_getters,
    )

    mode_text = options.mode
    if options.dry_run:
        mode_text += " (dry-run)"
    if options.auto_getters:
        mode_text += " (auto-getters)"
    console.print(f"\n[bold cyan]Извлечение строк[/bold cyan]  режим: {mode_text}")
    console.print(f"  Файл: {options.file}" if options.file else f"  Шаблон: {options.include}")

    result = extract(options)
    console.print(f"  Обработано файлов: {result.files_processed}")

    if args.json:
        payload = {
            "found": [s.to_dict() for s in result.found],
            "modifiedFiles": result.modified_files,
            "translations": result.translations,
            "missing": [vars(m) for m in result.missing],
            "errors": result.errors,
        }
        console.print_json(json.dumps(payload, ensure_ascii=False))
    elif options.mode == MODE_VALIDATE:
        _print_missing(result.missing)
    elif options.mode == MODE_REPORT:
        _print_found(result.found)
    else:
        _print_extract_summary(result, options.dry_run)

    _print_errors(result.errors)

    if options.mode == MODE_VALIDATE and result.missing:
        return 1
    return 0


def _print_found(found) -> None:
    console.print(f"\n[bold]Найдено строк: {len(found)}[/bold]")
    for file, items in group_by_file(found):
        console.print(f"\n📄 [magenta]{escape(file)}[/magenta]")
        for item in items:
            console.print(f"   [dim]L{item.line}:[/dim] \"{escape(_shorten(item.text))}\"", highlight=False)
            console.print(f"         → [green]{escape(item.key)}[/green]", highlight=False)

    if not found:
        return

    report = generate_report(found)
    table = Table(title="Статистика", box=box.ROUNDED)
    table.add_column("Тип", style="cyan")
    table.add_column("Количество", justify="right")
    for kind, count in report["by_type"].items():
        table.add_row(TYPE_LABELS.get(kind, kind), str(count))
    console.print()
    console.print(table)

    console.print("[dim]Топ файлов:[/dim]")
    top = sorted(report["by_file"].items(), key=lambda x: -x[1])[:10]
    for file, count in top:
        console.print(f"  {count:>4} │ {file}", highlight=False)


def _print_extract_summary(result, dry_run: bool) -> None:
    table = Table(box=box.ROUNDED)
    table.add_column("Метрика", style="cyan")
    table.add_column("Значение", justify="right")
    table.add_row("Найдено строк", str(len(result.found)))
    table.add_row("Новых ключей", str(len(result.translations)))
    table.add_row("Изменено файлов", str(len(result.modified_files)))
    console.print(table)
    if dry_run:
        console.print("[yellow]Dry-run: файлы не изменены[/yellow]")
    for file in result.modified_files:
        console.print(f"  ✎ {file}", highlight=False)


def _print_missing(missing) -> None:
    if not missing:
        console.print("[green]✓ Все ключи найдены в переводах[/green]")
        return
    console.print(f"[red]Отсутствует ключей: {len(missing)}[/red]\n")
    for file, items in group_by_file(missing):
        console.print(f"📄 [magenta]{escape(file)}[/magenta]")
        for item in items:
            console.print(f"   [dim]L{item.line}:[/dim] t('{escape(item.key)}')", highlight=False)


def cmd_find_missing(args) -> int:
    """Команда: ключи без перевода."""
    config = _load(args)
    options = config.to_extract_options(Path(args.root))
    report = find_missing(options)

    console.print(f"\nИспользуется ключей: {report.total_used}")
    if not report.missing:
        console.print("[green]✓ Все ключи найдены в переводах[/green]")
        return 0

    table = Table(title=f"Отсутствует ключей: {report.total_missing}", box=box.ROUNDED)
    table.add_column("Ключ", style="red")
    table.add_column("Где используется")
    for key, usages in report.missing.items():
        places = ", ".join(f"{u.file}:{u.line}" for u in usages[:3])
        if len(usages) > 3:
            places += f" (+{len(usages) - 3})"
        table.add_row(escape(key), escape(places))
    console.print(table)
    return 1


def _print_language_stats(stats) -> None:
    table = Table(box=box.ROUNDED)
    table.add_column("Язык", style="cyan")
    table.add_column("Заполнено", justify="right")
    table.add_column("Всего", justify="right")
    table.add_column("%", justify="right")
    for lang in stats["languages"]:
        color = "green" if lang.percent == 100 else "yellow" if lang.percent >= 50 else "red"
        table.add_row(lang.code, str(lang.filled), str(lang.total),
                      f"[{color}]{lang.percent}%[/{color}]")
    console.print(table)


def cmd_sync(args) -> int:
    """Команда: синхронизация структуры."""
    config = ensure_valid(_load(args))
    catalog = LocaleCatalog(Path(args.root) / config.locales_path)
    result = catalog.sync(config.languages)
    console.print(f"\n[bold]Всего ключей: {result['total_keys']}[/bold]")
    _print_language_stats(result)
    return 0


def cmd_translate(args) -> int:
    """Команда: перевод пустых строк."""
    config = ensure_valid(_load(args))
    cache = _make_cache(config, args)
    result = translate_locales(
        Path(args.root) / config.locales_path,
        config.source_language, config.target_languages,
        batch_size=config.batch_size, concurrency=config.concurrency,
        cache=cache, on_progress=_progress,
    )
    for lang in result.languages:
        console.print(f"  {lang['code']}: переведено {lang['translated']}")
    _print_cache_stats(cache)
    _print_errors(result.errors)
    return 1 if result.errors else 0


def cmd_update(args) -> int:
    """Команда: sync + translate."""
    config = ensure_valid(_load(args))
    console.print(f"Исходный язык: {config.source_language}, "
                  f"целевые: {', '.join(config.target_languages)}")
    cache = _make_cache(config, args)
    result = update(
        Path(args.root) / config.locales_path,
        config.source_language, config.target_languages,
        batch_size=config.batch_size, concurrency=config.concurrency,
        cache=cache, on_progress=_progress,
    )
    console.print(f"\n[bold]Шаг 1/2: sync[/bold] - ключей: {result['sync']['total_keys']}")
    console.print("[bold]Шаг 2/2: translate[/bold]")
    for lang in result["translate"].languages:
        console.print(f"  {lang['code']}: переведено {lang['translated']}")
    _print_cache_stats(cache)
    _print_errors(result["translate"].errors)
    return 1 if result["translate"].errors else 0


def cmd_sort(args) -> int:
    """Команда: сортировка ключей."""
    config = _load(args)
    catalog = LocaleCatalog(Path(args.root) / config.locales_path)
    result = catalog.sort(args.languages or None, check=args.check)

    for lang in result.already_sorted:
        console.print(f"  [green]✓[/green] {lang}")
    for lang in result.sorted_files:
        mark = "[red]✗ не отсортирован[/red]" if args.check else "[yellow]отсортирован[/yellow]"
        console.print(f"  {lang}: {mark}")
    _print_errors(result.errors)

    if result.errors or (args.check and result.sorted_files):
        return 1
    return 0


def cmd_stats(args) -> int:
    """Команда: статистика переводов."""
    config = _load(args)
    catalog = LocaleCatalog(Path(args.root) / config.locales_path)
    languages = args.languages or catalog.list_locales()
    if not languages:
        console.print(f"[yellow]Файлы переводов не найдены в {catalog.locales_dir}[/yellow]")
        return 1

    stats = catalog.get_stats(languages)
    console.print(f"\n[bold]Всего ключей: {stats['total_keys']}[/bold]")
    _print_language_stats(stats)

    if args.namespaces:
        table = Table(title="По namespace", box=box.ROUNDED)
        table.add_column("Namespace", style="cyan")
        for lang in stats["languages"]:
            table.add_column(lang.code, justify="right")
        names = sorted({ns for lang in stats["languages"] for ns in lang.namespaces})
        for ns in names:
            row = [ns]
            for lang in stats["languages"]:
                counts = lang.namespaces.get(ns, {"filled": 0, "total": 0})
                row.append(f"{counts['filled']}/{counts['total']}")
            table.add_row(*row)
        console.print(table)
    return 0


def cmd_diff(args) -> int:
    """Команда: расхождения языков с исходным."""
    config = _load(args)
    catalog = LocaleCatalog(Path(args.root) / config.locales_path)
    results = catalog.diff(config.source_language, args.target_languages)
    if not results:
        console.print("[yellow]Нет целевых языков для сравнения[/yellow]")
        return 0

    table = Table(title=f"Сравнение с {config.source_language}", box=box.ROUNDED)
    table.add_column("Язык", style="cyan")
    table.add_column("Переведено", justify="right")
    table.add_column("Нет ключа", justify="right")
    table.add_column("Пусто", justify="right")
    table.add_column("Лишние", justify="right")
    table.add_column("%", justify="right")
    for diff in results:
        table.add_row(diff.target, str(diff.translated), str(len(diff.only_in_source)),
                      str(len(diff.empty_in_target)), str(len(diff.only_in_target)),
                      f"{diff.percent}%")
    console.print(table)

    if args.detailed:
        for diff in results:
            for title, keys in (("Нет в переводе", diff.only_in_source),
                                ("Пустые", diff.empty_in_target),
                                ("Лишние", diff.only_in_target)):
                if not keys:
                    continue
                console.print(f"\n[bold]{diff.target}: {title} ({len(keys)})[/bold]")
                for key in keys[:DETAIL_LIMIT]:
                    console.print(f"  - {escape(key)}", highlight=False)
                if len(keys) > DETAIL_LIMIT:
                    console.print(f"  [dim]... и ещё {len(keys) - DETAIL_LIMIT}[/dim]")
    return 0


def cmd_validate(args) -> int:
    """Команда: проверка файлов переводов."""
    config = _load(args)
    catalog = LocaleCatalog(Path(args.root) / config.locales_path)
    report = catalog.validate(config.source_language, args.languages, strict=args.strict)

    for lang, issues in report.by_language().items():
        console.print(f"\n[bold cyan]{lang.upper()}[/bold cyan]")
        ordered = sorted(issues, key=lambda i: i.severity is not Severity.ERROR)
        for issue in ordered[:DETAIL_LIMIT]:
            color = "red" if issue.severity is Severity.ERROR else "yellow"
            where = f"{escape(issue.key)}: " if issue.key else ""
            console.print(f"  [{color}]{issue.severity.value}[/{color}] {issue.type}  "
                          f"{where}{escape(issue.message)}", highlight=False)
        if len(issues) > DETAIL_LIMIT:
            console.print(f"  [dim]... и ещё {len(issues) - DETAIL_LIMIT}[/dim]")

    summary = f"ошибок: {report.error_count}, предупреждений: {report.warning_count}"
    if not report.valid:
        console.print(f"\n[red]✗ Проверка не пройдена ({summary})[/red]")
        return 1
    if report.warning_count:
        console.print(f"\n[yellow]Проверка пройдена с предупреждениями ({summary})[/yellow]")
    else:
        console.print("\n[green]✓ Проблем не найдено[/green]")
    return 0


def cmd_clean(args) -> int:
    """Команда: удаление неиспользуемых ключей."""
    config = _load(args)
    options = config.to_extract_options(Path(args.root))
    result = clean_unused(options, args.languages, dry_run=args.dry_run)

    console.print(f"\nКлючей в коде: {result.used_count}")
    for lang, count in result.removed_by_language.items():
        mark = f"[yellow]-{count}[/yellow]" if count else "[green]нет неиспользуемых[/green]"
        console.print(f"  {lang}: {mark}")
    for key in result.removed_keys[:DETAIL_LIMIT]:
        console.print(f"  [dim]-[/dim] {escape(key)}", highlight=False)
    if result.removed_count > DETAIL_LIMIT:
        console.print(f"  [dim]... и ещё {result.removed_count - DETAIL_LIMIT}[/dim]")
    _print_errors(result.errors)

    if args.dry_run:
        console.print(f"[yellow]Dry-run: будет удалено {result.removed_count} ключей[/yellow]")
    else:
        console.print(f"[green]Удалено ключей: {result.removed_count}[/green]")
    return 1 if result.errors and not args.dry_run else 0


# ============================================================================
# Парсер аргументов
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Строит парсер аргументов."""
    parser = argparse.ArgumentParser(
        prog="i18n-toolkit",
        description="Извлечение строк, синхронизация и перевод файлов локалей",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры:
  i18n-toolkit extract --mode extract --dry-run
  i18n-toolkit extract --mode validate
  i18n-toolkit update --to en kk
  i18n-toolkit sort --check
  i18n-toolkit validate --strict
  i18n-toolkit clean --dry-run
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--root", default=".", help="Корень проекта")
    parser.add_argument("-v", "--verbose", action="store_true", help="Подробный лог")

    subparsers = parser.add_subparsers(dest="command", help="Команда")

    # === init ===
    p_init = subparsers.add_parser("init", help="Создать шаблон конфигурации")
    p_init.add_argument("--force", action="store_true", help="Перезаписать существующий")

    # === extract ===
    p_extract = subparsers.add_parser("extract", help="Найти/извлечь строки")
    p_extract.add_argument("--mode", choices=MODES, default=MODE_REPORT, help="Режим")
    p_extract.add_argument("--dry-run", action="store_true", help="Не записывать файлы")
    p_extract.add_argument("--file", default=None, help="Обработать один файл")
    p_extract.add_argument("--include", default=None, help="Glob исходников")
    p_extract.add_argument("--locales-path", default=None, help="Директория локалей")
    p_extract.add_argument("--category", default=None, help="Категория новых ключей")
    p_extract.add_argument("--source-pattern", default=None, help="Regex исходного языка")
    p_extract.add_argument("--auto-getters", action="store_true",
                           help="Свойства объектов вне функций -> getter")
    p_extract.add_argument("--json", action="store_true", help="Вывод в JSON")

    # === find-missing ===
    p_missing = subparsers.add_parser("find-missing", help="Ключи без перевода")
    p_missing.add_argument("--include", default=None, help="Glob исходников")
    p_missing.add_argument("--locales-path", default=None, help="Директория локалей")

    # === sync / translate / update ===
    for name, help_text in (("sync", "Синхронизировать структуру"),
                            ("translate", "Перевести пустые строки"),
                            ("update", "sync + translate")):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--locales-path", default=None, help="Директория локалей")
        p.add_argument("--from", dest="source_language", default=None, help="Исходный язык")
        p.add_argument("--to", dest="target_languages", nargs="+", default=None,
                       help="Целевые языки")
        if name != "sync":
            p.add_argument("--batch-size", type=int, default=None, help="Размер батча")
            p.add_argument("--concurrency", type=int, default=None,
                           help="Одновременных батчей")
            p.add_argument("--no-cache", action="store_true", help="Без кеша переводов")
            p.add_argument("--clear-cache", action="store_true",
                           help="Очистить кеш переводов перед запуском")

    # === sort ===
    p_sort = subparsers.add_parser("sort", help="Сортировать ключи")
    p_sort.add_argument("--locales-path", default=None, help="Директория локалей")
    p_sort.add_argument("--languages", nargs="+", default=None, help="Языки")
    p_sort.add_argument("--check", action="store_true",
                        help="Только проверить (код 1, если есть несортированные)")

    # === stats ===
    p_stats = subparsers.add_parser("stats", help="Статистика переводов")
    p_stats.add_argument("--locales-path", default=None, help="Директория локалей")
    p_stats.add_argument("--languages", nargs="+", default=None, help="Языки")
    p_stats.add_argument("--namespaces", action="store_true", help="Разбивка по namespace")

    # === diff ===
    p_diff = subparsers.add_parser("diff", help="Сравнить языки с исходным")
    p_diff.add_argument("--locales-path", default=None, help="Директория локалей")
    p_diff.add_argument("--from", dest="source_language", default=None, help="Исходный язык")
    p_diff.add_argument("--to", dest="target_languages", nargs="+", default=None,
                        help="Целевые языки (по умолчанию все найденные)")
    p_diff.add_argument("--detailed", action="store_true", help="Показать ключи")

    # === validate ===
    p_validate = subparsers.add_parser("validate", help="Проверить файлы переводов")
    p_validate.add_argument("--locales-path", default=None, help="Директория локалей")
    p_validate.add_argument("--from", dest="source_language", default=None, help="Исходный язык")
    p_validate.add_argument("--languages", nargs="+", default=None, help="Языки")
    p_validate.add_argument("--strict", action="store_true",
                            help="Предупреждения считать ошибками")

    # === clean ===
    p_clean = subparsers.add_parser("clean", help="Удалить неиспользуемые ключи")
    p_clean.add_argument("--locales-path", default=None, help="Директория локалей")
    p_clean.add_argument("--include", default=None, help="Glob исходников")
    p_clean.add_argument("--languages", nargs="+", default=None, help="Языки")
    p_clean.add_argument("--dry-run", action="store_true", help="Только показать")

    return parser


COMMANDS = {
    "init": cmd_init,
    "extract": cmd_extract,
    "find-missing": cmd_find_missing,
    "sync": cmd_sync,
    "translate": cmd_translate,
    "update": cmd_update,
    "sort": cmd_sort,
    "stats": cmd_stats,
    "diff": cmd_diff,
    "validate": cmd_validate,
    "clean": cmd_clean,
}


def main(argv=None) -> int:
    """Точка входа CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    handler = COMMANDS[args.command]
    try:
        return handler(args)
    except I18nToolkitError as exc:
        logger.debug("Прогон прерван", exc_info=True)
        console.print(f"[red]✗ {escape(str(exc))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
