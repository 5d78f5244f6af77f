"""
Parser - разбор JS/TS/JSX исходников в синтаксическое дерево (tree-sitter).

Грамматики:
- .ts             -> typescript
- .tsx            -> tsx (typescript + JSX)
- .js/.jsx/.mjs/.cjs -> javascript (включая JSX)

Все грамматики поддерживают декораторы, optional chaining, ??,
динамический import. tree-sitter восстанавливается после локальных
синтаксических ошибок (узлы ERROR); ParseError выбрасывается, только
если разобрать файл не удалось вообще.

Обход дерева - через явный стек предков (walk), поэтому правила
исключений - чистые функции от (node, ancestors).
"""

import html
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import tree_sitter_javascript as ts_javascript
import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Node, Parser, Tree

from .errors import ParseError

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = frozenset({".ts", ".mts", ".cts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"})

Ancestors = Tuple[Node, ...]

_PARSERS: Optional[Dict[str, Parser]] = None


def _get_parsers() -> Dict[str, Parser]:
    """Ленивая инициализация парсеров (по одному на расширение)."""
    global _PARSERS
    if _PARSERS is None:
        ts_lang = Language(ts_typescript.language_typescript())
        tsx_lang = Language(ts_typescript.language_tsx())
        js_lang = Language(ts_javascript.language())
        _PARSERS = {
            ".ts": Parser(ts_lang),
            ".mts": Parser(ts_lang),
            ".cts": Parser(ts_lang),
            ".tsx": Parser(tsx_lang),
            ".js": Parser(js_lang),
            ".jsx": Parser(js_lang),
            ".mjs": Parser(js_lang),
            ".cjs": Parser(js_lang),
        }
    return _PARSERS


@dataclass
class SourceFile:
    """Разобранный файл: исходные байты + дерево."""
    path: str
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        return self.tree.root_node.has_error

    def text(self, node: Node) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8")

    def slice(self, start: int, end: int) -> str:
        return self.source[start:end].decode("utf-8")


def parse(source_text: str, file_name: str = "input.tsx") -> SourceFile:
    """
    Разбирает исходный текст.

    Args:
        source_text: Текст файла
        file_name: Имя файла - по расширению выбирается грамматика
            (неизвестное расширение -> tsx, как самая широкая)

    Raises:
        ParseError: если дерево построить не удалось
    """
    suffix = Path(file_name).suffix.lower()
    parser = _get_parsers().get(suffix) or _get_parsers()[".tsx"]

    source = source_text.encode("utf-8")
    tree = parser.parse(source)
    if tree is None or tree.root_node is None:
        raise ParseError(file_name, "parser returned no tree")

    root = tree.root_node
    if root.type == "ERROR" or (root.has_error and not root.named_children):
        raise ParseError(file_name, "unrecoverable syntax error")
    if root.has_error:
        logger.debug("Синтаксические ошибки в %s, разбор с восстановлением", file_name)

    return SourceFile(path=file_name, source=source, tree=tree)


def walk(root: Node) -> Iterator[Tuple[Node, Ancestors]]:
    """
    Обход в глубину в порядке исходника.

    Yields:
        (node, ancestors) - ancestors от корня к непосредственному родителю
    """
    stack = [(root, ())]
    while stack:
        node, ancestors = stack.pop()
        yield node, ancestors
        path = ancestors + (node,)
        for child in reversed(node.children):
            stack.append((child, path))


def same_node(a: Optional[Node], b: Optional[Node]) -> bool:
    if a is None or b is None:
        return False
    return (a.start_byte, a.end_byte, a.type) == (b.start_byte, b.end_byte, b.type)


def node_line(node: Node) -> int:
    """Номер строки (с 1)."""
    return node.start_point[0] + 1


_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
}
_LINE_CONTINUATIONS = ("\n", "\r\n", "\r", "\u2028", "\u2029")
_ESCAPE_RE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|[\s\S])"
)


def _unescape_match(match: "re.Match") -> str:
    seq = match.group(1)
    if seq.startswith("u{"):
        return chr(int(seq[2:-1], 16))
    if seq[0] in "ux" and len(seq) > 1:
        return chr(int(seq[1:], 16))
    if seq in _LINE_CONTINUATIONS:
        return ""
    return _SIMPLE_ESCAPES.get(seq, seq)


def unescape_js(raw: str) -> str:
    """Раскрывает escape-последовательности строкового литерала JS."""
    value = _ESCAPE_RE.sub(_unescape_match, raw)
    # \uD83D\uDE00 -> одна кодовая точка
    return value.encode("utf-16", "surrogatepass").decode("utf-16", "replace")


def string_value(node: Node, source: SourceFile, jsx: bool = False) -> str:
    """
    Значение строкового литерала без кавычек.

    В атрибутах JSX escape-последовательности не обрабатываются.
    """
    raw = source.text(node)
    if len(raw) >= 2 and raw[0] in "'\"" and raw[-1] == raw[0]:
        raw = raw[1:-1]
    return raw if jsx else unescape_js(raw)


def node_text(node: Node) -> str:
    """Текст узла (дерево строится из байтов, поэтому node.text доступен)."""
    return node.text.decode("utf-8")


def callee_name(call: Node) -> Optional[str]:
    """
    Имя вызываемой функции/конструктора: 'console.log', 'Error', 't'.

    Для call_expression берётся поле function, для new_expression - constructor.
    Сложные выражения (a.b.c, вызовы) имени не имеют.
    """
    if call.type == "call_expression":
        callee = call.child_by_field_name("function")
    elif call.type == "new_expression":
        callee = call.child_by_field_name("constructor")
    else:
        return None
    if callee is None:
        return None

    if callee.type == "identifier":
        return node_text(callee)
    if callee.type == "member_expression":
        obj = callee.child_by_field_name("object")
        prop = callee.child_by_field_name("property")
        if obj is not None and prop is not None and obj.type == "identifier" \
                and prop.type == "property_identifier":
            return f"{node_text(obj)}.{node_text(prop)}"
    return None


JSX_TEXT_TYPES = ("jsx_text", "html_character_reference")


def jsx_text_run(node: Node, ancestors: Ancestors) -> Optional[List[Node]]:
    """
    Серия соседних детей JSX-элемента: текст и сущности (&nbsp; &laquo;).

    tree-sitter режет "Привет&nbsp;мир" на три узла; для перевода это
    один текст. Возвращает серию, если node - её первый узел, иначе None.
    """
    parent = ancestors[-1] if ancestors else None
    if node.type not in JSX_TEXT_TYPES or parent is None or not parent.type.startswith("jsx_"):
        return None
    prev = node.prev_sibling
    if prev is not None and prev.type in JSX_TEXT_TYPES:
        return None

    run = [node]
    sibling = node.next_sibling
    while sibling is not None and sibling.type in JSX_TEXT_TYPES:
        run.append(sibling)
        sibling = sibling.next_sibling
    return run


def jsx_text_value(run: List[Node], source: SourceFile) -> str:
    """Текст серии с раскрытыми HTML-сущностями, без пробелов по краям."""
    return html.unescape(source.slice(run[0].start_byte, run[-1].end_byte)).strip()
