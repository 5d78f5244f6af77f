"""
Rewriter - замена литералов на вызовы функции перевода.

Работает в два прохода: во время обхода дерева планируются замены
(Replacement - диапазон байтов + что подставить), затем apply()
собирает новый текст. Дерево tree-sitter не мутируется, поэтому нет
проблем с инвалидацией обхода; вложенные замены (строка внутри
подстановки шаблона) рендерятся рекурсивно внутри внешней.

Виды замен:
- "Текст"             -> t("cat.key")
- `Привет, ${name}`   -> t("cat.key", { name })
- <p>Текст</p>        -> <p>{t("cat.key")}</p>
- title="Текст"       -> title={t("cat.key")}
- { label: "Текст" }  -> { get label() { return t("cat.key"); } }   (auto-getters)

Форматирование вне заменённых диапазонов не трогается; если замена
короче по числу строк, чем оригинал, она дополняется переводами строк,
чтобы номера строк ниже не сдвигались.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from tree_sitter import Node

from .errors import ParseError, RewriteError
from .interpolation import Binding
from .parser import Ancestors, SourceFile, parse, same_node

logger = logging.getLogger(__name__)

FUNCTION_SCOPE_TYPES = frozenset({
    "function_declaration", "function_expression", "function",
    "generator_function", "generator_function_declaration",
    "arrow_function", "method_definition",
})

WRAP_CALL = "call"
WRAP_JSX = "jsx"
WRAP_GETTER = "getter"


@dataclass
class Replacement:
    """Запланированная замена диапазона [start, end) исходника."""
    start: int
    end: int
    key: str
    bindings: List[Binding] = field(default_factory=list)
    wrap: str = WRAP_CALL
    getter_key: str = ""


def is_inside_function_scope(ancestors: Ancestors) -> bool:
    return any(a.type in FUNCTION_SCOPE_TYPES for a in ancestors)


def find_getter_property(node: Node, ancestors: Ancestors) -> Optional[Node]:
    """
    Свойство объекта, которое можно превратить в ленивый getter.

    Условия: литерал - непосредственное значение pair, ключ не вычисляемый,
    объект не находится внутри функции/метода/стрелочной функции.
    """
    if not ancestors:
        return None
    pair = ancestors[-1]
    if pair.type != "pair" or not same_node(pair.child_by_field_name("value"), node):
        return None
    key = pair.child_by_field_name("key")
    if key is None or key.type == "computed_property_name":
        return None
    if is_inside_function_scope(ancestors[:-1]):
        return None
    return pair


class TreeRewriter:
    """Планирует и применяет замены литералов в одном файле."""

    def __init__(self, source: SourceFile, translation_function: str = "t"):
        self.source = source
        self.translation_function = translation_function
        self.replacements: List[Replacement] = []

    @property
    def modified(self) -> bool:
        return bool(self.replacements)

    def rewrite(self, node: Node, ancestors: Ancestors, key: str,
                bindings: Optional[List[Binding]] = None,
                auto_getters: bool = False) -> Replacement:
        """
        Планирует замену литерала node вызовом функции перевода.

        Args:
            node: string / template_string / jsx_text
            ancestors: Цепочка предков node
            key: Сгенерированный полный ключ
            bindings: Привязки плейсхолдеров шаблона
            auto_getters: Заменять свойства объектов вне функций на getter
        """
        bindings = bindings or []

        if auto_getters and node.type != "jsx_text":
            pair = find_getter_property(node, ancestors)
            if pair is not None:
                return self._add(Replacement(
                    start=pair.start_byte, end=pair.end_byte, key=key,
                    bindings=bindings, wrap=WRAP_GETTER,
                    getter_key=self.source.text(pair.child_by_field_name("key")),
                ))

        if node.type == "jsx_text":
            return self.rewrite_jsx_text([node], key)

        parent = ancestors[-1] if ancestors else None
        wrap = WRAP_JSX if parent is not None and parent.type == "jsx_attribute" else WRAP_CALL
        return self._add(Replacement(
            start=node.start_byte, end=node.end_byte, key=key,
            bindings=bindings, wrap=wrap,
        ))

    def rewrite_jsx_text(self, run: List[Node], key: str) -> Replacement:
        """Заменяет серию текста JSX (текст + сущности) одним {t(...)}."""
        start, end = self._trimmed_range(run[0].start_byte, run[-1].end_byte)
        return self._add(Replacement(start=start, end=end, key=key, wrap=WRAP_JSX))

    def apply(self, verify: bool = True) -> str:
        """
        Собирает переписанный исходник.

        Raises:
            RewriteError: если исходник разбирался без ошибок,
                а результат - с ошибками
        """
        if not self.replacements:
            return self.source.source.decode("utf-8")

        reps = sorted(self.replacements, key=lambda r: (r.start, -r.end))
        code = self._render_range(0, len(self.source.source), reps).decode("utf-8")
        logger.debug("%s: замен %d", self.source.path, len(reps))

        if verify and not self.source.has_errors:
            try:
                broken = parse(code, self.source.path).has_errors
            except ParseError as exc:
                raise RewriteError(self.source.path, exc.message) from exc
            if broken:
                raise RewriteError(self.source.path)
        return code

    # ── Внутреннее ──

    def _add(self, replacement: Replacement) -> Replacement:
        self.replacements.append(replacement)
        return replacement

    def _trimmed_range(self, start: int, end: int):
        text = self.source.slice(start, end)
        lead = text[:len(text) - len(text.lstrip())]
        trail = text[len(text.rstrip()):]
        return start + len(lead.encode("utf-8")), end - len(trail.encode("utf-8"))

    def _render_range(self, start: int, end: int, reps: List[Replacement]) -> bytes:
        src = self.source.source
        out = []
        pos = start
        for rep in reps:
            if rep.start < pos or rep.start < start or rep.end > end:
                continue
            out.append(src[pos:rep.start])
            out.append(self._build(rep, reps))
            pos = rep.end
        out.append(src[pos:end])
        return b"".join(out)

    def _build(self, rep: Replacement, reps: List[Replacement]) -> bytes:
        call = self._lookup_call(rep, reps)
        if rep.wrap == WRAP_JSX:
            code = "{" + call + "}"
        elif rep.wrap == WRAP_GETTER:
            code = f"get {rep.getter_key}() {{ return {call}; }}"
        else:
            code = call

        original_lines = self.source.source.count(b"\n", rep.start, rep.end)
        missing = original_lines - code.count("\n")
        if missing > 0:
            code += "\n" * missing
        return code.encode("utf-8")

    def _lookup_call(self, rep: Replacement, reps: List[Replacement]) -> str:
        args = [json.dumps(rep.key, ensure_ascii=False)]
        if rep.bindings:
            props = []
            for binding in rep.bindings:
                if binding.shorthand:
                    props.append(binding.name)
                    continue
                expr = binding.expression
                value = self._render_range(expr.start_byte, expr.end_byte, reps)
                props.append(f"{binding.name}: {value.decode('utf-8')}")
            args.append("{ " + ", ".join(props) + " }")
        return f"{self.translation_function}({', '.join(args)})"
