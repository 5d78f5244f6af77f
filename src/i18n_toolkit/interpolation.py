"""
Interpolation - нормализация шаблонных строк с подстановками.

    `Привет, ${name}! У вас ${items.length} писем`
        -> "Привет, {{name}}! У вас {{arg1}} писем"
        -> bindings: [("name", name), ("arg1", items.length)]

Имя плейсхолдера - имя идентификатора, если выражение - голый
идентификатор, иначе позиционное arg{N} (N - индекс выражения).
Формат плейсхолдера строгий: двойные фигурные скобки без пробелов.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from tree_sitter import Node

from .parser import SourceFile, node_text


@dataclass
class Binding:
    """Привязка плейсхолдера к выражению исходника."""
    name: str
    expression: Node

    @property
    def shorthand(self) -> bool:
        return self.expression.type == "identifier" and node_text(self.expression) == self.name


@dataclass
class TemplateParts:
    """Шаблон, разложенный на текстовые куски и выражения."""
    quasis: List[str] = field(default_factory=list)
    expressions: List[Node] = field(default_factory=list)

    @property
    def joined(self) -> str:
        """Текст для проверки паттерном (как в исходном шаблоне, без выражений)."""
        return "{{}}".join(self.quasis)


def split_template(node: Node, source: SourceFile) -> TemplateParts:
    """Раскладывает template_string на сырые куски текста и выражения."""
    parts = TemplateParts()
    pos = node.start_byte + 1
    for child in node.named_children:
        if child.type != "template_substitution":
            continue
        parts.quasis.append(source.slice(pos, child.start_byte))
        expressions = [c for c in child.named_children if c.type != "comment"]
        if expressions:
            parts.expressions.append(expressions[0])
        pos = child.end_byte
    parts.quasis.append(source.slice(pos, node.end_byte - 1))
    return parts


def placeholder(name: str) -> str:
    return "{{" + name + "}}"


def extract_interpolations(parts: TemplateParts) -> Tuple[str, List[Binding]]:
    """
    Строит нормализованный текст и список привязок.

    Одинаковые идентификаторы дают одну привязку; если имя уже занято
    другим выражением, используется позиционное arg{N}.
    """
    text = []
    bindings: List[Binding] = []
    taken = {}

    for i, quasi in enumerate(parts.quasis):
        text.append(quasi)
        if i >= len(parts.expressions):
            continue
        expr = parts.expressions[i]
        source_text = node_text(expr)
        name = source_text if expr.type == "identifier" else f"arg{i}"

        n = i
        while name in taken and taken[name] != source_text:
            name = f"arg{n}"
            n += 1

        if name not in taken:
            taken[name] = source_text
            bindings.append(Binding(name=name, expression=expr))
        text.append(placeholder(name))

    return "".join(text), bindings
