"""
Exclusions - правила, по которым литерал НЕ извлекается.

Каждое правило - чистая функция (node, ancestors, config) -> bool,
где ancestors - цепочка предков от корня к родителю (см. parser.walk).
Литерал исключается, если сработало хотя бы одно правило:

1. lookup_call       - внутри вызова t()/i18n.t() (уже обёрнут)
2. skipped_call      - внутри console.*/Error(...)/new Error(...) или throw
3. jsx_attribute     - значение технического JSX-атрибута (className, href...)
4. module_specifier  - import/export источник или спецификатор
5. object_key        - позиция ключа объекта/свойства (не значение)
6. type_position     - литеральный тип TS, член enum
7. case_label        - метка case в switch
8. tagged_template   - шаблон тегированного вызова (gql`...`, css`...`)
9. error_region      - внутри нераспознанного фрагмента (узел ERROR)
"""

from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Tuple

from tree_sitter import Node

from .parser import Ancestors, callee_name, node_text, same_node

DEFAULT_TRANSLATION_FUNCTION = "t"

# Объекты, у которых метод t тоже считается функцией перевода
LOOKUP_OBJECTS = ("i18n", "i18next")

DEFAULT_SKIP_CALLEES: FrozenSet[str] = frozenset({
    "console.log", "console.warn", "console.error", "console.info",
    "console.debug", "console.trace",
    "Error", "TypeError", "RangeError", "SyntaxError", "ReferenceError",
})

DEFAULT_SKIP_JSX_ATTRIBUTES: FrozenSet[str] = frozenset({
    "className", "class", "id", "name", "type", "href", "src", "alt",
    "data-testid", "data-cy", "data-test", "htmlFor", "key", "ref", "style",
    "target", "rel", "role", "tabIndex", "autoComplete", "inputMode", "pattern",
})

# (тип родителя, поле) - позиции, где литерал является ключом/именем
_KEY_FIELDS = {
    "pair": "key",
    "method_definition": "name",
    "field_definition": "property",
    "public_field_definition": "name",
    "property_signature": "name",
    "method_signature": "name",
    "abstract_method_signature": "name",
}

_MODULE_SOURCE_PARENTS = ("import_statement", "export_statement", "import_require_clause")
_SPECIFIER_PARENTS = ("import_specifier", "export_specifier",
                      "namespace_import", "namespace_export")


@dataclass(frozen=True)
class ExclusionConfig:
    """Настройки правил исключения."""
    translation_function: str = DEFAULT_TRANSLATION_FUNCTION
    skip_callees: FrozenSet[str] = DEFAULT_SKIP_CALLEES
    skip_jsx_attributes: FrozenSet[str] = DEFAULT_SKIP_JSX_ATTRIBUTES

    def is_lookup_name(self, name: Optional[str]) -> bool:
        if not name:
            return False
        if name == self.translation_function:
            return True
        return any(name == f"{obj}.{self.translation_function}" for obj in LOOKUP_OBJECTS)


def _parent(ancestors: Ancestors) -> Optional[Node]:
    return ancestors[-1] if ancestors else None


def _field_is(parent: Optional[Node], field_name: str, node: Node) -> bool:
    return parent is not None and same_node(parent.child_by_field_name(field_name), node)


def is_inside_lookup_call(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    return any(
        a.type == "call_expression" and config.is_lookup_name(callee_name(a))
        for a in ancestors
    )


def is_inside_skipped_call(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    for a in ancestors:
        if a.type == "throw_statement":
            return True
        if a.type in ("call_expression", "new_expression") \
                and callee_name(a) in config.skip_callees:
            return True
    return False


def jsx_attribute_name(node: Node, ancestors: Ancestors) -> Optional[str]:
    """Имя JSX-атрибута, значением которого является литерал (или None)."""
    parent = _parent(ancestors)
    if parent is not None and parent.type == "jsx_expression" and len(ancestors) > 1:
        parent = ancestors[-2]
    if parent is None or parent.type != "jsx_attribute" or not parent.named_children:
        return None
    return node_text(parent.named_children[0])


def is_skipped_jsx_attribute(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    return jsx_attribute_name(node, ancestors) in config.skip_jsx_attributes


def is_module_specifier(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    parent = _parent(ancestors)
    if parent is None:
        return False
    if parent.type in _SPECIFIER_PARENTS:
        return True
    if parent.type in _MODULE_SOURCE_PARENTS and _field_is(parent, "source", node):
        return True
    if parent.type == "module" and _field_is(parent, "name", node):
        return True
    # import("./module")
    if parent.type == "arguments" and len(ancestors) > 1:
        call = ancestors[-2]
        func = call.child_by_field_name("function") if call.type == "call_expression" else None
        return func is not None and func.type == "import"
    return False


def is_object_key(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    parent = _parent(ancestors)
    if parent is None:
        return False
    if parent.type == "computed_property_name":
        return True
    field_name = _KEY_FIELDS.get(parent.type)
    return field_name is not None and _field_is(parent, field_name, node)


def is_type_position(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    parent = _parent(ancestors)
    if parent is None:
        return False
    return parent.type in ("literal_type", "enum_assignment", "enum_body")


def is_case_label(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    parent = _parent(ancestors)
    return parent is not None and parent.type == "switch_case" \
        and _field_is(parent, "value", node)


def is_tagged_template(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    parent = _parent(ancestors)
    return node.type == "template_string" and parent is not None \
        and parent.type == "call_expression" and _field_is(parent, "arguments", node)


def is_inside_error_region(node: Node, ancestors: Ancestors, config: ExclusionConfig) -> bool:
    return any(a.type == "ERROR" for a in ancestors)


Rule = Callable[[Node, Ancestors, ExclusionConfig], bool]

RULES: Tuple[Tuple[str, Rule], ...] = (
    ("lookup_call", is_inside_lookup_call),
    ("skipped_call", is_inside_skipped_call),
    ("jsx_attribute", is_skipped_jsx_attribute),
    ("module_specifier", is_module_specifier),
    ("object_key", is_object_key),
    ("type_position", is_type_position),
    ("case_label", is_case_label),
    ("tagged_template", is_tagged_template),
    ("error_region", is_inside_error_region),
)


def exclusion_reason(node: Node, ancestors: Ancestors,
                     config: Optional[ExclusionConfig] = None) -> Optional[str]:
    """Имя первого сработавшего правила или None."""
    config = config or ExclusionConfig()
    for name, rule in RULES:
        if rule(node, ancestors, config):
            return name
    return None


def is_excluded(node: Node, ancestors: Ancestors,
                config: Optional[ExclusionConfig] = None) -> bool:
    return exclusion_reason(node, ancestors, config) is not None
