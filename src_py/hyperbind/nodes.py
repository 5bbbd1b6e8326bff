"""The node tree. Every expression-bearing field is typed as
``str | BindingExpression``: the raw source text until the resolver has
run, and the resolved binding afterwards. Resolving an already-resolved
field is a noop.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Annotated

from docnote import Note

from hyperbind.expressions import MapSignature
from hyperbind.paths import BindingExpression

type ExpressionText = str | BindingExpression

type Node = Element | Text | Map | Condition | Logical | Meta
type AttributeBinding = (
    StaticString
    | DynamicString
    | BooleanAttribute
    | EventAttribute
    | ObjectEntries
    | ArrayList)


@dataclass(frozen=True, slots=True)
class StaticString:
    value: str


@dataclass(frozen=True, slots=True)
class DynamicString:
    """A string value containing at least one expression. Within an
    attribute value or list item, the raw form is value text
    (``btn-${x}``); within an object entry, it's a bare expression.
    """
    value: ExpressionText


@dataclass(frozen=True, slots=True)
class BooleanAttribute:
    value: Annotated[
        bool | ExpressionText,
        Note('''Either a literal presence flag, or the guard expression
            that decides whether the attribute is present.''')]
    negated: Annotated[
        bool,
        Note('''True if the attribute is present when the guard is
            falsy, as for the second branch of a ``${c ? "a" : "b"}``
            toggle.''')
        ] = False


@dataclass(frozen=True, slots=True)
class EventAttribute:
    handler: Annotated[
        ExpressionText,
        Note('''The handler expression, kept as a verbatim function
            literal (``() => core.save()``) or a reference to one.''')]
    update_keys: Annotated[
        tuple[str, ...],
        Note('''Keys of any ``update({...})`` calls within the handler.''')
        ] = ()


@dataclass(frozen=True, slots=True)
class ObjectEntries:
    entries: Mapping[str, StaticString | DynamicString]


@dataclass(frozen=True, slots=True)
class ArrayList:
    items: tuple[StaticString | DynamicString, ...]


@dataclass(frozen=True, slots=True)
class Element:
    tag: str
    raw_attributes: str
    children: tuple[Node, ...] = ()
    attributes: Annotated[
        Mapping[str, AttributeBinding] | None,
        Note('''None until the attribute classifier has run.''')
        ] = None


@dataclass(frozen=True, slots=True)
class Meta:
    """An element whose tag name is itself an expression, for example
    ``<meta-${core.tag}>``.
    """
    tag_expr: ExpressionText
    raw_attributes: str
    children: tuple[Node, ...] = ()
    attributes: Mapping[str, AttributeBinding] | None = None


@dataclass(frozen=True, slots=True)
class Text:
    content: ExpressionText


@dataclass(frozen=True, slots=True)
class Map:
    """An iteration. The children are the body of the iteration, which
    is rendered once per item of ``source``.
    """
    source: ExpressionText
    signature: MapSignature
    children: tuple[Node, ...] = ()


@dataclass(frozen=True, slots=True)
class Condition:
    """A ternary. Else-if chains are encoded as a condition whose false
    branch is another condition.
    """
    guard: ExpressionText
    true_branch: Node
    false_branch: Node


@dataclass(frozen=True, slots=True)
class Logical:
    """``guard && child``: renders the child only when the guard is
    truthy. There is never a false branch.
    """
    guard: ExpressionText
    child: Node
