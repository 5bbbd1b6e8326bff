"""Rewrites every expression in a node tree into a ``BindingExpression``:
a template with positional placeholders, plus the data path each
placeholder is bound to.

There are two rewriting modes, depending on where the expression came
from:
++  value text (text nodes, attribute values, meta tag names), where
    only the embedded ``${...}`` segments are code, and references
    within them become ``[i]``
++  bare expressions (guards, map sources, event handlers, object
    entries), where the whole thing is code, and references become
    ``${[i]}``.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import replace as dc_replace
from functools import singledispatch

from hyperbind._error_collector import ErrorCollector
from hyperbind._lexing import iter_value_segments
from hyperbind.attributes import classify
from hyperbind.config import DEFAULT_COMPILE_CONFIG
from hyperbind.config import CompileConfig
from hyperbind.exceptions import ScopeDepthError
from hyperbind.exceptions import UnknownRootError
from hyperbind.expressions import MapSignature
from hyperbind.expressions import Reference
from hyperbind.expressions import iter_references
from hyperbind.expressions import match_string_literal
from hyperbind.nodes import ArrayList
from hyperbind.nodes import AttributeBinding
from hyperbind.nodes import BooleanAttribute
from hyperbind.nodes import Condition
from hyperbind.nodes import DynamicString
from hyperbind.nodes import Element
from hyperbind.nodes import EventAttribute
from hyperbind.nodes import ExpressionText
from hyperbind.nodes import Logical
from hyperbind.nodes import Map
from hyperbind.nodes import Meta
from hyperbind.nodes import Node
from hyperbind.nodes import ObjectEntries
from hyperbind.nodes import StaticString
from hyperbind.nodes import Text
from hyperbind.paths import Absolute
from hyperbind.paths import BindingExpression
from hyperbind.paths import IndexRelative
from hyperbind.paths import ItemRelative
from hyperbind.paths import ResolvedPath

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Scope:
    """One frame per enclosing ``.map()``. Frames are immutable and
    linked to their parent, so entering a map is just creating a new
    frame; there's nothing to undo on the way back out.
    """
    item_alias: str | None
    index_alias: str | None = None
    destructured: tuple[tuple[str, str], ...] = ()
    parent: Scope | None = None

    @classmethod
    def from_signature(
            cls,
            signature: MapSignature,
            parent: Scope | None
            ) -> Scope:
        return cls(
            item_alias=signature.item_alias,
            index_alias=signature.index_alias,
            destructured=signature.destructured,
            parent=parent)

    @property
    def depth(self) -> int:
        depth = 1
        frame = self.parent
        while frame is not None:
            depth += 1
            frame = frame.parent

        return depth


def scope_depth(scope: Scope | None) -> int:
    return 0 if scope is None else scope.depth


@dataclass(frozen=True, slots=True)
class _ResolveContext:
    config: CompileConfig
    errors: ErrorCollector


class _PlaceholderTable:
    """Assigns placeholder indices in first-occurrence order. A path
    that has already been seen within the same binding reuses its
    index.
    """

    def __init__(self):
        self.paths: list[ResolvedPath] = []

    def index_of(self, path: ResolvedPath) -> int:
        try:
            return self.paths.index(path)
        except ValueError:
            self.paths.append(path)
            return len(self.paths) - 1


def resolve(
        nodes: Sequence[Node],
        config: CompileConfig = DEFAULT_COMPILE_CONFIG,
        errors: ErrorCollector | None = None,
        *,
        scope: Scope | None = None
        ) -> tuple[Node, ...]:
    """Resolves every expression within the tree. Elements that haven't
    been through the attribute classifier yet are classified first.

    References to unknown roots don't abort resolution; the binding
    containing them is kept as raw text, and the ``UnknownRootError``
    is appended to ``errors``. Resolving an already-resolved tree
    returns an equal tree.
    """
    if errors is None:
        errors = ErrorCollector(max_errors=config.max_errors)

    context = _ResolveContext(config=config, errors=errors)
    return tuple(_resolve_node(node, scope, context) for node in nodes)


@singledispatch
def _resolve_node(node, scope: Scope | None, context: _ResolveContext):
    raise TypeError('Unknown node type!', node)


@_resolve_node.register
def _(node: Element, scope: Scope | None, context: _ResolveContext):
    return dc_replace(
        node,
        attributes=_resolve_attributes(node, scope, context),
        children=tuple(
            _resolve_node(child, scope, context) for child in node.children))


@_resolve_node.register
def _(node: Meta, scope: Scope | None, context: _ResolveContext):
    return dc_replace(
        node,
        tag_expr=resolve_value_text(node.tag_expr, scope, context),
        attributes=_resolve_attributes(node, scope, context),
        children=tuple(
            _resolve_node(child, scope, context) for child in node.children))


@_resolve_node.register
def _(node: Text, scope: Scope | None, context: _ResolveContext):
    return dc_replace(
        node, content=resolve_value_text(node.content, scope, context))


@_resolve_node.register
def _(node: Map, scope: Scope | None, context: _ResolveContext):
    # The source is iterated in the enclosing scope, not its own
    source = resolve_bare_expression(node.source, scope, context)
    inner_scope = Scope.from_signature(node.signature, scope)
    return dc_replace(
        node,
        source=source,
        children=tuple(
            _resolve_node(child, inner_scope, context)
            for child in node.children))


@_resolve_node.register
def _(node: Condition, scope: Scope | None, context: _ResolveContext):
    return dc_replace(
        node,
        guard=resolve_bare_expression(node.guard, scope, context),
        true_branch=_resolve_node(node.true_branch, scope, context),
        false_branch=_resolve_node(node.false_branch, scope, context))


@_resolve_node.register
def _(node: Logical, scope: Scope | None, context: _ResolveContext):
    return dc_replace(
        node,
        guard=resolve_bare_expression(node.guard, scope, context),
        child=_resolve_node(node.child, scope, context))


def _resolve_attributes(
        node: Element | Meta,
        scope: Scope | None,
        context: _ResolveContext
        ) -> dict[str, AttributeBinding]:
    attributes = node.attributes
    if attributes is None:
        attributes = classify(
            node.raw_attributes, context.config, context.errors)

    return {
        name: _resolve_attribute(binding, scope, context)
        for name, binding in attributes.items()}


def _resolve_attribute(
        binding: AttributeBinding,
        scope: Scope | None,
        context: _ResolveContext
        ) -> AttributeBinding:
    if isinstance(binding, StaticString):
        return binding

    elif isinstance(binding, DynamicString):
        return DynamicString(
            resolve_value_text(binding.value, scope, context))

    elif isinstance(binding, BooleanAttribute):
        if isinstance(binding.value, bool):
            return binding

        return dc_replace(
            binding,
            value=resolve_bare_expression(binding.value, scope, context))

    elif isinstance(binding, EventAttribute):
        return dc_replace(
            binding,
            handler=resolve_bare_expression(binding.handler, scope, context))

    elif isinstance(binding, ObjectEntries):
        return ObjectEntries(_resolve_entries(binding.entries, scope, context))

    elif isinstance(binding, ArrayList):
        return ArrayList(tuple(
            _resolve_attribute(item, scope, context)  # type: ignore[misc]
            for item in binding.items))

    else:
        raise TypeError('Unknown attribute binding type!', binding)


def _resolve_entries(
        entries: Mapping[str, StaticString | DynamicString],
        scope: Scope | None,
        context: _ResolveContext
        ) -> dict[str, StaticString | DynamicString]:
    resolved: dict[str, StaticString | DynamicString] = {}
    for key, entry in entries.items():
        if isinstance(entry, StaticString):
            resolved[key] = entry
        else:
            # Object entry values are code, not value text
            resolved[key] = DynamicString(
                resolve_bare_expression(entry.value, scope, context))

    return resolved


def resolve_value_text(
        text: ExpressionText,
        scope: Scope | None,
        context: _ResolveContext
        ) -> ExpressionText:
    """Resolves text that may contain embedded ``${...}`` segments. Text
    without any (or whose only segments are string literals) stays a
    plain string.
    """
    if isinstance(text, BindingExpression):
        return text

    placeholders = _PlaceholderTable()
    pieces: list[str] = []
    has_expression = False
    try:
        for start, end, is_expression in iter_value_segments(text):
            segment = text[start:end]
            if not is_expression:
                pieces.append(segment)
                continue

            expression = segment[2:-1]
            literal = match_string_literal(expression)
            if literal is not None:
                pieces.append(literal)
                continue

            has_expression = True
            rewritten = _rewrite_references(
                expression, scope, context, placeholders, bare=False)
            pieces.append(f'${{{rewritten}}}')

    except UnknownRootError as exc:
        return _degrade(text, exc, context)

    if not has_expression:
        return ''.join(pieces)

    return BindingExpression(''.join(pieces), tuple(placeholders.paths))


def resolve_bare_expression(
        expression: ExpressionText,
        scope: Scope | None,
        context: _ResolveContext
        ) -> BindingExpression:
    if isinstance(expression, BindingExpression):
        return expression

    placeholders = _PlaceholderTable()
    try:
        template = _rewrite_references(
            expression.strip(), scope, context, placeholders, bare=True)
    except UnknownRootError as exc:
        return _degrade(expression, exc, context)

    return BindingExpression(template, tuple(placeholders.paths))


def _degrade(
        raw_text: str,
        exc: UnknownRootError,
        context: _ResolveContext
        ) -> BindingExpression:
    logger.warning(
        'Unknown root %s in %r; keeping the binding as raw text',
        exc.root, raw_text)
    exc.add_note(f'Within binding: {raw_text!r}')
    context.errors.append(exc)
    return BindingExpression(raw_text, (), unresolved=True)


def _rewrite_references(
        expression: str,
        scope: Scope | None,
        context: _ResolveContext,
        placeholders: _PlaceholderTable,
        *,
        bare: bool
        ) -> str:
    config = context.config
    pieces: list[str] = []
    last_end = 0
    for reference in iter_references(expression):
        if (
            reference.called
            and len(reference.segments) > 1
            and reference.segments[-1] in config.builtin_methods
        ):
            reference = reference.truncated(len(reference.segments) - 1)

        resolved = _resolve_reference(reference, scope, config, expression)
        if resolved is None:
            continue

        path, consumed_end = resolved
        index = placeholders.index_of(path)
        pieces.append(expression[last_end:reference.start])
        if bare and not reference.interpolated:
            pieces.append(f'${{[{index}]}}')
        else:
            pieces.append(f'[{index}]')
        last_end = consumed_end

    pieces.append(expression[last_end:])
    return ''.join(pieces)


def _resolve_reference(
        reference: Reference,
        scope: Scope | None,
        config: CompileConfig,
        expression: str
        ) -> tuple[ResolvedPath, int] | None:
    """Returns the path the reference binds to, along with the offset
    within the expression where the bound part of the reference ends.
    Returns None for names that aren't data references at all.
    """
    root = reference.root
    rest = reference.segments[1:]

    ups = 0
    frame = scope
    while frame is not None:
        if root == frame.item_alias:
            return _item_path(ups, rest, scope), reference.end

        for local_name, key in frame.destructured:
            if root == local_name:
                return _item_path(ups, (key, *rest), scope), reference.end

        # Index aliases are numbers; any properties of them stay literal
        if root == frame.index_alias:
            return _index_path(ups, scope), reference.segment_ends[0]

        ups += 1
        frame = frame.parent

    if root in config.roots:
        return Absolute(root, rest), reference.end

    if root in config.free_names:
        return None

    if config.default_root is not None:
        return Absolute(config.default_root, reference.segments), reference.end

    raise UnknownRootError(root, expression)


def _item_path(
        ups: int,
        segments: tuple[str, ...],
        scope: Scope | None
        ) -> ItemRelative:
    _check_depth(ups, scope)
    return ItemRelative(ups, segments)


def _index_path(ups: int, scope: Scope | None) -> IndexRelative:
    _check_depth(ups, scope)
    return IndexRelative(ups)


def _check_depth(ups: int, scope: Scope | None):
    depth = scope_depth(scope)
    if ups >= depth:
        raise ScopeDepthError(
            'Loop-relative path points past the outermost loop!', ups, depth)
