"""Converts a resolved node tree into the plain dict/list structure that
the downstream renderer consumes.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

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
from hyperbind.paths import BindingExpression

type SerializedBinding = dict[str, Any]


def serialize_json(
        nodes: Sequence[Node],
        indent: int | None = None
        ) -> str:
    return json.dumps(serialize_nodes(nodes), indent=indent, ensure_ascii=False)


def serialize_nodes(nodes: Sequence[Node]) -> list[dict[str, Any]]:
    return [serialize_node(node) for node in nodes]


def serialize_node(node: Node) -> dict[str, Any]:
    if isinstance(node, Element):
        serialized: dict[str, Any] = {'type': 'el', 'tag': node.tag}
        _add_children(serialized, node.children)
        _add_attributes(serialized, node.attributes)
        return serialized

    elif isinstance(node, Meta):
        serialized = {'type': 'meta', 'tag': _value_or_binding(node.tag_expr)}
        _add_children(serialized, node.children)
        _add_attributes(serialized, node.attributes)
        return serialized

    elif isinstance(node, Text):
        if isinstance(node.content, str):
            return {'type': 'text', 'value': node.content}
        return {'type': 'text', **serialize_binding(node.content)}

    elif isinstance(node, Map):
        serialized = {'type': 'map', **_binding_of(node.source)}
        _add_children(serialized, node.children)
        return serialized

    elif isinstance(node, Condition):
        return {
            'type': 'cond',
            **_binding_of(node.guard),
            'child': [
                serialize_node(node.true_branch),
                serialize_node(node.false_branch)]}

    elif isinstance(node, Logical):
        return {
            'type': 'log',
            **_binding_of(node.guard),
            'child': [serialize_node(node.child)]}

    else:
        raise TypeError('Unknown node type!', node)


def serialize_binding(binding: BindingExpression) -> SerializedBinding:
    """Renders a binding in its most compact form:
    ++  ``{value: raw}`` if it couldn't be resolved
    ++  ``{data: path}`` if it's nothing but a single reference
    ++  ``{data: path, expr}`` for a single reference with surrounding
        text
    ++  ``{data: [path, ...], expr}`` for multiple references
    ++  ``{expr}`` for an expression without any references.
    """
    if binding.unresolved:
        return {'value': binding.template}

    rendered_paths = [path.render() for path in binding.paths]
    if binding.is_bare_reference:
        return {'data': rendered_paths[0]}

    if not rendered_paths:
        return {'expr': binding.template}

    if len(rendered_paths) == 1:
        return {'data': rendered_paths[0], 'expr': binding.template}

    return {'data': rendered_paths, 'expr': binding.template}


def _binding_of(expression: ExpressionText) -> SerializedBinding:
    # Unresolved raw text only shows up if someone serializes a tree
    # without running the resolver first
    if isinstance(expression, str):
        return {'value': expression}

    return serialize_binding(expression)


def _value_or_binding(expression: ExpressionText) -> str | SerializedBinding:
    if isinstance(expression, str):
        return expression

    return serialize_binding(expression)


def _add_children(serialized: dict[str, Any], children: Sequence[Node]):
    if children:
        serialized['child'] = serialize_nodes(children)


def _add_attributes(
        serialized: dict[str, Any],
        attributes: Mapping[str, AttributeBinding] | None):
    if not attributes:
        return

    buckets: dict[str, dict[str, Any]] = {}
    for name, binding in attributes.items():
        bucket_name, value = _serialize_attribute(binding)
        buckets.setdefault(bucket_name, {})[name] = value

    for bucket_name in ('string', 'boolean', 'event', 'array', 'object'):
        if bucket_name in buckets:
            serialized[bucket_name] = buckets[bucket_name]


def _serialize_attribute(binding: AttributeBinding) -> tuple[str, Any]:
    if isinstance(binding, StaticString):
        return 'string', binding.value

    elif isinstance(binding, DynamicString):
        return 'string', _value_or_binding(binding.value)

    elif isinstance(binding, BooleanAttribute):
        if isinstance(binding.value, bool):
            return 'boolean', binding.value

        serialized = _binding_of(binding.value)
        if binding.negated:
            serialized['negated'] = True
        return 'boolean', serialized

    elif isinstance(binding, EventAttribute):
        serialized = _binding_of(binding.handler)
        if len(binding.update_keys) == 1:
            serialized['upd'] = binding.update_keys[0]
        elif binding.update_keys:
            serialized['upd'] = list(binding.update_keys)
        return 'event', serialized

    elif isinstance(binding, ArrayList):
        return 'array', [
            _value_or_binding(item.value) for item in binding.items]

    elif isinstance(binding, ObjectEntries):
        return 'object', {
            key: _value_or_binding(entry.value)
            for key, entry in binding.entries.items()}

    else:
        raise TypeError('Unknown attribute binding type!', binding)
