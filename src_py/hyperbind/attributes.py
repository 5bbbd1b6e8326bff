from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import replace as dc_replace
from enum import Enum

from hyperbind._error_collector import ErrorCollector
from hyperbind._error_collector import capture_traceback
from hyperbind._lexing import StopKind
from hyperbind._lexing import find_attribute_quote_end
from hyperbind._lexing import find_top_level
from hyperbind._lexing import iter_value_segments
from hyperbind._lexing import scan_expression
from hyperbind._lexing import split_top_level
from hyperbind.config import DEFAULT_COMPILE_CONFIG
from hyperbind.config import CompileConfig
from hyperbind.exceptions import AttributeParseAmbiguity
from hyperbind.expressions import extract_update_keys
from hyperbind.expressions import is_number_literal
from hyperbind.expressions import match_string_literal
from hyperbind.expressions import split_ternary
from hyperbind.nodes import ArrayList
from hyperbind.nodes import AttributeBinding
from hyperbind.nodes import BooleanAttribute
from hyperbind.nodes import Condition
from hyperbind.nodes import DynamicString
from hyperbind.nodes import Element
from hyperbind.nodes import EventAttribute
from hyperbind.nodes import Logical
from hyperbind.nodes import Map
from hyperbind.nodes import Meta
from hyperbind.nodes import Node
from hyperbind.nodes import ObjectEntries
from hyperbind.nodes import StaticString
from hyperbind.nodes import Text

_ATTRIBUTE_NAME_MATCHER = re.compile(r'[^\s"\'<>/=`]+')
_BARE_VALUE_MATCHER = re.compile(r'[^\s"\'<>=`]+')
_EQUALS_MATCHER = re.compile(r'\s*=\s*')
_WHITESPACE_MATCHER = re.compile(r'\s+')
logger = logging.getLogger(__name__)


class _Quoting(Enum):
    # Bare attribute name, no value
    NONE = 'none'
    QUOTED = 'quoted'
    # Unquoted embedded expression: ``attr=${...}``
    EXPRESSION = 'expression'
    # Unquoted plain word: ``attr=value``
    BARE = 'bare'
    # Attribute-less embedded expression: ``${cond && "name"}``
    TOGGLE = 'toggle'
    # Didn't match any of the above; already reported as ambiguous
    RAW = 'raw'


@dataclass(frozen=True, slots=True)
class _RawAttribute:
    name: str
    value: str | None
    quoting: _Quoting


def classify_tree(
        nodes: Sequence[Node],
        config: CompileConfig = DEFAULT_COMPILE_CONFIG,
        errors: ErrorCollector | None = None
        ) -> tuple[Node, ...]:
    """Classifies the attributes of every element in the tree that
    hasn't already been classified.
    """
    if errors is None:
        errors = ErrorCollector(max_errors=config.max_errors)

    return tuple(_classify_node(node, config, errors) for node in nodes)


def _classify_node(
        node: Node,
        config: CompileConfig,
        errors: ErrorCollector
        ) -> Node:
    if isinstance(node, Element | Meta):
        attributes = node.attributes
        if attributes is None:
            attributes = classify(node.raw_attributes, config, errors)

        return dc_replace(
            node,
            attributes=attributes,
            children=classify_tree(node.children, config, errors))

    elif isinstance(node, Map):
        return dc_replace(
            node, children=classify_tree(node.children, config, errors))

    elif isinstance(node, Condition):
        return dc_replace(
            node,
            true_branch=_classify_node(node.true_branch, config, errors),
            false_branch=_classify_node(node.false_branch, config, errors))

    elif isinstance(node, Logical):
        return dc_replace(
            node, child=_classify_node(node.child, config, errors))

    elif isinstance(node, Text):
        return node

    else:
        raise TypeError('Unknown node type!', node)


def classify(
        raw_attributes: str,
        config: CompileConfig = DEFAULT_COMPILE_CONFIG,
        errors: ErrorCollector | None = None
        ) -> dict[str, AttributeBinding]:
    """Types every attribute within the raw text of an open tag (minus
    the tag name and the closing ``>``). Values are left as raw text;
    it's up to the resolver to turn them into bindings.
    """
    if errors is None:
        errors = ErrorCollector(max_errors=config.max_errors)

    attributes: dict[str, AttributeBinding] = {}
    for raw_attribute in _iter_raw_attributes(raw_attributes, errors):
        if raw_attribute.quoting is _Quoting.TOGGLE:
            # Always set for toggles; this is for the type checker
            expression = raw_attribute.value or ''
            toggles = _classify_toggle(expression)
            if toggles is None:
                _report_ambiguity(
                    errors,
                    'Unrecognized attribute toggle expression',
                    raw_attribute.name)
                attributes[raw_attribute.name] = StaticString(
                    raw_attribute.name)
            else:
                attributes.update(toggles)

        elif raw_attribute.quoting is _Quoting.RAW:
            attributes[raw_attribute.name] = StaticString(
                raw_attribute.value or '')

        else:
            attributes[raw_attribute.name] = _classify_value(
                raw_attribute, config)

    return attributes


def _iter_raw_attributes(
        text: str,
        errors: ErrorCollector
        ) -> Iterator[_RawAttribute]:
    length = len(text)
    pos = 0
    while pos < length:
        char = text[pos]
        if char.isspace() or char == '/':
            pos += 1
            continue

        if text.startswith('${', pos):
            stop = scan_expression(text, pos + 2)
            if stop.kind is not StopKind.CLOSE:
                yield _ambiguous(
                    errors, 'Unterminated embedded expression', text[pos:])
                return

            yield _RawAttribute(
                name=text[pos:stop.index + 1],
                value=text[pos + 2:stop.index],
                quoting=_Quoting.TOGGLE)
            pos = stop.index + 1
            continue

        name_match = _ATTRIBUTE_NAME_MATCHER.match(text, pos)
        if name_match is None:
            yield _ambiguous(
                errors, 'Unrecognized attribute syntax', text[pos:])
            return

        name = name_match.group()
        equals_match = _EQUALS_MATCHER.match(text, name_match.end())
        if equals_match is None:
            yield _RawAttribute(name=name, value=None, quoting=_Quoting.NONE)
            pos = name_match.end()
            continue

        pos = equals_match.end()
        if pos >= length:
            yield _ambiguous(
                errors, 'Missing attribute value', text[name_match.start():],
                name=name)
            return

        char = text[pos]
        if char == '"' or char == "'":
            end = find_attribute_quote_end(text, pos)
            if end < 0:
                yield _ambiguous(
                    errors, 'Unterminated quoted attribute value',
                    text[pos:], name=name)
                return

            yield _RawAttribute(
                name=name, value=text[pos + 1:end - 1], quoting=_Quoting.QUOTED)
            pos = end

        elif text.startswith('${', pos):
            stop = scan_expression(text, pos + 2)
            if stop.kind is not StopKind.CLOSE:
                yield _ambiguous(
                    errors, 'Unterminated embedded expression', text[pos:],
                    name=name)
                return

            yield _RawAttribute(
                name=name,
                value=text[pos:stop.index + 1],
                quoting=_Quoting.EXPRESSION)
            pos = stop.index + 1

        else:
            bare_match = _BARE_VALUE_MATCHER.match(text, pos)
            if bare_match is None:
                yield _ambiguous(
                    errors, 'Unrecognized attribute value syntax',
                    text[pos:], name=name)
                return

            yield _RawAttribute(
                name=name, value=bare_match.group(), quoting=_Quoting.BARE)
            pos = bare_match.end()


def _ambiguous(
        errors: ErrorCollector,
        message: str,
        raw_text: str,
        *,
        name: str | None = None
        ) -> _RawAttribute:
    _report_ambiguity(errors, message, raw_text, name=name)
    return _RawAttribute(
        name=raw_text if name is None else name,
        value=raw_text,
        quoting=_Quoting.RAW)


def _report_ambiguity(
        errors: ErrorCollector,
        message: str,
        raw_text: str,
        *,
        name: str | None = None):
    logger.warning(
        'Ambiguous attribute syntax %r; keeping it as static text', raw_text)
    exc = AttributeParseAmbiguity(message, raw_text)
    if name is not None:
        exc.add_note(f'{name=}')
    errors.append(capture_traceback(exc))


def _classify_value(
        raw_attribute: _RawAttribute,
        config: CompileConfig
        ) -> AttributeBinding:
    name = raw_attribute.name
    value = raw_attribute.value
    lowered_name = name.lower()

    if lowered_name.startswith('on'):
        handler = _event_handler(value)
        return EventAttribute(
            handler=handler, update_keys=extract_update_keys(handler))

    if value is None:
        return BooleanAttribute(True)

    if raw_attribute.quoting is _Quoting.BARE and value in {'true', 'false'}:
        return BooleanAttribute(value == 'true')

    sole_expression = _sole_expression(value)
    if sole_expression is not None and _is_object_literal(sole_expression):
        return ObjectEntries(_parse_object_entries(sole_expression))

    if lowered_name in config.boolean_attributes:
        if sole_expression is None:
            return BooleanAttribute(True)
        return BooleanAttribute(sole_expression.strip())

    separator = config.list_attribute_splitters.get(lowered_name)
    if separator is not None:
        items = split_list_value(value, separator)
        if len(items) > 1:
            return ArrayList(tuple(_scalar(item) for item in items))

    return _scalar(value)


def _scalar(value: str) -> StaticString | DynamicString:
    for _, _, is_expression in iter_value_segments(value):
        if is_expression:
            return DynamicString(value)

    return StaticString(value)


def _event_handler(value: str | None) -> str:
    if value is None:
        return ''

    sole_expression = _sole_expression(value)
    if sole_expression is None:
        return value.strip()

    return sole_expression.strip()


def _sole_expression(value: str) -> str | None:
    """If the value is exactly one ``${...}`` with nothing around it,
    returns the expression inside it.
    """
    segments = list(iter_value_segments(value))
    if len(segments) != 1:
        return None

    start, end, is_expression = segments[0]
    if not is_expression:
        return None

    return value[start + 2:end - 1]


def _is_object_literal(expression: str) -> bool:
    stripped = expression.strip()
    if not stripped.startswith('{'):
        return False

    stop = scan_expression(stripped, 1)
    return stop.kind is StopKind.CLOSE and stop.index == len(stripped) - 1


def _parse_object_entries(
        expression: str
        ) -> dict[str, StaticString | DynamicString]:
    entries: dict[str, StaticString | DynamicString] = {}
    body = expression.strip()[1:-1]
    for entry in split_top_level(body, ','):
        if not entry.strip():
            continue

        colon = find_top_level(entry, ':')
        if colon < 0:
            # Shorthand: ``{ color }``
            key = value = entry.strip()
        else:
            key = entry[:colon].strip().strip('\'"')
            value = entry[colon + 1:].strip()

        literal = match_string_literal(value)
        if literal is not None:
            entries[key] = StaticString(literal)
        elif is_number_literal(value):
            entries[key] = StaticString(value.strip())
        else:
            entries[key] = DynamicString(value)

    return entries


def _classify_toggle(expression: str) -> dict[str, BooleanAttribute] | None:
    """Handles attribute-less toggles: ``${c && "name"}`` and ternaries
    whose every branch is a literal attribute name. Returns None if the
    expression isn't one of those shapes.
    """
    guards: list[str] = []
    names: list[str] = []
    remainder = expression
    while (parts := split_ternary(remainder)) is not None:
        guard, consequent, remainder = parts
        name = match_string_literal(consequent)
        if name is None:
            return None

        guards.append(guard)
        names.append(name)

    if guards:
        name = match_string_literal(remainder)
        if name is None:
            return None

        names.append(name)
        return _ternary_toggles(guards, names)

    operands = [
        operand.strip() for operand in split_top_level(expression, '&&')]
    if len(operands) < 2:
        return None

    name = match_string_literal(operands[-1])
    if name is None:
        return None
    if not name:
        return {}

    return {name: BooleanAttribute(' && '.join(operands[:-1]))}


def _ternary_toggles(
        guards: list[str],
        names: list[str]
        ) -> dict[str, BooleanAttribute]:
    """Each name is present when its own guard is truthy and every
    guard before it is falsy. The final name is present when every
    guard is falsy. Empty names (``c ? "active" : ""``) are skipped.
    """
    toggles: dict[str, BooleanAttribute] = {}
    for index, (guard, name) in enumerate(zip(guards, names, strict=False)):
        if not name:
            continue

        if index == 0:
            toggles[name] = BooleanAttribute(guard)
        else:
            earlier = ' || '.join(guards[:index])
            toggles[name] = BooleanAttribute(f'!({earlier}) && ({guard})')

    final_name = names[-1]
    if final_name:
        if len(guards) == 1:
            toggles[final_name] = BooleanAttribute(guards[0], negated=True)
        else:
            toggles[final_name] = BooleanAttribute(
                ' || '.join(f'({guard})' for guard in guards), negated=True)

    return toggles


def split_list_value(value: str, separator: str) -> list[str]:
    """Splits a list-valued attribute (``class``, ``rel``, ``srcset``,
    etc) into its items. Separators within embedded expressions are
    ignored, and literal text fused to an expression stays part of the
    same item (``btn-${kind}``).
    """
    items: list[str] = []
    current: list[str] = []
    for start, end, is_expression in iter_value_segments(value):
        chunk = value[start:end]
        if is_expression:
            current.append(chunk)
            continue

        if separator == ' ':
            pieces = _WHITESPACE_MATCHER.split(chunk)
        else:
            pieces = chunk.split(separator)

        current.append(pieces[0])
        for piece in pieces[1:]:
            items.append(''.join(current))
            current = [piece]

    items.append(''.join(current))
    return [item.strip() for item in items if item.strip()]
