"""Anchored pattern matchers for the handful of expression shapes the
compiler understands: ``.map()`` signatures, ternaries, ``&&`` guards,
and dot-chain references. This is deliberately not a parser; each
matcher either recognizes its shape and returns a typed match, or
returns None.
"""
from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Annotated

from docnote import Note

from hyperbind._lexing import StopKind
from hyperbind._lexing import find_quote_end
from hyperbind._lexing import find_top_level
from hyperbind._lexing import iter_top_level
from hyperbind._lexing import scan_expression
from hyperbind._lexing import split_top_level

_IDENT = r'[A-Za-z_$][\w$]*'
_CHAIN = rf'{_IDENT}(?:\??\.{_IDENT})*'

_MAP_SIGNATURE_MATCHER = re.compile(
    rf'^\s*(?P<source>{_CHAIN})\s*\.map\(\s*'
    + rf'(?P<params>\([^()]*\)|{_IDENT})\s*=>\s*(?P<rest>.*?)\s*$',
    re.DOTALL)
_DESTRUCTURED_NAME_MATCHER = re.compile(
    rf'^\s*(?P<key>{_IDENT})\s*(?::\s*(?P<alias>{_IDENT}))?')
_IDENT_MATCHER = re.compile(_IDENT)
# Chains after a lone ``.`` are properties of a call result; chains after a
# ``...`` spread are references
_REFERENCE_MATCHER = re.compile(
    rf'(?<![\w$])(?:(?<=\.\.\.)|(?<!\.))(?P<chain>{_CHAIN})')
_SEGMENT_MATCHER = re.compile(_IDENT)
_CALL_MATCHER = re.compile(r'\s*\(')
_ARROW_PARAMS_MATCHER = re.compile(
    rf'(?:\((?P<parenthesized>[^()]*)\)|(?P<bare>{_IDENT}))\s*=>')
_UPDATE_CALL_MATCHER = re.compile(r'(?<![\w$.])update\s*\(\s*\{')
_STRING_LITERAL_MATCHER = re.compile(
    r'''^\s*(?:"(?P<double>(?:[^"\\]|\\.)*)"'''
    + r"""|'(?P<single>(?:[^'\\]|\\.)*)'"""
    + r'|`(?P<backtick>(?:[^`\\$]|\\.|\$(?!\{))*)`)\s*$',
    re.DOTALL)
_NUMBER_LITERAL_MATCHER = re.compile(r'^\s*-?\d+(?:\.\d+)?\s*$')


@dataclass(frozen=True, slots=True)
class MapSignature:
    """The parsed form of ``<source>.map(<params> =>``.
    """
    source: Annotated[
        str,
        Note('The dot-chain being iterated over, for example ``context.list``')]
    params_text: str
    item_alias: Annotated[
        str | None,
        Note('''The name bound to the current item, unless the item is
            destructured.''')
        ] = None
    index_alias: str | None = None
    destructured: Annotated[
        tuple[tuple[str, str], ...],
        Note('''For destructured items (``({ title, nested: n })``),
            ``(local_name, key)`` pairs.''')
        ] = ()

    @property
    def text(self) -> str:
        return f'{self.source}.map({self.params_text})'


@dataclass(frozen=True, slots=True)
class MapOpenerMatch:
    signature: MapSignature
    # Whatever follows the ``=>``: empty for a plain body, or the start of
    # a ternary / logical that itself forms the body
    rest: str


@dataclass(frozen=True, slots=True)
class TernaryOpener:
    guard: str
    # Set for ``guard ? <inline> : html`...``` shapes
    inline_true: str | None = None


@dataclass(frozen=True, slots=True)
class GuardedMapOpener:
    """A ``guard ? list.map(...)`` or ``guard && list.map(...)``, where
    the map call itself is the rendered branch.
    """
    guard: str
    ternary: bool
    map_prefix: str


@dataclass(frozen=True, slots=True)
class LogicalOpener:
    guard: str

    @property
    def operands(self) -> tuple[str, ...]:
        return tuple(
            operand.strip() for operand in split_top_level(self.guard, '&&'))


@dataclass(frozen=True, slots=True)
class Reference:
    """A dot-chain found within an expression. Offsets are relative to
    the expression text the reference was found in.
    """
    start: int
    segments: tuple[str, ...]
    segment_ends: tuple[int, ...]
    called: Annotated[
        bool,
        Note('True if the chain is immediately followed by a call.')]
    interpolated: Annotated[
        bool,
        Note('''True if the chain is within the interpolation of a
            template literal nested in the expression.''')
        ] = False

    @property
    def root(self) -> str:
        return self.segments[0]

    @property
    def end(self) -> int:
        return self.segment_ends[-1]

    def truncated(self, segment_count: int) -> Reference:
        return Reference(
            start=self.start,
            segments=self.segments[:segment_count],
            segment_ends=self.segment_ends[:segment_count],
            called=False,
            interpolated=self.interpolated)


def match_map_signature(prefix: str) -> MapOpenerMatch | None:
    match = _MAP_SIGNATURE_MATCHER.match(prefix)
    if match is None:
        return None

    return MapOpenerMatch(
        signature=parse_map_params(
            match.group('source'), match.group('params')),
        rest=match.group('rest'))


def parse_map_params(source: str, params: str) -> MapSignature:
    """Parses the callback parameters of a ``.map()``. Supports a plain
    item alias, an item plus index alias, and a destructured item with
    an optional index alias.
    """
    params_text = params.strip()
    if params_text.startswith('(') and params_text.endswith(')'):
        params_text = params_text[1:-1].strip()

    if params_text.startswith('{'):
        close = params_text.find('}')
        if close < 0:
            close = len(params_text)

        destructured = []
        for piece in params_text[1:close].split(','):
            name_match = _DESTRUCTURED_NAME_MATCHER.match(piece)
            if name_match is not None:
                key = name_match.group('key')
                destructured.append((name_match.group('alias') or key, key))

        index_match = _IDENT_MATCHER.search(params_text, close + 1)
        return MapSignature(
            source=source,
            params_text=params_text,
            index_alias=None if index_match is None else index_match.group(),
            destructured=tuple(destructured))

    aliases = [piece.strip() for piece in params_text.split(',')]
    return MapSignature(
        source=source,
        params_text=params_text,
        item_alias=aliases[0] or None,
        index_alias=(aliases[1] or None) if len(aliases) > 1 else None)


def find_ternary_mark(expr: str, start: int = 0) -> int:
    """Finds the first top-level ternary ``?``, skipping optional
    chaining (``?.``) and nullish coalescing (``??``).
    """
    for pos in iter_top_level(expr):
        if pos < start or expr[pos] != '?':
            continue

        following = expr[pos + 1:pos + 2]
        preceding = expr[pos - 1:pos] if pos else ''
        if following not in ('.', '?') and preceding != '?':
            return pos

    return -1


def _find_ternary_colon(expr: str, start: int) -> int:
    depth = 0
    for pos in iter_top_level(expr):
        if pos < start:
            continue

        char = expr[pos]
        if char == '?' and find_ternary_mark(expr, pos) == pos:
            depth += 1
        elif char == ':':
            if depth == 0:
                return pos
            depth -= 1

    return -1


def split_ternary(expr: str) -> tuple[str, str, str] | None:
    """Splits ``guard ? consequent : alternate``. Nested ternaries in
    the alternate are left intact for the caller to split again.
    """
    mark = find_ternary_mark(expr)
    if mark < 0:
        return None

    colon = _find_ternary_colon(expr, mark + 1)
    if colon < 0:
        return None

    return (
        expr[:mark].strip(),
        expr[mark + 1:colon].strip(),
        expr[colon + 1:].strip())


def match_ternary_opener(prefix: str) -> TernaryOpener | None:
    stripped = prefix.strip()
    mark = find_ternary_mark(stripped)
    if mark < 0:
        return None

    guard = stripped[:mark].strip()
    if not guard:
        return None

    remainder = stripped[mark + 1:]
    if not remainder.strip():
        return TernaryOpener(guard=guard)

    colon = _find_ternary_colon(remainder, 0)
    if colon < 0 or remainder[colon + 1:].strip():
        return None

    return TernaryOpener(guard=guard, inline_true=remainder[:colon].strip())


def match_logical_opener(prefix: str) -> LogicalOpener | None:
    stripped = prefix.strip()
    if not stripped.endswith('&&'):
        return None

    guard = stripped[:-2].strip()
    if not guard:
        return None

    return LogicalOpener(guard=guard)


def match_guarded_map(prefix: str) -> GuardedMapOpener | None:
    stripped = prefix.strip()
    mark = find_ternary_mark(stripped)
    if mark >= 0:
        guard = stripped[:mark].strip()
        map_prefix = stripped[mark + 1:]
        ternary = True
    else:
        operands = split_top_level(stripped, '&&')
        if len(operands) < 2:
            return None

        guard = '&&'.join(operands[:-1]).strip()
        map_prefix = operands[-1]
        ternary = False

    if not guard or match_map_signature(map_prefix) is None:
        return None

    return GuardedMapOpener(
        guard=guard, ternary=ternary, map_prefix=map_prefix)


def match_string_literal(expr: str) -> str | None:
    """If the expression is nothing but a single string literal,
    returns its contents (with escapes left as-is).
    """
    match = _STRING_LITERAL_MATCHER.match(expr)
    if match is None:
        return None

    for group in ('double', 'single', 'backtick'):
        value = match.group(group)
        if value is not None:
            return value

    return None


def is_number_literal(expr: str) -> bool:
    return _NUMBER_LITERAL_MATCHER.match(expr) is not None


def mask_strings(expr: str) -> str:
    """Returns a copy of the expression with the same length, but with
    every string literal blanked out. Interpolations within template
    literals are left visible, since they're code.
    """
    masked, _ = _mask(expr)
    return masked


def _mask(expr: str) -> tuple[str, list[tuple[int, int]]]:
    chars = list(expr)
    interpolations: list[tuple[int, int]] = []
    _mask_range(expr, 0, len(expr), chars, interpolations)
    return ''.join(chars), interpolations


def _mask_range(
        expr: str,
        start: int,
        stop: int,
        chars: list[str],
        interpolations: list[tuple[int, int]]):
    pos = start
    while pos < stop:
        char = expr[pos]
        if char == '"' or char == "'":
            end = find_quote_end(expr, pos, stop)
            if end < 0:
                end = stop
            chars[pos:end] = ' ' * (end - pos)
            pos = end

        elif char == '`':
            pos = _mask_template_literal(
                expr, pos, stop, chars, interpolations)

        else:
            pos += 1


def _mask_template_literal(
        expr: str,
        pos: int,
        stop: int,
        chars: list[str],
        interpolations: list[tuple[int, int]]
        ) -> int:
    chars[pos] = ' '
    index = pos + 1
    while index < stop:
        char = expr[index]
        if char == '\\':
            end = min(index + 2, stop)
            chars[index:end] = ' ' * (end - index)
            index = end
        elif char == '$' and expr.startswith('${', index):
            close = scan_expression(expr, index + 2, stop)
            if close.kind is not StopKind.CLOSE:
                chars[index:stop] = ' ' * (stop - index)
                return stop

            chars[index:index + 2] = '  '
            interpolations.append((index + 2, close.index))
            _mask_range(
                expr, index + 2, close.index, chars, interpolations)
            chars[close.index] = ' '
            index = close.index + 1
        elif char == '`':
            chars[index] = ' '
            return index + 1
        else:
            chars[index] = ' '
            index += 1

    return stop


def arrow_parameter_names(expr: str) -> frozenset[str]:
    """Names bound by arrow functions anywhere in the expression. These
    are local to the expression, and therefore never data references.
    """
    names = set()
    for match in _ARROW_PARAMS_MATCHER.finditer(mask_strings(expr)):
        params = match.group('parenthesized')
        if params is None:
            names.add(match.group('bare'))
        else:
            names.update(_IDENT_MATCHER.findall(params))

    return frozenset(names)


def iter_references(expr: str) -> Iterator[Reference]:
    """Yields every dot-chain in the expression that could be a data
    reference. String literals, object keys, properties of call results,
    and arrow function parameters are excluded; everything else is left
    for the resolver to decide.
    """
    masked, interpolations = _mask(expr)
    local_names = arrow_parameter_names(expr)
    for match in _REFERENCE_MATCHER.finditer(masked):
        segments = []
        segment_ends = []
        for segment_match in _SEGMENT_MATCHER.finditer(
            masked, match.start(), match.end()
        ):
            segments.append(segment_match.group())
            segment_ends.append(segment_match.end())

        if segments[0] in local_names:
            continue
        if len(segments) == 1 and _is_object_key(masked, match):
            continue

        yield Reference(
            start=match.start(),
            segments=tuple(segments),
            segment_ends=tuple(segment_ends),
            called=_CALL_MATCHER.match(masked, match.end()) is not None,
            interpolated=any(
                start <= match.start() < stop
                for start, stop in interpolations))


def _is_object_key(masked: str, match: re.Match) -> bool:
    following = masked[match.end():].lstrip()
    if not following.startswith(':') or following.startswith('::'):
        return False

    preceding = masked[:match.start()].rstrip()
    return preceding.endswith(('{', ','))


def extract_update_keys(handler: str) -> tuple[str, ...]:
    """Finds the keys of every ``update({ key: ... })`` call within an
    event handler, in order of first appearance.
    """
    keys: list[str] = []
    masked = mask_strings(handler)
    for match in _UPDATE_CALL_MATCHER.finditer(masked):
        close = scan_expression(handler, match.end())
        if close.kind is not StopKind.CLOSE:
            continue

        for entry in split_top_level(handler[match.end():close.index], ','):
            colon = find_top_level(entry, ':')
            key = (entry if colon < 0 else entry[:colon]).strip()
            key = key.strip('\'"')
            if key and not key.startswith('...') and key not in keys:
                keys.append(key)

    return tuple(keys)
