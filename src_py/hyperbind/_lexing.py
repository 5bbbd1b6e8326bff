"""Low-level skipping helpers shared by every compile stage. None of
these understand the expression language; they only know enough about
quotes, braces, and embedded templates to find where things end.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

TEMPLATE_TAG = 'html'


class StopKind(Enum):
    # An unmatched closing brace; the end of an embedded ``${...}``
    CLOSE = 'close'
    # An unmatched closing paren (only reported when asked for)
    PAREN = 'paren'
    # The backtick of an ``html`...`` opener
    TEMPLATE = 'template'
    # Ran off the end of the scan window
    END = 'end'


@dataclass(frozen=True, slots=True)
class ExpressionStop:
    kind: StopKind
    index: int


def is_identifier_char(char: str) -> bool:
    return char.isalnum() or char in '_$'


def is_template_opener(text: str, pos: int) -> bool:
    """Returns True if the backtick at ``pos`` opens a nested markup
    template, ie, it's directly preceded by the ``html`` tag.
    """
    tag_start = pos - len(TEMPLATE_TAG)
    if tag_start < 0 or not text.startswith(TEMPLATE_TAG, tag_start):
        return False

    return tag_start == 0 or not is_identifier_char(text[tag_start - 1])


def find_quote_end(text: str, pos: int, limit: int | None = None) -> int:
    """Given the position of an opening quote, returns the position
    just after its matching unescaped closing quote, or -1 if the
    string is never terminated.
    """
    if limit is None:
        limit = len(text)

    quote = text[pos]
    index = pos + 1
    while index < limit:
        char = text[index]
        if char == '\\':
            index += 2
        elif char == quote:
            return index + 1
        else:
            index += 1

    return -1


def find_attribute_quote_end(
        text: str,
        pos: int,
        limit: int | None = None
        ) -> int:
    """Like ``find_quote_end``, but for quoted attribute values, which
    can contain embedded expressions -- which can themselves contain
    the same quote character (``title="${a ? "x" : "y"}"``).
    """
    if limit is None:
        limit = len(text)

    quote = text[pos]
    index = pos + 1
    while index < limit:
        char = text[index]
        if char == '\\':
            index += 2
        elif char == '$' and text.startswith('${', index):
            stop = scan_expression(text, index + 2, limit)
            if stop.kind is not StopKind.CLOSE:
                return -1
            index = stop.index + 1
        elif char == quote:
            return index + 1
        else:
            index += 1

    return -1


def skip_template_literal(
        text: str,
        pos: int,
        limit: int | None = None
        ) -> int:
    """Skips a plain (non-markup) template literal starting at the
    backtick at ``pos``, including any interpolations within it.
    """
    if limit is None:
        limit = len(text)

    index = pos + 1
    while index < limit:
        char = text[index]
        if char == '\\':
            index += 2
        elif char == '$' and text.startswith('${', index):
            stop = scan_expression(text, index + 2, limit)
            if stop.kind is not StopKind.CLOSE:
                return limit
            index = stop.index + 1
        elif char == '`':
            return index + 1
        else:
            index += 1

    return limit


def scan_expression(
        text: str,
        start: int,
        limit: int | None = None,
        *,
        stop_at_paren: bool = False
        ) -> ExpressionStop:
    """Scans expression text starting at ``start`` until one of:
    ++  the unmatched ``}`` that closes the embedded expression
    ++  an ``html`` template opener, which means the expression contains
        nested markup
    ++  (if ``stop_at_paren``) an unmatched ``)``
    ++  the end of the window.
    String literals and plain template literals are skipped over, so
    braces inside them don't count.
    """
    if limit is None:
        limit = len(text)

    braces = 0
    parens = 0
    pos = start
    while pos < limit:
        char = text[pos]
        if char == '"' or char == "'":
            end = find_quote_end(text, pos, limit)
            if end < 0:
                return ExpressionStop(StopKind.END, limit)
            pos = end
            continue

        if char == '`':
            if is_template_opener(text, pos):
                return ExpressionStop(StopKind.TEMPLATE, pos)
            pos = skip_template_literal(text, pos, limit)
            continue

        if char == '{':
            braces += 1
        elif char == '}':
            if braces == 0:
                return ExpressionStop(StopKind.CLOSE, pos)
            braces -= 1
        elif char == '(':
            parens += 1
        elif char == ')':
            if parens:
                parens -= 1
            elif stop_at_paren:
                return ExpressionStop(StopKind.PAREN, pos)

        pos += 1

    return ExpressionStop(StopKind.END, limit)


def skip_markup_declaration(text: str, pos: int) -> int | None:
    """If ``pos`` starts a comment, doctype, or processing instruction,
    returns the position just after it. Otherwise, returns None.
    """
    if text.startswith('<!--', pos):
        end = text.find('-->', pos + 4)
        return len(text) if end < 0 else end + 3

    if text.startswith('<!', pos) or text.startswith('<?', pos):
        end = text.find('>', pos + 2)
        return len(text) if end < 0 else end + 1

    return None


def iter_top_level(text: str) -> Iterator[int]:
    """Yields the position of every character in the expression text
    that is outside of any string literal and any bracket pair. The
    brackets themselves are never yielded.
    """
    depth = 0
    pos = 0
    length = len(text)
    while pos < length:
        char = text[pos]
        if char == '"' or char == "'":
            end = find_quote_end(text, pos)
            pos = length if end < 0 else end
            continue

        if char == '`':
            pos = skip_template_literal(text, pos)
            continue

        if char in '([{':
            depth += 1
        elif char in ')]}':
            depth -= 1
        elif depth == 0:
            yield pos

        pos += 1


def find_top_level(text: str, needle: str, start: int = 0) -> int:
    for pos in iter_top_level(text):
        if pos >= start and text.startswith(needle, pos):
            return pos

    return -1


def split_top_level(text: str, separator: str) -> list[str]:
    parts: list[str] = []
    last = 0
    for pos in iter_top_level(text):
        if pos < last:
            continue

        if text.startswith(separator, pos):
            parts.append(text[last:pos])
            last = pos + len(separator)

    parts.append(text[last:])
    return parts


def iter_value_segments(text: str) -> Iterator[tuple[int, int, bool]]:
    """Splits value text (text nodes, attribute values) into literal
    and ``${...}`` segments. Yields ``(start, end, is_expression)``;
    expression segments include their ``${`` and ``}``. An
    unterminated ``${`` is treated as literal text.
    """
    length = len(text)
    literal_start = 0
    pos = 0
    while pos < length:
        char = text[pos]
        if char == '\\':
            pos += 2
            continue

        if char == '$' and text.startswith('${', pos):
            stop = scan_expression(text, pos + 2)
            if stop.kind is StopKind.CLOSE:
                if pos > literal_start:
                    yield literal_start, pos, False
                yield pos, stop.index + 1, True
                pos = literal_start = stop.index + 1
                continue

            break

        pos += 1

    if literal_start < length:
        yield literal_start, length, False
