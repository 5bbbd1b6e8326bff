from __future__ import annotations

import re

from hyperbind._lexing import StopKind
from hyperbind._lexing import find_attribute_quote_end
from hyperbind._lexing import scan_expression
from hyperbind._lexing import skip_markup_declaration
from hyperbind.config import DEFAULT_COMPILE_CONFIG
from hyperbind.config import CompileConfig
from hyperbind.tokens import TagKind
from hyperbind.tokens import TagToken

_TAG_NAME_MATCHER = re.compile(r'[A-Za-z][A-Za-z0-9:._-]*')
_TAG_NAME_SUFFIX_MATCHER = re.compile(r'[A-Za-z0-9:._-]*')


def scan(
        text: str,
        config: CompileConfig = DEFAULT_COMPILE_CONFIG
        ) -> tuple[TagToken, ...]:
    """Scans the template text for open, close, and self-closing tags.
    This is best-effort: anything that doesn't look like a tag is left
    alone as text, and it's up to the hierarchy builder to complain if
    that leaves the tags unbalanced.

    Embedded expressions that don't contain nested markup are skipped
    entirely, so that ``${a<b}`` is never mistaken for a tag. Nested
    markup templates are descended into.
    """
    tokens: list[TagToken] = []
    open_templates = 0
    length = len(text)
    pos = 0
    while pos < length:
        char = text[pos]
        if char == '\\':
            pos += 2

        elif char == '<':
            skipped_to = skip_markup_declaration(text, pos)
            if skipped_to is not None:
                pos = skipped_to
                continue

            token = _match_tag(text, pos, config)
            if token is None:
                pos += 1
            else:
                tokens.append(token)
                pos = token.end

        elif char == '$' and text.startswith('${', pos):
            stop = scan_expression(text, pos + 2)
            if stop.kind is StopKind.TEMPLATE:
                open_templates += 1
            pos = stop.index + 1

        # Only a backtick closing a nested template is interesting; at the
        # top level, it's just text
        elif char == '`' and open_templates:
            open_templates -= 1
            # Skip the rest of the enclosing expression, up to either its
            # closing brace or the next nested template (an else branch)
            stop = scan_expression(text, pos + 1)
            if stop.kind is StopKind.TEMPLATE:
                open_templates += 1
            pos = stop.index + 1

        else:
            pos += 1

    return tuple(tokens)


def _match_tag(text: str, pos: int, config: CompileConfig) -> TagToken | None:
    is_close = text.startswith('</', pos)
    name_start = pos + 2 if is_close else pos + 1

    name_match = _TAG_NAME_MATCHER.match(text, name_start)
    if name_match is None:
        return None

    name_end = name_match.end()
    is_dynamic = False
    if text.startswith('${', name_end):
        stop = scan_expression(text, name_end + 2)
        if stop.kind is not StopKind.CLOSE:
            return None

        is_dynamic = True
        suffix_match = _TAG_NAME_SUFFIX_MATCHER.match(text, stop.index + 1)
        # The suffix pattern can match the empty string, so this is never
        # None
        name_end = suffix_match.end()  # type: ignore[union-attr]

    if name_end >= len(text) or not (
        text[name_end].isspace() or text[name_end] in '/>'
    ):
        return None

    tag_end = _find_tag_end(text, name_end)
    if tag_end < 0:
        return None

    raw_text = text[pos:tag_end]
    name = text[name_start:name_end]
    if not is_dynamic:
        name = name.lower()

    if is_close:
        kind = TagKind.CLOSE
    elif raw_text.endswith('/>') or (
        not is_dynamic and name in config.void_tags
    ):
        kind = TagKind.SELF
    else:
        kind = TagKind.OPEN

    return TagToken(
        kind=kind,
        name=name,
        raw_text=raw_text,
        start=pos,
        end=tag_end)


def _find_tag_end(text: str, pos: int) -> int:
    """Returns the position just after the ``>`` that ends the tag, or
    -1 if the tag is never closed. Quoted values and embedded
    expressions are skipped, so ``>`` within them doesn't count.
    """
    length = len(text)
    while pos < length:
        char = text[pos]
        if char == '"' or char == "'":
            end = find_attribute_quote_end(text, pos)
            if end < 0:
                return -1
            pos = end

        elif char == '$' and text.startswith('${', pos):
            stop = scan_expression(text, pos + 2)
            if stop.kind is not StopKind.CLOSE:
                return -1
            pos = stop.index + 1

        elif char == '>':
            return pos + 1

        else:
            pos += 1

    return -1
