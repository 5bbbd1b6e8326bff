"""Finds the control flow (iterations, ternaries, logicals) and the text
runs in between tags, and merges them with the tag tokens into a single
ordered stream.

Every gap between two tags starts and ends in markup context. Within a
gap, ``${`` either starts an inline expression (which is just part of
the text), or an expression that opens a nested markup template. A
backtick ends the current nested template; whatever follows it is the
continuation of the construct that opened it.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from hyperbind._lexing import TEMPLATE_TAG
from hyperbind._lexing import StopKind
from hyperbind._lexing import scan_expression
from hyperbind._lexing import skip_markup_declaration
from hyperbind.exceptions import StructuralError
from hyperbind.expressions import match_guarded_map
from hyperbind.expressions import match_logical_opener
from hyperbind.expressions import match_map_signature
from hyperbind.expressions import match_ternary_opener
from hyperbind.tokens import CondClose
from hyperbind.tokens import CondElse
from hyperbind.tokens import CondElseIf
from hyperbind.tokens import CondOpen
from hyperbind.tokens import LogicalClose
from hyperbind.tokens import LogicalOpen
from hyperbind.tokens import MapClose
from hyperbind.tokens import MapOpen
from hyperbind.tokens import StreamToken
from hyperbind.tokens import TagKind
from hyperbind.tokens import TagToken

_ELSE_MATCHER = re.compile(r'\s*:')
_CLOSE_BRACE_MATCHER = re.compile(r'\s*\}')
_CLOSE_PAREN_MATCHER = re.compile(r'\s*\)')
_WHITESPACE_MATCHER = re.compile(r'\s+')
# Inline branches that render nothing at all
_EMPTY_BRANCHES = frozenset({'null', 'undefined', 'false', '""', "''", '``'})


class _ConstructKind(Enum):
    MAP = 'map'
    CONDITION = 'condition'
    LOGICAL = 'logical'


@dataclass(slots=True)
class _OpenConstruct:
    kind: _ConstructKind
    offset: int
    # Implicit constructs are the body of an enclosing ``.map()`` callback,
    # and get closed by that map's ``)}`` instead of by their own ``}``
    implicit: bool = False
    # Constructs opened within an else branch, and maps that are the
    # branch of a guard, share the closing brace of the enclosing construct
    owns_brace: bool = True
    in_else: bool = False


def extract(
        text: str,
        tag_tokens: Sequence[TagToken]
        ) -> tuple[StreamToken, ...]:
    """Scans every gap between the tag tokens for control flow and text,
    returning the complete merged stream in document order.
    """
    extractor = _ControlFlowExtractor(text)
    cursor = 0
    for tag_token in tag_tokens:
        extractor.scan_gap(cursor, tag_token.start)
        extractor.stream.append(tag_token)
        cursor = tag_token.end

    extractor.scan_gap(cursor, len(text))
    return tuple(extractor.stream)


def normalize_text(raw: str) -> str:
    """Collapses whitespace runs to a single space. Leading and trailing
    whitespace is dropped entirely if it contains a newline, since that's
    just source formatting. Text that is nothing but whitespace is
    dropped as well.
    """
    if not raw.strip():
        return ''

    leading = raw[:len(raw) - len(raw.lstrip())]
    trailing = raw[len(raw.rstrip()):]
    collapsed = _WHITESPACE_MATCHER.sub(' ', raw)
    if '\n' in leading:
        collapsed = collapsed.lstrip()
    if '\n' in trailing:
        collapsed = collapsed.rstrip()

    return collapsed


class _ControlFlowExtractor:

    def __init__(self, text: str):
        self.text = text
        self.stream: list[StreamToken] = []
        self._constructs: list[_OpenConstruct] = []

    def scan_gap(self, start: int, stop: int):
        text = self.text
        text_start = start
        pos = start
        while pos < stop:
            char = text[pos]
            if char == '\\':
                pos += 2

            elif char == '<':
                skipped_to = skip_markup_declaration(text, pos)
                if skipped_to is None:
                    pos += 1
                else:
                    self._emit_text(text_start, pos)
                    pos = text_start = min(skipped_to, stop)

            elif char == '$' and text.startswith('${', pos):
                expression_stop = scan_expression(text, pos + 2, stop)
                if expression_stop.kind is StopKind.CLOSE:
                    # Inline expression; stays part of the text run
                    pos = expression_stop.index + 1
                elif expression_stop.kind is StopKind.TEMPLATE:
                    self._emit_text(text_start, pos)
                    self._open(
                        text[
                            pos + 2:
                            expression_stop.index - len(TEMPLATE_TAG)],
                        offset=pos,
                        end=expression_stop.index + 1)
                    pos = text_start = expression_stop.index + 1
                else:
                    raise StructuralError(
                        'Unterminated embedded expression', offset=pos)

            elif char == '`' and self._constructs:
                self._emit_text(text_start, pos)
                pos = text_start = self._close_template(pos, stop)

            else:
                pos += 1

        self._emit_text(text_start, stop)

    def _emit_text(self, start: int, end: int):
        if end <= start:
            return

        normalized = normalize_text(self.text[start:end])
        if normalized:
            self.stream.append(TagToken(
                kind=TagKind.TEXT,
                name='',
                raw_text=normalized,
                start=start,
                end=end))

    def _emit_inline_branch(self, expression: str, start: int, end: int):
        expression = expression.strip()
        if expression and expression not in _EMPTY_BRANCHES:
            self.stream.append(TagToken(
                kind=TagKind.TEXT,
                name='',
                raw_text=f'${{{expression}}}',
                start=start,
                end=end))

    def _open(
            self,
            prefix: str,
            *,
            offset: int,
            end: int,
            owns_brace: bool = True):
        """Classifies the expression text between ``${`` and the
        ``html`` tag of a nested template, and opens whatever construct
        it describes.
        """
        map_match = match_map_signature(prefix)
        if map_match is not None:
            self._constructs.append(_OpenConstruct(
                _ConstructKind.MAP, offset, owns_brace=owns_brace))
            self.stream.append(MapOpen(
                signature=map_match.signature, start=offset, end=end))

            rest = map_match.rest.strip()
            if rest:
                self._open_map_body(rest, offset=offset, end=end)
            return

        ternary = match_ternary_opener(prefix)
        if ternary is not None:
            construct = _OpenConstruct(
                _ConstructKind.CONDITION, offset, owns_brace=owns_brace)
            self._constructs.append(construct)
            self.stream.append(
                CondOpen(expr_text=ternary.guard, start=offset, end=end))
            if ternary.inline_true is not None:
                self._emit_inline_branch(ternary.inline_true, offset, end)
                self.stream.append(CondElse(start=offset, end=end))
                construct.in_else = True
            return

        logical = match_logical_opener(prefix)
        if logical is not None:
            self._constructs.append(_OpenConstruct(
                _ConstructKind.LOGICAL, offset, owns_brace=owns_brace))
            self.stream.append(
                LogicalOpen(expr_text=logical.guard, start=offset, end=end))
            return

        guarded = match_guarded_map(prefix)
        if guarded is not None:
            if guarded.ternary:
                kind = _ConstructKind.CONDITION
                opener = CondOpen(
                    expr_text=guarded.guard, start=offset, end=end)
            else:
                kind = _ConstructKind.LOGICAL
                opener = LogicalOpen(
                    expr_text=guarded.guard, start=offset, end=end)

            self._constructs.append(
                _OpenConstruct(kind, offset, owns_brace=owns_brace))
            self.stream.append(opener)
            self._open(
                guarded.map_prefix, offset=offset, end=end, owns_brace=False)
            return

        raise StructuralError(
            f'Unsupported expression around nested markup: {prefix!r}',
            offset=offset)

    def _open_map_body(self, rest: str, *, offset: int, end: int):
        """Handles a map callback whose body is itself a ternary or a
        logical. Those have no closing brace of their own, so they're
        marked implicit and closed by the map's ``)}``.
        """
        ternary = match_ternary_opener(rest)
        if ternary is not None and ternary.inline_true is None:
            self._constructs.append(_OpenConstruct(
                _ConstructKind.CONDITION, offset, implicit=True))
            self.stream.append(
                CondOpen(expr_text=ternary.guard, start=offset, end=end))
            return

        logical = match_logical_opener(rest)
        if logical is not None:
            self._constructs.append(_OpenConstruct(
                _ConstructKind.LOGICAL, offset, implicit=True))
            self.stream.append(
                LogicalOpen(expr_text=logical.guard, start=offset, end=end))
            return

        raise StructuralError(
            f'Unsupported map callback body: {rest!r}', offset=offset)

    def _close_template(self, pos: int, stop: int) -> int:
        """Handles the backtick at ``pos``, which closes the current
        nested template. Returns the position to resume scanning at.
        """
        return self._after_branch(pos + 1, stop, offset=pos)

    def _after_branch(self, pos: int, stop: int, *, offset: int) -> int:
        """Continues after the end of a branch: either into the else
        branch of the innermost conditional, or by closing constructs.
        """
        construct = self._constructs[-1]
        if (
            construct.kind is _ConstructKind.CONDITION
            and not construct.in_else
        ):
            else_match = _ELSE_MATCHER.match(self.text, pos, stop)
            if else_match is None:
                raise StructuralError(
                    'Expected an else branch after conditional branch',
                    offset=offset)

            return self._open_else(construct, else_match.end(), stop)

        return self._close_constructs(pos, stop, offset=offset)

    def _open_else(
            self,
            construct: _OpenConstruct,
            pos: int,
            stop: int
            ) -> int:
        text = self.text
        expression_stop = scan_expression(
            text, pos, stop, stop_at_paren=construct.implicit)
        construct.in_else = True

        if expression_stop.kind is StopKind.TEMPLATE:
            end = expression_stop.index + 1
            prefix = text[pos:expression_stop.index - len(TEMPLATE_TAG)]
            if not prefix.strip():
                self.stream.append(CondElse(start=pos, end=end))
                return end

            ternary = match_ternary_opener(prefix)
            if ternary is not None and ternary.inline_true is None:
                # Else-if: the same construct carries on with a new guard;
                # the single closing brace at the end closes the chain
                construct.in_else = False
                self.stream.append(CondElseIf(
                    expr_text=ternary.guard, start=pos, end=end))
                return end

            self.stream.append(CondElse(start=pos, end=end))
            self._open(prefix, offset=pos, end=end, owns_brace=False)
            return end

        if expression_stop.kind is StopKind.END:
            raise StructuralError(
                'Could not find the end of the else branch', offset=pos)

        # Inline else branch, ending at either the closing brace or (for
        # map callback bodies) the closing paren of the map call
        self.stream.append(CondElse(start=pos, end=expression_stop.index))
        self._emit_inline_branch(
            text[pos:expression_stop.index], pos, expression_stop.index)
        return self._close_constructs(
            expression_stop.index, stop, offset=expression_stop.index)

    def _close_constructs(self, pos: int, stop: int, *, offset: int) -> int:
        """Closes the innermost construct, starting from the text right
        after its last branch. Returns the position to resume scanning.
        """
        construct = self._constructs[-1]
        if construct.kind is _ConstructKind.MAP or construct.implicit:
            paren_match = _CLOSE_PAREN_MATCHER.match(self.text, pos, stop)
            if paren_match is None:
                raise StructuralError(
                    'Expected ")" to close the map callback', offset=offset)

            if construct.implicit:
                self._constructs.pop()
                self.stream.append(self._close_token(construct, offset))

            return self._close_map(paren_match.end() - 1, stop)

        if not construct.owns_brace:
            # Opened within an else branch; the enclosing conditional's
            # closing brace closes both
            self._constructs.pop()
            self.stream.append(self._close_token(construct, offset))
            return self._close_constructs(pos, stop, offset=offset)

        brace_match = _CLOSE_BRACE_MATCHER.match(self.text, pos, stop)
        if brace_match is None:
            raise StructuralError(
                'Expected "}" to close the embedded expression',
                offset=offset)

        self._constructs.pop()
        self.stream.append(
            self._close_token(construct, brace_match.end() - 1))
        return brace_match.end()

    def _close_map(self, paren_pos: int, stop: int) -> int:
        """Closes the innermost map, given the position of the ``)`` that
        ends its callback. For maps that own their embedded expression,
        anything chained after the call (for example ``.join('')``) is
        skipped.
        """
        if not self._constructs or (
            self._constructs[-1].kind is not _ConstructKind.MAP
        ):
            raise StructuralError(
                'Unexpected ")" outside of a map callback', offset=paren_pos)

        construct = self._constructs.pop()
        if not construct.owns_brace:
            self.stream.append(MapClose(start=paren_pos, end=paren_pos + 1))
            return self._after_branch(
                paren_pos + 1, stop, offset=paren_pos)

        expression_stop = scan_expression(self.text, paren_pos + 1, stop)
        if expression_stop.kind is not StopKind.CLOSE:
            raise StructuralError(
                'Expected "}" after the map call', offset=paren_pos)

        self.stream.append(MapClose(
            start=paren_pos, end=expression_stop.index + 1))
        return expression_stop.index + 1

    def _close_token(
            self,
            construct: _OpenConstruct,
            offset: int
            ) -> CondClose | LogicalClose:
        if construct.kind is _ConstructKind.CONDITION:
            if not construct.in_else:
                raise StructuralError(
                    'Conditional closed without an else branch',
                    offset=offset)
            return CondClose(start=offset, end=offset + 1)

        return LogicalClose(start=offset, end=offset + 1)
