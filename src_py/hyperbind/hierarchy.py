"""Assembles the merged token stream into a node tree.

Nodes are built as mutable drafts in an arena, addressed by index, with
an explicit stack of the indices of every container that's currently
open. Once the whole stream has been consumed, the drafts are frozen
into the final node types.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum

from hyperbind.exceptions import StructuralError
from hyperbind.expressions import MapSignature
from hyperbind.nodes import Condition
from hyperbind.nodes import Element
from hyperbind.nodes import Logical
from hyperbind.nodes import Map
from hyperbind.nodes import Meta
from hyperbind.nodes import Node
from hyperbind.nodes import Text
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


class _DraftKind(Enum):
    ELEMENT = 'element'
    META = 'meta'
    TEXT = 'text'
    MAP = 'map'
    CONDITION = 'condition'
    LOGICAL = 'logical'


_CONTAINER_NAMES = {
    _DraftKind.ELEMENT: 'element',
    _DraftKind.META: 'element',
    _DraftKind.MAP: 'map',
    _DraftKind.CONDITION: 'conditional',
    _DraftKind.LOGICAL: 'logical',
}


@dataclass(slots=True)
class _Draft:
    kind: _DraftKind
    offset: int
    # Tag name for elements, guard for conditions and logicals, text for
    # text nodes
    text: str = ''
    raw_attributes: str = ''
    signature: MapSignature | None = None
    children: list[int] = field(default_factory=list)
    false_children: list[int] = field(default_factory=list)
    in_else: bool = False
    # Set on the nested conditions created by else-if; these are closed
    # together with their parent by a single CondClose
    chained: bool = False


def build(stream: Iterable[StreamToken]) -> tuple[Node, ...]:
    """Builds the node tree from the merged token stream. Raises
    ``StructuralError`` for unbalanced tags, unclosed constructs, and
    conditional branches with more than one root node.
    """
    builder = _TreeBuilder()
    for token in stream:
        builder.feed(token)

    return builder.finish()


class _TreeBuilder:

    def __init__(self):
        self.arena: list[_Draft] = []
        self.roots: list[int] = []
        self.open_frames: list[int] = []

    def feed(self, token: StreamToken):
        if isinstance(token, TagToken):
            self._feed_tag(token)

        elif isinstance(token, MapOpen):
            self._open(_Draft(
                kind=_DraftKind.MAP,
                offset=token.start,
                text=token.signature_text,
                signature=token.signature))

        elif isinstance(token, CondOpen):
            self._open(_Draft(
                kind=_DraftKind.CONDITION,
                offset=token.start,
                text=token.expr_text))

        elif isinstance(token, LogicalOpen):
            self._open(_Draft(
                kind=_DraftKind.LOGICAL,
                offset=token.start,
                text=token.expr_text))

        elif isinstance(token, CondElse):
            self._enter_else(token, 'else')

        elif isinstance(token, CondElseIf):
            self._enter_else(token, 'else-if')
            self._open(_Draft(
                kind=_DraftKind.CONDITION,
                offset=token.start,
                text=token.expr_text,
                chained=True))

        elif isinstance(token, CondClose):
            draft = self._expect_open(_DraftKind.CONDITION, token, 'close')
            if not draft.in_else:
                raise StructuralError(
                    f'Conditional {draft.text!r} closed without an else '
                    + 'branch',
                    offset=token.start)

            self.open_frames.pop()
            while draft.chained:
                draft = self._expect_open(
                    _DraftKind.CONDITION, token, 'close')
                self.open_frames.pop()

        elif isinstance(token, LogicalClose):
            self._expect_open(_DraftKind.LOGICAL, token, 'close')
            self.open_frames.pop()

        elif isinstance(token, MapClose):
            self._expect_open(_DraftKind.MAP, token, 'close')
            self.open_frames.pop()

        else:
            raise TypeError('Unknown stream token type!', token)

    def finish(self) -> tuple[Node, ...]:
        if self.open_frames:
            draft = self.arena[self.open_frames[-1]]
            raise StructuralError(
                f'Unclosed {_CONTAINER_NAMES[draft.kind]}: {draft.text!r}',
                offset=draft.offset)

        return tuple(self._freeze(index) for index in self.roots)

    def _feed_tag(self, token: TagToken):
        if token.kind is TagKind.TEXT:
            self._append(self._allocate(_Draft(
                kind=_DraftKind.TEXT,
                offset=token.start,
                text=token.raw_text)))

        elif token.kind is TagKind.CLOSE:
            self._close_element(token)

        else:
            draft = _Draft(
                kind=(
                    _DraftKind.META if token.is_dynamic
                    else _DraftKind.ELEMENT),
                offset=token.start,
                text=token.name,
                raw_attributes=_extract_raw_attributes(token))
            if token.kind is TagKind.OPEN:
                self._open(draft)
            else:
                self._append(self._allocate(draft))

    def _allocate(self, draft: _Draft) -> int:
        self.arena.append(draft)
        return len(self.arena) - 1

    def _append(self, index: int):
        if not self.open_frames:
            self.roots.append(index)
            return

        parent = self.arena[self.open_frames[-1]]
        if parent.in_else:
            parent.false_children.append(index)
        else:
            parent.children.append(index)

    def _open(self, draft: _Draft):
        index = self._allocate(draft)
        self._append(index)
        self.open_frames.append(index)

    def _expect_open(
            self,
            kind: _DraftKind,
            token: StreamToken,
            action: str
            ) -> _Draft:
        """Returns the innermost open draft, after checking that it's of
        the expected kind.
        """
        if self.open_frames:
            draft = self.arena[self.open_frames[-1]]
            if draft.kind is kind:
                return draft

            found = _CONTAINER_NAMES[draft.kind]
        else:
            found = 'nothing'

        raise StructuralError(
            f'Unexpected {_CONTAINER_NAMES[kind]} {action} ({found} is open)',
            offset=token.start)

    def _enter_else(self, token: CondElse | CondElseIf, action: str):
        draft = self._expect_open(_DraftKind.CONDITION, token, action)
        if draft.in_else:
            raise StructuralError(
                f'Conditional {draft.text!r} already has an else branch',
                offset=token.start)

        draft.in_else = True

    def _close_element(self, token: TagToken):
        if self.open_frames:
            draft = self.arena[self.open_frames[-1]]
            if (
                draft.kind in {_DraftKind.ELEMENT, _DraftKind.META}
                and draft.text == token.name
            ):
                self.open_frames.pop()
                return

            exc = StructuralError(
                f'Unexpected closing tag </{token.name}>',
                offset=token.start)
            exc.add_note(
                f'Innermost open {_CONTAINER_NAMES[draft.kind]} was '
                + f'{draft.text!r}, opened at offset {draft.offset}')
            raise exc

        raise StructuralError(
            f'Closing tag </{token.name}> without an opening tag',
            offset=token.start)

    def _freeze(self, index: int) -> Node:
        draft = self.arena[index]
        kind = draft.kind
        if kind is _DraftKind.ELEMENT:
            return Element(
                tag=draft.text,
                raw_attributes=draft.raw_attributes,
                children=self._freeze_all(draft.children))

        elif kind is _DraftKind.META:
            return Meta(
                tag_expr=draft.text,
                raw_attributes=draft.raw_attributes,
                children=self._freeze_all(draft.children))

        elif kind is _DraftKind.TEXT:
            return Text(content=draft.text)

        elif kind is _DraftKind.MAP:
            # Always set for map drafts; this is for the type checker
            if draft.signature is None:
                raise TypeError('Map draft without signature!', draft)

            return Map(
                source=draft.signature.source,
                signature=draft.signature,
                children=self._freeze_all(draft.children))

        elif kind is _DraftKind.CONDITION:
            return Condition(
                guard=draft.text,
                true_branch=self._freeze_branch(draft, draft.children),
                false_branch=self._freeze_branch(draft, draft.false_children))

        elif kind is _DraftKind.LOGICAL:
            return Logical(
                guard=draft.text,
                child=self._freeze_branch(draft, draft.children))

        else:
            raise TypeError('Unknown draft kind!', draft)

    def _freeze_all(self, indices: list[int]) -> tuple[Node, ...]:
        return tuple(self._freeze(index) for index in indices)

    def _freeze_branch(self, draft: _Draft, indices: list[int]) -> Node:
        if not indices:
            return Text(content='')

        if len(indices) > 1:
            raise StructuralError(
                f'Branch of {_CONTAINER_NAMES[draft.kind]} {draft.text!r} '
                + 'must contain exactly one root node',
                offset=self.arena[indices[1]].offset)

        return self._freeze(indices[0])


def _extract_raw_attributes(token: TagToken) -> str:
    # Static names are lowercased, but that never changes their length
    body = token.raw_text[1 + len(token.name):-1]
    if body.endswith('/'):
        body = body[:-1]

    return body.strip()
