from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated

from docnote import Note

from hyperbind.expressions import MapSignature


class TagKind(Enum):
    OPEN = 'open'
    CLOSE = 'close'
    SELF = 'self'
    TEXT = 'text'


@dataclass(frozen=True, slots=True)
class TagToken:
    """Tag tokens are produced by the scanner (open, close, and
    self-closing tags) and by the extractor (text runs). ``start`` and
    ``end`` are offsets into the original template text; ``end`` is
    exclusive.
    """
    kind: TagKind
    name: Annotated[
        str,
        Note('''The tag name. Static names are lowercased; names with an
            embedded expression (``meta-${core.tag}``) are kept verbatim.
            Empty for text tokens.''')]
    raw_text: Annotated[
        str,
        Note('''For tags, the exact source text of the tag. For text
            tokens, the whitespace-normalized text run.''')]
    start: int
    end: int

    @property
    def is_dynamic(self) -> bool:
        return '${' in self.name


@dataclass(frozen=True, slots=True)
class MapOpen:
    signature: MapSignature
    start: int
    end: int

    @property
    def signature_text(self) -> str:
        return self.signature.text


@dataclass(frozen=True, slots=True)
class MapClose:
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class CondOpen:
    expr_text: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class CondElseIf:
    expr_text: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class CondElse:
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class CondClose:
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class LogicalOpen:
    expr_text: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class LogicalClose:
    start: int
    end: int


type ControlToken = (
    MapOpen
    | MapClose
    | CondOpen
    | CondElseIf
    | CondElse
    | CondClose
    | LogicalOpen
    | LogicalClose)
type StreamToken = TagToken | ControlToken
