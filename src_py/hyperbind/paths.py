from __future__ import annotations

import re
from dataclasses import dataclass
from dataclasses import field
from typing import Annotated

from docnote import Note

_PLACEHOLDER_MATCHER = re.compile(r'(?<![\w$\])])\[(\d+)\]')

type ResolvedPath = Absolute | ItemRelative | IndexRelative


@dataclass(frozen=True, slots=True)
class Absolute:
    """A path rooted directly at one of the root bindings, for example
    ``/context/user/name``.
    """
    root: str
    segments: tuple[str, ...] = ()

    def render(self) -> str:
        return '/'.join(('', self.root, *self.segments))


@dataclass(frozen=True, slots=True)
class ItemRelative:
    """A path relative to the item alias of an enclosing ``.map()``.
    ``ups`` is the number of enclosing loops to skip before binding;
    zero means the innermost one.
    """
    ups: int
    segments: tuple[str, ...] = ()

    def render(self) -> str:
        return '../' * self.ups + '/'.join(('[item]', *self.segments))


@dataclass(frozen=True, slots=True)
class IndexRelative:
    """The index alias of an enclosing ``.map()``.
    """
    ups: int

    def render(self) -> str:
        return '../' * self.ups + '[index]'


@dataclass(frozen=True, slots=True)
class BindingExpression:
    """The resolved form of every expression in the template. The
    template text has each data reference replaced with a positional
    placeholder; ``paths[i]`` is what placeholder ``i`` binds to.
    """
    template: Annotated[
        str,
        Note('''The expression text, with references replaced by
            placeholders. Within an embedded ``${...}`` segment the
            placeholder is ``[i]``; within a bare expression (guards,
            event handlers) it's the full ``${[i]}``.''')]
    paths: tuple[ResolvedPath, ...] = ()
    unresolved: Annotated[
        bool,
        Note('''True if the expression contained a reference that
            couldn't be resolved. In that case, ``template`` is the raw
            source text and ``paths`` is empty.''')
        ] = field(default=False, kw_only=True)

    @property
    def is_bare_reference(self) -> bool:
        """True if the template is exactly one placeholder with no
        surrounding text, ie, the binding is just the path itself.
        """
        return len(self.paths) == 1 and self.template == '${[0]}'

    @property
    def placeholder_indices(self) -> frozenset[int]:
        if self.unresolved:
            return frozenset()

        return frozenset(
            int(match.group(1))
            for match in _PLACEHOLDER_MATCHER.finditer(self.template))
