from __future__ import annotations


class HyperbindException(Exception):
    """Base class for all hyperbind exceptions."""


class InvalidTemplate(HyperbindException):
    """The most general form of "there's a problem with this template."
    """


class StructuralError(InvalidTemplate):
    """Raised when the template's structure is broken: an unbalanced
    tag, a ``.map()`` or conditional that never closes, a conditional
    branch with more than one root node, etc.

    These are always fatal. A template is either well-formed or it
    isn't, so no partial tree is ever returned. The ``offset`` is the
    position within the template text of the offending token.
    """
    offset: int

    def __init__(self, message: str, *, offset: int):
        super().__init__(message, offset)
        self.offset = offset

    def __str__(self):
        return f'{self.args[0]} (at offset {self.offset})'


class UnknownRootError(InvalidTemplate):
    """Raised when an expression references a name that is neither one
    of the configured roots (``context``, ``core``, ``state``) nor an
    alias bound by an enclosing ``.map()``.

    This is recoverable: the binding that contained the reference is
    preserved as raw text, and compilation continues.
    """
    root: str
    expression: str

    def __init__(self, root: str, expression: str):
        super().__init__(
            f'Unknown root {root!r} in expression {expression!r}',
            root, expression)
        self.root = root
        self.expression = expression


class AttributeParseAmbiguity(InvalidTemplate):
    """Raised when an attribute's value syntax doesn't match any of
    the recognized forms (quoted, embedded expression, bare word, or
    attribute-less toggle). The attribute is kept as a static string
    of its raw text.
    """
    raw_text: str

    def __init__(self, message: str, raw_text: str):
        super().__init__(message, raw_text)
        self.raw_text = raw_text


class ScopeDepthError(HyperbindException):
    """Raised if a loop-relative path would point past the outermost
    active ``.map()`` scope. This indicates a bug, not a bad template.
    """
