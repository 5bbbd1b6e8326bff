from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from types import MappingProxyType
from typing import Annotated

from docnote import Note

from hyperbind._error_collector import DEFAULT_MAX_ERRORS

VOID_TAGS = frozenset({
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input', 'link',
    'meta', 'param', 'source', 'track', 'wbr'})

BOOLEAN_ATTRIBUTES = frozenset({
    'allowfullscreen', 'async', 'autofocus', 'autoplay', 'checked',
    'controls', 'default', 'defer', 'disabled', 'formnovalidate', 'hidden',
    'inert', 'ismap', 'itemscope', 'loop', 'multiple', 'muted', 'nomodule',
    'novalidate', 'open', 'playsinline', 'readonly', 'required', 'reversed',
    'selected'})

# A single space means "any run of whitespace"
LIST_ATTRIBUTE_SPLITTERS: Mapping[str, str] = MappingProxyType({
    'class': ' ',
    'rel': ' ',
    'headers': ' ',
    'itemref': ' ',
    'ping': ' ',
    'sandbox': ' ',
    'sizes': ' ',
    'accept-charset': ' ',
    'accept': ',',
    'srcset': ',',
    'coords': ',',
    'allow': ';',
})

FREE_NAMES = frozenset({
    # Literals and keywords
    'true', 'false', 'null', 'undefined', 'NaN', 'Infinity', 'this',
    'typeof', 'instanceof', 'new', 'in', 'of', 'void', 'delete', 'return',
    'function', 'await', 'async', 'let', 'const', 'var',
    # Globals
    'Math', 'JSON', 'Number', 'String', 'Boolean', 'Date', 'Array',
    'Object', 'Intl', 'parseInt', 'parseFloat', 'isNaN', 'console',
    'window', 'document', 'event',
    # Event helpers provided by the runtime
    'update',
})

BUILTIN_METHODS = frozenset({
    'at', 'charAt', 'concat', 'endsWith', 'every', 'filter', 'find',
    'findIndex', 'flat', 'includes', 'indexOf', 'join', 'lastIndexOf',
    'map', 'padEnd', 'padStart', 'reduce', 'repeat', 'replace',
    'replaceAll', 'slice', 'some', 'sort', 'split', 'startsWith',
    'substring', 'toFixed', 'toLocaleString', 'toLowerCase', 'toString',
    'toUpperCase', 'trim', 'trimEnd', 'trimStart', 'valueOf'})


@dataclass(frozen=True, kw_only=True)
class CompileConfig:
    """Compile configs control which names count as data roots, which
    tags are void, how list-valued attributes are split, etc. The
    defaults match what the downstream renderer expects; you should
    rarely need anything but ``DEFAULT_COMPILE_CONFIG``.
    """
    roots: Annotated[
            tuple[str, ...],
            Note('''The root bindings that an expression may be rooted at.
                A reference to ``context.user.name`` resolves to the
                absolute path ``/context/user/name``.''')
        ] = ('context', 'core', 'state')
    default_root: Annotated[
            str | None,
            Note('''If set, references to names that are neither a root
                nor a loop alias are treated as if they were nested under
                this root, instead of being reported as an
                ``UnknownRootError``. For example, with
                ``default_root='context'``, ``list`` resolves to
                ``/context/list``.''')
        ] = None
    void_tags: Annotated[
            frozenset[str],
            Note('''Tag names that never have a closing tag, and are
                therefore always treated as self-closing.''')
        ] = VOID_TAGS
    boolean_attributes: Annotated[
            frozenset[str],
            Note('''HTML boolean attributes. An embedded expression used as
                the value of one of these is bound as a boolean instead of
                as a string.''')
        ] = BOOLEAN_ATTRIBUTES
    list_attribute_splitters: Annotated[
            Mapping[str, str],
            Note('''Attribute names whose values are lists, mapped to the
                separator used to split them. A single space means any
                run of whitespace.''')
        ] = field(default_factory=lambda: LIST_ATTRIBUTE_SPLITTERS)
    free_names: Annotated[
            frozenset[str],
            Note('''Names that may appear in expressions without being
                data references: literals, keywords, well-known globals,
                and helpers provided by the runtime (``update``).''')
        ] = FREE_NAMES
    builtin_methods: Annotated[
            frozenset[str],
            Note('''Method names that are kept as trailing literal text
                when called on a reference, so that ``x.toUpperCase()``
                binds ``x`` rather than ``x.toUpperCase``. Calls to any
                other name keep the whole dot-chain, since they are
                presumed to be functions stored within the data.''')
        ] = BUILTIN_METHODS
    strict: Annotated[
            bool,
            Note('''If true, ``compile_template`` raises every collected
                recoverable error as an ``ExceptionGroup`` instead of
                returning a partially-resolved tree.''')
        ] = False
    max_errors: Annotated[
            int,
            Note('''The maximum number of recoverable errors to collect
                before giving up on the template entirely.''')
        ] = DEFAULT_MAX_ERRORS


DEFAULT_COMPILE_CONFIG = CompileConfig()
