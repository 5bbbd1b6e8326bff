from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated

from docnote import Note

from hyperbind._error_collector import ErrorCollector
from hyperbind.attributes import classify_tree
from hyperbind.config import DEFAULT_COMPILE_CONFIG
from hyperbind.config import CompileConfig
from hyperbind.extractor import extract
from hyperbind.hierarchy import build
from hyperbind.nodes import Node
from hyperbind.resolver import resolve
from hyperbind.scanner import scan
from hyperbind.serialization import serialize_nodes

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CompiledTemplate:
    nodes: Annotated[
        tuple[Node, ...],
        Note('The root nodes of the template, fully resolved.')]
    errors: Annotated[
        tuple[Exception, ...],
        Note('''Any recoverable errors encountered during compilation
            (unknown roots, ambiguous attribute syntax). The bindings
            they affected are kept as raw text within ``nodes``.''')
        ] = ()

    def serialize(self) -> list[dict]:
        return serialize_nodes(self.nodes)


def compile_template(
        text: str,
        config: CompileConfig | None = None
        ) -> CompiledTemplate:
    """Runs the whole compile pipeline on the template text: scanning,
    control flow extraction, tree building, attribute classification,
    and path resolution.

    Structural problems (unbalanced tags, unclosed maps or
    conditionals) raise ``StructuralError``; no partial tree is ever
    returned. Everything else is collected onto the result's
    ``errors``, unless ``config.strict`` is set, in which case they're
    raised together as an ``ExceptionGroup``.
    """
    if config is None:
        config = DEFAULT_COMPILE_CONFIG

    errors = ErrorCollector(max_errors=config.max_errors)

    tag_tokens = scan(text, config)
    logger.debug('Scanned %s tag tokens', len(tag_tokens))
    stream = extract(text, tag_tokens)
    logger.debug('Extracted %s stream tokens', len(stream))
    nodes = build(stream)
    logger.debug('Built %s root nodes', len(nodes))
    nodes = classify_tree(nodes, config, errors)
    nodes = resolve(nodes, config, errors)
    logger.debug('Resolved template with %s recoverable errors', len(errors))

    if config.strict:
        errors.raise_if_any('Template compiled with errors!')

    return CompiledTemplate(nodes=nodes, errors=tuple(errors))
