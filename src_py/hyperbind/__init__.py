from docnote import DocnoteConfig
from docnote import MarkupLang

from hyperbind.attributes import classify
from hyperbind.attributes import classify_tree
from hyperbind.compiler import CompiledTemplate
from hyperbind.compiler import compile_template
from hyperbind.config import DEFAULT_COMPILE_CONFIG
from hyperbind.config import CompileConfig
from hyperbind.exceptions import AttributeParseAmbiguity
from hyperbind.exceptions import HyperbindException
from hyperbind.exceptions import InvalidTemplate
from hyperbind.exceptions import ScopeDepthError
from hyperbind.exceptions import StructuralError
from hyperbind.exceptions import UnknownRootError
from hyperbind.extractor import extract
from hyperbind.hierarchy import build
from hyperbind.resolver import Scope
from hyperbind.resolver import resolve
from hyperbind.scanner import scan
from hyperbind.serialization import serialize_json
from hyperbind.serialization import serialize_nodes

__all__ = [
    'DEFAULT_COMPILE_CONFIG',
    'AttributeParseAmbiguity',
    'CompileConfig',
    'CompiledTemplate',
    'HyperbindException',
    'InvalidTemplate',
    'Scope',
    'ScopeDepthError',
    'StructuralError',
    'UnknownRootError',
    'build',
    'classify',
    'classify_tree',
    'compile_template',
    'extract',
    'resolve',
    'scan',
    'serialize_json',
    'serialize_nodes',
]


DOCNOTE_CONFIG = DocnoteConfig(markup_lang=MarkupLang.CLEANCOPY)
