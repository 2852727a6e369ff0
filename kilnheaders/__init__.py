# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
import logging

from .c_parser import CParser, parse_source
from .c_tokenizer import Tokenizer, tokenize
from .errors import (CycleError, DeclarationSyntaxError, Diagnostic,
                     DuplicateDefinitionError, HeaderMergeError, KilnError,
                     LexError, ManifestError, UnresolvedTypeError)
from .generate import HeaderGenerator
from .header_synth import HeaderSynthesizer
from .registry import TAG, TYPEDEF, TypeRegistry
from .version import __version__

logging.getLogger("kilnheaders").addHandler(logging.NullHandler())

__all__ = (
    "CParser",
    "CycleError",
    "DeclarationSyntaxError",
    "Diagnostic",
    "DuplicateDefinitionError",
    "HeaderGenerator",
    "HeaderMergeError",
    "HeaderSynthesizer",
    "KilnError",
    "LexError",
    "ManifestError",
    "TAG",
    "TYPEDEF",
    "Tokenizer",
    "TypeRegistry",
    "UnresolvedTypeError",
    "parse_source",
    "tokenize",
    "__version__",
)
