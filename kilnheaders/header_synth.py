# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Rendering of header files from the recovered declarations.

The generated text lives in a managed region delimited by BEGIN_MARKER and
END_MARKER. When a header already exists only that region is replaced, so
anything written by hand around it survives regeneration. Rendering is
deterministic: regenerating from unchanged sources gives byte-identical
text.

A type shared by several source files is emitted by the header of each file
that needs it. Every type definition therefore sits behind its own guard
(see type_guard) and a translation unit including several of these headers
sees a single definition.

"""
import io
import logging
import os
import re

from .c_model import TypedefDecl
from .errors import HeaderMergeError

logger = logging.getLogger(__name__)


BEGIN_MARKER = '/* kiln gen-headers: begin managed region, do not edit */'
END_MARKER = '/* kiln gen-headers: end managed region */'


def guard_macro(stem):
    """Name of the include guard of the header generated for stem.

    """
    macro = re.sub(r'\W', '_', stem).upper() + '_H'
    if macro[0].isdigit():
        macro = '_' + macro
    return macro


def type_guard(decl):
    """Name of the macro guarding the definition of a type.

    ``struct Point`` gives 'KILN_STRUCT_Point' and ``typedef ... Vehicle``
    gives 'KILN_TYPEDEF_Vehicle'.

    """
    if isinstance(decl, TypedefDecl):
        kind, name = 'typedef', decl.alias
    else:
        kind, name = decl.kind, decl.tag
    return 'KILN_{}_{}'.format(kind.upper(), name)


def header_name(source_path):
    """'src/point.c' -> 'point.h'"""
    return os.path.splitext(os.path.basename(source_path))[0] + '.h'


def write_if_changed(path, text):
    """Write text to path unless the file already holds exactly this text.

    Returns
    -------
    bool
        Whether the file was written.

    """
    if os.path.isfile(path):
        with io.open(path, 'r', encoding='utf-8', newline='') as f:
            if f.read() == text:
                return False
    directory = os.path.dirname(path)
    if directory and not os.path.isdir(directory):
        os.makedirs(directory)
    with io.open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(text)
    return True


class HeaderSynthesizer(object):
    """Render headers for the source files of one generation run.

    Parameters
    ----------
    registry : TypeRegistry
        Run-wide registry holding the types of every scanned file.
    writer : callable, optional
        File-write collaborator called as writer(path, text). Defaults to
        write_if_changed.

    """

    def __init__(self, registry, writer=write_if_changed):
        self.registry = registry
        self.writer = writer

    # --- Rendering

    @staticmethod
    def exported(signatures):
        """Signatures that belong in a header: externally visible and not the
        program entry point.

        """
        return [sig for sig in signatures
                if sig.is_external and sig.name != 'main']

    @staticmethod
    def guarded_definition(decl):
        return '#ifndef {0}\n#define {0}\n{1}\n#endif'.format(
            type_guard(decl), decl.c_definition())

    def render_region(self, signatures, includes=(), own_header=None,
                      defines=()):
        """Render the managed region, markers included.

        The region holds, in this order, the includes, the macros, the
        forward declarations, the type definitions and the prototypes.

        Parameters
        ----------
        signatures : list[FunctionSignature]
            Functions of the source file, in source order.
        includes : list[str], optional
            ``#include`` directives of the source file.
        own_header : str, optional
            Name of the header being generated. Includes of it are dropped.
        defines : list[MacroDefinition], optional
            Macros defined by the source file. Types may be written in terms
            of them.

        Raises
        ------
        UnresolvedTypeError
            If a signature needs a type that is not defined anywhere.
        CycleError
            If a needed composite contains itself by value.

        """
        signatures = self.exported(signatures)
        forward, types = self.registry.declarations_for(signatures)

        sections = []
        kept_includes = []
        for include in includes:
            target = include.split(None, 1)[-1].strip('<>"')
            if own_header is not None and os.path.basename(target) == \
                    own_header:
                continue
            if include not in kept_includes:
                kept_includes.append(include)
        if kept_includes:
            sections.append('\n'.join(kept_includes))
        if defines:
            sections.append('\n'.join(macro.c_definition()
                                      for macro in defines))
        if forward:
            sections.append('\n'.join(decl.c_forward_declaration()
                                      for decl in forward))
        for decl in types:
            sections.append(self.guarded_definition(decl))
        if signatures:
            sections.append('\n'.join(sig.c_prototype()
                                      for sig in signatures))

        lines = [BEGIN_MARKER]
        if sections:
            lines.append('\n\n'.join(sections))
        lines.append(END_MARKER)
        return '\n'.join(lines)

    @staticmethod
    def render_header(guard, region):
        """Text of a new header made of the include guard and the region.

        """
        return ('#ifndef {0}\n#define {0}\n\n{1}\n\n#endif // {0}\n'
                .format(guard, region))

    # --- Merging

    def merge(self, existing, region, guard):
        """Put region into the existing header text.

        Parameters
        ----------
        existing : str | None
            Current header text, None if there is no header yet.
        region : str
            Output of render_region.
        guard : str
            Include guard macro, used when a new header is rendered.

        Raises
        ------
        HeaderMergeError
            If the markers of existing are unbalanced or duplicated.

        """
        if existing is None:
            return self.render_header(guard, region)

        begin_count = existing.count(BEGIN_MARKER)
        end_count = existing.count(END_MARKER)
        if begin_count == 0 and end_count == 0:
            logger.warning('header without managed region, inserting one')
            return self._insert_region(existing, region)
        begin = existing.find(BEGIN_MARKER)
        end = existing.find(END_MARKER)
        if begin_count != 1 or end_count != 1 or end < begin:
            line = existing.count('\n', 0, begin if begin >= 0 else end) + 1
            raise HeaderMergeError('malformed managed region markers in '
                                   'existing header', line, 1)
        end += len(END_MARKER)
        return existing[:begin] + region + existing[end:]

    @staticmethod
    def _insert_region(existing, region):
        """Insert the region before the closing #endif of the include guard,
        or at the end when there is none.

        """
        matches = list(re.finditer(r'^[ \t]*#[ \t]*endif\b.*$', existing,
                                   re.MULTILINE))
        if matches:
            start = matches[-1].start()
            return existing[:start] + region + '\n\n' + existing[start:]
        if existing and not existing.endswith('\n'):
            existing += '\n'
        return existing + region + '\n'

    # --- Generation

    def synthesize(self, source_path, signatures, includes, existing=None,
                   defines=()):
        """Complete text of the header of one source file.

        """
        name = header_name(source_path)
        region = self.render_region(signatures, includes, own_header=name,
                                    defines=defines)
        guard = guard_macro(os.path.splitext(name)[0])
        return self.merge(existing, region, guard)

    def generate(self, source_path, signatures, includes, header_path,
                 defines=()):
        """Synthesize the header of a source file and hand it to the writer.

        Returns
        -------
        bool
            Whether the writer reported a change.

        """
        existing = None
        if os.path.isfile(header_path):
            with io.open(header_path, 'r', encoding='utf-8',
                         newline='') as f:
                existing = f.read()
        text = self.synthesize(source_path, signatures, includes, existing,
                               defines)
        changed = self.writer(header_path, text)
        if changed:
            logger.info('wrote {}'.format(header_path))
        else:
            logger.debug('{} is up to date'.format(header_path))
        return changed
