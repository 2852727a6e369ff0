# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""One header generation run over a set of source files.

Files are parsed in parallel, each by its own CParser into its own
TypeRegistry. The per-file registries are then merged one after the other
into the registry of the run, which the synthesizer consumes. A file with
any diagnostic gets no header and contributes no type to the run.

"""
import concurrent.futures
import io
import logging

from .c_parser import CParser
from .errors import DeclarationError
from .header_synth import HeaderSynthesizer, write_if_changed
from .registry import TypeRegistry

logger = logging.getLogger(__name__)


def parse_file(path):
    """Parse one source file.

    Raises
    ------
    OSError
        If the file cannot be read.

    """
    with io.open(path, 'r', encoding='utf-8', errors='replace') as f:
        text = f.read()
    parser = CParser(TypeRegistry(path), path)
    parser.parse(text)
    logger.debug('{}: {} declarations, {} errors'
                 .format(path, len(parser.declarations), len(parser.errors)))
    return parser


class GenerationResult(object):
    """Outcome of a run.

    Attributes
    ----------
    errors : dict[str, list[DeclarationError]]
        Problems per source file, in source order.
    written : list[str]
        Headers whose content changed.
    unchanged : list[str]
        Headers already up to date.

    """

    def __init__(self):
        self.errors = {}
        self.written = []
        self.unchanged = []

    @property
    def ok(self):
        return not any(self.errors.values())

    @property
    def diagnostics(self):
        """All the problems as Diagnostic objects, sorted by location.

        """
        diagnostics = [error.to_diagnostic(path)
                       for path, errors in self.errors.items()
                       for error in errors]
        return sorted(diagnostics, key=lambda d: (d.path, d.line, d.column))


class HeaderGenerator(object):
    """Generate the headers of a list of source files.

    Parameters
    ----------
    sources : list[str]
        Source files to scan.
    header_path : callable
        Maps a source path to the path of its header.
    jobs : int, optional
        Number of parsing workers, None lets the executor decide.
    writer : callable, optional
        File-write collaborator, see HeaderSynthesizer.

    """

    def __init__(self, sources, header_path, jobs=None,
                 writer=write_if_changed):
        self.sources = list(sources)
        self.header_path = header_path
        self.jobs = jobs
        self.writer = writer
        self.registry = None

    def parse_all(self):
        """Parse every source, in parallel.

        Returns
        -------
        list[CParser]
            One parser per source, in the order of sources.

        """
        with concurrent.futures.ThreadPoolExecutor(self.jobs) as executor:
            return list(executor.map(parse_file, self.sources))

    def merge_all(self, parsers, result):
        """Build the registry of the run from the per-file registries.

        """
        self.registry = TypeRegistry('<run>')
        for parser in parsers:
            errors = list(parser.errors)
            if not errors:
                errors = self.registry.merge(parser.registry)
            result.errors[parser.path] = errors

        for error in self.registry.find_cycles():
            result.errors.setdefault(error.path, []).append(error)

    def run(self):
        """Parse, merge and synthesize.

        Returns
        -------
        GenerationResult

        Raises
        ------
        OSError
            If a source cannot be read.

        """
        result = GenerationResult()
        parsers = self.parse_all()
        self.merge_all(parsers, result)

        synthesizer = HeaderSynthesizer(self.registry, self.writer)
        for parser in parsers:
            if result.errors[parser.path]:
                logger.info('{}: not generating a header, the file has '
                            'errors'.format(parser.path))
                continue
            header_path = self.header_path(parser.path)
            try:
                changed = synthesizer.generate(parser.path, parser.signatures,
                                               parser.includes, header_path,
                                               parser.defines)
            except DeclarationError as exc:
                if exc.path is None:
                    exc.path = parser.path
                elif exc.path != parser.path:
                    exc.message += ' (needed by {})'.format(parser.path)
                result.errors[parser.path].append(exc)
                continue
            if changed:
                result.written.append(header_path)
            else:
                result.unchanged.append(header_path)
        return result
