# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Command line entry point: ``kiln-headers gen-headers``.

Diagnostics are printed on stderr as ``path:line:column: message``. The exit
status is 0 when every scanned file produced its header, 1 when any file
produced diagnostics and 2 on a project or usage error.

"""
import argparse
import logging
import os
import sys

from .config import load_project
from .errors import ManifestError
from .generate import HeaderGenerator
from .version import __version__

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_USAGE = 2


def build_arg_parser():
    parser = argparse.ArgumentParser(
        prog='kiln-headers',
        description='Synthesize C headers from implementation files.')
    parser.add_argument('--version', action='version',
                        version='%(prog)s ' + __version__)
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='more logging (-v info, -vv debug)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    gen = subparsers.add_parser(
        'gen-headers',
        help='generate or update include/<name>.h for every source file')
    gen.add_argument('--project-dir', metavar='DIR',
                     help='directory inside the project, the manifest is '
                          'looked up from there (default: working '
                          'directory)')
    gen.add_argument('-j', '--jobs', type=int, metavar='N',
                     help='number of files parsed in parallel')
    gen.add_argument('files', nargs='*',
                     help='restrict generation to these source files')
    return parser


def _configure_logging(verbosity):
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity,
                                                      logging.DEBUG)
    logging.basicConfig(level=level, stream=sys.stderr,
                        format='%(levelname)s:%(name)s: %(message)s')


def gen_headers(args, stderr=None):
    """Run the gen-headers command.

    Returns
    -------
    int
        Exit status.

    """
    stderr = stderr or sys.stderr
    try:
        project = load_project(args.project_dir)
    except ManifestError as exc:
        stderr.write('kiln-headers: error: {}\n'.format(exc))
        return EXIT_USAGE

    sources = project.source_files()
    if args.files:
        wanted = set(os.path.abspath(path) for path in args.files)
        sources = [path for path in sources
                   if os.path.abspath(path) in wanted]

    generator = HeaderGenerator(sources, project.header_path, args.jobs)
    try:
        result = generator.run()
    except OSError as exc:
        stderr.write('kiln-headers: error: {}\n'.format(exc))
        return EXIT_USAGE

    for diagnostic in result.diagnostics:
        stderr.write('{}\n'.format(diagnostic))
    logger.info('{} header(s) written, {} up to date'
                .format(len(result.written), len(result.unchanged)))
    return EXIT_OK if result.ok else EXIT_DIAGNOSTICS


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    if args.command == 'gen-headers':
        return gen_headers(args)
    parser.error('unknown command {}'.format(args.command))


if __name__ == '__main__':
    sys.exit(main())
