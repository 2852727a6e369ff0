# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Access to the project manifest (Kiln.toml).

Only the keys header generation needs are interpreted:

    [project]
    name = "demo"
    version = "0.1.0"
    language = "c"

    [build_options]
    src_dir = "src"
    include_dir = "include"

Other tables belong to the build driver and are ignored.

"""
import logging
import os
import tomllib

from .errors import ManifestError

logger = logging.getLogger(__name__)


CONFIG_FILE = 'Kiln.toml'

#: Implementation file extensions by project language.
LANGUAGE_EXTENSIONS = {
    'c': ('.c',),
    'cpp': ('.cpp', '.cc', '.cxx'),
    'cuda': ('.cu',),
}


def find_manifest(start=None):
    """Look for Kiln.toml in start and its parents.

    Parameters
    ----------
    start : str, optional
        Directory to start from, the working directory by default.

    Returns
    -------
    str
        Path of the manifest.

    Raises
    ------
    ManifestError
        If no parent directory holds a manifest.

    """
    directory = os.path.abspath(start or os.getcwd())
    while True:
        candidate = os.path.join(directory, CONFIG_FILE)
        if os.path.exists(candidate):
            return candidate
        parent = os.path.dirname(directory)
        if parent == directory:
            raise ManifestError('Invalid Project Directory: config file `{}` '
                                'not found'.format(CONFIG_FILE))
        directory = parent


class ProjectConfig(object):
    """Settings of a kiln project.

    Parameters
    ----------
    root : str
        Directory holding the manifest.
    name : str
    version : str
    language : str
        One of the keys of LANGUAGE_EXTENSIONS.
    src_dir : str, optional
        Source directory, relative to root.
    include_dir : str, optional
        Header directory, relative to root.

    """

    def __init__(self, root, name, version, language, src_dir='src',
                 include_dir='include'):
        if language not in LANGUAGE_EXTENSIONS:
            raise ManifestError('language {} not supported'.format(language))
        self.root = root
        self.name = name
        self.version = version
        self.language = language
        self.src_dir = src_dir
        self.include_dir = include_dir

    @classmethod
    def from_file(cls, path):
        """Load the manifest at path.

        Raises
        ------
        ManifestError
            If the file is not valid TOML or lacks a required key.

        """
        if not os.path.isfile(path):
            raise ManifestError('Invalid Project Directory: `{}` is not a '
                                'file.'.format(CONFIG_FILE))
        try:
            with open(path, 'rb') as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ManifestError('{}: {}'.format(path, exc))

        project = data.get('project', {})
        options = data.get('build_options', {})
        try:
            return cls(os.path.dirname(os.path.abspath(path)),
                       project['name'], project['version'],
                       project['language'],
                       options.get('src_dir') or 'src',
                       options.get('include_dir') or 'include')
        except KeyError as exc:
            raise ManifestError('{}: missing key `project.{}`'
                                .format(path, exc.args[0]))

    @property
    def src_path(self):
        return os.path.join(self.root, self.src_dir)

    @property
    def include_path(self):
        return os.path.join(self.root, self.include_dir)

    def validate(self):
        """Check the source directory and create the include directory.

        """
        if not os.path.exists(self.src_path):
            raise ManifestError('Invalid Project Directory: source code '
                                'directory `{}/` doesn\'t exist.'
                                .format(self.src_dir))
        if not os.path.isdir(self.src_path):
            raise ManifestError('Invalid Project Directory: `{}` is not a '
                                'directory.'.format(self.src_dir))
        if not os.path.isdir(self.include_path):
            logger.info('creating {}'.format(self.include_path))
            os.makedirs(self.include_path)

    def source_files(self):
        """Implementation files of the project, sorted, entry point excluded.

        """
        extensions = LANGUAGE_EXTENSIONS[self.language]
        sources = []
        for entry in sorted(os.listdir(self.src_path)):
            stem, ext = os.path.splitext(entry)
            path = os.path.join(self.src_path, entry)
            if ext not in extensions or not os.path.isfile(path):
                continue
            if stem == 'main':
                logger.debug('skipping entry point {}'.format(entry))
                continue
            sources.append(path)
        return sources

    def header_path(self, source_path):
        stem = os.path.splitext(os.path.basename(source_path))[0]
        return os.path.join(self.include_path, stem + '.h')


def load_project(start=None):
    """Find, load and validate the project containing start.

    """
    config = ProjectConfig.from_file(find_manifest(start))
    config.validate()
    return config
