# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Errors that can happen during tokenizing, parsing or header synthesis.

"""
import collections


class KilnError(Exception):
    """Base exception for all kilnheaders exceptions.

    """
    pass


class ManifestError(KilnError):
    """Exception signaling that the project manifest is missing or invalid.

    """
    pass


class DeclarationError(KilnError):
    """Base class of all errors tied to a location in a source file.

    Parameters
    ----------
    message : str
        Human readable description of the problem.
    line : int, optional
        1-based line of the offending construct.
    column : int, optional
        1-based column of the offending construct.
    path : str, optional
        Source file the error belongs to. Usually filled in by the driver
        once the error leaves the parser.

    """

    def __init__(self, message, line=None, column=None, path=None):
        super(DeclarationError, self).__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.path = path

    def __str__(self):
        return str(self.to_diagnostic())

    def to_diagnostic(self, path=None):
        """Build the Diagnostic reported to the user for this error.

        Parameters
        ----------
        path : str, optional
            Path to use when the error does not know its file.

        """
        return Diagnostic(self.path or path or '<unknown>', self.line or 0,
                          self.column or 0, self.message)


class LexError(DeclarationError):
    """Unterminated literal or comment, or a character that cannot start a
    token.

    """
    pass


class DeclarationSyntaxError(DeclarationError):
    """A malformed declaration.

    Parameters
    ----------
    construct : str, optional
        Kind of the construct that was being recognized when the error
        occurred ('struct', 'union', 'enum', 'typedef', 'function', ...).

    """

    def __init__(self, message, line=None, column=None, path=None,
                 construct=None):
        super(DeclarationSyntaxError, self).__init__(message, line, column,
                                                     path)
        self.construct = construct


class UnresolvedTypeError(DeclarationError, LookupError):
    """A type name refers to a tag or alias that was never defined.

    """
    pass


class CycleError(DeclarationError):
    """A composite contains itself by value.

    """
    pass


class DuplicateDefinitionError(DeclarationError):
    """Two source files define the same tag or alias differently.

    """
    pass


class HeaderMergeError(DeclarationError):
    """An existing header carries malformed managed-region markers.

    """
    pass


class Diagnostic(collections.namedtuple('Diagnostic',
                                        'path line column message')):
    """One user visible problem, printed as ``path:line:column: message``.

    """

    __slots__ = ()

    def __str__(self):
        return '{}:{}:{}: {}'.format(*self)
