# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Tokenizer turning raw C source text into a flat stream of tokens.

Comments never reach the consumer. Attribute specifiers such as
``__attribute__((aligned(4)))`` are delivered as a single token of kind
ATTRIBUTE and preprocessor lines as a single token of kind DIRECTIVE, so that
the declaration grammar never has to look inside them.

"""
import bisect
import collections
import logging
import re

import pyparsing as pp

from .errors import LexError

logger = logging.getLogger(__name__)


IDENTIFIER = 'identifier'
KEYWORD = 'keyword'
PUNCTUATOR = 'punctuator'
NUMBER = 'number'
CHAR = 'char'
STRING = 'string'
ATTRIBUTE = 'attribute'
DIRECTIVE = 'directive'

_COMMENT = 'comment'
_OPEN_COMMENT = 'open-comment'
_OPEN_STRING = 'open-string'
_OPEN_CHAR = 'open-char'

_UNTERMINATED = {
    _OPEN_COMMENT: 'unterminated comment',
    _OPEN_STRING: 'unterminated string literal',
    _OPEN_CHAR: 'unterminated character literal',
}

KEYWORDS = frozenset([
    'auto', 'break', 'case', 'char', 'const', 'continue', 'default', 'do',
    'double', 'else', 'enum', 'extern', 'float', 'for', 'goto', 'if',
    'inline', 'int', 'long', 'register', 'restrict', 'return', 'short',
    'signed', 'sizeof', 'static', 'struct', 'switch', 'typedef', 'union',
    'unsigned', 'void', 'volatile', 'while', '_Alignof', '_Atomic', '_Bool',
    '_Complex', '_Generic', '_Imaginary', '_Noreturn', '_Static_assert',
    '_Thread_local',
    # GNU spellings
    '__inline', '__inline__', '__restrict', '__restrict__', '__const',
    '__const__', '__volatile', '__volatile__', '__signed', '__signed__',
    '__extension__', '__int128',
])


def _tagged(kind, expr):
    """Make expr produce the two tokens [kind, matched text].

    """
    return expr.copy().add_parse_action(lambda toks: [kind, toks[0]])


def _build_token_grammar():
    attribute = pp.original_text_for(
        pp.one_of('__attribute__ __attribute __declspec _Alignas alignas',
                  as_keyword=True) +
        pp.nested_expr())
    directive = pp.Regex(r'#(?:\\\n|/\*(?:[^*]|\*(?!/))*\*/|[^\n])*')
    string = pp.Regex(r'(?:u8|[uUL])?"(?:[^"\\\n]|\\(?:.|\n))*"')
    char = pp.Regex(r"(?:u8|[uUL])?'(?:[^'\\\n]|\\(?:.|\n))+'")
    number = pp.Regex(r'(?:0[xX][0-9a-fA-F]+|(?:\d+\.\d*|\.\d+|\d+)'
                      r'(?:[eE][+-]?\d+)?)[uUlLfF]*')
    identifier = pp.Regex(r'[A-Za-z_]\w*')
    punctuator = pp.Regex(r'\.\.\.|<<=|>>=|->|\+\+|--|<<|>>|<=|>=|==|!=|'
                          r'&&|\|\||[-+*/%&|^]=|[-+*/%&|^!~<>=?:;,.(){}\[\]]')

    # order matters: comments and literals have to win over punctuators
    grammar = pp.MatchFirst([
        _tagged(_COMMENT, pp.c_style_comment),
        _tagged(_COMMENT, pp.dbl_slash_comment),
        _tagged(_OPEN_COMMENT, pp.Regex(r'/\*')),
        _tagged(DIRECTIVE, directive),
        _tagged(ATTRIBUTE, attribute),
        _tagged(STRING, string),
        _tagged(_OPEN_STRING, pp.Regex(r'(?:u8|[uUL])?"')),
        _tagged(CHAR, char),
        _tagged(_OPEN_CHAR, pp.Regex(r"(?:u8|[uUL])?'")),
        _tagged(NUMBER, number),
        _tagged(IDENTIFIER, identifier),
        _tagged(PUNCTUATOR, punctuator),
    ])
    # Columns are reported against the text as written.
    return grammar.parse_with_tabs()


_TOKEN_GRAMMAR = _build_token_grammar()

_COMMENT_REMOVER = (pp.quoted_string |
                    pp.c_style_comment.suppress() |
                    (pp.Literal('//') + pp.rest_of_line).suppress())


def strip_comments(text):
    """Remove C and C++ comments from text, leaving string literals intact.

    """
    return _COMMENT_REMOVER.transform_string(text)


class SourcePosition(collections.namedtuple('SourcePosition', 'line column')):
    """1-based line and column of a token.

    """

    __slots__ = ()

    def __str__(self):
        return '{}:{}'.format(self.line, self.column)


class Token(collections.namedtuple('Token', 'kind lexeme position')):
    """One lexical element of the C source.

    Attributes
    ----------
    kind : str
        One of IDENTIFIER, KEYWORD, PUNCTUATOR, NUMBER, CHAR, STRING,
        ATTRIBUTE or DIRECTIVE.
    lexeme : str
        The text of the token as found in the source.
    position : SourcePosition
        Where the token starts.

    """

    __slots__ = ()

    @property
    def line(self):
        return self.position.line

    @property
    def column(self):
        return self.position.column

    def is_punct(self, *lexemes):
        return self.kind == PUNCTUATOR and self.lexeme in lexemes

    def is_keyword(self, *lexemes):
        return self.kind == KEYWORD and self.lexeme in lexemes


class Tokenizer(object):
    """Lazy, restartable token sequence over one source text.

    Every iteration starts from the beginning of the text, so the same
    Tokenizer can be consumed several times.

    Parameters
    ----------
    text : str
        Raw C source.
    path : str, optional
        Name of the source, attached to raised LexError.

    """

    def __init__(self, text, path=None):
        self.text = text
        self.path = path
        self._newlines = [m.start() for m in re.finditer('\n', text)]

    def __iter__(self):
        return self._iter_tokens()

    def tokenize(self):
        """Return all the tokens as a list.

        Raises
        ------
        LexError
            On an unterminated literal or comment, or a stray character.

        """
        return list(self)

    def position(self, offset):
        """Convert an offset in the text into a SourcePosition.

        """
        line_index = bisect.bisect_left(self._newlines, offset)
        if line_index:
            column = offset - self._newlines[line_index - 1]
        else:
            column = offset + 1
        return SourcePosition(line_index + 1, column)

    def _error(self, message, offset):
        pos = self.position(offset)
        return LexError(message, pos.line, pos.column, self.path)

    def _check_gap(self, start, end):
        """Text skipped between two tokens may only hold whitespace and line
        continuations.

        """
        for match in re.finditer(r'\\\n|\S', self.text[start:end]):
            if match.group() != '\\\n':
                raise self._error('stray {!r} in program'
                                  .format(match.group()),
                                  start + match.start())

    def _iter_tokens(self):
        prev_end = 0
        for toks, start, end in _TOKEN_GRAMMAR.scan_string(self.text):
            self._check_gap(prev_end, start)
            prev_end = end
            kind, lexeme = toks[0], toks[1]
            if kind == _COMMENT:
                continue
            if kind in _UNTERMINATED:
                raise self._error(_UNTERMINATED[kind], start)
            if kind == IDENTIFIER and lexeme in KEYWORDS:
                kind = KEYWORD
            yield Token(kind, lexeme, self.position(start))
        self._check_gap(prev_end, len(self.text))


def tokenize(text, path=None):
    """Tokenize a complete source text, see Tokenizer.

    """
    return Tokenizer(text, path).tokenize()
