# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Evaluation of integer constant expressions (enum values, bit-field widths,
array sizes).

Only the integer subset of C is supported. Anything else (casts, sizeof,
macros the parser never saw) evaluates to None and the caller keeps the
expression text as written.

"""
import logging
import operator

import pyparsing as pp

logger = logging.getLogger(__name__)


_CHAR_ESCAPES = {
    'n': 10, 't': 9, 'r': 13, '0': 0, 'a': 7, 'b': 8, 'f': 12, 'v': 11,
    '\\': 92, "'": 39, '"': 34, '?': 63,
}


def _c_div(lhs, rhs):
    quotient = abs(lhs) // abs(rhs)
    return quotient if (lhs < 0) == (rhs < 0) else -quotient


def _c_mod(lhs, rhs):
    return lhs - rhs * _c_div(lhs, rhs)


_UNARY = {
    '-': operator.neg,
    '+': operator.pos,
    '~': operator.invert,
    '!': lambda val: int(not val),
}

_BINARY = {
    '*': operator.mul,
    '/': _c_div,
    '%': _c_mod,
    '+': operator.add,
    '-': operator.sub,
    '<<': operator.lshift,
    '>>': operator.rshift,
    '&': operator.and_,
    '^': operator.xor,
    '|': operator.or_,
}


def _build_grammar():
    integer = pp.Regex(r'(?:0[xX][0-9a-fA-F]+|\d+)[uUlL]*')
    char = pp.Regex(r"'(?:[^'\\]|\\.)'")
    name = pp.Regex(r'[A-Za-z_]\w*')
    operand = integer | char | name

    return pp.infix_notation(operand, [
        (pp.one_of('- + ~ !'), 1, pp.OpAssoc.RIGHT),
        (pp.one_of('* / %'), 2, pp.OpAssoc.LEFT),
        (pp.one_of('+ -'), 2, pp.OpAssoc.LEFT),
        (pp.one_of('<< >>'), 2, pp.OpAssoc.LEFT),
        (pp.Literal('&'), 2, pp.OpAssoc.LEFT),
        (pp.Literal('^'), 2, pp.OpAssoc.LEFT),
        (pp.Literal('|'), 2, pp.OpAssoc.LEFT),
    ])


_EXPRESSION = _build_grammar()


def _operand_value(text, names):
    if text[0] == "'":
        body = text[1:-1]
        if body[0] != '\\':
            return ord(body)
        return _CHAR_ESCAPES[body[1]]
    if text[0].isdigit():
        digits = text.rstrip('uUlL')
        if digits[:2] in ('0x', '0X'):
            return int(digits, 16)
        if len(digits) > 1 and digits[0] == '0':
            return int(digits, 8)
        return int(digits)
    return names[text]


def _evaluate(node, names):
    if isinstance(node, str):
        return _operand_value(node, names)
    items = list(node)
    if len(items) == 1:
        return _evaluate(items[0], names)
    if len(items) == 2:
        return _UNARY[items[0]](_evaluate(items[1], names))
    value = _evaluate(items[0], names)
    for op, rhs in zip(items[1::2], items[2::2]):
        value = _BINARY[op](value, _evaluate(rhs, names))
    return value


def evaluate(text, names=None):
    """Evaluate an integer constant expression.

    Parameters
    ----------
    text : str
        The expression as written in the source.
    names : dict[str, int], optional
        Values of the enumeration constants known at this point.

    Returns
    -------
    value : int | None
        The value of the expression, or None if it is not an integer
        constant expression built from known names.

    """
    try:
        tree = _EXPRESSION.parse_string(text, parse_all=True)
        return _evaluate(tree[0], names or {})
    except (pp.ParseException, KeyError, ValueError, ZeroDivisionError):
        logger.debug('cannot evaluate {!r}'.format(text))
        return None
