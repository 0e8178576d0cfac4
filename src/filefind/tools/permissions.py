"""
Small parsers for the permission and size rule expressions.

Symbolic permissions follow the chmod mini-language restricted to the
``who(op)what`` form, e.g. ``"g=rw"`` or ``"u+x,o-w"``. Size expressions are
either an exact byte count or a comparator string such as ``">= 200"``.
"""

import operator
import re
from typing import Callable, Tuple, Union

from ..errors import ConfigurationError


WHO_BITS = {
    'u': 0o700,
    'g': 0o070,
    'o': 0o007,
    'a': 0o777,
}

WHAT_BITS = {
    'r': 0o444,
    'w': 0o222,
    'x': 0o111,
}

_CLAUSE_RE = re.compile(r'([ugoa]+)([-+=])([rwx]+)')
_SIZE_RE = re.compile(r'([><=]+)\s*(\d+)')

SIZE_OPERATORS = {
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
    '=': operator.eq,
    '==': operator.eq,
}

SizeSpec = Tuple[str, Callable[[int, int], bool], int]


def parse_symbolic_mode(expression: str) -> int:
    """
    Compile a symbolic permission expression into a permission bitmask.

    Clauses are applied left to right. ``+`` adds the clause bits to the
    accumulated mask, ``-`` removes them and ``=`` replaces the mask.

    Args:
        expression: Comma separated clauses like ``"u=rw,g+r"``

    Returns:
        The accumulated permission mask (low 9 bits)

    Raises:
        ConfigurationError: If any clause is malformed
    """
    if not isinstance(expression, str) or not expression.strip():
        raise ConfigurationError(f"Invalid symbolic permissions: '{expression}'")

    mask = 0
    for clause in expression.split(','):
        match = _CLAUSE_RE.fullmatch(clause.strip())
        if match is None:
            raise ConfigurationError(f"Invalid symbolic permissions: '{expression}'")

        who, how, what = match.groups()

        who_bits = 0
        for ch in who:
            who_bits |= WHO_BITS[ch]

        what_bits = 0
        for ch in what:
            what_bits |= WHAT_BITS[ch]

        clause_bits = who_bits & what_bits

        if how == '+':
            mask |= clause_bits
        elif how == '-':
            mask &= ~clause_bits
        else:
            mask = clause_bits

    return mask


def parse_size_spec(spec: Union[int, str]) -> SizeSpec:
    """
    Parse a size rule into ``(operator_symbol, comparator, number)``.

    An integer means an exact byte count. A string must look like
    ``[><=]+ <digits>``, optionally surrounded by whitespace.

    Raises:
        ConfigurationError: If the expression is malformed
    """
    if isinstance(spec, bool):
        raise ConfigurationError(f"invalid size: {spec!r}")

    if isinstance(spec, int):
        if spec < 0:
            raise ConfigurationError(f"invalid size: {spec!r}")
        return '==', operator.eq, spec

    if not isinstance(spec, str):
        raise ConfigurationError(f"invalid size: {spec!r}")

    match = _SIZE_RE.fullmatch(spec.strip())
    if match is None:
        raise ConfigurationError(f"invalid size string: '{spec}'")

    symbol, number = match.groups()
    comparator = SIZE_OPERATORS.get(symbol)
    if comparator is None:
        raise ConfigurationError(f"invalid size operator '{symbol}' in '{spec}'")

    return symbol, comparator, int(number)
