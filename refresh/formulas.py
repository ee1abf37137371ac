"""Formula text parsing - function name, argument split, literal tokens."""

import re
from collections.abc import Callable
from datetime import date
from typing import Any

from app.errors import FormulaParseError
from app.services.keys import stringify

# Prefixes Excel writes into stored formulas for add-in and newer functions
_STORED_PREFIXES = ("_xludf.", "_xlfn.")

_CALL_RE = re.compile(r"^=\s*([A-Za-z_][\w.]*)\s*\(")
_NUMBER_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")
_DATE_RE = re.compile(r"^DATE\(\s*(\d{1,4})\s*,\s*(\d{1,2})\s*,\s*(\d{1,2})\s*\)$", re.IGNORECASE)
_BOOL_LITERALS = {"TRUE": True, "FALSE": False}


def function_name(formula: str) -> str | None:
    """Name of the top-level function call, None when the formula is not a call."""
    match = _CALL_RE.match(formula.strip())
    if not match:
        return None
    name = match.group(1)
    for prefix in _STORED_PREFIXES:
        if name.lower().startswith(prefix):
            name = name[len(prefix) :]
    return name


def _closing_paren(text: str, start: int) -> int:
    """Index of the parenthesis closing the one at `start`."""
    depth = 0
    quote = None
    for i in range(start, len(text)):
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    raise FormulaParseError(f"Unbalanced parentheses: {text}")


def split_arguments(args: str) -> list[str]:
    """Split an argument list on top-level commas.

    Commas inside quotes ("..." strings, '...' sheet names) and nested
    parentheses do not split. Tokens are returned trimmed.
    """
    arguments: list[str] = []
    current: list[str] = []
    depth = 0
    quote = None
    for ch in args:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in "({":
            depth += 1
        elif ch in ")}":
            depth -= 1
        elif ch == "," and depth == 0:
            arguments.append("".join(current).strip())
            current = []
            continue
        current.append(ch)

    if quote or depth:
        raise FormulaParseError(f"Unbalanced argument list: {args}")
    if current or arguments:
        arguments.append("".join(current).strip())
    return arguments


def parse_call(formula: str) -> tuple[str, list[str]]:
    """Function name and raw argument tokens of a top-level call."""
    formula = formula.strip()
    name = function_name(formula)
    if name is None:
        raise FormulaParseError(f"Not a function call: {formula}")

    start = formula.index("(")
    end = _closing_paren(formula, start)
    return name, split_arguments(formula[start + 1 : end])


def is_string_literal(token: str) -> bool:
    return len(token) >= 2 and token.startswith('"') and token.endswith('"')


def unquote(token: str) -> str:
    """Contents of a "..." literal, with doubled quotes collapsed."""
    return token[1:-1].replace('""', '"')


def date_literal(token: str) -> str | None:
    """ISO date for a DATE(y,m,d) literal, None for anything else."""
    match = _DATE_RE.match(token)
    if not match:
        return None
    year, month, day = (int(g) for g in match.groups())
    try:
        return date(year, month, day).isoformat()
    except ValueError as e:
        raise FormulaParseError(f"Invalid date literal {token}: {e}") from e


def token_value(token: str, resolve: Callable[[str], Any]) -> str:
    """Raw string value for one argument token.

    Literals are converted in place; anything else goes through `resolve`,
    whose result is stringified the same way live host values are.
    """
    token = token.strip()
    if not token:
        return ""
    if is_string_literal(token):
        return unquote(token)
    if _NUMBER_RE.match(token):
        return stringify(float(token))
    if token.upper() in _BOOL_LITERALS:
        return stringify(_BOOL_LITERALS[token.upper()])

    iso = date_literal(token)
    if iso is not None:
        return iso

    return stringify(resolve(token))
