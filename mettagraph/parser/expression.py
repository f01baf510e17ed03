"""
Expression Parser
=================

Recursive-descent parser for one line of the fact language.

A line such as ``(believes Alice (likes Bob Carol))`` becomes::

    Expression(
        predicate="believes",
        args=(Atom("Alice"), Expression("likes", (Atom("Bob"), Atom("Carol")))),
    )

Parsing never raises on malformed text; it returns ``None`` and leaves the
reporting to the syntax validator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Atom:
    """A bare token argument."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Expression:
    """A predicate applied to atoms and nested expressions."""

    predicate: str
    args: tuple[Argument, ...] = ()

    @property
    def atoms(self) -> list[str]:
        """Flat string arguments, in order."""
        return [arg.text for arg in self.args if isinstance(arg, Atom)]

    @property
    def nested(self) -> list[Expression]:
        """Nested expression arguments, in order."""
        return [arg for arg in self.args if isinstance(arg, Expression)]

    @property
    def is_nested(self) -> bool:
        return any(isinstance(arg, Expression) for arg in self.args)

    def __str__(self) -> str:
        parts = [self.predicate, *(str(arg) for arg in self.args)]
        return "(" + " ".join(parts) + ")"


Argument = Union[Atom, Expression]


def outer_close_index(text: str) -> int:
    """
    Index of the parenthesis closing the one at position 0.

    Returns -1 when ``text`` does not start with ``(`` or the opening
    parenthesis is never closed.
    """
    if not text.startswith("("):
        return -1

    depth = 0
    for i, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def is_wrapped(text: str) -> bool:
    """True if ``text`` is one balanced ``(...)`` group from end to end."""
    return len(text) >= 2 and outer_close_index(text) == len(text) - 1


def tokenize(content: str) -> list[str]:
    """
    Split the interior of an expression into top-level tokens.

    Whitespace separates tokens only at parenthesis depth 0; a
    parenthesized group is kept whole, including its own whitespace.

    >>> tokenize("believes Alice (likes Bob Carol)")
    ['believes', 'Alice', '(likes Bob Carol)']
    """
    tokens: list[str] = []
    current: list[str] = []
    depth = 0

    def flush() -> None:
        token = "".join(current).strip()
        if token:
            tokens.append(token)
        current.clear()

    for char in content:
        if char == "(":
            depth += 1
            current.append(char)
        elif char == ")":
            depth -= 1
            current.append(char)
            if depth == 0:
                flush()
        elif char.isspace() and depth == 0:
            flush()
        else:
            current.append(char)

    flush()
    return tokens


def parse_expression(text: str) -> Optional[Expression]:
    """
    Parse one expression.

    Parameters
    ----------
    text : str
        A line (or nested token) of the form ``(predicate arg ...)``

    Returns
    -------
    Expression or None
        None if the text is not a single balanced group or holds fewer
        than a predicate and one argument. Nested groups that fail to
        parse are dropped from the arguments.
    """
    trimmed = text.strip()
    if not is_wrapped(trimmed):
        return None

    tokens = tokenize(trimmed[1:-1].strip())
    if len(tokens) < 2:
        return None

    args: list[Argument] = []
    for token in tokens[1:]:
        if token.startswith("(") and token.endswith(")"):
            nested = parse_expression(token)
            if nested is not None:
                args.append(nested)
        else:
            args.append(Atom(token))

    return Expression(predicate=tokens[0], args=tuple(args))
