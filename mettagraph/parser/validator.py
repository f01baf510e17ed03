"""
Syntax Validator
================

Line-local structural checks for the fact language.

Each non-blank, non-comment line is checked on its own; a failing line
never affects the next one. Structural problems are errors, near-miss
predicate spellings are warnings, and only errors make a document
invalid.
"""

from typing import Iterable, Optional

from mettagraph.core.mapper import DEFAULT_COMMON_PREDICATES
from mettagraph.core.schema import ParseError, Severity, ValidationResult
from mettagraph.parser.expression import outer_close_index


MSG_NOT_ENCLOSED = "Expression must be enclosed in parentheses"
MSG_TRAILING_CONTENT = "Expression must be enclosed in a single pair of parentheses"
MSG_UNMATCHED_CLOSE = "Unmatched closing parenthesis"
MSG_UNMATCHED_OPEN = "Unmatched opening parenthesis"
MSG_TOO_FEW_PARTS = "Expression must have at least a predicate and one argument"


def levenshtein_distance(a: str, b: str) -> int:
    """
    Edit distance between two strings.

    Insertions, deletions and substitutions each cost 1. Comparison is
    exact; callers fold case first when they need to.

    >>> levenshtein_distance("gendr", "gender")
    1
    """
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                current[j - 1] + 1,
                previous[j] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def is_skippable(line: str) -> bool:
    """Blank lines and ``;`` comments carry no fact."""
    stripped = line.strip()
    return not stripped or stripped.startswith(";")


class SyntaxValidator:
    """
    Validates documents line by line.

    Example
    -------
    >>> result = SyntaxValidator().validate("(gender Chandler M")
    >>> result.is_valid, result.errors[0].message
    (False, 'Unmatched opening parenthesis')
    """

    def __init__(self, common_predicates: Optional[Iterable[str]] = None):
        """
        Parameters
        ----------
        common_predicates : iterable of str, optional
            Dictionary used for "did you mean" suggestions.
            Defaults to DEFAULT_COMMON_PREDICATES.
        """
        if common_predicates is None:
            common_predicates = DEFAULT_COMMON_PREDICATES
        self.common_predicates = tuple(p.lower() for p in common_predicates)

    def validate(self, text: str) -> ValidationResult:
        """
        Validate every line of ``text``.

        Returns
        -------
        ValidationResult
            Errors and warnings in line order; ``is_valid`` is False
            only when there is at least one error.
        """
        errors: list[ParseError] = []
        warnings: list[ParseError] = []

        for line_number, raw_line in enumerate(text.split("\n"), start=1):
            if is_skippable(raw_line):
                continue

            for diagnostic in self.validate_line(raw_line.strip(), line_number):
                if diagnostic.severity == Severity.ERROR:
                    errors.append(diagnostic)
                else:
                    warnings.append(diagnostic)

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def validate_line(self, line: str, line_number: int) -> list[ParseError]:
        """Run the checks for one trimmed line, stopping at the first error."""
        if not line.startswith("("):
            return [self._error(line_number, 0, MSG_NOT_ENCLOSED)]

        balance_error = self._check_balance(line, line_number)
        if balance_error is not None:
            return [balance_error]

        close_index = outer_close_index(line)
        if close_index != len(line) - 1:
            return [self._error(line_number, close_index + 2, MSG_TRAILING_CONTENT)]

        parts = line[1:-1].split()
        if len(parts) < 2:
            return [self._error(line_number, 1, MSG_TOO_FEW_PARTS)]

        suggestion = self.suggest_predicate(parts[0])
        if suggestion is not None:
            return [ParseError(
                line=line_number,
                column=1,
                message=f'Did you mean "{suggestion}"? Found "{parts[0]}"',
                severity=Severity.WARNING,
            )]

        return []

    def suggest_predicate(self, predicate: str) -> Optional[str]:
        """Return a dictionary predicate exactly one edit away, if any."""
        folded = predicate.lower()
        for candidate in self.common_predicates:
            if levenshtein_distance(folded, candidate) == 1:
                return candidate
        return None

    def _check_balance(self, line: str, line_number: int) -> Optional[ParseError]:
        """Report the first unmatched parenthesis, if any."""
        open_columns: list[int] = []

        for index, char in enumerate(line):
            if char == "(":
                open_columns.append(index + 1)
            elif char == ")":
                if not open_columns:
                    return self._error(line_number, index + 1, MSG_UNMATCHED_CLOSE)
                open_columns.pop()

        if open_columns:
            return self._error(line_number, open_columns[-1], MSG_UNMATCHED_OPEN)

        return None

    @staticmethod
    def _error(line: int, column: int, message: str) -> ParseError:
        return ParseError(line=line, column=column, message=message, severity=Severity.ERROR)
