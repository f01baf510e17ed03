"""
Triple Extractor
================

Turns parsed expressions into flat triples and recognises hypergraph
facts (facts with a nested fact among their arguments).
"""

from typing import Optional

from mettagraph.core.schema import HypergraphStructure, Triple
from mettagraph.parser.expression import Expression, parse_expression
from mettagraph.parser.validator import is_skippable


def _scalar_or_list(values: list[str]) -> str | list[str]:
    return values[0] if len(values) == 1 else values


def split_hypergraph_members(expression: Expression) -> tuple[list[str], list[str]]:
    """
    Split a hypergraph fact into subjects and objects.

    Flat arguments of the outer expression are subjects. Each nested
    argument contributes its predicate and then its own flat arguments
    to the objects. Expressions nested deeper than one level are not
    expanded.
    """
    subjects: list[str] = []
    objects: list[str] = []

    for arg in expression.args:
        if isinstance(arg, Expression):
            objects.append(arg.predicate)
            objects.extend(arg.atoms)
        else:
            subjects.append(arg.text)

    return subjects, objects


def expression_to_triple(expression: Expression, source: Optional[str] = None) -> Optional[Triple]:
    """
    Convert one expression into a triple.

    Returns None for a simple fact with fewer than two flat arguments.
    """
    if expression.is_nested:
        subjects, objects = split_hypergraph_members(expression)
        return Triple(
            predicate=expression.predicate,
            subject=_scalar_or_list(subjects),
            object=_scalar_or_list(objects),
            is_hypergraph=True,
            expression=source,
        )

    atoms = expression.atoms
    if len(atoms) < 2:
        return None

    return Triple(
        predicate=expression.predicate,
        subject=atoms[0],
        object=_scalar_or_list(atoms[1:]),
        is_hypergraph=False,
        expression=source,
    )


class TripleExtractor:
    """
    Extracts triples from documents.

    Example
    -------
    >>> extractor = TripleExtractor()
    >>> [t.subject for t in extractor.extract("(gender Chandler M)")]
    ['Chandler']
    """

    def __init__(self):
        self._hypergraph_counter = 0

    def extract(self, text: str) -> list[Triple]:
        """One triple per parseable fact line; other lines are skipped."""
        triples: list[Triple] = []

        for raw_line in text.split("\n"):
            if is_skippable(raw_line):
                continue

            line = raw_line.strip()
            parsed = parse_expression(line)
            if parsed is None:
                continue

            triple = expression_to_triple(parsed, source=line)
            if triple is not None:
                triples.append(triple)

        return triples

    def handle_hypergraph(self, expression: str) -> list[HypergraphStructure]:
        """
        Describe the hypergraph structure of a single expression.

        Returns an empty list when the expression does not parse or has
        no nested arguments. Each structure found advances this
        extractor's counter, which numbers the structure and its
        intermediate node.
        """
        parsed = parse_expression(expression)
        if parsed is None or not parsed.is_nested:
            return []

        subjects, objects = split_hypergraph_members(parsed)
        self._hypergraph_counter += 1
        counter = self._hypergraph_counter

        return [HypergraphStructure(
            id=f"hypergraph-{counter}",
            predicate=parsed.predicate,
            subjects=subjects,
            objects=objects,
            intermediate_node_id=f"{parsed.predicate}-group-{counter}",
        )]
