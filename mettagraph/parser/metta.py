"""
Metta Parser
============

Facade tying validation, triple extraction and graph transformation
together. This is what a UI calls with the text of its editor.
"""

from typing import Optional

from mettagraph.core.mapper import NodeMapper
from mettagraph.core.schema import (
    GraphData,
    HypergraphStructure,
    ParseResult,
    Triple,
    ValidationResult,
)
from mettagraph.core.transformer import GraphTransformer
from mettagraph.parser.extractor import TripleExtractor
from mettagraph.parser.validator import SyntaxValidator


class MettaParser:
    """
    Parses fact documents into graphs.

    Example
    -------
    >>> parser = MettaParser()
    >>> result = parser.parse("(gender Chandler M)\\n(gender Monica F)")
    >>> result.metadata.node_count, result.metadata.edge_count
    (4, 2)
    """

    def __init__(
        self,
        mapper: Optional[NodeMapper] = None,
        transformer: Optional[GraphTransformer] = None,
    ):
        """
        Parameters
        ----------
        mapper : NodeMapper, optional
            Shared by the validator (predicate dictionary) and the
            transformer (ids, types, colours).
        transformer : GraphTransformer, optional
            Overrides the transformer built from ``mapper``.
        """
        self._mapper = mapper or NodeMapper()
        self._validator = SyntaxValidator(self._mapper.common_predicates)
        self._extractor = TripleExtractor()
        self._transformer = transformer or GraphTransformer(self._mapper)
        self._last_graph: Optional[GraphData] = None

    @property
    def last_graph(self) -> Optional[GraphData]:
        """Graph produced by the most recent ``parse`` call."""
        return self._last_graph

    def parse(self, metta_text: str) -> ParseResult:
        """
        Validate, extract and transform a document.

        Lines with structural errors are reported and contribute nothing;
        the remaining lines still produce nodes and edges.
        """
        validation = self.validate_syntax(metta_text)
        graph = self.transform(self.extract_triples(metta_text))
        self._last_graph = graph

        return ParseResult(
            nodes=graph.nodes,
            edges=graph.edges,
            errors=[*validation.errors, *validation.warnings],
            metadata=graph.metadata,
            hypergraphs=graph.hypergraphs,
        )

    def validate_syntax(self, metta_text: str) -> ValidationResult:
        return self._validator.validate(metta_text)

    def extract_triples(self, metta_text: str) -> list[Triple]:
        return self._extractor.extract(metta_text)

    def transform(self, triples: list[Triple]) -> GraphData:
        return self._transformer.transform(triples)

    def handle_hypergraph(self, expression: str) -> list[HypergraphStructure]:
        return self._extractor.handle_hypergraph(expression)
