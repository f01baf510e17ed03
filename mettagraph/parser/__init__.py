"""
Fact-language parsing: expressions, validation and triple extraction.
"""

from mettagraph.parser.expression import Atom, Expression, parse_expression, tokenize
from mettagraph.parser.validator import SyntaxValidator, levenshtein_distance
from mettagraph.parser.extractor import TripleExtractor, expression_to_triple
from mettagraph.parser.metta import MettaParser

__all__ = [
    "Atom",
    "Expression",
    "parse_expression",
    "tokenize",
    "SyntaxValidator",
    "levenshtein_distance",
    "TripleExtractor",
    "expression_to_triple",
    "MettaParser",
]
