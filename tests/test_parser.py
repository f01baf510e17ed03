"""
Tests for the Parser
====================

Tests expression parsing, syntax validation, triple extraction and the
MettaParser facade.
"""

import pytest

from mettagraph.core.schema import Severity, Triple
from mettagraph.parser.expression import Atom, Expression, parse_expression, tokenize
from mettagraph.parser.extractor import TripleExtractor
from mettagraph.parser.metta import MettaParser
from mettagraph.parser.validator import (
    MSG_NOT_ENCLOSED,
    MSG_TOO_FEW_PARTS,
    MSG_TRAILING_CONTENT,
    MSG_UNMATCHED_CLOSE,
    MSG_UNMATCHED_OPEN,
    SyntaxValidator,
    levenshtein_distance,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def validator() -> SyntaxValidator:
    return SyntaxValidator()


@pytest.fixture
def extractor() -> TripleExtractor:
    return TripleExtractor()


@pytest.fixture
def parser() -> MettaParser:
    return MettaParser()


@pytest.fixture
def friends_text() -> str:
    """A small document with comments, blank lines and a hypergraph fact."""
    return "\n".join([
        "; family facts",
        "(gender Chandler M)",
        "",
        "(gender Monica F)",
        "(is-parent Jack Monica Ross)",
        "(believes Alice (likes Bob Carol))",
    ])


# =============================================================================
# Expression Tests
# =============================================================================

class TestTokenize:
    """Tests for top-level tokenization."""

    def test_splits_on_whitespace(self):
        assert tokenize("gender Chandler M") == ["gender", "Chandler", "M"]

    def test_keeps_nested_group_whole(self):
        assert tokenize("believes Alice (likes Bob Carol)") == [
            "believes", "Alice", "(likes Bob Carol)",
        ]

    def test_keeps_deeply_nested_group_whole(self):
        assert tokenize("a (b (c d) e) f") == ["a", "(b (c d) e)", "f"]

    def test_collapses_repeated_whitespace_and_tabs(self):
        assert tokenize("  gender\t Chandler   M ") == ["gender", "Chandler", "M"]

    def test_empty_content(self):
        assert tokenize("") == []


class TestParseExpression:
    """Tests for recursive-descent expression parsing."""

    def test_simple_expression(self):
        expr = parse_expression("(gender Chandler M)")
        assert expr == Expression("gender", (Atom("Chandler"), Atom("M")))

    def test_nested_expression(self):
        expr = parse_expression("(believes Alice (likes Bob Carol))")
        assert expr is not None
        assert expr.predicate == "believes"
        assert expr.atoms == ["Alice"]
        assert expr.nested == [Expression("likes", (Atom("Bob"), Atom("Carol")))]
        assert expr.is_nested is True

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_expression("   (age Ross 30)  ") is not None

    def test_rejects_missing_outer_parentheses(self):
        assert parse_expression("gender Chandler M") is None

    def test_rejects_unbalanced(self):
        assert parse_expression("(gender Chandler M") is None

    def test_rejects_two_top_level_groups(self):
        assert parse_expression("(a b) (c d)") is None

    def test_rejects_predicate_only(self):
        assert parse_expression("(gender)") is None

    def test_drops_unparseable_nested_group(self):
        expr = parse_expression("(p a (b))")
        assert expr == Expression("p", (Atom("a"),))

    def test_str_round_trip_of_nested(self):
        text = "(believes Alice (likes Bob Carol))"
        assert str(parse_expression(text)) == text


# =============================================================================
# Validator Tests
# =============================================================================

class TestLevenshtein:
    """Tests for edit distance."""

    def test_identical(self):
        assert levenshtein_distance("gender", "gender") == 0

    def test_single_deletion(self):
        assert levenshtein_distance("gendr", "gender") == 1

    def test_single_substitution(self):
        assert levenshtein_distance("nane", "name") == 1

    def test_classic_example(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_empty_string(self):
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "") == 3


class TestSyntaxValidator:
    """Tests for line-local validation."""

    def test_valid_document(self, validator, friends_text):
        result = validator.validate(friends_text)
        assert result.is_valid is True
        assert result.errors == []

    def test_not_enclosed(self, validator):
        result = validator.validate("gender Chandler M")
        assert result.is_valid is False
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.message == MSG_NOT_ENCLOSED
        assert error.line == 1
        assert error.column == 0

    def test_unmatched_opening(self, validator):
        result = validator.validate("(gender Chandler M")
        assert len(result.errors) == 1
        assert result.errors[0].message == MSG_UNMATCHED_OPEN
        assert result.errors[0].column == 1

    def test_unmatched_opening_reports_last_unmatched_column(self, validator):
        result = validator.validate("(believes Alice (likes Bob")
        assert result.errors[0].message == MSG_UNMATCHED_OPEN
        assert result.errors[0].column == 17

    def test_unmatched_closing(self, validator):
        result = validator.validate("(gender Chandler M))")
        assert len(result.errors) == 1
        assert result.errors[0].message == MSG_UNMATCHED_CLOSE
        assert result.errors[0].column == 20

    def test_trailing_content_after_outer_group(self, validator):
        result = validator.validate("(a b) c")
        assert len(result.errors) == 1
        assert result.errors[0].message == MSG_TRAILING_CONTENT
        assert result.errors[0].column == 6

    def test_too_few_parts(self, validator):
        result = validator.validate("(gender)")
        assert len(result.errors) == 1
        assert result.errors[0].message == MSG_TOO_FEW_PARTS

    def test_empty_parentheses(self, validator):
        result = validator.validate("()")
        assert result.errors[0].message == MSG_TOO_FEW_PARTS

    def test_near_miss_predicate_is_warning(self, validator):
        result = validator.validate("(gendr Chandler M)")
        assert result.is_valid is True
        assert result.errors == []
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.severity == Severity.WARNING
        assert warning.message == 'Did you mean "gender"? Found "gendr"'

    def test_exact_predicate_in_other_case_is_not_flagged(self, validator):
        result = validator.validate("(GENDER Chandler M)")
        assert result.warnings == []

    def test_distant_predicate_is_not_flagged(self, validator):
        result = validator.validate("(owns Chandler Duck)")
        assert result.warnings == []

    def test_skips_comments_and_blank_lines(self, validator):
        result = validator.validate("; just a comment\n\n   ; indented comment\n")
        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_line_numbers_count_skipped_lines(self, validator):
        result = validator.validate("; header\n\n(gender Chandler M\n(age Ross 30)")
        assert [e.line for e in result.errors] == [3]

    def test_lines_are_independent(self, validator):
        result = validator.validate("(a b\n(gender Chandler M)\nbroken")
        assert [(e.line, e.message) for e in result.errors] == [
            (1, MSG_UNMATCHED_OPEN),
            (3, MSG_NOT_ENCLOSED),
        ]

    def test_custom_dictionary(self):
        validator = SyntaxValidator(["likes"])
        result = validator.validate("(lkes Bob Carol)\n(gendr Chandler M)")
        assert [w.line for w in result.warnings] == [1]


# =============================================================================
# Extractor Tests
# =============================================================================

class TestTripleExtractor:
    """Tests for expression → triple conversion."""

    def test_simple_fact(self, extractor):
        triples = extractor.extract("(p a b)")
        assert triples == [Triple(
            predicate="p", subject="a", object="b", is_hypergraph=False, expression="(p a b)",
        )]

    def test_multiple_objects_become_list(self, extractor):
        [triple] = extractor.extract("(is-parent Jack Monica Ross)")
        assert triple.subject == "Jack"
        assert triple.object == ["Monica", "Ross"]

    def test_single_argument_yields_nothing(self, extractor):
        assert extractor.extract("(p a)") == []

    def test_invalid_lines_are_skipped(self, extractor):
        triples = extractor.extract("(gender Chandler M\n(gender Monica F)\nnot a fact")
        assert [t.subject for t in triples] == ["Monica"]

    def test_hypergraph_fact(self, extractor):
        [triple] = extractor.extract("(believes Alice (likes Bob Carol))")
        assert triple.is_hypergraph is True
        assert triple.predicate == "believes"
        assert triple.subject == "Alice"
        assert triple.object == ["likes", "Bob", "Carol"]

    def test_hypergraph_without_flat_arguments_has_empty_subject_list(self, extractor):
        [triple] = extractor.extract("(says (likes Bob Carol))")
        assert triple.subject == []
        assert triple.object == ["likes", "Bob", "Carol"]

    def test_hypergraph_with_two_nested_arguments(self, extractor):
        [triple] = extractor.extract("(causes (rain Sky) (wet Ground))")
        assert triple.object == ["rain", "Sky", "wet", "Ground"]

    def test_hypergraph_unnests_only_one_level(self, extractor):
        [triple] = extractor.extract("(knows Al (thinks Bo (likes Cy Di)))")
        assert triple.subject == "Al"
        assert triple.object == ["thinks", "Bo"]

    def test_single_hypergraph_object_stays_scalar(self, extractor):
        [triple] = extractor.extract("(quotes Ann (said (hello world)))")
        assert triple.is_hypergraph is True
        assert triple.subject == "Ann"
        assert triple.object == "said"

    def test_handle_hypergraph_numbers_structures(self, extractor):
        [first] = extractor.handle_hypergraph("(believes Alice (likes Bob Carol))")
        [second] = extractor.handle_hypergraph("(believes Dan (likes Eve Finn))")

        assert first.id == "hypergraph-1"
        assert first.intermediate_node_id == "believes-group-1"
        assert first.subjects == ["Alice"]
        assert first.objects == ["likes", "Bob", "Carol"]
        assert second.id == "hypergraph-2"

    def test_handle_hypergraph_ignores_simple_fact(self, extractor):
        assert extractor.handle_hypergraph("(gender Chandler M)") == []


# =============================================================================
# Facade Tests
# =============================================================================

class TestMettaParser:
    """Tests for the parse pipeline."""

    def test_parse_builds_graph(self, parser, friends_text):
        result = parser.parse(friends_text)
        assert result.errors == []
        assert result.metadata.hypergraph_count == 1
        assert {n.id for n in result.nodes} >= {"chandler", "m", "monica", "f", "jack", "ross"}

    def test_repeated_fact_is_deduplicated(self, parser):
        result = parser.parse("(gender Chandler M)\n(gender Chandler M)")

        assert [n.id for n in result.nodes] == ["chandler", "m"]
        assert [n.metadata.occurrences for n in result.nodes] == [2, 2]
        assert [e.id for e in result.edges] == ["gender-chandler-m"]

    def test_unbalanced_line_yields_one_error_and_no_triples(self, parser):
        text = "(gender Chandler M"
        result = parser.parse(text)

        assert len(result.errors) == 1
        assert result.errors[0].message == MSG_UNMATCHED_OPEN
        assert parser.extract_triples(text) == []
        assert result.nodes == []
        assert result.edges == []

    def test_warnings_follow_errors(self, parser):
        result = parser.parse("(gendr Chandler M)\n(age Ross")
        assert [e.severity for e in result.errors] == [Severity.ERROR, Severity.WARNING]
        assert result.has_errors is True

    def test_reparse_reproduces_ids(self, parser, friends_text):
        first = parser.parse(friends_text)
        second = parser.parse(friends_text)

        assert [n.id for n in first.nodes] == [n.id for n in second.nodes]
        assert [e.id for e in first.edges] == [e.id for e in second.edges]
        assert [h.intermediate_node_id for h in first.hypergraphs] == [
            h.intermediate_node_id for h in second.hypergraphs
        ]

    def test_two_parsers_agree_on_ids(self, friends_text):
        first = MettaParser().parse(friends_text)
        second = MettaParser().parse(friends_text)
        assert {n.id for n in first.nodes} == {n.id for n in second.nodes}
        assert {e.id for e in first.edges} == {e.id for e in second.edges}

    def test_ids_are_unique_when_dashes_line_up(self, parser):
        result = parser.parse("(a-b c d)\n(a b-c d)")
        ids = [e.id for e in result.edges]
        assert len(ids) == 2
        assert len(ids) == len(set(ids))

    def test_label_spelled_like_group_id_stays_an_entity(self, parser):
        result = parser.parse("(likes a (likes b c))\n(q likes-group-1 x)")
        by_label = {n.label: n for n in result.nodes}

        assert by_label["likes group"].metadata.occurrences == 1
        assert by_label["likes-group-1"].is_hypergraph is False
        assert by_label["likes-group-1"].id != by_label["likes group"].id

    def test_empty_document(self, parser):
        result = parser.parse("")
        assert result.nodes == []
        assert result.errors == []
        assert result.metadata.node_count == 0

    def test_last_graph_keeps_bidirectional_pairs(self, parser):
        parser.parse("(knows Ann Ben)\n(knows Ben Ann)")
        assert parser.last_graph is not None
        assert len(parser.last_graph.bidirectional_pairs) == 1
