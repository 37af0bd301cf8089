"""
Tests for permissive attribute JSON parsing.
"""

from structimex.json_repair import JsonParseStatus, normalize_quotes, parse_attribute_json


class TestCleanInput:
    """Test input that needs no repair."""

    def test_valid_object(self):
        """Should parse a clean object as OK."""
        result = parse_attribute_json('{"hidden": "1", "answer_width": 40}')
        assert result.ok
        assert result.value == {"hidden": "1", "answer_width": 40}
        assert result.repairs == []

    def test_blank_cells(self):
        """Should treat None and whitespace as an empty mapping."""
        for text in (None, "", "   "):
            result = parse_attribute_json(text)
            assert result.status is JsonParseStatus.OK
            assert result.value == {}

    def test_non_object_fails(self):
        """Should reject valid JSON that is not an object."""
        for text in ("[1, 2]", "null", "12", '"text"'):
            result = parse_attribute_json(text)
            assert result.failed
            assert result.message == "Attribute cell is not a JSON object"
            assert result.value == {}


class TestRepairs:
    """Test each repair in isolation."""

    def test_smart_quotes(self):
        """Should replace typographic quotes."""
        result = parse_attribute_json("{“hidden”: “1”}")
        assert result.recovered
        assert result.value == {"hidden": "1"}
        assert result.repairs == ["smart_quotes"]

    def test_csv_doubled_quotes(self):
        """Should undo CSV quote doubling."""
        result = parse_attribute_json('"{""hidden"": ""1""}"')
        assert result.recovered
        assert result.value == {"hidden": "1"}
        assert result.repairs == ["csv_doubled_quotes"]

    def test_single_quotes(self):
        """Should convert single-quoted strings."""
        result = parse_attribute_json(r"{'prefix': 'it\'s'}")
        assert result.recovered
        assert result.value == {"prefix": "it's"}
        assert result.repairs == ["single_quotes"]

    def test_bare_keys(self):
        """Should quote bare keys."""
        result = parse_attribute_json('{hidden: "1", answer_width: 40}')
        assert result.recovered
        assert result.value == {"hidden": "1", "answer_width": 40}
        assert result.repairs == ["bare_keys"]

    def test_trailing_commas(self):
        """Should drop a trailing comma."""
        result = parse_attribute_json('{"hidden": "1",}')
        assert result.recovered
        assert result.repairs == ["trailing_commas"]

    def test_unclosed_object(self):
        """Should close a truncated object."""
        result = parse_attribute_json('{"hidden": "1"')
        assert result.recovered
        assert result.value == {"hidden": "1"}
        assert result.repairs == ["unclosed_object"]

    def test_repairs_accumulate(self):
        """Should apply repairs cumulatively and list them in order."""
        result = parse_attribute_json("{hidden: '1',}")
        assert result.recovered
        assert result.value == {"hidden": "1"}
        assert result.repairs == ["single_quotes", "bare_keys", "trailing_commas"]


class TestFailures:
    """Test input beyond repair."""

    def test_garbage(self):
        """Should fail without raising and keep the parser message."""
        result = parse_attribute_json("not json at all")
        assert result.failed
        assert result.value == {}
        assert result.message

    def test_normalize_quotes(self):
        """Should leave ASCII quotes untouched."""
        assert normalize_quotes("„a“ ‘b’") == "\"a\" 'b'"
        assert normalize_quotes('"plain"') == '"plain"'
