"""Tests for semantic attribute conventions."""

import json
from datetime import date

from gqlext.extensions import ServerError
from gqlext.opentelemetry.semantic.attributes import (
    EventNames,
    GraphQLAttributes,
    ParseAttributes,
    ResolveAttributes,
    SpanNames,
    ValidationAttributes,
    create_error_attributes,
    create_parse_attributes,
    create_resolve_attributes,
    create_validation_attributes,
    serialize_variables,
)


class TestGraphQLAttributes:
    """Tests for GraphQLAttributes namespace."""

    def test_namespace(self):
        """Test namespace prefix."""
        assert GraphQLAttributes.NAMESPACE == "graphql"

    def test_keys(self):
        """Test attribute keys."""
        assert GraphQLAttributes.SOURCE == "graphql.source"
        assert GraphQLAttributes.VARIABLES == "graphql.variables"
        assert GraphQLAttributes.PARENT_TYPE == "graphql.parentType"
        assert GraphQLAttributes.RETURN_TYPE == "graphql.returnType"
        assert GraphQLAttributes.RESOLVE_ID == "graphql.resolveId"
        assert GraphQLAttributes.ERROR == "graphql.error"
        assert GraphQLAttributes.COMPLEXITY == "graphql.complexity"
        assert GraphQLAttributes.DEPTH == "graphql.depth"


class TestNames:
    """Tests for span and event names."""

    def test_span_names(self):
        """Test phase span names."""
        assert SpanNames.REQUEST == "request"
        assert SpanNames.PARSE == "parse"
        assert SpanNames.VALIDATION == "validation"
        assert SpanNames.EXECUTE == "execute"

    def test_event_names(self):
        """Test event names."""
        assert EventNames.ERROR == "error"


class TestSerializeVariables:
    """Tests for serialize_variables."""

    def test_sorted_keys(self):
        """Test equal variable sets serialize identically."""
        assert serialize_variables({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'
        assert serialize_variables({"a": 2, "b": 1}) == serialize_variables({"b": 1, "a": 2})

    def test_nested(self):
        """Test nested inputs round-trip through JSON."""
        variables = {"filter": {"tags": ["x", "y"], "limit": 5}, "cursor": None}
        assert json.loads(serialize_variables(variables)) == variables

    def test_empty(self):
        """Test empty variables."""
        assert serialize_variables({}) == "{}"

    def test_non_json_values_use_str(self):
        """Test values JSON cannot represent fall back to str()."""
        assert serialize_variables({"since": date(2024, 1, 2)}) == '{"since": "2024-01-02"}'

    def test_unserializable(self):
        """Test circular values yield None."""
        loop: dict = {}
        loop["self"] = loop
        assert serialize_variables({"loop": loop}) is None


class TestParseAttributes:
    """Tests for parse attributes."""

    def test_to_dict(self):
        """Test only set fields are emitted."""
        assert ParseAttributes().to_dict() == {}
        assert ParseAttributes(source="{ a }").to_dict() == {GraphQLAttributes.SOURCE: "{ a }"}

    def test_create(self):
        """Test source and variables are recorded."""
        attrs = create_parse_attributes("{ user(id: $id) }", {"id": 1})
        assert attrs == {
            GraphQLAttributes.SOURCE: "{ user(id: $id) }",
            GraphQLAttributes.VARIABLES: '{"id": 1}',
        }

    def test_create_excluded(self):
        """Test both attributes can be switched off."""
        attrs = create_parse_attributes(
            "{ a }",
            {"id": 1},
            include_source=False,
            include_variables=False,
        )
        assert attrs == {}


class TestValidationAttributes:
    """Tests for validation attributes."""

    def test_defaults(self):
        """Test default scores are zero."""
        assert ValidationAttributes().to_dict() == {
            GraphQLAttributes.COMPLEXITY: 0,
            GraphQLAttributes.DEPTH: 0,
        }

    def test_create(self):
        """Test complexity and depth are recorded."""
        attrs = create_validation_attributes(complexity=12, depth=4)
        assert attrs[GraphQLAttributes.COMPLEXITY] == 12
        assert attrs[GraphQLAttributes.DEPTH] == 4


class TestResolveAttributes:
    """Tests for field resolution attributes."""

    def test_to_dict(self):
        """Test every field is emitted."""
        attrs = ResolveAttributes(resolve_id=3, parent_type="User", return_type="String!").to_dict()
        assert attrs == {
            GraphQLAttributes.RESOLVE_ID: 3,
            GraphQLAttributes.PARENT_TYPE: "User",
            GraphQLAttributes.RETURN_TYPE: "String!",
        }

    def test_create(self):
        """Test the builder matches the structured class."""
        assert create_resolve_attributes(3, "User", "String!") == ResolveAttributes(
            3, "User", "String!"
        ).to_dict()


class TestErrorAttributes:
    """Tests for error event attributes."""

    def test_server_error(self):
        """Test the error message is recorded."""
        attrs = create_error_attributes(ServerError("user not found", path=("user",)))
        assert attrs == {GraphQLAttributes.ERROR: "user not found"}

    def test_any_error(self):
        """Test plain exceptions use their display text."""
        assert create_error_attributes(ValueError("bad id")) == {GraphQLAttributes.ERROR: "bad id"}
