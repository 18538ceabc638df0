"""Tests for property descriptor models."""

import pytest
from pydantic import ValidationError

from plugkit.property_schema import (
    ArrayProperty,
    CredentialIdProperty,
    DiscriminatedItems,
    DiscriminatedUnionProperty,
    NumberProperty,
    ObjectProperty,
    StringProperty,
    discriminator_constant,
    dump_properties,
    find_property,
    parse_properties,
    validate_property_name,
)
from tests.conftest import branch, prop


class TestValidatePropertyName:
    """Tests for property name rules."""

    @pytest.mark.parametrize("name", ["query", "max_tokens", "x", "名前", "a$b", "with space", "a-b"])
    def test_accepts_valid_names(self, name: str) -> None:
        """Verify names without reserved characters or forbidden prefixes pass."""
        assert validate_property_name(name) == name

    @pytest.mark.parametrize(
        ("name", "message"),
        [
            ("", "cannot be empty"),
            ("$ref", "cannot start with"),
            (" query", "cannot start with"),
            ("\tquery", "cannot start with"),
            ("a.b", "cannot contain"),
            ("items[0]", "cannot contain"),
            ("a]", "cannot contain"),
        ],
    )
    def test_rejects_invalid_names(self, name: str, message: str) -> None:
        """Verify each lexical rule rejects with its own message."""
        with pytest.raises(ValueError, match=message):
            validate_property_name(name)

    def test_first_failing_rule_wins(self) -> None:
        """Verify checks stop at the first failure for a name."""
        # Given - a name breaking both the prefix and reserved-character rules
        name = "$a.b"

        # When / Then - only the prefix rule is reported
        with pytest.raises(ValueError, match="cannot start with") as exc_info:
            validate_property_name(name)
        assert "cannot contain" not in str(exc_info.value)


class TestParseProperties:
    """Tests for parse_properties."""

    def test_parses_every_variant(self) -> None:
        """Verify the type tag selects the variant model."""
        # Given
        raw = [
            prop("query", min_length=1, enum=["a", "b"]),
            prop("limit", "integer", minimum=1, maximum=10),
            prop("ratio", "number", default=0.5),
            prop("safe", "boolean", constant=True),
            prop("filters", "object", properties=[prop("lang")]),
            prop("tags", "array", items=prop("tag")),
            prop("account", "credential_id", credential_name="github"),
            prop("secret", "encrypted_string"),
            {
                "name": "target",
                "type": "discriminated_union",
                "any_of": [branch("url", "url"), branch("file", "file")],
                "discriminator": "kind",
            },
        ]

        # When
        properties = parse_properties(raw)

        # Then
        assert [type(p).__name__ for p in properties] == [
            "StringProperty",
            "NumberProperty",
            "NumberProperty",
            "BooleanProperty",
            "ObjectProperty",
            "ArrayProperty",
            "CredentialIdProperty",
            "EncryptedStringProperty",
            "DiscriminatedUnionProperty",
        ]

    def test_narrows_payload_types(self) -> None:
        """Verify constant/default/enum follow the variant's value type."""
        with pytest.raises(ValidationError):
            parse_properties([prop("query", default=5)])
        with pytest.raises(ValidationError):
            parse_properties([prop("limit", "number", default="5")])
        with pytest.raises(ValidationError):
            parse_properties([prop("limit", "number", default=True)])
        with pytest.raises(ValidationError):
            parse_properties([prop("safe", "boolean", enum=[1, 0])])

    def test_accepts_expressions_for_non_string_payloads(self) -> None:
        """Verify number, boolean, array and object payloads may be expressions."""
        properties = parse_properties(
            [
                prop("limit", "number", default="={{ $env.LIMIT }}"),
                prop("safe", "boolean", constant="={{ true }}"),
                prop("tags", "array", items=prop("tag"), default="={{ [] }}"),
                prop("filters", "object", properties=[], enum=["={{ {} }}"]),
            ]
        )
        assert isinstance(properties[0], NumberProperty)
        assert properties[0].default == "={{ $env.LIMIT }}"

    def test_rejects_plain_strings_for_non_string_payloads(self) -> None:
        """Verify a plain string is not accepted where a number is expected."""
        with pytest.raises(ValidationError, match="expressions"):
            parse_properties([prop("limit", "number", default="ten")])

    def test_object_payloads_are_json_objects(self) -> None:
        """Verify object constants must be string-keyed JSON maps."""
        properties = parse_properties(
            [prop("filters", "object", properties=[], default={"lang": "en", "n": [1]})]
        )
        assert properties[0].default == {"lang": "en", "n": [1]}
        with pytest.raises(ValidationError):
            parse_properties([prop("filters", "object", properties=[], default=[1])])

    def test_rejects_unknown_fields(self) -> None:
        """Verify variants only accept their own fields."""
        with pytest.raises(ValidationError, match="max_items"):
            parse_properties([prop("query", max_items=3)])

    def test_rejects_unknown_type(self) -> None:
        """Verify the type tag must be known."""
        with pytest.raises(ValidationError) as exc_info:
            parse_properties([prop("when", "date")])
        assert exc_info.value.errors()[0]["type"] == "union_tag_invalid"

    def test_rejects_negative_lengths(self) -> None:
        """Verify length and item bounds are non-negative integers."""
        with pytest.raises(ValidationError):
            parse_properties([prop("query", min_length=-1)])
        with pytest.raises(ValidationError):
            parse_properties([prop("tags", "array", items=prop("tag"), max_items=1.5)])

    def test_credential_name_is_required_and_non_empty(self) -> None:
        """Verify credential_id properties name their credential."""
        with pytest.raises(ValidationError):
            parse_properties([prop("account", "credential_id")])
        with pytest.raises(ValidationError):
            parse_properties([prop("account", "credential_id", credential_name="")])
        account = parse_properties([prop("account", "credential_id", credential_name="github")])[0]
        assert isinstance(account, CredentialIdProperty)


class TestArrayItems:
    """Tests for array items dispatch."""

    def test_single_property_items(self) -> None:
        """Verify items with a type are a nested property."""
        tags = parse_properties([prop("tags", "array", items=prop("tag"))])[0]
        assert isinstance(tags, ArrayProperty)
        assert isinstance(tags.items, StringProperty)

    @pytest.mark.parametrize("key", ["any_of", "anyOf"])
    def test_discriminated_items(self, key: str) -> None:
        """Verify items with any_of (either spelling) are a polymorphic group."""
        # Given
        items = {
            key: [branch("text", "text"), branch("image", "image")],
            "discriminator": "kind",
            "discriminatorUi": {"component": "select"},
        }

        # When
        blocks = parse_properties([prop("blocks", "array", items=items)])[0]

        # Then
        assert isinstance(blocks, ArrayProperty)
        assert isinstance(blocks.items, DiscriminatedItems)
        assert [b.name for b in blocks.items.any_of] == ["text", "image"]
        assert blocks.items.discriminator_ui is not None

    def test_group_needs_two_branches(self) -> None:
        """Verify a polymorphic group has at least two branches."""
        with pytest.raises(ValidationError):
            parse_properties(
                [prop("blocks", "array", items={"any_of": [branch("text", "text")], "discriminator": "kind"})]
            )

    def test_items_without_type_or_group(self) -> None:
        """Verify items must be a property or a group."""
        with pytest.raises(ValidationError) as exc_info:
            parse_properties([prop("blocks", "array", items={"name": "x"})])
        assert exc_info.value.errors()[0]["type"] == "unknown_property_type"


class TestHelpers:
    """Tests for find_property, discriminator_constant and dump_properties."""

    def test_find_property(self) -> None:
        """Verify lookup by name returns the first match or None."""
        properties = parse_properties([prop("a"), prop("b")])
        found = find_property(properties, "b")
        assert found is not None and found.name == "b"
        assert find_property(properties, "c") is None

    def test_discriminator_constant(self) -> None:
        """Verify the branch constant is read from the discriminator child."""
        union = parse_properties(
            [
                {
                    "name": "target",
                    "type": "discriminated_union",
                    "any_of": [branch("url", "url"), branch("file", "file")],
                    "discriminator": "kind",
                }
            ]
        )[0]
        assert isinstance(union, DiscriminatedUnionProperty)
        assert discriminator_constant(union.any_of[1], "kind") == "file"
        assert discriminator_constant(union.any_of[1], "missing") is None

    def test_dump_uses_snake_case_and_drops_unset_fields(self) -> None:
        """Verify serialization produces the wire format."""
        # Given
        raw = [
            prop(
                "blocks",
                "array",
                items={"anyOf": [branch("text", "text"), branch("image", "image")], "discriminator": "kind"},
                min_items=1,
            )
        ]

        # When
        dumped = dump_properties(parse_properties(raw))

        # Then
        assert dumped[0]["min_items"] == 1
        assert "any_of" in dumped[0]["items"]
        assert "anyOf" not in dumped[0]["items"]
        assert "max_items" not in dumped[0]
        assert dumped[0]["items"]["any_of"][0]["properties"][0] == {
            "name": "kind",
            "type": "string",
            "constant": "text",
        }

    def test_nested_objects_parse_recursively(self) -> None:
        """Verify object properties nest to any depth."""
        raw = [prop("a", "object", properties=[prop("b", "object", properties=[prop("c", "number")])])]

        outer = parse_properties(raw)[0]

        assert isinstance(outer, ObjectProperty)
        inner = outer.properties[0]
        assert isinstance(inner, ObjectProperty)
        assert isinstance(inner.properties[0], NumberProperty)
