"""Unit tests for the YAML value view and decoder."""

import pytest

from pipeline_analyzer.errors import DecodeError
from pipeline_analyzer.yamlvalue import (
    NULL,
    Kind,
    ShapeMismatch,
    YamlValue,
    decode_yaml,
    first_shape,
    name_list,
    str_map,
)


class TestYamlValue:
    """Test wrapping and accessors."""

    def test_wrap_kinds(self):
        """Test each Python type maps to its kind."""
        assert YamlValue.wrap(None) is NULL
        assert YamlValue.wrap(True).kind is Kind.BOOL
        assert YamlValue.wrap(3).kind is Kind.NUMBER
        assert YamlValue.wrap("x").kind is Kind.STRING
        assert YamlValue.wrap([1]).kind is Kind.SEQUENCE
        assert YamlValue.wrap({"a": 1}).kind is Kind.MAPPING

    def test_non_string_keys(self):
        """Test `on:` read as True and integer keys become text."""
        value = YamlValue.wrap({True: "push", 8080: "web"})
        assert value.keys() == ["true", "8080"]

    def test_shape_mismatch(self):
        """Test strict accessors raise ShapeMismatch with the location."""
        with pytest.raises(ShapeMismatch, match="expected string, got number at jobs.build"):
            YamlValue.wrap(1).as_str("jobs.build")

    def test_scalar_text(self):
        """Test scalar text of numbers and booleans."""
        assert YamlValue.wrap(2.1).scalar_text() == "2.1"
        assert YamlValue.wrap(3.0).scalar_text() == "3"
        assert YamlValue.wrap(False).scalar_text() == "false"

    def test_string_list(self):
        """Test scalar or list coercion."""
        assert YamlValue.wrap("a").string_list() == ["a"]
        assert YamlValue.wrap(["a", 2]).string_list() == ["a", "2"]
        assert NULL.string_list() == []

    def test_get_missing(self):
        """Test absent keys read as NULL."""
        assert YamlValue.wrap({"a": 1}).get("b") is NULL

    def test_to_plain_has_no_aliasing(self):
        """Test plain output is fresh data."""
        value = YamlValue.wrap({"a": [1, 2]})
        plain = value.to_plain()
        plain["a"].append(3)
        assert value.to_plain() == {"a": [1, 2]}


class TestHelpers:
    """Test shape helpers."""

    def test_first_shape(self):
        """Test the first fitting reader wins."""
        value = YamlValue.wrap({"command": "make"})
        text = first_shape(value, lambda v: v.as_str(), lambda v: v.get("command").as_str())
        assert text == "make"

    def test_first_shape_default(self):
        """Test the default when no reader fits."""
        assert first_shape(YamlValue.wrap(1), lambda v: v.as_str(), default="none") == "none"

    def test_first_shape_other_errors_propagate(self):
        """Test only ShapeMismatch is treated as a miss."""
        def boom(v):
            raise KeyError("x")

        with pytest.raises(KeyError):
            first_shape(NULL, boom)

    def test_name_list(self):
        """Test every dependency shape."""
        assert name_list(YamlValue.wrap("a")) == ["a"]
        assert name_list(YamlValue.wrap(["a", {"b": "success"}])) == ["a", "b"]
        assert name_list(YamlValue.wrap({"a": {}, "b": {}})) == ["a", "b"]
        assert name_list(NULL) == []

    def test_str_map(self):
        """Test env-style maps."""
        value = YamlValue.wrap({"A": 1, "B": None, "C": [1, 2]})
        assert str_map(value) == {"A": "1", "B": "", "C": "[1, 2]"}


class TestDecodeYaml:
    """Test the decoder."""

    def test_empty(self):
        """Test an empty document is NULL."""
        assert decode_yaml(b"") is NULL

    def test_bom_and_header(self):
        """Test a BOM and document header are accepted."""
        value = decode_yaml("\ufeff---\nversion: 2\n".encode("utf-8"))
        assert value.get("version").scalar_text() == "2"

    def test_first_mapping_document(self):
        """Test multi-document files yield the first mapping."""
        value = decode_yaml("--- x\n---\na: 1\n")
        assert value.keys() == ["a"]

    def test_invalid_yaml(self):
        """Test malformed YAML raises DecodeError."""
        with pytest.raises(DecodeError) as exc:
            decode_yaml(b"a: [1, 2\n", path="ci.yml")
        assert exc.value.path == "ci.yml"
        assert exc.value.one_line() == "DecodeError: invalid YAML (ci.yml)"

    def test_invalid_utf8(self):
        """Test undecodable bytes raise DecodeError."""
        with pytest.raises(DecodeError, match="not valid UTF-8"):
            decode_yaml(b"\xff\xfe\x00a")

    def test_recursive_alias(self):
        """Test an alias nested inside its own anchor raises DecodeError."""
        with pytest.raises(DecodeError) as exc:
            decode_yaml("vars: &v\n  self: *v\n", path="Taskfile.yml")
        assert exc.value.one_line() == "DecodeError: recursive alias (Taskfile.yml)"
        with pytest.raises(DecodeError, match="recursive alias"):
            decode_yaml("a: &l [1, *l]\n")

    def test_shared_alias(self):
        """Test an anchor reused by siblings is not recursive."""
        value = decode_yaml("base: &b {x: 1}\none: *b\ntwo: *b\n")
        assert value.get("two").get("x").as_number() == 1

    def test_deep_nesting(self):
        """Test pathologically deep nesting raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_yaml("a: " + "[" * 10000 + "]" * 10000 + "\n")
