"""Tests for spec loading, value decoding and serialization."""
import json

import pytest

from stepflow.errors import SpecLoadError
from stepflow.workflows import (
    ListValue,
    LiteralValue,
    ObjectValue,
    OperationKind,
    Placeholder,
    PluginConfig,
    Transform,
    dump_spec,
    load_spec_file,
    load_spec_from_data,
    load_spec_text,
)
from stepflow.workflows.loader import decode_source, encode_source
from stepflow.workflows.values import as_source, placeholders, plugin, ref, transform

from tests.factories import step


class TestDecodeSource:
    """Tests for value source encodings."""

    def test_scalar_is_literal(self):
        assert decode_source("Oceania") == LiteralValue(value="Oceania")
        assert decode_source(None) == LiteralValue(value=None)

    def test_placeholder(self):
        assert decode_source({"from": "createZone", "path": "zoneId"}) == Placeholder(
            step="createZone", path="zoneId"
        )

    def test_placeholder_requires_path(self):
        with pytest.raises(ValueError):
            decode_source({"from": "createZone"})

    def test_transform_with_nested_sources(self):
        source = decode_source({
            "transform": "lookup_each",
            "args": [{"from": "countries", "path": "items"}, "code", ["AU", "NZ"], "id"],
        })

        assert isinstance(source, Transform)
        assert source.name == "lookup_each"
        assert source.args[0] == Placeholder(step="countries", path="items")
        assert source.args[2] == LiteralValue(value=["AU", "NZ"])

    def test_transform_args_must_be_list(self):
        with pytest.raises(ValueError):
            decode_source({"transform": "slugify", "args": "x"})

    def test_plugin(self):
        source = decode_source({"plugin": "calc", "arguments": {"rate": 1500}})
        assert source == PluginConfig(code="calc", arguments={"rate": LiteralValue(value=1500)})

    def test_plain_object_is_literal(self):
        assert decode_source({"input": {"name": "Oceania"}}) == LiteralValue(value={"input": {"name": "Oceania"}})

    def test_object_with_embedded_placeholder(self):
        source = decode_source({"input": {"zoneId": {"from": "z", "path": "id"}, "enabled": True}})

        assert isinstance(source, ObjectValue)
        inner = source.entries["input"]
        assert isinstance(inner, ObjectValue)
        assert inner.entries["enabled"] == LiteralValue(value=True)
        assert placeholders(source) == [Placeholder(step="z", path="id")]

    def test_list_with_embedded_placeholder(self):
        source = decode_source([1, {"from": "a", "path": "x"}])
        assert isinstance(source, ListValue)
        assert source.items[0] == LiteralValue(value=1)

    def test_literal_escape(self):
        source = decode_source({"literal": {"from": "not-a-step", "path": "x"}})
        assert source == LiteralValue(value={"from": "not-a-step", "path": "x"})

    def test_reserved_key_with_extra_fields_is_plain_object(self):
        source = decode_source({"from": "a", "path": "x", "note": "y"})
        assert isinstance(source, LiteralValue)

    def test_encode_escapes_ambiguous_literals(self):
        value = {"from": "a", "path": "x"}
        encoded = encode_source(LiteralValue(value=value))

        assert encoded == {"literal": value}
        assert decode_source(encoded) == LiteralValue(value=value)

    def test_encode_plain_literal_unwrapped(self):
        assert encode_source(LiteralValue(value={"a": [1, 2]})) == {"a": [1, 2]}


class TestHelpers:
    """Programmatic construction helpers."""

    def test_as_source_wraps_composites(self):
        source = as_source({"zone": ref("createZone", "zoneId"), "n": 1})
        assert isinstance(source, ObjectValue)
        assert source.entries["n"] == LiteralValue(value=1)

    def test_transform_and_plugin_helpers(self):
        t = transform("currency_to_minor_units", "$15")
        p = plugin("calc", rate=t, taxRate=0)

        assert t.args == (LiteralValue(value="$15"),)
        assert p.arguments["rate"] is t


class TestLoadSpec:
    """Tests for load_spec_* entry points."""

    def test_top_level_array(self):
        spec = load_spec_from_data([step("a"), step("b", depends_on=["a"])])

        assert spec.name == "workflow"
        assert spec.step_ids == ["a", "b"]
        assert spec.steps[1].depends_on == ("a",)

    def test_object_form(self, oceania_spec_data):
        spec = load_spec_from_data(oceania_spec_data)

        assert spec.name == "oceania-shipping"
        assert spec.step_ids == ["countries", "createZone", "addMembers", "createShippingMethod"]
        assert spec.get_step("createZone").kind == OperationKind.MUTATION
        assert "default-shipping-calculator" in spec.plugins

    def test_retry_shorthand(self):
        spec = load_spec_from_data([step("a", retry=5)])
        assert spec.steps[0].retry.max_retries == 5

    def test_retry_object_camel_case(self):
        spec = load_spec_from_data([step("a", retry={"maxRetries": 1, "backoffSeconds": 0.1})])
        retry = spec.steps[0].retry
        assert retry.max_retries == 1
        assert retry.backoff_seconds == 0.1

    def test_timeout_alias(self):
        spec = load_spec_from_data([step("a", timeout=2.5)])
        assert spec.steps[0].timeout_seconds == 2.5

    def test_depends_on_deduplicated(self):
        spec = load_spec_from_data([step("a"), step("b", depends_on=["a", "a"])])
        assert spec.steps[1].depends_on == ("a",)

    def test_yaml_text(self):
        text = """
name: yaml-flow
steps:
  - id: a
    operation: GetThing
    kind: query
    outputs: {thing: thing}
"""
        spec = load_spec_text(text, fmt="yaml")
        assert spec.name == "yaml-flow"
        assert spec.steps[0].outputs == {"thing": "thing"}

    @pytest.mark.parametrize(
        "data",
        [
            "just a string",
            {"steps": "nope"},
            {"steps": [], "extra": 1},
            [{"id": "a", "operation": "x", "kind": "delete"}],
            [{"id": "a", "kind": "query"}],
            [{"id": "a", "operation": "x", "kind": "query", "unknown": True}],
            [{"id": "a", "operation": "x", "kind": "query", "inputs": ["x"]}],
            [{"id": "a", "operation": "x", "kind": "query", "timeout": 0}],
        ],
    )
    def test_structurally_invalid(self, data):
        with pytest.raises(SpecLoadError):
            load_spec_from_data(data)

    def test_invalid_json(self):
        with pytest.raises(SpecLoadError) as exc_info:
            load_spec_text("{not json", source="inline")
        assert exc_info.value.source == "inline"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SpecLoadError):
            load_spec_file(tmp_path / "missing.json")

    def test_yaml_file_by_suffix(self, tmp_path):
        path = tmp_path / "flow.yml"
        path.write_text("- {id: a, operation: A, kind: query}\n")

        spec = load_spec_file(path)
        assert spec.step_ids == ["a"]

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "flow.json"
        path.write_bytes(b"\xff\xfe\x00bad")

        with pytest.raises(SpecLoadError):
            load_spec_file(path)


class TestDumpSpec:
    """Serialization back to text."""

    @pytest.mark.parametrize("fmt", ["json", "yaml"])
    def test_reload_gives_equal_spec(self, oceania_spec_data, fmt):
        spec = load_spec_from_data(oceania_spec_data)
        again = load_spec_text(dump_spec(spec, fmt=fmt), fmt=fmt)
        assert again == spec

    def test_json_shape(self):
        spec = load_spec_from_data([step("a", timeout=3, retry=1, description="first")])
        data = json.loads(dump_spec(spec))

        item = data["steps"][0]
        assert item["timeout"] == 3
        assert item["retry"]["maxRetries"] == 1
        assert item["description"] == "first"
