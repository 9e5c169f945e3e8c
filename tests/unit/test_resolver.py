"""Tests for InputResolver."""
import pytest

from stepflow.errors import (
    LookupReason,
    RecordLookupError,
    ResolutionError,
    ResolutionReason,
    TransformationError,
)
from stepflow.runtime import InputResolver, ResultStore
from stepflow.transforms import default_registry
from stepflow.workflows import PluginCatalog, load_spec_from_data
from stepflow.workflows.values import LiteralValue, literal, plugin, ref, transform

from tests.factories import step


@pytest.fixture
def store(countries):
    store = ResultStore(["countries", "createZone", "broken"])
    store.mark_running("countries")
    store.record_success("countries", {"items": countries})
    store.mark_running("createZone")
    store.record_success("createZone", {"zoneId": "zone-1"})
    store.record_failure("broken", RuntimeError("boom"))
    return store


@pytest.fixture
def resolver(store):
    catalog = PluginCatalog.from_definitions({
        "calc": {"arguments": {"rate": {"type": "integer", "required": True}}},
    })
    return InputResolver(store, default_registry(), catalog)


class TestResolve:
    """Each kind of value source."""

    def test_literal_is_copied(self, resolver):
        source = LiteralValue(value={"name": "Oceania"})
        value = resolver.resolve(source)
        value["name"] = "changed"

        assert source.value == {"name": "Oceania"}

    def test_placeholder(self, resolver):
        assert resolver.resolve(ref("createZone", "zoneId")) == "zone-1"

    def test_placeholder_nested_path(self, resolver):
        assert resolver.resolve(ref("countries", "items[1].code")) == "NZ"

    def test_placeholder_value_is_plain_and_mutable(self, resolver, store):
        items = resolver.resolve(ref("countries", "items"))
        items.append({"id": "x"})
        items[0]["name"] = "changed"

        assert len(store.wait_for("countries")["items"]) == 3
        assert store.wait_for("countries")["items"][0]["name"] == "Australia"

    def test_missing_output_path(self, resolver):
        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve(ref("createZone", "zoneId.nested"))

        error = exc_info.value
        assert error.reason == ResolutionReason.MISSING_OUTPUT
        assert error.context["upstream_step"] == "createZone"

    def test_failed_upstream(self, resolver):
        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve(ref("broken", "value"))
        assert exc_info.value.reason == ResolutionReason.DEPENDENCY_FAILED

    def test_transform_over_placeholder(self, resolver):
        source = transform("lookup_each", ref("countries", "items"), "code", ["AU", "NZ"], "id")
        assert resolver.resolve(source) == ["c-au", "c-nz"]

    def test_nested_transforms(self, resolver):
        source = transform("slugify", transform("lookup", ref("countries", "items"), "code", "NZ", "name"))
        assert resolver.resolve(source) == "new-zealand"

    def test_composites(self, resolver):
        source = load_spec_from_data([step("s", inputs={"input": {
            "zoneId": {"from": "createZone", "path": "zoneId"},
            "tags": ["a", {"transform": "slugify", "args": ["B C"]}],
        }})]).steps[0].inputs["input"]

        assert resolver.resolve(source) == {"zoneId": "zone-1", "tags": ["a", "b-c"]}

    def test_plugin(self, resolver):
        source = plugin("calc", rate=transform("currency_to_minor_units", "$15"))
        assert resolver.resolve(source) == {"code": "calc", "arguments": [{"name": "rate", "value": "1500"}]}

    def test_plugin_invalid_arguments(self, resolver):
        with pytest.raises(TransformationError):
            resolver.resolve(plugin("calc", rate=literal("lots")))


class TestResolveInputs:
    """Whole-step resolution."""

    def test_all_inputs(self, resolver):
        spec_step = load_spec_from_data([step("s", inputs={
            "zoneId": {"from": "createZone", "path": "zoneId"},
            "code": {"transform": "slugify", "args": ["Oceania Flat Rate"]},
        })]).steps[0]

        assert resolver.resolve_inputs(spec_step) == {"zoneId": "zone-1", "code": "oceania-flat-rate"}

    def test_error_carries_input_name(self, resolver):
        spec_step = load_spec_from_data([step("s", inputs={
            "ok": "fine",
            "memberIds": {
                "transform": "lookup_each",
                "args": [{"from": "countries", "path": "items"}, "code", ["AU", "XX"], "id"],
            },
        })]).steps[0]

        with pytest.raises(RecordLookupError) as exc_info:
            resolver.resolve_inputs(spec_step)

        error = exc_info.value
        assert error.reason == LookupReason.NOT_FOUND
        assert error.context["input"] == "memberIds"
        assert error.context["transform"] == "lookup"
