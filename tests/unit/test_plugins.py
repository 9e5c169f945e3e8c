"""Tests for the plugin catalog."""
import pytest
from pydantic import BaseModel, Field

from stepflow.errors import TransformationError, TransformationReason
from stepflow.workflows import PluginCatalog


CALCULATOR = {
    "arguments": {
        "rate": {"type": "integer", "required": True},
        "includesTax": {"type": "string", "enum": ["include", "exclude", "auto"], "default": "auto"},
        "taxRate": {"type": "number", "default": 0},
    }
}


@pytest.fixture
def catalog():
    return PluginCatalog.from_definitions({"default-shipping-calculator": CALCULATOR})


class TestDeclaredPlugins:
    """Catalog entries declared as data."""

    def test_argument_names(self, catalog):
        names, required = catalog.argument_names("default-shipping-calculator")
        assert names == ["rate", "includesTax", "taxRate"]
        assert required == ["rate"]

    def test_build_wire_value(self, catalog):
        value = catalog.build("default-shipping-calculator", {"rate": "1500", "taxRate": 0})

        assert value == {
            "code": "default-shipping-calculator",
            "arguments": [
                {"name": "rate", "value": "1500"},
                {"name": "includesTax", "value": "auto"},
                {"name": "taxRate", "value": "0.0"},
            ],
        }

    def test_enum_enforced(self, catalog):
        with pytest.raises(TransformationError) as exc_info:
            catalog.build("default-shipping-calculator", {"rate": 1, "includesTax": "sometimes"})

        error = exc_info.value
        assert error.reason == TransformationReason.INVALID_PLUGIN_ARGUMENTS
        assert error.context["transform"] == "plugin:default-shipping-calculator"

    def test_missing_required(self, catalog):
        with pytest.raises(TransformationError):
            catalog.build("default-shipping-calculator", {"taxRate": 0})

    def test_unknown_argument(self, catalog):
        with pytest.raises(TransformationError):
            catalog.build("default-shipping-calculator", {"rate": 1, "colour": "red"})

    def test_wrong_type(self, catalog):
        with pytest.raises(TransformationError):
            catalog.build("default-shipping-calculator", {"rate": "fifteen"})

    def test_unknown_code(self, catalog):
        with pytest.raises(TransformationError):
            catalog.build("nope", {})

    def test_check_arguments(self, catalog):
        problems = catalog.check_arguments("default-shipping-calculator", ["taxRate", "colour"])
        assert len(problems) == 2


class TestRegisteredPlugins:
    """Catalog entries registered from pydantic models."""

    def test_register_model(self):
        class EligibilityArgs(BaseModel):
            min_total: int = Field(..., alias="minTotal")
            tags: list = []

        catalog = PluginCatalog()
        catalog.register("min-order", EligibilityArgs)

        assert catalog.argument_names("min-order") == (["minTotal", "tags"], ["minTotal"])
        value = catalog.build("min-order", {"minTotal": 100, "tags": ["a"]})
        assert value["arguments"] == [
            {"name": "minTotal", "value": "100"},
            {"name": "tags", "value": '["a"]'},
        ]

    def test_merged_overlays(self, catalog):
        class Other(BaseModel):
            x: int

        base = PluginCatalog()
        base.register("other", Other)
        merged = base.merged(catalog)

        assert merged.codes == ["default-shipping-calculator", "other"]
        assert "default-shipping-calculator" not in base
        assert len(merged) == 2

    def test_empty_code_rejected(self):
        class Args(BaseModel):
            pass

        with pytest.raises(ValueError):
            PluginCatalog().register("", Args)
