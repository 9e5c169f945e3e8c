"""Pytest configuration and fixtures."""
import copy
import json
import os
from pathlib import Path

import pytest

# Set test environment variables
os.environ["STEPFLOW_ENV"] = "test"
os.environ["STEPFLOW_LOG_LEVEL"] = "WARNING"
os.environ["STEPFLOW_MAX_WORKERS"] = "4"
os.environ["STEPFLOW_RETRY_BACKOFF_SECONDS"] = "0"

EXAMPLES_DIR = Path(__file__).parent.parent / "examples" / "oceania"


@pytest.fixture(autouse=True)
def fresh_settings():
    """Every test sees settings built from the current environment."""
    from stepflow.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def countries():
    """Collection returned by a country query."""
    return [
        {"id": "c-au", "code": "AU", "name": "Australia"},
        {"id": "c-nz", "code": "NZ", "name": "New Zealand"},
        {"id": "c-fj", "code": "FJ", "name": "Fiji"},
    ]


@pytest.fixture
def oceania_spec_data():
    """The four-step Oceania shipping scenario, as decoded JSON."""
    return json.loads((EXAMPLES_DIR / "spec.json").read_text())


@pytest.fixture
def oceania_responses(countries):
    """Canned adapter responses for the Oceania scenario."""
    return {
        "GetCountries": {"countries": {"items": copy.deepcopy(countries)}},
        "CreateZone": {"createZone": {"id": "zone-1", "name": "Oceania"}},
        "AddMembersToZone": {"addMembersToZone": {"id": "zone-1", "members": [{"id": "c-au"}, {"id": "c-nz"}]}},
        "CreateShippingMethod": {"createShippingMethod": {"id": "sm-1", "code": "oceania-flat-rate"}},
    }


@pytest.fixture
def sleeps():
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def make_executor(sleeps):
    """Factory for executors that never really sleep between retries."""
    from stepflow.runtime import WorkflowExecutor

    def factory(adapter, **kwargs):
        kwargs.setdefault("sleep", sleeps.append)
        return WorkflowExecutor(adapter, **kwargs)

    return factory

