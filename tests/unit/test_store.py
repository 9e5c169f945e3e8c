"""Tests for ResultStore."""
import threading
import time

import pytest

from stepflow.errors import (
    AdapterError,
    AdapterReason,
    ResolutionError,
    ResolutionReason,
    StepTimeoutError,
)
from stepflow.runtime import ResultStore
from stepflow.runtime.store import IllegalTransitionError, thaw
from stepflow.workflows import StepState


@pytest.fixture
def store():
    return ResultStore(["a", "b", "c"])


class TestTransitions:
    """State machine enforcement."""

    def test_happy_path(self, store):
        store.mark_running("a")
        store.record_success("a", {"zoneId": "zone-1"})

        assert store.state("a") == StepState.SUCCEEDED
        assert store.states() == {"a": StepState.SUCCEEDED, "b": StepState.PENDING, "c": StepState.PENDING}

    def test_pending_to_skipped_and_failed(self, store):
        store.record_skipped("a", because="x")
        store.record_failure("b", StepTimeoutError("late"))

        assert store.state("a") == StepState.SKIPPED
        assert store.state("b") == StepState.FAILED

    @pytest.mark.parametrize(
        "setup, action",
        [
            ([], lambda s: s.record_success("a", {})),
            (["run"], lambda s: s.mark_running("a")),
            (["run"], lambda s: s.record_skipped("a", "b")),
            (["run", "ok"], lambda s: s.record_failure("a", RuntimeError())),
            (["run", "ok"], lambda s: s.record_success("a", {"again": True})),
        ],
    )
    def test_illegal(self, store, setup, action):
        if "run" in setup:
            store.mark_running("a")
        if "ok" in setup:
            store.record_success("a", {"value": 1})

        with pytest.raises(IllegalTransitionError):
            action(store)

    def test_outputs_written_once(self, store):
        store.mark_running("a")
        store.record_success("a", {"value": 1})
        with pytest.raises(IllegalTransitionError):
            store.record_success("a", {"value": 2})

        assert store.wait_for("a")["value"] == 1

    def test_ticks_increase(self, store):
        t1 = store.mark_running("a")
        t2 = store.record_success("a", {})
        t3 = store.mark_running("b")

        assert t1 < t2 < t3
        record = store.record("a")
        assert (record.started_tick, record.finished_tick) == (t1, t2)
        assert record.started_at <= record.finished_at

    def test_root_cause(self, store):
        store.record_failure("a", RuntimeError("boom"))
        store.record_skipped("b", because="a", root_cause=store.root_cause("a"))
        store.record_skipped("c", because="b", root_cause=store.root_cause("b"))

        assert store.root_cause("a") == "a"
        assert store.record("c").skipped_because == "b"
        assert store.root_cause("c") == "a"

    def test_all_terminal(self, store):
        assert not store.all_terminal()
        for sid in ("a", "b", "c"):
            store.record_skipped(sid, because="x")
        assert store.all_terminal()


class TestSnapshots:
    """Stored outputs are isolated from callers."""

    def test_caller_mutation_does_not_leak_in(self, store):
        outputs = {"items": [{"id": 1}]}
        store.mark_running("a")
        store.record_success("a", outputs)
        outputs["items"].append({"id": 2})

        assert len(store.wait_for("a")["items"]) == 1

    def test_snapshot_is_read_only(self, store):
        store.mark_running("a")
        store.record_success("a", {"items": [{"id": 1}]})
        snapshot = store.wait_for("a")

        with pytest.raises(TypeError):
            snapshot["items"] = []
        with pytest.raises(TypeError):
            snapshot["items"][0]["id"] = 2

    def test_thaw_gives_plain_values(self, store):
        store.mark_running("a")
        store.record_success("a", {"items": [{"id": 1}]})

        plain = thaw(store.wait_for("a"))
        plain["items"].append({"id": 2})

        assert plain == {"items": [{"id": 1}, {"id": 2}]}
        assert len(store.wait_for("a")["items"]) == 1


class TestWaitFor:
    """Blocking reads."""

    def test_blocks_until_published(self, store):
        seen = []

        def reader():
            seen.append(dict(store.wait_for("a", timeout=5)))

        thread = threading.Thread(target=reader)
        thread.start()
        time.sleep(0.05)
        assert seen == []

        store.mark_running("a")
        store.record_success("a", {"value": 42})
        thread.join(timeout=5)

        assert seen == [{"value": 42}]

    def test_failed_dependency(self, store):
        store.mark_running("a")
        store.record_failure("a", AdapterError(AdapterReason.CLIENT_ERROR, "bad request"))

        with pytest.raises(ResolutionError) as exc_info:
            store.wait_for("a")

        error = exc_info.value
        assert error.reason == ResolutionReason.DEPENDENCY_FAILED
        assert error.context["upstream_step"] == "a"
        assert error.context["root_cause"] == "a"
        assert "client_error" in error.message

    def test_skipped_dependency_reports_root_cause(self, store):
        store.record_failure("a", RuntimeError("boom"))
        store.record_skipped("b", because="a", root_cause="a")

        with pytest.raises(ResolutionError) as exc_info:
            store.wait_for("b")
        assert exc_info.value.context["root_cause"] == "a"

    def test_timeout(self, store):
        with pytest.raises(StepTimeoutError):
            store.wait_for("a", timeout=0.01)
