"""Tests for relaycode.hooks and middleware modules."""

import sys
import os
import json
import tempfile

# Ensure relaycode package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from relaycode import hooks
from relaycode.config import HostContext
from relaycode.middleware import install_defaults, logging_hook, metrics_hook


class TestHooksRegistry:
    """Tests for the core hook registry."""

    def setup_method(self):
        hooks.clear()

    def test_register_and_emit(self):
        results = []
        hooks.register("test_event", lambda data: results.append(data))
        hooks.emit("test_event", {"key": "value"})
        assert len(results) == 1
        assert results[0] == {"key": "value"}

    def test_emit_no_hooks(self):
        data = hooks.emit("nonexistent", {"key": "value"})
        assert data == {"key": "value"}

    def test_hook_can_mutate_data(self):
        def mutator(data):
            data["extra"] = True
            return data
        hooks.register("mut", mutator)
        result = hooks.emit("mut", {"original": True})
        assert result["original"] is True
        assert result["extra"] is True

    def test_hook_returning_none_keeps_data(self):
        def no_return(data):
            pass  # returns None
        hooks.register("nr", no_return)
        result = hooks.emit("nr", {"key": "value"})
        assert result == {"key": "value"}

    def test_notify_adds_event_name(self):
        results = []
        hooks.register("pending_created", results.append)
        hooks.notify("pending_created", target_path="a.py")
        assert results == [{"target_path": "a.py", "event": "pending_created"}]

    def test_notify_ignores_return_values(self):
        seen = []
        hooks.register("n", lambda data: {"replaced": True})
        hooks.register("n", seen.append)
        hooks.notify("n", value=1)
        assert seen == [{"value": 1, "event": "n"}]

    def test_unregister(self):
        cb = lambda data: None
        hooks.register("ev", cb)
        assert hooks.unregister("ev", cb) is True
        assert hooks.unregister("ev", cb) is False
        assert "ev" not in hooks.registered_events()

    def test_clear_removes_all(self):
        hooks.register("a", lambda d: None)
        hooks.register("b", lambda d: None)
        hooks.clear()
        assert hooks.registered_events() == []


class TestMetricsHook:
    """Tests for metrics_hook MetricsCollector."""

    def setup_method(self):
        hooks.clear()

    def test_install_returns_collector(self):
        collector = metrics_hook.install()
        assert isinstance(collector, metrics_hook.MetricsCollector)

    def test_collector_tracks_tool_calls(self):
        collector = metrics_hook.install()
        hooks.notify("tool_after", kind="READ", is_error=False)
        hooks.notify("tool_after", kind="READ", is_error=True)
        hooks.notify("tool_after", kind="UPDATE", is_error=False)
        assert collector.tool_calls_total == 3
        assert collector.tool_call_counts == {"READ": 2, "UPDATE": 1}
        assert collector.tool_error_counts == {"READ": 1}

    def test_summary(self):
        collector = metrics_hook.install()
        hooks.notify("turn_start")
        hooks.notify("format_error", error="x")
        hooks.notify("turn_end", status="format_error")
        hooks.notify("pending_committed", target_path="a.py")
        hooks.notify("pending_rejected", target_path="a.py", reason="stale")
        summary = collector.summary()
        assert summary["turns_total"] == 1
        assert summary["format_errors"] == 1
        assert summary["commits"] == 1
        assert summary["rejections"] == 1
        assert summary["turn_status_counts"] == {"format_error": 1}
        assert "duration_seconds" in summary

    def test_reset(self):
        collector = metrics_hook.install()
        hooks.notify("tool_after", kind="LIST", is_error=False)
        collector.reset()
        assert collector.tool_calls_total == 0


class TestLoggingHook:
    """Tests for logging_hook."""

    def setup_method(self):
        hooks.clear()
        logging_hook.reset()

    def teardown_method(self):
        logging_hook.reset()

    def test_init_logging_creates_path(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = logging_hook.init_logging(tmpdir, "test run")
            assert path.startswith(tmpdir)
            assert os.path.basename(path).startswith("relaycode_test_run_")
            assert path.endswith(".jsonl")

    def test_log_event_writes_jsonl(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = logging_hook.init_logging(tmpdir, "test")
            logging_hook.log_event("test_event", {"key": "value"})
            with open(path) as f:
                record = json.loads(f.readline())
            assert record["event"] == "test_event"
            assert record["key"] == "value"
            assert "ts" in record

    def test_run_context_enrichment(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = logging_hook.init_logging(tmpdir, "test")
            logging_hook.update_run_context({"run_name": "my_run", "root": "/code"})
            logging_hook.log_event("ctx_test", {})
            with open(path) as f:
                record = json.loads(f.readline())
            assert record["run_name"] == "my_run"
            assert record["root"] == "/code"

    def test_no_log_path_is_silent(self):
        logging_hook.log_event("nothing", {"a": 1})
        assert logging_hook.get_log_path() is None

    def test_install_registers_hooks(self):
        logging_hook.install()
        events = hooks.registered_events()
        for name in logging_hook.ALL_EVENTS:
            assert name in events

    def test_installed_hooks_skip_file_buffers(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "events.jsonl")
            logging_hook.install(log_path=path)
            hooks.emit("tool_before", {"kind": "UPDATE", "params": {"contents": "x" * 1000}})
            hooks.notify("pending_created", target_path="a.py", description="d")
            with open(path) as f:
                records = [json.loads(line) for line in f]
            assert [r["event"] for r in records] == ["tool_before", "pending_created"]
            assert "params" not in records[0]
            assert records[1]["target_path"] == "a.py"


class TestInstallDefaults:

    def setup_method(self):
        hooks.clear()
        logging_hook.reset()

    def teardown_method(self):
        hooks.clear()
        logging_hook.reset()

    def test_log_dir_from_context(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = os.path.join(tmpdir, "logs")
            ctx = HostContext(root=tmpdir, work_dir=tmpdir, log_dir=log_dir)
            installed = install_defaults(ctx, run_context={"run_name": "nightly"})
            assert installed["log_path"].startswith(log_dir)
            assert isinstance(installed["metrics"], metrics_hook.MetricsCollector)

            hooks.notify("turn_end", status="completed", kind="read", tools=1, errors=0)
            with open(installed["log_path"]) as f:
                record = json.loads(f.readline())
            assert record["event"] == "turn_end"
            assert record["run_name"] == "nightly"
            assert record["root"] == os.path.realpath(tmpdir)
            assert installed["metrics"].turns_total == 1

    def test_without_context(self):
        installed = install_defaults()
        assert installed["log_path"] is None
