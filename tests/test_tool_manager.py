"""
Tool Manager Tests
==================
Registry, validation, timeout, retry and concurrency behaviour of ToolManager.

Covers:
  - register / duplicate / not found / disabled
  - validation failures come back as results, never raised
  - retries are sequential; timeout and cancellation are terminal
  - config snapshots and list_with_status
  - run_batch and concurrent registry access
"""

import logging
import threading
import time
from dataclasses import dataclass

import pytest

from code_insight.core.context import RunContext
from code_insight.model.tool_result import ToolConfig
from code_insight.tools.base import BaseTool
from code_insight.tools.errors import (
    DuplicateToolError,
    InputValidationError,
    InvalidInputError,
    ToolCancelledError,
    ToolDisabledError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from code_insight.tools.inputs import SourceInput
from code_insight.tools.manager import ToolManager


@dataclass(frozen=True)
class EchoInput:
    text: str


class EchoTool(BaseTool):
    """Returns its input; counts how often ``run`` was called."""

    name = "echo"
    description = "echo the input back"
    input_type = EchoInput

    def __init__(self, name: str = "echo") -> None:
        self.name = name
        self.calls = 0
        self._lock = threading.Lock()

    def validate_fields(self, tool_input: EchoInput) -> None:
        if not tool_input.text:
            raise InputValidationError("text is required", tool=self.name)

    def run(self, tool_input: EchoInput, ctx: RunContext) -> str:
        with self._lock:
            self.calls += 1
        return f'"{tool_input.text}"'


class FlakyTool(EchoTool):
    """Fails the first *failures* attempts."""

    def __init__(self, failures: int) -> None:
        super().__init__("flaky")
        self.failures = failures

    def run(self, tool_input: EchoInput, ctx: RunContext) -> str:
        with self._lock:
            self.calls += 1
            attempt = self.calls
        if attempt <= self.failures:
            raise ToolExecutionError(f"attempt {attempt} failed", tool=self.name)
        return '"ok"'


class SlowTool(EchoTool):
    """Sleeps in small steps until *duration* passes or the context ends."""

    def __init__(self, duration: float) -> None:
        super().__init__("slow")
        self.duration = duration

    def run(self, tool_input: EchoInput, ctx: RunContext) -> str:
        with self._lock:
            self.calls += 1
        end = time.monotonic() + self.duration
        while time.monotonic() < end:
            if ctx.cancelled:
                return '"abandoned"'
            time.sleep(0.01)
        return '"done"'


class CrashingTool(EchoTool):
    def __init__(self) -> None:
        super().__init__("crash")

    def run(self, tool_input: EchoInput, ctx: RunContext) -> str:
        with self._lock:
            self.calls += 1
        raise KeyError("boom")


@pytest.fixture
def manager():
    return ToolManager()


@pytest.fixture
def echo(manager):
    tool = EchoTool()
    manager.register(tool)
    return tool


# ============================================================================
# REGISTRY
# ============================================================================

class TestRegistry:
    """register / get / enable / disable"""

    def test_registered_tool_is_listed(self, manager, echo):
        """A registered tool shows up in list() and supports `in`."""
        assert manager.list() == ["echo"]
        assert "echo" in manager
        assert len(manager) == 1

    def test_duplicate_name_raises(self, manager, echo):
        """A second tool under the same name is rejected."""
        with pytest.raises(DuplicateToolError):
            manager.register(EchoTool())

    def test_register_none_raises(self, manager):
        """None is not a tool."""
        with pytest.raises(InvalidInputError):
            manager.register(None)

    def test_register_nameless_tool_raises(self, manager):
        """A tool with an empty name cannot be registered."""
        with pytest.raises(InvalidInputError):
            manager.register(EchoTool(name=""))

    def test_register_non_tool_raises(self, manager):
        """Objects that do not implement the contract are rejected."""
        with pytest.raises(InvalidInputError):
            manager.register(object())

    def test_registration_is_logged(self, manager, caplog):
        """Registration emits a `tool registered` record."""
        with caplog.at_level(logging.INFO, logger="code_insight"):
            manager.register(EchoTool())
        assert any("tool registered: echo" in r.getMessage() for r in caplog.records)

    def test_unknown_tool_raises_not_found(self, manager):
        """Running an unknown name raises ToolNotFoundError."""
        with pytest.raises(ToolNotFoundError):
            manager.run("missing", EchoInput("x"))

    def test_disabled_tool_is_rejected_without_running(self, manager, echo):
        """A disabled tool raises ToolDisabledError and is never invoked."""
        manager.disable("echo")
        with pytest.raises(ToolDisabledError):
            manager.run("echo", EchoInput("x"))
        assert echo.calls == 0

    def test_enable_after_disable(self, manager, echo):
        """Re-enabling a tool makes it runnable again."""
        manager.disable("echo")
        manager.enable("echo")
        assert manager.run("echo", EchoInput("x")).success

    def test_register_disabled(self, manager):
        """A tool registered with enabled=False is not invocable."""
        manager.register(EchoTool(), ToolConfig(enabled=False))
        with pytest.raises(ToolDisabledError):
            manager.run("echo", EchoInput("x"))

    def test_enable_unknown_raises(self, manager):
        """Toggling an unknown tool raises ToolNotFoundError."""
        with pytest.raises(ToolNotFoundError):
            manager.enable("missing")
        with pytest.raises(ToolNotFoundError):
            manager.disable("missing")


# ============================================================================
# CONFIG
# ============================================================================

class TestConfig:
    """get_config / update_config / list_with_status"""

    def test_negative_retries_rejected(self):
        """max_retries must be non-negative."""
        with pytest.raises(ValueError):
            ToolConfig(max_retries=-1)

    def test_get_config_returns_copy(self, manager):
        """Mutating a returned config does not touch the registry."""
        manager.register(EchoTool(), ToolConfig(custom_config={"a": 1}))
        cfg = manager.get_config("echo")
        cfg.custom_config["a"] = 2
        assert manager.get_config("echo").custom_config == {"a": 1}

    def test_register_copies_config(self, manager):
        """The caller's config object is not retained."""
        cfg = ToolConfig(custom_config={"a": 1})
        manager.register(EchoTool(), cfg)
        cfg.custom_config["a"] = 99
        assert manager.get_config("echo").custom_config == {"a": 1}

    def test_update_config_replaces(self, manager, echo):
        """update_config swaps the whole config."""
        manager.update_config("echo", ToolConfig(timeout=5.0, max_retries=3))
        cfg = manager.get_config("echo")
        assert cfg.timeout == 5.0
        assert cfg.max_retries == 3

    def test_update_config_unknown_raises(self, manager):
        with pytest.raises(ToolNotFoundError):
            manager.update_config("missing", ToolConfig())

    def test_get_config_of_disabled_tool(self, manager, echo):
        """get_config works regardless of the enabled flag."""
        manager.disable("echo")
        assert manager.get_config("echo").enabled is False

    def test_list_with_status(self, manager):
        """Rows are sorted by name and reflect each config."""
        manager.register(EchoTool("b"), ToolConfig(timeout=2.0))
        manager.register(EchoTool("a"), ToolConfig(enabled=False))
        rows = manager.list_with_status()
        assert [r.name for r in rows] == ["a", "b"]
        assert rows[0].enabled is False
        assert rows[1].timeout == 2.0
        assert rows[1].description == "echo the input back"


# ============================================================================
# RUN
# ============================================================================

class TestRun:
    """Single invocations through run()"""

    def test_success_result(self, manager, echo):
        """A successful run carries the payload, timing and metadata."""
        result = manager.run("echo", EchoInput("hello"))
        assert result.success
        assert result.result == '"hello"'
        assert result.error == ""
        assert result.execution_time >= 0
        assert result.metadata == {"tool": "echo", "attempts": 1}

    def test_wrong_input_type_is_a_result(self, manager, echo):
        """Wrong-shaped input fails validation; nothing is raised."""
        result = manager.run("echo", SourceInput("x = 1"))
        assert not result.success
        assert result.error.startswith("input validation failed:")
        assert isinstance(result.exception, InvalidInputError)
        assert echo.calls == 0

    def test_none_input_is_a_result(self, manager, echo):
        result = manager.run("echo", None)
        assert not result.success
        assert "input validation failed" in result.error

    def test_empty_field_is_a_result(self, manager, echo):
        """Field-level validation failures are reported, not raised."""
        result = manager.run("echo", EchoInput(""))
        assert not result.success
        assert isinstance(result.exception, InputValidationError)
        assert "text is required" in result.error

    def test_unexpected_exception_becomes_result(self, manager):
        """A tool raising a non-tool exception still yields a result."""
        manager.register(CrashingTool(), ToolConfig(max_retries=0))
        result = manager.run("crash", EchoInput("x"))
        assert not result.success
        assert isinstance(result.exception, KeyError)

    def test_no_timeout_runs_inline(self, manager):
        """timeout <= 0 disables the deadline."""
        tool = SlowTool(0.05)
        manager.register(tool, ToolConfig(timeout=0))
        result = manager.run("slow", EchoInput("x"))
        assert result.success
        assert result.result == '"done"'


class TestRetry:
    """Retry behaviour"""

    def test_retry_recovers(self, manager):
        """One failure followed by success with max_retries=1."""
        tool = FlakyTool(failures=1)
        manager.register(tool, ToolConfig(max_retries=1))
        result = manager.run("flaky", EchoInput("x"))
        assert result.success
        assert result.metadata["attempts"] == 2
        assert tool.calls == 2

    def test_retries_exhausted(self, manager):
        """max_retries + 1 attempts, then the last error is reported."""
        tool = FlakyTool(failures=10)
        manager.register(tool, ToolConfig(max_retries=2))
        result = manager.run("flaky", EchoInput("x"))
        assert not result.success
        assert tool.calls == 3
        assert "attempt 3 failed" in result.error

    def test_zero_retries(self, manager):
        tool = FlakyTool(failures=1)
        manager.register(tool, ToolConfig(max_retries=0))
        assert not manager.run("flaky", EchoInput("x")).success
        assert tool.calls == 1


class TestTimeout:
    """Timeout and cancellation"""

    def test_timeout_terminates(self, manager):
        """A slow tool is abandoned at the deadline and not retried."""
        tool = SlowTool(duration=2.0)
        manager.register(tool, ToolConfig(timeout=0.1, max_retries=3))
        result = manager.run("slow", EchoInput("x"))

        assert not result.success
        assert isinstance(result.exception, ToolTimeoutError)
        assert result.timed_out
        assert result.execution_time >= 0.1
        assert result.execution_time < 2.0
        assert tool.calls == 1

    def test_timeout_message_names_configured_limit(self, manager):
        manager.register(SlowTool(duration=2.0), ToolConfig(timeout=0.1))
        result = manager.run("slow", EchoInput("x"))
        assert result.error == "tool slow timed out after 0.1s"

    def test_caller_deadline_without_tool_timeout(self, manager):
        """The caller's deadline still applies when the tool has no timeout of its own."""
        tool = SlowTool(duration=2.0)
        manager.register(tool, ToolConfig(timeout=0))
        result = manager.run("slow", EchoInput("x"), RunContext(timeout=0.1))

        assert not result.success
        assert isinstance(result.exception, ToolTimeoutError)
        assert result.error == "tool slow deadline exceeded"
        assert "None" not in result.error
        assert result.execution_time < 2.0

    def test_timeout_cancels_worker_context(self, manager):
        """The abandoned attempt sees its context cancelled."""
        seen = threading.Event()

        class Watcher(SlowTool):
            def run(self, tool_input, ctx):
                while not ctx.cancelled:
                    time.sleep(0.01)
                seen.set()
                return '"stopped"'

        manager.register(Watcher(5.0), ToolConfig(timeout=0.05))
        manager.run("slow", EchoInput("x"))
        assert seen.wait(1.0)

    def test_cancelled_caller_context(self, manager):
        """A cancelled parent context ends the run without retries."""
        tool = SlowTool(duration=2.0)
        manager.register(tool, ToolConfig(timeout=5.0, max_retries=2))
        ctx = RunContext()
        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()
        try:
            result = manager.run("slow", EchoInput("x"), ctx)
        finally:
            timer.cancel()
        assert not result.success
        assert isinstance(result.exception, ToolCancelledError)
        assert tool.calls == 1

    def test_parent_deadline_caps_child(self):
        """A child context never outlives its parent's deadline."""
        parent = RunContext(timeout=0.05)
        child = parent.with_timeout(10.0)
        assert child.deadline == parent.deadline

    def test_check_raises_after_deadline(self):
        ctx = RunContext(timeout=0.01)
        time.sleep(0.02)
        with pytest.raises(ToolTimeoutError):
            ctx.check()


# ============================================================================
# BATCH & CONCURRENCY
# ============================================================================

class TestBatch:
    """run_batch and concurrent use"""

    def test_run_batch_returns_one_result_per_name(self, manager, echo):
        manager.register(EchoTool("other"))
        results = manager.run_batch(["echo", "other"], EchoInput("x"))
        assert list(results) == ["echo", "other"]
        assert all(r.success for r in results.values())

    def test_run_batch_reports_registry_errors(self, manager, echo):
        """Unknown names become unsuccessful results in batch mode."""
        results = manager.run_batch(["echo", "missing"], EchoInput("x"))
        assert results["echo"].success
        assert not results["missing"].success
        assert isinstance(results["missing"].exception, ToolNotFoundError)

    def test_run_batch_empty(self, manager):
        assert manager.run_batch([], EchoInput("x")) == {}

    def test_concurrent_runs_and_toggles(self, manager, echo):
        """Runs and enable/disable from many threads never corrupt state."""
        errors = []

        def runner():
            for _ in range(50):
                try:
                    manager.run("echo", EchoInput("x"))
                except ToolDisabledError:
                    pass
                except Exception as exc:  # pragma: no cover - failure path
                    errors.append(exc)

        def toggler():
            for i in range(50):
                (manager.disable if i % 2 else manager.enable)("echo")
            manager.enable("echo")

        threads = [threading.Thread(target=runner) for _ in range(4)]
        threads.append(threading.Thread(target=toggler))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert manager.get_config("echo").enabled is True

    def test_concurrent_registration(self, manager):
        """Distinct names registered in parallel all land."""
        threads = [threading.Thread(target=manager.register, args=(EchoTool(f"t{i}"),)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(manager) == 20
