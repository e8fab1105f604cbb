"""ToolManager — registry and execution boundary for every tool.

All invocations go through :meth:`ToolManager.run`, which

1. resolves the tool (registry errors are raised),
2. validates the input (a failure is returned, not raised),
3. bounds the call with the tool's timeout,
4. retries failed attempts up to ``max_retries`` times,
5. returns a ``ToolResult`` with the elapsed wall time.

Timeout and cancellation end the retry loop immediately.  The registry is
guarded by a reader/writer lock; tools and their results are never shared
between invocations.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Iterable, Optional

from code_insight.core.context import RunContext
from code_insight.model.tool_result import ToolConfig, ToolResult, ToolStatus
from code_insight.tools import Tool
from code_insight.tools.errors import (
    DuplicateToolError,
    InvalidInputError,
    ToolCancelledError,
    ToolDisabledError,
    ToolError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from code_insight.utils.rwlock import RWLock

_logger = logging.getLogger(__name__)

# Upper bound on concurrent tools in ``run_batch``.
_DEFAULT_BATCH_WORKERS = 4

# How often a timed attempt re-checks for caller cancellation (seconds).
_POLL_INTERVAL = 0.05


class ToolManager:
    def __init__(self, *, batch_workers: int = _DEFAULT_BATCH_WORKERS) -> None:
        self._lock = RWLock()
        self._tools: dict[str, Tool] = {}
        self._configs: dict[str, ToolConfig] = {}
        self._batch_workers = max(1, batch_workers)

    # ── registry ────────────────────────────────────────────────────

    def register(self, tool: Tool, config: Optional[ToolConfig] = None) -> None:
        """Add *tool* under its name; raises ``DuplicateToolError`` on a clash."""
        if tool is None or not isinstance(tool, Tool):
            raise InvalidInputError("cannot register: object does not implement the Tool contract")
        name = getattr(tool, "name", "")
        if not name:
            raise InvalidInputError("cannot register: tool has no name")
        config = (config or ToolConfig()).copy()

        with self._lock.write():
            if name in self._tools:
                raise DuplicateToolError(name)
            self._tools[name] = tool
            self._configs[name] = config

        _logger.info(
            "tool registered: %s (enabled=%s, timeout=%ss, max_retries=%d)",
            name,
            config.enabled,
            config.timeout,
            config.max_retries,
            extra={"tool": name},
        )

    def get(self, name: str) -> tuple[Tool, ToolConfig]:
        """Return the tool and a copy of its config.

        Raises ``ToolNotFoundError`` or ``ToolDisabledError``.
        """
        with self._lock.read():
            tool = self._tools.get(name)
            if tool is None:
                raise ToolNotFoundError(name)
            config = self._configs[name]
            if not config.enabled:
                raise ToolDisabledError(name)
            return tool, config.copy()

    def enable(self, name: str) -> None:
        self._set_enabled(name, True)

    def disable(self, name: str) -> None:
        self._set_enabled(name, False)

    def _set_enabled(self, name: str, enabled: bool) -> None:
        with self._lock.write():
            config = self._configs.get(name)
            if config is None:
                raise ToolNotFoundError(name)
            self._configs[name] = config.copy(enabled=enabled)
        _logger.info("tool %s: %s", "enabled" if enabled else "disabled", name, extra={"tool": name})

    def update_config(self, name: str, config: ToolConfig) -> None:
        """Replace the whole config; in-flight calls keep the one they started with."""
        if config is None:
            raise InvalidInputError(f"config for {name} must not be None", tool=name)
        with self._lock.write():
            if name not in self._configs:
                raise ToolNotFoundError(name)
            self._configs[name] = config.copy()
        _logger.info("tool config updated: %s", name, extra={"tool": name})

    def get_config(self, name: str) -> ToolConfig:
        """Return a copy of the config, enabled or not."""
        with self._lock.read():
            config = self._configs.get(name)
            if config is None:
                raise ToolNotFoundError(name)
            return config.copy()

    def list(self) -> list[str]:
        with self._lock.read():
            return sorted(self._tools)

    def list_with_status(self) -> list[ToolStatus]:
        with self._lock.read():
            return [
                ToolStatus(
                    name=name,
                    description=self._tools[name].description,
                    enabled=self._configs[name].enabled,
                    timeout=self._configs[name].timeout,
                )
                for name in sorted(self._tools)
            ]

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._tools

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._tools)

    # ── execution ───────────────────────────────────────────────────

    def run(self, name: str, tool_input: Any, ctx: Optional[RunContext] = None) -> ToolResult:
        """Invoke *name* on *tool_input*.

        Only registry errors are raised; everything else is reported in the
        returned ``ToolResult``.
        """
        tool, config = self.get(name)
        start = time.monotonic()

        try:
            tool.validate(tool_input)
        except Exception as exc:
            _logger.warning("input validation failed for %s: %s", name, exc, extra={"tool": name})
            return ToolResult(
                success=False,
                error=f"input validation failed: {exc}",
                execution_time=time.monotonic() - start,
                metadata={"tool": name, "attempts": 0},
                exception=exc,
            )

        run_ctx = (ctx or RunContext.background()).with_timeout(config.timeout)
        output = ""
        error: Optional[BaseException] = None
        attempts = 0

        for attempt in range(config.max_retries + 1):
            attempts = attempt + 1
            try:
                output = self._attempt(tool, tool_input, run_ctx)
                error = None
                break
            except (ToolTimeoutError, ToolCancelledError) as exc:
                error = exc
                break
            except ToolError as exc:
                error = exc
            except Exception as exc:
                _logger.exception("tool %s raised an unexpected exception", name, extra={"tool": name})
                error = exc
            if run_ctx.done():
                break
            if attempt < config.max_retries:
                _logger.warning(
                    "tool %s attempt %d/%d failed: %s; retrying",
                    name,
                    attempts,
                    config.max_retries + 1,
                    error,
                    extra={"tool": name},
                )

        elapsed = time.monotonic() - start
        metadata = {"tool": name, "attempts": attempts}

        if error is not None:
            if isinstance(error, ToolTimeoutError):
                _logger.warning("tool %s timed out after %.3fs", name, elapsed, extra={"tool": name})
            else:
                _logger.error("tool %s failed after %d attempt(s): %s", name, attempts, error, extra={"tool": name})
            return ToolResult(
                success=False,
                error=str(error) or type(error).__name__,
                execution_time=elapsed,
                metadata=metadata,
                exception=error,
            )

        _logger.info("tool %s finished in %.3fs", name, elapsed, extra={"tool": name})
        return ToolResult(success=True, result=output, execution_time=elapsed, metadata=metadata)

    def _attempt(self, tool: Tool, tool_input: Any, ctx: RunContext) -> str:
        """Run one attempt, abandoning the worker if the deadline passes."""
        ctx.check()
        if ctx.deadline is None:
            return tool.run(tool_input, ctx)

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"tool-{tool.name}")
        try:
            future = pool.submit(tool.run, tool_input, ctx)
            while True:
                remaining = ctx.remaining() or 0.0
                done, _ = wait([future], timeout=min(remaining, _POLL_INTERVAL))
                if done:
                    return future.result()
                if ctx.cancelled:
                    raise ToolCancelledError(tool=tool.name)
                if ctx.remaining() == 0.0:
                    ctx.cancel()
                    if ctx.timeout is not None:
                        message = f"tool {tool.name} timed out after {ctx.timeout:g}s"
                    else:  # deadline inherited from the caller's context
                        message = f"tool {tool.name} deadline exceeded"
                    raise ToolTimeoutError(
                        message,
                        tool=tool.name,
                        timeout=ctx.timeout or 0.0,
                    )
        finally:
            pool.shutdown(wait=False)

    def run_batch(
        self,
        names: Iterable[str],
        tool_input: Any,
        ctx: Optional[RunContext] = None,
    ) -> dict[str, ToolResult]:
        """Run several tools on the same input concurrently.

        Always returns one result per distinct name; registry errors are
        reported as unsuccessful results instead of being raised.
        """
        ordered = list(dict.fromkeys(names))
        if not ordered:
            return {}

        with ThreadPoolExecutor(
            max_workers=min(len(ordered), self._batch_workers),
            thread_name_prefix="tool-batch",
        ) as pool:
            futures = {name: pool.submit(self._run_reporting, name, tool_input, ctx) for name in ordered}
            return {name: futures[name].result() for name in ordered}

    def _run_reporting(self, name: str, tool_input: Any, ctx: Optional[RunContext]) -> ToolResult:
        try:
            return self.run(name, tool_input, ctx)
        except ToolError as exc:
            return ToolResult(success=False, error=str(exc), metadata={"tool": name, "attempts": 0}, exception=exc)
