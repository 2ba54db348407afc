"""Adapter helpers for wiring side effects into ``execute``.

Aegis ships no side effects of its own; these wrappers only adapt caller
code to the Adapter protocol.

Usage:
    merge = CallableAdapter("merge", lambda action, ctx: {"status": "SUCCESS"})
    deploy = TimeoutAdapter(DeployAdapter(), timeout_seconds=30)
"""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from ..logger import get_logger
from .types import Adapter, AdapterResult, AdapterStatus, ExecutionContext

logger = get_logger(__name__)


class CallableAdapter:
    """Wrap a plain or async function ``fn(action, context)`` as an adapter."""

    def __init__(self, name: str, fn: Callable[[str, ExecutionContext], Any]):
        if not name:
            raise ValueError("Adapter name must be non-empty")
        self.name = name
        self._fn = fn

    def execute(self, action: str, context: ExecutionContext):
        return self._fn(action, context)

    def __repr__(self) -> str:
        return f"CallableAdapter(name={self.name!r})"


class TimeoutAdapter:
    """Bound an adapter's run time; on expiry it reports FAILED.

    A synchronous adapter cannot be interrupted, so the timeout only applies
    to awaitable results.
    """

    def __init__(self, inner: Adapter, timeout_seconds: float):
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self.inner = inner
        self.timeout_seconds = timeout_seconds
        self.name = getattr(inner, "name", type(inner).__name__)

    async def execute(self, action: str, context: ExecutionContext):
        returned = self.inner.execute(action, context)
        if not inspect.isawaitable(returned):
            return returned
        try:
            return await asyncio.wait_for(returned, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "Adapter %s timed out after %.1fs (request %s)",
                self.name, self.timeout_seconds, context.action_request_id,
            )
            return AdapterResult(
                self.name,
                AdapterStatus.FAILED,
                context.now(),
                message=f"timed out after {self.timeout_seconds}s",
            )
