"""Base functionality for long-running background workers."""

from __future__ import annotations

import asyncio
import os
import socket
import uuid
from abc import ABC, abstractmethod


class BaseWorker(ABC):
    """Abstract base class for async workers."""

    def __init__(self, worker_name: str | None = None):
        self.worker_name = worker_name or self._build_worker_name()
        self._shutdown_event = asyncio.Event()

    @abstractmethod
    async def run_forever(self) -> None:
        """Main worker loop. Should be implemented by subclasses."""

    @staticmethod
    def _build_worker_name() -> str:
        """Build a unique name for this worker instance."""
        return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:6]}"

    def shutdown(self) -> None:
        """Signal the worker to shut down gracefully."""
        self._shutdown_event.set()

    def is_shutdown_requested(self) -> bool:
        return self._shutdown_event.is_set()

    async def wait_for_shutdown(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if shutdown was requested."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
