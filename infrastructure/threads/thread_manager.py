"""Thread manager for background units of work.

This module provides the ThreadManager class, which starts named threads,
records how each one finished, and offers a join barrier so a process can
wait for every outstanding unit before it exits.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from infrastructure.config import ThreadConfig
from infrastructure.logging.logger import get_logger


@dataclass
class ThreadStatus:
    """Status information for a managed thread.

    Attributes:
        name: Thread identifier.
        thread: Thread object.
        started_at: Timestamp when thread was started.
        status: Current status (running, stopped, error).
        exception: Exception if the target raised.
        result: Return value from the target function.
    """

    name: str
    thread: threading.Thread
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "running"
    exception: BaseException | None = None
    result: Any | None = None


class ThreadManager:
    """Starts, tracks and joins background threads.

    Attributes:
        logger: Configured logger instance.
        config: Thread configuration settings.
        threads: Dictionary of managed threads by name.
        lock: Lock guarding the registry.
    """

    def __init__(self, config: ThreadConfig | None = None, name_prefix: str = "thread"):
        """Initialize ThreadManager with configuration.

        Args:
            config: Optional ThreadConfig. If None, populated from environment.
            name_prefix: Prefix for generated thread names.
        """
        self.logger = get_logger(self.__class__.__name__)
        self.config = config if config is not None else ThreadConfig()
        self.name_prefix = name_prefix
        self.threads: dict[str, ThreadStatus] = {}
        self.lock = threading.Lock()
        self._thread_counter = 0

        self.logger.debug(f"ThreadManager initialized (max_threads={self.config.max_threads})")

    def _wrapped_target(
        self, target: Callable, name: str, args: tuple = (), kwargs: dict | None = None
    ) -> None:
        """Run target, capturing its result or exception in the registry."""
        kwargs = kwargs or {}
        try:
            self.logger.debug(f"Thread '{name}' starting execution")
            result = target(*args, **kwargs)
            with self.lock:
                self.threads[name].status = "stopped"
                self.threads[name].result = result
            self.logger.debug(f"Thread '{name}' completed successfully")
        except Exception as e:
            self.logger.error(f"Thread '{name}' failed with exception: {e}")
            with self.lock:
                self.threads[name].status = "error"
                self.threads[name].exception = e

    def start_thread(
        self,
        target: Callable,
        name: str | None = None,
        args: tuple = (),
        kwargs: dict | None = None,
    ) -> threading.Thread:
        """Start a new managed thread.

        Args:
            target: Function to execute in the thread.
            name: Optional thread name. If None, a unique name is generated.
            args: Positional arguments for target.
            kwargs: Keyword arguments for target.

        Returns:
            The started Thread object.

        Raises:
            RuntimeError: If max_threads are already running or a running
                thread already uses ``name``.
        """
        with self.lock:
            if name is None:
                self._thread_counter += 1
                name = f"{self.name_prefix}-{self._thread_counter}"

            existing = self.threads.get(name)
            if existing is not None and existing.thread.is_alive():
                raise RuntimeError(f"Thread '{name}' already exists and is running")

            active_count = sum(1 for t in self.threads.values() if t.thread.is_alive())
            if active_count >= self.config.max_threads:
                raise RuntimeError(f"Max threads ({self.config.max_threads}) limit reached")

            thread = threading.Thread(
                target=self._wrapped_target,
                name=name,
                args=(target, name, args, kwargs),
                daemon=self.config.daemon_threads,
            )
            self.threads[name] = ThreadStatus(name=name, thread=thread)
            thread.start()

        self.logger.debug(f"Started thread '{name}' (daemon={self.config.daemon_threads})")
        return thread

    def wait_for_all_threads(self, timeout: float | None = None) -> bool:
        """Join every managed thread that is still running.

        Args:
            timeout: Join timeout per thread in seconds. Uses config default
                if None.

        Returns:
            True if all threads completed, False if any timed out.
        """
        if timeout is None:
            timeout = self.config.thread_timeout

        with self.lock:
            pending = [status.thread for status in self.threads.values() if status.thread.is_alive()]

        if not pending:
            self.logger.debug("No threads to wait for")
            return True

        self.logger.debug(f"Waiting for {len(pending)} threads")
        for thread in pending:
            thread.join(timeout=timeout)

        incomplete = [thread.name for thread in pending if thread.is_alive()]
        if incomplete:
            self.logger.error(
                f"{len(incomplete)} of {len(pending)} threads did not complete: {incomplete}"
            )
            return False
        return True

    def get_results_summary(self) -> dict[str, int]:
        """Count threads by outcome.

        Returns:
            Dictionary with 'successful', 'failed', 'running' and 'total'.
        """
        with self.lock:
            successful = sum(1 for s in self.threads.values() if s.status == "stopped")
            failed = sum(1 for s in self.threads.values() if s.status == "error")
            running = sum(1 for s in self.threads.values() if s.status == "running")
            return {
                "successful": successful,
                "failed": failed,
                "running": running,
                "total": len(self.threads),
            }

    def cleanup_dead_threads(self) -> int:
        """Remove finished threads from the registry.

        Returns:
            Number of threads removed.
        """
        with self.lock:
            dead_threads = [
                name
                for name, status in self.threads.items()
                if not status.thread.is_alive() and status.status in ("stopped", "error")
            ]
            for name in dead_threads:
                del self.threads[name]

        if dead_threads:
            self.logger.debug(f"Cleaned up {len(dead_threads)} dead threads")
        return len(dead_threads)
