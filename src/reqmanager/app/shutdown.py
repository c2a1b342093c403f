"""Graceful shutdown for the reconcile workers.

Each reconcile pass registers itself under its Certificate key while it
runs.  On shutdown the coordinator stops the workers, then waits up to
``graceful_timeout`` seconds for the registered passes to drain.  Passes
still running after that are abandoned; the next pass recomputes the
same state from the store.

Usage::

    coordinator = ShutdownCoordinator(graceful_timeout=30)
    coordinator.on_shutdown(worker.stop)

    with coordinator.track("reconcile default/my-cert"):
        manager.process_item("default/my-cert")

    coordinator.initiate()
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections import Counter
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

log = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Stops the workers and drains in-flight reconcile passes.

    Parameters
    ----------
    graceful_timeout:
        Maximum seconds :meth:`initiate` waits for tracked passes.

    """

    def __init__(self, graceful_timeout: int = 30) -> None:
        self._graceful_timeout = graceful_timeout
        self._stopping = threading.Event()
        self._reload = threading.Event()
        self._cond = threading.Condition()
        self._running: Counter[str] = Counter()
        self._callbacks: list[Callable[[], None]] = []

    # -- state -------------------------------------------------------------

    @property
    def is_shutting_down(self) -> bool:
        return self._stopping.is_set()

    @property
    def in_flight_count(self) -> int:
        with self._cond:
            return sum(self._running.values())

    @property
    def in_flight(self) -> list[str]:
        """Names of the operations currently tracked, sorted."""
        with self._cond:
            return sorted(self._running.elements())

    # -- tracking ----------------------------------------------------------

    @contextmanager
    def track(self, name: str) -> Generator[None, None, None]:
        """Register *name* as in flight for the duration of the block.

        A pass that starts after shutdown began still runs to completion.
        """
        if self._stopping.is_set():
            log.warning("Operation '%s' starting during shutdown", name)

        with self._cond:
            self._running[name] += 1
        try:
            yield
        finally:
            with self._cond:
                self._running[name] -= 1
                if self._running[name] <= 0:
                    del self._running[name]
                if not self._running:
                    self._cond.notify_all()

    # -- shutdown ----------------------------------------------------------

    def on_shutdown(self, callback: Callable[[], None]) -> None:
        """Run *callback* when shutdown begins, before draining."""
        self._callbacks.append(callback)

    def initiate(self) -> None:
        """Stop the workers and wait for in-flight passes.  Idempotent."""
        if self._stopping.is_set():
            return
        self._stopping.set()
        log.info("Graceful shutdown initiated")

        self._run_callbacks()

        abandoned = self._drain(time.monotonic() + self._graceful_timeout)
        if abandoned:
            log.warning(
                "Shutdown timeout expired, abandoning %d operation(s): %s",
                len(abandoned),
                ", ".join(abandoned),
            )
        else:
            log.info("All in-flight operations completed")

    def _run_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback()
            except Exception:
                log.exception("Shutdown callback %r failed", callback)

    def _drain(self, deadline: float) -> list[str]:
        """Wait until nothing is tracked or *deadline* passes.

        Returns the operations still running.
        """
        with self._cond:
            while self._running:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return sorted(self._running.elements())
                self._cond.wait(timeout=remaining)
            return []

    # -- config reload -----------------------------------------------------

    @property
    def reload_requested(self) -> bool:
        """True after SIGHUP until :meth:`consume_reload` is called."""
        return self._reload.is_set()

    def consume_reload(self) -> None:
        self._reload.clear()

    # -- signals -----------------------------------------------------------

    def register_signals(self) -> None:
        """Install SIGTERM/SIGINT handlers.  Main thread only."""
        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                signal.signal(signum, self._signal_handler)
            except (ValueError, OSError):
                log.debug("Could not register handler for %s (not main thread)", signum)

    def register_reload_signal(self) -> None:
        """Install a SIGHUP handler where the platform has one."""
        if not hasattr(signal, "SIGHUP"):
            log.debug("SIGHUP not available on this platform")
            return
        try:
            signal.signal(signal.SIGHUP, self._reload_handler)
        except (ValueError, OSError):
            log.debug("Could not register SIGHUP handler (not main thread)")
            return
        log.info("SIGHUP handler registered for config hot-reload")

    def _signal_handler(self, signum: int, frame) -> None:
        log.info("Received %s, initiating graceful shutdown", signal.Signals(signum).name)
        # initiate() blocks while draining
        threading.Thread(target=self.initiate, name="shutdown-coordinator", daemon=True).start()

    def _reload_handler(self, signum: int, frame) -> None:
        log.info("Received SIGHUP, flagging config reload")
        self._reload.set()
