"""Process-wide registry of ephemeral remotes awaiting release."""

from __future__ import annotations

import atexit
import signal
from collections.abc import Callable
from contextlib import contextmanager

from porter.core.log import logger
from porter.core.runner import pending_signal
from porter.sync.models import RemoteHandle

Releaser = Callable[[RemoteHandle], None]


class CleanupCoordinator:
    """Tracks every acquired RemoteHandle until it is released.

    RemoteBroker registers a handle together with the callable that
    removes it, and deregisters it once the remote is gone. Anything
    still registered when the process is leaving (error, signal or
    interpreter exit) is released by drain().
    """

    def __init__(self):
        self._entries: dict[str, tuple[RemoteHandle, Releaser]] = {}

    def __contains__(self, handle: RemoteHandle) -> bool:
        return handle.name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def handles(self) -> list[RemoteHandle]:
        return [handle for handle, _ in self._entries.values()]

    def handle_for(self, owner: str) -> RemoteHandle | None:
        """The registered handle owned by a target, if any."""
        for handle in self.handles:
            if handle.owner == owner:
                return handle
        return None

    def register(self, handle: RemoteHandle, release: Releaser):
        self._entries[handle.name] = (handle, release)
        logger.debug(
            "Registered ephemeral remote",
            remote=handle.name, owner=handle.owner,
        )

    def deregister(self, handle: RemoteHandle):
        if self._entries.pop(handle.name, None) is not None:
            logger.debug("Deregistered ephemeral remote", remote=handle.name)

    def drain(self) -> int:
        """Release every registered handle.

        Never raises. A handle whose release fails is logged and
        dropped from the registry; an orphan sweep can remove it
        later.

        Returns:
            Number of handles that were registered
        """
        entries = list(self._entries.values())
        if entries:
            logger.warn(
                "Removing {count} ephemeral remote(s) left registered",
                count=len(entries),
            )
        for handle, release in entries:
            try:
                release(handle)
            except Exception as e:
                logger.error(
                    "Failed to remove ephemeral remote",
                    remote=handle.name,
                    repo=str(handle.repo_path),
                    error=str(e),
                )
            finally:
                self._entries.pop(handle.name, None)
        return len(entries)

    def _on_signal(self, signum, frame):  # noqa: ARG002
        logger.warn(
            "Received {signal_name}, cleaning up before exit",
            signal_name=signal.Signals(signum).name,
        )
        self.drain()
        # Raised again by the runner if invoke swallows the raise below.
        pending_signal.record(signum)
        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        raise SystemExit(128 + signum)

    @contextmanager
    def installed(self, signals=(signal.SIGINT, signal.SIGTERM)):
        """Guarantee a drain on every way out of the block.

        Installs handlers for the given signals, registers an atexit
        hook, and drains when the block exits for any reason. Previous
        signal handlers are restored afterwards.
        """
        previous = {}
        for signum in signals:
            previous[signum] = signal.signal(signum, self._on_signal)
        atexit.register(self.drain)
        try:
            yield self
        except BaseException:
            logger.debug("Draining ephemeral remotes after error")
            raise
        finally:
            pending_signal.clear()
            self.drain()
            atexit.unregister(self.drain)
            for signum, handler in previous.items():
                signal.signal(signum, handler)


# Module-level registry shared by everything in the process.
coordinator = CleanupCoordinator()
