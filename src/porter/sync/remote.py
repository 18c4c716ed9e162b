"""Ephemeral remotes that make source commits reachable from a target."""

from __future__ import annotations

import time
from pathlib import Path

from porter.core.errors import CleanupFailure, GitCommandError, RemoteSetupError
from porter.core.log import logger
from porter.git.repository import Repository
from porter.sync.cleanup import CleanupCoordinator, coordinator as _coordinator
from porter.sync.models import RemoteHandle


class RemoteBroker:
    """Adds, fetches and removes remotes named <prefix><timestamp>.

    Every remote it adds is registered with the CleanupCoordinator
    before anything else can fail, so no exit path leaves one behind.
    The name prefix also lets sweep_orphaned() find remotes from a
    run that crashed before its cleanup ran.
    """

    def __init__(
        self,
        prefix: str = "porter-sync-",
        coordinator: CleanupCoordinator | None = None,
        clock=time.time,
    ):
        self.prefix = prefix
        self.coordinator = _coordinator if coordinator is None else coordinator
        self.clock = clock
        self._last_stamp = 0
        self._repos: dict[str, Repository] = {}

    def new_name(self) -> str:
        """Prefix plus a millisecond timestamp, unique within the process."""
        stamp = int(self.clock() * 1000)
        if stamp <= self._last_stamp:
            stamp = self._last_stamp + 1
        self._last_stamp = stamp
        return f"{self.prefix}{stamp}"

    def acquire(
        self, repo: Repository, source_root: Path, owner: str
    ) -> RemoteHandle:
        """Register the source repository as a remote of repo and fetch it.

        Args:
            repo: Target repository
            source_root: Top-level directory of the source repository
            owner: Name of the target the handle belongs to

        Raises:
            RemoteSetupError: If owner already holds a handle, or the
                remote cannot be added or fetched
        """
        existing = self.coordinator.handle_for(owner)
        if existing is not None:
            raise RemoteSetupError(
                f"Target '{owner}' already holds remote {existing.name}"
            )

        name = self.new_name()
        try:
            repo.add_remote(name, source_root)
        except GitCommandError as e:
            raise RemoteSetupError(
                f"Could not add remote {name} in {repo.path}: {e}"
            ) from e

        handle = RemoteHandle(
            name=name,
            source_path=source_root,
            owner=owner,
            repo_path=repo.path,
        )
        self._repos[name] = repo
        self.coordinator.register(handle, self._remove)

        logger.info(
            "Fetching {source} into {repo} as {remote}",
            source=str(source_root), repo=str(repo.path), remote=name,
        )
        try:
            repo.fetch(name)
        except GitCommandError as e:
            self.release(handle)
            raise RemoteSetupError(
                f"Could not fetch {source_root} into {repo.path}: {e}"
            ) from e
        return handle

    def release(self, handle: RemoteHandle):
        """Remove the remote behind handle.

        Releasing a handle that is not registered (already released,
        or never acquired here) does nothing. A failed removal is
        logged and the handle stays registered for the final drain.
        """
        if handle not in self.coordinator:
            logger.debug("Remote already released", remote=handle.name)
            return
        try:
            self._remove(handle)
        except CleanupFailure as e:
            logger.error("{reason}", reason=str(e), remote=handle.name)
            return
        self.coordinator.deregister(handle)

    def _remove(self, handle: RemoteHandle):
        repo = self._repos.get(handle.name) or Repository(handle.repo_path)
        try:
            if handle.name in repo.remotes():
                repo.remove_remote(handle.name)
                logger.info(
                    "Removed remote {remote} from {repo}",
                    remote=handle.name, repo=str(repo.path),
                )
        except GitCommandError as e:
            raise CleanupFailure(
                f"Could not remove remote {handle.name} from "
                f"{handle.repo_path}: {e}"
            ) from e
        self._repos.pop(handle.name, None)

    def sweep_orphaned(self, repo: Repository) -> list[str]:
        """Remove every remote in repo carrying the naming prefix.

        Works from the repository alone, not from the registry, so it
        also finds remotes left by earlier processes. Failures are
        logged and skipped.

        Returns:
            Names of the remotes removed
        """
        try:
            names = [n for n in repo.remotes() if n.startswith(self.prefix)]
        except GitCommandError as e:
            logger.error(
                "Could not list remotes in {repo}: {reason}",
                repo=str(repo.path), reason=str(e),
            )
            return []

        removed = []
        for name in names:
            try:
                repo.remove_remote(name)
            except GitCommandError as e:
                logger.error(
                    "Could not remove orphaned remote {remote}: {reason}",
                    remote=name, reason=str(e),
                )
                continue
            removed.append(name)
            logger.info(
                "Removed orphaned remote {remote} from {repo}",
                remote=name, repo=str(repo.path),
            )
        return removed
