"""Tests for ephemeral remote handling."""

import itertools

import pytest

from porter.core.errors import RemoteSetupError
from porter.git.repository import Repository
from porter.sync.cleanup import CleanupCoordinator
from porter.sync.remote import RemoteBroker


@pytest.fixture
def coordinator():
    return CleanupCoordinator()


@pytest.fixture
def broker(coordinator):
    return RemoteBroker(coordinator=coordinator)


def test_names_are_unique_even_with_a_frozen_clock(coordinator):
    broker = RemoteBroker(coordinator=coordinator, clock=lambda: 1000.0)
    names = [broker.new_name() for _ in range(3)]

    assert names == [
        "porter-sync-1000000",
        "porter-sync-1000001",
        "porter-sync-1000002",
    ]


def test_names_follow_the_clock(coordinator):
    ticks = itertools.count(5)
    broker = RemoteBroker(
        prefix="x-", coordinator=coordinator, clock=lambda: next(ticks)
    )
    assert broker.new_name() == "x-5000"
    assert broker.new_name() == "x-6000"


def test_acquire_fetches_and_registers(
    broker, coordinator, source_repo, target_repo
):
    target = target_repo(source_repo)
    repo = Repository(target.path)

    handle = broker.acquire(repo, source_repo.path, "b")

    assert handle in coordinator
    assert handle.owner == "b"
    assert handle.name in target.remotes()
    # Source commits are now reachable from the target.
    assert repo.resolve_commit(source_repo.commits[-1]) is not None


def test_one_handle_per_target(broker, source_repo, target_repo):
    repo = Repository(target_repo(source_repo).path)
    broker.acquire(repo, source_repo.path, "b")

    with pytest.raises(RemoteSetupError, match="already holds"):
        broker.acquire(repo, source_repo.path, "b")


def test_release_removes_remote(broker, coordinator, source_repo, target_repo):
    target = target_repo(source_repo)
    handle = broker.acquire(Repository(target.path), source_repo.path, "b")

    broker.release(handle)

    assert handle not in coordinator
    assert target.remotes() == []


def test_release_is_idempotent(broker, source_repo, target_repo):
    target = target_repo(source_repo)
    handle = broker.acquire(Repository(target.path), source_repo.path, "b")

    broker.release(handle)
    broker.release(handle)

    assert target.remotes() == []


def test_release_unknown_handle_is_noop(broker, source_repo, target_repo):
    target = target_repo(source_repo)
    other = RemoteBroker(coordinator=CleanupCoordinator())
    handle = other.acquire(Repository(target.path), source_repo.path, "b")

    broker.release(handle)

    assert target.remotes() == [handle.name]


def test_release_tolerates_remote_removed_behind_its_back(
    broker, coordinator, source_repo, target_repo
):
    target = target_repo(source_repo)
    handle = broker.acquire(Repository(target.path), source_repo.path, "b")
    target.git("remote", "remove", handle.name)

    broker.release(handle)

    assert handle not in coordinator


def test_failed_fetch_releases_remote(
    broker, coordinator, source_repo, target_repo, tmp_path
):
    target = target_repo(source_repo)
    missing = tmp_path / "not-a-repo"

    with pytest.raises(RemoteSetupError, match="Could not fetch"):
        broker.acquire(Repository(target.path), missing, "b")

    assert len(coordinator) == 0
    assert target.remotes() == []


def test_sweep_removes_only_prefixed_remotes(broker, source_repo, target_repo):
    target = target_repo(source_repo)
    target.git("remote", "add", "porter-sync-111", str(source_repo.path))
    target.git("remote", "add", "porter-sync-222", str(source_repo.path))
    target.git("remote", "add", "upstream", str(source_repo.path))

    removed = broker.sweep_orphaned(Repository(target.path))

    assert sorted(removed) == ["porter-sync-111", "porter-sync-222"]
    assert target.remotes() == ["upstream"]


def test_sweep_is_idempotent(broker, source_repo, target_repo):
    target = target_repo(source_repo)
    target.git("remote", "add", "porter-sync-111", str(source_repo.path))
    repo = Repository(target.path)

    assert broker.sweep_orphaned(repo) == ["porter-sync-111"]
    assert broker.sweep_orphaned(repo) == []
