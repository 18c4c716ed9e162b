"""End-to-end replication runs against throwaway repositories."""

import asyncio
import signal

import pytest

from porter.command.sync import SyncCommand
from porter.console import ScriptedConsole
from porter.core.config import State
from porter.git.repository import Repository
from porter.sync.cleanup import CleanupCoordinator
from porter.sync.engine import ReplicationEngine
from porter.sync.models import TargetRepository
from porter.sync.remote import RemoteBroker
from porter.sync.resolver import ConflictResolver
from porter.workflow.nodes.report import exit_code


class CountingBroker(RemoteBroker):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.acquired = []
        self.released = []

    def acquire(self, repo, source_root, owner):
        handle = super().acquire(repo, source_root, owner)
        self.acquired.append(handle.name)
        return handle

    def release(self, handle):
        self.released.append(handle.name)
        super().release(handle)


class CountingEngine(ReplicationEngine):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.attempts = []

    def apply_commit(self, repo, commit):
        self.attempts.append(commit.message)
        super().apply_commit(repo, commit)


def selected(source_repo):
    return Repository(source_repo.path).log_range(
        f"{source_repo.base}..feature/port"
    )


def diverge(target):
    """Give the target its own edit of the file c2 rewrites."""
    target.commit("shared.txt", "from target\n", "target edit")


def test_plain_sync_through_cli_command(
    source_repo, target_repo, mock_argv, monkeypatch, tmp_path
):
    """Three clean commits land in order and the run exits 0."""
    monkeypatch.chdir(tmp_path)
    target = target_repo(source_repo)
    state = State(config={
        "source": {
            "name": "source",
            "path": str(source_repo.path),
            "branch": "feature/port",
            "commit-id": source_repo.base[:8],
        },
        "targets": [
            {"name": "b", "path": str(target.path), "branch": "port-b"},
        ],
    })
    state.runtime.sync.console = ScriptedConsole(["y"])

    code = asyncio.run(SyncCommand().run_workflow(state))

    assert code == 0
    assert target.subjects(f"{source_repo.base}..port-b") == ["c1", "c2", "c3"]
    assert target.remotes() == []
    assert state.runtime.sync.outcomes[0].synced == 3


def test_declined_plan_changes_nothing(
    source_repo, target_repo, mock_argv, monkeypatch, tmp_path
):
    monkeypatch.chdir(tmp_path)
    target = target_repo(source_repo)
    before = target.head()
    state = State(config={
        "source": {
            "name": "source",
            "path": str(source_repo.path),
            "branch": "feature/port",
            "commit_id": source_repo.base,
        },
        "targets": [
            {"name": "b", "path": str(target.path), "branch": "port-b"},
        ],
    })
    state.runtime.sync.console = ScriptedConsole(["n"])

    code = asyncio.run(SyncCommand().run_workflow(state))

    assert code == 0
    assert state.runtime.sync.status == "cancelled"
    assert target.head() == before


def test_preflight_error_exits_2(
    source_repo, mock_argv, monkeypatch, tmp_path
):
    monkeypatch.chdir(tmp_path)
    state = State(config={
        "source": {
            "name": "source",
            "path": str(source_repo.path),
            "branch": "feature/port",
            "commit_id": "0123456",
        },
        "targets": [
            {"name": "a", "path": str(source_repo.path),
             "branch": "feature/port"},
        ],
    })

    code = asyncio.run(SyncCommand(yes=True).run_workflow(state))

    assert code == 2


def test_retry_then_continue(source_repo, target_repo):
    """c2 conflicts; retry once, resolve by hand, then continue."""
    target = target_repo(source_repo)
    diverge(target)

    def resolve_by_hand():
        (target.path / "shared.txt").write_text("merged\n")
        target.git("add", "shared.txt")
        target.git("cherry-pick", "--continue")
        return "c"

    console = ScriptedConsole(["r", resolve_by_hand])
    resolver = ConflictResolver(console)
    engine = CountingEngine(
        Repository(source_repo.path),
        broker=RemoteBroker(coordinator=CleanupCoordinator()),
        resolver=resolver,
    )
    targets = [TargetRepository(name="b", path=target.path, branch="port-b")]

    outcomes = engine.replicate(selected(source_repo), targets)

    c1, c2, c3 = source_repo.commits
    assert engine.attempts == ["c1", "c2", "c2", "c3"]
    assert resolver.aborts[c2] == 1
    assert resolver.retries[c2] == 1
    assert outcomes[0].applied == (c1, c3)
    assert outcomes[0].continued == (c2,)
    assert target.subjects(f"{source_repo.base}..port-b") == [
        "target edit", "c1", "c2", "c3",
    ]
    assert (target.path / "shared.txt").read_text() == "merged\n"
    assert exit_code(outcomes, exited=False) == 0


def test_failed_target_does_not_stop_the_next(source_repo, target_repo):
    """Same-repo A fails checkout; cross-repo B gets all three."""
    target_b = target_repo(source_repo)
    broker = CountingBroker(coordinator=CleanupCoordinator())
    engine = ReplicationEngine(
        Repository(source_repo.path),
        broker=broker,
        resolver=ConflictResolver(ScriptedConsole()),
    )
    targets = [
        TargetRepository(
            name="a", path=source_repo.path, branch="no-such-branch"
        ),
        TargetRepository(name="b", path=target_b.path, branch="port-b"),
    ]

    outcomes = engine.replicate(selected(source_repo), targets)

    a, b = outcomes
    assert not a.succeeded
    assert a.failure_reason
    assert b.succeeded
    assert len(b.applied) == 3
    assert exit_code(outcomes, exited=False) != 0
    assert len(broker.acquired) == 1
    assert broker.released == broker.acquired
    assert target_b.remotes() == []
    assert source_repo.remotes() == []


def test_interrupt_while_awaiting_user_removes_remote(
    source_repo, target_repo
):
    """SIGINT at the conflict prompt still removes the remote."""
    target = target_repo(source_repo)
    diverge(target)
    coordinator = CleanupCoordinator()
    broker = RemoteBroker(coordinator=coordinator)
    resolver = ConflictResolver()

    def interrupt():
        assert len(coordinator) == 1
        assert any(r.startswith("porter-sync-") for r in target.remotes())
        signal.raise_signal(signal.SIGINT)
        return "c"

    resolver.console = ScriptedConsole([interrupt])
    engine = ReplicationEngine(
        Repository(source_repo.path), broker=broker, resolver=resolver
    )
    targets = [TargetRepository(name="b", path=target.path, branch="port-b")]

    with pytest.raises(KeyboardInterrupt), coordinator.installed():
        engine.replicate(selected(source_repo), targets)

    assert len(coordinator) == 0
    assert not [r for r in target.remotes() if r.startswith("porter-sync-")]
    # Already applied commits stay; nothing is rolled back.
    assert "c1" in target.subjects("port-b")
