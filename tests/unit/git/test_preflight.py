"""Tests for preflight checks."""

import pytest

from porter.core.config import Config, SourceConfig, TargetConfig
from porter.core.errors import PreflightError
from porter.git.preflight import check_branch_name, run_preflight


def make_config(source_repo, targets, **source_overrides):
    source = dict(
        name="source",
        path=source_repo.path,
        branch="feature/port",
        commit_id=source_repo.base,
    )
    source.update(source_overrides)
    return Config(
        source=SourceConfig(**source),
        targets=[TargetConfig(**t) for t in targets],
    )


@pytest.mark.parametrize("branch,keyword", [
    ("master", "master"),
    ("Master-hotfix", "master"),
    ("feature/TESTING", "test"),
    ("retest", "test"),
])
def test_branch_name_policy_rejects(branch, keyword):
    with pytest.raises(PreflightError, match=keyword):
        check_branch_name(branch, ["master", "test"])


def test_branch_name_policy_accepts():
    check_branch_name("feature/port", ["master", "test"])
    check_branch_name("main", [])


def test_valid_request_produces_plan(source_repo, target_repo):
    target = target_repo(source_repo)
    config = make_config(
        source_repo, [dict(name="b", path=target.path, branch="port-b")]
    )

    plan = run_preflight(config)

    assert [c.message for c in plan.commits] == ["c3", "c2", "c1"]
    assert [t.name for t in plan.targets] == ["b"]
    assert plan.source_root == source_repo.path.resolve()
    assert plan.targets[0].path == target.path.resolve()
    assert "Commits to replay, oldest first (3):" in plan.describe()


def test_source_root_resolved_from_subdirectory(source_repo, target_repo):
    target = target_repo(source_repo)
    (source_repo.path / "docs").mkdir()
    config = make_config(
        source_repo,
        [dict(name="b", path=target.path, branch="port-b")],
        path=source_repo.path / "docs",
    )

    plan = run_preflight(config)

    assert plan.source_root == source_repo.path.resolve()


def test_missing_source_section():
    with pytest.raises(PreflightError, match="missing the source"):
        run_preflight(Config(targets=[
            TargetConfig(name="b", path=".", branch="port-b"),
        ]))


def test_no_targets(source_repo):
    with pytest.raises(PreflightError, match="no targets"):
        run_preflight(make_config(source_repo, []))


def test_duplicate_target_names(source_repo):
    targets = [
        dict(name="b", path=source_repo.path, branch="feature/port"),
        dict(name="b", path=source_repo.path, branch="feature/port"),
    ]
    with pytest.raises(PreflightError, match="unique"):
        run_preflight(make_config(source_repo, targets))


def test_missing_source_directory(source_repo, tmp_path):
    config = make_config(
        source_repo,
        [dict(name="b", path=source_repo.path, branch="feature/port")],
        path=tmp_path / "nowhere",
    )
    with pytest.raises(PreflightError, match="does not exist"):
        run_preflight(config)


def test_source_not_a_work_tree(source_repo, tmp_path):
    plain = tmp_path / "plain"
    plain.mkdir()
    config = make_config(
        source_repo,
        [dict(name="b", path=source_repo.path, branch="feature/port")],
        path=plain,
    )
    with pytest.raises(PreflightError, match="not a git work tree"):
        run_preflight(config)


def test_missing_source_branch(source_repo):
    config = make_config(
        source_repo,
        [dict(name="b", path=source_repo.path, branch="feature/port")],
        branch="feature/gone",
    )
    with pytest.raises(PreflightError, match="does not exist"):
        run_preflight(config)


def test_missing_target_branch(source_repo, target_repo):
    target = target_repo(source_repo)
    config = make_config(
        source_repo, [dict(name="b", path=target.path, branch="port-c")]
    )
    with pytest.raises(PreflightError, match="no branch 'port-c'"):
        run_preflight(config)


def test_target_with_unstaged_changes(source_repo, target_repo):
    target = target_repo(source_repo)
    (target.path / "shared.txt").write_text("dirty\n")
    config = make_config(
        source_repo, [dict(name="b", path=target.path, branch="port-b")]
    )
    with pytest.raises(PreflightError, match="unstaged changes"):
        run_preflight(config)

    config.policy.require_clean_targets = False
    assert run_preflight(config).targets


def test_forbidden_target_branch(source_repo, target_repo):
    target = target_repo(source_repo, branch="test-port")
    config = make_config(
        source_repo, [dict(name="b", path=target.path, branch="test-port")]
    )
    with pytest.raises(PreflightError, match="must not contain 'test'"):
        run_preflight(config)


def test_preflight_leaves_target_untouched(source_repo, target_repo):
    """Preflight never checks out or otherwise modifies a target."""
    target = target_repo(source_repo)
    target.git("checkout", "-q", "-b", "elsewhere")
    config = make_config(
        source_repo, [dict(name="b", path=target.path, branch="port-b")]
    )

    run_preflight(config)

    assert target.git("rev-parse", "--abbrev-ref", "HEAD") == "elsewhere"
    assert target.remotes() == []
