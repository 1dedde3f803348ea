import json

import pytest

from releaseflow.core import ReleaseOrchestrator
from releaseflow.models import ReleaseConfig


def build_orchestrator(repo_dir, fake_git, version="2.0.0", **kwargs):
    return ReleaseOrchestrator(
        target_version=version,
        repo_path=str(repo_dir),
        git=fake_git,
        **kwargs,
    )


def test_release_from_feature_branch_merges_tags_and_merges_back(repo_dir, fake_git):
    original_main = fake_git.branches["main"]
    original_develop = fake_git.branches["develop"]

    orchestrator = build_orchestrator(repo_dir, fake_git)

    assert orchestrator.run() == 0
    assert orchestrator.state == "done"
    assert fake_git.merges == [("main", "feature-x"), ("develop", "main")]
    assert fake_git.branches["main"] != original_main
    assert fake_git.branches["develop"] != original_develop
    assert fake_git.tags["2.0.0"] == fake_git.branches["main"]
    assert fake_git.head == "main"
    assert "VERSION=2.0.0\n" in (repo_dir / "config.sh").read_text(encoding="utf-8")
    assert '"version": "2.0.0",' in (repo_dir / "package.json").read_text(encoding="utf-8")

    release = orchestrator.release
    assert release.original_branch == "feature-x"
    assert release.main_commit == original_main
    assert release.dev_commit == original_develop
    assert release.tag_id == fake_git.tags["2.0.0"]


def test_version_commit_amends_unpushed_merge_commit(repo_dir, fake_git):
    assert build_orchestrator(repo_dir, fake_git).run() == 0

    commits = [call for call in fake_git.calls if call[0] == "commit"]
    assert commits == [("commit", "Release 2.0.0", True)]
    assert ("add", ("config.sh", "package.json")) in fake_git.calls


def test_version_commit_is_new_commit_when_starting_on_stable(repo_dir, make_fake_git):
    fake_git = make_fake_git(head="main")

    assert build_orchestrator(repo_dir, fake_git).run() == 0

    commits = [call for call in fake_git.calls if call[0] == "commit"]
    assert commits == [("commit", "Release 2.0.0", False)]


def test_starting_on_stable_branch_never_self_merges(repo_dir, make_fake_git):
    fake_git = make_fake_git(head="main")
    orchestrator = build_orchestrator(repo_dir, fake_git)

    assert orchestrator.run() == 0
    assert orchestrator.release.main_commit is None
    assert all(into != source for into, source in fake_git.merges)
    assert ("main", "main") not in fake_git.merges
    assert fake_git.tags["2.0.0"] == fake_git.branches["main"]


def test_merge_without_new_commit_leaves_stable_checkpoint_unset(repo_dir, fake_git):
    fake_git.already_merged.add("feature-x")
    orchestrator = build_orchestrator(repo_dir, fake_git)

    assert orchestrator.merge_to_stable() is True
    assert fake_git.merges == [("main", "feature-x")]
    assert orchestrator.release.main_commit is None


def test_version_commit_after_empty_merge_is_rolled_back(repo_dir, fake_git):
    original_main = fake_git.branches["main"]
    fake_git.already_merged.add("feature-x")
    fake_git.fail("create_tag")
    orchestrator = build_orchestrator(repo_dir, fake_git)

    assert orchestrator.run() == 1

    commits = [call for call in fake_git.calls if call[0] == "commit"]
    assert commits == [("commit", "Release 2.0.0", False)]
    assert fake_git.branches["main"] == original_main
    assert fake_git.head == "feature-x"


def test_second_run_with_same_version_is_a_no_op(repo_dir, fake_git):
    assert build_orchestrator(repo_dir, fake_git).run() == 0

    calls_after_first_run = list(fake_git.calls)
    state_after_first_run = fake_git.snapshot()

    second = build_orchestrator(repo_dir, fake_git)

    assert second.run() == 0
    assert fake_git.calls == calls_after_first_run
    assert fake_git.snapshot() == state_after_first_run
    assert second.release.tag_id is None
    assert second.release.existing_tags == ["2.0.0"]


def test_merge_conflict_rolls_back_to_original_branch(repo_dir, fake_git, capsys):
    fake_git.fail("merge", "feature-x")
    before = fake_git.snapshot()
    original_commit = fake_git.branches["feature-x"]

    orchestrator = build_orchestrator(repo_dir, fake_git)

    assert orchestrator.run() == 1
    assert fake_git.head == "feature-x"
    assert fake_git.branches["feature-x"] == original_commit
    assert fake_git.tags == {}
    assert fake_git.merging is False
    assert fake_git.snapshot() == before
    assert orchestrator.state == "failed"
    assert "MergeFailed" in capsys.readouterr().out


def test_merge_back_failure_restores_stable_branch_tags_and_original(repo_dir, fake_git):
    fake_git.fail("merge", "main")
    before = fake_git.snapshot()

    orchestrator = build_orchestrator(repo_dir, fake_git)

    assert orchestrator.run() == 1
    assert fake_git.snapshot() == before
    assert "2.0.0" not in fake_git.tags
    assert ("delete_tag", "2.0.0") in fake_git.calls
    assert orchestrator.release.tag_id is None
    assert orchestrator.release.main_commit is None
    assert orchestrator.release.dev_commit is None


def test_tag_failure_rolls_back_merge_and_version_commit(repo_dir, fake_git, capsys):
    fake_git.fail("create_tag")
    before = fake_git.snapshot()

    assert build_orchestrator(repo_dir, fake_git).run() == 1
    assert fake_git.snapshot() == before
    assert "TagFailed" in capsys.readouterr().out


def test_commit_failure_reports_commit_failed(repo_dir, fake_git, capsys):
    fake_git.fail("commit")
    before = fake_git.snapshot()

    assert build_orchestrator(repo_dir, fake_git).run() == 1
    assert fake_git.snapshot() == before
    assert "CommitFailed" in capsys.readouterr().out


def test_existing_tag_elsewhere_fails_tag_step(repo_dir, fake_git, capsys):
    fake_git.tags["2.0.0"] = fake_git.branches["develop"]

    assert build_orchestrator(repo_dir, fake_git).run() == 1
    assert fake_git.tags == {"2.0.0": fake_git.branches["develop"]}
    assert fake_git.head == "feature-x"
    assert "TagFailed" in capsys.readouterr().out


def test_mismatched_tag_is_a_warning_and_skips_merge_back(repo_dir, make_fake_git):
    fake_git = make_fake_git(head="main")
    fake_git.tags["1.9.0"] = fake_git.branches["main"]
    for name in ("config.sh", "package.json"):
        path = repo_dir / name
        path.write_text(path.read_text(encoding="utf-8").replace("1.0.0", "2.0.0"), encoding="utf-8")

    orchestrator = build_orchestrator(repo_dir, fake_git)

    assert orchestrator.run() == 0
    assert "2.0.0" not in fake_git.tags
    assert fake_git.merges == []
    assert fake_git.calls == []
    assert orchestrator.release.existing_tags == ["1.9.0"]


def test_rollback_failure_is_reported_and_all_steps_attempted(repo_dir, fake_git, capsys):
    fake_git.fail("merge", "main")
    fake_git.fail("reset_hard")

    assert build_orchestrator(repo_dir, fake_git).run() == 1

    output = capsys.readouterr().out
    assert "RollbackIncomplete" in output
    assert "MergeFailed" in output
    assert ("delete_tag", "2.0.0") in fake_git.calls
    assert ("checkout", "feature-x") in fake_git.calls
    resets = [call for call in fake_git.calls if call[0] == "reset_hard"]
    assert len(resets) == 3


@pytest.mark.parametrize("version", ["1.2", "v1.2.3", "1.2.3-", ""])
def test_invalid_version_aborts_before_touching_repository(repo_dir, fake_git, version, capsys):
    before = fake_git.snapshot()

    assert build_orchestrator(repo_dir, fake_git, version=version).run() == 1
    assert fake_git.calls == []
    assert fake_git.snapshot() == before
    assert "InvalidVersion" in capsys.readouterr().out


def test_dirty_repository_aborts_without_rollback(repo_dir, fake_git, capsys):
    fake_git.dirty = True

    assert build_orchestrator(repo_dir, fake_git).run() == 1
    assert fake_git.calls == []
    assert "DirtyRepository" in capsys.readouterr().out


def test_detached_head_is_rejected(repo_dir, fake_git, capsys):
    fake_git.head = None

    assert build_orchestrator(repo_dir, fake_git).run() == 1
    assert fake_git.calls == []
    assert "DetachedState" in capsys.readouterr().out


def test_missing_git_is_reported(repo_dir, fake_git, capsys):
    fake_git.available = False

    assert build_orchestrator(repo_dir, fake_git).run() == 1
    assert "ToolingMissing" in capsys.readouterr().out


def test_dry_run_plans_every_action_without_mutation(repo_dir, fake_git):
    before = fake_git.snapshot()
    config_before = (repo_dir / "config.sh").read_text(encoding="utf-8")

    orchestrator = build_orchestrator(repo_dir, fake_git, dry_run=True)

    assert orchestrator.run() == 0
    assert fake_git.calls == []
    assert fake_git.snapshot() == before
    assert (repo_dir / "config.sh").read_text(encoding="utf-8") == config_before

    planned = orchestrator.git.planned
    assert planned[0] == "git checkout main"
    assert planned[1].startswith("git merge --no-ff")
    assert planned[1].endswith("feature-x")
    assert "git add -- config.sh package.json" in planned
    assert any(action.startswith("git tag -a 2.0.0") for action in planned)
    assert "git checkout develop" in planned
    assert planned[-1] == "git checkout main"


def test_dry_run_plans_tag_when_stable_tip_has_previous_release(repo_dir, fake_git, capsys):
    fake_git.tags["1.0.0"] = fake_git.branches["main"]
    orchestrator = build_orchestrator(repo_dir, fake_git, dry_run=True)

    assert orchestrator.run() == 0
    assert fake_git.calls == []
    assert any(action.startswith("git tag -a 2.0.0") for action in orchestrator.git.planned)
    assert orchestrator.release.existing_tags == []
    assert "already tagged" not in capsys.readouterr().out


def test_dry_run_with_push_plans_pushes(repo_dir, fake_git):
    fake_git.remote_list = ["origin"]

    orchestrator = build_orchestrator(repo_dir, fake_git, dry_run=True, push=True)

    assert orchestrator.run() == 0
    assert fake_git.pushed == []
    assert "git push origin refs/tags/2.0.0" in orchestrator.git.planned


def test_push_sends_stable_develop_and_tag_in_order(repo_dir, fake_git):
    fake_git.remote_list = ["origin"]

    assert build_orchestrator(repo_dir, fake_git, push=True).run() == 0
    assert fake_git.pushed == [
        ("origin", "main"),
        ("origin", "develop"),
        ("origin", "refs/tags/2.0.0"),
    ]


def test_push_failure_keeps_release_and_exits_nonzero(repo_dir, fake_git, capsys):
    fake_git.remote_list = ["origin"]
    fake_git.fail("push", "develop")

    assert build_orchestrator(repo_dir, fake_git, push=True).run() == 1
    assert "2.0.0" in fake_git.tags
    assert fake_git.pushed == [("origin", "main")]
    assert not any(call[0] in ("reset_hard", "delete_tag") for call in fake_git.calls)
    assert "PushFailed" in capsys.readouterr().out


def test_push_without_remote_fails_after_release(repo_dir, fake_git, capsys):
    assert build_orchestrator(repo_dir, fake_git, push=True).run() == 1
    assert "2.0.0" in fake_git.tags
    assert "No git remote" in capsys.readouterr().out


def test_fast_forwards_branches_with_upstream(repo_dir, fake_git):
    remote_main = fake_git.new_commit()
    fake_git.upstreams["main"] = "origin/main"
    fake_git.remote_heads["main"] = remote_main

    orchestrator = build_orchestrator(repo_dir, fake_git)

    assert orchestrator.run() == 0
    assert ("fast_forward", "main") in fake_git.calls
    assert ("fast_forward", "develop") not in fake_git.calls
    assert orchestrator.release.main_commit == remote_main


def test_custom_branch_names_and_messages(repo_dir, make_fake_git):
    fake_git = make_fake_git()
    fake_git.branches["stable"] = fake_git.branches.pop("main")
    fake_git.branches["dev"] = fake_git.branches.pop("develop")
    config = ReleaseConfig(
        stable_branch="stable",
        develop_branch="dev",
        tag_message="Version {version}",
    )

    assert build_orchestrator(repo_dir, fake_git, config=config).run() == 0
    assert fake_git.merges == [("stable", "feature-x"), ("dev", "stable")]
    tag_calls = [call for call in fake_git.calls if call[0] == "create_tag"]
    assert tag_calls[0][2] == "Version 2.0.0"


def test_report_file_records_steps_and_checkpoints(repo_dir, fake_git, tmp_path):
    report_file = tmp_path / "reports" / "release.json"

    assert build_orchestrator(repo_dir, fake_git, report_file=str(report_file)).run() == 0

    data = json.loads(report_file.read_text(encoding="utf-8"))
    assert data["status"] == "success"
    assert data["target_version"] == "2.0.0"
    assert [step["name"] for step in data["steps"]] == [
        "validate_version",
        "check_repository",
        "merge_to_stable",
        "update_versions",
        "tag_release",
        "merge_back",
    ]
    assert data["checkpoints"]["original_branch"] == "feature-x"
    assert data["checkpoints"]["tag_id"] == fake_git.tags["2.0.0"]


def test_report_file_records_rollback(repo_dir, fake_git, tmp_path):
    report_file = tmp_path / "release.json"
    fake_git.fail("merge", "main")

    assert build_orchestrator(repo_dir, fake_git, report_file=str(report_file)).run() == 1

    data = json.loads(report_file.read_text(encoding="utf-8"))
    assert data["status"] == "failed"
    assert data["rollback"] == {"success": True, "failed_steps": []}
    assert data["steps"][-1]["name"] == "merge_back"
    assert data["steps"][-1]["status"] == "failed"


def test_steps_cannot_run_out_of_order(repo_dir, fake_git):
    orchestrator = build_orchestrator(repo_dir, fake_git)

    with pytest.raises(RuntimeError, match="cannot run from state"):
        orchestrator._run_step("tag_release", orchestrator.tag_release)
