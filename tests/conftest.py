import itertools
import json

import pytest

from releaseflow.errors import GitCommandError


class FakeGitBackend:
    """In-memory stand-in for GitBackend.

    Branches and tags point at opaque commit ids. Failures are injected with
    ``fail(op, arg)``; a failing ``merge`` leaves a merge in progress the way a
    conflict does. Merging a branch listed in ``already_merged`` creates no
    commit.
    """

    dry_run = False

    def __init__(self, head="feature-x"):
        self._ids = itertools.count(1)
        root = self.new_commit()
        self.branches = {"main": root, "develop": root}
        if head not in self.branches:
            self.branches[head] = self.new_commit()
        self.head = head
        self.tags = {}
        self.upstreams = {}
        self.remote_heads = {}
        self.remote_list = []
        self.pushed = []
        self.pushed_commits = set()
        self.available = True
        self.dirty = False
        self.merging = False
        self.failures = set()
        self.calls = []
        self.merges = []
        self.already_merged = set()

    def new_commit(self):
        return f"{next(self._ids):040x}"

    def fail(self, op, arg=None):
        self.failures.add((op, arg))

    def _mutate(self, op, *args):
        self.calls.append((op,) + args)
        first = args[0] if args else None
        if (op, None) in self.failures or (op, first) in self.failures:
            if op == "merge":
                self.merging = True
            raise GitCommandError(f"fake failure: {op} {' '.join(str(a) for a in args)}")

    def snapshot(self):
        return json.dumps(
            {"branches": self.branches, "tags": self.tags, "head": self.head},
            sort_keys=True,
        )

    def is_available(self):
        return self.available

    def has_uncommitted_changes(self):
        return self.dirty

    def current_branch(self):
        return self.head

    def rev_parse(self, ref):
        if ref == "HEAD" and self.head:
            return self.branches[self.head]
        if ref in self.branches:
            return self.branches[ref]
        if ref in self.tags:
            return self.tags[ref]
        raise GitCommandError(f"unknown revision: {ref}")

    def branch_exists(self, branch):
        return branch in self.branches

    def upstream(self, branch):
        return self.upstreams.get(branch)

    def merge_in_progress(self):
        return self.merging

    def is_pushed(self, commit):
        return commit in self.pushed_commits

    def tags_at(self, commit):
        return sorted(name for name, target in self.tags.items() if target == commit)

    def list_tags(self):
        return sorted(self.tags)

    def remotes(self):
        return list(self.remote_list)

    def checkout(self, branch):
        self._mutate("checkout", branch)
        if branch not in self.branches:
            raise GitCommandError(f"pathspec '{branch}' did not match")
        self.head = branch

    def fast_forward(self, branch):
        self._mutate("fast_forward", branch)
        if branch in self.remote_heads:
            self.branches[branch] = self.remote_heads[branch]

    def merge(self, branch, message):
        self._mutate("merge", branch, message)
        self.merges.append((self.head, branch))
        if branch in self.already_merged:
            return
        self.branches[self.head] = self.new_commit()

    def abort_merge(self):
        self._mutate("abort_merge")
        self.merging = False

    def add(self, paths):
        self._mutate("add", tuple(paths))

    def commit(self, message, amend=False):
        self._mutate("commit", message, amend)
        self.branches[self.head] = self.new_commit()

    def create_tag(self, name, message, commit):
        self._mutate("create_tag", name, message, commit)
        if name in self.tags:
            raise GitCommandError(f"tag '{name}' already exists")
        self.tags[name] = commit

    def delete_tag(self, name):
        self._mutate("delete_tag", name)
        if name not in self.tags:
            raise GitCommandError(f"tag '{name}' not found")
        del self.tags[name]

    def reset_hard(self, commit):
        self._mutate("reset_hard", commit)
        self.branches[self.head] = commit
        self.merging = False

    def push(self, remote, ref):
        self._mutate("push", ref)
        self.pushed.append((remote, ref))


class DummyLogger:
    def __getattr__(self, _name):
        return lambda *_args, **_kwargs: None


class DummyConsole:
    def __init__(self):
        self.lines = []

    def print(self, *args, **_kwargs):
        self.lines.append(" ".join(str(arg) for arg in args))


@pytest.fixture
def fake_git():
    return FakeGitBackend()


@pytest.fixture
def dummy_logger():
    return DummyLogger()


@pytest.fixture
def dummy_console():
    return DummyConsole()


@pytest.fixture
def repo_dir(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "config.sh").write_text(
        "# shellcheck shell=bash\nVERSION=1.0.0\nNAME=demo\n",
        encoding="utf-8",
    )
    (repo / "package.json").write_text(
        '{\n  "name": "demo",\n  "version": "1.0.0",\n  "private": true\n}\n',
        encoding="utf-8",
    )
    return repo


@pytest.fixture
def make_fake_git():
    return FakeGitBackend
