"""Actionable error catalog for releaseflow."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_version": {
        "what": "'{version}' is not a valid semantic version.",
        "next": "Use MAJOR.MINOR.PATCH with optional -prerelease and +build parts, without a `v` prefix.",
    },
    "git_missing": {
        "what": "git is not available or {path} is not inside a git work tree.",
        "next": "Install git and run the command from the repository you want to release.",
    },
    "dirty_repository": {
        "what": "The repository has uncommitted changes.",
        "next": "Commit or stash your changes, then retry.",
    },
    "detached_head": {
        "what": "HEAD is detached and does not point to a named branch.",
        "next": "Check out the branch you want to release from, then retry.",
    },
    "merge_failed": {
        "what": "Merging {source} into {target} failed.",
        "next": "Resolve the divergence or conflicts manually on {target}, then retry the release.",
    },
    "commit_failed": {
        "what": "Updating version markers to {version} failed.",
        "next": "Check the configured version files and your git identity (user.name/user.email).",
    },
    "version_file_missing": {
        "what": "Version file not found: {path}",
        "next": "Fix `version_files` in the configuration or add the file to the repository.",
    },
    "version_marker_missing": {
        "what": "No `{key}` version marker found in {path}.",
        "next": "Add the marker to the file or fix `version_files` in the configuration.",
    },
    "tag_failed": {
        "what": "Creating tag {version} failed.",
        "next": "Check that the tag does not already exist on another commit (`git tag -l {version}`).",
    },
    "push_failed": {
        "what": "Pushing {ref} to {remote} failed.",
        "next": "The release is complete locally. Fix remote access and push {ref} manually.",
    },
    "no_remote": {
        "what": "No git remote is configured.",
        "next": "Add a remote (`git remote add origin <url>`) and push manually.",
    },
    "ambiguous_remote": {
        "what": "Several git remotes are configured: {remotes}.",
        "next": "Set `remote` in the configuration file to choose one.",
    },
    "rollback_incomplete": {
        "what": "Rollback could not restore the repository ({steps}).",
        "next": "Inspect `git status`, `git log` and `git tag` and restore the branches by hand.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
