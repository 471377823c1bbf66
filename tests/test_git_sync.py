"""Tests for the git-sync command line."""

import logging

from odoo_operator.models.cluster import GitSync


class TestGitSyncArgs:
    def test_defaults(self):
        args = GitSync(repo="https://example.com/repo.git").get_args()
        assert args[:5] == [
            "/stackable/git-sync",
            "--repo=https://example.com/repo.git",
            "--branch=main",
            "--depth=1",
            "--wait=20",
        ]
        assert "--dest=current" in args
        assert "--root=/tmp/git" in args

    def test_extra_options_are_appended(self):
        git_sync = GitSync(
            repo="https://example.com/repo.git",
            branch="develop",
            gitSyncConf={"--rev": "HEAD~1"},
        )
        args = git_sync.get_args()
        assert "--branch=develop" in args
        assert args[-1] == "--rev=HEAD~1"

    def test_reserved_options_are_ignored(self, caplog):
        git_sync = GitSync(
            repo="https://example.com/repo.git",
            gitSyncConf={"--DEST": "/elsewhere", "--Root": "/x", "--git-config": "a:b"},
        )
        with caplog.at_level(logging.WARNING):
            args = git_sync.get_args()

        assert "--DEST=/elsewhere" not in args
        assert "--Root=/x" not in args
        assert "--git-config=a:b" not in args
        assert len([r for r in caplog.records if "will be ignored" in r.getMessage()]) == 3

    def test_folder_default(self):
        assert GitSync(repo="r").folder == "/"
        assert GitSync(repo="r", gitFolder="dags").folder == "dags"
