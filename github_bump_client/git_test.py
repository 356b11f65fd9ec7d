"""Unit tests for the git command runner."""

import subprocess
from unittest.mock import patch

import pytest

from .git import GitCommandError, GitRunner


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr=stderr)


def describe_GitRunner():
    @pytest.fixture
    def git(tmp_path):
        return GitRunner(tmp_path)

    def it_runs_git_in_the_working_directory(git: GitRunner, tmp_path):
        with patch("github_bump_client.git.subprocess.run", return_value=_completed("ok\n")) as mock_run:
            assert git.run("status") == "ok\n"

        args, kwargs = mock_run.call_args
        assert args[0] == ["git", "status"]
        assert kwargs["cwd"] == tmp_path

    def it_raises_on_failure(git: GitRunner):
        failed = _completed(returncode=128, stderr="fatal: not a git repository\n")
        with patch("github_bump_client.git.subprocess.run", return_value=failed):
            with pytest.raises(GitCommandError) as exc_info:
                git.run("push")

        assert exc_info.value.returncode == 128
        assert "not a git repository" in str(exc_info.value)

    def it_reads_stripped_output_or_empty(git: GitRunner):
        with patch("github_bump_client.git.subprocess.run", return_value=_completed("  main\n")):
            assert git.read("branch", "--show-current") == "main"
        with patch("github_bump_client.git.subprocess.run", return_value=_completed(returncode=1)):
            assert git.read("branch", "--show-current") == ""

    def it_reports_whether_a_command_succeeds(git: GitRunner):
        with patch("github_bump_client.git.subprocess.run", return_value=_completed(returncode=1)):
            assert git.succeeds("config", "--get", "x") is False

    def it_detects_shallow_clones(git: GitRunner, tmp_path):
        (tmp_path / ".git").mkdir()
        with patch("github_bump_client.git.subprocess.run", return_value=_completed(".git\n")):
            assert git.is_shallow() is False
            (tmp_path / ".git" / "shallow").touch()
            assert git.is_shallow() is True
