"""Run git commands in a repository checkout."""

import logging
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


class GitCommandError(Exception):
    def __init__(self, args: list[str], returncode: int, stderr: str):
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"`{' '.join(args)}` failed with exit status {returncode}: {stderr.strip()}")


class GitRunner:
    """Shell-command runner for git, rooted at one working directory."""

    def __init__(self, cwd: str | Path):
        self.cwd = Path(cwd)

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        cmd = ["git", *args]
        logger.debug("running %s in %s", " ".join(cmd), self.cwd)
        return subprocess.run(cmd, cwd=self.cwd, capture_output=True, text=True)

    def run(self, *args: str, print_stdout: bool = False) -> str:
        """Run git and return stdout; raise GitCommandError on failure."""
        result = self._run(list(args))
        if result.returncode != 0:
            raise GitCommandError(["git", *args], result.returncode, result.stderr)
        if print_stdout and result.stdout:
            sys.stdout.write(result.stdout)
            sys.stdout.flush()
        return result.stdout

    def read(self, *args: str) -> str:
        """Stdout of a git command, stripped, or "" if it failed."""
        result = self._run(list(args))
        if result.returncode != 0:
            return ""
        return result.stdout.strip()

    def succeeds(self, *args: str) -> bool:
        return self._run(list(args)).returncode == 0

    def is_shallow(self) -> bool:
        git_dir = self.read("rev-parse", "--git-dir")
        return bool(git_dir) and (self.cwd / git_dir / "shallow").exists()
