from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from bitcache_core.errors import GatewayError, InvalidInputError

logger = logging.getLogger(__name__)

_NOTHING_TO_COMMIT_MARKERS = ("nothing to commit", "nothing added to commit")

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


@dataclass(slots=True, frozen=True)
class GatewayResult:
    operation: str
    ok: bool
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    skipped: bool = False

    @property
    def diagnostic(self) -> str:
        return self.stderr.strip() or self.stdout.strip()

    def raise_for_status(self) -> None:
        if self.ok:
            return
        raise GatewayError(self.operation, self.diagnostic, returncode=self.returncode)


class RepositoryGateway(Protocol):
    def clone(self, remote_url: str, local_dir: Path) -> GatewayResult:
        """Clone remote_url into local_dir."""

    def stage_all(self, local_dir: Path) -> GatewayResult:
        """Stage every change in the checkout."""

    def commit(self, local_dir: Path, message: str) -> GatewayResult:
        """Record staged changes; an empty change set is a skipped success."""

    def push(self, local_dir: Path) -> GatewayResult:
        """Publish local commits to the remote."""


class GitGateway:
    """Runs the git command-line tool as blocking subprocesses.

    Calls have no timeout, so a hung network clone or push blocks the caller.
    Credentials and transport are whatever git itself is configured with.
    """

    def __init__(
        self,
        *,
        executable: str = "git",
        ssh_key: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        runner: Runner | None = None,
    ) -> None:
        if not executable.strip():
            raise InvalidInputError("git executable is empty.")

        self.executable = executable
        self.ssh_key = Path(ssh_key).expanduser() if ssh_key is not None else None
        if self.ssh_key is not None and not self.ssh_key.is_file():
            raise InvalidInputError(f"SSH key file not found: {self.ssh_key}")
        self.env = dict(env) if env is not None else None
        self.runner = runner or subprocess.run

    def clone(self, remote_url: str, local_dir: Path) -> GatewayResult:
        return self._run("clone", ["clone", remote_url, str(local_dir)])

    def stage_all(self, local_dir: Path) -> GatewayResult:
        return self._run("add", ["add", "."], cwd=local_dir)

    def commit(self, local_dir: Path, message: str) -> GatewayResult:
        # `diff --cached --quiet` exits 0 when nothing is staged and 1 when something is.
        staged = self._run("diff", ["diff", "--cached", "--quiet"], cwd=local_dir)
        if staged.ok:
            logger.info("git commit skipped reason=nothing_to_commit dir=%s", local_dir)
            return GatewayResult(operation="commit", ok=True, skipped=True)
        if staged.returncode != 1:
            return GatewayResult(
                operation="commit",
                ok=False,
                returncode=staged.returncode,
                stdout=staged.stdout,
                stderr=staged.stderr,
            )

        result = self._run("commit", ["commit", "-m", message], cwd=local_dir)
        if not result.ok and _says_nothing_to_commit(result):
            logger.info("git commit skipped reason=nothing_to_commit dir=%s", local_dir)
            return GatewayResult(
                operation="commit",
                ok=True,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
                skipped=True,
            )
        return result

    def push(self, local_dir: Path) -> GatewayResult:
        return self._run("push", ["push"], cwd=local_dir)

    def _run(
        self,
        operation: str,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
    ) -> GatewayResult:
        command = [self.executable, *args]
        kwargs: dict[str, Any] = {
            "capture_output": True,
            "text": True,
            "check": False,
            "env": self._build_env(),
        }
        if cwd is not None:
            kwargs["cwd"] = str(cwd)

        try:
            completed = self.runner(command, **kwargs)
        except OSError as exc:
            logger.error(
                "git %s could not start executable=%s: %s", operation, self.executable, exc
            )
            return GatewayResult(operation=operation, ok=False, returncode=-1, stderr=str(exc))

        result = GatewayResult(
            operation=operation,
            ok=completed.returncode == 0,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if result.ok:
            logger.info("git %s ok", operation)
        elif operation != "diff":
            logger.warning(
                "git %s failed exit=%d stderr=%s",
                operation,
                result.returncode,
                result.stderr.strip(),
            )
        return result

    def _build_env(self) -> dict[str, str]:
        env = dict(os.environ if self.env is None else self.env)
        if self.ssh_key is not None:
            key = shlex.quote(str(self.ssh_key))
            env["GIT_SSH_COMMAND"] = f"ssh -i {key} -o IdentitiesOnly=yes"
        return env


def commit_and_push(gateway: RepositoryGateway, local_dir: Path, message: str) -> GatewayResult:
    """Stage, commit and push in that order; the first failure aborts the rest."""
    gateway.stage_all(local_dir).raise_for_status()
    committed = gateway.commit(local_dir, message)
    committed.raise_for_status()
    gateway.push(local_dir).raise_for_status()
    return committed


def _says_nothing_to_commit(result: GatewayResult) -> bool:
    text = f"{result.stdout}\n{result.stderr}".lower()
    return any(marker in text for marker in _NOTHING_TO_COMMIT_MARKERS)
