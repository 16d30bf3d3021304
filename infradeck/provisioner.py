"""Terraform invocation for the checked-out infrastructure directory.

Runs ``init``/``plan``/``apply`` as subprocesses and turns their output into
operator-facing report text. Failures carry the captured stderr verbatim.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from .errors import ProvisionError

logger = logging.getLogger(__name__)

TERRAFORM_TIMEOUT_SECONDS = 1800.0
INIT_LOG_FILENAME = "terraform-init.log"
PROVIDERS_FILENAME = "providers.tf"


class TerraformProvisioner:
    """Provisioner backed by a local ``terraform`` executable."""

    def __init__(self, terraform_path: str = "terraform", timeout_seconds: float = TERRAFORM_TIMEOUT_SECONDS) -> None:
        self.terraform_path = terraform_path
        self.timeout_seconds = timeout_seconds

    def _executable(self) -> str:
        resolved = shutil.which(self.terraform_path)
        if resolved is None:
            raise ProvisionError("tool_not_installed", f"terraform not found in PATH: {self.terraform_path}")
        return resolved

    def _run(self, path: Path, args: list[str]) -> subprocess.CompletedProcess[str]:
        if not path.is_dir():
            raise ProvisionError("config_error", f"terraform working directory does not exist: {path}")
        cmd = [self._executable(), *args]
        logger.info("running %s in %s", " ".join(cmd), path)
        try:
            return subprocess.run(
                cmd,
                cwd=path,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProvisionError(
                "execution_error",
                f"terraform {args[0]} timed out after {self.timeout_seconds:.0f}s",
            ) from exc
        except OSError as exc:
            raise ProvisionError("execution_error", f"error running terraform {args[0]}: {exc}") from exc

    def _checked(self, path: Path, action: str, args: list[str]) -> subprocess.CompletedProcess[str]:
        proc = self._run(path, [action, *args])
        if proc.returncode != 0:
            logger.warning("terraform %s exited with %d", action, proc.returncode)
            raise ProvisionError(
                "execution_error",
                f"error running terraform {action}: exit status {proc.returncode}\nStderr: {proc.stderr}",
            )
        return proc

    def initialize(self, path: Path) -> str:
        """Run ``terraform init`` and return the formatted report.

        The raw output is also written to ``terraform-init.log`` next to the
        configuration so it survives the session.
        """
        proc = self._run(path, ["init", "-input=false", "-no-color", "-upgrade", "-reconfigure"])
        _write_init_log(path, proc.stdout, proc.stderr)
        if proc.returncode != 0:
            logger.warning("terraform init exited with %d", proc.returncode)
            raise ProvisionError(
                "execution_error",
                f"error running terraform init: exit status {proc.returncode}\nStderr: {proc.stderr}",
            )
        logger.info("terraform init completed in %s", path)
        return format_init_report(path, proc.stdout, proc.stderr)

    def plan(self, path: Path) -> str:
        return self._checked(path, "plan", ["-input=false", "-no-color"]).stdout

    def apply(self, path: Path) -> str:
        return self._checked(path, "apply", ["-input=false", "-auto-approve", "-no-color"]).stdout


def _write_init_log(path: Path, stdout: str, stderr: str) -> None:
    try:
        (path / INIT_LOG_FILENAME).write_text(f"{stdout}\n{stderr}", encoding="utf-8")
    except OSError as exc:
        logger.warning("error writing %s: %s", INIT_LOG_FILENAME, exc)


def format_init_report(path: Path, stdout: str, stderr: str) -> str:
    """Compose the init report: tool output, ``.terraform`` listing, providers."""
    out: list[str] = [
        "Terraform init completed successfully.",
        "",
        "Init Output:",
        stdout.rstrip(),
        "",
        "Stderr:",
        stderr.rstrip(),
        "",
    ]

    terraform_dir = path / ".terraform"
    if terraform_dir.is_dir():
        for entry in sorted(terraform_dir.rglob("*")):
            out.append(f".terraform contents: {entry.relative_to(terraform_dir)}")

    providers_file = path / PROVIDERS_FILENAME
    try:
        providers = providers_file.read_text(encoding="utf-8")
    except OSError:
        logger.debug("no readable %s in %s", PROVIDERS_FILENAME, path)
    else:
        out.extend(["", f"{PROVIDERS_FILENAME} contents:", providers.rstrip()])

    return "\n".join(out)
