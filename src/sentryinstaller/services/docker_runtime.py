"""Container runtime services for sentryinstaller."""

import os
import re
import subprocess
from typing import Callable, Dict, Optional, Sequence

from sentryinstaller.constants import DIAGNOSTIC_IMAGE
from sentryinstaller.errors import CommandError, InstallAborted, InstallerError
from sentryinstaller.models import FileStatus

VERSION_PATTERN = re.compile(r"(\d+\.\d+(?:\.\d+)?)")


def parse_version_output(output: str) -> Optional[str]:
    match = VERSION_PATTERN.search(output or "")
    return match.group(1) if match else None


class ContainerRuntimeService:
    """Wraps the `podman`/`docker` CLI primitives the installer relies on."""

    SUPPORTED_RUNTIMES = ("podman", "docker")

    def __init__(self, runtime: str, run_cmd: Callable, logger, console):
        if runtime not in self.SUPPORTED_RUNTIMES:
            raise InstallerError(
                f"Unsupported container runtime '{runtime}'. "
                f"Choose one of: {', '.join(self.SUPPORTED_RUNTIMES)}."
            )
        self.runtime = runtime
        self.run_cmd = run_cmd
        self.logger = logger
        self.console = console

    def version(self) -> Optional[str]:
        result = self.run_cmd([self.runtime, "--version"], check=False, capture_output=True)
        if result.returncode != 0:
            return None
        return parse_version_output(result.stdout)

    def run_container(
        self,
        image: str,
        command: Sequence[str] = (),
        volumes: Optional[Dict[str, str]] = None,
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd = [self.runtime, "run", "--rm"]
        for source, target in (volumes or {}).items():
            cmd += ["-v", f"{source}:{target}"]
        for key, value in (env or {}).items():
            cmd += ["-e", f"{key}={value}"]
        cmd.append(image)
        cmd.extend(command)
        return self.run_cmd(cmd, check=check, capture_output=capture_output)

    def count_cpuinfo_matches(self, pattern: str) -> int:
        # grep -c exits 1 when nothing matches; the count is still printed.
        result = self.run_container(
            DIAGNOSTIC_IMAGE,
            ["grep", "-c", pattern, "/proc/cpuinfo"],
            check=False,
        )
        try:
            return int((result.stdout or "").strip() or "0")
        except ValueError:
            return 0

    def pull_image(self, image: str, check: bool = True) -> subprocess.CompletedProcess:
        return self.run_cmd([self.runtime, "pull", image], check=check)

    def volume_create(self, name: str) -> FileStatus:
        result = self.run_cmd(
            [self.runtime, "volume", "create", name],
            check=False,
            capture_output=True,
        )
        if result.returncode == 0:
            return FileStatus.CREATED

        stderr = (result.stderr or "").strip()
        if "already exists" in stderr.lower():
            return FileStatus.ALREADY_EXISTS

        raise CommandError(
            f"Command failed ({result.returncode}): {self.runtime} volume create {name}\n{stderr}".strip(),
            returncode=result.returncode,
            stderr=stderr,
        )

    def volume_remove(self, name: str, check: bool = True) -> subprocess.CompletedProcess:
        return self.run_cmd([self.runtime, "volume", "rm", name], check=check, capture_output=True)

    def volume_exists(self, name: str) -> bool:
        # --filter name= matches substrings, so sentry-postgres-new would match sentry-postgres.
        result = self.run_cmd(
            [self.runtime, "volume", "ls", "-q", "--filter", f"name={name}"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return False
        return name in (line.strip() for line in (result.stdout or "").splitlines())

    def read_volume_file(self, volume: str, path: str) -> Optional[str]:
        result = self.run_container(
            DIAGNOSTIC_IMAGE,
            ["cat", f"/mnt/{path.lstrip('/')}"],
            volumes={volume: "/mnt"},
            check=False,
        )
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip()

    def reset_storage_acls(self):
        """Drop ACLs on rootless podman storage, see containers/podman#6816."""
        if self.runtime != "podman":
            return

        storage_dir = os.path.expanduser(os.path.join("~", ".local", "share", "containers"))
        if not os.path.isdir(storage_dir):
            return

        try:
            result = self.run_cmd(["setfacl", "-Rb", storage_dir], check=False, capture_output=True)
        except InstallAborted:
            raise
        except InstallerError as exc:
            self.logger.warning("Could not reset ACLs on %s: %s", storage_dir, exc)
            return

        if result.returncode != 0:
            self.logger.warning("Could not reset ACLs on %s: %s", storage_dir, (result.stderr or "").strip())
