"""Compose supervisor services for sentryinstaller."""

import subprocess
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sentryinstaller.errors import InstallerError
from sentryinstaller.services.docker_runtime import parse_version_output


class ComposeService:
    """Drives the declarative service list through podman-compose or docker compose."""

    PODMAN_COMPOSE = "podman-compose"
    DOCKER_COMPOSE_V2 = "docker compose"
    DOCKER_COMPOSE_V1 = "docker-compose"

    PULL_BASE_FLAGS = {
        PODMAN_COMPOSE: "--pull-always",
        DOCKER_COMPOSE_V2: "--pull",
        DOCKER_COMPOSE_V1: "--pull",
    }

    def __init__(
        self,
        base_cmd: List[str],
        flavor: str,
        compose_file: str,
        run_cmd: Callable,
        logger,
        console,
    ):
        self.base_cmd = list(base_cmd)
        self.flavor = flavor
        self.compose_file = compose_file
        self.run_cmd = run_cmd
        self.logger = logger
        self.console = console

    @classmethod
    def detect(cls, runtime: str, subprocess_module=subprocess) -> Tuple[List[str], str]:
        if runtime == "podman":
            try:
                subprocess_module.run([cls.PODMAN_COMPOSE, "version"], check=True, capture_output=True)
                return [cls.PODMAN_COMPOSE], cls.PODMAN_COMPOSE
            except (subprocess_module.CalledProcessError, FileNotFoundError):
                raise InstallerError(
                    "podman-compose is not available. Install it (`pip install podman-compose`) "
                    "or run the installer with `--runtime docker`."
                )

        try:
            subprocess_module.run(["docker", "compose", "version"], check=True, capture_output=True)
            return ["docker", "compose"], cls.DOCKER_COMPOSE_V2
        except (subprocess_module.CalledProcessError, FileNotFoundError):
            try:
                subprocess_module.run(["docker-compose", "--version"], check=True, capture_output=True)
                return ["docker-compose"], cls.DOCKER_COMPOSE_V1
            except (subprocess_module.CalledProcessError, FileNotFoundError):
                raise InstallerError(
                    "Docker Compose is not available. Install Docker Compose v2 (`docker compose`) "
                    "or v1 (`docker-compose`) and try again."
                )

    @property
    def tool_name(self) -> str:
        return self.PODMAN_COMPOSE if self.flavor == self.PODMAN_COMPOSE else self.DOCKER_COMPOSE_V1

    def command(self, *args: str, project: Optional[str] = None) -> List[str]:
        cmd = self.base_cmd + ["-f", self.compose_file]
        if project:
            cmd += ["-p", project]
        if self.flavor == self.PODMAN_COMPOSE:
            cmd.append("--no-ansi")
        else:
            cmd += ["--ansi", "never"]
        cmd.extend(args)
        return cmd

    def version(self) -> Optional[str]:
        args = ["--version"] if self.flavor == self.DOCKER_COMPOSE_V1 else ["version"]
        result = self.run_cmd(self.base_cmd + args, check=False, capture_output=True)
        if result.returncode != 0:
            return None
        return parse_version_output(result.stdout)

    def down(self, project: Optional[str] = None) -> subprocess.CompletedProcess:
        return self.run_cmd(self.command("down", project=project), check=False, capture_output=True)

    def stop(self) -> subprocess.CompletedProcess:
        return self.run_cmd(self.command("stop"), check=False, capture_output=True)

    def pull(self) -> subprocess.CompletedProcess:
        return self.run_cmd(
            self.command("pull"),
            check=False,
            capture_output=True,
            merge_stderr=True,
        )

    def build(self, services: Sequence[str] = (), always_pull_base: bool = True) -> subprocess.CompletedProcess:
        args = ["build"]
        if always_pull_base:
            args.append(self.PULL_BASE_FLAGS[self.flavor])
        args.extend(services)
        return self.run_cmd(self.command(*args), check=True)

    def run(
        self,
        service: str,
        args: Sequence[str] = (),
        rm: bool = True,
        detach: bool = False,
        volumes: Optional[Dict[str, str]] = None,
        env: Optional[Dict[str, str]] = None,
        entrypoint: Optional[str] = None,
        no_deps: bool = False,
        check: bool = True,
        capture_output: bool = False,
    ) -> subprocess.CompletedProcess:
        run_args = ["run"]
        if rm:
            run_args.append("--rm")
        if detach:
            run_args.append("-d")
        if no_deps:
            run_args.append("--no-deps")
        if entrypoint:
            run_args += ["--entrypoint", entrypoint]
        for source, target in (volumes or {}).items():
            run_args += ["-v", f"{source}:{target}"]
        for key, value in (env or {}).items():
            run_args += ["-e", f"{key}={value}"]
        run_args.append(service)
        run_args.extend(args)
        return self.run_cmd(self.command(*run_args), check=check, capture_output=capture_output)

    def start_hint(self) -> str:
        return " ".join(self.base_cmd + ["up", "-d"])
