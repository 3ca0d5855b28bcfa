"""Subprocess execution service for sentryinstaller."""

import os
import subprocess
from typing import Dict, List, Optional

from sentryinstaller.errors import CommandError, InstallerError


class CommandRunner:
    """Runs external commands with consistent error handling.

    Calls block until the command exits. There is no timeout and no retry: a
    hung command is only recoverable through an interrupt, which goes through
    the session cleanup path like any other failure.
    """

    def __init__(self, logger):
        self.logger = logger

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        env: Optional[Dict[str, str]] = None,
        merge_stderr: bool = False,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        run_env = None
        if env:
            run_env = dict(os.environ)
            run_env.update(env)

        kwargs = {}
        if capture_output:
            kwargs["stdout"] = subprocess.PIPE
            kwargs["stderr"] = subprocess.STDOUT if merge_stderr else subprocess.PIPE

        try:
            result = subprocess.run(cmd, text=True, env=run_env, **kwargs)
        except FileNotFoundError as exc:
            raise InstallerError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except OSError as exc:
            raise InstallerError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise CommandError(message, returncode=result.returncode, stderr=stderr)

        self.logger.debug(message)
        return result
