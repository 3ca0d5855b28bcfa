"""Relay credential generation."""

import os

from sentryinstaller.errors import CommandError, ProvisioningFailure
from sentryinstaller.errors_catalog import actionable_error
from sentryinstaller.models import FileStatus


class CredentialBootstrapper:
    """Generates relay/credentials.json once.

    ``relay credentials generate`` reads the config directory and refuses to
    run when it finds an existing but invalid credentials file there, even
    with ``--stdout``/``--overwrite``. So only the config file is mounted into
    an otherwise empty directory and the credentials are captured from stdout.
    """

    def __init__(self, compose_service, logger, console):
        self.compose_service = compose_service
        self.logger = logger
        self.console = console

    def ensure_credentials(self, path: str, config_path: str) -> FileStatus:
        if os.path.exists(path):
            self.logger.info("%s already exists, skipped generation.", path)
            return FileStatus.ALREADY_EXISTS

        self.console.print("[blue]Generating Relay credentials...[/blue]")
        try:
            result = self.compose_service.run(
                "relay",
                ["--config", "/tmp", "credentials", "generate", "--stdout"],
                no_deps=True,
                volumes={os.path.abspath(config_path): "/tmp/config.yml"},
                capture_output=True,
            )
        except CommandError as exc:
            raise ProvisioningFailure(
                actionable_error("credentials_failed", path=path, config=config_path), service="relay"
            ) from exc

        credentials = result.stdout or ""
        if not credentials.strip():
            raise ProvisioningFailure(
                actionable_error("credentials_failed", path=path, config=config_path), service="relay"
            )

        try:
            with open(path, "x", encoding="utf-8") as file_obj:
                file_obj.write(credentials)
        except FileExistsError as exc:
            raise ProvisioningFailure(
                actionable_error("credentials_failed", path=path, config=config_path), service="relay"
            ) from exc

        self.logger.info("Relay credentials written to %s", path)
        return FileStatus.CREATED
