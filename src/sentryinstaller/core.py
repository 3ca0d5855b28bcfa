import logging
import os
import subprocess
from typing import Dict, List, Optional, Tuple

from rich.console import Console
from rich.markup import escape

from .constants import (
    BUILD_IMAGES,
    CONFIG_FILES,
    RELAY_CONFIG_YML,
    RELAY_CREDENTIALS_JSON,
    SENTRY_CONFIG_YML,
    VOLUMES,
)
from .errors import InstallerError, InstallInterrupted, MigrationAborted
from .models import CleanupState, FileStatus, InstallSettings, MigrationResult
from .services.command_runner import CommandRunner
from .services.compose import ComposeService
from .services.config_files import ConfigMaterializer
from .services.credentials import CredentialBootstrapper
from .services.database import DatabaseSetupService
from .services.docker_runtime import ContainerRuntimeService
from .services.filesystem import FileSystemService
from .services.images import ImagePipeline
from .services.migration_tasks import build_migration_tasks
from .services.migrations import MigrationDriver
from .services.preconditions import PreconditionChecker
from .services.session import NORMAL_EXIT, SessionController
from .services.volumes import ResourceProvisioner

console = Console()
logger = logging.getLogger("sentryinstaller")


class SentryInstaller:
    """Runs the installation stages in order, with cleanup on every exit path."""

    SUPPORTED_RUNTIMES = ContainerRuntimeService.SUPPORTED_RUNTIMES

    def __init__(self, settings: InstallSettings, cleanup_state: Optional[CleanupState] = None):
        self.settings = settings
        self.workdir = os.path.abspath(settings.workdir)

        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.runtime_service = ContainerRuntimeService(
            runtime=settings.runtime,
            run_cmd=self._run_cmd,
            logger=logger,
            console=console,
        )

        compose_cmd, compose_flavor = self._get_compose_cmd()
        self.compose_service = ComposeService(
            base_cmd=compose_cmd,
            flavor=compose_flavor,
            compose_file=self._path(settings.compose_file),
            run_cmd=self._run_cmd,
            logger=logger,
            console=console,
        )

        self.precondition_checker = PreconditionChecker(self.runtime_service, logger=logger, console=console)
        self.config_materializer = ConfigMaterializer(self.filesystem_service, logger=logger, console=console)
        self.resource_provisioner = ResourceProvisioner(self.runtime_service, logger=logger, console=console)
        self.image_pipeline = ImagePipeline(
            self.compose_service,
            self.runtime_service,
            logger=logger,
            console=console,
        )
        self.migration_driver = MigrationDriver(logger=logger, console=console)
        self.database_service = DatabaseSetupService(self.compose_service, logger=logger, console=console)
        self.credential_bootstrapper = CredentialBootstrapper(self.compose_service, logger=logger, console=console)
        self.session = SessionController(
            cleanup_state or CleanupState(),
            self.compose_service,
            logger=logger,
            console=console,
        )

        self.migration_results: List[MigrationResult] = []

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False, **kwargs) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def _get_compose_cmd(self) -> Tuple[List[str], str]:
        return ComposeService.detect(self.settings.runtime)

    def _path(self, relative_path: str) -> str:
        return os.path.join(self.workdir, relative_path)

    def prepare_host(self):
        self.runtime_service.reset_storage_acls()

    def check_requirements(self):
        self.precondition_checker.check_versions(self.compose_service)
        self.precondition_checker.check(
            min_ram_mb=self.settings.min_ram_mb,
            require_sse42=self.settings.require_sse42,
        )

    def materialize_config(self) -> Dict[str, FileStatus]:
        report = self.config_materializer.ensure_all(self._path(path) for path in CONFIG_FILES)
        self.config_materializer.inject_secret_key(self._path(SENTRY_CONFIG_YML))
        return report

    def provision_volumes(self) -> Dict[str, FileStatus]:
        return self.resource_provisioner.ensure_volumes(VOLUMES)

    def sync_images(self):
        self.image_pipeline.sync_images(
            BUILD_IMAGES,
            sentry_image=self.settings.sentry_image,
            sentry_version=self.settings.sentry_version,
        )

    def run_migrations(self) -> List[MigrationResult]:
        tasks = build_migration_tasks(
            self.filesystem_service,
            self.runtime_service,
            self.compose_service,
            logger,
            self.workdir,
        )
        return self.migration_driver.run_all(tasks)

    def setup_database(self):
        self.database_service.setup(non_interactive=self.settings.non_interactive)

    def bootstrap_credentials(self) -> FileStatus:
        return self.credential_bootstrapper.ensure_credentials(
            self._path(RELAY_CREDENTIALS_JSON),
            self._path(RELAY_CONFIG_YML),
        )

    def print_success(self):
        console.print("----------------")
        console.print("[bold green]You're all done![/bold green] Run the following command to get Sentry running:")
        console.print(f"\n  {self.compose_service.start_hint()}\n", markup=False)

    def run(self) -> int:
        exit_code = 1
        trigger = "ERR"
        # SIGINT is routed through the session handler, so KeyboardInterrupt never reaches run().
        self.session.install(self.settings.log_file)

        try:
            logger.info("Starting sentryinstaller...")
            self.prepare_host()
            self.check_requirements()
            self.materialize_config()
            self.provision_volumes()
            self.sync_images()
            self.migration_results = self.run_migrations()
            self.setup_database()
            self.bootstrap_credentials()
            self.print_success()
            trigger = NORMAL_EXIT
            exit_code = 0
            return exit_code

        except InstallInterrupted as exc:
            console.print(f"[bold red]{exc}[/bold red]")
            logger.info(str(exc))
            exit_code = exc.exit_code
            return exit_code
        except MigrationAborted as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            console.print(exc.recovery_steps, style="yellow", markup=False)
            logger.error("%s\n%s", exc, exc.recovery_steps)
            exit_code = exc.exit_code
            return exit_code
        except InstallerError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            logger.error(str(exc))
            exit_code = exc.exit_code
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            exit_code = 1
            return exit_code
        finally:
            self.session.cleanup(trigger)
            self.session.uninstall()
