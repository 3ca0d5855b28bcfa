"""Snuba bootstrap and Sentry database setup."""

from sentryinstaller.errors import CommandError, ProvisioningFailure
from sentryinstaller.errors_catalog import actionable_error


class DatabaseSetupService:
    """Bootstraps Snuba and runs Sentry's own database migrations."""

    def __init__(self, compose_service, logger, console):
        self.compose_service = compose_service
        self.logger = logger
        self.console = console

    def _run_step(self, step: str, service: str, args):
        try:
            self.compose_service.run(service, args)
        except CommandError as exc:
            raise ProvisioningFailure(actionable_error("database_setup_failed", step=step), service=service) from exc

    def bootstrap_snuba(self):
        self.console.print("[blue]Bootstrapping and migrating Snuba...[/blue]")
        self._run_step("snuba bootstrap", "snuba-api", ["bootstrap", "--force"])

    def setup(self, non_interactive: bool = False):
        self.bootstrap_snuba()

        self.console.print("[blue]Setting up database...[/blue]")
        if not non_interactive:
            self._run_step("sentry upgrade", "web", ["upgrade"])
            return

        self._run_step("sentry upgrade", "web", ["upgrade", "--noinput"])
        self.console.print(
            "Did not prompt for user creation due to non-interactive shell.\n"
            "Run the following command to create one yourself (recommended):\n\n"
            f"  {self.compose_service.tool_name} run --rm web createuser\n",
            markup=False,
        )
