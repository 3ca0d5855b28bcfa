"""Named volume provisioning for sentryinstaller."""

from typing import Dict, Iterable

from sentryinstaller.errors import CommandError, ProvisioningFailure
from sentryinstaller.errors_catalog import actionable_error
from sentryinstaller.models import FileStatus


class ResourceProvisioner:
    """Creates the stack's persistent volumes. Existing volumes count as success."""

    def __init__(self, runtime_service, logger, console):
        self.runtime_service = runtime_service
        self.logger = logger
        self.console = console

    def ensure_volumes(self, names: Iterable[str]) -> Dict[str, FileStatus]:
        self.console.print("[blue]Creating volumes for persistent storage...[/blue]")
        report: Dict[str, FileStatus] = {}
        for name in names:
            try:
                status = self.runtime_service.volume_create(name)
            except CommandError as exc:
                raise ProvisioningFailure(
                    actionable_error(
                        "volume_create_failed",
                        name=name,
                        runtime=self.runtime_service.runtime,
                    )
                ) from exc
            self.logger.info("Volume %s: %s.", name, status.value)
            report[name] = status
        return report
