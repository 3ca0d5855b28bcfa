"""Domain errors for sentryinstaller."""

import signal


class InstallerError(RuntimeError):
    """Raised when the installation cannot continue safely."""

    exit_code = 1


class CommandError(InstallerError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, message: str, returncode: int, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class PreconditionFailure(InstallerError):
    """The host does not meet the minimum requirements. Nothing was provisioned."""


class ProvisioningFailure(InstallerError):
    """A volume, config file, image or credential step failed."""

    def __init__(self, message: str, service: str = ""):
        super().__init__(message)
        self.service = service


class InstallAborted(InstallerError):
    """Stops the run outright. Never downgraded to a warning by a stage."""


class MigrationAborted(InstallAborted):
    """A migration failed after destroying its pre-state; only manual recovery is left."""

    def __init__(self, message: str, recovery_steps: str = ""):
        super().__init__(message)
        self.recovery_steps = recovery_steps


class InstallInterrupted(InstallAborted):
    """Raised from the signal handler to abort the remaining stages."""

    def __init__(self, signum: int):
        self.signum = signum
        self.exit_code = 128 + signum
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        super().__init__(f"Installation interrupted by {name}.")
