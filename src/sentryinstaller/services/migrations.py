"""Shared driver for legacy-state migration tasks."""

from typing import List, Sequence

from sentryinstaller.errors import InstallAborted, InstallerError
from sentryinstaller.models import MigrationResult, MigrationState, MigrationTask


class MigrationDriver:
    """Runs each task through detect -> backup -> transform -> verify -> rollback.

    A task that detects nothing has no side effects. A task with a backup ends
    either verified or restored. Unresolved and rolled back outcomes are
    reported as warnings together with the manual steps; they do not abort the
    run. A failing rollback does, and so does an ``InstallAborted`` raised by
    any step (an interrupt, or a migration that destroyed its pre-state).
    """

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def run(self, task: MigrationTask) -> MigrationResult:
        result = MigrationResult(task=task.name, state=MigrationState.NOT_APPLICABLE)

        try:
            detected = task.detect()
        except InstallAborted:
            raise
        except InstallerError as exc:
            return self._finish(task, result, MigrationState.UNRESOLVED, f"detection failed: {exc}")

        if not detected:
            return self._finish(task, result, MigrationState.NOT_APPLICABLE)
        self._advance(task, result, MigrationState.DETECTED)

        if task.blocker:
            reason = task.blocker()
            if reason:
                return self._finish(task, result, MigrationState.UNRESOLVED, reason)

        if task.backup:
            try:
                task.backup()
            except InstallAborted:
                raise
            except InstallerError as exc:
                return self._finish(task, result, MigrationState.UNRESOLVED, f"backup failed: {exc}")
            self._advance(task, result, MigrationState.BACKED_UP)

        verified = False
        failure = "verification failed"
        try:
            task.transform()
            self._advance(task, result, MigrationState.TRANSFORMED)
            verified = task.verify()
        except InstallAborted:
            raise
        except InstallerError as exc:
            failure = str(exc)
            self.logger.debug("Migration '%s' failed: %s", task.name, exc)

        if verified:
            message = task.success_message() if task.success_message else None
            return self._finish(task, result, MigrationState.VERIFIED, message)

        if task.rollback:
            self.logger.warning("Migration '%s' failed (%s). Reverting...", task.name, failure)
            task.rollback()
            return self._finish(task, result, MigrationState.ROLLED_BACK, failure)

        return self._finish(task, result, MigrationState.UNRESOLVED, failure)

    def run_all(self, tasks: Sequence[MigrationTask]) -> List[MigrationResult]:
        return [self.run(task) for task in tasks]

    def _advance(self, task: MigrationTask, result: MigrationResult, state: MigrationState):
        result.state = state
        result.history.append(state)
        self.logger.debug("Migration '%s': %s", task.name, state.value)

    def _finish(self, task, result, state, message=None) -> MigrationResult:
        self._advance(task, result, state)
        result.message = message

        if state is MigrationState.NOT_APPLICABLE:
            self.logger.info("Migration '%s': nothing to migrate.", task.name)
        elif state is MigrationState.VERIFIED:
            self.console.print(f"[green]Migration '{task.name}' completed.[/green]")
            if message:
                self.logger.info(message)
        else:
            self.logger.warning("Migration '%s' %s: %s", task.name, state.value, message)
            if task.manual_steps:
                self.console.print(task.manual_steps(), style="yellow", markup=False)
        return result
