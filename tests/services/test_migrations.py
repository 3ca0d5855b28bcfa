import pytest

from sentryinstaller.errors import InstallerError, InstallInterrupted, MigrationAborted
from sentryinstaller.models import MigrationState, MigrationTask
from sentryinstaller.services.migrations import MigrationDriver


class FakeLegacyState:
    """A legacy value that a migration rewrites, with a backup slot."""

    def __init__(self, value="legacy", transform_to="migrated", fail_transform=False):
        self.value = value
        self.transform_to = transform_to
        self.fail_transform = fail_transform
        self.saved = None
        self.calls = []

    def detect(self):
        self.calls.append("detect")
        return self.value == "legacy"

    def backup(self):
        self.calls.append("backup")
        self.saved = self.value

    def transform(self):
        self.calls.append("transform")
        if self.fail_transform:
            self.value = "half-migrated"
            raise InstallerError("transform broke")
        self.value = self.transform_to

    def verify(self):
        self.calls.append("verify")
        return self.value == "migrated"

    def rollback(self):
        self.calls.append("rollback")
        self.value = self.saved

    def task(self, with_backup=True, **overrides):
        kwargs = {
            "name": "fake",
            "detect": self.detect,
            "transform": self.transform,
            "verify": self.verify,
        }
        if with_backup:
            kwargs.update(backup=self.backup, rollback=self.rollback)
        kwargs.update(overrides)
        return MigrationTask(**kwargs)


@pytest.fixture
def driver(logger, console):
    return MigrationDriver(logger=logger, console=console)


def test_task_requires_backup_and_rollback_together():
    state = FakeLegacyState()

    with pytest.raises(ValueError, match="backup and rollback together"):
        MigrationTask(name="broken", detect=state.detect, transform=state.transform, verify=state.verify, backup=state.backup)


def test_not_applicable_task_has_no_side_effects(driver):
    state = FakeLegacyState(value="current")

    result = driver.run(state.task())

    assert result.state is MigrationState.NOT_APPLICABLE
    assert state.calls == ["detect"]
    assert state.value == "current"


def test_successful_migration_is_verified(driver):
    state = FakeLegacyState()

    result = driver.run(state.task(success_message=lambda: "all good"))

    assert result.state is MigrationState.VERIFIED
    assert result.history == [
        MigrationState.DETECTED,
        MigrationState.BACKED_UP,
        MigrationState.TRANSFORMED,
        MigrationState.VERIFIED,
    ]
    assert result.message == "all good"
    assert state.calls == ["detect", "backup", "transform", "verify"]


def test_failed_verification_rolls_back_to_backup(driver):
    state = FakeLegacyState(transform_to="garbled")

    result = driver.run(state.task())

    assert result.state is MigrationState.ROLLED_BACK
    assert state.value == "legacy"
    assert state.calls[-1] == "rollback"


def test_transform_error_rolls_back_to_backup(driver):
    state = FakeLegacyState(fail_transform=True)

    result = driver.run(state.task())

    assert result.state is MigrationState.ROLLED_BACK
    assert result.message == "transform broke"
    assert state.value == "legacy"


def test_failure_without_backup_is_unresolved_and_prints_manual_steps(driver, console):
    state = FakeLegacyState(fail_transform=True)

    result = driver.run(state.task(with_backup=False, manual_steps=lambda: "do it [by hand]"))

    assert result.state is MigrationState.UNRESOLVED
    assert "rollback" not in state.calls
    assert "do it [by hand]" in console.text


def test_blocker_leaves_state_untouched(driver, console):
    state = FakeLegacyState()

    result = driver.run(
        state.task(blocker=lambda: "custom options present", manual_steps=lambda: "edit the file yourself")
    )

    assert result.state is MigrationState.UNRESOLVED
    assert result.message == "custom options present"
    assert state.calls == ["detect"]
    assert state.value == "legacy"
    assert "edit the file yourself" in console.text


def test_detection_error_is_unresolved(driver):
    def broken_detect():
        raise InstallerError("runtime unavailable")

    state = FakeLegacyState()
    result = driver.run(state.task(detect=broken_detect))

    assert result.state is MigrationState.UNRESOLVED
    assert "detection failed" in result.message
    assert state.calls == []


def test_backup_error_is_unresolved_without_transform(driver):
    def broken_backup():
        raise InstallerError("disk full")

    state = FakeLegacyState()
    result = driver.run(state.task(backup=broken_backup))

    assert result.state is MigrationState.UNRESOLVED
    assert "transform" not in state.calls


def test_rollback_failure_propagates(driver):
    def broken_rollback():
        raise InstallerError("backup vanished")

    state = FakeLegacyState(transform_to="garbled")

    with pytest.raises(InstallerError, match="backup vanished"):
        driver.run(state.task(rollback=broken_rollback))


def test_run_all_reaches_a_terminal_state_for_every_task(driver):
    tasks = [
        FakeLegacyState(value="current").task(),
        FakeLegacyState().task(),
        FakeLegacyState(transform_to="garbled").task(),
        FakeLegacyState(fail_transform=True).task(with_backup=False),
    ]

    results = driver.run_all(tasks)

    assert [result.state for result in results] == [
        MigrationState.NOT_APPLICABLE,
        MigrationState.VERIFIED,
        MigrationState.ROLLED_BACK,
        MigrationState.UNRESOLVED,
    ]
    assert all(result.state.is_terminal for result in results)


@pytest.mark.parametrize("step", ["detect", "backup", "transform", "verify"])
def test_interrupt_inside_any_step_propagates(step, driver):
    state = FakeLegacyState()

    def interrupted():
        raise InstallInterrupted(15)

    with pytest.raises(InstallInterrupted):
        driver.run(state.task(**{step: interrupted}))

    assert "rollback" not in state.calls


def test_aborted_migration_propagates_without_rollback(driver):
    state = FakeLegacyState()

    def destroyed_prestate():
        raise MigrationAborted("old data deleted, copy failed", recovery_steps="copy it back")

    with pytest.raises(MigrationAborted) as exc_info:
        driver.run(state.task(transform=destroyed_prestate))

    assert exc_info.value.recovery_steps == "copy it back"
    assert "rollback" not in state.calls
