import sys

import pytest

from sentryinstaller.errors import CommandError, InstallerError
from sentryinstaller.services.command_runner import CommandRunner


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


def test_command_runner_raises_with_stderr():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(CommandError, match="boom") as exc_info:
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"],
            check=True,
            capture_output=True,
        )

    assert exc_info.value.returncode == 3
    assert exc_info.value.stderr == "boom"


def test_command_runner_returns_when_check_disabled():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; sys.exit(1)"],
        check=False,
        capture_output=True,
    )

    assert result.returncode == 1


def test_command_runner_merges_stderr_into_stdout():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; print('out'); sys.stderr.write('err')"],
        capture_output=True,
        merge_stderr=True,
    )

    assert "out" in result.stdout
    assert "err" in result.stdout


def test_command_runner_applies_environment_overrides():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import os; print(os.environ['TRUST_EMPTY'])"],
        capture_output=True,
        env={"TRUST_EMPTY": "true"},
    )

    assert result.stdout.strip() == "true"


def test_command_runner_reports_missing_executable():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(InstallerError, match="Required command not found"):
        runner.run(["definitely-not-a-real-binary-xyz"])
