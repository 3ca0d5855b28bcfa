import subprocess

import pytest

from sentryinstaller.errors import CommandError


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def __init__(self):
        self.lines = []

    def print(self, *args, **_kwargs):
        self.lines.append(" ".join(str(arg) for arg in args))

    @property
    def text(self):
        return "\n".join(self.lines)


class FakeRunner:
    """Stands in for CommandRunner.run; the newest matching rule wins."""

    def __init__(self):
        self.calls = []
        self.rules = []

    def on(self, *fragments, returncode=0, stdout="", stderr="", handler=None):
        self.rules.append((fragments, returncode, stdout, stderr, handler))
        return self

    def __call__(self, cmd, check=True, capture_output=False, **_kwargs):
        self.calls.append(list(cmd))
        joined = " ".join(cmd)
        returncode, stdout, stderr = 0, "", ""
        for fragments, rule_code, rule_stdout, rule_stderr, handler in reversed(self.rules):
            if all(fragment in joined for fragment in fragments):
                if handler:
                    returncode, stdout, stderr = handler(cmd)
                else:
                    returncode, stdout, stderr = rule_code, rule_stdout, rule_stderr
                break

        if returncode != 0 and check:
            raise CommandError(f"Command failed ({returncode}): {joined}", returncode=returncode, stderr=stderr)
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    def commands(self, *fragments):
        return [" ".join(cmd) for cmd in self.calls if all(f in " ".join(cmd) for f in fragments)]

    def count(self, *fragments):
        return len(self.commands(*fragments))


@pytest.fixture
def logger():
    return DummyLogger()


@pytest.fixture
def console():
    return DummyConsole()


@pytest.fixture
def fake_runner():
    return FakeRunner()
