import logging
import signal
import threading

import pytest

from sentryinstaller.errors import InstallInterrupted
from sentryinstaller.models import CleanupState
from sentryinstaller.services.session import NORMAL_EXIT, SessionController


class FakeCompose:
    def __init__(self, fail=False):
        self.stops = 0
        self.fail = fail

    def stop(self):
        self.stops += 1
        if self.fail:
            raise RuntimeError("compose went away")


@pytest.fixture
def compose():
    return FakeCompose()


@pytest.fixture
def session(compose, logger, console):
    return SessionController(CleanupState(), compose, logger=logger, console=console)


def test_cleanup_runs_once_across_triggers(session, compose):
    outcomes = [session.cleanup(trigger) for trigger in ("ERR", NORMAL_EXIT, "SIGTERM", NORMAL_EXIT)]

    assert outcomes == [True, False, False, False]
    assert compose.stops == 1


def test_cleanup_is_single_shot_across_threads(session, compose):
    barrier = threading.Barrier(8)
    outcomes = []

    def worker():
        barrier.wait()
        outcomes.append(session.cleanup("ERR"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(True) == 1
    assert compose.stops == 1


def test_abnormal_cleanup_names_the_trigger(session, console):
    session.cleanup("SIGTERM")

    assert "caught SIGTERM" in console.text
    assert "Cleaning up..." in console.text


def test_normal_cleanup_is_quiet(session, console):
    session.cleanup(NORMAL_EXIT)

    assert console.lines == []


def test_cleanup_survives_stop_failure(logger, console):
    compose = FakeCompose(fail=True)
    session = SessionController(CleanupState(), compose, logger=logger, console=console)

    assert session.cleanup("ERR") is True
    assert session.cleanup("ERR") is False
    assert compose.stops == 1


def test_signal_handler_interrupts_only_once(session, compose):
    with pytest.raises(InstallInterrupted) as exc_info:
        session._handle_signal(signal.SIGINT, None)

    assert exc_info.value.exit_code == 128 + signal.SIGINT
    session._handle_signal(signal.SIGTERM, None)
    assert compose.stops == 1


def test_install_and_uninstall_restore_signal_handlers(session):
    before = {signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGTERM)}

    session.install()
    try:
        assert signal.getsignal(signal.SIGINT) == session._handle_signal
        assert signal.getsignal(signal.SIGTERM) == session._handle_signal
    finally:
        session.uninstall()

    assert {signum: signal.getsignal(signum) for signum in before} == before


def test_log_file_captures_session_output(tmp_path, compose, console):
    logger = logging.getLogger("sentryinstaller.tests.session")
    logger.setLevel(logging.INFO)
    log_file = tmp_path / "install.log"
    session = SessionController(CleanupState(), compose, logger=logger, console=console)

    session.install(str(log_file))
    logger.info("Creating volumes")
    session.uninstall()
    logger.info("after uninstall")

    content = log_file.read_text(encoding="utf-8")
    assert "[INFO] Creating volumes" in content
    assert "after uninstall" not in content
    assert logger.handlers == []
