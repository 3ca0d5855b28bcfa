"""Process lifecycle: log capture, signal handlers and single-shot cleanup."""

import atexit
import logging
import signal
from typing import Dict, Optional

from sentryinstaller.errors import InstallInterrupted
from sentryinstaller.models import CleanupState

NORMAL_EXIT = "EXIT"
HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SessionController:
    """Owns the cleanup flag of one installer session.

    ``cleanup`` may be reached from the normal end of the run, from an error,
    from a signal handler and from the interpreter exit hook. Whichever gets
    there first stops the stack; the others return without doing anything.
    """

    def __init__(self, state: CleanupState, compose_service, logger, console):
        self.state = state
        self.compose_service = compose_service
        self.logger = logger
        self.console = console
        self._previous_handlers: Dict[int, object] = {}
        self._log_handler: Optional[logging.Handler] = None
        self._installed = False

    def cleanup(self, trigger: str = NORMAL_EXIT) -> bool:
        # Non-blocking: a signal handler interrupting a cleanup in progress must not deadlock.
        if not self.state.lock.acquire(blocking=False):
            return False
        try:
            if self.state.cleaned_up:
                return False
            self.state.cleaned_up = True
        finally:
            self.state.lock.release()

        if trigger != NORMAL_EXIT:
            self.console.print(f"[bold red]An error occurred, caught {trigger}[/bold red]")
            self.console.print("Cleaning up...")

        try:
            self.compose_service.stop()
        except Exception as exc:
            self.logger.debug("Stopping the stack during cleanup failed: %s", exc)
        return True

    def _handle_signal(self, signum, _frame):
        name = signal.Signals(signum).name
        if self.cleanup(name):
            raise InstallInterrupted(signum)
        self.logger.debug("Ignoring %s, cleanup already ran.", name)

    def _exit_hook(self):
        self.cleanup(NORMAL_EXIT)

    def attach_log_file(self, path: str):
        handler = logging.FileHandler(path)
        handler.setLevel(self.logger.getEffectiveLevel())
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        self.logger.addHandler(handler)
        self._log_handler = handler
        self.logger.debug("Logging to %s", path)

    def install(self, log_file: Optional[str] = None):
        if log_file:
            self.attach_log_file(log_file)
        for signum in HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
        atexit.register(self._exit_hook)
        self._installed = True

    def uninstall(self):
        if self._installed:
            for signum, handler in self._previous_handlers.items():
                signal.signal(signum, handler)
            self._previous_handlers.clear()
            atexit.unregister(self._exit_hook)
            self._installed = False

        if self._log_handler:
            self.logger.removeHandler(self._log_handler)
            self._log_handler.close()
            self._log_handler = None
