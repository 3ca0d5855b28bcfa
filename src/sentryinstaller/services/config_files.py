"""Config file materialization for sentryinstaller."""

import os
import secrets
from typing import Dict, Iterable

from sentryinstaller.constants import (
    SECRET_KEY_ALPHABET,
    SECRET_KEY_LENGTH,
    SECRET_KEY_PATTERN,
    SECRET_KEY_PLACEHOLDER,
)
from sentryinstaller.errors import ProvisioningFailure
from sentryinstaller.errors_catalog import actionable_error
from sentryinstaller.models import FileStatus

TEMPLATE_MARKER = ".example"


def template_path_for(path: str) -> str:
    """``sentry/sentry.conf.py`` -> ``sentry/sentry.conf.example.py``."""
    root, ext = os.path.splitext(path)
    return f"{root}{TEMPLATE_MARKER}{ext}"


def generate_secret_key(length: int = SECRET_KEY_LENGTH, alphabet: str = SECRET_KEY_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


class ConfigMaterializer:
    """Creates config files from their templates, never overwriting existing ones."""

    def __init__(self, filesystem_service, logger, console):
        self.filesystem_service = filesystem_service
        self.logger = logger
        self.console = console

    def ensure_from_template(self, path: str) -> FileStatus:
        if os.path.exists(path):
            self.logger.info("%s already exists, skipped creation.", path)
            return FileStatus.ALREADY_EXISTS

        template = template_path_for(path)
        if not os.path.isfile(template):
            raise ProvisioningFailure(actionable_error("template_missing", template=template, path=path))

        self.logger.info("Creating %s...", path)
        try:
            self.filesystem_service.copy_no_clobber(template, path)
        except FileExistsError as exc:
            raise ProvisioningFailure(
                actionable_error("config_copy_conflict", path=path, template=template)
            ) from exc
        return FileStatus.CREATED

    def ensure_all(self, paths: Iterable[str]) -> Dict[str, FileStatus]:
        return {path: self.ensure_from_template(path) for path in paths}

    def inject_secret_key(self, path: str) -> bool:
        """Replace the placeholder secret key once. Returns whether a key was written."""
        if not self.filesystem_service.contains_line(path, SECRET_KEY_PLACEHOLDER):
            self.logger.debug("No secret key placeholder in %s, skipping.", path)
            return False

        self.console.print("[blue]Generating secret key...[/blue]")
        secret_key = generate_secret_key()
        replaced = self.filesystem_service.replace_lines(
            path,
            SECRET_KEY_PATTERN,
            lambda _match: f"system.secret-key: '{secret_key}'",
        )
        if replaced:
            self.logger.info("Secret key written to %s", path)
        return bool(replaced)
