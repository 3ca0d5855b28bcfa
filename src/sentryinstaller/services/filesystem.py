"""Filesystem helpers for sentryinstaller."""

import logging
import os
import re
import shutil
from typing import Callable

from rich.console import Console

# Config files may carry bytes that are not UTF-8; they must round-trip unchanged.
FILE_ERRORS = "surrogateescape"


class FileSystemService:
    """Encapsulates file side effects: no-clobber copies, backups and line edits."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def copy_no_clobber(self, source: str, destination: str):
        """Copy ``source`` to ``destination``; raises FileExistsError instead of overwriting."""
        parent = os.path.dirname(destination)
        if parent:
            os.makedirs(parent, exist_ok=True)

        with open(source, "rb") as src, open(destination, "xb") as dst:
            shutil.copyfileobj(src, dst)
        shutil.copymode(source, destination)
        self.logger.debug("Copied %s to %s", source, destination)

    def read_lines(self, path: str):
        with open(path, "r", encoding="utf-8", errors=FILE_ERRORS) as file_obj:
            return file_obj.read().splitlines()

    def contains_line(self, path: str, line: str) -> bool:
        if not os.path.isfile(path):
            return False
        return line in self.read_lines(path)

    def contains_text(self, path: str, text: str) -> bool:
        if not os.path.isfile(path):
            return False
        with open(path, "r", encoding="utf-8", errors=FILE_ERRORS) as file_obj:
            return text in file_obj.read()

    def replace_lines(self, path: str, pattern: str, replacement: Callable[[re.Match], str]) -> int:
        """Rewrite every line matching the anchored ``pattern`` in place.

        ``replacement`` builds the new text from the match, so nothing in it is
        interpreted as a backreference.
        """
        with open(path, "r", encoding="utf-8", errors=FILE_ERRORS, newline="") as file_obj:
            content = file_obj.read()

        updated, count = re.subn(pattern, replacement, content, flags=re.MULTILINE)
        if count:
            with open(path, "w", encoding="utf-8", errors=FILE_ERRORS, newline="") as file_obj:
                file_obj.write(updated)
        self.logger.debug("Replaced %s line(s) matching %r in %s", count, pattern, path)
        return count

    def backup_file(self, path: str) -> str:
        backup_path = f"{path}.bak"
        shutil.copy2(path, backup_path)
        self.logger.debug("Backed up %s to %s", path, backup_path)
        return backup_path

    def restore_file(self, backup_path: str, path: str):
        os.replace(backup_path, path)
        self.logger.debug("Restored %s from %s", path, backup_path)
