"""
sentryinstaller - idempotent installer for self-hosted Sentry
"""

__version__ = "0.1.0"

from .core import SentryInstaller
from .errors import InstallerError

__all__ = ["SentryInstaller", "InstallerError"]
