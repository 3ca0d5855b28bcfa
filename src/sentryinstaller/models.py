"""Shared domain models for sentryinstaller."""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional


class FileStatus(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already exists"


class MigrationState(str, Enum):
    NOT_APPLICABLE = "not applicable"
    DETECTED = "detected"
    BACKED_UP = "backed up"
    TRANSFORMED = "transformed"
    VERIFIED = "verified"
    ROLLED_BACK = "rolled back"
    UNRESOLVED = "unresolved"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_MIGRATION_STATES


TERMINAL_MIGRATION_STATES = frozenset(
    {
        MigrationState.NOT_APPLICABLE,
        MigrationState.VERIFIED,
        MigrationState.ROLLED_BACK,
        MigrationState.UNRESOLVED,
    }
)


@dataclass(frozen=True)
class ImageSpec:
    """A locally built service image and the image it extends, if any."""

    service: str
    depends_on: Optional[str] = None


@dataclass(frozen=True)
class MigrationTask:
    """Description of one legacy-state migration.

    The callables are executed by ``MigrationDriver``; a task never drives its
    own control flow. ``blocker`` returns a reason when legacy state is present
    but cannot be migrated automatically. ``backup`` and ``rollback`` come as a
    pair.
    """

    name: str
    detect: Callable[[], bool]
    transform: Callable[[], None]
    verify: Callable[[], bool]
    backup: Optional[Callable[[], None]] = None
    rollback: Optional[Callable[[], None]] = None
    blocker: Optional[Callable[[], Optional[str]]] = None
    manual_steps: Optional[Callable[[], str]] = None
    success_message: Optional[Callable[[], str]] = None

    def __post_init__(self):
        if (self.backup is None) != (self.rollback is None):
            raise ValueError(f"Migration '{self.name}' must define backup and rollback together.")


@dataclass
class MigrationResult:
    task: str
    state: MigrationState
    history: List[MigrationState] = field(default_factory=list)
    message: Optional[str] = None


@dataclass
class CleanupState:
    """Per-session cleanup flag with the lock that guards its check-and-set."""

    cleaned_up: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


@dataclass(frozen=True)
class InstallSettings:
    """Resolved options for one installer run."""

    runtime: str = "podman"
    compose_file: str = "docker-compose.yml"
    sentry_image: Optional[str] = None
    sentry_version: str = "latest"
    non_interactive: bool = False
    min_ram_mb: int = 2400
    require_sse42: bool = True
    log_file: Optional[str] = None
    workdir: str = "."
