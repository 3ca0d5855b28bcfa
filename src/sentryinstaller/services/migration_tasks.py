"""Legacy-state migrations shipped with the installer.

Each class only describes its predicates and steps; ``MigrationDriver`` runs
them. ``build_migration_tasks`` returns them in the order they must run: later
tasks assume the earlier ones have been resolved.
"""

import os
import time
from typing import Callable, List, Optional

from packaging import version

from sentryinstaller.constants import (
    DATA_VOLUME,
    POSTGRES_HBA_ENTRY,
    POSTGRES_NEW_VERSION,
    POSTGRES_OLD_VERSION,
    POSTGRES_TEMP_VOLUME,
    POSTGRES_UPGRADE_IMAGE,
    POSTGRES_VOLUME,
    SENTRY_CONFIG_PY,
    TSDB_OPTIONS_MARKER,
    TSDB_PATTERN,
    TSDB_REFERENCE_URL,
    TSDB_SETTING,
    TSDB_SWITCHOVER_DAYS,
    UTILITY_IMAGE,
    ZOOKEEPER_BUNDLE_DIR,
    ZOOKEEPER_DATA_DIR,
    ZOOKEEPER_LOG_DIR,
    ZOOKEEPER_SNAPSHOT_FILE,
)
from sentryinstaller.errors import InstallAborted, InstallerError, MigrationAborted
from sentryinstaller.models import MigrationTask


class TsdbMigration:
    """Switches the time-series backend in sentry.conf.py to Snuba."""

    name = "time-series backend"

    def __init__(self, filesystem_service, config_path: str = SENTRY_CONFIG_PY, clock: Callable[[], float] = time.time):
        self.filesystem_service = filesystem_service
        self.config_path = config_path
        self.backup_path = f"{config_path}.bak"
        now = int(clock())
        self.settings = (
            f"{TSDB_SETTING}\n"
            "\n"
            f"# Automatic switchover {TSDB_SWITCHOVER_DAYS} days after {time.ctime(now)}. Can be removed afterwards.\n"
            f'SENTRY_TSDB_OPTIONS = {{"switchover_timestamp": {now} + ({TSDB_SWITCHOVER_DAYS} * 24 * 3600)}}'
        )

    def detect(self) -> bool:
        return os.path.isfile(self.config_path) and not self.filesystem_service.contains_line(
            self.config_path, TSDB_SETTING
        )

    def blocker(self) -> Optional[str]:
        if self.filesystem_service.contains_text(self.config_path, TSDB_OPTIONS_MARKER):
            return "Not attempting automatic TSDB migration due to presence of SENTRY_TSDB_OPTIONS"
        return None

    def backup(self):
        try:
            self.filesystem_service.backup_file(self.config_path)
        except OSError as exc:
            raise InstallerError(f"Could not back up {self.config_path}: {exc}") from exc

    def transform(self):
        try:
            self.filesystem_service.replace_lines(self.config_path, TSDB_PATTERN, lambda _match: self.settings)
        except OSError as exc:
            raise InstallerError(f"Could not rewrite {self.config_path}: {exc}") from exc

    def verify(self) -> bool:
        return self.filesystem_service.contains_line(self.config_path, TSDB_SETTING)

    def rollback(self):
        try:
            self.filesystem_service.restore_file(self.backup_path, self.config_path)
        except OSError as exc:
            raise InstallerError(f"Could not restore {self.config_path} from {self.backup_path}: {exc}") from exc

    def manual_steps(self) -> str:
        return (
            "WARN: Your Sentry configuration uses a legacy data store for time-series data. "
            f"Remove the options SENTRY_TSDB and SENTRY_TSDB_OPTIONS from {self.config_path} and add:\n\n"
            f"{self.settings}\n\n"
            f"For more information please refer to {TSDB_REFERENCE_URL}"
        )

    def success_message(self) -> str:
        return f"Migrated TSDB to Snuba. Old configuration file backed up to {self.backup_path}"

    def as_task(self) -> MigrationTask:
        return MigrationTask(
            name=self.name,
            detect=self.detect,
            blocker=self.blocker,
            backup=self.backup,
            transform=self.transform,
            verify=self.verify,
            rollback=self.rollback,
            manual_steps=self.manual_steps,
            success_message=self.success_message,
        )


class ZookeeperSnapshotWorkaround:
    """Seeds an empty snapshot for ZOOKEEPER-3056 (logs present, no snapshot)."""

    name = "zookeeper snapshot"

    def __init__(self, compose_service, workdir: str):
        self.compose_service = compose_service
        self.bundle_dir = os.path.join(os.path.abspath(workdir), ZOOKEEPER_BUNDLE_DIR)

    def _count(self, path: str) -> int:
        result = self.compose_service.run(
            "zookeeper",
            ["bash", "-c", f"ls 2>/dev/null -Ubad1 -- {path} | wc -l | tr -d '[:space:]'"],
            check=False,
            capture_output=True,
        )
        try:
            return int((result.stdout or "").strip() or "0")
        except ValueError:
            return 0

    def snapshot_count(self) -> int:
        return self._count(f"{ZOOKEEPER_DATA_DIR}/*")

    def detect(self) -> bool:
        if self._count(ZOOKEEPER_DATA_DIR) != 1:
            return False
        return self._count(f"{ZOOKEEPER_LOG_DIR}/*") > 0 and self.snapshot_count() == 0

    def transform(self):
        self.compose_service.run(
            "zookeeper",
            ["bash", "-c", f"cp /temp/{ZOOKEEPER_SNAPSHOT_FILE} {ZOOKEEPER_DATA_DIR}/{ZOOKEEPER_SNAPSHOT_FILE}"],
            volumes={self.bundle_dir: "/temp"},
        )
        self.compose_service.run(
            "zookeeper",
            rm=False,
            detach=True,
            env={"ZOOKEEPER_SNAPSHOT_TRUST_EMPTY": "true"},
        )

    def verify(self) -> bool:
        return self.snapshot_count() > 0

    def manual_steps(self) -> str:
        return (
            "Copy the bundled empty snapshot into the ZooKeeper data volume and start it once "
            "trusting the empty snapshot:\n\n"
            f"  {self.compose_service.tool_name} run --rm -v {self.bundle_dir}:/temp zookeeper "
            f"bash -c 'cp /temp/{ZOOKEEPER_SNAPSHOT_FILE} {ZOOKEEPER_DATA_DIR}/{ZOOKEEPER_SNAPSHOT_FILE}'\n"
            f"  {self.compose_service.tool_name} run -d -e ZOOKEEPER_SNAPSHOT_TRUST_EMPTY=true zookeeper"
        )

    def as_task(self) -> MigrationTask:
        return MigrationTask(
            name=self.name,
            detect=self.detect,
            transform=self.transform,
            verify=self.verify,
            manual_steps=self.manual_steps,
        )


def is_postgres_version(marker: Optional[str], expected: str) -> bool:
    if not marker:
        return False
    try:
        return version.parse(marker.strip()) == version.parse(expected)
    except version.InvalidVersion:
        return False


class PostgresUpgrade:
    """Upgrades the sentry-postgres volume from 9.5 to 9.6 in place."""

    name = "postgres major version"
    COPY_SCRIPT = f"cd /from ; cp -av . /to ; echo '{POSTGRES_HBA_ENTRY}' >> /to/pg_hba.conf"

    def __init__(self, runtime_service, logger):
        self.runtime_service = runtime_service
        self.logger = logger

    def marker(self, volume: str) -> Optional[str]:
        return self.runtime_service.read_volume_file(volume, "PG_VERSION")

    def detect(self) -> bool:
        runtime = self.runtime_service
        current = self.marker(POSTGRES_VOLUME) if runtime.volume_exists(POSTGRES_VOLUME) else None
        if is_postgres_version(current, POSTGRES_OLD_VERSION):
            return True

        # An earlier run died between deleting the old volume and copying the upgraded data back.
        if (
            current is None
            and runtime.volume_exists(POSTGRES_TEMP_VOLUME)
            and is_postgres_version(self.marker(POSTGRES_TEMP_VOLUME), POSTGRES_NEW_VERSION)
        ):
            raise MigrationAborted(
                f"{POSTGRES_VOLUME} holds no usable data but {POSTGRES_TEMP_VOLUME} holds an upgraded "
                f"PostgreSQL {POSTGRES_NEW_VERSION} cluster from an interrupted upgrade.",
                recovery_steps=self.recovery_steps(),
            )
        return False

    def transform(self):
        runtime = self.runtime_service
        self.logger.info("Upgrading PostgreSQL data from %s to %s...", POSTGRES_OLD_VERSION, POSTGRES_NEW_VERSION)
        runtime.volume_remove(POSTGRES_TEMP_VOLUME, check=False)
        runtime.run_container(
            POSTGRES_UPGRADE_IMAGE,
            volumes={
                POSTGRES_VOLUME: f"/var/lib/postgresql/{POSTGRES_OLD_VERSION}/data",
                POSTGRES_TEMP_VOLUME: f"/var/lib/postgresql/{POSTGRES_NEW_VERSION}/data",
            },
            capture_output=False,
        )

        # The old volume is only deleted once the upgraded copy is known good.
        if not is_postgres_version(self.marker(POSTGRES_TEMP_VOLUME), POSTGRES_NEW_VERSION):
            raise InstallerError(
                f"Upgraded data in {POSTGRES_TEMP_VOLUME} does not report PostgreSQL {POSTGRES_NEW_VERSION}; "
                f"{POSTGRES_VOLUME} was left untouched."
            )

        # There is no volume rename, so recreate the old name and copy the new layout into it.
        runtime.volume_remove(POSTGRES_VOLUME)

        # From here on the pre-state is gone. Any failure must stop the run before
        # database setup initializes an empty cluster in the recreated volume.
        try:
            runtime.volume_create(POSTGRES_VOLUME)
            runtime.run_container(
                UTILITY_IMAGE,
                ["ash", "-c", self.COPY_SCRIPT],
                volumes={POSTGRES_TEMP_VOLUME: "/from", POSTGRES_VOLUME: "/to"},
                capture_output=False,
            )
            copied = self.verify()
        except InstallAborted:
            raise
        except InstallerError as exc:
            raise MigrationAborted(
                f"Copying {POSTGRES_TEMP_VOLUME} into {POSTGRES_VOLUME} failed: {exc}",
                recovery_steps=self.recovery_steps(),
            ) from exc

        if not copied:
            raise MigrationAborted(
                f"Copying {POSTGRES_TEMP_VOLUME} into {POSTGRES_VOLUME} did not complete; "
                f"{POSTGRES_TEMP_VOLUME} was kept for manual recovery.",
                recovery_steps=self.recovery_steps(),
            )

        if runtime.volume_remove(POSTGRES_TEMP_VOLUME, check=False).returncode != 0:
            self.logger.warning("Upgrade finished but %s could not be removed.", POSTGRES_TEMP_VOLUME)

    def verify(self) -> bool:
        return is_postgres_version(self.marker(POSTGRES_VOLUME), POSTGRES_NEW_VERSION)

    def manual_steps(self) -> str:
        rt = self.runtime_service.runtime
        return (
            f"Upgrade the {POSTGRES_VOLUME} volume by hand:\n\n"
            f"  {rt} run --rm -v {POSTGRES_VOLUME}:/var/lib/postgresql/{POSTGRES_OLD_VERSION}/data "
            f"-v {POSTGRES_TEMP_VOLUME}:/var/lib/postgresql/{POSTGRES_NEW_VERSION}/data {POSTGRES_UPGRADE_IMAGE}\n"
            f"  {rt} volume rm {POSTGRES_VOLUME}\n"
            f"  {rt} volume create {POSTGRES_VOLUME}\n"
            f"  {self._copy_command()}\n"
            f"  {rt} volume rm {POSTGRES_TEMP_VOLUME}"
        )

    def recovery_steps(self) -> str:
        rt = self.runtime_service.runtime
        return (
            f"The upgraded data is still in the {POSTGRES_TEMP_VOLUME} volume. Restore it before starting Sentry:\n\n"
            f"  {rt} volume create {POSTGRES_VOLUME}\n"
            f"  {self._copy_command()}\n"
            f"  {rt} run --rm -v {POSTGRES_VOLUME}:/mnt busybox cat /mnt/PG_VERSION   # must print {POSTGRES_NEW_VERSION}\n"
            f"  {rt} volume rm {POSTGRES_TEMP_VOLUME}\n\n"
            "Then re-run the installer."
        )

    def _copy_command(self) -> str:
        return (
            f"{self.runtime_service.runtime} run --rm -v {POSTGRES_TEMP_VOLUME}:/from -v {POSTGRES_VOLUME}:/to "
            f"{UTILITY_IMAGE} ash -c \"{self.COPY_SCRIPT}\""
        )

    def as_task(self) -> MigrationTask:
        return MigrationTask(
            name=self.name,
            detect=self.detect,
            transform=self.transform,
            verify=self.verify,
            manual_steps=self.manual_steps,
        )


class FileStorageMigration:
    """Moves top-level file storage into sentry-data/files."""

    name = "file storage layout"
    MOVE_SCRIPT = "mkdir -p /tmp/files; mv /data/* /tmp/files/; mv /tmp/files /data/files; chown -R sentry:sentry /data"

    def __init__(self, runtime_service, compose_service):
        self.runtime_service = runtime_service
        self.compose_service = compose_service

    def detect(self) -> bool:
        result = self.runtime_service.run_container(
            UTILITY_IMAGE,
            ["ash", "-c", "[ ! -d '/data/files' ] && ls -A1x /data | wc -l || true"],
            volumes={DATA_VOLUME: "/data"},
            check=False,
        )
        try:
            return int((result.stdout or "").strip() or "0") > 0
        except ValueError:
            return False

    def transform(self):
        # The web image runs as the sentry user, so ownership matches what Sentry expects.
        self.compose_service.run("web", ["-c", self.MOVE_SCRIPT], entrypoint="/bin/bash")

    def verify(self) -> bool:
        result = self.runtime_service.run_container(
            UTILITY_IMAGE,
            ["test", "-d", "/data/files"],
            volumes={DATA_VOLUME: "/data"},
            check=False,
        )
        return result.returncode == 0

    def manual_steps(self) -> str:
        return (
            "Move the existing file storage into a 'files' directory:\n\n"
            f"  {self.compose_service.tool_name} run --rm --entrypoint /bin/bash web -c \"{self.MOVE_SCRIPT}\""
        )

    def as_task(self) -> MigrationTask:
        return MigrationTask(
            name=self.name,
            detect=self.detect,
            transform=self.transform,
            verify=self.verify,
            manual_steps=self.manual_steps,
        )


def build_migration_tasks(filesystem_service, runtime_service, compose_service, logger, workdir: str) -> List[MigrationTask]:
    return [
        TsdbMigration(filesystem_service, config_path=os.path.join(workdir, SENTRY_CONFIG_PY)).as_task(),
        ZookeeperSnapshotWorkaround(compose_service, workdir).as_task(),
        PostgresUpgrade(runtime_service, logger).as_task(),
        FileStorageMigration(runtime_service, compose_service).as_task(),
    ]
