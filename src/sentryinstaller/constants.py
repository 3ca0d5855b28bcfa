"""Fixed names and paths of the self-hosted Sentry stack."""

from .models import ImageSpec

MIN_RAM_MB = 2400

SENTRY_CONFIG_PY = "sentry/sentry.conf.py"
SENTRY_CONFIG_YML = "sentry/config.yml"
SYMBOLICATOR_CONFIG_YML = "symbolicator/config.yml"
RELAY_CONFIG_YML = "relay/config.yml"
RELAY_CREDENTIALS_JSON = "relay/credentials.json"
SENTRY_EXTRA_REQUIREMENTS = "sentry/requirements.txt"

CONFIG_FILES = (
    SENTRY_CONFIG_PY,
    SENTRY_CONFIG_YML,
    SENTRY_EXTRA_REQUIREMENTS,
    SYMBOLICATOR_CONFIG_YML,
    RELAY_CONFIG_YML,
)

SECRET_KEY_PLACEHOLDER = "system.secret-key: '!!changeme!!'"
SECRET_KEY_PATTERN = r"^system\.secret-key:.*$"
SECRET_KEY_LENGTH = 50
SECRET_KEY_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789@#%^&*(-_=+)"

VOLUMES = (
    "sentry-data",
    "sentry-postgres",
    "sentry-redis",
    "sentry-zookeeper",
    "sentry-kafka",
    "sentry-clickhouse",
    "sentry-symbolicator",
)

LEGACY_PROJECT_NAME = "onpremise"
LOCAL_IMAGE_SUFFIX = "-onpremise-local"
SENTRY_BASE_IMAGE = "getsentry/sentry"

# web is the primary image; sentry-cleanup is built FROM it.
BUILD_IMAGES = (
    ImageSpec("web"),
    ImageSpec("snuba-cleanup"),
    ImageSpec("symbolicator-cleanup"),
    ImageSpec("sentry-cleanup", depends_on="web"),
)

DIAGNOSTIC_IMAGE = "busybox"
UTILITY_IMAGE = "alpine"

MIN_VERSIONS = {
    "docker": "19.03.6",
    "docker-compose": "1.24.1",
    "podman": "2.0.0",
    "podman-compose": "0.1.5",
}

TSDB_SETTING = 'SENTRY_TSDB = "sentry.tsdb.redissnuba.RedisSnubaTSDB"'
TSDB_PATTERN = r"^SENTRY_TSDB = .*$"
TSDB_OPTIONS_MARKER = "SENTRY_TSDB_OPTIONS = "
TSDB_SWITCHOVER_DAYS = 90
TSDB_REFERENCE_URL = "https://github.com/getsentry/onpremise/pull/430"

ZOOKEEPER_DATA_DIR = "/var/lib/zookeeper/data/version-2"
ZOOKEEPER_LOG_DIR = "/var/lib/zookeeper/log/version-2"
ZOOKEEPER_BUNDLE_DIR = "zookeeper"
ZOOKEEPER_SNAPSHOT_FILE = "snapshot.0"

POSTGRES_VOLUME = "sentry-postgres"
POSTGRES_TEMP_VOLUME = "sentry-postgres-new"
POSTGRES_OLD_VERSION = "9.5"
POSTGRES_NEW_VERSION = "9.6"
POSTGRES_UPGRADE_IMAGE = "tianon/postgres-upgrade:9.5-to-9.6"
POSTGRES_HBA_ENTRY = "host all all all trust"

DATA_VOLUME = "sentry-data"
