"""Configuration loader for sentryinstaller."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from sentryinstaller.errors import InstallerError
from sentryinstaller.services.docker_runtime import ContainerRuntimeService


class ConfigLoader:
    """Loads the YAML defaults file and checks each value before the CLI sees it."""

    KEY_TYPES = {
        "runtime": str,
        "compose_file": str,
        "sentry_image": str,
        "sentry_version": (str, int, float),
        "non_interactive": bool,
        "min_ram_mb": int,
        "require_sse42": bool,
        "log_file": str,
        "verbose": bool,
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise InstallerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise InstallerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise InstallerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - set(self.KEY_TYPES))
        if unknown:
            unknown_list = ", ".join(unknown)
            raise InstallerError(f"Unknown configuration keys: {unknown_list}")

        for key, value in parsed.items():
            self._validate(key, value)
        return {key: value for key, value in parsed.items() if value is not None}

    def _validate(self, key: str, value: Any):
        # null means "use the default", like an omitted key.
        if value is None:
            return

        expected = self.KEY_TYPES[key]
        # YAML booleans are ints to isinstance; they are never a valid number here.
        if isinstance(value, bool) and expected is not bool:
            raise InstallerError(f"Config key '{key}' must not be a boolean.")
        if not isinstance(value, expected):
            raise InstallerError(f"Config key '{key}' has invalid value {value!r}.")

        if key == "runtime" and value not in ContainerRuntimeService.SUPPORTED_RUNTIMES:
            supported = ", ".join(ContainerRuntimeService.SUPPORTED_RUNTIMES)
            raise InstallerError(f"Config key 'runtime' must be one of: {supported}.")
        if key == "min_ram_mb" and value <= 0:
            raise InstallerError("Config key 'min_ram_mb' must be a positive number of megabytes.")
