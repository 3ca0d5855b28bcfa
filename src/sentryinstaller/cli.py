import logging
import os
from datetime import datetime

import click
from rich.logging import RichHandler

from .constants import MIN_RAM_MB
from .core import SentryInstaller
from .errors import InstallerError
from .models import InstallSettings
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _default_log_file() -> str:
    return f"sentry_install_log-{datetime.now():%Y-%m-%d_%H-%M-%S}.txt"


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .sentryinstaller.yml if present.",
)
@click.option(
    "--runtime",
    required=False,
    type=click.Choice(SentryInstaller.SUPPORTED_RUNTIMES),
    help="Container runtime driving the stack (default: podman).",
)
@click.option("--compose-file", required=False, help="Compose file describing the stack.")
@click.option(
    "--sentry-image",
    required=False,
    envvar="SENTRY_IMAGE",
    help="Override the Sentry application image reference.",
)
@click.option(
    "--sentry-version",
    required=False,
    envvar="SENTRY_VERSION",
    help="Tag of getsentry/sentry to pull when no image override is set (default: latest).",
)
@click.option(
    "--non-interactive",
    is_flag=True,
    default=None,
    help="Skip interactive user creation. Also enabled when CI is set.",
)
@click.option("--min-ram", type=int, default=None, help=f"Minimum RAM in MB (default: {MIN_RAM_MB}).")
@click.option(
    "--require-sse42/--no-require-sse42",
    default=None,
    help="Fail when the CPU does not report SSE 4.2 (default: on).",
)
@click.option("--log-file", type=click.Path(), help="Path to log file.")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
def main(
    config,
    runtime,
    compose_file,
    sentry_image,
    sentry_version,
    non_interactive,
    min_ram,
    require_sse42,
    log_file,
    verbose,
):
    """Install or upgrade a self-hosted Sentry stack in the current directory."""
    logger = logging.getLogger("sentryinstaller")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".sentryinstaller.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except InstallerError as exc:
        raise click.ClickException(str(exc)) from exc

    if non_interactive is None and os.environ.get("CI"):
        non_interactive = True

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    settings = InstallSettings(
        runtime=_resolve_option(runtime, config_values, "runtime", default="podman"),
        compose_file=_resolve_option(compose_file, config_values, "compose_file", default="docker-compose.yml"),
        sentry_image=_resolve_option(sentry_image, config_values, "sentry_image") or None,
        sentry_version=str(_resolve_option(sentry_version, config_values, "sentry_version", default="latest")),
        non_interactive=bool(_resolve_option(non_interactive, config_values, "non_interactive", default=False)),
        min_ram_mb=int(_resolve_option(min_ram, config_values, "min_ram_mb", default=MIN_RAM_MB)),
        require_sse42=bool(_resolve_option(require_sse42, config_values, "require_sse42", default=True)),
        log_file=_resolve_option(log_file, config_values, "log_file") or _default_log_file(),
        workdir=os.getcwd(),
    )

    try:
        installer = SentryInstaller(settings)
    except InstallerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(installer.run())


if __name__ == "__main__":
    main()
