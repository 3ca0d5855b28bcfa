"""Actionable error catalog for sentryinstaller."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "insufficient_ram": {
        "what": "Expected minimum RAM available to the container runtime to be {required} MB but found {available} MB.",
        "next": "Increase the memory assigned to the runtime (or its VM) and re-run the installer.",
    },
    "unreadable_ram": {
        "what": "Could not determine the RAM available to the container runtime.",
        "next": "Check that `{runtime} run --rm busybox free -m` works on this host.",
    },
    "missing_sse42": {
        "what": "The CPU does not support the SSE 4.2 instruction set, which ClickHouse requires.",
        "next": "Run the stack on a host with SSE 4.2 or pass `--no-require-sse42` if you know it is supported.",
    },
    "runtime_too_old": {
        "what": "{tool} {found} is older than the minimum supported version {required}.",
        "next": "Upgrade {tool} and re-run the installer.",
    },
    "template_missing": {
        "what": "Template {template} for {path} does not exist.",
        "next": "Restore the file from the repository checkout.",
    },
    "config_copy_conflict": {
        "what": "{path} appeared while it was being created from {template}.",
        "next": "Make sure no other installer is running, then re-run.",
    },
    "volume_create_failed": {
        "what": "Could not create volume {name}.",
        "next": "Inspect the runtime output above and check `{runtime} volume ls`.",
    },
    "image_pull_failed": {
        "what": "Could not pull image {image}.",
        "next": "Check network access to the registry or set SENTRY_IMAGE to a local image.",
    },
    "image_build_failed": {
        "what": "Building the {service} image failed.",
        "next": "Fix the build error reported above and re-run the installer.",
    },
    "database_setup_failed": {
        "what": "Database setup step `{step}` failed.",
        "next": "Inspect the service logs, then re-run the installer.",
    },
    "credentials_failed": {
        "what": "Generating Relay credentials into {path} failed.",
        "next": "Check {config} is a valid Relay configuration and re-run the installer.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
