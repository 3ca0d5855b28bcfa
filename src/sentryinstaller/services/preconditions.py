"""Host requirement checks for sentryinstaller."""

from typing import Any, Dict, Optional

from packaging import version

from sentryinstaller.constants import DIAGNOSTIC_IMAGE, MIN_RAM_MB, MIN_VERSIONS
from sentryinstaller.errors import PreconditionFailure
from sentryinstaller.errors_catalog import actionable_error

KVM_CPU_MARKER = "Common KVM processor"
SSE42_FLAG = "sse4_2"


class PreconditionChecker:
    """Advisory gates run before anything is provisioned. Never mutates state."""

    def __init__(self, runtime_service, logger, console):
        self.runtime_service = runtime_service
        self.logger = logger
        self.console = console

    def check(self, min_ram_mb: int = MIN_RAM_MB, require_sse42: bool = True) -> Dict[str, Any]:
        self.console.print("[blue]Checking minimum requirements...[/blue]")
        ram_mb = self.available_ram_mb()
        self.logger.info("RAM available to %s: %s MB", self.runtime_service.runtime, ram_mb)
        if ram_mb < min_ram_mb:
            raise PreconditionFailure(
                actionable_error("insufficient_ram", required=str(min_ram_mb), available=str(ram_mb))
            )

        report: Dict[str, Any] = {"ram_mb": ram_mb, "kvm": False, "sse42": None}
        if not require_sse42:
            return report

        # KVM guests may not report sse4_2 in /proc/cpuinfo even when it is supported.
        if self.runtime_service.count_cpuinfo_matches(KVM_CPU_MARKER) > 0:
            self.logger.info("KVM processor detected, skipping SSE 4.2 check.")
            report["kvm"] = True
            return report

        supports_sse42 = self.runtime_service.count_cpuinfo_matches(SSE42_FLAG) > 0
        report["sse42"] = supports_sse42
        if not supports_sse42:
            raise PreconditionFailure(actionable_error("missing_sse42"))

        return report

    def available_ram_mb(self) -> int:
        result = self.runtime_service.run_container(DIAGNOSTIC_IMAGE, ["free", "-m"], check=False)
        for line in (result.stdout or "").splitlines():
            fields = line.split()
            if fields and fields[0].startswith("Mem"):
                try:
                    return int(fields[1])
                except (IndexError, ValueError):
                    break

        raise PreconditionFailure(
            actionable_error("unreadable_ram", runtime=self.runtime_service.runtime)
        )

    def check_versions(self, compose_service) -> Dict[str, Optional[str]]:
        found = {
            self.runtime_service.runtime: self.runtime_service.version(),
            compose_service.tool_name: compose_service.version(),
        }
        for tool, found_version in found.items():
            self._check_min_version(tool, found_version)
        return found

    def _check_min_version(self, tool: str, found_version: Optional[str]):
        required = MIN_VERSIONS.get(tool)
        if not required:
            return
        if not found_version:
            self.logger.warning("Could not determine the %s version; skipping version check.", tool)
            return

        try:
            too_old = version.parse(found_version) < version.parse(required)
        except version.InvalidVersion:
            self.logger.warning("Unrecognized %s version '%s'; skipping version check.", tool, found_version)
            return

        if too_old:
            raise PreconditionFailure(
                actionable_error("runtime_too_old", tool=tool, found=found_version, required=required)
            )
        self.logger.debug("%s %s satisfies minimum %s", tool, found_version, required)
