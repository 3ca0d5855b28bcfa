import pytest

from sentryinstaller.constants import VOLUMES
from sentryinstaller.errors import ProvisioningFailure
from sentryinstaller.models import FileStatus
from sentryinstaller.services.docker_runtime import ContainerRuntimeService
from sentryinstaller.services.volumes import ResourceProvisioner


class FakeVolumeStore:
    """In-memory stand-in for the runtime's volume list."""

    def __init__(self, existing=()):
        self.volumes = set(existing)

    def __call__(self, cmd):
        name = cmd[-1]
        if name in self.volumes:
            return 125, "", f"Error: volume with name {name} already exists"
        self.volumes.add(name)
        return 0, name, ""


def _provisioner(fake_runner, logger, console):
    runtime = ContainerRuntimeService("podman", fake_runner, logger, console)
    return ResourceProvisioner(runtime, logger=logger, console=console)


def test_ensure_volumes_tolerates_existing_volumes(fake_runner, logger, console):
    store = FakeVolumeStore()
    fake_runner.on("volume", "create", handler=store)
    provisioner = _provisioner(fake_runner, logger, console)

    first = provisioner.ensure_volumes(VOLUMES)
    second = provisioner.ensure_volumes(VOLUMES)

    assert set(first.values()) == {FileStatus.CREATED}
    assert set(second.values()) == {FileStatus.ALREADY_EXISTS}
    assert store.volumes == set(VOLUMES)


@pytest.mark.parametrize("names", [["a", "b"], ["b", "a"]])
def test_ensure_volumes_is_order_independent(names, fake_runner, logger, console):
    store = FakeVolumeStore(existing={"a"})
    fake_runner.on("volume", "create", handler=store)

    report = _provisioner(fake_runner, logger, console).ensure_volumes(names)

    assert report == {"a": FileStatus.ALREADY_EXISTS, "b": FileStatus.CREATED}
    assert store.volumes == {"a", "b"}


def test_ensure_volumes_wraps_runtime_errors(fake_runner, logger, console):
    fake_runner.on("volume", "create", "sentry-kafka", returncode=125, stderr="Error: no space left on device")

    with pytest.raises(ProvisioningFailure, match="Could not create volume sentry-kafka"):
        _provisioner(fake_runner, logger, console).ensure_volumes(VOLUMES)

    created = [cmd[-1] for cmd in fake_runner.calls]
    assert created == list(VOLUMES[: VOLUMES.index("sentry-kafka") + 1])
