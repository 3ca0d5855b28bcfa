"""Image pull/build pipeline for sentryinstaller."""

from typing import List, Optional, Sequence

from sentryinstaller.constants import LEGACY_PROJECT_NAME, LOCAL_IMAGE_SUFFIX, SENTRY_BASE_IMAGE
from sentryinstaller.errors import CommandError, ProvisioningFailure
from sentryinstaller.errors_catalog import actionable_error
from sentryinstaller.models import ImageSpec


def plan_build_waves(images: Sequence[ImageSpec]) -> List[List[str]]:
    """Group images so every image is built in a later wave than the one it extends."""
    by_service = {image.service: image for image in images}
    for image in images:
        if image.depends_on and image.depends_on not in by_service:
            raise ProvisioningFailure(
                f"Image {image.service} extends {image.depends_on}, which is not built locally.",
                service=image.service,
            )

    waves: List[List[str]] = []
    built: set = set()
    pending = [image.service for image in images]
    while pending:
        wave = [
            service
            for service in pending
            if by_service[service].depends_on is None or by_service[service].depends_on in built
        ]
        if not wave:
            raise ProvisioningFailure(
                f"Circular image dependency between: {', '.join(pending)}",
                service=pending[0],
            )
        waves.append(wave)
        built.update(wave)
        pending = [service for service in pending if service not in built]
    return waves


class ImagePipeline:
    """Stops the running stack, pulls published images and builds local ones."""

    def __init__(self, compose_service, runtime_service, logger, console):
        self.compose_service = compose_service
        self.runtime_service = runtime_service
        self.logger = logger
        self.console = console

    def stop_running_stack(self):
        # Older installs used a fixed project name.
        self.compose_service.down(project=LEGACY_PROJECT_NAME)
        self.compose_service.down()

    def pull_images(self):
        self.console.print("[blue]Fetching and updating images...[/blue]")
        result = self.compose_service.pull()
        # Locally built images are tagged with the local suffix and cannot be pulled.
        for line in (result.stdout or "").splitlines():
            if LOCAL_IMAGE_SUFFIX in line:
                continue
            if line.strip():
                self.logger.info(line.rstrip())
        if result.returncode != 0:
            self.logger.warning(
                "Pulling service images exited with %s; continuing with local images.",
                result.returncode,
            )

    def pull_sentry_image(self, sentry_image: Optional[str], sentry_version: str = "latest"):
        if not sentry_image:
            image = f"{SENTRY_BASE_IMAGE}:{sentry_version or 'latest'}"
            try:
                self.runtime_service.pull_image(image, check=True)
            except CommandError as exc:
                raise ProvisioningFailure(
                    actionable_error("image_pull_failed", image=image), service="web"
                ) from exc
            return

        result = self.runtime_service.pull_image(sentry_image, check=False)
        if result.returncode != 0:
            self.logger.warning("Could not pull %s; assuming it is a local image.", sentry_image)

    def build_images(self, images: Sequence[ImageSpec]):
        self.console.print("[blue]Building and tagging images...[/blue]")
        for wave in plan_build_waves(images):
            try:
                self.compose_service.build(wave, always_pull_base=True)
            except CommandError as exc:
                service = ", ".join(wave)
                raise ProvisioningFailure(
                    actionable_error("image_build_failed", service=service), service=service
                ) from exc
        self.console.print("[green]Images built.[/green]")

    def sync_images(
        self,
        images: Sequence[ImageSpec],
        sentry_image: Optional[str] = None,
        sentry_version: str = "latest",
    ):
        self.stop_running_stack()
        self.pull_images()
        self.pull_sentry_image(sentry_image, sentry_version)
        self.build_images(images)
