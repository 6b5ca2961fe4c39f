"""Customization pipeline orchestration."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from imagecustomizer.customize import packages, steps
from imagecustomizer.errors import PipelineStepError
from imagecustomizer.models.system import SystemConfig
from imagecustomizer.sandbox.chroot import Chroot


logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """Pipeline run state."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class CustomizationStep:
    """A named pipeline step."""
    name: str
    run: Callable[[], None]


class CustomizationPipeline:
    """Applies a SystemConfig to an image root, one step at a time.

    Steps run in a fixed order and the first failure stops the run. A failed
    run does not roll back: in particular the resolv.conf override stays in
    the image, since the caller abandons the build.
    """

    def __init__(
        self,
        build_dir: str,
        base_config_path: str,
        config: SystemConfig,
        chroot: Chroot,
        rpm_sources: Optional[List[str]] = None,
        use_base_image_rpm_repos: bool = True,
        host_resolv_conf: str = steps.RESOLV_CONF_PATH,
    ):
        """Initialize pipeline."""
        self.build_dir = build_dir
        self.base_config_path = base_config_path
        self.config = config
        self.chroot = chroot
        self.rpm_sources = list(rpm_sources or [])
        self.use_base_image_rpm_repos = use_base_image_rpm_repos
        self.host_resolv_conf = host_resolv_conf

        self.state = PipelineState.NOT_STARTED
        self.step_index: Optional[int] = None
        self.error: Optional[PipelineStepError] = None

    @property
    def steps(self) -> List[CustomizationStep]:
        """The steps, in execution order."""
        # resolv.conf is overridden before anything that needs the network and removed last
        return [
            CustomizationStep(
                "override-resolv-conf",
                lambda: steps.override_resolv_conf(self.chroot, self.host_resolv_conf),
            ),
            CustomizationStep(
                "packages",
                lambda: packages.add_remove_and_update_packages(
                    self.build_dir, self.base_config_path, self.config, self.chroot,
                    self.rpm_sources, self.use_base_image_rpm_repos,
                ),
            ),
            CustomizationStep(
                "update-hostname",
                lambda: steps.update_hostname(self.config.hostname, self.chroot),
            ),
            CustomizationStep(
                "copy-additional-files",
                lambda: steps.copy_additional_files(
                    self.base_config_path, self.config.additional_files, self.chroot,
                ),
            ),
            CustomizationStep(
                "post-install-scripts",
                lambda: steps.run_scripts(
                    self.base_config_path, self.config.post_install_scripts, self.chroot,
                ),
            ),
            CustomizationStep(
                "finalize-image-scripts",
                lambda: steps.run_scripts(
                    self.base_config_path, self.config.finalize_image_scripts, self.chroot,
                ),
            ),
            CustomizationStep(
                "delete-resolv-conf",
                lambda: steps.delete_resolv_conf(self.chroot),
            ),
        ]

    @property
    def current_step(self) -> Optional[str]:
        """Name of the running (or failed) step."""
        if self.step_index is None:
            return None
        return self.steps[self.step_index].name

    def run(self) -> None:
        """Run every step; raise PipelineStepError on the first failure."""
        if self.state != PipelineState.NOT_STARTED:
            raise RuntimeError(f"Pipeline already ran (state: {self.state.value})")

        self.state = PipelineState.RUNNING
        logger.info(f"Customizing image at {self.chroot.root_dir}")

        for index, step in enumerate(self.steps):
            self.step_index = index
            logger.debug(f"Running step {step.name}")
            try:
                step.run()
            except Exception as e:
                self.error = PipelineStepError(step.name, e)
                self.state = PipelineState.FAILED
                logger.error(f"Customization failed in step {step.name}: {e}")
                raise self.error from e

        self.state = PipelineState.SUCCEEDED
        logger.info("Image customization completed")


def do_customizations(
    build_dir: str,
    base_config_path: str,
    config: SystemConfig,
    chroot: Chroot,
    rpm_sources: Optional[List[str]] = None,
    use_base_image_rpm_repos: bool = True,
    host_resolv_conf: str = steps.RESOLV_CONF_PATH,
) -> CustomizationPipeline:
    """Build and run a customization pipeline."""
    pipeline = CustomizationPipeline(
        build_dir,
        base_config_path,
        config,
        chroot,
        rpm_sources=rpm_sources,
        use_base_image_rpm_repos=use_base_image_rpm_repos,
        host_resolv_conf=host_resolv_conf,
    )
    pipeline.run()
    return pipeline
