"""Package add/remove/update inside the image using tdnf."""

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from imagecustomizer.errors import ImageCustomizerError, PackageOperationError
from imagecustomizer.models.system import PackageList, SystemConfig
from imagecustomizer.sandbox.chroot import Chroot
from imagecustomizer.sandbox.mount import Mount, MountFlags, release_all
from imagecustomizer.utils.shell import execute_live


logger = logging.getLogger(__name__)

LOCAL_RPMS_MOUNT_PATH_IN_CHROOT = "/_localrpms"
TDNF_CACHE_MOUNT_PATH_IN_CHROOT = "/_tdnfcache"
TDNF_PROGRAM = "tdnf"


def read_package_list(path: str) -> List[str]:
    """Read package names from a package list file."""
    yaml = YAML(typ="safe")
    try:
        data = yaml.load(Path(path).read_text())
        package_list = PackageList(**(data or {}))
    except (OSError, YAMLError, ValidationError, TypeError) as e:
        raise PackageOperationError(f"Failed to read package list file ({path}): {e}") from e
    return list(package_list.packages)


def collect_packages(base_config_path: str, inline: Sequence[str], list_files: Sequence[str]) -> List[str]:
    """Combine package list files and inline package names, in that order."""
    packages: List[str] = []
    for list_file in list_files:
        packages.extend(read_package_list(os.path.join(base_config_path, list_file)))
    packages.extend(inline)
    return packages


class TdnfCommand:
    """Builds tdnf invocations for the repos visible inside the chroot."""

    def __init__(self, local_repo_paths: List[str], use_base_image_rpm_repos: bool, cache_dir: Optional[str]):
        self.local_repo_paths = local_repo_paths
        self.use_base_image_rpm_repos = use_base_image_rpm_repos
        self.cache_dir = cache_dir

    def build(self, action: str, packages: List[str]) -> List[str]:
        """Return the argument list for one tdnf action."""
        cmd = [TDNF_PROGRAM, "-y", "--nogpgcheck"]

        if self.cache_dir:
            cmd.append(f"--setopt=cachedir={self.cache_dir}")

        for index, repo_path in enumerate(self.local_repo_paths):
            cmd.append(f"--repofrompath=localrpms{index},{repo_path}")

        if not self.use_base_image_rpm_repos:
            cmd.append("--disablerepo=*")
            if self.local_repo_paths:
                cmd.append("--enablerepo=localrpms*")

        cmd.append(action)
        cmd.extend(packages)
        return cmd


def add_remove_and_update_packages(
    build_dir: str,
    base_config_path: str,
    config: SystemConfig,
    chroot: Chroot,
    rpm_sources: List[str],
    use_base_image_rpm_repos: bool,
) -> None:
    """Apply the config's package directives to the image.

    Order: remove, update the base image's packages, install, update. Local
    RPM directories from rpm_sources are bind-mounted into the image for the
    duration of the step.
    """
    to_remove = collect_packages(base_config_path, config.packages_remove, config.package_lists_remove)
    to_install = collect_packages(base_config_path, config.packages_install, config.package_lists_install)
    to_update = collect_packages(base_config_path, config.packages_update, config.package_lists_update)

    if not (to_remove or to_install or to_update or config.update_base_image_packages):
        logger.debug("No package changes requested")
        return

    mounts: List[Mount] = []
    try:
        local_repo_paths = _mount_rpm_sources(rpm_sources, chroot, mounts)
        cache_dir = _mount_cache_dir(build_dir, chroot, mounts)
        tdnf = TdnfCommand(local_repo_paths, use_base_image_rpm_repos, cache_dir)

        if to_remove:
            logger.info(f"Removing packages: {', '.join(to_remove)}")
            _run_tdnf(chroot, tdnf.build("remove", to_remove))

        if config.update_base_image_packages:
            logger.info("Updating base image packages")
            _run_tdnf(chroot, tdnf.build("update", []))

        if to_install:
            logger.info(f"Installing packages: {', '.join(to_install)}")
            _run_tdnf(chroot, tdnf.build("install", to_install))

        if to_update:
            logger.info(f"Updating packages: {', '.join(to_update)}")
            _run_tdnf(chroot, tdnf.build("update", to_update))
    except BaseException:
        # Interrupts included: the bind mounts must not outlive the step
        _release_after_failure(mounts)
        raise

    release_all(mounts)


def _mount_rpm_sources(rpm_sources: List[str], chroot: Chroot, mounts: List[Mount]) -> List[str]:
    """Bind-mount each RPM source directory read-only into the image."""
    repo_paths = []
    for index, source in enumerate(rpm_sources):
        if not os.path.isdir(source):
            raise PackageOperationError(f"RPM source is not a directory: {source}")

        path_in_chroot = f"{LOCAL_RPMS_MOUNT_PATH_IN_CHROOT}{index}"
        mounts.append(Mount.acquire(
            os.path.abspath(source),
            chroot.resolve(path_in_chroot, follow_last=True),
            flags=MountFlags.BIND | MountFlags.READ_ONLY,
            make_and_delete_dir=True,
        ))
        repo_paths.append(path_in_chroot)
    return repo_paths


def _mount_cache_dir(build_dir: str, chroot: Chroot, mounts: List[Mount]) -> Optional[str]:
    """Keep tdnf's download cache in the build directory, outside the image."""
    if not build_dir:
        return None

    cache_dir = Path(build_dir) / "tdnfcache"
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PackageOperationError(f"Failed to create package cache directory ({cache_dir}): {e}") from e

    mounts.append(Mount.acquire(
        str(cache_dir.resolve()),
        chroot.resolve(TDNF_CACHE_MOUNT_PATH_IN_CHROOT, follow_last=True),
        flags=MountFlags.BIND,
        make_and_delete_dir=True,
    ))
    return TDNF_CACHE_MOUNT_PATH_IN_CHROOT


def _run_tdnf(chroot: Chroot, cmd: List[str]) -> None:
    """Run tdnf inside the chroot."""
    try:
        chroot.unsafe_run(lambda: execute_live(cmd))
    except subprocess.CalledProcessError as e:
        raise PackageOperationError(
            f"Package command failed with exit status {e.returncode}: {' '.join(cmd)}"
        ) from e
    except OSError as e:
        raise PackageOperationError(f"Failed to run {TDNF_PROGRAM}: {e}") from e


def _release_after_failure(mounts: List[Mount]) -> None:
    """Release mounts while another error is propagating."""
    try:
        release_all(mounts)
    except ImageCustomizerError as e:
        logger.error(f"Failed to release package mounts: {e}")
