"""Customization steps applied to an image root.

Each step takes its slice of the SystemConfig plus the image chroot and
raises on the first failure. Steps that acquire sandbox resources release
them before returning, whether or not they succeed.
"""

import logging
import os
import subprocess
from typing import Mapping, Sequence

from imagecustomizer.errors import ConfigWriteError, ScriptExecutionError
from imagecustomizer.models.system import FileConfig, Script
from imagecustomizer.sandbox.chroot import Chroot, FileToCopy
from imagecustomizer.sandbox.mount import Mount, MountFlags
from imagecustomizer.utils import file
from imagecustomizer.utils.shell import execute_shell_live


logger = logging.getLogger(__name__)

CONFIG_DIR_MOUNT_PATH_IN_CHROOT = "/_imageconfigs"
RESOLV_CONF_PATH = "/etc/resolv.conf"
HOSTNAME_PATH = "/etc/hostname"


def override_resolv_conf(chroot: Chroot, host_resolv_conf: str = RESOLV_CONF_PATH) -> None:
    """Replace the image's resolv.conf with the host's.

    Gives in-chroot processes (package installs, scripts) network access. The
    image's own file is not backed up: the image is expected to regenerate
    it on boot (e.g. systemd-resolved).
    """
    logger.debug("Overriding resolv.conf file")

    try:
        image_resolv_conf = chroot.resolve(RESOLV_CONF_PATH)
        file.remove(image_resolv_conf)
    except (OSError, ValueError) as e:
        raise ConfigWriteError(f"Failed to delete existing resolv.conf file: {e}") from e

    try:
        file.copy(host_resolv_conf, image_resolv_conf)
    except OSError as e:
        raise ConfigWriteError(
            f"Failed to override resolv.conf file with host's resolv.conf: {e}"
        ) from e


def delete_resolv_conf(chroot: Chroot) -> None:
    """Delete the overridden resolv.conf file."""
    logger.debug("Deleting overridden resolv.conf file")

    try:
        file.remove(chroot.resolve(RESOLV_CONF_PATH))
    except (OSError, ValueError) as e:
        raise ConfigWriteError(f"Failed to delete overridden resolv.conf file: {e}") from e


def update_hostname(hostname: str, chroot: Chroot) -> None:
    """Write the image's hostname file."""
    if not hostname:
        return

    logger.info(f"Setting hostname to {hostname}")
    try:
        file.write(hostname, chroot.resolve(HOSTNAME_PATH))
    except (OSError, ValueError) as e:
        raise ConfigWriteError(f"Failed to write hostname file: {e}") from e


def copy_additional_files(
    base_config_path: str,
    additional_files: Mapping[str, Sequence[FileConfig]],
    chroot: Chroot,
) -> None:
    """Copy files from the config directory into the image."""
    for source_file, file_configs in additional_files.items():
        for file_config in file_configs:
            logger.info(f"Copying {source_file} to {file_config.path}")
            chroot.add_files(FileToCopy(
                src=os.path.join(base_config_path, source_file),
                dest=file_config.path,
                permissions=file_config.permissions,
            ))


def run_scripts(base_config_path: str, scripts: Sequence[Script], chroot: Chroot) -> None:
    """Run scripts inside the image with the config directory mounted.

    The config directory is bind-mounted read-only at /_imageconfigs for the
    duration of the step. Stops at the first failing script.
    """
    if not scripts:
        return

    config_dir_mount_path = chroot.resolve(CONFIG_DIR_MOUNT_PATH_IN_CHROOT, follow_last=True)

    # Bind mount the config directory so that the scripts can access any required resources
    with Mount.acquire(
        base_config_path,
        config_dir_mount_path,
        flags=MountFlags.BIND | MountFlags.READ_ONLY,
        make_and_delete_dir=True,
    ):
        for script in scripts:
            _run_script(script, chroot)


def _run_script(script: Script, chroot: Chroot) -> None:
    """Run one script inside the chroot."""
    script_path_in_chroot = f"{CONFIG_DIR_MOUNT_PATH_IN_CHROOT}/{script.path}"
    command = f"{script_path_in_chroot} {script.args}".rstrip()

    logger.info(f"Running script {script.path}")
    try:
        chroot.unsafe_run(lambda: execute_shell_live(command))
    except subprocess.CalledProcessError as e:
        raise ScriptExecutionError(script.path, f"exit status {e.returncode}") from e
    except OSError as e:
        raise ScriptExecutionError(script.path, str(e)) from e
