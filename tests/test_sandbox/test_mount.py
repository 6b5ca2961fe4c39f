"""Tests for scoped mounts."""

import subprocess
from unittest.mock import call, patch

import pytest

from imagecustomizer.errors import MountError
from imagecustomizer.sandbox.mount import Mount, MountFlags, release_all
from imagecustomizer.utils.shell import CommandResult


@pytest.fixture
def mock_run():
    """Patch mount(8)/umount(8) invocations."""
    with patch("imagecustomizer.sandbox.mount.run_command") as mock:
        mock.return_value = CommandResult(returncode=0)
        yield mock


@pytest.fixture
def dirs(tmp_path):
    """Create a source and target directory."""
    source = tmp_path / "source"
    target = tmp_path / "target"
    source.mkdir()
    target.mkdir()
    return source, target


class TestMountAcquire:
    """Test mount acquisition."""

    def test_read_only_bind_uses_remount(self, mock_run, dirs):
        """Test that a read-only bind is a bind followed by a read-only remount."""
        source, target = dirs

        mount = Mount.acquire(str(source), str(target), flags=MountFlags.BIND | MountFlags.READ_ONLY)

        assert mount.is_mounted
        assert mock_run.call_args_list == [
            call(["mount", "-o", "bind", str(source), str(target)]),
            call(["mount", "-o", "remount,bind,ro", str(target)]),
        ]

    def test_fs_type_and_data(self, mock_run, dirs):
        """Test that fs type and option data reach mount(8)."""
        _, target = dirs

        Mount.acquire("tmpfs", str(target), fs_type="tmpfs", flags=MountFlags.NO_EXEC, data="size=10m")

        mock_run.assert_called_once_with(
            ["mount", "-t", "tmpfs", "-o", "noexec,size=10m", "tmpfs", str(target)]
        )

    def test_missing_target(self, mock_run, tmp_path):
        """Test that a missing target fails without mounting."""
        source = tmp_path / "source"
        source.mkdir()

        with pytest.raises(MountError, match="target does not exist"):
            Mount.acquire(str(source), str(tmp_path / "missing"), flags=MountFlags.BIND)

        mock_run.assert_not_called()

    def test_missing_source(self, mock_run, dirs, tmp_path):
        """Test that a missing source fails without mounting."""
        _, target = dirs

        with pytest.raises(MountError, match="source does not exist"):
            Mount.acquire(str(tmp_path / "missing"), str(target), flags=MountFlags.BIND)

        mock_run.assert_not_called()

    def test_make_and_delete_dir(self, mock_run, dirs, tmp_path):
        """Test that a created target directory is removed on release."""
        source, _ = dirs
        target = tmp_path / "image" / "_imageconfigs"

        mount = Mount.acquire(str(source), str(target), flags=MountFlags.BIND, make_and_delete_dir=True)
        assert target.is_dir()

        mount.release()
        assert not target.exists()

    def test_existing_target_kept(self, mock_run, dirs):
        """Test that a pre-existing target is not removed on release."""
        source, target = dirs

        mount = Mount.acquire(str(source), str(target), flags=MountFlags.BIND, make_and_delete_dir=True)
        mount.release()

        assert target.is_dir()

    def test_mount_failure(self, mock_run, dirs, tmp_path):
        """Test that a rejected mount raises MountError and removes the created target."""
        source, _ = dirs
        target = tmp_path / "created"
        mock_run.side_effect = subprocess.CalledProcessError(32, ["mount"], stderr="permission denied")

        with pytest.raises(MountError, match="permission denied"):
            Mount.acquire(str(source), str(target), flags=MountFlags.BIND, make_and_delete_dir=True)

        assert not target.exists()

    def test_remount_failure_undoes_bind(self, mock_run, dirs):
        """Test that a failed read-only remount unmounts the bind."""
        source, target = dirs
        mock_run.side_effect = [
            CommandResult(returncode=0),
            subprocess.CalledProcessError(32, ["mount"], stderr="busy"),
            CommandResult(returncode=0),
        ]

        with pytest.raises(MountError):
            Mount.acquire(str(source), str(target), flags=MountFlags.BIND | MountFlags.READ_ONLY)

        assert mock_run.call_args_list[-1] == call(["umount", str(target)])


class TestMountRelease:
    """Test mount release."""

    def test_release_is_idempotent(self, mock_run, dirs):
        """Test that a second release does not unmount again."""
        source, target = dirs
        mount = Mount.acquire(str(source), str(target), flags=MountFlags.BIND)
        mock_run.reset_mock()

        mount.release()
        mount.release()

        mock_run.assert_called_once_with(["umount", str(target)])
        assert not mount.is_mounted

    def test_unmount_failure_can_retry(self, mock_run, dirs):
        """Test that a failed unmount leaves the mount active for a retry."""
        source, target = dirs
        mount = Mount.acquire(str(source), str(target), flags=MountFlags.BIND)
        mock_run.side_effect = [
            subprocess.CalledProcessError(32, ["umount"], stderr="target is busy"),
            CommandResult(returncode=0),
        ]

        with pytest.raises(MountError, match="target is busy"):
            mount.release()
        assert mount.is_mounted

        mount.release()
        assert not mount.is_mounted

    def test_context_manager_releases(self, mock_run, dirs):
        """Test that leaving the block releases the mount."""
        source, target = dirs

        with Mount.acquire(str(source), str(target), flags=MountFlags.BIND) as mount:
            assert mount.is_mounted

        assert not mount.is_mounted
        assert mock_run.call_args_list[-1] == call(["umount", str(target)])

    def test_context_manager_keeps_original_error(self, mock_run, dirs):
        """Test that a release failure does not replace the block's error."""
        source, target = dirs

        with pytest.raises(RuntimeError, match="script failed"):
            with Mount.acquire(str(source), str(target), flags=MountFlags.BIND):
                mock_run.side_effect = subprocess.CalledProcessError(32, ["umount"])
                raise RuntimeError("script failed")

    def test_release_all_reverse_order(self, mock_run, tmp_path):
        """Test that mounts are released in reverse order and all are attempted."""
        source = tmp_path / "source"
        source.mkdir()
        targets = []
        mounts = []
        for name in ("one", "two"):
            target = tmp_path / name
            target.mkdir()
            targets.append(str(target))
            mounts.append(Mount.acquire(str(source), str(target), flags=MountFlags.BIND))
        mock_run.reset_mock()
        mock_run.side_effect = [
            subprocess.CalledProcessError(32, ["umount"]),
            CommandResult(returncode=0),
        ]

        with pytest.raises(MountError):
            release_all(mounts)

        assert mock_run.call_args_list == [
            call(["umount", targets[1]]),
            call(["umount", targets[0]]),
        ]
        assert mounts[1].is_mounted
        assert not mounts[0].is_mounted
