from __future__ import annotations

from pathlib import Path
import logging
import time

from .commands import CommandError, CommandRunner
from .config import AppConfig
from .errors import DeviceNotFoundError, MountFailureError, UnmountFailureError

logger = logging.getLogger(__name__)

# blkid exits with 2 when no device matched the token.
_BLKID_NO_MATCH = 2


class BackupVolumeManager:
    def __init__(self, *, runner: CommandRunner, config: AppConfig) -> None:
        self.runner = runner
        self.config = config

    def mount_dir_for(self, device_uuid: str) -> Path:
        return self.config.mount_root / f"backup-{device_uuid}"

    def resolve_device_path(self, device_uuid: str) -> str | None:
        try:
            result = self.runner.run(["blkid", "--output", "device", "--match-token", f"UUID={device_uuid}"])
        except CommandError as error:
            raise DeviceNotFoundError(str(error)) from error

        if not result.succeeded:
            if result.returncode == _BLKID_NO_MATCH:
                logger.debug("No block device with UUID %s yet", device_uuid)
            else:
                logger.debug("blkid lookup for UUID %s failed: %s", device_uuid, result.failure_reason())
            return None

        for line in result.stdout.splitlines():
            if line.strip():
                return line.strip()
        return None

    def mount(self, device_uuid: str, mount_dir: Path) -> str:
        device_path = self._wait_for_device(device_uuid)

        try:
            mount_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise MountFailureError(f"cannot create mount directory {mount_dir}: {error.strerror or error}") from error

        try:
            result = self.runner.run(
                ["mount", "--types", self.config.filesystem_type, device_path, str(mount_dir)]
            )
        except CommandError as error:
            raise MountFailureError(str(error)) from error
        if not result.succeeded:
            logger.error("Failed to mount %s on %s", device_path, mount_dir)
            raise MountFailureError(f"failed to mount {device_path} on {mount_dir}: {result.failure_reason()}")

        logger.info("Successfully mounted %s on %s", device_path, mount_dir)
        return device_path

    def unmount(self, mount_dir: Path) -> None:
        try:
            result = self.runner.run(["umount", str(mount_dir)])
        except CommandError as error:
            raise UnmountFailureError(str(error)) from error
        if not result.succeeded:
            logger.error("Failed to umount %s!", mount_dir)
            raise UnmountFailureError(f"failed to umount {mount_dir}: {result.failure_reason()}")
        logger.info("Unmounted %s", mount_dir)

    def _wait_for_device(self, device_uuid: str) -> str:
        attempts = max(1, self.config.poll_attempts)
        for attempt in range(1, attempts + 1):
            logger.info("Waiting for device with UUID %s to show up...", device_uuid)
            device_path = self.resolve_device_path(device_uuid)
            if device_path:
                return device_path
            if attempt < attempts:
                time.sleep(self.config.poll_interval_seconds)

        logger.error("Device with UUID %s didn't show up!", device_uuid)
        raise DeviceNotFoundError(f"device with UUID {device_uuid} did not show up after {attempts} attempts")
