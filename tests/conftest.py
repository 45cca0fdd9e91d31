from __future__ import annotations

from pathlib import Path
import time
from typing import Sequence

import pytest

from unraid_vm_backup.commands import CommandResult
from unraid_vm_backup.config import AppConfig

_LISTING_HEADER = " Id   Name                 State\n----------------------------------------\n"


class FakeHost:
    """In-memory stand-in for virsh, blkid, mount, umount and rsync."""

    def __init__(self) -> None:
        self.vm_states: dict[str, str] = {"Backups": "shut off", "Backups2": "running"}
        # Status checks after a shutdown request before the VM reports "shut off"; None never shuts off.
        self.shutdown_delay_checks: int | None = 0
        self.shutdown_returncode = 0
        self.start_returncode = 0
        self.devices: dict[str, str] = {"AB12CD23": "/dev/sdb1"}
        # blkid lookups needed before the device shows up; None never shows up.
        self.device_visible_after: int | None = 1
        self.mount_returncode = 0
        self.umount_returncode = 0
        self.failing_shares: set[str] = set()
        self.mounted: dict[str, str] = {}
        self.synced: list[tuple[str, str]] = []
        self.calls: list[tuple[str, ...]] = []
        self._blkid_lookups = 0
        self._pending_shutdowns: dict[str, int | None] = {}

    def run(self, command: Sequence[str]) -> CommandResult:
        command = tuple(command)
        self.calls.append(command)
        program = command[0]
        if program == "virsh":
            return self._virsh(command)
        if program == "blkid":
            return self._blkid(command)
        if program == "mount":
            if self.mount_returncode == 0:
                self.mounted[command[-1]] = command[-2]
            return CommandResult(command=command, returncode=self.mount_returncode, stderr=self._stderr(self.mount_returncode, "mount: wrong fs type"))
        if program == "umount":
            if self.umount_returncode == 0:
                self.mounted.pop(command[-1], None)
            return CommandResult(command=command, returncode=self.umount_returncode, stderr=self._stderr(self.umount_returncode, "umount: target is busy"))
        if program == "rsync":
            return self._rsync(command)
        raise AssertionError(f"unexpected command: {command}")

    def calls_for(self, *prefix: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[: len(prefix)] == prefix]

    def _virsh(self, command: tuple[str, ...]) -> CommandResult:
        action = command[1]
        if action == "list":
            self._advance_shutdowns()
            rows = "".join(
                f" {'1' if state == 'running' else '-'}    {name:<20} {state}\n"
                for name, state in self.vm_states.items()
            )
            return CommandResult(command=command, returncode=0, stdout=_LISTING_HEADER + rows + "\n")
        if action == "shutdown":
            if self.shutdown_returncode == 0:
                self._pending_shutdowns[command[2]] = self.shutdown_delay_checks
            return CommandResult(command=command, returncode=self.shutdown_returncode, stderr=self._stderr(self.shutdown_returncode, "error: domain is not running"))
        if action == "start":
            if self.start_returncode == 0:
                self.vm_states[command[2]] = "running"
            return CommandResult(command=command, returncode=self.start_returncode, stderr=self._stderr(self.start_returncode, "error: failed to start domain"))
        raise AssertionError(f"unexpected virsh action: {command}")

    def _advance_shutdowns(self) -> None:
        for name, remaining in list(self._pending_shutdowns.items()):
            if remaining is None:
                continue
            if remaining <= 0:
                self.vm_states[name] = "shut off"
                del self._pending_shutdowns[name]
            else:
                self._pending_shutdowns[name] = remaining - 1

    def _blkid(self, command: tuple[str, ...]) -> CommandResult:
        self._blkid_lookups += 1
        uuid = command[-1].removeprefix("UUID=")
        visible = self.device_visible_after is not None and self._blkid_lookups >= self.device_visible_after
        if visible and uuid in self.devices:
            return CommandResult(command=command, returncode=0, stdout=f"{self.devices[uuid]}\n")
        return CommandResult(command=command, returncode=2)

    def _rsync(self, command: tuple[str, ...]) -> CommandResult:
        source, destination = command[-2], command[-1]
        share_name = Path(source).name
        if share_name in self.failing_shares:
            return CommandResult(command=command, returncode=23, stderr=f"rsync: change_dir \"{source}\" failed: No such file or directory (2)")
        self.synced.append((source, destination))
        return CommandResult(command=command, returncode=0, stdout=f"sending incremental file list\n{share_name}/\n")

    @staticmethod
    def _stderr(returncode: int, message: str) -> str:
        return message if returncode else ""


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        source_root=tmp_path / "user",
        mount_root=tmp_path / "mnt",
        filesystem_type="ntfs-3g",
        poll_interval_seconds=1,
        poll_attempts=11,
        log_level="INFO",
        log_file=None,
    )


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(time, "sleep", recorded.append)
    return recorded
