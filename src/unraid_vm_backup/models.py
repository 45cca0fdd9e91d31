from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BackupJobRequest:
    vm_name: str
    backup_device_uuid: str
    share_names: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.vm_name:
            raise ValueError("vm_name must not be empty")
        if not self.backup_device_uuid:
            raise ValueError("backup_device_uuid must not be empty")
        if not self.share_names or not all(self.share_names):
            raise ValueError("share_names must contain at least one non-empty share name")


@dataclass(frozen=True)
class BackupResult:
    vm_name: str
    backup_device_uuid: str
    status: str
    exit_code: int
    started_at: str
    finished_at: str
    stage: str | None = None
    mount_dir: str | None = None
    synced_shares: tuple[str, ...] = ()
    message: str = ""
