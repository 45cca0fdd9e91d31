from __future__ import annotations


class BackupStageError(RuntimeError):
    stage = "backup"
    exit_code = 1

    def __init__(self, reason: str) -> None:
        normalized_reason = reason.strip() or "unknown error"
        super().__init__(f"{self.stage} stage failed: {normalized_reason}")
        self.reason = normalized_reason


class ShutdownTimeoutError(BackupStageError):
    """Raised when the VM is not shut off once the shutdown polling ends."""

    stage = "shutdown"
    exit_code = 10


class DeviceNotFoundError(BackupStageError):
    """Raised when no block device with the backup UUID shows up."""

    stage = "mount"
    exit_code = 11


class MountFailureError(BackupStageError):
    stage = "mount"
    exit_code = 11


class SyncFailureError(BackupStageError):
    stage = "sync"
    exit_code = 12

    def __init__(self, reason: str, *, share_name: str, synced_shares: tuple[str, ...] = ()) -> None:
        super().__init__(reason)
        self.share_name = share_name
        self.synced_shares = synced_shares


class UnmountFailureError(BackupStageError):
    stage = "unmount"
    exit_code = 13


class StartFailureError(BackupStageError):
    stage = "start"
    exit_code = 14


class MissingArgumentError(ValueError):
    """Raised when a required flag is absent or has no value after it."""

    def __init__(self, *, flags: tuple[str, ...], description: str, exit_code: int) -> None:
        super().__init__(f"No {description} argument found ({' or '.join(flags)})")
        self.flags = flags
        self.exit_code = exit_code
