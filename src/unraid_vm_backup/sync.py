from __future__ import annotations

from pathlib import Path
from typing import Sequence
import logging

from .commands import CommandError, CommandRunner
from .config import AppConfig
from .errors import SyncFailureError

logger = logging.getLogger(__name__)

# -a: recursive, symlinks, perms, times, group, owner, devices and specials.
# -v: list every transferred and deleted entry so mirrored deletions stay visible.
# --delete-after: remove extraneous destination entries once the transfer is done.
RSYNC_MIRROR_OPTIONS = ("-av", "--delete-after")


class ShareSynchronizer:
    def __init__(self, *, runner: CommandRunner, config: AppConfig) -> None:
        self.runner = runner
        self.config = config

    def source_for(self, share_name: str) -> Path:
        # Shares always live under the source root, even when given as "/Share".
        return self.config.source_root / share_name.lstrip("/")

    def backup_shares(self, mount_dir: Path, share_names: Sequence[str]) -> tuple[str, ...]:
        logger.info("Backup shares from %s to %s", self.config.source_root, mount_dir)
        synced: list[str] = []
        for share_name in share_names:
            logger.info("Backing up share %s...", share_name)
            self._sync_share(share_name=share_name, mount_dir=mount_dir, synced=tuple(synced))
            synced.append(share_name)
        return tuple(synced)

    def _sync_share(self, *, share_name: str, mount_dir: Path, synced: tuple[str, ...]) -> None:
        source = self.source_for(share_name)
        if source == self.config.source_root:
            raise SyncFailureError(
                f"share {share_name!r} does not name a directory under {self.config.source_root}",
                share_name=share_name,
                synced_shares=synced,
            )

        command = ["rsync", *RSYNC_MIRROR_OPTIONS, str(source), str(mount_dir)]
        try:
            result = self.runner.run(command)
        except CommandError as error:
            raise SyncFailureError(str(error), share_name=share_name, synced_shares=synced) from error

        for line in result.stdout.splitlines():
            if line.strip():
                logger.info("rsync: %s", line)

        if not result.succeeded:
            logger.error("Failed to back up share %s", share_name)
            raise SyncFailureError(
                f"share {share_name}: {result.failure_reason()}",
                share_name=share_name,
                synced_shares=synced,
            )

        for line in result.stderr.splitlines():
            if line.strip():
                logger.warning("rsync: %s", line)
