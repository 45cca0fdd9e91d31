from __future__ import annotations

from datetime import UTC, datetime
import logging

from .errors import BackupStageError, SyncFailureError
from .models import BackupJobRequest, BackupResult
from .sync import ShareSynchronizer
from .vm import VmController
from .volume import BackupVolumeManager

logger = logging.getLogger(__name__)


class BackupRunner:
    """Runs the shutdown, mount, sync, unmount and start stages in order.

    The first failing stage ends the run. Nothing is rolled back: a failed sync
    leaves the volume mounted and the VM stopped for the operator to inspect.
    """

    def __init__(
        self,
        *,
        vm_controller: VmController,
        volume_manager: BackupVolumeManager,
        synchronizer: ShareSynchronizer,
    ) -> None:
        self.vm_controller = vm_controller
        self.volume_manager = volume_manager
        self.synchronizer = synchronizer

    def run(self, request: BackupJobRequest) -> BackupResult:
        started_at = _utc_now_iso()
        mount_dir = self.volume_manager.mount_dir_for(request.backup_device_uuid)
        synced_shares: tuple[str, ...] = ()
        status = "failed"
        stage: str | None = None
        exit_code = 0
        message = ""

        try:
            self.vm_controller.shutdown(request.vm_name)
            self.volume_manager.mount(request.backup_device_uuid, mount_dir)
            synced_shares = self.synchronizer.backup_shares(mount_dir, request.share_names)
            self.volume_manager.unmount(mount_dir)
            self.vm_controller.start(request.vm_name)
            status = "success"
            message = f"backed up {len(synced_shares)} share(s) to {mount_dir}"
            logger.info("Backup of %s finished", ", ".join(synced_shares))
        except SyncFailureError as error:
            synced_shares = error.synced_shares
            stage, exit_code, message = error.stage, error.exit_code, str(error)
            logger.error("%s", message)
        except BackupStageError as error:
            stage, exit_code, message = error.stage, error.exit_code, str(error)
            logger.error("%s", message)

        return BackupResult(
            vm_name=request.vm_name,
            backup_device_uuid=request.backup_device_uuid,
            status=status,
            exit_code=exit_code,
            started_at=started_at,
            finished_at=_utc_now_iso(),
            stage=stage,
            mount_dir=str(mount_dir),
            synced_shares=synced_shares,
            message=message,
        )


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).replace(microsecond=0).isoformat()
