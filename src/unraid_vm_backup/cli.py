from __future__ import annotations

from pathlib import Path
from typing import Sequence
import logging
import sys

from .backup import BackupRunner
from .commands import CommandRunner
from .config import AppConfig, ConfigError, config_path_from_environment, load_config
from .errors import MissingArgumentError
from .models import BackupJobRequest
from .sync import ShareSynchronizer
from .vm import VmController
from .volume import BackupVolumeManager

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 1
EXIT_NO_ARGUMENTS = 100

VM_NAME_FLAGS = ("--vm-name", "-vm")
BACKUP_DEVICE_UUID_FLAGS = ("--backup-device-uuid", "-bdu")
SHARES_TO_BACKUP_FLAGS = ("--shares-to-backup", "-s2b")

_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

USAGE = """\
Usage: {prog} [OPTIONS]

Backs up shares onto a disk that is normally attached to a VM.

The VM is stopped, the disk with the given UUID is mounted on the host and
every share is mirrored onto it with rsync. The disk is then unmounted and
the VM is started again.

Options:
  --vm-name, -vm             The VM that will be temporarily stopped for the backup
  --backup-device-uuid, -bdu The UUID of the device to mount
  --shares-to-backup, -s2b   Comma separated list of the shares to backup

Examples:
  # {prog} -vm Backups -bdu AB12CD23 -s2b Share1,Share2
"""


def find_flag_value(argv: Sequence[str], flags: Sequence[str], *, description: str, exit_code: int) -> str:
    for index, token in enumerate(argv):
        if token in flags:
            if index + 1 < len(argv):
                return argv[index + 1]
            break
    raise MissingArgumentError(flags=tuple(flags), description=description, exit_code=exit_code)


def split_share_names(value: str) -> tuple[str, ...]:
    names = (name.strip().lstrip("/") for name in value.split(","))
    return tuple(name for name in names if name)


def _required_value(argv: Sequence[str], flags: Sequence[str], *, description: str, exit_code: int) -> str:
    value = find_flag_value(argv, flags, description=description, exit_code=exit_code)
    if not value.strip():
        raise MissingArgumentError(flags=tuple(flags), description=description, exit_code=exit_code)
    return value


def parse_arguments(argv: Sequence[str]) -> BackupJobRequest:
    vm_name = _required_value(argv, VM_NAME_FLAGS, description="VM name", exit_code=101)
    backup_device_uuid = _required_value(
        argv,
        BACKUP_DEVICE_UUID_FLAGS,
        description="backup device UUID",
        exit_code=102,
    )
    share_names = split_share_names(
        _required_value(argv, SHARES_TO_BACKUP_FLAGS, description="shares to backup", exit_code=103)
    )
    if not share_names:
        raise MissingArgumentError(flags=SHARES_TO_BACKUP_FLAGS, description="shares to backup", exit_code=103)

    return BackupJobRequest(
        vm_name=vm_name,
        backup_device_uuid=backup_device_uuid,
        share_names=share_names,
    )


def configure_logging(config: AppConfig) -> None:
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        raise ConfigError(f"invalid log level {config.log_level!r}")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(level=level, format=_LOG_FORMAT, handlers=handlers)


def print_usage(prog: str) -> None:
    print(USAGE.format(prog=prog))


def main(
    argv: Sequence[str] | None = None,
    *,
    config: AppConfig | None = None,
    runner: CommandRunner | None = None,
) -> int:
    prog = Path(sys.argv[0]).name
    if prog in {"", "__main__.py"}:
        prog = "unraid-vm-backup"
    arguments = list(sys.argv[1:] if argv is None else argv)

    if not arguments:
        print_usage(prog)
        return EXIT_NO_ARGUMENTS

    try:
        request = parse_arguments(arguments)
    except MissingArgumentError as error:
        print(error, file=sys.stderr)
        print_usage(prog)
        return error.exit_code

    try:
        if config is None:
            config = load_config(config_path_from_environment())
        configure_logging(config)
    except (ConfigError, OSError) as error:
        print(f"configuration error: {error}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger.info("VM Name: %s", request.vm_name)
    logger.info("Backup device UUID: %s", request.backup_device_uuid)
    logger.info("Shares to backup: %s", ",".join(request.share_names))

    command_runner = runner or CommandRunner()
    backup_runner = BackupRunner(
        vm_controller=VmController(runner=command_runner, config=config),
        volume_manager=BackupVolumeManager(runner=command_runner, config=config),
        synchronizer=ShareSynchronizer(runner=command_runner, config=config),
    )
    result = backup_runner.run(request)
    return result.exit_code
