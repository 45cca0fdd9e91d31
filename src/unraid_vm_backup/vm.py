from __future__ import annotations

import logging
import time

from .commands import CommandError, CommandRunner
from .config import AppConfig
from .errors import ShutdownTimeoutError, StartFailureError

logger = logging.getLogger(__name__)

SHUT_OFF = "shut off"
VIRSH = "virsh"


class VmController:
    def __init__(self, *, runner: CommandRunner, config: AppConfig) -> None:
        self.runner = runner
        self.config = config

    def query_status(self, vm_name: str) -> str:
        """Return the state column of ``virsh list --all`` for the VM, or "" when it is not listed."""
        try:
            result = self.runner.run([VIRSH, "list", "--all"])
        except CommandError as error:
            logger.debug("Could not list VMs: %s", error)
            return ""
        if not result.succeeded:
            logger.debug("Could not list VMs: %s", result.failure_reason())
            return ""
        return _status_from_listing(result.stdout, vm_name)

    def shutdown(self, vm_name: str) -> None:
        if self.query_status(vm_name) == SHUT_OFF:
            logger.info("VM %s is already shutdown...", vm_name)
            return

        try:
            result = self.runner.run([VIRSH, "shutdown", vm_name])
        except CommandError as error:
            raise ShutdownTimeoutError(str(error)) from error
        if not result.succeeded:
            logger.warning("Shutdown request for VM %s failed: %s", vm_name, result.failure_reason())

        attempts = max(1, self.config.poll_attempts)
        last_status = ""
        for attempt in range(1, attempts + 1):
            last_status = self.query_status(vm_name)
            if last_status == SHUT_OFF:
                logger.info("VM %s has shutdown!", vm_name)
                return
            if attempt < attempts:
                logger.info("Waiting for VM %s to shutdown...", vm_name)
                time.sleep(self.config.poll_interval_seconds)

        logger.error("VM %s did not shutdown!", vm_name)
        raise ShutdownTimeoutError(
            f"VM {vm_name} did not shutdown after {attempts} status checks "
            f"(last status: {last_status or 'unknown'})"
        )

    def start(self, vm_name: str) -> None:
        try:
            result = self.runner.run([VIRSH, "start", vm_name])
        except CommandError as error:
            raise StartFailureError(str(error)) from error
        if not result.succeeded:
            logger.error("Failed to start %s!", vm_name)
            raise StartFailureError(f"failed to start {vm_name}: {result.failure_reason()}")
        logger.info("VM %s started", vm_name)


def _status_from_listing(listing: str, vm_name: str) -> str:
    for line in listing.splitlines():
        # " Id   Name   State" rows; the state may span several tokens ("shut off").
        tokens = line.split()
        if len(tokens) >= 3 and tokens[1] == vm_name:
            return " ".join(tokens[2:])
    return ""
