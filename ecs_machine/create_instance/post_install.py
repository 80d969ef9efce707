"""Commands run on the machine once it is reachable.

Every step is best-effort: failures are logged and never undo the
provisioning that already succeeded.
"""
import time
from typing import Callable, Protocol

from loguru import logger

from ..utils.remote import CommandResult

DATA_DISK_MOUNT_POINT = "/var/lib/docker"

ROUTE_FIX_COMMANDS = [
    "route del -net 172.16.0.0/12",
    "if [ -e /etc/network/interfaces ]; then sed -i '/^up route add -net 172.16.0.0 netmask 255.240.0.0 gw/d' /etc/network/interfaces; fi",
    "if [ -e /etc/sysconfig/network-scripts/route-eth0 ]; then sed -i '/^172.16.0.0\\/12 via /d' /etc/sysconfig/network-scripts/route-eth0; fi",
]

AUTO_FDISK_SCRIPT = f"""#!/bin/bash
set -e
for dev in /dev/vdb /dev/xvdb; do
    if [ -b "$dev" ]; then DISK=$dev; break; fi
done
[ -z "$DISK" ] && {{ echo "no data disk found"; exit 0; }}
PART="${{DISK}}1"
if [ ! -b "$PART" ]; then
    echo -e "n\\np\\n1\\n\\n\\nw" | fdisk "$DISK"
    sleep 2
    mkfs.ext4 -F "$PART"
fi
mkdir -p {DATA_DISK_MOUNT_POINT}
grep -q "^$PART " /etc/fstab || echo "$PART {DATA_DISK_MOUNT_POINT} ext4 defaults 0 0" >> /etc/fstab
mount -a
"""

KERNEL_UPGRADE_COMMANDS = [
    "for i in 1 2 3 4 5; do apt-get update -y && break || sleep 5; done",
    "for i in 1 2 3 4 5; do DEBIAN_FRONTEND=noninteractive apt-get install -y linux-generic && break || sleep 5; done",
]


class RemoteShell(Protocol):
    def run_command(self, command: str) -> CommandResult:
        ...

    def upload_authorized_key(self, public_key: str) -> CommandResult:
        ...


def _log_result(step: str, result: CommandResult):
    if result.success:
        logger.debug(f"{step} ok: {result.output.strip()}")
    else:
        logger.warning(f"{step} failed (code {result.return_code}): {result.output.strip()}")


def fix_routing_rules(shell: RemoteShell):
    for command in ROUTE_FIX_COMMANDS:
        _log_result("fix route", shell.run_command(command))


def auto_fdisk(shell: RemoteShell):
    _log_result("write fdisk script", shell.run_command(f"cat > ~/machine_autofdisk.sh <<'MACHINE_EOF'\n{AUTO_FDISK_SCRIPT}MACHINE_EOF\n"))
    _log_result("auto fdisk", shell.run_command("bash ~/machine_autofdisk.sh"))


def upgrade_kernel(shell: RemoteShell, restart: Callable[[], None], sleep: Callable[[float], None] = time.sleep):
    logger.info("Upgrading kernel ...")
    for command in KERNEL_UPGRADE_COMMANDS:
        _log_result("upgrade kernel", shell.run_command(command))
    sleep(5)
    logger.info("Restarting instance for kernel update ...")
    restart()
    sleep(30)
    _log_result("reconnect", shell.run_command("echo 'I am back'"))


def hand_off(shell: RemoteShell, public_key: str, with_data_disk: bool, with_kernel_upgrade: bool,
             restart: Callable[[], None], sleep: Callable[[float], None] = time.sleep) -> bool:
    """Upload the key and prepare the guest; returns False when the key could not be uploaded."""
    result = shell.upload_authorized_key(public_key)
    if not result.success:
        logger.warning(f"Failed to upload SSH public key: {result.output.strip()}")
        return False

    fix_routing_rules(shell)
    if with_data_disk:
        auto_fdisk(shell)
    if with_kernel_upgrade:
        try:
            upgrade_kernel(shell, restart, sleep)
        except Exception as e:
            logger.warning(f"Kernel upgrade did not complete: {e}")
    return True
