from loguru import logger

from .create_instance.state_waiter import DEFAULT_POLL_INTERVAL, DEFAULT_WAIT_TIMEOUT, InstanceStateWaiter
from .create_instance.types import InstanceState
from .machine_store import MachineState
from .provider_interface import ICloudClient


def get_state(client: ICloudClient, machine: MachineState) -> InstanceState:
    return client.describe_instance(machine.region, machine.instance_id).status


def start(client: ICloudClient, machine: MachineState, poll_interval: float = DEFAULT_POLL_INTERVAL,
          timeout: float = DEFAULT_WAIT_TIMEOUT):
    logger.info(f"Starting instance {machine.instance_id} ...")
    client.start_instance(machine.region, machine.instance_id)
    InstanceStateWaiter(client, machine.region, poll_interval).wait(machine.instance_id, InstanceState.Running, timeout)


def stop(client: ICloudClient, machine: MachineState, poll_interval: float = DEFAULT_POLL_INTERVAL,
         timeout: float = DEFAULT_WAIT_TIMEOUT):
    logger.info(f"Stopping instance {machine.instance_id} ...")
    client.stop_instance(machine.region, machine.instance_id, force=False)
    InstanceStateWaiter(client, machine.region, poll_interval).wait(machine.instance_id, InstanceState.Stopped, timeout)


def restart(client: ICloudClient, machine: MachineState):
    logger.info(f"Restarting instance {machine.instance_id} ...")
    client.reboot_instance(machine.region, machine.instance_id, force=False)


def kill(client: ICloudClient, machine: MachineState, poll_interval: float = DEFAULT_POLL_INTERVAL,
         timeout: float = DEFAULT_WAIT_TIMEOUT):
    logger.info(f"Killing instance {machine.instance_id} ...")
    client.stop_instance(machine.region, machine.instance_id, force=True)
    InstanceStateWaiter(client, machine.region, poll_interval).wait(machine.instance_id, InstanceState.Stopped, timeout)


def get_ip(client: ICloudClient, machine: MachineState) -> str:
    instance = client.describe_instance(machine.region, machine.instance_id)
    # a stopped classic instance may report no address yet
    return instance.effective_ip(machine.private_ip_only) or machine.ip_address


def get_url(client: ICloudClient, machine: MachineState) -> str:
    ip_address = get_ip(client, machine)
    if not ip_address:
        return ""
    return f"tcp://{ip_address}:{machine.api_port}"
