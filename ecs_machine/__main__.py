"""
Command line interface for ecs-machine

Commands:
- create: provision one machine on Aliyun ECS
- remove: tear the machine down and release its network resources
- start / stop / restart / kill: power operations
- status / ip / url: inspect a provisioned machine
"""

import argparse
import sys
from typing import Callable, Dict, Tuple

from dotenv import load_dotenv
from loguru import logger

from .aliyun_provider.client_factory import AliyunClient
from .cleanup_instance.remover import Remover
from .create_instance.instance_provisioner import InstanceProvisioner
from .create_instance.provision_config import ProvisionSpec, load_provision_spec
from .errors import ConfigurationError, EcsMachineError
from .machine_store import DEFAULT_STORE_PATH, MachineState, forget_machine, load_machine, machine_dir, save_machine
from .utils.logger import configure_logger
from .utils.remote import RemoteExecutor
from . import machine_ops

# option dest -> ProvisionSpec field
CREATE_FLAGS = [
    "access_key_id", "access_key_secret", "region", "image_id", "instance_type", "zone", "vpc_id", "v_switch_id",
    "security_group_name", "private_ip_only", "internet_max_bandwidth_out", "route_cidr", "slb_id", "tags",
    "disk_size", "disk_category", "upgrade_kernel", "ssh_user", "ssh_password", "ssh_key_path", "cluster_master",
    "cluster_host",
]


def _client(spec: ProvisionSpec) -> AliyunClient:
    return AliyunClient(access_key_id=spec.access_key_id, access_key_secret=spec.access_key_secret)


def _load_machine(args) -> MachineState:
    machine = load_machine(args.name, args.store_path)
    if machine is None:
        raise ConfigurationError(f"{args.name} | No such machine in {args.store_path}")
    return machine


def _client_for(args, machine: MachineState) -> AliyunClient:
    # credentials come from the config file and the environment
    spec = load_provision_spec(machine.machine_name, {"region": machine.region}, args.config)
    return _client(spec)


def create_command(args) -> int:
    flags = {name: getattr(args, name) for name in CREATE_FLAGS}
    spec = load_provision_spec(args.name, flags, args.config)
    key_path = spec.ssh_key_path or str(machine_dir(args.store_path, spec.machine_name) / "id_rsa")

    provisioner = InstanceProvisioner(
        _client(spec),
        spec,
        key_path,
        remote_factory=lambda host, password: RemoteExecutor(host, ssh_user=spec.ssh_user, password=password),
    )
    result = provisioner.provision()

    save_machine(MachineState(
        machine_name=spec.machine_name,
        region=spec.region,
        instance_id=result.instance.instance_id,
        ip_address=result.ip_address,
        private_ip_address=result.private_ip_address,
        private_ip_only=spec.private_ip_only,
        security_group_id=result.security_group_id,
        security_group_name=spec.security_group_name,
        vpc_id=spec.vpc_id,
        slb_id=spec.slb_id,
        slb_address=result.slb_address,
        api_port=spec.ports.api_port,
        ssh_user=spec.ssh_user,
        ssh_password=result.ssh_password,
        ssh_key_path=key_path,
        tags=dict(spec.tags),
    ), args.store_path)
    print(result.ip_address)
    return 0


def remove_command(args) -> int:
    machine = _load_machine(args)
    client = _client_for(args, machine)
    with logger.contextualize(machine=machine.machine_name):
        report = Remover(client, machine.region).remove(machine.instance_id)
        if args.delete_security_group and machine.security_group_id:
            logger.info(f"Deleting security group {machine.security_group_id} ...")
            try:
                client.delete_security_group(machine.region, machine.security_group_id)
            except EcsMachineError as e:
                logger.warning(f"Failed to delete security group {machine.security_group_id}: {e}")
    forget_machine(machine.machine_name, args.store_path)
    return 0 if report.clean else 2


def _power_command(op: Callable[[AliyunClient, MachineState], None]) -> Callable[[argparse.Namespace], int]:
    def command(args) -> int:
        machine = _load_machine(args)
        with logger.contextualize(machine=machine.machine_name):
            op(_client_for(args, machine), machine)
        return 0
    return command


def status_command(args) -> int:
    machine = _load_machine(args)
    print(machine_ops.get_state(_client_for(args, machine), machine).value)
    return 0


def ip_command(args) -> int:
    machine = _load_machine(args)
    print(machine_ops.get_ip(_client_for(args, machine), machine))
    return 0


def url_command(args) -> int:
    machine = _load_machine(args)
    print(machine_ops.get_url(_client_for(args, machine), machine))
    return 0


def _add_create_flags(p: argparse.ArgumentParser):
    p.add_argument("--access-key-id", dest="access_key_id", help="ECS access key id")
    p.add_argument("--access-key-secret", dest="access_key_secret", help="ECS access key secret")
    p.add_argument("--region", help="ECS region, default cn-hangzhou")
    p.add_argument("--image-id", dest="image_id", help="ECS image id, default latest Ubuntu 22.04 system image")
    p.add_argument("--instance-type", dest="instance_type", help="ECS instance type")
    p.add_argument("--zone", help="ECS availability zone")
    p.add_argument("--vpc-id", dest="vpc_id", help="VPC id of the instance")
    p.add_argument("--vswitch-id", dest="v_switch_id", help="VSwitch id of the instance in the VPC")
    p.add_argument("--security-group", dest="security_group_name", help="Security group name")
    p.add_argument("--private-address-only", dest="private_ip_only", action="store_true", default=None,
                   help="Use the private IP address only")
    p.add_argument("--internet-max-bandwidth", dest="internet_max_bandwidth_out", type=int,
                   help="Maximum outgoing bandwidth in Mbps, 1 ~ 100")
    p.add_argument("--route-cidr", dest="route_cidr", help="CIDR routed to the instance in the VPC")
    p.add_argument("--slb-id", dest="slb_id", help="Server load balancer to join")
    p.add_argument("--tag", dest="tags", action="append", help="Instance tag key=value, may be repeated")
    p.add_argument("--disk-size", dest="disk_size", type=int, help="Data disk size in GB, 0 for none")
    p.add_argument("--disk-category", dest="disk_category", help="Data disk category")
    p.add_argument("--upgrade-kernel", dest="upgrade_kernel", action="store_true", default=None,
                   help="Upgrade the kernel and reboot after provisioning")
    p.add_argument("--ssh-user", dest="ssh_user", help="SSH user")
    p.add_argument("--ssh-password", dest="ssh_password", help="SSH password, generated when empty")
    p.add_argument("--ssh-key-path", dest="ssh_key_path", help="Private key path, generated when missing")
    p.add_argument("--cluster-master", dest="cluster_master", action="store_true", default=None,
                   help="Open the cluster control port")
    p.add_argument("--cluster-host", dest="cluster_host", help="Cluster control address tcp://host:port")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ecs-machine", description="Provision a single machine on Aliyun ECS")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-c", "--config", help="TOML configuration file")
    parser.add_argument("-s", "--store-path", dest="store_path", default=DEFAULT_STORE_PATH,
                        help="Directory holding machine records")

    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser("create", help="Create a machine")
    create_parser.add_argument("name", help="Machine name")
    _add_create_flags(create_parser)
    create_parser.set_defaults(func=create_command)

    remove_parser = subparsers.add_parser("remove", help="Remove a machine")
    remove_parser.add_argument("name", help="Machine name")
    remove_parser.add_argument("--delete-security-group", action="store_true", help="Also delete its security group")
    remove_parser.set_defaults(func=remove_command)

    commands: Dict[str, Tuple[Callable[[argparse.Namespace], int], str]] = {
        "start": (_power_command(machine_ops.start), "Start a machine"),
        "stop": (_power_command(machine_ops.stop), "Stop a machine"),
        "restart": (_power_command(machine_ops.restart), "Restart a machine"),
        "kill": (_power_command(machine_ops.kill), "Force stop a machine"),
        "status": (status_command, "Print the state of a machine"),
        "ip": (ip_command, "Print the IP address of a machine"),
        "url": (url_command, "Print the docker URL of a machine"),
    }
    for command, (func, help_text) in commands.items():
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument("name", help="Machine name")
        sub.set_defaults(func=func)

    return parser


def main(argv=None):
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logger("DEBUG" if args.verbose else "INFO")

    try:
        code = args.func(args)
    except EcsMachineError as e:
        logger.error(str(e))
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
