from typing import List, Optional

from loguru import logger

from ..errors import PermanentRemoteError, RemoteError, WaitTimeoutError
from ..provider_interface import ICloudClient
from ..utils.wait_until import WaitUntilTimeoutError, wait_until
from .provision_config import MachinePorts
from .types import ANY_CIDR, IpPermission, SecurityGroupInfo, SecurityGroupRecord

SSH_PORT = 22
GROUP_AVAILABLE_TIMEOUT = 120

# Create errors meaning another run created the same group first
DUPLICATE_GROUP_CODES = {"InvalidSecurityGroupName.Duplicate", "InvalidSecurityGroupName.Duplicated"}


def baseline_permissions(ports: MachinePorts, cluster_master: bool) -> List[IpPermission]:
    perms = [
        IpPermission("tcp", SSH_PORT, SSH_PORT, ANY_CIDR),
        IpPermission("tcp", ports.api_port, ports.api_port, ANY_CIDR),
    ]
    if cluster_master:
        perms.append(IpPermission("tcp", ports.cluster_port, ports.cluster_port, ANY_CIDR))
    perms.append(IpPermission("all", -1, -1, ANY_CIDR))
    return perms


def _is_catch_all(p: IpPermission) -> bool:
    return p.to_port == -1 and p.ip_protocol.upper() == "ALL" and p.policy.lower() == "accept"


class SecurityGroupReconciler:
    """Ensures a named security group exists in a network scope with the baseline rules.

    Scope is the VPC id, or "" for the classic network; groups with the same
    name in different scopes are different groups. Two runs reconciling the
    same (name, scope) concurrently may both see "not found" and create two
    groups: client tokens only make a single create call safe to repeat.
    """

    def __init__(self, client: ICloudClient, region_id: str, ports: MachinePorts, cluster_master: bool = False,
                 poll_interval: float = 3, available_timeout: float = GROUP_AVAILABLE_TIMEOUT):
        self.client = client
        self.region_id = region_id
        self.ports = ports
        self.cluster_master = cluster_master
        self.poll_interval = poll_interval
        self.available_timeout = available_timeout

    def ensure(self, vpc_id: str, name: str) -> SecurityGroupRecord:
        group = self._find(vpc_id, name)
        if group is not None:
            logger.debug(f"Found existing security group {name} ({group.security_group_id}) in {vpc_id or 'classic'}")
            record = self.client.describe_security_group(self.region_id, group.security_group_id)
        else:
            record = self._create(vpc_id, name)

        missing = self.missing_permissions(record)
        for permission in missing:
            logger.debug(f"Authorizing group {record.security_group_name} with permission: {permission}")
            self.client.authorize_security_group(self.region_id, record.security_group_id, permission)
            record.permissions.append(permission)
        if missing:
            logger.info(f"Authorized {len(missing)} permissions on security group {record.security_group_id}")
        return record

    def missing_permissions(self, record: SecurityGroupRecord) -> List[IpPermission]:
        present = set()
        for p in record.permissions:
            if p.from_port == -1:
                if _is_catch_all(p):
                    present.add(-1)
            else:
                present.add(p.from_port)

        return [p for p in baseline_permissions(self.ports, self.cluster_master) if p.from_port not in present]

    def _find(self, vpc_id: str, name: str) -> Optional[SecurityGroupInfo]:
        for group in self.client.get_security_groups_in_region(self.region_id, vpc_id):
            if group.security_group_name == name and group.vpc_id == vpc_id:
                return group
        return None

    def _create(self, vpc_id: str, name: str) -> SecurityGroupRecord:
        logger.info(f"Creating security group {name} in {vpc_id or 'classic network'}")
        try:
            group_id = self.client.create_security_group(self.region_id, vpc_id, name, self.client.generate_client_token())
        except PermanentRemoteError as e:
            if e.code not in DUPLICATE_GROUP_CODES:
                raise
            # lost the race against a concurrent run, adopt its group
            group = self._find(vpc_id, name)
            if group is None:
                raise
            logger.warning(f"Security group {name} was created concurrently, using {group.security_group_id}")
            group_id = group.security_group_id

        logger.debug(f"Waiting for group ({group_id}) to become available")
        holder = {}

        def _available() -> bool:
            try:
                holder["record"] = self.client.describe_security_group(self.region_id, group_id)
                return True
            except RemoteError as e:
                logger.debug(f"security group {group_id} not describable yet: {e}")
                return False

        try:
            wait_until(_available, timeout=self.available_timeout, retry_interval=self.poll_interval)
        except WaitUntilTimeoutError as e:
            raise WaitTimeoutError("available", e.elapsed, subject=f"security group {group_id}") from e
        return holder["record"]
