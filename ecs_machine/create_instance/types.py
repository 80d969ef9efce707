from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

ANY_CIDR = "0.0.0.0/0"


class InstanceState(Enum):
    Pending = "Pending"
    Starting = "Starting"
    Running = "Running"
    Stopping = "Stopping"
    Stopped = "Stopped"
    Error = "Error"

    @classmethod
    def from_status(cls, status: Optional[str]) -> "InstanceState":
        try:
            return cls(status)
        except ValueError:
            return cls.Error


class EipStatus(Enum):
    Allocating = "Allocating"
    Available = "Available"
    Associating = "Associating"
    InUse = "InUse"
    Unassociating = "Unassociating"
    Releasing = "Releasing"
    Unknown = "Unknown"

    @classmethod
    def from_status(cls, status: Optional[str]) -> "EipStatus":
        try:
            return cls(status)
        except ValueError:
            return cls.Unknown


@dataclass
class ImageInfo:
    image_id: str
    image_name: str


@dataclass
class InstanceRecord:
    instance_id: str
    status: InstanceState
    region_id: str
    zone_id: str = ""
    private_ip: str = ""
    public_ip: str = ""
    vpc_id: str = ""
    eip_address: str = ""
    eip_allocation_id: str = ""

    def effective_ip(self, private_ip_only: bool) -> str:
        if private_ip_only:
            return self.private_ip
        return self.public_ip or self.eip_address


@dataclass(frozen=True)
class IpPermission:
    ip_protocol: str
    from_port: int
    to_port: int
    source_cidr_ip: str = ANY_CIDR
    policy: str = "Accept"

    @property
    def port_range(self) -> str:
        return f"{self.from_port}/{self.to_port}"

    @classmethod
    def parse(cls, ip_protocol: str, port_range: str, source_cidr_ip: str = ANY_CIDR, policy: str = "Accept") -> "IpPermission":
        from_port, _, to_port = port_range.partition("/")
        return cls(ip_protocol=ip_protocol, from_port=int(from_port), to_port=int(to_port or from_port),
                   source_cidr_ip=source_cidr_ip or ANY_CIDR, policy=policy or "Accept")


@dataclass
class SecurityGroupInfo:
    security_group_id: str
    security_group_name: str
    vpc_id: str = ""


@dataclass
class SecurityGroupRecord:
    security_group_id: str
    security_group_name: str
    vpc_id: str = ""
    permissions: List[IpPermission] = field(default_factory=list)


@dataclass(frozen=True)
class RouteEntry:
    route_table_id: str
    destination_cidr_block: str
    next_hop_id: str


@dataclass
class ElasticIPAllocation:
    allocation_id: str
    ip_address: str
    status: EipStatus
    instance_id: str = ""


@dataclass
class LoadBalancerInfo:
    load_balancer_id: str
    address: str


@dataclass
class DataDisk:
    size: int
    category: str
    disk_name: str
    description: str = "Data volume for Docker"
    delete_with_instance: bool = True


@dataclass
class CreateInstanceRequest:
    instance_name: str
    image_id: str
    instance_type: str
    security_group_id: str
    password: str
    client_token: str
    zone_id: str = ""
    v_switch_id: str = ""
    # only honoured for classic network
    internet_max_bandwidth_out: Optional[int] = None
    internet_charge_type: str = "PayByTraffic"
    data_disks: List[DataDisk] = field(default_factory=list)
