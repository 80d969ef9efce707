import ipaddress
import os
import tomllib
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from ..errors import ConfigurationError

DEFAULT_REGION = "cn-hangzhou"
DEFAULT_INSTANCE_TYPE = "ecs.t1.small"
DEFAULT_SECURITY_GROUP_NAME = "docker-machine"
DEFAULT_SSH_USER = "root"
DEFAULT_API_PORT = 2376
DEFAULT_CLUSTER_PORT = 3376

# field name -> environment variable, flags win over these
ENV_VARS = {
    "access_key_id": "ECS_ACCESS_KEY_ID",
    "access_key_secret": "ECS_ACCESS_KEY_SECRET",
    "region": "ECS_REGION",
    "image_id": "ECS_IMAGE_ID",
    "instance_type": "ECS_INSTANCE_TYPE",
    "zone": "ECS_ZONE",
    "vpc_id": "ECS_VPC_ID",
    "v_switch_id": "ECS_VSWITCH_ID",
    "security_group_name": "ECS_SECURITY_GROUP",
    "private_ip_only": "ECS_PRIVATE_ADDR_ONLY",
    "internet_max_bandwidth_out": "ECS_INTERNET_MAX_BANDWIDTH",
    "route_cidr": "ECS_ROUTE_CIDR",
    "slb_id": "ECS_SLB_ID",
    "tags": "ECS_TAGS",
    "disk_size": "ECS_DISK_SIZE",
    "disk_category": "ECS_DISK_CATEGORY",
    "upgrade_kernel": "ECS_UPGRADE_KERNEL",
    "ssh_password": "ECS_SSH_PASSWORD",
}


@dataclass(frozen=True)
class ClassicNetwork:
    pass


@dataclass(frozen=True)
class PrivateNetwork:
    vpc_id: str
    v_switch_id: str


NetworkMode = Union[ClassicNetwork, PrivateNetwork]


@dataclass(frozen=True)
class MachinePorts:
    api_port: int = DEFAULT_API_PORT
    cluster_port: int = DEFAULT_CLUSTER_PORT


def _port_of(cluster_host: str) -> int:
    parsed = urlparse(cluster_host if "://" in cluster_host else f"tcp://{cluster_host}")
    if parsed.port is None:
        raise ValueError(f"cluster host {cluster_host!r} has no port")
    return parsed.port


class ProvisionSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    machine_name: str
    access_key_id: str = ""
    access_key_secret: str = ""
    region: str = DEFAULT_REGION
    # empty: resolved from the default system image
    image_id: str = ""
    instance_type: str = DEFAULT_INSTANCE_TYPE
    zone: str = ""
    vpc_id: str = ""
    v_switch_id: str = ""
    security_group_name: str = DEFAULT_SECURITY_GROUP_NAME
    private_ip_only: bool = False
    internet_max_bandwidth_out: int = 1
    route_cidr: str = ""
    slb_id: str = ""
    tags: Dict[str, str] = {}
    disk_size: int = 0
    disk_category: str = ""
    upgrade_kernel: bool = False
    ssh_user: str = DEFAULT_SSH_USER
    ssh_password: str = ""
    ssh_key_path: str = ""
    cluster_master: bool = False
    cluster_host: str = ""

    @field_validator("tags", mode="before")
    @classmethod
    def _parse_tags(cls, value: Any):
        if value is None:
            return {}
        if isinstance(value, str):
            value = [v for v in value.split(",") if v.strip()]
        if isinstance(value, dict):
            return value
        tags = {}
        for tag in value:
            parts = tag.split("=")
            if len(parts) != 2:
                raise ValueError(f"Invalid tag {tag!r}, expected key=value")
            tags[parts[0].strip()] = parts[1].strip()
        return tags

    @field_validator("route_cidr")
    @classmethod
    def _check_route_cidr(cls, value: str):
        if value:
            # a bare address is not a CIDR
            if "/" not in value:
                raise ValueError(f"Invalid CIDR value for route cidr: {value}")
            try:
                ipaddress.ip_network(value, strict=False)
            except ValueError:
                raise ValueError(f"Invalid CIDR value for route cidr: {value}")
        return value

    @field_validator("internet_max_bandwidth_out")
    @classmethod
    def _check_bandwidth(cls, value: int):
        if value < 0 or value > 100:
            raise ValueError("internet max bandwidth should be in 1 ~ 100")
        return value or 1

    @field_validator("disk_size")
    @classmethod
    def _check_disk_size(cls, value: int):
        if value < 0:
            raise ValueError("disk size must not be negative")
        return value

    @model_validator(mode="after")
    def _check_consistency(self):
        if not self.access_key_id:
            raise ValueError("access key id is required")
        if not self.access_key_secret:
            raise ValueError("access key secret is required")
        if bool(self.vpc_id) != bool(self.v_switch_id):
            raise ValueError("vpc id and vswitch id are required together for Virtual Private Cloud")
        if self.cluster_master and self.cluster_host:
            _port_of(self.cluster_host)
        return self

    @property
    def network_mode(self) -> NetworkMode:
        if self.vpc_id:
            return PrivateNetwork(vpc_id=self.vpc_id, v_switch_id=self.v_switch_id)
        return ClassicNetwork()

    @property
    def ports(self) -> MachinePorts:
        if self.cluster_master and self.cluster_host:
            return MachinePorts(cluster_port=_port_of(self.cluster_host))
        return MachinePorts()

    @classmethod
    def load(cls, data: Dict[str, Any]) -> "ProvisionSpec":
        try:
            return cls(**data)
        except ValidationError as e:
            details = "; ".join(f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors())
            name = data.get("machine_name", "<unnamed>")
            raise ConfigurationError(f"{name} | Invalid configuration: {details}") from e


def _env_options(environ) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for field_name, env_name in ENV_VARS.items():
        value = environ.get(env_name, "").strip()
        if value:
            options[field_name] = value
    return options


def load_provision_spec(machine_name: str, flags: Dict[str, Any], config_file: Optional[str] = None, environ=None) -> ProvisionSpec:
    """Merge defaults < TOML file < ECS_* environment < flags and validate."""
    data: Dict[str, Any] = {}
    if config_file:
        try:
            with open(config_file, "rb") as f:
                data.update(tomllib.load(f))
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(f"{machine_name} | Cannot read config file {config_file}: {e}") from e
    data.update(_env_options(os.environ if environ is None else environ))
    data.update({k: v for k, v in flags.items() if v is not None})
    data["machine_name"] = machine_name
    return ProvisionSpec.load(data)
