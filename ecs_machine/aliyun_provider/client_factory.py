from dataclasses import dataclass
import uuid
from typing import Dict, List, Optional
from alibabacloud_ecs20140526.client import Client as EcsClient
from alibabacloud_slb20140515.client import Client as SlbClient
from alibabacloud_tea_openapi.models import Config as AliyunConfig

from .image import get_images_in_region
from .instance import (add_tags, allocate_public_ip, create_instance, delete_instance, describe_instance,
                       reboot_instance, start_instance, stop_instance)
from .eip import allocate_eip, associate_eip, describe_eip, release_eip, unassociate_eip
from .route_entry import create_route_entry, delete_route_entry, get_route_entries, get_route_table_ids, get_vrouter_id
from .security_group import (authorize_security_group, create_security_group, delete_security_group,
                             describe_security_group, get_security_groups_in_region)
from .slb import add_backend_server, describe_load_balancer

from ..provider_interface import ICloudClient
from ..create_instance.types import (CreateInstanceRequest, ElasticIPAllocation, ImageInfo, InstanceRecord, IpPermission,
                                     LoadBalancerInfo, RouteEntry, SecurityGroupInfo, SecurityGroupRecord)


@dataclass
class AliyunClient(ICloudClient):
    access_key_id: str
    access_key_secret: str

    def _config(self, region_id: str) -> AliyunConfig:
        return AliyunConfig(
            access_key_id=self.access_key_id,
            access_key_secret=self.access_key_secret,
            region_id=region_id,
            read_timeout=120_000,
            connect_timeout=120_000
        )

    def build(self, region_id: str) -> EcsClient:
        return EcsClient(self._config(region_id))

    def build_slb(self, region_id: str) -> SlbClient:
        return SlbClient(self._config(region_id))

    def generate_client_token(self) -> str:
        return uuid.uuid4().hex

    def get_images_in_region(self, region_id: str, owner_alias: str = "system") -> List[ImageInfo]:
        client = self.build(region_id)
        return get_images_in_region(client, region_id, owner_alias)

    def create_instance(self, region_id: str, request: CreateInstanceRequest) -> str:
        client = self.build(region_id)
        return create_instance(client, region_id, request)

    def start_instance(self, region_id: str, instance_id: str):
        client = self.build(region_id)
        return start_instance(client, instance_id)

    def stop_instance(self, region_id: str, instance_id: str, force: bool = False):
        client = self.build(region_id)
        return stop_instance(client, instance_id, force)

    def reboot_instance(self, region_id: str, instance_id: str, force: bool = False):
        client = self.build(region_id)
        return reboot_instance(client, instance_id, force)

    def delete_instance(self, region_id: str, instance_id: str):
        client = self.build(region_id)
        return delete_instance(client, instance_id)

    def describe_instance(self, region_id: str, instance_id: str) -> InstanceRecord:
        client = self.build(region_id)
        return describe_instance(client, region_id, instance_id)

    def add_tags(self, region_id: str, instance_id: str, tags: Dict[str, str]):
        client = self.build(region_id)
        return add_tags(client, region_id, instance_id, tags)

    def allocate_public_ip(self, region_id: str, instance_id: str) -> str:
        client = self.build(region_id)
        return allocate_public_ip(client, instance_id)

    def allocate_eip(self, region_id: str, bandwidth: int, client_token: str) -> ElasticIPAllocation:
        client = self.build(region_id)
        return allocate_eip(client, region_id, bandwidth, client_token)

    def describe_eip(self, region_id: str, allocation_id: str) -> Optional[ElasticIPAllocation]:
        client = self.build(region_id)
        return describe_eip(client, region_id, allocation_id)

    def associate_eip(self, region_id: str, allocation_id: str, instance_id: str):
        client = self.build(region_id)
        return associate_eip(client, allocation_id, instance_id)

    def unassociate_eip(self, region_id: str, allocation_id: str, instance_id: str):
        client = self.build(region_id)
        return unassociate_eip(client, allocation_id, instance_id)

    def release_eip(self, region_id: str, allocation_id: str):
        client = self.build(region_id)
        return release_eip(client, allocation_id)

    def get_vrouter_id(self, region_id: str, vpc_id: str) -> str:
        client = self.build(region_id)
        return get_vrouter_id(client, region_id, vpc_id)

    def get_route_table_ids(self, region_id: str, vrouter_id: str) -> List[str]:
        client = self.build(region_id)
        return get_route_table_ids(client, region_id, vrouter_id)

    def get_route_entries(self, region_id: str, vrouter_id: str) -> List[RouteEntry]:
        client = self.build(region_id)
        return get_route_entries(client, region_id, vrouter_id)

    def create_route_entry(self, region_id: str, entry: RouteEntry, client_token: str):
        client = self.build(region_id)
        return create_route_entry(client, region_id, entry, client_token)

    def delete_route_entry(self, region_id: str, entry: RouteEntry):
        client = self.build(region_id)
        return delete_route_entry(client, region_id, entry)

    def get_security_groups_in_region(self, region_id: str, vpc_id: str) -> List[SecurityGroupInfo]:
        client = self.build(region_id)
        return get_security_groups_in_region(client, region_id, vpc_id)

    def describe_security_group(self, region_id: str, security_group_id: str) -> SecurityGroupRecord:
        client = self.build(region_id)
        return describe_security_group(client, region_id, security_group_id)

    def create_security_group(self, region_id: str, vpc_id: str, security_group_name: str, client_token: str) -> str:
        client = self.build(region_id)
        return create_security_group(client, region_id, vpc_id, security_group_name, client_token)

    def authorize_security_group(self, region_id: str, security_group_id: str, permission: IpPermission):
        client = self.build(region_id)
        return authorize_security_group(client, region_id, security_group_id, permission)

    def delete_security_group(self, region_id: str, security_group_id: str):
        client = self.build(region_id)
        return delete_security_group(client, region_id, security_group_id)

    def describe_load_balancer(self, region_id: str, load_balancer_id: str) -> LoadBalancerInfo:
        client = self.build_slb(region_id)
        return describe_load_balancer(client, region_id, load_balancer_id)

    def add_backend_server(self, region_id: str, load_balancer_id: str, instance_id: str, weight: int = 100):
        client = self.build_slb(region_id)
        return add_backend_server(client, region_id, load_balancer_id, instance_id, weight)
