from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .create_instance.types import (CreateInstanceRequest, ElasticIPAllocation, ImageInfo, InstanceRecord, IpPermission,
                                    LoadBalancerInfo, RouteEntry, SecurityGroupInfo, SecurityGroupRecord)


class ICloudClient(ABC):
    @abstractmethod
    def generate_client_token(self) -> str:
        ...

    @abstractmethod
    def get_images_in_region(self, region_id: str, owner_alias: str = "system") -> List[ImageInfo]:
        ...

    @abstractmethod
    def create_instance(self, region_id: str, request: CreateInstanceRequest) -> str:
        ...

    @abstractmethod
    def start_instance(self, region_id: str, instance_id: str):
        ...

    @abstractmethod
    def stop_instance(self, region_id: str, instance_id: str, force: bool = False):
        ...

    @abstractmethod
    def reboot_instance(self, region_id: str, instance_id: str, force: bool = False):
        ...

    @abstractmethod
    def delete_instance(self, region_id: str, instance_id: str):
        ...

    @abstractmethod
    def describe_instance(self, region_id: str, instance_id: str) -> InstanceRecord:
        ...

    @abstractmethod
    def add_tags(self, region_id: str, instance_id: str, tags: Dict[str, str]):
        ...

    @abstractmethod
    def allocate_public_ip(self, region_id: str, instance_id: str) -> str:
        ...

    @abstractmethod
    def allocate_eip(self, region_id: str, bandwidth: int, client_token: str) -> ElasticIPAllocation:
        ...

    @abstractmethod
    def describe_eip(self, region_id: str, allocation_id: str) -> Optional[ElasticIPAllocation]:
        ...

    @abstractmethod
    def associate_eip(self, region_id: str, allocation_id: str, instance_id: str):
        ...

    @abstractmethod
    def unassociate_eip(self, region_id: str, allocation_id: str, instance_id: str):
        ...

    @abstractmethod
    def release_eip(self, region_id: str, allocation_id: str):
        ...

    @abstractmethod
    def get_vrouter_id(self, region_id: str, vpc_id: str) -> str:
        ...

    @abstractmethod
    def get_route_table_ids(self, region_id: str, vrouter_id: str) -> List[str]:
        ...

    @abstractmethod
    def get_route_entries(self, region_id: str, vrouter_id: str) -> List[RouteEntry]:
        ...

    @abstractmethod
    def create_route_entry(self, region_id: str, entry: RouteEntry, client_token: str):
        ...

    @abstractmethod
    def delete_route_entry(self, region_id: str, entry: RouteEntry):
        ...

    @abstractmethod
    def get_security_groups_in_region(self, region_id: str, vpc_id: str) -> List[SecurityGroupInfo]:
        ...

    @abstractmethod
    def describe_security_group(self, region_id: str, security_group_id: str) -> SecurityGroupRecord:
        ...

    @abstractmethod
    def create_security_group(self, region_id: str, vpc_id: str, security_group_name: str, client_token: str) -> str:
        ...

    @abstractmethod
    def authorize_security_group(self, region_id: str, security_group_id: str, permission: IpPermission):
        ...

    @abstractmethod
    def delete_security_group(self, region_id: str, security_group_id: str):
        ...

    @abstractmethod
    def describe_load_balancer(self, region_id: str, load_balancer_id: str) -> LoadBalancerInfo:
        ...

    @abstractmethod
    def add_backend_server(self, region_id: str, load_balancer_id: str, instance_id: str, weight: int = 100):
        ...
