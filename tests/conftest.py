from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

import pytest

from ecs_machine.create_instance.instance_provisioner import InstanceProvisioner
from ecs_machine.create_instance.provision_config import ProvisionSpec
from ecs_machine.create_instance.types import (CreateInstanceRequest, ElasticIPAllocation, EipStatus, ImageInfo,
                                               InstanceRecord, InstanceState, IpPermission, LoadBalancerInfo,
                                               RouteEntry, SecurityGroupInfo, SecurityGroupRecord)
from ecs_machine.errors import PermanentRemoteError
from ecs_machine.provider_interface import ICloudClient
from ecs_machine.utils.retry import RetryPolicy

UBUNTU_IMAGE = "ubuntu_22_04_x64_20G_alibase_20240101.vhd"

# instance status -> status reported by the next describe
_SETTLES_TO = {
    InstanceState.Pending: InstanceState.Stopped,
    InstanceState.Starting: InstanceState.Running,
    InstanceState.Stopping: InstanceState.Stopped,
}


class _FakeCloud(ICloudClient):
    """In-memory ECS region: records every call and raises scripted failures."""

    def __init__(self):
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self._scripted: Dict[str, List[Exception]] = defaultdict(list)
        self._always: Dict[str, Exception] = {}
        self._seq = 0
        self.tokens: List[str] = []

        self.images = [ImageInfo("centos_7_9_x64_20G_alibase_20240101.vhd", "centos"), ImageInfo(UBUNTU_IMAGE, "ubuntu")]
        self.instances: Dict[str, InstanceRecord] = {}
        self.requests: Dict[str, CreateInstanceRequest] = {}
        self.tags: Dict[str, Dict[str, str]] = {}
        self.eips: Dict[str, ElasticIPAllocation] = {}
        self.released_eips: List[str] = []
        # vswitch -> vpc -> vrouter -> route tables
        self.vswitches = {"vsw-1": "vpc-1"}
        self.vpcs = {"vpc-1": "vrt-1"}
        self.route_tables = {"vrt-1": ["vtb-1"]}
        self.route_entries: List[RouteEntry] = []
        self.security_groups: Dict[str, SecurityGroupRecord] = {}
        self.load_balancers = {"lb-1": LoadBalancerInfo("lb-1", "10.1.0.100")}
        self.backends: Dict[str, Dict[str, int]] = defaultdict(dict)

    # scripting helpers

    def fail(self, op: str, *errors: Exception):
        """The next len(errors) calls of ``op`` raise these errors in order."""
        self._scripted[op].extend(errors)

    def fail_always(self, op: str, error: Exception):
        self._always[op] = error

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    def ops(self) -> List[str]:
        return [name for name, _ in self.calls]

    def add_security_group(self, name: str, vpc_id: str = "", permissions: Optional[List[IpPermission]] = None) -> str:
        group_id = self._next_id("sg")
        self.security_groups[group_id] = SecurityGroupRecord(group_id, name, vpc_id, list(permissions or []))
        return group_id

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}-{self._seq}"

    def _call(self, op: str, *args):
        self.calls.append((op, args))
        if op in self._always:
            raise self._always[op]
        if self._scripted[op]:
            raise self._scripted[op].pop(0)

    def _instance(self, op: str, instance_id: str) -> InstanceRecord:
        if instance_id not in self.instances:
            raise PermanentRemoteError(op, code="InvalidInstanceId.NotFound", message=f"{instance_id} not found", status_code=404)
        return self.instances[instance_id]

    # ICloudClient

    def generate_client_token(self) -> str:
        token = f"token-{len(self.tokens) + 1}"
        self.tokens.append(token)
        return token

    def get_images_in_region(self, region_id, owner_alias="system"):
        self._call("DescribeImages", region_id, owner_alias)
        return list(self.images)

    def create_instance(self, region_id, request):
        self._call("CreateInstance", region_id, request)
        instance_id = self._next_id("i")
        vpc_id = self.vswitches.get(request.v_switch_id, "")
        self.requests[instance_id] = request
        self.instances[instance_id] = InstanceRecord(
            instance_id=instance_id,
            status=InstanceState.Pending,
            region_id=region_id,
            private_ip=f"172.16.0.{self._seq}" if vpc_id else f"10.0.0.{self._seq}",
            vpc_id=vpc_id,
        )
        return instance_id

    def start_instance(self, region_id, instance_id):
        self._call("StartInstance", region_id, instance_id)
        self._instance("StartInstance", instance_id).status = InstanceState.Starting

    def stop_instance(self, region_id, instance_id, force=False):
        self._call("StopInstance", region_id, instance_id, force)
        self._instance("StopInstance", instance_id).status = InstanceState.Stopping

    def reboot_instance(self, region_id, instance_id, force=False):
        self._call("RebootInstance", region_id, instance_id, force)
        self._instance("RebootInstance", instance_id)

    def delete_instance(self, region_id, instance_id):
        self._call("DeleteInstance", region_id, instance_id)
        self._instance("DeleteInstance", instance_id)
        del self.instances[instance_id]

    def describe_instance(self, region_id, instance_id):
        self._call("DescribeInstanceAttribute", region_id, instance_id)
        record = self._instance("DescribeInstanceAttribute", instance_id)
        observed = replace(record)
        record.status = _SETTLES_TO.get(record.status, record.status)
        return observed

    def add_tags(self, region_id, instance_id, tags):
        self._call("AddTags", region_id, instance_id, dict(tags))
        self.tags.setdefault(instance_id, {}).update(tags)

    def allocate_public_ip(self, region_id, instance_id):
        self._call("AllocatePublicIpAddress", region_id, instance_id)
        record = self._instance("AllocatePublicIpAddress", instance_id)
        record.public_ip = f"47.0.0.{self._seq}"
        return record.public_ip

    def allocate_eip(self, region_id, bandwidth, client_token):
        self._call("AllocateEipAddress", region_id, bandwidth, client_token)
        allocation_id = self._next_id("eip")
        self.eips[allocation_id] = ElasticIPAllocation(allocation_id, f"39.0.0.{self._seq}", EipStatus.Available)
        return replace(self.eips[allocation_id], status=EipStatus.Allocating)

    def describe_eip(self, region_id, allocation_id):
        self._call("DescribeEipAddresses", region_id, allocation_id)
        eip = self.eips.get(allocation_id)
        return replace(eip) if eip else None

    def associate_eip(self, region_id, allocation_id, instance_id):
        self._call("AssociateEipAddress", region_id, allocation_id, instance_id)
        eip = self.eips[allocation_id]
        eip.status = EipStatus.InUse
        eip.instance_id = instance_id
        record = self._instance("AssociateEipAddress", instance_id)
        record.eip_address = eip.ip_address
        record.eip_allocation_id = allocation_id

    def unassociate_eip(self, region_id, allocation_id, instance_id):
        self._call("UnassociateEipAddress", region_id, allocation_id, instance_id)
        eip = self.eips[allocation_id]
        eip.status = EipStatus.Available
        eip.instance_id = ""
        if instance_id in self.instances:
            self.instances[instance_id].eip_address = ""
            self.instances[instance_id].eip_allocation_id = ""

    def release_eip(self, region_id, allocation_id):
        self._call("ReleaseEipAddress", region_id, allocation_id)
        if self.eips[allocation_id].status != EipStatus.Available:
            raise PermanentRemoteError("ReleaseEipAddress", code="IncorrectEipStatus", status_code=400)
        del self.eips[allocation_id]
        self.released_eips.append(allocation_id)

    def get_vrouter_id(self, region_id, vpc_id):
        self._call("DescribeVpcs", region_id, vpc_id)
        if vpc_id not in self.vpcs:
            raise PermanentRemoteError("DescribeVpcs", code="InvalidVpcId.NotFound")
        return self.vpcs[vpc_id]

    def get_route_table_ids(self, region_id, vrouter_id):
        self._call("DescribeVRouters", region_id, vrouter_id)
        return list(self.route_tables.get(vrouter_id, []))

    def get_route_entries(self, region_id, vrouter_id):
        self._call("DescribeRouteTables", region_id, vrouter_id)
        tables = self.route_tables.get(vrouter_id, [])
        return [e for e in self.route_entries if e.route_table_id in tables]

    def create_route_entry(self, region_id, entry, client_token):
        self._call("CreateRouteEntry", region_id, entry, client_token)
        self.route_entries.append(entry)

    def delete_route_entry(self, region_id, entry):
        self._call("DeleteRouteEntry", region_id, entry)
        self.route_entries.remove(entry)

    def get_security_groups_in_region(self, region_id, vpc_id):
        self._call("DescribeSecurityGroups", region_id, vpc_id)
        return [SecurityGroupInfo(g.security_group_id, g.security_group_name, g.vpc_id)
                for g in self.security_groups.values() if not vpc_id or g.vpc_id == vpc_id]

    def describe_security_group(self, region_id, security_group_id):
        self._call("DescribeSecurityGroupAttribute", region_id, security_group_id)
        group = self.security_groups.get(security_group_id)
        if group is None:
            raise PermanentRemoteError("DescribeSecurityGroupAttribute", code="InvalidSecurityGroupId.NotFound")
        return replace(group, permissions=list(group.permissions))

    def create_security_group(self, region_id, vpc_id, security_group_name, client_token):
        self._call("CreateSecurityGroup", region_id, vpc_id, security_group_name, client_token)
        return self.add_security_group(security_group_name, vpc_id)

    def authorize_security_group(self, region_id, security_group_id, permission):
        self._call("AuthorizeSecurityGroup", region_id, security_group_id, permission)
        self.security_groups[security_group_id].permissions.append(permission)

    def delete_security_group(self, region_id, security_group_id):
        self._call("DeleteSecurityGroup", region_id, security_group_id)
        del self.security_groups[security_group_id]

    def describe_load_balancer(self, region_id, load_balancer_id):
        self._call("DescribeLoadBalancerAttribute", region_id, load_balancer_id)
        if load_balancer_id not in self.load_balancers:
            raise PermanentRemoteError("DescribeLoadBalancerAttribute", code="InvalidLoadBalancerId.NotFound", status_code=404)
        return self.load_balancers[load_balancer_id]

    def add_backend_server(self, region_id, load_balancer_id, instance_id, weight=100):
        self._call("AddBackendServers", region_id, load_balancer_id, instance_id, weight)
        self.backends[load_balancer_id][instance_id] = weight


@pytest.fixture
def cloud() -> _FakeCloud:
    return _FakeCloud()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(base_delay=0, jitter=0)


@pytest.fixture
def make_spec():
    def _make(**overrides) -> ProvisionSpec:
        data = {
            "machine_name": "unit-test",
            "access_key_id": "ak",
            "access_key_secret": "sk",
            "region": "cn-hangzhou",
            "image_id": UBUNTU_IMAGE,
        }
        data.update(overrides)
        return ProvisionSpec.load(data)
    return _make


@pytest.fixture
def make_provisioner(cloud, fast_retry, tmp_path):
    def _make(spec: ProvisionSpec, **kwargs) -> InstanceProvisioner:
        kwargs.setdefault("retry_policy", fast_retry)
        kwargs.setdefault("poll_interval", 0)
        kwargs.setdefault("wait_timeout", 1)
        return InstanceProvisioner(cloud, spec, str(tmp_path / "keys" / "id_rsa"), **kwargs)
    return _make
