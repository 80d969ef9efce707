# pyright: reportOptionalOperand=false

from typing import Dict

from alibabacloud_ecs20140526.client import Client
from alibabacloud_ecs20140526.models import (
    AddTagsRequest,
    AddTagsRequestTag,
    AllocatePublicIpAddressRequest,
    CreateInstanceRequest as EcsCreateInstanceRequest,
    CreateInstanceRequestDataDisk,
    DeleteInstanceRequest,
    DescribeInstanceAttributeRequest,
    RebootInstanceRequest,
    StartInstanceRequest,
    StopInstanceRequest,
)
from loguru import logger

from ..create_instance.types import CreateInstanceRequest, InstanceRecord, InstanceState
from .api_error import api_call


def _first_ip(container) -> str:
    ips = getattr(container, "ip_address", None) if container is not None else None
    return ips[0] if ips else ""


def as_instance_record(region_id: str, body) -> InstanceRecord:
    assert type(body.instance_id) is str

    vpc = body.vpc_attributes
    private_ip = _first_ip(body.inner_ip_address) or (_first_ip(vpc.private_ip_address) if vpc else "")
    eip = body.eip_address
    return InstanceRecord(
        instance_id=body.instance_id,
        status=InstanceState.from_status(body.status),
        region_id=body.region_id or region_id,
        zone_id=body.zone_id or "",
        private_ip=private_ip,
        public_ip=_first_ip(body.public_ip_address),
        vpc_id=(vpc.vpc_id or "") if vpc else "",
        eip_address=(eip.ip_address or "") if eip else "",
        eip_allocation_id=(eip.allocation_id or "") if eip else "",
    )


def create_instance(client: Client, region_id: str, req: CreateInstanceRequest) -> str:
    ecs_req = EcsCreateInstanceRequest(
        region_id=region_id,
        instance_name=req.instance_name,
        image_id=req.image_id,
        instance_type=req.instance_type,
        security_group_id=req.security_group_id,
        internet_charge_type=req.internet_charge_type,
        password=req.password,
        client_token=req.client_token,
    )
    # Empty strings are rejected by the API, leave them unset
    if req.zone_id:
        ecs_req.zone_id = req.zone_id
    if req.v_switch_id:
        ecs_req.v_switch_id = req.v_switch_id
    if req.internet_max_bandwidth_out is not None:
        ecs_req.internet_max_bandwidth_out = req.internet_max_bandwidth_out
    if req.data_disks:
        ecs_req.data_disk = [
            CreateInstanceRequestDataDisk(
                size=disk.size,
                category=disk.category or None,
                disk_name=disk.disk_name,
                description=disk.description,
                delete_with_instance=disk.delete_with_instance,
            )
            for disk in req.data_disks
        ]

    with api_call("CreateInstance"):
        rep = client.create_instance(ecs_req)
    instance_id = rep.body.instance_id
    assert type(instance_id) is str
    return instance_id


def start_instance(client: Client, instance_id: str):
    req = StartInstanceRequest(instance_id=instance_id)
    with api_call("StartInstance"):
        client.start_instance(req)


def stop_instance(client: Client, instance_id: str, force: bool):
    req = StopInstanceRequest(instance_id=instance_id, force_stop=force)
    with api_call("StopInstance"):
        client.stop_instance(req)


def reboot_instance(client: Client, instance_id: str, force: bool):
    req = RebootInstanceRequest(instance_id=instance_id, force_stop=force)
    with api_call("RebootInstance"):
        client.reboot_instance(req)


def delete_instance(client: Client, instance_id: str):
    req = DeleteInstanceRequest(instance_id=instance_id, force=True)
    with api_call("DeleteInstance"):
        client.delete_instance(req)


def describe_instance(client: Client, region_id: str, instance_id: str) -> InstanceRecord:
    req = DescribeInstanceAttributeRequest(instance_id=instance_id)
    with api_call("DescribeInstanceAttribute"):
        rep = client.describe_instance_attribute(req)
    return as_instance_record(region_id, rep.body)


def add_tags(client: Client, region_id: str, instance_id: str, tags: Dict[str, str]):
    req = AddTagsRequest(
        region_id=region_id,
        resource_id=instance_id,
        resource_type="instance",
        tag=[AddTagsRequestTag(key=k, value=v) for k, v in tags.items()],
    )
    with api_call("AddTags"):
        client.add_tags(req)


def allocate_public_ip(client: Client, instance_id: str) -> str:
    req = AllocatePublicIpAddressRequest(instance_id=instance_id)
    with api_call("AllocatePublicIpAddress"):
        rep = client.allocate_public_ip_address(req)
    ip_address = rep.body.ip_address or ""
    logger.debug(f"Allocated public IP {ip_address} for {instance_id}")
    return ip_address
