# pyright: reportOptionalOperand=false

from typing import Optional

from alibabacloud_ecs20140526.client import Client
from alibabacloud_ecs20140526.models import (
    AllocateEipAddressRequest,
    AssociateEipAddressRequest,
    DescribeEipAddressesRequest,
    ReleaseEipAddressRequest,
    UnassociateEipAddressRequest,
)

from ..create_instance.types import ElasticIPAllocation, EipStatus
from .api_error import api_call


def allocate_eip(client: Client, region_id: str, bandwidth: int, client_token: str) -> ElasticIPAllocation:
    req = AllocateEipAddressRequest(region_id=region_id, bandwidth=str(bandwidth), client_token=client_token)
    with api_call("AllocateEipAddress"):
        rep = client.allocate_eip_address(req)
    allocation_id = rep.body.allocation_id
    assert type(allocation_id) is str
    return ElasticIPAllocation(allocation_id=allocation_id, ip_address=rep.body.eip_address or "", status=EipStatus.Allocating)


def describe_eip(client: Client, region_id: str, allocation_id: str) -> Optional[ElasticIPAllocation]:
    req = DescribeEipAddressesRequest(region_id=region_id, allocation_id=allocation_id)
    with api_call("DescribeEipAddresses"):
        rep = client.describe_eip_addresses(req)
    eips = rep.body.eip_addresses.eip_address if rep.body.eip_addresses else []
    if not eips:
        return None
    eip = eips[0]
    return ElasticIPAllocation(allocation_id=eip.allocation_id, ip_address=eip.ip_address or "",
                               status=EipStatus.from_status(eip.status), instance_id=eip.instance_id or "")


def associate_eip(client: Client, allocation_id: str, instance_id: str):
    req = AssociateEipAddressRequest(allocation_id=allocation_id, instance_id=instance_id)
    with api_call("AssociateEipAddress"):
        client.associate_eip_address(req)


def unassociate_eip(client: Client, allocation_id: str, instance_id: str):
    req = UnassociateEipAddressRequest(allocation_id=allocation_id, instance_id=instance_id)
    with api_call("UnassociateEipAddress"):
        client.unassociate_eip_address(req)


def release_eip(client: Client, allocation_id: str):
    req = ReleaseEipAddressRequest(allocation_id=allocation_id)
    with api_call("ReleaseEipAddress"):
        client.release_eip_address(req)
