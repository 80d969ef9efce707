# pyright: reportOptionalOperand=false

from typing import List
from alibabacloud_ecs20140526.models import (
    AuthorizeSecurityGroupRequest,
    AuthorizeSecurityGroupRequestPermissions,
    CreateSecurityGroupRequest,
    DeleteSecurityGroupRequest,
    DescribeSecurityGroupAttributeRequest,
    DescribeSecurityGroupsRequest,
    DescribeSecurityGroupsResponseBodySecurityGroupsSecurityGroup,
)
from alibabacloud_ecs20140526.client import Client

from ..create_instance.types import IpPermission, SecurityGroupInfo, SecurityGroupRecord
from .api_error import api_call


def as_security_group_info(rep: DescribeSecurityGroupsResponseBodySecurityGroupsSecurityGroup):
    assert type(rep.security_group_id) is str
    assert type(rep.security_group_name) is str

    return SecurityGroupInfo(security_group_id=rep.security_group_id, security_group_name=rep.security_group_name, vpc_id=rep.vpc_id or "")


def get_security_groups_in_region(client: Client, region_id: str, vpc_id: str) -> List[SecurityGroupInfo]:
    result = []

    page_number = 1
    while True:
        req = DescribeSecurityGroupsRequest(region_id=region_id, page_number=page_number, page_size=50)
        if vpc_id:
            req.vpc_id = vpc_id
        with api_call("DescribeSecurityGroups"):
            rep = client.describe_security_groups(req)
        result.extend([as_security_group_info(sg) for sg in rep.body.security_groups.security_group])
        if rep.body.total_count <= page_number * 50:
            break
        page_number += 1

    return result


def describe_security_group(client: Client, region_id: str, security_group_id: str) -> SecurityGroupRecord:
    req = DescribeSecurityGroupAttributeRequest(region_id=region_id, security_group_id=security_group_id)
    with api_call("DescribeSecurityGroupAttribute"):
        rep = client.describe_security_group_attribute(req)
    body = rep.body
    permissions = body.permissions.permission if body.permissions else []
    return SecurityGroupRecord(
        security_group_id=body.security_group_id,
        security_group_name=body.security_group_name or "",
        vpc_id=body.vpc_id or "",
        permissions=[IpPermission.parse(p.ip_protocol, p.port_range, p.source_cidr_ip, p.policy)
                     for p in permissions if (p.direction or "ingress") == "ingress"],
    )


def create_security_group(client: Client, region_id: str, vpc_id: str, security_group_name: str, client_token: str) -> str:
    req = CreateSecurityGroupRequest(region_id=region_id, security_group_name=security_group_name,
                                     description="Docker Machine", client_token=client_token)
    if vpc_id:
        req.vpc_id = vpc_id
    with api_call("CreateSecurityGroup"):
        rep = client.create_security_group(req)

    security_group_id = rep.body.security_group_id
    assert type(security_group_id) is str
    return security_group_id


def authorize_security_group(client: Client, region_id: str, security_group_id: str, permission: IpPermission):
    req = AuthorizeSecurityGroupRequest(region_id=region_id, security_group_id=security_group_id, permissions=[
        AuthorizeSecurityGroupRequestPermissions(ip_protocol=permission.ip_protocol, port_range=permission.port_range,
                                                 source_cidr_ip=permission.source_cidr_ip, policy=permission.policy),
    ])
    with api_call("AuthorizeSecurityGroup"):
        client.authorize_security_group(req)


def delete_security_group(client: Client, region_id: str, security_group_id: str):
    req = DeleteSecurityGroupRequest(region_id=region_id, security_group_id=security_group_id)
    with api_call("DeleteSecurityGroup"):
        client.delete_security_group(req)
