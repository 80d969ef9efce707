import json

import pytest
from alibabacloud_ecs20140526.models import (
    CreateRouteEntryResponse,
    DeleteRouteEntryResponse,
    DescribeEipAddressesResponse,
    DescribeInstanceAttributeResponse,
    DescribeRouteTablesResponse,
    DescribeSecurityGroupAttributeResponse,
    DescribeSecurityGroupsResponse,
    DescribeVpcsResponse,
    DescribeVRoutersResponse,
)
from Tea.exceptions import TeaException

from ecs_machine.aliyun_provider.api_error import api_call, translate_error
from ecs_machine.aliyun_provider.eip import describe_eip
from ecs_machine.aliyun_provider.instance import describe_instance
from ecs_machine.aliyun_provider.route_entry import (create_route_entry, delete_route_entry, get_route_entries,
                                                     get_route_table_ids, get_vrouter_id)
from ecs_machine.aliyun_provider.security_group import describe_security_group, get_security_groups_in_region
from ecs_machine.aliyun_provider.slb import add_backend_server
from ecs_machine.create_instance.types import EipStatus, InstanceState, IpPermission, RouteEntry
from ecs_machine.errors import PermanentRemoteError, RemoteError, TransientRemoteError


def _tea_error(code, message="", data=None):
    return TeaException({"code": code, "message": message, "data": data or {}})


def _response(model, body):
    return model().from_map({"headers": {}, "statusCode": 200, "body": body})


def _paged(items, page_number, page_size):
    start = (page_number - 1) * page_size
    return items[start:start + page_size]


class _FakeEcsSdk:
    """Answers with the SDK's own response models, built from API-shaped maps."""

    def __init__(self, groups=(), route_entries=(), vpcs=(), vrouters=(), error=None):
        self.groups = list(groups)
        self.route_entries = list(route_entries)
        self.vpcs = list(vpcs)
        self.vrouters = list(vrouters)
        self.error = error
        self.requests = []

    def _record(self, req):
        self.requests.append(req)
        if self.error:
            raise self.error

    def describe_security_groups(self, req):
        self._record(req)
        page = _paged(self.groups, req.page_number, req.page_size)
        return _response(DescribeSecurityGroupsResponse, {
            "TotalCount": len(self.groups),
            "SecurityGroups": {"SecurityGroup": page},
        })

    def describe_security_group_attribute(self, req):
        self._record(req)
        return _response(DescribeSecurityGroupAttributeResponse, {
            "SecurityGroupId": req.security_group_id,
            "SecurityGroupName": "docker-machine",
            "VpcId": "",
            "Permissions": {"Permission": [
                {"IpProtocol": "TCP", "PortRange": "22/22", "SourceCidrIp": "0.0.0.0/0", "Policy": "Accept", "Direction": "ingress"},
                {"IpProtocol": "ALL", "PortRange": "-1/-1", "SourceCidrIp": "", "Policy": "Accept", "Direction": "egress"},
            ]},
        })

    def describe_vpcs(self, req):
        self._record(req)
        vpcs = [v for v in self.vpcs if v["VpcId"] == req.vpc_id]
        return _response(DescribeVpcsResponse, {"TotalCount": len(vpcs), "Vpcs": {"Vpc": vpcs}})

    def describe_vrouters(self, req):
        self._record(req)
        vrouters = [v for v in self.vrouters if v["VRouterId"] == req.vrouter_id]
        return _response(DescribeVRoutersResponse, {"TotalCount": len(vrouters), "VRouters": {"VRouter": vrouters}})

    def describe_route_tables(self, req):
        self._record(req)
        page = _paged(self.route_entries, req.page_number, req.page_size)
        table = {"RouteTableId": "vtb-1", "VRouterId": req.vrouter_id, "RouteEntrys": {"RouteEntry": page}}
        return _response(DescribeRouteTablesResponse, {
            "TotalCount": len(self.route_entries),
            "RouteTables": {"RouteTable": [table]},
        })

    def create_route_entry(self, req):
        self._record(req)
        return _response(CreateRouteEntryResponse, {"RequestId": "req-1"})

    def delete_route_entry(self, req):
        self._record(req)
        return _response(DeleteRouteEntryResponse, {"RequestId": "req-2"})

    def describe_eip_addresses(self, req):
        self._record(req)
        return _response(DescribeEipAddressesResponse, {"TotalCount": 1, "EipAddresses": {"EipAddress": [
            {"AllocationId": req.allocation_id, "IpAddress": "39.0.0.1", "Status": "Migrating", "InstanceId": ""},
        ]}})

    def describe_instance_attribute(self, req):
        self._record(req)
        return _response(DescribeInstanceAttributeResponse, {
            "InstanceId": req.instance_id,
            "Status": "Stopped",
            "RegionId": "cn-hangzhou",
            "ZoneId": "cn-hangzhou-h",
            "InnerIpAddress": {"IpAddress": []},
            "PublicIpAddress": {"IpAddress": []},
            "VpcAttributes": {"VpcId": "vpc-1", "PrivateIpAddress": {"IpAddress": ["172.16.0.5"]}},
            "EipAddress": {"IpAddress": "39.0.0.1", "AllocationId": "eip-1"},
        })


class _FakeSlbSdk:
    def __init__(self):
        self.requests = []

    def add_backend_servers(self, req):
        self.requests.append(req)


@pytest.fixture
def vpc_sdk():
    entries = [
        {"RouteTableId": "vtb-1", "DestinationCidrBlock": "10.2.0.0/16", "InstanceId": "i-1", "NextHopType": "Instance"},
        {"RouteTableId": "vtb-1", "DestinationCidrBlock": "0.0.0.0/0", "InstanceId": "", "NextHopType": "NatGateway"},
    ]
    return _FakeEcsSdk(
        vpcs=[{"VpcId": "vpc-1", "VRouterId": "vrt-1"}],
        vrouters=[{"VRouterId": "vrt-1", "VpcId": "vpc-1", "RouteTableIds": {"RouteTableId": ["vtb-1", "vtb-2"]}}],
        route_entries=entries,
    )


def test_status_5xx_is_transient():
    error = translate_error("CreateInstance", _tea_error("UnknownError", "boom", {"statusCode": 503, "RequestId": "req-1"}))
    assert isinstance(error, TransientRemoteError)
    assert error.status_code == 503
    assert error.request_id == "req-1"
    assert error.operation == "CreateInstance"


def test_busy_route_table_code_is_transient():
    error = translate_error("CreateRouteEntry", _tea_error("IncorrectRouteEntryStatus", "busy", {"statusCode": 400}))
    assert isinstance(error, TransientRemoteError)


def test_other_client_errors_are_permanent():
    error = translate_error("CreateInstance", _tea_error("InvalidImageId.NotFound", "no image", {"statusCode": 404}))
    assert isinstance(error, PermanentRemoteError)
    assert error.code == "InvalidImageId.NotFound"


def test_api_call_keeps_remote_errors():
    original = PermanentRemoteError("DescribeVpcs", code="InvalidVpcId.NotFound")
    with pytest.raises(PermanentRemoteError) as exc_info:
        with api_call("Other"):
            raise original
    assert exc_info.value is original


def test_api_call_lets_programming_errors_through():
    with pytest.raises(TypeError):
        with api_call("DescribeVpcs"):
            raise TypeError("unexpected keyword argument")


def test_broken_sdk_response_is_not_a_remote_error():
    sdk = _FakeEcsSdk(error=AttributeError("no such field"))
    with pytest.raises(AttributeError):
        get_security_groups_in_region(sdk, "cn-hangzhou", "")


def test_security_groups_are_paged():
    groups = [{"SecurityGroupId": f"sg-{i}", "SecurityGroupName": f"g{i}", "VpcId": ""} for i in range(120)]
    sdk = _FakeEcsSdk(groups=groups)

    result = get_security_groups_in_region(sdk, "cn-hangzhou", "")

    assert [g.security_group_id for g in result] == [f"sg-{i}" for i in range(120)]
    assert [r.page_number for r in sdk.requests] == [1, 2, 3]
    assert sdk.requests[0].vpc_id is None


def test_security_groups_scope_filter():
    sdk = _FakeEcsSdk()
    get_security_groups_in_region(sdk, "cn-hangzhou", "vpc-1")
    assert sdk.requests[0].vpc_id == "vpc-1"


def test_sdk_error_is_translated():
    sdk = _FakeEcsSdk(error=_tea_error("Throttling", "slow down", {"statusCode": 400}))
    with pytest.raises(TransientRemoteError) as exc_info:
        get_security_groups_in_region(sdk, "cn-hangzhou", "")
    assert exc_info.value.operation == "DescribeSecurityGroups"
    assert isinstance(exc_info.value.__cause__, TeaException)


def test_describe_security_group_keeps_ingress_rules():
    record = describe_security_group(_FakeEcsSdk(), "cn-hangzhou", "sg-1")
    assert record.permissions == [IpPermission("TCP", 22, 22)]


def test_vrouter_of_vpc(vpc_sdk):
    assert get_vrouter_id(vpc_sdk, "cn-hangzhou", "vpc-1") == "vrt-1"
    assert vpc_sdk.requests[0].vpc_id == "vpc-1"


def test_route_tables_of_vrouter(vpc_sdk):
    assert get_route_table_ids(vpc_sdk, "cn-hangzhou", "vrt-1") == ["vtb-1", "vtb-2"]
    assert vpc_sdk.requests[0].vrouter_id == "vrt-1"


def test_vrouter_without_route_tables(vpc_sdk):
    assert get_route_table_ids(vpc_sdk, "cn-hangzhou", "vrt-unknown") == []


def test_missing_vpc_is_permanent(vpc_sdk):
    with pytest.raises(RemoteError) as exc_info:
        get_vrouter_id(vpc_sdk, "cn-hangzhou", "vpc-missing")
    assert exc_info.value.code == "InvalidVpcId.NotFound"


def test_route_entries_of_vrouter(vpc_sdk):
    result = get_route_entries(vpc_sdk, "cn-hangzhou", "vrt-1")

    assert result == [RouteEntry("vtb-1", "10.2.0.0/16", "i-1"), RouteEntry("vtb-1", "0.0.0.0/0", "")]
    assert vpc_sdk.requests[0].vrouter_id == "vrt-1"


def test_route_entries_are_paged():
    entries = [{"RouteTableId": "vtb-1", "DestinationCidrBlock": f"10.0.{i}.0/24", "InstanceId": f"i-{i}"} for i in range(60)]
    sdk = _FakeEcsSdk(route_entries=entries)

    result = get_route_entries(sdk, "cn-hangzhou", "vrt-1")

    assert len(result) == 60
    assert result[59].next_hop_id == "i-59"
    assert [r.page_number for r in sdk.requests] == [1, 2]


def test_create_and_delete_route_entry(vpc_sdk):
    entry = RouteEntry("vtb-1", "10.2.0.0/16", "i-1")

    create_route_entry(vpc_sdk, "cn-hangzhou", entry, "token-1")
    delete_route_entry(vpc_sdk, "cn-hangzhou", entry)

    create, delete = vpc_sdk.requests
    assert create.route_table_id == "vtb-1"
    assert create.destination_cidr_block == "10.2.0.0/16"
    assert create.next_hop_type == "Instance"
    assert create.next_hop_id == "i-1"
    assert create.client_token == "token-1"
    assert delete.route_table_id == "vtb-1"
    assert delete.next_hop_id == "i-1"


def test_unknown_eip_status_is_tolerated():
    allocation = describe_eip(_FakeEcsSdk(), "cn-hangzhou", "eip-1")
    assert allocation.status == EipStatus.Unknown
    assert allocation.ip_address == "39.0.0.1"


def test_describe_instance_in_vpc():
    record = describe_instance(_FakeEcsSdk(), "cn-hangzhou", "i-1")

    assert record.status == InstanceState.Stopped
    assert record.private_ip == "172.16.0.5"
    assert record.vpc_id == "vpc-1"
    assert record.eip_allocation_id == "eip-1"
    assert record.effective_ip(False) == "39.0.0.1"


def test_backend_server_payload():
    sdk = _FakeSlbSdk()
    add_backend_server(sdk, "cn-hangzhou", "lb-1", "i-1", 100)
    assert json.loads(sdk.requests[0].backend_servers) == [{"ServerId": "i-1", "Weight": "100"}]
