# pyright: reportOptionalOperand=false

from typing import List

from alibabacloud_ecs20140526.client import Client
from alibabacloud_ecs20140526.models import (
    CreateRouteEntryRequest,
    DeleteRouteEntryRequest,
    DescribeRouteTablesRequest,
    DescribeVpcsRequest,
    DescribeVRoutersRequest,
)

from ..create_instance.types import RouteEntry
from ..errors import PermanentRemoteError
from .api_error import api_call


def get_vrouter_id(client: Client, region_id: str, vpc_id: str) -> str:
    req = DescribeVpcsRequest(region_id=region_id, vpc_id=vpc_id)
    with api_call("DescribeVpcs"):
        rep = client.describe_vpcs(req)
    vpcs = rep.body.vpcs.vpc if rep.body.vpcs else []
    if not vpcs:
        raise PermanentRemoteError("DescribeVpcs", code="InvalidVpcId.NotFound", message=f"VPC {vpc_id} not found in region {region_id}")
    return vpcs[0].vrouter_id


def get_route_table_ids(client: Client, region_id: str, vrouter_id: str) -> List[str]:
    req = DescribeVRoutersRequest(region_id=region_id, vrouter_id=vrouter_id)
    with api_call("DescribeVRouters"):
        rep = client.describe_vrouters(req)
    vrouters = rep.body.vrouters.vrouter if rep.body.vrouters else []
    if not vrouters or not vrouters[0].route_table_ids:
        return []
    return list(vrouters[0].route_table_ids.route_table_id or [])


def get_route_entries(client: Client, region_id: str, vrouter_id: str) -> List[RouteEntry]:
    result = []

    page_number = 1
    while True:
        req = DescribeRouteTablesRequest(region_id=region_id, vrouter_id=vrouter_id, page_number=page_number, page_size=50)
        with api_call("DescribeRouteTables"):
            rep = client.describe_route_tables(req)
        tables = rep.body.route_tables.route_table if rep.body.route_tables else []
        for table in tables:
            for entry in table.route_entrys.route_entry if table.route_entrys else []:
                result.append(RouteEntry(route_table_id=entry.route_table_id or table.route_table_id,
                                         destination_cidr_block=entry.destination_cidr_block,
                                         next_hop_id=entry.instance_id or ""))
        if rep.body.total_count <= page_number * 50:
            break
        page_number += 1

    return result


def create_route_entry(client: Client, region_id: str, entry: RouteEntry, client_token: str):
    req = CreateRouteEntryRequest(
        region_id=region_id,
        route_table_id=entry.route_table_id,
        destination_cidr_block=entry.destination_cidr_block,
        next_hop_type="Instance",
        next_hop_id=entry.next_hop_id,
        client_token=client_token,
    )
    with api_call("CreateRouteEntry"):
        client.create_route_entry(req)


def delete_route_entry(client: Client, region_id: str, entry: RouteEntry):
    req = DeleteRouteEntryRequest(
        region_id=region_id,
        route_table_id=entry.route_table_id,
        destination_cidr_block=entry.destination_cidr_block,
        next_hop_id=entry.next_hop_id,
    )
    with api_call("DeleteRouteEntry"):
        client.delete_route_entry(req)
