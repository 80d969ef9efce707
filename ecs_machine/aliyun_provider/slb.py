import json

from alibabacloud_slb20140515.client import Client as SlbClient
from alibabacloud_slb20140515.models import AddBackendServersRequest, DescribeLoadBalancerAttributeRequest

from ..create_instance.types import LoadBalancerInfo
from .api_error import api_call


def describe_load_balancer(client: SlbClient, region_id: str, load_balancer_id: str) -> LoadBalancerInfo:
    req = DescribeLoadBalancerAttributeRequest(region_id=region_id, load_balancer_id=load_balancer_id)
    with api_call("DescribeLoadBalancerAttribute"):
        rep = client.describe_load_balancer_attribute(req)
    return LoadBalancerInfo(load_balancer_id=load_balancer_id, address=rep.body.address or "")


def add_backend_server(client: SlbClient, region_id: str, load_balancer_id: str, instance_id: str, weight: int):
    backend_servers = json.dumps([{"ServerId": instance_id, "Weight": str(weight)}])
    req = AddBackendServersRequest(region_id=region_id, load_balancer_id=load_balancer_id, backend_servers=backend_servers)
    with api_call("AddBackendServers"):
        client.add_backend_servers(req)
