from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from ..provider_interface import ICloudClient
from ..utils.retry import RetryPolicy
from .eip import ElasticIPManager
from .load_balancer import LoadBalancerRegistrar
from .provision_config import ClassicNetwork, PrivateNetwork, ProvisionSpec
from .route_entry import RouteEntryManager
from .types import ElasticIPAllocation, RouteEntry


@dataclass
class NetworkAttachment:
    public_ip: str = ""
    eip: Optional[ElasticIPAllocation] = None
    route_entry: Optional[RouteEntry] = None


class NetworkStrategy(ABC):
    @abstractmethod
    def attach(self, instance_id: str) -> NetworkAttachment:
        ...


class ClassicNetworkStrategy(NetworkStrategy):
    def __init__(self, client: ICloudClient, region_id: str, private_ip_only: bool):
        self.client = client
        self.region_id = region_id
        self.private_ip_only = private_ip_only

    def attach(self, instance_id: str) -> NetworkAttachment:
        if self.private_ip_only:
            return NetworkAttachment()
        ip_address = self.client.allocate_public_ip(self.region_id, instance_id)
        logger.info(f"Allocate public IP address {ip_address} for instance {instance_id} successfully")
        return NetworkAttachment(public_ip=ip_address)


class PrivateNetworkStrategy(NetworkStrategy):
    def __init__(self, network: PrivateNetwork, route_entries: RouteEntryManager, eips: ElasticIPManager,
                 route_cidr: str, private_ip_only: bool, bandwidth: int):
        self.network = network
        self.route_entries = route_entries
        self.eips = eips
        self.route_cidr = route_cidr
        self.private_ip_only = private_ip_only
        self.bandwidth = bandwidth

    def attach(self, instance_id: str) -> NetworkAttachment:
        attachment = NetworkAttachment()
        if self.route_cidr:
            attachment.route_entry = self.route_entries.create(self.network.vpc_id, self.route_cidr, instance_id)
        if not self.private_ip_only:
            attachment.eip = self.eips.provision(instance_id, self.bandwidth)
        return attachment


class NetworkAttacher:
    def __init__(self, strategy: NetworkStrategy, load_balancers: Optional[LoadBalancerRegistrar] = None, slb_id: str = ""):
        self.strategy = strategy
        self.load_balancers = load_balancers
        self.slb_id = slb_id

    @classmethod
    def for_spec(cls, client: ICloudClient, spec: ProvisionSpec, retry_policy: RetryPolicy = RetryPolicy(),
                 poll_interval: float = 3) -> "NetworkAttacher":
        mode = spec.network_mode
        strategy: NetworkStrategy
        if isinstance(mode, PrivateNetwork):
            strategy = PrivateNetworkStrategy(
                mode,
                RouteEntryManager(client, spec.region, retry_policy),
                ElasticIPManager(client, spec.region, poll_interval),
                route_cidr=spec.route_cidr,
                private_ip_only=spec.private_ip_only,
                bandwidth=spec.internet_max_bandwidth_out,
            )
        elif isinstance(mode, ClassicNetwork):
            strategy = ClassicNetworkStrategy(client, spec.region, spec.private_ip_only)
        else:
            raise TypeError(f"unknown network mode {mode!r}")

        registrar = LoadBalancerRegistrar(client, spec.region, retry_policy) if spec.slb_id else None
        return cls(strategy, registrar, spec.slb_id)

    def attach(self, instance_id: str) -> NetworkAttachment:
        attachment = self.strategy.attach(instance_id)
        if self.slb_id and self.load_balancers is not None:
            self.load_balancers.add(self.slb_id, instance_id)
        return attachment
