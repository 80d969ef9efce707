from typing import List, Optional

from loguru import logger

from ..errors import PermanentRemoteError
from ..provider_interface import ICloudClient
from ..utils.retry import RetryPolicy, is_transient, with_retry
from .types import RouteEntry


class RouteEntryManager:
    def __init__(self, client: ICloudClient, region_id: str, retry_policy: RetryPolicy = RetryPolicy()):
        self.client = client
        self.region_id = region_id
        self.retry_policy = retry_policy

    def create(self, vpc_id: str, destination_cidr: str, instance_id: str) -> RouteEntry:
        vrouter_id = self.client.get_vrouter_id(self.region_id, vpc_id)
        route_table_ids = self.client.get_route_table_ids(self.region_id, vrouter_id)
        if not route_table_ids:
            raise PermanentRemoteError("DescribeVRouters", code="RouteTableNotFound",
                                       message=f"VRouter {vrouter_id} of VPC {vpc_id} has no route table")

        entry = RouteEntry(route_table_id=route_table_ids[0], destination_cidr_block=destination_cidr, next_hop_id=instance_id)
        logger.info(f"Creating route entry {destination_cidr} -> {instance_id} in {entry.route_table_id}")

        # one token for every attempt, so a retried call cannot create a second entry
        client_token = self.client.generate_client_token()

        def _create():
            self.client.create_route_entry(self.region_id, entry, client_token)

        with_retry("create route entry", _create, self.retry_policy, retry_if=is_transient)
        return entry

    def delete(self, vpc_id: str, instance_id: str, region_id: Optional[str] = None) -> List[RouteEntry]:
        """Delete the route entries whose next hop is ``instance_id``; none found is a no-op."""
        region_id = region_id or self.region_id
        vrouter_id = self.client.get_vrouter_id(region_id, vpc_id)
        entries = [e for e in self.client.get_route_entries(region_id, vrouter_id) if e.next_hop_id == instance_id]

        for entry in entries:
            logger.info(f"Deleting route entry {entry.destination_cidr_block} for instance {instance_id} ...")
            with_retry("delete route entry", lambda: self.client.delete_route_entry(region_id, entry),
                       self.retry_policy, retry_if=is_transient)
        return entries
