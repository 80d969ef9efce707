from typing import List

from loguru import logger

from ..errors import TeardownError, WaitTimeoutError
from ..provider_interface import ICloudClient
from ..utils.wait_until import WaitUntilTimeoutError, wait_until
from .types import ElasticIPAllocation, EipStatus

EIP_WAIT_TIMEOUT = 60


class ElasticIPManager:
    def __init__(self, client: ICloudClient, region_id: str, poll_interval: float = 3):
        self.client = client
        self.region_id = region_id
        self.poll_interval = poll_interval

    def allocate(self, bandwidth: int) -> ElasticIPAllocation:
        logger.info(f"Allocating EIP address with bandwidth {bandwidth}Mbps ...")
        return self.client.allocate_eip(self.region_id, bandwidth, self.client.generate_client_token())

    def wait_status(self, allocation_id: str, target: EipStatus, timeout: float = EIP_WAIT_TIMEOUT) -> ElasticIPAllocation:
        """Wait for the allocation to reach ``target``; a timeout <= 0 uses the default bound."""
        timeout = timeout if timeout > 0 else EIP_WAIT_TIMEOUT
        holder = {}

        def _reached() -> bool:
            eip = self.client.describe_eip(self.region_id, allocation_id)
            holder["eip"] = eip
            return eip is not None and eip.status == target

        try:
            wait_until(_reached, timeout=timeout, retry_interval=self.poll_interval)
        except WaitUntilTimeoutError as e:
            raise WaitTimeoutError(target.value, e.elapsed, subject=f"EIP {allocation_id}") from e
        return holder["eip"]

    def associate(self, allocation_id: str, instance_id: str):
        logger.info(f"Associating EIP address {allocation_id} with instance {instance_id} ...")
        self.client.associate_eip(self.region_id, allocation_id, instance_id)

    def unassociate(self, allocation_id: str, instance_id: str):
        logger.info(f"Unassociating EIP address {allocation_id} from instance {instance_id} ...")
        self.client.unassociate_eip(self.region_id, allocation_id, instance_id)

    def release(self, allocation_id: str):
        logger.info(f"Releasing EIP address {allocation_id} ...")
        self.client.release_eip(self.region_id, allocation_id)

    def provision(self, instance_id: str, bandwidth: int) -> ElasticIPAllocation:
        """allocate -> Available -> associate -> InUse, never leaving an unused address behind."""
        allocation = self.allocate(bandwidth)
        allocation_id = allocation.allocation_id

        try:
            self.wait_status(allocation_id, EipStatus.Available)
            self.associate(allocation_id, instance_id)
        except Exception:
            self._release_quietly(allocation_id)
            raise

        try:
            allocation = self.wait_status(allocation_id, EipStatus.InUse)
        except Exception:
            for failure in self.teardown(allocation_id, instance_id):
                logger.warning(f"EIP cleanup: {failure}")
            raise
        return allocation

    def teardown(self, allocation_id: str, instance_id: str, timeout: float = 0) -> List[TeardownError]:
        """unassociate -> Available -> release; returns the failed steps instead of raising.

        Release only runs once the address is confirmed Available.
        """
        failures: List[TeardownError] = []
        try:
            self.unassociate(allocation_id, instance_id)
        except Exception as e:
            logger.error(f"Failed to unassociate EIP address {allocation_id} from instance {instance_id}: {e}")
            failures.append(TeardownError("unassociate EIP", e))

        try:
            self.wait_status(allocation_id, EipStatus.Available, timeout)
        except Exception as e:
            logger.error(f"Failed to wait EIP {allocation_id} available, not releasing it: {e}")
            failures.append(TeardownError("wait EIP available", e))
            return failures

        try:
            self.release(allocation_id)
        except Exception as e:
            logger.error(f"Failed to release EIP address {allocation_id}: {e}")
            failures.append(TeardownError("release EIP", e))
        return failures

    def _release_quietly(self, allocation_id: str):
        try:
            self.release(allocation_id)
        except Exception as e:
            logger.warning(f"Failed to release EIP address {allocation_id}: {e}")
