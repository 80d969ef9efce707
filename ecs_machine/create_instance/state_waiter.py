from loguru import logger

from ..errors import WaitTimeoutError
from ..provider_interface import ICloudClient
from ..utils.wait_until import WaitUntilTimeoutError, wait_until
from .types import InstanceRecord, InstanceState

DEFAULT_WAIT_TIMEOUT = 300
DEFAULT_POLL_INTERVAL = 3


class InstanceStateWaiter:
    def __init__(self, client: ICloudClient, region_id: str, poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.client = client
        self.region_id = region_id
        self.poll_interval = poll_interval

    def wait(self, instance_id: str, target: InstanceState, timeout: float = DEFAULT_WAIT_TIMEOUT) -> InstanceRecord:
        """Block until the instance reports ``target``; returns the last observed record."""
        holder = {}

        def _reached() -> bool:
            record = self.client.describe_instance(self.region_id, instance_id)
            holder["record"] = record
            logger.debug(f"instance {instance_id} status: {record.status.value}, waiting for {target.value}")
            return record.status == target

        try:
            wait_until(_reached, timeout=timeout, retry_interval=self.poll_interval)
        except WaitUntilTimeoutError as e:
            raise WaitTimeoutError(target.value, e.elapsed, subject=f"instance {instance_id}") from e
        return holder["record"]
