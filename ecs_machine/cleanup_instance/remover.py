from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from ..create_instance.eip import ElasticIPManager
from ..create_instance.route_entry import RouteEntryManager
from ..create_instance.state_waiter import DEFAULT_WAIT_TIMEOUT, InstanceStateWaiter
from ..create_instance.types import InstanceRecord, InstanceState
from ..errors import ConfigurationError, InstanceDeleteError, TeardownError
from ..provider_interface import ICloudClient
from ..utils.retry import RetryPolicy


@dataclass
class RemovalReport:
    instance_id: str
    # best-effort steps that failed, in the order they ran
    ledger: List[TeardownError] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.ledger


class Remover:
    def __init__(self, client: ICloudClient, region_id: str, retry_policy: RetryPolicy = RetryPolicy(),
                 poll_interval: float = 3, wait_timeout: float = DEFAULT_WAIT_TIMEOUT):
        self.client = client
        self.region_id = region_id
        self.waiter = InstanceStateWaiter(client, region_id, poll_interval)
        self.eips = ElasticIPManager(client, region_id, poll_interval)
        self.route_entries = RouteEntryManager(client, region_id, retry_policy)
        self.wait_timeout = wait_timeout

    def remove(self, instance_id: str) -> RemovalReport:
        """Stop, release network resources and delete the instance.

        Only the final DeleteInstance is fatal; every other failure lands in the
        returned report's ledger.
        """
        if not instance_id:
            raise ConfigurationError("Unknown instance id")
        logger.info(f"Remove instance {instance_id} ...")
        report = RemovalReport(instance_id=instance_id)

        self._stop_if_running(instance_id, report)

        instance = self._describe(instance_id, report)
        if instance is not None:
            if instance.eip_allocation_id:
                report.ledger.extend(self.eips.teardown(instance.eip_allocation_id, instance.instance_id))
            if instance.vpc_id:
                self._remove_route_entries(instance, report)

        logger.info(f"Deleting instance: {instance_id}")
        try:
            self.client.delete_instance(self.region_id, instance_id)
        except Exception as e:
            raise InstanceDeleteError(instance_id, e, report.ledger) from e

        if report.clean:
            logger.success(f"Removed instance {instance_id}")
        else:
            logger.warning(f"Removed instance {instance_id} with {len(report.ledger)} cleanup failures: "
                           + "; ".join(str(f) for f in report.ledger))
        return report

    def _stop_if_running(self, instance_id: str, report: RemovalReport):
        try:
            instance = self.client.describe_instance(self.region_id, instance_id)
            if instance.status != InstanceState.Running:
                return
            self.client.stop_instance(self.region_id, instance_id, force=False)
            self.waiter.wait(instance_id, InstanceState.Stopped, self.wait_timeout)
        except Exception as e:
            logger.error(f"Unable to stop the instance {instance_id}: {e}")
            report.ledger.append(TeardownError("stop instance", e))

    def _describe(self, instance_id: str, report: RemovalReport) -> Optional[InstanceRecord]:
        try:
            return self.client.describe_instance(self.region_id, instance_id)
        except Exception as e:
            logger.error(f"Unable to describe the instance {instance_id}: {e}")
            report.ledger.append(TeardownError("describe instance", e))
            return None

    def _remove_route_entries(self, instance: InstanceRecord, report: RemovalReport):
        try:
            self.route_entries.delete(instance.vpc_id, instance.instance_id, instance.region_id)
        except Exception as e:
            logger.error(f"Failed to delete route entry of instance {instance.instance_id}: {e}")
            report.ledger.append(TeardownError("delete route entry", e))
