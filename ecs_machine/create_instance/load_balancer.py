from loguru import logger

from ..errors import ConfigurationError, RemoteError
from ..provider_interface import ICloudClient
from ..utils.retry import RetryPolicy, with_retry
from .types import LoadBalancerInfo

DEFAULT_BACKEND_WEIGHT = 100


def _is_remote_error(exc: BaseException) -> bool:
    return isinstance(exc, RemoteError)


class LoadBalancerRegistrar:
    def __init__(self, client: ICloudClient, region_id: str, retry_policy: RetryPolicy = RetryPolicy()):
        self.client = client
        self.region_id = region_id
        self.retry_policy = retry_policy

    def check(self, load_balancer_id: str) -> LoadBalancerInfo:
        try:
            return self.client.describe_load_balancer(self.region_id, load_balancer_id)
        except RemoteError as e:
            raise ConfigurationError(f"Invalid load balancer id {load_balancer_id}: {e}") from e

    def add(self, load_balancer_id: str, instance_id: str, weight: int = DEFAULT_BACKEND_WEIGHT):
        logger.info(f"Adding instance {instance_id} to load balancer {load_balancer_id} ...")
        # Re-adding an existing backend is accepted by the API, so every error is worth a retry
        with_retry(
            "add instance to load balancer",
            lambda: self.client.add_backend_server(self.region_id, load_balancer_id, instance_id, weight),
            self.retry_policy,
            retry_if=_is_remote_error,
        )
