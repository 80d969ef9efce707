from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from loguru import logger

from ..cleanup_instance.remover import Remover
from ..errors import ConfigurationError, InstanceDeleteError, ProvisionError, TeardownError
from ..provider_interface import ICloudClient
from ..utils.retry import RetryPolicy
from .crypto import generate_key_pair, generate_password, get_public_key_body
from .load_balancer import LoadBalancerRegistrar
from .network_attacher import NetworkAttacher, NetworkAttachment
from .post_install import RemoteShell, hand_off
from .provision_config import ProvisionSpec
from .security_group import SecurityGroupReconciler
from .state_waiter import DEFAULT_POLL_INTERVAL, DEFAULT_WAIT_TIMEOUT, InstanceStateWaiter
from .types import CreateInstanceRequest, DataDisk, InstanceRecord, InstanceState

T = TypeVar("T")

DEFAULT_IMAGE_PREFIX = "ubuntu_22_04_x64"


class ProvisionStep(Enum):
    Init = "Init"
    KeyPairReady = "KeyPairReady"
    SecurityGroupReady = "SecurityGroupReady"
    InstanceCreated = "InstanceCreated"
    InstanceStopped = "InstanceStopped"
    NetworkAttached = "NetworkAttached"
    InstanceRunning = "InstanceRunning"
    Tagged = "Tagged"
    Done = "Done"
    RollingBack = "RollingBack"
    Failed = "Failed"


@dataclass
class ProvisionResult:
    instance: InstanceRecord
    ip_address: str
    private_ip_address: str
    security_group_id: str
    ssh_password: str
    public_key: str
    attachment: NetworkAttachment
    slb_address: str = ""


class InstanceProvisioner:
    """Drives one machine from nothing to Running.

    Init -> KeyPairReady -> SecurityGroupReady -> InstanceCreated ->
    InstanceStopped -> NetworkAttached -> InstanceRunning -> Tagged -> Done.
    A failure once the instance exists removes it before the error is raised.
    """

    def __init__(self, client: ICloudClient, spec: ProvisionSpec, key_path: str,
                 remote_factory: Optional[Callable[[str, str], RemoteShell]] = None,
                 retry_policy: RetryPolicy = RetryPolicy(),
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 wait_timeout: float = DEFAULT_WAIT_TIMEOUT):
        self.client = client
        self.spec = spec
        self.key_path = key_path
        self.remote_factory = remote_factory
        self.wait_timeout = wait_timeout

        self.waiter = InstanceStateWaiter(client, spec.region, poll_interval)
        self.reconciler = SecurityGroupReconciler(client, spec.region, spec.ports, spec.cluster_master, poll_interval)
        self.attacher = NetworkAttacher.for_spec(client, spec, retry_policy, poll_interval)
        self.load_balancers = LoadBalancerRegistrar(client, spec.region, retry_policy)
        self.remover = Remover(client, spec.region, retry_policy, poll_interval, wait_timeout)

        self.step = ProvisionStep.Init
        self.instance_id: Optional[str] = None

    def provision(self) -> ProvisionResult:
        spec = self.spec
        with logger.contextualize(machine=spec.machine_name):
            slb_address = self._run(ProvisionStep.Init, self._check_prereqs)

            logger.info("Creating key pair for instance ...")
            public_key = self._run(ProvisionStep.KeyPairReady, self._ensure_key_pair)

            logger.info("Configuring security group ...")
            group = self._run(ProvisionStep.SecurityGroupReady,
                              lambda: self.reconciler.ensure(spec.vpc_id, spec.security_group_name))

            password = spec.ssh_password or generate_password()
            if not spec.ssh_password:
                logger.info("Launching instance with generated password, log in with the ssh key or update it in the console")
            instance_id = self._run(ProvisionStep.InstanceCreated,
                                    lambda: self._create_instance(group.security_group_id, password))

            self._run(ProvisionStep.InstanceStopped,
                      lambda: self.waiter.wait(instance_id, InstanceState.Stopped, self.wait_timeout))

            attachment = self._run(ProvisionStep.NetworkAttached, lambda: self.attacher.attach(instance_id))

            instance = self._run(ProvisionStep.InstanceRunning, lambda: self._start(instance_id))

            self._add_tags(instance_id)
            self.step = ProvisionStep.Tagged

            result = ProvisionResult(
                instance=instance,
                ip_address=instance.effective_ip(spec.private_ip_only),
                private_ip_address=instance.private_ip,
                security_group_id=group.security_group_id,
                ssh_password=password,
                public_key=public_key,
                attachment=attachment,
                slb_address=slb_address,
            )
            self.step = ProvisionStep.Done
            logger.success(f"Created instance {instance_id} successfully with IP address {result.ip_address} "
                           f"and private IP address {result.private_ip_address}")

            self._hand_off(result)
            return result

    def _run(self, step: ProvisionStep, fn: Callable[[], T]) -> T:
        try:
            value = fn()
        except Exception as e:
            raise self._fail(step, e) from e
        self.step = step
        return value

    def _fail(self, step: ProvisionStep, cause: Exception) -> ProvisionError:
        logger.error(f"Failed to reach {step.value}: {cause}")
        rollback_error = None
        rollback_ledger: List[TeardownError] = []
        if self.instance_id:
            self.step = ProvisionStep.RollingBack
            logger.warning(f"Rolling back instance {self.instance_id} ...")
            try:
                rollback_ledger = self.remover.remove(self.instance_id).ledger
            except InstanceDeleteError as e:
                logger.error(f"Rollback of instance {self.instance_id} failed: {e}")
                rollback_error = e
                rollback_ledger = e.ledger
            except Exception as e:
                logger.error(f"Rollback of instance {self.instance_id} failed: {e}")
                rollback_error = e
        self.step = ProvisionStep.Failed
        return ProvisionError(self.spec.machine_name, step.value, cause, rollback_error, rollback_ledger)

    def _check_prereqs(self) -> str:
        if not self.spec.slb_id:
            return ""
        return self.load_balancers.check(self.spec.slb_id).address

    def _ensure_key_pair(self) -> str:
        if Path(self.key_path).expanduser().exists():
            logger.debug(f"Reusing SSH key {self.key_path}")
            return get_public_key_body(self.key_path)
        logger.debug(f"SSH key path: {self.key_path}")
        return generate_key_pair(self.key_path)

    def _resolve_image(self) -> str:
        if self.spec.image_id:
            return self.spec.image_id
        for image in self.client.get_images_in_region(self.spec.region, "system"):
            if image.image_id.startswith(DEFAULT_IMAGE_PREFIX):
                return image.image_id
        raise ConfigurationError(f"No system image with prefix {DEFAULT_IMAGE_PREFIX} in {self.spec.region}, set an image id")

    def _create_instance(self, security_group_id: str, password: str) -> str:
        spec = self.spec
        image_id = self._resolve_image()
        logger.info(f"Creating instance with image {image_id} ...")

        request = CreateInstanceRequest(
            instance_name=spec.machine_name,
            image_id=image_id,
            instance_type=spec.instance_type,
            security_group_id=security_group_id,
            password=password,
            client_token=self.client.generate_client_token(),
            zone_id=spec.zone,
            v_switch_id=spec.v_switch_id,
        )
        # VPC instances get their bandwidth from the EIP
        if not spec.vpc_id:
            request.internet_max_bandwidth_out = spec.internet_max_bandwidth_out
        if spec.disk_size > 0:
            request.data_disks.append(DataDisk(size=spec.disk_size, category=spec.disk_category,
                                               disk_name=f"{spec.machine_name}_data"))

        instance_id = self.client.create_instance(spec.region, request)
        self.instance_id = instance_id
        logger.info(f"Create instance {instance_id} successfully")
        return instance_id

    def _start(self, instance_id: str) -> InstanceRecord:
        logger.info(f"Starting instance {instance_id} ...")
        self.client.start_instance(self.spec.region, instance_id)
        return self.waiter.wait(instance_id, InstanceState.Running, self.wait_timeout)

    def _add_tags(self, instance_id: str):
        tags = self.spec.tags
        if not tags:
            return
        logger.info(f"Adding tags {tags} to instance {instance_id} ...")
        try:
            self.client.add_tags(self.spec.region, instance_id, tags)
        except Exception as e:
            logger.warning(f"Failed to add tags {tags} to instance {instance_id}: {e}")

    def _hand_off(self, result: ProvisionResult):
        if self.remote_factory is None or not result.ip_address:
            return
        instance_id = result.instance.instance_id
        try:
            shell = self.remote_factory(result.ip_address, result.ssh_password)
            hand_off(
                shell,
                result.public_key,
                with_data_disk=self.spec.disk_size > 0,
                with_kernel_upgrade=self.spec.upgrade_kernel,
                restart=lambda: self.client.reboot_instance(self.spec.region, instance_id),
            )
        except Exception as e:
            logger.warning(f"Post-provision setup of {instance_id} failed: {e}")
