import logging
from functools import cached_property
from logging import Logger
from typing import Any, Dict, List, Optional
from kubernetes_asyncio.client import (
    ApiException,
    CoreV1Api,
    V1ConfigMap,
    V1ConfigMapVolumeSource,
    V1Container,
    V1ContainerPort,
    V1EnvVar,
    V1ObjectMeta,
    V1OwnerReference,
    V1Pod,
    V1PodSpec,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
    V1Volume,
    V1VolumeMount,
)
from kubernetes_asyncio.client.api_client import ApiClient

from sparkop.common.models.labels import Labels
from sparkop.common.models.refs import ObjectRef, RoleGroupRef
from sparkop.common.models.version import Version
from sparkop.resources.base import BaseResource
from sparkop.sensors import SensorDelegate
from sparkop.types.models.role import SparkRole, ROLE_ORDER, ROLE_START_SCRIPTS
from sparkop.types.models.sparkcluster_resources import SparkClusterResources
from sparkop.types.models.sparkcluster_spec import RoleGroupConfig, SparkClusterSpec
from sparkop.types.models.topology import DesiredTopology, RoleGroup
from sparkop.types.settings import Settings
from sparkop.utils.errors import (
    ApplyRoleGroupConfig,
    ApplyRoleService,
    CreatePodError,
    DeletePodError,
    InvalidPort,
    MasterRoleGroupDefaultExpected,
    ObjectHasNoVersion,
    ObjectMissingMetadataForOwnerRef,
    wrap_api_exception,
)
from sparkop.utils.helpers import render_env_file, render_properties_file

PORT_SETTINGS = (
    "master_port",
    "master_web_ui_port",
    "worker_port",
    "worker_web_ui_port",
    "history_ui_port",
)


class SparkCluster(BaseResource):
    """SparkCluster kubernetes resource."""

    logger: Logger
    conf: Settings
    sensor: SensorDelegate
    shared_api_client: ApiClient = None  # Shared across all SparkCluster instances
    master_client = None  # SparkMasterClient, set on startup

    KIND = "SparkCluster"
    GROUP_NAME = "spark.stackable.de"
    GROUP_VERSION = "v1"
    PLURAL_NAME = "sparkclusters"
    SPARK_CONTAINER_NAME = "spark"

    MASTER_ROLE_GROUP = "default"
    CONFIG_DIR = "/stackable/config"
    EVENTS_DIR = "/tmp/spark-events"
    SBIN_DIR = "/stackable/spark/sbin"
    CONFIG_VOLUME_NAME = "config-volume"
    DATA_VOLUME_NAME = "data-volume"
    SPARK_ENV_FILE = "spark-env.sh"
    SPARK_DEFAULTS_FILE = "spark-defaults.conf"
    MASTER_PORT_NAME = "spark"
    MASTER_WEB_UI_PORT_NAME = "http"

    DEFAULT_MASTER_PORT = 7077
    DEFAULT_MASTER_WEB_UI_PORT = 8080
    DEFAULT_WORKER_WEB_UI_PORT = 8081
    DEFAULT_HISTORY_UI_PORT = 18080
    MIN_PORT = 1024
    MAX_PORT = 65535

    uid: Optional[str]
    spec: SparkClusterSpec
    master_service_name: str

    def __init__(self, name: str, namespace: str, labels: Dict[str, str] = None):
        _labels = Labels.generate_default_labels(name, self.OPERATOR_NAME)
        _labels.update(labels or {})
        super().__init__(cluster=name, namespace=namespace, labels=_labels)

    @classmethod
    def from_spec(
        self,
        name: str,
        namespace: str,
        spec: SparkClusterSpec,
        uid: str = None,
        logger: Logger = None,
        sensor: SensorDelegate = None,
        conf: Settings = None,
    ) -> "SparkCluster":
        cluster = SparkCluster(name, namespace)
        cluster.logger = logger or logging.getLogger(__name__)
        cluster.sensor = sensor or SensorDelegate()
        cluster.conf = conf or Settings()
        cluster.uid = uid
        cluster.spec = spec
        cluster.master_service_name = SparkClusterResources.master_service_name(name)
        return cluster

    @cached_property
    def ref(self) -> ObjectRef:
        return ObjectRef(self.KIND, self.cluster, self.namespace)

    def role_group_ref(self, role: SparkRole, role_group: str) -> RoleGroupRef:
        return RoleGroupRef(self.ref, str(role), role_group)

    # ------------------------------------------------------------------
    # Desired state
    # ------------------------------------------------------------------

    @cached_property
    def version(self) -> Optional[Version]:
        if not self.spec.version:
            return None
        try:
            return Version.from_str(self.spec.version)
        except ValueError as ex:
            raise ObjectHasNoVersion(self.ref, str(ex))

    @cached_property
    def image(self) -> str:
        """Explicit image, or the default repository tagged with the spark version."""
        if self.spec.image:
            return self.spec.image
        if self.version is None:
            raise ObjectHasNoVersion(self.ref)
        return f"{self.conf.default_spark_image_repository}:{self.version}"

    @cached_property
    def desired_topology(self) -> DesiredTopology:
        """Desired role groups keyed by configuration hash.

        Raises:
            MasterRoleGroupDefaultExpected: no master role group named `default`.
            InvalidPort: a port setting is not an integer in the allowed range.
            ObjectHasNoVersion: neither image nor version is set.
        """
        master = self.spec.master
        if master is None or self.MASTER_ROLE_GROUP not in (master.role_groups or {}):
            raise MasterRoleGroupDefaultExpected(self.ref)

        groups = {}
        for role in ROLE_ORDER:
            role_spec = getattr(self.spec, role.spec_field, None)
            if role_spec is None:
                continue
            by_hash = {}
            for group_name, group_spec in (role_spec.role_groups or {}).items():
                config = group_spec.config or RoleGroupConfig()
                self.validate_ports(self.role_group_ref(role, group_name), config)
                config_hash = self.prepare_role_group_hash(
                    role, group_name, config, group_spec.node_selector
                )
                by_hash[config_hash] = RoleGroup(
                    role=role,
                    name=group_name,
                    config_hash=config_hash,
                    instances=group_spec.instances,
                    config=config,
                    node_selector=group_spec.node_selector,
                )
            groups[role] = by_hash
        return DesiredTopology(groups)

    def validate_ports(self, ref: RoleGroupRef, config: RoleGroupConfig):
        for setting in PORT_SETTINGS:
            value = getattr(config, setting, None)
            if value is not None:
                self.parse_port(ref, setting, value)

    def parse_port(self, ref: RoleGroupRef, setting: str, value: Any) -> int:
        if isinstance(value, bool):
            raise InvalidPort(ref, setting=setting, value=value)
        try:
            port = int(value)
        except (TypeError, ValueError):
            raise InvalidPort(ref, setting=setting, value=value)
        if isinstance(value, float) and value != port:
            raise InvalidPort(ref, setting=setting, value=value)
        if not self.MIN_PORT <= port <= self.MAX_PORT:
            raise InvalidPort(
                ref,
                f"must be within {self.MIN_PORT}-{self.MAX_PORT}",
                setting=setting,
                value=value,
            )
        return port

    def port(self, config: RoleGroupConfig, setting: str, default: Optional[int]):
        value = getattr(config, setting, None)
        return default if value is None else int(value)

    def prepare_role_group_hash(
        self,
        role: SparkRole,
        group_name: str,
        config: RoleGroupConfig,
        node_selector: Optional[Dict[str, str]],
    ) -> str:
        """Hash of everything that ends up in a pod. Instance counts are left out.

        Workers also carry the master URL in their command, and the spark
        version selects their start script, so both are part of the hash.
        """
        content = {
            "role": str(role),
            "roleGroup": group_name,
            "image": self.image,
            "version": str(self.version) if self.version else None,
            "config": config.as_dict(),
            "nodeSelector": node_selector or {},
        }
        if role == SparkRole.WORKER:
            content["masterUrl"] = self.master_url
        return self.compute_hash(content)

    @property
    def master_config(self) -> RoleGroupConfig:
        """Config of the master group named `default`, read from the cluster definition."""
        group_spec = self.spec.master.role_groups[self.MASTER_ROLE_GROUP]
        return group_spec.config or RoleGroupConfig()

    @property
    def master_port(self) -> int:
        return self.port(self.master_config, "master_port", self.DEFAULT_MASTER_PORT)

    @property
    def master_web_ui_port(self) -> int:
        return self.port(
            self.master_config,
            "master_web_ui_port",
            self.DEFAULT_MASTER_WEB_UI_PORT,
        )

    @property
    def master_url(self) -> str:
        return SparkClusterResources.master_url(
            self.cluster, self.namespace, self.master_port
        )

    # ------------------------------------------------------------------
    # Pods
    # ------------------------------------------------------------------

    def prepare_owner_reference(self) -> V1OwnerReference:
        if not self.uid or not self.cluster:
            raise ObjectMissingMetadataForOwnerRef(self.ref)
        return V1OwnerReference(
            api_version=f"{self.GROUP_NAME}/{self.GROUP_VERSION}",
            kind=self.KIND,
            name=self.cluster,
            uid=self.uid,
            controller=True,
            block_owner_deletion=True,
        )

    def prepare_role_group_labels(self, group: RoleGroup) -> Labels:
        return Labels.generate_role_group_labels(
            self.cluster,
            self.OPERATOR_NAME,
            str(group.role),
            group.name,
            group.config_hash,
        )

    def prepare_start_script(self, role: SparkRole) -> str:
        if role == SparkRole.WORKER and self.version is not None:
            return self.version.worker_script
        return ROLE_START_SCRIPTS[role]

    def prepare_command(self, role: SparkRole) -> List[str]:
        command = [f"{self.SBIN_DIR}/{self.prepare_start_script(role)}"]
        if role == SparkRole.WORKER:
            command.append(self.master_url)
        return command

    def prepare_container_ports(self, group: RoleGroup) -> List[V1ContainerPort]:
        config = group.config
        if group.role == SparkRole.MASTER:
            ports = {
                self.MASTER_PORT_NAME: self.port(config, "master_port", self.DEFAULT_MASTER_PORT),
                self.MASTER_WEB_UI_PORT_NAME: self.port(
                    config, "master_web_ui_port", self.DEFAULT_MASTER_WEB_UI_PORT
                ),
            }
        elif group.role == SparkRole.WORKER:
            ports = {
                self.MASTER_WEB_UI_PORT_NAME: self.port(
                    config, "worker_web_ui_port", self.DEFAULT_WORKER_WEB_UI_PORT
                ),
            }
        else:
            ports = {
                self.MASTER_WEB_UI_PORT_NAME: self.port(
                    config, "history_ui_port", self.DEFAULT_HISTORY_UI_PORT
                ),
            }
        return [
            V1ContainerPort(name=name, container_port=port, protocol="TCP")
            for name, port in ports.items()
        ]

    def prepare_volume_mounts(self) -> List[V1VolumeMount]:
        return [
            V1VolumeMount(name=self.CONFIG_VOLUME_NAME, mount_path=self.CONFIG_DIR),
            V1VolumeMount(name=self.DATA_VOLUME_NAME, mount_path=self.EVENTS_DIR),
        ]

    def prepare_volumes(self, group: RoleGroup) -> List[V1Volume]:
        args = (self.cluster, str(group.role), group.config_hash)
        return [
            V1Volume(
                name=self.CONFIG_VOLUME_NAME,
                config_map=V1ConfigMapVolumeSource(
                    name=SparkClusterResources.config_map_name(*args)
                ),
            ),
            V1Volume(
                name=self.DATA_VOLUME_NAME,
                config_map=V1ConfigMapVolumeSource(
                    name=SparkClusterResources.data_config_map_name(*args)
                ),
            ),
        ]

    def prepare_spark_container(self, group: RoleGroup) -> V1Container:
        return V1Container(
            name=self.SPARK_CONTAINER_NAME,
            image=self.image,
            command=self.prepare_command(group.role),
            env=[
                V1EnvVar(name="SPARK_CONF_DIR", value=self.CONFIG_DIR),
                V1EnvVar(name="SPARK_NO_DAEMONIZE", value="true"),
            ],
            ports=self.prepare_container_ports(group),
            volume_mounts=self.prepare_volume_mounts(),
        )

    def prepare_pod(self, group: RoleGroup) -> V1Pod:
        """Build a pod of a role group. Every call yields a new pod name."""
        return V1Pod(
            metadata=V1ObjectMeta(
                name=SparkClusterResources.pod_name(
                    self.cluster, str(group.role), group.config_hash
                ),
                namespace=self.namespace,
                labels=self.prepare_role_group_labels(group).as_dict(),
                owner_references=[self.prepare_owner_reference()],
            ),
            spec=V1PodSpec(
                containers=[self.prepare_spark_container(group)],
                volumes=self.prepare_volumes(group),
                node_selector=group.node_selector,
            ),
        )

    async def fetch_pods(self) -> List[V1Pod]:
        """All pods of this cluster, including ones with broken labels."""
        pods = await self.list_pods(
            self.core_v1_api,
            self.namespace,
            label_selector=self.labels.cluster_selectors().as_dict(),
        )
        return list(pods.items or [])

    async def create_role_group_pod(self, role: SparkRole, group: RoleGroup) -> V1Pod:
        pod = self.prepare_pod(group)
        try:
            created = await self.create_pod(self.core_v1_api, self.namespace, pod)
        except ApiException as ex:
            raise wrap_api_exception(
                CreatePodError, self.role_group_ref(role, group.name), ex
            ) from ex
        self.logger.info(f"Created pod {pod.metadata.name} for {role} group {group.name}")
        self.sensor.on_pod_created(self.cluster, self.namespace, str(role), group.config_hash)
        return created

    async def delete_role_group_pod(
        self,
        pod: V1Pod,
        role: Optional[SparkRole],
        config_hash: Optional[str],
        reason: str = "scale_down",
    ):
        name = pod.metadata.name
        try:
            await self.delete_pod(self.core_v1_api, name, pod.metadata.namespace or self.namespace)
        except ApiException as ex:
            raise wrap_api_exception(DeletePodError, self.ref, ex, pod_name=name) from ex
        self.logger.info(f"Deleted {role or 'unlabeled'} pod {name} with hash {config_hash} ({reason})")
        self.sensor.on_pod_deleted(
            self.cluster, self.namespace, str(role) if role else None, reason
        )

    def prepare_master_status_urls(self, pods: List[V1Pod]) -> List[str]:
        """Status endpoints of all master pods which have been assigned an IP."""
        urls = []
        for pod in pods:
            labels = pod.metadata.labels or {}
            if labels.get(Labels.SPARK_ROLE_LABEL) != str(SparkRole.MASTER):
                continue
            ip = pod.status.pod_ip if pod.status else None
            if not ip:
                continue
            group = self.desired_topology.group(
                SparkRole.MASTER, labels.get(Labels.SPARK_HASH_LABEL)
            )
            port = self.DEFAULT_MASTER_WEB_UI_PORT
            if group is not None:
                port = self.port(
                    group.config, "master_web_ui_port", self.DEFAULT_MASTER_WEB_UI_PORT
                )
            urls.append(SparkClusterResources.master_status_url(ip, port))
        return urls

    # ------------------------------------------------------------------
    # Role group config maps
    # ------------------------------------------------------------------

    def prepare_spark_env(self, group: RoleGroup) -> Dict[str, str]:
        config = group.config
        options = {
            "SPARK_NO_DAEMONIZE": "true",
            "SPARK_CONF_DIR": self.CONFIG_DIR,
        }
        if group.role == SparkRole.MASTER:
            options["SPARK_MASTER_PORT"] = str(
                self.port(config, "master_port", self.DEFAULT_MASTER_PORT)
            )
            options["SPARK_MASTER_WEBUI_PORT"] = str(
                self.port(config, "master_web_ui_port", self.DEFAULT_MASTER_WEB_UI_PORT)
            )
        elif group.role == SparkRole.WORKER:
            options["SPARK_WORKER_WEBUI_PORT"] = str(
                self.port(config, "worker_web_ui_port", self.DEFAULT_WORKER_WEB_UI_PORT)
            )
            if config.worker_port is not None:
                options["SPARK_WORKER_PORT"] = str(int(config.worker_port))
            if config.worker_cores is not None:
                options["SPARK_WORKER_CORES"] = str(config.worker_cores)
            if config.worker_memory is not None:
                options["SPARK_WORKER_MEMORY"] = config.worker_memory
        if config.daemon_memory is not None:
            options["SPARK_DAEMON_MEMORY"] = config.daemon_memory
        options.update(config.spark_env or {})
        return options

    def prepare_spark_defaults(self, group: RoleGroup) -> Dict[str, str]:
        config = group.config
        options = {}
        if config.event_log_enabled is not None:
            options["spark.eventLog.enabled"] = str(config.event_log_enabled).lower()
        if config.event_log_dir is not None:
            options["spark.eventLog.dir"] = config.event_log_dir
        if group.role == SparkRole.HISTORY_SERVER:
            options["spark.history.ui.port"] = str(
                self.port(config, "history_ui_port", self.DEFAULT_HISTORY_UI_PORT)
            )
            options["spark.history.fs.logDirectory"] = (
                config.history_log_directory or self.EVENTS_DIR
            )
        options.update(config.spark_defaults or {})
        return options

    def prepare_role_group_config_maps(self, group: RoleGroup) -> List[V1ConfigMap]:
        """Config directory and data directory config maps of a role group."""
        args = (self.cluster, str(group.role), group.config_hash)
        labels = self.prepare_role_group_labels(group).as_dict()
        contents = {
            SparkClusterResources.config_map_name(*args): {
                self.SPARK_ENV_FILE: render_env_file(self.prepare_spark_env(group)),
                self.SPARK_DEFAULTS_FILE: render_properties_file(
                    self.prepare_spark_defaults(group)
                ),
            },
            SparkClusterResources.data_config_map_name(*args): {},
        }
        config_maps = []
        for name, data in contents.items():
            config_maps.append(
                V1ConfigMap(
                    metadata=V1ObjectMeta(
                        name=name,
                        namespace=self.namespace,
                        labels=labels,
                        annotations=self.prepare_hash_annotation(
                            self.compute_hash({"data": data})
                        ),
                        owner_references=[self.prepare_owner_reference()],
                    ),
                    data=data,
                )
            )
        return config_maps

    async def sync_config_map(self, ref: RoleGroupRef, config_map: V1ConfigMap):
        """Create the config map, or replace it when its content hash differs."""
        name = config_map.metadata.name
        try:
            actual = await self.fetch_config_map(self.core_v1_api, name, self.namespace)
            if actual is None:
                await self.create_config_map(self.core_v1_api, self.namespace, config_map)
                operation = "created"
            elif (actual.metadata.annotations or {}).get(
                self.HASH_ANNOTATION
            ) != config_map.metadata.annotations[self.HASH_ANNOTATION]:
                await self.replace_config_map(
                    self.core_v1_api, name, self.namespace, config_map
                )
                operation = "updated"
            else:
                operation = "unchanged"
        except ApiException as ex:
            raise wrap_api_exception(ApplyRoleGroupConfig, ref, ex) from ex
        if operation != "unchanged":
            self.logger.info(f"ConfigMap {name} {operation}")
        self.sensor.on_resource_sync(
            self.cluster, self.namespace, name, "config_map", operation
        )

    async def sync_role_group_config_maps(self):
        topology = self.desired_topology
        for role in topology.roles():
            for group in topology.role_groups(role).values():
                ref = self.role_group_ref(role, group.name)
                for config_map in self.prepare_role_group_config_maps(group):
                    await self.sync_config_map(ref, config_map)

    # ------------------------------------------------------------------
    # Master service
    # ------------------------------------------------------------------

    def prepare_master_service(self) -> V1Service:
        selector = (
            self.labels.cluster_selectors()
            .include_spark_role(str(SparkRole.MASTER))
            .include_spark_role_group(self.MASTER_ROLE_GROUP)
        )
        annotations = {}
        service = V1Service(
            metadata=V1ObjectMeta(
                name=self.master_service_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
                annotations=annotations,
                owner_references=[self.prepare_owner_reference()],
            ),
            spec=V1ServiceSpec(
                type="ClusterIP",
                selector=selector.as_dict(),
                ports=[
                    V1ServicePort(
                        name=self.MASTER_PORT_NAME,
                        port=self.master_port,
                        target_port=self.master_port,
                        protocol="TCP",
                    ),
                    V1ServicePort(
                        name=self.MASTER_WEB_UI_PORT_NAME,
                        port=self.master_web_ui_port,
                        target_port=self.master_web_ui_port,
                        protocol="TCP",
                    ),
                ],
            ),
        )
        annotations.update(
            self.prepare_hash_annotation(self.compute_hash(service.spec.to_dict()))
        )
        return service

    async def sync_master_service(self):
        service = self.prepare_master_service()
        ref = self.role_group_ref(SparkRole.MASTER, self.MASTER_ROLE_GROUP)
        try:
            actual = await self.fetch_service(
                self.core_v1_api, self.master_service_name, self.namespace
            )
            if actual is None:
                await self.create_service(self.core_v1_api, self.namespace, service)
                operation = "created"
            elif (actual.metadata.annotations or {}).get(
                self.HASH_ANNOTATION
            ) != service.metadata.annotations[self.HASH_ANNOTATION]:
                await self.patch_service(
                    self.core_v1_api, self.master_service_name, self.namespace, service
                )
                operation = "updated"
            else:
                operation = "unchanged"
        except ApiException as ex:
            raise wrap_api_exception(ApplyRoleService, ref, ex) from ex
        if operation != "unchanged":
            self.logger.info(f"Service {self.master_service_name} {operation}")
        self.sensor.on_resource_sync(
            self.cluster, self.namespace, self.master_service_name, "service", operation
        )

    async def synchronize(self):
        """Bring config maps and the master service in line with the cluster definition."""
        await self.sync_role_group_config_maps()
        await self.sync_master_service()

    @cached_property
    def api_client(self) -> ApiClient:
        # Use the shared API client if available, otherwise create a new one
        if self.shared_api_client is not None:
            return self.shared_api_client
        return ApiClient()

    @cached_property
    def core_v1_api(self) -> CoreV1Api:
        return CoreV1Api(self.api_client)
