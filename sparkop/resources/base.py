import mmh3
import hashlib
from typing import Any, Dict, Union
from sparkop.utils.helpers import canonicalize_dict
from sparkop.common.models.labels import Labels
from sparkop.utils.errors import already_exists_error
from kubernetes_asyncio.client import (
    ApiException,
    CoreV1Api,
    V1ConfigMap,
    V1DeleteOptions,
    V1Pod,
    V1PodList,
    V1Service,
)


class BaseResource:
    """Base resource model."""

    OPERATOR_NAME = "spark-operator"
    HASH_ANNOTATION = "spark.stackable.de/resource-hash"

    _cluster: str
    _namespace: str
    _labels: Labels

    def __init__(self, cluster: str, namespace: str, labels: Labels):
        self._cluster = cluster
        self._namespace = namespace
        self._labels = labels

    @property
    def cluster(self) -> str:
        return self._cluster

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def labels(self) -> Labels:
        return self._labels

    def compute_hash(self, data: Any) -> str:
        """Compute a murmur3 hash, shortened to 16 hex characters so it fits in a label."""
        if isinstance(data, dict):
            _data = canonicalize_dict(data)
        elif isinstance(data, str):
            _data = data
        else:
            raise ValueError(f"Hash of {type(data)} is not supported.")
        mumur_str = str(mmh3.hash128(_data))

        hash_obj = hashlib.sha256(mumur_str.encode("utf-8"))
        return hash_obj.hexdigest()[:16]

    def prepare_hash_annotation(self, hash: Union[str, int]) -> Dict[str, str]:
        """Prepare hash annotation for k8s resources."""
        return {self.HASH_ANNOTATION: str(hash)}

    async def fetch_service(
        self, core_v1_api: CoreV1Api, name: str, namespace: str
    ) -> V1Service:
        """Retrieve the latest state of a service"""
        try:
            return await core_v1_api.read_namespaced_service(
                name=name, namespace=namespace
            )
        except ApiException as ex:
            if ex.status == 404:
                return None
            raise

    async def create_service(
        self, core_v1_api: CoreV1Api, namespace: str, service: V1Service
    ) -> None:
        try:
            await core_v1_api.create_namespaced_service(
                namespace=namespace, body=service
            )
        except ApiException as ex:
            if already_exists_error(ex):
                await self.patch_service(
                    core_v1_api,
                    name=service.metadata.name,
                    namespace=namespace,
                    service=service,
                )
            else:
                raise

    async def patch_service(
        self, core_v1_api: CoreV1Api, name: str, namespace: str, service: V1Service
    ):
        await core_v1_api.patch_namespaced_service(
            name=name,
            namespace=namespace,
            body=service,
        )

    async def fetch_config_map(
        self, core_v1_api: CoreV1Api, name: str, namespace: str
    ) -> V1ConfigMap:
        try:
            return await core_v1_api.read_namespaced_config_map(
                name=name, namespace=namespace
            )
        except ApiException as ex:
            if ex.status == 404:
                return None
            raise

    async def create_config_map(
        self, core_v1_api: CoreV1Api, namespace: str, config_map: V1ConfigMap
    ):
        try:
            await core_v1_api.create_namespaced_config_map(
                namespace=namespace, body=config_map
            )
        except ApiException as ex:
            if already_exists_error(ex):
                await self.replace_config_map(
                    core_v1_api,
                    name=config_map.metadata.name,
                    namespace=namespace,
                    config_map=config_map,
                )
            else:
                raise

    async def replace_config_map(
        self, core_v1_api: CoreV1Api, name: str, namespace: str, config_map: V1ConfigMap
    ):
        await core_v1_api.replace_namespaced_config_map(
            name=name,
            namespace=namespace,
            body=config_map,
        )

    async def create_pod(
        self, core_v1_api: CoreV1Api, namespace: str, pod: V1Pod
    ) -> V1Pod:
        return await core_v1_api.create_namespaced_pod(namespace=namespace, body=pod)

    async def delete_pod(
        self,
        core_v1_api: CoreV1Api,
        name: str,
        namespace: str,
        delete_options: V1DeleteOptions = None,
    ):
        """Delete a pod. A pod which is already gone counts as deleted.

        Args:
            core_v1_api: CoreV1Api instance
            name: Name of the pod to delete
            namespace: Namespace of the pod
            delete_options: Optional delete options (e.g., grace period, propagation policy)
        """
        try:
            await core_v1_api.delete_namespaced_pod(
                name=name, namespace=namespace, body=delete_options
            )
        except ApiException as ex:
            if ex.status == 404:
                return
            raise

    async def list_pods(
        self, core_v1_api: CoreV1Api, namespace: str, label_selector: dict = None
    ) -> V1PodList:
        """List pods in namespace, optionally filtered by label selector.

        Args:
            core_v1_api: CoreV1Api instance
            namespace: Namespace to list pods in
            label_selector: Dictionary of label key-value pairs to filter pods

        Returns:
            V1PodList object containing matching pods
        """
        label_selector_str = None
        if label_selector:
            label_selector_str = ",".join(
                [f"{k}={v}" for k, v in label_selector.items()]
            )

        return await core_v1_api.list_namespaced_pod(
            namespace=namespace, label_selector=label_selector_str
        )
