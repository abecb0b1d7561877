"""Shared fixtures for unit tests."""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from kubernetes_asyncio.client import V1ObjectMeta, V1Pod, V1PodStatus
from sparkop.common.models.labels import Labels
from sparkop.types.models.role import SparkRole


def _make_pod(
    name,
    role=None,
    config_hash=None,
    namespace="test-ns",
    phase="Running",
    deleting=False,
    pod_ip=None,
    labels=None,
):
    _labels = {Labels.KUBERNETES_INSTANCE_LABEL: "spark"}
    if role is not None:
        _labels[Labels.SPARK_ROLE_LABEL] = str(role)
    if config_hash is not None:
        _labels[Labels.SPARK_HASH_LABEL] = config_hash
    _labels.update(labels or {})
    return V1Pod(
        metadata=V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=_labels,
            deletion_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc) if deleting else None,
        ),
        status=V1PodStatus(phase=phase, pod_ip=pod_ip),
    )


class FakeCluster:
    """Stands in for SparkCluster: keeps pods in memory instead of the API server."""

    def __init__(self, topology, pods=None):
        self.desired_topology = topology
        self.pods = list(pods or [])
        self.created = []
        self.deleted = []
        self.master_status_urls = []
        self.synchronize = AsyncMock()
        self._counter = 0

    async def fetch_pods(self):
        return list(self.pods)

    async def create_role_group_pod(self, role: SparkRole, group):
        self._counter += 1
        pod = _make_pod(
            f"spark-{role}-{group.config_hash}-{self._counter:04d}",
            role,
            group.config_hash,
        )
        self.pods.append(pod)
        self.created.append((role, group.config_hash))
        return pod

    async def delete_role_group_pod(self, pod, role, config_hash, reason="scale_down"):
        self.pods = [p for p in self.pods if p.metadata.name != pod.metadata.name]
        self.deleted.append((pod.metadata.name, reason))

    def prepare_master_status_urls(self, pods):
        return list(self.master_status_urls)

    def count(self, role, config_hash):
        return sum(
            1
            for pod in self.pods
            if pod.metadata.labels.get(Labels.SPARK_ROLE_LABEL) == str(role)
            and pod.metadata.labels.get(Labels.SPARK_HASH_LABEL) == config_hash
        )


@pytest.fixture
def make_pod():
    """Factory for observed pods."""
    return _make_pod


@pytest.fixture
def fake_cluster():
    """Factory for in-memory clusters."""
    return FakeCluster
