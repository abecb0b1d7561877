"""Sorting observed pods into (role, configuration hash) buckets."""
import logging
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple
from kubernetes_asyncio.client import V1Pod

from sparkop.common.models.labels import Labels
from sparkop.types.models.role import SparkRole, ROLE_ORDER
from sparkop.types.models.topology import DesiredTopology

log = logging.getLogger(__name__)


class RejectReason(str, Enum):
    MISSING_LABELS = "missing_labels"
    UNKNOWN_ROLE = "unknown_role"
    STALE_CONFIGURATION = "stale_configuration"

    def __str__(self) -> str:
        return self.value


class RejectedPod(NamedTuple):
    """A pod which does not belong to the desired topology and has to go."""

    pod: V1Pod
    reason: RejectReason
    role: Optional[SparkRole] = None
    config_hash: Optional[str] = None

    @property
    def name(self) -> str:
        return self.pod.metadata.name


def pod_identity(pod: V1Pod) -> Tuple[str, str]:
    return (pod.metadata.namespace or "", pod.metadata.name or "")


def pod_terminating(pod: V1Pod) -> bool:
    return pod.metadata.deletion_timestamp is not None


def pod_pending(pod: V1Pod) -> bool:
    """True for pods which are not scheduled and started yet."""
    phase = pod.status.phase if pod.status else None
    return phase in (None, "Pending")


class ClassifiedInventory:
    """Pods indexed by role and configuration hash.

    Pods live in a flat list; the index only stores positions into it. Within
    a bucket pods keep the order they were added in.
    """

    _pods: List[V1Pod]
    _index: Dict[SparkRole, Dict[str, List[int]]]

    def __init__(self) -> None:
        self._pods = []
        self._index = {}

    def add(self, role: SparkRole, config_hash: str, pod: V1Pod) -> None:
        self._pods.append(pod)
        self._index.setdefault(role, {}).setdefault(config_hash, []).append(
            len(self._pods) - 1
        )

    def bucket(self, role: SparkRole, config_hash: str) -> List[V1Pod]:
        positions = self._index.get(role, {}).get(config_hash, [])
        return [self._pods[i] for i in positions]

    def buckets(self, role: SparkRole) -> Dict[str, List[V1Pod]]:
        """All buckets of a role, keyed by configuration hash."""
        return {
            config_hash: [self._pods[i] for i in positions]
            for config_hash, positions in self._index.get(role, {}).items()
        }

    def pods(self, role: SparkRole) -> Iterator[V1Pod]:
        for positions in self._index.get(role, {}).values():
            for i in positions:
                yield self._pods[i]

    def count(self, role: SparkRole, config_hash: Optional[str] = None) -> int:
        if config_hash is not None:
            return len(self._index.get(role, {}).get(config_hash, []))
        return sum(len(positions) for positions in self._index.get(role, {}).values())

    def __len__(self) -> int:
        return len(self._pods)

    def __repr__(self) -> str:
        counts = {
            str(role): {h: len(p) for h, p in by_hash.items()}
            for role, by_hash in self._index.items()
        }
        return f"ClassifiedInventory<{counts}>"


class PodInventoryClassifier:
    """Validates observed pods against the desired topology.

    A pod is kept when it carries a known role label and a hash label whose
    value is one of the desired hashes of that role. Everything else is
    rejected and deleted by `purge`.
    """

    def __init__(self, cluster, logger: logging.Logger = None):
        self.cluster = cluster
        self.logger = logger or log

    def partition(
        self, pods: List[V1Pod], topology: DesiredTopology
    ) -> Tuple[ClassifiedInventory, List[RejectedPod]]:
        inventory = ClassifiedInventory()
        rejected = []
        for pod in sorted(pods, key=pod_identity):
            labels = pod.metadata.labels or {}
            role_label = labels.get(Labels.SPARK_ROLE_LABEL)
            config_hash = labels.get(Labels.SPARK_HASH_LABEL)
            if role_label is None or config_hash is None:
                rejected.append(
                    RejectedPod(pod, RejectReason.MISSING_LABELS, None, config_hash)
                )
                continue
            try:
                role = SparkRole.from_str(role_label)
            except ValueError:
                rejected.append(
                    RejectedPod(pod, RejectReason.UNKNOWN_ROLE, None, config_hash)
                )
                continue
            if config_hash not in topology.hashes(role):
                rejected.append(
                    RejectedPod(pod, RejectReason.STALE_CONFIGURATION, role, config_hash)
                )
                continue
            inventory.add(role, config_hash, pod)
        return inventory, rejected

    async def purge(self, rejected: List[RejectedPod]) -> None:
        """Delete rejected pods. The first failing deletion aborts with DeletePodError."""
        for entry in rejected:
            self.logger.error(
                f"Pod {entry.name} does not match the desired topology "
                f"({entry.reason}, role={entry.role}, hash={entry.config_hash}), deleting it"
            )
            await self.cluster.delete_role_group_pod(
                entry.pod, entry.role, entry.config_hash, reason=str(entry.reason)
            )

    async def classify(
        self, pods: List[V1Pod], topology: DesiredTopology
    ) -> Tuple[ClassifiedInventory, List[RejectedPod]]:
        inventory, rejected = self.partition(pods, topology)
        await self.purge(rejected)
        return inventory, rejected


def stale_pods(rejected: List[RejectedPod]) -> List[RejectedPod]:
    """Pods with outdated configuration which are not on their way out already."""
    return [
        r
        for r in rejected
        if r.reason == RejectReason.STALE_CONFIGURATION and not pod_terminating(r.pod)
    ]


def summarize(inventory: ClassifiedInventory, topology: DesiredTopology) -> Dict[str, Dict]:
    """Current and desired instances of every configured role."""
    return {
        str(role): {
            "current": inventory.count(role),
            "desired": topology.instances(role),
        }
        for role in ROLE_ORDER
        if role in topology
    }
