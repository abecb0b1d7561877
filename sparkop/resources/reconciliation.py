"""One reconciliation pass over a SparkCluster.

A pass fetches the pods of the cluster, drops the ones which do not fit the
desired topology, syncs the role group config maps and master service, and
then moves every (role, configuration hash) bucket one step towards its
desired instance count. The outcome is reported as a `ContinuationSignal`.
"""
import logging
from enum import Enum
from typing import Dict, List, NamedTuple, Optional
from kubernetes_asyncio.client import V1Pod

from sparkop.resources.inventory import (
    ClassifiedInventory,
    PodInventoryClassifier,
    RejectedPod,
    pod_identity,
    pod_pending,
    pod_terminating,
    stale_pods,
    summarize,
)
from sparkop.resources.replicas import ActionKind, ReplicaAction, ReplicaReconciler
from sparkop.types.models.master_state import Application
from sparkop.types.models.role import ROLE_ORDER, SparkRole
from sparkop.types.settings import Settings
from sparkop.web.prober import ClusterStateProber

log = logging.getLogger(__name__)


class SignalType(str, Enum):
    CONTINUE = "continue"
    REQUEUE_AFTER = "requeue_after"
    DONE = "done"

    def __str__(self) -> str:
        return self.value


class ContinuationSignal(NamedTuple):
    """What the runtime should do after a pass."""

    type: SignalType
    delay: Optional[float] = None
    message: str = ""

    @classmethod
    def proceed(cls, message: str = "") -> "ContinuationSignal":
        return cls(SignalType.CONTINUE, None, message)

    @classmethod
    def requeue_after(cls, delay: float, message: str = "") -> "ContinuationSignal":
        return cls(SignalType.REQUEUE_AFTER, delay, message)

    @classmethod
    def done(cls) -> "ContinuationSignal":
        return cls(SignalType.DONE)

    @property
    def is_done(self) -> bool:
        return self.type == SignalType.DONE


def pod_in_transition(pod: V1Pod) -> bool:
    """True for pods which are terminating or not scheduled and started yet."""
    return pod_terminating(pod) or pod_pending(pod)


class ReconciliationOrchestrator:
    """Runs classification and replica reconciliation for one cluster."""

    prober: Optional[ClusterStateProber]
    conf: Settings

    role_status: Dict[str, Dict]
    rejected: List[RejectedPod]
    actions: List[ReplicaAction]

    def __init__(
        self,
        cluster,
        prober: ClusterStateProber = None,
        conf: Settings = None,
        logger: logging.Logger = None,
    ):
        self.cluster = cluster
        self.prober = prober
        self.conf = conf or Settings()
        self.logger = logger or log
        self.classifier = PodInventoryClassifier(cluster, logger=self.logger)
        self.reconciler = ReplicaReconciler(cluster, logger=self.logger)
        self.role_status = {}
        self.rejected = []
        self.actions = []

    async def running_applications(self, pods: List[V1Pod]) -> List[Application]:
        endpoints = self.cluster.prepare_master_status_urls(pods)
        return await self.prober.probe_running_applications(endpoints)

    async def disruption_hold(self, pods: List[V1Pod]) -> Optional[ContinuationSignal]:
        """Defer removal of pods with outdated configuration while applications run."""
        if not self.conf.disruption_gate_enabled or self.prober is None:
            return None
        stale = stale_pods(self.rejected)
        if not stale:
            return None
        running = await self.running_applications(pods)
        if not running:
            return None
        names = ", ".join(app.name for app in running)
        return ContinuationSignal.requeue_after(
            self.conf.requeue_delay_seconds,
            f"Deferring replacement of {len(stale)} pods with outdated configuration, "
            f"{len(running)} applications are running ({names})",
        )

    def readiness_hold(
        self, role: SparkRole, inventory: ClassifiedInventory
    ) -> Optional[ContinuationSignal]:
        if not self.conf.pod_readiness_gate_enabled:
            return None
        busy = [pod.metadata.name for pod in inventory.pods(role) if pod_in_transition(pod)]
        if not busy:
            return None
        return ContinuationSignal.requeue_after(
            self.conf.requeue_delay_seconds,
            f"Waiting for {role} pods to settle: {', '.join(busy)}",
        )

    async def reconcile(self) -> ContinuationSignal:
        topology = self.cluster.desired_topology
        pods = await self.cluster.fetch_pods()

        inventory, self.rejected = self.classifier.partition(pods, topology)
        self.role_status = summarize(inventory, topology)

        purge = self.rejected
        deferred = await self.disruption_hold(pods)
        if deferred is not None:
            self.logger.info(deferred.message)
            held = {pod_identity(entry.pod) for entry in stale_pods(self.rejected)}
            purge = [r for r in self.rejected if pod_identity(r.pod) not in held]

        await self.classifier.purge(purge)
        await self.cluster.synchronize()

        self.actions = []
        for role in ROLE_ORDER:
            groups = topology.role_groups(role)
            if groups is None:
                self.logger.debug(f"Role {role} is not configured, skipping")
                continue
            actions = self.reconciler.plan(role, inventory.buckets(role), groups)
            hold = self.readiness_hold(role, inventory)
            if hold is not None:
                # scale-down may be what unblocks the role, only creation waits
                deletions = [a for a in actions if a.kind == ActionKind.DELETE]
                await self.reconciler.execute(role, deletions)
                self.actions.extend(deletions)
                self.logger.info(hold.message)
                return hold
            await self.reconciler.execute(role, actions)
            self.actions.extend(actions)

        if deferred is not None:
            return deferred
        changes = len(purge) + len(self.actions)
        if changes:
            return ContinuationSignal.proceed(f"{changes} pods created or deleted")
        return ContinuationSignal.done()
