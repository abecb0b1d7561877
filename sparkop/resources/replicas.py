"""Converging replica counts of (role, configuration hash) buckets."""
import logging
from enum import Enum
from typing import Dict, List, NamedTuple, Optional
from kubernetes_asyncio.client import V1Pod

from sparkop.resources.inventory import pod_pending, pod_terminating
from sparkop.types.models.role import SparkRole
from sparkop.types.models.topology import RoleGroup

log = logging.getLogger(__name__)


class ActionKind(str, Enum):
    CREATE = "create"
    DELETE = "delete"


class ReplicaAction(NamedTuple):
    kind: ActionKind
    role: SparkRole
    config_hash: str
    group: Optional[RoleGroup] = None
    pod: Optional[V1Pod] = None


class ReplicaReconciler:
    """Moves every bucket of a role one step closer to its desired instances.

    At most one pod is created or deleted per bucket and pass; the caller runs
    further passes until nothing is left to do.
    """

    def __init__(self, cluster, logger: logging.Logger = None):
        self.cluster = cluster
        self.logger = logger or log

    def select_excess_pod(self, pods: List[V1Pod]) -> V1Pod:
        """Pick the pod to remove on scale-down.

        Pods which never got scheduled go first, so a pod stuck in `Pending`
        cannot hold its bucket forever. Otherwise the first pod in identity
        order is taken.
        """
        pending = [pod for pod in pods if pod_pending(pod)]
        return (pending or pods)[0]

    def plan(
        self,
        role: SparkRole,
        buckets: Dict[str, List[V1Pod]],
        groups: Dict[str, RoleGroup],
    ) -> List[ReplicaAction]:
        actions = []
        for config_hash, group in groups.items():
            # terminating pods are gone already as far as counts are concerned
            pods = [pod for pod in buckets.get(config_hash, []) if not pod_terminating(pod)]
            current, desired = len(pods), group.instances
            self.logger.info(
                f"{role} group {group.name} ({config_hash}): "
                f"currently {current} pods, desired {desired}"
            )
            if current > desired:
                victim = self.select_excess_pod(pods)
                actions.append(
                    ReplicaAction(ActionKind.DELETE, role, config_hash, group, victim)
                )
            elif current < desired:
                actions.append(ReplicaAction(ActionKind.CREATE, role, config_hash, group))
        return actions

    async def reconcile(
        self,
        role: SparkRole,
        buckets: Dict[str, List[V1Pod]],
        groups: Dict[str, RoleGroup],
    ) -> List[ReplicaAction]:
        """Execute the plan for one role and return the actions taken."""
        actions = self.plan(role, buckets, groups)
        await self.execute(role, actions)
        return actions

    async def execute(self, role: SparkRole, actions: List[ReplicaAction]) -> None:
        for action in actions:
            if action.kind == ActionKind.DELETE:
                await self.cluster.delete_role_group_pod(
                    action.pod, role, action.config_hash, reason="scale_down"
                )
            else:
                await self.cluster.create_role_group_pod(role, action.group)
