"""Unit tests for replica count convergence."""

import pytest
from unittest.mock import AsyncMock, Mock
from sparkop.resources.replicas import ActionKind, ReplicaReconciler
from sparkop.types.models.role import SparkRole
from sparkop.types.models.topology import DesiredTopology

MASTER, WORKER = SparkRole.MASTER, SparkRole.WORKER


@pytest.fixture
def reconciler():
    cluster = Mock()
    cluster.create_role_group_pod = AsyncMock()
    cluster.delete_role_group_pod = AsyncMock()
    return ReplicaReconciler(cluster)


def groups_of(role, counts):
    return DesiredTopology.from_instances({role: counts}).role_groups(role)


class TestPlan:
    """Tests for planning one step per bucket."""

    def test_missing_pod_is_created(self, reconciler):
        actions = reconciler.plan(MASTER, {}, groups_of(MASTER, {"h1": 1}))

        assert len(actions) == 1
        assert actions[0].kind == ActionKind.CREATE
        assert (actions[0].role, actions[0].config_hash) == (MASTER, "h1")

    def test_excess_pod_is_deleted(self, reconciler, make_pod):
        first, second = make_pod("m-1", MASTER, "h1"), make_pod("m-2", MASTER, "h1")
        actions = reconciler.plan(
            MASTER, {"h1": [first, second]}, groups_of(MASTER, {"h1": 1})
        )

        assert len(actions) == 1
        assert actions[0].kind == ActionKind.DELETE
        assert actions[0].pod is first

    def test_pending_pod_is_deleted_first(self, reconciler, make_pod):
        """A pod that never got scheduled is the cheapest one to give up."""
        running = make_pod("w-a", WORKER, "w1")
        pending = make_pod("w-b", WORKER, "w1", phase="Pending")
        actions = reconciler.plan(
            WORKER, {"w1": [running, pending]}, groups_of(WORKER, {"w1": 1})
        )

        assert [(a.kind, a.pod) for a in actions] == [(ActionKind.DELETE, pending)]

    def test_terminating_pods_are_not_counted(self, reconciler, make_pod):
        pods = [make_pod("m-1", MASTER, "h1"), make_pod("m-2", MASTER, "h1", deleting=True)]
        actions = reconciler.plan(MASTER, {"h1": pods}, groups_of(MASTER, {"h1": 1}))

        assert actions == []

    def test_terminating_pod_is_replaced(self, reconciler, make_pod):
        pods = [make_pod("m-1", MASTER, "h1", deleting=True)]
        actions = reconciler.plan(MASTER, {"h1": pods}, groups_of(MASTER, {"h1": 1}))

        assert [a.kind for a in actions] == [ActionKind.CREATE]

    def test_matching_count_needs_nothing(self, reconciler, make_pod):
        actions = reconciler.plan(
            WORKER, {"w1": [make_pod("w", WORKER, "w1")]}, groups_of(WORKER, {"w1": 1})
        )
        assert actions == []

    def test_one_step_per_bucket(self, reconciler, make_pod):
        """Large gaps are closed one pod per pass."""
        pods = [make_pod(f"w-{i}", WORKER, "w1") for i in range(5)]
        actions = reconciler.plan(
            WORKER, {"w1": pods, "w2": []}, groups_of(WORKER, {"w1": 1, "w2": 4})
        )

        assert sorted((a.config_hash, a.kind) for a in actions) == [
            ("w1", ActionKind.DELETE),
            ("w2", ActionKind.CREATE),
        ]

    def test_buckets_are_independent(self, reconciler, make_pod):
        """Scaling one configuration never touches pods of another."""
        w1 = [make_pod("w1-a", WORKER, "w1"), make_pod("w1-b", WORKER, "w1")]
        w2 = [make_pod("w2-a", WORKER, "w2")]
        actions = reconciler.plan(
            WORKER, {"w1": w1, "w2": w2}, groups_of(WORKER, {"w1": 1, "w2": 1})
        )

        assert len(actions) == 1
        assert actions[0].pod in w1

    def test_zero_instances_drains_bucket(self, reconciler, make_pod):
        actions = reconciler.plan(
            WORKER, {"w1": [make_pod("w", WORKER, "w1")]}, groups_of(WORKER, {"w1": 0})
        )
        assert [a.kind for a in actions] == [ActionKind.DELETE]


class TestReconcile:
    """Tests for executing the plan."""

    @pytest.mark.asyncio
    async def test_create_goes_through_cluster(self, reconciler):
        groups = groups_of(MASTER, {"h1": 1})
        actions = await reconciler.reconcile(MASTER, {}, groups)

        reconciler.cluster.create_role_group_pod.assert_awaited_once_with(
            MASTER, groups["h1"]
        )
        reconciler.cluster.delete_role_group_pod.assert_not_called()
        assert len(actions) == 1

    @pytest.mark.asyncio
    async def test_delete_goes_through_cluster(self, reconciler, make_pod):
        pods = [make_pod("m-1", MASTER, "h1"), make_pod("m-2", MASTER, "h1")]
        await reconciler.reconcile(MASTER, {"h1": pods}, groups_of(MASTER, {"h1": 1}))

        reconciler.cluster.delete_role_group_pod.assert_awaited_once_with(
            pods[0], MASTER, "h1", reason="scale_down"
        )
        reconciler.cluster.create_role_group_pod.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_propagates(self, reconciler):
        reconciler.cluster.create_role_group_pod.side_effect = RuntimeError("api down")

        with pytest.raises(RuntimeError):
            await reconciler.reconcile(MASTER, {}, groups_of(MASTER, {"h1": 1}))
