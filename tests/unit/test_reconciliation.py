"""Unit tests for reconciliation passes and their continuation signals."""

import pytest
from unittest.mock import AsyncMock, Mock
from sparkop.resources.reconciliation import (
    ContinuationSignal,
    ReconciliationOrchestrator,
    SignalType,
    pod_in_transition,
)
from sparkop.types.models.master_state import Application, ApplicationState
from sparkop.types.models.role import SparkRole
from sparkop.types.models.topology import DesiredTopology
from sparkop.types.settings import Settings

MASTER, WORKER, HISTORY = SparkRole.MASTER, SparkRole.WORKER, SparkRole.HISTORY_SERVER

MAX_PASSES = 50


@pytest.fixture
def conf():
    return Settings(requeue_delay_seconds=7)


def running_app(name="etl"):
    return Application(
        id=f"app-{name}",
        start_time=0,
        name=name,
        cores=1,
        memory_per_slave=1024,
        submit_date="Mon Jan 01 00:00:00 UTC 2024",
        state=ApplicationState.RUNNING,
        duration=10,
    )


async def converge(orchestrator, max_passes=MAX_PASSES):
    """Run passes until the cluster reports done, returning all signals."""
    signals = []
    for _ in range(max_passes):
        signal = await orchestrator.reconcile()
        signals.append(signal)
        if signal.is_done:
            return signals
    raise AssertionError(f"no convergence after {max_passes} passes: {signals[-3:]}")


class TestContinuationSignal:
    """Tests for signal construction."""

    def test_constructors(self):
        assert ContinuationSignal.done().type == SignalType.DONE
        assert ContinuationSignal.done().is_done
        assert ContinuationSignal.proceed("x") == (SignalType.CONTINUE, None, "x")
        assert ContinuationSignal.requeue_after(5, "y") == (SignalType.REQUEUE_AFTER, 5, "y")


class TestPodInTransition:
    def test_running_pod_is_settled(self, make_pod):
        assert not pod_in_transition(make_pod("a", MASTER, "h1"))

    def test_pending_pod(self, make_pod):
        assert pod_in_transition(make_pod("a", MASTER, "h1", phase="Pending"))

    def test_terminating_pod(self, make_pod):
        assert pod_in_transition(make_pod("a", MASTER, "h1", deleting=True))


class TestSignals:
    """Tests for the outcome of single passes."""

    @pytest.mark.asyncio
    async def test_create_yields_continue(self, fake_cluster, conf):
        cluster = fake_cluster(DesiredTopology.from_instances({MASTER: {"h1": 1}}))
        orchestrator = ReconciliationOrchestrator(cluster, conf=conf)

        signal = await orchestrator.reconcile()

        assert signal.type == SignalType.CONTINUE
        assert cluster.created == [(MASTER, "h1")]
        cluster.synchronize.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_converged_cluster_is_done(self, fake_cluster, make_pod, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}}),
            [make_pod("m", MASTER, "h1")],
        )
        orchestrator = ReconciliationOrchestrator(cluster, conf=conf)

        signal = await orchestrator.reconcile()

        assert signal == ContinuationSignal.done()
        assert orchestrator.actions == []
        assert orchestrator.role_status == {"master": {"current": 1, "desired": 1}}

    @pytest.mark.asyncio
    async def test_corrupt_pod_deletion_yields_continue(self, fake_cluster, make_pod, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}}),
            [make_pod("m", MASTER, "h1"), make_pod("broken", MASTER, None)],
        )
        signal = await ReconciliationOrchestrator(cluster, conf=conf).reconcile()

        assert signal.type == SignalType.CONTINUE
        assert cluster.deleted == [("broken", "missing_labels")]
        assert cluster.created == []

    @pytest.mark.asyncio
    async def test_unconfigured_role_is_skipped(self, fake_cluster, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}, WORKER: {"w1": 1}})
        )
        await ReconciliationOrchestrator(cluster, conf=conf).reconcile()

        assert sorted(role for role, _ in cluster.created) == [MASTER, WORKER]
        assert HISTORY not in [role for role, _ in cluster.created]

    @pytest.mark.asyncio
    async def test_roles_in_fixed_order(self, fake_cluster, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances(
                {HISTORY: {"x1": 1}, WORKER: {"w1": 1}, MASTER: {"h1": 1}}
            )
        )
        await ReconciliationOrchestrator(cluster, conf=conf).reconcile()

        assert [role for role, _ in cluster.created] == [MASTER, WORKER, HISTORY]

    @pytest.mark.asyncio
    async def test_errors_propagate(self, fake_cluster, conf):
        cluster = fake_cluster(DesiredTopology.from_instances({MASTER: {"h1": 1}}))
        cluster.fetch_pods = AsyncMock(side_effect=RuntimeError("list failed"))

        with pytest.raises(RuntimeError):
            await ReconciliationOrchestrator(cluster, conf=conf).reconcile()


class TestReadinessGate:
    """Tests for holding a role while its pods are mid-transition."""

    @pytest.mark.asyncio
    async def test_pending_pod_requeues(self, fake_cluster, make_pod, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}, WORKER: {"w1": 3}}),
            [
                make_pod("m", MASTER, "h1"),
                make_pod("w", WORKER, "w1", phase="Pending"),
            ],
        )
        signal = await ReconciliationOrchestrator(cluster, conf=conf).reconcile()

        assert signal.type == SignalType.REQUEUE_AFTER
        assert signal.delay == 7
        assert "w" in signal.message
        assert cluster.created == []

    @pytest.mark.asyncio
    async def test_terminating_pod_requeues(self, fake_cluster, make_pod, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}}),
            [make_pod("m-1", MASTER, "h1"), make_pod("m-2", MASTER, "h1", deleting=True)],
        )
        signal = await ReconciliationOrchestrator(cluster, conf=conf).reconcile()

        assert signal.type == SignalType.REQUEUE_AFTER
        assert cluster.deleted == []

    @pytest.mark.asyncio
    async def test_pending_pod_does_not_block_scale_down(
        self, fake_cluster, make_pod, conf
    ):
        cluster = fake_cluster(
            DesiredTopology.from_instances({WORKER: {"w1": 1}}),
            [
                make_pod("w-a", WORKER, "w1"),
                make_pod("w-b", WORKER, "w1", phase="Pending"),
            ],
        )
        orchestrator = ReconciliationOrchestrator(cluster, conf=conf)

        signals = await converge(orchestrator)

        assert signals[0].type == SignalType.REQUEUE_AFTER
        assert signals[-1].is_done
        assert cluster.deleted == [("w-b", "scale_down")]
        assert [p.metadata.name for p in cluster.pods] == ["w-a"]

    @pytest.mark.asyncio
    async def test_held_role_still_scales_down(self, fake_cluster, make_pod, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances({WORKER: {"w1": 1}}),
            [
                make_pod("w-a", WORKER, "w1"),
                make_pod("w-b", WORKER, "w1"),
                make_pod("w-c", WORKER, "w1", phase="Pending"),
            ],
        )
        signal = await ReconciliationOrchestrator(cluster, conf=conf).reconcile()

        assert signal.type == SignalType.REQUEUE_AFTER
        assert cluster.deleted == [("w-c", "scale_down")]
        assert cluster.created == []

    @pytest.mark.asyncio
    async def test_gate_can_be_disabled(self, fake_cluster, make_pod):
        conf = Settings(pod_readiness_gate_enabled=False)
        cluster = fake_cluster(
            DesiredTopology.from_instances({WORKER: {"w1": 2}}),
            [make_pod("w", WORKER, "w1", phase="Pending")],
        )
        signal = await ReconciliationOrchestrator(cluster, conf=conf).reconcile()

        assert signal.type == SignalType.CONTINUE
        assert cluster.created == [(WORKER, "w1")]


class TestDisruptionGate:
    """Tests for deferring removal of outdated pods while applications run."""

    @pytest.fixture
    def rolled_cluster(self, fake_cluster, make_pod):
        """Workers were rolled from configuration w0 to w1."""
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}, WORKER: {"w1": 1}}),
            [
                make_pod("m", MASTER, "h1", pod_ip="10.0.0.1"),
                make_pod("w-old", WORKER, "w0"),
            ],
        )
        cluster.master_status_urls = ["http://10.0.0.1:8080/json/"]
        return cluster

    @pytest.mark.asyncio
    async def test_running_applications_defer_outdated_pods(self, rolled_cluster, conf):
        prober = Mock()
        prober.probe_running_applications = AsyncMock(return_value=[running_app()])
        orchestrator = ReconciliationOrchestrator(rolled_cluster, prober=prober, conf=conf)

        signal = await orchestrator.reconcile()

        assert signal.type == SignalType.REQUEUE_AFTER
        assert signal.delay == 7
        assert "etl" in signal.message
        assert rolled_cluster.deleted == []
        assert rolled_cluster.created == [(WORKER, "w1")]
        prober.probe_running_applications.assert_awaited_once_with(
            ["http://10.0.0.1:8080/json/"]
        )

    @pytest.mark.asyncio
    async def test_deferral_still_removes_unlabelled_pods(
        self, rolled_cluster, make_pod, conf
    ):
        rolled_cluster.pods.append(make_pod("orphan", None, None))
        prober = Mock()
        prober.probe_running_applications = AsyncMock(return_value=[running_app()])

        signal = await ReconciliationOrchestrator(
            rolled_cluster, prober=prober, conf=conf
        ).reconcile()

        assert signal.type == SignalType.REQUEUE_AFTER
        assert rolled_cluster.deleted == [("orphan", "missing_labels")]
        assert "w-old" in [p.metadata.name for p in rolled_cluster.pods]

    @pytest.mark.asyncio
    async def test_terminating_outdated_pod_does_not_wait(
        self, fake_cluster, make_pod, conf
    ):
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}, WORKER: {"w1": 1}}),
            [
                make_pod("m", MASTER, "h1", pod_ip="10.0.0.1"),
                make_pod("w-1", WORKER, "w1"),
                make_pod("w-old", WORKER, "w0", deleting=True),
            ],
        )
        prober = Mock()
        prober.probe_running_applications = AsyncMock(return_value=[running_app()])

        signal = await ReconciliationOrchestrator(
            cluster, prober=prober, conf=conf
        ).reconcile()

        assert signal.type == SignalType.CONTINUE
        prober.probe_running_applications.assert_not_called()

    @pytest.mark.asyncio
    async def test_idle_cluster_is_rolled(self, rolled_cluster, conf):
        prober = Mock()
        prober.probe_running_applications = AsyncMock(return_value=[])
        orchestrator = ReconciliationOrchestrator(rolled_cluster, prober=prober, conf=conf)

        signal = await orchestrator.reconcile()

        assert signal.type == SignalType.CONTINUE
        assert rolled_cluster.deleted == [("w-old", "stale_configuration")]
        assert rolled_cluster.created == [(WORKER, "w1")]

    @pytest.mark.asyncio
    async def test_no_probe_without_outdated_pods(self, fake_cluster, make_pod, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}}),
            [make_pod("m", MASTER, "h1")],
        )
        prober = Mock()
        prober.probe_running_applications = AsyncMock(return_value=[running_app()])

        signal = await ReconciliationOrchestrator(cluster, prober=prober, conf=conf).reconcile()

        assert signal.is_done
        prober.probe_running_applications.assert_not_called()

    @pytest.mark.asyncio
    async def test_gate_can_be_disabled(self, rolled_cluster):
        prober = Mock()
        prober.probe_running_applications = AsyncMock(return_value=[running_app()])
        conf = Settings(disruption_gate_enabled=False)

        signal = await ReconciliationOrchestrator(
            rolled_cluster, prober=prober, conf=conf
        ).reconcile()

        assert signal.type == SignalType.CONTINUE
        assert rolled_cluster.deleted == [("w-old", "stale_configuration")]
        prober.probe_running_applications.assert_not_called()


class TestConvergence:
    """Repeated passes reach the desired topology and then stay put."""

    @pytest.mark.asyncio
    async def test_converges_from_scratch(self, fake_cluster, conf):
        topology = DesiredTopology.from_instances(
            {MASTER: {"h1": 1}, WORKER: {"w1": 3, "w2": 2}, HISTORY: {"x1": 1}}
        )
        cluster = fake_cluster(topology)

        signals = await converge(ReconciliationOrchestrator(cluster, conf=conf))

        assert all(s.type == SignalType.CONTINUE for s in signals[:-1])
        assert cluster.count(MASTER, "h1") == 1
        assert cluster.count(WORKER, "w1") == 3
        assert cluster.count(WORKER, "w2") == 2
        assert cluster.count(HISTORY, "x1") == 1
        assert len(cluster.pods) == 7

    @pytest.mark.asyncio
    async def test_converges_from_messy_state(self, fake_cluster, make_pod, conf):
        topology = DesiredTopology.from_instances({MASTER: {"h1": 1}, WORKER: {"w1": 2}})
        pods = [
            make_pod("m-1", MASTER, "h1"),
            make_pod("m-2", MASTER, "h1"),
            make_pod("m-3", MASTER, "h1"),
            make_pod("w-old-1", WORKER, "w0"),
            make_pod("w-old-2", WORKER, "w0"),
            make_pod("orphan", None, None),
            make_pod("driver", "driver", "d1"),
        ]
        cluster = fake_cluster(topology, pods)

        await converge(ReconciliationOrchestrator(cluster, conf=conf))

        assert cluster.count(MASTER, "h1") == 1
        assert cluster.count(WORKER, "w1") == 2
        assert cluster.count(WORKER, "w0") == 0
        assert {name for name, _ in cluster.deleted} >= {
            "w-old-1",
            "w-old-2",
            "orphan",
            "driver",
        }

    @pytest.mark.asyncio
    async def test_fixed_point_is_stable(self, fake_cluster, conf):
        cluster = fake_cluster(
            DesiredTopology.from_instances({MASTER: {"h1": 1}, WORKER: {"w1": 2}})
        )
        orchestrator = ReconciliationOrchestrator(cluster, conf=conf)
        await converge(orchestrator)
        pods_before = [p.metadata.name for p in cluster.pods]

        for _ in range(3):
            assert (await orchestrator.reconcile()).is_done

        assert [p.metadata.name for p in cluster.pods] == pods_before

    @pytest.mark.asyncio
    async def test_scale_down_one_per_pass(self, fake_cluster, make_pod, conf):
        pods = [make_pod(f"w-{i}", WORKER, "w1") for i in range(4)]
        cluster = fake_cluster(DesiredTopology.from_instances({WORKER: {"w1": 1}}), pods)
        orchestrator = ReconciliationOrchestrator(cluster, conf=conf)

        signals = await converge(orchestrator)

        assert len(signals) == 4
        assert [name for name, _ in cluster.deleted] == ["w-0", "w-1", "w-2"]
