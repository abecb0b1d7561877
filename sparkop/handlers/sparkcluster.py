import asyncio
import kopf
from logging import Logger
from collections import defaultdict
from typing import Dict, Optional
from kubernetes_asyncio.client import ApiException
from marshmallow import ValidationError
from sparkop.types.models import SparkClusterSpec
from sparkop.types.schemas import SparkClusterSpecSchema
from sparkop.resources import (
    SparkCluster,
    ReconciliationOrchestrator,
    ContinuationSignal,
    SignalType,
)
from sparkop.sensors import SensorDelegate
from sparkop.web import ClusterStateProber
from sparkop.utils.helpers import upsert_condition, now
from sparkop.utils.errors import (
    SparkClusterError,
    convert_reconcile_error,
    describe_api_exception,
)

CLUSTER_KIND = "SparkCluster"

# One pass per cluster at a time; timers run concurrently with change handlers.
reconciliation_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


def get_sensor() -> Optional[SensorDelegate]:
    return getattr(SparkCluster, "sensor", None)


def get_prober(logger: Logger) -> Optional[ClusterStateProber]:
    """Prober backed by the shared master client, None before startup completed."""
    client = getattr(SparkCluster, "master_client", None)
    if client is None:
        return None
    return ClusterStateProber(client, sensor=get_sensor(), logger=logger)


def load_cluster(name, namespace, spec, meta, logger: Logger) -> SparkCluster:
    try:
        spec_model: SparkClusterSpec = SparkClusterSpecSchema().load(spec)
    except ValidationError as ex:
        raise kopf.PermanentError(f"Invalid SparkCluster spec: {ex.messages}")
    return SparkCluster.from_spec(
        name,
        namespace,
        spec_model,
        uid=meta.get("uid"),
        logger=logger,
        sensor=get_sensor(),
        conf=getattr(SparkCluster, "conf", None),
    )


def on_error(error, meta, status, patch, **_):
    """Handle errors during reconciliation."""
    gen = meta.get("generation", 0)
    conds = (status or {}).get("conditions", [])
    conds = upsert_condition(
        conds,
        {
            "type": "Progressing",
            "status": "False",
            "reason": "Error",
            "message": str(error) if error else "Reconcile failed; see events/logs",
            "observedGeneration": gen,
        },
    )
    conds = upsert_condition(
        conds,
        {
            "type": "Ready",
            "status": "False",
            "reason": "Error",
            "message": "Spark cluster not ready",
            "observedGeneration": gen,
        },
    )
    patch.status["conditions"] = conds


def on_pass_complete(
    orchestrator: ReconciliationOrchestrator,
    signal: ContinuationSignal,
    meta,
    status,
    patch,
):
    """Publish role counts and conditions of a finished pass."""
    gen = meta.get("generation", 0)
    conds = (status or {}).get("conditions", [])
    if signal.is_done:
        progressing = {
            "type": "Progressing",
            "status": "False",
            "reason": "Reconciled",
            "message": "All role groups have their desired instances",
        }
        ready = {
            "type": "Ready",
            "status": "True",
            "reason": "Reconciled",
            "message": "Spark cluster ready",
        }
    else:
        reason = "Scaling" if signal.type == SignalType.CONTINUE else "Waiting"
        progressing = {
            "type": "Progressing",
            "status": "True",
            "reason": reason,
            "message": signal.message,
        }
        ready = {
            "type": "Ready",
            "status": "False",
            "reason": reason,
            "message": "Spark cluster is converging",
        }
    for cond in (progressing, ready):
        conds = upsert_condition(conds, {**cond, "observedGeneration": gen})
    patch.status["conditions"] = conds
    patch.status["roles"] = orchestrator.role_status
    patch.status["lastReconciled"] = now()


async def reconcile_cluster(
    name, namespace, spec, meta, status, patch, logger: Logger, trigger_source: str
):
    """Run one reconciliation pass and translate its signal for kopf.

    Raises:
        kopf.TemporaryError: more work is left; kopf calls again after the delay.
        kopf.PermanentError: the SparkCluster cannot be reconciled as it is.
    """
    async with reconciliation_locks[f"{namespace}/{name}"]:
        cluster = load_cluster(name, namespace, spec, meta, logger)
        conf = cluster.conf
        orchestrator = ReconciliationOrchestrator(
            cluster, prober=get_prober(logger), conf=conf, logger=logger
        )
        sensor_state = cluster.sensor.on_reconcile_start(name, namespace, trigger_source)
        try:
            signal = await orchestrator.reconcile()
        except SparkClusterError as ex:
            logger.error(f"Reconciliation of {cluster.ref} failed: {ex}")
            cluster.sensor.on_reconcile_complete(name, namespace, sensor_state, "error", ex)
            on_error(ex, meta, status, patch)
            convert_reconcile_error(ex, conf.requeue_delay_seconds)
        except ApiException as ex:
            message = describe_api_exception(ex)
            logger.error(f"Reconciliation of {cluster.ref} failed: {message}")
            cluster.sensor.on_reconcile_complete(name, namespace, sensor_state, "error", ex)
            on_error(message, meta, status, patch)
            raise kopf.TemporaryError(message, delay=conf.requeue_delay_seconds)

        cluster.sensor.on_reconcile_complete(name, namespace, sensor_state, str(signal.type))
        on_pass_complete(orchestrator, signal, meta, status, patch)
        cluster.sensor.on_status_update(name, namespace, ["conditions", "roles"])

        if signal.type == SignalType.CONTINUE:
            raise kopf.TemporaryError(
                signal.message, delay=conf.convergence_retry_delay_seconds
            )
        if signal.type == SignalType.REQUEUE_AFTER:
            raise kopf.TemporaryError(signal.message, delay=signal.delay)
        logger.info(f"{cluster.ref} reconciled")


@kopf.on.resume(kind=CLUSTER_KIND)
@kopf.on.create(kind=CLUSTER_KIND)
async def on_create(
    spec, name, meta, status, patch, namespace, reason, logger: Logger, **kwargs
):
    """Creates the pods of a SparkCluster."""
    trigger_source = str(getattr(reason, "value", reason))
    await reconcile_cluster(
        name, namespace, spec, meta, status, patch, logger, trigger_source=trigger_source
    )


@kopf.on.update(kind=CLUSTER_KIND, field="spec")
async def on_update(spec, name, meta, status, patch, namespace, logger: Logger, **kwargs):
    """Rolls role groups over to a changed spec."""
    await reconcile_cluster(
        name, namespace, spec, meta, status, patch, logger, trigger_source="update"
    )


@kopf.on.delete(kind=CLUSTER_KIND, optional=True)
async def on_delete(name, namespace, logger: Logger, **kwargs):
    """Forgets a deleted SparkCluster. Its pods go with the owner references."""
    if reconciliation_locks.pop(f"{namespace}/{name}", None) is not None:
        logger.info(f"Released reconciliation lock of {namespace}/{name}")


@kopf.timer(CLUSTER_KIND, initial_delay=5.0, interval=30.0, backoff=10.0)
async def periodic_reconciliation(
    spec, name, meta, status, patch, namespace, logger: Logger, **kwargs
):
    """Repairs drift such as pods deleted by hand."""
    await reconcile_cluster(
        name, namespace, spec, meta, status, patch, logger, trigger_source="timer"
    )


@kopf.timer(CLUSTER_KIND, initial_delay=10.0, interval=30.0)
async def monitor_running_applications(
    spec, name, meta, patch, namespace, logger: Logger, **kwargs
):
    """Publish the applications the masters report as running."""
    conf = getattr(SparkCluster, "conf", None)
    if conf is not None and not conf.cluster_state_probe_enabled:
        return
    prober = get_prober(logger)
    if prober is None:
        return
    cluster = load_cluster(name, namespace, spec, meta, logger)
    try:
        pods = await cluster.fetch_pods()
        endpoints = cluster.prepare_master_status_urls(pods)
    except ApiException as ex:
        logger.warning(f"Cannot list pods of {cluster.ref}: {describe_api_exception(ex)}")
        return
    except SparkClusterError as ex:
        logger.warning(f"Skipping probe of {cluster.ref}: {ex}")
        return

    applications = await prober.probe_running_applications(endpoints)
    cluster.sensor.on_running_applications(name, namespace, len(applications))
    patch.status["runningApplications"] = [app.info() for app in applications]
    cluster.sensor.on_status_update(name, namespace, ["runningApplications"])
