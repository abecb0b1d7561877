"""Prometheus monitoring backend for the spark operator.

Metric families:

1. sparkop_reconcile_* - duration and outcome of reconciliation passes
2. sparkop_pods_* / sparkop_resource_* - pod churn and managed object syncs
3. sparkop_probe_* / sparkop_running_applications - spark master probes
"""

from typing import Dict, Optional, Any
import time
import logging

from prometheus_client import Counter, Histogram, Gauge, REGISTRY, CollectorRegistry

from sparkop.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor for the spark operator.

    Metrics are registered in `registry`, the process wide default registry
    unless another one is given.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        super().__init__()

        # =============================================================================
        # Reconciliation Metrics
        # =============================================================================

        self.reconcile_duration = Histogram(
            'sparkop_reconcile_duration_seconds',
            'Time spent in one reconciliation pass',
            labelnames=['cluster_name', 'namespace', 'trigger_source', 'outcome'],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=registry,
        )

        self.reconcile_total = Counter(
            'sparkop_reconcile_total',
            'Total number of reconciliation passes',
            labelnames=['cluster_name', 'namespace', 'trigger_source', 'outcome'],
            registry=registry,
        )

        self.reconcile_errors = Counter(
            'sparkop_reconcile_errors_total',
            'Total number of failed reconciliation passes',
            labelnames=['cluster_name', 'namespace', 'error_type'],
            registry=registry,
        )

        # =============================================================================
        # Managed Object Metrics
        # =============================================================================

        self.pods_created = Counter(
            'sparkop_pods_created_total',
            'Total number of pods created',
            labelnames=['cluster_name', 'namespace', 'role'],
            registry=registry,
        )

        self.pods_deleted = Counter(
            'sparkop_pods_deleted_total',
            'Total number of pods deleted',
            labelnames=['cluster_name', 'namespace', 'role', 'reason'],
            registry=registry,
        )

        self.resource_sync_total = Counter(
            'sparkop_resource_sync_total',
            'Total number of config map and service syncs',
            labelnames=['cluster_name', 'namespace', 'resource_type', 'operation'],
            registry=registry,
        )

        # =============================================================================
        # Cluster State Metrics
        # =============================================================================

        self.probe_requests = Counter(
            'sparkop_probe_requests_total',
            'Total number of spark master status requests',
            labelnames=['outcome'],
            registry=registry,
        )

        self.running_applications = Gauge(
            'sparkop_running_applications',
            'Applications in state RUNNING as reported by the masters',
            labelnames=['cluster_name', 'namespace'],
            registry=registry,
        )

        self.status_updates = Counter(
            'sparkop_status_updates_total',
            'Total number of status updates',
            labelnames=['cluster_name', 'namespace', 'update_field'],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    def on_reconcile_start(
        self,
        cluster_name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_reconcile_complete(
        self,
        cluster_name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        outcome: str,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and outcome."""
        if state:
            duration = time.time() - state['start_time']
            trigger_source = state['trigger_source']

            self.reconcile_duration.labels(
                cluster_name=cluster_name,
                namespace=namespace,
                trigger_source=trigger_source,
                outcome=outcome,
            ).observe(duration)

            self.reconcile_total.labels(
                cluster_name=cluster_name,
                namespace=namespace,
                trigger_source=trigger_source,
                outcome=outcome,
            ).inc()

        if error:
            self.reconcile_errors.labels(
                cluster_name=cluster_name,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    def on_pod_created(self, cluster_name, namespace, role, config_hash) -> None:
        self.pods_created.labels(
            cluster_name=cluster_name, namespace=namespace, role=role
        ).inc()

    def on_pod_deleted(self, cluster_name, namespace, role, reason) -> None:
        self.pods_deleted.labels(
            cluster_name=cluster_name,
            namespace=namespace,
            role=role or 'unknown',
            reason=reason,
        ).inc()

    def on_resource_sync(
        self, cluster_name, namespace, resource_name, resource_type, operation
    ) -> None:
        self.resource_sync_total.labels(
            cluster_name=cluster_name,
            namespace=namespace,
            resource_type=resource_type,
            operation=operation,
        ).inc()

    def on_probe_endpoint(self, endpoint, outcome) -> None:
        self.probe_requests.labels(outcome=outcome).inc()

    def on_running_applications(self, cluster_name, namespace, count) -> None:
        self.running_applications.labels(
            cluster_name=cluster_name, namespace=namespace
        ).set(count)

    def on_status_update(self, cluster_name, namespace, update_fields) -> None:
        for field in update_fields:
            self.status_updates.labels(
                cluster_name=cluster_name,
                namespace=namespace,
                update_field=field,
            ).inc()
