"""Base sensor classes for operator monitoring.

All hooks are no-ops by default, allowing subclasses to override only the
events they care about. Start hooks return an optional state dict which is
handed back to the matching complete hook.
"""

from typing import Dict, Optional, Any


class OperatorSensor:
    """Base sensor class for spark operator monitoring.

    Hooks fall into three groups:
    1. Reconciliation lifecycle (one pass over a SparkCluster)
    2. Managed objects (pods, config maps, services)
    3. Cluster state probes (spark master status pages)
    """

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        cluster_name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Called when a reconciliation pass begins.

        Args:
            cluster_name: SparkCluster resource name
            namespace: Kubernetes namespace
            trigger_source: What triggered the pass (create, update, resume, timer)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        cluster_name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        outcome: str,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconciliation pass completes.

        Args:
            cluster_name: SparkCluster resource name
            namespace: Kubernetes namespace
            state: State dict returned from on_reconcile_start
            outcome: Continuation signal of the pass (done, continue, requeue_after)
                or `error`
            error: Exception if the pass failed
        """
        pass

    # =============================================================================
    # Managed Object Hooks
    # =============================================================================

    def on_pod_created(
        self,
        cluster_name: str,
        namespace: str,
        role: str,
        config_hash: str,
    ) -> None:
        pass

    def on_pod_deleted(
        self,
        cluster_name: str,
        namespace: str,
        role: str,
        reason: str,
    ) -> None:
        """Called after a pod was deleted.

        Args:
            reason: Why the pod was removed (scale_down, missing_labels,
                unknown_role, stale_configuration)
        """
        pass

    def on_resource_sync(
        self,
        cluster_name: str,
        namespace: str,
        resource_name: str,
        resource_type: str,
        operation: str,
    ) -> None:
        """Called when a config map or service was synced.

        Args:
            operation: Operation performed (created, updated, unchanged)
        """
        pass

    # =============================================================================
    # Cluster State Hooks
    # =============================================================================

    def on_probe_endpoint(self, endpoint: str, outcome: str) -> None:
        """Called for every spark master status request.

        Args:
            endpoint: URL of the status page
            outcome: ok, connection_error, read_error or parse_error
        """
        pass

    def on_running_applications(
        self, cluster_name: str, namespace: str, count: int
    ) -> None:
        pass

    def on_status_update(
        self,
        cluster_name: str,
        namespace: str,
        update_fields: list[str],
    ) -> None:
        pass

    # =============================================================================
    # Utility Methods
    # =============================================================================

    def asdict(self) -> Dict[str, Any]:
        """Return sensor state as dictionary."""
        return {}
