"""Sensor delegation for fan-out pattern.

SensorDelegate routes sensor events to several monitoring backends at once.
Each backend receives the same events and keeps its own state. A failing
backend is logged and never interrupts reconciliation.
"""

from typing import Set, Dict, Optional, Any
import logging

from sparkop.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class SensorDelegate(OperatorSensor):
    """Delegate sensor that fans out events to multiple backends.

    Example:
        delegate = SensorDelegate()
        delegate.add(PrometheusMonitor())

        state = delegate.on_reconcile_start("spark", "default", "timer")
        delegate.on_reconcile_complete("spark", "default", state, "done")
    """

    def __init__(self) -> None:
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        logger.info(f"Adding sensor: {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        logger.info(f"Removing sensor: {sensor.__class__.__name__}")
        self._sensors.discard(sensor)

    def clear(self) -> None:
        logger.info(f"Clearing {len(self._sensors)} sensors")
        self._sensors.clear()

    def _dispatch(self, hook: str, *args: Any) -> None:
        for sensor in self._sensors:
            try:
                getattr(sensor, hook)(*args)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        cluster_name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[OperatorSensor, Any]]:
        """Delegate reconcile_start to all sensors.

        Returns:
            Dict mapping each sensor to its returned state, or None if no sensors
        """
        if not self._sensors:
            return None

        states = {}
        for sensor in self._sensors:
            try:
                state = sensor.on_reconcile_start(cluster_name, namespace, trigger_source)
                if state is not None:
                    states[sensor] = state
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_reconcile_start: {e}",
                    exc_info=True,
                )

        return states if states else None

    def on_reconcile_complete(
        self,
        cluster_name: str,
        namespace: str,
        state: Optional[Dict[OperatorSensor, Any]],
        outcome: str,
        error: Optional[Exception] = None,
    ) -> None:
        """Delegate reconcile_complete to all sensors with their specific state."""
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                sensor.on_reconcile_complete(
                    cluster_name, namespace, sensor_state, outcome, error
                )
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_reconcile_complete: {e}",
                    exc_info=True,
                )

    # =============================================================================
    # Managed Object Hooks
    # =============================================================================

    def on_pod_created(self, cluster_name, namespace, role, config_hash) -> None:
        self._dispatch("on_pod_created", cluster_name, namespace, role, config_hash)

    def on_pod_deleted(self, cluster_name, namespace, role, reason) -> None:
        self._dispatch("on_pod_deleted", cluster_name, namespace, role, reason)

    def on_resource_sync(
        self, cluster_name, namespace, resource_name, resource_type, operation
    ) -> None:
        self._dispatch(
            "on_resource_sync",
            cluster_name,
            namespace,
            resource_name,
            resource_type,
            operation,
        )

    # =============================================================================
    # Cluster State Hooks
    # =============================================================================

    def on_probe_endpoint(self, endpoint, outcome) -> None:
        self._dispatch("on_probe_endpoint", endpoint, outcome)

    def on_running_applications(self, cluster_name, namespace, count) -> None:
        self._dispatch("on_running_applications", cluster_name, namespace, count)

    def on_status_update(self, cluster_name, namespace, update_fields) -> None:
        self._dispatch("on_status_update", cluster_name, namespace, update_fields)

    def asdict(self) -> Dict[str, Any]:
        return {
            sensor.__class__.__name__: sensor.asdict() for sensor in self._sensors
        }
