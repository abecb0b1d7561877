"""Spark Operator Sensor Framework.

Hook based instrumentation of operator lifecycle events. Sensors are notified
about reconciliation passes, pod churn, managed resource syncs and probes of
spark masters.

Key components:
- OperatorSensor: Base class defining lifecycle hooks for operator events
- SensorDelegate: Fan-out pattern for routing events to multiple sensor backends
- PrometheusMonitor: Prometheus metrics exporter

Usage:
    from sparkop.sensors import OperatorSensor, SensorDelegate

    class PodChurnSensor(OperatorSensor):
        def on_pod_deleted(self, cluster_name, namespace, role, reason) -> None:
            print(f"{cluster_name}: {role} pod deleted ({reason})")

    delegate = SensorDelegate()
    delegate.add(PodChurnSensor())
    delegate.add(PrometheusMonitor())
"""

from sparkop.sensors.base import OperatorSensor
from sparkop.sensors.delegate import SensorDelegate
from sparkop.sensors.prometheus import PrometheusMonitor
from sparkop.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
]
