import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Seconds to wait before the next pass when pods are mid-transition, and after transient errors
REQUEUE_DELAY_SECONDS = float(_getenv("REQUEUE_DELAY_SECONDS", 5))

#: Seconds to wait before the next pass when the previous pass changed pods
CONVERGENCE_RETRY_DELAY_SECONDS = float(_getenv("CONVERGENCE_RETRY_DELAY_SECONDS", 1))

#: Hold reconciliation of a role while any of its pods is pending or terminating
POD_READINESS_GATE_ENABLED = bool(_getenv("POD_READINESS_GATE_ENABLED", True))

#: Defer removal of pods with outdated configuration while applications are running
DISRUPTION_GATE_ENABLED = bool(_getenv("DISRUPTION_GATE_ENABLED", True))

#: Enable periodic polling of spark master status endpoints
CLUSTER_STATE_PROBE_ENABLED = bool(_getenv("CLUSTER_STATE_PROBE_ENABLED", True))

#: Timeout in seconds for a single spark master status request
CLUSTER_STATE_PROBE_TIMEOUT_SECONDS = float(
    _getenv("CLUSTER_STATE_PROBE_TIMEOUT_SECONDS", 10.0)
)

#: Image repository used when a cluster only declares a spark version
DEFAULT_SPARK_IMAGE_REPOSITORY = str(
    _getenv("DEFAULT_SPARK_IMAGE_REPOSITORY", "stackable/spark")
)


class Settings:
    """Operator settings"""

    requeue_delay_seconds: float = REQUEUE_DELAY_SECONDS
    convergence_retry_delay_seconds: float = CONVERGENCE_RETRY_DELAY_SECONDS
    pod_readiness_gate_enabled: bool = POD_READINESS_GATE_ENABLED
    disruption_gate_enabled: bool = DISRUPTION_GATE_ENABLED
    cluster_state_probe_enabled: bool = CLUSTER_STATE_PROBE_ENABLED
    cluster_state_probe_timeout_seconds: float = CLUSTER_STATE_PROBE_TIMEOUT_SECONDS
    default_spark_image_repository: str = DEFAULT_SPARK_IMAGE_REPOSITORY

    def __init__(
        self,
        *args,
        requeue_delay_seconds: float = None,
        convergence_retry_delay_seconds: float = None,
        pod_readiness_gate_enabled: bool = None,
        disruption_gate_enabled: bool = None,
        cluster_state_probe_enabled: bool = None,
        cluster_state_probe_timeout_seconds: float = None,
        default_spark_image_repository: str = None,
        **kwargs,
    ):
        if requeue_delay_seconds is not None:
            self.requeue_delay_seconds = requeue_delay_seconds

        if convergence_retry_delay_seconds is not None:
            self.convergence_retry_delay_seconds = convergence_retry_delay_seconds

        if pod_readiness_gate_enabled is not None:
            self.pod_readiness_gate_enabled = pod_readiness_gate_enabled

        if disruption_gate_enabled is not None:
            self.disruption_gate_enabled = disruption_gate_enabled

        if cluster_state_probe_enabled is not None:
            self.cluster_state_probe_enabled = cluster_state_probe_enabled

        if cluster_state_probe_timeout_seconds is not None:
            self.cluster_state_probe_timeout_seconds = (
                cluster_state_probe_timeout_seconds
            )

        if default_spark_image_repository is not None:
            self.default_spark_image_repository = default_spark_image_repository
