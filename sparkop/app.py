import kopf
import logging
import sparkop.handlers.sparkcluster as sparkcluster
from sparkop.types.settings import Settings
from sparkop.resources.sparkcluster import SparkCluster
from sparkop.web import SparkMasterClient
from sparkop.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client.api_client import ApiClient


# Configure Kopf settings
@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # Load Kubernetes config - try in-cluster first (for production), then local kubeconfig (for dev)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()
    SparkCluster.conf = memo.conf
    SparkCluster.master_client = SparkMasterClient(
        timeout=memo.conf.cluster_state_probe_timeout_seconds
    )

    # Create a shared ApiClient for all resources to prevent connection leaks
    SparkCluster.shared_api_client = ApiClient()
    logger.info("Shared Kubernetes API client initialized")

    # Initialize sensor infrastructure
    sensor_delegate = SensorDelegate()
    sensor_delegate.add(PrometheusMonitor())
    memo.sensor = sensor_delegate
    SparkCluster.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    # Initialize Prometheus metrics server
    try:
        init_metrics_server()
    except Exception as e:
        logger.error(f"Failed to start metrics server: {e}")
        logger.warning("Continuing without metrics server")

    if not SparkCluster.conf.cluster_state_probe_enabled:
        logger.warning(
            "Cluster state probes are disabled as per configuration. "
            "status.runningApplications will not be maintained."
        )
    if not SparkCluster.conf.disruption_gate_enabled:
        logger.warning(
            "Disruption gate is disabled: pods with outdated configuration are "
            "replaced even while applications are running."
        )

    # Limit the number of concurrent workers to prevent flooding the API
    settings.batching.worker_limit = 2

    # Post events to the Kubernetes API for logging >= Warning
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING


@kopf.on.cleanup()
async def cleanup(logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    if getattr(SparkCluster, "shared_api_client", None):
        await SparkCluster.shared_api_client.close()
        logger.info("Shared API client closed")

    if getattr(SparkCluster, "master_client", None):
        await SparkCluster.master_client.close()
        logger.info("Spark master client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "sparkcluster",
]
