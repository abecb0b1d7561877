import uuid


class SparkClusterResources:
    """Encapsulates the naming scheme used for the resources which the operator manages
    for a SparkCluster."""

    @classmethod
    def role_group_prefix(self, cluster_name: str, role: str, config_hash: str) -> str:
        """Returns the name shared by all resources of one role group configuration."""
        return f"{cluster_name}-{role}-{config_hash}"

    @classmethod
    def pod_name(self, cluster_name: str, role: str, config_hash: str, suffix: str = None) -> str:
        """Returns a unique pod name: <cluster>-<role>-<hash>-<suffix>."""
        suffix = suffix or uuid.uuid4().hex[:8]
        return f"{self.role_group_prefix(cluster_name, role, config_hash)}-{suffix}"

    @classmethod
    def config_map_name(self, cluster_name: str, role: str, config_hash: str) -> str:
        """Returns the name of the config map mounted as spark configuration directory.
        All pods of one role group configuration share it."""
        return f"{self.role_group_prefix(cluster_name, role, config_hash)}-config"

    @classmethod
    def data_config_map_name(self, cluster_name: str, role: str, config_hash: str) -> str:
        return f"{self.role_group_prefix(cluster_name, role, config_hash)}-data"

    @classmethod
    def master_service_name(self, cluster_name: str) -> str:
        return f"{cluster_name}-master"

    @classmethod
    def qualified_master_service_name(self, cluster_name: str, namespace: str) -> str:
        """Returns qualified name of the master service which works across namespaces."""
        return f"{self.master_service_name(cluster_name)}.{namespace}.svc.cluster.local"

    @classmethod
    def master_url(self, cluster_name: str, namespace: str, port: int) -> str:
        """Returns the spark:// URL workers register with."""
        return f"spark://{self.qualified_master_service_name(cluster_name, namespace)}:{port}"

    @classmethod
    def master_status_url(self, host: str, port: int) -> str:
        """Returns the JSON status endpoint of a single spark master."""
        return f"http://{host}:{port}/json/"
