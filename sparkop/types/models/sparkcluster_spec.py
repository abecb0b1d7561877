from typing import Any, Dict, Optional
from sparkop.types.base import BaseModel


class RoleGroupConfig(BaseModel):
    """Spark settings of a role group. Unset values fall back to spark defaults."""

    master_port: Optional[str] = None
    master_web_ui_port: Optional[str] = None
    worker_port: Optional[str] = None
    worker_web_ui_port: Optional[str] = None
    history_ui_port: Optional[str] = None
    worker_cores: Optional[str] = None
    worker_memory: Optional[str] = None
    daemon_memory: Optional[str] = None
    event_log_enabled: Optional[bool] = None
    event_log_dir: Optional[str] = None
    history_log_directory: Optional[str] = None
    spark_env: Optional[Dict[str, str]] = None
    spark_defaults: Optional[Dict[str, str]] = None

    def as_dict(self) -> Dict[str, Any]:
        """Every setting, unset ones as None, whether or not the group declared a config."""
        return {name: getattr(self, name) for name in RoleGroupConfig.__annotations__}


class RoleGroupSpec(BaseModel):
    """A set of interchangeable replicas sharing one configuration."""

    instances: int
    node_selector: Optional[Dict[str, str]]
    config: RoleGroupConfig


class RoleSpec(BaseModel):
    role_groups: Dict[str, RoleGroupSpec]


class SparkClusterSpec(BaseModel):
    """SparkCluster CRD spec"""

    version: Optional[str]
    image: Optional[str]
    master: RoleSpec
    worker: RoleSpec
    history_server: Optional[RoleSpec]
